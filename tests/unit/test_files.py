"""Tests for TempFileManager."""

from __future__ import annotations

import asyncio
import os
import re
import time
from pathlib import Path

import pytest

from lineassist.webhook.files import TempFileManager


class TestFileNames:
    def test_name_has_timestamp_random_and_stem(self) -> None:
        name = TempFileManager.generate_file_name("line_m1", ".pdf")
        assert re.fullmatch(r"\d{8}_\d{6}_[0-9a-f]{6}_line_m1\.pdf", name)

    def test_extension_defaults_to_base_name_suffix(self) -> None:
        assert TempFileManager.generate_file_name("photo.png").endswith("_photo.png")

    def test_names_do_not_collide(self) -> None:
        names = {TempFileManager.generate_file_name("x", ".bin") for _ in range(50)}
        assert len(names) == 50


class TestSaveReadDelete:
    def test_save_creates_directory_and_file(self, tmp_path: Path) -> None:
        manager = TempFileManager(tmp_path / "uploads")
        path = manager.save(b"data", "line_m1", ".jpg")

        assert path.parent == tmp_path / "uploads"
        assert path.suffix == ".jpg"
        assert manager.read(path) == b"data"

    def test_delete_existing_and_missing(self, tmp_path: Path) -> None:
        manager = TempFileManager(tmp_path)
        path = manager.save(b"data", "f", ".txt")

        assert manager.delete(path) is True
        assert not path.exists()
        assert manager.delete(path) is False


class TestScheduledDeletion:
    @pytest.mark.asyncio
    async def test_file_removed_after_delay(self, tmp_path: Path) -> None:
        manager = TempFileManager(tmp_path, delete_delay_seconds=0.01)
        path = manager.save(b"data", "f", ".txt")

        task = manager.schedule_delete(path)
        assert manager.pending_deletions == 1
        await task
        await asyncio.sleep(0)

        assert not path.exists()
        assert manager.pending_deletions == 0

    @pytest.mark.asyncio
    async def test_aclose_flushes_waiting_deletions(self, tmp_path: Path) -> None:
        manager = TempFileManager(tmp_path, delete_delay_seconds=3600)
        path = manager.save(b"data", "f", ".txt")
        manager.schedule_delete(path)

        await manager.aclose()

        assert not path.exists()
        assert manager.pending_deletions == 0


class TestCleanupOldFiles:
    def test_removes_only_stale_files(self, tmp_path: Path) -> None:
        manager = TempFileManager(tmp_path)
        old = manager.save(b"old", "old", ".txt")
        fresh = manager.save(b"new", "new", ".txt")
        stale = time.time() - 2 * 86400
        os.utime(old, (stale, stale))

        assert manager.cleanup_old_files() == 1
        assert not old.exists()
        assert fresh.exists()

    def test_missing_directory_is_noop(self, tmp_path: Path) -> None:
        assert TempFileManager(tmp_path / "nope").cleanup_old_files() == 0
