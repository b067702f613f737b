"""Temporary storage for downloaded media.

Files are written under one directory with collision-resistant names and
removed by tracked delayed-deletion tasks. ``aclose`` flushes any deletions
still waiting, so only a hard kill can leave files behind; ``cleanup_old_files``
sweeps those on the next start.

All methods do blocking file I/O. Async callers run ``save`` and
``cleanup_old_files`` through ``asyncio.to_thread``.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)

_DEFAULT_DELETE_DELAY_SECONDS = 5.0
_DEFAULT_MAX_AGE_SECONDS = 24 * 3600


class TempFileManager:
    def __init__(
        self,
        directory: str | Path,
        delete_delay_seconds: float = _DEFAULT_DELETE_DELAY_SECONDS,
    ) -> None:
        self._directory = Path(directory)
        self._delete_delay = delete_delay_seconds
        self._tasks: dict[asyncio.Task[None], Path] = {}

    @property
    def directory(self) -> Path:
        return self._directory

    @property
    def pending_deletions(self) -> int:
        return len(self._tasks)

    @staticmethod
    def generate_file_name(base_name: str, extension: str | None = None) -> str:
        """``<YYYYmmdd_HHMMSS>_<random>_<stem><ext>``; ext defaults to the base name's."""
        base = Path(base_name)
        ext = extension if extension is not None else base.suffix
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        return f"{stamp}_{secrets.token_hex(3)}_{base.stem}{ext}"

    def save(self, data: bytes, base_name: str, extension: str | None = None) -> Path:
        self._directory.mkdir(parents=True, exist_ok=True)
        path = self._directory / self.generate_file_name(base_name, extension)
        path.write_bytes(data)
        logger.debug("Saved %d bytes to %s", len(data), path)
        return path

    def read(self, path: str | Path) -> bytes:
        return Path(path).read_bytes()

    def delete(self, path: str | Path) -> bool:
        """Remove the file; returns False if it was already gone or could not be removed."""
        try:
            Path(path).unlink()
        except FileNotFoundError:
            return False
        except OSError:
            logger.warning("Could not delete %s", path, exc_info=True)
            return False
        return True

    def schedule_delete(self, path: str | Path, delay: float | None = None) -> asyncio.Task[None]:
        """Delete ``path`` after ``delay`` seconds on the running event loop."""
        target = Path(path)
        wait = self._delete_delay if delay is None else delay

        async def _delete_later() -> None:
            await asyncio.sleep(wait)
            self.delete(target)

        task = asyncio.get_running_loop().create_task(_delete_later())
        self._tasks[task] = target
        task.add_done_callback(lambda t: self._tasks.pop(t, None))
        return task

    async def aclose(self) -> None:
        """Cancel waiting deletions and delete their files right away."""
        tasks = dict(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        for path in tasks.values():
            self.delete(path)
        self._tasks.clear()

    def cleanup_old_files(self, max_age_seconds: float = _DEFAULT_MAX_AGE_SECONDS) -> int:
        """Delete files in the directory older than ``max_age_seconds``."""
        if not self._directory.is_dir():
            return 0
        cutoff = time.time() - max_age_seconds
        deleted = 0
        for path in self._directory.iterdir():
            if path.is_file() and path.stat().st_mtime < cutoff and self.delete(path):
                deleted += 1
        if deleted:
            logger.info("Removed %d stale files from %s", deleted, self._directory)
        return deleted
