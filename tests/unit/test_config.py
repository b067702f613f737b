"""Tests for environment-driven settings."""

from __future__ import annotations

import pytest

from lineassist.config import DEFAULT_ALLOWED_MIME_TYPES, Settings


class TestSettings:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("PORT", raising=False)
        settings = Settings(_env_file=None)
        assert settings.PORT == 3000
        assert settings.PENDING_FILE_TTL_SECONDS == 600
        assert settings.MAX_FILE_SIZE == 10 * 1024 * 1024
        assert settings.ALLOWED_MIME_TYPES == DEFAULT_ALLOWED_MIME_TYPES

    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LINE_CHANNEL_SECRET", "abc")
        monkeypatch.setenv("PORT", "8080")
        monkeypatch.setenv("ALLOWED_MIME_TYPES", '["image/png"]')

        settings = Settings(_env_file=None)

        assert settings.LINE_CHANNEL_SECRET == "abc"
        assert settings.PORT == 8080
        assert settings.ALLOWED_MIME_TYPES == ["image/png"]

    def test_default_mime_list_not_shared(self) -> None:
        settings = Settings(_env_file=None)
        settings.ALLOWED_MIME_TYPES.append("x/y")
        assert "x/y" not in DEFAULT_ALLOWED_MIME_TYPES
