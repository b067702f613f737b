"""Tests for EventIdCache."""

from __future__ import annotations

from unittest.mock import patch

from lineassist.webhook.dedupe import EventIdCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestEventIdCache:
    def test_first_sight_is_not_duplicate(self) -> None:
        cache = EventIdCache()
        assert cache.check_and_mark("ev-1") is False
        assert cache.check_and_mark("ev-1") is True

    def test_seen_does_not_insert(self) -> None:
        cache = EventIdCache()
        assert cache.seen("ev-1") is False
        assert cache.seen("ev-1") is False
        assert len(cache) == 0

    def test_mark_then_seen(self) -> None:
        cache = EventIdCache()
        cache.mark("ev-1")
        assert cache.seen("ev-1") is True

    def test_entries_expire(self) -> None:
        clock = FakeClock()
        cache = EventIdCache(ttl_seconds=60, clock=clock)
        cache.mark("ev-1")
        clock.now = 61

        assert cache.seen("ev-1") is False
        assert len(cache) == 0

    def test_check_and_mark_records_through_mark(self) -> None:
        cache = EventIdCache()
        with patch.object(cache, "mark", wraps=cache.mark) as mock_mark:
            cache.check_and_mark("ev-1")
            cache.check_and_mark("ev-1")

        mock_mark.assert_called_once_with("ev-1")
        assert cache.seen("ev-1") is True
