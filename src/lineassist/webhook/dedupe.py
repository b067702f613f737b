"""Idempotency cache for webhook event ids."""

from __future__ import annotations

import time
from collections.abc import Callable

_DEFAULT_TTL_SECONDS = 3600


class EventIdCache:
    """Remembers accepted webhookEventIds for ``ttl_seconds``."""

    def __init__(
        self,
        ttl_seconds: float = _DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._store: dict[str, float] = {}

    def _purge(self) -> None:
        now = self._clock()
        expired = [k for k, ts in self._store.items() if now - ts > self._ttl]
        for k in expired:
            del self._store[k]

    def seen(self, key: str) -> bool:
        """Check only; does not insert."""
        self._purge()
        return key in self._store

    def mark(self, key: str) -> None:
        self._purge()
        self._store[key] = self._clock()

    def check_and_mark(self, key: str) -> bool:
        """Return True if ``key`` was already seen, otherwise record it."""
        if self.seen(key):
            return True
        self.mark(key)
        return False

    def __len__(self) -> int:
        return len(self._store)
