"""Per-owner pending-file store for the intent negotiation flow.

Holds at most one "awaiting intent" entry per conversation owner. Entries
expire lazily: nothing sweeps the table, an entry older than the TTL is
dropped the next time it is looked up.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

from lineassist.webhook.models import (
    FileKind,
    LookupStatus,
    PendingFileEntry,
    PendingLookup,
)

logger = logging.getLogger(__name__)

_DEFAULT_TTL_SECONDS = 10 * 60


class PendingFileStore:
    """In-memory map of owner_id -> PendingFileEntry.

    Map operations are guarded by a mutex so the store stays consistent when
    touched from worker threads. ``owner_lock`` additionally serialises the
    async read-decide-delete sequence of one owner across awaits.
    """

    def __init__(
        self,
        ttl_seconds: float = _DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, PendingFileEntry] = {}
        self._mutex = threading.Lock()
        self._owner_locks: dict[str, asyncio.Lock] = {}
        self._owner_lock_users: dict[str, int] = {}

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def __len__(self) -> int:
        with self._mutex:
            return len(self._entries)

    def put(self, owner_id: str, media_ref: str, kind: FileKind) -> PendingFileEntry:
        """Record a file for the owner, replacing any entry already held."""
        entry = PendingFileEntry(
            owner_id=owner_id,
            media_ref=media_ref,
            kind=kind,
            created_at=self._clock(),
        )
        with self._mutex:
            replaced = self._entries.get(owner_id)
            self._entries[owner_id] = entry
        if replaced is not None:
            logger.debug(
                "Replaced pending file %s with %s for %s",
                replaced.media_ref,
                media_ref,
                owner_id,
            )
        return entry

    def has_entry(self, owner_id: str) -> bool:
        """Return True if any entry, expired or not, is held for the owner."""
        with self._mutex:
            return owner_id in self._entries

    def is_expired(self, entry: PendingFileEntry) -> bool:
        return self._clock() - entry.created_at > self._ttl

    def lookup(self, owner_id: str) -> PendingLookup:
        """Look up the owner's entry, deleting it if it has expired."""
        with self._mutex:
            entry = self._entries.get(owner_id)
            if entry is None:
                return PendingLookup(LookupStatus.MISSING)
            if self.is_expired(entry):
                del self._entries[owner_id]
                logger.debug("Expired pending file %s for %s", entry.media_ref, owner_id)
                return PendingLookup(LookupStatus.EXPIRED)
            return PendingLookup(LookupStatus.FOUND, entry)

    def get(self, owner_id: str) -> PendingFileEntry | None:
        """Return the live entry for the owner; expired entries count as absent."""
        return self.lookup(owner_id).entry

    def discard(self, owner_id: str, entry: PendingFileEntry | None = None) -> bool:
        """Remove the owner's entry.

        When ``entry`` is given, only remove it if it is still the stored one,
        so a file that arrived while the previous one was processed survives.
        """
        with self._mutex:
            current = self._entries.get(owner_id)
            if current is None:
                return False
            if entry is not None and current is not entry:
                return False
            del self._entries[owner_id]
            return True

    @asynccontextmanager
    async def owner_lock(self, owner_id: str) -> AsyncIterator[None]:
        """Hold the owner's async lock for the duration of the block."""
        with self._mutex:
            lock = self._owner_locks.setdefault(owner_id, asyncio.Lock())
            self._owner_lock_users[owner_id] = self._owner_lock_users.get(owner_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            with self._mutex:
                users = self._owner_lock_users[owner_id] - 1
                if users:
                    self._owner_lock_users[owner_id] = users
                else:
                    del self._owner_lock_users[owner_id]
                    del self._owner_locks[owner_id]
