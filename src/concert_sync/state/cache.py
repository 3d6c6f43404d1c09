"""Two-tier TTL cache: a process dictionary backed by the SQLite store."""

import json
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from concert_sync.errors import PersistenceError
from concert_sync.logging import get_logger
from concert_sync.state.store import SyncStore

logger = get_logger("state.cache")

DEFAULT_TTL = 30 * 60


@dataclass
class CacheEntry:
    """A cached value and the wall-clock time it expires at."""

    data: Any
    expires_at: float


class TTLCache:
    """Cache with per-entry expiry and an optional persisted tier.

    Values must be JSON-serializable to reach the persisted tier. Expired
    entries are removed when they are next read. Failures of the persisted
    tier are logged and otherwise ignored; the in-memory tier stays
    authoritative.

    Args:
        store: Store providing the persisted tier, or None for memory only.
        clock: Wall-clock time source in seconds.
        default_ttl: TTL in seconds used when ``set`` is given none.
    """

    def __init__(
        self,
        store: SyncStore | None = None,
        clock: Callable[[], float] = time.time,
        default_ttl: float = DEFAULT_TTL,
    ) -> None:
        self._store = store
        self._clock = clock
        self._default_ttl = default_ttl
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str) -> Any | None:
        """Get a value, or None if missing or expired."""
        now = self._clock()
        entry = self._entries.get(key)
        if entry is not None:
            if entry.expires_at > now:
                return entry.data
            del self._entries[key]

        if self._store is None:
            return None
        try:
            stored = self._store.cache_get(key)
            if stored is None:
                return None
            raw, expires_at = stored
            if expires_at <= now:
                self._store.cache_delete(key)
                return None
        except PersistenceError as exc:
            logger.warning("Persisted cache read failed for %s: %s", key, exc)
            return None

        data = json.loads(raw)
        self._entries[key] = CacheEntry(data=data, expires_at=expires_at)
        return data

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Store a value for ``ttl`` seconds."""
        expires_at = self._clock() + (self._default_ttl if ttl is None else ttl)
        self._entries[key] = CacheEntry(data=value, expires_at=expires_at)
        if self._store is None:
            return
        try:
            self._store.cache_set(key, json.dumps(value), expires_at)
        except (PersistenceError, TypeError) as exc:
            logger.warning("Persisted cache write failed for %s: %s", key, exc)

    def remove(self, key: str) -> None:
        self._entries.pop(key, None)
        if self._store is None:
            return
        try:
            self._store.cache_delete(key)
        except PersistenceError as exc:
            logger.warning("Persisted cache delete failed for %s: %s", key, exc)

    def clear_by_prefix(self, prefix: str) -> None:
        """Remove every entry whose key starts with ``prefix``."""
        for key in [k for k in self._entries if k.startswith(prefix)]:
            del self._entries[key]
        if self._store is None:
            return
        try:
            self._store.cache_delete_prefix(prefix)
        except PersistenceError as exc:
            logger.warning("Persisted cache prefix delete failed for %s: %s", prefix, exc)

    def clear_all(self) -> None:
        self._entries.clear()
        if self._store is None:
            return
        try:
            self._store.cache_clear()
        except PersistenceError as exc:
            logger.warning("Persisted cache clear failed: %s", exc)
