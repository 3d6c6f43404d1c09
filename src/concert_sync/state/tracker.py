"""Incremental sync decisions based on durable per-entity sync states."""

from collections.abc import Callable, Iterable, Mapping
from datetime import UTC, datetime, timedelta

from concert_sync.errors import PersistenceError
from concert_sync.logging import get_logger
from concert_sync.state.cache import TTLCache
from concert_sync.state.store import SyncStore
from concert_sync.types import (
    CURRENT_SYNC_VERSION,
    EntityRef,
    EntityType,
    SyncOptions,
    SyncState,
    SyncStatus,
)

logger = get_logger("state.tracker")

STATE_CACHE_PREFIX = "sync_state:"
STATE_CACHE_TTL = 60 * 60

DEFAULT_REFRESH_INTERVALS: dict[EntityType, timedelta] = {
    EntityType.ARTIST: timedelta(days=7),
    EntityType.VENUE: timedelta(days=14),
    EntityType.SHOW: timedelta(days=1),
    EntityType.SETLIST: timedelta(days=1),
    EntityType.SONG: timedelta(days=30),
}


def _utcnow() -> datetime:
    return datetime.now(UTC)


def state_cache_key(entity_id: str, entity_type: EntityType) -> str:
    return f"{STATE_CACHE_PREFIX}{entity_type.value}:{entity_id}"


class IncrementalSyncTracker:
    """Decides whether an entity is due for a provider fetch.

    Checks run in order: force flag, stored state, sync version, refresh
    interval. Sync states are read through the cache and written to both
    the store and the cache.

    Args:
        store: Store holding durable sync states.
        cache: Cache for recently read or written states.
        current_version: Version of the sync logic; older states are resynced.
        refresh_intervals: Per-type overrides of the default refresh intervals.
        clock: Returns the current time as an aware datetime.
    """

    def __init__(
        self,
        store: SyncStore,
        cache: TTLCache,
        current_version: int = CURRENT_SYNC_VERSION,
        refresh_intervals: Mapping[EntityType, timedelta] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._cache = cache
        self._current_version = current_version
        self._intervals = {**DEFAULT_REFRESH_INTERVALS, **(refresh_intervals or {})}
        self._clock = clock

    @property
    def current_version(self) -> int:
        return self._current_version

    def refresh_interval(self, entity_type: EntityType) -> timedelta:
        return self._intervals[entity_type]

    async def needs_sync(
        self,
        entity_id: str,
        entity_type: EntityType,
        options: SyncOptions | None = None,
    ) -> SyncStatus:
        """Check whether an entity should be fetched from its providers.

        Args:
            entity_id: External identifier.
            entity_type: Entity type.
            options: Force flag and refresh interval override.

        Returns:
            SyncStatus with the decision and the reason for it.
        """
        options = options or SyncOptions()
        if options.force:
            return SyncStatus(needs_sync=True, reason="forced")

        try:
            state = self._get_state(entity_id, entity_type)
        except PersistenceError as exc:
            logger.warning(
                "Sync state lookup failed for %s %s: %s", entity_type.value, entity_id, exc
            )
            return SyncStatus(needs_sync=True, reason="state lookup failed")

        if state is None:
            return SyncStatus(needs_sync=True, reason="never synced")

        if state.sync_version < self._current_version:
            return SyncStatus(
                needs_sync=True,
                reason="version outdated",
                last_synced_at=state.last_synced_at,
            )

        interval = (
            options.refresh_interval
            if options.refresh_interval is not None
            else self.refresh_interval(entity_type)
        )
        if self._clock() - state.last_synced_at > interval:
            return SyncStatus(
                needs_sync=True,
                reason="interval exceeded",
                last_synced_at=state.last_synced_at,
            )

        return SyncStatus(
            needs_sync=False, reason="fresh", last_synced_at=state.last_synced_at
        )

    async def mark_synced(self, entity_id: str, entity_type: EntityType) -> None:
        """Record a successful sync at the current time and version."""
        await self.mark_many_synced([EntityRef(entity_type, entity_id)])

    async def mark_many_synced(self, refs: Iterable[EntityRef]) -> None:
        """Record successful syncs for several entities in one store write.

        A store failure is logged; the cached states still reflect the sync.
        """
        now = self._clock()
        states = [
            SyncState(
                entity_id=ref.id,
                entity_type=ref.type,
                last_synced_at=now,
                sync_version=self._current_version,
            )
            for ref in refs
        ]
        if not states:
            return
        try:
            self._store.upsert_sync_states(states)
        except PersistenceError as exc:
            logger.error("Failed to persist %d sync states: %s", len(states), exc)
        for state in states:
            self._cache_state(state)

    async def clear_sync_state(self, entity_id: str, entity_type: EntityType) -> None:
        """Forget when an entity was synced so the next check fetches it."""
        self._cache.remove(state_cache_key(entity_id, entity_type))
        self._store.delete_sync_state(entity_id, entity_type)
        logger.info("Cleared sync state for %s %s", entity_type.value, entity_id)

    def _get_state(self, entity_id: str, entity_type: EntityType) -> SyncState | None:
        cached = self._cache.get(state_cache_key(entity_id, entity_type))
        if cached:
            return SyncState(
                entity_id=entity_id,
                entity_type=entity_type,
                last_synced_at=datetime.fromisoformat(cached["last_synced_at"]),
                sync_version=cached["sync_version"],
            )
        state = self._store.get_sync_state(entity_id, entity_type)
        if state is not None:
            self._cache_state(state)
        return state

    def _cache_state(self, state: SyncState) -> None:
        self._cache.set(
            state_cache_key(state.entity_id, state.entity_type),
            {
                "last_synced_at": state.last_synced_at.isoformat(),
                "sync_version": state.sync_version,
            },
            ttl=STATE_CACHE_TTL,
        )
