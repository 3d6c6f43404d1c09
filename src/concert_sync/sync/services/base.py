"""Shared sync algorithm for all entity services."""

from collections.abc import Awaitable, Callable, Mapping, Sequence
from datetime import UTC, datetime
from typing import Any, ClassVar, Generic, Protocol, TypeVar

import httpx

from concert_sync.errors import ConcertSyncError, PersistenceError, SyncValidationError
from concert_sync.logging import get_logger
from concert_sync.state.store import SyncStore
from concert_sync.state.tracker import IncrementalSyncTracker
from concert_sync.sync.merge import MERGE_RULES, merge_entities
from concert_sync.types import EntityType, SyncOptions, SyncResult, SyncTask

logger = get_logger("sync.services")

R = TypeVar("R")
T = TypeVar("T")

Candidate = Mapping[str, Any]


class TaskSink(Protocol):
    """Where services put follow-up work, normally the SyncQueue."""

    async def add(self, task: SyncTask) -> bool: ...


def utcnow() -> datetime:
    return datetime.now(UTC)


class EntitySyncService(Generic[R]):
    """Fetches one entity type from its providers and keeps the store current.

    Subclasses set ``entity_type`` and ``record_type`` and implement
    ``fetch``, returning provider field values in priority order. The
    ``sync`` algorithm is shared:

    1. Return the stored record untouched when the tracker says it is fresh.
    2. Otherwise fetch, merge over the stored record and validate.
    3. Upsert, mark synced, then run ``after_upsert`` hooks.

    Args:
        store: Local store.
        tracker: Incremental sync tracker.
        clock: Returns the current time as an aware datetime.
    """

    entity_type: ClassVar[EntityType]
    record_type: ClassVar[type]

    def __init__(
        self,
        store: SyncStore,
        tracker: IncrementalSyncTracker,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._tracker = tracker
        self._clock = clock
        self._queue: TaskSink | None = None

    def attach_queue(self, queue: TaskSink) -> None:
        """Set where follow-up tasks are enqueued."""
        self._queue = queue

    async def sync(self, entity_id: str, options: SyncOptions | None = None) -> SyncResult[R]:
        """Bring one entity up to date.

        Args:
            entity_id: External identifier.
            options: Force flag and refresh interval override.

        Returns:
            SyncResult with the stored or freshly merged record.
        """
        kind = self.entity_type.value
        status = await self._tracker.needs_sync(entity_id, self.entity_type, options)
        try:
            existing = self._store.get_entity(self.entity_type, entity_id)
        except PersistenceError as exc:
            logger.error("Failed to load %s %s: %s", kind, entity_id, exc)
            return SyncResult.failure(str(exc))

        if not status.needs_sync and existing is not None:
            logger.debug("Skipping %s %s: %s", kind, entity_id, status.reason)
            return SyncResult(success=True, updated=False, data=existing)

        logger.info("Syncing %s %s (%s)", kind, entity_id, status.reason)
        candidates = list(await self.fetch(entity_id, existing))
        if options is not None and options.defaults:
            candidates.append(options.defaults)
        record = merge_entities(
            self.record_type,
            MERGE_RULES[self.entity_type],
            entity_id,
            existing,
            candidates,
            self._clock(),
        )

        try:
            self.validate(record)
        except SyncValidationError as exc:
            logger.warning("Not storing %s %s: %s", kind, entity_id, exc)
            return SyncResult.failure(str(exc))

        try:
            self._store.upsert_entity(self.entity_type, record)
        except PersistenceError as exc:
            logger.error("Failed to store %s %s: %s", kind, entity_id, exc)
            return SyncResult.failure(str(exc))

        await self._tracker.mark_synced(entity_id, self.entity_type)
        await self.after_upsert(record)
        return SyncResult(success=True, updated=True, data=record)

    async def fetch(self, entity_id: str, existing: R | None) -> Sequence[Candidate]:
        """Query providers and return field values, highest priority first."""
        raise NotImplementedError

    async def after_upsert(self, record: R) -> None:
        """Hook run after a successful upsert."""

    def validate(self, record: Any) -> None:
        """Require a name and an external ID.

        Raises:
            SyncValidationError: If either is missing.
        """
        if not record.external_id or not record.name:
            raise SyncValidationError(
                f"{self.entity_type.value} {record.external_id!r} has no name or external ID"
            )

    async def _optional(self, call: Awaitable[T], what: str) -> T | None:
        """Await a provider call, logging and absorbing provider failures."""
        try:
            return await call
        except (ConcertSyncError, httpx.HTTPError) as exc:
            logger.warning("%s failed: %s", what, exc)
            return None

    async def _enqueue(self, task: SyncTask) -> bool:
        if self._queue is None:
            logger.debug("No queue attached, not enqueuing %s", task.describe())
            return False
        return await self._queue.add(task)
