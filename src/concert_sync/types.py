"""Core types shared by the store, the sync services and the queue."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")

CURRENT_SYNC_VERSION = 1


class EntityType(Enum):
    """Kind of entity kept in sync."""

    ARTIST = "artist"
    VENUE = "venue"
    SHOW = "show"
    SETLIST = "setlist"
    SONG = "song"


class Priority(Enum):
    """Queue priority of a sync task."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Numeric rank, higher runs first."""
        return _PRIORITY_RANKS[self]

    def demoted(self) -> "Priority":
        """Priority one level lower; LOW stays LOW."""
        if self is Priority.HIGH:
            return Priority.MEDIUM
        return Priority.LOW


_PRIORITY_RANKS = {Priority.HIGH: 3, Priority.MEDIUM: 2, Priority.LOW: 1}


class SyncOperation(Enum):
    """What a queued task should do with its entity."""

    CREATE = "create"
    REFRESH = "refresh"
    EXPAND_RELATIONS = "expand_relations"
    CASCADE_SYNC = "cascade_sync"


@dataclass
class SyncTask:
    """A unit of work for the sync queue.

    Args:
        type: Entity type to sync.
        id: External identifier of the entity.
        priority: Queue priority.
        operation: Operation to perform.
        attempts: Failed attempts so far.
        payload: Optional opaque data carried with the task.
    """

    type: EntityType
    id: str
    priority: Priority = Priority.MEDIUM
    operation: SyncOperation = SyncOperation.REFRESH
    attempts: int = 0
    payload: dict[str, Any] | None = None

    @property
    def key(self) -> tuple[EntityType, str, SyncOperation]:
        """Identity used for deduplication."""
        return (self.type, self.id, self.operation)

    def describe(self) -> str:
        """Short human-readable description for logs."""
        return f"{self.operation.value} {self.type.value} {self.id}"


@dataclass(frozen=True)
class EntityRef:
    """Reference to an entity by type and external ID."""

    type: EntityType
    id: str


@dataclass
class SyncOptions:
    """Options for a single sync call.

    Args:
        force: Sync even if the stored state is fresh.
        refresh_interval: Override of the per-type refresh interval.
        defaults: Field values used when no provider supplies one.
    """

    force: bool = False
    refresh_interval: timedelta | None = None
    defaults: dict[str, Any] | None = None


@dataclass
class SyncStatus:
    """Outcome of an incremental sync check.

    Args:
        needs_sync: Whether a fetch is due.
        reason: Why the decision was made.
        last_synced_at: Last successful sync, if known.
    """

    needs_sync: bool
    reason: str
    last_synced_at: datetime | None = None


@dataclass
class SyncState:
    """Durable record of when an entity was last synced.

    Args:
        entity_id: External identifier of the entity.
        entity_type: Entity type.
        last_synced_at: Time of the last successful sync.
        sync_version: Sync logic version used for that sync.
    """

    entity_id: str
    entity_type: EntityType
    last_synced_at: datetime
    sync_version: int


@dataclass
class SyncResult(Generic[T]):
    """Result returned by every entity sync.

    ``updated=False`` together with ``success=True`` means the stored
    record was fresh and returned as-is.

    Args:
        success: Whether a valid record is available.
        updated: Whether providers were queried and the record rewritten.
        data: The record, when available.
        error: Error message on failure.
    """

    success: bool
    updated: bool = False
    data: T | None = None
    error: str | None = None

    @classmethod
    def failure(cls, error: str) -> "SyncResult[T]":
        """Build a failed result."""
        return cls(success=False, updated=False, error=error)


@dataclass
class QueueStatus:
    """Snapshot of the sync queue for dashboards.

    Args:
        pending: Tasks waiting to run.
        active: Tasks currently running.
        max_concurrent: Concurrency limit.
        by_priority: Pending tasks per priority.
        by_type: Pending tasks per entity type.
    """

    pending: int
    active: int
    max_concurrent: int
    by_priority: dict[str, int] = field(default_factory=dict)
    by_type: dict[str, int] = field(default_factory=dict)
