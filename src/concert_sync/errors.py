"""Exception hierarchy for the sync engine."""


class ConcertSyncError(Exception):
    """Base class for all concert-sync errors."""


class SyncValidationError(ConcertSyncError):
    """Raised when a merged record lacks its required identifiers.

    Not retried: the same provider data would fail the same way.
    """


class UnsupportedEntityType(ConcertSyncError):
    """Raised when no sync service is routed for an entity type."""

    def __init__(self, entity_type: object) -> None:
        self.entity_type = entity_type
        super().__init__(f"Unsupported entity type: {entity_type}")


class PersistenceError(ConcertSyncError):
    """Raised when the local store cannot be read or written."""
