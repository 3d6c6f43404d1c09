"""Local persistence, caching and incremental sync tracking."""

from concert_sync.state.cache import TTLCache
from concert_sync.state.store import SyncStore
from concert_sync.state.tracker import IncrementalSyncTracker

__all__ = ["IncrementalSyncTracker", "SyncStore", "TTLCache"]
