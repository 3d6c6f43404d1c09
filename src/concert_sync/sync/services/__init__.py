"""Per-entity sync services."""

from concert_sync.sync.services.artist import ArtistSyncService
from concert_sync.sync.services.base import EntitySyncService
from concert_sync.sync.services.setlist import SetlistSyncService
from concert_sync.sync.services.show import ShowSyncService
from concert_sync.sync.services.song import SongSyncService
from concert_sync.sync.services.venue import VenueSyncService

__all__ = [
    "ArtistSyncService",
    "EntitySyncService",
    "SetlistSyncService",
    "ShowSyncService",
    "SongSyncService",
    "VenueSyncService",
]
