"""Composition root wiring the store, gateway, services, manager and queue."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

import httpx

from concert_sync.clients import (
    RateLimitedGateway,
    SetlistFmClient,
    SpotifyClient,
    TicketmasterClient,
)
from concert_sync.config import Settings
from concert_sync.state import IncrementalSyncTracker, SyncStore, TTLCache
from concert_sync.sync.manager import SyncManager
from concert_sync.sync.queue import SyncQueue
from concert_sync.sync.services import (
    ArtistSyncService,
    SetlistSyncService,
    ShowSyncService,
    SongSyncService,
    VenueSyncService,
)


@dataclass
class SyncSystem:
    """Everything needed to run syncs, built by ``create_sync_system``."""

    settings: Settings
    store: SyncStore
    cache: TTLCache
    tracker: IncrementalSyncTracker
    gateway: RateLimitedGateway
    manager: SyncManager
    queue: SyncQueue

    async def aclose(self) -> None:
        """Stop the scheduler and release the HTTP client."""
        await self.queue.stop()
        await self.gateway.aclose()


def create_sync_system(
    settings: Settings, http_client: httpx.AsyncClient | None = None
) -> SyncSystem:
    """Build a sync system from settings.

    Args:
        settings: Application settings.
        http_client: Optional HTTP client, e.g. one using a mock transport.

    Returns:
        A wired SyncSystem whose queue has not been loaded or started.
    """
    settings.ensure_directories()
    store = SyncStore(settings.db_path)
    cache = TTLCache(store)
    tracker = IncrementalSyncTracker(store, cache, current_version=settings.sync_version)
    gateway = RateLimitedGateway(settings.provider_configs(), cache, http_client=http_client)

    ticketmaster = TicketmasterClient(gateway)
    spotify = SpotifyClient(gateway)
    setlistfm = SetlistFmClient(gateway)

    manager = SyncManager(
        store=store,
        artists=ArtistSyncService(
            store,
            tracker,
            ticketmaster,
            spotify,
            setlistfm,
            include_setlists=settings.include_artist_setlists,
            setlist_limit=settings.artist_setlist_limit,
        ),
        venues=VenueSyncService(store, tracker, ticketmaster),
        shows=ShowSyncService(store, tracker, ticketmaster, setlistfm),
        setlists=SetlistSyncService(store, tracker, setlistfm),
        songs=SongSyncService(store, tracker, spotify),
    )
    queue = SyncQueue(
        manager.dispatch,
        store,
        max_concurrent=settings.max_concurrent,
        max_attempts=settings.max_attempts,
        tick_interval=settings.tick_interval,
    )
    manager.attach_queue(queue)

    return SyncSystem(
        settings=settings,
        store=store,
        cache=cache,
        tracker=tracker,
        gateway=gateway,
        manager=manager,
        queue=queue,
    )


@asynccontextmanager
async def build_sync_system(
    settings: Settings, http_client: httpx.AsyncClient | None = None
) -> AsyncIterator[SyncSystem]:
    """Build a sync system with its persisted queue restored, closing it on exit.

    Usage:
        async with build_sync_system(settings) as system:
            await system.manager.sync_entity(EntityType.ARTIST, "K8vZ9171ob7")
    """
    system = create_sync_system(settings, http_client)
    try:
        await system.queue.load()
        yield system
    finally:
        await system.aclose()
