"""Routing of sync requests to entity services, plus cascade and expansion."""

from typing import Any

from concert_sync.errors import UnsupportedEntityType
from concert_sync.logging import get_logger
from concert_sync.state.store import SyncStore
from concert_sync.sync.services import (
    ArtistSyncService,
    EntitySyncService,
    SetlistSyncService,
    ShowSyncService,
    SongSyncService,
    VenueSyncService,
)
from concert_sync.sync.services.base import TaskSink
from concert_sync.types import (
    EntityType,
    Priority,
    SyncOperation,
    SyncOptions,
    SyncResult,
    SyncTask,
)

logger = get_logger("sync.manager")


class SyncManager:
    """Single entry point for syncing any entity type.

    Cascade re-syncs children already in the store; expansion discovers
    children that are not stored yet. Both only enqueue follow-up tasks.

    Args:
        store: Local store.
        artists: Artist sync service.
        venues: Venue sync service.
        shows: Show sync service.
        setlists: Setlist sync service.
        songs: Song sync service.
    """

    def __init__(
        self,
        store: SyncStore,
        artists: ArtistSyncService,
        venues: VenueSyncService,
        shows: ShowSyncService,
        setlists: SetlistSyncService,
        songs: SongSyncService,
    ) -> None:
        self._store = store
        self._artists = artists
        self._venues = venues
        self._shows = shows
        self._setlists = setlists
        self._songs = songs
        self._services: dict[EntityType, EntitySyncService] = {
            EntityType.ARTIST: artists,
            EntityType.VENUE: venues,
            EntityType.SHOW: shows,
            EntityType.SETLIST: setlists,
            EntityType.SONG: songs,
        }
        self._queue: TaskSink | None = None

    @property
    def artists(self) -> ArtistSyncService:
        return self._artists

    @property
    def venues(self) -> VenueSyncService:
        return self._venues

    @property
    def shows(self) -> ShowSyncService:
        return self._shows

    @property
    def setlists(self) -> SetlistSyncService:
        return self._setlists

    def attach_queue(self, queue: TaskSink) -> None:
        """Give the manager and its services a queue for follow-up tasks."""
        self._queue = queue
        for service in self._services.values():
            service.attach_queue(queue)

    def service_for(self, entity_type: EntityType | str) -> EntitySyncService:
        """Get the service routed for an entity type.

        Raises:
            UnsupportedEntityType: If no service handles the type.
        """
        try:
            return self._services[EntityType(entity_type)]
        except (KeyError, ValueError):
            raise UnsupportedEntityType(entity_type) from None

    async def enqueue(self, task: SyncTask) -> bool:
        """Add a task to the attached queue.

        Returns:
            True if the task was newly queued.
        """
        if self._queue is None:
            logger.warning("No queue attached, dropping %s", task.describe())
            return False
        return await self._queue.add(task)

    async def sync_entity(
        self,
        entity_type: EntityType | str,
        entity_id: str,
        options: SyncOptions | None = None,
    ) -> SyncResult:
        """Sync one entity through its service.

        Errors other than an unsupported type come back as a failed result.

        Args:
            entity_type: Entity type.
            entity_id: External identifier.
            options: Force flag and refresh interval override.

        Returns:
            SyncResult from the service.

        Raises:
            UnsupportedEntityType: If no service handles the type.
        """
        service = self.service_for(entity_type)
        try:
            return await service.sync(entity_id, options)
        except Exception as exc:
            logger.exception("Sync of %s %s failed", service.entity_type.value, entity_id)
            return SyncResult.failure(str(exc))

    async def create_single(
        self,
        entity_type: EntityType | str,
        entity_id: str,
        defaults: dict[str, Any] | None = None,
    ) -> bool:
        """Fetch and store an entity regardless of its sync state."""
        result = await self.sync_entity(
            entity_type, entity_id, SyncOptions(force=True, defaults=defaults)
        )
        return result.success

    async def refresh_single(
        self,
        entity_type: EntityType | str,
        entity_id: str,
        defaults: dict[str, Any] | None = None,
    ) -> bool:
        """Re-fetch an entity regardless of its sync state."""
        result = await self.sync_entity(
            entity_type, entity_id, SyncOptions(force=True, defaults=defaults)
        )
        return result.success

    async def artist_cascade_sync(self, artist_id: str) -> bool:
        """Sync an artist, then queue refreshes of its stored shows and setlists."""
        if not await self.refresh_single(EntityType.ARTIST, artist_id):
            return False
        tasks = [
            self._refresh_task(EntityType.SHOW, show.external_id, Priority.MEDIUM)
            for show in self._store.shows_for_artist(artist_id)
        ]
        tasks += [
            self._refresh_task(EntityType.SETLIST, setlist.external_id, Priority.MEDIUM)
            for setlist in self._store.setlists_for_artist(artist_id)
        ]
        await self._enqueue_all(tasks)
        logger.info("Cascade for artist %s queued %d refreshes", artist_id, len(tasks))
        return True

    async def venue_cascade_sync(self, venue_id: str) -> bool:
        """Sync a venue, then queue refreshes of its stored shows."""
        if not await self.refresh_single(EntityType.VENUE, venue_id):
            return False
        tasks = [
            self._refresh_task(EntityType.SHOW, show.external_id, Priority.MEDIUM)
            for show in self._store.shows_for_venue(venue_id)
        ]
        await self._enqueue_all(tasks)
        logger.info("Cascade for venue %s queued %d refreshes", venue_id, len(tasks))
        return True

    async def expand_relations(self, entity_type: EntityType | str, entity_id: str) -> bool:
        """Queue work for related entities of a root entity.

        Artists and venues discover upcoming shows that are not stored yet.
        Shows refresh their artist, venue and setlist, or search for a
        setlist when none is linked. Setlists refresh their songs and show.
        Songs have nothing to discover.

        Args:
            entity_type: Entity type of the root.
            entity_id: External identifier of the root.

        Returns:
            True if the expansion ran, False if the root is not stored.

        Raises:
            UnsupportedEntityType: If the type is not an entity type.
        """
        entity_type = self.service_for(entity_type).entity_type

        if entity_type is EntityType.ARTIST:
            events = await self._artists.upcoming_shows(entity_id)
            return await self._queue_unknown_shows(entity_type, entity_id, events)
        if entity_type is EntityType.VENUE:
            events = await self._venues.upcoming_shows(entity_id)
            return await self._queue_unknown_shows(entity_type, entity_id, events)
        if entity_type is EntityType.SHOW:
            return await self._expand_show(entity_id)
        if entity_type is EntityType.SETLIST:
            return await self._expand_setlist(entity_id)
        return True

    async def dispatch(self, task: SyncTask) -> bool:
        """Run a queued task.

        Returns:
            True on success; False or an exception counts as a failed attempt.
        """
        logger.debug("Dispatching %s", task.describe())
        if task.operation is SyncOperation.CREATE:
            return await self.create_single(task.type, task.id, task.payload)
        if task.operation is SyncOperation.REFRESH:
            return await self.refresh_single(task.type, task.id, task.payload)
        if task.operation is SyncOperation.EXPAND_RELATIONS:
            return await self.expand_relations(task.type, task.id)
        if task.type is EntityType.ARTIST:
            return await self.artist_cascade_sync(task.id)
        if task.type is EntityType.VENUE:
            return await self.venue_cascade_sync(task.id)
        return await self.refresh_single(task.type, task.id)

    async def _queue_unknown_shows(self, root_type: EntityType, root_id: str, events) -> bool:
        known = self._store.existing_external_ids(EntityType.SHOW, (e.id for e in events))
        tasks = [
            SyncTask(
                type=EntityType.SHOW,
                id=event.id,
                priority=Priority.MEDIUM,
                operation=SyncOperation.CREATE,
            )
            for event in events
            if event.id not in known
        ]
        await self._enqueue_all(tasks)
        logger.info(
            "Expansion of %s %s found %d new shows", root_type.value, root_id, len(tasks)
        )
        return True

    async def _expand_show(self, show_id: str) -> bool:
        show = self._store.get_entity(EntityType.SHOW, show_id)
        if show is None:
            logger.warning("Cannot expand show %s: not stored", show_id)
            return False
        tasks = []
        if show.artist_id:
            tasks.append(self._refresh_task(EntityType.ARTIST, show.artist_id, Priority.HIGH))
        if show.venue_id:
            tasks.append(self._refresh_task(EntityType.VENUE, show.venue_id, Priority.HIGH))
        if show.setlist_id:
            tasks.append(self._refresh_task(EntityType.SETLIST, show.setlist_id, Priority.HIGH))
        await self._enqueue_all(tasks)
        if not show.setlist_id:
            result = await self._setlists.find_for_show(show_id)
            if not result.success:
                logger.info("Setlist search for show %s: %s", show_id, result.error)
        return True

    async def _expand_setlist(self, setlist_id: str) -> bool:
        setlist = self._store.get_entity(EntityType.SETLIST, setlist_id)
        if setlist is None:
            logger.warning("Cannot expand setlist %s: not stored", setlist_id)
            return False
        tasks = [
            self._refresh_task(EntityType.SONG, song.song_id, Priority.LOW)
            for song in setlist.songs
        ]
        if setlist.show_id:
            tasks.append(self._refresh_task(EntityType.SHOW, setlist.show_id, Priority.MEDIUM))
        await self._enqueue_all(tasks)
        return True

    async def _enqueue_all(self, tasks: list[SyncTask]) -> None:
        for task in tasks:
            await self.enqueue(task)

    @staticmethod
    def _refresh_task(entity_type: EntityType, entity_id: str, priority: Priority) -> SyncTask:
        return SyncTask(
            type=entity_type,
            id=entity_id,
            priority=priority,
            operation=SyncOperation.REFRESH,
        )
