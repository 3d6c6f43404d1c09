"""Show sync: Ticketmaster events linked to venues and setlists."""

import asyncio
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime

from concert_sync.clients.setlistfm import SetlistFmClient
from concert_sync.clients.ticketmaster import TicketmasterClient, TmEvent, TmVenue
from concert_sync.errors import PersistenceError
from concert_sync.logging import get_logger
from concert_sync.state.models import Show, Venue
from concert_sync.state.store import SyncStore
from concert_sync.state.tracker import IncrementalSyncTracker
from concert_sync.sync.services.base import Candidate, EntitySyncService, utcnow
from concert_sync.sync.services.venue import venue_fields
from concert_sync.types import (
    EntityType,
    Priority,
    SyncOperation,
    SyncOptions,
    SyncResult,
    SyncTask,
)

logger = get_logger("sync.show")


class ShowSyncService(EntitySyncService[Show]):
    """Syncs shows, linking their venue and, once played, their setlist.

    Args:
        store: Local store.
        tracker: Incremental sync tracker.
        ticketmaster: Ticketmaster client (primary provider).
        setlistfm: Setlist.fm client for setlist lookup.
        clock: Returns the current time as an aware datetime.
    """

    entity_type = EntityType.SHOW
    record_type = Show

    def __init__(
        self,
        store: SyncStore,
        tracker: IncrementalSyncTracker,
        ticketmaster: TicketmasterClient,
        setlistfm: SetlistFmClient,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        super().__init__(store, tracker, clock)
        self._ticketmaster = ticketmaster
        self._setlistfm = setlistfm

    async def fetch(self, show_id: str, existing: Show | None) -> Sequence[Candidate]:
        event = await self._optional(
            self._ticketmaster.get_event(show_id), f"Ticketmaster event {show_id}"
        )
        if event is None:
            return []

        if event.venue is not None:
            await self._link_venue(event.venue)

        setlist_id = None
        if existing is None or not existing.setlist_id:
            setlist_id = await self._lookup_setlist(event)

        return [
            {
                "name": event.name,
                "date": event.date,
                "status": event.status,
                "url": event.url,
                "image_url": event.image_url,
                "artist_id": event.attraction_id,
                "venue_id": event.venue.id if event.venue else None,
                "setlist_id": setlist_id,
            }
        ]

    async def _link_venue(self, venue: TmVenue) -> None:
        """Store a stub for an unknown venue and queue its full sync."""
        if self._store.existing_external_ids(EntityType.VENUE, [venue.id]):
            return
        now = self._clock()
        stub = Venue(external_id=venue.id, created_at=now, updated_at=now, **venue_fields(venue))
        try:
            self._store.upsert_entity(EntityType.VENUE, stub)
        except PersistenceError as exc:
            logger.warning("Could not store venue stub %s: %s", venue.id, exc)
            return
        await self._enqueue(
            SyncTask(
                type=EntityType.VENUE,
                id=venue.id,
                priority=Priority.MEDIUM,
                operation=SyncOperation.CREATE,
            )
        )

    async def _lookup_setlist(self, event: TmEvent) -> str | None:
        """Find the setlist of a past show by artist name and date."""
        if not event.attraction_name or event.date is None:
            return None
        if event.date.date() > self._clock().date():
            return None
        setlists = await self._optional(
            self._setlistfm.search_setlists(
                artist_name=event.attraction_name, event_date=event.date.date()
            ),
            f"Setlist search for show {event.id}",
        )
        if not setlists:
            return None
        setlist_id = setlists[0].id
        await self._enqueue(
            SyncTask(
                type=EntityType.SETLIST,
                id=setlist_id,
                priority=Priority.MEDIUM,
                operation=SyncOperation.CREATE,
            )
        )
        return setlist_id

    async def sync_many(
        self, show_ids: Iterable[str], options: SyncOptions | None = None
    ) -> list[SyncResult[Show]]:
        """Sync several shows concurrently, in the order given."""
        return list(await asyncio.gather(*(self.sync(show_id, options) for show_id in show_ids)))
