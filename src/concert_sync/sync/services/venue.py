"""Venue sync from Ticketmaster."""

from collections.abc import Callable, Sequence
from datetime import datetime

from concert_sync.clients.ticketmaster import TicketmasterClient, TmEvent, TmVenue
from concert_sync.state.models import Venue
from concert_sync.state.store import SyncStore
from concert_sync.state.tracker import IncrementalSyncTracker
from concert_sync.sync.services.base import Candidate, EntitySyncService, utcnow
from concert_sync.types import EntityType


def venue_fields(venue: TmVenue) -> dict:
    """Field values of a Ticketmaster venue, shared with show sync."""
    return {
        "name": venue.name,
        "city": venue.city,
        "state": venue.state,
        "country": venue.country,
        "address": venue.address,
        "latitude": venue.latitude,
        "longitude": venue.longitude,
        "url": venue.url,
        "image_url": venue.image_url,
    }


class VenueSyncService(EntitySyncService[Venue]):
    """Syncs venues.

    Args:
        store: Local store.
        tracker: Incremental sync tracker.
        ticketmaster: Ticketmaster client.
        clock: Returns the current time as an aware datetime.
    """

    entity_type = EntityType.VENUE
    record_type = Venue

    def __init__(
        self,
        store: SyncStore,
        tracker: IncrementalSyncTracker,
        ticketmaster: TicketmasterClient,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        super().__init__(store, tracker, clock)
        self._ticketmaster = ticketmaster

    async def fetch(self, venue_id: str, existing: Venue | None) -> Sequence[Candidate]:
        venue = await self._optional(
            self._ticketmaster.get_venue(venue_id), f"Ticketmaster venue {venue_id}"
        )
        return [venue_fields(venue)] if venue else []

    async def upcoming_shows(self, venue_id: str) -> list[TmEvent]:
        """List upcoming events at the venue from Ticketmaster."""
        return await self._ticketmaster.upcoming_events(venue_id=venue_id)

    async def search(
        self, keyword: str, city: str | None = None, state_code: str | None = None
    ) -> list[TmVenue]:
        """Search venues on Ticketmaster."""
        return await self._ticketmaster.search_venues(keyword, city=city, state_code=state_code)
