"""Artist sync: Ticketmaster attraction enriched with Spotify."""

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import replace
from datetime import datetime

from concert_sync.clients.setlistfm import SetlistFmClient
from concert_sync.clients.spotify import SpotifyArtist, SpotifyClient
from concert_sync.clients.ticketmaster import TicketmasterClient, TmAttraction, TmEvent
from concert_sync.errors import PersistenceError
from concert_sync.logging import get_logger
from concert_sync.matching.fuzzy import artist_score
from concert_sync.state.models import Artist
from concert_sync.state.store import SyncStore
from concert_sync.state.tracker import IncrementalSyncTracker
from concert_sync.sync.services.base import Candidate, EntitySyncService, utcnow
from concert_sync.types import EntityType, Priority, SyncOperation, SyncTask

logger = get_logger("sync.artist")

SPOTIFY_NAME_THRESHOLD = 0.85


class ArtistSyncService(EntitySyncService[Artist]):
    """Syncs artists and queues their catalog and setlists.

    Args:
        store: Local store.
        tracker: Incremental sync tracker.
        ticketmaster: Ticketmaster client (primary provider).
        spotify: Spotify client (enrichment and track catalog).
        setlistfm: Setlist.fm client for historical setlists.
        include_setlists: Queue recent setlists after each sync.
        setlist_limit: Maximum setlists queued per sync.
        clock: Returns the current time as an aware datetime.
    """

    entity_type = EntityType.ARTIST
    record_type = Artist

    def __init__(
        self,
        store: SyncStore,
        tracker: IncrementalSyncTracker,
        ticketmaster: TicketmasterClient,
        spotify: SpotifyClient,
        setlistfm: SetlistFmClient,
        include_setlists: bool = False,
        setlist_limit: int = 10,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        super().__init__(store, tracker, clock)
        self._ticketmaster = ticketmaster
        self._spotify = spotify
        self._setlistfm = setlistfm
        self._include_setlists = include_setlists
        self._setlist_limit = setlist_limit

    async def fetch(self, artist_id: str, existing: Artist | None) -> Sequence[Candidate]:
        if existing is not None and existing.spotify_id:
            attraction, spotify_artist = await asyncio.gather(
                self._optional(
                    self._ticketmaster.get_attraction(artist_id),
                    f"Ticketmaster attraction {artist_id}",
                ),
                self._optional(
                    self._spotify.get_artist(existing.spotify_id),
                    f"Spotify artist {existing.spotify_id}",
                ),
            )
        else:
            attraction = await self._optional(
                self._ticketmaster.get_attraction(artist_id),
                f"Ticketmaster attraction {artist_id}",
            )
            name = attraction.name if attraction else existing.name if existing else None
            spotify_artist = await self._search_spotify(name) if name else None

        candidates: list[Candidate] = []
        if attraction is not None:
            candidates.append(
                {
                    "name": attraction.name,
                    "url": attraction.url,
                    "image_url": attraction.image_url,
                }
            )
        if spotify_artist is not None:
            candidates.append(
                {
                    "spotify_id": spotify_artist.id,
                    "spotify_url": spotify_artist.url,
                    "genres": spotify_artist.genres,
                    "popularity": spotify_artist.popularity,
                    "image_url": spotify_artist.image_url,
                }
            )
        return candidates

    async def _search_spotify(self, name: str) -> SpotifyArtist | None:
        found = await self._optional(
            self._spotify.search_artist(name), f"Spotify artist search {name!r}"
        )
        if found is None:
            return None
        if artist_score(name, found.name) < SPOTIFY_NAME_THRESHOLD:
            logger.info("Ignoring Spotify artist %r for %r", found.name, name)
            return None
        return found

    async def after_upsert(self, record: Artist) -> None:
        if record.spotify_id:
            await self._queue_top_tracks(record)
        if self._include_setlists and record.name:
            await self._queue_setlists(record)

    async def _queue_top_tracks(self, record: Artist) -> None:
        tracks = await self._optional(
            self._spotify.artist_top_tracks(record.spotify_id),
            f"Spotify top tracks for {record.spotify_id}",
        )
        if not tracks:
            return
        known = self._store.known_spotify_track_ids(track.id for track in tracks)
        queued = 0
        for track in tracks:
            if track.id in known:
                continue
            added = await self._enqueue(
                SyncTask(
                    type=EntityType.SONG,
                    id=track.id,
                    priority=Priority.LOW,
                    operation=SyncOperation.CREATE,
                    payload={"artist_id": record.external_id},
                )
            )
            queued += int(added)
        logger.info("Queued %d new songs for artist %s", queued, record.external_id)

    async def _queue_setlists(self, record: Artist) -> None:
        setlists = await self._optional(
            self._setlistfm.search_setlists(
                artist_name=record.name, artist_mbid=record.setlistfm_mbid
            ),
            f"Setlist search for {record.name!r}",
        )
        if not setlists:
            return

        mbid = next((s.artist_mbid for s in setlists if s.artist_mbid), None)
        if mbid and not record.setlistfm_mbid:
            try:
                self._store.upsert_entity(
                    EntityType.ARTIST, replace(record, setlistfm_mbid=mbid)
                )
            except PersistenceError as exc:
                logger.warning("Could not store MBID for %s: %s", record.external_id, exc)

        recent = setlists[: self._setlist_limit]
        known = self._store.existing_external_ids(
            EntityType.SETLIST, (s.id for s in recent)
        )
        for setlist in recent:
            if setlist.id not in known:
                await self._enqueue(
                    SyncTask(
                        type=EntityType.SETLIST,
                        id=setlist.id,
                        priority=Priority.LOW,
                        operation=SyncOperation.CREATE,
                    )
                )

    async def upcoming_shows(self, artist_id: str) -> list[TmEvent]:
        """List the artist's upcoming events from Ticketmaster."""
        return await self._ticketmaster.upcoming_events(attraction_id=artist_id)

    async def search(self, keyword: str, size: int = 10) -> list[TmAttraction]:
        """Search music artists on Ticketmaster."""
        return await self._ticketmaster.search_attractions(keyword, size=size)
