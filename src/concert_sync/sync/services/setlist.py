"""Setlist sync from setlist.fm."""

from collections.abc import Callable, Sequence
from datetime import datetime

from concert_sync.clients.setlistfm import SetlistFmClient, SetlistFmSetlist
from concert_sync.errors import PersistenceError
from concert_sync.logging import get_logger
from concert_sync.state.models import Artist, Setlist, SetlistSong, Show
from concert_sync.state.store import SyncStore
from concert_sync.state.tracker import IncrementalSyncTracker
from concert_sync.sync.services.base import Candidate, EntitySyncService, utcnow
from concert_sync.types import EntityType, SyncOptions, SyncResult

logger = get_logger("sync.setlist")


def setlist_song_id(setlist_id: str, set_index: int, song_index: int) -> str:
    """Stable ID of a song entry within a setlist."""
    return f"{setlist_id}-{set_index}-{song_index}"


def flatten_songs(setlist: SetlistFmSetlist) -> list[SetlistSong]:
    """Turn the sets of a setlist into one ordered song list."""
    return [
        SetlistSong(
            name=song.name,
            position=position,
            encore=song.encore,
            song_id=setlist_song_id(setlist.id, song.set_index, song.song_index),
        )
        for position, song in enumerate(setlist.songs)
    ]


class SetlistSyncService(EntitySyncService[Setlist]):
    """Syncs setlists and links them to stored shows.

    Args:
        store: Local store.
        tracker: Incremental sync tracker.
        setlistfm: Setlist.fm client.
        clock: Returns the current time as an aware datetime.
    """

    entity_type = EntityType.SETLIST
    record_type = Setlist

    def __init__(
        self,
        store: SyncStore,
        tracker: IncrementalSyncTracker,
        setlistfm: SetlistFmClient,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        super().__init__(store, tracker, clock)
        self._setlistfm = setlistfm

    async def fetch(self, setlist_id: str, existing: Setlist | None) -> Sequence[Candidate]:
        setlist = await self._optional(
            self._setlistfm.get_setlist(setlist_id), f"Setlist {setlist_id}"
        )
        if setlist is None:
            return []

        artist = self._store.find_artist(mbid=setlist.artist_mbid, name=setlist.artist_name)
        show = self._find_show(setlist, artist)
        return [
            {
                "artist_name": setlist.artist_name,
                "venue_name": setlist.venue_name,
                "event_date": setlist.event_date,
                "songs": flatten_songs(setlist),
                "artist_id": artist.external_id if artist else None,
                "show_id": show.external_id if show else None,
            }
        ]

    def _find_show(self, setlist: SetlistFmSetlist, artist: Artist | None) -> Show | None:
        show = self._store.find_show_by_setlist(setlist.id)
        if show is None and artist is not None and setlist.event_date is not None:
            show = self._store.find_show(artist.external_id, setlist.event_date)
        return show

    async def after_upsert(self, record: Setlist) -> None:
        if not record.show_id:
            return
        try:
            self._store.link_setlist_to_show(record.show_id, record.external_id)
        except PersistenceError as exc:
            logger.warning(
                "Could not link setlist %s to show %s: %s",
                record.external_id,
                record.show_id,
                exc,
            )

    async def find_for_show(self, show_id: str) -> SyncResult[Setlist]:
        """Search setlist.fm for a stored show's setlist and sync it.

        The show is linked before the sync so the setlist resolves to it
        even when the artist names differ between providers.

        Args:
            show_id: External ID of a stored show.

        Returns:
            SyncResult of the setlist sync, or a failure if none was found.
        """
        show = self._store.get_entity(EntityType.SHOW, show_id)
        if show is None or show.event_date is None:
            return SyncResult.failure(f"show {show_id} is not stored or has no date")

        artist = self._store.get_entity(EntityType.ARTIST, show.artist_id) if show.artist_id else None
        if artist is None or not artist.name:
            return SyncResult.failure(f"artist of show {show_id} is not stored")

        setlists = await self._setlistfm.search_setlists(
            artist_name=artist.name,
            artist_mbid=artist.setlistfm_mbid,
            event_date=show.event_date,
        )
        if not setlists:
            logger.info("No setlist found for show %s", show_id)
            return SyncResult.failure(f"no setlist found for show {show_id}")

        setlist_id = setlists[0].id
        self._store.link_setlist_to_show(show_id, setlist_id)
        return await self.sync(setlist_id, SyncOptions(force=True))
