"""Song sync: Spotify tracks and songs performed in stored setlists."""

import re
from collections.abc import Callable, Sequence
from datetime import datetime

from concert_sync.clients.spotify import SpotifyClient, SpotifyTrack
from concert_sync.logging import get_logger
from concert_sync.matching.fuzzy import best_match
from concert_sync.state.models import Setlist, Song
from concert_sync.state.store import SyncStore
from concert_sync.state.tracker import IncrementalSyncTracker
from concert_sync.sync.services.base import Candidate, EntitySyncService, utcnow
from concert_sync.types import EntityType

logger = get_logger("sync.song")

SETLIST_SONG_ID = re.compile(r"^(?P<setlist_id>.+)-(?P<set_index>\d+)-(?P<song_index>\d+)$")


def track_fields(track: SpotifyTrack) -> dict:
    """Field values of a Spotify track."""
    return {
        "spotify_id": track.id,
        "spotify_url": track.url,
        "preview_url": track.preview_url,
        "duration_ms": track.duration_ms,
        "popularity": track.popularity,
        "album_name": track.album_name,
        "album_image": track.album_image,
    }


class SongSyncService(EntitySyncService[Song]):
    """Syncs songs from Spotify.

    IDs of the form ``<setlist>-<set>-<index>`` refer to a song performed
    in a stored setlist; it is matched to a Spotify track by name. Any
    other ID is a Spotify track ID.

    Args:
        store: Local store.
        tracker: Incremental sync tracker.
        spotify: Spotify client.
        match_threshold: Minimum confidence for a Spotify match.
        clock: Returns the current time as an aware datetime.
    """

    entity_type = EntityType.SONG
    record_type = Song

    def __init__(
        self,
        store: SyncStore,
        tracker: IncrementalSyncTracker,
        spotify: SpotifyClient,
        match_threshold: float = 0.75,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        super().__init__(store, tracker, clock)
        self._spotify = spotify
        self._match_threshold = match_threshold

    async def fetch(self, song_id: str, existing: Song | None) -> Sequence[Candidate]:
        match = SETLIST_SONG_ID.match(song_id)
        if match is None:
            return await self._fetch_track(song_id)

        setlist = self._store.get_entity(EntityType.SETLIST, match["setlist_id"])
        return await self._fetch_performed(song_id, setlist, existing)

    async def _fetch_track(self, track_id: str) -> list[Candidate]:
        track = await self._optional(
            self._spotify.get_track(track_id), f"Spotify track {track_id}"
        )
        if track is None:
            return []
        artist = None
        if track.artist_ids:
            artist = self._store.find_artist(spotify_id=track.artist_ids[0])
        return [
            {
                "name": track.name,
                "artist_name": track.artist,
                "artist_id": artist.external_id if artist else None,
                **track_fields(track),
            }
        ]

    async def _fetch_performed(
        self, song_id: str, setlist: Setlist | None, existing: Song | None
    ) -> list[Candidate]:
        entry = setlist.song(song_id) if setlist else None
        name = entry.name if entry else existing.name if existing else None
        if not name:
            logger.warning("Song %s is not part of a stored setlist", song_id)
            return []

        artist_name = setlist.artist_name if setlist else existing.artist_name
        candidates: list[Candidate] = [
            {
                "name": name,
                "artist_name": artist_name,
                "artist_id": setlist.artist_id if setlist else None,
            }
        ]

        if existing is not None and existing.spotify_id:
            return candidates

        query = f"track:{name} artist:{artist_name}" if artist_name else f"track:{name}"
        tracks = await self._optional(
            self._spotify.search_tracks(query), f"Spotify track search {query!r}"
        )
        result = best_match(name, artist_name, tracks or [], threshold=self._match_threshold)
        if result is None:
            logger.info("No Spotify match for %r", name)
            return candidates

        logger.debug("Matched %r to %s (%.2f)", name, result.track.id, result.confidence)
        candidates.append(track_fields(result.track))
        return candidates
