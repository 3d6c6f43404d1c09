"""Setlist.fm API client for setlists."""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from concert_sync.clients.gateway import RateLimitedGateway
from concert_sync.clients.http import ProviderHttpError

EVENT_DATE_FORMAT = "%d-%m-%Y"


def parse_event_date(value: str | None) -> date | None:
    """Parse a setlist.fm ``DD-MM-YYYY`` event date."""
    if not value:
        return None
    try:
        return datetime.strptime(value, EVENT_DATE_FORMAT).date()
    except ValueError:
        return None


def format_event_date(value: date) -> str:
    """Format a date the way setlist.fm search expects it."""
    return value.strftime(EVENT_DATE_FORMAT)


@dataclass
class SetlistFmSong:
    """A song as performed in a setlist.

    Args:
        name: Song name.
        set_index: Index of the set the song belongs to.
        song_index: Index of the song within its set.
        encore: Whether the set is an encore.
    """

    name: str
    set_index: int
    song_index: int
    encore: bool = False


@dataclass
class SetlistFmSetlist:
    """Represents a setlist.fm setlist.

    Args:
        id: Setlist.fm setlist ID.
        artist_mbid: MusicBrainz ID of the artist.
        artist_name: Artist name.
        event_date: Date of the concert.
        venue_name: Name of the venue.
        songs: Songs in performance order.
    """

    id: str
    artist_mbid: str | None = None
    artist_name: str | None = None
    event_date: date | None = None
    venue_name: str | None = None
    songs: list[SetlistFmSong] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "SetlistFmSetlist":
        """Decode a setlist, flattening its sets into ordered songs."""
        artist = data.get("artist") or {}
        songs: list[SetlistFmSong] = []
        for set_index, set_data in enumerate((data.get("sets") or {}).get("set") or []):
            encore = bool(set_data.get("encore"))
            for song_index, song in enumerate(set_data.get("song") or []):
                if song.get("name"):
                    songs.append(
                        SetlistFmSong(
                            name=song["name"],
                            set_index=set_index,
                            song_index=song_index,
                            encore=encore,
                        )
                    )
        return cls(
            id=data["id"],
            artist_mbid=artist.get("mbid"),
            artist_name=artist.get("name"),
            event_date=parse_event_date(data.get("eventDate")),
            venue_name=(data.get("venue") or {}).get("name"),
            songs=songs,
        )


class SetlistFmClient:
    """Client for the setlist.fm REST API.

    Args:
        gateway: Rate-limited gateway used for every request.
    """

    PROVIDER = "setlistfm"

    def __init__(self, gateway: RateLimitedGateway) -> None:
        self._gateway = gateway

    async def get_setlist(self, setlist_id: str) -> SetlistFmSetlist:
        """Fetch one setlist by ID."""
        data = await self._gateway.call(self.PROVIDER, f"setlist/{setlist_id}")
        return SetlistFmSetlist.from_api(data)

    async def search_setlists(
        self,
        artist_name: str | None = None,
        artist_mbid: str | None = None,
        event_date: date | None = None,
        page: int = 1,
    ) -> list[SetlistFmSetlist]:
        """Search setlists by artist and optional date.

        Setlist.fm answers 404 when a search has no results; that is
        reported as an empty list.

        Args:
            artist_name: Artist name.
            artist_mbid: MusicBrainz artist ID.
            event_date: Concert date.
            page: Result page.

        Returns:
            List of matching setlists, most recent first.
        """
        params = {
            "artistName": artist_name,
            "artistMbid": artist_mbid,
            "date": format_event_date(event_date) if event_date else None,
            "p": page,
        }
        try:
            data = await self._gateway.call(self.PROVIDER, "search/setlists", params)
        except ProviderHttpError as exc:
            if exc.status == 404:
                return []
            raise
        return [
            SetlistFmSetlist.from_api(item)
            for item in data.get("setlist") or []
            if item.get("id")
        ]
