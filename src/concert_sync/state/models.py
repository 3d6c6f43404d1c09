"""Entity records kept in the local store."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, fields
from datetime import date, datetime
from typing import Any


def _dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass
class Artist:
    """Represents an artist.

    Args:
        external_id: Ticketmaster attraction ID.
        name: Artist name.
        image_url: Preferred image URL.
        url: Ticketmaster page URL.
        spotify_id: Spotify artist ID.
        spotify_url: Spotify page URL.
        genres: Genre names.
        popularity: Spotify popularity score.
        setlistfm_mbid: MusicBrainz ID used by setlist.fm.
        created_at: When the record was first stored.
        updated_at: When the record was last written.
    """

    external_id: str
    name: str | None = None
    image_url: str | None = None
    url: str | None = None
    spotify_id: str | None = None
    spotify_url: str | None = None
    genres: list[str] = field(default_factory=list)
    popularity: int | None = None
    setlistfm_mbid: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_row(self) -> dict[str, Any]:
        row = asdict(self)
        row["genres"] = json.dumps(self.genres)
        row["created_at"] = _iso(self.created_at)
        row["updated_at"] = _iso(self.updated_at)
        return row

    @classmethod
    def from_row(cls, row: Any) -> "Artist":
        return cls(
            external_id=row["external_id"],
            name=row["name"],
            image_url=row["image_url"],
            url=row["url"],
            spotify_id=row["spotify_id"],
            spotify_url=row["spotify_url"],
            genres=json.loads(row["genres"] or "[]"),
            popularity=row["popularity"],
            setlistfm_mbid=row["setlistfm_mbid"],
            created_at=_dt(row["created_at"]),
            updated_at=_dt(row["updated_at"]),
        )


@dataclass
class Venue:
    """Represents a concert venue.

    Args:
        external_id: Ticketmaster venue ID.
        name: Venue name.
        city: City name.
        state: State code.
        country: Country code.
        address: Street address.
        latitude: Latitude in degrees.
        longitude: Longitude in degrees.
        url: Ticketmaster page URL.
        image_url: Preferred image URL.
        created_at: When the record was first stored.
        updated_at: When the record was last written.
    """

    external_id: str
    name: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    address: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    url: str | None = None
    image_url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_row(self) -> dict[str, Any]:
        row = asdict(self)
        row["created_at"] = _iso(self.created_at)
        row["updated_at"] = _iso(self.updated_at)
        return row

    @classmethod
    def from_row(cls, row: Any) -> "Venue":
        values = {f.name: row[f.name] for f in fields(cls)}
        values["created_at"] = _dt(values["created_at"])
        values["updated_at"] = _dt(values["updated_at"])
        return cls(**values)


@dataclass
class Show:
    """Represents a concert.

    Linked entities are referenced by their external IDs.

    Args:
        external_id: Ticketmaster event ID.
        name: Event name.
        date: Event start.
        artist_id: Headlining artist external ID.
        venue_id: Venue external ID.
        setlist_id: Setlist.fm setlist ID, once known.
        status: Ticketmaster status code.
        url: Ticketmaster page URL.
        image_url: Preferred image URL.
        created_at: When the record was first stored.
        updated_at: When the record was last written.
    """

    external_id: str
    name: str | None = None
    date: datetime | None = None
    artist_id: str | None = None
    venue_id: str | None = None
    setlist_id: str | None = None
    status: str | None = None
    url: str | None = None
    image_url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def event_date(self) -> date | None:
        """Calendar date of the show."""
        return self.date.date() if self.date else None

    def to_row(self) -> dict[str, Any]:
        row = asdict(self)
        row["date"] = _iso(self.date)
        row["event_date"] = _iso(self.event_date)
        row["created_at"] = _iso(self.created_at)
        row["updated_at"] = _iso(self.updated_at)
        return row

    @classmethod
    def from_row(cls, row: Any) -> "Show":
        values = {f.name: row[f.name] for f in fields(cls)}
        for key in ("date", "created_at", "updated_at"):
            values[key] = _dt(values[key])
        return cls(**values)


@dataclass
class SetlistSong:
    """A song entry within a setlist.

    Args:
        name: Song name as performed.
        position: Zero-based position across the whole setlist.
        encore: Whether it was played in an encore.
        song_id: Song external ID (``<setlist>-<set>-<index>``).
    """

    name: str
    position: int
    encore: bool
    song_id: str


@dataclass
class Setlist:
    """Represents a performed setlist.

    Args:
        external_id: Setlist.fm setlist ID.
        artist_id: Artist external ID, when the artist is stored.
        artist_name: Artist name as reported by setlist.fm.
        show_id: Show external ID, once linked.
        venue_name: Venue name as reported by setlist.fm.
        event_date: Date of the concert.
        songs: Songs in performance order.
        created_at: When the record was first stored.
        updated_at: When the record was last written.
    """

    external_id: str
    artist_id: str | None = None
    artist_name: str | None = None
    show_id: str | None = None
    venue_name: str | None = None
    event_date: date | None = None
    songs: list[SetlistSong] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def name(self) -> str | None:
        """Display name, used as the record's required name."""
        if not self.artist_name:
            return None
        if self.event_date:
            return f"{self.artist_name} {self.event_date.isoformat()}"
        return self.artist_name

    def song(self, song_id: str) -> SetlistSong | None:
        """Find an entry by its song ID."""
        return next((s for s in self.songs if s.song_id == song_id), None)

    def to_row(self) -> dict[str, Any]:
        row = asdict(self)
        row["songs"] = json.dumps([asdict(song) for song in self.songs])
        row["event_date"] = _iso(self.event_date)
        row["created_at"] = _iso(self.created_at)
        row["updated_at"] = _iso(self.updated_at)
        return row

    @classmethod
    def from_row(cls, row: Any) -> "Setlist":
        event_date = row["event_date"]
        return cls(
            external_id=row["external_id"],
            artist_id=row["artist_id"],
            artist_name=row["artist_name"],
            show_id=row["show_id"],
            venue_name=row["venue_name"],
            event_date=date.fromisoformat(event_date) if event_date else None,
            songs=[SetlistSong(**song) for song in json.loads(row["songs"] or "[]")],
            created_at=_dt(row["created_at"]),
            updated_at=_dt(row["updated_at"]),
        )


@dataclass
class Song:
    """Represents a song.

    Args:
        external_id: Spotify track ID, or a setlist song ID until matched.
        name: Song name.
        artist_id: Artist external ID.
        artist_name: Artist name.
        spotify_id: Spotify track ID.
        spotify_url: Spotify page URL.
        preview_url: 30 second preview URL.
        duration_ms: Duration in milliseconds.
        popularity: Spotify popularity score.
        album_name: Album name.
        album_image: Album image URL.
        created_at: When the record was first stored.
        updated_at: When the record was last written.
    """

    external_id: str
    name: str | None = None
    artist_id: str | None = None
    artist_name: str | None = None
    spotify_id: str | None = None
    spotify_url: str | None = None
    preview_url: str | None = None
    duration_ms: int | None = None
    popularity: int | None = None
    album_name: str | None = None
    album_image: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_row(self) -> dict[str, Any]:
        row = asdict(self)
        row["created_at"] = _iso(self.created_at)
        row["updated_at"] = _iso(self.updated_at)
        return row

    @classmethod
    def from_row(cls, row: Any) -> "Song":
        values = {f.name: row[f.name] for f in fields(cls)}
        values["created_at"] = _dt(values["created_at"])
        values["updated_at"] = _dt(values["updated_at"])
        return cls(**values)
