"""Spotify Web API client for artist enrichment and track catalogs."""

from dataclasses import dataclass, field
from typing import Any

from concert_sync.clients.gateway import RateLimitedGateway


def _first_image(images: list[dict[str, Any]] | None) -> str | None:
    """Spotify lists images widest first."""
    for image in images or []:
        if image.get("url"):
            return image["url"]
    return None


@dataclass
class SpotifyArtist:
    """Represents a Spotify artist.

    Args:
        id: Spotify artist ID.
        name: Artist name.
        url: Spotify page URL.
        genres: Genre names.
        popularity: Spotify popularity score (0-100).
        image_url: Largest image URL.
    """

    id: str
    name: str
    url: str | None = None
    genres: list[str] = field(default_factory=list)
    popularity: int | None = None
    image_url: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "SpotifyArtist":
        """Decode an artist object."""
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            url=(data.get("external_urls") or {}).get("spotify"),
            genres=list(data.get("genres") or []),
            popularity=data.get("popularity"),
            image_url=_first_image(data.get("images")),
        )


@dataclass
class SpotifyTrack:
    """Represents a Spotify track.

    Args:
        id: Spotify track ID.
        name: Track name.
        url: Spotify page URL.
        preview_url: 30 second preview URL.
        duration_ms: Track duration in milliseconds.
        popularity: Spotify popularity score (0-100).
        album_name: Album name.
        album_image: Largest album image URL.
        artist_ids: Spotify IDs of the credited artists.
        artist_names: Names of the credited artists.
    """

    id: str
    name: str
    url: str | None = None
    preview_url: str | None = None
    duration_ms: int | None = None
    popularity: int | None = None
    album_name: str | None = None
    album_image: str | None = None
    artist_ids: list[str] = field(default_factory=list)
    artist_names: list[str] = field(default_factory=list)

    @property
    def artist(self) -> str:
        """Primary artist name."""
        return self.artist_names[0] if self.artist_names else ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "SpotifyTrack":
        """Decode a track object."""
        album = data.get("album") or {}
        artists = data.get("artists") or []
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            url=(data.get("external_urls") or {}).get("spotify"),
            preview_url=data.get("preview_url"),
            duration_ms=data.get("duration_ms"),
            popularity=data.get("popularity"),
            album_name=album.get("name"),
            album_image=_first_image(album.get("images")),
            artist_ids=[a["id"] for a in artists if a.get("id")],
            artist_names=[a.get("name", "") for a in artists],
        )


class SpotifyClient:
    """Client for the Spotify Web API using app-only credentials.

    Args:
        gateway: Rate-limited gateway used for every request.
        market: Market used for top tracks.
    """

    PROVIDER = "spotify"

    def __init__(self, gateway: RateLimitedGateway, market: str = "US") -> None:
        self._gateway = gateway
        self._market = market

    async def get_artist(self, artist_id: str) -> SpotifyArtist:
        """Fetch one artist by Spotify ID."""
        data = await self._gateway.call(self.PROVIDER, f"artists/{artist_id}")
        return SpotifyArtist.from_api(data)

    async def search_artist(self, name: str) -> SpotifyArtist | None:
        """Find the best Spotify match for an artist name.

        Args:
            name: Artist name.

        Returns:
            Top search result, or None if nothing matched.
        """
        data = await self._gateway.call(
            self.PROVIDER, "search", {"q": name, "type": "artist", "limit": 1}
        )
        items = (data.get("artists") or {}).get("items") or []
        if not items:
            return None
        return SpotifyArtist.from_api(items[0])

    async def get_track(self, track_id: str) -> SpotifyTrack:
        """Fetch one track by Spotify ID."""
        data = await self._gateway.call(self.PROVIDER, f"tracks/{track_id}")
        return SpotifyTrack.from_api(data)

    async def search_tracks(self, query: str, limit: int = 5) -> list[SpotifyTrack]:
        """Search tracks.

        Args:
            query: Spotify search query, e.g. ``track:Name artist:Artist``.
            limit: Maximum number of results.

        Returns:
            List of matching tracks.
        """
        data = await self._gateway.call(
            self.PROVIDER, "search", {"q": query, "type": "track", "limit": limit}
        )
        items = (data.get("tracks") or {}).get("items") or []
        return [SpotifyTrack.from_api(item) for item in items if item.get("id")]

    async def artist_top_tracks(self, artist_id: str) -> list[SpotifyTrack]:
        """Fetch an artist's top tracks in the configured market."""
        data = await self._gateway.call(
            self.PROVIDER, f"artists/{artist_id}/top-tracks", {"market": self._market}
        )
        return [
            SpotifyTrack.from_api(item)
            for item in data.get("tracks") or []
            if item.get("id")
        ]
