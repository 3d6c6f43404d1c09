"""Pytest fixtures for concert_sync tests."""

from typing import Any

import httpx
import pytest
import pytest_asyncio

from concert_sync.clients.gateway import RateLimitedGateway
from concert_sync.config import Settings
from concert_sync.state.cache import TTLCache
from concert_sync.state.store import SyncStore
from concert_sync.sync.system import create_sync_system


class ProviderStub:
    """Routes provider requests to canned JSON responses and records them."""

    def __init__(self) -> None:
        self.routes: list[tuple[str, dict[str, str], int, Any]] = []
        self.requests: list[httpx.Request] = []

    def add(
        self,
        path: str,
        body: Any = None,
        status: int = 200,
        params: dict[str, str] | None = None,
    ) -> None:
        """Answer requests to ``path`` whose query contains ``params``."""
        self.routes.insert(0, (path, params or {}, status, body))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/api/token":
            return httpx.Response(200, json={"access_token": "test_token", "expires_in": 3600})
        for path, params, status, body in self.routes:
            if request.url.path != path:
                continue
            if all(request.url.params.get(k) == v for k, v in params.items()):
                return httpx.Response(status, json=body if body is not None else {})
        return httpx.Response(404, json={"error": "not found"})

    def calls(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Create test settings with dummy credentials and a temporary data dir."""
    return Settings(
        _env_file=None,
        ticketmaster_api_key="test_tm_key",
        spotify_client_id="test_spotify_id",
        spotify_client_secret="test_spotify_secret",
        setlistfm_api_key="test_setlistfm_key",
        data_dir=tmp_path / "data",
        tick_interval=0.05,
    )


@pytest.fixture
def store(tmp_path) -> SyncStore:
    """Create a SyncStore with a temporary database."""
    return SyncStore(tmp_path / "test_store.db")


@pytest.fixture
def cache(store) -> TTLCache:
    """Create a TTLCache backed by the temporary store."""
    return TTLCache(store)


@pytest.fixture
def provider_stub() -> ProviderStub:
    """Create an empty provider stub."""
    return ProviderStub()


@pytest_asyncio.fixture
async def http_client(provider_stub):
    """HTTP client whose requests are answered by the provider stub."""
    transport = httpx.MockTransport(provider_stub.handler)
    async with httpx.AsyncClient(transport=transport) as client:
        yield client


@pytest.fixture
def gateway(settings, http_client) -> RateLimitedGateway:
    """A gateway using the default provider limits and the provider stub."""
    return RateLimitedGateway(settings.provider_configs(), TTLCache(), http_client)


@pytest.fixture
def system(settings, http_client):
    """A fully wired sync system talking to the provider stub."""
    return create_sync_system(settings, http_client)


def tm_path(endpoint: str) -> str:
    return f"/discovery/v2/{endpoint}"


def spotify_path(endpoint: str) -> str:
    return f"/v1/{endpoint}"


def setlistfm_path(endpoint: str) -> str:
    return f"/rest/1.0/{endpoint}"


@pytest.fixture
def provider_paths():
    """Helpers building request paths for each provider."""
    return {"ticketmaster": tm_path, "spotify": spotify_path, "setlistfm": setlistfm_path}


def attraction_json(attraction_id: str = "A1", name: str = "Radiohead") -> dict:
    return {
        "id": attraction_id,
        "name": name,
        "url": f"https://www.ticketmaster.com/artist/{attraction_id}",
        "images": [
            {"url": "https://img.tm/small.jpg", "width": 100, "height": 56},
            {"url": "https://img.tm/large.jpg", "width": 1024, "height": 576},
        ],
    }


def spotify_artist_json(artist_id: str = "SP1", name: str = "Radiohead") -> dict:
    return {
        "id": artist_id,
        "name": name,
        "genres": ["alternative rock", "art rock"],
        "popularity": 79,
        "external_urls": {"spotify": f"https://open.spotify.com/artist/{artist_id}"},
        "images": [{"url": "https://i.scdn.co/artist.jpg", "width": 640, "height": 640}],
    }


def spotify_track_json(
    track_id: str, name: str, artist_id: str = "SP1", artist: str = "Radiohead"
) -> dict:
    return {
        "id": track_id,
        "name": name,
        "duration_ms": 240000,
        "popularity": 70,
        "preview_url": f"https://p.scdn.co/{track_id}.mp3",
        "external_urls": {"spotify": f"https://open.spotify.com/track/{track_id}"},
        "album": {"name": "OK Computer", "images": [{"url": "https://i.scdn.co/album.jpg"}]},
        "artists": [{"id": artist_id, "name": artist}],
    }


def event_json(
    event_id: str,
    attraction_id: str = "A1",
    venue_id: str = "V1",
    date: str = "2024-05-01T19:30:00Z",
) -> dict:
    return {
        "id": event_id,
        "name": f"Radiohead Live {event_id}",
        "url": f"https://www.ticketmaster.com/event/{event_id}",
        "dates": {"start": {"dateTime": date, "localDate": date[:10]}, "status": {"code": "onsale"}},
        "_embedded": {
            "attractions": [{"id": attraction_id, "name": "Radiohead"}],
            "venues": [venue_json(venue_id)],
        },
    }


def venue_json(venue_id: str = "V1", name: str = "Madison Square Garden") -> dict:
    return {
        "id": venue_id,
        "name": name,
        "city": {"name": "New York"},
        "state": {"stateCode": "NY"},
        "country": {"countryCode": "US"},
        "address": {"line1": "4 Pennsylvania Plaza"},
        "location": {"latitude": "40.7505", "longitude": "-73.9934"},
    }


def setlist_json(
    setlist_id: str = "63de4613",
    event_date: str = "01-05-2024",
    mbid: str = "a74b1b7f-71a5-4011-9441-d0b5e4122711",
) -> dict:
    return {
        "id": setlist_id,
        "eventDate": event_date,
        "artist": {"mbid": mbid, "name": "Radiohead"},
        "venue": {"name": "Madison Square Garden"},
        "sets": {
            "set": [
                {"song": [{"name": "Airbag"}, {"name": "Paranoid Android"}]},
                {"encore": 1, "song": [{"name": "Karma Police"}]},
            ]
        },
    }


@pytest.fixture
def payloads():
    """Builders for provider response bodies."""
    return {
        "attraction": attraction_json,
        "spotify_artist": spotify_artist_json,
        "spotify_track": spotify_track_json,
        "event": event_json,
        "venue": venue_json,
        "setlist": setlist_json,
    }
