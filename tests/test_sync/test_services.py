"""Tests for the per-entity sync services."""

from datetime import UTC, date, datetime

import pytest

from concert_sync.clients import SetlistFmClient, SpotifyClient, TicketmasterClient
from concert_sync.clients.setlistfm import SetlistFmSetlist
from concert_sync.state.models import Artist, Setlist, SetlistSong, Show, Song, Venue
from concert_sync.sync.services import ArtistSyncService
from concert_sync.sync.services.setlist import flatten_songs, setlist_song_id
from concert_sync.types import EntityType, Priority, SyncOperation, SyncOptions

FORCE = SyncOptions(force=True)


def queued(system, entity_type: EntityType) -> list:
    return [t for t in system.queue.pending if t.type is entity_type]


class TestSharedAlgorithm:
    """Tests for the sync algorithm shared by every service."""

    @pytest.mark.asyncio
    async def test_second_sync_is_idempotent(self, system, provider_stub, payloads):
        """A fresh entity should be returned as stored without provider calls."""
        provider_stub.add("/discovery/v2/venues/V1", payloads["venue"]())
        venues = system.manager.venues

        first = await venues.sync("V1")
        second = await venues.sync("V1")

        assert first.success and first.updated
        assert second.success and not second.updated
        assert second.data == first.data
        assert len(provider_stub.calls("/discovery/v2/venues/V1")) == 1

    @pytest.mark.asyncio
    async def test_force_refetches(self, system, provider_stub, payloads):
        provider_stub.add("/discovery/v2/venues/V1", payloads["venue"]())
        venues = system.manager.venues

        await venues.sync("V1")
        result = await venues.sync("V1", FORCE)

        assert result.updated is True
        assert len(provider_stub.calls("/discovery/v2/venues/V1")) == 2

    @pytest.mark.asyncio
    async def test_validation_failure_stores_nothing(self, system):
        """A record without a name should not be stored or marked synced."""
        result = await system.manager.venues.sync("V404")

        assert result.success is False
        assert "no name" in result.error
        assert system.store.get_entity(EntityType.VENUE, "V404") is None
        assert system.store.get_sync_state("V404", EntityType.VENUE) is None

    @pytest.mark.asyncio
    async def test_provider_outage_keeps_stored_record(self, system, provider_stub):
        """A failed primary fetch should keep the stored values."""
        system.store.upsert_entity(
            EntityType.ARTIST, Artist("A1", name="Radiohead", image_url="stored.jpg")
        )
        provider_stub.add("/discovery/v2/attractions/A1", status=500)

        result = await system.manager.artists.sync("A1", FORCE)

        assert result.success is True
        assert result.data.name == "Radiohead"
        assert result.data.image_url == "stored.jpg"

    @pytest.mark.asyncio
    async def test_timestamps(self, system, provider_stub, payloads):
        """created_at should survive refreshes while updated_at moves."""
        provider_stub.add("/discovery/v2/venues/V1", payloads["venue"]())
        venues = system.manager.venues

        first = (await venues.sync("V1")).data
        second = (await venues.sync("V1", FORCE)).data

        assert second.created_at == first.created_at
        assert second.updated_at >= first.updated_at


class TestArtistSync:
    """Tests for ArtistSyncService."""

    @pytest.mark.asyncio
    async def test_enriched_from_spotify(self, system, provider_stub, payloads):
        """A new artist should be matched on Spotify and its top tracks queued."""
        provider_stub.add("/discovery/v2/attractions/A1", payloads["attraction"]())
        provider_stub.add(
            "/v1/search",
            {"artists": {"items": [payloads["spotify_artist"]()]}},
            params={"type": "artist"},
        )
        provider_stub.add(
            "/v1/artists/SP1/top-tracks",
            {
                "tracks": [
                    payloads["spotify_track"]("T1", "Creep"),
                    payloads["spotify_track"]("T2", "No Surprises"),
                ]
            },
        )
        system.store.upsert_entity(EntityType.SONG, Song("T2", name="No Surprises", spotify_id="T2"))

        result = await system.manager.artists.sync("A1")

        artist = result.data
        assert artist.name == "Radiohead"
        assert artist.image_url == "https://img.tm/large.jpg"
        assert artist.spotify_id == "SP1"
        assert artist.genres == ["alternative rock", "art rock"]
        assert artist.popularity == 79

        songs = queued(system, EntityType.SONG)
        assert [t.id for t in songs] == ["T1"]
        assert songs[0].priority is Priority.LOW
        assert songs[0].operation is SyncOperation.CREATE
        assert songs[0].payload == {"artist_id": "A1"}

    @pytest.mark.asyncio
    async def test_spotify_name_mismatch_ignored(self, system, provider_stub, payloads):
        """A Spotify result with a different name should not be linked."""
        provider_stub.add("/discovery/v2/attractions/A1", payloads["attraction"]())
        provider_stub.add(
            "/v1/search",
            {"artists": {"items": [payloads["spotify_artist"]("SPX", "Completely Different")]}},
        )

        artist = (await system.manager.artists.sync("A1")).data

        assert artist.spotify_id is None
        assert queued(system, EntityType.SONG) == []

    @pytest.mark.asyncio
    async def test_known_spotify_id_refreshes_popularity(self, system, provider_stub, payloads):
        """Stored Spotify IDs should be fetched directly."""
        system.store.upsert_entity(
            EntityType.ARTIST, Artist("A1", name="Radiohead", spotify_id="SP1", popularity=50)
        )
        provider_stub.add("/discovery/v2/attractions/A1", payloads["attraction"]())
        provider_stub.add("/v1/artists/SP1", payloads["spotify_artist"]())

        artist = (await system.manager.artists.sync("A1", FORCE)).data

        assert artist.popularity == 79
        assert provider_stub.calls("/v1/search") == []

    @pytest.mark.asyncio
    async def test_historical_setlists_queued(self, system, provider_stub, payloads):
        """With setlists enabled the artist's setlists and MBID should be picked up."""
        service = ArtistSyncService(
            system.store,
            system.tracker,
            TicketmasterClient(system.gateway),
            SpotifyClient(system.gateway),
            SetlistFmClient(system.gateway),
            include_setlists=True,
            setlist_limit=1,
        )
        service.attach_queue(system.queue)
        provider_stub.add("/discovery/v2/attractions/A1", payloads["attraction"]())
        provider_stub.add(
            "/rest/1.0/search/setlists",
            {"setlist": [payloads["setlist"](), payloads["setlist"]("older", "01-05-2023")]},
        )

        await service.sync("A1")

        setlists = queued(system, EntityType.SETLIST)
        assert [(t.id, t.priority) for t in setlists] == [("63de4613", Priority.LOW)]
        stored = system.store.get_entity(EntityType.ARTIST, "A1")
        assert stored.setlistfm_mbid == "a74b1b7f-71a5-4011-9441-d0b5e4122711"

    @pytest.mark.asyncio
    async def test_search(self, system, provider_stub, payloads):
        provider_stub.add(
            "/discovery/v2/attractions", {"_embedded": {"attractions": [payloads["attraction"]()]}}
        )
        results = await system.manager.artists.search("radiohead")
        assert [a.name for a in results] == ["Radiohead"]


class TestShowSync:
    """Tests for ShowSyncService."""

    @pytest.mark.asyncio
    async def test_past_show_links_venue_and_setlist(self, system, provider_stub, payloads):
        """A played show should get a venue stub and a setlist task."""
        provider_stub.add("/discovery/v2/events/E1", payloads["event"]("E1"))
        provider_stub.add(
            "/rest/1.0/search/setlists",
            {"setlist": [payloads["setlist"]()]},
            params={"artistName": "Radiohead", "date": "01-05-2024"},
        )

        show = (await system.manager.shows.sync("E1")).data

        assert show.artist_id == "A1"
        assert show.venue_id == "V1"
        assert show.setlist_id == "63de4613"
        assert show.event_date == date(2024, 5, 1)

        venue = system.store.get_entity(EntityType.VENUE, "V1")
        assert venue.name == "Madison Square Garden"
        assert [(t.id, t.operation, t.priority) for t in queued(system, EntityType.VENUE)] == [
            ("V1", SyncOperation.CREATE, Priority.MEDIUM)
        ]
        assert [(t.id, t.priority) for t in queued(system, EntityType.SETLIST)] == [
            ("63de4613", Priority.MEDIUM)
        ]

    @pytest.mark.asyncio
    async def test_known_venue_not_queued(self, system, provider_stub, payloads):
        provider_stub.add("/discovery/v2/events/E1", payloads["event"]("E1"))
        system.store.upsert_entity(EntityType.VENUE, Venue("V1", name="Madison Square Garden"))

        await system.manager.shows.sync("E1")

        assert queued(system, EntityType.VENUE) == []

    @pytest.mark.asyncio
    async def test_future_show_skips_setlist_search(self, system, provider_stub, payloads):
        """Shows that have not happened yet should not be searched on setlist.fm."""
        provider_stub.add(
            "/discovery/v2/events/E2", payloads["event"]("E2", date="2099-01-01T20:00:00Z")
        )

        show = (await system.manager.shows.sync("E2")).data

        assert show.setlist_id is None
        assert provider_stub.calls("/rest/1.0/search/setlists") == []

    @pytest.mark.asyncio
    async def test_sync_many_keeps_order(self, system, provider_stub, payloads):
        for event_id in ("E1", "E2"):
            provider_stub.add(f"/discovery/v2/events/{event_id}", payloads["event"](event_id))

        results = await system.manager.shows.sync_many(["E2", "E1"])

        assert [r.data.external_id for r in results] == ["E2", "E1"]


class TestSetlistSync:
    """Tests for SetlistSyncService."""

    def test_song_ids(self, payloads):
        """Song IDs should encode setlist, set and position within the set."""
        songs = flatten_songs(SetlistFmSetlist.from_api(payloads["setlist"]()))
        assert [s.song_id for s in songs] == ["63de4613-0-0", "63de4613-0-1", "63de4613-1-0"]
        assert [s.position for s in songs] == [0, 1, 2]
        assert setlist_song_id("abc", 2, 5) == "abc-2-5"

    @pytest.mark.asyncio
    async def test_links_artist_and_show(self, system, provider_stub, payloads):
        """The setlist should resolve its artist by MBID and its show by date."""
        store = system.store
        store.upsert_entity(
            EntityType.ARTIST,
            Artist("A1", name="Radiohead", setlistfm_mbid="a74b1b7f-71a5-4011-9441-d0b5e4122711"),
        )
        store.upsert_entity(
            EntityType.SHOW,
            Show("E1", name="Gig", artist_id="A1", date=datetime(2024, 5, 1, 20, tzinfo=UTC)),
        )
        provider_stub.add("/rest/1.0/setlist/63de4613", payloads["setlist"]())

        setlist = (await system.manager.setlists.sync("63de4613")).data

        assert setlist.artist_id == "A1"
        assert setlist.show_id == "E1"
        assert setlist.name == "Radiohead 2024-05-01"
        assert [s.name for s in setlist.songs] == ["Airbag", "Paranoid Android", "Karma Police"]
        assert store.get_entity(EntityType.SHOW, "E1").setlist_id == "63de4613"

    @pytest.mark.asyncio
    async def test_find_for_show_without_artist(self, system):
        system.store.upsert_entity(
            EntityType.SHOW, Show("E1", name="Gig", date=datetime(2024, 5, 1, tzinfo=UTC))
        )
        result = await system.manager.setlists.find_for_show("E1")
        assert result.success is False


class TestSongSync:
    """Tests for SongSyncService."""

    @pytest.mark.asyncio
    async def test_spotify_track(self, system, provider_stub, payloads):
        """Spotify IDs should be fetched directly and linked to the stored artist."""
        system.store.upsert_entity(
            EntityType.ARTIST, Artist("A1", name="Radiohead", spotify_id="SP1")
        )
        provider_stub.add("/v1/tracks/T1", payloads["spotify_track"]("T1", "Creep"))

        song = (await system.manager.sync_entity(EntityType.SONG, "T1")).data

        assert song.name == "Creep"
        assert song.artist_id == "A1"
        assert song.spotify_id == "T1"
        assert song.album_name == "OK Computer"

    @pytest.mark.asyncio
    async def test_task_defaults_fill_unknown_artist(self, system, provider_stub, payloads):
        """Defaults carried by the task should link a song whose artist is not stored."""
        provider_stub.add("/v1/tracks/T1", payloads["spotify_track"]("T1", "Creep"))

        result = await system.manager.sync_entity(
            EntityType.SONG, "T1", SyncOptions(force=True, defaults={"artist_id": "A1"})
        )

        assert result.data.artist_id == "A1"
        assert result.data.name == "Creep"

    @pytest.mark.asyncio
    async def test_performed_song_matched(self, system, provider_stub, payloads):
        """Setlist songs should be matched to Spotify by name."""
        system.store.upsert_entity(
            EntityType.SETLIST,
            Setlist(
                "S1",
                artist_id="A1",
                artist_name="Radiohead",
                songs=[SetlistSong("Airbag", 0, False, "S1-0-0")],
            ),
        )
        provider_stub.add(
            "/v1/search",
            {
                "tracks": {
                    "items": [
                        payloads["spotify_track"]("T9", "Airbag - Remastered"),
                        payloads["spotify_track"]("T8", "Lucky"),
                    ]
                }
            },
            params={"type": "track"},
        )

        song = (await system.manager.sync_entity(EntityType.SONG, "S1-0-0")).data

        assert song.name == "Airbag"
        assert song.artist_id == "A1"
        assert song.spotify_id == "T9"
        query = provider_stub.calls("/v1/search")[0].url.params["q"]
        assert query == "track:Airbag artist:Radiohead"

        again = await system.manager.sync_entity(EntityType.SONG, "S1-0-0", FORCE)
        assert again.data.spotify_id == "T9"
        assert len(provider_stub.calls("/v1/search")) == 1

    @pytest.mark.asyncio
    async def test_performed_song_without_match(self, system, provider_stub):
        """A song without a Spotify match should still be stored by name."""
        system.store.upsert_entity(
            EntityType.SETLIST,
            Setlist(
                "S1",
                artist_name="Radiohead",
                songs=[SetlistSong("Unreleased Jam", 0, False, "S1-0-0")],
            ),
        )
        provider_stub.add("/v1/search", {"tracks": {"items": []}})

        song = (await system.manager.sync_entity(EntityType.SONG, "S1-0-0")).data

        assert song.name == "Unreleased Jam"
        assert song.spotify_id is None

    @pytest.mark.asyncio
    async def test_song_outside_stored_setlists(self, system):
        result = await system.manager.sync_entity(EntityType.SONG, "S404-0-0")
        assert result.success is False
