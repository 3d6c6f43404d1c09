"""End-to-end tests running queued tasks through the whole system."""

import pytest

from concert_sync.sync.system import build_sync_system, create_sync_system
from concert_sync.types import EntityType, Priority, SyncOperation, SyncTask


@pytest.fixture
def radiohead(provider_stub, payloads):
    """Provider answers for artist A1 with three upcoming shows at venue V1."""
    provider_stub.add("/discovery/v2/attractions/A1", payloads["attraction"]())
    provider_stub.add(
        "/v1/search",
        {"artists": {"items": [payloads["spotify_artist"]()]}},
        params={"type": "artist"},
    )
    provider_stub.add("/v1/artists/SP1/top-tracks", {"tracks": []})
    events = [payloads["event"](event_id) for event_id in ("E1", "E2", "E3")]
    provider_stub.add(
        "/discovery/v2/events",
        {"_embedded": {"events": events}},
        params={"attractionId": "A1"},
    )
    for event in events:
        provider_stub.add(f"/discovery/v2/events/{event['id']}", event)
    provider_stub.add("/discovery/v2/venues/V1", payloads["venue"]())
    return provider_stub


class TestArtistDiscovery:
    """Tests for discovering an artist's shows through the queue."""

    @pytest.mark.asyncio
    async def test_create_then_expand(self, system, radiohead):
        """Creating an artist and expanding it should queue its unseen shows."""
        queue = system.queue
        await queue.add(SyncTask(EntityType.ARTIST, "A1", Priority.HIGH, SyncOperation.CREATE))
        await queue.process_queue()
        await queue.join()

        artist = system.store.get_entity(EntityType.ARTIST, "A1")
        assert artist.name == "Radiohead"
        assert artist.spotify_id == "SP1"
        assert artist.genres == ["alternative rock", "art rock"]

        await queue.add(
            SyncTask(EntityType.ARTIST, "A1", Priority.HIGH, SyncOperation.EXPAND_RELATIONS)
        )
        await queue.process_queue()
        await queue.join()

        assert sorted((t.type, t.id, t.operation, t.priority) for t in queue.pending) == [
            (EntityType.SHOW, event_id, SyncOperation.CREATE, Priority.MEDIUM)
            for event_id in ("E1", "E2", "E3")
        ]

    @pytest.mark.asyncio
    async def test_drain_stores_shows_and_venue(self, system, radiohead):
        """Draining the queue should store the shows and their venue."""
        queue = system.queue
        await queue.add(
            SyncTask(EntityType.ARTIST, "A1", Priority.HIGH, SyncOperation.EXPAND_RELATIONS)
        )

        await queue.drain()

        counts = system.store.entity_counts()
        assert counts["show"] == 3
        assert counts["venue"] == 1
        assert system.store.get_entity(EntityType.VENUE, "V1").city == "New York"
        assert sorted(s.external_id for s in system.store.shows_for_artist("A1")) == ["E1", "E2", "E3"]
        assert system.store.get_dropped_tasks() == []

    @pytest.mark.asyncio
    async def test_failing_task_is_dropped(self, system):
        """A task whose provider keeps failing should end up in the dropped list."""
        await system.queue.add(
            SyncTask(EntityType.VENUE, "V404", Priority.HIGH, SyncOperation.CREATE)
        )

        await system.queue.drain()

        dropped = system.store.get_dropped_tasks()
        assert [(d.entity_id, d.attempts, d.priority) for d in dropped] == [("V404", 3, "low")]


class TestRestart:
    """Tests for resuming work after a restart."""

    @pytest.mark.asyncio
    async def test_pending_tasks_survive_restart(self, settings, http_client):
        """A rebuilt system should resume the persisted queue."""
        first = create_sync_system(settings, http_client)
        await first.queue.add(SyncTask(EntityType.SHOW, "E1", Priority.LOW, SyncOperation.CREATE))
        await first.queue.add(SyncTask(EntityType.ARTIST, "A1", Priority.HIGH))

        async with build_sync_system(settings, http_client) as second:
            assert [t.id for t in second.queue.pending] == ["A1", "E1"]

    @pytest.mark.asyncio
    async def test_sync_state_survives_restart(self, settings, http_client, radiohead):
        """A rebuilt system should consider recently synced entities fresh."""
        first = create_sync_system(settings, http_client)
        await first.manager.sync_entity(EntityType.VENUE, "V1")

        second = create_sync_system(settings, http_client)
        result = await second.manager.sync_entity(EntityType.VENUE, "V1")

        assert result.updated is False
        assert len(radiohead.calls("/discovery/v2/venues/V1")) == 1
