"""FastAPI application exposing queue status and on-demand syncs."""

from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from concert_sync import __version__
from concert_sync.config import Settings, get_settings
from concert_sync.sync.system import create_sync_system
from concert_sync.types import EntityType, Priority, SyncOperation, SyncOptions, SyncTask


class TaskRequest(BaseModel):
    """Body of ``POST /tasks``."""

    type: EntityType
    id: str
    priority: Priority = Priority.MEDIUM
    operation: SyncOperation = SyncOperation.REFRESH


def create_app(
    settings: Settings | None = None,
    http_client: httpx.AsyncClient | None = None,
    run_scheduler: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application.

    The persisted queue is restored on startup and, unless disabled, the
    scheduler loop runs for the lifetime of the app.

    Args:
        settings: Application settings; loaded from the environment if omitted.
        http_client: Optional HTTP client for provider calls.
        run_scheduler: Whether to process queued tasks in the background.

    Returns:
        Configured FastAPI app instance.
    """
    settings = settings or get_settings()
    system = create_sync_system(settings, http_client)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await system.queue.load()
        if run_scheduler:
            await system.queue.start()
        try:
            yield
        finally:
            await system.aclose()

    app = FastAPI(
        title="Concert Sync",
        description="Sync queue status and on-demand entity syncs",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.system = system

    @app.get("/status")
    async def get_status():
        """Queue counts and stored entity counts."""
        return {
            "queue": system.queue.status(),
            "entities": system.store.entity_counts(),
            "scheduler_running": system.queue.running,
        }

    @app.post("/sync/{entity_type}/{entity_id}")
    async def sync_entity(entity_type: EntityType, entity_id: str, force: bool = False):
        """Sync one entity now and return the stored record."""
        result = await system.manager.sync_entity(
            entity_type, entity_id, SyncOptions(force=force)
        )
        if not result.success:
            raise HTTPException(status_code=502, detail=result.error)
        return {"updated": result.updated, "data": result.data}

    @app.post("/tasks", status_code=202)
    async def enqueue_task(request: TaskRequest):
        """Queue a sync task for the scheduler."""
        queued = await system.queue.add(
            SyncTask(
                type=request.type,
                id=request.id,
                priority=request.priority,
                operation=request.operation,
            )
        )
        return {"queued": queued, "pending": system.queue.status().pending}

    return app
