"""Sync orchestration: services, manager, queue and wiring."""

from concert_sync.sync.manager import SyncManager
from concert_sync.sync.queue import SyncQueue
from concert_sync.sync.system import SyncSystem, build_sync_system, create_sync_system

__all__ = [
    "SyncManager",
    "SyncQueue",
    "SyncSystem",
    "build_sync_system",
    "create_sync_system",
]
