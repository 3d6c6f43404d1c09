"""Web API for concert-sync."""

from concert_sync.web.app import create_app

__all__ = ["create_app"]
