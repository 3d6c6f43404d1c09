"""Provider clients and the rate-limited gateway."""

from concert_sync.clients.gateway import RateLimitBucket, RateLimitedGateway
from concert_sync.clients.setlistfm import SetlistFmClient
from concert_sync.clients.spotify import SpotifyClient
from concert_sync.clients.ticketmaster import TicketmasterClient

__all__ = [
    "RateLimitBucket",
    "RateLimitedGateway",
    "SetlistFmClient",
    "SpotifyClient",
    "TicketmasterClient",
]
