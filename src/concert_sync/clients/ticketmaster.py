"""Ticketmaster Discovery API client for attractions, venues and events."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from concert_sync.clients.gateway import RateLimitedGateway


@dataclass
class TmImage:
    """Represents an image attached to a Ticketmaster resource.

    Args:
        url: Image URL.
        width: Width in pixels (0 if unknown).
        height: Height in pixels (0 if unknown).
    """

    url: str
    width: int
    height: int


def parse_images(data: list[dict[str, Any]] | None) -> list[TmImage]:
    """Decode an ``images`` array, skipping entries without a URL."""
    return [
        TmImage(
            url=image["url"],
            width=int(image.get("width") or 0),
            height=int(image.get("height") or 0),
        )
        for image in data or []
        if image.get("url")
    ]


def best_image(images: list[TmImage]) -> str | None:
    """Get the URL of the widest image.

    Args:
        images: Candidate images.

    Returns:
        URL of the highest resolution image, or None if there are none.
    """
    if not images:
        return None
    return max(images, key=lambda image: image.width).url


def parse_event_datetime(dates: dict[str, Any] | None) -> datetime | None:
    """Parse the start of an event, falling back to its local date."""
    start = (dates or {}).get("start") or {}
    value = start.get("dateTime")
    if value:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    local_date = start.get("localDate")
    if local_date:
        return datetime.fromisoformat(local_date)
    return None


def _float_or_none(value: Any) -> float | None:
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass
class TmAttraction:
    """Represents a Ticketmaster attraction (an artist).

    Args:
        id: Ticketmaster attraction ID.
        name: Attraction name.
        url: Ticketmaster page URL.
        image_url: Highest resolution image URL.
    """

    id: str
    name: str
    url: str | None
    image_url: str | None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "TmAttraction":
        """Decode an attraction resource."""
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            url=data.get("url"),
            image_url=best_image(parse_images(data.get("images"))),
        )


@dataclass
class TmVenue:
    """Represents a Ticketmaster venue.

    Args:
        id: Ticketmaster venue ID.
        name: Venue name.
        url: Ticketmaster page URL.
        image_url: Highest resolution image URL.
        address: Street address line.
        city: City name.
        state: State code.
        country: Country code.
        latitude: Latitude in degrees.
        longitude: Longitude in degrees.
    """

    id: str
    name: str
    url: str | None = None
    image_url: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    latitude: float | None = None
    longitude: float | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "TmVenue":
        """Decode a venue resource."""
        location = data.get("location") or {}
        city = (data.get("city") or {}).get("name")
        line1 = (data.get("address") or {}).get("line1")
        address = ", ".join(part for part in (line1, city) if part) or None
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            url=data.get("url"),
            image_url=best_image(parse_images(data.get("images"))),
            address=address,
            city=city,
            state=(data.get("state") or {}).get("stateCode"),
            country=(data.get("country") or {}).get("countryCode"),
            latitude=_float_or_none(location.get("latitude")),
            longitude=_float_or_none(location.get("longitude")),
        )


@dataclass
class TmEvent:
    """Represents a Ticketmaster event (a show).

    Args:
        id: Ticketmaster event ID.
        name: Event name.
        url: Ticketmaster page URL.
        image_url: Highest resolution image URL.
        date: Event start.
        status: Ticketmaster status code (onsale, cancelled, ...).
        attraction_id: Headlining attraction ID.
        attraction_name: Headlining attraction name.
        venue: Embedded venue, if any.
    """

    id: str
    name: str
    url: str | None = None
    image_url: str | None = None
    date: datetime | None = None
    status: str | None = None
    attraction_id: str | None = None
    attraction_name: str | None = None
    venue: TmVenue | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "TmEvent":
        """Decode an event resource including embedded attractions and venues."""
        embedded = data.get("_embedded") or {}
        attractions = embedded.get("attractions") or []
        venues = embedded.get("venues") or []
        status = ((data.get("dates") or {}).get("status") or {}).get("code")
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            url=data.get("url"),
            image_url=best_image(parse_images(data.get("images"))),
            date=parse_event_datetime(data.get("dates")),
            status=status,
            attraction_id=attractions[0].get("id") if attractions else None,
            attraction_name=attractions[0].get("name") if attractions else None,
            venue=TmVenue.from_api(venues[0]) if venues and venues[0].get("id") else None,
        )


class TicketmasterClient:
    """Client for the Ticketmaster Discovery API.

    Args:
        gateway: Rate-limited gateway used for every request.
    """

    PROVIDER = "ticketmaster"

    def __init__(self, gateway: RateLimitedGateway) -> None:
        self._gateway = gateway

    async def get_attraction(self, attraction_id: str) -> TmAttraction:
        """Fetch one attraction by ID."""
        data = await self._gateway.call(self.PROVIDER, f"attractions/{attraction_id}")
        return TmAttraction.from_api(data)

    async def search_attractions(self, keyword: str, size: int = 10) -> list[TmAttraction]:
        """Search music attractions by keyword.

        Args:
            keyword: Search keyword.
            size: Maximum number of results.

        Returns:
            List of matching attractions.
        """
        data = await self._gateway.call(
            self.PROVIDER,
            "attractions",
            {"keyword": keyword, "classificationName": "music", "size": size},
        )
        items = (data.get("_embedded") or {}).get("attractions") or []
        return [TmAttraction.from_api(item) for item in items if item.get("id")]

    async def get_event(self, event_id: str) -> TmEvent:
        """Fetch one event with its venues and attractions embedded."""
        data = await self._gateway.call(
            self.PROVIDER, f"events/{event_id}", {"include": "venues,attractions"}
        )
        return TmEvent.from_api(data)

    async def get_venue(self, venue_id: str) -> TmVenue:
        """Fetch one venue by ID."""
        data = await self._gateway.call(self.PROVIDER, f"venues/{venue_id}")
        return TmVenue.from_api(data)

    async def search_venues(
        self,
        keyword: str,
        city: str | None = None,
        state_code: str | None = None,
        size: int = 10,
    ) -> list[TmVenue]:
        """Search venues by keyword and optional location.

        Args:
            keyword: Search keyword.
            city: Optional city filter.
            state_code: Optional state code filter.
            size: Maximum number of results.

        Returns:
            List of matching venues.
        """
        data = await self._gateway.call(
            self.PROVIDER,
            "venues",
            {"keyword": keyword, "city": city, "stateCode": state_code, "size": size},
        )
        items = (data.get("_embedded") or {}).get("venues") or []
        return [TmVenue.from_api(item) for item in items if item.get("id")]

    async def upcoming_events(
        self,
        attraction_id: str | None = None,
        venue_id: str | None = None,
        size: int = 50,
    ) -> list[TmEvent]:
        """List upcoming events for an attraction or a venue, soonest first.

        Args:
            attraction_id: Restrict to events of this attraction.
            venue_id: Restrict to events at this venue.
            size: Maximum number of results.

        Returns:
            List of upcoming events.
        """
        data = await self._gateway.call(
            self.PROVIDER,
            "events",
            {
                "attractionId": attraction_id,
                "venueId": venue_id,
                "sort": "date,asc",
                "size": size,
            },
        )
        items = (data.get("_embedded") or {}).get("events") or []
        return [TmEvent.from_api(item) for item in items if item.get("id")]
