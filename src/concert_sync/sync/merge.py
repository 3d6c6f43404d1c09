"""Field-level merge of provider data into stored records.

Each entity type has an ordered list of field rules. Candidates are the
field values reported by each provider, in provider priority order.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, TypeVar

from concert_sync.state.models import Artist, Setlist, Show, Song, Venue
from concert_sync.types import EntityType

R = TypeVar("R", Artist, Venue, Show, Setlist, Song)


class Resolution(Enum):
    """How a field's value is chosen."""

    PREFER_FRESH = "prefer_fresh"
    PREFER_EXISTING = "prefer_existing"


@dataclass(frozen=True)
class FieldRule:
    """Resolution rule for a single field."""

    field: str
    resolution: Resolution


FRESH = Resolution.PREFER_FRESH
EXISTING = Resolution.PREFER_EXISTING

ARTIST_RULES = (
    FieldRule("name", FRESH),
    FieldRule("url", FRESH),
    FieldRule("popularity", FRESH),
    FieldRule("image_url", EXISTING),
    FieldRule("genres", EXISTING),
    FieldRule("spotify_id", EXISTING),
    FieldRule("spotify_url", EXISTING),
    FieldRule("setlistfm_mbid", EXISTING),
)

VENUE_RULES = (
    FieldRule("name", FRESH),
    FieldRule("city", FRESH),
    FieldRule("state", FRESH),
    FieldRule("country", FRESH),
    FieldRule("address", FRESH),
    FieldRule("latitude", FRESH),
    FieldRule("longitude", FRESH),
    FieldRule("url", FRESH),
    FieldRule("image_url", EXISTING),
)

SHOW_RULES = (
    FieldRule("name", FRESH),
    FieldRule("date", FRESH),
    FieldRule("status", FRESH),
    FieldRule("url", FRESH),
    FieldRule("artist_id", FRESH),
    FieldRule("venue_id", FRESH),
    FieldRule("setlist_id", FRESH),
    FieldRule("image_url", EXISTING),
)

SETLIST_RULES = (
    FieldRule("artist_name", FRESH),
    FieldRule("venue_name", FRESH),
    FieldRule("event_date", FRESH),
    FieldRule("songs", FRESH),
    FieldRule("artist_id", FRESH),
    FieldRule("show_id", FRESH),
)

SONG_RULES = (
    FieldRule("name", FRESH),
    FieldRule("artist_name", FRESH),
    FieldRule("artist_id", FRESH),
    FieldRule("popularity", FRESH),
    FieldRule("spotify_id", EXISTING),
    FieldRule("spotify_url", EXISTING),
    FieldRule("preview_url", EXISTING),
    FieldRule("duration_ms", EXISTING),
    FieldRule("album_name", EXISTING),
    FieldRule("album_image", EXISTING),
)

MERGE_RULES: dict[EntityType, tuple[FieldRule, ...]] = {
    EntityType.ARTIST: ARTIST_RULES,
    EntityType.VENUE: VENUE_RULES,
    EntityType.SHOW: SHOW_RULES,
    EntityType.SETLIST: SETLIST_RULES,
    EntityType.SONG: SONG_RULES,
}


def is_empty(value: Any) -> bool:
    """Whether a value counts as missing: None, empty string or empty list."""
    return value is None or value == "" or value == []


def resolve_field(
    rule: FieldRule, existing: Any, candidates: Sequence[Mapping[str, Any]]
) -> Any:
    """Choose the value of one field.

    Args:
        rule: Field rule.
        existing: Stored value of the field.
        candidates: Provider values in priority order.

    Returns:
        The resolved value; an empty provider value never replaces a stored one.
    """
    fresh = next(
        (c[rule.field] for c in candidates if not is_empty(c.get(rule.field))),
        None,
    )
    if rule.resolution is Resolution.PREFER_EXISTING and not is_empty(existing):
        return existing
    if fresh is not None:
        return fresh
    return existing


def merge_entities(
    record_type: type[R],
    rules: Sequence[FieldRule],
    external_id: str,
    existing: R | None,
    candidates: Sequence[Mapping[str, Any]],
    now: datetime,
) -> R:
    """Merge provider candidates into an existing record.

    Fields without a rule keep their stored value.

    Args:
        record_type: Record class to build when nothing is stored.
        rules: Ordered field rules.
        external_id: External identifier of the record.
        existing: Stored record, if any.
        candidates: Provider values in priority order.
        now: Timestamp used for created_at and updated_at.

    Returns:
        A new merged record.
    """
    base = existing if existing is not None else record_type(external_id=external_id)
    values = {
        rule.field: resolve_field(rule, getattr(base, rule.field), candidates)
        for rule in rules
    }
    return replace(
        base,
        **values,
        external_id=external_id,
        created_at=base.created_at or now,
        updated_at=now,
    )
