"""SQLite-backed store for entities, sync states, the task queue and cache."""

import json
import sqlite3
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any

from concert_sync.errors import PersistenceError
from concert_sync.state.models import Artist, Setlist, Show, Song, Venue
from concert_sync.types import (
    EntityType,
    Priority,
    SyncOperation,
    SyncState,
    SyncTask,
)

Entity = Artist | Venue | Show | Setlist | Song

ENTITY_TABLES: dict[EntityType, tuple[str, type]] = {
    EntityType.ARTIST: ("artists", Artist),
    EntityType.VENUE: ("venues", Venue),
    EntityType.SHOW: ("shows", Show),
    EntityType.SETLIST: ("setlists", Setlist),
    EntityType.SONG: ("songs", Song),
}


@dataclass
class DroppedTask:
    """A task discarded after exhausting its attempts.

    Args:
        entity_type: Entity type of the task.
        entity_id: Entity external ID.
        operation: Operation that kept failing.
        priority: Priority when dropped.
        attempts: Attempts made.
        error: Last error message, if any.
        dropped_at: When the task was dropped.
    """

    entity_type: str
    entity_id: str
    operation: str
    priority: str
    attempts: int
    error: str | None
    dropped_at: datetime


class SyncStore:
    """SQLite store shared by the tracker, the services and the queue.

    Every sqlite3 failure surfaces as PersistenceError.

    Args:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @property
    def db_path(self) -> Path:
        return self._db_path

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Get a database connection with row factory, committing on success."""
        try:
            conn = sqlite3.connect(self._db_path)
        except sqlite3.Error as exc:
            raise PersistenceError(f"Cannot open {self._db_path}: {exc}") from exc
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise PersistenceError(str(exc)) from exc
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Initialize the database schema."""
        with self._get_connection() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS artists (
                    id INTEGER PRIMARY KEY,
                    external_id TEXT NOT NULL UNIQUE,
                    name TEXT,
                    image_url TEXT,
                    url TEXT,
                    spotify_id TEXT,
                    spotify_url TEXT,
                    genres TEXT,
                    popularity INTEGER,
                    setlistfm_mbid TEXT,
                    created_at TIMESTAMP,
                    updated_at TIMESTAMP
                );

                CREATE TABLE IF NOT EXISTS venues (
                    id INTEGER PRIMARY KEY,
                    external_id TEXT NOT NULL UNIQUE,
                    name TEXT,
                    city TEXT,
                    state TEXT,
                    country TEXT,
                    address TEXT,
                    latitude REAL,
                    longitude REAL,
                    url TEXT,
                    image_url TEXT,
                    created_at TIMESTAMP,
                    updated_at TIMESTAMP
                );

                CREATE TABLE IF NOT EXISTS shows (
                    id INTEGER PRIMARY KEY,
                    external_id TEXT NOT NULL UNIQUE,
                    name TEXT,
                    date TIMESTAMP,
                    event_date TEXT,
                    artist_id TEXT,
                    venue_id TEXT,
                    setlist_id TEXT,
                    status TEXT,
                    url TEXT,
                    image_url TEXT,
                    created_at TIMESTAMP,
                    updated_at TIMESTAMP
                );

                CREATE TABLE IF NOT EXISTS setlists (
                    id INTEGER PRIMARY KEY,
                    external_id TEXT NOT NULL UNIQUE,
                    artist_id TEXT,
                    artist_name TEXT,
                    show_id TEXT,
                    venue_name TEXT,
                    event_date TEXT,
                    songs TEXT,
                    created_at TIMESTAMP,
                    updated_at TIMESTAMP
                );

                CREATE TABLE IF NOT EXISTS songs (
                    id INTEGER PRIMARY KEY,
                    external_id TEXT NOT NULL UNIQUE,
                    name TEXT,
                    artist_id TEXT,
                    artist_name TEXT,
                    spotify_id TEXT,
                    spotify_url TEXT,
                    preview_url TEXT,
                    duration_ms INTEGER,
                    popularity INTEGER,
                    album_name TEXT,
                    album_image TEXT,
                    created_at TIMESTAMP,
                    updated_at TIMESTAMP
                );

                CREATE TABLE IF NOT EXISTS sync_states (
                    id INTEGER PRIMARY KEY,
                    entity_id TEXT NOT NULL,
                    entity_type TEXT NOT NULL,
                    last_synced TIMESTAMP NOT NULL,
                    sync_version INTEGER NOT NULL,
                    UNIQUE(entity_id, entity_type)
                );

                CREATE TABLE IF NOT EXISTS sync_queue (
                    id INTEGER PRIMARY KEY,
                    entity_type TEXT NOT NULL,
                    entity_id TEXT NOT NULL,
                    priority TEXT NOT NULL,
                    operation TEXT NOT NULL,
                    attempts INTEGER NOT NULL DEFAULT 0,
                    payload TEXT
                );

                CREATE TABLE IF NOT EXISTS dropped_tasks (
                    id INTEGER PRIMARY KEY,
                    entity_type TEXT NOT NULL,
                    entity_id TEXT NOT NULL,
                    operation TEXT NOT NULL,
                    priority TEXT NOT NULL,
                    attempts INTEGER NOT NULL,
                    error TEXT,
                    dropped_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                );

                CREATE TABLE IF NOT EXISTS cache_entries (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    expires_at REAL NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_shows_artist ON shows(artist_id);
                CREATE INDEX IF NOT EXISTS idx_shows_venue ON shows(venue_id);
                CREATE INDEX IF NOT EXISTS idx_shows_artist_date
                    ON shows(artist_id, event_date);
                CREATE INDEX IF NOT EXISTS idx_setlists_artist ON setlists(artist_id);
                CREATE INDEX IF NOT EXISTS idx_songs_spotify ON songs(spotify_id);
                CREATE INDEX IF NOT EXISTS idx_artists_mbid ON artists(setlistfm_mbid);
            """
            )

    # Entities

    def get_entity(self, entity_type: EntityType, external_id: str) -> Entity | None:
        """Get a stored entity by external ID.

        Args:
            entity_type: Entity type.
            external_id: External identifier.

        Returns:
            The record if stored, None otherwise.
        """
        table, model = ENTITY_TABLES[entity_type]
        with self._get_connection() as conn:
            row = conn.execute(
                f"SELECT * FROM {table} WHERE external_id = ?", (external_id,)
            ).fetchone()
        return model.from_row(row) if row else None

    def upsert_entity(self, entity_type: EntityType, record: Entity) -> None:
        """Insert or replace an entity keyed by its external ID."""
        table, _ = ENTITY_TABLES[entity_type]
        row = record.to_row()
        columns = ", ".join(row)
        placeholders = ", ".join("?" for _ in row)
        with self._get_connection() as conn:
            conn.execute(
                f"INSERT OR REPLACE INTO {table} ({columns}) VALUES ({placeholders})",
                tuple(row.values()),
            )

    def existing_external_ids(
        self, entity_type: EntityType, external_ids: Iterable[str]
    ) -> set[str]:
        """Get the subset of IDs that are already stored."""
        ids = list(external_ids)
        if not ids:
            return set()
        table, _ = ENTITY_TABLES[entity_type]
        placeholders = ", ".join("?" for _ in ids)
        with self._get_connection() as conn:
            rows = conn.execute(
                f"SELECT external_id FROM {table} WHERE external_id IN ({placeholders})",
                ids,
            ).fetchall()
        return {row["external_id"] for row in rows}

    def known_spotify_track_ids(self, track_ids: Iterable[str]) -> set[str]:
        """Get the Spotify track IDs already stored as a song or matched to one."""
        ids = list(track_ids)
        if not ids:
            return set()
        placeholders = ", ".join("?" for _ in ids)
        with self._get_connection() as conn:
            rows = conn.execute(
                f"""
                SELECT external_id, spotify_id FROM songs
                WHERE external_id IN ({placeholders}) OR spotify_id IN ({placeholders})
                """,
                ids + ids,
            ).fetchall()
        found = {row["external_id"] for row in rows} | {row["spotify_id"] for row in rows}
        return found & set(ids)

    def entity_counts(self) -> dict[str, int]:
        """Count stored records per entity type."""
        counts = {}
        with self._get_connection() as conn:
            for entity_type, (table, _) in ENTITY_TABLES.items():
                row = conn.execute(f"SELECT COUNT(*) AS n FROM {table}").fetchone()
                counts[entity_type.value] = row["n"]
        return counts

    def shows_for_artist(self, artist_id: str) -> list[Show]:
        """Get all stored shows headlined by an artist."""
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM shows WHERE artist_id = ? ORDER BY date", (artist_id,)
            ).fetchall()
        return [Show.from_row(row) for row in rows]

    def shows_for_venue(self, venue_id: str) -> list[Show]:
        """Get all stored shows at a venue."""
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM shows WHERE venue_id = ? ORDER BY date", (venue_id,)
            ).fetchall()
        return [Show.from_row(row) for row in rows]

    def setlists_for_artist(self, artist_id: str) -> list[Setlist]:
        """Get all stored setlists of an artist."""
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM setlists WHERE artist_id = ? ORDER BY event_date DESC",
                (artist_id,),
            ).fetchall()
        return [Setlist.from_row(row) for row in rows]

    def find_show(self, artist_id: str, event_date: date) -> Show | None:
        """Find a stored show of an artist on a given calendar date."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM shows WHERE artist_id = ? AND event_date = ?",
                (artist_id, event_date.isoformat()),
            ).fetchone()
        return Show.from_row(row) if row else None

    def find_artist(
        self,
        mbid: str | None = None,
        name: str | None = None,
        spotify_id: str | None = None,
    ) -> Artist | None:
        """Find a stored artist by Spotify ID or MusicBrainz ID, falling back to name.

        Args:
            mbid: MusicBrainz artist ID.
            name: Artist name, compared case-insensitively.
            spotify_id: Spotify artist ID.

        Returns:
            The first matching artist, or None.
        """
        with self._get_connection() as conn:
            row = None
            if spotify_id:
                row = conn.execute(
                    "SELECT * FROM artists WHERE spotify_id = ?", (spotify_id,)
                ).fetchone()
            if row is None and mbid:
                row = conn.execute(
                    "SELECT * FROM artists WHERE setlistfm_mbid = ?", (mbid,)
                ).fetchone()
            if row is None and name:
                row = conn.execute(
                    "SELECT * FROM artists WHERE name = ? COLLATE NOCASE", (name,)
                ).fetchone()
        return Artist.from_row(row) if row else None

    def find_show_by_setlist(self, setlist_id: str) -> Show | None:
        """Find the stored show already linked to a setlist."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM shows WHERE setlist_id = ?", (setlist_id,)
            ).fetchone()
        return Show.from_row(row) if row else None

    def link_setlist_to_show(self, show_id: str, setlist_id: str) -> None:
        """Record the setlist of a show on both records."""
        with self._get_connection() as conn:
            conn.execute(
                "UPDATE shows SET setlist_id = ? WHERE external_id = ?",
                (setlist_id, show_id),
            )
            conn.execute(
                "UPDATE setlists SET show_id = ? WHERE external_id = ?",
                (show_id, setlist_id),
            )

    # Sync states

    def get_sync_state(self, entity_id: str, entity_type: EntityType) -> SyncState | None:
        """Get the last sync state of an entity."""
        with self._get_connection() as conn:
            row = conn.execute(
                """
                SELECT * FROM sync_states
                WHERE entity_id = ? AND entity_type = ?
                """,
                (entity_id, entity_type.value),
            ).fetchone()
        if row is None:
            return None
        return SyncState(
            entity_id=row["entity_id"],
            entity_type=EntityType(row["entity_type"]),
            last_synced_at=datetime.fromisoformat(row["last_synced"]),
            sync_version=row["sync_version"],
        )

    def upsert_sync_states(self, states: Iterable[SyncState]) -> None:
        """Insert or update sync states in one transaction."""
        with self._get_connection() as conn:
            conn.executemany(
                """
                INSERT INTO sync_states (entity_id, entity_type, last_synced, sync_version)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(entity_id, entity_type) DO UPDATE SET
                    last_synced = excluded.last_synced,
                    sync_version = excluded.sync_version
                """,
                [
                    (
                        state.entity_id,
                        state.entity_type.value,
                        state.last_synced_at.isoformat(),
                        state.sync_version,
                    )
                    for state in states
                ],
            )

    def upsert_sync_state(self, state: SyncState) -> None:
        self.upsert_sync_states([state])

    def delete_sync_state(self, entity_id: str, entity_type: EntityType) -> None:
        with self._get_connection() as conn:
            conn.execute(
                "DELETE FROM sync_states WHERE entity_id = ? AND entity_type = ?",
                (entity_id, entity_type.value),
            )

    # Queue

    def load_queue(self) -> list[SyncTask]:
        """Load persisted pending tasks in their stored order."""
        with self._get_connection() as conn:
            rows = conn.execute("SELECT * FROM sync_queue ORDER BY id").fetchall()
        return [
            SyncTask(
                type=EntityType(row["entity_type"]),
                id=row["entity_id"],
                priority=Priority(row["priority"]),
                operation=SyncOperation(row["operation"]),
                attempts=row["attempts"],
                payload=json.loads(row["payload"]) if row["payload"] else None,
            )
            for row in rows
        ]

    def replace_queue(self, tasks: Iterable[SyncTask]) -> None:
        """Replace all persisted pending tasks.

        The delete and the inserts share one transaction, so a failure
        leaves the previous queue in place.
        """
        with self._get_connection() as conn:
            conn.execute("DELETE FROM sync_queue")
            conn.executemany(
                """
                INSERT INTO sync_queue
                (entity_type, entity_id, priority, operation, attempts, payload)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        task.type.value,
                        task.id,
                        task.priority.value,
                        task.operation.value,
                        task.attempts,
                        json.dumps(task.payload) if task.payload is not None else None,
                    )
                    for task in tasks
                ],
            )

    def record_dropped(self, task: SyncTask, error: str | None = None) -> None:
        """Record a task that exhausted its attempts."""
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO dropped_tasks
                (entity_type, entity_id, operation, priority, attempts, error, dropped_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    task.type.value,
                    task.id,
                    task.operation.value,
                    task.priority.value,
                    task.attempts,
                    error,
                    datetime.now(UTC).isoformat(),
                ),
            )

    def get_dropped_tasks(self, limit: int | None = None) -> list[DroppedTask]:
        """Get dropped tasks, most recent first.

        Args:
            limit: Maximum number of tasks to return.

        Returns:
            List of DroppedTask objects.
        """
        query = "SELECT * FROM dropped_tasks ORDER BY id DESC"
        params: tuple[Any, ...] = ()
        if limit is not None:
            query += " LIMIT ?"
            params = (limit,)
        with self._get_connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [
            DroppedTask(
                entity_type=row["entity_type"],
                entity_id=row["entity_id"],
                operation=row["operation"],
                priority=row["priority"],
                attempts=row["attempts"],
                error=row["error"],
                dropped_at=datetime.fromisoformat(row["dropped_at"]),
            )
            for row in rows
        ]

    # Cache tier

    def cache_get(self, key: str) -> tuple[str, float] | None:
        """Get a persisted cache value and its expiry timestamp."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT value, expires_at FROM cache_entries WHERE key = ?", (key,)
            ).fetchone()
        return (row["value"], row["expires_at"]) if row else None

    def cache_set(self, key: str, value: str, expires_at: float) -> None:
        with self._get_connection() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO cache_entries (key, value, expires_at) VALUES (?, ?, ?)",
                (key, value, expires_at),
            )

    def cache_delete(self, key: str) -> None:
        with self._get_connection() as conn:
            conn.execute("DELETE FROM cache_entries WHERE key = ?", (key,))

    def cache_delete_prefix(self, prefix: str) -> int:
        """Delete persisted cache entries whose key starts with a prefix.

        Returns:
            Number of entries deleted.
        """
        with self._get_connection() as conn:
            cursor = conn.execute(
                "DELETE FROM cache_entries WHERE substr(key, 1, ?) = ?",
                (len(prefix), prefix),
            )
            return cursor.rowcount

    def cache_clear(self) -> None:
        with self._get_connection() as conn:
            conn.execute("DELETE FROM cache_entries")
