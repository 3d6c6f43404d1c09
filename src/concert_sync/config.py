"""Configuration management using Pydantic settings."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from concert_sync.types import CURRENT_SYNC_VERSION

AuthMode = Literal["none", "api_key_query", "api_key_header", "client_credentials"]


class ProviderConfig(BaseModel):
    """Connection and rate limit settings for one external provider.

    Args:
        max_requests: Requests allowed per fixed window.
        window_ms: Window length in milliseconds.
        base_url: Base URL that endpoints are resolved against.
        auth_mode: How credentials are attached to requests.
        api_key_name: Query parameter or header name carrying the API key.
        token_url: OAuth token endpoint for client-credentials auth.
        api_key: API key for key-based auth modes.
        client_id: OAuth client ID.
        client_secret: OAuth client secret.
    """

    max_requests: int = Field(ge=1)
    window_ms: int = Field(ge=1)
    base_url: str
    auth_mode: AuthMode = "none"
    api_key_name: str = "apikey"
    token_url: str | None = None
    api_key: str = ""
    client_id: str = ""
    client_secret: str = ""


def _ticketmaster_defaults() -> ProviderConfig:
    return ProviderConfig(
        max_requests=5,
        window_ms=1_000,
        base_url="https://app.ticketmaster.com/discovery/v2/",
        auth_mode="api_key_query",
        api_key_name="apikey",
    )


def _spotify_defaults() -> ProviderConfig:
    return ProviderConfig(
        max_requests=30,
        window_ms=60_000,
        base_url="https://api.spotify.com/v1/",
        auth_mode="client_credentials",
        token_url="https://accounts.spotify.com/api/token",
    )


def _setlistfm_defaults() -> ProviderConfig:
    return ProviderConfig(
        max_requests=2,
        window_ms=1_000,
        base_url="https://api.setlist.fm/rest/1.0/",
        auth_mode="api_key_header",
        api_key_name="x-api-key",
    )


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Provider limits can be tuned per environment with nested variables,
    e.g. ``SPOTIFY__MAX_REQUESTS=60``.

    Args:
        ticketmaster_api_key: Ticketmaster Discovery API key.
        spotify_client_id: Spotify application client ID.
        spotify_client_secret: Spotify application client secret.
        setlistfm_api_key: Setlist.fm API key.
        ticketmaster: Ticketmaster connection and rate limit settings.
        spotify: Spotify connection and rate limit settings.
        setlistfm: Setlist.fm connection and rate limit settings.
        data_dir: Directory for the SQLite database, logs and reports.
        max_concurrent: Maximum simultaneously running queue tasks.
        max_attempts: Attempts before a failing task is dropped.
        tick_interval: Seconds between scheduler ticks when idle.
        sync_version: Current sync logic version; bump to force a resync.
        include_artist_setlists: Queue historical setlists on artist sync.
        artist_setlist_limit: Maximum historical setlists queued per artist.
        log_level: Logging level for file output.
        console_log_level: Logging level for stderr output.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    ticketmaster_api_key: str = Field(
        default="",
        description="Ticketmaster Discovery API key",
    )
    spotify_client_id: str = Field(
        default="",
        description="Spotify application client ID",
    )
    spotify_client_secret: str = Field(
        default="",
        description="Spotify application client secret",
    )
    setlistfm_api_key: str = Field(
        default="",
        description="Setlist.fm API key",
    )

    ticketmaster: ProviderConfig = Field(default_factory=_ticketmaster_defaults)
    spotify: ProviderConfig = Field(default_factory=_spotify_defaults)
    setlistfm: ProviderConfig = Field(default_factory=_setlistfm_defaults)

    data_dir: Path = Field(
        default=Path.home() / ".concert_sync",
        description="Directory for storing application data",
    )

    max_concurrent: int = Field(
        default=3,
        ge=1,
        le=20,
        description="Maximum concurrently running sync tasks",
    )
    max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts before a failing task is dropped",
    )
    tick_interval: float = Field(
        default=5.0,
        gt=0.0,
        description="Seconds between idle scheduler ticks",
    )
    sync_version: int = Field(
        default=CURRENT_SYNC_VERSION,
        ge=1,
        description="Current sync logic version",
    )
    include_artist_setlists: bool = Field(
        default=False,
        description="Queue historical setlists when an artist is synced",
    )
    artist_setlist_limit: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum historical setlists queued per artist",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )
    console_log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Logging level for stderr output",
    )

    @property
    def db_path(self) -> Path:
        """Path to the SQLite database file."""
        return self.data_dir / "concert_sync.db"

    @property
    def reports_dir(self) -> Path:
        """Path to the reports directory."""
        return self.data_dir / "reports"

    @property
    def log_path(self) -> Path:
        """Path to the log file."""
        return self.data_dir / "concert_sync.log"

    def provider_configs(self) -> dict[str, ProviderConfig]:
        """Provider settings with credentials merged in, keyed by provider name."""
        return {
            "ticketmaster": self.ticketmaster.model_copy(
                update={"api_key": self.ticketmaster_api_key or self.ticketmaster.api_key}
            ),
            "spotify": self.spotify.model_copy(
                update={
                    "client_id": self.spotify_client_id or self.spotify.client_id,
                    "client_secret": self.spotify_client_secret
                    or self.spotify.client_secret,
                }
            ),
            "setlistfm": self.setlistfm.model_copy(
                update={"api_key": self.setlistfm_api_key or self.setlistfm.api_key}
            ),
        }

    def ensure_directories(self) -> None:
        """Create necessary directories if they don't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.reports_dir.mkdir(parents=True, exist_ok=True)


def get_settings() -> Settings:
    """Get the application settings singleton."""
    return Settings()
