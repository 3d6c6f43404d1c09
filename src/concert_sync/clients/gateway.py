"""Rate-limited gateway through which every provider call passes."""

import asyncio
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import httpx

from concert_sync.clients.http import (
    DEFAULT_TIMEOUT,
    ProviderNotConfigured,
    RateLimitTimeout,
    clean_params,
    raise_for_provider_status,
    retry_on_transient_error,
)
from concert_sync.config import ProviderConfig
from concert_sync.logging import get_logger
from concert_sync.state.cache import TTLCache

logger = get_logger("clients.gateway")

WINDOW_BUFFER_MS = 50
TOKEN_REFRESH_MARGIN = 60  # seconds before expiry
TOKEN_CACHE_PREFIX = "token:"


@dataclass
class RateLimitBucket:
    """Fixed-window request counter for one provider.

    Args:
        provider: Provider name.
        max_requests: Requests allowed per window.
        window_ms: Window length in milliseconds.
        current_count: Requests issued in the current window.
        window_started_at: Monotonic time the current window opened.
    """

    provider: str
    max_requests: int
    window_ms: int
    current_count: int = 0
    window_started_at: float = field(default_factory=time.monotonic)

    def elapsed_ms(self, now: float) -> float:
        """Milliseconds since the current window opened."""
        return (now - self.window_started_at) * 1000

    def reset(self, now: float) -> None:
        """Open a new, empty window at ``now``."""
        self.current_count = 0
        self.window_started_at = now


class RateLimitedGateway:
    """Throttles and authenticates outbound provider calls.

    Each provider gets its own fixed-window bucket. A call that finds the
    window full suspends until the window has passed, then opens a new one.
    Non-2xx answers surface as ProviderHttpError and are never retried here.

    Supports async context manager protocol for proper resource cleanup:
        async with RateLimitedGateway(providers, cache) as gateway:
            await gateway.call("ticketmaster", "events", {"size": 10})

    Args:
        providers: Provider settings keyed by provider name.
        cache: Cache used for OAuth access tokens.
        http_client: Optional shared HTTP client; one is created if omitted.
        clock: Monotonic time source in seconds.
        sleep: Coroutine used to suspend while waiting for capacity.
    """

    def __init__(
        self,
        providers: Mapping[str, ProviderConfig],
        cache: TTLCache,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._providers = dict(providers)
        self._cache = cache
        self._clock = clock
        self._sleep = sleep
        self._buckets = {
            name: RateLimitBucket(
                provider=name,
                max_requests=config.max_requests,
                window_ms=config.window_ms,
                window_started_at=clock(),
            )
            for name, config in self._providers.items()
        }
        self._locks = {name: asyncio.Lock() for name in self._providers}
        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(
            timeout=DEFAULT_TIMEOUT,
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
        )

    async def __aenter__(self) -> "RateLimitedGateway":
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager and close the HTTP client."""
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this gateway created it."""
        if self._owns_http_client:
            await self._http_client.aclose()

    @property
    def providers(self) -> list[str]:
        """Names of configured providers."""
        return list(self._providers)

    def bucket(self, provider: str) -> RateLimitBucket:
        """Get the rate limit bucket for a provider.

        Raises:
            ProviderNotConfigured: If the provider is unknown.
        """
        try:
            return self._buckets[provider]
        except KeyError:
            raise ProviderNotConfigured(provider) from None

    async def acquire(self, provider: str, deadline: float | None = None) -> float:
        """Reserve one request slot, suspending until the window allows it.

        Waiters for the same provider are served one at a time, so callers
        queued behind a full window all land in the next one.

        Args:
            provider: Provider name.
            deadline: Maximum seconds the caller is willing to wait.

        Returns:
            Seconds spent waiting for window capacity.

        Raises:
            ProviderNotConfigured: If the provider is unknown.
            RateLimitTimeout: If the required wait exceeds the deadline.
        """
        bucket = self.bucket(provider)
        started = self._clock()
        lock = self._locks[provider]
        try:
            async with asyncio.timeout(deadline):
                await lock.acquire()
        except TimeoutError:
            raise RateLimitTimeout(provider, self._clock() - started, deadline) from None

        try:
            now = self._clock()
            if bucket.elapsed_ms(now) > bucket.window_ms:
                bucket.reset(now)

            waited = 0.0
            if bucket.current_count >= bucket.max_requests:
                wait_ms = bucket.window_ms - bucket.elapsed_ms(now) + WINDOW_BUFFER_MS
                waited = max(wait_ms, 0.0) / 1000
                if deadline is not None:
                    remaining = deadline - (now - started)
                    if waited > remaining:
                        raise RateLimitTimeout(provider, waited, deadline)
                logger.info(
                    "Rate limit reached for %s, waiting %.0fms", provider, wait_ms
                )
                await self._sleep(waited)
                bucket.reset(self._clock())

            bucket.current_count += 1
            return waited
        finally:
            lock.release()

    async def call(
        self,
        provider: str,
        endpoint: str,
        params: Mapping[str, Any] | None = None,
        *,
        deadline: float | None = None,
    ) -> Any:
        """Call a provider endpoint under its rate limit.

        Args:
            provider: Provider name.
            endpoint: Endpoint path relative to the provider base URL.
            params: Query parameters; None values are dropped.
            deadline: Maximum seconds to wait for rate limit capacity.

        Returns:
            Decoded JSON response body.

        Raises:
            ProviderNotConfigured: If the provider or its credentials are missing.
            ProviderHttpError: If the provider answers with a non-2xx status.
            RateLimitTimeout: If the deadline is exceeded while waiting.
        """
        config = self._config(provider)
        await self.acquire(provider, deadline=deadline)

        query = clean_params(params)
        headers = {"Accept": "application/json"}

        if config.auth_mode == "api_key_query":
            query[config.api_key_name] = self._require(provider, config.api_key, "API key")
        elif config.auth_mode == "api_key_header":
            headers[config.api_key_name] = self._require(
                provider, config.api_key, "API key"
            )
        elif config.auth_mode == "client_credentials":
            token = await self._access_token(provider, config)
            headers["Authorization"] = f"Bearer {token}"

        url = httpx.URL(config.base_url).join(endpoint)
        logger.debug("%s GET %s", provider, endpoint)
        response = await self._http_client.get(url, params=query, headers=headers)
        raise_for_provider_status(response, provider, endpoint)
        return response.json()

    def _config(self, provider: str) -> ProviderConfig:
        try:
            return self._providers[provider]
        except KeyError:
            raise ProviderNotConfigured(provider) from None

    @staticmethod
    def _require(provider: str, value: str, label: str) -> str:
        if not value:
            raise ProviderNotConfigured(provider, f"missing {label}")
        return value

    async def _access_token(self, provider: str, config: ProviderConfig) -> str:
        """Get a client-credentials access token, cached until shortly before expiry.

        Args:
            provider: Provider name, used as the cache key.
            config: Provider settings with token URL and client credentials.

        Returns:
            Bearer access token.
        """
        cache_key = f"{TOKEN_CACHE_PREFIX}{provider}"
        cached = self._cache.get(cache_key)
        if cached:
            return cached

        self._require(provider, config.client_id, "client ID")
        self._require(provider, config.client_secret, "client secret")
        if not config.token_url:
            raise ProviderNotConfigured(provider, "missing token URL")

        token, expires_in = await self._fetch_token(provider, config)
        self._cache.set(cache_key, token, ttl=max(expires_in - TOKEN_REFRESH_MARGIN, 0))
        logger.info("Obtained %s access token valid for %ss", provider, expires_in)
        return token

    @retry_on_transient_error
    async def _fetch_token(self, provider: str, config: ProviderConfig) -> tuple[str, int]:
        response = await self._http_client.post(
            config.token_url,
            data={"grant_type": "client_credentials"},
            auth=(config.client_id, config.client_secret),
        )
        raise_for_provider_status(response, provider, "token")
        payload = response.json()
        return payload["access_token"], int(payload.get("expires_in", 3600))
