"""HTTP utilities and errors for provider clients."""

from collections.abc import Mapping
from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from concert_sync.errors import ConcertSyncError

DEFAULT_TIMEOUT = httpx.Timeout(30.0, connect=10.0)

RETRYABLE_EXCEPTIONS = (
    httpx.ConnectError,
    httpx.ReadTimeout,
    httpx.WriteTimeout,
    httpx.ConnectTimeout,
)


def retry_on_transient_error(func):
    """Decorator that retries on transient HTTP errors.

    Retries up to 3 times with exponential backoff (1-10 seconds).
    Only connection errors and timeouts are retried; HTTP status errors
    propagate immediately.

    Args:
        func: The function to wrap.

    Returns:
        Wrapped function with retry logic.
    """
    return retry(
        retry=retry_if_exception_type(RETRYABLE_EXCEPTIONS),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )(func)


class ProviderError(ConcertSyncError):
    """Base class for errors talking to an external provider."""


class ProviderHttpError(ProviderError):
    """Raised when a provider answers with a non-2xx status."""

    def __init__(self, provider: str, status: int, endpoint: str):
        self.provider = provider
        self.status = status
        self.endpoint = endpoint
        super().__init__(f"{provider} returned HTTP {status} for {endpoint}")


class ProviderNotConfigured(ProviderError):
    """Raised when a provider is unknown or its credentials are missing."""

    def __init__(self, provider: str, detail: str = "not configured"):
        self.provider = provider
        super().__init__(f"Provider {provider}: {detail}")


class RateLimitTimeout(ProviderError):
    """Raised when waiting for rate limit capacity would exceed a deadline."""

    def __init__(self, provider: str, wait_seconds: float, deadline: float):
        self.provider = provider
        self.wait_seconds = wait_seconds
        self.deadline = deadline
        super().__init__(
            f"{provider} rate limit wait of {wait_seconds:.2f}s exceeds "
            f"deadline of {deadline:.2f}s"
        )


def raise_for_provider_status(
    response: httpx.Response, provider: str, endpoint: str
) -> None:
    """Raise ProviderHttpError for any non-2xx response.

    Args:
        response: The HTTP response to check.
        provider: Provider name for the error.
        endpoint: Endpoint that was called.

    Raises:
        ProviderHttpError: If the status is outside 200-299.
    """
    if not response.is_success:
        raise ProviderHttpError(provider, response.status_code, endpoint)


def clean_params(params: Mapping[str, Any] | None) -> dict[str, str]:
    """Drop None values and stringify the rest for use as query parameters."""
    if not params:
        return {}
    return {key: str(value) for key, value in params.items() if value is not None}
