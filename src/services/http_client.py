"""Async HTTP client wrapper with configurable error handling and retry logic.

Both outbound integrations (the Kan REST API and the Telegram Bot API) go
through ``AsyncHttpClient`` so timeouts and retry behaviour are configured in
one place.

Usage Examples:

    # Raise on errors, retry transient failures
    client = AsyncHttpClient(retry_config=RetryConfig(max_attempts=3))
    response = await client.get("https://tasks.example.com/api/v1/workspaces/abc")

    # Log and return None instead of raising
    client = AsyncHttpClient(
        error_config=ErrorConfig(strategy=ErrorStrategy.LOG_AND_RETURN_NONE)
    )
    response = await client.post(url, json=payload)
    if response is None:
        return False
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum

import httpx

from config import settings

logger = logging.getLogger(__name__)


class ErrorStrategy(Enum):
    """Strategy for handling HTTP errors.

    - RAISE: Re-raise the final exception
    - LOG_AND_RETURN_NONE: Log the failure and return None
    """

    RAISE = "raise"
    LOG_AND_RETURN_NONE = "log_and_return_none"


@dataclass
class ErrorConfig:
    """Configuration for error handling behavior.

    Args:
        strategy: How to handle HTTP errors
        log_level: Logging level for errors (default: ERROR)
        include_response_body: Whether to log response body on errors
    """

    strategy: ErrorStrategy = ErrorStrategy.RAISE
    log_level: int = logging.ERROR
    include_response_body: bool = False


@dataclass
class RetryConfig:
    """Configuration for retry logic with exponential backoff.

    Args:
        max_attempts: Maximum number of attempts (including initial attempt)
        retry_status_codes: HTTP status codes that should trigger a retry
        backoff_factor: Multiplier for exponential backoff (delay = backoff_factor * 2^attempt)
        max_backoff: Maximum backoff delay in seconds
        retry_exceptions: Exception types that should trigger a retry
    """

    max_attempts: int = 3
    retry_status_codes: set[int] = field(default_factory=lambda: {429, 500, 502, 503, 504})
    backoff_factor: float = 1.0
    max_backoff: float = 30.0
    retry_exceptions: tuple[type[Exception], ...] = (
        httpx.ConnectError,
        httpx.ReadTimeout,
        httpx.PoolTimeout,
    )

    def delay_for(self, attempt: int) -> float:
        return min(self.backoff_factor * (2**attempt), self.max_backoff)


class AsyncHttpClient:
    """Async HTTP client with configurable error handling and retries.

    A fresh ``httpx.AsyncClient`` is opened per request, with the default
    timeouts taken from ``settings.http``.

    Args:
        timeout: Request timeout in seconds (default: settings.http.timeout)
        connect_timeout: Connection timeout in seconds (default: settings.http.connect_timeout)
        error_config: Error handling configuration
        retry_config: Retry configuration (None = no retries)
        transport: Optional httpx transport, mainly for tests
    """

    def __init__(
        self,
        timeout: int | None = None,
        connect_timeout: int | None = None,
        error_config: ErrorConfig | None = None,
        retry_config: RetryConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout = timeout if timeout is not None else settings.http.timeout
        self.connect_timeout = (
            connect_timeout if connect_timeout is not None else settings.http.connect_timeout
        )
        self.error_config = error_config or ErrorConfig()
        self.retry_config = retry_config
        self._transport = transport

    async def get(self, url: str, **kwargs) -> httpx.Response | None:
        """Perform an async GET request."""
        return await self._request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs) -> httpx.Response | None:
        """Perform an async POST request."""
        return await self._request("POST", url, **kwargs)

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response | None:
        if self.retry_config is None:
            try:
                return await self._send(method, url, **kwargs)
            except (httpx.HTTPStatusError, httpx.RequestError) as e:
                return self._handle_error(e, method, url)
        return await self._execute_with_retry(method, url, **kwargs)

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout, connect=self.connect_timeout),
            transport=self._transport,
        ) as client:
            response = await client.request(method, url, **kwargs)
            response.raise_for_status()
            return response

    async def _execute_with_retry(self, method: str, url: str, **kwargs) -> httpx.Response | None:
        """Execute an HTTP request with retry logic and exponential backoff."""
        assert self.retry_config is not None
        retry = self.retry_config
        last_exception: Exception | None = None

        for attempt in range(retry.max_attempts):
            try:
                return await self._send(method, url, **kwargs)
            except httpx.HTTPStatusError as e:
                last_exception = e
                if e.response.status_code not in retry.retry_status_codes:
                    return self._handle_error(e, method, url)
                reason = f"status {e.response.status_code}"
            except retry.retry_exceptions as e:
                last_exception = e
                reason = type(e).__name__
            except httpx.RequestError as e:
                # Non-retryable request error
                last_exception = e
                break

            if attempt + 1 >= retry.max_attempts:
                break
            delay = retry.delay_for(attempt)
            logger.warning(
                "HTTP %s %s failed with %s, retrying in %.1fs (attempt %s/%s)",
                method,
                _redact(url),
                reason,
                delay,
                attempt + 1,
                retry.max_attempts,
            )
            await asyncio.sleep(delay)

        return self._handle_error(last_exception, method, url)

    def _handle_error(self, error: Exception, method: str, url: str) -> httpx.Response | None:
        """Handle HTTP errors according to configured strategy."""
        if self.error_config.strategy == ErrorStrategy.RAISE:
            raise error

        error_msg = f"HTTP {method} {_redact(url)} failed: {type(error).__name__}"
        if isinstance(error, httpx.HTTPStatusError):
            error_msg += f" (status {error.response.status_code})"
            if self.error_config.include_response_body:
                error_msg += f"\nResponse body: {error.response.text}"
        logger.log(self.error_config.log_level, error_msg)
        return None


def _redact(url: str) -> str:
    """Hide Telegram bot tokens embedded in request paths."""
    marker = "/bot"
    start = url.find(marker)
    if start == -1:
        return url
    end = url.find("/", start + len(marker))
    if end == -1:
        return url
    return f"{url[:start]}/bot<redacted>{url[end:]}"
