"""HTTP client for JSON feeds.

Wraps ``httpx.AsyncClient`` with the feed's authentication scheme, a JSON
``Accept`` header and retry with exponential backoff.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import httpx

from ..utils.constants import (
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_RETRY_SLEEP_MS,
    DEFAULT_RETRY_TIMES,
    DEFAULT_USER_AGENT,
)
from ..utils.exceptions import ConfigurationError, FeedDecodeError, FeedFetchError

logger = logging.getLogger(__name__)

AUTH_MODES = ("none", "bearer", "basic", "query")


def label_from_url(url: str) -> str:
    """
    Short human label for a URL: host plus its last path segment.

    Example:
        >>> label_from_url("https://api.example.com/v1/feed/blocks?page=2")
        'api.example.com/.../blocks'
    """
    parsed = urlparse(url)
    host = parsed.hostname or "feed"
    segments = [segment for segment in parsed.path.split("/") if segment]
    if not segments:
        return host
    if len(segments) == 1:
        return f"{host}/{segments[0]}"
    return f"{host}/.../{segments[-1]}"


def human_size(size: int) -> str:
    """Format a byte count as B/KB/MB/GB with two decimals."""
    value = float(size)
    for unit in ("B", "KB", "MB"):
        if value < 1024:
            return f"{value:.2f} {unit}"
        value /= 1024
    return f"{value:.2f} GB"


@dataclass
class FetchResult:
    """A successful HTTP response body and its transfer metadata."""

    url: str
    body: bytes
    http_status: int = 200
    elapsed_seconds: float = 0.0
    label: str = ""

    def __post_init__(self) -> None:
        if not self.label:
            self.label = label_from_url(self.url)

    def decoded(self) -> Any:
        """Decode the body as JSON, raising ``FeedDecodeError`` when it is not."""
        try:
            return json.loads(self.body)
        except (ValueError, UnicodeDecodeError) as e:
            raise FeedDecodeError(f"Response from {self.url} is not valid JSON: {e}") from e

    def checksum(self) -> str:
        return hashlib.sha1(self.body).hexdigest()

    def size_bytes(self) -> int:
        return len(self.body)

    def human_size(self) -> str:
        return human_size(self.size_bytes())


class FeedClient:
    """Async client for fetching feed payloads.

    Features:
    - Bearer, basic or query-parameter authentication
    - Exponential backoff between attempts: ``retry_sleep_ms * 2**(attempt-1)``
    - Non-2xx statuses count as failures and are retried
    - One pooled ``httpx.AsyncClient`` per instance, closed via ``close()``
      or ``async with``
    """

    def __init__(
        self,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        retry_times: int = DEFAULT_RETRY_TIMES,
        retry_sleep_ms: int = DEFAULT_RETRY_SLEEP_MS,
        verify_ssl: bool = True,
        auth_mode: str = "none",
        token: str = "",
        username: str = "",
        password: str = "",
        query_param: str = "token",
        user_agent: str = DEFAULT_USER_AGENT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the feed client.

        Args:
            timeout: Request timeout in seconds
            retry_times: Total attempts per URL (at least 1)
            retry_sleep_ms: Base backoff delay in milliseconds
            verify_ssl: Verify TLS certificates
            auth_mode: One of none, bearer, basic, query
            token: Token for bearer and query auth
            username: Username for basic auth
            password: Password for basic auth
            query_param: Query parameter name for query auth
            user_agent: User-Agent header value
            transport: Optional httpx transport (used by tests)
        """
        if auth_mode not in AUTH_MODES:
            raise ConfigurationError(f"Unknown feed auth mode: {auth_mode}")

        self.retry_times = max(1, retry_times)
        self.retry_sleep_ms = retry_sleep_ms
        self.auth_mode = auth_mode
        self.token = token
        self.query_param = query_param

        headers = {"Accept": "application/json", "User-Agent": user_agent}
        auth: Optional[httpx.BasicAuth] = None
        if auth_mode == "bearer" and token:
            headers["Authorization"] = f"Bearer {token}"
        elif auth_mode == "basic":
            auth = httpx.BasicAuth(username, password)

        self._client = httpx.AsyncClient(
            timeout=timeout,
            verify=verify_ssl,
            headers=headers,
            auth=auth,
            follow_redirects=True,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Any, **overrides: Any) -> "FeedClient":
        """Build a client from the application ``Settings``."""
        options: Dict[str, Any] = {
            "timeout": settings.http.timeout,
            "retry_times": settings.http.retry_times,
            "retry_sleep_ms": settings.http.retry_sleep_ms,
            "verify_ssl": settings.http.verify_ssl,
            "user_agent": settings.http.user_agent,
            "auth_mode": settings.auth.mode,
            "token": settings.auth.token,
            "username": settings.auth.username,
            "password": settings.auth.password,
            "query_param": settings.auth.param,
        }
        options.update(overrides)
        return cls(**options)

    async def fetch(self, url: str) -> FetchResult:
        """Fetch ``url``, retrying with backoff.

        Args:
            url: Absolute URL to GET

        Returns:
            FetchResult for the first 2xx response

        Raises:
            FeedFetchError: When every attempt failed
        """
        params = None
        if self.auth_mode == "query" and self.token:
            params = {self.query_param: self.token}

        last_error = ""
        last_status: Optional[int] = None

        for attempt in range(1, self.retry_times + 1):
            started = time.perf_counter()
            try:
                response = await self._client.get(url, params=params)
            except httpx.HTTPError as e:
                last_error = f"{type(e).__name__}: {e}"
                logger.warning(f"Fetch {url} attempt {attempt}/{self.retry_times} failed: {last_error}")
            else:
                elapsed = round(time.perf_counter() - started, 3)
                if response.is_success:
                    logger.debug(f"Fetched {url} ({len(response.content)} bytes, {elapsed:.3f}s)")
                    return FetchResult(
                        url=url,
                        body=response.content,
                        http_status=response.status_code,
                        elapsed_seconds=elapsed,
                    )
                last_status = response.status_code
                last_error = f"HTTP {response.status_code}"
                logger.warning(f"Fetch {url} attempt {attempt}/{self.retry_times} returned {last_error}")

            if attempt < self.retry_times:
                await self._backoff_delay(attempt)

        raise FeedFetchError(
            f"Failed to fetch {url} after {self.retry_times} attempts: {last_error}",
            url=url,
            status_code=last_status,
            attempts=self.retry_times,
        )

    async def _backoff_delay(self, attempt: int) -> None:
        delay = (self.retry_sleep_ms / 1000.0) * (2 ** (attempt - 1))
        if delay > 0:
            await asyncio.sleep(delay)

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "FeedClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
