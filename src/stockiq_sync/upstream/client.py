"""Rate-limited async HTTP client shared by every upstream adapter."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import httpx

from stockiq_sync.core.config import RetryConfig
from stockiq_sync.core.exceptions import (
    FailureKind,
    PermanentUpstreamError,
    RateLimitError,
    TransientUpstreamError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MAX_LOGGED_BODY = 200

_RATE_LIMIT_MARKERS = ("429", "too many", "rate limit", "blocked")
_HTML_MARKERS = ("<!doctype html", "<html")

Sleeper = Callable[[float], Awaitable[None]]


class RateLimiter:
    """Minimum-interval throttle for one upstream.

    One instance per upstream, shared by every caller of that upstream.
    Concurrent callers queue behind the single timestamp; two callers that
    read it at the same moment may both proceed (small bursts are tolerated).

    Parameters
    ----------
    min_interval : float
        Minimum seconds between two requests.
    clock : Callable[[], float]
        Monotonic clock. Injected in tests.
    sleep : Callable[[float], Awaitable[None]]
        Async sleep. Injected in tests.
    """

    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._last_request_time: float | None = None

    async def wait(self) -> None:
        """Sleep until min_interval has passed since the previous request."""
        if self._last_request_time is not None:
            elapsed = self._clock() - self._last_request_time
            if elapsed < self.min_interval:
                await self._sleep(self.min_interval - elapsed)
        self._last_request_time = self._clock()


def truncate_body(body: str, limit: int = _MAX_LOGGED_BODY) -> str:
    """Shorten a response body (usually an HTML error page) for logging."""
    body = " ".join(body.split())
    if len(body) <= limit:
        return body
    return body[:limit] + "..."


def looks_like_html(body: str) -> bool:
    head = body.lstrip()[:100].lower()
    return any(head.startswith(marker) for marker in _HTML_MARKERS)


def classify_failure(exc: BaseException) -> FailureKind:
    """Decide whether a failure is worth retrying.

    Typed errors carry their own kind. httpx status errors are classified by
    status code; transport-level connect/timeout errors count as server
    errors. Anything else is sniffed by message before falling back to FATAL.
    """
    if isinstance(exc, TransientUpstreamError):
        return exc.kind
    if isinstance(exc, (PermanentUpstreamError, RateLimitError)):
        return FailureKind.FATAL
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        if status == 429:
            return FailureKind.RATE_LIMITED
        if status >= 500:
            return FailureKind.SERVER_ERROR
        return FailureKind.FATAL
    if isinstance(exc, (httpx.TimeoutException, httpx.ConnectError)):
        return FailureKind.SERVER_ERROR

    message = str(exc).lower()
    if any(marker in message for marker in _RATE_LIMIT_MARKERS):
        return FailureKind.RATE_LIMITED
    if any(marker in message for marker in _HTML_MARKERS):
        return FailureKind.SERVER_ERROR
    return FailureKind.FATAL


class RateLimitedClient:
    """Throttled, retrying HTTP client for a single upstream.

    All methods are async. Use via ``async with RateLimitedClient(...) as c:``
    or call ``close()`` explicitly. Pass ``client`` to share an existing
    ``httpx.AsyncClient``; it is then not closed by this object.

    Parameters
    ----------
    provider : str
        Upstream name, used in logs and in RateLimitError.
    limiter : RateLimiter
        The upstream's throttle.
    retry : RetryConfig | None
        Backoff policy. Defaults to 5 attempts starting at 2 seconds.
    headers : dict[str, str] | None
        Default request headers (e.g. SEC's mandatory User-Agent).
    timeout : float
        Per-request timeout in seconds.
    client : httpx.AsyncClient | None
        Optional externally-owned HTTP client.
    sleep : Callable[[float], Awaitable[None]]
        Async sleep used for backoff. Injected in tests.
    """

    def __init__(
        self,
        provider: str,
        limiter: RateLimiter,
        retry: RetryConfig | None = None,
        headers: dict[str, str] | None = None,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self.provider = provider
        self.limiter = limiter
        self._retry_config = retry or RetryConfig()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            headers=headers or {},
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
        )
        if client is not None and headers:
            self._client.headers.update(headers)
        self._sleep = sleep

    async def __aenter__(self) -> RateLimitedClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client if this object created it."""
        if self._owns_client:
            await self._client.aclose()

    @property
    def is_closed(self) -> bool:
        return self._client.is_closed

    # --- Single request ---

    async def fetch(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Issue one throttled GET and convert error statuses to typed errors.

        Raises:
            TransientUpstreamError: HTTP 429 (RATE_LIMITED) or 5xx (SERVER_ERROR).
            PermanentUpstreamError: Any other non-2xx status.
        """
        await self.limiter.wait()
        response = await self._client.get(url, params=params, headers=headers)

        if response.is_success:
            return response

        context = {
            "provider": self.provider,
            "url": url,
            "status_code": response.status_code,
        }
        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            if retry_after is not None:
                context["retry_after"] = retry_after
            raise TransientUpstreamError(
                f"HTTP 429 Too Many Requests from {url}",
                kind=FailureKind.RATE_LIMITED,
                context=context,
            )
        if response.status_code >= 500:
            context["body"] = truncate_body(response.text)
            raise TransientUpstreamError(
                f"Server error {response.status_code} from {url}",
                kind=FailureKind.SERVER_ERROR,
                context=context,
            )
        raise PermanentUpstreamError(
            f"HTTP {response.status_code} from {url}",
            context=context,
        )

    async def fetch_json(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """GET a JSON document with throttling and retry.

        An HTML body on a JSON endpoint is the upstream's error page and is
        treated as a server error; any other undecodable body is permanent.
        """

        async def attempt() -> Any:
            response = await self.fetch(url, params=params, headers=headers)
            text = response.text
            if looks_like_html(text):
                raise TransientUpstreamError(
                    f"HTML error page from {url}",
                    kind=FailureKind.SERVER_ERROR,
                    context={
                        "provider": self.provider,
                        "url": url,
                        "body": truncate_body(text),
                    },
                )
            try:
                return response.json()
            except ValueError as e:
                raise PermanentUpstreamError(
                    f"Malformed JSON from {url}",
                    context={
                        "provider": self.provider,
                        "url": url,
                        "body": truncate_body(text),
                    },
                ) from e

        return await self.retry(attempt)

    async def fetch_text(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> str:
        """GET a text document (e.g. filing HTML) with throttling and retry."""

        async def attempt() -> str:
            response = await self.fetch(url, params=params, headers=headers)
            return response.text

        return await self.retry(attempt)

    # --- Retry ---

    async def retry(
        self,
        fn: Callable[[], Awaitable[T]],
        retries: int | None = None,
        base_delay: float | None = None,
    ) -> T:
        """Run ``fn`` with exponential backoff on transient failures.

        Retry policy:
            - RATE_LIMITED / SERVER_ERROR: sleep ``delay`` then retry; the
              delay doubles after each attempt.
            - FATAL: re-raise immediately.
            - Exhausted on RATE_LIMITED: raise RateLimitError carrying the
              provider and the next delay as a suggestion.
            - Exhausted on anything else: re-raise the last error.
        """
        retries = retries if retries is not None else self._retry_config.retries
        delay = base_delay if base_delay is not None else self._retry_config.base_delay

        for attempt in range(retries):
            try:
                return await fn()
            except Exception as e:
                kind = classify_failure(e)
                if kind == FailureKind.FATAL:
                    raise

                if attempt == retries - 1:
                    logger.error(
                        "%s: all %d attempts failed: %s",
                        self.provider, retries, truncate_body(str(e)),
                    )
                    if kind == FailureKind.RATE_LIMITED:
                        raise RateLimitError(self.provider, delay) from e
                    raise

                logger.warning(
                    "%s: %s, retrying in %.1fs (attempt %d/%d): %s",
                    self.provider, kind.value, delay, attempt + 2, retries,
                    truncate_body(str(e)),
                )
                await self._sleep(delay)
                delay *= 2

        raise RuntimeError("retry() called with retries < 1")
