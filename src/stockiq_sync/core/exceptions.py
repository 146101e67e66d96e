"""Custom exception hierarchy for stockiq-sync."""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class FailureKind(StrEnum):
    """Classification of an upstream failure, used by the retry policy."""

    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    FATAL = "fatal"


class StockSyncError(Exception):
    """Base exception for all stockiq-sync errors.

    All exceptions carry an optional `context` dict for structured error
    metadata that can be logged or serialized without parsing the message.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = context or {}


class ConfigError(StockSyncError):
    """Invalid or missing configuration.

    Raised by load_config() during startup. Should be treated as fatal.

    Context keys:
        field (str): the config field that failed validation
        value (Any): the invalid value
    """


class UpstreamError(StockSyncError):
    """A third-party data source failed to answer a request.

    Context keys:
        provider (str): "sec", "yahoo", "clinicaltrials"
        url (str): the URL that was being fetched
        status_code (int | None): HTTP status if one was received
    """

    @property
    def provider(self) -> str | None:
        return self.context.get("provider")


class TransientUpstreamError(UpstreamError):
    """Rate-limited (429) or server-side (5xx, HTML error page) failure.

    Policy: retried with exponential backoff by RateLimitedClient.retry().
    """

    def __init__(
        self,
        message: str,
        kind: FailureKind = FailureKind.SERVER_ERROR,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context)
        self.kind = kind


class RateLimitError(UpstreamError):
    """Retries exhausted while the upstream kept rate limiting us.

    Policy: surface to the enclosing subsystem, which falls back to cache.

    Context keys:
        provider (str): the offending upstream
        suggested_delay (float): seconds the caller should wait before retrying
    """

    def __init__(self, provider: str, suggested_delay: float):
        super().__init__(
            f"Rate limit exceeded for {provider}",
            context={"provider": provider, "suggested_delay": suggested_delay},
        )
        self.suggested_delay = suggested_delay


class PermanentUpstreamError(UpstreamError):
    """Non-retryable upstream failure (other 4xx, malformed payload).

    Policy: raise immediately; never retried.
    """


class PartialFetchError(StockSyncError):
    """Some of several required sub-fetches failed.

    Policy: the enclosing operation merges `partial` with cached state and
    carries on. It does not fail the whole call.

    Context keys:
        symbol (str): the symbol being synchronized
        failed (list[str]): descriptions of the sub-fetches that failed
    """

    def __init__(
        self,
        message: str,
        partial: Any = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context)
        self.partial = partial


class ParseError(StockSyncError):
    """An unparseable date or malformed filing fragment.

    Policy: skip the candidate. Never aborts extraction or sync.

    Context keys:
        fragment (str): the text that failed to parse
    """


class StorageError(StockSyncError):
    """Cache backend operation failed.

    Context keys:
        operation (str): "get", "set", "delete", "initialize"
        key (str): the cache key involved
    """
