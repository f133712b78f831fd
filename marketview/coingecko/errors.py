"""
CoinGecko API error classification for retry and lifecycle reporting.

- **RateLimitedError (429)**: API rate limit exceeded, retry with backoff
- **TransientHttpError (5xx, connection errors)**: temporary failure, retry
- **RequestTimeoutError**: transport timeout, retry; reported as a timeout
- **FatalHttpError (other 4xx, malformed payloads)**: permanent failure, no retry

Every class derives from CoinGeckoHttpError, which is what the query-state
core treats as a network failure.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class CoinGeckoHttpError(Exception):
    """
    Base exception for all CoinGecko API HTTP errors.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code (None for non-HTTP errors).
        response_text: Raw response body text.
        payload: Parsed response payload if available.
    """
    message: str
    status_code: int | None = None
    response_text: str | None = None
    payload: Any | None = None

    def __str__(self) -> str:
        parts = [self.message]
        if self.status_code is not None:
            parts.append(f"status={self.status_code}")
        if self.response_text:
            parts.append(f"response={self.response_text}")
        return " | ".join(parts)


class RateLimitedError(CoinGeckoHttpError):
    """HTTP 429 - the public API throttled this client."""


class TransientHttpError(CoinGeckoHttpError):
    """
    Temporary/retryable HTTP error.

    Raised for 5xx server errors, connection errors and invalid JSON.
    """


class RequestTimeoutError(TransientHttpError):
    """The transport gave up waiting for a response."""


class FatalHttpError(CoinGeckoHttpError):
    """
    Permanent/non-retryable HTTP error.

    Raised for 4xx client errors (except 429) and responses whose shape
    does not match the endpoint's schema.
    """
