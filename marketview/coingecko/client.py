from __future__ import annotations

import asyncio
import logging
import random
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

from marketview.config import ApiConfig
from marketview.coingecko.errors import (
    CoinGeckoHttpError,
    FatalHttpError,
    RateLimitedError,
    RequestTimeoutError,
    TransientHttpError,
)
from marketview.coingecko.ratelimit import TokenBucket
from marketview.models.market import CatalogEntry, Instrument, parse_catalog, parse_instruments
from marketview.obs.logging import log_event

MARKETS_ENDPOINT = "/api/v3/coins/markets"
CATALOG_ENDPOINT = "/api/v3/coins/list"

if TYPE_CHECKING:
    from marketview.query.filters import QueryDescriptor


@dataclass
class ClientMetrics:
    http_requests_total: dict[tuple[str, str], int] = field(default_factory=lambda: defaultdict(int))
    http_retries_total: dict[tuple[str, str], int] = field(default_factory=lambda: defaultdict(int))
    http_latency_ms: dict[str, list[float]] = field(default_factory=lambda: defaultdict(list))

    def record_request(self, endpoint: str, status: str, latency_ms: float) -> None:
        self.http_requests_total[(endpoint, status)] += 1
        self.http_latency_ms[endpoint].append(latency_ms)

    def record_retry(self, endpoint: str, reason: str) -> None:
        self.http_retries_total[(endpoint, reason)] += 1


class CoinGeckoClient:
    def __init__(
        self,
        config: ApiConfig,
        *,
        logger: logging.Logger | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        rate_limiter: TokenBucket | None = None,
    ) -> None:
        self._config = config
        self._logger = logger or logging.getLogger(__name__)
        self._metrics = ClientMetrics()
        timeout = httpx.Timeout(
            connect=config.timeout_s,
            read=config.timeout_s,
            write=config.timeout_s,
            pool=config.timeout_s,
        )
        self._client = httpx.AsyncClient(base_url=config.base_url, timeout=timeout, transport=transport)
        self._rate_limiter = rate_limiter or TokenBucket(rate_per_sec=config.max_rps)

    @property
    def metrics(self) -> ClientMetrics:
        return self._metrics

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_markets(self, descriptor: QueryDescriptor) -> list[Instrument]:
        payload = await self._request("GET", MARKETS_ENDPOINT, params=descriptor.as_params())
        if not isinstance(payload, list):
            raise FatalHttpError("coins/markets response must be a list", payload=payload)
        instruments, summary = parse_instruments(payload)
        if summary.skipped:
            log_event(
                self._logger,
                logging.WARNING,
                "markets_rows_skipped",
                "Skipped malformed markets rows",
                total=summary.total,
                skipped=summary.skipped,
            )
        return instruments

    async def fetch_catalog(self) -> list[CatalogEntry]:
        payload = await self._request("GET", CATALOG_ENDPOINT)
        if not isinstance(payload, list):
            raise FatalHttpError("coins/list response must be a list", payload=payload)
        entries, summary = parse_catalog(payload)
        if summary.skipped:
            log_event(
                self._logger,
                logging.WARNING,
                "catalog_rows_skipped",
                "Skipped malformed catalog rows",
                total=summary.total,
                skipped=summary.skipped,
            )
        return entries

    async def _request(self, method: str, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        attempts = self._config.max_retries + 1

        for attempt in range(1, attempts + 1):
            await self._rate_limiter.acquire()
            start = time.monotonic()

            try:
                response = await self._client.request(method, endpoint, params=params)
                latency_ms = (time.monotonic() - start) * 1000
                self._metrics.record_request(endpoint, str(response.status_code), latency_ms)
                log_event(
                    self._logger,
                    logging.INFO,
                    "http_request",
                    f"{method} {endpoint}",
                    endpoint=endpoint,
                    status=response.status_code,
                    attempt=attempt,
                    latency_ms=round(latency_ms, 2),
                )

                if response.status_code == 429:
                    log_event(
                        self._logger,
                        logging.WARNING,
                        "api_rate_limited",
                        "Rate limit response received; backing off",
                        endpoint=endpoint,
                        status=response.status_code,
                        attempt=attempt,
                    )
                    if attempt <= self._config.max_retries:
                        self._metrics.record_retry(endpoint, "rate_limited")
                        await self._backoff_sleep(attempt)
                        continue
                    raise RateLimitedError("Rate limit exceeded", status_code=429, response_text=response.text)

                if response.status_code >= 500:
                    log_event(
                        self._logger,
                        logging.WARNING,
                        "api_server_error",
                        "Server error response received; backing off",
                        endpoint=endpoint,
                        status=response.status_code,
                        attempt=attempt,
                    )
                    if attempt <= self._config.max_retries:
                        self._metrics.record_retry(endpoint, "server_error")
                        await self._backoff_sleep(attempt)
                        continue
                    raise TransientHttpError(
                        "Server error", status_code=response.status_code, response_text=response.text
                    )

                if response.status_code >= 400:
                    raise FatalHttpError(
                        "HTTP error", status_code=response.status_code, response_text=response.text
                    )

                try:
                    return response.json()
                except ValueError as exc:
                    # JSONDecodeError and UnicodeDecodeError both derive from ValueError.
                    raise TransientHttpError(
                        "Invalid JSON response", status_code=response.status_code, response_text=response.text
                    ) from exc

            except httpx.TimeoutException as exc:
                latency_ms = (time.monotonic() - start) * 1000
                self._metrics.record_request(endpoint, "timeout", latency_ms)
                log_event(
                    self._logger,
                    logging.WARNING,
                    "http_request",
                    f"{method} {endpoint}",
                    endpoint=endpoint,
                    status=None,
                    attempt=attempt,
                    latency_ms=round(latency_ms, 2),
                )
                if attempt <= self._config.max_retries:
                    self._metrics.record_retry(endpoint, "timeout")
                    await self._backoff_sleep(attempt)
                    continue
                self._log_fail(endpoint, "timeout")
                raise RequestTimeoutError("Request timed out") from exc

            except httpx.RequestError as exc:
                latency_ms = (time.monotonic() - start) * 1000
                self._metrics.record_request(endpoint, "connection_error", latency_ms)
                log_event(
                    self._logger,
                    logging.WARNING,
                    "http_request",
                    f"{method} {endpoint}",
                    endpoint=endpoint,
                    status=None,
                    attempt=attempt,
                    latency_ms=round(latency_ms, 2),
                )
                if attempt <= self._config.max_retries:
                    self._metrics.record_retry(endpoint, "connection_error")
                    await self._backoff_sleep(attempt)
                    continue
                self._log_fail(endpoint, "connection_error")
                raise TransientHttpError("Request failed", payload=str(exc)) from exc

            except CoinGeckoHttpError as exc:
                self._log_fail(endpoint, type(exc).__name__)
                raise

        raise TransientHttpError("Request failed after retries")

    async def _backoff_sleep(self, attempt: int) -> None:
        base = self._config.backoff_base_s
        capped = min(self._config.backoff_max_s, base * (2 ** (attempt - 1)))
        jitter = random.uniform(0, base)
        await asyncio.sleep(min(self._config.backoff_max_s, capped + jitter))

    def _log_fail(self, endpoint: str, error_type: str) -> None:
        log_event(
            self._logger,
            logging.ERROR,
            "http_fail",
            f"Request failed for {endpoint}",
            endpoint=endpoint,
            error_type=error_type,
        )
