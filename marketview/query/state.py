"""
Query-state core: owns the filter parameters and the markets request lifecycle.

Every setter computes the markets QueryDescriptor for the proposed FilterState
and only then commits it. A descriptor equal to the latest dispatched one is a no-op;
anything else starts a fetch task tagged with a monotonically increasing
sequence number. When a fetch completes, its result is applied only if its
sequence number is still the highest issued; older completions are stale
and dropped without touching visible state.

The last successful result set and the last error are held independently,
so a failed refresh keeps the previous table on screen.

All methods run on one asyncio event loop. Setters are synchronous and must
be called while that loop is running, since dispatch schedules a task on it.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Protocol, Sequence

from marketview.catalog.resolver import CatalogResolver
from marketview.coingecko.errors import CoinGeckoHttpError, RequestTimeoutError
from marketview.models.market import CatalogEntry, Instrument
from marketview.obs.logging import log_event
from marketview.query.filters import (
    Currency,
    FilterState,
    QueryDescriptor,
    SortOrder,
    build_descriptor,
    parse_currency,
    parse_sort_order,
    validate_page,
)


class LifecycleStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class ErrorKind(str, Enum):
    NETWORK_FAILURE = "network_failure"
    TIMEOUT = "timeout"
    # Superseded completion; only ever logged.
    STALE = "stale"


@dataclass(frozen=True)
class Failure:
    kind: ErrorKind
    message: str

    @classmethod
    def from_exception(cls, exc: CoinGeckoHttpError) -> "Failure":
        kind = ErrorKind.TIMEOUT if isinstance(exc, RequestTimeoutError) else ErrorKind.NETWORK_FAILURE
        return cls(kind=kind, message=str(exc))


@dataclass(frozen=True)
class QuerySnapshot:
    """
    Read-only view handed to the rendering layer.

    Attributes:
        filters: FilterState at the time of the snapshot.
        status: Lifecycle of the latest dispatch.
        results: Last successful result set, None before the first success.
        error: Failure of the latest accepted dispatch, cleared on success.
        sequence: Highest sequence number issued so far.
        search_input: Pending, not yet committed search box text.
    """
    filters: FilterState
    status: LifecycleStatus
    results: tuple[Instrument, ...] | None
    error: Failure | None
    sequence: int
    search_input: str

    @property
    def loading(self) -> bool:
        return self.status is LifecycleStatus.LOADING

    @property
    def visible_error(self) -> Failure | None:
        """Error to show the user: only when there is no table to display."""
        if self.results:
            return None
        return self.error


class MarketsFetcher(Protocol):
    async def fetch_markets(self, descriptor: QueryDescriptor) -> Sequence[Instrument]: ...


Listener = Callable[[QuerySnapshot], None]


class QueryStateCore:
    def __init__(
        self,
        fetcher: MarketsFetcher,
        *,
        catalog: CatalogResolver | None = None,
        initial: FilterState | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._catalog = catalog if catalog is not None else CatalogResolver()
        self._filters = initial or FilterState()
        self._logger = logger or logging.getLogger(__name__)
        self._sequence = 0
        self._latest_descriptor: QueryDescriptor | None = None
        self._status = LifecycleStatus.IDLE
        self._last_good: tuple[Instrument, ...] | None = None
        self._last_error: Failure | None = None
        self._search_input = ""
        self._stale_total = 0
        self._pending: dict[int, asyncio.Task[None]] = {}
        self._listeners: list[Listener] = []

    @property
    def filters(self) -> FilterState:
        return self._filters

    @property
    def status(self) -> LifecycleStatus:
        return self._status

    @property
    def sequence(self) -> int:
        return self._sequence

    @property
    def latest_descriptor(self) -> QueryDescriptor | None:
        return self._latest_descriptor

    @property
    def stale_total(self) -> int:
        return self._stale_total

    def snapshot(self) -> QuerySnapshot:
        return QuerySnapshot(
            filters=self._filters,
            status=self._status,
            results=self._last_good,
            error=self._last_error,
            sequence=self._sequence,
            search_input=self._search_input,
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # Commands

    def start(self) -> asyncio.Task[None] | None:
        """Dispatch the query for the initial filters."""
        return self._dispatch()

    def refresh(self) -> asyncio.Task[None] | None:
        """Re-issue the current query even though the filters did not change."""
        return self._dispatch(force=True)

    def set_currency(self, currency: Currency | str) -> asyncio.Task[None] | None:
        try:
            value = parse_currency(currency)
        except ValueError as exc:
            return self._reject("currency", currency, exc)
        return self._apply(replace(self._filters, currency=value))

    def set_sort_order(self, sort_order: SortOrder | str) -> asyncio.Task[None] | None:
        try:
            value = parse_sort_order(sort_order)
        except ValueError as exc:
            return self._reject("sort_order", sort_order, exc)
        return self._apply(replace(self._filters, sort_order=value))

    def set_page(self, page_number: int, page_size: int) -> asyncio.Task[None] | None:
        try:
            validate_page(page_number, page_size)
        except ValueError as exc:
            return self._reject("page", (page_number, page_size), exc)
        return self._apply(replace(self._filters, page_number=page_number, page_size=page_size))

    def set_search_term(self, identifier: str | None) -> asyncio.Task[None] | None:
        value = identifier.strip() if identifier else ""
        return self._apply(replace(self._filters, search_identifier=value or None))

    def clear_search(self) -> asyncio.Task[None] | None:
        self._search_input = ""
        return self.set_search_term("")

    def update_search_input(self, text: str, *, limit: int | None = None) -> list[CatalogEntry]:
        """Record uncommitted search box text and return catalog suggestions for it."""
        self._search_input = text
        self._notify()
        return self._catalog.find_by_prefix(text, limit=limit)

    def select_search_name(self, display_name: str) -> asyncio.Task[None] | None:
        identifier = self._catalog.find_by_exact_name(display_name)
        if identifier is None and display_name.strip():
            # Unknown names fall back to "no filter" rather than an input error.
            log_event(
                self._logger,
                logging.INFO,
                "search_name_unresolved",
                "Search name not in catalog; clearing search filter",
                name=display_name,
            )
        self._search_input = display_name
        return self.set_search_term(identifier or "")

    async def settle(self) -> None:
        """Wait until every outstanding fetch task, stale ones included, has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending.values()))

    # Dispatch

    def _reject(self, field_name: str, value: object, exc: ValueError) -> None:
        log_event(
            self._logger,
            logging.WARNING,
            "filter_value_rejected",
            f"Rejected {field_name} value; keeping current filters",
            field=field_name,
            value=repr(value),
            error=str(exc),
        )
        return None

    def _apply(self, filters: FilterState) -> asyncio.Task[None] | None:
        task = self._dispatch(filters)
        if task is None:
            self._notify()
        return task

    def _dispatch(self, filters: FilterState | None = None, *, force: bool = False) -> asyncio.Task[None] | None:
        if filters is None:
            filters = self._filters
        descriptor = build_descriptor(filters)
        if not force and descriptor == self._latest_descriptor:
            self._filters = filters
            log_event(
                self._logger,
                logging.DEBUG,
                "markets_dispatch_skipped",
                "Query unchanged; no fetch dispatched",
                sequence=self._sequence,
            )
            return None

        # Raises outside a running loop, before any field below is touched.
        loop = asyncio.get_running_loop()
        self._filters = filters
        self._sequence += 1
        sequence = self._sequence
        self._latest_descriptor = descriptor
        self._status = LifecycleStatus.LOADING
        log_event(
            self._logger,
            logging.INFO,
            "markets_dispatched",
            "Markets fetch dispatched",
            sequence=sequence,
            params=descriptor.as_params(),
        )
        task = loop.create_task(self._run(sequence, descriptor))
        self._pending[sequence] = task
        task.add_done_callback(lambda _: self._pending.pop(sequence, None))
        self._notify()
        return task

    async def _run(self, sequence: int, descriptor: QueryDescriptor) -> None:
        try:
            instruments = await self._fetcher.fetch_markets(descriptor)
        except CoinGeckoHttpError as exc:
            self._complete(sequence, failure=Failure.from_exception(exc))
            return
        except Exception as exc:
            # Anything else still has to settle the lifecycle of this dispatch.
            log_event(
                self._logger,
                logging.ERROR,
                "markets_fetch_error",
                "Unexpected error during markets fetch",
                exc_info=exc,
                sequence=sequence,
                error_type=type(exc).__name__,
            )
            self._complete(
                sequence,
                failure=Failure(kind=ErrorKind.NETWORK_FAILURE, message=str(exc) or type(exc).__name__),
            )
            return
        self._complete(sequence, results=tuple(instruments))

    def _complete(
        self,
        sequence: int,
        *,
        results: tuple[Instrument, ...] | None = None,
        failure: Failure | None = None,
    ) -> bool:
        if sequence != self._sequence:
            self._stale_total += 1
            log_event(
                self._logger,
                logging.DEBUG,
                "markets_result_stale",
                "Discarded superseded markets result",
                sequence=sequence,
                latest_sequence=self._sequence,
                reason=ErrorKind.STALE.value,
            )
            return False

        if failure is not None:
            self._last_error = failure
            self._status = LifecycleStatus.FAILED
            log_event(
                self._logger,
                logging.WARNING,
                "markets_failed",
                "Markets fetch failed",
                sequence=sequence,
                kind=failure.kind.value,
                error=failure.message,
                keeping_rows=len(self._last_good or ()),
            )
        else:
            self._last_good = results
            self._last_error = None
            self._status = LifecycleStatus.SUCCEEDED
            log_event(
                self._logger,
                logging.INFO,
                "markets_loaded",
                "Markets loaded",
                sequence=sequence,
                rows=len(results or ()),
            )
        self._notify()
        return True

    def _notify(self) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)
