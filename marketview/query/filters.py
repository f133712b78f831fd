"""
Filter parameters and their projection onto the markets query.

FilterState holds the five user-controlled parameters. build_descriptor is
a pure function of it: equal filter states always produce equal (and
hashable) QueryDescriptor values, so the query-state core can compare
descriptors by value to decide whether a new fetch is needed.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from marketview.config import PAGE_SIZE_OPTIONS


class Currency(str, Enum):
    USD = "USD"
    EUR = "EUR"


class SortOrder(str, Enum):
    CAP_DESC = "cap_desc"
    CAP_ASC = "cap_asc"


_ORDER_PARAMS = {
    SortOrder.CAP_DESC: "market_cap_desc",
    SortOrder.CAP_ASC: "market_cap_asc",
}


def parse_currency(value: Currency | str) -> Currency:
    if isinstance(value, Currency):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Unsupported currency: {value!r}")
    try:
        return Currency(value.strip().upper())
    except ValueError:
        raise ValueError(f"Unsupported currency: {value!r}") from None


def parse_sort_order(value: SortOrder | str) -> SortOrder:
    if isinstance(value, SortOrder):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Unsupported sort order: {value!r}")
    normalized = value.strip().lower()
    # Accept the API spelling too, the way a sort dropdown reports it.
    for order, api_value in _ORDER_PARAMS.items():
        if normalized == api_value:
            return order
    try:
        return SortOrder(normalized)
    except ValueError:
        raise ValueError(f"Unsupported sort order: {value!r}") from None


def validate_page(page_number: int, page_size: int) -> None:
    if isinstance(page_number, bool) or not isinstance(page_number, int) or page_number < 1:
        raise ValueError(f"page_number must be an integer >= 1, got {page_number!r}")
    if isinstance(page_size, bool) or page_size not in PAGE_SIZE_OPTIONS:
        raise ValueError(f"page_size must be one of {list(PAGE_SIZE_OPTIONS)}, got {page_size!r}")


@dataclass(frozen=True)
class FilterState:
    currency: Currency = Currency.USD
    sort_order: SortOrder = SortOrder.CAP_DESC
    page_size: int = 10
    page_number: int = 1
    search_identifier: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.currency, Currency):
            raise ValueError(f"currency must be a Currency, got {self.currency!r}")
        if not isinstance(self.sort_order, SortOrder):
            raise ValueError(f"sort_order must be a SortOrder, got {self.sort_order!r}")
        validate_page(self.page_number, self.page_size)


@dataclass(frozen=True)
class QueryDescriptor:
    """Exact parameter set for one markets request, sorted by key."""

    params: tuple[tuple[str, str], ...]

    @classmethod
    def from_params(cls, params: dict[str, str]) -> "QueryDescriptor":
        return cls(params=tuple(sorted(params.items())))

    def as_params(self) -> dict[str, str]:
        return dict(self.params)

    @property
    def has_search(self) -> bool:
        return any(key == "ids" for key, _ in self.params)


def build_descriptor(state: FilterState) -> QueryDescriptor:
    params = {
        "vs_currency": state.currency.value.lower(),
        "order": _ORDER_PARAMS[state.sort_order],
        "per_page": str(state.page_size),
        "page": str(state.page_number),
        "sparkline": "false",
    }
    # An empty ids parameter makes the API return zero rows, so "no search" is absence.
    if state.search_identifier:
        params["ids"] = state.search_identifier
    return QueryDescriptor.from_params(params)
