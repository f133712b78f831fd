from decimal import Decimal

from marketview.config import ViewConfig
from marketview.models.market import Instrument
from marketview.query.filters import Currency, FilterState
from marketview.query.pagination import pagination_for
from marketview.query.state import ErrorKind, Failure, LifecycleStatus, QuerySnapshot
from marketview.render.table import (
    FETCH_ERROR_MESSAGE,
    build_rows,
    format_change_percent,
    format_currency,
    format_supply,
    render_text,
)

BITCOIN = Instrument(
    identifier="bitcoin",
    name="Bitcoin",
    current_price=Decimal("64250.5"),
    circulating_supply=Decimal("19700000.0"),
    icon_ref="https://assets.example/bitcoin.png",
    price_change_24h=Decimal("-120.25"),
    price_change_percentage_24h=Decimal("-0.187"),
)


def _snapshot(results, error=None, filters=None) -> QuerySnapshot:
    return QuerySnapshot(
        filters=filters or FilterState(),
        status=LifecycleStatus.FAILED if error else LifecycleStatus.SUCCEEDED,
        results=results,
        error=error,
        sequence=1,
        search_input="",
    )


def test_format_currency() -> None:
    assert format_currency(Decimal("64250.5"), Currency.USD) == "$64,250.50"
    assert format_currency(Decimal("0.004"), Currency.EUR) == "€0.00"
    assert format_currency(Decimal("-3.125"), Currency.USD) == "-$3.13"
    assert format_currency(None, Currency.USD) == "-"


def test_format_change_percent() -> None:
    up = format_change_percent(Decimal("2.345"))
    down = format_change_percent(Decimal("-0.187"))
    flat = format_change_percent(Decimal("0"))

    assert (up.arrow, up.text, up.direction) == ("↑", "2.35%", "up")
    assert (down.arrow, down.text, down.direction) == ("↓", "0.19%", "down")
    assert str(flat) == "↑ 0.00%"


def test_format_supply() -> None:
    assert format_supply(Decimal("19700000.0")) == "19,700,000"
    assert format_supply(Decimal("1234.5")) == "1,234.5"
    assert format_supply(None) == "-"


def test_rows_keyed_by_name() -> None:
    rows = build_rows([BITCOIN], Currency.EUR)

    assert rows[0].key == "Bitcoin"
    assert rows[0].price == "€64,250.50"
    assert rows[0].change.direction == "down"


def test_error_banner_only_without_rows() -> None:
    failure = Failure(kind=ErrorKind.NETWORK_FAILURE, message="Server error")
    pagination = pagination_for(FilterState(), ViewConfig())

    with_rows = render_text(_snapshot((BITCOIN,), error=failure), pagination)
    without_rows = render_text(_snapshot(None, error=failure), pagination)

    assert "Bitcoin" in with_rows
    assert FETCH_ERROR_MESSAGE not in with_rows
    assert FETCH_ERROR_MESSAGE in without_rows


def test_pagination_uses_configured_estimate() -> None:
    pagination = pagination_for(FilterState(page_number=4, page_size=20), ViewConfig(total_rows_estimate=1000))

    assert pagination.current == 4
    assert pagination.page_size_options == (5, 10, 20, 50, 100)
    assert pagination.total_rows == 1000
    assert pagination.page_count == 50
    assert "Page 4 of ~50" in render_text(_snapshot(()), pagination)
