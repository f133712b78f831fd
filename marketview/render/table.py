from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Sequence

from marketview.models.market import Instrument
from marketview.query.filters import Currency
from marketview.query.pagination import PaginationInfo
from marketview.query.state import QuerySnapshot

FETCH_ERROR_MESSAGE = "Failed to fetch data. Wait a moment and please try again."
COLUMNS: tuple[str, ...] = ("Name", "Current Price", "Circulating Supply", "Price Change % (24h)")

_CURRENCY_SYMBOLS = {Currency.USD: "$", Currency.EUR: "€"}
_CENT = Decimal("0.01")


@dataclass(frozen=True)
class ChangeCell:
    arrow: str
    text: str
    direction: str

    def __str__(self) -> str:
        return f"{self.arrow} {self.text}"


@dataclass(frozen=True)
class TableRow:
    key: str
    name: str
    icon_ref: str | None
    price: str
    supply: str
    change: ChangeCell


def _group(value: Decimal) -> str:
    quantized = value.quantize(_CENT, rounding=ROUND_HALF_UP)
    return f"{quantized:,.2f}"


def format_currency(value: Decimal | None, currency: Currency) -> str:
    if value is None:
        return "-"
    symbol = _CURRENCY_SYMBOLS[currency]
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{_group(abs(value))}"


def format_supply(value: Decimal | None) -> str:
    if value is None:
        return "-"
    return f"{value.normalize():,f}"


def format_change_percent(value: Decimal) -> ChangeCell:
    if value >= 0:
        return ChangeCell(arrow="↑", text=f"{_group(abs(value))}%", direction="up")
    return ChangeCell(arrow="↓", text=f"{_group(abs(value))}%", direction="down")


def build_rows(instruments: Sequence[Instrument], currency: Currency) -> list[TableRow]:
    return [
        TableRow(
            key=instrument.name,
            name=instrument.name,
            icon_ref=instrument.icon_ref,
            price=format_currency(instrument.current_price, currency),
            supply=format_supply(instrument.circulating_supply),
            change=format_change_percent(instrument.price_change_percentage_24h),
        )
        for instrument in instruments
    ]


def render_text(snapshot: QuerySnapshot, pagination: PaginationInfo) -> str:
    """Plain-text rendering of the current table for terminal output."""
    lines: list[str] = []
    rows = build_rows(snapshot.results or (), snapshot.filters.currency)
    cells = [(row.name, row.price, row.supply, str(row.change)) for row in rows]
    widths = [len(title) for title in COLUMNS]
    for cell_row in cells:
        widths = [max(width, len(cell)) for width, cell in zip(widths, cell_row)]

    lines.append("  ".join(title.ljust(width) for title, width in zip(COLUMNS, widths)))
    lines.append("  ".join("-" * width for width in widths))
    for cell_row in cells:
        lines.append("  ".join(cell.ljust(width) for cell, width in zip(cell_row, widths)))

    if snapshot.visible_error is not None:
        lines.append("")
        lines.append(FETCH_ERROR_MESSAGE)

    lines.append("")
    lines.append(
        f"Page {pagination.current} of ~{pagination.page_count} "
        f"({pagination.page_size} per page; sizes {', '.join(str(size) for size in pagination.page_size_options)})"
    )
    return "\n".join(lines)
