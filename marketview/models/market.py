"""
Data models for market listings and the instrument catalog.

Instruments are immutable snapshots of one row of the markets listing;
a successful fetch replaces the whole result set instead of patching rows.
Catalog entries map a display name to the identifier the markets endpoint
accepts in its ``ids`` parameter.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Iterable

_ZERO = Decimal("0")


@dataclass(frozen=True)
class Instrument:
    """
    One row of the markets listing.

    Attributes:
        identifier: Stable API identifier (e.g. "bitcoin"), empty if absent.
        name: Display name, also used as the table row key.
        current_price: Price in the requested display currency, None if absent.
        circulating_supply: Units in circulation, None if absent.
        icon_ref: Image URL, None if absent.
        price_change_24h: Absolute 24h change; missing values read as zero.
        price_change_percentage_24h: Relative 24h change in percent; missing
            values read as zero.
    """
    identifier: str
    name: str
    current_price: Decimal | None
    circulating_supply: Decimal | None
    icon_ref: str | None
    price_change_24h: Decimal
    price_change_percentage_24h: Decimal


@dataclass(frozen=True)
class CatalogEntry:
    identifier: str
    display_name: str


@dataclass(frozen=True)
class ParseSummary:
    total: int
    kept: int
    skipped: int


def parse_decimal(value: object) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        value = repr(value)
    try:
        parsed = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not parsed.is_finite():
        return None
    return parsed


def parse_instrument(entry: object) -> Instrument | None:
    if not isinstance(entry, dict):
        return None
    name = entry.get("name")
    if not isinstance(name, str) or not name:
        return None
    identifier = entry.get("id")
    image = entry.get("image")
    return Instrument(
        identifier=identifier if isinstance(identifier, str) else "",
        name=name,
        current_price=parse_decimal(entry.get("current_price")),
        circulating_supply=parse_decimal(entry.get("circulating_supply")),
        icon_ref=image if isinstance(image, str) and image else None,
        price_change_24h=parse_decimal(entry.get("price_change_24h")) or _ZERO,
        price_change_percentage_24h=parse_decimal(entry.get("price_change_percentage_24h")) or _ZERO,
    )


def parse_instruments(payload: Iterable[object]) -> tuple[list[Instrument], ParseSummary]:
    rows = list(payload)
    instruments: list[Instrument] = []
    for entry in rows:
        instrument = parse_instrument(entry)
        if instrument is not None:
            instruments.append(instrument)
    summary = ParseSummary(total=len(rows), kept=len(instruments), skipped=len(rows) - len(instruments))
    return instruments, summary


def parse_catalog(payload: Iterable[object]) -> tuple[list[CatalogEntry], ParseSummary]:
    rows = list(payload)
    entries: list[CatalogEntry] = []
    for entry in rows:
        if not isinstance(entry, dict):
            continue
        identifier = entry.get("id")
        name = entry.get("name")
        if not isinstance(identifier, str) or not identifier:
            continue
        if not isinstance(name, str) or not name:
            continue
        entries.append(CatalogEntry(identifier=identifier, display_name=name))
    summary = ParseSummary(total=len(rows), kept=len(entries), skipped=len(rows) - len(entries))
    return entries, summary
