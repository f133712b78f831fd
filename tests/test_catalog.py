import asyncio
import logging

import pytest

from marketview.catalog.resolver import CatalogResolver, CatalogUnavailableError, load_all
from marketview.coingecko.errors import TransientHttpError
from marketview.models.market import CatalogEntry

ENTRIES = [
    CatalogEntry(identifier="bitcoin", display_name="Bitcoin"),
    CatalogEntry(identifier="ethereum", display_name="Ethereum"),
    CatalogEntry(identifier="bitcoin-cash", display_name="Bitcoin Cash"),
    CatalogEntry(identifier="bittensor", display_name="Bittensor"),
    CatalogEntry(identifier="wrapped-bitcoin", display_name="Wrapped Bitcoin"),
    CatalogEntry(identifier="bitcoin-bep2", display_name="bitcoin"),
]


class StubSource:
    def __init__(self, entries: list[CatalogEntry] | None = None, error: Exception | None = None):
        self._entries = entries or []
        self._error = error
        self.calls = 0

    async def fetch_catalog(self) -> list[CatalogEntry]:
        self.calls += 1
        if self._error is not None:
            raise self._error
        return self._entries


def test_prefix_search_keeps_catalog_order() -> None:
    resolver = CatalogResolver(ENTRIES)

    names = [entry.display_name for entry in resolver.find_by_prefix("Bit")]

    assert names == ["Bitcoin", "Bitcoin Cash", "Bittensor", "bitcoin"]


def test_empty_prefix_matches_nothing() -> None:
    resolver = CatalogResolver(ENTRIES)

    assert resolver.find_by_prefix("") == []


def test_prefix_case_sensitive_and_limit() -> None:
    resolver = CatalogResolver(ENTRIES)

    assert [entry.identifier for entry in resolver.find_by_prefix("bit", case_insensitive=False)] == ["bitcoin-bep2"]
    assert len(resolver.find_by_prefix("bit", limit=2)) == 2


def test_exact_name_first_entry_wins() -> None:
    resolver = CatalogResolver(ENTRIES)

    assert resolver.find_by_exact_name("BITCOIN") == "bitcoin"
    assert resolver.find_by_exact_name("bitcoin", case_insensitive=False) == "bitcoin-bep2"
    assert resolver.find_by_exact_name("  Bitcoin Cash ") == "bitcoin-cash"


def test_exact_name_absent() -> None:
    resolver = CatalogResolver(ENTRIES)

    assert resolver.find_by_exact_name("Bitco") is None
    assert resolver.find_by_exact_name("") is None


def test_load_all_wraps_transport_failure(caplog: pytest.LogCaptureFixture) -> None:
    source = StubSource(error=TransientHttpError("Server error", status_code=503))

    with caplog.at_level(logging.WARNING):
        with pytest.raises(CatalogUnavailableError):
            asyncio.run(load_all(source))

    assert "Instrument catalog could not be loaded" in caplog.text


def test_bootstrap_degrades_to_empty_resolver() -> None:
    source = StubSource(error=TransientHttpError("Request failed"))

    resolver = asyncio.run(CatalogResolver.bootstrap(source))

    assert len(resolver) == 0
    assert resolver.find_by_prefix("Bit") == []
    assert resolver.find_by_exact_name("Bitcoin") is None


def test_bootstrap_fetches_once() -> None:
    source = StubSource(entries=ENTRIES)

    resolver = asyncio.run(CatalogResolver.bootstrap(source))
    resolver.find_by_prefix("B")
    resolver.find_by_prefix("Bi")
    resolver.find_by_prefix("Bit")

    assert source.calls == 1
    assert resolver.entries == tuple(ENTRIES)
