from __future__ import annotations

import logging
from typing import Protocol, Sequence

from marketview.coingecko.errors import CoinGeckoHttpError
from marketview.models.market import CatalogEntry
from marketview.obs.logging import log_event


class CatalogUnavailableError(RuntimeError):
    """Raised when the bulk instrument listing cannot be fetched."""


class CatalogSource(Protocol):
    async def fetch_catalog(self) -> list[CatalogEntry]: ...


async def load_all(source: CatalogSource, *, logger: logging.Logger | None = None) -> list[CatalogEntry]:
    logger = logger or logging.getLogger(__name__)
    try:
        entries = await source.fetch_catalog()
    except CoinGeckoHttpError as exc:
        log_event(
            logger,
            logging.WARNING,
            "catalog_unavailable",
            "Instrument catalog could not be loaded; search disabled",
            error=str(exc),
        )
        raise CatalogUnavailableError(str(exc)) from exc

    log_event(logger, logging.INFO, "catalog_loaded", "Instrument catalog loaded", entries=len(entries))
    return entries


def _fold(value: str, case_insensitive: bool) -> str:
    return value.casefold() if case_insensitive else value


class CatalogResolver:
    """
    Read-only name -> identifier lookup over the instrument catalog.

    Entries keep the order the listing returned them in; lookups scan that
    order so the first matching entry wins when display names repeat.
    """

    def __init__(self, entries: Sequence[CatalogEntry] = ()) -> None:
        self._entries = tuple(entries)
        self._by_folded_name: dict[str, str] = {}
        for entry in self._entries:
            self._by_folded_name.setdefault(entry.display_name.casefold(), entry.identifier)

    @classmethod
    async def bootstrap(
        cls,
        source: CatalogSource,
        *,
        logger: logging.Logger | None = None,
    ) -> "CatalogResolver":
        """Load the catalog once; an unavailable catalog yields an empty resolver."""
        try:
            entries = await load_all(source, logger=logger)
        except CatalogUnavailableError:
            return cls()
        return cls(entries)

    @property
    def entries(self) -> tuple[CatalogEntry, ...]:
        return self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def find_by_exact_name(self, name: str, case_insensitive: bool = True) -> str | None:
        needle = name.strip()
        if not needle:
            return None
        if case_insensitive:
            return self._by_folded_name.get(needle.casefold())
        for entry in self._entries:
            if entry.display_name == needle:
                return entry.identifier
        return None

    def find_by_prefix(
        self,
        prefix: str,
        case_insensitive: bool = True,
        *,
        limit: int | None = None,
    ) -> list[CatalogEntry]:
        # Nothing until the user types.
        if not prefix:
            return []
        needle = _fold(prefix, case_insensitive)
        matches: list[CatalogEntry] = []
        for entry in self._entries:
            if _fold(entry.display_name, case_insensitive).startswith(needle):
                matches.append(entry)
                if limit is not None and len(matches) >= limit:
                    break
        return matches
