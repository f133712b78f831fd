from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from secrets import token_hex

import httpx

from marketview.catalog.resolver import CatalogResolver
from marketview.coingecko.client import CoinGeckoClient
from marketview.config import PAGE_SIZE_OPTIONS, AppConfig, ConfigError, load_config
from marketview.obs.logging import LogSettings, build_logger, log_event
from marketview.query.filters import Currency, FilterState, SortOrder, parse_currency, parse_sort_order
from marketview.query.pagination import pagination_for
from marketview.query.state import QueryStateCore
from marketview.render.table import render_text

EXIT_OK = 0
EXIT_FETCH_ERROR = 1
EXIT_CONFIG_ERROR = 2


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Coins & Markets viewer")
    subparsers = parser.add_subparsers(dest="command", required=True)

    markets_parser = subparsers.add_parser("markets", help="Show one page of the markets table")
    markets_parser.add_argument("--config", help="Path to config YAML")
    markets_parser.add_argument("--currency", choices=[currency.value for currency in Currency])
    markets_parser.add_argument("--order", choices=[order.value for order in SortOrder])
    markets_parser.add_argument("--page", type=int, help="Page number (1-based)")
    markets_parser.add_argument("--per-page", type=int, choices=PAGE_SIZE_OPTIONS)
    markets_parser.add_argument("--search", help="Exact instrument name to filter on")
    markets_parser.add_argument("--log-level", default="WARNING", help="Logging level")

    suggest_parser = subparsers.add_parser("suggest", help="List catalog names starting with a prefix")
    suggest_parser.add_argument("prefix", help="Name prefix as typed in the search box")
    suggest_parser.add_argument("--config", help="Path to config YAML")
    suggest_parser.add_argument("--limit", type=int, default=10, help="Maximum suggestions")
    suggest_parser.add_argument("--log-level", default="WARNING", help="Logging level")

    return parser.parse_args(argv)


def generate_session_id() -> str:
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%SZ")
    return f"{timestamp}_{token_hex(3)}"


def initial_filters(args: argparse.Namespace, config: AppConfig) -> FilterState:
    view = config.view
    return FilterState(
        currency=parse_currency(args.currency or view.default_currency),
        sort_order=parse_sort_order(args.order or view.default_sort_order),
        page_size=args.per_page or view.default_page_size,
        page_number=args.page if args.page is not None else 1,
    )


async def run_markets(
    args: argparse.Namespace,
    config: AppConfig,
    logger: logging.Logger,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> int:
    try:
        filters = initial_filters(args, config)
    except ValueError as exc:
        log_event(logger, logging.ERROR, "config_invalid", str(exc))
        return EXIT_CONFIG_ERROR

    client = CoinGeckoClient(config.api, logger=logger, transport=transport)
    try:
        catalog = CatalogResolver()
        if args.search:
            catalog = await CatalogResolver.bootstrap(client, logger=logger)
        core = QueryStateCore(client, catalog=catalog, initial=filters, logger=logger)
        if args.search:
            core.select_search_name(args.search)
        core.start()
        await core.settle()
    finally:
        await client.aclose()

    snapshot = core.snapshot()
    print(render_text(snapshot, pagination_for(snapshot.filters, config.view)))
    return EXIT_FETCH_ERROR if snapshot.visible_error is not None else EXIT_OK


async def run_suggest(
    args: argparse.Namespace,
    config: AppConfig,
    logger: logging.Logger,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> int:
    client = CoinGeckoClient(config.api, logger=logger, transport=transport)
    try:
        catalog = await CatalogResolver.bootstrap(client, logger=logger)
    finally:
        await client.aclose()

    for entry in catalog.find_by_prefix(args.prefix, limit=args.limit):
        print(f"{entry.display_name} ({entry.identifier})")
    return EXIT_OK


def main(argv: list[str] | None = None, *, transport: httpx.AsyncBaseTransport | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    session_id = generate_session_id()

    logger = build_logger(
        LogSettings(level=args.log_level.upper(), session_id=session_id, log_file=None, jsonl=True)
    )

    config = AppConfig()
    if args.config:
        try:
            config = load_config(Path(args.config)).config
        except ConfigError as exc:
            log_event(logger, logging.ERROR, "config_invalid", str(exc))
            return EXIT_CONFIG_ERROR
        if not config.obs.log_jsonl:
            logger = build_logger(
                LogSettings(level=args.log_level.upper(), session_id=session_id, log_file=None, jsonl=False)
            )

    if args.command == "markets":
        return asyncio.run(run_markets(args, config, logger, transport=transport))
    if args.command == "suggest":
        return asyncio.run(run_suggest(args, config, logger, transport=transport))
    raise ValueError(f"Unsupported command: {args.command}")


if __name__ == "__main__":
    raise SystemExit(main())
