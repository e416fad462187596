# kisansure/cli.py
"""
Command line for the market client and price board.

    python -m kisansure.cli states --search pra
    python -m kisansure.cli latest --commodity Onion
    python -m kisansure.cli board --commodity Tomato --location "Azadpur Delhi"

Talks to a running relay at MARKET_API_BASE (or --base-url).
"""
import sys
import json
import asyncio
import argparse
import logging
from typing import Any, Optional

from kisansure import di
from kisansure.config import settings
from kisansure.http import init_http, close_http, setup_logging
from kisansure.schemas import QueryFilters
from kisansure.services.board import PriceBoard
from kisansure.services.market import MarketClient, calculate_price_stats


def _dump(data: Any) -> None:
    if hasattr(data, "model_dump"):
        data = data.model_dump(by_alias=True)
    elif isinstance(data, list):
        data = [d.model_dump(by_alias=True) if hasattr(d, "model_dump") else d for d in data]
    print(json.dumps(data, indent=2, ensure_ascii=False))


async def _run(args: argparse.Namespace) -> int:
    await init_http()
    try:
        client = MarketClient(args.base_url) if args.base_url else di.get_market_client()
        cmd = args.command

        if cmd == "prices":
            filters = QueryFilters(
                state=args.state, district=args.district, market=args.market,
                commodity=args.commodity, variety=args.variety, grade=args.grade,
                arrival_date=args.date, limit=args.limit, offset=args.offset,
            )
            _dump(await client.get_market_prices(filters))
        elif cmd == "states":
            _dump(await client.get_states(args.search))
        elif cmd == "districts":
            _dump(await client.get_districts(args.state, args.search))
        elif cmd == "markets":
            _dump(await client.get_markets(args.state, args.district, args.search))
        elif cmd == "commodities":
            if args.state:
                _dump(await client.get_commodities_by_state(args.state, args.district, args.market, args.search))
            else:
                _dump(await client.get_commodities())
        elif cmd == "trends":
            _dump(await client.get_price_trends(args.commodity, args.market, args.days))
        elif cmd == "latest":
            _dump(await client.get_latest_prices(args.commodity))
        elif cmd == "stats":
            stats = calculate_price_stats(await client.get_latest_prices(args.commodity))
            _dump(stats)
        elif cmd == "board":
            if args.base_url or args.mode:
                board = PriceBoard(client, mode=args.mode or settings.MARKET_MODE, search=di.get_price_search())
            else:
                board = di.get_price_board()
            _dump(await board.lookup(args.commodity, args.location))
        return 0
    except Exception as e:
        print(json.dumps({"error": str(e)}, indent=2, ensure_ascii=False))
        return 1
    finally:
        await close_http()
        di.reset()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Agmarknet mandi prices via the KisanSure relay")
    parser.add_argument("--base-url", default=None, help="Relay URL, e.g. 'http://localhost:5000/api/agmarknet'")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("prices", help="Raw relay query")
    for name in ("state", "district", "market", "commodity", "variety", "grade"):
        p.add_argument(f"--{name}", default=None)
    p.add_argument("--date", default=None, help="Arrival date, e.g. '12/03/2025'")
    p.add_argument("--limit", type=int, default=None)
    p.add_argument("--offset", type=int, default=None)

    p = sub.add_parser("states", help="Unique states")
    p.add_argument("--search", default=None)

    p = sub.add_parser("districts", help="Unique districts of a state")
    p.add_argument("--state", required=True, help="e.g., 'Uttar Pradesh'")
    p.add_argument("--search", default=None)

    p = sub.add_parser("markets", help="Unique markets of a state/district")
    p.add_argument("--state", required=True)
    p.add_argument("--district", default=None)
    p.add_argument("--search", default=None)

    p = sub.add_parser("commodities", help="Unique commodities, optionally scoped")
    p.add_argument("--state", default=None)
    p.add_argument("--district", default=None)
    p.add_argument("--market", default=None)
    p.add_argument("--search", default=None)

    p = sub.add_parser("trends", help="Records for a commodity/market within the last N days")
    p.add_argument("--commodity", required=True, help="e.g., 'Tomato'")
    p.add_argument("--market", required=True, help="e.g., 'Azadpur'")
    p.add_argument("--days", type=int, default=30)

    for name, help_text in (("latest", "Latest price per market"), ("stats", "Pooled price statistics")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--commodity", required=True)

    p = sub.add_parser("board", help="Market prices board (live or demo)")
    p.add_argument("--commodity", required=True)
    p.add_argument("--location", default="", help="e.g., 'Azadpur Delhi'")
    p.add_argument("--mode", choices=("live", "demo"), default=None)
    return parser


def main(argv: Optional[list] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(logging.DEBUG if args.debug else settings.LOG_LEVEL)
    return asyncio.run(_run(args))


if __name__ == "__main__":
    sys.exit(main())
