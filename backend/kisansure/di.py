"""
Dependency injection container for the application.
Constructs singletons and provides them to routes, the CLI and tests.
"""
from typing import Optional

import httpx

from kisansure.config import get_settings
from kisansure.http import get_http_client
from kisansure.services.board import PriceBoard
from kisansure.services.market import MarketClient
from kisansure.tools.price_search import PriceSearch

# Singletons - created once and reused
_market_client: Optional[MarketClient] = None
_price_search: Optional[PriceSearch] = None
_price_board: Optional[PriceBoard] = None


def get_http() -> httpx.AsyncClient:
    """Shared outbound HTTP client (opened in the app lifespan)."""
    return get_http_client()


def get_market_client() -> MarketClient:
    """Get singleton market data client, pointed at MARKET_API_BASE."""
    global _market_client
    if _market_client is None:
        _market_client = MarketClient(get_settings().MARKET_API_BASE, http=get_http_client())
    return _market_client


def get_price_search() -> Optional[PriceSearch]:
    """Get singleton web-search scraper, or None when SERPER_API_KEY is unset."""
    global _price_search
    settings = get_settings()
    if _price_search is None and settings.SERPER_API_KEY:
        _price_search = PriceSearch(settings.SERPER_API_KEY, url=settings.SERPER_URL, http=get_http_client())
    return _price_search


def get_price_board() -> PriceBoard:
    """Get singleton price board."""
    global _price_board
    if _price_board is None:
        _price_board = PriceBoard(
            client=get_market_client(),
            mode=get_settings().MARKET_MODE,
            search=get_price_search(),
        )
    return _price_board


def reset() -> None:
    """Drop all singletons (after close_http() or in tests)."""
    global _market_client, _price_search, _price_board
    _market_client = None
    _price_search = None
    _price_board = None
