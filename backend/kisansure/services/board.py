# kisansure/services/board.py
import logging
import datetime as dt
from typing import List, Optional

from kisansure.schemas import BoardResult, PriceRecord
from kisansure.services.market import MarketClient, calculate_price_stats
from kisansure.tools.price_search import PriceSearch, PriceSearchError

logger = logging.getLogger(__name__)

MODES = ("live", "demo")


def demo_record(commodity: Optional[str] = None, today: Optional[dt.date] = None) -> PriceRecord:
    """Placeholder row shown in demo mode and when no live source has data."""
    return PriceRecord(
        commodity=commodity or "Potato",
        market="Delhi Mandi",
        state="Delhi",
        min_price="1200",
        max_price="1500",
        modal_price="1350",
        arrival_date=(today or dt.date.today()).isoformat(),
    )


def _state_hint(location: str) -> str:
    # "Azadpur Delhi" -> "Delhi"
    words = location.split()
    return words[-1] if words else ""


class PriceBoard:
    """
    Market prices table for one commodity and a free-text location.

    live: Agmarknet latest prices (narrowed to the location's state when that
          leaves rows), then web-search snippets, then the demo row.
    demo: the demo row only, no network.
    """

    def __init__(self, client: MarketClient, mode: str = "live", search: Optional[PriceSearch] = None) -> None:
        if mode not in MODES:
            raise ValueError(f"MARKET_MODE must be one of {MODES}, got {mode!r}")
        self.client = client
        self.mode = mode
        self.search = search

    def _result(self, source: str, commodity: str, location: str,
                records: List[PriceRecord], error: Optional[str] = None) -> BoardResult:
        return BoardResult(
            mode=self.mode,
            source=source,
            commodity=commodity,
            location=location,
            records=records,
            stats=calculate_price_stats(records),
            error=error,
        )

    async def lookup(self, commodity: str, location: str = "") -> BoardResult:
        if self.mode == "demo":
            return self._result("demo", commodity, location, [demo_record(commodity)])

        records = await self.client.get_latest_prices(commodity)
        hint = _state_hint(location).lower()
        if hint:
            narrowed = [r for r in records if hint in r.state.lower()]
            if narrowed:
                records = narrowed
        if records:
            return self._result("agmarknet", commodity, location, records)

        error = None
        if self.search is not None:
            try:
                found = await self.search.search(commodity, location)
            except PriceSearchError as e:
                logger.warning("Price search failed: %s", e)
                error = str(e)
            else:
                if found:
                    return self._result("search", commodity, location, found)

        logger.info("No live prices for %r in %r, showing demo row", commodity, location)
        return self._result("demo", commodity, location, [demo_record(commodity)],
                            error=error or "No live prices found")
