# kisansure/services/market.py
import math
import logging
import datetime as dt
from typing import Dict, Iterable, List, Optional, Tuple

import httpx

from kisansure.http import get_http_client
from kisansure.schemas import PriceRecord, PricesPayload, PriceStats, QueryFilters

logger = logging.getLogger(__name__)

ENUMERATION_FETCH = 10000
COMMODITY_FETCH = 2000
LATEST_FETCH = 100
TREND_FETCH_LIMIT = 1000

FETCH_FAILED = "Failed to fetch market prices"

# -------------------------------
# Static fallback tables
# -------------------------------
FALLBACK_STATES = sorted([
    "Andhra Pradesh", "Arunachal Pradesh", "Assam", "Bihar", "Chhattisgarh",
    "Goa", "Gujarat", "Haryana", "Himachal Pradesh", "Jharkhand", "Karnataka",
    "Kerala", "Madhya Pradesh", "Maharashtra", "Manipur", "Meghalaya",
    "Mizoram", "Nagaland", "Odisha", "Punjab", "Rajasthan", "Sikkim",
    "Tamil Nadu", "Telangana", "Tripura", "Uttar Pradesh", "Uttarakhand",
    "West Bengal", "Delhi", "Jammu and Kashmir", "Ladakh", "Chandigarh",
    "Dadra and Nagar Haveli and Daman and Diu", "Lakshadweep", "Puducherry",
    "Andaman and Nicobar Islands",
])

FALLBACK_COMMODITIES = sorted([
    "Wheat", "Rice", "Maize", "Bajra", "Jowar", "Ragi", "Pulses",
    "Potato", "Tomato", "Onion", "Garlic", "Ginger", "Turmeric",
    "Cotton", "Sugarcane", "Tea", "Coffee", "Cardamom", "Pepper",
])

STATE_COMMODITIES: Dict[str, List[str]] = {
    "West Bengal": ["Rice", "Jute", "Tea", "Potato", "Tomato", "Onion", "Mustard", "Pulses"],
    "Maharashtra": ["Cotton", "Sugarcane", "Soybean", "Tur", "Wheat", "Jowar", "Bajra", "Pulses"],
    "Punjab": ["Wheat", "Rice", "Cotton", "Sugarcane", "Maize", "Pulses", "Oilseeds"],
    "Uttar Pradesh": ["Wheat", "Rice", "Sugarcane", "Potato", "Pulses", "Oilseeds", "Cotton"],
    "Madhya Pradesh": ["Wheat", "Soybean", "Pulses", "Oilseeds", "Cotton", "Sugarcane"],
    "Karnataka": ["Rice", "Ragi", "Jowar", "Bajra", "Cotton", "Sugarcane", "Coffee", "Cardamom"],
    "Tamil Nadu": ["Rice", "Sugarcane", "Cotton", "Pulses", "Oilseeds", "Coffee", "Tea"],
    "Andhra Pradesh": ["Rice", "Cotton", "Sugarcane", "Pulses", "Oilseeds", "Tobacco"],
    "Telangana": ["Rice", "Cotton", "Sugarcane", "Pulses", "Oilseeds", "Maize"],
    "Gujarat": ["Cotton", "Groundnut", "Wheat", "Pulses", "Oilseeds", "Sugarcane"],
    "Rajasthan": ["Wheat", "Bajra", "Jowar", "Pulses", "Oilseeds", "Cotton"],
    "Bihar": ["Rice", "Wheat", "Maize", "Pulses", "Oilseeds", "Sugarcane"],
    "Odisha": ["Rice", "Pulses", "Oilseeds", "Sugarcane", "Cotton"],
    "Assam": ["Rice", "Tea", "Jute", "Pulses", "Oilseeds"],
    "Jharkhand": ["Rice", "Wheat", "Maize", "Pulses", "Oilseeds"],
    "Chhattisgarh": ["Rice", "Wheat", "Pulses", "Oilseeds", "Sugarcane"],
    "Haryana": ["Wheat", "Rice", "Cotton", "Sugarcane", "Pulses", "Oilseeds"],
    "Himachal Pradesh": ["Wheat", "Maize", "Rice", "Pulses", "Oilseeds"],
    "Uttarakhand": ["Rice", "Wheat", "Pulses", "Oilseeds", "Sugarcane"],
    "Jammu and Kashmir": ["Rice", "Wheat", "Maize", "Pulses", "Oilseeds"],
    "Ladakh": ["Barley", "Wheat", "Pulses", "Oilseeds"],
    "Delhi": ["Wheat", "Rice", "Pulses", "Oilseeds", "Vegetables"],
    "Chandigarh": ["Wheat", "Rice", "Pulses", "Oilseeds"],
    "Goa": ["Rice", "Coconut", "Cashew", "Pulses", "Oilseeds"],
    "Manipur": ["Rice", "Pulses", "Oilseeds", "Vegetables"],
    "Meghalaya": ["Rice", "Maize", "Pulses", "Oilseeds"],
    "Mizoram": ["Rice", "Maize", "Pulses", "Oilseeds"],
    "Nagaland": ["Rice", "Maize", "Pulses", "Oilseeds"],
    "Sikkim": ["Rice", "Maize", "Pulses", "Oilseeds"],
    "Tripura": ["Rice", "Jute", "Pulses", "Oilseeds"],
    "Arunachal Pradesh": ["Rice", "Maize", "Pulses", "Oilseeds"],
    "Dadra and Nagar Haveli and Daman and Diu": ["Rice", "Pulses", "Oilseeds"],
    "Lakshadweep": ["Coconut", "Pulses", "Oilseeds"],
    "Puducherry": ["Rice", "Pulses", "Oilseeds"],
    "Andaman and Nicobar Islands": ["Rice", "Pulses", "Oilseeds"],
}


class MarketDataError(RuntimeError):
    """The relay call failed. The message is always FETCH_FAILED; the cause is chained."""


# -------------------------------
# Helper Functions
# -------------------------------
def parse_arrival_date(s: Optional[str]) -> Optional[dt.date]:
    """Parse 'DD/MM/YYYY' (data.gov.in) or ISO 'YYYY-MM-DD[...]' into a date."""
    if not s:
        return None
    s = s.strip()
    for fmt in ("%d/%m/%Y", "%Y-%m-%d", "%d-%m-%Y"):
        try:
            return dt.datetime.strptime(s, fmt).date()
        except ValueError:
            continue
    try:
        return dt.datetime.fromisoformat(s).date()
    except ValueError:
        return None


def _date_key(record: PriceRecord) -> dt.date:
    return parse_arrival_date(record.arrival_date) or dt.date.min


def _to_price(x: str) -> Optional[float]:
    try:
        v = float(x)
    except (TypeError, ValueError):
        return None
    return v if math.isfinite(v) else None


def distinct_sorted(values: Iterable[str], search: Optional[str] = None) -> List[str]:
    """Unique non-empty values (casing as received), optional case-insensitive substring match, ascending."""
    out = {v for v in values if v}
    if search:
        needle = search.lower()
        out = {v for v in out if needle in v.lower()}
    return sorted(out)


def latest_per_market(records: Iterable[PriceRecord]) -> List[PriceRecord]:
    """
    Reduce to one record per (market, state): the one with the newest arrival date.
    A later record only replaces the kept one when it is strictly newer.
    """
    latest: Dict[Tuple[str, str], PriceRecord] = {}
    for record in records:
        key = (record.market, record.state)
        kept = latest.get(key)
        if kept is None or _date_key(record) > _date_key(kept):
            latest[key] = record
    return list(latest.values())


def calculate_price_stats(records: List[PriceRecord]) -> Optional[PriceStats]:
    """
    Summary over ONE pool of min, max and modal prices of every record
    (price kinds are mixed on purpose; the dashboard cards show these numbers).
    Prices that do not parse as finite numbers are left out of the pool.
    """
    if not records:
        return None

    pool: List[float] = []
    for r in records:
        for raw in (r.min_price, r.max_price, r.modal_price):
            p = _to_price(raw)
            if p is not None:
                pool.append(p)
    if not pool:
        return None

    avg = sum(pool) / len(pool)
    return PriceStats(
        average=math.floor(avg + 0.5),  # halves round up
        minimum=min(pool),
        maximum=max(pool),
        record_count=len(records),
    )


# -------------------------------
# Client
# -------------------------------
class MarketClient:
    """
    Typed accessors over the /api/agmarknet relay.

    Only `get_market_prices` raises (MarketDataError). Every derived accessor
    logs the failure and degrades: to the static table for what it enumerates
    when one exists (states, commodities), else to an empty list.
    """

    def __init__(self, base_url: str, http: Optional[httpx.AsyncClient] = None) -> None:
        self.base_url = base_url
        self._http = http

    def _get_http(self) -> httpx.AsyncClient:
        return self._http if self._http is not None else get_http_client()

    async def get_market_prices(self, filters: Optional[QueryFilters] = None) -> PricesPayload:
        filters = filters or QueryFilters()
        try:
            r = await self._get_http().get(self.base_url, params=filters.to_params())
            r.raise_for_status()
            return PricesPayload.model_validate(r.json())
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Error fetching market prices: %s", e)
            raise MarketDataError(FETCH_FAILED) from e

    async def _field_values(self, field: str, filters: QueryFilters, search: Optional[str]) -> List[str]:
        payload = await self.get_market_prices(filters)
        return distinct_sorted((getattr(r, field) for r in payload.records), search)

    async def get_states(self, search: Optional[str] = None) -> List[str]:
        try:
            return await self._field_values("state", QueryFilters(limit=ENUMERATION_FETCH), search)
        except MarketDataError:
            logger.warning("Using fallback state list")
            return distinct_sorted(FALLBACK_STATES, search)

    async def get_districts(self, state: str, search: Optional[str] = None) -> List[str]:
        try:
            return await self._field_values(
                "district", QueryFilters(state=state, limit=ENUMERATION_FETCH), search
            )
        except MarketDataError:
            logger.warning("No districts for state=%r", state)
            return []

    async def get_markets(self, state: str, district: Optional[str] = None,
                          search: Optional[str] = None) -> List[str]:
        try:
            return await self._field_values(
                "market", QueryFilters(state=state, district=district, limit=ENUMERATION_FETCH), search
            )
        except MarketDataError:
            logger.warning("No markets for state=%r district=%r", state, district)
            return []

    async def get_commodities(self) -> List[str]:
        try:
            commodities = await self._field_values("commodity", QueryFilters(limit=COMMODITY_FETCH), None)
            logger.info("API returned %d commodities", len(commodities))
            return commodities
        except MarketDataError:
            logger.warning("Using fallback commodity list")
            return list(FALLBACK_COMMODITIES)

    async def get_commodities_by_state(self, state: str, district: Optional[str] = None,
                                       market: Optional[str] = None,
                                       search: Optional[str] = None) -> List[str]:
        try:
            return await self._field_values(
                "commodity",
                QueryFilters(state=state, district=district, market=market, limit=ENUMERATION_FETCH),
                search,
            )
        except MarketDataError:
            logger.warning("Using fallback commodities for state=%r", state)
            return distinct_sorted(STATE_COMMODITIES.get(state, FALLBACK_COMMODITIES), search)

    async def get_price_trends(self, commodity: str, market: str, days: int = 30,
                               today: Optional[dt.date] = None) -> List[PriceRecord]:
        """Records for the pair that arrived within the last `days` days, newest first."""
        try:
            payload = await self.get_market_prices(
                QueryFilters(commodity=commodity, market=market, limit=TREND_FETCH_LIMIT)
            )
        except MarketDataError:
            return []

        cutoff = (today or dt.date.today()) - dt.timedelta(days=days)
        rows = []
        for r in payload.records:
            d = parse_arrival_date(r.arrival_date)
            if d is None or d < cutoff:
                continue
            rows.append((d, r))
        rows.sort(key=lambda x: x[0], reverse=True)
        return [r for _, r in rows]

    async def get_latest_prices(self, commodity: str) -> List[PriceRecord]:
        try:
            payload = await self.get_market_prices(QueryFilters(commodity=commodity, limit=LATEST_FETCH))
        except MarketDataError:
            return []
        return latest_per_market(payload.records)

    calculate_price_stats = staticmethod(calculate_price_stats)
