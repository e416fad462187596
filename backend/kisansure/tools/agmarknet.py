# kisansure/tools/agmarknet.py
"""
Upstream side of the /api/agmarknet relay.

Builds the data.gov.in request for the "Current Daily Price of Various
Commodities from Various Markets (Mandi)" resource, injects the server-held
API key and returns the decoded JSON untouched.
"""
import json
import time
import logging
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote, urlencode

import httpx

from kisansure.config import Settings
from kisansure.http import redact_url
from kisansure.schemas import QueryFilters

logger = logging.getLogger(__name__)

def t(): return time.perf_counter()

DEFAULT_LIMIT = 10
ENUMERATION_LIMIT = 10000  # "list all states"-style calls need the whole page, not the first 10 rows

# (QueryFilters attribute, upstream field) in upstream URL order
FILTER_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("commodity", "commodity"),
    ("market", "market"),
    ("arrival_date", "arrival_date"),
    ("state", "state"),
    ("district", "district"),
    ("variety", "variety"),
    ("grade", "grade"),
)

MISSING_KEY_MESSAGE = "API key not found. Please set VITE_AGMARKNET_API_KEY in your .env file"
UPSTREAM_FAILURE_MESSAGE = "Failed to fetch from AGMARKNET"


class MissingApiKeyError(RuntimeError):
    """The relay has no data.gov.in credential; every request fails until it is configured."""

    def __init__(self):
        super().__init__(MISSING_KEY_MESSAGE)


class UpstreamError(RuntimeError):
    """data.gov.in could not be reached or answered with something unusable."""

    def __init__(self, details: str, status_code: Optional[int] = None):
        super().__init__(details)
        self.details = details
        self.status_code = status_code


def _reject_constant(name: str):
    # NaN/Infinity parse in Python but cannot be re-serialised as JSON
    raise ValueError(f"non-standard JSON constant {name}")


def parse_body(content: bytes) -> Any:
    """Strict JSON decode of an upstream body; raises ValueError."""
    return json.loads(content, parse_constant=_reject_constant)


def is_enumeration(filters: QueryFilters) -> bool:
    return not (filters.commodity or filters.market or filters.state or filters.district)


def resolve_limit(filters: QueryFilters) -> int:
    """Enumeration requests always get ENUMERATION_LIMIT, even if the caller asked for less."""
    if is_enumeration(filters):
        return ENUMERATION_LIMIT
    return filters.limit or DEFAULT_LIMIT


def build_params(api_key: str, filters: QueryFilters) -> List[Tuple[str, str]]:
    params: List[Tuple[str, str]] = [
        ("api-key", api_key),
        ("format", "json"),
        ("limit", str(resolve_limit(filters))),
        ("offset", str(filters.offset or 0)),
    ]
    for attr, upstream in FILTER_FIELDS:
        value = getattr(filters, attr)
        if value:
            params.append((f"filters[{upstream}]", value))
    return params


def build_url(settings: Settings, filters: QueryFilters) -> str:
    """Full upstream URL, credential included. Never log this without redact_url()."""
    if not settings.AGMARKNET_API_KEY:
        raise MissingApiKeyError()
    query = urlencode(build_params(settings.AGMARKNET_API_KEY, filters), safe="[]", quote_via=quote)
    return f"{settings.DATAGOV_BASE}/{settings.AGMARKNET_RESOURCE_ID}?{query}"


async def fetch_prices(client: httpx.AsyncClient, settings: Settings, filters: QueryFilters) -> Any:
    """
    One upstream call, no retry. Returns the decoded JSON body as-is.

    Raises MissingApiKeyError before touching the network, UpstreamError for
    transport failures, non-2xx statuses and bodies that are not JSON.
    """
    url = build_url(settings, filters)
    safe_url = redact_url(url)
    logger.info("Fetching from: %s", safe_url)

    start = t()
    try:
        r = await client.get(url)
    except httpx.HTTPError as e:
        logger.error("Error fetching from AGMARKNET (%s): %s", safe_url, e.__class__.__name__)
        raise UpstreamError(f"{e.__class__.__name__}: {e}" if str(e) else e.__class__.__name__) from e

    if not r.is_success:
        logger.error("AGMARKNET responded %s for %s", r.status_code, safe_url)
        raise UpstreamError(f"HTTP error! status: {r.status_code}", status_code=r.status_code)

    try:
        data = parse_body(r.content)
    except ValueError as e:
        logger.error("AGMARKNET returned a non-JSON body (%d bytes)", len(r.content))
        raise UpstreamError(f"Invalid JSON from upstream: {e}") from e

    records = data.get("records") if isinstance(data, dict) else None
    count = len(records) if isinstance(records, list) else 0
    logger.info("Received %d records in %dms", count, round((t() - start) * 1000))
    return data


def error_envelope(error: Exception) -> Dict[str, str]:
    if isinstance(error, MissingApiKeyError):
        return {"error": MISSING_KEY_MESSAGE}
    details = error.details if isinstance(error, UpstreamError) else str(error)
    return {"error": UPSTREAM_FAILURE_MESSAGE, "details": details}
