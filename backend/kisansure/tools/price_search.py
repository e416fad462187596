# kisansure/tools/price_search.py
"""
Secondary price source: scrape mandi prices out of web-search snippets.

Snippets from price aggregator sites look like
    "Azadpur – ₹1200–₹1500 (modal ₹1350) on 12 Mar 2025"
one per line; anything else in the snippet text is ignored.
"""
import re
import logging
from typing import Any, Dict, List, Optional

import httpx

from kisansure.http import get_http_client
from kisansure.schemas import PriceRecord

logger = logging.getLogger(__name__)

SERPER_URL = "https://google.serper.dev/search"

SNIPPET_LINE = re.compile(r"(.+?) – ₹([0-9]+)–₹([0-9]+) \(modal ₹([0-9]+)\) on (.+)")


class PriceSearchError(RuntimeError):
    pass


def snippet_text(payload: Dict[str, Any]) -> str:
    """The answer box snippet if there is one, else every organic snippet joined by newlines."""
    answer = payload.get("answerBox")
    if isinstance(answer, dict) and isinstance(answer.get("snippet"), str) and answer["snippet"]:
        return answer["snippet"]
    organic = payload.get("organic")
    if not isinstance(organic, list):
        return ""
    return "\n".join(str(o.get("snippet") or "") for o in organic if isinstance(o, dict))


def parse_snippets(raw: str, commodity: str, location: str) -> List[PriceRecord]:
    words = location.split()
    state = words[-1] if words else ""
    out: List[PriceRecord] = []
    for line in raw.split("\n"):
        m = SNIPPET_LINE.match(line)
        if not m:
            continue
        out.append(PriceRecord(
            commodity=commodity,
            market=m.group(1).strip(),
            state=state,
            min_price=m.group(2),
            max_price=m.group(3),
            modal_price=m.group(4),
            arrival_date=m.group(5).strip(),
        ))
    return out


class PriceSearch:
    def __init__(self, api_key: str, url: str = SERPER_URL, http: Optional[httpx.AsyncClient] = None) -> None:
        self.api_key = api_key
        self.url = url
        self._http = http

    async def search(self, commodity: str, location: str) -> List[PriceRecord]:
        client = self._http if self._http is not None else get_http_client()
        query = f"{commodity} mandi price in {location}"
        try:
            r = await client.post(
                self.url,
                headers={"X-API-KEY": self.api_key, "Content-Type": "application/json"},
                json={"q": query},
            )
        except httpx.HTTPError as e:
            raise PriceSearchError(f"Search request failed: {e.__class__.__name__}") from e
        if not r.is_success:
            raise PriceSearchError(f"API Error ({r.status_code})")
        try:
            payload = r.json()
        except ValueError as e:
            raise PriceSearchError("Search returned a non-JSON body") from e

        records = parse_snippets(snippet_text(payload if isinstance(payload, dict) else {}), commodity, location)
        logger.info("Search %r parsed %d price lines", query, len(records))
        return records
