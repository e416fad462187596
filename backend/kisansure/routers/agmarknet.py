"""
/api/agmarknet relay endpoint
"""
import logging
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from kisansure.config import Settings, get_settings
from kisansure.di import get_http
from kisansure.schemas import QueryFilters
from kisansure.tools.agmarknet import (
    MissingApiKeyError,
    UpstreamError,
    error_envelope,
    fetch_prices,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["market"])


@router.get("/agmarknet")
async def agmarknet(
    commodity: Optional[str] = None,
    market: Optional[str] = None,
    date: Optional[str] = Query(None, description="Arrival date, DD/MM/YYYY as stored upstream"),
    state: Optional[str] = None,
    district: Optional[str] = None,
    variety: Optional[str] = None,
    grade: Optional[str] = None,
    limit: Optional[int] = Query(None, ge=1, description="Defaults to 10; forced to 10000 for enumeration calls"),
    offset: int = Query(0, ge=0),
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http),
):
    """
    Relay one price query to data.gov.in with the server-held API key.
    The upstream JSON is returned verbatim; failures become {error, details} with HTTP 500.
    """
    filters = QueryFilters(
        commodity=commodity,
        market=market,
        arrival_date=date,
        state=state,
        district=district,
        variety=variety,
        grade=grade,
        limit=limit,
        offset=offset,
    )
    try:
        data = await fetch_prices(client, settings, filters)
    except MissingApiKeyError as e:
        logger.error("Relay misconfigured: %s", e)
        return JSONResponse(status_code=500, content=error_envelope(e))
    except UpstreamError as e:
        return JSONResponse(status_code=500, content=error_envelope(e))
    return JSONResponse(content=data)
