"""
/api/board endpoint: the market prices table (live or demo per MARKET_MODE)
"""
from fastapi import APIRouter, Depends, Query

from kisansure.di import get_price_board
from kisansure.services.board import PriceBoard

router = APIRouter(tags=["market"])


@router.get("/board")
async def price_board(
    commodity: str = Query(..., min_length=1, description="e.g. 'Tomato'"),
    location: str = Query("", description="Free text, state last, e.g. 'Azadpur Delhi'"),
    board: PriceBoard = Depends(get_price_board),
):
    result = await board.lookup(commodity, location)
    return result.to_json()
