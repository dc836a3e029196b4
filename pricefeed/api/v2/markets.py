"""Exchanges endpoint."""
from fastapi import APIRouter

from pricefeed.core.markets.registry import list_exchanges

router = APIRouter(tags=["Exchanges"])


@router.get("/exchanges")
async def get_exchanges():
    """List all supported exchanges with their Yahoo suffixes and aliases."""
    return list_exchanges()
