"""
Deals API Router

Read-only views over the generated daily deals feed. Generation failures are
absorbed by the aggregator's fallback deals, so these endpoints only fail on
unexpected errors.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query

from billboard.services.deals_aggregator import (
    DEFAULT_LOCATION,
    DealsAggregator,
    get_deals_aggregator,
)


logger = logging.getLogger(__name__)

router = APIRouter(tags=["deals"])


def _dump(deals: list) -> list[dict[str, Any]]:
    return [deal.model_dump(mode="json") for deal in deals]


@router.get("/daily")
async def daily_deals(
    location: str = Query(default=DEFAULT_LOCATION, min_length=1),
    limit: int = Query(default=10, ge=1, le=50),
    aggregator: DealsAggregator = Depends(get_deals_aggregator),
) -> dict[str, Any]:
    feed = await aggregator.get_daily_deals(location, limit)
    return {"success": True, **feed.model_dump(mode="json")}


@router.get("/deal-of-the-day")
async def deal_of_the_day(
    location: str = Query(default=DEFAULT_LOCATION, min_length=1),
    aggregator: DealsAggregator = Depends(get_deals_aggregator),
) -> dict[str, Any]:
    deal = await aggregator.get_deal_of_the_day(location)
    return {"success": True, "deal": deal.model_dump(mode="json") if deal else None}


@router.get("/category/{category}")
async def deals_by_category(
    category: str,
    location: str = Query(default=DEFAULT_LOCATION, min_length=1),
    aggregator: DealsAggregator = Depends(get_deals_aggregator),
) -> dict[str, Any]:
    deals = await aggregator.get_deals_by_category(category, location)
    return {"success": True, "deals": _dump(deals), "category": category}


@router.get("/trending")
async def trending_deals(
    location: str = Query(default=DEFAULT_LOCATION, min_length=1),
    limit: int = Query(default=5, ge=1, le=20),
    aggregator: DealsAggregator = Depends(get_deals_aggregator),
) -> dict[str, Any]:
    deals = await aggregator.get_trending_deals(location, limit)
    return {"success": True, "deals": _dump(deals)}


@router.get("/local")
async def local_deals(
    location: str = Query(..., min_length=1),
    limit: int = Query(default=8, ge=1, le=15),
    aggregator: DealsAggregator = Depends(get_deals_aggregator),
) -> dict[str, Any]:
    deals = await aggregator.get_local_deals(location, limit)
    return {"success": True, "deals": _dump(deals), "location": location}


@router.get("/search")
async def search_deals(
    q: str = Query(..., min_length=1),
    location: str = Query(default=DEFAULT_LOCATION, min_length=1),
    aggregator: DealsAggregator = Depends(get_deals_aggregator),
) -> dict[str, Any]:
    deals = await aggregator.search_deals(q, location)
    return {"success": True, "deals": _dump(deals), "query": q}


@router.get("/stats")
async def deals_stats(
    location: str = Query(default=DEFAULT_LOCATION, min_length=1),
    aggregator: DealsAggregator = Depends(get_deals_aggregator),
) -> dict[str, Any]:
    return {"success": True, "stats": await aggregator.get_deals_stats(location)}
