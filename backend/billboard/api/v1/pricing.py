"""
Pricing API Router

Public endpoints over the Smart Pricing Engine:
- POST /calculate: Full price and breakdown for one placement
- GET /estimate: Quick total for an IMAGE ad starting now
- GET /availability: Slot catalogue with popularity for a date range
- POST /bulk: Price several placements at once
- GET /constants: Rate-table constants for the frontend
"""

import logging
from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from billboard.services.pricing_engine import (
    CURRENCY,
    PricingEngine,
    PricingRequest,
    PricingValidationError,
    get_pricing_engine,
)
from billboard.services.rate_tables import MAX_DURATION_DAYS, MIN_DURATION_DAYS


logger = logging.getLogger(__name__)

router = APIRouter(tags=["pricing"])


class BulkPricingRequest(BaseModel):
    requests: list[PricingRequest] = Field(..., min_length=1)


@router.post("/calculate")
async def calculate_price(
    request: PricingRequest,
    engine: PricingEngine = Depends(get_pricing_engine),
) -> dict[str, Any]:
    try:
        result = engine.calculate_price(request)
    except PricingValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    return {"success": True, **result.to_response()}


@router.get("/estimate")
async def get_estimate(
    slot_type: str = Query(..., min_length=1),
    duration: int = Query(..., ge=MIN_DURATION_DAYS, le=MAX_DURATION_DAYS),
    country: str = Query(default="US", min_length=2, max_length=2),
    engine: PricingEngine = Depends(get_pricing_engine),
) -> dict[str, Any]:
    try:
        estimate = engine.get_quick_estimate(slot_type, duration, country)
    except PricingValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    return {"success": True, "estimate": float(estimate), "currency": CURRENCY}


@router.get("/availability")
async def get_availability(
    start_date: date = Query(...),
    end_date: date = Query(...),
    engine: PricingEngine = Depends(get_pricing_engine),
) -> dict[str, Any]:
    try:
        availability = engine.get_available_slots(start_date, end_date)
    except PricingValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    return {"success": True, "availability": availability}


@router.post("/bulk")
async def calculate_bulk(
    request: BulkPricingRequest,
    engine: PricingEngine = Depends(get_pricing_engine),
) -> dict[str, Any]:
    try:
        results = engine.calculate_bulk_pricing(request.requests)
    except PricingValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    return {"success": True, "results": [result.to_response() for result in results]}


@router.get("/constants")
async def get_constants() -> dict[str, Any]:
    return {"success": True, "constants": PricingEngine.get_pricing_constants()}
