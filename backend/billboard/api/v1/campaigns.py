"""
Campaigns API Router

A campaign schedules one of the user's ads into a placement between two
dates. Campaigns start as ``draft``; payment webhooks move them to
``active`` or ``payment_failed``. Owners may pause, resume, complete, or
return a failed campaign to draft (see ``OWNER_TRANSITIONS``).

Endpoints:
- POST /: Create a campaign for one of the user's ads
- GET /: List the user's campaigns, newest first
- PATCH /{campaign_id}/status: Change a campaign's status
"""

import logging
from datetime import datetime
from typing import Any

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, ValidationError
from pymongo import ReturnDocument

from billboard.core.auth import get_current_user
from billboard.core.database import get_db_client
from billboard.models.ad import Campaign, CampaignStatus
from billboard.models.common import serialize_document
from billboard.services.rate_tables import SLOT_TIER_MAPPING


logger = logging.getLogger(__name__)

router = APIRouter(tags=["campaigns"])


class CampaignCreateRequest(BaseModel):
    ad_id: str
    name: str = Field(..., min_length=1, max_length=200)
    placement: str
    daily_budget: float = Field(..., gt=0)
    start_date: datetime
    end_date: datetime


class CampaignStatusRequest(BaseModel):
    status: CampaignStatus


# Statuses an owner may request, each mapped to the statuses it may follow.
# ``active`` is otherwise reached only through a successful payment.
OWNER_TRANSITIONS: dict[CampaignStatus, frozenset[CampaignStatus]] = {
    CampaignStatus.PAUSED: frozenset({CampaignStatus.ACTIVE}),
    CampaignStatus.ACTIVE: frozenset({CampaignStatus.PAUSED}),
    CampaignStatus.COMPLETED: frozenset({CampaignStatus.ACTIVE, CampaignStatus.PAUSED}),
    CampaignStatus.DRAFT: frozenset({CampaignStatus.PAYMENT_FAILED}),
}


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_campaign(
    request: CampaignCreateRequest,
    current_user: dict[str, Any] = Depends(get_current_user),
) -> dict[str, Any]:
    """
    Raises:
        HTTPException: 400 for an unknown placement, a malformed ad id or an
            end date not after the start date; 404 when the ad is not the
            user's; 503 when the database is unavailable.
    """
    user_id = str(current_user["_id"])

    if request.placement not in SLOT_TIER_MAPPING:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid placement '{request.placement}'",
        )
    if not ObjectId.is_valid(request.ad_id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid ad ID format")

    try:
        campaign = Campaign(user_id=user_id, **request.model_dump())
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.errors()[0]["msg"],
        ) from e

    try:
        db_client = get_db_client()
        ad = await db_client.get_ads_collection().find_one(
            {"_id": ObjectId(request.ad_id), "user_id": user_id}
        )
        if ad is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ad not found")

        document = campaign.model_dump(exclude={"id"})
        result = await db_client.get_campaigns_collection().insert_one(document)
    except RuntimeError as e:
        logger.exception("Database unavailable while creating campaign")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable",
        ) from e

    document["_id"] = result.inserted_id
    logger.info("Campaign %s created for ad %s", result.inserted_id, request.ad_id)
    return {"success": True, "campaign": serialize_document(document)}


@router.get("/")
async def list_campaigns(
    limit: int = Query(default=50, ge=1, le=100),
    current_user: dict[str, Any] = Depends(get_current_user),
) -> dict[str, Any]:
    try:
        cursor = (
            get_db_client()
            .get_campaigns_collection()
            .find({"user_id": str(current_user["_id"])})
            .sort("created_at", -1)
            .limit(limit)
        )
        campaigns = await cursor.to_list(length=limit)
    except RuntimeError as e:
        logger.exception("Database unavailable while listing campaigns")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable",
        ) from e

    return {"success": True, "campaigns": [serialize_document(c) for c in campaigns]}


@router.patch("/{campaign_id}/status")
async def update_campaign_status(
    campaign_id: str,
    request: CampaignStatusRequest,
    current_user: dict[str, Any] = Depends(get_current_user),
) -> dict[str, Any]:
    """
    Owner-driven status change: pause, resume a paused campaign, complete,
    or return a failed payment to draft.

    Raises:
        HTTPException: 400 for a malformed id or a transition the owner may
            not make; 404 when the campaign is not the user's; 503 when the
            database is unavailable.
    """
    if not ObjectId.is_valid(campaign_id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid campaign ID format"
        )

    target = request.status
    allowed_from = OWNER_TRANSITIONS.get(target)
    if allowed_from is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Campaign status cannot be set to '{target.value}'",
        )

    owned = {"_id": ObjectId(campaign_id), "user_id": str(current_user["_id"])}
    try:
        campaigns = get_db_client().get_campaigns_collection()
        campaign = await campaigns.find_one_and_update(
            {**owned, "status": {"$in": sorted(s.value for s in allowed_from)}},
            {"$set": {"status": target.value}},
            return_document=ReturnDocument.AFTER,
        )
        current = None if campaign else await campaigns.find_one(owned)
    except RuntimeError as e:
        logger.exception("Database unavailable while updating campaign")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable",
        ) from e

    if campaign is None:
        if current is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Campaign not found")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot move campaign from '{current['status']}' to '{target.value}'",
        )

    logger.info("Campaign %s moved to %s", campaign_id, target.value)
    return {"success": True, "campaign": serialize_document(campaign)}
