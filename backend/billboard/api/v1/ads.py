"""
Ads API Router

Endpoints:
- POST /: Create an ad for the current user (starts as ``pending``)
- GET /: List the current user's ads, newest first
- GET /active: Public list of ads currently running
- PATCH /{ad_id}/status: Change the status of one of the user's ads
"""

import logging
from typing import Any

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from pymongo import ReturnDocument

from billboard.core.auth import get_current_user
from billboard.core.database import get_db_client
from billboard.models.ad import Ad, AdStatus, AdType
from billboard.models.common import serialize_document


logger = logging.getLogger(__name__)

router = APIRouter(tags=["ads"])


class AdCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=2000)
    type: AdType
    content: dict[str, Any] = Field(default_factory=dict)
    target_url: str | None = None
    call_to_action: str | None = Field(default=None, max_length=50)


class StatusUpdateRequest(BaseModel):
    status: AdStatus


def _database_unavailable(e: RuntimeError) -> HTTPException:
    logger.error("Database unavailable: %s", e)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Database unavailable",
    )


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_ad(
    request: AdCreateRequest,
    current_user: dict[str, Any] = Depends(get_current_user),
) -> dict[str, Any]:
    ad = Ad(user_id=str(current_user["_id"]), **request.model_dump())
    document = ad.model_dump(exclude={"id"})

    try:
        result = await get_db_client().get_ads_collection().insert_one(document)
    except RuntimeError as e:
        raise _database_unavailable(e) from e

    document["_id"] = result.inserted_id
    logger.info("Ad %s created by %s", result.inserted_id, ad.user_id)
    return {"success": True, "ad": serialize_document(document)}


@router.get("/")
async def list_my_ads(
    limit: int = Query(default=50, ge=1, le=100),
    current_user: dict[str, Any] = Depends(get_current_user),
) -> dict[str, Any]:
    try:
        cursor = (
            get_db_client()
            .get_ads_collection()
            .find({"user_id": str(current_user["_id"])})
            .sort("created_at", -1)
            .limit(limit)
        )
        ads = await cursor.to_list(length=limit)
    except RuntimeError as e:
        raise _database_unavailable(e) from e

    return {"success": True, "ads": [serialize_document(ad) for ad in ads]}


@router.get("/active")
async def list_active_ads(limit: int = Query(default=50, ge=1, le=100)) -> dict[str, Any]:
    try:
        cursor = (
            get_db_client()
            .get_ads_collection()
            .find({"status": AdStatus.ACTIVE.value})
            .sort("created_at", -1)
            .limit(limit)
        )
        ads = await cursor.to_list(length=limit)
    except RuntimeError as e:
        raise _database_unavailable(e) from e

    return {"success": True, "ads": [serialize_document(ad) for ad in ads]}


@router.patch("/{ad_id}/status")
async def update_ad_status(
    ad_id: str,
    request: StatusUpdateRequest,
    current_user: dict[str, Any] = Depends(get_current_user),
) -> dict[str, Any]:
    """
    Raises:
        HTTPException: 400 for a malformed id, 404 when the ad does not exist
            or belongs to someone else.
    """
    if not ObjectId.is_valid(ad_id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid ad ID format")

    try:
        ad = await get_db_client().get_ads_collection().find_one_and_update(
            {"_id": ObjectId(ad_id), "user_id": str(current_user["_id"])},
            {"$set": {"status": request.status.value}},
            return_document=ReturnDocument.AFTER,
        )
    except RuntimeError as e:
        raise _database_unavailable(e) from e

    if ad is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ad not found")

    logger.info("Ad %s moved to %s", ad_id, request.status.value)
    return {"success": True, "ad": serialize_document(ad)}
