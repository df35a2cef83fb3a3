"""
Referrals API Router

Endpoints:
- POST /generate-code: Standard $10-credit code for a user
- POST /apply-code: Redeem a code for a newly registered user
- GET /stats/{user_id}: Referral programme summary
- POST /create-promotional: Campaign code with custom reward and limits
- POST /process-rewards: Pay out pending rewards
- GET /leaderboard: Top referrers by earnings
- GET /links/{code}: Web and social share links
- GET /validate/{code}: Format check for a code
- GET /codes/{user_id}: Codes owned by a user
- GET /rewards/{user_id}: Rewards earned by a user
"""

import logging
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from billboard.models.referral import RewardStatus, RewardType
from billboard.services.referral_engine import (
    DuplicateReferralCodeError,
    ReferralEngine,
    get_referral_engine,
)


logger = logging.getLogger(__name__)

router = APIRouter(tags=["referrals"])


class GenerateCodeRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    custom_code: str | None = Field(default=None, min_length=1, max_length=32)


class ApplyCodeRequest(BaseModel):
    code: str = Field(..., min_length=1)
    new_user_id: str = Field(..., min_length=1)


class PromotionalCodeRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    custom_code: str = Field(..., min_length=1, max_length=32)
    reward_type: RewardType
    reward_value: float = Field(..., gt=0)
    max_uses: int | None = Field(default=None, gt=0)
    expires_at: datetime | None = None


class ProcessRewardsRequest(BaseModel):
    reward_ids: list[str] = Field(default_factory=list)


def _database_unavailable(e: RuntimeError) -> HTTPException:
    logger.error("Database unavailable: %s", e)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Database unavailable",
    )


def _code_taken(e: DuplicateReferralCodeError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/generate-code")
async def generate_code(
    request: GenerateCodeRequest,
    engine: ReferralEngine = Depends(get_referral_engine),
) -> dict[str, Any]:
    try:
        code = await engine.generate_referral_code(request.user_id, request.custom_code)
    except DuplicateReferralCodeError as e:
        raise _code_taken(e) from e
    except RuntimeError as e:
        raise _database_unavailable(e) from e
    return {"success": True, "referral_code": code.model_dump(mode="json")}


@router.post("/apply-code")
async def apply_code(
    request: ApplyCodeRequest,
    engine: ReferralEngine = Depends(get_referral_engine),
) -> dict[str, Any]:
    try:
        result = await engine.apply_referral_code(request.code, request.new_user_id)
    except RuntimeError as e:
        raise _database_unavailable(e) from e

    if not result["success"]:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result["error"])

    return {
        "success": True,
        "reward": result["reward"].model_dump(mode="json"),
        "message": "Referral code applied successfully!",
    }


@router.get("/stats/{user_id}")
async def referral_stats(
    user_id: str,
    engine: ReferralEngine = Depends(get_referral_engine),
) -> dict[str, Any]:
    try:
        stats = await engine.get_referral_stats(user_id)
    except RuntimeError as e:
        raise _database_unavailable(e) from e
    return {"success": True, "stats": stats}


@router.post("/create-promotional")
async def create_promotional(
    request: PromotionalCodeRequest,
    engine: ReferralEngine = Depends(get_referral_engine),
) -> dict[str, Any]:
    try:
        promo = await engine.create_promotional_code(
            user_id=request.user_id,
            code=request.custom_code,
            reward_type=request.reward_type,
            reward_value=request.reward_value,
            max_uses=request.max_uses,
            expires_at=request.expires_at,
        )
    except DuplicateReferralCodeError as e:
        raise _code_taken(e) from e
    except RuntimeError as e:
        raise _database_unavailable(e) from e
    return {"success": True, "promotional_code": promo.model_dump(mode="json")}


@router.post("/process-rewards")
async def process_rewards(
    request: ProcessRewardsRequest,
    engine: ReferralEngine = Depends(get_referral_engine),
) -> dict[str, Any]:
    if not request.reward_ids:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Reward IDs array is required",
        )
    try:
        result = await engine.process_rewards(request.reward_ids)
    except RuntimeError as e:
        raise _database_unavailable(e) from e
    return {"success": True, "result": result}


@router.get("/leaderboard")
async def leaderboard(
    limit: int = Query(default=10, ge=1, le=100),
    engine: ReferralEngine = Depends(get_referral_engine),
) -> dict[str, Any]:
    try:
        rows = await engine.get_leaderboard(limit)
    except RuntimeError as e:
        raise _database_unavailable(e) from e
    return {"success": True, "leaderboard": rows}


@router.get("/links/{code}")
async def referral_links(
    code: str,
    base_url: str | None = Query(default=None),
    engine: ReferralEngine = Depends(get_referral_engine),
) -> dict[str, Any]:
    return {"success": True, "links": engine.generate_referral_link(code, base_url)}


@router.get("/validate/{code}")
async def validate_code(code: str) -> dict[str, Any]:
    valid = ReferralEngine.validate_code_format(code)
    return {
        "success": True,
        "valid": valid,
        "message": "Referral code is valid" if valid else "Invalid referral code format",
    }


@router.get("/codes/{user_id}")
async def user_codes(
    user_id: str,
    engine: ReferralEngine = Depends(get_referral_engine),
) -> dict[str, Any]:
    try:
        codes = await engine.get_user_codes(user_id)
    except RuntimeError as e:
        raise _database_unavailable(e) from e
    return {"success": True, "codes": [code.model_dump(mode="json") for code in codes]}


@router.get("/rewards/{user_id}")
async def user_rewards(
    user_id: str,
    reward_status: RewardStatus | None = Query(default=None, alias="status"),
    engine: ReferralEngine = Depends(get_referral_engine),
) -> dict[str, Any]:
    try:
        rewards = await engine.get_user_rewards(user_id, reward_status)
    except RuntimeError as e:
        raise _database_unavailable(e) from e
    return {"success": True, "rewards": [reward.model_dump(mode="json") for reward in rewards]}
