"""
AI Ad Copy API Router

Endpoints:
- POST /generate-ad-text: Headline, description and call to action
- POST /generate-ad-image: Billboard image URL
- POST /advanced-ad: Copy plus keywords, targeting tips and estimates
- POST /variations: Alternative wordings of an ad
- POST /optimize: Rewrite an ad for a platform
- POST /translate: Localise an ad into several languages
- POST /analyze: Insights from campaign metrics

Every endpoint requires a Bearer token, since each call spends the
service's LLM quota.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from billboard.core.auth import get_current_user
from billboard.services.ad_copy_service import (
    AdCopyService,
    AdGenerationRequest,
    GeneratedAd,
    PerformanceMetrics,
    Platform,
    get_ad_copy_service,
)
from billboard.services.llm_client import GenerationError


logger = logging.getLogger(__name__)

router = APIRouter(tags=["ai"])


class AdTextRequest(BaseModel):
    prompt: str = Field(..., min_length=1)
    ad_type: str = Field(default="banner")
    goal: str = Field(default="awareness")
    target_audience: str | None = Field(
        default=None, description="When set, the prompt is enhanced for this audience first"
    )


class AdImageRequest(BaseModel):
    prompt: str = Field(..., min_length=1)


class VariationsRequest(BaseModel):
    ad: GeneratedAd
    count: int = Field(default=3, ge=1, le=10)


class OptimizeRequest(BaseModel):
    ad: GeneratedAd
    platform: Platform


class TranslateRequest(BaseModel):
    ad: GeneratedAd
    languages: list[str] = Field(..., min_length=1, max_length=10)


class AnalyzeRequest(BaseModel):
    content: str = Field(..., min_length=1)
    metrics: PerformanceMetrics


def _generation_failed(action: str, e: GenerationError) -> HTTPException:
    logger.error("Failed to %s: %s", action, e)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}: {e}",
    )


@router.post("/generate-ad-text")
async def generate_ad_text(
    request: AdTextRequest,
    service: AdCopyService = Depends(get_ad_copy_service),
    current_user: dict[str, Any] = Depends(get_current_user),
) -> dict[str, Any]:
    logger.info("Ad text requested by user %s", current_user["_id"])
    prompt = request.prompt
    if request.target_audience:
        prompt = await service.enhance_ad_prompt(prompt, request.ad_type, request.target_audience)
    try:
        copy = await service.generate_ad_text(prompt, request.ad_type, request.goal)
    except GenerationError as e:
        raise _generation_failed("generate ad text", e) from e
    return {"success": True, **copy.model_dump()}


@router.post("/generate-ad-image")
async def generate_ad_image(
    request: AdImageRequest,
    service: AdCopyService = Depends(get_ad_copy_service),
    current_user: dict[str, Any] = Depends(get_current_user),
) -> dict[str, Any]:
    logger.info("Ad image requested by user %s", current_user["_id"])
    try:
        image = await service.generate_ad_image(request.prompt)
    except GenerationError as e:
        raise _generation_failed("generate ad image", e) from e
    return {"success": True, **image}


@router.post("/advanced-ad")
async def advanced_ad(
    request: AdGenerationRequest,
    service: AdCopyService = Depends(get_ad_copy_service),
    current_user: dict[str, Any] = Depends(get_current_user),
) -> dict[str, Any]:
    try:
        ad = await service.generate_advanced_ad(request)
    except GenerationError as e:
        raise _generation_failed("generate advanced ad", e) from e
    return {"success": True, "ad": ad.model_dump()}


@router.post("/variations")
async def variations(
    request: VariationsRequest,
    service: AdCopyService = Depends(get_ad_copy_service),
    current_user: dict[str, Any] = Depends(get_current_user),
) -> dict[str, Any]:
    ads = await service.generate_ad_variations(request.ad, request.count)
    return {"success": True, "variations": [ad.model_dump() for ad in ads]}


@router.post("/optimize")
async def optimize(
    request: OptimizeRequest,
    service: AdCopyService = Depends(get_ad_copy_service),
    current_user: dict[str, Any] = Depends(get_current_user),
) -> dict[str, Any]:
    ad = await service.optimize_ad_for_platform(request.ad, request.platform)
    return {"success": True, "ad": ad.model_dump(), "platform": request.platform}


@router.post("/translate")
async def translate(
    request: TranslateRequest,
    service: AdCopyService = Depends(get_ad_copy_service),
    current_user: dict[str, Any] = Depends(get_current_user),
) -> dict[str, Any]:
    translations = await service.generate_multi_language_ad(request.ad, request.languages)
    return {
        "success": True,
        "translations": {language: ad.model_dump() for language, ad in translations.items()},
    }


@router.post("/analyze")
async def analyze(
    request: AnalyzeRequest,
    service: AdCopyService = Depends(get_ad_copy_service),
    current_user: dict[str, Any] = Depends(get_current_user),
) -> dict[str, Any]:
    analysis = await service.analyze_ad_performance(request.content, request.metrics)
    return {"success": True, "analysis": analysis}
