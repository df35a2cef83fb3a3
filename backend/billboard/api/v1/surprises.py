"""
Surprises API Router

Endpoints:
- POST /generate: Ideas for an occasion / relationship / budget
- GET /quick: Three universal ideas for the homepage
- GET /location/{location}: Adventurous date ideas for a place
- GET /category/{category}: romantic, friendship, family or professional
- GET /seasonal/{season}: Seasonal ideas
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status

from billboard.services.llm_client import GenerationError
from billboard.services.surprise_generator import (
    Occasion,
    SurpriseCategory,
    SurpriseGenerator,
    SurpriseRequest,
    get_surprise_generator,
)


logger = logging.getLogger(__name__)

router = APIRouter(tags=["surprises"])


def _generation_failed(e: GenerationError) -> HTTPException:
    logger.error("Surprise generation failed: %s", e)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to generate surprise ideas: {e}",
    )


def _dump(ideas: list) -> list[dict[str, Any]]:
    return [idea.model_dump() for idea in ideas]


@router.post("/generate")
async def generate(
    request: SurpriseRequest,
    generator: SurpriseGenerator = Depends(get_surprise_generator),
) -> dict[str, Any]:
    try:
        result = await generator.generate_surprises(request)
    except GenerationError as e:
        raise _generation_failed(e) from e
    return {"success": True, **result.model_dump()}


@router.get("/quick")
async def quick(generator: SurpriseGenerator = Depends(get_surprise_generator)) -> dict[str, Any]:
    ideas = await generator.generate_quick_surprises()
    return {"success": True, "ideas": _dump(ideas)}


@router.get("/location/{location}")
async def by_location(
    location: str,
    occasion: Occasion = Query(default="date_night"),
    generator: SurpriseGenerator = Depends(get_surprise_generator),
) -> dict[str, Any]:
    try:
        result = await generator.generate_location_surprises(location, occasion)
    except GenerationError as e:
        raise _generation_failed(e) from e
    return {"success": True, **result.model_dump()}


@router.get("/category/{category}")
async def by_category(
    category: SurpriseCategory,
    location: str | None = Query(default=None),
    generator: SurpriseGenerator = Depends(get_surprise_generator),
) -> dict[str, Any]:
    try:
        ideas = await generator.generate_by_category(category, location)
    except GenerationError as e:
        raise _generation_failed(e) from e
    return {"success": True, "ideas": _dump(ideas), "category": category}


@router.get("/seasonal/{season}")
async def seasonal(
    season: str,
    location: str | None = Query(default=None),
    generator: SurpriseGenerator = Depends(get_surprise_generator),
) -> dict[str, Any]:
    ideas = await generator.generate_seasonal_surprises(season, location)
    return {"success": True, "ideas": _dump(ideas), "season": season}
