"""
Surprise idea generator.

Turns an occasion / relationship / budget description into a handful of gift
and experience ideas plus a shareable caption. The main entry point
propagates ``GenerationError``; the homepage and seasonal helpers degrade to
a fixed idea and an empty list respectively.
"""

import logging
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError

from billboard.services.llm_client import GenerationError, LLMClient


logger = logging.getLogger(__name__)

Occasion = Literal["birthday", "anniversary", "date_night", "apology", "just_because", "holiday"]
Relationship = Literal["partner", "friend", "family", "colleague"]
Budget = Literal["low", "medium", "high", "unlimited"]
PersonalityType = Literal["adventurous", "romantic", "practical", "creative", "social"]
SurpriseCategory = Literal["romantic", "friendship", "family", "professional"]

DEFAULT_LOCATION = "Global"
SHAREABLE_TEXT = (
    "Check out these amazing {occasion} surprise ideas! 🎉 #SurpriseIdeas #{occasion} #Billboard"
)

IDEA_FORMAT = (
    '{"ideas": [{"title", "description", "estimated_cost", "time_required", '
    '"difficulty": "easy|medium|hard", "category", "materials", "steps", "tips", '
    '"alternatives"}], "shareable_text"}'
)
SURPRISE_SYSTEM_PROMPT = (
    "You are a creative surprise and gift expert. Suggest thoughtful, "
    f"practical ideas. Respond with JSON {IDEA_FORMAT}."
)
QUICK_SYSTEM_PROMPT = (
    "Generate 3 quick, universal, budget-friendly surprise ideas that suit any "
    f"relationship. Respond with JSON {IDEA_FORMAT}."
)

# category -> (occasion, relationship)
CATEGORY_PRESETS: dict[str, tuple[str, str]] = {
    "romantic": ("date_night", "partner"),
    "friendship": ("just_because", "friend"),
    "family": ("birthday", "family"),
    "professional": ("just_because", "colleague"),
}


class SurpriseRequest(BaseModel):
    occasion: Occasion
    relationship: Relationship
    budget: Budget
    location: str | None = None
    interests: list[str] = Field(default_factory=list)
    personality_type: PersonalityType | None = None


class SurpriseIdea(BaseModel):
    title: str
    description: str = ""
    estimated_cost: str = ""
    time_required: str = ""
    difficulty: Literal["easy", "medium", "hard"] = "easy"
    category: str = ""
    materials: list[str] = Field(default_factory=list)
    steps: list[str] = Field(default_factory=list)
    tips: list[str] = Field(default_factory=list)
    alternatives: list[str] = Field(default_factory=list)


class SurpriseResponse(BaseModel):
    ideas: list[SurpriseIdea]
    location: str
    occasion: str
    shareable_text: str


HANDWRITTEN_LETTER = SurpriseIdea(
    title="Handwritten Letter",
    description=(
        "Write a heartfelt letter expressing your appreciation and favorite memories together."
    ),
    estimated_cost="Free",
    time_required="30 minutes",
    difficulty="easy",
    category="Personal",
    materials=["Paper", "Pen"],
    steps=["Find quiet space", "Reflect on memories", "Write from heart", "Present beautifully"],
    tips=["Be specific about what you appreciate", "Include future hopes"],
    alternatives=["Voice recording", "Digital note with photos"],
)


def _build_prompt(request: SurpriseRequest) -> str:
    lines = [
        "Generate 5 creative surprise ideas for:",
        f"- Occasion: {request.occasion}",
        f"- Relationship: {request.relationship}",
        f"- Budget: {request.budget}",
    ]
    if request.location:
        lines.append(f"- Location: {request.location}")
    if request.interests:
        lines.append(f"- Interests: {', '.join(request.interests)}")
    if request.personality_type:
        lines.append(f"- Personality: {request.personality_type}")
    return "\n".join(lines)


def _parse_ideas(items: Any) -> list[SurpriseIdea]:
    ideas = []
    for item in items or []:
        try:
            ideas.append(SurpriseIdea.model_validate(item))
        except ValidationError as e:
            logger.warning("Skipping malformed surprise idea: %s", e)
    return ideas


class SurpriseGenerator:
    def __init__(self, llm: LLMClient | None = None) -> None:
        self.llm = llm or LLMClient()
        self.logger = logging.getLogger(__name__)

    async def generate_surprises(self, request: SurpriseRequest) -> SurpriseResponse:
        """
        Raises:
            GenerationError: If the model call fails.
        """
        result = await self.llm.complete_json(
            SURPRISE_SYSTEM_PROMPT, _build_prompt(request), temperature=0.8
        )
        ideas = _parse_ideas(result.get("ideas"))
        self.logger.info("Generated %d %s surprise ideas", len(ideas), request.occasion)
        return SurpriseResponse(
            ideas=ideas,
            location=request.location or DEFAULT_LOCATION,
            occasion=request.occasion,
            shareable_text=result.get("shareable_text")
            or SHAREABLE_TEXT.format(occasion=request.occasion),
        )

    async def generate_location_surprises(
        self, location: str, occasion: Occasion = "date_night"
    ) -> SurpriseResponse:
        return await self.generate_surprises(
            SurpriseRequest(
                occasion=occasion,
                relationship="partner",
                budget="medium",
                location=location,
                personality_type="adventurous",
            )
        )

    async def generate_quick_surprises(self) -> list[SurpriseIdea]:
        """Three universal ideas for the homepage; the letter idea if generation fails."""
        try:
            result = await self.llm.complete_json(
                QUICK_SYSTEM_PROMPT, "Generate 3 surprise ideas.", temperature=0.7
            )
        except GenerationError as e:
            self.logger.error("Failed to generate quick surprises: %s", e)
            return [HANDWRITTEN_LETTER]
        return _parse_ideas(result.get("ideas"))

    async def generate_by_category(
        self, category: SurpriseCategory, location: str | None = None
    ) -> list[SurpriseIdea]:
        occasion, relationship = CATEGORY_PRESETS[category]
        response = await self.generate_surprises(
            SurpriseRequest(
                occasion=occasion, relationship=relationship, budget="medium", location=location
            )
        )
        return response.ideas

    async def generate_seasonal_surprises(
        self, season: str, location: str | None = None
    ) -> list[SurpriseIdea]:
        where = f" in {location}" if location else ""
        try:
            result = await self.llm.complete_json(
                f"Generate seasonal surprise ideas for {season}. Respond with JSON {IDEA_FORMAT}.",
                f"Generate 4 surprise ideas perfect for {season}{where}.",
                temperature=0.8,
            )
        except GenerationError as e:
            self.logger.error("Failed to generate seasonal surprises: %s", e)
            return []
        return _parse_ideas(result.get("ideas"))


def get_surprise_generator() -> SurpriseGenerator:
    return SurpriseGenerator()
