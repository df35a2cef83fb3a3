"""
AI ad copy service.

Generates headline / description / call-to-action copy, banner images and
richer "advanced" ads with keywords, targeting tips and estimated
performance. Follow-up operations (translation, platform optimisation,
variations, performance analysis) never fail the request: each item falls
back to the input ad or to neutral insights. Reply fields of the wrong type
(a number for a title, a string for keywords) fall back the same way.
"""

import logging
from typing import Any, Literal

from pydantic import (
    BaseModel,
    Field,
    ValidationError,
    ValidationInfo,
    ValidatorFunctionWrapHandler,
    field_validator,
)

from billboard.services.llm_client import GenerationError, LLMClient


logger = logging.getLogger(__name__)

AdGoal = Literal["awareness", "conversion", "engagement", "traffic"]
AdTone = Literal["professional", "casual", "urgent", "friendly", "luxury"]
AdKind = Literal["banner", "video", "text", "interactive"]
Platform = Literal["billboard", "social", "search", "display"]

DEFAULT_TITLE = "Your Ad Title"
DEFAULT_DESCRIPTION = "Ad description"
DEFAULT_CALL_TO_ACTION = "Learn More"
DEFAULT_OPTIMIZATION_SCORE = 5.0

COPY_FORMAT = '{"title", "description", "call_to_action"}'

PLATFORM_SPECS: dict[str, str] = {
    "billboard": "Large format digital billboard: bold text readable from distance, high contrast.",
    "social": "Social media feed: scroll-stopping, conversational, hashtag-friendly.",
    "search": "Search results: keyword-rich, clear value proposition, action-oriented.",
    "display": "Display network: attention-grabbing, clear branding, compelling offer.",
}

IMAGE_PROMPT = (
    "Create a vibrant, eye-catching advertisement image: {prompt}. The image should be "
    "suitable for digital billboard display with bold colors and clear visual hierarchy."
)


class EstimatedPerformance(BaseModel):
    click_through_rate: float = 2.5
    engagement_score: float = 7.5
    conversion_potential: float = 6.0


class AdCopy(BaseModel):
    title: str
    description: str
    call_to_action: str


class GeneratedAd(AdCopy):
    keywords: list[str] = Field(default_factory=list)
    targeting_tips: list[str] = Field(default_factory=list)
    estimated_performance: EstimatedPerformance = Field(default_factory=EstimatedPerformance)


class AdGenerationRequest(BaseModel):
    prompt: str = Field(..., min_length=1)
    ad_type: AdKind
    target_audience: str
    industry: str
    goal: AdGoal
    tone: AdTone
    language: str = "English"
    location: str | None = None


class PerformanceMetrics(BaseModel):
    impressions: int = Field(..., ge=0)
    clicks: int = Field(..., ge=0)
    conversions: int = Field(..., ge=0)
    spend: float = Field(..., ge=0)


# =============================================================================
# Model replies
# =============================================================================


class _Reply(BaseModel):
    """A JSON reply from the model; any field of the wrong shape reads as missing."""

    @field_validator("*", mode="wrap")
    @classmethod
    def _drop_malformed(
        cls, value: Any, handler: ValidatorFunctionWrapHandler, info: ValidationInfo
    ) -> Any:
        try:
            return handler(value)
        except ValidationError:
            logger.warning("Ignoring malformed '%s' in model reply", info.field_name)
            return None


class _PerformanceReply(_Reply):
    click_through_rate: float | None = None
    engagement_score: float | None = None
    conversion_potential: float | None = None


class _CopyReply(_Reply):
    title: str | None = None
    description: str | None = None
    call_to_action: str | None = None
    keywords: list[str] | None = None
    targeting_tips: list[str] | None = None
    estimated_performance: _PerformanceReply | None = None


class _AnalysisReply(_Reply):
    insights: list[str] | None = None
    recommendations: list[str] | None = None
    optimization_score: float | None = None


def _ratio(numerator: float, denominator: float, scale: float = 1.0) -> float:
    return round(numerator / denominator * scale, 2) if denominator else 0.0


def _describe(ad: AdCopy) -> str:
    return f"Title: {ad.title}\nDescription: {ad.description}\nCall to action: {ad.call_to_action}"


class AdCopyService:
    def __init__(self, llm: LLMClient | None = None) -> None:
        self.llm = llm or LLMClient()
        self.logger = logging.getLogger(__name__)

    # =========================================================================
    # Generation
    # =========================================================================

    async def generate_ad_text(self, prompt: str, ad_type: str, goal: str) -> AdCopy:
        """
        Raises:
            GenerationError: If the model call fails.
        """
        result = await self.llm.complete_json(
            f"You are an expert advertising copywriter. Write copy for a {ad_type} ad "
            f"with the goal of {goal}. Respond with JSON {COPY_FORMAT}.",
            prompt,
        )
        reply = _CopyReply.model_validate(result)
        return AdCopy(
            title=reply.title or DEFAULT_TITLE,
            description=reply.description or DEFAULT_DESCRIPTION,
            call_to_action=reply.call_to_action or DEFAULT_CALL_TO_ACTION,
        )

    async def generate_ad_image(self, prompt: str) -> dict[str, str]:
        url = await self.llm.generate_image(IMAGE_PROMPT.format(prompt=prompt))
        return {"url": url}

    async def enhance_ad_prompt(self, prompt: str, ad_type: str, target_audience: str) -> str:
        """Rewrite a brief into a more specific one; the original brief on failure."""
        try:
            enhanced = await self.llm.complete_text(
                "You improve advertising briefs. Make the prompt more specific and effective.",
                f'Original prompt: "{prompt}"\nAd type: {ad_type}\nTarget audience: {target_audience}',
            )
        except GenerationError as e:
            self.logger.warning("Prompt enhancement failed: %s", e)
            return prompt
        return enhanced or prompt

    async def generate_advanced_ad(self, request: AdGenerationRequest) -> GeneratedAd:
        lines = [
            f"Create a {request.ad_type} ad for:",
            f"- Industry: {request.industry}",
            f"- Target audience: {request.target_audience}",
            f"- Goal: {request.goal}",
            f"- Tone: {request.tone}",
            f"- Language: {request.language}",
        ]
        if request.location:
            lines.append(f"- Location: {request.location}")
        lines.append(f"Creative brief: {request.prompt}")

        result = await self.llm.complete_json(
            "You are an advertising strategist. Respond with JSON "
            '{"title", "description", "call_to_action", "keywords", "targeting_tips", '
            '"estimated_performance": {"click_through_rate", "engagement_score", '
            '"conversion_potential"}}.',
            "\n".join(lines),
            temperature=0.7,
        )

        reply = _CopyReply.model_validate(result)
        performance = reply.estimated_performance or _PerformanceReply()
        defaults = EstimatedPerformance()
        return GeneratedAd(
            title=reply.title or DEFAULT_TITLE,
            description=reply.description or DEFAULT_DESCRIPTION,
            call_to_action=reply.call_to_action or DEFAULT_CALL_TO_ACTION,
            keywords=reply.keywords or [],
            targeting_tips=reply.targeting_tips or [],
            estimated_performance=EstimatedPerformance(
                click_through_rate=performance.click_through_rate or defaults.click_through_rate,
                engagement_score=performance.engagement_score or defaults.engagement_score,
                conversion_potential=performance.conversion_potential
                or defaults.conversion_potential,
            ),
        )

    # =========================================================================
    # Rewrites of an existing ad
    # =========================================================================

    async def _rewrite(
        self, ad: GeneratedAd, system_prompt: str, user_prompt: str, **kwargs: Any
    ) -> GeneratedAd:
        """Apply a copy rewrite, keeping the input ad's fields where the model is silent."""
        try:
            result = await self.llm.complete_json(system_prompt, user_prompt, **kwargs)
        except GenerationError as e:
            self.logger.warning("Ad rewrite failed, keeping original copy: %s", e)
            return ad
        reply = _CopyReply.model_validate(result)
        return ad.model_copy(
            update={
                "title": reply.title or ad.title,
                "description": reply.description or ad.description,
                "call_to_action": reply.call_to_action or ad.call_to_action,
            }
        )

    async def generate_multi_language_ad(
        self, ad: GeneratedAd, languages: list[str]
    ) -> dict[str, GeneratedAd]:
        translations = {}
        for language in languages:
            translations[language] = await self._rewrite(
                ad,
                f"You are a localization expert. Translate and culturally adapt ad copy to "
                f"{language}. Respond with JSON {COPY_FORMAT}.",
                _describe(ad),
            )
        return translations

    async def optimize_ad_for_platform(self, ad: GeneratedAd, platform: Platform) -> GeneratedAd:
        return await self._rewrite(
            ad,
            f"Optimize this ad for the {platform} platform. {PLATFORM_SPECS[platform]} "
            f"Respond with JSON {COPY_FORMAT}.",
            _describe(ad),
        )

    async def generate_ad_variations(self, ad: GeneratedAd, count: int = 3) -> list[GeneratedAd]:
        variations = []
        for number in range(1, count + 1):
            variations.append(
                await self._rewrite(
                    ad,
                    "Write a variation of this ad with the same core message and fresh wording. "
                    f"Respond with JSON {COPY_FORMAT}.",
                    f"Variation {number}:\n{_describe(ad)}",
                    temperature=0.8,
                )
            )
        return variations

    # =========================================================================
    # Analysis
    # =========================================================================

    async def analyze_ad_performance(
        self, content: str, metrics: PerformanceMetrics
    ) -> dict[str, Any]:
        """Insights, recommendations and a 0-10 optimization score."""
        ctr = _ratio(metrics.clicks, metrics.impressions, 100)
        conversion_rate = _ratio(metrics.conversions, metrics.clicks, 100)
        cpc = _ratio(metrics.spend, metrics.clicks)

        try:
            result = await self.llm.complete_json(
                "You are a marketing analyst. Respond with JSON "
                '{"insights": [], "recommendations": [], "optimization_score": 0.0}.',
                f"Ad content: {content}\nImpressions: {metrics.impressions}\n"
                f"Clicks: {metrics.clicks}\nConversions: {metrics.conversions}\n"
                f"Spend: ${metrics.spend}\nCTR: {ctr}%\n"
                f"Conversion rate: {conversion_rate}%\nCPC: ${cpc}",
            )
        except GenerationError as e:
            self.logger.error("Performance analysis failed: %s", e)
            return {
                "insights": ["Unable to analyze performance at this time"],
                "recommendations": ["Please try again later"],
                "optimization_score": DEFAULT_OPTIMIZATION_SCORE,
            }

        reply = _AnalysisReply.model_validate(result)
        return {
            "insights": reply.insights or [],
            "recommendations": reply.recommendations or [],
            "optimization_score": reply.optimization_score or DEFAULT_OPTIMIZATION_SCORE,
        }


def get_ad_copy_service() -> AdCopyService:
    return AdCopyService()
