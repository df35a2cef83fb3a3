"""
AI Ad Copy Service and LLM Client Tests

AdCopyService runs against the ``mock_llm`` fixture. LLMClient tests patch
``init_chat_model`` and ``AsyncOpenAI`` so no provider is contacted.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from billboard.config import Settings
from billboard.services.ad_copy_service import (
    AdCopyService,
    AdGenerationRequest,
    GeneratedAd,
    PerformanceMetrics,
)
from billboard.services.llm_client import GenerationError, LLMClient


@pytest.fixture
def service(mock_llm: MagicMock) -> AdCopyService:
    return AdCopyService(llm=mock_llm)


@pytest.fixture
def ad() -> GeneratedAd:
    return GeneratedAd(
        title="Fresh Roast Daily",
        description="Small-batch coffee delivered to your door",
        call_to_action="Order Now",
        keywords=["coffee"],
    )


# =============================================================================
# Generation
# =============================================================================


class TestGeneration:
    @pytest.mark.asyncio
    async def test_ad_text(self, service: AdCopyService, mock_llm: MagicMock) -> None:
        mock_llm.complete_json.return_value = {
            "title": "Wake Up Better",
            "description": "Coffee worth getting up for",
            "call_to_action": "Try It",
        }

        copy = await service.generate_ad_text("Coffee shop launch", "banner", "conversion")

        assert copy.title == "Wake Up Better"
        system_prompt, user_prompt = mock_llm.complete_json.call_args.args
        assert "banner ad" in system_prompt
        assert "conversion" in system_prompt
        assert user_prompt == "Coffee shop launch"

    @pytest.mark.asyncio
    async def test_ad_text_defaults(self, service: AdCopyService) -> None:
        copy = await service.generate_ad_text("anything", "banner", "awareness")

        assert copy.model_dump() == {
            "title": "Your Ad Title",
            "description": "Ad description",
            "call_to_action": "Learn More",
        }

    @pytest.mark.asyncio
    async def test_ad_text_propagates_failure(
        self, service: AdCopyService, mock_llm: MagicMock
    ) -> None:
        mock_llm.complete_json.side_effect = GenerationError("OpenAI API key not configured")

        with pytest.raises(GenerationError):
            await service.generate_ad_text("anything", "banner", "awareness")

    @pytest.mark.asyncio
    async def test_image_prompt_is_wrapped(
        self, service: AdCopyService, mock_llm: MagicMock
    ) -> None:
        image = await service.generate_ad_image("a neon coffee cup")

        assert image == {"url": "https://images.example.com/ad.png"}
        prompt = mock_llm.generate_image.call_args.args[0]
        assert "a neon coffee cup" in prompt
        assert "digital billboard" in prompt

    @pytest.mark.asyncio
    async def test_enhance_prompt_falls_back_to_original(
        self, service: AdCopyService, mock_llm: MagicMock
    ) -> None:
        mock_llm.complete_text.side_effect = GenerationError("timeout")

        assert await service.enhance_ad_prompt("coffee", "banner", "students") == "coffee"

    @pytest.mark.asyncio
    async def test_enhance_prompt_empty_reply(self, service: AdCopyService) -> None:
        assert await service.enhance_ad_prompt("coffee", "banner", "students") == "coffee"

    @pytest.mark.asyncio
    async def test_advanced_ad_fills_performance_defaults(
        self, service: AdCopyService, mock_llm: MagicMock
    ) -> None:
        mock_llm.complete_json.return_value = {
            "title": "Brew Bold",
            "keywords": ["espresso"],
            "estimated_performance": {"click_through_rate": 3.1},
        }
        request = AdGenerationRequest(
            prompt="Espresso bar",
            ad_type="video",
            target_audience="commuters",
            industry="Food & Beverage",
            goal="traffic",
            tone="casual",
            location="Berlin",
        )

        generated = await service.generate_advanced_ad(request)

        assert generated.title == "Brew Bold"
        assert generated.description == "Ad description"
        assert generated.keywords == ["espresso"]
        assert generated.targeting_tips == []
        assert generated.estimated_performance.click_through_rate == 3.1
        assert generated.estimated_performance.engagement_score == 7.5
        assert generated.estimated_performance.conversion_potential == 6.0

        user_prompt = mock_llm.complete_json.call_args.args[1]
        assert "- Location: Berlin" in user_prompt
        assert user_prompt.endswith("Creative brief: Espresso bar")

    @pytest.mark.asyncio
    async def test_ad_text_ignores_wrong_types(
        self, service: AdCopyService, mock_llm: MagicMock
    ) -> None:
        mock_llm.complete_json.return_value = {
            "title": 42,
            "description": ["Coffee", "worth it"],
            "call_to_action": "Try It",
        }

        copy = await service.generate_ad_text("Coffee shop launch", "banner", "conversion")

        assert copy.title == "Your Ad Title"
        assert copy.description == "Ad description"
        assert copy.call_to_action == "Try It"

    @pytest.mark.asyncio
    async def test_advanced_ad_with_malformed_fields(
        self, service: AdCopyService, mock_llm: MagicMock
    ) -> None:
        mock_llm.complete_json.return_value = {
            "title": {"text": "Brew Bold"},
            "keywords": "espresso, latte",
            "targeting_tips": ["Morning commuters", 7],
            "estimated_performance": "high",
        }
        request = AdGenerationRequest(
            prompt="Espresso bar",
            ad_type="banner",
            target_audience="commuters",
            industry="Food & Beverage",
            goal="traffic",
            tone="casual",
        )

        generated = await service.generate_advanced_ad(request)

        assert generated.title == "Your Ad Title"
        assert generated.keywords == []
        assert generated.targeting_tips == []
        assert generated.estimated_performance.click_through_rate == 2.5

    @pytest.mark.asyncio
    async def test_advanced_ad_keeps_valid_performance_fields(
        self, service: AdCopyService, mock_llm: MagicMock
    ) -> None:
        mock_llm.complete_json.return_value = {
            "estimated_performance": {"click_through_rate": "very high", "engagement_score": 9},
        }
        request = AdGenerationRequest(
            prompt="Espresso bar",
            ad_type="banner",
            target_audience="commuters",
            industry="Food & Beverage",
            goal="traffic",
            tone="casual",
        )

        generated = await service.generate_advanced_ad(request)

        assert generated.estimated_performance.click_through_rate == 2.5
        assert generated.estimated_performance.engagement_score == 9.0


# =============================================================================
# Rewrites
# =============================================================================


class TestRewrites:
    @pytest.mark.asyncio
    async def test_translation_keeps_untranslated_fields(
        self, service: AdCopyService, mock_llm: MagicMock, ad: GeneratedAd
    ) -> None:
        mock_llm.complete_json.side_effect = [
            {"title": "Tostado Fresco", "description": "Café de lote pequeño"},
            GenerationError("rate limited"),
        ]

        translations = await service.generate_multi_language_ad(ad, ["Spanish", "German"])

        assert translations["Spanish"].title == "Tostado Fresco"
        assert translations["Spanish"].call_to_action == "Order Now"
        assert translations["Spanish"].keywords == ["coffee"]
        assert translations["German"] == ad

    @pytest.mark.asyncio
    async def test_platform_optimisation(
        self, service: AdCopyService, mock_llm: MagicMock, ad: GeneratedAd
    ) -> None:
        mock_llm.complete_json.return_value = {"title": "#FreshRoast"}

        optimised = await service.optimize_ad_for_platform(ad, "social")

        assert optimised.title == "#FreshRoast"
        assert "Social media feed" in mock_llm.complete_json.call_args.args[0]

    @pytest.mark.asyncio
    async def test_variations_count(
        self, service: AdCopyService, mock_llm: MagicMock, ad: GeneratedAd
    ) -> None:
        mock_llm.complete_json.side_effect = [
            {"title": "One"},
            {"title": "Two"},
            GenerationError("boom"),
        ]

        variations = await service.generate_ad_variations(ad, count=3)

        assert [v.title for v in variations] == ["One", "Two", "Fresh Roast Daily"]
        assert mock_llm.complete_json.call_args.kwargs == {"temperature": 0.8}

    @pytest.mark.asyncio
    async def test_rewrite_ignores_wrong_types(
        self, service: AdCopyService, mock_llm: MagicMock, ad: GeneratedAd
    ) -> None:
        mock_llm.complete_json.return_value = {"title": ["A", "B"], "description": "Bold beans"}

        optimised = await service.optimize_ad_for_platform(ad, "search")

        assert optimised.title == "Fresh Roast Daily"
        assert optimised.description == "Bold beans"


# =============================================================================
# Analysis
# =============================================================================


class TestAnalysis:
    @pytest.mark.asyncio
    async def test_metrics_in_prompt(self, service: AdCopyService, mock_llm: MagicMock) -> None:
        mock_llm.complete_json.return_value = {
            "insights": ["Strong CTR"],
            "recommendations": ["Raise budget"],
            "optimization_score": 8.2,
        }
        metrics = PerformanceMetrics(impressions=2000, clicks=50, conversions=5, spend=25.0)

        analysis = await service.analyze_ad_performance("Coffee ad", metrics)

        assert analysis == {
            "insights": ["Strong CTR"],
            "recommendations": ["Raise budget"],
            "optimization_score": 8.2,
        }
        prompt = mock_llm.complete_json.call_args.args[1]
        assert "CTR: 2.5%" in prompt
        assert "Conversion rate: 10.0%" in prompt
        assert "CPC: $0.5" in prompt

    @pytest.mark.asyncio
    async def test_zero_clicks_do_not_divide(
        self, service: AdCopyService, mock_llm: MagicMock
    ) -> None:
        metrics = PerformanceMetrics(impressions=0, clicks=0, conversions=0, spend=0)

        analysis = await service.analyze_ad_performance("New ad", metrics)

        assert analysis["optimization_score"] == 5.0
        assert "CTR: 0.0%" in mock_llm.complete_json.call_args.args[1]

    @pytest.mark.asyncio
    async def test_failure_returns_neutral_analysis(
        self, service: AdCopyService, mock_llm: MagicMock
    ) -> None:
        mock_llm.complete_json.side_effect = GenerationError("timeout")
        metrics = PerformanceMetrics(impressions=10, clicks=1, conversions=0, spend=1)

        analysis = await service.analyze_ad_performance("Coffee ad", metrics)

        assert analysis == {
            "insights": ["Unable to analyze performance at this time"],
            "recommendations": ["Please try again later"],
            "optimization_score": 5.0,
        }

    @pytest.mark.asyncio
    async def test_malformed_analysis_fields(
        self, service: AdCopyService, mock_llm: MagicMock
    ) -> None:
        mock_llm.complete_json.return_value = {
            "insights": "CTR is fine",
            "recommendations": ["Raise budget"],
            "optimization_score": "n/a",
        }
        metrics = PerformanceMetrics(impressions=100, clicks=5, conversions=1, spend=10)

        analysis = await service.analyze_ad_performance("Coffee ad", metrics)

        assert analysis == {
            "insights": [],
            "recommendations": ["Raise budget"],
            "optimization_score": 5.0,
        }


# =============================================================================
# LLM client
# =============================================================================


class TestLLMClient:
    @pytest.fixture
    def chat_model(self) -> MagicMock:
        model = MagicMock()
        model.bind.return_value = model
        model.ainvoke = AsyncMock(return_value=SimpleNamespace(content='{"ok": true}'))
        return model

    @pytest.mark.asyncio
    async def test_missing_key(self, mock_settings: Settings) -> None:
        client = LLMClient(mock_settings.model_copy(update={"openai_api_key": None}))

        with pytest.raises(GenerationError, match="OpenAI API key not configured"):
            await client.complete_json("system", "user")

    @pytest.mark.asyncio
    async def test_json_mode(self, mock_settings: Settings, chat_model: MagicMock) -> None:
        client = LLMClient(mock_settings)

        with patch(
            "billboard.services.llm_client.init_chat_model", return_value=chat_model
        ) as init_model:
            result = await client.complete_json("system", "user", temperature=0.3)

        assert result == {"ok": True}
        assert init_model.call_args.args[0] == f"openai:{mock_settings.default_ai_model}"
        assert init_model.call_args.kwargs == {"api_key": "sk-test-openai", "temperature": 0.3}
        chat_model.bind.assert_called_once_with(response_format={"type": "json_object"})
        messages = chat_model.ainvoke.call_args.args[0]
        assert [m.content for m in messages] == ["system", "user"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", ["not json", "[1, 2]"])
    async def test_bad_json(
        self, mock_settings: Settings, chat_model: MagicMock, content: str
    ) -> None:
        chat_model.ainvoke.return_value = SimpleNamespace(content=content)

        with patch("billboard.services.llm_client.init_chat_model", return_value=chat_model):
            with pytest.raises(GenerationError):
                await LLMClient(mock_settings).complete_json("system", "user")

    @pytest.mark.asyncio
    async def test_empty_reply_is_empty_object(
        self, mock_settings: Settings, chat_model: MagicMock
    ) -> None:
        chat_model.ainvoke.return_value = SimpleNamespace(content="")

        with patch("billboard.services.llm_client.init_chat_model", return_value=chat_model):
            assert await LLMClient(mock_settings).complete_json("system", "user") == {}

    @pytest.mark.asyncio
    async def test_provider_error(self, mock_settings: Settings, chat_model: MagicMock) -> None:
        chat_model.ainvoke.side_effect = TimeoutError("upstream timeout")

        with patch("billboard.services.llm_client.init_chat_model", return_value=chat_model):
            with pytest.raises(GenerationError, match="upstream timeout"):
                await LLMClient(mock_settings).complete_text("system", "user")

    @pytest.mark.asyncio
    async def test_image_url(self, mock_settings: Settings) -> None:
        openai_client = MagicMock()
        openai_client.images.generate = AsyncMock(
            return_value=SimpleNamespace(data=[SimpleNamespace(url="https://img/1.png")])
        )

        with patch("billboard.services.llm_client.AsyncOpenAI", return_value=openai_client):
            url = await LLMClient(mock_settings).generate_image("a billboard")

        assert url == "https://img/1.png"
        kwargs = openai_client.images.generate.call_args.kwargs
        assert kwargs["n"] == 1
        assert kwargs["size"] == "1024x1024"
        assert kwargs["model"] == mock_settings.image_model
