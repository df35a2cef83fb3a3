"""
Deals Feed and Surprise Generator Tests

The language model is replaced by the ``mock_llm`` fixture; Redis by
``mock_redis``. Covers feed normalisation, caching, the fallback feed and
every derived view, plus surprise defaults and degraded modes.
"""

from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from billboard.config import Settings
from billboard.services.deals_aggregator import (
    DealsAggregator,
    discount_percentage,
)
from billboard.services.llm_client import GenerationError
from billboard.services.surprise_generator import (
    HANDWRITTEN_LETTER,
    SurpriseGenerator,
    SurpriseRequest,
)


REDIS_PATH = "billboard.services.deals_aggregator.get_redis_client"


def generated(title: str, **overrides: Any) -> dict[str, Any]:
    item = {
        "title": title,
        "description": f"{title} on sale",
        "original_price": 100.0,
        "discounted_price": 60.0,
        "category": "Electronics",
        "merchant": "Shop",
        "expiry_hours": 48,
        "is_local": False,
        "is_affiliate": False,
        "tags": [],
        "popularity": 50,
    }
    item.update(overrides)
    return item


SAMPLE_FEED = {
    "deals": [
        generated("Laptop Stand", popularity=70, tags=["desk", "ergonomic"]),
        generated(
            "Pizza Night",
            category="Food",
            original_price=40.0,
            discounted_price=20.0,
            is_local=True,
            popularity=90,
            expiry_hours=2,
        ),
        generated(
            "Running Shoes",
            category="Fashion",
            original_price=120.0,
            discounted_price=84.0,
            is_affiliate=True,
            popularity=40,
        ),
        generated("Smart Bulb", original_price=30.0, discounted_price=27.0, popularity=95),
    ]
}


@pytest.fixture
def aggregator(mock_llm: MagicMock, mock_settings: Settings) -> DealsAggregator:
    mock_llm.complete_json.return_value = SAMPLE_FEED
    return DealsAggregator(llm=mock_llm, settings=mock_settings)


# =============================================================================
# Feed
# =============================================================================


class TestDailyDeals:
    @pytest.mark.parametrize(
        "original, discounted, expected",
        [(100.0, 60.0, 40), (199.99, 89.99, 55), (40.0, 20.0, 50), (8.0, 7.0, 13)],
    )
    def test_discount_percentage(self, original: float, discounted: float, expected: int) -> None:
        assert discount_percentage(original, discounted) == expected

    @pytest.mark.asyncio
    async def test_generated_feed_is_normalised_and_cached(
        self, aggregator: DealsAggregator, mock_redis: AsyncMock
    ) -> None:
        with patch(REDIS_PATH, return_value=mock_redis):
            feed = await aggregator.get_daily_deals("Lagos", 4)

        assert feed.total_deals == 4
        assert feed.location == "Lagos"
        assert feed.categories == ["Electronics", "Food", "Fashion"]

        stand, pizza, shoes, _ = feed.deals
        assert stand.id.startswith("deal_") and stand.id.endswith("_0")
        assert stand.discount_percentage == 40
        assert stand.location is None
        assert stand.deal_url == "https://example.com/deal/0"
        assert pizza.location == "Lagos"
        assert shoes.is_affiliate is True
        assert shoes.affiliate_url == "https://affiliate.example.com/deal/2"
        assert stand.affiliate_url is None

        mock_redis.get_json.assert_awaited_once_with("deals:daily:lagos:4")
        key, payload = mock_redis.set_json.call_args.args
        assert key == "deals:daily:lagos:4"
        assert payload["total_deals"] == 4
        assert mock_redis.set_json.call_args.kwargs["ttl"] == 3600

    @pytest.mark.asyncio
    async def test_cache_hit_skips_generation(
        self, aggregator: DealsAggregator, mock_llm: MagicMock, mock_redis: AsyncMock
    ) -> None:
        cached = {
            "deals": [],
            "location": "Lagos",
            "total_deals": 0,
            "categories": [],
            "last_updated": "2024-01-15T10:00:00+00:00",
        }
        mock_redis.get_json.return_value = cached

        with patch(REDIS_PATH, return_value=mock_redis):
            feed = await aggregator.get_daily_deals("Lagos", 4)

        assert feed.location == "Lagos"
        mock_llm.complete_json.assert_not_awaited()
        mock_redis.set_json.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_fallback_feed_is_not_cached(
        self, aggregator: DealsAggregator, mock_llm: MagicMock, mock_redis: AsyncMock
    ) -> None:
        mock_llm.complete_json.side_effect = GenerationError("OpenAI API key not configured")

        with patch(REDIS_PATH, return_value=mock_redis):
            feed = await aggregator.get_daily_deals("Nairobi")

        assert [deal.id for deal in feed.deals] == ["fallback_1", "fallback_2"]
        assert feed.categories == ["Electronics", "Food"]
        assert feed.deals[1].location == "Nairobi"
        assert feed.deals[0].is_affiliate is True
        mock_redis.set_json.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "reply",
        [{}, {"deals": []}, {"deals": [{"title": "No price", "category": "Misc"}]}],
    )
    async def test_empty_feed_falls_back_uncached(
        self,
        aggregator: DealsAggregator,
        mock_llm: MagicMock,
        mock_redis: AsyncMock,
        reply: dict[str, Any],
    ) -> None:
        mock_llm.complete_json.return_value = reply

        with patch(REDIS_PATH, return_value=mock_redis):
            feed = await aggregator.get_daily_deals("Nairobi")

        assert [deal.id for deal in feed.deals] == ["fallback_1", "fallback_2"]
        assert feed.total_deals == 2
        mock_redis.set_json.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_malformed_items_are_skipped(
        self, aggregator: DealsAggregator, mock_llm: MagicMock
    ) -> None:
        mock_llm.complete_json.return_value = {
            "deals": [
                generated("Good"),
                {"title": "No price", "category": "Misc"},
                generated("Zero", original_price=0),
            ]
        }

        with patch(REDIS_PATH, return_value=None):
            feed = await aggregator.get_daily_deals()

        assert [deal.title for deal in feed.deals] == ["Good"]
        assert feed.location == "Global"

    @pytest.mark.asyncio
    async def test_works_without_redis(self, aggregator: DealsAggregator) -> None:
        with patch(REDIS_PATH, return_value=None):
            feed = await aggregator.get_daily_deals("Lagos")

        assert feed.total_deals == 4


# =============================================================================
# Derived views
# =============================================================================


class TestDerivedViews:
    @pytest.mark.asyncio
    async def test_by_category_is_case_insensitive(self, aggregator: DealsAggregator) -> None:
        with patch(REDIS_PATH, return_value=None):
            deals = await aggregator.get_deals_by_category("electronics")

        assert [deal.title for deal in deals] == ["Laptop Stand", "Smart Bulb"]

    @pytest.mark.asyncio
    async def test_trending_sorted_by_popularity(self, aggregator: DealsAggregator) -> None:
        with patch(REDIS_PATH, return_value=None):
            deals = await aggregator.get_trending_deals(limit=2)

        assert [deal.title for deal in deals] == ["Smart Bulb", "Pizza Night"]

    @pytest.mark.asyncio
    async def test_local_deals(self, aggregator: DealsAggregator, mock_llm: MagicMock) -> None:
        with patch(REDIS_PATH, return_value=None):
            deals = await aggregator.get_local_deals("Lagos")

        assert [deal.title for deal in deals] == ["Pizza Night"]
        assert "15" in mock_llm.complete_json.call_args.args[1]

    @pytest.mark.asyncio
    async def test_search_matches_tags(self, aggregator: DealsAggregator) -> None:
        with patch(REDIS_PATH, return_value=None):
            by_tag = await aggregator.search_deals("ERGONOMIC")
            by_category = await aggregator.search_deals("fashion")
            nothing = await aggregator.search_deals("yacht")

        assert [deal.title for deal in by_tag] == ["Laptop Stand"]
        assert [deal.title for deal in by_category] == ["Running Shoes"]
        assert nothing == []

    @pytest.mark.asyncio
    async def test_deal_of_the_day(self, aggregator: DealsAggregator) -> None:
        with patch(REDIS_PATH, return_value=None):
            deal = await aggregator.get_deal_of_the_day()

        # Pizza Night: 50 + 9.0 beats Laptop Stand: 40 + 7.0
        assert deal is not None
        assert deal.title == "Pizza Night"

    @pytest.mark.asyncio
    async def test_deal_of_the_day_empty_feed(
        self, aggregator: DealsAggregator, mock_llm: MagicMock
    ) -> None:
        mock_llm.complete_json.return_value = {"deals": []}

        with patch(REDIS_PATH, return_value=None):
            deal = await aggregator.get_deal_of_the_day()

        # Headphones: 55 + 9.2 beats the restaurant: 50 + 7.8
        assert deal is not None
        assert deal.id == "fallback_1"

    @pytest.mark.asyncio
    async def test_stats(self, aggregator: DealsAggregator) -> None:
        with patch(REDIS_PATH, return_value=None):
            stats = await aggregator.get_deals_stats()

        # discounts 40, 50, 30, 10
        assert stats["total_deals"] == 4
        assert stats["average_discount"] == 33
        assert stats["top_category"] == "Electronics"
        assert stats["local_deals_count"] == 1

    @pytest.mark.asyncio
    async def test_stats_empty_feed(self, aggregator: DealsAggregator, mock_llm: MagicMock) -> None:
        mock_llm.complete_json.return_value = {}

        with patch(REDIS_PATH, return_value=None):
            stats = await aggregator.get_deals_stats()

        # Computed over the two fallback deals: discounts 55 and 50
        assert stats["total_deals"] == 2
        assert stats["average_discount"] == 53
        assert stats["top_category"] == "Electronics"
        assert stats["local_deals_count"] == 1


# =============================================================================
# Surprises
# =============================================================================


class TestSurpriseGenerator:
    @pytest.fixture
    def generator(self, mock_llm: MagicMock) -> SurpriseGenerator:
        return SurpriseGenerator(llm=mock_llm)

    @pytest.mark.asyncio
    async def test_defaults_fill_missing_fields(
        self, generator: SurpriseGenerator, mock_llm: MagicMock
    ) -> None:
        mock_llm.complete_json.return_value = {
            "ideas": [{"title": "Picnic", "difficulty": "medium"}, {"description": "no title"}]
        }

        response = await generator.generate_surprises(
            SurpriseRequest(occasion="birthday", relationship="friend", budget="low")
        )

        assert len(response.ideas) == 1
        assert response.ideas[0].title == "Picnic"
        assert response.ideas[0].materials == []
        assert response.location == "Global"
        assert response.occasion == "birthday"
        assert response.shareable_text == (
            "Check out these amazing birthday surprise ideas! 🎉 #SurpriseIdeas #birthday #Billboard"
        )

    @pytest.mark.asyncio
    async def test_prompt_includes_optional_details(
        self, generator: SurpriseGenerator, mock_llm: MagicMock
    ) -> None:
        mock_llm.complete_json.return_value = {"ideas": [], "shareable_text": "Share me"}

        response = await generator.generate_surprises(
            SurpriseRequest(
                occasion="anniversary",
                relationship="partner",
                budget="high",
                location="Paris",
                interests=["wine", "jazz"],
                personality_type="romantic",
            )
        )

        prompt = mock_llm.complete_json.call_args.args[1]
        assert "- Location: Paris" in prompt
        assert "- Interests: wine, jazz" in prompt
        assert "- Personality: romantic" in prompt
        assert response.shareable_text == "Share me"
        assert response.location == "Paris"

    @pytest.mark.asyncio
    async def test_generation_error_propagates(
        self, generator: SurpriseGenerator, mock_llm: MagicMock
    ) -> None:
        mock_llm.complete_json.side_effect = GenerationError("timeout")

        with pytest.raises(GenerationError):
            await generator.generate_surprises(
                SurpriseRequest(occasion="holiday", relationship="family", budget="medium")
            )

    @pytest.mark.asyncio
    async def test_location_preset(self, generator: SurpriseGenerator, mock_llm: MagicMock) -> None:
        response = await generator.generate_location_surprises("Tokyo")

        prompt = mock_llm.complete_json.call_args.args[1]
        assert "- Occasion: date_night" in prompt
        assert "- Relationship: partner" in prompt
        assert "- Personality: adventurous" in prompt
        assert response.location == "Tokyo"

    @pytest.mark.asyncio
    async def test_quick_falls_back_to_letter(
        self, generator: SurpriseGenerator, mock_llm: MagicMock
    ) -> None:
        mock_llm.complete_json.side_effect = GenerationError("rate limited")

        assert await generator.generate_quick_surprises() == [HANDWRITTEN_LETTER]

    @pytest.mark.asyncio
    async def test_category_preset(self, generator: SurpriseGenerator, mock_llm: MagicMock) -> None:
        mock_llm.complete_json.return_value = {"ideas": [{"title": "Team lunch"}]}

        ideas = await generator.generate_by_category("professional")

        prompt = mock_llm.complete_json.call_args.args[1]
        assert "- Relationship: colleague" in prompt
        assert [idea.title for idea in ideas] == ["Team lunch"]

    @pytest.mark.asyncio
    async def test_seasonal_failure_is_empty(
        self, generator: SurpriseGenerator, mock_llm: MagicMock
    ) -> None:
        mock_llm.complete_json.side_effect = GenerationError("boom")

        assert await generator.generate_seasonal_surprises("winter", "Oslo") == []

    @pytest.mark.asyncio
    async def test_seasonal_prompt_mentions_location(
        self, generator: SurpriseGenerator, mock_llm: MagicMock
    ) -> None:
        await generator.generate_seasonal_surprises("summer", "Lisbon")

        assert mock_llm.complete_json.call_args.args[1] == (
            "Generate 4 surprise ideas perfect for summer in Lisbon."
        )
