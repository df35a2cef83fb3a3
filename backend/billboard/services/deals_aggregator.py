"""
Daily deals feed.

Deals are produced by the language model from a short curator prompt and
normalised into ``Deal`` records. Every derived view (category, trending,
local, search, deal of the day, stats) filters a freshly fetched feed, so the
feed itself is cached in Redis per (location, limit) for an hour.

When generation fails the feed falls back to two fixed deals, which are
never cached.
"""

import logging
import math
from collections import Counter
from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from billboard.config import Settings, get_settings
from billboard.core.redis_client import CacheKeys, get_redis_client
from billboard.services.llm_client import GenerationError, LLMClient


logger = logging.getLogger(__name__)

DEFAULT_LOCATION = "Global"
DEFAULT_EXPIRY_HOURS = 24
DEFAULT_POPULARITY = 50
DEFAULT_TOP_CATEGORY = "Electronics"
DEAL_URL = "https://example.com/deal/{index}"
AFFILIATE_URL = "https://affiliate.example.com/deal/{index}"

DEALS_SYSTEM_PROMPT = (
    "You are a deals curator for a global marketplace. Respond with JSON "
    '{"deals": [{"title", "description", "original_price", "discounted_price", '
    '"category", "merchant", "expiry_hours", "is_local", "is_affiliate", '
    '"tags", "popularity"}]}.'
)
DEALS_USER_PROMPT = (
    "Generate {count} diverse daily deals for {location}: a mix of online and "
    "local offers, prices between $5 and $500, discounts between 10% and 70%."
)


class Deal(BaseModel):
    id: str
    title: str
    description: str
    original_price: float
    discounted_price: float
    discount_percentage: int
    category: str
    merchant: str
    expiry_date: datetime
    location: str | None = None
    is_local: bool = False
    deal_url: str
    image_url: str | None = None
    tags: list[str] = Field(default_factory=list)
    popularity: int = DEFAULT_POPULARITY
    is_affiliate: bool = False
    affiliate_url: str | None = None


class DealResponse(BaseModel):
    deals: list[Deal]
    location: str
    total_deals: int
    categories: list[str]
    last_updated: datetime


class GeneratedDeal(BaseModel):
    """Shape requested from the model; extra keys are ignored."""

    title: str
    description: str = ""
    original_price: float = Field(..., gt=0)
    discounted_price: float = Field(..., ge=0)
    category: str
    merchant: str = ""
    expiry_hours: float = DEFAULT_EXPIRY_HOURS
    is_local: bool = False
    is_affiliate: bool = False
    tags: list[str] = Field(default_factory=list)
    popularity: int = DEFAULT_POPULARITY


def discount_percentage(original_price: float, discounted_price: float) -> int:
    """Whole-number discount, halves rounded up."""
    return math.floor((original_price - discounted_price) / original_price * 100 + 0.5)


def fallback_deals(location: str) -> list[Deal]:
    now = datetime.now(UTC)
    return [
        Deal(
            id="fallback_1",
            title="Wireless Bluetooth Headphones",
            description="Premium noise-canceling headphones with 30-hour battery life",
            original_price=199.99,
            discounted_price=89.99,
            discount_percentage=55,
            category="Electronics",
            merchant="TechStore",
            expiry_date=now + timedelta(hours=24),
            is_local=False,
            deal_url=DEAL_URL.format(index=1),
            tags=["wireless", "audio", "bluetooth"],
            popularity=92,
            is_affiliate=True,
            affiliate_url=AFFILIATE_URL.format(index=1),
        ),
        Deal(
            id="fallback_2",
            title="Local Restaurant 50% Off",
            description="Authentic Italian cuisine in the heart of downtown",
            original_price=60.0,
            discounted_price=30.0,
            discount_percentage=50,
            category="Food",
            merchant="Bella Vista Restaurant",
            expiry_date=now + timedelta(hours=12),
            location=location,
            is_local=True,
            deal_url=DEAL_URL.format(index=2),
            tags=["restaurant", "italian", "dinner"],
            popularity=78,
            is_affiliate=False,
        ),
    ]


class DealsAggregator:
    def __init__(self, llm: LLMClient | None = None, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self.llm = llm or LLMClient(self.settings)
        self.logger = logging.getLogger(__name__)

    # =========================================================================
    # Feed
    # =========================================================================

    def _to_deal(self, raw: GeneratedDeal, index: int, location: str, now: datetime) -> Deal:
        stamp = int(now.timestamp() * 1000)
        return Deal(
            id=f"deal_{stamp}_{index}",
            title=raw.title,
            description=raw.description,
            original_price=raw.original_price,
            discounted_price=raw.discounted_price,
            discount_percentage=discount_percentage(raw.original_price, raw.discounted_price),
            category=raw.category,
            merchant=raw.merchant,
            expiry_date=now + timedelta(hours=raw.expiry_hours),
            location=location if raw.is_local else None,
            is_local=raw.is_local,
            deal_url=DEAL_URL.format(index=index),
            tags=raw.tags,
            popularity=raw.popularity,
            is_affiliate=raw.is_affiliate,
            affiliate_url=AFFILIATE_URL.format(index=index) if raw.is_affiliate else None,
        )

    async def _generate_deals(self, location: str, count: int) -> list[Deal]:
        result = await self.llm.complete_json(
            DEALS_SYSTEM_PROMPT,
            DEALS_USER_PROMPT.format(count=count, location=location),
            temperature=0.8,
        )
        now = datetime.now(UTC)
        deals = []
        for index, item in enumerate(result.get("deals") or []):
            try:
                raw = GeneratedDeal.model_validate(item)
            except ValidationError as e:
                self.logger.warning("Skipping malformed generated deal %d: %s", index, e)
                continue
            deals.append(self._to_deal(raw, index, location, now))
        return deals

    async def get_daily_deals(
        self, location: str = DEFAULT_LOCATION, limit: int = 10
    ) -> DealResponse:
        """
        Generated feed for ``location``.

        When generation fails or yields no usable deals, the fallback deals
        are returned and nothing is cached.
        """
        cache_key = f"{CacheKeys.DAILY_DEALS}:{location.lower()}:{limit}"
        redis_client = get_redis_client()

        if redis_client:
            cached = await redis_client.get_json(cache_key)
            if cached:
                self.logger.debug("Deals cache hit for %s", cache_key)
                return DealResponse.model_validate(cached)

        cacheable = True
        try:
            deals = await self._generate_deals(location, limit)
        except GenerationError as e:
            self.logger.error("Failed to generate deals for %s: %s", location, e)
            deals = fallback_deals(location)
            cacheable = False
        else:
            if not deals:
                # Nothing usable came back; an empty feed is not cached.
                self.logger.warning("Model returned no usable deals for %s", location)
                deals = fallback_deals(location)
                cacheable = False

        response = DealResponse(
            deals=deals,
            location=location,
            total_deals=len(deals),
            categories=list(dict.fromkeys(deal.category for deal in deals)),
            last_updated=datetime.now(UTC),
        )

        if redis_client and cacheable:
            await redis_client.set_json(
                cache_key,
                response.model_dump(mode="json"),
                ttl=self.settings.deals_cache_ttl_seconds,
            )
        return response

    # =========================================================================
    # Derived views
    # =========================================================================

    async def get_deals_by_category(
        self, category: str, location: str = DEFAULT_LOCATION
    ) -> list[Deal]:
        feed = await self.get_daily_deals(location, 20)
        return [deal for deal in feed.deals if deal.category.lower() == category.lower()]

    async def get_trending_deals(
        self, location: str = DEFAULT_LOCATION, limit: int = 5
    ) -> list[Deal]:
        feed = await self.get_daily_deals(location, 20)
        return sorted(feed.deals, key=lambda deal: deal.popularity, reverse=True)[:limit]

    async def get_local_deals(self, location: str, limit: int = 8) -> list[Deal]:
        feed = await self.get_daily_deals(location, 15)
        return [deal for deal in feed.deals if deal.is_local][:limit]

    async def search_deals(self, query: str, location: str = DEFAULT_LOCATION) -> list[Deal]:
        """Case-insensitive substring match on title, description, category and tags."""
        feed = await self.get_daily_deals(location, 30)
        term = query.lower()
        return [
            deal
            for deal in feed.deals
            if term in deal.title.lower()
            or term in deal.description.lower()
            or term in deal.category.lower()
            or any(term in tag.lower() for tag in deal.tags)
        ]

    async def get_deal_of_the_day(self, location: str = DEFAULT_LOCATION) -> Deal | None:
        """Best discount plus a tenth of popularity; first deal wins ties."""
        feed = await self.get_daily_deals(location, 20)
        if not feed.deals:
            return None
        return max(feed.deals, key=lambda deal: deal.discount_percentage + deal.popularity / 10)

    async def get_deals_stats(self, location: str = DEFAULT_LOCATION) -> dict[str, Any]:
        feed = await self.get_daily_deals(location, 50)
        deals = feed.deals

        categories = Counter(deal.category for deal in deals)
        top_category = categories.most_common(1)[0][0] if categories else DEFAULT_TOP_CATEGORY
        average = sum(deal.discount_percentage for deal in deals) / len(deals) if deals else 0
        today = datetime.now(UTC).date()

        return {
            "total_deals": len(deals),
            "average_discount": math.floor(average + 0.5),
            "top_category": top_category,
            "local_deals_count": sum(1 for deal in deals if deal.is_local),
            "expiring_today": sum(1 for deal in deals if deal.expiry_date.date() == today),
        }


def get_deals_aggregator() -> DealsAggregator:
    return DealsAggregator()
