"""
Smart Pricing Engine for Billboard ad placements.

The price of a placement is a product of independent factors read from the
rate tables, multiplied by the number of days, plus a flat surcharge for
AI-generated creatives:

    total = base_rate(tier) * slot_multiplier(tier) * geo_multiplier(country)
          * time_multiplier(hour, weekday) * format_multiplier(format)
          * duration_discount(days) * demand_multiplier(slot, hour, weekday)
          * days
          + ai_bonus

    daily_rate = total / days

Hour and weekday are read from the start timestamp's own wall clock, so a
client sending ``2024-01-15T19:00:00-05:00`` is priced at 19:00.

The engine is a pure function of its inputs: no I/O, no clock reads except in
``get_quick_estimate`` which prices "now". All arithmetic is Decimal; only
``total`` and ``daily_rate`` are rounded (2 places, ROUND_HALF_UP).

Example:
    >>> engine = PricingEngine()
    >>> result = engine.calculate_price(PricingRequest(
    ...     slot_type="top_center", duration=3, country="US",
    ...     start_date=datetime(2024, 1, 15, 19, 0), ad_format="VIDEO",
    ...     ai_generated=True,
    ... ))
    >>> result.total
    Decimal('494.79')
"""

import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field, field_validator

from billboard.models.common import quantize_money
from billboard.services.rate_tables import (
    AI_GENERATED_BONUS,
    BASE_RATES,
    DEFAULT_GEO_MULTIPLIER,
    DEMAND_MULTIPLIERS,
    DURATION_DISCOUNTS,
    FORMAT_MULTIPLIERS,
    GEO_MULTIPLIERS,
    MAX_DURATION_DAYS,
    MIN_DURATION_DAYS,
    PREMIUM_DEMAND_SLOT,
    SLOT_MULTIPLIERS,
    SLOT_TIER_MAPPING,
    SLOT_TYPES,
    TIME_MULTIPLIERS,
    TIME_WINDOWS,
    AdFormat,
    SlotTier,
)


logger = logging.getLogger(__name__)

CURRENCY = "USD"

# Saturday and Sunday in datetime.weekday()
WEEKEND_DAYS = frozenset({5, 6})

# Popularity baseline per tier for the availability view
TIER_POPULARITY: dict[SlotTier, Decimal] = {
    SlotTier.TOP: Decimal("85"),
    SlotTier.MID: Decimal("65"),
    SlotTier.BOTTOM: Decimal("45"),
}


# =============================================================================
# Exceptions
# =============================================================================


class PricingError(Exception):
    """Base exception for pricing failures."""


class PricingValidationError(PricingError):
    """Raised when pricing inputs are out of range."""


# =============================================================================
# Models
# =============================================================================


class PricingRequest(BaseModel):
    """
    Validated input for a single price calculation.

    Duration is limited to 1-30 days here; the payment flow, which books up to
    a year, calls the engine directly with longer durations.
    """

    slot_type: str = Field(..., min_length=1, description="Placement, e.g. top_center")
    duration: int = Field(..., ge=MIN_DURATION_DAYS, le=MAX_DURATION_DAYS)
    country: str = Field(default="US", min_length=2, max_length=2)
    start_date: datetime
    ad_format: AdFormat = AdFormat.IMAGE
    ai_generated: bool = False

    @field_validator("country")
    @classmethod
    def upper_country(cls, value: str) -> str:
        return value.upper()

    @field_validator("ad_format", mode="before")
    @classmethod
    def upper_format(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value


class PriceBreakdown(BaseModel):
    """Every factor that went into a price, unrounded."""

    base_rate: Decimal
    slot_multiplier: Decimal
    geo_multiplier: Decimal
    time_multiplier: Decimal
    format_multiplier: Decimal
    duration_discount: Decimal
    demand_multiplier: Decimal
    ai_generated_bonus: Decimal
    subtotal: Decimal
    total: Decimal
    daily_rate: Decimal


class PricingResult(BaseModel):
    total: Decimal
    daily_rate: Decimal
    breakdown: PriceBreakdown
    currency: str = CURRENCY

    def to_response(self) -> dict[str, Any]:
        """JSON-friendly dict with float amounts."""
        return {
            "total": float(self.total),
            "daily_rate": float(self.daily_rate),
            "breakdown": {k: float(v) for k, v in self.breakdown.model_dump().items()},
            "currency": self.currency,
        }


# =============================================================================
# Engine
# =============================================================================


class PricingEngine:
    """Stateless calculator over the rate tables."""

    def __init__(self) -> None:
        self.logger = logging.getLogger(__name__)

    # -------------------------------------------------------------------------
    # Individual factors
    # -------------------------------------------------------------------------

    @staticmethod
    def get_slot_tier(slot_type: str) -> SlotTier:
        """Unknown slots are priced as BOTTOM tier."""
        return SLOT_TIER_MAPPING.get(slot_type, SlotTier.BOTTOM)

    @staticmethod
    def get_geo_multiplier(country: str) -> Decimal:
        return GEO_MULTIPLIERS.get(country.upper(), DEFAULT_GEO_MULTIPLIER)

    @staticmethod
    def get_time_multiplier(start: datetime) -> Decimal:
        if start.weekday() in WEEKEND_DAYS:
            return TIME_MULTIPLIERS["WEEKEND"]
        for window_start, window_end, name in TIME_WINDOWS:
            if window_start <= start.hour < window_end:
                return TIME_MULTIPLIERS[name]
        return TIME_MULTIPLIERS["LATE_NIGHT"]

    @staticmethod
    def get_duration_discount(duration: int) -> Decimal:
        for min_days, factor in DURATION_DISCOUNTS:
            if duration >= min_days:
                return factor
        return Decimal("1.00")

    @staticmethod
    def get_demand_multiplier(slot_type: str, start: datetime) -> Decimal:
        """
        Demand surge for the premium slot during prime and business hours.

        Applies on weekends too; every other slot/time is MEDIUM.
        """
        if slot_type == PREMIUM_DEMAND_SLOT:
            if 18 <= start.hour < 22:
                return DEMAND_MULTIPLIERS["VERY_HIGH"]
            if 9 <= start.hour < 17:
                return DEMAND_MULTIPLIERS["HIGH"]
        return DEMAND_MULTIPLIERS["MEDIUM"]

    # -------------------------------------------------------------------------
    # Calculation
    # -------------------------------------------------------------------------

    def compute(
        self,
        slot_type: str,
        duration: int,
        country: str,
        start_date: datetime,
        ad_format: AdFormat | str,
        ai_generated: bool = False,
    ) -> PricingResult:
        """
        Price a placement.

        ``duration`` has no upper bound here; discounts stop improving past
        30 days.

        Raises:
            PricingValidationError: On a non-positive duration, a country code
                that is not two letters, or an unknown ad format.
        """
        if duration < MIN_DURATION_DAYS:
            raise PricingValidationError(f"Duration must be at least {MIN_DURATION_DAYS} day")
        if len(country) != 2:
            raise PricingValidationError("Country code must be 2 characters")
        try:
            ad_format = AdFormat(ad_format.upper() if isinstance(ad_format, str) else ad_format)
        except ValueError as e:
            raise PricingValidationError(
                f"Invalid ad format '{ad_format}'. Must be one of: IMAGE, VIDEO, TEXT"
            ) from e

        tier = self.get_slot_tier(slot_type)
        base_rate = BASE_RATES[tier]
        slot_multiplier = SLOT_MULTIPLIERS[tier]
        geo_multiplier = self.get_geo_multiplier(country)
        time_multiplier = self.get_time_multiplier(start_date)
        format_multiplier = FORMAT_MULTIPLIERS[ad_format]
        duration_discount = self.get_duration_discount(duration)
        demand_multiplier = self.get_demand_multiplier(slot_type, start_date)
        ai_bonus = AI_GENERATED_BONUS if ai_generated else Decimal("0")

        subtotal = (
            base_rate
            * slot_multiplier
            * geo_multiplier
            * time_multiplier
            * format_multiplier
            * duration_discount
            * demand_multiplier
            * duration
        )
        total = subtotal + ai_bonus
        daily_rate = total / duration

        breakdown = PriceBreakdown(
            base_rate=base_rate,
            slot_multiplier=slot_multiplier,
            geo_multiplier=geo_multiplier,
            time_multiplier=time_multiplier,
            format_multiplier=format_multiplier,
            duration_discount=duration_discount,
            demand_multiplier=demand_multiplier,
            ai_generated_bonus=ai_bonus,
            subtotal=subtotal,
            total=total,
            daily_rate=daily_rate,
        )

        self.logger.debug(
            "Priced %s for %d days in %s: %s", slot_type, duration, country.upper(), total
        )
        return PricingResult(
            total=quantize_money(total),
            daily_rate=quantize_money(daily_rate),
            breakdown=breakdown,
        )

    def calculate_price(self, request: PricingRequest) -> PricingResult:
        return self.compute(
            slot_type=request.slot_type,
            duration=request.duration,
            country=request.country,
            start_date=request.start_date,
            ad_format=request.ad_format,
            ai_generated=request.ai_generated,
        )

    def calculate_bulk_pricing(self, requests: list[PricingRequest]) -> list[PricingResult]:
        return [self.calculate_price(request) for request in requests]

    def get_quick_estimate(
        self, slot_type: str, duration: int, country: str = "US"
    ) -> Decimal:
        """Total for an IMAGE ad starting now, without the AI surcharge."""
        return self.compute(
            slot_type=slot_type,
            duration=duration,
            country=country,
            start_date=datetime.now(),
            ad_format=AdFormat.IMAGE,
        ).total

    # -------------------------------------------------------------------------
    # Catalogue
    # -------------------------------------------------------------------------

    def get_available_slots(self, start: date, end: date) -> list[dict[str, Any]]:
        """
        List every slot as available with a popularity score.

        The score starts from the tier baseline and rises with the share of
        weekend days in the window, so the same window always scores the same.
        """
        if end < start:
            raise PricingValidationError("end_date must not be before start_date")

        days = (end - start).days + 1
        weekend_days = sum(
            1 for offset in range(days) if (start + timedelta(days=offset)).weekday() in WEEKEND_DAYS
        )
        weekend_boost = Decimal(weekend_days * 10) / Decimal(days)

        slots = []
        for slot_type, tier in SLOT_TIER_MAPPING.items():
            score = min(TIER_POPULARITY[tier] + weekend_boost, Decimal("100"))
            slots.append(
                {
                    "slot_type": slot_type,
                    "tier": tier.value,
                    "base_rate": float(BASE_RATES[tier]),
                    "is_available": True,
                    "booked_dates": [],
                    "popularity_score": float(quantize_money(score)),
                }
            )
        return slots

    @staticmethod
    def get_pricing_constants() -> dict[str, Any]:
        return {
            "base_rates": {f"{tier.value}_TIER": float(rate) for tier, rate in BASE_RATES.items()},
            "slot_types": SLOT_TYPES,
            "ad_formats": [fmt.value for fmt in AdFormat],
            "max_duration": MAX_DURATION_DAYS,
            "min_duration": MIN_DURATION_DAYS,
        }


def get_pricing_engine() -> PricingEngine:
    """Dependency provider for routers and the payment engine."""
    return PricingEngine()
