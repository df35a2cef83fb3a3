"""
Smart Pricing Engine Test Suite

Covers billboard/services/pricing_engine.py:
- the worked example (top_center, 3 days, US, Monday 19:00, VIDEO, AI)
- individual factor lookups (tier, geo, time window, duration, demand)
- monotonic per-day cost, determinism, unknown-country fallback
- the flat AI surcharge
- validation errors, availability and constants
"""

from datetime import date, datetime
from decimal import Decimal

import pytest
from pydantic import ValidationError

from billboard.services.pricing_engine import (
    PricingEngine,
    PricingRequest,
    PricingValidationError,
)
from billboard.services.rate_tables import AdFormat, SlotTier


MONDAY_PRIME = datetime(2024, 1, 15, 19, 0)
MONDAY_BUSINESS = datetime(2024, 1, 15, 10, 0)
SATURDAY_EVENING = datetime(2024, 1, 13, 19, 0)


@pytest.fixture
def engine() -> PricingEngine:
    return PricingEngine()


def _price(engine: PricingEngine, **overrides):
    params = {
        "slot_type": "top_center",
        "duration": 3,
        "country": "US",
        "start_date": MONDAY_PRIME,
        "ad_format": "VIDEO",
        "ai_generated": False,
    }
    params.update(overrides)
    return engine.compute(**params)


# =============================================================================
# Worked example
# =============================================================================


class TestWorkedExample:
    def test_total_and_daily_rate(self, engine: PricingEngine) -> None:
        result = engine.calculate_price(
            PricingRequest(
                slot_type="top_center",
                duration=3,
                country="US",
                start_date=MONDAY_PRIME,
                ad_format="VIDEO",
                ai_generated=True,
            )
        )

        assert result.total == Decimal("494.79")
        assert result.daily_rate == Decimal("164.93")
        assert result.currency == "USD"

    def test_breakdown_factors(self, engine: PricingEngine) -> None:
        breakdown = _price(engine, ai_generated=True).breakdown

        assert breakdown.base_rate == Decimal("15")
        assert breakdown.slot_multiplier == Decimal("2.0")
        assert breakdown.geo_multiplier == Decimal("1.5")
        assert breakdown.time_multiplier == Decimal("1.4")
        assert breakdown.format_multiplier == Decimal("1.5")
        assert breakdown.duration_discount == Decimal("0.95")
        assert breakdown.demand_multiplier == Decimal("1.8")
        assert breakdown.ai_generated_bonus == Decimal("10")
        assert breakdown.subtotal == Decimal("484.785")

    def test_to_response_uses_floats(self, engine: PricingEngine) -> None:
        response = _price(engine, ai_generated=True).to_response()

        assert response["total"] == 494.79
        assert response["daily_rate"] == 164.93
        assert response["breakdown"]["demand_multiplier"] == 1.8
        assert response["currency"] == "USD"


# =============================================================================
# Factors
# =============================================================================


class TestFactors:
    @pytest.mark.parametrize(
        "slot_type, tier",
        [
            ("top_left", SlotTier.TOP),
            ("mid_right", SlotTier.MID),
            ("mobile_interstitial", SlotTier.MID),
            ("mobile_banner", SlotTier.BOTTOM),
            ("sidebar_unknown", SlotTier.BOTTOM),
        ],
    )
    def test_slot_tier(self, slot_type: str, tier: SlotTier) -> None:
        assert PricingEngine.get_slot_tier(slot_type) == tier

    def test_geo_multiplier_is_case_insensitive(self) -> None:
        assert PricingEngine.get_geo_multiplier("ng") == Decimal("0.8")

    @pytest.mark.parametrize(
        "start, expected",
        [
            (datetime(2024, 1, 15, 18, 0), Decimal("1.4")),  # prime
            (datetime(2024, 1, 15, 21, 59), Decimal("1.4")),
            (datetime(2024, 1, 15, 9, 0), Decimal("1.2")),  # business
            (datetime(2024, 1, 15, 17, 0), Decimal("1.1")),  # evening
            (datetime(2024, 1, 15, 6, 0), Decimal("1.0")),  # morning
            (datetime(2024, 1, 15, 22, 0), Decimal("0.6")),  # late night
            (datetime(2024, 1, 15, 3, 0), Decimal("0.6")),
            (datetime(2024, 1, 14, 3, 0), Decimal("1.1")),  # Sunday
        ],
    )
    def test_time_multiplier(self, start: datetime, expected: Decimal) -> None:
        assert PricingEngine.get_time_multiplier(start) == expected

    @pytest.mark.parametrize(
        "duration, expected",
        [
            (1, Decimal("1.00")),
            (2, Decimal("1.00")),
            (3, Decimal("0.95")),
            (7, Decimal("0.90")),
            (13, Decimal("0.90")),
            (14, Decimal("0.85")),
            (30, Decimal("0.80")),
            (365, Decimal("0.80")),
        ],
    )
    def test_duration_discount(self, duration: int, expected: Decimal) -> None:
        assert PricingEngine.get_duration_discount(duration) == expected

    def test_demand_surge_only_for_premium_slot(self) -> None:
        assert PricingEngine.get_demand_multiplier("top_center", MONDAY_PRIME) == Decimal("1.8")
        assert PricingEngine.get_demand_multiplier("top_center", MONDAY_BUSINESS) == Decimal("1.4")
        assert PricingEngine.get_demand_multiplier("top_left", MONDAY_PRIME) == Decimal("1.0")

    def test_demand_surge_applies_on_weekends(self, engine: PricingEngine) -> None:
        breakdown = _price(engine, start_date=SATURDAY_EVENING).breakdown

        assert breakdown.time_multiplier == Decimal("1.1")
        assert breakdown.demand_multiplier == Decimal("1.8")

    def test_hour_is_read_from_the_timestamp_wall_clock(self, engine: PricingEngine) -> None:
        start = datetime.fromisoformat("2024-01-15T19:00:00-05:00")

        assert _price(engine, start_date=start).breakdown.time_multiplier == Decimal("1.4")


# =============================================================================
# Properties
# =============================================================================


class TestPricingProperties:
    def test_longer_campaigns_cost_no_more_per_day(self, engine: PricingEngine) -> None:
        daily_rates = [
            _price(engine, slot_type="mid_left", duration=days).daily_rate
            for days in (1, 3, 7, 14, 30)
        ]

        assert daily_rates == sorted(daily_rates, reverse=True)

    def test_identical_inputs_give_identical_results(self, engine: PricingEngine) -> None:
        assert _price(engine) == _price(engine)
        assert PricingEngine().compute(
            "bottom_left", 5, "KE", MONDAY_BUSINESS, AdFormat.TEXT
        ) == engine.compute("bottom_left", 5, "KE", MONDAY_BUSINESS, AdFormat.TEXT)

    def test_unknown_country_uses_neutral_multiplier(self, engine: PricingEngine) -> None:
        assert _price(engine, country="ZZ").breakdown.geo_multiplier == Decimal("1.0")

    def test_ai_bonus_is_flat(self, engine: PricingEngine) -> None:
        for days in (1, 7, 30):
            without_ai = _price(engine, duration=days)
            with_ai = _price(engine, duration=days, ai_generated=True)

            assert with_ai.total - without_ai.total == Decimal("10.00")

    def test_compute_accepts_durations_beyond_thirty_days(self, engine: PricingEngine) -> None:
        result = _price(engine, duration=90)

        assert result.breakdown.duration_discount == Decimal("0.80")


# =============================================================================
# Validation
# =============================================================================


class TestValidation:
    def test_zero_duration_rejected(self, engine: PricingEngine) -> None:
        with pytest.raises(PricingValidationError):
            _price(engine, duration=0)

    def test_three_letter_country_rejected(self, engine: PricingEngine) -> None:
        with pytest.raises(PricingValidationError, match="2 characters"):
            _price(engine, country="USA")

    def test_unknown_format_rejected(self, engine: PricingEngine) -> None:
        with pytest.raises(PricingValidationError, match="Invalid ad format"):
            _price(engine, ad_format="GIF")

    def test_request_caps_duration_at_thirty_days(self) -> None:
        with pytest.raises(ValidationError):
            PricingRequest(slot_type="top_center", duration=31, start_date=MONDAY_PRIME)

    def test_request_normalises_format_and_country(self) -> None:
        request = PricingRequest(
            slot_type="top_center",
            duration=1,
            country="gb",
            start_date=MONDAY_PRIME,
            ad_format="video",
        )

        assert request.ad_format == AdFormat.VIDEO
        assert request.country == "GB"


# =============================================================================
# Catalogue
# =============================================================================


class TestCatalogue:
    def test_bulk_pricing_preserves_order(self, engine: PricingEngine) -> None:
        requests = [
            PricingRequest(slot_type=slot, duration=2, start_date=MONDAY_BUSINESS)
            for slot in ("top_center", "bottom_right")
        ]

        results = engine.calculate_bulk_pricing(requests)

        assert [r.breakdown.base_rate for r in results] == [Decimal("15"), Decimal("5")]

    def test_quick_estimate_returns_rounded_total(self, engine: PricingEngine) -> None:
        estimate = engine.get_quick_estimate("mid_center", 7)

        assert isinstance(estimate, Decimal)
        assert estimate > 0
        assert estimate == estimate.quantize(Decimal("0.01"))

    def test_available_slots_on_weekdays(self, engine: PricingEngine) -> None:
        slots = engine.get_available_slots(date(2024, 1, 15), date(2024, 1, 19))

        assert len(slots) == 11
        top = next(s for s in slots if s["slot_type"] == "top_center")
        assert top["popularity_score"] == 85.0
        assert top["is_available"] is True
        assert top["booked_dates"] == []

    def test_weekend_raises_popularity(self, engine: PricingEngine) -> None:
        slots = engine.get_available_slots(date(2024, 1, 13), date(2024, 1, 14))

        scores = {s["slot_type"]: s["popularity_score"] for s in slots}
        assert scores["top_center"] == 95.0
        assert scores["mid_center"] == 75.0
        assert scores["bottom_center"] == 55.0

    def test_inverted_range_rejected(self, engine: PricingEngine) -> None:
        with pytest.raises(PricingValidationError):
            engine.get_available_slots(date(2024, 1, 20), date(2024, 1, 19))

    def test_constants(self) -> None:
        constants = PricingEngine.get_pricing_constants()

        assert constants["base_rates"] == {"TOP_TIER": 15.0, "MID_TIER": 10.0, "BOTTOM_TIER": 5.0}
        assert constants["ad_formats"] == ["IMAGE", "VIDEO", "TEXT"]
        assert constants["min_duration"] == 1
        assert constants["max_duration"] == 30
        assert len(constants["slot_types"]) == 11
