"""
Static rate tables used by the Smart Pricing Engine.

All factors are Decimals so the engine can multiply them without float drift.
Prices are in USD per day.
"""

from decimal import Decimal
from enum import Enum


class SlotTier(str, Enum):
    TOP = "TOP"
    MID = "MID"
    BOTTOM = "BOTTOM"


class AdFormat(str, Enum):
    IMAGE = "IMAGE"
    VIDEO = "VIDEO"
    TEXT = "TEXT"


BASE_RATES: dict[SlotTier, Decimal] = {
    SlotTier.TOP: Decimal("15"),
    SlotTier.MID: Decimal("10"),
    SlotTier.BOTTOM: Decimal("5"),
}

SLOT_MULTIPLIERS: dict[SlotTier, Decimal] = {
    SlotTier.TOP: Decimal("2.0"),
    SlotTier.MID: Decimal("1.3"),
    SlotTier.BOTTOM: Decimal("1.0"),
}

# Keyed by ISO 3166 alpha-2 country code; anything else gets DEFAULT_GEO_MULTIPLIER
GEO_MULTIPLIERS: dict[str, Decimal] = {
    "US": Decimal("1.5"),
    "UK": Decimal("1.5"),
    "DE": Decimal("1.5"),
    "CA": Decimal("1.4"),
    "AU": Decimal("1.4"),
    "IN": Decimal("1.2"),
    "BR": Decimal("1.2"),
    "MX": Decimal("1.1"),
    "FR": Decimal("1.3"),
    "IT": Decimal("1.3"),
    "ES": Decimal("1.2"),
    "NG": Decimal("0.8"),
    "KE": Decimal("0.7"),
    "GH": Decimal("0.7"),
    "ZA": Decimal("0.9"),
    "EG": Decimal("0.8"),
}
DEFAULT_GEO_MULTIPLIER = Decimal("1.0")

TIME_MULTIPLIERS: dict[str, Decimal] = {
    "PRIME_TIME": Decimal("1.4"),
    "BUSINESS_HOURS": Decimal("1.2"),
    "EVENING": Decimal("1.1"),
    "MORNING": Decimal("1.0"),
    "LATE_NIGHT": Decimal("0.6"),
    "WEEKEND": Decimal("1.1"),
}

# Weekday hour windows, half-open [start, end), checked in this order
TIME_WINDOWS: tuple[tuple[int, int, str], ...] = (
    (18, 22, "PRIME_TIME"),
    (9, 17, "BUSINESS_HOURS"),
    (17, 21, "EVENING"),
    (6, 9, "MORNING"),
)

FORMAT_MULTIPLIERS: dict[AdFormat, Decimal] = {
    AdFormat.VIDEO: Decimal("1.5"),
    AdFormat.IMAGE: Decimal("1.0"),
    AdFormat.TEXT: Decimal("0.8"),
}

# Flat surcharge, added after all multipliers
AI_GENERATED_BONUS = Decimal("10")

# (minimum days, factor), largest bracket first
DURATION_DISCOUNTS: tuple[tuple[int, Decimal], ...] = (
    (30, Decimal("0.80")),
    (14, Decimal("0.85")),
    (7, Decimal("0.90")),
    (3, Decimal("0.95")),
    (1, Decimal("1.00")),
)

DEMAND_MULTIPLIERS: dict[str, Decimal] = {
    "VERY_HIGH": Decimal("1.8"),
    "HIGH": Decimal("1.4"),
    "MEDIUM": Decimal("1.0"),
    "LOW": Decimal("0.8"),
    "VERY_LOW": Decimal("0.6"),
}

# Ordered as shown to clients
SLOT_TIER_MAPPING: dict[str, SlotTier] = {
    "top_center": SlotTier.TOP,
    "top_left": SlotTier.TOP,
    "top_right": SlotTier.TOP,
    "mid_center": SlotTier.MID,
    "mid_left": SlotTier.MID,
    "mid_right": SlotTier.MID,
    "bottom_center": SlotTier.BOTTOM,
    "bottom_left": SlotTier.BOTTOM,
    "bottom_right": SlotTier.BOTTOM,
    "mobile_banner": SlotTier.BOTTOM,
    "mobile_interstitial": SlotTier.MID,
}

SLOT_TYPES: list[str] = list(SLOT_TIER_MAPPING)

# Only this slot gets the time-of-day demand surge
PREMIUM_DEMAND_SLOT = "top_center"

MIN_DURATION_DAYS = 1
MAX_DURATION_DAYS = 30
