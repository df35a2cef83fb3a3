"""
Referral programme models.

Referral codes and rewards use string ids generated by the referral engine
(``ref_...``, ``promo_...``, ``reward_...``) which double as the Mongo ``_id``.
"""

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RewardType(str, Enum):
    CREDIT = "credit"
    DISCOUNT = "discount"
    FREE_SLOT = "free_slot"


class RewardStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    PAID = "paid"
    EXPIRED = "expired"


class CreditKind(str, Enum):
    """What a paid reward turned into on the user's account."""

    CREDIT = "credit"
    DISCOUNT_COUPON = "discount_coupon"
    FREE_SLOT = "free_slot"


# Reward type -> ledger entry kind written on payout
REWARD_CREDIT_KINDS: dict[RewardType, CreditKind] = {
    RewardType.CREDIT: CreditKind.CREDIT,
    RewardType.DISCOUNT: CreditKind.DISCOUNT_COUPON,
    RewardType.FREE_SLOT: CreditKind.FREE_SLOT,
}


class ReferralCode(BaseModel):
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True, validate_default=True)

    id: str = Field(..., alias="_id")
    code: str
    user_id: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    expires_at: datetime | None = None
    is_active: bool = True
    max_uses: int | None = Field(default=None, gt=0)
    current_uses: int = 0
    reward_type: RewardType = RewardType.CREDIT
    reward_value: float = Field(..., gt=0)

    @field_validator("code")
    @classmethod
    def upper_code(cls, value: str) -> str:
        return value.strip().upper()


class ReferralReward(BaseModel):
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True, validate_default=True)

    id: str = Field(..., alias="_id")
    referrer_id: str
    referee_id: str
    referral_code_id: str
    reward_type: RewardType
    reward_value: float
    status: RewardStatus = RewardStatus.PENDING
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    paid_at: datetime | None = None


class UserCredit(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    user_id: str
    kind: CreditKind
    value: float
    source_reward_id: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
