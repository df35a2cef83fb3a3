"""
Ad and Campaign models.

An Ad is the creative (copy, media, call to action). A Campaign schedules an
ad into a placement for a date range and is activated by a successful payment.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class AdType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    BANNER = "banner"
    INTERACTIVE = "interactive"


class AdStatus(str, Enum):
    """Moderation and delivery state of an ad."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    ACTIVE = "active"
    PAUSED = "paused"


class CampaignStatus(str, Enum):
    """
    Lifecycle of a campaign.

    ``pending_payment`` campaigns move to ``active`` or ``payment_failed``
    when Stripe reports the outcome of the linked payment intent.
    """

    DRAFT = "draft"
    PENDING_PAYMENT = "pending_payment"
    ACTIVE = "active"
    PAYMENT_FAILED = "payment_failed"
    PAUSED = "paused"
    COMPLETED = "completed"


class Ad(BaseModel):
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True, validate_default=True)

    id: str | None = Field(default=None, alias="_id")
    user_id: str
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=2000)
    type: AdType
    content: dict[str, Any] = Field(default_factory=dict)
    target_url: str | None = None
    call_to_action: str | None = Field(default=None, max_length=50)
    status: AdStatus = AdStatus.PENDING
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class Campaign(BaseModel):
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True, validate_default=True)

    id: str | None = Field(default=None, alias="_id")
    user_id: str
    ad_id: str
    name: str = Field(..., min_length=1, max_length=200)
    placement: str
    daily_budget: float = Field(..., gt=0)
    start_date: datetime
    end_date: datetime
    status: CampaignStatus = CampaignStatus.DRAFT
    impressions: int = 0
    clicks: int = 0
    total_spend: float = 0.0
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @model_validator(mode="after")
    def check_date_range(self) -> "Campaign":
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self
