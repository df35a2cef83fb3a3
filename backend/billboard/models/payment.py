"""
Local payment records mirroring Stripe objects.

Stripe is the source of truth for money movement; these documents let the API
link a PaymentIntent or Checkout Session back to a user and campaign and track
its status from webhook events.
"""

from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from billboard.models.common import quantize_money


class PaymentStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REFUNDED = "refunded"


class Payment(BaseModel):
    """
    Attributes:
        id: MongoDB ObjectId as string (aliased from _id).
        user_id: Paying user.
        campaign_id: Campaign activated by this payment, if any.
        stripe_payment_intent_id: Stripe PaymentIntent id (``pi_...``).
        stripe_session_id: Stripe Checkout Session id (``cs_...``) when paid via checkout.
        amount: Charge in dollars, 2 decimal places.
        currency: Lower-case ISO currency as Stripe reports it.
        status: Last known status.
    """

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    id: str | None = Field(default=None, alias="_id")
    user_id: str
    campaign_id: str | None = None
    stripe_payment_intent_id: str
    stripe_session_id: str | None = None
    amount: Decimal
    currency: str = "usd"
    status: PaymentStatus = PaymentStatus.PENDING
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("amount")
    @classmethod
    def round_amount(cls, value: Decimal) -> Decimal:
        return quantize_money(value)

    def to_document(self) -> dict:
        """Mongo document; amount stored as float since BSON has no Decimal."""
        document = self.model_dump(exclude={"id"})
        document["amount"] = float(self.amount)
        return document
