"""
Payment Engine: Stripe orchestration for ad bookings.

Responsibilities:
- price a booking with the Smart Pricing Engine and open a Stripe PaymentIntent
  plus a hosted Checkout Session for it
- verify, refund and list payments
- customers, saved cards and subscriptions for recurring placements
- react to Stripe webhook events by updating local payment and campaign records
- split a charge into processing fee, platform fee and net revenue

The Stripe SDK is synchronous; every call goes through ``_stripe_call`` which
runs it in a worker thread so the event loop stays free.

Local record writes made from Stripe callbacks are best-effort: if MongoDB is
not initialised the change is logged and the Stripe flow still succeeds.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Literal, TypeVar

import stripe
from bson import ObjectId
from pydantic import BaseModel, Field, field_validator

from billboard.config import Settings, get_settings
from billboard.core.database import get_db_client
from billboard.models.ad import CampaignStatus
from billboard.models.common import money
from billboard.models.payment import Payment, PaymentStatus
from billboard.services.pricing_engine import PricingEngine, PricingError
from billboard.utils.logger import add_log_context


logger = logging.getLogger(__name__)

T = TypeVar("T")

# Booking classes offered at checkout -> pricing slot
PAYMENT_SLOT_MAPPING: dict[str, str] = {
    "premium": "top_center",
    "featured": "mid_center",
    "standard": "bottom_center",
}

# Stripe card pricing: 2.9% + 30c
PROCESSING_FEE_RATE = Decimal("0.029")
PROCESSING_FEE_FIXED = Decimal("0.30")
PLATFORM_FEE_RATE = Decimal("0.05")

MAX_BOOKING_DAYS = 365


# =============================================================================
# Exceptions
# =============================================================================


class PaymentError(Exception):
    """Base exception for payment failures."""


class PaymentConfigurationError(PaymentError):
    """Raised when Stripe keys or the webhook secret are missing."""


class WebhookSignatureError(PaymentError):
    """Raised when a webhook payload fails signature verification."""


# =============================================================================
# Request Models
# =============================================================================


class PaymentSessionRequest(BaseModel):
    """Booking to be paid through Stripe Checkout."""

    slot_type: Literal["premium", "featured", "standard"]
    duration: int = Field(..., ge=1, le=MAX_BOOKING_DAYS)
    start_date: datetime
    country: str = Field(..., min_length=2, max_length=2)
    ad_format: Literal["image", "video", "text"]
    ai_generated: bool = False
    user_id: str = Field(..., min_length=1)
    campaign_id: str | None = None

    @field_validator("country")
    @classmethod
    def upper_country(cls, value: str) -> str:
        return value.upper()


class RefundRequest(BaseModel):
    payment_intent_id: str = Field(..., min_length=1)
    amount: float | None = Field(default=None, gt=0, description="Partial refund in dollars")
    reason: Literal["requested_by_customer", "duplicate", "fraudulent"]


async def _stripe_call(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run a blocking Stripe SDK call in a worker thread."""
    return await asyncio.to_thread(func, *args, **kwargs)


def _to_cents(amount: Decimal | float) -> int:
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# =============================================================================
# Engine
# =============================================================================


class PaymentEngine:
    """
    Stripe-backed payment orchestration.

    Example:
        >>> engine = PaymentEngine(settings)
        >>> session = await engine.create_payment_session(PaymentSessionRequest(...))
        >>> session["session_id"]
        'cs_test_...'
    """

    def __init__(
        self,
        settings: Settings | None = None,
        pricing_engine: PricingEngine | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.pricing_engine = pricing_engine or PricingEngine()
        self.logger = logging.getLogger(__name__)
        if self.settings.stripe_secret_key:
            stripe.api_key = self.settings.stripe_secret_key

    def _require_stripe(self) -> None:
        if not self.settings.has_stripe_configured:
            raise PaymentConfigurationError("Stripe is not configured")

    # -------------------------------------------------------------------------
    # Checkout
    # -------------------------------------------------------------------------

    async def create_payment_session(self, request: PaymentSessionRequest) -> dict[str, Any]:
        """
        Price the booking, then create a PaymentIntent and a Checkout Session.

        Raises:
            PaymentConfigurationError: If Stripe is not configured.
            PaymentError: "Payment session creation failed: ..." on pricing or
                Stripe errors.
        """
        self._require_stripe()
        ctx = add_log_context(self.logger, user_id=request.user_id)

        try:
            pricing = self.pricing_engine.compute(
                slot_type=PAYMENT_SLOT_MAPPING[request.slot_type],
                duration=request.duration,
                country=request.country,
                start_date=request.start_date,
                ad_format=request.ad_format.upper(),
                ai_generated=request.ai_generated,
            )
            amount_cents = _to_cents(pricing.total)
            start_iso = request.start_date.isoformat()

            metadata = {
                "slotType": request.slot_type,
                "duration": str(request.duration),
                "startDate": start_iso,
                "country": request.country,
                "userId": request.user_id,
                "campaignId": request.campaign_id or "",
                "adFormat": request.ad_format,
                "aiGenerated": "true" if request.ai_generated else "false",
            }

            intent = await _stripe_call(
                stripe.PaymentIntent.create,
                amount=amount_cents,
                currency=self.settings.stripe_currency,
                automatic_payment_methods={"enabled": True},
                metadata=metadata,
            )

            session = await _stripe_call(
                stripe.checkout.Session.create,
                payment_method_types=["card"],
                line_items=[
                    {
                        "price_data": {
                            "currency": self.settings.stripe_currency,
                            "product_data": {
                                "name": f"Billboard Ad - {request.slot_type.capitalize()} Slot",
                                "description": (
                                    f"{request.duration} day campaign starting "
                                    f"{request.start_date.date().isoformat()}"
                                ),
                            },
                            "unit_amount": amount_cents,
                        },
                        "quantity": 1,
                    }
                ],
                mode="payment",
                success_url=(
                    f"{self.settings.frontend_url}/checkout/success"
                    "?session_id={CHECKOUT_SESSION_ID}"
                ),
                cancel_url=f"{self.settings.frontend_url}/checkout/cancel",
                metadata={**metadata, "paymentIntentId": intent.id},
            )
        except (PricingError, stripe.StripeError) as e:
            ctx.exception("Payment session creation failed")
            raise PaymentError(f"Payment session creation failed: {e}") from e

        await self._record_payment(
            Payment(
                user_id=request.user_id,
                campaign_id=request.campaign_id,
                stripe_payment_intent_id=intent.id,
                stripe_session_id=session.id,
                amount=pricing.total,
                currency=self.settings.stripe_currency,
            )
        )

        ctx.info("Checkout session %s created for %s", session.id, pricing.total)
        return {
            "session_id": session.id,
            "payment_intent_id": intent.id,
            "amount": float(pricing.total),
            "currency": self.settings.stripe_currency,
            "status": PaymentStatus.PENDING.value,
            "metadata": {
                "slot_type": request.slot_type,
                "duration": request.duration,
                "start_date": start_iso,
                "country": request.country,
                "user_id": request.user_id,
                "campaign_id": request.campaign_id,
            },
        }

    async def create_payment_intent(
        self, user_id: str, campaign_id: str, amount: float
    ) -> dict[str, Any]:
        """
        Create a bare PaymentIntent for an existing campaign.

        Unlike checkout, the pending payment record is required here, and the
        campaign is moved to ``pending_payment``.

        Raises:
            PaymentError: On Stripe errors.
            RuntimeError: If the database is not initialised.
        """
        self._require_stripe()
        try:
            intent = await _stripe_call(
                stripe.PaymentIntent.create,
                amount=_to_cents(amount),
                currency=self.settings.stripe_currency,
                metadata={"userId": user_id, "campaignId": campaign_id},
            )
        except stripe.StripeError as e:
            self.logger.exception("Payment intent creation failed")
            raise PaymentError(f"Error creating payment intent: {e}") from e

        db_client = get_db_client()
        payment = Payment(
            user_id=user_id,
            campaign_id=campaign_id,
            stripe_payment_intent_id=intent.id,
            amount=Decimal(str(amount)),
            currency=self.settings.stripe_currency,
        )
        await db_client.get_payments_collection().insert_one(payment.to_document())
        if ObjectId.is_valid(campaign_id):
            await db_client.get_campaigns_collection().update_one(
                {"_id": ObjectId(campaign_id), "user_id": user_id},
                {"$set": {"status": CampaignStatus.PENDING_PAYMENT.value, "payment_id": intent.id}},
            )

        return {"client_secret": intent.client_secret, "payment_intent_id": intent.id}

    async def verify_payment(self, session_id: str) -> dict[str, Any]:
        """
        Check whether a Checkout Session has been paid.

        ``success`` is True only when Stripe reports ``payment_status == "paid"``
        and the session carries a PaymentIntent.
        """
        self._require_stripe()
        try:
            session = await _stripe_call(stripe.checkout.Session.retrieve, session_id)
            result: dict[str, Any] = {
                "success": False,
                "session": {
                    "id": session.id,
                    "payment_status": session.payment_status,
                    "amount_total": session.amount_total,
                    "currency": session.currency,
                },
            }
            if session.payment_status == "paid" and session.payment_intent:
                intent = await _stripe_call(stripe.PaymentIntent.retrieve, session.payment_intent)
                result["success"] = True
                result["payment_intent"] = {
                    "id": intent.id,
                    "status": intent.status,
                    "amount": intent.amount,
                }
            return result
        except stripe.StripeError as e:
            self.logger.exception("Payment verification failed for %s", session_id)
            raise PaymentError(f"Payment verification failed: {e}") from e

    # -------------------------------------------------------------------------
    # Refunds and history
    # -------------------------------------------------------------------------

    async def process_refund(self, request: RefundRequest) -> dict[str, Any]:
        """Full refund when ``amount`` is omitted, otherwise partial (dollars)."""
        self._require_stripe()
        params: dict[str, Any] = {
            "payment_intent": request.payment_intent_id,
            "reason": request.reason,
        }
        if request.amount is not None:
            params["amount"] = _to_cents(request.amount)

        try:
            refund = await _stripe_call(stripe.Refund.create, **params)
        except stripe.StripeError as e:
            self.logger.exception("Refund failed for %s", request.payment_intent_id)
            raise PaymentError(f"Refund processing failed: {e}") from e

        await self._update_payment_status(request.payment_intent_id, PaymentStatus.REFUNDED)
        self.logger.info("Refund %s issued for %s", refund.id, request.payment_intent_id)
        return {
            "id": refund.id,
            "amount": refund.amount,
            "currency": refund.currency,
            "status": refund.status,
            "reason": refund.reason,
        }

    async def get_payment_history(self, user_id: str, limit: int = 10) -> list[dict[str, Any]]:
        """PaymentIntents whose metadata ``userId`` matches, newest first."""
        self._require_stripe()
        try:
            intents = await _stripe_call(
                stripe.PaymentIntent.search,
                query=f"metadata['userId']:'{user_id}'",
                limit=limit,
            )
        except stripe.StripeError as e:
            self.logger.exception("Payment history lookup failed for %s", user_id)
            raise PaymentError(f"Failed to fetch payment history: {e}") from e

        return [
            {
                "id": intent.id,
                "amount": intent.amount,
                "currency": intent.currency,
                "status": intent.status,
                "created": intent.created,
                "metadata": intent.metadata.to_dict() if intent.metadata else {},
            }
            for intent in intents.data
        ]

    # -------------------------------------------------------------------------
    # Customers and subscriptions
    # -------------------------------------------------------------------------

    async def create_customer(self, email: str, name: str | None = None) -> dict[str, Any]:
        self._require_stripe()
        params: dict[str, Any] = {"email": email}
        if name:
            params["name"] = name
        try:
            customer = await _stripe_call(stripe.Customer.create, **params)
        except stripe.StripeError as e:
            self.logger.exception("Customer creation failed")
            raise PaymentError(f"Customer creation failed: {e}") from e
        return {"id": customer.id, "email": customer.email, "name": customer.name}

    async def get_payment_methods(self, customer_id: str) -> list[dict[str, Any]]:
        """Saved cards for a customer."""
        self._require_stripe()
        try:
            methods = await _stripe_call(
                stripe.PaymentMethod.list, customer=customer_id, type="card"
            )
        except stripe.StripeError as e:
            self.logger.exception("Payment method lookup failed for %s", customer_id)
            raise PaymentError(f"Failed to fetch payment methods: {e}") from e

        return [
            {
                "id": method.id,
                "brand": method.card.brand,
                "last4": method.card.last4,
                "exp_month": method.card.exp_month,
                "exp_year": method.card.exp_year,
            }
            for method in methods.data
        ]

    async def create_subscription(self, customer_id: str, price_id: str) -> dict[str, Any]:
        """
        Start a subscription that waits for the first invoice to be paid.

        The returned client secret confirms the first payment on the client.
        """
        self._require_stripe()
        try:
            subscription = await _stripe_call(
                stripe.Subscription.create,
                customer=customer_id,
                items=[{"price": price_id}],
                payment_behavior="default_incomplete",
                payment_settings={"save_default_payment_method": "on_subscription"},
                expand=["latest_invoice.confirmation_secret"],
            )
        except stripe.StripeError as e:
            self.logger.exception("Subscription creation failed for %s", customer_id)
            raise PaymentError(f"Subscription creation failed: {e}") from e

        secret = subscription.latest_invoice.confirmation_secret
        return {
            "subscription_id": subscription.id,
            "status": subscription.status,
            "client_secret": secret.client_secret if secret else None,
        }

    # -------------------------------------------------------------------------
    # Webhooks
    # -------------------------------------------------------------------------

    def construct_webhook_event(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        """
        Verify a webhook payload and return the event as a plain dict.

        Raises:
            PaymentConfigurationError: If no webhook secret is configured.
            WebhookSignatureError: If the signature does not match.
        """
        if not self.settings.stripe_webhook_secret:
            raise PaymentConfigurationError("Webhook secret not configured")
        try:
            event = stripe.Webhook.construct_event(
                payload, signature or "", self.settings.stripe_webhook_secret
            )
        except (stripe.SignatureVerificationError, ValueError) as e:
            self.logger.warning("Webhook signature verification failed: %s", e)
            raise WebhookSignatureError("Invalid signature") from e
        return event.to_dict()

    async def handle_webhook(self, event: dict[str, Any]) -> None:
        """Dispatch a verified event to its handler; unknown types are logged."""
        event_type = event["type"]
        obj = event["data"]["object"]

        if event_type == "payment_intent.succeeded":
            await self._handle_payment_succeeded(obj)
        elif event_type == "payment_intent.payment_failed":
            await self._handle_payment_failed(obj)
        elif event_type == "checkout.session.completed":
            await self._handle_checkout_completed(obj)
        elif event_type == "invoice.payment_succeeded":
            self.logger.info("Subscription payment succeeded: invoice %s", obj.get("id"))
        else:
            self.logger.info("Unhandled webhook event type: %s", event_type)

    async def _handle_payment_succeeded(self, intent: dict[str, Any]) -> None:
        self.logger.info("Payment succeeded: %s", intent["id"])
        await self._update_payment_status(intent["id"], PaymentStatus.SUCCEEDED)
        campaign_id = (intent.get("metadata") or {}).get("campaignId")
        await self._update_campaign_status(campaign_id, CampaignStatus.ACTIVE)

    async def _handle_payment_failed(self, intent: dict[str, Any]) -> None:
        self.logger.warning("Payment failed: %s", intent["id"])
        await self._update_payment_status(intent["id"], PaymentStatus.FAILED)
        campaign_id = (intent.get("metadata") or {}).get("campaignId")
        await self._update_campaign_status(campaign_id, CampaignStatus.PAYMENT_FAILED)

    async def _handle_checkout_completed(self, session: dict[str, Any]) -> None:
        metadata = session.get("metadata") or {}
        intent_id = session.get("payment_intent") or metadata.get("paymentIntentId")
        self.logger.info("Checkout completed: %s (intent %s)", session["id"], intent_id)

        if intent_id:
            try:
                await get_db_client().get_payments_collection().update_one(
                    {"stripe_payment_intent_id": intent_id},
                    {
                        "$set": {
                            "stripe_session_id": session["id"],
                            "updated_at": datetime.now(UTC),
                        }
                    },
                )
            except RuntimeError:
                self.logger.warning("Database unavailable; session %s not linked", session["id"])

        await self._update_campaign_status(metadata.get("campaignId"), CampaignStatus.ACTIVE)

    # -------------------------------------------------------------------------
    # Local records (best-effort)
    # -------------------------------------------------------------------------

    async def _record_payment(self, payment: Payment) -> None:
        try:
            await get_db_client().get_payments_collection().insert_one(payment.to_document())
        except RuntimeError:
            self.logger.warning(
                "Database unavailable; payment %s not recorded", payment.stripe_payment_intent_id
            )

    async def _update_payment_status(self, intent_id: str, status: PaymentStatus) -> None:
        try:
            await get_db_client().get_payments_collection().update_one(
                {"stripe_payment_intent_id": intent_id},
                {"$set": {"status": status.value, "updated_at": datetime.now(UTC)}},
            )
        except RuntimeError:
            self.logger.warning(
                "Database unavailable; payment %s not marked %s", intent_id, status.value
            )

    async def _update_campaign_status(
        self, campaign_id: str | None, status: CampaignStatus
    ) -> None:
        if not campaign_id or not ObjectId.is_valid(campaign_id):
            return
        try:
            await get_db_client().get_campaigns_collection().update_one(
                {"_id": ObjectId(campaign_id)}, {"$set": {"status": status.value}}
            )
        except RuntimeError:
            self.logger.warning(
                "Database unavailable; campaign %s not marked %s", campaign_id, status.value
            )

    # -------------------------------------------------------------------------
    # Revenue split
    # -------------------------------------------------------------------------

    @staticmethod
    def calculate_revenue(amount: Decimal | float) -> dict[str, float]:
        """
        Split a gross charge.

        processing_fee = amount * 2.9% + $0.30, platform_fee = amount * 5%,
        net_revenue = amount - processing_fee - platform_fee.
        """
        gross = Decimal(str(amount))
        processing_fee = gross * PROCESSING_FEE_RATE + PROCESSING_FEE_FIXED
        platform_fee = gross * PLATFORM_FEE_RATE
        net_revenue = gross - processing_fee - platform_fee
        return {
            "platform_fee": money(platform_fee),
            "processing_fee": money(processing_fee),
            "net_revenue": money(net_revenue),
        }


def get_payment_engine() -> PaymentEngine:
    """Dependency provider for payment routes."""
    return PaymentEngine()
