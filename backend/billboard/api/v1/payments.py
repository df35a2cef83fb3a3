"""
Payments API Router

Stripe checkout, verification, refunds, customers and webhooks.

Endpoints:
- POST /create-session: Price a booking and open a Checkout Session
- POST /create-intent: PaymentIntent for an existing campaign (authenticated)
- GET /verify/{session_id}: Whether a Checkout Session has been paid
- GET /history/{user_id}: Recent PaymentIntents for a user
- POST /refund: Full or partial refund
- POST /create-customer: Create a Stripe customer
- POST /create-subscription: Subscription awaiting its first invoice payment
- GET /payment-methods/{customer_id}: Saved cards
- POST /webhook: Stripe event receiver (signature verified)
- POST /calculate-revenue: Platform / processing fee split
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from pydantic import BaseModel, EmailStr, Field

from billboard.core.auth import get_current_user
from billboard.services.payment_engine import (
    PaymentConfigurationError,
    PaymentEngine,
    PaymentError,
    PaymentSessionRequest,
    RefundRequest,
    WebhookSignatureError,
    get_payment_engine,
)


logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments"])


class PaymentIntentRequest(BaseModel):
    campaign_id: str = Field(..., min_length=1)
    amount: float = Field(..., gt=0, description="Amount in dollars")


class CustomerRequest(BaseModel):
    email: EmailStr
    name: str | None = None


class SubscriptionRequest(BaseModel):
    customer_id: str = Field(..., min_length=1)
    price_id: str = Field(..., min_length=1)


class RevenueRequest(BaseModel):
    amount: float = Field(..., gt=0)


def _payment_http_error(e: PaymentError) -> HTTPException:
    """Missing Stripe keys are 503; any other payment failure is 500 with its message."""
    if isinstance(e, PaymentConfigurationError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


@router.post("/create-session")
async def create_session(
    request: PaymentSessionRequest,
    engine: PaymentEngine = Depends(get_payment_engine),
) -> dict[str, Any]:
    try:
        session = await engine.create_payment_session(request)
    except PaymentError as e:
        raise _payment_http_error(e) from e
    return {"success": True, "session": session}


@router.post("/create-intent")
async def create_intent(
    request: PaymentIntentRequest,
    current_user: dict[str, Any] = Depends(get_current_user),
    engine: PaymentEngine = Depends(get_payment_engine),
) -> dict[str, Any]:
    try:
        intent = await engine.create_payment_intent(
            user_id=str(current_user["_id"]),
            campaign_id=request.campaign_id,
            amount=request.amount,
        )
    except PaymentError as e:
        raise _payment_http_error(e) from e
    except RuntimeError as e:
        logger.exception("Database unavailable while recording payment intent")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable",
        ) from e
    return {"success": True, **intent}


@router.get("/verify/{session_id}")
async def verify_payment(
    session_id: str,
    engine: PaymentEngine = Depends(get_payment_engine),
) -> dict[str, Any]:
    try:
        verification = await engine.verify_payment(session_id)
    except PaymentError as e:
        raise _payment_http_error(e) from e
    paid = verification.pop("success")
    return {"success": True, "paid": paid, **verification}


@router.get("/history/{user_id}")
async def payment_history(
    user_id: str,
    limit: int = Query(default=10, ge=1, le=100),
    engine: PaymentEngine = Depends(get_payment_engine),
) -> dict[str, Any]:
    try:
        payments = await engine.get_payment_history(user_id, limit)
    except PaymentError as e:
        raise _payment_http_error(e) from e
    return {"success": True, "payments": payments}


@router.post("/refund")
async def refund(
    request: RefundRequest,
    engine: PaymentEngine = Depends(get_payment_engine),
) -> dict[str, Any]:
    try:
        result = await engine.process_refund(request)
    except PaymentError as e:
        raise _payment_http_error(e) from e
    return {"success": True, "refund": result}


@router.post("/create-customer")
async def create_customer(
    request: CustomerRequest,
    engine: PaymentEngine = Depends(get_payment_engine),
) -> dict[str, Any]:
    try:
        customer = await engine.create_customer(request.email, request.name)
    except PaymentError as e:
        raise _payment_http_error(e) from e
    return {"success": True, "customer": customer}


@router.post("/create-subscription")
async def create_subscription(
    request: SubscriptionRequest,
    engine: PaymentEngine = Depends(get_payment_engine),
) -> dict[str, Any]:
    try:
        subscription = await engine.create_subscription(request.customer_id, request.price_id)
    except PaymentError as e:
        raise _payment_http_error(e) from e
    return {"success": True, "subscription": subscription}


@router.get("/payment-methods/{customer_id}")
async def payment_methods(
    customer_id: str,
    engine: PaymentEngine = Depends(get_payment_engine),
) -> dict[str, Any]:
    try:
        methods = await engine.get_payment_methods(customer_id)
    except PaymentError as e:
        raise _payment_http_error(e) from e
    return {"success": True, "payment_methods": methods}


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None, alias="Stripe-Signature"),
    engine: PaymentEngine = Depends(get_payment_engine),
) -> dict[str, Any]:
    """
    Verify the signature against the raw body, then dispatch the event.

    Raises:
        HTTPException: 400 when the webhook secret is missing or the signature
            is invalid, 500 when a handler fails.
    """
    payload = await request.body()
    try:
        event = engine.construct_webhook_event(payload, stripe_signature)
    except (PaymentConfigurationError, WebhookSignatureError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    try:
        await engine.handle_webhook(event)
    except PaymentError as e:
        logger.exception("Webhook handling failed for %s", event["type"])
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook handling failed",
        ) from e
    return {"success": True, "received": True}


@router.post("/calculate-revenue")
async def calculate_revenue(request: RevenueRequest) -> dict[str, Any]:
    return {"success": True, "revenue": PaymentEngine.calculate_revenue(request.amount)}
