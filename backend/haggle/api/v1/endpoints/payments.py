"""
Payment endpoints.

WHAT: Checkout creation, payment verification and provider webhook intake
WHY: Accepted offers are paid through hosted checkout
HOW: FastAPI router over PaymentReconciler; webhook reads the raw body for signing
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Request

from ....models.api_schemas import (
    CheckoutRequest, CheckoutResponse, VerifyPaymentResponse, WebhookAck
)
from ....services.payment_reconciler import PaymentReconciler
from ....utils.logger import get_logger
from ...deps import get_current_user_id, get_payment_reconciler

logger = get_logger(__name__)

router = APIRouter()


@router.post("/payments/checkout", response_model=CheckoutResponse)
async def create_checkout(
    body: CheckoutRequest,
    user_id: str = Depends(get_current_user_id),
    reconciler: PaymentReconciler = Depends(get_payment_reconciler),
):
    """
    Open a hosted checkout for an accepted offer.

    WHAT: Buyer-only; returns the provider redirect URL
    WHY: Payment happens on the provider's page
    HOW: reconciler.initiate_checkout records the session and marks processing
    """
    result = await reconciler.initiate_checkout(body.offer_id, user_id)
    return CheckoutResponse(session_id=result.session_id, url=result.url)


@router.get("/payments/verify", response_model=VerifyPaymentResponse)
async def verify_payment(
    session_id: str = Query(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    reconciler: PaymentReconciler = Depends(get_payment_reconciler),
):
    """Poll the provider for a session; reconciles if it reports paid."""
    result = await reconciler.verify(session_id, user_id)
    return VerifyPaymentResponse(
        paid=result.paid,
        session_id=result.session_id,
        offer_id=result.offer_id,
        payment_status=result.payment_status,
    )


@router.post("/payments/webhook", response_model=WebhookAck)
async def payment_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None, alias="Stripe-Signature"),
    reconciler: PaymentReconciler = Depends(get_payment_reconciler),
):
    """
    Provider webhook.

    WHAT: Authenticated delivery of checkout outcomes
    WHY: Deliveries are at-least-once; every valid one is acknowledged
    HOW: Raw body verified against the signature header, then applied
    """
    payload = await request.body()
    return reconciler.handle_webhook(payload, stripe_signature)
