"""
Mock payment provider for deterministic testing.

WHAT: Fake provider that records checkouts and reports scripted session states
WHY: Test reconciliation without calling Stripe
HOW: Implement PaymentProvider protocol; webhook events use the real signature check
"""

import json
from decimal import Decimal
from typing import Dict, List

from haggle.payments.signature import build_signature_header, parse_event, verify_signature
from haggle.payments.types import (
    CheckoutSession,
    EVENT_SESSION_COMPLETED,
    ProviderUnavailableError,
    SessionStatus,
    WebhookEvent,
)


class MockPaymentProvider:
    """
    Mock payment provider.

    Sessions default to "unpaid" until mark_paid() is called.
    """

    name = "mock"

    def __init__(self, webhook_secret: str = "whsec_test_secret", should_fail: bool = False):
        self.webhook_secret = webhook_secret
        self.should_fail = should_fail
        self.session_status: Dict[str, str] = {}
        self.calls: List[Dict] = []

    async def create_checkout(
        self,
        *,
        amount: Decimal,
        currency: str,
        title: str,
        success_url: str,
        cancel_url: str,
        client_reference_id: str,
        metadata: dict,
    ) -> CheckoutSession:
        if self.should_fail:
            raise ProviderUnavailableError("Mock provider unavailable")

        session_ref = f"cs_test_{len(self.calls) + 1}"
        self.calls.append({
            "session_ref": session_ref,
            "amount": amount,
            "currency": currency,
            "title": title,
            "success_url": success_url,
            "cancel_url": cancel_url,
            "client_reference_id": client_reference_id,
            "metadata": metadata,
        })
        self.session_status[session_ref] = "unpaid"
        return CheckoutSession(session_ref=session_ref, redirect_url=f"https://checkout.test/{session_ref}")

    async def retrieve_session(self, session_ref: str) -> SessionStatus:
        if self.should_fail:
            raise ProviderUnavailableError("Mock provider unavailable")
        return SessionStatus(
            session_ref=session_ref,
            payment_status=self.session_status.get(session_ref, "unpaid"),
            payment_intent_ref=f"pi_{session_ref}",
        )

    def construct_event(self, payload: bytes, signature_header: str | None) -> WebhookEvent:
        verify_signature(payload, signature_header, self.webhook_secret)
        return parse_event(payload)

    def mark_paid(self, session_ref: str) -> None:
        self.session_status[session_ref] = "paid"


def build_event_payload(
    session_ref: str,
    event_type: str = EVENT_SESSION_COMPLETED,
    payment_status: str = "paid",
    client_reference_id: str | None = None,
    payment_intent: str = "pi_test_1",
    event_id: str = "evt_test_1",
) -> bytes:
    """Checkout session event body shaped like Stripe's."""
    return json.dumps({
        "id": event_id,
        "type": event_type,
        "data": {
            "object": {
                "id": session_ref,
                "object": "checkout.session",
                "payment_status": payment_status,
                "payment_intent": payment_intent,
                "client_reference_id": client_reference_id,
                "metadata": {},
            }
        },
    }).encode("utf-8")


def signed(payload: bytes, secret: str = "whsec_test_secret") -> str:
    """Valid signature header for a payload."""
    return build_signature_header(payload, secret)
