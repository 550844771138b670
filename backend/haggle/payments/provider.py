"""
Payment provider protocol definition.

WHAT: Abstract interface for payment providers
WHY: Decouple reconciliation from a specific provider implementation
HOW: Use Protocol to define checkout creation, session lookup, and event parsing
"""

from decimal import Decimal
from typing import Protocol

from .types import CheckoutSession, SessionStatus, WebhookEvent


class PaymentProvider(Protocol):
    """Protocol defining the interface all payment providers must implement."""

    name: str

    async def create_checkout(
        self,
        *,
        amount: Decimal,
        currency: str,
        title: str,
        success_url: str,
        cancel_url: str,
        client_reference_id: str,
        metadata: dict[str, str],
    ) -> CheckoutSession:
        """Create a hosted checkout session for a single item."""
        ...

    async def retrieve_session(self, session_ref: str) -> SessionStatus:
        """Fetch the authoritative payment status of a checkout session."""
        ...

    def construct_event(self, payload: bytes, signature_header: str | None) -> WebhookEvent:
        """Authenticate and parse a webhook delivery."""
        ...
