"""
Payment provider types, dataclasses, and exceptions.

WHAT: Standard type definitions for payment provider interactions
WHY: Keep reconciliation independent of a specific provider's payloads
HOW: Dataclasses for sessions/events, custom exceptions for errors
"""

from dataclasses import dataclass, field


# Provider-reported checkout payment states
PROVIDER_PAID = "paid"
PROVIDER_UNPAID = "unpaid"
PROVIDER_NO_PAYMENT_REQUIRED = "no_payment_required"

# Webhook event types the reconciler acts on
EVENT_SESSION_COMPLETED = "checkout.session.completed"
EVENT_ASYNC_PAYMENT_SUCCEEDED = "checkout.session.async_payment_succeeded"
EVENT_ASYNC_PAYMENT_FAILED = "checkout.session.async_payment_failed"


@dataclass
class CheckoutSession:
    """A freshly created checkout session."""
    session_ref: str
    redirect_url: str


@dataclass
class SessionStatus:
    """Authoritative status of a checkout session."""
    session_ref: str
    payment_status: str
    payment_intent_ref: str | None = None

    @property
    def is_paid(self) -> bool:
        return self.payment_status in (PROVIDER_PAID, PROVIDER_NO_PAYMENT_REQUIRED)


@dataclass
class WebhookEvent:
    """Verified webhook delivery."""
    event_id: str
    event_type: str
    session_ref: str | None = None
    payment_intent_ref: str | None = None
    client_reference_id: str | None = None
    payment_status: str | None = None
    metadata: dict = field(default_factory=dict)


# Provider exceptions
class PaymentProviderError(Exception):
    """Base class for payment provider failures."""
    pass


class ProviderTimeoutError(PaymentProviderError):
    """Request to provider timed out."""
    pass


class ProviderUnavailableError(PaymentProviderError):
    """Provider is not reachable or down."""
    pass


class ProviderResponseError(PaymentProviderError):
    """Provider returned an invalid or error response."""
    pass


class WebhookSignatureError(Exception):
    """Webhook payload could not be authenticated."""
    pass
