"""Payment provider layer."""

from .types import (
    CheckoutSession,
    SessionStatus,
    WebhookEvent,
    PaymentProviderError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    ProviderResponseError,
    WebhookSignatureError,
)
from .provider import PaymentProvider
from .provider_factory import get_payment_provider, reset_payment_provider, close_payment_provider

__all__ = [
    "CheckoutSession",
    "SessionStatus",
    "WebhookEvent",
    "PaymentProviderError",
    "ProviderTimeoutError",
    "ProviderUnavailableError",
    "ProviderResponseError",
    "WebhookSignatureError",
    "PaymentProvider",
    "get_payment_provider",
    "reset_payment_provider",
    "close_payment_provider",
]
