"""
Shared FastAPI dependencies.

WHAT: Caller identity and service wiring for endpoints
WHY: Identity is verified upstream; endpoints only need the user id
HOW: Header dependency + provider-backed reconciler factory (overridable in tests)
"""

from typing import Optional

from fastapi import Header

from ..payments.provider_factory import get_payment_provider
from ..services.payment_reconciler import PaymentReconciler
from ..services.wishlist import wishlist_notifier
from ..utils.exceptions import UnauthorizedError


async def get_current_user_id(
    x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
) -> str:
    """Verified caller id forwarded by the auth layer."""
    if not x_user_id or not x_user_id.strip():
        raise UnauthorizedError()
    return x_user_id.strip()


def get_payment_reconciler() -> PaymentReconciler:
    """Reconciler bound to the configured payment provider."""
    return PaymentReconciler(get_payment_provider(), wishlist_notifier=wishlist_notifier)
