"""
Payment provider factory with singleton pattern.

WHAT: Factory to get the configured payment provider
WHY: Centralize provider selection and reuse one HTTP client
HOW: Read PAYMENT_PROVIDER from config, cache singleton, log selection
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .provider import PaymentProvider

# Singleton instance
_provider_instance: "PaymentProvider | None" = None


def get_payment_provider() -> "PaymentProvider":
    """
    Get the configured payment provider singleton.

    Returns:
        PaymentProvider instance based on settings.PAYMENT_PROVIDER

    Raises:
        ValueError: If provider name is unknown
    """
    global _provider_instance

    if _provider_instance is None:
        # Import here to avoid circular dependencies
        from ..core.config import settings
        from ..utils.logger import get_logger

        logger = get_logger(__name__)
        provider_name = settings.PAYMENT_PROVIDER

        if provider_name == "stripe":
            from .stripe_checkout import StripeProvider
            _provider_instance = StripeProvider()
        else:
            raise ValueError(f"Unknown payment provider: {provider_name}")

        logger.info(f"Payment provider initialized: {provider_name}")

    return _provider_instance


def reset_payment_provider() -> None:
    """Reset the provider singleton (useful for testing)."""
    global _provider_instance
    _provider_instance = None


async def close_payment_provider() -> None:
    """Close the provider's HTTP client (if one was created) and reset."""
    global _provider_instance
    provider = _provider_instance
    _provider_instance = None
    close = getattr(provider, "close", None)
    if close is not None:
        await close()
