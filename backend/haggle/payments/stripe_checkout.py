"""
Stripe payment provider implementation.

WHAT: Hosted checkout sessions and webhook parsing via the Stripe REST API
WHY: Buyers pay for accepted offers outside the app
HOW: httpx AsyncClient, form-encoded requests, retry with exponential backoff
"""

import asyncio
import json
import uuid
from decimal import Decimal

import httpx

from .signature import parse_event, verify_signature
from .types import (
    CheckoutSession,
    SessionStatus,
    WebhookEvent,
    ProviderTimeoutError,
    ProviderUnavailableError,
    ProviderResponseError,
)
from ..core.config import settings
from ..utils.logger import get_logger
from ..utils.money import to_minor_units

logger = get_logger(__name__)


class StripeProvider:
    """Stripe Checkout provider."""

    name = "stripe"

    def __init__(
        self,
        api_key: str | None = None,
        webhook_secret: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        retry_delay: float | None = None,
    ):
        """Initialize Stripe provider with config or explicit overrides."""
        self.api_key = api_key if api_key is not None else settings.STRIPE_SECRET_KEY
        self.webhook_secret = webhook_secret if webhook_secret is not None else settings.STRIPE_WEBHOOK_SECRET
        self.base_url = (base_url or settings.STRIPE_API_BASE).rstrip("/")
        self.timeout = timeout or settings.STRIPE_TIMEOUT
        self.max_retries = max_retries or settings.PAYMENT_MAX_RETRIES
        self.retry_delay = retry_delay if retry_delay is not None else settings.PAYMENT_RETRY_DELAY
        self.tolerance = settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS

        if not self.api_key:
            logger.warning("STRIPE_SECRET_KEY is not set; checkout calls will be rejected by Stripe")

        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            auth=(self.api_key, ""),
            limits=httpx.Limits(max_keepalive_connections=10, max_connections=20),
        )
        logger.info(f"Stripe provider initialized (base_url: {self.base_url})")

    async def _request(self, method: str, path: str, **kwargs) -> dict:
        """
        Send a request with retries on timeouts, connection errors and 5xx.

        Raises:
            ProviderTimeoutError: Request timed out on every attempt
            ProviderUnavailableError: Stripe not reachable
            ProviderResponseError: 4xx or malformed response
        """
        url = f"{self.base_url}{path}"

        for attempt in range(self.max_retries):
            try:
                response = await self.client.request(method, url, **kwargs)
                response.raise_for_status()
                return response.json()

            except httpx.TimeoutException as e:
                logger.warning(f"Stripe timeout on {method} {path} (attempt {attempt + 1}/{self.max_retries})")
                if attempt == self.max_retries - 1:
                    raise ProviderTimeoutError(f"Request timed out after {self.max_retries} attempts") from e
                await asyncio.sleep(self.retry_delay * (2 ** attempt))

            except httpx.ConnectError as e:
                logger.error(f"Stripe connection refused (attempt {attempt + 1}/{self.max_retries})")
                if attempt == self.max_retries - 1:
                    raise ProviderUnavailableError("Stripe is not reachable") from e
                await asyncio.sleep(self.retry_delay * (2 ** attempt))

            except httpx.HTTPStatusError as e:
                if e.response.status_code >= 500:
                    logger.error(f"Stripe server error {e.response.status_code} (attempt {attempt + 1}/{self.max_retries})")
                    if attempt == self.max_retries - 1:
                        raise ProviderResponseError(f"Server error: {e.response.status_code}") from e
                    await asyncio.sleep(self.retry_delay * (2 ** attempt))
                else:
                    # Client errors don't retry
                    raise ProviderResponseError(f"HTTP {e.response.status_code}: {e.response.text}") from e

            except json.JSONDecodeError as e:
                logger.error(f"Invalid response from Stripe: {e}")
                raise ProviderResponseError(f"Invalid response format: {e}") from e

        raise ProviderResponseError("No attempts made")

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
        """
        Create a Checkout Session for one item at the negotiated amount.

        The same Idempotency-Key is reused across retries of this call so a
        retried POST never opens a second session.
        """
        form = {
            "mode": "payment",
            "payment_method_types[0]": "card",
            "line_items[0][quantity]": "1",
            "line_items[0][price_data][currency]": currency,
            "line_items[0][price_data][unit_amount]": str(to_minor_units(amount)),
            "line_items[0][price_data][product_data][name]": title,
            "line_items[0][price_data][product_data][description]": f"Purchase of {title}",
            "success_url": success_url,
            "cancel_url": cancel_url,
            "client_reference_id": client_reference_id,
        }
        for key, value in metadata.items():
            form[f"metadata[{key}]"] = value

        data = await self._request(
            "POST",
            "/checkout/sessions",
            data=form,
            headers={"Idempotency-Key": str(uuid.uuid4())},
        )

        try:
            session = CheckoutSession(session_ref=data["id"], redirect_url=data["url"])
        except KeyError as e:
            raise ProviderResponseError(f"Checkout session response missing {e}") from e

        logger.info(f"Stripe checkout session created: {session.session_ref} (ref: {client_reference_id})")
        return session

    async def retrieve_session(self, session_ref: str) -> SessionStatus:
        """Fetch a Checkout Session's payment status and payment intent."""
        data = await self._request("GET", f"/checkout/sessions/{session_ref}")

        payment_intent = data.get("payment_intent")
        if isinstance(payment_intent, dict):
            payment_intent = payment_intent.get("id")

        try:
            return SessionStatus(
                session_ref=data["id"],
                payment_status=data["payment_status"],
                payment_intent_ref=payment_intent,
            )
        except KeyError as e:
            raise ProviderResponseError(f"Checkout session response missing {e}") from e

    def construct_event(self, payload: bytes, signature_header: str | None) -> WebhookEvent:
        """
        Verify the Stripe-Signature header and parse the event.

        Raises:
            WebhookSignatureError: If verification or parsing fails
        """
        verify_signature(payload, signature_header, self.webhook_secret, tolerance=self.tolerance)
        return parse_event(payload)

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()
