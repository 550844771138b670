"""
Webhook signature verification.

WHAT: Authenticate provider webhook deliveries with a shared secret
WHY: Payment state must never change on an unauthenticated payload
HOW: HMAC-SHA256 over "<timestamp>.<payload>", header "t=...,v1=..."
"""

import hashlib
import hmac
import json
import time

from .types import WebhookEvent, WebhookSignatureError

SIGNATURE_SCHEME = "v1"


def compute_signature(payload: bytes, secret: str, timestamp: int) -> str:
    """Hex HMAC-SHA256 of the signed payload."""
    signed_payload = f"{timestamp}.".encode("utf-8") + payload
    return hmac.new(secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()


def build_signature_header(payload: bytes, secret: str, timestamp: int | None = None) -> str:
    """Build a signature header the way the provider sends it."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    return f"t={timestamp},{SIGNATURE_SCHEME}={compute_signature(payload, secret, timestamp)}"


def _parse_header(header: str) -> tuple[int, list[str]]:
    timestamp = None
    signatures = []
    for item in header.split(","):
        key, sep, value = item.strip().partition("=")
        if not sep:
            continue
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError:
                raise WebhookSignatureError("Malformed timestamp in signature header")
        elif key == SIGNATURE_SCHEME:
            signatures.append(value)

    if timestamp is None:
        raise WebhookSignatureError("No timestamp in signature header")
    if not signatures:
        raise WebhookSignatureError("No signatures found with expected scheme")
    return timestamp, signatures


def verify_signature(
    payload: bytes,
    header: str | None,
    secret: str,
    tolerance: int = 300,
    now: float | None = None,
) -> int:
    """
    Verify a webhook signature header.

    Args:
        payload: Raw request body exactly as received
        header: Signature header value
        secret: Shared webhook secret
        tolerance: Maximum age of the signature in seconds
        now: Current unix time (for tests)

    Returns:
        The signed timestamp

    Raises:
        WebhookSignatureError: Missing, malformed, mismatched or stale signature
    """
    if not header:
        raise WebhookSignatureError("No signature provided")
    if not secret:
        raise WebhookSignatureError("Webhook secret is not configured")

    timestamp, signatures = _parse_header(header)
    expected = compute_signature(payload, secret, timestamp)

    if not any(hmac.compare_digest(expected, candidate) for candidate in signatures):
        raise WebhookSignatureError("No signatures found matching the expected signature")

    current = time.time() if now is None else now
    if tolerance and abs(current - timestamp) > tolerance:
        raise WebhookSignatureError("Timestamp outside the tolerance zone")

    return timestamp


def parse_event(payload: bytes) -> WebhookEvent:
    """
    Parse a verified webhook body into a WebhookEvent.

    Raises:
        WebhookSignatureError: If the body is not a well-formed event
    """
    try:
        body = json.loads(payload)
        event_type = body["type"]
    except (ValueError, KeyError, TypeError) as e:
        raise WebhookSignatureError("Malformed event payload") from e

    obj = (body.get("data") or {}).get("object") or {}
    payment_intent = obj.get("payment_intent")
    if isinstance(payment_intent, dict):
        payment_intent = payment_intent.get("id")

    return WebhookEvent(
        event_id=body.get("id", ""),
        event_type=event_type,
        session_ref=obj.get("id"),
        payment_intent_ref=payment_intent,
        client_reference_id=obj.get("client_reference_id"),
        payment_status=obj.get("payment_status"),
        metadata=obj.get("metadata") or {},
    )
