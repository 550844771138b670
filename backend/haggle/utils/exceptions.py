"""
Custom business exceptions for marketplace operations.

WHAT: Domain-specific exceptions that map to HTTP status codes
WHY: Consistent error handling across services and API endpoints
HOW: Custom exception classes with error codes and messages
"""

from typing import Any, Optional


class APIException(Exception):
    """Base class for business logic exceptions."""

    def __init__(self, message: str, code: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details


class UnauthorizedError(APIException):
    """Raised when no verified caller id accompanies the request."""

    def __init__(self):
        super().__init__(message="Unauthorized", code="UNAUTHORIZED")


class ForbiddenError(APIException):
    """Raised when the caller is not allowed to act on a resource."""

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message=message, code="FORBIDDEN")


class NotFoundError(APIException):
    """Raised when a requested entity does not exist."""

    def __init__(self, message: str, code: str = "NOT_FOUND", details: Optional[Any] = None):
        super().__init__(message=message, code=code, details=details)


class OfferNotFoundError(NotFoundError):
    def __init__(self, offer_id: str):
        super().__init__(
            message=f"Offer not found: {offer_id}",
            code="OFFER_NOT_FOUND",
            details={"offer_id": offer_id}
        )


class ListingNotFoundError(NotFoundError):
    def __init__(self, listing_id: str):
        super().__init__(
            message=f"Listing not found: {listing_id}",
            code="LISTING_NOT_FOUND",
            details={"listing_id": listing_id}
        )


class CheckoutSessionNotFoundError(NotFoundError):
    def __init__(self, session_ref: str):
        super().__init__(
            message=f"No offer for checkout session: {session_ref}",
            code="CHECKOUT_SESSION_NOT_FOUND",
            details={"session_id": session_ref}
        )


class InvalidAmountError(APIException):
    """Raised when an offer or counter falls outside the allowed band."""

    def __init__(self, amount, min_amount, max_amount):
        super().__init__(
            message=f"Offers must be between {min_amount} and {max_amount}",
            code="INVALID_AMOUNT",
            details={
                "amount": str(amount),
                "min_amount": str(min_amount),
                "max_amount": str(max_amount),
            }
        )


class InvalidTransitionError(APIException):
    """Raised when an action is not legal for the offer's current stage."""

    def __init__(
        self,
        message: str,
        status: Optional[str] = None,
        last_action_by: Optional[str] = None,
        code: str = "INVALID_TRANSITION",
    ):
        super().__init__(
            message=message,
            code=code,
            details={"status": status, "last_action_by": last_action_by}
        )


class LiveOfferExistsError(InvalidTransitionError):
    """Raised when a buyer already has a pending/countered offer on a listing."""

    def __init__(self, offer_id: str, status: str):
        super().__init__(
            message="You already have an open offer on this listing",
            status=status,
            code="LIVE_OFFER_EXISTS",
        )
        self.details["offer_id"] = offer_id


class AlreadyPaidError(APIException):
    """Raised when checkout is requested for an offer that is already paid."""

    def __init__(self, offer_id: str):
        super().__init__(
            message="Payment already completed",
            code="ALREADY_PAID",
            details={"offer_id": offer_id}
        )


class ValidationError(APIException):
    """Raised for request-level validation errors."""

    def __init__(self, message: str, field_errors: Optional[list] = None):
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            details={"field_errors": field_errors} if field_errors else None
        )


class InternalError(APIException):
    """Raised when the store or the payment provider fails."""

    def __init__(self, message: str = "Internal error"):
        super().__init__(message=message, code="INTERNAL_ERROR")
