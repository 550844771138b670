"""
Global error handling middleware.

WHAT: Translate exceptions to appropriate HTTP responses
WHY: Consistent error responses with proper status codes
HOW: FastAPI exception handlers for custom exceptions
"""

from datetime import datetime

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from ..payments.types import WebhookSignatureError
from ..utils.exceptions import (
    APIException,
    AlreadyPaidError,
    ForbiddenError,
    InternalError,
    InvalidAmountError,
    InvalidTransitionError,
    LiveOfferExistsError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)


def _error_body(code: str, message: str, details=None) -> dict:
    return {
        "error": code,
        "message": message,
        "details": details,
        "timestamp": datetime.now().isoformat()
    }


async def webhook_signature_handler(request: Request, exc: WebhookSignatureError):
    """
    Handle WebhookSignatureError.

    WHAT: Webhook payload failed authentication
    WHY: Unauthenticated deliveries must not change state or leak detail
    HOW: Return a generic 400; the reason only goes to the log
    """
    logger.warning(f"Webhook rejected: {exc}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body("INVALID_SIGNATURE", "Webhook rejected")
    )


async def validation_error_handler(request: Request, exc: RequestValidationError):
    """
    Handle FastAPI RequestValidationError.

    WHAT: Request validation failed
    WHY: Invalid request payload
    HOW: Return 400 with field errors
    """
    logger.warning(f"Validation error: {exc.errors()}")

    # Clean up error details to be JSON serializable
    cleaned_errors = []
    for error in exc.errors():
        cleaned_error = {
            "type": error.get("type"),
            "loc": error.get("loc"),
            "msg": error.get("msg"),
        }
        if "ctx" in error:
            cleaned_error["ctx"] = {k: str(v) for k, v in error["ctx"].items()}
        cleaned_errors.append(cleaned_error)

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body("VALIDATION_ERROR", "Request validation failed", cleaned_errors)
    )


async def database_error_handler(request: Request, exc: SQLAlchemyError):
    """Unexpected store failure; details stay in the log."""
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body("INTERNAL_ERROR", "Internal error")
    )


async def api_exception_handler(request: Request, exc: APIException):
    """
    Handle generic APIException.

    WHAT: Custom API exception
    WHY: Domain-specific error
    HOW: Return appropriate status code based on exception type
    """
    status_code = status.HTTP_400_BAD_REQUEST

    if isinstance(exc, UnauthorizedError):
        status_code = status.HTTP_401_UNAUTHORIZED
    elif isinstance(exc, ForbiddenError):
        status_code = status.HTTP_403_FORBIDDEN
    elif isinstance(exc, NotFoundError):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, LiveOfferExistsError):
        status_code = status.HTTP_409_CONFLICT
    elif isinstance(exc, (InvalidAmountError, InvalidTransitionError, AlreadyPaidError, ValidationError)):
        status_code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, InternalError):
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    if status_code >= 500:
        logger.error(f"API exception: {exc.code} - {exc.message}", exc_info=exc.__cause__)
    else:
        logger.warning(f"API exception: {exc.code} - {exc.message}")

    return JSONResponse(
        status_code=status_code,
        content=_error_body(exc.code, exc.message, exc.details)
    )


def register_exception_handlers(app):
    """
    Register all exception handlers with FastAPI app.

    WHAT: Attach handlers to app
    WHY: Centralized error handling
    HOW: Use app.add_exception_handler

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(WebhookSignatureError, webhook_signature_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)

    # API exceptions
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(APIException, api_exception_handler)

    logger.info("Exception handlers registered")
