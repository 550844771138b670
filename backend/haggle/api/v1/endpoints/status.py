"""
Status and health check endpoints.

WHAT: Health monitoring for the database and payment configuration
WHY: Quick diagnostics for frontend and ops
HOW: FastAPI endpoint calling the database ping
"""

from fastapi import APIRouter

from ....core.config import settings
from ....core.database import ping_database
from ....utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Overall application health check.

    Returns:
        JSON with overall health status, database status and provider name
    """
    db_status = ping_database()
    if not db_status["available"]:
        logger.warning(f"Health check: database unavailable ({db_status['error']})")

    return {
        "status": "healthy" if db_status["available"] else "degraded",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "database": db_status,
        "payment_provider": settings.PAYMENT_PROVIDER,
        "payments_configured": bool(settings.STRIPE_SECRET_KEY and settings.STRIPE_WEBHOOK_SECRET),
    }
