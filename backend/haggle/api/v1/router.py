"""
API v1 router aggregation.

WHAT: Combine all v1 endpoint routers
WHY: Single place to register all API routes
HOW: Include routers from endpoints with prefixes
"""

from fastapi import APIRouter

from .endpoints import status, listings, offers, payments, notifications, messages, wishlist

# Create main v1 router
api_router = APIRouter()

# Include endpoint routers
api_router.include_router(
    status.router,
    prefix="/api/v1",
    tags=["status"]
)

api_router.include_router(
    listings.router,
    prefix="/api/v1",
    tags=["listings"]
)

api_router.include_router(
    offers.router,
    prefix="/api/v1",
    tags=["offers"]
)

api_router.include_router(
    payments.router,
    prefix="/api/v1",
    tags=["payments"]
)

api_router.include_router(
    notifications.router,
    prefix="/api/v1",
    tags=["notifications"]
)

api_router.include_router(
    messages.router,
    prefix="/api/v1",
    tags=["messages"]
)

api_router.include_router(
    wishlist.router,
    prefix="/api/v1",
    tags=["wishlist"]
)
