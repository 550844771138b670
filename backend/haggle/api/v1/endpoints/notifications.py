"""
Notification endpoints.

WHAT: List and mark the caller's notifications
WHY: In-app alerts for offers, messages and sold wishlist items
HOW: FastAPI router over inbox_service
"""

from typing import List

from fastapi import APIRouter, Depends, Query

from ....models.api_schemas import (
    MarkNotificationsRequest, MarkNotificationsResponse, NotificationResponse
)
from ....services.inbox import inbox_service
from ...deps import get_current_user_id

router = APIRouter()


@router.get("/notifications", response_model=List[NotificationResponse])
async def list_notifications(
    unread_only: bool = Query(default=False),
    user_id: str = Depends(get_current_user_id),
):
    notifications = inbox_service.list_notifications(user_id, unread_only=unread_only)
    return [NotificationResponse.model_validate(n) for n in notifications]


@router.patch("/notifications", response_model=MarkNotificationsResponse)
async def mark_notifications(
    body: MarkNotificationsRequest,
    user_id: str = Depends(get_current_user_id),
):
    """Mark the given notifications (all when ids is omitted) read or unread."""
    updated = inbox_service.mark_notifications(user_id, ids=body.ids, read=body.read)
    return MarkNotificationsResponse(updated=updated)
