"""
Message endpoints.

WHAT: Conversation list, threads and plain text messages
WHY: Buyers and sellers talk around their offers
HOW: FastAPI router over inbox_service
"""

from typing import List

from fastapi import APIRouter, Depends, status

from ....models.api_schemas import (
    ConversationSummary, MessageResponse, SendMessageRequest
)
from ....services.inbox import inbox_service
from ...deps import get_current_user_id

router = APIRouter()


@router.get("/messages", response_model=List[ConversationSummary])
async def list_conversations(user_id: str = Depends(get_current_user_id)):
    """Latest message per partner, newest conversation first."""
    return [
        ConversationSummary(
            other_user_id=conversation["other_user_id"],
            last_message=MessageResponse.model_validate(conversation["last_message"]),
            unread_count=conversation["unread_count"],
        )
        for conversation in inbox_service.list_conversations(user_id)
    ]


@router.get("/messages/{other_user_id}", response_model=List[MessageResponse])
async def get_thread(other_user_id: str, user_id: str = Depends(get_current_user_id)):
    """Thread with one partner, oldest first; marks it read for the caller."""
    messages = inbox_service.get_thread(user_id, other_user_id)
    return [MessageResponse.model_validate(m) for m in messages]


@router.post("/messages", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message(body: SendMessageRequest, user_id: str = Depends(get_current_user_id)):
    message = inbox_service.send_message(
        user_id, body.receiver_id, body.content, listing_id=body.listing_id
    )
    return MessageResponse.model_validate(message)
