"""
Inbox service: notifications and direct messages.

WHAT: Read/mark notifications; list conversations and send text messages
WHY: Users follow negotiations and chat with counterparties in-app
HOW: Recipient-scoped queries; only `read` ever changes on a notification
"""

from typing import Dict, List, Optional

from sqlalchemy import and_, or_, select, update

from ..core.config import settings
from ..core.database import get_db
from ..core.models import (
    Listing, Message, MessageType, Notification, NotificationType
)
from ..utils.exceptions import ListingNotFoundError, ValidationError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class InboxService:
    """Notifications and messages for the verified caller."""

    def list_notifications(
        self,
        user_id: str,
        unread_only: bool = False,
        limit: Optional[int] = None,
    ) -> List[Notification]:
        """Caller's notifications, newest first."""
        with get_db() as db:
            stmt = select(Notification).where(Notification.recipient_id == user_id)
            if unread_only:
                stmt = stmt.where(Notification.read.is_(False))
            stmt = stmt.order_by(Notification.created_at.desc())
            stmt = stmt.limit(limit or settings.NOTIFICATION_PAGE_SIZE)
            return list(db.execute(stmt).scalars().all())

    def mark_notifications(
        self,
        user_id: str,
        ids: Optional[List[str]] = None,
        read: bool = True,
    ) -> int:
        """
        Set the read flag on the caller's notifications.

        Args:
            ids: Specific notification ids, or None for all of the caller's

        Returns:
            Number of notifications updated
        """
        with get_db() as db:
            stmt = update(Notification).where(Notification.recipient_id == user_id)
            if ids is not None:
                if not ids:
                    return 0
                stmt = stmt.where(Notification.id.in_(ids))
            result = db.execute(
                stmt.values(read=read).execution_options(synchronize_session=False)
            )
            return result.rowcount

    def list_conversations(self, user_id: str) -> List[Dict]:
        """
        Latest message with each partner, newest conversation first.

        Returns:
            Dicts with other_user_id, last_message and unread_count
        """
        with get_db() as db:
            messages = db.execute(
                select(Message)
                .where(or_(Message.sender_id == user_id, Message.receiver_id == user_id))
                .order_by(Message.created_at.desc())
            ).scalars().all()

        conversations: Dict[str, Dict] = {}
        for message in messages:
            other = message.receiver_id if message.sender_id == user_id else message.sender_id
            conversation = conversations.get(other)
            if conversation is None:
                conversation = {"other_user_id": other, "last_message": message, "unread_count": 0}
                conversations[other] = conversation
            if message.receiver_id == user_id and not message.read:
                conversation["unread_count"] += 1

        return list(conversations.values())

    def get_thread(self, user_id: str, other_user_id: str) -> List[Message]:
        """
        Messages between the caller and one partner, oldest first.

        Opening a thread marks the caller's incoming messages and the
        notifications from that partner as read.
        """
        with get_db() as db:
            messages = db.execute(
                select(Message)
                .where(or_(
                    and_(Message.sender_id == user_id, Message.receiver_id == other_user_id),
                    and_(Message.sender_id == other_user_id, Message.receiver_id == user_id),
                ))
                .order_by(Message.created_at.asc())
            ).scalars().all()

            db.execute(
                update(Message)
                .where(
                    Message.sender_id == other_user_id,
                    Message.receiver_id == user_id,
                    Message.read.is_(False),
                )
                .values(read=True)
                .execution_options(synchronize_session=False)
            )
            db.execute(
                update(Notification)
                .where(
                    Notification.recipient_id == user_id,
                    Notification.actor_id == other_user_id,
                    Notification.read.is_(False),
                )
                .values(read=True)
                .execution_options(synchronize_session=False)
            )
            return list(messages)

    def send_message(
        self,
        sender_id: str,
        receiver_id: str,
        content: str,
        listing_id: Optional[str] = None,
    ) -> Message:
        """Send a text message and notify the receiver."""
        content = (content or "").strip()
        if not content:
            raise ValidationError("Message content is required")
        if sender_id == receiver_id:
            raise ValidationError("Cannot send a message to yourself")

        with get_db() as db:
            if listing_id is not None and db.get(Listing, listing_id) is None:
                raise ListingNotFoundError(listing_id)

            message = Message(
                sender_id=sender_id,
                receiver_id=receiver_id,
                listing_id=listing_id,
                type=MessageType.TEXT,
                content=content,
            )
            db.add(message)
            db.add(Notification(
                recipient_id=receiver_id,
                actor_id=sender_id,
                type=NotificationType.MESSAGE,
                data={"otherUserId": sender_id, "listingId": listing_id, "preview": content[:100]},
            ))
            db.flush()

        logger.info(f"Message {message.id} sent {sender_id} -> {receiver_id}")
        return message


# Singleton instance
inbox_service = InboxService()
