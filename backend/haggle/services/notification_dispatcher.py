"""
Notification dispatcher for offer transitions.

WHAT: Fan-out of one offer Message and one Notification per transition
WHY: Counterparties learn about offers, counters, accepts and declines
HOW: Separate transaction after the offer commits; failures are logged, never raised
"""

from dataclasses import dataclass
from decimal import Decimal

from ..core.database import get_db
from ..core.models import (
    Message, MessageType, Notification, NotificationType,
    OfferAction, OfferStatus, Party
)
from ..utils.logger import get_logger
from ..utils.money import format_amount

logger = get_logger(__name__)


@dataclass(frozen=True)
class OfferEvent:
    """Snapshot of a committed offer transition, addressed to the counterparty."""
    offer_id: str
    listing_id: str
    listing_title: str
    actor_id: str
    actor_party: Party
    recipient_id: str
    action: OfferAction
    amount: Decimal
    status: OfferStatus


def describe_offer_event(event: OfferEvent) -> str:
    """Human-readable audit line for an offer transition."""
    amount = format_amount(event.amount)
    title = event.listing_title
    who = "Seller" if event.actor_party == Party.SELLER else "Buyer"

    if event.action == OfferAction.OFFER:
        return f"sent an offer of {amount} on {title}"
    if event.action == OfferAction.ACCEPT:
        if event.actor_party == Party.SELLER:
            return f"Seller accepted the offer of {amount} on {title}. Please complete payment."
        return f"Buyer accepted the offer of {amount} on {title}. Awaiting payment."
    if event.action == OfferAction.DECLINE:
        return f"{who} declined the offer for {title}"
    return f"{who} countered with {amount} on {title}"


class NotificationDispatcher:
    """Writes the Message + Notification pair for an offer transition."""

    def dispatch(self, event: OfferEvent) -> None:
        """
        Persist the audit message and the notification.

        Raises whatever the store raises; callers that must not fail use
        safe_dispatch().
        """
        notification_type = (
            NotificationType.OFFER
            if event.action == OfferAction.OFFER
            else NotificationType.OFFER_RESPONSE
        )

        with get_db() as db:
            db.add(Message(
                sender_id=event.actor_id,
                receiver_id=event.recipient_id,
                listing_id=event.listing_id,
                offer_id=event.offer_id,
                type=MessageType.OFFER,
                content=describe_offer_event(event),
            ))
            db.add(Notification(
                recipient_id=event.recipient_id,
                actor_id=event.actor_id,
                type=notification_type,
                data={
                    "offerId": event.offer_id,
                    "listingId": event.listing_id,
                    "otherUserId": event.actor_id,
                    "status": event.status.value,
                },
            ))

        logger.debug(f"Dispatched {notification_type.value} for offer {event.offer_id} to {event.recipient_id}")

    def safe_dispatch(self, event: OfferEvent) -> bool:
        """
        Dispatch without propagating failures.

        Returns:
            True if the message and notification were written
        """
        try:
            self.dispatch(event)
            return True
        except Exception as e:
            logger.error(
                f"Notification dispatch failed for offer {event.offer_id} ({event.action.value}): {e}",
                exc_info=True
            )
            return False
