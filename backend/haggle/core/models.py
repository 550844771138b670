"""
ORM models for marketplace persistence.

WHAT: SQLAlchemy models for listings, offers, messages, notifications, wishlists
WHY: Persist the negotiation thread, its audit trail, and payment progress
HOW: Declarative models with constraints, relationships, and indexes
"""

import enum
from datetime import datetime
from uuid import uuid4

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text, JSON, Numeric,
    ForeignKey, CheckConstraint, UniqueConstraint, Index, Enum as SQLEnum, text
)
from sqlalchemy.orm import relationship

from .database import Base


def _new_id() -> str:
    return str(uuid4())


# Enums for status fields
class ListingStatus(str, enum.Enum):
    """Listing status values."""
    ACTIVE = "active"
    SOLD = "sold"


class OfferStatus(str, enum.Enum):
    """Negotiation status of an offer thread."""
    PENDING = "pending"
    COUNTERED = "countered"
    ACCEPTED = "accepted"
    DECLINED = "declined"


LIVE_OFFER_STATUSES = (OfferStatus.PENDING, OfferStatus.COUNTERED)


class PaymentStatus(str, enum.Enum):
    """Payment progress, meaningful once an offer is accepted."""
    PENDING = "pending"
    PROCESSING = "processing"
    PAID = "paid"
    FAILED = "failed"
    CANCELLED = "cancelled"


class Party(str, enum.Enum):
    """Side of the negotiation."""
    BUYER = "buyer"
    SELLER = "seller"


class OfferAction(str, enum.Enum):
    """Actions recorded in an offer's history."""
    OFFER = "offer"
    ACCEPT = "accept"
    DECLINE = "decline"
    COUNTER = "counter"


class MessageType(str, enum.Enum):
    TEXT = "text"
    OFFER = "offer"


class NotificationType(str, enum.Enum):
    MESSAGE = "message"
    OFFER = "offer"
    OFFER_RESPONSE = "offer_response"
    LISTING_SOLD = "listing_sold"


class Listing(Base):
    """
    Listing table - an item a seller puts up for sale.

    WHAT: Price and seller identity consumed by the negotiation engine
    WHY: Offers are range-checked against the current price
    HOW: Moves to SOLD exactly once, only via payment reconciliation
    """
    __tablename__ = "listings"

    id = Column(String(36), primary_key=True, default=_new_id)
    seller_id = Column(String(100), nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False, default="")
    category = Column(String(100), nullable=False, default="other")
    condition = Column(String(50), nullable=False, default="used")
    price = Column(Numeric(10, 2), nullable=False)
    status = Column(SQLEnum(ListingStatus), nullable=False, default=ListingStatus.ACTIVE)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    offers = relationship("Offer", back_populates="listing")

    __table_args__ = (
        CheckConstraint("price > 0", name="check_listing_price_positive"),
        Index("idx_listing_status", "status"),
        Index("idx_listing_seller", "seller_id"),
    )

    def __repr__(self):
        return f"<Listing(id={self.id}, title={self.title}, price={self.price}, status={self.status})>"


class Offer(Base):
    """
    Offer table - one negotiation thread for a (listing, buyer) pair.

    WHAT: Current amount, turn marker, negotiation and payment status
    WHY: Single authoritative record the webhook and verify paths reconcile into
    HOW: version_id guards concurrent writers (optimistic concurrency)
    """
    __tablename__ = "offers"

    id = Column(String(36), primary_key=True, default=_new_id)
    listing_id = Column(String(36), ForeignKey("listings.id"), nullable=False)
    buyer_id = Column(String(100), nullable=False)
    seller_id = Column(String(100), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    status = Column(SQLEnum(OfferStatus), nullable=False, default=OfferStatus.PENDING)
    payment_status = Column(SQLEnum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)
    last_action_by = Column(SQLEnum(Party), nullable=False)
    payment_intent_ref = Column(String(255), nullable=True)
    checkout_session_ref = Column(String(255), nullable=True, unique=True)
    version_id = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    listing = relationship("Listing", back_populates="offers")
    history = relationship(
        "OfferHistoryEntry",
        back_populates="offer",
        order_by="OfferHistoryEntry.sequence",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="check_offer_amount_positive"),
        # At most one live (pending/countered) offer per buyer per listing
        Index(
            "uq_offer_live_per_buyer", "listing_id", "buyer_id",
            unique=True,
            sqlite_where=text("status IN ('PENDING', 'COUNTERED')"),
            postgresql_where=text("status IN ('PENDING', 'COUNTERED')"),
        ),
        Index("idx_offer_listing_status", "listing_id", "status"),
        Index("idx_offer_buyer", "buyer_id"),
        Index("idx_offer_seller", "seller_id"),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def party_of(self, user_id: str) -> Party | None:
        """Return which side `user_id` is on, or None for outsiders."""
        if user_id == self.seller_id:
            return Party.SELLER
        if user_id == self.buyer_id:
            return Party.BUYER
        return None

    def counterparty_of(self, party: Party) -> str:
        return self.buyer_id if party == Party.SELLER else self.seller_id

    def __repr__(self):
        return f"<Offer(id={self.id}, amount={self.amount}, status={self.status}, payment={self.payment_status})>"


class CheckoutAttempt(Base):
    """
    CheckoutAttempt table - every checkout session opened for an offer.

    A buyer may open checkout more than once; a payment completed on any of
    those sessions still belongs to the offer.
    """
    __tablename__ = "checkout_attempts"

    session_ref = Column(String(255), primary_key=True)
    offer_id = Column(String(36), ForeignKey("offers.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_checkout_attempt_offer", "offer_id"),
    )

    def __repr__(self):
        return f"<CheckoutAttempt(session={self.session_ref}, offer={self.offer_id})>"


class OfferHistoryEntry(Base):
    """
    OfferHistoryEntry table - append-only log of an offer's transitions.

    Amount is the amount in effect after the action.
    """
    __tablename__ = "offer_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    offer_id = Column(String(36), ForeignKey("offers.id", ondelete="CASCADE"), nullable=False)
    sequence = Column(Integer, nullable=False)
    actor = Column(SQLEnum(Party), nullable=False)
    action = Column(SQLEnum(OfferAction), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    offer = relationship("Offer", back_populates="history")

    __table_args__ = (
        UniqueConstraint("offer_id", "sequence", name="unique_offer_history_sequence"),
    )

    def __repr__(self):
        return f"<OfferHistoryEntry(offer={self.offer_id}, #{self.sequence} {self.actor}:{self.action})>"


class Message(Base):
    """
    Message table - direct messages and offer audit entries between users.
    """
    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, default=_new_id)
    sender_id = Column(String(100), nullable=False)
    receiver_id = Column(String(100), nullable=False)
    listing_id = Column(String(36), ForeignKey("listings.id"), nullable=True)
    offer_id = Column(String(36), ForeignKey("offers.id"), nullable=True)
    type = Column(SQLEnum(MessageType), nullable=False, default=MessageType.TEXT)
    content = Column(Text, nullable=False)
    read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_message_participants", "sender_id", "receiver_id"),
    )

    def __repr__(self):
        return f"<Message(id={self.id}, type={self.type}, {self.sender_id}->{self.receiver_id})>"


class Notification(Base):
    """
    Notification table - in-app alerts; only `read` changes after creation.
    """
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=_new_id)
    recipient_id = Column(String(100), nullable=False)
    actor_id = Column(String(100), nullable=False)
    type = Column(SQLEnum(NotificationType), nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_notification_recipient", "recipient_id", "read"),
    )

    def __repr__(self):
        return f"<Notification(id={self.id}, type={self.type}, to={self.recipient_id})>"


class WishlistEntry(Base):
    """
    WishlistEntry table - a user watching a listing.
    """
    __tablename__ = "wishlist_entries"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(100), nullable=False)
    listing_id = Column(String(36), ForeignKey("listings.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    listing = relationship("Listing")

    __table_args__ = (
        UniqueConstraint("user_id", "listing_id", name="unique_wishlist_user_listing"),
        Index("idx_wishlist_listing", "listing_id"),
    )

    def __repr__(self):
        return f"<WishlistEntry(user={self.user_id}, listing={self.listing_id})>"
