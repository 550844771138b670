"""
Pydantic API schemas.

WHAT: Request and response models for FastAPI
WHY: Type-safe validation and serialization for the marketplace frontend
HOW: Pydantic v2 models; ORM rows converted with from_attributes
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer

from ..core.models import (
    ListingStatus, MessageType, NotificationType, OfferAction, OfferStatus,
    Party, PaymentStatus
)

# Decimal internally, plain number on the wire
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ========== Listings ==========

class ListingCreate(BaseModel):
    """New listing."""
    title: str = Field(..., min_length=1, max_length=200, description="Listing title")
    description: str = Field(default="", max_length=5000)
    category: str = Field(default="other", min_length=1, max_length=100)
    condition: str = Field(default="used", min_length=1, max_length=50)
    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2, description="Asking price")


class ListingUpdate(BaseModel):
    """Partial listing edit; omitted fields are unchanged."""
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    condition: Optional[str] = Field(default=None, min_length=1, max_length=50)
    price: Optional[Decimal] = Field(default=None, gt=0, max_digits=10, decimal_places=2)


class ListingResponse(ORMModel):
    id: str
    seller_id: str
    title: str
    description: str
    category: str
    condition: str
    price: Money
    status: ListingStatus
    created_at: datetime
    updated_at: datetime


# ========== Offers ==========

class OfferCreate(BaseModel):
    """Buyer's opening offer."""
    listing_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0, description="Offered amount")


class OfferRespond(BaseModel):
    """Accept, decline or counter; amount is required for counter."""
    action: Literal["accept", "decline", "counter"]
    amount: Optional[Decimal] = Field(default=None, gt=0)


class OfferHistoryItem(ORMModel):
    sequence: int
    actor: Party
    action: OfferAction
    amount: Money
    created_at: datetime


class OfferResponse(ORMModel):
    id: str
    listing_id: str
    buyer_id: str
    seller_id: str
    amount: Money
    status: OfferStatus
    payment_status: PaymentStatus
    last_action_by: Party
    checkout_session_ref: Optional[str] = None
    history: List[OfferHistoryItem] = []
    created_at: datetime
    updated_at: datetime


# ========== Payments ==========

class CheckoutRequest(BaseModel):
    offer_id: str = Field(..., min_length=1)


class CheckoutResponse(BaseModel):
    session_id: str
    url: str


class VerifyPaymentResponse(BaseModel):
    paid: bool
    session_id: str
    offer_id: str
    payment_status: str


class WebhookAck(BaseModel):
    received: bool = True


# ========== Notifications & messages ==========

class NotificationResponse(ORMModel):
    id: str
    recipient_id: str
    actor_id: str
    type: NotificationType
    data: Dict[str, Any]
    read: bool
    created_at: datetime


class MarkNotificationsRequest(BaseModel):
    """Mark the given notifications (or all, when ids is omitted)."""
    ids: Optional[List[str]] = None
    read: bool = True


class MarkNotificationsResponse(BaseModel):
    updated: int


class MessageResponse(ORMModel):
    id: str
    sender_id: str
    receiver_id: str
    listing_id: Optional[str] = None
    offer_id: Optional[str] = None
    type: MessageType
    content: str
    read: bool
    created_at: datetime


class SendMessageRequest(BaseModel):
    receiver_id: str = Field(..., min_length=1, max_length=100)
    content: str = Field(..., min_length=1, max_length=5000)
    listing_id: Optional[str] = None


class ConversationSummary(BaseModel):
    other_user_id: str
    last_message: MessageResponse
    unread_count: int


# ========== Wishlist ==========

class WishlistAddRequest(BaseModel):
    listing_id: str = Field(..., min_length=1)


class WishlistItemResponse(ORMModel):
    id: str
    listing_id: str
    created_at: datetime
    listing: ListingResponse
