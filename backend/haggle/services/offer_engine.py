"""
Offer engine.

WHAT: Create offers and apply accept/decline/counter responses
WHY: Owns the Offer entity, its turn-taking protocol and history log
HOW: Validate -> mutate -> append history -> commit -> dispatch notification
"""

from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..core.config import settings
from ..core.database import get_db
from ..core.models import (
    LIVE_OFFER_STATUSES, Listing, ListingStatus, Offer, OfferAction,
    OfferHistoryEntry, OfferStatus, Party, PaymentStatus
)
from ..utils.exceptions import (
    ForbiddenError, InvalidTransitionError, ListingNotFoundError,
    LiveOfferExistsError, OfferNotFoundError, ValidationError
)
from ..utils.logger import get_logger
from .competing_offers import cancel_superseded_acceptances, decline_competing_offers
from .notification_dispatcher import NotificationDispatcher, OfferEvent
from .offer_rules import next_state, validate_offer_amount

logger = get_logger(__name__)

# Accepted offers in these payment states still hold the listing
_RESERVING_PAYMENT_STATUSES = (
    PaymentStatus.PENDING,
    PaymentStatus.PROCESSING,
    PaymentStatus.PAID,
)


def reserving_offer_id(db: Session, listing_id: str, exclude_offer_id: Optional[str] = None) -> Optional[str]:
    """Id of an accepted offer that currently holds the listing, if any."""
    query = select(Offer.id).where(
        Offer.listing_id == listing_id,
        Offer.status == OfferStatus.ACCEPTED,
        Offer.payment_status.in_(_RESERVING_PAYMENT_STATUSES),
    )
    if exclude_offer_id is not None:
        query = query.where(Offer.id != exclude_offer_id)
    return db.execute(query).scalars().first()


def _append_history(offer: Offer, actor: Party, action: OfferAction, amount: Decimal) -> None:
    offer.history.append(OfferHistoryEntry(
        sequence=len(offer.history) + 1,
        actor=actor,
        action=action,
        amount=amount,
    ))


class OfferEngine:
    """
    Negotiation engine for buyer/seller offer threads.

    WHAT: createOffer / respondToOffer / read access for the two parties
    WHY: Enforce the turn invariant and the 80%-100% amount band
    HOW: One transaction per action; notifications after commit via dispatcher
    """

    def __init__(
        self,
        dispatcher: Optional[NotificationDispatcher] = None,
        min_ratio: Optional[Decimal] = None,
    ):
        self.dispatcher = dispatcher or NotificationDispatcher()
        self.min_ratio = min_ratio if min_ratio is not None else settings.OFFER_MIN_RATIO

    def create_offer(self, buyer_id: str, listing_id: str, amount) -> Offer:
        """
        Open a new negotiation thread on a listing.

        Args:
            buyer_id: Verified caller id
            listing_id: Listing to make an offer on
            amount: Proposed amount

        Returns:
            The created Offer (status pending, last action by buyer)

        Raises:
            ListingNotFoundError, ValidationError, InvalidTransitionError,
            LiveOfferExistsError, InvalidAmountError
        """
        with get_db() as db:
            listing = db.get(Listing, listing_id)
            if listing is None:
                raise ListingNotFoundError(listing_id)

            if listing.seller_id == buyer_id:
                raise ValidationError("Sellers cannot send offers to themselves")

            self._ensure_listing_open(db, listing)

            live = self._find_live_offer(db, listing_id, buyer_id)
            if live is not None:
                raise LiveOfferExistsError(live.id, live.status.value)

            value = validate_offer_amount(listing.price, amount, self.min_ratio)

            offer = Offer(
                listing_id=listing.id,
                buyer_id=buyer_id,
                seller_id=listing.seller_id,
                amount=value,
                status=OfferStatus.PENDING,
                payment_status=PaymentStatus.PENDING,
                last_action_by=Party.BUYER,
            )
            _append_history(offer, Party.BUYER, OfferAction.OFFER, value)
            db.add(offer)

            try:
                db.flush()
            except IntegrityError as e:
                # Lost a race with a concurrent create for the same buyer
                db.rollback()
                live = self._find_live_offer(db, listing_id, buyer_id)
                if live is None:
                    raise
                raise LiveOfferExistsError(live.id, live.status.value) from e

            event = OfferEvent(
                offer_id=offer.id,
                listing_id=listing.id,
                listing_title=listing.title,
                actor_id=buyer_id,
                actor_party=Party.BUYER,
                recipient_id=listing.seller_id,
                action=OfferAction.OFFER,
                amount=value,
                status=offer.status,
            )

        logger.info(f"Offer {offer.id} created by buyer {buyer_id} on listing {listing_id} for {value}")
        self.dispatcher.safe_dispatch(event)
        return offer

    def respond_to_offer(
        self,
        offer_id: str,
        user_id: str,
        action: OfferAction,
        amount=None,
    ) -> Offer:
        """
        Accept, decline or counter an offer on behalf of one of its parties.

        Repeating accept on an accepted offer (or decline on a declined one)
        returns it unchanged and sends nothing.

        Raises:
            OfferNotFoundError, ForbiddenError, ValidationError,
            InvalidAmountError, InvalidTransitionError
        """
        if action == OfferAction.OFFER:
            raise ValidationError("Invalid action")

        with get_db() as db:
            offer = db.get(Offer, offer_id)
            if offer is None:
                raise OfferNotFoundError(offer_id)

            actor = offer.party_of(user_id)
            if actor is None:
                raise ForbiddenError()

            listing = offer.listing

            new_amount = None
            if action == OfferAction.COUNTER:
                if amount is None:
                    raise ValidationError("Counter amount required")
                # Band is checked against the listing's current price
                new_amount = validate_offer_amount(listing.price, amount, self.min_ratio)

            transition = next_state(offer.status, offer.last_action_by, actor, action)
            if transition.noop:
                logger.info(f"Offer {offer_id}: repeated {action.value} ignored")
                return offer

            if transition.status == OfferStatus.ACCEPTED and listing.status == ListingStatus.SOLD:
                raise InvalidTransitionError(
                    message="Listing is already sold",
                    status=offer.status.value,
                    last_action_by=offer.last_action_by.value,
                    code="LISTING_SOLD",
                )
            if transition.status == OfferStatus.ACCEPTED and reserving_offer_id(db, listing.id, offer.id) is not None:
                raise InvalidTransitionError(
                    message="Listing has an accepted offer awaiting payment",
                    status=offer.status.value,
                    last_action_by=offer.last_action_by.value,
                    code="LISTING_RESERVED",
                )

            if transition.replaces_amount:
                offer.amount = new_amount
            offer.status = transition.status
            offer.last_action_by = transition.last_action_by
            if transition.status == OfferStatus.ACCEPTED:
                offer.payment_status = PaymentStatus.PENDING
            _append_history(offer, actor, action, offer.amount)

            try:
                db.flush()
            except StaleDataError as e:
                raise InvalidTransitionError(
                    message="Offer was modified by another action, reload and retry",
                    code="CONCURRENT_MODIFICATION",
                ) from e

            if transition.status == OfferStatus.ACCEPTED:
                decline_competing_offers(db, offer.listing_id, offer.id)
                cancel_superseded_acceptances(db, offer.listing_id, offer.id)

            event = OfferEvent(
                offer_id=offer.id,
                listing_id=listing.id,
                listing_title=listing.title,
                actor_id=user_id,
                actor_party=actor,
                recipient_id=offer.counterparty_of(actor),
                action=action,
                amount=offer.amount,
                status=offer.status,
            )

        logger.info(
            f"Offer {offer_id}: {actor.value} {action.value} -> "
            f"status={offer.status.value}, amount={offer.amount}"
        )
        self.dispatcher.safe_dispatch(event)
        return offer

    def get_offer(self, offer_id: str, user_id: str) -> Offer:
        """Fetch an offer visible to one of its parties."""
        with get_db() as db:
            offer = db.get(Offer, offer_id)
            if offer is None:
                raise OfferNotFoundError(offer_id)
            if offer.party_of(user_id) is None:
                raise ForbiddenError()
            return offer

    def list_offers(
        self,
        user_id: str,
        role: Party = Party.BUYER,
        listing_id: Optional[str] = None,
    ) -> List[Offer]:
        """List offers where the caller is buyer (or seller), latest activity first."""
        with get_db() as db:
            query = select(Offer)
            if role == Party.SELLER:
                query = query.where(Offer.seller_id == user_id)
            else:
                query = query.where(Offer.buyer_id == user_id)
            if listing_id:
                query = query.where(Offer.listing_id == listing_id)
            query = query.order_by(Offer.updated_at.desc())
            return list(db.execute(query).scalars().all())

    @staticmethod
    def _ensure_listing_open(db: Session, listing: Listing) -> None:
        """Reject new offers on sold listings or listings held by an accepted offer."""
        if listing.status == ListingStatus.SOLD:
            raise InvalidTransitionError(
                message="Listing is already sold",
                code="LISTING_SOLD",
            )

        if reserving_offer_id(db, listing.id) is not None:
            raise InvalidTransitionError(
                message="Listing has an accepted offer awaiting payment",
                code="LISTING_RESERVED",
            )

    @staticmethod
    def _find_live_offer(db: Session, listing_id: str, buyer_id: str) -> Optional[Offer]:
        return db.execute(
            select(Offer).where(
                Offer.listing_id == listing_id,
                Offer.buyer_id == buyer_id,
                Offer.status.in_(LIVE_OFFER_STATUSES),
            )
        ).scalars().first()


# Singleton instance
offer_engine = OfferEngine()
