"""
Payment reconciler.

WHAT: Start checkout for accepted offers and apply provider payment outcomes
WHY: Webhook deliveries are at-least-once and may race the verify poll
HOW: Conditional UPDATEs (compare-and-swap on payment_status) per offer;
     one apply_paid_transition shared by webhook and verify paths
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import or_, select, update

from ..core.config import settings
from ..core.database import get_db
from ..core.models import (
    CheckoutAttempt, Listing, ListingStatus, Offer, OfferStatus, PaymentStatus
)
from ..payments.provider import PaymentProvider
from ..payments.types import (
    EVENT_ASYNC_PAYMENT_FAILED,
    EVENT_ASYNC_PAYMENT_SUCCEEDED,
    EVENT_SESSION_COMPLETED,
    PROVIDER_UNPAID,
    PaymentProviderError,
    WebhookEvent,
)
from ..utils.exceptions import (
    AlreadyPaidError, CheckoutSessionNotFoundError, ForbiddenError,
    InternalError, InvalidTransitionError, OfferNotFoundError
)
from ..utils.logger import get_logger
from .offer_engine import reserving_offer_id
from .wishlist import WishlistNotifier

logger = get_logger(__name__)

_FAILABLE_PAYMENT_STATUSES = (PaymentStatus.PENDING, PaymentStatus.PROCESSING)

# Accepted offers in these payment states may open checkout and be marked paid
_PAYABLE_PAYMENT_STATUSES = (
    PaymentStatus.PENDING,
    PaymentStatus.PROCESSING,
    PaymentStatus.FAILED,
)


def _superseded_error(offer: Offer) -> InvalidTransitionError:
    return InvalidTransitionError(
        message="Offer was superseded by another accepted offer",
        status=offer.status.value,
        last_action_by=offer.last_action_by.value,
        code="OFFER_CANCELLED",
    )


@dataclass
class CheckoutResult:
    """Checkout session opened for an offer."""
    session_id: str
    url: str
    offer: Offer


@dataclass
class VerifyResult:
    """Outcome of polling the provider for a checkout session."""
    paid: bool
    session_id: str
    payment_status: str
    offer_id: str


class PaymentReconciler:
    """
    Bridge between accepted offers and the payment provider.

    WHAT: initiate_checkout, reconcile_completion/failure, verify, webhook intake
    WHY: Offer payment status and listing sold state must agree with the provider
    HOW: Provider calls happen outside transactions; local writes are guarded
         compare-and-swap updates so duplicates and races apply once
    """

    def __init__(
        self,
        provider: PaymentProvider,
        wishlist_notifier: Optional[WishlistNotifier] = None,
    ):
        self.provider = provider
        self.wishlist_notifier = wishlist_notifier or WishlistNotifier()

    async def initiate_checkout(self, offer_id: str, buyer_id: str) -> CheckoutResult:
        """
        Open a checkout session for an accepted offer.

        Every session opened is recorded, so a payment completed on an
        earlier session (a second browser tab) still reconciles.

        Raises:
            OfferNotFoundError: Unknown offer
            ForbiddenError: Caller is not the offer's buyer
            InvalidTransitionError: Offer not accepted or superseded, or the
                listing is sold or held by another accepted offer
            AlreadyPaidError: Offer already paid
            InternalError: Provider call failed (nothing recorded)
        """
        with get_db() as db:
            offer = db.get(Offer, offer_id)
            if offer is None:
                raise OfferNotFoundError(offer_id)
            if offer.buyer_id != buyer_id:
                raise ForbiddenError("Only the buyer can create payment")
            if offer.status != OfferStatus.ACCEPTED:
                raise InvalidTransitionError(
                    message="Offer must be accepted before payment",
                    status=offer.status.value,
                    last_action_by=offer.last_action_by.value,
                )
            if offer.payment_status == PaymentStatus.PAID:
                raise AlreadyPaidError(offer_id)
            if offer.payment_status == PaymentStatus.CANCELLED:
                raise _superseded_error(offer)

            listing = offer.listing
            if listing.status == ListingStatus.SOLD:
                raise InvalidTransitionError(
                    message="Listing is already sold",
                    status=offer.status.value,
                    code="LISTING_SOLD",
                )
            if reserving_offer_id(db, listing.id, offer.id) is not None:
                raise InvalidTransitionError(
                    message="Listing has an accepted offer awaiting payment",
                    status=offer.status.value,
                    code="LISTING_RESERVED",
                )

            amount = offer.amount
            title = listing.title
            metadata = {
                "offerId": offer.id,
                "listingId": listing.id,
                "buyerId": offer.buyer_id,
                "sellerId": offer.seller_id,
            }

        base_url = settings.PUBLIC_BASE_URL.rstrip("/")
        try:
            session = await self.provider.create_checkout(
                amount=amount,
                currency=settings.PAYMENT_CURRENCY,
                title=title,
                success_url=f"{base_url}/payments/success?session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{base_url}/payments/cancel?offer_id={offer_id}",
                client_reference_id=offer_id,
                metadata=metadata,
            )
        except PaymentProviderError as e:
            logger.error(f"Checkout creation failed for offer {offer_id}: {e}")
            raise InternalError("Payment provider request failed") from e

        with get_db() as db:
            result = db.execute(
                update(Offer)
                .where(
                    Offer.id == offer_id,
                    Offer.status == OfferStatus.ACCEPTED,
                    Offer.payment_status.in_(_PAYABLE_PAYMENT_STATUSES),
                )
                .values(
                    checkout_session_ref=session.session_ref,
                    payment_status=PaymentStatus.PROCESSING,
                    version_id=Offer.version_id + 1,
                    updated_at=datetime.utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            offer = db.get(Offer, offer_id, populate_existing=True)
            if result.rowcount != 1:
                # Paid or superseded between read and write
                logger.warning(f"Checkout {session.session_ref} opened for offer {offer_id} that is no longer payable")
                if offer.payment_status == PaymentStatus.PAID:
                    raise AlreadyPaidError(offer_id)
                raise _superseded_error(offer)

            db.add(CheckoutAttempt(session_ref=session.session_ref, offer_id=offer_id))

        logger.info(f"Checkout {session.session_ref} opened for offer {offer_id}")
        return CheckoutResult(session_id=session.session_ref, url=session.redirect_url, offer=offer)

    def apply_paid_transition(
        self,
        offer_id: str,
        payment_intent_ref: Optional[str] = None,
        session_ref: Optional[str] = None,
    ) -> bool:
        """
        Mark an accepted offer paid and its listing sold, exactly once.

        The offer UPDATE (payment neither paid nor cancelled) and the listing
        UPDATE (still active) commit together or not at all. Whichever writer
        flips both first performs the side effects; every later caller
        (duplicate webhook, racing verify, another buyer's payment) gets
        False and changes nothing.

        Returns:
            True if this call performed the transition
        """
        values = {
            "payment_status": PaymentStatus.PAID,
            "version_id": Offer.version_id + 1,
            "updated_at": datetime.utcnow(),
        }
        if payment_intent_ref:
            values["payment_intent_ref"] = payment_intent_ref
        if session_ref:
            values["checkout_session_ref"] = session_ref

        with get_db() as db:
            result = db.execute(
                update(Offer)
                .where(
                    Offer.id == offer_id,
                    Offer.status == OfferStatus.ACCEPTED,
                    Offer.payment_status.in_(_PAYABLE_PAYMENT_STATUSES),
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                logger.info(f"Offer {offer_id} already paid or not payable; reconciliation skipped")
                return False

            listing_id = db.execute(
                select(Offer.listing_id).where(Offer.id == offer_id)
            ).scalar_one()

            sold = db.execute(
                update(Listing)
                .where(Listing.id == listing_id, Listing.status == ListingStatus.ACTIVE)
                .values(status=ListingStatus.SOLD, updated_at=datetime.utcnow())
                .execution_options(synchronize_session=False)
            ).rowcount

            if not sold:
                db.rollback()
                logger.error(
                    f"Payment {payment_intent_ref} for offer {offer_id} arrived after listing "
                    f"{listing_id} was sold; offer left unpaid, refund required"
                )
                return False

        logger.info(f"Payment confirmed for offer {offer_id} (intent: {payment_intent_ref})")
        logger.info(f"Listing {listing_id} marked sold")
        self.wishlist_notifier.safe_notify_listing_sold(listing_id)
        return True

    def reconcile_completion(
        self,
        session_ref: str,
        payment_intent_ref: Optional[str],
        client_reference_id: Optional[str] = None,
    ) -> bool:
        """
        Apply a completed payment reported by the provider.

        Unknown sessions are logged and ignored; the provider may resend events
        for state that no longer exists.

        Returns:
            True if this call marked the offer paid
        """
        offer_id = self._find_offer_id(session_ref, client_reference_id)
        if offer_id is None:
            logger.warning(f"Completion for unknown checkout session {session_ref} ignored")
            return False
        return self.apply_paid_transition(offer_id, payment_intent_ref, session_ref=session_ref)

    def reconcile_failure(self, session_ref: str, client_reference_id: Optional[str] = None) -> bool:
        """
        Mark a pending/processing payment failed; the offer stays accepted so
        the buyer can start checkout again.

        Only the offer's latest session can fail it; a failure on an older
        session leaves the newer checkout in progress.

        Returns:
            True if the payment status changed
        """
        offer_id = self._find_offer_id(session_ref, client_reference_id)
        if offer_id is None:
            logger.warning(f"Failure for unknown checkout session {session_ref} ignored")
            return False

        with get_db() as db:
            result = db.execute(
                update(Offer)
                .where(
                    Offer.id == offer_id,
                    Offer.payment_status.in_(_FAILABLE_PAYMENT_STATUSES),
                    or_(
                        Offer.checkout_session_ref == session_ref,
                        Offer.checkout_session_ref.is_(None),
                    ),
                )
                .values(
                    payment_status=PaymentStatus.FAILED,
                    version_id=Offer.version_id + 1,
                    updated_at=datetime.utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            changed = result.rowcount == 1

        if changed:
            logger.info(f"Payment failed for offer {offer_id}")
        else:
            logger.info(f"Payment failure for offer {offer_id} on session {session_ref} ignored")
        return changed

    async def verify(self, session_ref: str, user_id: str) -> VerifyResult:
        """
        Poll the provider for a session and reconcile if it reports paid.

        Fallback for delayed or lost webhooks; shares apply_paid_transition
        with the webhook path. Any session ever opened for the offer can be
        verified.

        Raises:
            CheckoutSessionNotFoundError: No offer recorded this session
            ForbiddenError: Caller is not a party to the offer
            InternalError: Provider call failed
        """
        offer_id = self._find_offer_id(session_ref, None)
        if offer_id is None:
            raise CheckoutSessionNotFoundError(session_ref)

        with get_db() as db:
            offer = db.get(Offer, offer_id)
            if offer.party_of(user_id) is None:
                raise ForbiddenError()

        try:
            status = await self.provider.retrieve_session(session_ref)
        except PaymentProviderError as e:
            logger.error(f"Session lookup failed for {session_ref}: {e}")
            raise InternalError("Payment provider request failed") from e

        if status.is_paid:
            self.apply_paid_transition(offer_id, status.payment_intent_ref, session_ref=session_ref)

        return VerifyResult(
            paid=status.is_paid,
            session_id=session_ref,
            payment_status=status.payment_status,
            offer_id=offer_id,
        )

    def handle_webhook(self, payload: bytes, signature_header: Optional[str]) -> dict:
        """
        Authenticate a webhook delivery and apply it.

        Raises:
            WebhookSignatureError: Payload could not be authenticated

        Returns:
            Acknowledgement body; returned for no-ops and unknown events too
        """
        event = self.provider.construct_event(payload, signature_header)
        self.apply_event(event)
        return {"received": True}

    def apply_event(self, event: WebhookEvent) -> None:
        """Route a verified event to the matching reconciliation."""
        logger.info(f"Webhook event {event.event_id} ({event.event_type}) for session {event.session_ref}")

        if event.event_type in (EVENT_SESSION_COMPLETED, EVENT_ASYNC_PAYMENT_SUCCEEDED):
            if not event.session_ref:
                logger.error(f"Event {event.event_id} has no checkout session")
                return
            if event.event_type == EVENT_SESSION_COMPLETED and event.payment_status == PROVIDER_UNPAID:
                logger.info(f"Session {event.session_ref} completed unpaid; awaiting async payment result")
                return
            self.reconcile_completion(
                event.session_ref,
                event.payment_intent_ref,
                client_reference_id=event.client_reference_id,
            )
        elif event.event_type == EVENT_ASYNC_PAYMENT_FAILED:
            if not event.session_ref:
                logger.error(f"Event {event.event_id} has no checkout session")
                return
            self.reconcile_failure(event.session_ref, client_reference_id=event.client_reference_id)
        else:
            logger.info(f"Unhandled event type: {event.event_type}")

    def _find_offer_id(self, session_ref: str, client_reference_id: Optional[str]) -> Optional[str]:
        """
        Resolve the offer for a checkout session.

        Looks at the offer's latest session, then every session recorded for
        it, then the signed event's client reference (the offer id) for
        sessions whose recording was lost.
        """
        with get_db() as db:
            offer_id = db.execute(
                select(Offer.id).where(Offer.checkout_session_ref == session_ref)
            ).scalar_one_or_none()
            if offer_id is not None:
                return offer_id

            offer_id = db.execute(
                select(CheckoutAttempt.offer_id).where(CheckoutAttempt.session_ref == session_ref)
            ).scalar_one_or_none()
            if offer_id is not None:
                return offer_id

            if client_reference_id and db.get(Offer, client_reference_id) is not None:
                logger.warning(f"Session {session_ref} not recorded; resolved by client reference {client_reference_id}")
                return client_reference_id
        return None
