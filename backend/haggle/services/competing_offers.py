"""
Competing offer resolution.

WHAT: Decline every other live offer on a listing once one is accepted,
      and cancel earlier acceptances whose payment never went through
WHY: A listing can only be sold to one buyer
HOW: Bulk UPDATEs inside the accepting transaction; no notifications
"""

from datetime import datetime

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..core.models import LIVE_OFFER_STATUSES, Offer, OfferStatus, PaymentStatus
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Accepted offers in these payment states give up the listing to a newer acceptance
_SUPERSEDABLE_PAYMENT_STATUSES = (PaymentStatus.PENDING, PaymentStatus.FAILED)


def decline_competing_offers(db: Session, listing_id: str, accepted_offer_id: str) -> int:
    """
    Silently decline sibling offers that are still pending or countered.

    Runs in the caller's transaction so acceptance and auto-decline commit
    or roll back together.

    Args:
        db: Active session of the accepting transaction
        listing_id: Listing the accepted offer belongs to
        accepted_offer_id: Offer that was just accepted

    Returns:
        Number of offers declined
    """
    result = db.execute(
        update(Offer)
        .where(
            Offer.listing_id == listing_id,
            Offer.id != accepted_offer_id,
            Offer.status.in_(LIVE_OFFER_STATUSES),
        )
        .values(
            status=OfferStatus.DECLINED,
            version_id=Offer.version_id + 1,
            updated_at=datetime.utcnow(),
        )
        .execution_options(synchronize_session="fetch")
    )

    declined = result.rowcount or 0
    if declined:
        logger.info(f"Auto-declined {declined} competing offers on listing {listing_id}")
    return declined


def cancel_superseded_acceptances(db: Session, listing_id: str, accepted_offer_id: str) -> int:
    """
    Cancel payment on earlier accepted offers that never got paid.

    Only reachable after such an offer's payment failed (otherwise the
    listing is still reserved). A cancelled offer can no longer open
    checkout or be marked paid.

    Returns:
        Number of acceptances cancelled
    """
    result = db.execute(
        update(Offer)
        .where(
            Offer.listing_id == listing_id,
            Offer.id != accepted_offer_id,
            Offer.status == OfferStatus.ACCEPTED,
            Offer.payment_status.in_(_SUPERSEDABLE_PAYMENT_STATUSES),
        )
        .values(
            payment_status=PaymentStatus.CANCELLED,
            version_id=Offer.version_id + 1,
            updated_at=datetime.utcnow(),
        )
        .execution_options(synchronize_session="fetch")
    )

    cancelled = result.rowcount or 0
    if cancelled:
        logger.info(f"Cancelled {cancelled} unpaid acceptances on listing {listing_id}")
    return cancelled
