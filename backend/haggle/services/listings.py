"""
Listing service.

WHAT: Create, browse and edit listings
WHY: Listings carry the price every offer is range-checked against
HOW: Plain session-scoped queries; SOLD is only ever set by payment reconciliation
"""

from typing import List, Optional

from sqlalchemy import select

from ..core.database import get_db
from ..core.models import Listing, ListingStatus, Offer, OfferStatus
from ..utils.exceptions import ForbiddenError, ListingNotFoundError, ValidationError
from ..utils.logger import get_logger
from ..utils.money import to_money

logger = get_logger(__name__)

_EDITABLE_FIELDS = ("title", "description", "category", "condition", "price")


class ListingService:
    """Seller-owned listings."""

    def create_listing(
        self,
        seller_id: str,
        title: str,
        price,
        description: str = "",
        category: str = "other",
        condition: str = "used",
    ) -> Listing:
        value = to_money(price)
        if value <= 0:
            raise ValidationError("Price must be positive")

        with get_db() as db:
            listing = Listing(
                seller_id=seller_id,
                title=title,
                description=description,
                category=category,
                condition=condition,
                price=value,
                status=ListingStatus.ACTIVE,
            )
            db.add(listing)
            db.flush()

        logger.info(f"Listing {listing.id} created by seller {seller_id} at {value}")
        return listing

    def get_listing(self, listing_id: str) -> Listing:
        with get_db() as db:
            listing = db.get(Listing, listing_id)
            if listing is None:
                raise ListingNotFoundError(listing_id)
            return listing

    def search_listings(
        self,
        query: Optional[str] = None,
        category: Optional[str] = None,
        limit: int = 50,
    ) -> List[Listing]:
        """Active listings, newest first, filtered by title substring and category."""
        with get_db() as db:
            stmt = select(Listing).where(Listing.status == ListingStatus.ACTIVE)
            if query:
                stmt = stmt.where(Listing.title.ilike(f"%{query}%"))
            if category:
                stmt = stmt.where(Listing.category == category)
            stmt = stmt.order_by(Listing.created_at.desc()).limit(limit)
            return list(db.execute(stmt).scalars().all())

    def update_listing(self, listing_id: str, seller_id: str, **changes) -> Listing:
        """
        Edit a listing on behalf of its seller.

        Price is frozen once the listing is sold or an offer on it has been
        accepted, so an accepted amount can never fall outside the band.

        Raises:
            ListingNotFoundError, ForbiddenError, ValidationError
        """
        unknown = set(changes) - set(_EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown listing fields: {', '.join(sorted(unknown))}")

        with get_db() as db:
            listing = db.get(Listing, listing_id)
            if listing is None:
                raise ListingNotFoundError(listing_id)
            if listing.seller_id != seller_id:
                raise ForbiddenError("Only the seller can edit this listing")

            if changes.get("price") is not None:
                new_price = to_money(changes["price"])
                if new_price <= 0:
                    raise ValidationError("Price must be positive")
                if new_price != listing.price:
                    if listing.status == ListingStatus.SOLD:
                        raise ValidationError("Cannot change the price of a sold listing")
                    accepted = db.execute(
                        select(Offer.id).where(
                            Offer.listing_id == listing_id,
                            Offer.status == OfferStatus.ACCEPTED,
                        )
                    ).first()
                    if accepted is not None:
                        raise ValidationError("Cannot change the price after an offer was accepted")
                    listing.price = new_price

            for field in ("title", "description", "category", "condition"):
                if changes.get(field) is not None:
                    setattr(listing, field, changes[field])

            db.flush()

        logger.info(f"Listing {listing_id} updated by seller {seller_id}")
        return listing


# Singleton instance
listing_service = ListingService()
