"""
Wishlist management and sold-listing notification.

WHAT: Users watch listings; watchers are told once a listing sells
WHY: A sold listing should leave every wishlist with a notice, not silently
HOW: Notify + clear in one transaction, so a retry never double-notifies
"""

from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError

from ..core.database import get_db
from ..core.models import (
    Listing, ListingStatus, Notification, NotificationType, WishlistEntry
)
from ..utils.exceptions import ListingNotFoundError, ValidationError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class WishlistNotifier:
    """Notifies wishlisting users when a listing sells, then clears the entries."""

    def notify_listing_sold(self, listing_id: str) -> int:
        """
        Send one listing_sold notification per wishlist entry and delete them.

        Must only run once the listing is durably SOLD. Entries are removed in
        the same transaction that creates the notifications, so re-running
        after a failure only reaches users who were not notified yet.

        Returns:
            Number of users notified
        """
        with get_db() as db:
            listing = db.get(Listing, listing_id)
            if listing is None:
                logger.warning(f"Wishlist notify skipped, listing not found: {listing_id}")
                return 0
            if listing.status != ListingStatus.SOLD:
                logger.warning(f"Wishlist notify skipped, listing {listing_id} is not sold")
                return 0

            entries = db.execute(
                select(WishlistEntry).where(WishlistEntry.listing_id == listing_id)
            ).scalars().all()

            for entry in entries:
                db.add(Notification(
                    recipient_id=entry.user_id,
                    actor_id=listing.seller_id,
                    type=NotificationType.LISTING_SOLD,
                    data={"listingId": listing.id, "title": listing.title},
                ))

            db.execute(delete(WishlistEntry).where(WishlistEntry.listing_id == listing_id))

        if entries:
            logger.info(f"Notified {len(entries)} wishlist users that listing {listing_id} sold")
        return len(entries)

    def safe_notify_listing_sold(self, listing_id: str) -> int:
        """notify_listing_sold() that logs instead of raising."""
        try:
            return self.notify_listing_sold(listing_id)
        except Exception as e:
            logger.error(f"Wishlist notification failed for listing {listing_id}: {e}", exc_info=True)
            return 0


class WishlistService:
    """Wishlist CRUD for the verified caller."""

    def add(self, user_id: str, listing_id: str) -> WishlistEntry:
        """Add a listing to the caller's wishlist (idempotent)."""
        with get_db() as db:
            listing = db.get(Listing, listing_id)
            if listing is None:
                raise ListingNotFoundError(listing_id)
            if listing.status == ListingStatus.SOLD:
                raise ValidationError("Listing already sold")

            entry = self._find(db, user_id, listing_id)
            if entry is None:
                entry = WishlistEntry(user_id=user_id, listing_id=listing_id)
                db.add(entry)
                try:
                    db.flush()
                except IntegrityError:
                    # Concurrent add of the same pair; treat as already present
                    db.rollback()
                    entry = self._find(db, user_id, listing_id)
                else:
                    logger.info(f"User {user_id} wishlisted listing {listing_id}")

            _ = entry.listing
            return entry

    @staticmethod
    def _find(db, user_id: str, listing_id: str) -> Optional[WishlistEntry]:
        return db.execute(
            select(WishlistEntry).where(
                WishlistEntry.user_id == user_id,
                WishlistEntry.listing_id == listing_id,
            )
        ).scalars().first()

    def remove(self, user_id: str, listing_id: str) -> bool:
        with get_db() as db:
            result = db.execute(
                delete(WishlistEntry).where(
                    WishlistEntry.user_id == user_id,
                    WishlistEntry.listing_id == listing_id,
                )
            )
            return bool(result.rowcount)

    def list_for_user(self, user_id: str) -> List[WishlistEntry]:
        """Caller's wishlist, newest first, with listings loaded."""
        with get_db() as db:
            entries = db.execute(
                select(WishlistEntry)
                .where(WishlistEntry.user_id == user_id)
                .order_by(WishlistEntry.created_at.desc())
            ).scalars().all()
            for entry in entries:
                _ = entry.listing
            return list(entries)


# Singleton instances
wishlist_notifier = WishlistNotifier()
wishlist_service = WishlistService()
