"""
Wishlist endpoints.

WHAT: Add, list and remove wishlisted listings
WHY: Watchers get a notification when the listing sells
HOW: FastAPI router over wishlist_service
"""

from typing import List

from fastapi import APIRouter, Depends, status

from ....models.api_schemas import WishlistAddRequest, WishlistItemResponse
from ....services.wishlist import wishlist_service
from ....utils.exceptions import NotFoundError
from ...deps import get_current_user_id

router = APIRouter()


@router.get("/wishlist", response_model=List[WishlistItemResponse])
async def list_wishlist(user_id: str = Depends(get_current_user_id)):
    entries = wishlist_service.list_for_user(user_id)
    return [WishlistItemResponse.model_validate(entry) for entry in entries]


@router.post("/wishlist", response_model=WishlistItemResponse, status_code=status.HTTP_201_CREATED)
async def add_to_wishlist(body: WishlistAddRequest, user_id: str = Depends(get_current_user_id)):
    """Wishlist an active listing (repeat adds return the existing entry)."""
    entry = wishlist_service.add(user_id, body.listing_id)
    return WishlistItemResponse.model_validate(entry)


@router.delete("/wishlist/{listing_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_from_wishlist(listing_id: str, user_id: str = Depends(get_current_user_id)):
    if not wishlist_service.remove(user_id, listing_id):
        raise NotFoundError(
            message=f"Listing {listing_id} is not on your wishlist",
            code="WISHLIST_ENTRY_NOT_FOUND",
            details={"listing_id": listing_id},
        )
