"""
Listing endpoints.

WHAT: Create, browse, view and edit listings
WHY: Sellers publish items; buyers find something to make offers on
HOW: Thin FastAPI router over listing_service
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from ....models.api_schemas import ListingCreate, ListingResponse, ListingUpdate
from ....services.listings import listing_service
from ...deps import get_current_user_id

router = APIRouter()


@router.post("/listings", response_model=ListingResponse, status_code=status.HTTP_201_CREATED)
async def create_listing(body: ListingCreate, user_id: str = Depends(get_current_user_id)):
    """Publish a listing owned by the caller."""
    listing = listing_service.create_listing(
        seller_id=user_id,
        title=body.title,
        price=body.price,
        description=body.description,
        category=body.category,
        condition=body.condition,
    )
    return ListingResponse.model_validate(listing)


@router.get("/listings", response_model=List[ListingResponse])
async def search_listings(
    query: Optional[str] = Query(default=None, max_length=200),
    category: Optional[str] = Query(default=None, max_length=100),
    limit: int = Query(default=50, ge=1, le=200),
):
    """Active listings, newest first."""
    listings = listing_service.search_listings(query=query, category=category, limit=limit)
    return [ListingResponse.model_validate(listing) for listing in listings]


@router.get("/listings/{listing_id}", response_model=ListingResponse)
async def get_listing(listing_id: str):
    return ListingResponse.model_validate(listing_service.get_listing(listing_id))


@router.patch("/listings/{listing_id}", response_model=ListingResponse)
async def update_listing(
    listing_id: str,
    body: ListingUpdate,
    user_id: str = Depends(get_current_user_id),
):
    """Seller-only edit; price is frozen once an offer is accepted."""
    listing = listing_service.update_listing(
        listing_id, user_id, **body.model_dump(exclude_unset=True)
    )
    return ListingResponse.model_validate(listing)
