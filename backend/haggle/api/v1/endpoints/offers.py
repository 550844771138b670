"""
Offer endpoints.

WHAT: Make offers and respond with accept/decline/counter
WHY: HTTP entry points for the negotiation engine
HOW: FastAPI router over offer_engine; the caller id decides the acting party
"""

from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query, status

from ....core.models import OfferAction, Party
from ....models.api_schemas import OfferCreate, OfferRespond, OfferResponse
from ....services.offer_engine import offer_engine
from ...deps import get_current_user_id

router = APIRouter()


@router.post("/offers", response_model=OfferResponse, status_code=status.HTTP_201_CREATED)
async def create_offer(body: OfferCreate, user_id: str = Depends(get_current_user_id)):
    """
    Open a negotiation on a listing.

    WHAT: Buyer's first offer
    WHY: Starts the buyer/seller turn-taking thread
    HOW: offer_engine.create_offer validates band, liveness and listing state
    """
    offer = offer_engine.create_offer(user_id, body.listing_id, body.amount)
    return OfferResponse.model_validate(offer)


@router.get("/offers", response_model=List[OfferResponse])
async def list_offers(
    role: Literal["buyer", "seller"] = Query(default="buyer"),
    listing_id: Optional[str] = Query(default=None),
    user_id: str = Depends(get_current_user_id),
):
    """Offers where the caller is buyer or seller, latest activity first."""
    offers = offer_engine.list_offers(user_id, role=Party(role), listing_id=listing_id)
    return [OfferResponse.model_validate(offer) for offer in offers]


@router.get("/offers/{offer_id}", response_model=OfferResponse)
async def get_offer(offer_id: str, user_id: str = Depends(get_current_user_id)):
    return OfferResponse.model_validate(offer_engine.get_offer(offer_id, user_id))


@router.patch("/offers/{offer_id}", response_model=OfferResponse)
async def respond_to_offer(
    offer_id: str,
    body: OfferRespond,
    user_id: str = Depends(get_current_user_id),
):
    """
    Accept, decline or counter.

    WHAT: Apply the caller's response to the offer
    WHY: Only the party whose turn it is may act
    HOW: offer_engine.respond_to_offer enforces turn, band and concurrency
    """
    offer = offer_engine.respond_to_offer(
        offer_id, user_id, OfferAction(body.action), amount=body.amount
    )
    return OfferResponse.model_validate(offer)
