"""
Offer negotiation rules.

WHAT: Pure turn-taking transition table and amount band validation
WHY: Keep the negotiation protocol testable without a database
HOW: (status, last_action_by, actor, action) -> Transition or InvalidTransitionError
"""

from dataclasses import dataclass
from decimal import Decimal

from ..core.models import OfferAction, OfferStatus, Party
from ..utils.exceptions import InvalidAmountError, InvalidTransitionError
from ..utils.money import to_money


@dataclass(frozen=True)
class Transition:
    """Outcome of applying an action to an offer state."""
    status: OfferStatus
    last_action_by: Party
    replaces_amount: bool = False
    noop: bool = False


# (actor, action, current status) -> (next status, whether amount is replaced).
# An action is only legal when the other party moved last; the status alone
# encodes that (buyer moves leave PENDING, seller counters leave COUNTERED).
_TRANSITIONS = {
    (Party.SELLER, OfferAction.ACCEPT, OfferStatus.PENDING): (OfferStatus.ACCEPTED, False),
    (Party.SELLER, OfferAction.DECLINE, OfferStatus.PENDING): (OfferStatus.DECLINED, False),
    (Party.SELLER, OfferAction.COUNTER, OfferStatus.PENDING): (OfferStatus.COUNTERED, True),
    (Party.BUYER, OfferAction.ACCEPT, OfferStatus.COUNTERED): (OfferStatus.ACCEPTED, False),
    (Party.BUYER, OfferAction.DECLINE, OfferStatus.COUNTERED): (OfferStatus.DECLINED, False),
    (Party.BUYER, OfferAction.COUNTER, OfferStatus.COUNTERED): (OfferStatus.PENDING, True),
}

# Repeating a terminal action returns the current state untouched.
_IDEMPOTENT = {
    OfferAction.ACCEPT: OfferStatus.ACCEPTED,
    OfferAction.DECLINE: OfferStatus.DECLINED,
}


def awaiting_party(status: OfferStatus, last_action_by: Party) -> Party | None:
    """Return whose turn it is, or None once the offer is settled."""
    if status == OfferStatus.PENDING and last_action_by == Party.BUYER:
        return Party.SELLER
    if status == OfferStatus.COUNTERED and last_action_by == Party.SELLER:
        return Party.BUYER
    return None


def next_state(
    status: OfferStatus,
    last_action_by: Party,
    actor: Party,
    action: OfferAction,
) -> Transition:
    """
    Apply a negotiation action to an offer state.

    Args:
        status: Current offer status
        last_action_by: Party whose turn just completed
        actor: Party attempting the action
        action: ACCEPT, DECLINE or COUNTER

    Returns:
        Transition describing the resulting state

    Raises:
        InvalidTransitionError: If the action is not legal at this stage
    """
    if _IDEMPOTENT.get(action) == status:
        return Transition(status=status, last_action_by=last_action_by, noop=True)

    if awaiting_party(status, last_action_by) == actor:
        rule = _TRANSITIONS.get((actor, action, status))
        if rule is not None:
            next_status, replaces_amount = rule
            return Transition(
                status=next_status,
                last_action_by=actor,
                replaces_amount=replaces_amount,
            )

    raise InvalidTransitionError(
        message=f"Cannot {action.value} at this stage (status: {status.value}, last action by: {last_action_by.value})",
        status=status.value,
        last_action_by=last_action_by.value,
    )


def offer_amount_bounds(listing_price, min_ratio: Decimal) -> tuple[Decimal, Decimal]:
    """Return the inclusive (min, max) band for offers on a listing."""
    price = to_money(listing_price)
    return to_money(price * min_ratio), price


def validate_offer_amount(listing_price, amount, min_ratio: Decimal) -> Decimal:
    """
    Check an offer/counter amount against the listing's current price.

    Returns:
        The amount rounded to cents

    Raises:
        InvalidAmountError: If amount < round(price * ratio, 2) or amount > price
    """
    min_amount, max_amount = offer_amount_bounds(listing_price, min_ratio)
    value = Decimal(str(amount)) if not isinstance(amount, Decimal) else amount
    if value < min_amount or value > max_amount:
        raise InvalidAmountError(value, min_amount, max_amount)
    return to_money(value)
