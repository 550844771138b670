"""
Unit tests for the negotiation rules.

WHAT: Test the turn-taking transition table and the amount band
WHY: Every offer mutation goes through these two functions
HOW: Pure function calls, no database
"""

from decimal import Decimal

import pytest

from haggle.core.models import OfferAction, OfferStatus, Party
from haggle.services.offer_rules import (
    awaiting_party,
    next_state,
    offer_amount_bounds,
    validate_offer_amount,
)
from haggle.utils.exceptions import InvalidAmountError, InvalidTransitionError

RATIO = Decimal("0.8")


@pytest.mark.unit
class TestAmountBand:
    """Offers must fall within [round(price * 0.8, 2), price]."""

    def test_bounds_for_round_price(self):
        assert offer_amount_bounds(Decimal("100.00"), RATIO) == (Decimal("80.00"), Decimal("100.00"))

    def test_minimum_is_rounded_to_cents(self):
        # 99.99 * 0.8 = 79.992
        low, high = offer_amount_bounds(Decimal("99.99"), RATIO)
        assert low == Decimal("79.99")
        assert high == Decimal("99.99")

    def test_minimum_rounds_half_up(self):
        # 10.07 * 0.8 = 8.056
        assert offer_amount_bounds(Decimal("10.07"), RATIO)[0] == Decimal("8.06")

    @pytest.mark.parametrize("amount", ["80", "80.00", "85.50", "100", "100.00"])
    def test_accepts_amounts_inside_band(self, amount):
        assert validate_offer_amount(Decimal("100.00"), Decimal(amount), RATIO) == Decimal(amount).quantize(Decimal("0.01"))

    @pytest.mark.parametrize("amount", ["79.99", "100.01", "0", "-5", "200"])
    def test_rejects_amounts_outside_band(self, amount):
        with pytest.raises(InvalidAmountError) as exc_info:
            validate_offer_amount(Decimal("100.00"), Decimal(amount), RATIO)
        assert exc_info.value.code == "INVALID_AMOUNT"
        assert exc_info.value.message == "Offers must be between 80.00 and 100.00"

    def test_accepts_float_input(self):
        assert validate_offer_amount(Decimal("100.00"), 85.5, RATIO) == Decimal("85.50")

    def test_sub_cent_amount_below_minimum_rejected(self):
        with pytest.raises(InvalidAmountError):
            validate_offer_amount(Decimal("100.00"), Decimal("79.999"), RATIO)


@pytest.mark.unit
class TestTurnTaking:
    """Only the party that did not act last may respond."""

    def test_seller_moves_after_buyer_offer(self):
        assert awaiting_party(OfferStatus.PENDING, Party.BUYER) == Party.SELLER

    def test_buyer_moves_after_seller_counter(self):
        assert awaiting_party(OfferStatus.COUNTERED, Party.SELLER) == Party.BUYER

    @pytest.mark.parametrize("status", [OfferStatus.ACCEPTED, OfferStatus.DECLINED])
    def test_nobody_moves_once_settled(self, status):
        assert awaiting_party(status, Party.SELLER) is None
        assert awaiting_party(status, Party.BUYER) is None

    @pytest.mark.parametrize("action,expected,replaces", [
        (OfferAction.ACCEPT, OfferStatus.ACCEPTED, False),
        (OfferAction.DECLINE, OfferStatus.DECLINED, False),
        (OfferAction.COUNTER, OfferStatus.COUNTERED, True),
    ])
    def test_seller_responses_to_pending(self, action, expected, replaces):
        transition = next_state(OfferStatus.PENDING, Party.BUYER, Party.SELLER, action)
        assert transition.status == expected
        assert transition.last_action_by == Party.SELLER
        assert transition.replaces_amount is replaces
        assert not transition.noop

    @pytest.mark.parametrize("action,expected,replaces", [
        (OfferAction.ACCEPT, OfferStatus.ACCEPTED, False),
        (OfferAction.DECLINE, OfferStatus.DECLINED, False),
        (OfferAction.COUNTER, OfferStatus.PENDING, True),
    ])
    def test_buyer_responses_to_counter(self, action, expected, replaces):
        transition = next_state(OfferStatus.COUNTERED, Party.SELLER, Party.BUYER, action)
        assert transition.status == expected
        assert transition.last_action_by == Party.BUYER
        assert transition.replaces_amount is replaces

    @pytest.mark.parametrize("action", [OfferAction.ACCEPT, OfferAction.DECLINE, OfferAction.COUNTER])
    def test_buyer_cannot_answer_own_offer(self, action):
        with pytest.raises(InvalidTransitionError) as exc_info:
            next_state(OfferStatus.PENDING, Party.BUYER, Party.BUYER, action)
        assert exc_info.value.details == {"status": "pending", "last_action_by": "buyer"}

    @pytest.mark.parametrize("action", [OfferAction.ACCEPT, OfferAction.DECLINE, OfferAction.COUNTER])
    def test_seller_cannot_answer_own_counter(self, action):
        with pytest.raises(InvalidTransitionError):
            next_state(OfferStatus.COUNTERED, Party.SELLER, Party.SELLER, action)

    def test_error_message_names_stage(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            next_state(OfferStatus.PENDING, Party.BUYER, Party.BUYER, OfferAction.ACCEPT)
        assert exc_info.value.message == "Cannot accept at this stage (status: pending, last action by: buyer)"

    @pytest.mark.parametrize("actor", [Party.BUYER, Party.SELLER])
    def test_repeat_accept_is_noop(self, actor):
        transition = next_state(OfferStatus.ACCEPTED, Party.SELLER, actor, OfferAction.ACCEPT)
        assert transition.noop
        assert transition.status == OfferStatus.ACCEPTED
        assert transition.last_action_by == Party.SELLER

    def test_repeat_decline_is_noop(self):
        transition = next_state(OfferStatus.DECLINED, Party.BUYER, Party.SELLER, OfferAction.DECLINE)
        assert transition.noop

    @pytest.mark.parametrize("action", [OfferAction.COUNTER, OfferAction.DECLINE])
    def test_accepted_offer_is_final(self, action):
        with pytest.raises(InvalidTransitionError):
            next_state(OfferStatus.ACCEPTED, Party.SELLER, Party.BUYER, action)

    @pytest.mark.parametrize("action", [OfferAction.COUNTER, OfferAction.ACCEPT])
    def test_declined_offer_is_final(self, action):
        with pytest.raises(InvalidTransitionError):
            next_state(OfferStatus.DECLINED, Party.SELLER, Party.BUYER, action)
