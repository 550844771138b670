"""
Money helpers.

WHAT: Decimal rounding and display formatting for prices and offers
WHY: Offer bands and provider minor units must agree to the cent
HOW: Decimal quantize with half-up rounding
"""

from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """Coerce a number to a Decimal rounded to cents."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Decimal) -> int:
    """Convert dollars to cents for the payment provider."""
    return int((to_money(amount) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def format_amount(amount) -> str:
    """Format an amount for human-readable messages, e.g. $85.00."""
    return f"${to_money(amount):.2f}"
