"""
Currency helpers. Amounts are Decimal with two places, rounded half up.
"""
from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def to_money(value) -> Decimal:
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def percentage_of(amount, rate) -> Decimal:
    """`rate` percent of `amount`, e.g. percentage_of(270, 10) == Decimal("27.00")."""
    return to_money(to_money(amount) * Decimal(str(rate)) / HUNDRED)


def split_commission(amount, rate):
    """Return (commission, store_payout); the two always add back up to `amount`."""
    amount = to_money(amount)
    commission = percentage_of(amount, rate)
    return commission, amount - commission
