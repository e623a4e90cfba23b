# Overview: Currency and quantity primitives shared by totals, documents and analytics.

"""
Money handling

- Amounts are Decimal while computing and integer cents when stored or sent
  over the API (the *_cents fields).
- Rates are percentages on the API and basis points in storage
  (18% -> 1800 bps).
- Coercions here are lenient: they never raise, they fall back to a default.
  Strict checks for user input live in validation.py.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value, default: Decimal = ZERO) -> Decimal:
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        return Decimal(value)
    elif isinstance(value, float):
        result = Decimal(repr(value))
    elif isinstance(value, str):
        s = value.strip()
        if not s:
            return default
        try:
            result = Decimal(s)
        except InvalidOperation:
            return default
    else:
        return default

    if not result.is_finite():
        return default
    return result


def quantize(amount: Decimal) -> Decimal:
    """Round to currency precision (2 dp, half-up)."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(amount) -> int:
    return int(quantize(to_decimal(amount)) * 100)


def from_cents(cents) -> Decimal:
    if cents is None:
        return quantize(ZERO)
    return quantize(Decimal(int(cents)) / 100)


def rate_to_bps(rate) -> int:
    return int((to_decimal(rate) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def bps_to_rate(bps) -> Decimal:
    if not bps:
        return ZERO
    return Decimal(int(bps)) / 100


def coerce_quantity(value) -> int:
    """Quantity is an integer >= 1; anything else counts as 1."""
    qty = to_decimal(value, default=Decimal(1))
    if qty != qty.to_integral_value() or qty < 1:
        return 1
    return int(qty)


def coerce_unit_price(value) -> Decimal:
    """Unit price is a decimal >= 0 rounded to cents; anything else counts as 0."""
    price = to_decimal(value)
    if price < 0:
        return quantize(ZERO)
    return quantize(price)


def cents_or_zero(value) -> int:
    """Lenient read of a stored cents field (missing or junk -> 0)."""
    amount = to_decimal(value)
    if amount != amount.to_integral_value():
        return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return int(amount)
