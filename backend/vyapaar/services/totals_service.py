# Overview: Pure invoice/bill totals calculation (subtotal, discount, tax, grand total).

"""
Totals Calculator

compute_totals() is the single source of every derived money field on an
invoice or bill. It is a pure function: no DB access, no Flask context, no
mutation of its inputs. The UI calls it on every edit (via the preview
endpoint) and document_service calls it again at save time, so a stored
document is always consistent with its lines.

Rules:
- line total    = quantity * unit price rounded to cents (quantity < 1 or junk -> 1, price < 0 or junk -> 0)
- subtotal      = sum of line totals, rounded to cents
- discount      = enabled ? subtotal * rate / 100 : 0
- taxable       = subtotal - discount
- tax           = enabled ? taxable * rate / 100 : 0
- grand total   = taxable + tax

Discount and tax are each rounded to cents before the next step, so the
stored cents always satisfy grand = subtotal - discount + tax exactly.
Rates outside [0, 100] or with more than 2 decimals raise ValidationError;
they are never clamped or rounded.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Mapping

from ..money import (
    HUNDRED,
    ZERO,
    coerce_quantity,
    coerce_unit_price,
    quantize,
    rate_to_bps,
    to_cents,
)
from ..validation import ValidationError, parse_bool, parse_rate


@dataclass(frozen=True)
class LineItemInput:
    quantity: int = 1
    unit_price: Decimal = ZERO
    name: str = ""
    id: str | None = None

    @property
    def total(self) -> Decimal:
        return line_total(self.quantity, self.unit_price)


@dataclass(frozen=True)
class RateSetting:
    enabled: bool = False
    rate: Decimal = ZERO

    @property
    def effective_rate(self) -> Decimal:
        return self.rate if self.enabled else ZERO


DISABLED = RateSetting()


@dataclass(frozen=True)
class DocumentTotals:
    subtotal: Decimal
    discount_rate: Decimal
    discount_amount: Decimal
    taxable_amount: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    grand_total: Decimal

    def to_cents(self) -> dict:
        return {
            "subtotal_cents": to_cents(self.subtotal),
            "discount_rate_bps": rate_to_bps(self.discount_rate),
            "discount_cents": to_cents(self.discount_amount),
            "taxable_cents": to_cents(self.taxable_amount),
            "tax_rate_bps": rate_to_bps(self.tax_rate),
            "tax_cents": to_cents(self.tax_amount),
            "grand_total_cents": to_cents(self.grand_total),
        }

    def to_dict(self) -> dict:
        return {
            "subtotal": str(self.subtotal),
            "discount_rate": str(self.discount_rate),
            "discount_amount": str(self.discount_amount),
            "taxable_amount": str(self.taxable_amount),
            "tax_rate": str(self.tax_rate),
            "tax_amount": str(self.tax_amount),
            "grand_total": str(self.grand_total),
            **self.to_cents(),
        }


def line_total(quantity, unit_price) -> Decimal:
    return coerce_quantity(quantity) * coerce_unit_price(unit_price)


def as_rate_setting(value, field: str) -> RateSetting:
    """
    Accepts a RateSetting, a mapping {"enabled": .., "rate": ..}, or None.
    A missing "enabled" key means enabled whenever a rate is given.
    """
    if value is None:
        return DISABLED
    if isinstance(value, RateSetting):
        parse_rate(value.rate, f"{field}.rate")
        return value
    if not isinstance(value, Mapping):
        raise ValidationError(f"{field} must be an object with enabled and rate")

    raw_rate = value.get("rate")
    enabled = parse_bool(value.get("enabled", raw_rate is not None))
    if raw_rate is None or raw_rate == "":
        return RateSetting(enabled=enabled, rate=ZERO)
    return RateSetting(enabled=enabled, rate=parse_rate(raw_rate, f"{field}.rate"))


def _line_amount(item) -> Decimal:
    if isinstance(item, LineItemInput):
        return item.total
    if isinstance(item, Mapping):
        return line_total(item.get("quantity"), item.get("unit_price"))
    return line_total(getattr(item, "quantity", None), getattr(item, "unit_price", None))


def compute_totals(
    line_items: Iterable,
    discount: RateSetting | Mapping | None = None,
    tax: RateSetting | Mapping | None = None,
) -> DocumentTotals:
    discount = as_rate_setting(discount, "discount")
    tax = as_rate_setting(tax, "tax")

    subtotal = quantize(sum((_line_amount(item) for item in line_items), ZERO))

    discount_amount = quantize(subtotal * discount.effective_rate / HUNDRED) if discount.enabled else quantize(ZERO)
    taxable = subtotal - discount_amount
    tax_amount = quantize(taxable * tax.effective_rate / HUNDRED) if tax.enabled else quantize(ZERO)

    return DocumentTotals(
        subtotal=subtotal,
        discount_rate=discount.effective_rate,
        discount_amount=discount_amount,
        taxable_amount=taxable,
        tax_rate=tax.effective_rate,
        tax_amount=tax_amount,
        grand_total=taxable + tax_amount,
    )
