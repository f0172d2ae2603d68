# app/ledger/totals.py
"""
Invoice totals arithmetic.

Every derived amount is rounded half-up to cents as soon as it is computed,
and the grand total is built from those rounded parts, so the stored
columns always add up exactly.

Tax is charged on the taxable items only, while the discount is taken
from the full subtotal and never shrinks the tax base.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, Optional

from app.core.exceptions import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value, field: str = "amount") -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"{field} must be a number")
    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    return result


def money(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def _percent(value, field: str) -> Decimal:
    rate = to_decimal(value, field)
    if rate < ZERO or rate > HUNDRED:
        raise ValidationError(f"{field} must be between 0 and 100")
    return rate


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    taxable_base: Decimal
    tax_total: Decimal
    discount_total: Decimal
    grand_total: Decimal


def line_amount(item) -> Decimal:
    quantity = item.quantity
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationError("Line item quantity must be a whole number of at least 1")
    unit_price = to_decimal(item.unit_price, "unit_price")
    if unit_price < ZERO:
        raise ValidationError("Line item unit price cannot be negative")
    return quantity * unit_price


def compute_totals(line_items: Iterable, tax_rate, discount: Optional[object] = None) -> Totals:
    """
    Compute subtotal, tax, discount and grand total for a set of line items.

    Pure and order-independent; raises ValidationError on bad input.
    """
    items = list(line_items)
    if not items:
        raise ValidationError("An invoice needs at least one line item")

    rate = _percent(tax_rate, "tax_rate")
    discount_rate = ZERO if discount is None else _percent(discount, "discount")

    gross = ZERO
    taxable = ZERO
    for item in items:
        amount = line_amount(item)
        gross += amount
        if item.taxable:
            taxable += amount

    subtotal = money(gross)
    taxable_base = money(taxable)
    tax_total = money(taxable_base * rate / HUNDRED)
    discount_total = money(subtotal * discount_rate / HUNDRED)
    grand_total = subtotal + tax_total - discount_total

    return Totals(
        subtotal=subtotal,
        taxable_base=taxable_base,
        tax_total=tax_total,
        discount_total=discount_total,
        grand_total=grand_total,
    )


def balance_due(grand_total: Decimal, paid_total: Decimal) -> Decimal:
    """Outstanding amount, floored at zero."""
    remaining = money(grand_total) - money(paid_total)
    return remaining if remaining > ZERO else ZERO
