"""
Line item and document total arithmetic.

Every screen, view and serializer goes through these two functions so the
numbers agree everywhere. Values stay unrounded Decimals until
``quantize_money`` is applied for presentation or storage.
"""
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable

from django.core.exceptions import ValidationError

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")


def to_decimal(value, default=ZERO) -> Decimal:
    if value is None or value == "":
        return default
    # str() first so floats keep the digits the user typed (0.1 -> "0.1")
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"'{value}' is not a number") from None
    # NaN and Infinity cannot be compared or stored
    if not number.is_finite():
        raise ValidationError(f"'{value}' is not a number")
    return number


def quantize_money(value) -> Decimal:
    """Round to cents, half up. Presentation/storage only."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def clamp_percent(value) -> Decimal:
    return min(max(to_decimal(value), ZERO), HUNDRED)


@dataclass(frozen=True)
class LineAmounts:
    subtotal: Decimal
    discount_amount: Decimal
    after_discount: Decimal
    tax_amount: Decimal
    total: Decimal

    def rounded(self) -> "LineAmounts":
        return LineAmounts(*(quantize_money(v) for v in self.as_tuple()))

    def as_tuple(self):
        return (
            self.subtotal,
            self.discount_amount,
            self.after_discount,
            self.tax_amount,
            self.total,
        )


@dataclass(frozen=True)
class DocumentTotals:
    subtotal: Decimal = ZERO
    discount_total: Decimal = ZERO
    tax_total: Decimal = ZERO
    grand_total: Decimal = ZERO

    def rounded(self) -> "DocumentTotals":
        return DocumentTotals(
            subtotal=quantize_money(self.subtotal),
            discount_total=quantize_money(self.discount_total),
            tax_total=quantize_money(self.tax_total),
            grand_total=quantize_money(self.grand_total),
        )


def calculate_line(quantity, price, discount_percent=ZERO, tax_percent=ZERO) -> LineAmounts:
    """Discount is taken off first, tax is charged on what remains."""
    subtotal = to_decimal(quantity) * to_decimal(price)
    discount_amount = subtotal * to_decimal(discount_percent) / HUNDRED
    after_discount = subtotal - discount_amount
    tax_amount = after_discount * to_decimal(tax_percent) / HUNDRED
    return LineAmounts(
        subtotal=subtotal,
        discount_amount=discount_amount,
        after_discount=after_discount,
        tax_amount=tax_amount,
        total=after_discount + tax_amount,
    )


def _line_field(item, name):
    # Lines arrive as model instances, request dicts or client-side dicts
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def line_amounts(item) -> LineAmounts:
    return calculate_line(
        _line_field(item, "quantity"),
        _line_field(item, "price"),
        clamp_percent(_line_field(item, "discount_percent")),
        clamp_percent(_line_field(item, "tax_percent")),
    )


def calculate_document_totals(items: Iterable) -> DocumentTotals:
    subtotal = discount_total = tax_total = grand_total = ZERO
    for item in items:
        amounts = line_amounts(item)
        subtotal += amounts.subtotal
        discount_total += amounts.discount_amount
        tax_total += amounts.tax_amount
        grand_total += amounts.total
    return DocumentTotals(
        subtotal=subtotal,
        discount_total=discount_total,
        tax_total=tax_total,
        grand_total=grand_total,
    )
