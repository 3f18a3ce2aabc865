"""
Pre-submit checks for a document draft.

All problems are collected and raised together as one ValidationError keyed
by field, so a form can show every message inline before anything is sent.
"""
from collections.abc import Mapping
from decimal import Decimal

from django.core.exceptions import ValidationError

from .calculations import HUNDRED, ZERO, quantize_money, to_decimal
from .currency import resolve, validate as validate_currency
from .state_machine import DERIVED_STATUSES


def _get(item, name):
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def _number(value, field, errors, prefix):
    try:
        return to_decimal(value, default=None)
    except (ValidationError, ArithmeticError, ValueError, TypeError):
        errors.setdefault(f"{prefix}.{field}", []).append(f"{field} must be a number")
        return None


def line_item_errors(items) -> dict:
    errors = {}
    for index, item in enumerate(items):
        prefix = f"items[{index}]"
        if not (_get(item, "name") or "").strip():
            errors.setdefault(f"{prefix}.name", []).append("Name is required")

        quantity = _number(_get(item, "quantity"), "quantity", errors, prefix)
        if quantity is not None and quantity <= ZERO:
            errors.setdefault(f"{prefix}.quantity", []).append("Quantity must be > 0")

        # Price is entered per document, a missing price is never defaulted
        price = _number(_get(item, "price"), "price", errors, prefix)
        if price is None or price <= ZERO:
            errors.setdefault(f"{prefix}.price", []).append("Price must be > 0")

        for field in ("discount_percent", "tax_percent"):
            pct = _number(_get(item, field), field, errors, prefix)
            if pct is not None and not (ZERO <= pct <= HUNDRED):
                errors.setdefault(f"{prefix}.{field}", []).append(
                    f"{field} must be between 0 and 100"
                )
    return errors


def validate_document_draft(*, client_id, items, currency, exchange_rate,
                            company_settings, status=None):
    """Raise ValidationError for anything that must block submission.

    Returns the currency resolution so callers can store the resolved code.
    """
    errors = {}
    if not client_id:
        errors["client_id"] = ["Client is required"]
    items = list(items or [])
    if not items:
        errors["items"] = ["At least one line item is required"]
    errors.update(line_item_errors(items))
    if status in DERIVED_STATUSES:
        errors["status"] = [f"'{status}' is derived from dates and cannot be stored"]

    try:
        resolution = resolve(currency, exchange_rate, company_settings)
        validate_currency(resolution)
    except ValidationError as exc:
        if hasattr(exc, "error_dict"):
            errors.update(exc.message_dict)
        else:
            # an unreadable rate fails before the currency check
            errors["exchange_rate"] = exc.messages

    if errors:
        raise ValidationError(errors)
    return resolution


def payment_amount(amount) -> Decimal:
    """Payments are whole cents, every check runs on the rounded value."""
    try:
        value = to_decimal(amount, default=None)
    except ValidationError:
        raise ValidationError({"amount": ["Payment amount must be a number"]}) from None
    if value is not None:
        value = quantize_money(value)
    if value is None or value <= ZERO:
        raise ValidationError({"amount": ["Payment amount must be > 0"]})
    return value


def validate_payment_amount(amount, balance_due):
    """Local check before a payment is submitted."""
    value = payment_amount(amount)
    if value > to_decimal(balance_due):
        raise ValidationError(
            {"amount": [f"Payment amount cannot exceed balance due ({balance_due})"]}
        )
    return value
