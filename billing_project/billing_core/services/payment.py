"""
Payment reconciliation for invoices.

``apply_payment`` / ``remove_payment`` are pure and work on anything that
looks like an invoice (``grand_total``, ``balance_due``, ``status``); the
remote client uses them for optimistic display. ``record_payment``,
``update_payment`` and ``delete_payment`` are the authoritative versions
that lock the invoice row and persist the result.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from django.core.exceptions import ValidationError
from django.db import transaction

from ..exceptions import PaymentExceedsBalanceError, StateConflictError
from ..models import Invoice, Payment
from .audit_helper import log_action
from .calculations import ZERO, quantize_money, to_decimal
from .state_machine import PAYABLE
from .validation import payment_amount

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BalanceState:
    balance_due: Decimal
    status: str


def derive_status(current_status, balance_due, grand_total) -> str:
    """paid at zero, partial below the total, otherwise back to (or still) sent."""
    if current_status == "draft":
        return current_status
    if quantize_money(balance_due) <= ZERO:
        return "paid"
    if to_decimal(balance_due) < to_decimal(grand_total):
        return "partial"
    if current_status in ("paid", "partial"):
        return "sent"
    return current_status


def ensure_payable(invoice):
    if invoice.status == "draft":
        raise StateConflictError(f"{invoice} must be sent before payments can be recorded.")
    if invoice.status not in PAYABLE or quantize_money(invoice.balance_due) <= ZERO:
        raise StateConflictError(f"{invoice} is already paid.")


def apply_payment(invoice, amount) -> BalanceState:
    amount = payment_amount(amount)
    ensure_payable(invoice)
    balance = to_decimal(invoice.balance_due)
    # cannot overpay
    if amount > balance:
        raise PaymentExceedsBalanceError(
            f"Payment amount cannot exceed balance due ({quantize_money(balance)})",
            details={"amount": [str(amount)], "balance_due": str(quantize_money(balance))},
        )
    new_balance = quantize_money(balance - amount)
    return BalanceState(
        balance_due=new_balance,
        status=derive_status(invoice.status, new_balance, invoice.grand_total),
    )


def remove_payment(invoice, remaining_amounts: Iterable) -> BalanceState:
    """Balance and status after a payment is gone, from what is left."""
    paid = sum((to_decimal(a) for a in remaining_amounts), ZERO)
    new_balance = quantize_money(to_decimal(invoice.grand_total) - paid)
    return BalanceState(
        balance_due=new_balance,
        status=derive_status(invoice.status, new_balance, invoice.grand_total),
    )


def _store_state(inv: Invoice, state: BalanceState):
    inv.balance_due = state.balance_due
    if state.status != inv.status:
        inv.transition_to(state.status, save=False)
    inv.save(update_fields=["balance_due", "status", "updated_at"])


# ----------------------------
# Payment-related workflows
# ----------------------------
def record_payment(invoice_id, *, amount, payment_date, payment_method="other",
                   reference="", notes="", user=None):
    """
    Record a payment against an invoice.
    Locks the invoice row during the operation.
    """
    # Everything inside either succeeds
    # as one unit or rolls back if something fails
    with transaction.atomic():
        inv = Invoice.objects.select_for_update().get(pk=invoice_id)
        # the stored payment and the new balance use the same cents
        amount = payment_amount(amount)
        state = apply_payment(inv, amount)

        payment = Payment.objects.create(
            company=inv.company,  # enforce tenancy
            invoice=inv,
            amount=amount,
            payment_date=payment_date,
            payment_method=payment_method or "other",
            reference=reference or "",
            notes=notes or "",
        )
        previous_status = inv.status
        _store_state(inv, state)

        log_action(
            action="apply_payment",
            instance=inv,
            user=user,
            changes={
                "payment_id": payment.pk,
                "amount": str(payment.amount),
                "balance_due": str(inv.balance_due),
                "status": [previous_status, inv.status],
            },
        )
    return payment, inv


def reconcile_invoice(invoice_id):
    """Recompute balance and status from the payments still on file."""
    with transaction.atomic():
        inv = Invoice.objects.select_for_update().get(pk=invoice_id)
        remaining = inv.payments.values_list("amount", flat=True)
        state = remove_payment(inv, remaining)
        if state.balance_due != inv.balance_due or state.status != inv.status:
            _store_state(inv, state)
    return inv


def delete_payment(invoice_id, payment_id, user=None):
    with transaction.atomic():
        inv = Invoice.objects.select_for_update().get(pk=invoice_id)
        payment = inv.payments.get(pk=payment_id)
        amount = payment.amount
        # post_delete signal reconciles the invoice
        payment.delete()
        inv.refresh_from_db()

        log_action(
            action="remove_payment",
            instance=inv,
            user=user,
            changes={
                "payment_id": payment_id,
                "amount": str(amount),
                "balance_due": str(inv.balance_due),
                "status": inv.status,
            },
        )
    return inv


def update_payment(invoice_id, payment_id, *, user=None, **fields):
    """Edit a payment; a new amount is checked against balance + old amount."""
    allowed = {"amount", "payment_date", "payment_method", "reference", "notes"}
    unknown = set(fields) - allowed
    if unknown:
        raise ValidationError({name: ["Unknown field"] for name in sorted(unknown)})

    with transaction.atomic():
        inv = Invoice.objects.select_for_update().get(pk=invoice_id)
        payment = inv.payments.select_for_update().get(pk=payment_id)

        if fields.get("amount") is not None:
            amount = payment_amount(fields["amount"])
            available = inv.balance_due + payment.amount
            if amount > available:
                raise PaymentExceedsBalanceError(
                    f"Payment amount cannot exceed balance due ({available})"
                )
            fields["amount"] = amount

        for name, value in fields.items():
            if value is not None:
                setattr(payment, name, value)
        payment.save()

        inv = reconcile_invoice(inv.pk)
        log_action(
            action="update_payment",
            instance=inv,
            user=user,
            changes={
                "payment_id": payment.pk,
                "amount": str(payment.amount),
                "balance_due": str(inv.balance_due),
                "status": inv.status,
            },
        )
    return payment, inv
