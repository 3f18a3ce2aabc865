from django.core.exceptions import ValidationError
from django.db import transaction

from ..exceptions import StateConflictError
from ..models import Invoice, Quotation
from .audit_helper import log_action
from .state_machine import DERIVED_STATUSES


def _transition(document, new_status, *, user=None, action="transition"):
    previous = document.status
    document.transition_to(new_status)
    log_action(
        action=action,
        instance=document,
        user=user,
        changes={"status": [previous, document.status]},
    )
    return document


# ----------------------------------------------
# Quotation status update workflows
# ----------------------------------------------
"""Move quotation from draft → sent (after validation)."""
def send_quotation(quotation: Quotation, user=None):
    if not quotation.lines.exists():
        raise ValidationError("Cannot send quotation with no lines")
    with transaction.atomic():
        return _transition(quotation, "sent", user=user, action="send")


# ----------------------------------------------
# Invoice status update workflows
# ----------------------------------------------
"""Move invoice from draft → sent (after validation)."""
def send_invoice(invoice: Invoice, user=None):
    if not invoice.lines.exists():
        raise ValidationError("Cannot send invoice with no lines")
    with transaction.atomic():
        invoice.recalc_totals()
        invoice.save(update_fields=["subtotal", "discount_total", "tax_total",
                                    "grand_total", "balance_due", "updated_at"])
        return _transition(invoice, "sent", user=user, action="send")


def change_status(document, new_status, user=None):
    """Single entry point for status changes requested by a user."""
    if new_status in DERIVED_STATUSES:
        raise ValidationError(
            {"status": [f"'{new_status}' is derived from dates and cannot be stored"]}
        )
    if new_status == document.status:
        return document
    if new_status == "sent":
        if document.document_type == "quotation":
            return send_quotation(document, user=user)
        if document.document_type == "invoice" and document.status == "draft":
            return send_invoice(document, user=user)
    if document.document_type == "invoice" and new_status in ("partial", "paid", "sent"):
        # these follow from recorded payments
        raise StateConflictError(
            f"Invoice status '{new_status}' is set by recording or removing payments."
        )
    if new_status == "converted":
        raise StateConflictError("Quotations become converted only by converting them to an invoice.")
    with transaction.atomic():
        return _transition(document, new_status, user=user)
