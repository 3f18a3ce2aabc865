"""
Legal lifecycle states for billing documents.

Only stored statuses appear in the transition tables. ``expired`` and
``overdue`` are read-time views computed by ``derive_display_status``; they
are never written to a document.
"""
import datetime
from typing import Optional

from ..exceptions import StateConflictError
from .calculations import ZERO, to_decimal

QUOTATION = "quotation"
INVOICE = "invoice"
RECURRING = "recurring_invoice"

EXPIRED = "expired"
OVERDUE = "overdue"
DERIVED_STATUSES = frozenset({EXPIRED, OVERDUE})

QUOTATION_TRANSITIONS = {
    "draft": ("sent",),
    "sent": ("accepted", "rejected"),
    "accepted": ("converted",),
    "rejected": (),
    "converted": (),
}

INVOICE_TRANSITIONS = {
    "draft": ("sent",),
    "sent": ("partial", "paid"),
    # a removed payment walks the status back
    "partial": ("paid", "sent"),
    "paid": ("partial", "sent"),
}

RECURRING_TRANSITIONS = {
    "active": ("paused", "completed"),
    "paused": ("active", "completed"),
    "completed": (),
}

# Once a guest has answered, further accept/reject calls are no-ops
GUEST_ANSWERED = frozenset({"accepted", "rejected", "converted"})
PAYABLE = frozenset({"sent", "partial"})


class StateMachine:
    def __init__(self, document_type, transitions):
        self.document_type = document_type
        self.transitions = transitions

    @property
    def states(self):
        return tuple(self.transitions)

    def targets(self, current):
        return self.transitions.get(current, ())

    def can_transition(self, current, target) -> bool:
        return target in self.targets(current)

    def is_terminal(self, status) -> bool:
        return status in self.transitions and not self.transitions[status]

    def assert_transition(self, current, target):
        if target in DERIVED_STATUSES:
            raise StateConflictError(
                f"'{target}' is computed from dates and cannot be set on a {self.document_type}."
            )
        if not self.can_transition(current, target):
            raise StateConflictError(
                f"Cannot move {self.document_type} from {current} to {target}."
            )


MACHINES = {
    QUOTATION: StateMachine(QUOTATION, QUOTATION_TRANSITIONS),
    INVOICE: StateMachine(INVOICE, INVOICE_TRANSITIONS),
    RECURRING: StateMachine(RECURRING, RECURRING_TRANSITIONS),
}


def machine_for(document_type) -> StateMachine:
    try:
        return MACHINES[document_type]
    except KeyError:
        raise ValueError(f"Unknown document type: {document_type}") from None


def transition(document, target):
    """Check and apply ``target`` on ``document`` in memory; returns the old status."""
    machine_for(document.document_type).assert_transition(document.status, target)
    previous = document.status
    document.status = target
    return previous


def _today(today: Optional[datetime.date]) -> datetime.date:
    return today or datetime.date.today()


def is_expired(quotation, today=None) -> bool:
    expiry = getattr(quotation, "expiry_date", None)
    return quotation.status == "sent" and expiry is not None and _today(today) > expiry


def is_overdue(invoice, today=None) -> bool:
    due = getattr(invoice, "due_date", None)
    return (
        invoice.status in PAYABLE
        and due is not None
        and _today(today) > due
        and to_decimal(invoice.balance_due) > ZERO
    )


def derive_display_status(document, today=None) -> str:
    """Status to show a reader: stored status, or expired/overdue when dates say so."""
    if document.document_type == QUOTATION and is_expired(document, today):
        return EXPIRED
    if document.document_type == INVOICE and is_overdue(document, today):
        return OVERDUE
    return document.status


def can_record_payment(invoice) -> bool:
    return invoice.status in PAYABLE and to_decimal(invoice.balance_due) > ZERO


def can_acknowledge(invoice) -> bool:
    # A draft has not been issued yet, nothing to acknowledge
    return invoice.status != "draft"
