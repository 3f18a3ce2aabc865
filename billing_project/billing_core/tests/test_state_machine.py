import datetime
from decimal import Decimal
from types import SimpleNamespace

from django.test import SimpleTestCase

from ..exceptions import StateConflictError
from ..services import state_machine as sm

TODAY = datetime.date(2026, 3, 10)


def quotation(status="sent", expiry=None):
    return SimpleNamespace(document_type="quotation", status=status, expiry_date=expiry)


def invoice(status="sent", due=None, balance="50.00"):
    return SimpleNamespace(document_type="invoice", status=status, due_date=due,
                           balance_due=Decimal(balance))


class TransitionTableTests(SimpleTestCase):
    def test_quotation_path(self):
        doc = quotation(status="draft")
        for target in ("sent", "accepted", "converted"):
            sm.transition(doc, target)
        self.assertEqual(doc.status, "converted")
        self.assertTrue(sm.machine_for("quotation").is_terminal("converted"))

    def test_no_silent_skips(self):
        with self.assertRaises(StateConflictError):
            sm.transition(quotation(status="draft"), "accepted")
        with self.assertRaises(StateConflictError):
            sm.transition(invoice(status="draft"), "paid")
        with self.assertRaises(StateConflictError):
            sm.transition(quotation(status="rejected"), "accepted")

    def test_derived_statuses_are_never_transitions(self):
        with self.assertRaises(StateConflictError):
            sm.transition(quotation(), sm.EXPIRED)
        with self.assertRaises(StateConflictError):
            sm.transition(invoice(), sm.OVERDUE)

    def test_transition_returns_previous_status(self):
        doc = invoice(status="sent")
        self.assertEqual(sm.transition(doc, "partial"), "sent")
        self.assertEqual(doc.status, "partial")

    def test_unknown_document_type(self):
        with self.assertRaises(ValueError):
            sm.machine_for("receipt")


class DisplayStatusTests(SimpleTestCase):
    def test_sent_quotation_past_expiry_reads_expired(self):
        doc = quotation(expiry=datetime.date(2026, 3, 9))
        self.assertEqual(sm.derive_display_status(doc, TODAY), "expired")
        # stored status is untouched
        self.assertEqual(doc.status, "sent")

    def test_expiry_day_itself_is_not_expired(self):
        self.assertEqual(sm.derive_display_status(quotation(expiry=TODAY), TODAY), "sent")

    def test_answered_quotation_never_expires(self):
        doc = quotation(status="accepted", expiry=datetime.date(2026, 1, 1))
        self.assertEqual(sm.derive_display_status(doc, TODAY), "accepted")

    def test_overdue_needs_open_balance(self):
        late = datetime.date(2026, 3, 1)
        self.assertEqual(sm.derive_display_status(invoice(due=late), TODAY), "overdue")
        self.assertEqual(sm.derive_display_status(invoice(status="partial", due=late), TODAY), "overdue")
        self.assertEqual(
            sm.derive_display_status(invoice(status="paid", due=late, balance="0"), TODAY), "paid"
        )
        self.assertEqual(sm.derive_display_status(invoice(status="draft", due=late), TODAY), "draft")


class GuardTests(SimpleTestCase):
    def test_payment_guard(self):
        self.assertTrue(sm.can_record_payment(invoice(status="partial")))
        self.assertFalse(sm.can_record_payment(invoice(status="draft")))
        self.assertFalse(sm.can_record_payment(invoice(status="paid", balance="0")))

    def test_acknowledge_guard(self):
        self.assertFalse(sm.can_acknowledge(invoice(status="draft")))
        self.assertTrue(sm.can_acknowledge(invoice(status="paid", balance="0")))
