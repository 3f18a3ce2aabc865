import datetime
from decimal import Decimal
from types import SimpleNamespace

from django.core.exceptions import ValidationError
from django.test import SimpleTestCase, TestCase

from ..exceptions import PaymentExceedsBalanceError, StateConflictError
from ..models import AuditLog, Invoice, Payment
from ..services.payment import (apply_payment, delete_payment, derive_status,
                                record_payment, remove_payment, update_payment)
from .helpers import BillingFixtures

PAID_ON = datetime.date(2026, 3, 1)


class PaymentLifecycleTests(BillingFixtures, TestCase):
    def setUp(self):
        self.company = self.make_company()
        self.client_obj = self.make_client(self.company)
        # 2 x 100, 10% discount, 5% tax = 189.00
        self.invoice = self.make_invoice(self.company, self.client_obj)

    def pay(self, amount, **kwargs):
        return record_payment(self.invoice.pk, amount=Decimal(amount), payment_date=PAID_ON, **kwargs)

    def test_invoice_starts_with_full_balance(self):
        self.assertEqual(self.invoice.grand_total, Decimal("189.00"))
        self.assertEqual(self.invoice.balance_due, Decimal("189.00"))
        self.assertEqual(self.invoice.status, "sent")

    def test_partial_then_paid_then_removed(self):
        _, inv = self.pay("100")
        self.assertEqual(inv.balance_due, Decimal("89.00"))
        self.assertEqual(inv.status, "partial")

        second, inv = self.pay("89", payment_method="bank_transfer")
        self.assertEqual(inv.balance_due, Decimal("0.00"))
        self.assertEqual(inv.status, "paid")

        inv = delete_payment(inv.pk, second.pk)
        self.assertEqual(inv.balance_due, Decimal("89.00"))
        self.assertEqual(inv.status, "partial")

    def test_apply_then_remove_restores_balance_exactly(self):
        before = Invoice.objects.get(pk=self.invoice.pk)
        payment, _ = self.pay("42.17")
        inv = delete_payment(self.invoice.pk, payment.pk)
        self.assertEqual(inv.balance_due, before.balance_due)
        self.assertEqual(inv.status, before.status)

    def test_overpayment_is_refused(self):
        with self.assertRaises(PaymentExceedsBalanceError):
            self.pay("189.01")
        self.assertFalse(Payment.objects.exists())

    def test_draft_invoice_takes_no_payments(self):
        draft = self.make_invoice(self.company, self.client_obj, status="draft")
        with self.assertRaises(StateConflictError):
            record_payment(draft.pk, amount=Decimal("10"), payment_date=PAID_ON)

    def test_paid_invoice_refuses_further_payments(self):
        self.pay("189")
        with self.assertRaises(StateConflictError):
            self.pay("0.01")

    def test_non_positive_amount(self):
        with self.assertRaises(ValidationError):
            self.pay("0")

    def test_sub_cent_amount_is_rounded_once(self):
        self.pay("100")
        payment, inv = self.pay("88.995")
        # the stored payment and the stored balance agree to the cent
        self.assertEqual(payment.amount, Decimal("89.00"))
        self.assertEqual(inv.balance_due, Decimal("0.00"))
        self.assertEqual(inv.status, "paid")
        paid = sum(inv.payments.values_list("amount", flat=True), Decimal("0"))
        self.assertEqual(inv.grand_total - paid, inv.balance_due)

    def test_amount_rounding_to_zero_is_refused(self):
        with self.assertRaises(ValidationError):
            self.pay("0.004")
        self.assertFalse(Payment.objects.exists())

    def test_non_finite_amounts_are_validation_errors(self):
        for bad in ("NaN", "Infinity", "-Infinity"):
            with self.subTest(amount=bad):
                with self.assertRaises(ValidationError) as ctx:
                    record_payment(self.invoice.pk, amount=bad, payment_date=PAID_ON)
                self.assertIn("amount", ctx.exception.message_dict)
        self.assertFalse(Payment.objects.exists())

    def test_deleting_payment_row_directly_still_reconciles(self):
        payment, _ = self.pay("189")
        # e.g. removed from a shell, the post_delete signal fixes the invoice
        Payment.objects.get(pk=payment.pk).delete()
        inv = Invoice.objects.get(pk=self.invoice.pk)
        self.assertEqual(inv.balance_due, Decimal("189.00"))
        self.assertEqual(inv.status, "sent")

    def test_update_payment_rederives_balance(self):
        payment, _ = self.pay("100")
        payment, inv = update_payment(self.invoice.pk, payment.pk, amount="189")
        self.assertEqual(payment.amount, Decimal("189.00"))
        self.assertEqual(inv.status, "paid")
        with self.assertRaises(PaymentExceedsBalanceError):
            update_payment(self.invoice.pk, payment.pk, amount="190")

    def test_update_payment_rounds_like_record(self):
        payment, _ = self.pay("100")
        payment, inv = update_payment(self.invoice.pk, payment.pk, amount="188.995")
        self.assertEqual(payment.amount, Decimal("189.00"))
        self.assertEqual((inv.balance_due, inv.status), (Decimal("0.00"), "paid"))

    def test_update_rejects_unknown_fields(self):
        payment, _ = self.pay("10")
        with self.assertRaises(ValidationError):
            update_payment(self.invoice.pk, payment.pk, invoice_id=99)

    def test_invoice_with_payments_cannot_be_deleted(self):
        self.pay("10")
        with self.assertRaises(ValidationError):
            Invoice.objects.get(pk=self.invoice.pk).delete()

    def test_payments_are_audited(self):
        self.pay("100")
        entry = AuditLog.objects.filter(action="apply_payment").get()
        self.assertEqual(entry.changes["status"], ["sent", "partial"])
        self.assertEqual(entry.actor, "system")


class OptimisticReconcileTests(SimpleTestCase):
    """The pure half, also used by the remote client for optimistic display."""

    def invoice(self, status="sent", balance="189.00"):
        return SimpleNamespace(status=status, balance_due=Decimal(balance), grand_total=Decimal("189.00"))

    def test_apply(self):
        state = apply_payment(self.invoice(), "100")
        self.assertEqual((state.balance_due, state.status), (Decimal("89.00"), "partial"))

    def test_remove_last_payment_walks_back_to_sent(self):
        state = remove_payment(self.invoice(status="paid", balance="0"), [])
        self.assertEqual((state.balance_due, state.status), (Decimal("189.00"), "sent"))

    def test_apply_rounds_the_amount_first(self):
        state = apply_payment(self.invoice(balance="89.00"), "88.995")
        self.assertEqual((state.balance_due, state.status), (Decimal("0.00"), "paid"))

    def test_rounding_to_cents_counts_as_paid(self):
        self.assertEqual(derive_status("partial", Decimal("0.004"), Decimal("189")), "paid")
