import datetime
from decimal import Decimal
from unittest import mock

from django.core.exceptions import ValidationError
from django.test import TestCase, override_settings

from ..exceptions import AlreadyConvertedError, StateConflictError
from ..models import CompanySettings, Invoice, Quotation
from ..services import conversion
from ..services.conversion import convert_quotation
from ..services.update import change_status
from .helpers import BillingFixtures

ISSUED = datetime.date(2026, 4, 1)


class QuotationConversionTests(BillingFixtures, TestCase):
    def setUp(self):
        self.company = self.make_company(currency="EUR")
        self.client_obj = self.make_client(self.company)
        self.quotation = self.make_quotation(
            self.company, self.client_obj, status="sent",
            currency="EUR", exchange_rate="1.10", notes="Scope as agreed", terms="50% upfront",
        )
        change_status(self.quotation, "accepted")

    def test_accepted_quotation_becomes_draft_invoice(self):
        inv = convert_quotation(self.quotation.pk, issue_date=ISSUED)
        self.assertEqual(inv.status, "draft")
        self.assertEqual(inv.source_quotation_id, self.quotation.pk)
        self.assertEqual(inv.client_id, self.client_obj.pk)
        self.assertEqual((inv.currency, inv.exchange_rate), ("EUR", Decimal("1.10")))
        self.assertEqual((inv.notes, inv.terms), ("Scope as agreed", "50% upfront"))
        self.assertEqual(inv.grand_total, Decimal("189.00"))
        self.assertEqual(inv.balance_due, inv.grand_total)
        self.assertFalse(inv.payments.exists())
        # issue date + company payment terms
        self.assertEqual(inv.due_date, datetime.date(2026, 5, 1))
        self.assertEqual(Quotation.objects.get(pk=self.quotation.pk).status, "converted")

    def test_invoice_number_is_taken_under_the_settings_lock(self):
        with mock.patch.object(conversion, "lock_settings", wraps=conversion.lock_settings) as lock:
            inv = convert_quotation(self.quotation.pk, issue_date=ISSUED)
        lock.assert_called_once()
        self.assertEqual(lock.call_args.args[0].company_id, self.company.pk)
        self.assertEqual(inv.number, "INV-0001")

    def test_payment_terms_come_from_company_settings(self):
        settings_obj = CompanySettings.for_company(self.company)
        settings_obj.payment_terms_days = 14
        settings_obj.save()
        inv = convert_quotation(self.quotation.pk, issue_date=ISSUED)
        self.assertEqual(inv.due_date, datetime.date(2026, 4, 15))

    def test_second_conversion_fails_without_duplicate(self):
        convert_quotation(self.quotation.pk)
        with self.assertRaises(AlreadyConvertedError):
            convert_quotation(self.quotation.pk)
        self.assertEqual(Invoice.objects.filter(source_quotation=self.quotation).count(), 1)

    def test_invoice_lines_are_a_snapshot(self):
        inv = convert_quotation(self.quotation.pk)
        qt_line = self.quotation.lines.get()
        qt_line.price = Decimal("500")
        qt_line.save()

        inv_line = inv.lines.get()
        self.assertEqual(inv_line.price, Decimal("100"))
        self.assertEqual(Invoice.objects.get(pk=inv.pk).grand_total, Decimal("189.00"))

    def test_only_accepted_quotations_convert(self):
        other = self.make_quotation(self.company, self.client_obj, status="sent",
                                    currency="EUR", exchange_rate="1.10")
        with self.assertRaises(StateConflictError):
            convert_quotation(other.pk)
        self.assertFalse(Invoice.objects.exists())

    def test_converted_status_cannot_be_set_by_hand(self):
        with self.assertRaises(StateConflictError):
            change_status(self.quotation, "converted")

    @override_settings(BILLING_CONVERTED_INVOICE_STATUS="sent")
    def test_workflow_policy_can_send_straight_away(self):
        inv = convert_quotation(self.quotation.pk)
        self.assertEqual(inv.status, "sent")

    def test_policy_must_be_draft_or_sent(self):
        with self.assertRaises(ValidationError):
            convert_quotation(self.quotation.pk, initial_status="paid")
