from decimal import Decimal
from types import SimpleNamespace

from django.core.exceptions import ValidationError
from django.test import SimpleTestCase

from ..services.validation import (line_item_errors, validate_document_draft,
                                   validate_payment_amount)

SETTINGS = SimpleNamespace(currency="USD", base_currency="USD")
GOOD_LINE = {"name": "Design", "quantity": "1", "price": "250", "discount_percent": "0", "tax_percent": "0"}


class DraftValidationTests(SimpleTestCase):
    def validate(self, **overrides):
        kwargs = {"client_id": 1, "items": [GOOD_LINE], "currency": None,
                  "exchange_rate": None, "company_settings": SETTINGS}
        kwargs.update(overrides)
        return validate_document_draft(**kwargs)

    def test_valid_draft_returns_resolution(self):
        resolution = self.validate()
        self.assertEqual(resolution.currency, "USD")

    def test_every_problem_reported_at_once(self):
        with self.assertRaises(ValidationError) as ctx:
            self.validate(client_id=None, items=[], currency="EUR")
        errors = ctx.exception.message_dict
        self.assertEqual(set(errors), {"client_id", "items", "exchange_rate"})

    def test_price_must_be_given(self):
        errors = line_item_errors([{**GOOD_LINE, "price": None}, {**GOOD_LINE, "price": "0"}])
        self.assertIn("items[0].price", errors)
        self.assertIn("items[1].price", errors)

    def test_quantity_and_percent_bounds(self):
        errors = line_item_errors([{**GOOD_LINE, "quantity": "-1", "tax_percent": "101"}])
        self.assertIn("items[0].quantity", errors)
        self.assertIn("items[0].tax_percent", errors)

    def test_non_numeric_fields(self):
        errors = line_item_errors([{**GOOD_LINE, "quantity": "two"}])
        self.assertEqual(errors["items[0].quantity"], ["quantity must be a number"])

    def test_derived_status_cannot_be_submitted(self):
        with self.assertRaises(ValidationError) as ctx:
            self.validate(status="overdue")
        self.assertIn("status", ctx.exception.message_dict)


class PaymentAmountTests(SimpleTestCase):
    def test_bounds(self):
        self.assertEqual(validate_payment_amount("89", Decimal("89.00")), Decimal("89"))
        for bad in ("0", "-5", None, "89.01"):
            with self.subTest(amount=bad):
                with self.assertRaises(ValidationError):
                    validate_payment_amount(bad, Decimal("89.00"))

    def test_amount_is_checked_in_cents(self):
        self.assertEqual(validate_payment_amount("88.995", Decimal("89.00")), Decimal("89.00"))
        with self.assertRaises(ValidationError):
            validate_payment_amount("0.004", Decimal("89.00"))

    def test_non_finite_amount(self):
        for bad in ("NaN", "Infinity"):
            with self.subTest(amount=bad):
                with self.assertRaises(ValidationError) as ctx:
                    validate_payment_amount(bad, Decimal("89.00"))
                self.assertIn("amount", ctx.exception.message_dict)


class NonFiniteDraftTests(SimpleTestCase):
    def test_exchange_rate(self):
        for bad in ("NaN", "Infinity"):
            with self.subTest(rate=bad):
                with self.assertRaises(ValidationError) as ctx:
                    validate_document_draft(client_id=1, items=[GOOD_LINE], currency="EUR",
                                            exchange_rate=bad, company_settings=SETTINGS)
                self.assertIn("exchange_rate", ctx.exception.message_dict)

    def test_line_price(self):
        errors = line_item_errors([{**GOOD_LINE, "price": "NaN"}, {**GOOD_LINE, "price": "Infinity"}])
        self.assertIn("price must be a number", errors["items[0].price"])
        self.assertIn("price must be a number", errors["items[1].price"])
