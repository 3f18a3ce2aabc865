import json

import pytest
from django.contrib.auth.models import AnonymousUser
from django.test import RequestFactory, TestCase

from ..middleware import CurrentCompanyMiddleware
from ..models import Client, Company, Invoice
from ..views import invoice_collection
from .helpers import BillingFixtures


class TenantIsolationManagerTests(BillingFixtures, TestCase):
    def setUp(self):
        self.company_a = self.make_company("Company A", "com-a")
        self.company_b = self.make_company("Company B", "com-b")

        # create one invoice per company
        self.inv_a = self.make_invoice(self.company_a, self.make_client(self.company_a))
        self.inv_b = self.make_invoice(self.company_b, self.make_client(self.company_b))

    def test_for_company_returns_only_that_company_objects(self):
        """Compare invoice primary keys"""
        self.assertListEqual(
            list(
                Invoice.objects.for_company(self.company_a)
                .order_by("id")
                .values_list("pk", flat=True)
            ),
            [self.inv_a.pk],
        )
        self.assertListEqual(
            list(
                Invoice.objects.for_company(self.company_b)
                .order_by("id")
                .values_list("pk", flat=True)
            ),
            [self.inv_b.pk],
        )

    def test_get_other_company_object_raises_does_not_exist(self):
        with self.assertRaises(Invoice.DoesNotExist):
            Invoice.objects.for_company(self.company_a).get(pk=self.inv_b.pk)

    def test_with_status_is_scoped_too(self):
        self.assertEqual(
            list(Invoice.objects.with_status(self.company_a, "sent")), [self.inv_a]
        )


class CurrentCompanyMiddlewareTests(BillingFixtures, TestCase):
    def setUp(self):
        self.owner = self.make_user()
        self.first = self.make_company("First", "first", owner=self.owner)
        self.second = self.make_company("Second", "second", owner=self.owner)
        self.foreign = self.make_company("Foreign", "foreign")
        self.middleware = CurrentCompanyMiddleware(lambda request: None)

    def request_for(self, user, session=None):
        request = RequestFactory().get("/")
        request.user = user
        request.session = session or {}
        self.middleware.process_request(request)
        return request

    def test_defaults_to_first_owned_company(self):
        self.assertEqual(self.request_for(self.owner).company, self.first)

    def test_session_switches_company(self):
        request = self.request_for(self.owner, {"active_company_id": self.second.pk})
        self.assertEqual(request.company, self.second)

    def test_foreign_company_in_session_is_ignored(self):
        request = self.request_for(self.owner, {"active_company_id": self.foreign.pk})
        self.assertIsNone(request.company)

    def test_anonymous_has_no_company(self):
        self.assertIsNone(self.request_for(AnonymousUser()).company)


@pytest.mark.django_db
def test_invoice_list_returns_only_tenant_data(django_user_model):
    fixtures = BillingFixtures()
    u1 = django_user_model.objects.create_user(username="alice", password="pw")
    c1 = fixtures.make_company("Company A", "com-a", owner=u1)
    c2 = fixtures.make_company("Company B", "com-b")

    fixtures.make_invoice(c1, fixtures.make_client(c1), notes="C1 invoice")
    fixtures.make_invoice(c2, fixtures.make_client(c2), notes="C2 invoice")
    assert Client.objects.count() == 2

    # Bypass client & call view with a RequestFactory
    request = RequestFactory().get("/invoices/")
    request.user = u1
    request.company = c1  # manually simulate middleware

    response = invoice_collection(request)
    body = json.loads(response.content)

    notes = [d["notes"] for d in body["data"]]
    assert "C1 invoice" in notes
    assert "C2 invoice" not in notes
