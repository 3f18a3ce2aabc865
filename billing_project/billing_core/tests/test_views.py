import json
from decimal import Decimal

from django.test import TestCase
from django.urls import reverse

from ..models import Invoice, ShareLink
from ..services import share_links
from .helpers import BillingFixtures


class ApiTestMixin:
    def post_json(self, url, data=None, **extra):
        return self.client.post(url, data=json.dumps(data or {}), content_type="application/json", **extra)

    def put_json(self, url, data):
        return self.client.put(url, data=json.dumps(data), content_type="application/json")


class DocumentApiTests(ApiTestMixin, BillingFixtures, TestCase):
    def setUp(self):
        self.user = self.make_user()
        self.company = self.make_company(owner=self.user)
        self.customer = self.make_client(self.company)
        self.client.force_login(self.user)

    def invoice_payload(self, **overrides):
        payload = {
            "clientId": self.customer.pk,
            "issueDate": "2026-03-01",
            "items": [{"name": "Consulting", "quantity": "2", "price": "100",
                       "discountPercent": "10", "taxPercent": "5"}],
            "status": "sent",
        }
        payload.update(overrides)
        return payload

    def test_create_invoice_returns_server_totals(self):
        response = self.post_json(reverse("billing_core:invoice-list"), self.invoice_payload())
        self.assertEqual(response.status_code, 201)
        data = response.json()["data"]
        self.assertEqual(data["number"], "INV-0001")
        self.assertEqual(data["grandTotal"], "189.00")
        self.assertEqual(data["totalAmount"], "189.00")
        self.assertEqual(data["balanceDue"], "189.00")
        self.assertEqual(data["items"][0]["total"], "189.00")

    def test_validation_errors_are_422(self):
        response = self.post_json(reverse("billing_core:invoice-list"),
                                  self.invoice_payload(items=[], currency="EUR"))
        self.assertEqual(response.status_code, 422)
        error = response.json()["error"]
        self.assertEqual(error["code"], "VALIDATION_ERROR")
        self.assertIn("items", error["details"])
        self.assertIn("exchange_rate", error["details"])

    def test_payment_flow_and_conflicts(self):
        inv = self.make_invoice(self.company, self.customer)
        url = reverse("billing_core:invoice-payments", args=[inv.pk])

        response = self.post_json(url, {"amount": "100", "paymentDate": "2026-03-05",
                                        "paymentMethod": "cash"})
        self.assertEqual(response.status_code, 201)
        body = response.json()["data"]
        self.assertEqual(body["invoice"]["balanceDue"], "89.00")
        self.assertEqual(body["invoice"]["status"], "partial")

        # overpaying is a state conflict, not a form error
        response = self.post_json(url, {"amount": "90", "paymentDate": "2026-03-05"})
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["error"]["code"], "PAYMENT_EXCEEDS_BALANCE")

        payment_id = body["payment"]["id"]
        response = self.client.delete(
            reverse("billing_core:invoice-payment-detail", args=[inv.pk, payment_id])
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["invoice"]["status"], "sent")

    def test_non_finite_payment_amount_is_422(self):
        inv = self.make_invoice(self.company, self.customer)
        response = self.post_json(reverse("billing_core:invoice-payments", args=[inv.pk]),
                                  {"amount": "NaN", "paymentDate": "2026-03-05"})
        self.assertEqual(response.status_code, 422)
        self.assertIn("amount", response.json()["error"]["details"])

    def test_convert_twice_is_409(self):
        qt = self.make_quotation(self.company, self.customer, status="sent")
        qt.transition_to("accepted")
        url = reverse("billing_core:quotation-convert", args=[qt.pk])
        self.assertEqual(self.post_json(url).status_code, 201)
        response = self.post_json(url)
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["error"]["code"], "ALREADY_CONVERTED")

    def test_send_endpoint(self):
        qt = self.make_quotation(self.company, self.customer)
        response = self.post_json(reverse("billing_core:quotation-send", args=[qt.pk]))
        self.assertEqual(response.json()["data"]["status"], "sent")

    def test_other_company_documents_are_invisible(self):
        other_owner = self.make_user("other")
        other = self.make_company(name="Other", slug="other", owner=other_owner)
        theirs = self.make_invoice(other, self.make_client(other, "Theirs"))
        response = self.client.get(reverse("billing_core:invoice-detail", args=[theirs.pk]))
        self.assertEqual(response.status_code, 404)

    def test_anonymous_requests_are_401(self):
        self.client.logout()
        response = self.client.get(reverse("billing_core:invoice-list"))
        self.assertEqual(response.status_code, 401)

    def test_share_link_response_hides_hash(self):
        inv = self.make_invoice(self.company, self.customer)
        response = self.post_json(reverse("billing_core:share-link-create"),
                                  {"documentType": "invoice", "documentId": inv.pk, "password": "pw"})
        self.assertEqual(response.status_code, 201)
        data = response.json()["data"]
        self.assertTrue(data["hasPassword"])
        self.assertNotIn("passwordHash", data)
        self.assertNotIn(ShareLink.objects.get().password_hash, response.content.decode())
        self.assertIn(data["token"], data["url"])


class PublicShareApiTests(ApiTestMixin, BillingFixtures, TestCase):
    def setUp(self):
        self.company = self.make_company()
        self.customer = self.make_client(self.company)

    def test_password_flow_through_session(self):
        qt = self.make_quotation(self.company, self.customer, status="sent")
        link = share_links.create_share_link(qt, password="pw")

        opened = self.client.get(reverse("billing_core:public-share", args=[link.token])).json()["data"]
        self.assertTrue(opened["requiresPassword"])
        self.assertNotIn("document", opened)

        # acting before verification
        response = self.post_json(reverse("billing_core:public-share-accept", args=[link.token]))
        self.assertEqual(response.status_code, 401)

        response = self.post_json(reverse("billing_core:public-share-verify", args=[link.token]),
                                  {"password": "nope"})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"]["code"], "INVALID_PASSWORD")
        self.assertNotIn("document", response.json())

        response = self.post_json(reverse("billing_core:public-share-verify", args=[link.token]),
                                  {"password": "pw"})
        self.assertEqual(response.json()["data"]["document"]["number"], qt.number)

        # grant now lives in the session
        response = self.post_json(reverse("billing_core:public-share-accept", args=[link.token]))
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["data"]["changed"])
        response = self.post_json(reverse("billing_core:public-share-accept", args=[link.token]))
        self.assertFalse(response.json()["data"]["changed"])

    def test_unknown_and_deactivated_tokens_match(self):
        inv = self.make_invoice(self.company, self.customer)
        link = share_links.create_share_link(inv)
        share_links.deactivate(link.token)
        gone = self.client.get(reverse("billing_core:public-share", args=[link.token]))
        never = self.client.get(reverse("billing_core:public-share", args=["never-issued"]))
        self.assertEqual(gone.status_code, 404)
        self.assertEqual(gone.json(), never.json())

    def test_grant_header_for_api_clients(self):
        inv = self.make_invoice(self.company, self.customer)
        link = share_links.create_share_link(inv)
        grant = share_links.open_link(link.token).grant
        response = self.client.post(reverse("billing_core:public-share-acknowledge", args=[link.token]),
                                    HTTP_X_SHARE_GRANT=grant)
        self.assertEqual(response.status_code, 200)
        self.assertIsNotNone(Invoice.objects.get(pk=inv.pk).acknowledged_at)

    def test_guest_view_has_no_payments(self):
        inv = self.make_invoice(self.company, self.customer)
        link = share_links.create_share_link(inv)
        document = self.client.get(reverse("billing_core:public-share", args=[link.token])).json()["data"]["document"]
        self.assertNotIn("payments", document)
        self.assertEqual(document["grandTotal"], str(Decimal("189.00")))
