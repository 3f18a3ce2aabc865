from django.contrib.auth import get_user_model

from ..models import Client, Company, CompanySettings
from ..services.documents import create_document


class BillingFixtures:
    """setUp helpers shared by the database test cases."""

    def make_company(self, name="Test Co", slug="test-co", currency="USD", base_currency="USD",
                     owner=None):
        company = Company.objects.create(name=name, slug=slug, owner=owner)
        settings_obj = CompanySettings.for_company(company)
        settings_obj.currency = currency
        settings_obj.base_currency = base_currency
        settings_obj.save()
        return company

    def make_user(self, username="owner"):
        return get_user_model().objects.create_user(username=username, password="pw-123456")

    def make_client(self, company, name="Acme Ltd"):
        return Client.objects.create(company=company, name=name, email="billing@acme.test")

    def line(self, quantity="2", price="100", discount="10", tax="5", name="Consulting"):
        return {
            "name": name,
            "quantity": quantity,
            "price": price,
            "discount_percent": discount,
            "tax_percent": tax,
        }

    def make_document(self, kind, company, client, items=None, status="draft", **payload):
        payload.setdefault("client_id", client.pk)
        payload.setdefault("items", items or [self.line()])
        payload.setdefault("status", status)
        return create_document(kind, company, payload)

    def make_invoice(self, company, client, items=None, status="sent", **payload):
        return self.make_document("invoice", company, client, items, status, **payload)

    def make_quotation(self, company, client, items=None, status="draft", **payload):
        return self.make_document("quotation", company, client, items, status, **payload)
