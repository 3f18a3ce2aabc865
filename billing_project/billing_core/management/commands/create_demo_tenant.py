import datetime
import logging
from decimal import Decimal

from dateutil.relativedelta import relativedelta
from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils.text import slugify

from billing_core.models import (CatalogItem, Client, Company, CompanySettings,
                                 RecurringInvoiceLine, RecurringInvoiceTemplate)
from billing_core.services.conversion import convert_quotation
from billing_core.services.documents import create_document
from billing_core.services.payment import record_payment
from billing_core.services.share_links import create_share_link, share_url

logger = logging.getLogger(__name__)

User = get_user_model()


class Command(BaseCommand):
    help = (
        "Create a demo tenant (company), owner, and sample quotations, invoices, "
        "payments and a share link for trying the billing engine."
    )

    # Define command-line arguments
    def add_arguments(self, parser):
        parser.add_argument(
            "--company-name",  # Define flag
            default="Demo Company",
            help="Name of the demo company to create.",
        )
        parser.add_argument(
            "--username", default="demo", help="Username for the demo owner."
        )
        parser.add_argument(
            "--password", default="demo123", help="Password for the demo owner."
        )
        parser.add_argument(
            "--share-password",
            default=None,
            help="Protect the demo share link with this password.",
        )

    def unique_slug(self, name, max_tries=100):
        # "Test Ltd" -> "test-ltd", then "test-ltd-1", "test-ltd-2"...
        base = slugify(name) or "company"
        slug = base
        for i in range(1, max_tries + 1):
            if not Company.objects.filter(slug=slug).exists():
                return slug
            slug = f"{base}-{i}"
        raise RuntimeError("Couldn't generate unique slug")

    @transaction.atomic
    def handle(self, *args, **options):
        # Read arguments from add_arguments()
        company_name = options["company_name"]
        username = options["username"]
        password = options["password"]

        # 1. Owner
        user, created = User.objects.get_or_create(
            username=username, defaults={"email": f"{username}@example.com"}
        )
        if created:
            user.set_password(password)
            user.save()
        self.stdout.write(self.style.SUCCESS(f"Owner: {user.username} (pw={password})"))

        # 2. Company and its billing settings
        company = Company.objects.filter(name=company_name, owner=user).first()
        if company is None:
            company = Company.objects.create(
                name=company_name, slug=self.unique_slug(company_name), owner=user
            )
        company_settings = CompanySettings.for_company(company)
        company_settings.terms_template = "Payment due within 30 days."
        company_settings.save()
        self.stdout.write(self.style.SUCCESS(f"Created company: {company}"))

        # 3. Client and catalog
        client, _ = Client.objects.get_or_create(
            company=company,
            name=f"{company_name} Customer",
            defaults={"email": "accounts@customer.example", "status": "active"},
        )
        consulting, _ = CatalogItem.objects.get_or_create(
            company=company,
            name="Consulting",
            defaults={"description": "Hourly consulting", "rate": Decimal("120.00")},
        )
        hosting, _ = CatalogItem.objects.get_or_create(
            company=company,
            name="Hosting",
            defaults={"description": "Monthly hosting plan", "rate": Decimal("25.00")},
        )
        self.stdout.write(self.style.SUCCESS(f"Created client: {client}"))

        # 4. Quotation, accepted and converted to an invoice
        quotation = create_document("quotation", company, {
            "client_id": client.pk,
            "status": "sent",
            "expiry_date": datetime.date.today() + datetime.timedelta(days=30),
            "items": [
                {"item_id": consulting.pk, "name": consulting.name, "quantity": "10",
                 "price": "120", "discount_percent": "10", "tax_percent": "5"},
            ],
        }, user=user)
        quotation.transition_to("accepted")
        invoice = convert_quotation(quotation.pk, initial_status="sent", user=user)
        self.stdout.write(self.style.SUCCESS(
            f"Converted quotation {quotation.number} into invoice {invoice.number}"
        ))

        # 5. A part payment
        half = (invoice.grand_total / 2).quantize(Decimal("0.01"))
        payment = record_payment(
            invoice.pk, amount=half, payment_date=datetime.date.today(),
            payment_method="bank_transfer", reference="DEMO-1", user=user,
        )
        invoice.refresh_from_db()
        self.stdout.write(self.style.SUCCESS(
            f"Recorded payment {payment.amount}, balance due {invoice.balance_due}"
        ))

        # 6. Monthly hosting template
        template = RecurringInvoiceTemplate.objects.create(
            company=company,
            client=client,
            currency=company_settings.currency,
            frequency="monthly",
            start_date=datetime.date.today(),
            end_date=datetime.date.today() + relativedelta(years=1),
            auto_bill="opt_in",
        )
        RecurringInvoiceLine.objects.create(
            template=template, item=hosting, name=hosting.name,
            description=hosting.description, quantity=1, price=Decimal("25.00"),
        )
        self.stdout.write(self.style.SUCCESS(f"Created recurring template: {template}"))

        # 7. Share the quotation with the client
        link = create_share_link(quotation, password=options["share_password"], user=user)
        self.stdout.write(self.style.SUCCESS(f"Share link: {share_url(link)}"))
        logger.info("Demo tenant %s ready", company)
        self.stdout.write(self.style.SUCCESS("Demo tenant setup complete!"))
