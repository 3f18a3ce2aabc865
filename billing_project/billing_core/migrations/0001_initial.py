import django.core.validators
import django.db.models.deletion
from decimal import Decimal

from django.conf import settings
from django.db import migrations, models


PERCENT_VALIDATORS = [
    django.core.validators.MinValueValidator(Decimal("0")),
    django.core.validators.MaxValueValidator(Decimal("100")),
]


def money():
    return models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)


def priced_document_fields(related_name):
    return [
        ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
        ("notes", models.TextField(blank=True)),
        ("terms", models.TextField(blank=True)),
        ("currency", models.CharField(max_length=3)),
        ("exchange_rate", models.DecimalField(blank=True, decimal_places=6, max_digits=18, null=True)),
        ("subtotal", money()),
        ("discount_total", money()),
        ("tax_total", money()),
        ("grand_total", money()),
        ("created_at", models.DateTimeField(auto_now_add=True)),
        ("updated_at", models.DateTimeField(auto_now=True)),
        ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="billing_core.company")),
        ("client", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT,
                                     related_name=related_name, to="billing_core.client")),
    ]


def line_fields(parent_name, parent_model):
    return [
        ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
        ("name", models.CharField(max_length=200)),
        ("description", models.TextField(blank=True)),
        ("quantity", models.DecimalField(decimal_places=4, default=Decimal("1"), max_digits=14)),
        ("price", models.DecimalField(decimal_places=4, default=Decimal("0.00"), max_digits=18)),
        ("discount_percent", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=5,
                                                 validators=PERCENT_VALIDATORS)),
        ("tax_percent", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=5,
                                            validators=PERCENT_VALIDATORS)),
        ("uom_code", models.CharField(default="PC", max_length=16)),
        ("position", models.PositiveIntegerField(default=0)),
        ("item", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                                   related_name="+", to="billing_core.catalogitem")),
        (parent_name, models.ForeignKey(on_delete=django.db.models.deletion.CASCADE,
                                        related_name="lines", to=parent_model)),
    ]


def line_options(model_name):
    return {
        "ordering": ["position", "id"],
        "abstract": False,
        "constraints": [
            models.CheckConstraint(
                condition=models.Q(("quantity__gt", 0), ("price__gte", 0)),
                name=f"{model_name}_positive_qty_price",
            ),
        ],
    }


def number_constraint(model_name):
    return models.UniqueConstraint(
        condition=models.Q(("number", ""), _negated=True),
        fields=("company", "number"),
        name=f"uq_{model_name}_company_number",
    )


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        # ---------- Tenant ----------
        migrations.CreateModel(
            name="Company",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("slug", models.SlugField(max_length=80, unique=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("owner", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                                            related_name="billing_companies", to=settings.AUTH_USER_MODEL)),
            ],
            options={"verbose_name_plural": "companies"},
        ),
        migrations.CreateModel(
            name="CompanySettings",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("company_name", models.CharField(blank=True, max_length=200)),
                ("currency", models.CharField(default="USD", max_length=3)),
                ("base_currency", models.CharField(default="USD", max_length=3)),
                ("default_tax_id", models.CharField(blank=True, max_length=64)),
                ("invoice_prefix", models.CharField(default="INV-", max_length=16)),
                ("quotation_prefix", models.CharField(default="QT-", max_length=16)),
                ("terms_template", models.TextField(blank=True)),
                ("payment_terms_days", models.PositiveSmallIntegerField(default=30)),
                ("company", models.OneToOneField(on_delete=django.db.models.deletion.CASCADE,
                                                 related_name="billing_settings", to="billing_core.company")),
            ],
            options={"verbose_name_plural": "company settings"},
        ),
        migrations.CreateModel(
            name="Client",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("email", models.EmailField(blank=True, max_length=254)),
                ("phone", models.CharField(blank=True, max_length=32)),
                ("address", models.TextField(blank=True)),
                ("status", models.CharField(choices=[("active", "Active"), ("inactive", "Inactive"), ("new", "New")],
                                            default="new", max_length=10)),
                ("company_name", models.CharField(blank=True, max_length=200)),
                ("tax_id", models.CharField(blank=True, max_length=64)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="billing_core.company")),
            ],
            options={
                "indexes": [
                    models.Index(fields=["company", "name"], name="client_company_name_idx"),
                    models.Index(fields=["company", "status"], name="client_company_status_idx"),
                ],
            },
        ),
        # ---------- Catalog ----------
        migrations.CreateModel(
            name="Category",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=120)),
                ("description", models.TextField(blank=True)),
                ("color", models.CharField(default="#6b7280", max_length=7)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="billing_core.company")),
            ],
            options={
                "verbose_name_plural": "categories",
                "constraints": [
                    models.UniqueConstraint(fields=("company", "name"), name="uq_company_category_name"),
                ],
            },
        ),
        migrations.CreateModel(
            name="UnitOfMeasure",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=80)),
                ("code", models.CharField(max_length=16)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="billing_core.company")),
            ],
            options={
                "verbose_name": "unit of measure",
                "verbose_name_plural": "units of measure",
                "constraints": [
                    models.UniqueConstraint(fields=("company", "code"), name="uq_company_uom_code"),
                ],
            },
        ),
        migrations.CreateModel(
            name="CatalogItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("description", models.TextField(blank=True)),
                ("rate", models.DecimalField(decimal_places=4, default=Decimal("0.00"), max_digits=18)),
                ("gst_applicable", models.BooleanField(default=False)),
                ("category", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                                               related_name="items", to="billing_core.category")),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="billing_core.company")),
            ],
            options={
                "indexes": [models.Index(fields=["company", "name"], name="catalogitem_company_name_idx")],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("rate__gte", 0)),
                                           name="catalogitem_rate_non_negative"),
                ],
            },
        ),
        # ---------- Documents ----------
        migrations.CreateModel(
            name="Quotation",
            fields=priced_document_fields("quotations") + [
                ("number", models.CharField(blank=True, max_length=64)),
                ("issue_date", models.DateField()),
                ("status", models.CharField(
                    choices=[("draft", "Draft"), ("sent", "Sent"), ("accepted", "Accepted"),
                             ("rejected", "Rejected"), ("converted", "Converted")],
                    default="draft", max_length=10)),
                ("expiry_date", models.DateField(blank=True, null=True)),
            ],
            options={
                "abstract": False,
                "indexes": [
                    models.Index(fields=["company", "status"], name="qt_company_status_idx"),
                    models.Index(fields=["company", "client"], name="qt_company_client_idx"),
                ],
                "constraints": [number_constraint("quotation")],
            },
        ),
        migrations.CreateModel(
            name="RecurringInvoiceTemplate",
            fields=priced_document_fields("recurringinvoicetemplates") + [
                ("status", models.CharField(
                    choices=[("active", "Active"), ("paused", "Paused"), ("completed", "Completed")],
                    default="active", max_length=10)),
                ("frequency", models.CharField(
                    choices=[("daily", "Daily"), ("weekly", "Weekly"), ("monthly", "Monthly"),
                             ("quarterly", "Quarterly"), ("annually", "Annually")],
                    max_length=10)),
                ("start_date", models.DateField()),
                ("end_date", models.DateField()),
                ("due_date_days", models.PositiveSmallIntegerField(
                    default=30,
                    validators=[django.core.validators.MinValueValidator(1),
                                django.core.validators.MaxValueValidator(30)])),
                ("auto_bill", models.CharField(
                    choices=[("disabled", "Disabled"), ("enabled", "Enabled"), ("opt_in", "Opt-in")],
                    default="opt_in", max_length=10)),
                ("next_generation_date", models.DateField(blank=True, null=True)),
                ("last_generated_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "indexes": [
                    models.Index(fields=["company", "status", "next_generation_date"],
                                 name="recurring_due_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Invoice",
            fields=priced_document_fields("invoices") + [
                ("number", models.CharField(blank=True, max_length=64)),
                ("issue_date", models.DateField()),
                ("status", models.CharField(
                    choices=[("draft", "Draft"), ("sent", "Sent"), ("partial", "Partially paid"),
                             ("paid", "Paid")],
                    default="draft", max_length=10)),
                ("due_date", models.DateField(blank=True, null=True)),
                ("balance_due", money()),
                ("acknowledged_at", models.DateTimeField(blank=True, null=True)),
                ("source_quotation", models.OneToOneField(
                    blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                    related_name="converted_invoice", to="billing_core.quotation")),
                ("recurring_template", models.ForeignKey(
                    blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                    related_name="generated_invoices", to="billing_core.recurringinvoicetemplate")),
            ],
            options={
                "abstract": False,
                "indexes": [
                    models.Index(fields=["company", "status"], name="inv_company_status_idx"),
                    models.Index(fields=["company", "client"], name="inv_company_client_idx"),
                    models.Index(fields=["company", "due_date"], name="inv_company_due_idx"),
                ],
                "constraints": [number_constraint("invoice")],
            },
        ),
        # ---------- Lines ----------
        migrations.CreateModel(
            name="QuotationLine",
            fields=line_fields("quotation", "billing_core.quotation"),
            options=line_options("quotationline"),
        ),
        migrations.CreateModel(
            name="InvoiceLine",
            fields=line_fields("invoice", "billing_core.invoice"),
            options=line_options("invoiceline"),
        ),
        migrations.CreateModel(
            name="RecurringInvoiceLine",
            fields=line_fields("template", "billing_core.recurringinvoicetemplate"),
            options=line_options("recurringinvoiceline"),
        ),
        # ---------- Payments ----------
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("amount", models.DecimalField(decimal_places=2, max_digits=18)),
                ("payment_date", models.DateField()),
                ("payment_method", models.CharField(
                    choices=[("cash", "Cash"), ("bank_transfer", "Bank transfer"), ("check", "Check"),
                             ("credit_card", "Credit card"), ("other", "Other")],
                    default="other", max_length=20)),
                ("reference", models.CharField(blank=True, max_length=120)),
                ("notes", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="billing_core.company")),
                ("invoice", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE,
                                              related_name="payments", to="billing_core.invoice")),
            ],
            options={
                "ordering": ["payment_date", "id"],
                "indexes": [models.Index(fields=["company", "invoice"], name="payment_company_invoice_idx")],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("amount__gt", 0)), name="payment_amount_positive"),
                ],
            },
        ),
        # ---------- Share links ----------
        migrations.CreateModel(
            name="ShareLink",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("document_type", models.CharField(choices=[("invoice", "Invoice"), ("quotation", "Quotation")],
                                                   max_length=10)),
                ("document_id", models.PositiveBigIntegerField()),
                ("token", models.CharField(editable=False, max_length=64, unique=True)),
                ("password_hash", models.CharField(blank=True, max_length=256)),
                ("is_active", models.BooleanField(default=True)),
                ("expires_at", models.DateTimeField(blank=True, null=True)),
                ("view_count", models.PositiveIntegerField(default=0)),
                ("last_accessed_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="billing_core.company")),
            ],
            options={
                "indexes": [
                    models.Index(fields=["company", "document_type", "document_id"],
                                 name="sharelink_document_idx"),
                ],
            },
        ),
        # ---------- Audit ----------
        migrations.CreateModel(
            name="AuditLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("actor", models.CharField(blank=True, max_length=150)),
                ("action", models.CharField(max_length=50)),
                ("object_type", models.CharField(max_length=100)),
                ("object_id", models.CharField(max_length=100)),
                ("changes", models.JSONField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("company", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                                              to="billing_core.company")),
                ("user", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                                           to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(fields=["company", "created_at"], name="auditlog_company_created_idx"),
                    models.Index(fields=["object_type", "object_id"], name="auditlog_object_idx"),
                ],
            },
        ),
    ]
