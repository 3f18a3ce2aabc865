from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from ..services.currency import is_valid_currency_code


# ---------- Tenant / Company ----------
class Company(models.Model):

    """Tenant / Organization"""
    name = models.CharField(max_length=200)

    slug = models.SlugField(  # A URL-friendly identifier
        max_length=80, unique=True  # no two companies can have the same slug
    )

    # Link to a user account (creator or admin of company)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        # if user is deleted, company record stays, owner is set to NULL
        on_delete=models.SET_NULL,
        related_name="billing_companies",
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name_plural = "companies"

    def __str__(self):
        return self.name


# ---------- Company settings ----------
class CompanySettings(models.Model):
    """
    Per-company billing configuration.
    Passed explicitly into the currency and lifecycle rules,
    never read as ambient state inside them.
    """
    company = models.OneToOneField(
        Company, on_delete=models.CASCADE, related_name="billing_settings"
    )
    # Name printed on documents and share pages
    company_name = models.CharField(max_length=200, blank=True)

    # Default currency for new documents
    currency = models.CharField(max_length=3, default="USD")
    # Reporting currency, documents in any other currency need a rate
    base_currency = models.CharField(max_length=3, default="USD")

    default_tax_id = models.CharField(max_length=64, blank=True)

    # Numbering: QT-2026-001 / INV-0001
    invoice_prefix = models.CharField(max_length=16, default="INV-")
    quotation_prefix = models.CharField(max_length=16, default="QT-")

    terms_template = models.TextField(blank=True)

    # Due date of converted invoices = issue date + payment_terms_days
    payment_terms_days = models.PositiveSmallIntegerField(default=30)

    class Meta:
        verbose_name_plural = "company settings"

    def __str__(self):
        return f"Settings for {self.company}"

    @classmethod
    def for_company(cls, company):
        settings_obj, _ = cls.objects.get_or_create(
            company=company, defaults={"company_name": company.name}
        )
        return settings_obj

    def clean(self):
        self.currency = (self.currency or "").upper()
        self.base_currency = (self.base_currency or "").upper()
        errors = {}
        for field in ("currency", "base_currency"):
            if not is_valid_currency_code(getattr(self, field)):
                errors[field] = ["Must be an ISO 4217 code (3 uppercase letters)."]
        if errors:
            raise ValidationError(errors)

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
