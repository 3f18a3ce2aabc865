from decimal import Decimal

from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from ..managers import LineItemManager, TenantManager
from ..services.calculations import (DocumentTotals, calculate_document_totals,
                                     line_amounts)
from ..services.currency import resolve_document
from ..services.state_machine import derive_display_status, transition
from .catalog import CatalogItem
from .client import Client
from .company import Company

PERCENT_VALIDATORS = [MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("100"))]


def money_field(**kwargs):
    kwargs.setdefault("default", Decimal("0.00"))
    return models.DecimalField(max_digits=18, decimal_places=2, **kwargs)


# ---------- Shared document header ----------
class PricedDocument(models.Model):
    """Client + priced lines + currency. Base of every billing document."""

    # "quotation" / "invoice" / "recurring_invoice", used by the state machine
    document_type = None

    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    # prevent deleting a client that still has documents
    client = models.ForeignKey(
        Client, on_delete=models.PROTECT, related_name="%(class)ss"
    )

    notes = models.TextField(blank=True)
    terms = models.TextField(blank=True)

    # ISO code; resolved against CompanySettings when the document is created
    currency = models.CharField(max_length=3)
    # 1 document unit = exchange_rate base units, recorded at issuance
    exchange_rate = models.DecimalField(
        max_digits=18, decimal_places=6, null=True, blank=True
    )

    # Stored copies of the line arithmetic, rounded to cents
    subtotal = money_field()
    discount_total = money_field()
    tax_total = money_field()
    grand_total = money_field()

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        abstract = True

    def computed_totals(self) -> DocumentTotals:
        # no pk means no lines yet
        if not getattr(self, "pk", None):
            return DocumentTotals()
        return calculate_document_totals(self.lines.all())

    def recalc_totals(self):
        """Copy the (rounded) line arithmetic onto the header fields."""
        totals = self.computed_totals().rounded()
        self.subtotal = totals.subtotal
        self.discount_total = totals.discount_total
        self.tax_total = totals.tax_total
        self.grand_total = totals.grand_total
        return totals

    def currency_resolution(self, company_settings):
        return resolve_document(self, company_settings)

    def transition_to(self, new_status, save=True):
        """Move to ``new_status`` if the state machine allows it."""
        transition(self, new_status)
        if save:
            self.save(update_fields=["status", "updated_at"])
        return self

    def clean(self):
        if self.client_id and self.company_id:
            if self.client.company_id != self.company_id:
                raise ValidationError("Client must belong to the same company.")

    def save(self, *args, **kwargs):
        # Partial saves come from services that already validated
        if not kwargs.get("update_fields"):
            self.full_clean()
        return super().save(*args, **kwargs)


class IssuedDocument(PricedDocument):
    """A numbered document with an issue date and a lifecycle status."""

    # server-assigned, immutable once set
    number = models.CharField(max_length=64, blank=True)
    issue_date = models.DateField()

    class Meta:
        abstract = True
        constraints = [
            # Within one company, each number must be unique
            models.UniqueConstraint(
                fields=["company", "number"],
                condition=~models.Q(number=""),
                name="uq_%(class)s_company_number",
            )
        ]

    def __str__(self):
        # If no number yet, fall back to database ID
        return f"{self.__class__.__name__} {self.number or self.pk}"

    def clean(self):
        super().clean()
        if self.pk:
            orig = type(self).objects.filter(pk=self.pk).values("number").first()
            if orig and orig["number"] and orig["number"] != self.number:
                raise ValidationError(
                    {"number": ["Document number cannot change once issued."]}
                )

    def display_status(self, today=None):
        return derive_display_status(self, today)


# ---------- Line items ----------
class LineItem(models.Model):
    """
    One priced row. Name, description and price are copied onto the line;
    later edits to the catalog item never change existing lines.
    """
    # weak reference, the line survives its catalog item
    item = models.ForeignKey(
        CatalogItem,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)

    quantity = models.DecimalField(
        max_digits=14, decimal_places=4, default=Decimal("1")
    )
    # in the document's currency
    price = models.DecimalField(
        max_digits=18, decimal_places=4, default=Decimal("0.00")
    )
    discount_percent = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal("0"),
        validators=PERCENT_VALIDATORS,
    )
    tax_percent = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal("0"),
        validators=PERCENT_VALIDATORS,
    )
    uom_code = models.CharField(max_length=16, default="PC")

    # display order only
    position = models.PositiveIntegerField(default=0)

    objects = LineItemManager()

    class Meta:
        abstract = True
        ordering = ["position", "id"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gt=0) & models.Q(price__gte=0),
                name="%(class)s_positive_qty_price",
            ),
        ]

    def __str__(self):
        return f"{self.name} x {self.quantity}"

    @property
    def amounts(self):
        return line_amounts(self)

    @property
    def line_total(self):
        return self.amounts.rounded().total

    def clean(self):
        if self.quantity is not None and self.quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be > 0"]})
        if self.price is not None and self.price < 0:
            raise ValidationError({"price": ["Price must be >= 0"]})
        self.uom_code = (self.uom_code or "PC").upper()

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)
