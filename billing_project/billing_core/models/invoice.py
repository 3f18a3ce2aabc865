from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Sum
from django.db.models.functions import Coalesce

from ..managers import TenantManager
from .company import Company
from .document import IssuedDocument, LineItem, money_field
from .quotation import Quotation

INV_STATUS_CHOICES = [
    ("draft", "Draft"),
    ("sent", "Sent"),
    ("partial", "Partially paid"),
    ("paid", "Paid"),
]

PAYMENT_METHOD_CHOICES = [
    ("cash", "Cash"),
    ("bank_transfer", "Bank transfer"),
    ("check", "Check"),
    ("credit_card", "Credit card"),
    ("other", "Other"),
]


class Invoice(IssuedDocument):  # Represents a customer invoice
    document_type = "invoice"

    status = models.CharField(
        max_length=10, choices=INV_STATUS_CHOICES, default="draft"
    )
    """ Workflow:
        draft = not yet issued.
        sent = issued, nothing paid.
        partial = some payments recorded.
        paid = balance is zero.
        "overdue" is derived from due_date, never stored. """

    due_date = models.DateField(null=True, blank=True)

    # Unpaid amount after payments are applied (authoritative copy)
    balance_due = money_field()

    # Set the first time a guest acknowledges the invoice via a share link
    acknowledged_at = models.DateTimeField(null=True, blank=True)

    # Where this invoice came from, if anywhere
    source_quotation = models.OneToOneField(
        Quotation,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="converted_invoice",
    )
    recurring_template = models.ForeignKey(
        "RecurringInvoiceTemplate",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="generated_invoices",
    )

    class Meta(IssuedDocument.Meta):
        indexes = [
            models.Index(fields=["company", "status"], name="inv_company_status_idx"),
            models.Index(fields=["company", "client"], name="inv_company_client_idx"),
            models.Index(fields=["company", "due_date"], name="inv_company_due_idx"),
        ]

    def paid_total(self) -> Decimal:
        if not self.pk:
            return Decimal("0.00")
        return self.payments.aggregate(
            total=Coalesce(Sum("amount"), Decimal("0.00"))
        )["total"]

    def recalc_totals(self):
        """ Keep stored totals and balance in sync with lines and payments """
        totals = super().recalc_totals()
        self.balance_due = self.grand_total - self.paid_total()
        return totals

    def clean(self):
        super().clean()
        if self.due_date and self.issue_date and self.due_date < self.issue_date:
            raise ValidationError({"due_date": ["Due date must be >= issue date"]})
        # payments can never exceed what is owed
        if self.balance_due is not None and self.balance_due < 0:
            raise ValidationError("Balance due cannot be negative")


class InvoiceLine(LineItem):
    invoice = models.ForeignKey(
        Invoice, on_delete=models.CASCADE, related_name="lines"
    )


class Payment(models.Model):  # Money received against one invoice
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    invoice = models.ForeignKey(
        Invoice, on_delete=models.CASCADE, related_name="payments"
    )
    # in the invoice's currency
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    payment_date = models.DateField()
    payment_method = models.CharField(
        max_length=20, choices=PAYMENT_METHOD_CHOICES, default="other"
    )
    reference = models.CharField(max_length=120, blank=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        ordering = ["payment_date", "id"]
        indexes = [models.Index(fields=["company", "invoice"], name="payment_company_invoice_idx")]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="payment_amount_positive",
            ),
        ]

    def __str__(self):
        return f"Payment {self.amount} → {self.invoice}"

    def clean(self):
        if self.amount is None or self.amount <= 0:
            raise ValidationError({"amount": ["Payment amount must be > 0"]})
        # Prevent cross-company contamination
        if self.invoice_id and self.company_id and self.invoice.company_id != self.company_id:
            raise ValidationError("Invoice must belong to the same company.")

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
