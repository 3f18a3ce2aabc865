from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from .document import LineItem, PricedDocument

FREQUENCY_CHOICES = [
    ("daily", "Daily"),
    ("weekly", "Weekly"),
    ("monthly", "Monthly"),
    ("quarterly", "Quarterly"),
    ("annually", "Annually"),
]

AUTO_BILL_CHOICES = [
    ("disabled", "Disabled"),  # nothing is generated
    ("enabled", "Enabled"),    # generated invoices are sent straight away
    ("opt_in", "Opt-in"),      # generated invoices wait as drafts
]

RECURRING_STATUS_CHOICES = [
    ("active", "Active"),
    ("paused", "Paused"),
    ("completed", "Completed"),
]


class RecurringInvoiceTemplate(PricedDocument):
    document_type = "recurring_invoice"

    status = models.CharField(
        max_length=10, choices=RECURRING_STATUS_CHOICES, default="active"
    )
    frequency = models.CharField(max_length=10, choices=FREQUENCY_CHOICES)
    start_date = models.DateField()
    end_date = models.DateField()
    # payment terms for each generated invoice
    due_date_days = models.PositiveSmallIntegerField(
        default=30, validators=[MinValueValidator(1), MaxValueValidator(30)]
    )
    auto_bill = models.CharField(
        max_length=10, choices=AUTO_BILL_CHOICES, default="opt_in"
    )

    next_generation_date = models.DateField(null=True, blank=True)
    last_generated_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        indexes = [
            models.Index(
                fields=["company", "status", "next_generation_date"], name="recurring_due_idx"
            ),
        ]

    def __str__(self):
        return f"Recurring {self.get_frequency_display()} for {self.client}"

    def clean(self):
        super().clean()
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValidationError({"end_date": ["End date must be >= start date"]})
        # first run happens on the start date
        if self.next_generation_date is None and self.status == "active":
            self.next_generation_date = self.start_date


class RecurringInvoiceLine(LineItem):
    template = models.ForeignKey(
        RecurringInvoiceTemplate, on_delete=models.CASCADE, related_name="lines"
    )
