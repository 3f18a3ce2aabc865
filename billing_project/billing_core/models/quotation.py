from django.core.exceptions import ValidationError
from django.db import models

from .document import IssuedDocument, LineItem

QT_STATUS_CHOICES = [
    ("draft", "Draft"),
    ("sent", "Sent"),
    ("accepted", "Accepted"),
    ("rejected", "Rejected"),
    ("converted", "Converted"),
]


class Quotation(IssuedDocument):  # Represents a price offer to a client
    document_type = "quotation"

    status = models.CharField(
        max_length=10, choices=QT_STATUS_CHOICES, default="draft"
    )
    """ Workflow:
        draft → sent → accepted | rejected
        accepted → converted (an invoice was generated)
        "expired" is shown when a sent quotation is past expiry_date,
        it is never stored. """

    expiry_date = models.DateField(null=True, blank=True)

    class Meta(IssuedDocument.Meta):
        indexes = [
            models.Index(fields=["company", "status"], name="qt_company_status_idx"),
            models.Index(fields=["company", "client"], name="qt_company_client_idx"),
        ]

    def clean(self):
        super().clean()
        if self.expiry_date and self.issue_date and self.expiry_date < self.issue_date:
            raise ValidationError({"expiry_date": ["Expiry date must be >= issue date"]})


class QuotationLine(LineItem):
    quotation = models.ForeignKey(
        Quotation, on_delete=models.CASCADE, related_name="lines"
    )
