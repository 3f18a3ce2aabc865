from django.core.exceptions import ValidationError
from django.db import models

from ..managers import ShareLinkManager
from .company import Company
from .invoice import Invoice
from .quotation import Quotation

SHARE_DOCUMENT_CHOICES = [
    ("invoice", "Invoice"),
    ("quotation", "Quotation"),
]

SHARE_DOCUMENT_MODELS = {
    "invoice": Invoice,
    "quotation": Quotation,
}


class ShareLink(models.Model):
    """
    Token that lets someone outside the company view one document.
    Several links may point at the same document. Deactivation is final.
    """
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    document_type = models.CharField(max_length=10, choices=SHARE_DOCUMENT_CHOICES)
    document_id = models.PositiveBigIntegerField()

    # opaque and unguessable, generated server side
    token = models.CharField(max_length=64, unique=True, editable=False)
    # Django password hash, never serialized
    password_hash = models.CharField(max_length=256, blank=True)

    is_active = models.BooleanField(default=True)
    expires_at = models.DateTimeField(null=True, blank=True)

    view_count = models.PositiveIntegerField(default=0)
    last_accessed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = ShareLinkManager()

    class Meta:
        indexes = [
            models.Index(
                fields=["company", "document_type", "document_id"], name="sharelink_document_idx"
            ),
        ]

    def __str__(self):
        return f"Share {self.document_type} #{self.document_id} ({self.token[:8]}…)"

    @property
    def has_password(self):
        return bool(self.password_hash)

    def get_document(self):
        model = SHARE_DOCUMENT_MODELS[self.document_type]
        return model.objects.get(pk=self.document_id, company_id=self.company_id)

    def clean(self):
        # once off, a link stays off
        if self.pk and self.is_active:
            stored = ShareLink.objects.filter(pk=self.pk).values("is_active").first()
            if stored and not stored["is_active"]:
                raise ValidationError("A deactivated share link cannot be reactivated.")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)
