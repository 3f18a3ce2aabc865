from django.conf import settings
from django.db import models

from ..managers import TenantManager
from .company import Company


# ---------- Audit / Event log ----------
class AuditLog(models.Model):
    # Associate log entry with a tenant
    company = models.ForeignKey(
        Company,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
    )
    # Which user performed the action
    # (Nullable for guests and background jobs)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL
    )
    # "guest" for share-link actions, "system" for scheduled jobs
    actor = models.CharField(max_length=150, blank=True)
    action = models.CharField(
        max_length=50
    )  # e.g. transition, apply_payment, convert, accept
    object_type = models.CharField(
        max_length=100
    )  # (e.g., "Invoice", "Quotation", "ShareLink")
    object_id = models.CharField(max_length=100)
    # Store actual before/after details of what changed, in JSON format
    changes = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["company", "created_at"], name="auditlog_company_created_idx"),
            models.Index(fields=["object_type", "object_id"], name="auditlog_object_idx"),
        ]

    def __str__(self):
        time = self.created_at
        who = self.user or self.actor
        return f"[{time:%Y-%m-%d %H:%M}] {who} {self.action} {self.object_type}({self.object_id})"
