from django.db import models

from ..managers import TenantManager
from .company import Company

CLIENT_STATUS_CHOICES = [
    ("active", "Active"),
    ("inactive", "Inactive"),
    ("new", "New"),
]


# ---------- Client ----------
# Represents who receives quotations and invoices
class Client(models.Model):
    # Multi-tenant: every client belongs to a single company.
    company = models.ForeignKey(Company, on_delete=models.CASCADE)

    name = models.CharField(max_length=200)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=32, blank=True)
    address = models.TextField(blank=True)
    status = models.CharField(
        max_length=10, choices=CLIENT_STATUS_CHOICES, default="new"
    )
    # The client's own organisation (the tenant is `company`)
    company_name = models.CharField(max_length=200, blank=True)
    tax_id = models.CharField(max_length=64, blank=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "name"], name="client_company_name_idx"),
            models.Index(fields=["company", "status"], name="client_company_status_idx"),
        ]

    def __str__(self):
        return self.name
