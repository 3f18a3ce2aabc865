from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager
from .company import Company


# ---------- Category (UI grouping only) ----------
class Category(models.Model):
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    name = models.CharField(max_length=120)
    description = models.TextField(blank=True)
    color = models.CharField(max_length=7, default="#6b7280")

    objects = TenantManager()

    class Meta:
        verbose_name_plural = "categories"
        constraints = [
            models.UniqueConstraint(
                fields=["company", "name"], name="uq_company_category_name"
            )
        ]

    def __str__(self):
        return self.name


# ---------- Unit of measure (display only) ----------
class UnitOfMeasure(models.Model):
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    name = models.CharField(max_length=80)
    code = models.CharField(max_length=16)  # "PC", "HR"

    objects = TenantManager()

    class Meta:
        verbose_name = "unit of measure"
        verbose_name_plural = "units of measure"
        constraints = [
            models.UniqueConstraint(
                fields=["company", "code"], name="uq_company_uom_code"
            )
        ]

    def __str__(self):
        return f"{self.name} ({self.code})"

    def clean(self):
        self.code = (self.code or "").strip().upper()
        if not self.code:
            raise ValidationError({"code": ["Code is required."]})

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)


# ---------- Catalog items ----------
class CatalogItem(models.Model):
    """
    Template for new line items. Lines copy name/description when added;
    the rate is a hint only and is never used as a line's price.
    """
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    rate = models.DecimalField(
        max_digits=18, decimal_places=4, default=Decimal("0.00")
    )
    category = models.ForeignKey(
        Category,
        null=True,
        blank=True,
        # deleting a category just ungroups its items
        on_delete=models.SET_NULL,
        related_name="items",
    )
    gst_applicable = models.BooleanField(default=False)

    objects = TenantManager()

    class Meta:
        indexes = [models.Index(fields=["company", "name"], name="catalogitem_company_name_idx")]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(rate__gte=0), name="catalogitem_rate_non_negative"
            ),
        ]

    def __str__(self):
        return self.name

    def clean(self):
        if self.category and self.category.company_id != self.company_id:
            raise ValidationError(
                "Category must belong to the same company as the item."
            )

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)
