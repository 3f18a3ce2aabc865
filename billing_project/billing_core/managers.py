from django.db import models


# -----------------------------------------
# Enforce tenant scoping across all models
# that belong to a company
# -----------------------------------------
class TenantQuerySet(models.QuerySet):
    def for_company(self, company):
        return self.filter(company=company)

    def with_status(self, company, *statuses):
        return self.filter(company=company, status__in=statuses)
    # Enables query:
    # Invoice.objects.with_status(request.company, "sent", "partial")


# Attach TenantQuerySet to .objects
class TenantManager(models.Manager.from_queryset(TenantQuerySet)):
    pass


class ActiveShareLinkQuerySet(TenantQuerySet):
    def usable(self, now):
        """Links a guest may still open: active and not past expiry."""
        return self.filter(is_active=True).filter(
            models.Q(expires_at__isnull=True) | models.Q(expires_at__gt=now)
        )


class ShareLinkManager(models.Manager.from_queryset(ActiveShareLinkQuerySet)):
    pass


# Create a line from a catalog item, copying name/description but never the rate
class LineItemManager(models.Manager):
    def create_from_catalog(self, catalog_item, *, price, **kwargs):
        kwargs.setdefault("name", catalog_item.name)
        kwargs.setdefault("description", catalog_item.description)
        kwargs["item"] = catalog_item
        kwargs["price"] = price
        return super().create(**kwargs)
