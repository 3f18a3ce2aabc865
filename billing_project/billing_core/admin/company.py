from django.contrib import admin

from billing_core.models import Client, Company, CompanySettings

from .mixins import TenantAdminMixin


class CompanySettingsInline(admin.StackedInline):
    model = CompanySettings
    can_delete = False
    extra = 0


# Register `Company` model in admin with this custom config
@admin.register(Company)
class CompanyAdmin(admin.ModelAdmin):
    """a clean admin table for browsing companies"""

    # columns shown in company list view
    list_display = ("id", "name", "slug", "owner", "created_at")
    search_fields = ("name", "slug")  # enable search by name and slug
    ordering = ("name",)  # sort companies alphabetically by default
    prepopulated_fields = {"slug": ("name",)}
    inlines = [CompanySettingsInline]

    def get_queryset(self, request):
        qs = super().get_queryset(request).select_related("owner", "billing_settings")
        if request.user.is_superuser:
            return qs
        return qs.filter(owner=request.user)


# Register `Client` model
@admin.register(Client)
class ClientAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("id", "company", "name", "email", "phone", "status", "tax_id")
    search_fields = ("name", "email", "company_name")
    list_filter = ("company", "status")

    # Fetch everything in one SQL join
    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related("company")
