from django.contrib import admin

from billing_core.models import CompanySettings, Quotation
from ..services.numbering import next_quotation_number
from .actions import convert_accepted_quotations, mark_as_sent
from .inlines import QuotationLineInline
from .mixins import TenantAdminMixin


# Register `Quotation` model
@admin.register(Quotation)
class QuotationAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = (
        "id", "company", "number", "client", "issue_date", "expiry_date",
        "status", "shown_status", "currency", "grand_total",
    )
    list_filter = ("company", "status", "issue_date")
    search_fields = ("number", "client__name")
    actions = [mark_as_sent, convert_accepted_quotations]
    inlines = [QuotationLineInline]
    readonly_fields = (
        "number", "status", "subtotal", "discount_total", "tax_total", "grand_total",
    )

    @admin.display(description="Shown as")
    def shown_status(self, obj):
        # expired is computed, never stored
        return obj.display_status()

    def save_model(self, request, obj, form, change):
        if not obj.number and obj.company_id:
            obj.number = next_quotation_number(
                obj.company, CompanySettings.for_company(obj.company), today=obj.issue_date
            )
        super().save_model(request, obj, form, change)

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related("company", "client")

    def get_readonly_fields(self, request, obj=None):
        if obj and obj.status != "draft":
            editable = {"notes", "terms"}
            return [f.name for f in self.model._meta.fields if f.name not in editable]
        return super().get_readonly_fields(request, obj)
