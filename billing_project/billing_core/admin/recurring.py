from django.contrib import admin, messages

from billing_core.models import RecurringInvoiceTemplate
from ..services.recurring import generate_invoice_from_template
from .inlines import RecurringInvoiceLineInline
from .mixins import TenantAdminMixin


@admin.register(RecurringInvoiceTemplate)
class RecurringInvoiceTemplateAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = (
        "id", "company", "client", "frequency", "status", "auto_bill",
        "start_date", "end_date", "next_generation_date", "grand_total",
    )
    list_filter = ("company", "status", "frequency", "auto_bill")
    search_fields = ("client__name",)
    inlines = [RecurringInvoiceLineInline]
    readonly_fields = (
        "subtotal", "discount_total", "tax_total", "grand_total", "last_generated_at",
    )
    actions = ["generate_now"]

    @admin.action(description="Generate the due invoice now")
    def generate_now(self, request, queryset):
        generated = 0
        for template in queryset:
            invoice = generate_invoice_from_template(template.pk)
            if invoice is None:
                self.message_user(request, f"{template}: nothing due", level=messages.INFO)
            else:
                generated += 1
        self.message_user(request, f"Generated {generated} invoice(s).", level=messages.SUCCESS)

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related("company", "client")
