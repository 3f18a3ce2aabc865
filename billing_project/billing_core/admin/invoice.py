from django.contrib import admin
from django.db.models import Prefetch

from billing_core.models import CompanySettings, Invoice, InvoiceLine, Payment
from ..services.numbering import next_invoice_number
from .actions import mark_as_sent
from .inlines import InvoiceLineInline, PaymentInline
from .mixins import TenantAdminMixin


# Register `Invoice` model
@admin.register(Invoice)
class InvoiceAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = (
        "id",
        "company",
        "number",
        "client",
        "issue_date",
        "due_date",
        "status",
        "shown_status",
        "currency",
        "grand_total",
        "balance_due",
    )
    list_filter = ("company", "status", "currency", "issue_date")
    actions = [mark_as_sent]
    search_fields = ("number", "client__name")
    inlines = [InvoiceLineInline, PaymentInline]
    # totals and balance come from lines and payments
    readonly_fields = (
        "number", "status", "subtotal", "discount_total", "tax_total",
        "grand_total", "balance_due", "acknowledged_at", "source_quotation",
        "recurring_template",
    )

    @admin.display(description="Shown as")
    def shown_status(self, obj):
        # overdue is computed, never stored
        return obj.display_status()

    def save_model(self, request, obj, form, change):
        if not obj.number and obj.company_id:
            obj.number = next_invoice_number(obj.company, CompanySettings.for_company(obj.company))
        if not change:
            obj.balance_due = obj.grand_total
        super().save_model(request, obj, form, change)

    """
        For each Invoice, prefetch all its lines and their catalog items.
    """
    def get_queryset(self, request):
        qs = super().get_queryset(request)
        # Use a SQL join so it fetches company & client
        # in the same query as Invoice
        return qs.select_related("company", "client").prefetch_related(
            Prefetch("lines", queryset=InvoiceLine.objects.select_related("item")),
        )

    """ Enforce immutability at admin level """

    def get_readonly_fields(self, request, obj=None):
        # Once sent, the document is part of the audit trail
        if obj and obj.status != "draft":
            editable = {"notes", "terms"}
            return [f.name for f in self.model._meta.fields if f.name not in editable]
        return super().get_readonly_fields(request, obj)

    def has_delete_permission(self, request, obj=None):
        # paid or partially paid invoices keep their history
        if obj and obj.status in ("paid", "partial"):
            return False  # removes “Delete” option from admin for that invoice
        return super().has_delete_permission(request, obj)


# Register `Payment` model, read-only listing
@admin.register(Payment)
class PaymentAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("id", "company", "invoice", "amount", "payment_date", "payment_method", "reference")
    list_filter = ("company", "payment_method", "payment_date")
    search_fields = ("invoice__number", "reference")

    # Changes must go through the payment service to keep balances right
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    # Fetch everything in one SQL join
    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related("company", "invoice")
