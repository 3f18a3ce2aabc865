from django.contrib import admin

from billing_core.models import (InvoiceLine, Payment, QuotationLine,
                                 RecurringInvoiceLine)

# ---------- Helpful inline admin classes ----------

LINE_FIELDS = (
    "position", "item", "name", "description", "quantity", "uom_code",
    "price", "discount_percent", "tax_percent", "line_total",
)


class _DocumentLineInline(admin.TabularInline):
    """Shared layout for the priced lines of every document type"""

    extra = 0  # don’t show “empty” rows by default (prevents clutter)
    fields = LINE_FIELDS
    # computed from quantity/price/discount/tax, never typed in
    readonly_fields = ("line_total",)
    ordering = ("position", "id")

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("item")

    # Lines are frozen once the document leaves draft
    def _locked(self, obj):
        return obj is not None and getattr(obj, "status", "draft") not in ("draft", "active", "paused")

    def get_readonly_fields(self, request, obj=None):
        if self._locked(obj):
            return [f for f in LINE_FIELDS]
        return self.readonly_fields

    def has_add_permission(self, request, obj=None):
        if self._locked(obj):
            return False
        return super().has_add_permission(request, obj)

    def has_delete_permission(self, request, obj=None):
        if self._locked(obj):
            return False
        return super().has_delete_permission(request, obj)


class QuotationLineInline(_DocumentLineInline):
    model = QuotationLine


class InvoiceLineInline(_DocumentLineInline):
    model = InvoiceLine


class RecurringInvoiceLineInline(_DocumentLineInline):
    model = RecurringInvoiceLine


class PaymentInline(admin.TabularInline):
    """Payments recorded against an invoice. Record/remove through the API
    so the balance and status stay reconciled."""

    model = Payment
    extra = 0
    fields = ("payment_date", "amount", "payment_method", "reference", "notes")
    readonly_fields = fields
    can_delete = False
    show_change_link = False

    def has_add_permission(self, request, obj=None):
        return False
