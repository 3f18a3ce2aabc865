from django.contrib import admin, messages
from django.core.exceptions import ValidationError

from billing_core.exceptions import BillingError
from billing_core.services.conversion import convert_quotation
from billing_core.services.update import send_invoice, send_quotation

# ---------- Admin actions ----------


def _report(modeladmin, request, done, total, verb):
    modeladmin.message_user(
        request,
        f"{verb} {done} of {total} selected.",
        level=messages.SUCCESS if done == total else messages.WARNING,
    )


""" Add button/action that calls the send workflow for each draft """


@admin.action(description="Mark selected as Sent")
def mark_as_sent(modeladmin, request, queryset):
    senders = {"quotation": send_quotation, "invoice": send_invoice}
    done = 0
    for document in queryset:
        try:
            # enforces the state machine instead of letting admins bypass it
            senders[document.document_type](document, user=request.user)
            done += 1
        except (ValidationError, BillingError) as e:
            modeladmin.message_user(request, f"{document}: {e}", level=messages.ERROR)
    _report(modeladmin, request, done, queryset.count(), "Sent")


""" Convert accepted quotations into draft (or sent) invoices """


@admin.action(description="Convert selected accepted quotations to invoices")
def convert_accepted_quotations(modeladmin, request, queryset):
    done = 0
    for qt in queryset:
        try:
            invoice = convert_quotation(qt.pk, user=request.user)
            modeladmin.message_user(request, f"{qt} → {invoice}")
            done += 1
        except (ValidationError, BillingError) as e:
            modeladmin.message_user(request, f"{qt}: {e}", level=messages.ERROR)
    _report(modeladmin, request, done, queryset.count(), "Converted")
