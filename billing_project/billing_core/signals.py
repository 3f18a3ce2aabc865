from django.core.exceptions import ValidationError
from django.db.models.signals import post_delete, post_save, pre_delete
from django.dispatch import receiver

from .models import (Invoice, InvoiceLine, Payment, Quotation, QuotationLine,
                     RecurringInvoiceLine, RecurringInvoiceTemplate)
from .services.payment import reconcile_invoice

""" Block invoice deletion if any payments are recorded."""


# pre_delete signal auto-fires just before Django deletes a model instance
@receiver(pre_delete, sender=Invoice)
def prevent_delete_invoice_with_payments(sender, instance, **kwargs):
    if Payment.objects.filter(invoice=instance).exists():
        raise ValidationError("Cannot delete invoice with recorded payments.")


"""
    Recalculate document totals when a line is added/updated/removed.
    Line sender -> (document model, fk attribute on the line)
"""
LINE_PARENTS = {
    QuotationLine: (Quotation, "quotation_id"),
    InvoiceLine: (Invoice, "invoice_id"),
    RecurringInvoiceLine: (RecurringInvoiceTemplate, "template_id"),
}


def _recalc_parent(sender, instance):
    model, fk = LINE_PARENTS[sender]
    document = model.objects.filter(pk=getattr(instance, fk)).first()
    if document is None:
        # parent is being deleted along with its lines
        return
    document.recalc_totals()
    fields = ["subtotal", "discount_total", "tax_total", "grand_total", "updated_at"]
    if model is Invoice:
        fields.append("balance_due")
    # save totals only, no need to revalidate the header here
    document.save(update_fields=fields)


@receiver((post_save, post_delete), sender=QuotationLine)
@receiver((post_save, post_delete), sender=InvoiceLine)
@receiver((post_save, post_delete), sender=RecurringInvoiceLine)
def document_line_changed(sender, instance, **kwargs):
    _recalc_parent(sender, instance)


"""Removing a payment walks the invoice balance and status back."""


@receiver(post_delete, sender=Payment)
def payment_deleted(sender, instance, **kwargs):
    if Invoice.objects.filter(pk=instance.invoice_id).exists():
        reconcile_invoice(instance.invoice_id)
