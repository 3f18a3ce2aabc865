import datetime
import logging

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from ..exceptions import AlreadyConvertedError, StateConflictError
from ..models import CompanySettings, Invoice, InvoiceLine, Quotation
from .audit_helper import log_action
from .numbering import lock_settings, next_invoice_number

logger = logging.getLogger(__name__)

CONVERTED_INVOICE_STATUSES = ("draft", "sent")

# copied from each quotation line onto the new invoice line
LINE_SNAPSHOT_FIELDS = (
    "item_id", "name", "description", "quantity", "price",
    "discount_percent", "tax_percent", "uom_code", "position",
)


def converted_invoice_status(initial_status=None):
    status = initial_status or getattr(settings, "BILLING_CONVERTED_INVOICE_STATUS", "draft")
    if status not in CONVERTED_INVOICE_STATUSES:
        raise ValidationError(
            {"status": [f"Converted invoices start as draft or sent, not '{status}'"]}
        )
    return status


def convert_quotation(quotation_id, *, issue_date=None, due_date=None,
                      initial_status=None, user=None) -> Invoice:
    """
    Snapshot an accepted quotation into a new invoice.
    The quotation ends up 'converted' and cannot be converted again.
    """
    status = converted_invoice_status(initial_status)

    with transaction.atomic():
        # Lock the quotation so two conversions cannot race
        qt = Quotation.objects.select_for_update().get(pk=quotation_id)

        if qt.status == "converted" or Invoice.objects.filter(source_quotation=qt).exists():
            raise AlreadyConvertedError(f"{qt} has already been converted to an invoice.")
        if qt.status != "accepted":
            raise StateConflictError(
                f"Only accepted quotations can be converted ({qt} is {qt.status})."
            )

        lines = list(qt.lines.all())
        if not lines:
            raise ValidationError("Quotation must have at least one line item to convert")

        company_settings = lock_settings(CompanySettings.for_company(qt.company))
        issue_date = issue_date or timezone.localdate()
        due_date = due_date or issue_date + datetime.timedelta(
            days=company_settings.payment_terms_days
        )
        if due_date < issue_date:
            raise ValidationError({"due_date": ["Due date must be >= issue date"]})

        invoice = Invoice.objects.create(
            company=qt.company,
            client=qt.client,
            number=next_invoice_number(qt.company, company_settings),
            issue_date=issue_date,
            due_date=due_date,
            notes=qt.notes,
            terms=qt.terms,
            currency=qt.currency,
            exchange_rate=qt.exchange_rate,
            source_quotation=qt,
        )
        # bulk_create skips per-line signals, totals are set once below
        InvoiceLine.objects.bulk_create(
            InvoiceLine(invoice=invoice, **{f: getattr(line, f) for f in LINE_SNAPSHOT_FIELDS})
            for line in lines
        )
        invoice.recalc_totals()  # balance_due == grand_total, no payments yet
        invoice.save(update_fields=["subtotal", "discount_total", "tax_total",
                                    "grand_total", "balance_due", "updated_at"])
        if status == "sent":
            invoice.transition_to("sent")

        qt.transition_to("converted")

        log_action(
            action="convert",
            instance=qt,
            user=user,
            changes={"invoice_id": invoice.pk, "invoice_number": invoice.number},
        )
        log_action(
            action="create",
            instance=invoice,
            user=user,
            changes={"source_quotation": qt.pk, "grand_total": str(invoice.grand_total),
                     "status": invoice.status},
        )
    logger.info("Converted %s into %s", qt, invoice)
    return invoice
