"""
Recurring invoice schedule and generation.

Month based steps use dateutil's relativedelta, which clamps to the last
day of shorter months (Jan 31 + 1 month = Feb 28/29).
"""
import datetime
import logging

from dateutil.relativedelta import relativedelta
from django.db import transaction
from django.utils import timezone

from ..models import (CompanySettings, Invoice, InvoiceLine,
                      RecurringInvoiceTemplate)
from .audit_helper import log_action
from .conversion import LINE_SNAPSHOT_FIELDS
from .numbering import lock_settings, next_invoice_number

logger = logging.getLogger(__name__)

FREQUENCY_STEPS = {
    "daily": relativedelta(days=1),
    "weekly": relativedelta(weeks=1),
    "monthly": relativedelta(months=1),
    "quarterly": relativedelta(months=3),
    "annually": relativedelta(years=1),
}

# what a generated invoice starts as, per auto_bill setting
AUTO_BILL_STATUS = {
    "enabled": "sent",
    "opt_in": "draft",
}


def step_for(frequency) -> relativedelta:
    try:
        return FREQUENCY_STEPS[frequency]
    except KeyError:
        raise ValueError(f"Unknown frequency: {frequency}") from None


def next_generation_date(frequency, last: datetime.date, periods=1) -> datetime.date:
    # periods multiply from one anchor so the 31st comes back where the month allows
    return last + step_for(frequency) * periods


def following_date(template, after: datetime.date) -> datetime.date:
    """First scheduled date after ``after``, counted from the start date."""
    period = 1
    while next_generation_date(template.frequency, template.start_date, period) <= after:
        period += 1
    return next_generation_date(template.frequency, template.start_date, period)


def due_date_for(issue_date: datetime.date, due_date_days) -> datetime.date:
    return issue_date + datetime.timedelta(days=int(due_date_days))


def invoice_status_for(auto_bill):
    """None means nothing should be generated."""
    return AUTO_BILL_STATUS.get(auto_bill)


def generate_schedule(template, count=12, today=None):
    """Upcoming (issue_date, due_date) pairs, up to ``count``, never past end_date."""
    today = today or timezone.localdate()
    earliest = max(today, template.next_generation_date or template.start_date)
    schedule = []
    period = 0
    while len(schedule) < count:
        issue = next_generation_date(template.frequency, template.start_date, period)
        period += 1
        if issue > template.end_date:
            break
        if issue < earliest:
            continue
        schedule.append((issue, due_date_for(issue, template.due_date_days)))
    return schedule


def _complete(template):
    template.next_generation_date = None
    template.transition_to("completed", save=False)
    template.save(update_fields=["status", "next_generation_date", "updated_at"])


def generate_invoice_from_template(template_id, today=None):
    """
    Create one invoice for a due template and advance its schedule.
    Returns the invoice, or None when nothing was due.
    """
    today = today or timezone.localdate()
    with transaction.atomic():
        template = RecurringInvoiceTemplate.objects.select_for_update().get(pk=template_id)
        if template.status != "active":
            return None

        issue_date = template.next_generation_date or template.start_date
        if issue_date > today:
            return None
        if issue_date > template.end_date:
            _complete(template)
            return None

        status = invoice_status_for(template.auto_bill)
        if status is None:
            logger.debug("Auto-bill disabled for template %s, skipping", template.pk)
            return None

        company_settings = lock_settings(CompanySettings.for_company(template.company))
        invoice = Invoice.objects.create(
            company=template.company,
            client=template.client,
            number=next_invoice_number(template.company, company_settings),
            issue_date=issue_date,
            due_date=due_date_for(issue_date, template.due_date_days),
            notes=template.notes,
            terms=template.terms,
            currency=template.currency,
            exchange_rate=template.exchange_rate,
            recurring_template=template,
        )
        InvoiceLine.objects.bulk_create(
            InvoiceLine(invoice=invoice, **{f: getattr(line, f) for f in LINE_SNAPSHOT_FIELDS})
            for line in template.lines.all()
        )
        invoice.recalc_totals()
        invoice.save(update_fields=["subtotal", "discount_total", "tax_total",
                                    "grand_total", "balance_due", "updated_at"])
        if status == "sent":
            invoice.transition_to("sent")

        template.next_generation_date = following_date(template, issue_date)
        template.last_generated_at = timezone.now()
        template.save(update_fields=["next_generation_date", "last_generated_at", "updated_at"])
        if template.next_generation_date > template.end_date:
            _complete(template)

        log_action(
            action="generate",
            instance=invoice,
            changes={"recurring_template": template.pk, "status": invoice.status,
                     "grand_total": str(invoice.grand_total)},
        )
    logger.info("Generated %s from recurring template %s", invoice, template_id)
    return invoice


def generate_due_invoices(today=None):
    """One invoice per due template per run."""
    today = today or timezone.localdate()
    due = RecurringInvoiceTemplate.objects.filter(
        status="active", next_generation_date__lte=today
    ).values_list("pk", flat=True)
    generated = []
    for template_id in list(due):
        invoice = generate_invoice_from_template(template_id, today=today)
        if invoice is not None:
            generated.append(invoice)
    return generated
