"""
Document numbers.

Quotations: {prefix}{YYYY}-{NNN}, e.g. QT-2026-001 (restarts every year).
Invoices:   {prefix}{NNNN},       e.g. INV-0023.
"""
import re

from django.utils import timezone

from ..models import CompanySettings, Invoice, Quotation


def lock_settings(company_settings):
    """
    Re-read the settings row with a lock. Call inside transaction.atomic();
    concurrent creates for one company then number one after another.
    """
    return CompanySettings.objects.select_for_update().get(pk=company_settings.pk)


def _next_sequence(queryset, prefix):
    pattern = re.compile(rf"^{re.escape(prefix)}(\d+)$")
    highest = 0
    # prefix match first, numeric max in Python so INV-10000 sorts after INV-9999
    for number in queryset.filter(number__startswith=prefix).values_list("number", flat=True):
        match = pattern.match(number)
        if match:
            highest = max(highest, int(match.group(1)))
    return highest + 1


def next_quotation_number(company, company_settings, today=None):
    year = (today or timezone.localdate()).year
    prefix = f"{company_settings.quotation_prefix}{year}-"
    sequence = _next_sequence(Quotation.objects.for_company(company), prefix)
    return f"{prefix}{sequence:03d}"


def next_invoice_number(company, company_settings):
    prefix = company_settings.invoice_prefix
    sequence = _next_sequence(Invoice.objects.for_company(company), prefix)
    return f"{prefix}{sequence:04d}"
