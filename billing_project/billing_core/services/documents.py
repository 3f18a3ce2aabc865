"""
Create and edit quotations/invoices from request payloads (snake_case keys).

Prices always come from the payload. A catalog item only contributes its
name/description when the line leaves them empty.
"""
import datetime
import logging

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils.dateparse import parse_date

from ..exceptions import StateConflictError
from ..models import (CatalogItem, Client, CompanySettings, Invoice,
                      InvoiceLine, Quotation, QuotationLine)
from .audit_helper import log_action
from .calculations import to_decimal
from .currency import ensure_rate_frozen
from .numbering import lock_settings, next_invoice_number, next_quotation_number
from .update import change_status
from .validation import validate_document_draft

logger = logging.getLogger(__name__)

DOCUMENT_MODELS = {
    "quotation": (Quotation, QuotationLine, "quotation"),
    "invoice": (Invoice, InvoiceLine, "invoice"),
}

# fields a sent document may still change
POST_ISSUE_EDITABLE = {"notes", "terms"}


def parse_payload_date(value, field, *, required=False):
    if value in (None, ""):
        if required:
            raise ValidationError({field: [f"{field} is required"]})
        return None
    if isinstance(value, datetime.date):
        return value
    parsed = parse_date(str(value))
    if parsed is None:
        raise ValidationError({field: [f"{field} must be a date (YYYY-MM-DD)"]})
    return parsed


def _line_kwargs(company, item, position):
    catalog_item = None
    if item.get("item_id"):
        catalog_item = CatalogItem.objects.for_company(company).filter(pk=item["item_id"]).first()
        if catalog_item is None:
            raise ValidationError({f"items[{position}].item_id": ["Unknown catalog item"]})
    return {
        "item": catalog_item,
        "name": item.get("name") or (catalog_item.name if catalog_item else ""),
        "description": item.get("description") or (catalog_item.description if catalog_item else ""),
        "quantity": to_decimal(item.get("quantity")),
        "price": to_decimal(item.get("price")),
        "discount_percent": to_decimal(item.get("discount_percent")),
        "tax_percent": to_decimal(item.get("tax_percent")),
        "uom_code": item.get("uom_code") or "PC",
        "position": position,
    }


def replace_lines(document, items):
    _, line_model, fk_name = DOCUMENT_MODELS[document.document_type]
    document.lines.all().delete()
    for position, item in enumerate(items):
        line_model.objects.create(**{fk_name: document}, **_line_kwargs(document.company, item, position))


def _finalize_totals(document):
    document.recalc_totals()
    fields = ["subtotal", "discount_total", "tax_total", "grand_total", "updated_at"]
    if document.document_type == "invoice":
        fields.append("balance_due")
    document.save(update_fields=fields)


def create_document(kind, company, payload, *, user=None):
    """Validate a draft and persist it with its lines and server-side totals."""
    model, _, _ = DOCUMENT_MODELS[kind]
    company_settings = CompanySettings.for_company(company)
    status = payload.get("status") or "draft"

    resolution = validate_document_draft(
        client_id=payload.get("client_id"),
        items=payload.get("items"),
        currency=payload.get("currency"),
        exchange_rate=payload.get("exchange_rate"),
        company_settings=company_settings,
        status=status,
    )
    if status not in ("draft", "sent"):
        raise ValidationError({"status": ["New documents start as draft or sent"]})

    client = Client.objects.for_company(company).filter(pk=payload["client_id"]).first()
    if client is None:
        raise ValidationError({"client_id": ["Unknown client"]})

    issue_date = parse_payload_date(payload.get("issue_date"), "issue_date") or datetime.date.today()
    extra = {}
    if kind == "quotation":
        extra["expiry_date"] = parse_payload_date(payload.get("expiry_date"), "expiry_date")
    else:
        extra["due_date"] = parse_payload_date(payload.get("due_date"), "due_date") or (
            issue_date + datetime.timedelta(days=company_settings.payment_terms_days)
        )

    with transaction.atomic():
        # numbers are read and used under the settings row lock
        company_settings = lock_settings(company_settings)
        if kind == "quotation":
            number = next_quotation_number(company, company_settings, today=issue_date)
        else:
            number = next_invoice_number(company, company_settings)
        document = model(
            company=company,
            client=client,
            number=number,
            issue_date=issue_date,
            notes=payload.get("notes") or "",
            terms=payload.get("terms") or company_settings.terms_template,
            currency=resolution.currency,
            # a base-currency document carries no rate
            exchange_rate=resolution.exchange_rate if resolution.requires_exchange_rate else None,
            **extra,
        )
        document.save()
        replace_lines(document, payload["items"])
        _finalize_totals(document)
        if status == "sent":
            document.transition_to("sent")

        log_action(
            action="create",
            instance=document,
            user=user,
            changes={"number": document.number, "grand_total": str(document.grand_total)},
        )
    logger.info("Created %s %s for %s", kind, document.number, company)
    return document


def update_document(document, payload, *, user=None):
    """Drafts can change freely; issued documents only their notes and terms."""
    company_settings = CompanySettings.for_company(document.company)

    if document.status != "draft":
        ensure_rate_frozen(document, payload.get("currency"), payload.get("exchange_rate"))
        locked = set(payload) - POST_ISSUE_EDITABLE - {"currency", "exchange_rate", "status"}
        if locked:
            raise StateConflictError(
                f"{document} was already sent; only notes and terms can change.",
                details={"fields": sorted(locked)},
            )

    with transaction.atomic():
        for field in POST_ISSUE_EDITABLE & set(payload):
            setattr(document, field, payload[field] or "")

        if document.status == "draft":
            resolution = validate_document_draft(
                client_id=payload.get("client_id", document.client_id),
                items=payload.get("items", list(document.lines.all())),
                currency=payload.get("currency", document.currency),
                exchange_rate=payload.get("exchange_rate", document.exchange_rate),
                company_settings=company_settings,
                status=payload.get("status"),
            )
            if "client_id" in payload:
                client = Client.objects.for_company(document.company).filter(pk=payload["client_id"]).first()
                if client is None:
                    raise ValidationError({"client_id": ["Unknown client"]})
                document.client = client
            if "issue_date" in payload:
                document.issue_date = parse_payload_date(payload["issue_date"], "issue_date", required=True)
            for date_field in ("expiry_date", "due_date"):
                if date_field in payload and hasattr(document, date_field):
                    setattr(document, date_field, parse_payload_date(payload[date_field], date_field))
            document.currency = resolution.currency
            document.exchange_rate = resolution.exchange_rate if resolution.requires_exchange_rate else None

        document.save()
        if document.status == "draft" and "items" in payload:
            replace_lines(document, payload["items"])
            _finalize_totals(document)

        if payload.get("status") and payload["status"] != document.status:
            change_status(document, payload["status"], user=user)

        log_action(action="update", instance=document, user=user,
                   changes={"fields": sorted(payload)})
    return document
