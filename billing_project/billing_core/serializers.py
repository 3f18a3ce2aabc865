"""
Model -> JSON payloads in the camelCase shape the frontend expects.

Money goes out as strings with two decimals so nothing is lost to floats.
Share-link password hashes are never serialized.
"""
import re

from .services.calculations import quantize_money
from .services.state_machine import derive_display_status


def money(value):
    return str(quantize_money(value))


def _date(value):
    return value.isoformat() if value else None


def serialize_line(line):
    amounts = line.amounts.rounded()
    return {
        "id": line.pk,
        "itemId": line.item_id,
        "name": line.name,
        "description": line.description,
        "quantity": str(line.quantity),
        "price": str(line.price),
        "discountPercent": str(line.discount_percent),
        "taxPercent": str(line.tax_percent),
        "uomCode": line.uom_code,
        "subtotal": str(amounts.subtotal),
        "discountAmount": str(amounts.discount_amount),
        "taxAmount": str(amounts.tax_amount),
        "total": str(amounts.total),
    }


def serialize_payment(payment):
    return {
        "id": payment.pk,
        "invoiceId": payment.invoice_id,
        "amount": money(payment.amount),
        "paymentDate": _date(payment.payment_date),
        "paymentMethod": payment.payment_method,
        "reference": payment.reference,
        "notes": payment.notes,
    }


def _document_base(document, today=None):
    return {
        "id": document.pk,
        "documentType": document.document_type,
        "number": document.number,
        "clientId": document.client_id,
        "clientName": document.client.name,
        "issueDate": _date(document.issue_date),
        "items": [serialize_line(line) for line in document.lines.all()],
        "notes": document.notes,
        "terms": document.terms,
        "currency": document.currency,
        "exchangeRate": str(document.exchange_rate) if document.exchange_rate is not None else None,
        "status": document.status,
        # expired / overdue, computed at read time
        "displayStatus": derive_display_status(document, today),
        "subtotal": money(document.subtotal),
        "discountTotal": money(document.discount_total),
        "taxTotal": money(document.tax_total),
        "grandTotal": money(document.grand_total),
        "totalAmount": money(document.grand_total),
    }


def serialize_quotation(quotation, today=None):
    data = _document_base(quotation, today)
    data["expiryDate"] = _date(quotation.expiry_date)
    converted = getattr(quotation, "converted_invoice", None) if quotation.status == "converted" else None
    data["convertedInvoiceId"] = converted.pk if converted else None
    return data


def serialize_invoice(invoice, today=None, *, include_payments=True):
    data = _document_base(invoice, today)
    data.update({
        "dueDate": _date(invoice.due_date),
        "balanceDue": money(invoice.balance_due),
        "acknowledgedAt": invoice.acknowledged_at.isoformat() if invoice.acknowledged_at else None,
        "sourceQuotationId": invoice.source_quotation_id,
    })
    if include_payments:
        data["payments"] = [serialize_payment(p) for p in invoice.payments.all()]
    return data


SERIALIZERS = {
    "quotation": serialize_quotation,
    "invoice": serialize_invoice,
}


def serialize_document(document, today=None):
    return SERIALIZERS[document.document_type](document, today)


def serialize_share_link(link, url=None):
    # password_hash stays server side
    return {
        "id": link.pk,
        "token": link.token,
        "documentType": link.document_type,
        "documentId": link.document_id,
        "hasPassword": link.has_password,
        "active": link.is_active,
        "expiresAt": link.expires_at.isoformat() if link.expires_at else None,
        "viewCount": link.view_count,
        "url": url,
    }


def serialize_guest_document(document, company_settings=None):
    """What a share-link viewer sees: the document plus the issuer's name."""
    data = serialize_document(document)
    if document.document_type == "invoice":
        # internal payment references are not for guests
        data.pop("payments", None)
    data["companyName"] = company_settings.company_name if company_settings else document.company.name
    return data


# ---------- Incoming payloads ----------
_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def to_snake(name):
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def snake_payload(data):
    """camelCase request body -> snake_case keys, recursing into line items."""
    if isinstance(data, dict):
        return {to_snake(k): snake_payload(v) for k, v in data.items()}
    if isinstance(data, list):
        return [snake_payload(v) for v in data]
    return data
