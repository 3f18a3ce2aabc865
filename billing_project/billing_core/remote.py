"""
Client for the backend-of-record JSON API.

Session calls carry a bearer token and get exactly one refresh attempt on a
401. Public share-link calls never refresh: a 401 there means a wrong
password or a missing grant.
"""
import logging
import threading
from decimal import Decimal
from types import SimpleNamespace

import requests
from django.conf import settings
from django.core.exceptions import ValidationError

from .exceptions import (AlreadyConvertedError, ApiError, AuthError,
                         PaymentExceedsBalanceError,
                         SessionExpiredError, ShareLinkNotFoundError,
                         ShareLinkPasswordError, StateConflictError,
                         SubmitInProgressError, TransportError)
from .serializers import to_snake
from .services.calculations import calculate_document_totals, quantize_money
from .services.payment import apply_payment, remove_payment
from .services.validation import validate_document_draft, validate_payment_amount

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10
# gateway failures are network trouble, not business answers
TRANSPORT_STATUSES = {502, 503, 504}

CONFLICT_ERRORS = {
    AlreadyConvertedError.code: AlreadyConvertedError,
    PaymentExceedsBalanceError.code: PaymentExceedsBalanceError,
    SubmitInProgressError.code: SubmitInProgressError,
}


def _error_body(response):
    try:
        body = response.json()
    except ValueError:
        return {}
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return error
    if isinstance(error, str):
        return {"message": error}
    return {}


def error_for_response(response, *, public=False):
    """Map a non-2xx response onto the typed error families."""
    status = response.status_code
    error = _error_body(response)
    code = error.get("code")
    message = error.get("message") or f"Request failed with status {status}"
    details = error.get("details")

    if status in TRANSPORT_STATUSES:
        return TransportError(message, details={"status_code": status})
    if status == 401:
        if code == ShareLinkPasswordError.code:
            return ShareLinkPasswordError(message, details=details)
        return AuthError(message, details=details)
    if status == 409:
        return CONFLICT_ERRORS.get(code, StateConflictError)(message, details=details)
    if status == 410 or (status == 404 and public):
        # gone and missing share links look the same
        return ShareLinkNotFoundError(message, details=details)
    if status in (400, 422):
        return ValidationError(details or message)
    return ApiError(message, status_code=status, details=details)


class BillingApiClient:
    def __init__(self, base_url=None, *, access_token=None, refresh_token=None,
                 session=None, timeout=DEFAULT_TIMEOUT, on_session_expired=None):
        self.base_url = (base_url or settings.BILLING_API_BASE_URL).rstrip("/")
        self.access_token = access_token
        self.refresh_token = refresh_token
        self.session = session or requests.Session()
        self.timeout = timeout
        # called once when the session cannot be recovered (log out, clear tokens)
        self.on_session_expired = on_session_expired

    def _url(self, path):
        return f"{self.base_url}/{path.lstrip('/')}"

    def _send(self, method, path, *, json=None, params=None, headers=None, auth=True):
        headers = dict(headers or {})
        if auth and self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        try:
            return self.session.request(
                method, self._url(path), json=json, params=params,
                headers=headers, timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise TransportError(f"{method} {path} failed: {exc}") from exc

    def _refresh(self) -> bool:
        if not self.refresh_token:
            return False
        try:
            response = self._send("POST", "/auth/refresh",
                                  json={"refreshToken": self.refresh_token}, auth=False)
        except TransportError:
            logger.warning("Token refresh failed on the network")
            return False
        if not response.ok:
            return False
        try:
            data = response.json().get("data") or {}
        except ValueError:
            return False
        if not data.get("token"):
            return False
        self.access_token = data["token"]
        self.refresh_token = data.get("refreshToken") or self.refresh_token
        return True

    def _expire_session(self, message):
        self.access_token = None
        self.refresh_token = None
        if self.on_session_expired is not None:
            self.on_session_expired()
        raise SessionExpiredError(message)

    def request(self, method, path, *, json=None, params=None, headers=None, public=False):
        response = self._send(method, path, json=json, params=params,
                              headers=headers, auth=not public)

        if response.status_code == 401 and not public:
            # exactly one refresh per request, then replay once
            if not self._refresh():
                self._expire_session("Session expired, please sign in again.")
            response = self._send(method, path, json=json, params=params, headers=headers)
            if response.status_code == 401:
                self._expire_session("Session expired, please sign in again.")

        if not response.ok:
            raise error_for_response(response, public=public)
        if response.status_code == 204 or not response.content:
            return None
        try:
            body = response.json()
        except ValueError:
            raise ApiError(
                f"{method} {path} returned a body that is not JSON",
                status_code=response.status_code,
            ) from None
        if isinstance(body, dict) and "success" in body:
            return body.get("data")
        return body

    # ----- documents -----
    def create_document(self, kind, payload):
        return self.request("POST", f"/{kind}s/", json=payload)

    def update_document(self, kind, document_id, payload):
        return self.request("PUT", f"/{kind}s/{document_id}/", json=payload)

    def get_document(self, kind, document_id):
        return self.request("GET", f"/{kind}s/{document_id}/")

    def send_document(self, kind, document_id):
        return self.request("POST", f"/{kind}s/{document_id}/send/")

    def convert_quotation(self, quotation_id):
        return self.request("POST", f"/quotations/{quotation_id}/convert/")

    # ----- payments -----
    def record_payment(self, invoice_id, payload):
        return self.request("POST", f"/invoices/{invoice_id}/payments/", json=payload)

    def update_payment(self, invoice_id, payment_id, payload):
        return self.request("PUT", f"/invoices/{invoice_id}/payments/{payment_id}/", json=payload)

    def delete_payment(self, invoice_id, payment_id):
        return self.request("DELETE", f"/invoices/{invoice_id}/payments/{payment_id}/")

    # ----- share links -----
    def create_share_link(self, document_type, document_id, password=None):
        payload = {"documentType": document_type, "documentId": document_id}
        if password:
            payload["password"] = password
        return self.request("POST", "/share-links/", json=payload)

    def deactivate_share_link(self, token):
        return self.request("POST", f"/share-links/{token}/deactivate/")

    def open_share(self, token):
        return self.request("GET", f"/public/share/{token}/", public=True)

    def verify_share(self, token, password):
        return self.request("POST", f"/public/share/{token}/verify/",
                            json={"password": password}, public=True)

    def guest_action(self, token, action, grant=None):
        headers = {"X-Share-Grant": grant} if grant else None
        return self.request("POST", f"/public/share/{token}/{action}/",
                            headers=headers, public=True)


# ---------------------------------------------
# Local state: optimistic first, server wins
# ---------------------------------------------
def _invoice_view(invoice: dict):
    return SimpleNamespace(
        status=invoice["status"],
        balance_due=invoice["balanceDue"],
        grand_total=invoice["grandTotal"],
    )


class InvoiceWorkspace:
    """
    The invoice a user is looking at. Payments show up immediately, then
    the server response replaces the local guess (or the guess is undone).
    """

    def __init__(self, client: BillingApiClient, invoice: dict):
        self.client = client
        self.invoice = invoice
        self._submit_lock = threading.Lock()

    @property
    def submitting(self):
        return self._submit_lock.locked()

    def adopt(self, server_invoice: dict):
        self.invoice = server_invoice
        return self.invoice

    def _submit(self, optimistic, call):
        # one save at a time, a double click must not pay twice
        if not self._submit_lock.acquire(blocking=False):
            raise SubmitInProgressError("A payment for this invoice is already being saved.")
        snapshot = self.invoice
        try:
            self.invoice = {**snapshot, "balanceDue": str(optimistic.balance_due),
                            "status": optimistic.status}
            result = call()
            invoice = result.get("invoice") if isinstance(result, dict) else None
            if invoice is None:
                raise ApiError("The server response did not include the invoice")
            self.adopt(invoice)
            return result
        except Exception:
            # any failure puts back what the server last told us
            self.invoice = snapshot
            raise
        finally:
            self._submit_lock.release()

    def record_payment(self, amount, payment_date, payment_method="other",
                       reference=None, notes=None):
        value = validate_payment_amount(amount, self.invoice["balanceDue"])
        optimistic = apply_payment(_invoice_view(self.invoice), value)
        payload = {
            "amount": str(quantize_money(value)),
            "paymentDate": payment_date.isoformat() if hasattr(payment_date, "isoformat") else payment_date,
            "paymentMethod": payment_method,
            "reference": reference,
            "notes": notes,
        }
        return self._submit(
            optimistic,
            lambda: self.client.record_payment(self.invoice["id"], payload),
        )

    def remove_payment(self, payment_id):
        remaining = [p["amount"] for p in self.invoice.get("payments", []) if p["id"] != payment_id]
        optimistic = remove_payment(_invoice_view(self.invoice), remaining)
        return self._submit(
            optimistic,
            lambda: self.client.delete_payment(self.invoice["id"], payment_id),
        )


def _camel(name):
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _wire(value):
    # decimals travel as strings
    return str(value) if isinstance(value, Decimal) else value


class DraftDocument:
    """
    Line items being edited locally. Every edit recomputes the totals (the
    latest edit wins); server totals replace them once a save returns.
    """

    def __init__(self, items=None, *, client_id=None, currency=None, exchange_rate=None):
        self.items = [self._normalize(item) for item in (items or [])]
        self.client_id = client_id
        self.currency = currency
        self.exchange_rate = exchange_rate
        self._server_totals = None

    @staticmethod
    def _normalize(item):
        return {to_snake(k): v for k, v in item.items()}

    def _edited(self):
        self._server_totals = None

    def add_item(self, **item):
        self.items.append(self._normalize(item))
        self._edited()

    def update_item(self, index, **changes):
        self.items[index] = {**self.items[index], **self._normalize(changes)}
        self._edited()

    def remove_item(self, index):
        del self.items[index]
        self._edited()

    @property
    def totals(self) -> dict:
        if self._server_totals is not None:
            return self._server_totals
        totals = calculate_document_totals(self.items).rounded()
        return {
            "subtotal": totals.subtotal,
            "discount_total": totals.discount_total,
            "tax_total": totals.tax_total,
            "grand_total": totals.grand_total,
        }

    def adopt_server_totals(self, document: dict):
        self._server_totals = {
            "subtotal": quantize_money(document["subtotal"]),
            "discount_total": quantize_money(document["discountTotal"]),
            "tax_total": quantize_money(document["taxTotal"]),
            "grand_total": quantize_money(document.get("grandTotal", document.get("totalAmount"))),
        }
        return self._server_totals

    def validate(self, company_settings):
        return validate_document_draft(
            client_id=self.client_id,
            items=self.items,
            currency=self.currency,
            exchange_rate=self.exchange_rate,
            company_settings=company_settings,
        )

    def to_payload(self, **extra):
        payload = {
            "clientId": self.client_id,
            "items": [{_camel(k): _wire(v) for k, v in item.items()} for item in self.items],
            "currency": self.currency,
            "exchangeRate": str(self.exchange_rate) if self.exchange_rate is not None else None,
        }
        payload.update(extra)
        return payload
