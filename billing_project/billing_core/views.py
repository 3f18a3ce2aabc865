import functools
import json
import logging

from django.core.exceptions import ObjectDoesNotExist, ValidationError
from django.http import Http404, JsonResponse
from django.shortcuts import get_object_or_404
from django.utils.dateparse import parse_datetime
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from .exceptions import (AuthError, BillingError, ShareLinkNotFoundError,
                         StateConflictError)
from .models import CompanySettings, Invoice, Quotation
from .serializers import (serialize_document, serialize_guest_document,
                          serialize_invoice, serialize_payment,
                          serialize_share_link, snake_payload)
from .services import payment as payments
from .services import share_links
from .services.conversion import convert_quotation
from .services.documents import (create_document, parse_payload_date,
                                 update_document)
from .services.update import send_invoice, send_quotation

logger = logging.getLogger(__name__)

DOCUMENT_MODELS = {"invoice": Invoice, "quotation": Quotation}

# session key holding {token: grant} for share links this browser verified
SHARE_GRANTS_SESSION_KEY = "billing_share_grants"


# ----------------------------
# Error translation
# ----------------------------
def _error(code, message, status, details=None):
    return JsonResponse(
        {"success": False, "error": {"code": code, "message": message, "details": details}},
        status=status,
    )


def _validation_details(exc: ValidationError):
    if hasattr(exc, "error_dict"):
        return exc.message_dict
    return {"__all__": exc.messages}


def api_view(view):
    """Turn engine exceptions into JSON error responses."""
    @functools.wraps(view)
    def wrapper(request, *args, **kwargs):
        try:
            return view(request, *args, **kwargs)
        except ValidationError as exc:
            details = _validation_details(exc)
            return _error("VALIDATION_ERROR", "; ".join(exc.messages), 422, details)
        except StateConflictError as exc:
            # the document moved on, the caller should refresh
            return _error(exc.code, exc.message, 409, exc.details)
        except AuthError as exc:
            return _error(exc.code, exc.message, 401, exc.details)
        except ShareLinkNotFoundError as exc:
            return _error(exc.code, exc.message, 404, exc.details)
        except (ObjectDoesNotExist, Http404):
            return _error("NOT_FOUND", "Not found", 404)
        except BillingError as exc:
            logger.warning("Unhandled billing error in %s: %s", view.__name__, exc)
            return _error(exc.code, exc.message, 400, exc.details)
    return csrf_exempt(wrapper)


def _payload(request):
    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except ValueError:
        raise ValidationError("Request body must be valid JSON") from None
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return snake_payload(data)


def _company(request):
    company = getattr(request, "company", None)
    if company is None:
        raise AuthError("Authentication required.")
    return company


def _ok(data, status=200):
    return JsonResponse({"success": True, "data": data}, status=status)


def _document(request, kind, pk):
    return get_object_or_404(DOCUMENT_MODELS[kind].objects.for_company(_company(request)), pk=pk)


# ----------------------------
# Documents
# ----------------------------
def _collection(kind):
    @api_view
    @require_http_methods(["GET", "POST"])
    def view(request):
        company = _company(request)
        if request.method == "POST":
            document = create_document(kind, company, _payload(request), user=request.user)
            return _ok(serialize_document(document), status=201)
        qs = DOCUMENT_MODELS[kind].objects.for_company(company).select_related("client")
        status = request.GET.get("status")
        if status:
            qs = qs.filter(status=status)
        return _ok([serialize_document(d) for d in qs.order_by("-issue_date", "-id")])
    view.__name__ = f"{kind}_collection"
    return view


def _detail(kind):
    @api_view
    @require_http_methods(["GET", "PUT", "PATCH"])
    def view(request, pk):
        document = _document(request, kind, pk)
        if request.method in ("PUT", "PATCH"):
            document = update_document(document, _payload(request), user=request.user)
        return _ok(serialize_document(document))
    view.__name__ = f"{kind}_detail"
    return view


invoice_collection = _collection("invoice")
invoice_detail = _detail("invoice")
quotation_collection = _collection("quotation")
quotation_detail = _detail("quotation")


@api_view
@require_http_methods(["POST"])
def send_invoice_view(request, pk):
    invoice = send_invoice(_document(request, "invoice", pk), user=request.user)
    return _ok(serialize_document(invoice))


@api_view
@require_http_methods(["POST"])
def send_quotation_view(request, pk):
    quotation = send_quotation(_document(request, "quotation", pk), user=request.user)
    return _ok(serialize_document(quotation))


@api_view
@require_http_methods(["POST"])
def convert_quotation_view(request, pk):
    quotation = _document(request, "quotation", pk)
    data = _payload(request)
    invoice = convert_quotation(
        quotation.pk,
        issue_date=parse_payload_date(data.get("issue_date"), "issue_date"),
        due_date=parse_payload_date(data.get("due_date"), "due_date"),
        user=request.user,
    )
    return _ok(serialize_document(invoice), status=201)


# ----------------------------
# Payments
# ----------------------------
def _payment_fields(data):
    fields = {}
    if "amount" in data:
        fields["amount"] = data["amount"]
    if "payment_date" in data:
        fields["payment_date"] = parse_payload_date(data["payment_date"], "payment_date", required=True)
    for name in ("payment_method", "reference", "notes"):
        if name in data:
            fields[name] = data[name]
    return fields


@api_view
@require_http_methods(["GET", "POST"])
def invoice_payments(request, pk):
    invoice = _document(request, "invoice", pk)
    if request.method == "GET":
        return _ok([serialize_payment(p) for p in invoice.payments.all()])

    data = _payload(request)
    fields = _payment_fields(data)
    if "amount" not in fields:
        raise ValidationError({"amount": ["Payment amount is required"]})
    if "payment_date" not in fields:
        raise ValidationError({"payment_date": ["payment_date is required"]})
    payment, invoice = payments.record_payment(invoice.pk, user=request.user, **fields)
    return _ok({"payment": serialize_payment(payment), "invoice": serialize_invoice(invoice)}, status=201)


@api_view
@require_http_methods(["PUT", "PATCH", "DELETE"])
def invoice_payment_detail(request, pk, payment_id):
    invoice = _document(request, "invoice", pk)
    if request.method == "DELETE":
        invoice = payments.delete_payment(invoice.pk, payment_id, user=request.user)
        return _ok({"invoice": serialize_invoice(invoice)})

    payment, invoice = payments.update_payment(
        invoice.pk, payment_id, user=request.user, **_payment_fields(_payload(request))
    )
    return _ok({"payment": serialize_payment(payment), "invoice": serialize_invoice(invoice)})


# ----------------------------
# Share links (owner side)
# ----------------------------
@api_view
@require_http_methods(["POST"])
def share_link_collection(request):
    data = _payload(request)
    kind = data.get("document_type")
    if kind not in DOCUMENT_MODELS:
        raise ValidationError({"document_type": ['Document type must be "invoice" or "quotation"']})
    try:
        document_id = int(data.get("document_id"))
    except (TypeError, ValueError):
        raise ValidationError({"document_id": ["document_id must be an integer"]}) from None
    document = _document(request, kind, document_id)

    expires_at = None
    if data.get("expires_at"):
        expires_at = parse_datetime(str(data["expires_at"]))
        if expires_at is None:
            raise ValidationError({"expires_at": ["expires_at must be an ISO datetime"]})

    link = share_links.create_share_link(
        document, password=data.get("password") or None, expires_at=expires_at, user=request.user
    )
    return _ok(serialize_share_link(link, url=share_links.share_url(link)), status=201)


@api_view
@require_http_methods(["POST", "DELETE"])
def share_link_deactivate(request, token):
    link = share_links.deactivate(token, company=_company(request), user=request.user)
    return _ok(serialize_share_link(link))


# ----------------------------
# Share links (guest side, no session credential)
# ----------------------------
def _store_grant(request, token, grant):
    grants = dict(request.session.get(SHARE_GRANTS_SESSION_KEY, {}))
    grants[token] = grant
    request.session[SHARE_GRANTS_SESSION_KEY] = grants


def _grant(request, token):
    # header first for API clients, then the browsing session
    return request.headers.get("X-Share-Grant") or request.session.get(
        SHARE_GRANTS_SESSION_KEY, {}
    ).get(token)


def _guest_payload(view: share_links.ShareView):
    data = {"requiresPassword": view.requires_password, "documentType": view.share_link.document_type}
    if view.document is not None:
        settings_obj = CompanySettings.for_company(view.share_link.company)
        data["document"] = serialize_guest_document(view.document, settings_obj)
        data["grant"] = view.grant
    return data


@api_view
@require_http_methods(["GET"])
def public_share_open(request, token):
    view = share_links.open_link(token)
    if view.grant:
        _store_grant(request, token, view.grant)
    return _ok(_guest_payload(view))


@api_view
@require_http_methods(["POST"])
def public_share_verify(request, token):
    view = share_links.verify(token, _payload(request).get("password"))
    _store_grant(request, token, view.grant)
    return _ok(_guest_payload(view))


def _guest_action(action):
    @api_view
    @require_http_methods(["POST"])
    def view(request, token):
        result = action(token, _grant(request, token))
        return _ok({"changed": result.changed, "document": serialize_guest_document(result.document)})
    view.__name__ = f"public_{action.__name__}"
    return view


public_acknowledge = _guest_action(share_links.acknowledge_invoice)
public_accept = _guest_action(share_links.accept_quotation)
public_reject = _guest_action(share_links.reject_quotation)
