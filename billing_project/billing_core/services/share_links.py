"""
Guest access to one document through a share token.

A guest first ``open``s the token (and ``verify``s a password when the
link has one). Either call hands back a signed, time-limited grant which the
guest actions require. Missing, deactivated and expired tokens all raise the
same ShareLinkNotFoundError.
"""
import logging
import secrets
from dataclasses import dataclass
from typing import Any, Optional

from django.conf import settings
from django.contrib.auth.hashers import check_password, make_password
from django.core import signing
from django.core.exceptions import ObjectDoesNotExist, ValidationError
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from ..exceptions import (AuthError, ShareLinkNotFoundError,
                          ShareLinkPasswordError, StateConflictError)
from ..models import Invoice, Quotation, ShareLink
from ..models.share_link import SHARE_DOCUMENT_MODELS
from .audit_helper import log_action
from .state_machine import GUEST_ANSWERED, can_acknowledge, is_expired

logger = logging.getLogger(__name__)

GRANT_SALT = "billing_core.share_link.grant"
GUEST = "guest"
GUEST_ACTIONS = {"accepted": "accept", "rejected": "reject"}


@dataclass(frozen=True)
class ShareView:
    share_link: ShareLink
    requires_password: bool
    document: Optional[Any] = None
    grant: Optional[str] = None


@dataclass(frozen=True)
class GuestActionResult:
    document: Any
    changed: bool


def generate_token() -> str:
    return secrets.token_urlsafe(32)


def grant_max_age() -> int:
    return getattr(settings, "BILLING_SHARE_GRANT_MAX_AGE", 1800)


def share_url(link: ShareLink) -> str:
    base = getattr(settings, "BILLING_SHARE_URL_BASE", "").rstrip("/")
    return f"{base}/share/{link.document_type}/{link.token}"


# ----------------------------
# Owner side
# ----------------------------
def create_share_link(document, *, password=None, expires_at=None, user=None) -> ShareLink:
    if document.document_type not in SHARE_DOCUMENT_MODELS:
        raise ValidationError({"document_type": ['Document type must be "invoice" or "quotation"']})
    if expires_at is not None and expires_at <= timezone.now():
        raise ValidationError({"expires_at": ["Expiration date must be in the future"]})

    link = ShareLink(
        company=document.company,
        document_type=document.document_type,
        document_id=document.pk,
        token=generate_token(),
        password_hash=make_password(password) if password else "",
        expires_at=expires_at,
    )
    link.save()
    log_action(
        action="share",
        instance=link,
        user=user,
        changes={"document_type": link.document_type, "document_id": link.document_id,
                 "has_password": link.has_password},
    )
    return link


def deactivate(token, *, company=None, user=None) -> ShareLink:
    """Turn a link off for good. Repeating it is harmless."""
    qs = ShareLink.objects.filter(token=token)
    if company is not None:
        qs = qs.for_company(company)
    link = qs.first()
    if link is None:
        raise ShareLinkNotFoundError("Share link not found")
    if link.is_active:
        link.is_active = False
        link.save(update_fields=["is_active"])
        log_action(action="deactivate", instance=link, user=user)
    return link


# ----------------------------
# Guest side
# ----------------------------
def _usable_link(token) -> ShareLink:
    link = ShareLink.objects.usable(timezone.now()).filter(token=token).first() if token else None
    if link is None:
        raise ShareLinkNotFoundError("Share link not found")
    return link


def _document(link):
    try:
        return link.get_document()
    except ObjectDoesNotExist:
        raise ShareLinkNotFoundError("Share link not found") from None


def _record_access(link):
    ShareLink.objects.filter(pk=link.pk).update(
        view_count=F("view_count") + 1, last_accessed_at=timezone.now()
    )


def issue_grant(link) -> str:
    return signing.TimestampSigner(salt=GRANT_SALT).sign(link.token)


def check_grant(link, grant):
    if not grant:
        raise AuthError("Open or verify the share link first.")
    try:
        value = signing.TimestampSigner(salt=GRANT_SALT).unsign(grant, max_age=grant_max_age())
    except signing.SignatureExpired:
        raise AuthError("Share link verification expired, please verify again.") from None
    except signing.BadSignature:
        raise AuthError("Invalid share link verification.") from None
    if value != link.token:
        raise AuthError("Invalid share link verification.")


def open_link(token) -> ShareView:
    """Document straight away for open links, only an existence answer otherwise."""
    link = _usable_link(token)
    if link.has_password:
        return ShareView(share_link=link, requires_password=True)
    document = _document(link)
    _record_access(link)
    return ShareView(share_link=link, requires_password=False,
                     document=document, grant=issue_grant(link))


def verify(token, password) -> ShareView:
    link = _usable_link(token)
    # hash comparison, the stored hash is never exposed
    if link.has_password and not check_password(password or "", link.password_hash):
        logger.info("Wrong password for share link %s…", link.token[:8])
        raise ShareLinkPasswordError("Invalid password")
    document = _document(link)
    _record_access(link)
    return ShareView(share_link=link, requires_password=False,
                     document=document, grant=issue_grant(link))


def _guest_link(token, grant, document_type) -> ShareLink:
    link = _usable_link(token)
    if link.document_type != document_type:
        # an invoice token cannot reach quotation actions
        raise ShareLinkNotFoundError("Share link not found")
    # an unissued document refuses guest actions whether or not the link was verified
    document = _document(link)
    if document.status == "draft":
        raise StateConflictError(f"{document} has not been issued yet.")
    check_grant(link, grant)
    return link


def _answer_quotation(token, grant, answer) -> GuestActionResult:
    link = _guest_link(token, grant, "quotation")
    with transaction.atomic():
        try:
            qt = Quotation.objects.select_for_update().get(
                pk=link.document_id, company_id=link.company_id
            )
        except Quotation.DoesNotExist:
            raise ShareLinkNotFoundError("Share link not found") from None

        # already answered: report the current state, fire nothing
        if qt.status in GUEST_ANSWERED:
            return GuestActionResult(document=qt, changed=False)
        if is_expired(qt, timezone.localdate()):
            raise StateConflictError(f"{qt} expired on {qt.expiry_date}.")

        previous = qt.status
        qt.transition_to(answer)  # a draft quotation fails here
        log_action(
            action=GUEST_ACTIONS[answer],
            instance=qt,
            actor=GUEST,
            changes={"status": [previous, qt.status], "share_link": link.pk},
        )
    return GuestActionResult(document=qt, changed=True)


def accept_quotation(token, grant) -> GuestActionResult:
    return _answer_quotation(token, grant, "accepted")


def reject_quotation(token, grant) -> GuestActionResult:
    return _answer_quotation(token, grant, "rejected")


def acknowledge_invoice(token, grant) -> GuestActionResult:
    link = _guest_link(token, grant, "invoice")
    with transaction.atomic():
        try:
            inv = Invoice.objects.select_for_update().get(
                pk=link.document_id, company_id=link.company_id
            )
        except Invoice.DoesNotExist:
            raise ShareLinkNotFoundError("Share link not found") from None

        if not can_acknowledge(inv):
            raise StateConflictError(f"{inv} has not been issued yet.")
        _record_access(link)
        if inv.acknowledged_at is not None:
            return GuestActionResult(document=inv, changed=False)

        inv.acknowledged_at = timezone.now()
        inv.save(update_fields=["acknowledged_at", "updated_at"])
        log_action(
            action="acknowledge",
            instance=inv,
            actor=GUEST,
            changes={"share_link": link.pk},
        )
    return GuestActionResult(document=inv, changed=True)
