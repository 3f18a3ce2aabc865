import datetime

from django.core.exceptions import ValidationError
from django.test import TestCase, override_settings
from django.utils import timezone

from ..exceptions import (AuthError, ShareLinkNotFoundError,
                          ShareLinkPasswordError, StateConflictError)
from ..models import AuditLog, Invoice, Quotation, ShareLink
from ..services import share_links
from .helpers import BillingFixtures


class ShareLinkAccessTests(BillingFixtures, TestCase):
    def setUp(self):
        self.company = self.make_company()
        self.client_obj = self.make_client(self.company)
        self.invoice = self.make_invoice(self.company, self.client_obj)

    def test_token_is_opaque_and_hash_is_stored(self):
        link = share_links.create_share_link(self.invoice, password="s3cret")
        self.assertGreaterEqual(len(link.token), 40)
        self.assertTrue(link.has_password)
        self.assertNotIn("s3cret", link.password_hash)

    def test_open_link_without_password_returns_document(self):
        link = share_links.create_share_link(self.invoice)
        view = share_links.open_link(link.token)
        self.assertFalse(view.requires_password)
        self.assertEqual(view.document.pk, self.invoice.pk)
        self.assertTrue(view.grant)
        link.refresh_from_db()
        self.assertEqual(link.view_count, 1)
        self.assertIsNotNone(link.last_accessed_at)

    def test_password_link_only_confirms_existence(self):
        link = share_links.create_share_link(self.invoice, password="s3cret")
        view = share_links.open_link(link.token)
        self.assertTrue(view.requires_password)
        self.assertIsNone(view.document)
        self.assertIsNone(view.grant)

    def test_wrong_password_never_returns_content(self):
        link = share_links.create_share_link(self.invoice, password="s3cret")
        with self.assertRaises(ShareLinkPasswordError):
            share_links.verify(link.token, "guess")
        view = share_links.verify(link.token, "s3cret")
        self.assertEqual(view.document.pk, self.invoice.pk)

    def test_deactivated_link_looks_like_it_never_existed(self):
        link = share_links.create_share_link(self.invoice, password="s3cret")
        share_links.deactivate(link.token)
        for call in (lambda: share_links.open_link(link.token),
                     lambda: share_links.verify(link.token, "s3cret"),
                     lambda: share_links.verify(link.token, "wrong"),
                     lambda: share_links.open_link("no-such-token")):
            with self.assertRaises(ShareLinkNotFoundError):
                call()

    def test_deactivation_is_one_way(self):
        link = share_links.create_share_link(self.invoice)
        share_links.deactivate(link.token)
        share_links.deactivate(link.token)  # repeat is harmless
        link = ShareLink.objects.get(pk=link.pk)
        link.is_active = True
        with self.assertRaises(ValidationError):
            link.save()

    def test_expired_link_behaves_like_deactivated(self):
        link = share_links.create_share_link(
            self.invoice, expires_at=timezone.now() + datetime.timedelta(hours=1)
        )
        ShareLink.objects.filter(pk=link.pk).update(
            expires_at=timezone.now() - datetime.timedelta(seconds=1)
        )
        with self.assertRaises(ShareLinkNotFoundError):
            share_links.open_link(link.token)

    def test_expiry_must_be_in_the_future(self):
        with self.assertRaises(ValidationError):
            share_links.create_share_link(
                self.invoice, expires_at=timezone.now() - datetime.timedelta(days=1)
            )

    def test_several_links_per_document(self):
        first = share_links.create_share_link(self.invoice)
        second = share_links.create_share_link(self.invoice, password="x")
        self.assertNotEqual(first.token, second.token)
        share_links.deactivate(first.token)
        self.assertFalse(share_links.open_link(second.token).document)


class GuestActionTests(BillingFixtures, TestCase):
    def setUp(self):
        self.company = self.make_company()
        self.client_obj = self.make_client(self.company)

    def share(self, document, password=None):
        link = share_links.create_share_link(document, password=password)
        if password:
            return link, share_links.verify(link.token, password).grant
        return link, share_links.open_link(link.token).grant

    def test_accept_requires_verification(self):
        qt = self.make_quotation(self.company, self.client_obj, status="sent")
        link = share_links.create_share_link(qt, password="pw")
        with self.assertRaises(AuthError):
            share_links.accept_quotation(link.token, None)
        with self.assertRaises(AuthError):
            share_links.accept_quotation(link.token, "forged:grant")

    def test_grant_is_bound_to_its_token(self):
        qt = self.make_quotation(self.company, self.client_obj, status="sent")
        _, grant = self.share(qt)
        other_link, _ = self.share(qt)
        with self.assertRaises(AuthError):
            share_links.accept_quotation(other_link.token, grant)

    @override_settings(BILLING_SHARE_GRANT_MAX_AGE=-1)
    def test_grant_expires(self):
        qt = self.make_quotation(self.company, self.client_obj, status="sent")
        link, grant = self.share(qt)
        with self.assertRaises(AuthError):
            share_links.accept_quotation(link.token, grant)

    def test_draft_quotation_cannot_be_accepted(self):
        qt = self.make_quotation(self.company, self.client_obj, status="draft")
        link, grant = self.share(qt)
        with self.assertRaises(StateConflictError):
            share_links.accept_quotation(link.token, grant)
        self.assertEqual(Quotation.objects.get(pk=qt.pk).status, "draft")

    def test_draft_quotation_refuses_unverified_guest(self):
        qt = self.make_quotation(self.company, self.client_obj, status="draft")
        link = share_links.create_share_link(qt, password="pw")
        for grant in (None, "forged:grant"):
            with self.assertRaises(StateConflictError):
                share_links.accept_quotation(link.token, grant)
        self.assertEqual(Quotation.objects.get(pk=qt.pk).status, "draft")
        self.assertFalse(AuditLog.objects.filter(actor=share_links.GUEST).exists())

    def test_accept_is_idempotent(self):
        qt = self.make_quotation(self.company, self.client_obj, status="sent")
        link, grant = self.share(qt, password="pw")

        first = share_links.accept_quotation(link.token, grant)
        self.assertTrue(first.changed)
        self.assertEqual(first.document.status, "accepted")

        again = share_links.accept_quotation(link.token, grant)
        late_reject = share_links.reject_quotation(link.token, grant)
        self.assertFalse(again.changed)
        self.assertFalse(late_reject.changed)
        self.assertEqual(late_reject.document.status, "accepted")
        # side effects fired once
        self.assertEqual(AuditLog.objects.filter(action="accept").count(), 1)
        self.assertEqual(AuditLog.objects.get(action="accept").actor, "guest")

    def test_reject(self):
        qt = self.make_quotation(self.company, self.client_obj, status="sent")
        link, grant = self.share(qt)
        result = share_links.reject_quotation(link.token, grant)
        self.assertEqual(result.document.status, "rejected")

    def test_expired_quotation_cannot_be_accepted(self):
        qt = self.make_quotation(self.company, self.client_obj, status="sent",
                                 issue_date="2020-01-01", expiry_date="2020-01-31")
        link, grant = self.share(qt)
        with self.assertRaises(StateConflictError):
            share_links.accept_quotation(link.token, grant)

    def test_invoice_token_cannot_reach_quotation_actions(self):
        inv = self.make_invoice(self.company, self.client_obj)
        link, grant = self.share(inv)
        with self.assertRaises(ShareLinkNotFoundError):
            share_links.accept_quotation(link.token, grant)

    def test_acknowledge_invoice_once(self):
        inv = self.make_invoice(self.company, self.client_obj)
        link, grant = self.share(inv)
        first = share_links.acknowledge_invoice(link.token, grant)
        stamp = Invoice.objects.get(pk=inv.pk).acknowledged_at
        self.assertTrue(first.changed)
        self.assertIsNotNone(stamp)

        again = share_links.acknowledge_invoice(link.token, grant)
        self.assertFalse(again.changed)
        self.assertEqual(Invoice.objects.get(pk=inv.pk).acknowledged_at, stamp)

    def test_draft_invoice_cannot_be_acknowledged(self):
        inv = self.make_invoice(self.company, self.client_obj, status="draft")
        link, grant = self.share(inv)
        with self.assertRaises(StateConflictError):
            share_links.acknowledge_invoice(link.token, grant)

    def test_deactivated_link_blocks_actions(self):
        qt = self.make_quotation(self.company, self.client_obj, status="sent")
        link, grant = self.share(qt)
        share_links.deactivate(link.token)
        with self.assertRaises(ShareLinkNotFoundError):
            share_links.accept_quotation(link.token, grant)
