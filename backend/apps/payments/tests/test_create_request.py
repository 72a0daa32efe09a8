"""
create_request validation: nothing is written unless every check passes.
"""

import uuid
from decimal import Decimal

from django.test import TestCase

from core.exceptions import NotFoundError, ValidationError
from apps.audit.models import AuditLog
from apps.payments import services
from apps.payments.models import PaymentRequest
from apps.payments.tests.helpers import make_partners, make_user


class CreateRequestTests(TestCase):
    def setUp(self):
        self.sender = make_user("create_sender")
        self.a = make_user("create_a")
        self.b = make_user("create_b")
        self.stranger = make_user("create_stranger")
        self.pending_partner = make_user("create_pending")
        make_partners(self.sender, self.a, self.b)
        make_partners(self.sender, self.pending_partner, status="PENDING")

    def assertNothingWritten(self):
        self.assertEqual(PaymentRequest.objects.count(), 0)
        self.assertEqual(AuditLog.objects.count(), 0)

    def test_creates_pending_request(self):
        req = services.create_request(
            self.sender.id,
            Decimal("12.50"),
            [self.a.id, self.b.id],
            description=" Groceries ",
            category="Food",
            image_ref="receipts/1.jpg",
        )

        self.assertEqual(req.status, "PENDING")
        self.assertEqual(req.amount, Decimal("12.50"))
        self.assertEqual(req.currency, "USD")
        self.assertEqual(req.description, "Groceries")
        self.assertEqual(req.category, "Food")
        self.assertEqual(req.image_ref, "receipts/1.jpg")
        self.assertEqual(req.funding_status, "NOT_STARTED")
        self.assertEqual(
            [(e.approver_id, e.status) for e in req.approvers.all()],
            [(self.a.id, "PENDING"), (self.b.id, "PENDING")],
        )
        self.assertEqual(req.decisions.count(), 0)
        self.assertTrue(
            AuditLog.objects.filter(entity_id=req.id, event_type="REQUEST_CREATED").exists()
        )

    def test_duplicate_approvers_collapsed(self):
        req = services.create_request(
            self.sender.id, "5", [self.b.id, str(self.a.id), self.b.id, self.a.id]
        )
        self.assertEqual(
            [e.approver_id for e in req.approvers.all()], [self.b.id, self.a.id]
        )

    def test_invalid_amounts(self):
        for amount in ("0", "-1", "abc", None, "1.005"):
            with self.subTest(amount=amount):
                with self.assertRaises(ValidationError):
                    services.create_request(self.sender.id, amount, [self.a.id])
        self.assertNothingWritten()

    def test_empty_approver_list(self):
        with self.assertRaises(ValidationError):
            services.create_request(self.sender.id, "5", [])
        self.assertNothingWritten()

    def test_sender_cannot_approve_self(self):
        make_partners(self.a, self.sender)
        with self.assertRaises(ValidationError):
            services.create_request(self.sender.id, "5", [self.a.id, self.sender.id])
        self.assertNothingWritten()

    def test_unknown_approver(self):
        with self.assertRaises(ValidationError) as ctx:
            services.create_request(self.sender.id, "5", [self.a.id, uuid.uuid4()])
        self.assertIn("approverIds", ctx.exception.details)
        self.assertNothingWritten()

    def test_malformed_approver_id(self):
        with self.assertRaises(ValidationError):
            services.create_request(self.sender.id, "5", ["not-a-uuid"])
        self.assertNothingWritten()

    def test_approver_must_be_accepted_partner(self):
        for approver in (self.stranger, self.pending_partner):
            with self.subTest(approver=approver.username):
                with self.assertRaises(ValidationError) as ctx:
                    services.create_request(self.sender.id, "5", [self.a.id, approver.id])
                self.assertEqual(ctx.exception.details["approverIds"], [str(approver.id)])
        self.assertNothingWritten()

    def test_partnership_is_directional(self):
        make_partners(self.stranger, self.sender)
        with self.assertRaises(ValidationError):
            services.create_request(self.sender.id, "5", [self.stranger.id])

    def test_unknown_sender(self):
        with self.assertRaises(NotFoundError):
            services.create_request(uuid.uuid4(), "5", [self.a.id])

    def test_bad_currency(self):
        with self.assertRaises(ValidationError):
            services.create_request(self.sender.id, "5", [self.a.id], currency="DOLLARS")
