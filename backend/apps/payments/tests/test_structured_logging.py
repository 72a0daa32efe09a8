"""
Structured logging: workflow operations emit records carrying operation,
entity_id, actor_id and the correlation id of the HTTP request.
"""

from unittest.mock import MagicMock, patch

from django.test import TestCase
from rest_framework.test import APIClient

from apps.payments import services
from apps.payments.tests.helpers import make_partners, make_user


class StructuredLoggingApproveTests(TestCase):
    """Approve request emits structured log with request_id, entity_id, operation."""

    def setUp(self):
        self.client = APIClient()
        self.sender = make_user("log_sender", funding_account_ref="wallet_log")
        self.approver = make_user("log_approver")
        make_partners(self.sender, self.approver)
        self.req = services.create_request(
            self.sender.id, "100.00", [self.approver.id], description="Rent"
        )

    def test_approve_emits_structured_log_and_response_has_request_id(self):
        url = f"/api/v1/payment-requests/{self.req.id}/approve"
        request_id = "test-correlation-id-12345"
        headers = {
            "HTTP_IDEMPOTENCY_KEY": "log-test-approve-key",
            "HTTP_X_REQUEST_ID": request_id,
        }
        gateway = MagicMock()
        gateway.fund.return_value = {"transactionRef": "gpa_log"}

        self.client.force_authenticate(user=self.approver)
        with patch("apps.payments.services.get_funding_gateway", return_value=gateway):
            with self.assertLogs("apps.payments.services", level="INFO") as cm:
                response = self.client.post(
                    url, {"notes": "Approve"}, format="json", **headers
                )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get("X-Request-ID"), request_id)

        approval_logs = [
            r
            for r in cm.records
            if getattr(r, "operation", None) == "APPROVE_PAYMENT_REQUEST"
        ]
        self.assertEqual(
            len(approval_logs), 1, "Exactly one APPROVE_PAYMENT_REQUEST log"
        )
        self.assertEqual(approval_logs[0].message, "payment_request_approved")
        self.assertEqual(approval_logs[0].entity_id, str(self.req.id))
        self.assertEqual(approval_logs[0].actor_id, str(self.approver.id))
        self.assertEqual(approval_logs[0].request_id, request_id)
        self.assertTrue(approval_logs[0].quorum_complete)

        funding_logs = [
            r for r in cm.records if getattr(r, "operation", None) == "FUND_PAYMENT_REQUEST"
        ]
        self.assertEqual([r.message for r in funding_logs], ["payment_request_funded"])
        self.assertEqual(funding_logs[0].transaction_ref, "gpa_log")

    def test_reject_emits_structured_log(self):
        with self.assertLogs("apps.payments.services", level="INFO") as cm:
            services.reject_request(self.req.id, self.approver.id, "Too much")

        records = [r for r in cm.records if r.message == "payment_request_rejected"]
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0].operation, "REJECT_PAYMENT_REQUEST")
        self.assertEqual(records[0].entity_id, str(self.req.id))

    def test_create_emits_structured_log(self):
        with self.assertLogs("apps.payments.services", level="INFO") as cm:
            req = services.create_request(self.sender.id, "5.00", [self.approver.id])

        records = [r for r in cm.records if r.message == "payment_request_created"]
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0].entity_id, str(req.id))
        self.assertEqual(records[0].actor_id, str(self.sender.id))
        self.assertEqual(records[0].approver_count, 1)
