"""
Payment request API tests: envelopes, status codes and permissions.
"""

import uuid
from unittest.mock import MagicMock, patch

from django.db import IntegrityError
from rest_framework.test import APITestCase

from apps.payments import services
from apps.payments.models import ApprovalRecord, PaymentRequest
from apps.payments.tests.helpers import make_partners, make_user


class PaymentRequestViewTests(APITestCase):
    def setUp(self):
        self.sender = make_user("api_sender", funding_account_ref="wallet_api")
        self.a = make_user("api_a")
        self.b = make_user("api_b")
        self.outsider = make_user("api_outsider")
        self.admin = make_user("api_admin", role="ADMIN")
        make_partners(self.sender, self.a, self.b)
        self.gateway = MagicMock()
        self.gateway.fund.return_value = {"transactionRef": "gpa_api"}
        patcher = patch(
            "apps.payments.services.get_funding_gateway", return_value=self.gateway
        )
        patcher.start()
        self.addCleanup(patcher.stop)

    def _create(self, key="api-create", approvers=None, **overrides):
        payload = {
            "amount": "12.50",
            "description": "Groceries",
            "approverIds": [str(u.id) for u in (approvers or [self.a, self.b])],
        }
        payload.update(overrides)
        self.client.force_authenticate(user=self.sender)
        return self.client.post(
            "/api/v1/payment-requests", payload, format="json", HTTP_IDEMPOTENCY_KEY=key
        )

    def _decide(self, user, request_id, action, key, **payload):
        self.client.force_authenticate(user=user)
        return self.client.post(
            f"/api/v1/payment-requests/{request_id}/{action}",
            payload,
            format="json",
            HTTP_IDEMPOTENCY_KEY=key,
        )

    def test_create(self):
        response = self._create()

        self.assertEqual(response.status_code, 201, response.data)
        data = response.data["data"]
        self.assertEqual(data["status"], "PENDING")
        self.assertEqual(data["amount"], "12.50")
        self.assertEqual(data["senderId"], str(self.sender.id))
        self.assertEqual(
            [entry["approverId"] for entry in data["approvers"]],
            [str(self.a.id), str(self.b.id)],
        )
        self.assertEqual(data["approvedBy"], [])
        self.assertIsNone(data["rejectedBy"])
        self.assertEqual(data["fundingStatus"], "NOT_STARTED")

    def test_create_requires_idempotency_key(self):
        self.client.force_authenticate(user=self.sender)
        response = self.client.post(
            "/api/v1/payment-requests",
            {"amount": "1.00", "approverIds": [str(self.a.id)]},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["code"], "VALIDATION_ERROR")

    def test_create_replay_returns_same_request(self):
        first = self._create(key="same-key")
        second = self._create(key="same-key")

        self.assertEqual(second.status_code, 201)
        self.assertEqual(first.data["data"]["id"], second.data["data"]["id"])
        self.assertEqual(PaymentRequest.objects.count(), 1)

    def test_create_validation_errors(self):
        response = self._create(key="bad-amount", amount="-3")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["error"]["code"], "VALIDATION_ERROR")

        response = self._create(key="bad-approver", approvers=[self.outsider])
        self.assertEqual(response.status_code, 400)
        self.assertEqual(
            response.data["error"]["details"]["approverIds"], [str(self.outsider.id)]
        )

        response = self._create(key="missing-field", approverIds=None)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(PaymentRequest.objects.count(), 0)

    def test_full_approval(self):
        request_id = self._create().data["data"]["id"]

        first = self._decide(self.a, request_id, "approve", "a-approve", notes="ok")
        self.assertEqual(first.status_code, 200, first.data)
        self.assertEqual(first.data["data"]["status"], "PENDING")
        approved_by = first.data["data"]["approvedBy"]
        self.assertEqual([entry["approverId"] for entry in approved_by], [str(self.a.id)])
        self.assertTrue(approved_by[0]["approvedAt"])

        second = self._decide(self.b, request_id, "approve", "b-approve")
        self.assertEqual(second.status_code, 200, second.data)
        data = second.data["data"]
        self.assertEqual(data["status"], "APPROVED")
        self.assertEqual(data["fundingStatus"], "SUCCEEDED")
        self.assertEqual(data["fundingResult"], {"transactionRef": "gpa_api"})
        self.assertEqual(len(data["approvedBy"]), 2)
        self.gateway.fund.assert_called_once()

    def test_reject(self):
        request_id = self._create().data["data"]["id"]

        response = self._decide(self.b, request_id, "reject", "b-reject", notes="No")

        self.assertEqual(response.status_code, 200, response.data)
        self.assertEqual(response.data["data"]["status"], "REJECTED")
        rejected_by = response.data["data"]["rejectedBy"]
        self.assertEqual(rejected_by["approverId"], str(self.b.id))
        self.assertTrue(rejected_by["rejectedAt"])
        self.assertEqual(response.data["data"]["notes"], "No")

    def test_reject_requires_notes(self):
        request_id = self._create().data["data"]["id"]

        response = self._decide(self.b, request_id, "reject", "b-reject", notes=" ")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["error"]["code"], "VALIDATION_ERROR")

    def test_error_codes(self):
        request_id = self._create().data["data"]["id"]

        response = self._decide(self.outsider, request_id, "approve", "o-approve")
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.data["error"]["code"], "UNAUTHORIZED")

        self._decide(self.a, request_id, "approve", "a-approve-1")
        response = self._decide(self.a, request_id, "approve", "a-approve-2")
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data["error"]["code"], "ALREADY_ACTED")

        self._decide(self.b, request_id, "reject", "b-reject", notes="No")
        response = self._decide(self.b, request_id, "approve", "b-approve")
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data["error"]["code"], "ALREADY_TERMINAL")

        response = self._decide(self.a, uuid.uuid4(), "approve", "missing")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data["error"]["code"], "NOT_FOUND")

    def test_approve_replay_is_not_double_counted(self):
        request_id = self._create().data["data"]["id"]

        first = self._decide(self.a, request_id, "approve", "a-approve")
        replay = self._decide(self.a, request_id, "approve", "a-approve")

        self.assertEqual(replay.status_code, 200)
        self.assertEqual(replay.data["data"]["version"], first.data["data"]["version"])
        self.assertEqual(
            ApprovalRecord.objects.filter(payment_request_id=request_id).count(), 1
        )

    def test_idempotency_key_reused_on_another_request_is_rejected(self):
        first_id = self._create(key="create-first").data["data"]["id"]
        second_id = self._create(key="create-second").data["data"]["id"]
        self._decide(self.a, first_id, "approve", "a-approve")

        response = self._decide(self.a, second_id, "approve", "a-approve")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["error"]["code"], "VALIDATION_ERROR")
        self.assertFalse(
            ApprovalRecord.objects.filter(payment_request_id=second_id).exists()
        )

    def test_get_visibility(self):
        request_id = self._create().data["data"]["id"]
        url = f"/api/v1/payment-requests/{request_id}"

        for user in (self.sender, self.a, self.admin):
            self.client.force_authenticate(user=user)
            self.assertEqual(self.client.get(url).status_code, 200)

        self.client.force_authenticate(user=self.outsider)
        response = self.client.get(url)
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.data["error"]["code"], "FORBIDDEN")

    def test_list_filters(self):
        request_id = self._create().data["data"]["id"]

        self.client.force_authenticate(user=self.sender)
        mine = self.client.get("/api/v1/payment-requests")
        self.assertEqual(mine.status_code, 200)
        self.assertEqual(mine.data["count"], 1)
        self.assertEqual(mine.data["results"][0]["id"], request_id)

        self.client.force_authenticate(user=self.a)
        queue = self.client.get("/api/v1/payment-requests?filter=to-approve")
        self.assertEqual(queue.data["count"], 1)
        self._decide(self.a, request_id, "approve", "a-approve")
        queue = self.client.get("/api/v1/payment-requests?filter=to-approve")
        self.assertEqual(queue.data["count"], 0)

        forbidden = self.client.get("/api/v1/payment-requests?filter=all")
        self.assertEqual(forbidden.status_code, 403)

        self.client.force_authenticate(user=self.admin)
        everything = self.client.get("/api/v1/payment-requests?filter=all")
        self.assertEqual(everything.data["count"], 1)

        bad = self.client.get("/api/v1/payment-requests?filter=bogus")
        self.assertEqual(bad.status_code, 400)

    def test_history(self):
        request_id = self._create().data["data"]["id"]
        self._decide(self.a, request_id, "reject", "a-reject", notes="No")

        self.client.force_authenticate(user=self.sender)
        response = self.client.get(f"/api/v1/payment-requests/{request_id}/history")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            [entry["eventType"] for entry in response.data["data"]],
            ["REQUEST_CREATED", "REQUEST_REJECTED"],
        )

    def test_requires_authentication(self):
        response = self.client.get("/api/v1/payment-requests")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data["error"]["code"], "UNAUTHENTICATED")

    def test_integrity_error_maps_to_conflict(self):
        request_id = self._create().data["data"]["id"]

        with patch.object(services, "approve_request", side_effect=IntegrityError("dup")):
            response = self._decide(self.a, request_id, "approve", "a-approve")

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data["error"]["code"], "CONFLICT")
