"""
Notification tests: what the workflow tells whom, dedupe, best-effort
delivery, and the notification endpoints.
"""

import uuid
from unittest.mock import MagicMock, patch

from django.db import OperationalError
from django.test import TestCase
from rest_framework.test import APIClient, APITestCase

from apps.notifications import services as notification_services
from apps.notifications.models import Notification, NotificationType
from apps.payments import emitter, services
from apps.payments.tests.helpers import make_partners, make_user


class WorkflowNotificationTests(TestCase):
    def setUp(self):
        self.sender = make_user("notify_sender", funding_account_ref="wallet_n")
        self.a = make_user("notify_a")
        self.b = make_user("notify_b")
        make_partners(self.sender, self.a, self.b)
        gateway = MagicMock()
        gateway.fund.return_value = {"transactionRef": "gpa_n"}
        patcher = patch("apps.payments.services.get_funding_gateway", return_value=gateway)
        patcher.start()
        self.addCleanup(patcher.stop)

    def _create(self, amount="12.50", description="Groceries", approvers=None):
        with self.captureOnCommitCallbacks(execute=True):
            return services.create_request(
                self.sender.id,
                amount,
                approvers or [self.a.id, self.b.id],
                description=description,
            )

    def test_creation_notifies_every_approver(self):
        req = self._create()

        for approver in (self.a, self.b):
            notification = Notification.objects.get(user=approver)
            self.assertEqual(notification.type, NotificationType.APPROVAL_REQUEST)
            self.assertEqual(notification.title, "New Approval Request")
            self.assertEqual(notification.message, "New $12.50 request for Groceries")
            self.assertEqual(notification.related_request_id, req.id)
            self.assertFalse(notification.read)
        self.assertFalse(Notification.objects.filter(user=self.sender).exists())

    def test_category_used_when_description_empty(self):
        with self.captureOnCommitCallbacks(execute=True):
            services.create_request(
                self.sender.id, "3", [self.a.id], category="Travel"
            )

        notification = Notification.objects.get(user=self.a)
        self.assertEqual(notification.message, "New $3.00 request for Travel")

    def test_partial_approval_does_not_notify_sender(self):
        req = self._create()

        with self.captureOnCommitCallbacks(execute=True):
            services.approve_request(req.id, self.a.id)

        self.assertFalse(Notification.objects.filter(user=self.sender).exists())

    def test_quorum_notifies_sender_once(self):
        req = self._create()

        with self.captureOnCommitCallbacks(execute=True):
            services.approve_request(req.id, self.a.id)
        with self.captureOnCommitCallbacks(execute=True):
            services.approve_request(req.id, self.b.id)

        notifications = Notification.objects.filter(user=self.sender)
        self.assertEqual(notifications.count(), 1)
        notification = notifications.get()
        self.assertEqual(notification.type, NotificationType.REQUEST_REVIEWED)
        self.assertEqual(notification.title, "Request Approved")
        self.assertEqual(notification.message, "Your $12.50 request for Groceries was approved")

    def test_rejection_notifies_only_sender(self):
        req = self._create()

        with self.captureOnCommitCallbacks(execute=True):
            services.reject_request(req.id, self.a.id, "Not this month")

        notification = Notification.objects.get(user=self.sender)
        self.assertEqual(notification.title, "Request Rejected")
        self.assertEqual(notification.message, "Your $12.50 request for Groceries was rejected")
        # Approvers only hold their creation notification.
        self.assertEqual(Notification.objects.filter(user=self.b).count(), 1)
        self.assertEqual(Notification.objects.filter(user=self.a).count(), 1)

    def test_replayed_event_is_deduplicated(self):
        req = self._create(approvers=[self.a.id])
        with self.captureOnCommitCallbacks(execute=True):
            services.approve_request(req.id, self.a.id)

        reloaded = services.get_request(req.id, self.sender.id)
        emitter.request_reviewed(reloaded)
        emitter.request_created(reloaded)

        self.assertEqual(Notification.objects.filter(user=self.sender).count(), 1)
        self.assertEqual(Notification.objects.filter(user=self.a).count(), 1)

    def test_request_reviewed_ignores_pending_request(self):
        req = self._create()

        self.assertIsNone(emitter.request_reviewed(req))
        self.assertFalse(Notification.objects.filter(user=self.sender).exists())

    def test_delivery_failure_does_not_fail_the_workflow(self):
        req = self._create(approvers=[self.a.id])

        with patch.object(
            Notification.objects, "get_or_create", side_effect=OperationalError("down")
        ):
            with self.assertLogs("apps.notifications.services", level="ERROR") as cm:
                with self.captureOnCommitCallbacks(execute=True):
                    result = services.approve_request(req.id, self.a.id)

        self.assertEqual(result.status, "APPROVED")
        self.assertIn("notification_delivery_failed", cm.output[0])
        self.assertFalse(Notification.objects.filter(user=self.sender).exists())


class NotificationServiceTests(TestCase):
    def setUp(self):
        self.user = make_user("svc_user")

    def test_without_dedupe_key_every_call_stores(self):
        for _ in range(2):
            notification_services.create_notification(
                self.user.id, NotificationType.APPROVAL_REQUEST, "T", "M"
            )
        self.assertEqual(Notification.objects.filter(user=self.user).count(), 2)

    def test_same_dedupe_key_returns_existing(self):
        first = notification_services.create_notification(
            self.user.id, NotificationType.APPROVAL_REQUEST, "T", "M", dedupe_key="evt"
        )
        second = notification_services.create_notification(
            self.user.id, NotificationType.APPROVAL_REQUEST, "T2", "M2", dedupe_key="evt"
        )
        self.assertEqual(first.id, second.id)
        self.assertEqual(second.title, "T")


class NotificationEndpointTests(APITestCase):
    def setUp(self):
        self.client = APIClient()
        self.user = make_user("endpoint_user")
        self.other = make_user("endpoint_other")
        self.first = notification_services.create_notification(
            self.user.id, NotificationType.APPROVAL_REQUEST, "First", "one"
        )
        self.second = notification_services.create_notification(
            self.user.id, NotificationType.REQUEST_REVIEWED, "Second", "two"
        )
        self.foreign = notification_services.create_notification(
            self.other.id, NotificationType.APPROVAL_REQUEST, "Foreign", "three"
        )
        self.client.force_authenticate(user=self.user)

    def _post(self, url):
        return self.client.post(
            url, {}, format="json", HTTP_IDEMPOTENCY_KEY=str(uuid.uuid4())
        )

    def test_list_returns_only_own_notifications(self):
        response = self.client.get("/api/v1/notifications")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["count"], 2)
        ids = {item["id"] for item in response.data["results"]}
        self.assertEqual(ids, {str(self.first.id), str(self.second.id)})
        self.assertIn("requestId", response.data["results"][0])

    def test_mark_read_and_unread_filter(self):
        response = self._post(f"/api/v1/notifications/{self.first.id}/read")
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data["data"]["read"])

        response = self.client.get("/api/v1/notifications?unread=true")
        self.assertEqual(response.data["count"], 1)
        self.assertEqual(response.data["results"][0]["id"], str(self.second.id))

    def test_mark_read_is_idempotent(self):
        self._post(f"/api/v1/notifications/{self.first.id}/read")
        response = self._post(f"/api/v1/notifications/{self.first.id}/read")

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data["data"]["read"])

    def test_read_all(self):
        response = self._post("/api/v1/notifications/read-all")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["data"]["updated"], 2)
        self.assertFalse(Notification.objects.filter(user=self.user, read=False).exists())
        self.foreign.refresh_from_db()
        self.assertFalse(self.foreign.read)

    def test_other_users_notification_is_not_found(self):
        response = self._post(f"/api/v1/notifications/{self.foreign.id}/read")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data["error"]["code"], "NOT_FOUND")

    def test_requires_authentication(self):
        self.client.force_authenticate(user=None)
        response = self.client.get("/api/v1/notifications")
        self.assertEqual(response.status_code, 401)
