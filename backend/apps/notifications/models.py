"""
Notification model - user-facing alert persisted for later retrieval.
"""

import uuid
from django.db import models


class NotificationType(models.TextChoices):
    APPROVAL_REQUEST = "approval_request", "Approval request"
    REQUEST_REVIEWED = "request_reviewed", "Request reviewed"


class Notification(models.Model):
    """Notification addressed to one user."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        "users.User", on_delete=models.CASCADE, related_name="notifications"
    )
    type = models.CharField(max_length=32, choices=NotificationType.choices)
    title = models.CharField(max_length=255)
    message = models.TextField()
    related_request = models.ForeignKey(
        "payments.PaymentRequest",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="notifications",
    )
    # Identifies the logical event; a replay of the same event is a no-op.
    dedupe_key = models.CharField(max_length=255, null=True, blank=True)
    read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "notifications"
        constraints = [
            models.UniqueConstraint(
                fields=["user", "dedupe_key"],
                condition=models.Q(dedupe_key__isnull=False),
                name="unique_notification_per_event",
            ),
        ]
        indexes = [
            models.Index(fields=["user", "read"], name="idx_notification_user_read"),
            models.Index(fields=["created_at"], name="idx_notification_created"),
        ]
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.type} for {self.user_id}: {self.title}"
