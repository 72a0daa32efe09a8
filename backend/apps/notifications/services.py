"""
Notification sink.

Delivery is best-effort: a failure to persist a notification is logged and
never propagates to the workflow operation that triggered it.
"""

import logging

from django.db import DatabaseError, transaction
from django.utils import timezone

from core.exceptions import NotFoundError
from apps.notifications.models import Notification

logger = logging.getLogger(__name__)


def create_notification(
    user_id, notification_type, title, message, related_request_id=None, dedupe_key=None
):
    """
    Persist a notification for user_id.

    Args:
        user_id: Recipient identifier
        notification_type: NotificationType value
        title: Short headline
        message: Body text
        related_request_id: PaymentRequest the notification is about (optional)
        dedupe_key: Logical event key; at most one notification per
            (user, dedupe_key) is ever stored

    Returns:
        Notification | None: The stored (or previously stored) notification,
        None when storage failed.
    """
    try:
        # Savepoint: a failure here must not poison an enclosing transaction.
        with transaction.atomic():
            if dedupe_key:
                notification, created = Notification.objects.get_or_create(
                    user_id=user_id,
                    dedupe_key=dedupe_key,
                    defaults={
                        "type": notification_type,
                        "title": title,
                        "message": message,
                        "related_request_id": related_request_id,
                    },
                )
            else:
                notification = Notification.objects.create(
                    user_id=user_id,
                    type=notification_type,
                    title=title,
                    message=message,
                    related_request_id=related_request_id,
                )
                created = True
    except DatabaseError:
        logger.exception(
            "notification_delivery_failed",
            extra={
                "user_id": str(user_id),
                "notification_type": notification_type,
                "entity_id": str(related_request_id) if related_request_id else None,
            },
        )
        return None

    if not created:
        logger.info(
            "notification_deduplicated",
            extra={"user_id": str(user_id), "dedupe_key": dedupe_key},
        )
    return notification


def list_notifications(user_id, unread_only=False):
    queryset = Notification.objects.filter(user_id=user_id).order_by("-created_at")
    if unread_only:
        queryset = queryset.filter(read=False)
    return queryset


def mark_read(user_id, notification_id):
    """Mark one of the user's notifications read."""
    try:
        notification = Notification.objects.get(id=notification_id, user_id=user_id)
    except Notification.DoesNotExist:
        raise NotFoundError(f"Notification {notification_id} does not exist")

    if not notification.read:
        notification.read = True
        notification.save(update_fields=["read"])
    return notification


def mark_all_read(user_id):
    """Mark every unread notification of the user read; returns the count."""
    updated = Notification.objects.filter(user_id=user_id, read=False).update(read=True)
    logger.info(
        "notifications_marked_read",
        extra={"user_id": str(user_id), "count": updated, "at": timezone.now().isoformat()},
    )
    return updated
