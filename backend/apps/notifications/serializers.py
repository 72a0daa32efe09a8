"""
Serializers for notifications.
"""

from rest_framework import serializers
from apps.notifications.models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    """Serializer for Notification."""

    id = serializers.UUIDField(read_only=True)
    requestId = serializers.UUIDField(
        source="related_request_id", read_only=True, allow_null=True
    )
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)

    class Meta:
        model = Notification
        fields = ["id", "type", "title", "message", "requestId", "read", "createdAt"]
        read_only_fields = fields
