"""
Notification API views.
"""

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.pagination import LimitOffsetPagination
from rest_framework.response import Response

from core.permissions import IsMember
from apps.notifications import services
from apps.notifications.serializers import NotificationSerializer


@api_view(["GET"])
@permission_classes([IsMember])
def list_notifications(request):
    """
    GET /api/v1/notifications?unread=true

    Notifications of the caller, newest first.
    """
    unread_only = request.query_params.get("unread", "").lower() in ("1", "true")
    queryset = services.list_notifications(request.user.id, unread_only=unread_only)

    paginator = LimitOffsetPagination()
    paginator.default_limit = 50
    paginator.max_limit = 100

    page = paginator.paginate_queryset(queryset, request)
    serializer = NotificationSerializer(page, many=True)
    return paginator.get_paginated_response(serializer.data)


@api_view(["POST"])
@permission_classes([IsMember])
def mark_notification_read(request, notificationId):
    """
    POST /api/v1/notifications/{notificationId}/read
    """
    notification = services.mark_read(request.user.id, notificationId)
    serializer = NotificationSerializer(notification)
    return Response({"data": serializer.data}, status=status.HTTP_200_OK)


@api_view(["POST"])
@permission_classes([IsMember])
def mark_all_notifications_read(request):
    """
    POST /api/v1/notifications/read-all
    """
    updated = services.mark_all_read(request.user.id)
    return Response({"data": {"updated": updated}}, status=status.HTTP_200_OK)
