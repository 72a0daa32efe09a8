"""
URL routing for notification endpoints.
"""

from django.urls import path
from apps.notifications import views

app_name = "notifications"

urlpatterns = [
    path("notifications", views.list_notifications, name="list-notifications"),
    path(
        "notifications/read-all",
        views.mark_all_notifications_read,
        name="mark-all-read",
    ),
    path(
        "notifications/<uuid:notificationId>/read",
        views.mark_notification_read,
        name="mark-read",
    ),
]
