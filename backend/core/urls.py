from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/health/", include("health.urls")),
    # API v1 base path: /api/v1
    path("api/v1/auth/", include("apps.auth.urls")),
    path("api/v1/users/", include("apps.users.urls")),
    # Remaining endpoints are defined directly under /api/v1
    # (e.g. /api/v1/payment-requests), so these includes come last.
    path("api/v1/", include("apps.partners.urls")),
    path("api/v1/", include("apps.notifications.urls")),
    path("api/v1/", include("apps.payments.urls")),
]
