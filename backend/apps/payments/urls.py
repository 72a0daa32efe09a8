"""
URL routing for payment request endpoints.
"""

from django.urls import path
from apps.payments import views

app_name = "payments"

urlpatterns = [
    path(
        "payment-requests",
        views.create_or_list_requests,
        name="create-or-list-requests",
    ),  # POST, GET
    path(
        "payment-requests/<uuid:requestId>", views.get_request, name="get-request"
    ),
    path(
        "payment-requests/<uuid:requestId>/history",
        views.get_request_history,
        name="request-history",
    ),
    path(
        "payment-requests/<uuid:requestId>/approve",
        views.approve_request,
        name="approve-request",
    ),  # POST
    path(
        "payment-requests/<uuid:requestId>/reject",
        views.reject_request,
        name="reject-request",
    ),  # POST
]
