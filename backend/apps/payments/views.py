"""
Payment request API views.

All mutations flow through service layer.
All endpoints define permission_classes per API contract.
"""

import logging

from django.db import IntegrityError
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.pagination import LimitOffsetPagination
from rest_framework.response import Response

from core.exceptions import DomainError, error_response
from core.permissions import IsMember
from core.throttling import DecisionThrottle, MutationUserThrottle
from apps.audit.serializers import AuditLogSerializer
from apps.payments import services
from apps.payments.serializers import (
    ApprovalRequestSerializer,
    CreatePaymentRequestSerializer,
    PaymentRequestDetailSerializer,
    PaymentRequestSerializer,
)

logger = logging.getLogger(__name__)


def _conflict(message):
    return error_response("CONFLICT", message, status_code=status.HTTP_409_CONFLICT)


@api_view(["POST", "GET"])
@permission_classes([IsMember])
def create_or_list_requests(request):
    """
    POST /api/v1/payment-requests - Create a PaymentRequest
    GET /api/v1/payment-requests?filter=mine|to-approve|all - List PaymentRequests
    """
    if request.method == "GET":
        scope = request.query_params.get("filter", "mine")
        queryset = services.list_requests(request.user.id, scope)

        paginator = LimitOffsetPagination()
        paginator.default_limit = 50
        paginator.max_limit = 100

        page = paginator.paginate_queryset(queryset, request)
        serializer = PaymentRequestSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    serializer = CreatePaymentRequestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    try:
        payment_request = services.create_request(
            request.user.id,
            data["amount"],
            data["approverIds"],
            description=data.get("description", ""),
            category=data.get("category", "Other"),
            image_ref=data.get("imageRef"),
            currency=data.get("currency", "USD"),
            idempotency_key=getattr(request, "idempotency_key", None),
        )
    except DomainError:
        raise
    except IntegrityError:
        return _conflict("Payment request conflict (duplicate idempotency key)")

    detail_serializer = PaymentRequestDetailSerializer(payment_request)
    return Response({"data": detail_serializer.data}, status=status.HTTP_201_CREATED)


@api_view(["GET"])
@permission_classes([IsMember])
def get_request(request, requestId):
    """
    GET /api/v1/payment-requests/{requestId}

    Visible to the sender, the designated approvers and admins.
    """
    payment_request = services.get_request(requestId, request.user.id)
    serializer = PaymentRequestDetailSerializer(payment_request)
    return Response({"data": serializer.data}, status=status.HTTP_200_OK)


@api_view(["GET"])
@permission_classes([IsMember])
def get_request_history(request, requestId):
    """
    GET /api/v1/payment-requests/{requestId}/history

    Audit trail of the request, oldest first.
    """
    entries = services.get_request_history(requestId, request.user.id)
    serializer = AuditLogSerializer(entries, many=True)
    return Response({"data": serializer.data}, status=status.HTTP_200_OK)


@api_view(["POST"])
@permission_classes([IsMember])
@throttle_classes([MutationUserThrottle, DecisionThrottle])
def approve_request(request, requestId):
    """
    POST /api/v1/payment-requests/{requestId}/approve

    Approve as one of the designated approvers. The request is approved and
    funded once every approver has approved.
    """
    serializer = ApprovalRequestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    notes = serializer.validated_data.get("notes")

    try:
        payment_request = services.approve_request(
            requestId,
            request.user.id,
            notes,
            idempotency_key=getattr(request, "idempotency_key", None),
        )
        detail_serializer = PaymentRequestDetailSerializer(payment_request)
        return Response({"data": detail_serializer.data}, status=status.HTTP_200_OK)
    except DomainError:
        raise
    except IntegrityError:
        return _conflict("Approval conflict (duplicate approval or idempotency)")


@api_view(["POST"])
@permission_classes([IsMember])
@throttle_classes([MutationUserThrottle, DecisionThrottle])
def reject_request(request, requestId):
    """
    POST /api/v1/payment-requests/{requestId}/reject

    Reject with a reason. A single rejection is final.
    """
    serializer = ApprovalRequestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    notes = serializer.validated_data.get("notes")

    try:
        payment_request = services.reject_request(
            requestId,
            request.user.id,
            notes,
            idempotency_key=getattr(request, "idempotency_key", None),
        )
        detail_serializer = PaymentRequestDetailSerializer(payment_request)
        return Response({"data": detail_serializer.data}, status=status.HTTP_200_OK)
    except DomainError:
        raise
    except IntegrityError:
        return _conflict("Rejection conflict (duplicate decision or idempotency)")
