"""
Request store - the only module that writes PaymentRequest rows.

Reads for display may be served from the Django cache; every write
invalidates the cached entry, and the approval engine always reads the
database under a row lock. Database failures other than integrity
violations surface as StorageError.
"""

import functools
import logging

from django.conf import settings
from django.core.cache import cache
from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from core.exceptions import NotFoundError, StorageError, ValidationError
from apps.payments.models import (
    ApprovalRecord,
    ApproverStatus,
    FundingStatus,
    PaymentRequest,
    RequestApprover,
    RequestStatus,
)
from apps.payments.versioning import version_locked_update

logger = logging.getLogger(__name__)

LIST_SCOPES = ("mine", "to-approve", "all")


def _storage_guard(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except IntegrityError:
            raise
        except DatabaseError as exc:
            logger.error(
                "payment_request_storage_failed",
                extra={"operation": func.__name__, "error": str(exc)},
            )
            raise StorageError(
                "Payment request storage is unavailable",
                {"operation": func.__name__},
            ) from exc

    return wrapper


def _cache_key(request_id):
    return f"payment_request:{request_id}"


def _cache_timeout():
    return getattr(settings, "PAYMENT_REQUEST_CACHE_TIMEOUT", 0)


def invalidate(request_id):
    """Drop the cached copy now and again once the surrounding transaction commits."""
    key = _cache_key(request_id)
    cache.delete(key)
    transaction.on_commit(lambda: cache.delete(key))


def _detail_queryset():
    return PaymentRequest.objects.select_related("sender").prefetch_related(
        "approvers__approver", "decisions__approver"
    )


@_storage_guard
def create_payment_request(
    sender_id,
    amount,
    approver_ids,
    description="",
    category="Other",
    image_ref=None,
    currency="USD",
):
    """
    Persist a new PENDING payment request with one PENDING entry per approver.

    approver_ids must already be validated and de-duplicated; position follows
    list order.
    """
    with transaction.atomic():
        payment_request = PaymentRequest.objects.create(
            sender_id=sender_id,
            amount=amount,
            currency=currency,
            description=description,
            category=category,
            image_ref=image_ref,
            status=RequestStatus.PENDING,
        )
        RequestApprover.objects.bulk_create(
            [
                RequestApprover(
                    payment_request=payment_request,
                    approver_id=approver_id,
                    position=position,
                )
                for position, approver_id in enumerate(approver_ids)
            ]
        )
    return payment_request


@_storage_guard
def get_payment_request(request_id, use_cache=True):
    """
    Fetch a payment request with approvers and decisions loaded.

    Raises:
        NotFoundError: If the request does not exist
    """
    timeout = _cache_timeout()
    key = _cache_key(request_id)
    if use_cache and timeout:
        cached = cache.get(key)
        if cached is not None:
            return cached

    try:
        payment_request = _detail_queryset().get(id=request_id)
    except PaymentRequest.DoesNotExist:
        raise NotFoundError(f"PaymentRequest {request_id} does not exist")

    if use_cache and timeout:
        cache.set(key, payment_request, timeout)
    return payment_request


@_storage_guard
def lock_payment_request(request_id):
    """
    Read a payment request with a row lock. Must run inside transaction.atomic.

    Raises:
        NotFoundError: If the request does not exist
    """
    try:
        return PaymentRequest.objects.select_for_update().get(id=request_id)
    except PaymentRequest.DoesNotExist:
        raise NotFoundError(f"PaymentRequest {request_id} does not exist")


@_storage_guard
def get_approver_entry(request_id, approver_id):
    """Return the approver's entry on the request, or None if not designated."""
    return RequestApprover.objects.filter(
        payment_request_id=request_id, approver_id=approver_id
    ).first()


@_storage_guard
def pending_approver_ids(request_id):
    """Approvers of request_id whose entry is still PENDING, in position order."""
    return list(
        RequestApprover.objects.filter(
            payment_request_id=request_id, status=ApproverStatus.PENDING
        )
        .order_by("position")
        .values_list("approver_id", flat=True)
    )


@_storage_guard
def mark_approver_approved(request_id, approver_id, approved_at=None):
    """
    Flip one approver entry PENDING -> APPROVED.

    Returns:
        int: 1 when this call flipped the entry, 0 when it was not pending
    """
    updated = RequestApprover.objects.filter(
        payment_request_id=request_id,
        approver_id=approver_id,
        status=ApproverStatus.PENDING,
    ).update(status=ApproverStatus.APPROVED, approved_at=approved_at or timezone.now())
    invalidate(request_id)
    return updated


@_storage_guard
def record_decision(request_id, approver_id, decision, comment=None):
    """Append an approve/reject decision to the request's trail."""
    record = ApprovalRecord.objects.create(
        payment_request_id=request_id,
        approver_id=approver_id,
        decision=decision,
        comment=comment,
    )
    invalidate(request_id)
    return record


@_storage_guard
def update_payment_request(payment_request, expected_status, **patch):
    """
    Compare-and-set write of a payment request.

    Applies patch only if the row still has expected_status and the version
    read into payment_request; bumps the version.

    Returns:
        bool: True when this write won; payment_request is refreshed either way
    """
    updated = version_locked_update(
        PaymentRequest.objects.filter(id=payment_request.id, status=expected_status),
        current_version=payment_request.version,
        **patch,
    )
    invalidate(payment_request.id)
    payment_request.refresh_from_db()
    return updated == 1


@_storage_guard
def record_funding_outcome(request_id, result=None, error=None):
    """
    Record the outcome of the single funding attempt for request_id.

    Only a request whose funding is IN_FLIGHT is written, so an outcome is
    recorded at most once.

    Returns:
        bool: True if the outcome was recorded
    """
    if (result is None) == (error is None):
        raise ValueError("Exactly one of result or error must be given")

    updates = {
        "funding_attempted_at": timezone.now(),
        "updated_at": timezone.now(),
        "version": F("version") + 1,
    }
    if error is None:
        updates["funding_status"] = FundingStatus.SUCCEEDED
        updates["funding_result"] = result
    else:
        updates["funding_status"] = FundingStatus.FAILED
        updates["funding_error"] = str(error)

    with transaction.atomic():
        updated = PaymentRequest.objects.filter(
            id=request_id,
            status=RequestStatus.APPROVED,
            funding_status=FundingStatus.IN_FLIGHT,
        ).update(**updates)
        invalidate(request_id)
    return updated == 1


@_storage_guard
def list_payment_requests(user_id, scope="mine"):
    """
    Payment requests visible to user_id under scope, newest first.

    mine: requests the user sent
    to-approve: pending requests where the user's own entry is pending
    all: every request (callers enforce who may ask for it)
    """
    if scope not in LIST_SCOPES:
        raise ValidationError(
            f"Unknown filter: {scope}", {"allowed": list(LIST_SCOPES)}
        )

    queryset = _detail_queryset()
    if scope == "mine":
        queryset = queryset.filter(sender_id=user_id)
    elif scope == "to-approve":
        queryset = queryset.filter(
            status=RequestStatus.PENDING,
            approvers__approver_id=user_id,
            approvers__status=ApproverStatus.PENDING,
        ).distinct()
    return queryset.order_by("-created_at")
