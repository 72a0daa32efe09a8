"""
Payment services - the approval engine. All workflow mutations flow through
this layer.

Rules:
- All mutations wrapped in transaction.atomic
- The payment request row is locked with select_for_update before any check
- State transitions validated, then written with a version compare-and-set
- Audit entries created inside the same transaction
- Funding runs after the approving transaction commits, only for the caller
  whose write completed the quorum
- Notifications are scheduled with transaction.on_commit and never block
  or roll back a transition
"""

import logging
import uuid
from decimal import Decimal, InvalidOperation
from functools import partial

from django.db import transaction
from django.utils import timezone

from core.exceptions import (
    AlreadyActedError,
    AlreadyTerminalError,
    FundingError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    StorageError,
    UnauthorizedError,
    ValidationError,
)
from core.middleware import get_current_request_id
from apps.audit.services import create_audit_entry, entries_for
from apps.partners.services import unauthorized_approvers
from apps.payments import emitter, store
from apps.payments.funding import get_funding_gateway
from apps.payments.models import (
    Decision,
    FundingStatus,
    IdempotencyKey,
    RequestStatus,
)
from apps.payments.state_machine import is_terminal_state, validate_transition
from apps.users.models import Role, User

logger = logging.getLogger(__name__)

OPERATION_CREATE = "CREATE_PAYMENT_REQUEST"
OPERATION_APPROVE = "APPROVE_PAYMENT_REQUEST"
OPERATION_REJECT = "REJECT_PAYMENT_REQUEST"
OPERATION_FUND = "FUND_PAYMENT_REQUEST"


def _log_extra(operation, entity_id, actor_id, **fields):
    return {
        "operation": operation,
        "entity_id": str(entity_id),
        "actor_id": str(actor_id) if actor_id else None,
        "request_id": get_current_request_id(),
        **fields,
    }


def _replay(idempotency_key, operation, actor_id, request_id=None):
    """
    Return the request a previous call with this key produced, if any.

    With request_id, a key already spent on a different request is refused
    rather than replayed.
    """
    if not idempotency_key:
        return None
    existing_key = IdempotencyKey.objects.filter(
        key=idempotency_key, operation=operation, actor_id=actor_id
    ).first()
    if existing_key is None or not existing_key.target_object_id:
        return None
    if request_id is not None and str(existing_key.target_object_id) != str(request_id):
        raise ValidationError(
            "Idempotency-Key was already used for another payment request",
            {"field": "Idempotency-Key", "operation": operation},
        )
    try:
        return store.get_payment_request(existing_key.target_object_id, use_cache=False)
    except NotFoundError:
        return None  # Key exists but object missing, proceed


def _remember(idempotency_key, operation, actor_id, target_id, response_code):
    if idempotency_key:
        IdempotencyKey.objects.create(
            key=idempotency_key,
            operation=operation,
            actor_id=actor_id,
            target_object_id=target_id,
            response_code=response_code,
        )


def _notify(emit, request_id):
    emit(store.get_payment_request(request_id, use_cache=False))


def _parse_amount(amount):
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError("Amount must be a number", {"field": "amount"})
    if not value.is_finite() or value <= 0:
        raise ValidationError("Amount must be greater than zero", {"field": "amount"})
    if value != value.quantize(Decimal("0.01")):
        raise ValidationError(
            "Amount cannot have more than two decimal places", {"field": "amount"}
        )
    return value


def _normalize_approver_ids(approver_ids):
    """Canonical string ids, duplicates collapsed, first occurrence kept."""
    normalized = []
    for raw in approver_ids or []:
        try:
            approver_id = str(uuid.UUID(str(raw)))
        except (ValueError, TypeError, AttributeError):
            raise ValidationError(
                f"Invalid approver id: {raw}", {"field": "approverIds"}
            )
        if approver_id not in normalized:
            normalized.append(approver_id)
    return normalized


def create_request(
    sender_id,
    amount,
    approver_ids,
    description="",
    category="Other",
    image_ref=None,
    currency="USD",
    idempotency_key=None,
):
    """
    Create a PENDING PaymentRequest awaiting every listed approver.

    Args:
        sender_id: Requesting user identifier
        amount: Positive amount with at most two decimal places
        approver_ids: Ordered approver identifiers; duplicates are collapsed
        description: What the money is for
        category: Spending category
        image_ref: Optional receipt/image reference
        currency: Three-letter currency code
        idempotency_key: Optional idempotency key for retry safety

    Returns:
        PaymentRequest: Created request

    Raises:
        NotFoundError: If the sender does not exist
        ValidationError: If amount or approver list is invalid, or an approver
            is not an accepted accountability partner of the sender
    """
    replayed = _replay(idempotency_key, OPERATION_CREATE, sender_id)
    if replayed is not None:
        return replayed

    amount = _parse_amount(amount)
    currency = (currency or "USD").strip().upper()
    if len(currency) != 3:
        raise ValidationError("Currency must be a three-letter code", {"field": "currency"})

    approver_ids = _normalize_approver_ids(approver_ids)
    if not approver_ids:
        raise ValidationError(
            "At least one approver is required", {"field": "approverIds"}
        )

    if not User.objects.filter(id=sender_id).exists():
        raise NotFoundError(f"User {sender_id} does not exist")

    if str(sender_id) in approver_ids:
        raise ValidationError(
            "You cannot approve your own request", {"field": "approverIds"}
        )

    known = set(
        str(user_id)
        for user_id in User.objects.filter(id__in=approver_ids).values_list(
            "id", flat=True
        )
    )
    unknown = [approver_id for approver_id in approver_ids if approver_id not in known]
    if unknown:
        raise ValidationError("Unknown approvers", {"approverIds": unknown})

    not_partners = unauthorized_approvers(sender_id, approver_ids)
    if not_partners:
        raise ValidationError(
            "Approvers must be accepted accountability partners",
            {"approverIds": not_partners},
        )

    with transaction.atomic():
        payment_request = store.create_payment_request(
            sender_id,
            amount,
            approver_ids,
            description=(description or "").strip(),
            category=(category or "").strip() or "Other",
            image_ref=image_ref or None,
            currency=currency,
        )

        _remember(idempotency_key, OPERATION_CREATE, sender_id, payment_request.id, 201)

        create_audit_entry(
            event_type="REQUEST_CREATED",
            actor_id=sender_id,
            entity_type="PaymentRequest",
            entity_id=payment_request.id,
            previous_state=None,
            new_state={
                "status": RequestStatus.PENDING,
                "amount": str(amount),
                "currency": currency,
                "approvers": approver_ids,
            },
        )

        transaction.on_commit(
            partial(_notify, emitter.request_created, payment_request.id), robust=True
        )

    logger.info(
        "payment_request_created",
        extra=_log_extra(
            OPERATION_CREATE,
            payment_request.id,
            sender_id,
            approver_count=len(approver_ids),
        ),
    )
    return store.get_payment_request(payment_request.id, use_cache=False)


def _check_can_act(payment_request, approver_id):
    """
    Checks shared by approve and reject, in order: terminal, designated,
    not yet acted. Returns the caller's approver entry.
    """
    if is_terminal_state("PaymentRequest", payment_request.status):
        raise AlreadyTerminalError(
            f"Payment request is already {payment_request.status.lower()}",
            {"status": payment_request.status},
        )

    entry = store.get_approver_entry(payment_request.id, approver_id)
    if entry is None:
        raise UnauthorizedError(
            "You are not an approver of this payment request",
            {"requestId": str(payment_request.id)},
        )

    if entry.status != "PENDING" or payment_request.decisions.filter(
        approver_id=approver_id
    ).exists():
        raise AlreadyActedError(
            "You have already approved this payment request",
            {"requestId": str(payment_request.id)},
        )
    return entry


def _raise_lost_race(payment_request, expected_version):
    """Another writer changed the row between our lock and our write."""
    if is_terminal_state("PaymentRequest", payment_request.status):
        raise AlreadyTerminalError(
            f"Payment request is already {payment_request.status.lower()}",
            {"status": payment_request.status},
        )
    raise InvalidStateError(
        "Concurrent modification detected. Version mismatch or invalid state.",
        {"expected_version": expected_version},
    )


def approve_request(request_id, approver_id, notes=None, idempotency_key=None):
    """
    Record approver_id's approval of a PENDING PaymentRequest.

    The request becomes APPROVED, and is funded, only when this approval
    leaves no approver pending.

    Args:
        request_id: PaymentRequest identifier
        approver_id: User identifier (must be a designated approver)
        notes: Optional comment
        idempotency_key: Optional idempotency key for retry safety

    Returns:
        PaymentRequest: Updated request

    Raises:
        NotFoundError: If the request does not exist
        AlreadyTerminalError: If the request is APPROVED or REJECTED
        UnauthorizedError: If caller is not a designated approver
        AlreadyActedError: If caller has already approved
        InvalidStateError: If a concurrent write won the compare-and-set
        ValidationError: If idempotency_key was spent on another request
    """
    replayed = _replay(idempotency_key, OPERATION_APPROVE, approver_id, request_id)
    if replayed is not None:
        return replayed

    notes = notes.strip() if notes and notes.strip() else None
    funding_claimed = False

    with transaction.atomic():
        payment_request = store.lock_payment_request(request_id)
        _check_can_act(payment_request, approver_id)

        now = timezone.now()
        if store.mark_approver_approved(payment_request.id, approver_id, now) != 1:
            raise AlreadyActedError(
                "You have already approved this payment request",
                {"requestId": str(payment_request.id)},
            )
        store.record_decision(payment_request.id, approver_id, Decision.APPROVED, notes)

        create_audit_entry(
            event_type="APPROVAL_RECORDED",
            actor_id=approver_id,
            entity_type="PaymentRequest",
            entity_id=payment_request.id,
            previous_state={"approver": str(approver_id), "status": "PENDING"},
            new_state={"approver": str(approver_id), "status": "APPROVED"},
        )

        # Quorum: nobody left pending once this entry flipped
        remaining = store.pending_approver_ids(payment_request.id)
        patch = {}
        if notes:
            patch["notes"] = notes
        if remaining:
            validate_transition("PaymentRequest", payment_request.status, "PENDING")
        else:
            validate_transition("PaymentRequest", payment_request.status, "APPROVED")
            validate_transition(
                "Funding", payment_request.funding_status, FundingStatus.IN_FLIGHT
            )
            patch.update(
                status=RequestStatus.APPROVED,
                approved_at=now,
                funding_status=FundingStatus.IN_FLIGHT,
            )

        expected_version = payment_request.version
        if not store.update_payment_request(
            payment_request, RequestStatus.PENDING, **patch
        ):
            _raise_lost_race(payment_request, expected_version)
        funding_claimed = not remaining

        _remember(idempotency_key, OPERATION_APPROVE, approver_id, payment_request.id, 200)

        if funding_claimed:
            create_audit_entry(
                event_type="REQUEST_APPROVED",
                actor_id=approver_id,
                entity_type="PaymentRequest",
                entity_id=payment_request.id,
                previous_state={"status": "PENDING"},
                new_state={"status": "APPROVED", "approved_at": now.isoformat()},
            )

    logger.info(
        "payment_request_approved",
        extra=_log_extra(
            OPERATION_APPROVE,
            payment_request.id,
            approver_id,
            quorum_complete=funding_claimed,
            pending_approvers=len(remaining),
        ),
    )

    if funding_claimed:
        fund_request(payment_request, approver_id)
        transaction.on_commit(
            partial(_notify, emitter.request_reviewed, payment_request.id), robust=True
        )

    return store.get_payment_request(payment_request.id, use_cache=False)


def fund_request(payment_request, actor_id=None):
    """
    Make the single funding attempt for an approved request and record it.

    Never raises for funding failures: the approval stands and the error is
    stored on the request for reconciliation.

    Returns:
        bool: True if the wallet was funded
    """
    sender = User.objects.get(id=payment_request.sender_id)
    memo = f"Approved: {payment_request.description or payment_request.category}"
    result, error = None, None

    if not sender.funding_account_ref:
        error = "Requester has no funding account"
    else:
        try:
            result = get_funding_gateway().fund(
                sender.funding_account_ref, payment_request.amount, memo
            )
        except FundingError as exc:
            error = exc.message
        except Exception as exc:
            logger.exception(
                "payment_request_funding_crashed",
                extra=_log_extra(OPERATION_FUND, payment_request.id, actor_id),
            )
            error = f"Unexpected funding failure: {exc}"

    try:
        with transaction.atomic():
            if error is None:
                recorded = store.record_funding_outcome(payment_request.id, result=result)
            else:
                recorded = store.record_funding_outcome(payment_request.id, error=error)
            if recorded:
                create_audit_entry(
                    event_type="FUNDING_SUCCEEDED" if error is None else "FUNDING_FAILED",
                    actor_id=actor_id,
                    entity_type="PaymentRequest",
                    entity_id=payment_request.id,
                    previous_state={"funding_status": "IN_FLIGHT"},
                    new_state=(
                        {"funding_status": "SUCCEEDED", "funding_result": result}
                        if error is None
                        else {"funding_status": "FAILED", "funding_error": error}
                    ),
                )
    except StorageError:
        # Left IN_FLIGHT; reconcile_funding reports it.
        logger.error(
            "payment_request_funding_unrecorded",
            extra=_log_extra(OPERATION_FUND, payment_request.id, actor_id),
        )

    if error is None:
        logger.info(
            "payment_request_funded",
            extra=_log_extra(
                OPERATION_FUND,
                payment_request.id,
                actor_id,
                transaction_ref=(result or {}).get("transactionRef"),
            ),
        )
        return True

    logger.warning(
        "payment_request_funding_failed",
        extra=_log_extra(OPERATION_FUND, payment_request.id, actor_id, error=error),
    )
    return False


def reject_request(request_id, approver_id, notes, idempotency_key=None):
    """
    Reject a PENDING PaymentRequest. One rejection is final regardless of
    the other approvers.

    Args:
        request_id: PaymentRequest identifier
        approver_id: User identifier (must be a designated approver)
        notes: Rejection reason (required, non-blank)
        idempotency_key: Optional idempotency key for retry safety

    Returns:
        PaymentRequest: Updated request

    Raises:
        ValidationError: If notes is empty, or idempotency_key was spent on
            another request
        NotFoundError: If the request does not exist
        AlreadyTerminalError: If the request is APPROVED or REJECTED
        UnauthorizedError: If caller is not a designated approver
        AlreadyActedError: If caller has already approved
    """
    if not notes or not str(notes).strip():
        raise ValidationError("A rejection reason is required", {"field": "notes"})
    notes = str(notes).strip()

    replayed = _replay(idempotency_key, OPERATION_REJECT, approver_id, request_id)
    if replayed is not None:
        return replayed

    with transaction.atomic():
        payment_request = store.lock_payment_request(request_id)
        _check_can_act(payment_request, approver_id)
        validate_transition("PaymentRequest", payment_request.status, "REJECTED")

        now = timezone.now()
        store.record_decision(payment_request.id, approver_id, Decision.REJECTED, notes)

        expected_version = payment_request.version
        if not store.update_payment_request(
            payment_request,
            RequestStatus.PENDING,
            status=RequestStatus.REJECTED,
            rejected_at=now,
            notes=notes,
        ):
            _raise_lost_race(payment_request, expected_version)

        _remember(idempotency_key, OPERATION_REJECT, approver_id, payment_request.id, 200)

        create_audit_entry(
            event_type="REQUEST_REJECTED",
            actor_id=approver_id,
            entity_type="PaymentRequest",
            entity_id=payment_request.id,
            previous_state={"status": "PENDING"},
            new_state={
                "status": "REJECTED",
                "rejected_at": now.isoformat(),
                "notes": notes,
            },
        )

        transaction.on_commit(
            partial(_notify, emitter.request_reviewed, payment_request.id), robust=True
        )

    logger.info(
        "payment_request_rejected",
        extra=_log_extra(OPERATION_REJECT, payment_request.id, approver_id),
    )
    return store.get_payment_request(payment_request.id, use_cache=False)


def _can_view(payment_request, viewer):
    if viewer.role == Role.ADMIN or payment_request.sender_id == viewer.id:
        return True
    return any(
        entry.approver_id == viewer.id for entry in payment_request.approvers.all()
    )


def get_request(request_id, viewer_id):
    """
    Fetch a request the viewer may see: its sender, its approvers, or an admin.

    Raises:
        NotFoundError: If the request or viewer does not exist
        PermissionDeniedError: If the viewer may not see the request
    """
    payment_request = store.get_payment_request(request_id)
    try:
        viewer = User.objects.get(id=viewer_id)
    except User.DoesNotExist:
        raise NotFoundError(f"User {viewer_id} does not exist")

    if not _can_view(payment_request, viewer):
        raise PermissionDeniedError("You do not have access to this payment request")
    return payment_request


def get_request_history(request_id, viewer_id):
    """Audit trail of a request, for anyone allowed to view it."""
    payment_request = get_request(request_id, viewer_id)
    return entries_for("PaymentRequest", payment_request.id)


def list_requests(user_id, scope="mine"):
    """
    List requests for user_id. scope is mine, to-approve or all (admins only).

    Raises:
        PermissionDeniedError: If a non-admin asks for all requests
        ValidationError: If scope is unknown
    """
    if scope == "all":
        if not User.objects.filter(id=user_id, role=Role.ADMIN).exists():
            raise PermissionDeniedError("Only admins can list all payment requests")
    return store.list_payment_requests(user_id, scope)
