"""
Payment domain models: PaymentRequest, RequestApprover, ApprovalRecord,
IdempotencyKey.

Models are passive. Every write goes through apps.payments.store, and only
the approval engine (apps.payments.services) changes status.
"""

import uuid
from decimal import Decimal

from django.db import models
from django.core.validators import MinValueValidator


class RequestStatus(models.TextChoices):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ApproverStatus(models.TextChoices):
    PENDING = "PENDING"
    APPROVED = "APPROVED"


class Decision(models.TextChoices):
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class FundingStatus(models.TextChoices):
    NOT_STARTED = "NOT_STARTED"
    IN_FLIGHT = "IN_FLIGHT"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


class PaymentRequest(models.Model):
    """Spending request awaiting approval by every designated approver."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    sender = models.ForeignKey(
        "users.User", on_delete=models.PROTECT, related_name="payment_requests"
    )
    amount = models.DecimalField(
        max_digits=15,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    currency = models.CharField(max_length=3, default="USD")  # ISO 4217
    description = models.TextField(blank=True, default="")
    category = models.CharField(max_length=50, default="Other")
    image_ref = models.CharField(max_length=512, null=True, blank=True)
    status = models.CharField(
        max_length=20, choices=RequestStatus.choices, default=RequestStatus.PENDING
    )
    notes = models.TextField(null=True, blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    rejected_at = models.DateTimeField(null=True, blank=True)
    funding_status = models.CharField(
        max_length=20,
        choices=FundingStatus.choices,
        default=FundingStatus.NOT_STARTED,
    )
    funding_result = models.JSONField(null=True, blank=True)
    funding_error = models.TextField(null=True, blank=True)
    funding_attempted_at = models.DateTimeField(null=True, blank=True)
    version = models.IntegerField(default=1)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "payment_requests"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(status__in=["PENDING", "APPROVED", "REJECTED"]),
                name="valid_request_status",
            ),
            models.CheckConstraint(
                condition=models.Q(amount__gt=0), name="amount_positive"
            ),
            # approved_at NOT NULL exactly when status = 'APPROVED'
            models.CheckConstraint(
                condition=(
                    models.Q(status="APPROVED", approved_at__isnull=False)
                    | (~models.Q(status="APPROVED") & models.Q(approved_at__isnull=True))
                ),
                name="approved_at_iff_approved",
            ),
            # rejected_at NOT NULL exactly when status = 'REJECTED'
            models.CheckConstraint(
                condition=(
                    models.Q(status="REJECTED", rejected_at__isnull=False)
                    | (~models.Q(status="REJECTED") & models.Q(rejected_at__isnull=True))
                ),
                name="rejected_at_iff_rejected",
            ),
            # Funding only ever starts once the request is approved
            models.CheckConstraint(
                condition=models.Q(status="APPROVED")
                | models.Q(funding_status="NOT_STARTED"),
                name="funding_only_when_approved",
            ),
        ]
        indexes = [
            models.Index(fields=["sender"], name="idx_request_sender"),
            models.Index(fields=["status"], name="idx_request_status"),
            models.Index(fields=["funding_status"], name="idx_request_funding"),
        ]

    def __str__(self):
        return f"{self.sender_id} - {self.amount} {self.currency} ({self.status})"


class RequestApprover(models.Model):
    """One designated approver of a payment request, fixed at creation."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    payment_request = models.ForeignKey(
        PaymentRequest, on_delete=models.PROTECT, related_name="approvers"
    )
    approver = models.ForeignKey(
        "users.User", on_delete=models.PROTECT, related_name="approval_assignments"
    )
    position = models.PositiveSmallIntegerField()
    status = models.CharField(
        max_length=20, choices=ApproverStatus.choices, default=ApproverStatus.PENDING
    )
    approved_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "payment_request_approvers"
        ordering = ["position"]
        constraints = [
            models.UniqueConstraint(
                fields=["payment_request", "approver"],
                name="unique_request_approver",
            ),
            models.UniqueConstraint(
                fields=["payment_request", "position"],
                name="unique_request_approver_position",
            ),
            models.CheckConstraint(
                condition=(
                    models.Q(status="APPROVED", approved_at__isnull=False)
                    | models.Q(status="PENDING", approved_at__isnull=True)
                ),
                name="approver_approved_at_iff_approved",
            ),
        ]
        indexes = [
            models.Index(fields=["approver", "status"], name="idx_approver_status"),
        ]

    def __str__(self):
        return f"{self.approver_id} on {self.payment_request_id} ({self.status})"


class ApprovalRecord(models.Model):
    """ApprovalRecord model - record of one approver's approve/reject decision."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    payment_request = models.ForeignKey(
        PaymentRequest, on_delete=models.PROTECT, related_name="decisions"
    )
    approver = models.ForeignKey(
        "users.User", on_delete=models.PROTECT, related_name="approval_records"
    )
    decision = models.CharField(max_length=20, choices=Decision.choices)
    comment = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "approval_records"
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(decision__in=["APPROVED", "REJECTED"]),
                name="valid_decision",
            ),
            models.UniqueConstraint(
                fields=["payment_request", "approver"],
                name="one_decision_per_approver",
            ),
            models.UniqueConstraint(
                fields=["payment_request"],
                condition=models.Q(decision="REJECTED"),
                name="one_rejection_per_request",
            ),
        ]
        indexes = [
            models.Index(fields=["payment_request"], name="idx_approval_request"),
        ]

    def __str__(self):
        return f"{self.payment_request_id} - {self.decision} by {self.approver_id}"


class IdempotencyKey(models.Model):
    """Idempotency key for preventing duplicate workflow operations."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    key = models.CharField(max_length=255, db_index=True)
    operation = models.CharField(max_length=100)
    actor = models.ForeignKey(
        "users.User",
        on_delete=models.CASCADE,
        related_name="idempotency_keys",
        null=True,
    )
    target_object_id = models.UUIDField(null=True)
    response_code = models.IntegerField(null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "idempotency_keys"
        constraints = [
            models.UniqueConstraint(
                fields=["key", "operation", "actor"],
                name="unique_idempotency_per_operation",
            )
        ]

    def __str__(self):
        return f"{self.operation}:{self.key}"
