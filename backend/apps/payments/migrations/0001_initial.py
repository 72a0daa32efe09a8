# PaymentRequest with approver entries, decision trail, funding outcome and
# idempotency keys.

import uuid
from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("users", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="PaymentRequest",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=2,
                        max_digits=15,
                        validators=[
                            django.core.validators.MinValueValidator(Decimal("0.01"))
                        ],
                    ),
                ),
                ("currency", models.CharField(default="USD", max_length=3)),
                ("description", models.TextField(blank=True, default="")),
                ("category", models.CharField(default="Other", max_length=50)),
                (
                    "image_ref",
                    models.CharField(blank=True, max_length=512, null=True),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("PENDING", "Pending"),
                            ("APPROVED", "Approved"),
                            ("REJECTED", "Rejected"),
                        ],
                        default="PENDING",
                        max_length=20,
                    ),
                ),
                ("notes", models.TextField(blank=True, null=True)),
                ("approved_at", models.DateTimeField(blank=True, null=True)),
                ("rejected_at", models.DateTimeField(blank=True, null=True)),
                (
                    "funding_status",
                    models.CharField(
                        choices=[
                            ("NOT_STARTED", "Not Started"),
                            ("IN_FLIGHT", "In Flight"),
                            ("SUCCEEDED", "Succeeded"),
                            ("FAILED", "Failed"),
                        ],
                        default="NOT_STARTED",
                        max_length=20,
                    ),
                ),
                ("funding_result", models.JSONField(blank=True, null=True)),
                ("funding_error", models.TextField(blank=True, null=True)),
                (
                    "funding_attempted_at",
                    models.DateTimeField(blank=True, null=True),
                ),
                ("version", models.IntegerField(default=1)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "sender",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payment_requests",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "payment_requests",
                "indexes": [
                    models.Index(fields=["sender"], name="idx_request_sender"),
                    models.Index(fields=["status"], name="idx_request_status"),
                    models.Index(
                        fields=["funding_status"], name="idx_request_funding"
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            status__in=["PENDING", "APPROVED", "REJECTED"]
                        ),
                        name="valid_request_status",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(amount__gt=0), name="amount_positive"
                    ),
                    models.CheckConstraint(
                        condition=(
                            models.Q(status="APPROVED", approved_at__isnull=False)
                            | (
                                ~models.Q(status="APPROVED")
                                & models.Q(approved_at__isnull=True)
                            )
                        ),
                        name="approved_at_iff_approved",
                    ),
                    models.CheckConstraint(
                        condition=(
                            models.Q(status="REJECTED", rejected_at__isnull=False)
                            | (
                                ~models.Q(status="REJECTED")
                                & models.Q(rejected_at__isnull=True)
                            )
                        ),
                        name="rejected_at_iff_rejected",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(status="APPROVED")
                        | models.Q(funding_status="NOT_STARTED"),
                        name="funding_only_when_approved",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="RequestApprover",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("position", models.PositiveSmallIntegerField()),
                (
                    "status",
                    models.CharField(
                        choices=[("PENDING", "Pending"), ("APPROVED", "Approved")],
                        default="PENDING",
                        max_length=20,
                    ),
                ),
                ("approved_at", models.DateTimeField(blank=True, null=True)),
                (
                    "approver",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="approval_assignments",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "payment_request",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="approvers",
                        to="payments.paymentrequest",
                    ),
                ),
            ],
            options={
                "db_table": "payment_request_approvers",
                "ordering": ["position"],
                "indexes": [
                    models.Index(
                        fields=["approver", "status"], name="idx_approver_status"
                    )
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("payment_request", "approver"),
                        name="unique_request_approver",
                    ),
                    models.UniqueConstraint(
                        fields=("payment_request", "position"),
                        name="unique_request_approver_position",
                    ),
                    models.CheckConstraint(
                        condition=(
                            models.Q(status="APPROVED", approved_at__isnull=False)
                            | models.Q(status="PENDING", approved_at__isnull=True)
                        ),
                        name="approver_approved_at_iff_approved",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ApprovalRecord",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "decision",
                    models.CharField(
                        choices=[("APPROVED", "Approved"), ("REJECTED", "Rejected")],
                        max_length=20,
                    ),
                ),
                ("comment", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "approver",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="approval_records",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "payment_request",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="decisions",
                        to="payments.paymentrequest",
                    ),
                ),
            ],
            options={
                "db_table": "approval_records",
                "ordering": ["created_at"],
                "indexes": [
                    models.Index(
                        fields=["payment_request"], name="idx_approval_request"
                    )
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(decision__in=["APPROVED", "REJECTED"]),
                        name="valid_decision",
                    ),
                    models.UniqueConstraint(
                        fields=("payment_request", "approver"),
                        name="one_decision_per_approver",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(decision="REJECTED"),
                        fields=("payment_request",),
                        name="one_rejection_per_request",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="IdempotencyKey",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("key", models.CharField(db_index=True, max_length=255)),
                ("operation", models.CharField(max_length=100)),
                ("target_object_id", models.UUIDField(null=True)),
                ("response_code", models.IntegerField(null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "actor",
                    models.ForeignKey(
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="idempotency_keys",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "idempotency_keys",
                "constraints": [
                    models.UniqueConstraint(
                        fields=("key", "operation", "actor"),
                        name="unique_idempotency_per_operation",
                    )
                ],
            },
        ),
    ]
