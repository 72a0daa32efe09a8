"""
Serializers for payment models.

No business logic in serializers - validation only.
All mutations flow through service layer.
"""

from rest_framework import serializers
from apps.payments.models import PaymentRequest, RequestApprover


class RequestApproverSerializer(serializers.ModelSerializer):
    """One approver entry of a payment request."""

    approverId = serializers.UUIDField(source="approver_id", read_only=True)
    displayName = serializers.CharField(source="approver.display_name", read_only=True)
    approvedAt = serializers.DateTimeField(
        source="approved_at", read_only=True, allow_null=True
    )

    class Meta:
        model = RequestApprover
        fields = ["approverId", "displayName", "position", "status", "approvedAt"]
        read_only_fields = fields


class PaymentRequestSerializer(serializers.ModelSerializer):
    """Serializer for PaymentRequest."""

    id = serializers.UUIDField(read_only=True)
    senderId = serializers.UUIDField(source="sender_id", read_only=True)
    senderName = serializers.CharField(source="sender.display_name", read_only=True)
    imageRef = serializers.CharField(source="image_ref", read_only=True, allow_null=True)
    approvers = RequestApproverSerializer(many=True, read_only=True)
    approvedBy = serializers.SerializerMethodField()
    rejectedBy = serializers.SerializerMethodField()
    approvedAt = serializers.DateTimeField(
        source="approved_at", read_only=True, allow_null=True
    )
    rejectedAt = serializers.DateTimeField(
        source="rejected_at", read_only=True, allow_null=True
    )
    fundingStatus = serializers.CharField(source="funding_status", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)

    class Meta:
        model = PaymentRequest
        fields = [
            "id",
            "senderId",
            "senderName",
            "amount",
            "currency",
            "description",
            "category",
            "imageRef",
            "status",
            "approvers",
            "approvedBy",
            "rejectedBy",
            "notes",
            "approvedAt",
            "rejectedAt",
            "fundingStatus",
            "createdAt",
            "updatedAt",
        ]
        read_only_fields = fields

    def get_approvedBy(self, obj):
        """Approvers in the order they approved."""
        return [
            {
                "approverId": str(record.approver_id),
                "approvedAt": serializers.DateTimeField().to_representation(
                    record.created_at
                ),
            }
            for record in obj.decisions.all()
            if record.decision == "APPROVED"
        ]

    def get_rejectedBy(self, obj):
        for record in obj.decisions.all():
            if record.decision == "REJECTED":
                return {
                    "approverId": str(record.approver_id),
                    "rejectedAt": serializers.DateTimeField().to_representation(
                        record.created_at
                    ),
                }
        return None


class PaymentRequestDetailSerializer(PaymentRequestSerializer):
    """Serializer for PaymentRequest detail with funding outcome and version."""

    fundingResult = serializers.JSONField(
        source="funding_result", read_only=True, allow_null=True
    )
    fundingError = serializers.CharField(
        source="funding_error", read_only=True, allow_null=True
    )
    fundingAttemptedAt = serializers.DateTimeField(
        source="funding_attempted_at", read_only=True, allow_null=True
    )

    class Meta(PaymentRequestSerializer.Meta):
        fields = PaymentRequestSerializer.Meta.fields + [
            "fundingResult",
            "fundingError",
            "fundingAttemptedAt",
            "version",
        ]
        read_only_fields = fields


class CreatePaymentRequestSerializer(serializers.Serializer):
    """Request body for creating a payment request."""

    amount = serializers.DecimalField(max_digits=15, decimal_places=2)
    currency = serializers.CharField(max_length=3, required=False, default="USD")
    description = serializers.CharField(required=False, allow_blank=True, default="")
    category = serializers.CharField(
        max_length=50, required=False, allow_blank=True, default="Other"
    )
    imageRef = serializers.CharField(
        max_length=512, required=False, allow_blank=True, allow_null=True
    )
    approverIds = serializers.ListField(child=serializers.UUIDField(), allow_empty=True)


class ApprovalRequestSerializer(serializers.Serializer):
    """Serializer for approve/reject request body."""

    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
