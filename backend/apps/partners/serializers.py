"""
Serializers for accountability partners.
"""

from rest_framework import serializers
from apps.partners.models import AccountabilityPartner


class AccountabilityPartnerSerializer(serializers.ModelSerializer):
    """Partner as seen by the owner building an approver list."""

    id = serializers.UUIDField(read_only=True)
    partnerId = serializers.UUIDField(source="partner_id", read_only=True)
    username = serializers.CharField(source="partner.username", read_only=True)
    displayName = serializers.CharField(source="partner.display_name", read_only=True)
    since = serializers.DateTimeField(source="updated_at", read_only=True)

    class Meta:
        model = AccountabilityPartner
        fields = ["id", "partnerId", "username", "displayName", "status", "since"]
