"""
Serializers for User model.

No business logic in serializers - validation only.
"""

from rest_framework import serializers
from apps.users.models import User, Role


class UserSerializer(serializers.ModelSerializer):
    """Serializer for the current user."""

    id = serializers.UUIDField(read_only=True)
    role = serializers.ChoiceField(choices=Role.choices, read_only=True)
    displayName = serializers.CharField(source="display_name", read_only=True)
    hasFundingAccount = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ["id", "username", "displayName", "email", "role", "hasFundingAccount"]
        read_only_fields = fields

    def get_hasFundingAccount(self, obj):
        return bool(obj.funding_account_ref)


class UserSummarySerializer(serializers.ModelSerializer):
    """Compact user shape embedded in other payloads and lists."""

    id = serializers.UUIDField(read_only=True)
    displayName = serializers.CharField(source="display_name", read_only=True)

    class Meta:
        model = User
        fields = ["id", "username", "displayName"]
