"""
Serializers for authentication endpoints.
"""

from rest_framework import serializers


class LoginSerializer(serializers.Serializer):
    """Serializer for login request."""

    username = serializers.CharField(required=True)
    password = serializers.CharField(required=True, write_only=True)


class LogoutSerializer(serializers.Serializer):
    """Serializer for logout request."""

    refreshToken = serializers.CharField(required=False, allow_blank=True)
