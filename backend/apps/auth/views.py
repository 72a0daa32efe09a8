"""
Authentication views: login, logout.

Identity itself is owned by the user directory; these views only mint and
revoke JWTs for API access.
"""

import logging

from django.contrib.auth import authenticate
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken

from core.exceptions import error_response
from apps.auth.serializers import LoginSerializer, LogoutSerializer
from apps.users.serializers import UserSerializer

logger = logging.getLogger(__name__)


@api_view(["POST"])
@permission_classes([AllowAny])
def login(request):
    """
    POST /api/v1/auth/login

    Authenticate user and return JWT access and refresh tokens.
    """
    serializer = LoginSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    user = authenticate(
        username=serializer.validated_data["username"],
        password=serializer.validated_data["password"],
    )

    if user is None:
        return error_response(
            "UNAUTHENTICATED",
            "Invalid credentials",
            status_code=status.HTTP_401_UNAUTHORIZED,
        )

    refresh = RefreshToken.for_user(user)

    return Response(
        {
            "data": {
                "token": str(refresh.access_token),
                "refreshToken": str(refresh),
                "user": UserSerializer(user).data,
            }
        },
        status=status.HTTP_200_OK,
    )


@api_view(["POST"])
@permission_classes([IsAuthenticated])
def logout(request):
    """
    POST /api/v1/auth/logout

    Blacklist the supplied refresh token. Already-invalid tokens are accepted.
    """
    serializer = LogoutSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    refresh_token = serializer.validated_data.get("refreshToken")
    if refresh_token:
        try:
            RefreshToken(refresh_token).blacklist()
        except TokenError:
            logger.info("logout_with_invalid_token", extra={"user_id": str(request.user.id)})

    return Response({"data": {"success": True}}, status=status.HTTP_200_OK)
