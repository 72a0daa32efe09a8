"""
User views: current user and user directory.

User administration happens through the Django admin.
"""

from django.db.models import Q
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.pagination import LimitOffsetPagination
from rest_framework.response import Response

from core.permissions import IsMember
from apps.users.models import User
from apps.users.serializers import UserSerializer, UserSummarySerializer


@api_view(["GET"])
@permission_classes([IsMember])
def get_current_user(request):
    """
    GET /api/v1/users/me

    Get current authenticated user.
    """
    serializer = UserSerializer(request.user)
    return Response({"data": serializer.data}, status=status.HTTP_200_OK)


@api_view(["GET"])
@permission_classes([IsMember])
def list_users(request):
    """
    GET /api/v1/users/?search=<term>

    Directory lookup used to find accountability partners.
    """
    users = User.objects.all().order_by("username")

    search = (request.query_params.get("search") or "").strip()
    if search:
        users = users.filter(
            Q(username__icontains=search) | Q(display_name__icontains=search)
        )

    paginator = LimitOffsetPagination()
    paginator.default_limit = 50
    paginator.max_limit = 100

    page = paginator.paginate_queryset(users, request)
    serializer = UserSummarySerializer(page, many=True)
    return paginator.get_paginated_response(serializer.data)
