"""
Permission classes for role-based access control.

Role is read from request.user (authenticated via JWT).
Role is NEVER read from request body, query parameters, or headers.
Whether a member may act on a given payment request is decided by the
approval engine, not here.
"""

from rest_framework import permissions

MEMBER_ROLES = ("MEMBER", "ADMIN")


class IsMember(permissions.BasePermission):
    """Allow any authenticated user holding a valid role."""

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False

        if not hasattr(request.user, "role"):
            return False

        return request.user.role in MEMBER_ROLES
