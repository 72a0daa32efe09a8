"""
Partner API views (read-only).
"""

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from core.permissions import IsMember
from apps.partners import services
from apps.partners.serializers import AccountabilityPartnerSerializer


@api_view(["GET"])
@permission_classes([IsMember])
def list_partners(request):
    """
    GET /api/v1/partners

    Accepted accountability partners of the caller (eligible approvers).
    """
    partners = services.list_accepted_partners(request.user.id)
    serializer = AccountabilityPartnerSerializer(partners, many=True)
    return Response({"data": serializer.data}, status=status.HTTP_200_OK)
