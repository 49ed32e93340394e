"""
Core views - current owner profile.
"""
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.documents.models import Document, DocumentStatus
from .serializers import UserProfileSerializer


class CurrentUserView(APIView):
    """
    GET /api/auth/me/ - profile of the authenticated owner.

    The admin console calls this after JWT login.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        user = request.user
        profile_data = {
            'id': user.id,
            'email': user.email,
            'display_name': user.display_name,
            'is_active': user.is_active,
            'is_staff': user.is_staff,
            'document_count': Document.objects.filter(owner=user).exclude(
                status=DocumentStatus.DELETED
            ).count(),
        }
        serializer = UserProfileSerializer(profile_data)
        return Response(serializer.data, status=status.HTTP_200_OK)
