"""
Document permissions: owners only.
"""
from rest_framework import permissions


class IsDocumentOwner(permissions.BasePermission):
    """
    Object-level guard on top of owner-filtered querysets.

    Views translate a denial into the uniform not-found response.
    """

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated)

    def has_object_permission(self, request, view, obj):
        owner_id = getattr(obj, 'owner_id', None)
        if owner_id is None and hasattr(obj, 'document'):
            owner_id = obj.document.owner_id
        return owner_id == request.user.pk
