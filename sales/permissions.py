"""
Role checks for API views. Services re-check roles themselves.
"""
from rest_framework.permissions import BasePermission


class IsAdminActor(BasePermission):
    message = 'Only admins can perform this action.'

    def has_permission(self, request, view):
        return bool(request.user) and getattr(request.user, 'is_admin', False)


class IsPartnerActor(BasePermission):
    message = 'Only active partners can perform this action.'

    def has_permission(self, request, view):
        return bool(request.user) and getattr(request.user, 'is_partner', False)
