from rest_framework.permissions import BasePermission

from apps.common.authorization import can_manage_users


class IsAdmin(BasePermission):
    message = "Admin access required"

    def has_permission(self, request, view):
        return can_manage_users(request.user)
