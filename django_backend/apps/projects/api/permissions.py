from rest_framework.permissions import BasePermission

from apps.users.models import UserRole


class IsTeamLeaderOrAdmin(BasePermission):
    """Role gate only; which team a leader may act on is decided per object."""

    message = "Team leader or admin access required"

    def has_permission(self, request, view):
        user = request.user
        return bool(
            user
            and user.is_authenticated
            and user.is_active
            and user.role in (UserRole.ADMIN, UserRole.TEAM_LEADER)
        )
