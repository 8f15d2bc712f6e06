from .events import (
    UserEventType,
    publish_user_event,
    publish_user_registered,
    publish_user_login,
    publish_user_logout,
    publish_user_login_failed,
    publish_user_created,
    publish_user_updated,
    publish_password_changed,
    publish_role_changed,
    publish_user_deleted,
    publish_team_created,
    publish_team_updated,
    publish_team_deleted,
    publish_team_leader_changed,
    publish_team_member_added,
    publish_team_member_removed,
)

__all__ = [
    "UserEventType",
    "publish_user_event",
    "publish_user_registered",
    "publish_user_login",
    "publish_user_logout",
    "publish_user_login_failed",
    "publish_user_created",
    "publish_user_updated",
    "publish_password_changed",
    "publish_role_changed",
    "publish_user_deleted",
    "publish_team_created",
    "publish_team_updated",
    "publish_team_deleted",
    "publish_team_leader_changed",
    "publish_team_member_added",
    "publish_team_member_removed",
]
