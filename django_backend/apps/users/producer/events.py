import logging
from enum import Enum
from typing import Dict, Any, Optional

from apps.common.events import publish_on_commit
from apps.common.kafka.config import USER_ACTIVITIES_TOPIC

logger = logging.getLogger(__name__)


class UserEventType(Enum):
    """User event types"""
    # Authentication
    USER_REGISTERED = "user_registered"
    USER_LOGIN = "user_login"
    USER_LOGOUT = "user_logout"
    USER_LOGIN_FAILED = "user_login_failed"

    # Profile
    USER_CREATED = "user_created"
    USER_PROFILE_UPDATED = "user_profile_updated"
    USER_PASSWORD_CHANGED = "user_password_changed"
    USER_ROLE_CHANGED = "user_role_changed"
    USER_DELETED = "user_deleted"

    # Teams
    TEAM_CREATED = "team_created"
    TEAM_UPDATED = "team_updated"
    TEAM_DELETED = "team_deleted"
    TEAM_LEADER_CHANGED = "team_leader_changed"
    TEAM_MEMBER_ADDED = "team_member_added"
    TEAM_MEMBER_REMOVED = "team_member_removed"


def publish_user_event(
    event_type: UserEventType,
    user_id: Optional[int],
    data: Dict[str, Any],
    metadata: Optional[Dict[str, Any]] = None
) -> None:
    """
    Queue a user activity event for publishing once the current
    transaction commits.

    Args:
        event_type: Type of user event
        user_id: ID of the user performing the action
        data: Event-specific data
        metadata: Additional metadata (optional)
    """
    logger.debug(f"Queueing user event {event_type.value} by {user_id}")
    publish_on_commit(USER_ACTIVITIES_TOPIC, event_type.value, user_id, data, metadata)


# Convenience functions for specific events

def publish_user_registered(user_id: int, email: str, role: str):
    """Publishes user registration event"""
    data = {
        'email': email,
        'role': role,
    }
    publish_user_event(UserEventType.USER_REGISTERED, user_id, data)


def publish_user_login(user_id: int, email: str):
    """Publishes user login event"""
    publish_user_event(UserEventType.USER_LOGIN, user_id, {'email': email})


def publish_user_logout(user_id: int, email: str):
    """Publishes user logout event"""
    publish_user_event(UserEventType.USER_LOGOUT, user_id, {'email': email})


def publish_user_login_failed(email: str, reason: str = None):
    """Publishes login failure event"""
    data = {
        'email': email,
        'reason': reason or 'Invalid credentials'
    }
    # No authenticated user on a failed login
    publish_user_event(UserEventType.USER_LOGIN_FAILED, None, data)


def publish_user_created(actor_id: int, user_id: int, email: str, role: str):
    data = {
        'created_user_id': user_id,
        'email': email,
        'role': role,
    }
    publish_user_event(UserEventType.USER_CREATED, actor_id, data)


def publish_user_updated(actor_id: int, user_id: int, changes: Dict[str, Any]):
    data = {
        'updated_user_id': user_id,
        'changes': changes,
    }
    publish_user_event(UserEventType.USER_PROFILE_UPDATED, actor_id, data)


def publish_password_changed(user_id: int):
    publish_user_event(UserEventType.USER_PASSWORD_CHANGED, user_id, {})


def publish_role_changed(actor_id: int, user_id: int, old_role: str, new_role: str):
    """Publishes promote/demote event"""
    data = {
        'target_user_id': user_id,
        'old_role': old_role,
        'new_role': new_role,
    }
    publish_user_event(UserEventType.USER_ROLE_CHANGED, actor_id, data)


def publish_user_deleted(actor_id: int, user_id: int, email: str):
    data = {
        'deleted_user_id': user_id,
        'email': email,
    }
    publish_user_event(UserEventType.USER_DELETED, actor_id, data)


def publish_team_created(user_id: int, team_id: int, team_name: str, leader_id: int):
    """Publishes team creation event"""
    data = {
        'team_id': team_id,
        'team_name': team_name,
        'leader_id': leader_id,
        'action': 'create'
    }
    publish_user_event(UserEventType.TEAM_CREATED, user_id, data)


def publish_team_updated(user_id: int, team_id: int, team_name: str, changes: Dict[str, Any]):
    """Publishes team update event"""
    data = {
        'team_id': team_id,
        'team_name': team_name,
        'changes': changes,
        'action': 'update'
    }
    publish_user_event(UserEventType.TEAM_UPDATED, user_id, data)


def publish_team_deleted(user_id: int, team_id: int, team_name: str):
    """Publishes team deletion event"""
    data = {
        'team_id': team_id,
        'team_name': team_name,
        'action': 'delete'
    }
    publish_user_event(UserEventType.TEAM_DELETED, user_id, data)


def publish_team_leader_changed(user_id: int, team_id: int, old_leader_id: int, new_leader_id: int):
    data = {
        'team_id': team_id,
        'old_leader_id': old_leader_id,
        'new_leader_id': new_leader_id,
        'action': 'reassign_leader'
    }
    publish_user_event(UserEventType.TEAM_LEADER_CHANGED, user_id, data)


def publish_team_member_added(actor_id: int, team_id: int, team_name: str, member_id: int):
    """Publishes team member addition event"""
    data = {
        'team_id': team_id,
        'team_name': team_name,
        'member_id': member_id,
        'action': 'add_member'
    }
    publish_user_event(UserEventType.TEAM_MEMBER_ADDED, actor_id, data)


def publish_team_member_removed(actor_id: int, team_id: int, team_name: str, member_id: int):
    """Publishes team member removal event"""
    data = {
        'team_id': team_id,
        'team_name': team_name,
        'member_id': member_id,
        'action': 'remove_member'
    }
    publish_user_event(UserEventType.TEAM_MEMBER_REMOVED, actor_id, data)
