import logging
from enum import Enum
from typing import Dict, Any, Optional

from apps.common.events import publish_on_commit
from apps.common.kafka.config import PROJECT_EVENTS_TOPIC

logger = logging.getLogger(__name__)


class ProjectEventType(Enum):
    """Project event types"""
    PROJECT_CREATED = "project_created"
    PROJECT_UPDATED = "project_updated"
    PROJECT_STATUS_CHANGED = "project_status_changed"
    PROJECT_DELETED = "project_deleted"
    PROJECT_MEMBER_ADDED = "project_member_added"
    PROJECT_MEMBER_REMOVED = "project_member_removed"


def publish_project_event(
    event_type: ProjectEventType,
    user_id: int,
    project_id: int,
    data: Dict[str, Any],
    metadata: Optional[Dict[str, Any]] = None
) -> None:
    """
    Queue a project event for publishing once the current transaction
    commits. The project id is always part of the payload.
    """
    payload = {'project_id': project_id, **data}
    logger.debug(f"Queueing project event {event_type.value} for project {project_id}")
    publish_on_commit(PROJECT_EVENTS_TOPIC, event_type.value, user_id, payload, metadata)


def publish_project_created(user_id: int, project):
    data = {
        'name': project.name,
        'team_id': project.team_id,
        'manager_id': project.manager_id,
        'status': project.status,
        'priority': project.priority,
    }
    publish_project_event(ProjectEventType.PROJECT_CREATED, user_id, project.pk, data)


def publish_project_updated(user_id: int, project_id: int, changes: Dict[str, Any]):
    publish_project_event(ProjectEventType.PROJECT_UPDATED, user_id, project_id, {'changes': changes})


def publish_project_status_changed(user_id: int, project_id: int, old_status: str, new_status: str):
    data = {
        'old_status': old_status,
        'new_status': new_status,
    }
    publish_project_event(ProjectEventType.PROJECT_STATUS_CHANGED, user_id, project_id, data)


def publish_project_deleted(user_id: int, project_id: int, name: str):
    publish_project_event(ProjectEventType.PROJECT_DELETED, user_id, project_id, {'name': name})


def publish_project_member_added(user_id: int, project_id: int, member_id: int, role: str):
    data = {
        'member_id': member_id,
        'role': role,
    }
    publish_project_event(ProjectEventType.PROJECT_MEMBER_ADDED, user_id, project_id, data)


def publish_project_member_removed(user_id: int, project_id: int, member_id: int):
    publish_project_event(
        ProjectEventType.PROJECT_MEMBER_REMOVED, user_id, project_id, {'member_id': member_id}
    )
