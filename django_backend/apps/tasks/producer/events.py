import logging
from enum import Enum
from typing import Dict, Any, Optional

from apps.common.events import publish_on_commit
from apps.common.kafka.config import TASK_EVENTS_TOPIC

logger = logging.getLogger(__name__)


class TaskEventType(Enum):
    """Task event types"""
    # Task lifecycle
    TASK_CREATED = "task_created"
    TASK_UPDATED = "task_updated"
    TASK_DELETED = "task_deleted"

    # Task status changes
    TASK_STATUS_CHANGED = "task_status_changed"
    TASK_ASSIGNED = "task_assigned"
    TASK_PROGRESS_RECORDED = "task_progress_recorded"

    # Task comments
    TASK_COMMENT_ADDED = "task_comment_added"


def publish_task_event(
    event_type: TaskEventType,
    user_id: int,
    task_id: int,
    data: Dict[str, Any],
    metadata: Optional[Dict[str, Any]] = None
) -> None:
    """
    Queue a task event for publishing once the current transaction commits.

    Args:
        event_type: Type of task event
        user_id: ID of the user performing the action
        task_id: ID of the task the event is about
        data: Event-specific data
        metadata: Additional metadata (optional)
    """
    payload = {'task_id': task_id, **data}
    logger.debug(f"Queueing task event {event_type.value} for task {task_id}")
    publish_on_commit(TASK_EVENTS_TOPIC, event_type.value, user_id, payload, metadata)


# Convenience functions for specific events

def publish_task_created(user_id: int, task):
    """Publishes task creation event"""
    data = {
        'title': task.title,
        'project_id': task.project_id,
        'assigned_to': task.assigned_to_id,
        'status': task.status,
        'priority': task.priority,
        'type': task.task_type,
        'due_date': task.due_date.isoformat(),
    }
    publish_task_event(TaskEventType.TASK_CREATED, user_id, task.pk, data)


def publish_task_updated(user_id: int, task_id: int, changes: Dict[str, Any]):
    """Publishes task update event"""
    publish_task_event(TaskEventType.TASK_UPDATED, user_id, task_id, {'changes': changes})


def publish_task_status_changed(user_id: int, task_id: int, old_status: str, new_status: str):
    """Publishes task status change event"""
    data = {
        'old_status': old_status,
        'new_status': new_status,
    }
    publish_task_event(TaskEventType.TASK_STATUS_CHANGED, user_id, task_id, data)


def publish_task_assigned(user_id: int, task_id: int, old_assignee_id: Optional[int], new_assignee_id: int):
    """Publishes task assignment event"""
    data = {
        'old_assignee_id': old_assignee_id,
        'new_assignee_id': new_assignee_id,
    }
    publish_task_event(TaskEventType.TASK_ASSIGNED, user_id, task_id, data)


def publish_task_progress_recorded(user_id: int, task_id: int, status: str, hours_worked, actual_hours):
    data = {
        'status': status,
        'hours_worked': str(hours_worked),
        'actual_hours': str(actual_hours),
    }
    publish_task_event(TaskEventType.TASK_PROGRESS_RECORDED, user_id, task_id, data)


def publish_task_comment_added(user_id: int, task_id: int, comment_id: int):
    """Publishes task comment event"""
    publish_task_event(TaskEventType.TASK_COMMENT_ADDED, user_id, task_id, {'comment_id': comment_id})


def publish_task_deleted(user_id: int, task_id: int, title: str, project_id: int):
    """Publishes task deletion event"""
    data = {
        'title': title,
        'project_id': project_id,
    }
    publish_task_event(TaskEventType.TASK_DELETED, user_id, task_id, data)
