from .events import (
    TaskEventType,
    publish_task_event,
    publish_task_created,
    publish_task_updated,
    publish_task_status_changed,
    publish_task_assigned,
    publish_task_progress_recorded,
    publish_task_comment_added,
    publish_task_deleted,
)

__all__ = [
    "TaskEventType",
    "publish_task_event",
    "publish_task_created",
    "publish_task_updated",
    "publish_task_status_changed",
    "publish_task_assigned",
    "publish_task_progress_recorded",
    "publish_task_comment_added",
    "publish_task_deleted",
]
