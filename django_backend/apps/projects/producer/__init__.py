from .events import (
    ProjectEventType,
    publish_project_event,
    publish_project_created,
    publish_project_updated,
    publish_project_status_changed,
    publish_project_deleted,
    publish_project_member_added,
    publish_project_member_removed,
)

__all__ = [
    "ProjectEventType",
    "publish_project_event",
    "publish_project_created",
    "publish_project_updated",
    "publish_project_status_changed",
    "publish_project_deleted",
    "publish_project_member_added",
    "publish_project_member_removed",
]
