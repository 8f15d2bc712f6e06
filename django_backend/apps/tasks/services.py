"""
Task registry.

Tasks belong to one project and are assigned to one of its participants.
Progress updates and comments are append-only. Deleting a task is refused
while another open task still holds a dependency edge onto it.
"""
import logging
from datetime import timedelta
from decimal import Decimal

from django.db import transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone

from apps.common.authorization import Operation, require, scope_tasks
from apps.common.exceptions import Conflict, InvalidRange, NotFound
from apps.projects.models import Project
from apps.users.services import resolve_active_user

from .celery_tasks import send_task_notification
from .models import (
    CLOSED_TASK_STATUSES,
    OPEN_TASK_STATUSES,
    Comment,
    DependencyKind,
    ProgressUpdate,
    Task,
    TaskDependency,
    TaskStatus,
)
from .producer import (
    publish_task_assigned,
    publish_task_comment_added,
    publish_task_created,
    publish_task_deleted,
    publish_task_progress_recorded,
    publish_task_status_changed,
    publish_task_updated,
)

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("title", "description", "priority", "task_type", "estimated_hours", "tags")
UPCOMING_WINDOW = timedelta(days=7)
UPCOMING_LIMIT = 10


def task_queryset():
    return (
        Task.objects
        .select_related("project", "project__team", "assigned_to", "created_by")
        .prefetch_related("dependencies__target")
    )


def _refetch(task):
    return task_queryset().get(pk=task.pk)


def _get_task(task_id, lock=False):
    queryset = Task.objects.select_related("project", "project__team")
    if lock:
        queryset = queryset.select_for_update(of=("self",))
    try:
        return queryset.get(pk=task_id)
    except Task.DoesNotExist:
        raise NotFound("Task not found")


def _notify_on_commit(task_id, notification_type):
    transaction.on_commit(lambda: send_task_notification.delay(task_id, notification_type))


def _check_range(start_date, due_date):
    if start_date is not None and due_date is not None and due_date <= start_date:
        raise InvalidRange(
            "Due date must be after start date",
            details=[{"field": "due_date", "message": "Due date must be after start date"}],
        )


def _resolve_assignee(project, user_id, message):
    user = resolve_active_user(user_id, "Assigned user")
    if not project.is_participant(user):
        raise Conflict(message, details={"user_id": user.pk, "project_id": project.pk})
    return user


def _resolve_dependencies(project, dependencies, exclude_pk=None):
    """Turn ``{"task_id", "kind"}`` entries into (task, kind) pairs in ``project``."""
    wanted = {int(entry["task_id"]): entry.get("kind") or DependencyKind.DEPENDS_ON
              for entry in dependencies}
    if exclude_pk is not None and exclude_pk in wanted:
        raise Conflict("A task cannot depend on itself")
    targets = {t.pk: t for t in Task.objects.filter(pk__in=wanted, project=project)}
    if len(targets) != len(wanted):
        raise Conflict(
            "Some dependency tasks not found or not in the same project",
            details={"task_ids": sorted(set(wanted) - set(targets))},
        )
    return [(targets[pk], kind) for pk, kind in wanted.items()]


def get_task(actor, task_id):
    try:
        task = task_queryset().get(pk=task_id)
    except Task.DoesNotExist:
        raise NotFound("Task not found")
    require(actor, Operation.ACCESS_TASK, task)
    return task


def create_task(actor, project_id, title, assigned_to_id, start_date, due_date, description="",
                priority=None, task_type=None, estimated_hours=0, tags=None, dependencies=()):
    try:
        project = Project.objects.select_related("team").get(pk=project_id)
    except Project.DoesNotExist:
        raise NotFound("Project not found")
    require(actor, Operation.MANAGE_PROJECT, project,
            message="Project management access required to create tasks")
    _check_range(start_date, due_date)

    with transaction.atomic():
        assignee = _resolve_assignee(
            project, assigned_to_id, "User must be assigned to the project to receive tasks"
        )
        edges = _resolve_dependencies(project, dependencies)

        task = Task(
            title=title.strip(),
            description=description or "",
            project=project,
            assigned_to=assignee,
            created_by=actor,
            start_date=start_date,
            due_date=due_date,
            estimated_hours=estimated_hours or 0,
            tags=list(tags or []),
        )
        if priority:
            task.priority = priority
        if task_type:
            task.task_type = task_type
        task.save()
        TaskDependency.objects.bulk_create(
            [TaskDependency(task=task, target=target, kind=kind) for target, kind in edges]
        )
        publish_task_created(actor.pk, task)
        _notify_on_commit(task.pk, "assigned")

    logger.info(f"User {actor.pk} created task {task.pk} in project {project.pk}")
    return _refetch(task)


def update_task(actor, task_id, changes):
    """
    Apply ``changes`` to a task.

    Moving into ``completed`` stamps ``completed_date``; a reassignment must
    name a participant of the task's project.
    """
    with transaction.atomic():
        task = _get_task(task_id, lock=True)
        require(actor, Operation.MODIFY_TASK, task)
        applied = {}

        for field in UPDATABLE_FIELDS:
            if field in changes:
                value = changes[field]
                if field == "title":
                    value = value.strip()
                setattr(task, field, value)
                applied[field] = str(value) if field == "estimated_hours" else value

        start_date = changes.get("start_date", task.start_date)
        due_date = changes.get("due_date", task.due_date)
        _check_range(start_date, due_date)
        for field in ("start_date", "due_date"):
            if field in changes:
                setattr(task, field, changes[field])
                applied[field] = changes[field].isoformat()
        if "due_date" in changes:
            task.overdue_notified_at = None

        old_assignee_id = task.assigned_to_id
        new_assignee_id = changes.get("assigned_to_id")
        if new_assignee_id is not None and new_assignee_id != old_assignee_id:
            task.assigned_to = _resolve_assignee(
                task.project, new_assignee_id, "New assigned user must be part of the project"
            )
            applied["assigned_to"] = task.assigned_to_id

        old_status = task.status
        new_status = changes.get("status", old_status)
        if new_status != old_status:
            task.status = applied["status"] = new_status
            if new_status == TaskStatus.COMPLETED:
                task.completed_date = timezone.now()

        if "dependencies" in changes:
            edges = _resolve_dependencies(task.project, changes["dependencies"], exclude_pk=task.pk)
            task.dependencies.all().delete()
            TaskDependency.objects.bulk_create(
                [TaskDependency(task=task, target=target, kind=kind) for target, kind in edges]
            )
            applied["dependencies"] = [target.pk for target, _ in edges]

        task.save()

        if applied:
            publish_task_updated(actor.pk, task.pk, applied)
        if "assigned_to" in applied:
            publish_task_assigned(actor.pk, task.pk, old_assignee_id, task.assigned_to_id)
            _notify_on_commit(task.pk, "assigned")
        if new_status != old_status:
            publish_task_status_changed(actor.pk, task.pk, old_status, new_status)
            _notify_on_commit(task.pk, "status_changed")

    logger.info(f"User {actor.pk} updated task {task.pk}: {sorted(applied)}")
    return _refetch(task)


def record_progress(actor, task_id, status, comment="", hours_worked=0):
    """
    Append a progress update and apply it to the task.

    The task takes the reported status and ``hours_worked`` is added to
    ``actual_hours``, which therefore only ever grows.
    """
    hours_worked = Decimal(str(hours_worked or 0))
    with transaction.atomic():
        task = _get_task(task_id, lock=True)
        require(actor, Operation.RECORD_PROGRESS, task)

        update = ProgressUpdate.objects.create(
            task=task,
            author=actor,
            status=status,
            comment=comment or "",
            hours_worked=hours_worked,
        )
        old_status = task.status
        task.status = status
        task.actual_hours = task.actual_hours + hours_worked
        if status == TaskStatus.COMPLETED and (old_status != status or task.completed_date is None):
            task.completed_date = update.created_at
        task.save(update_fields=["status", "actual_hours", "completed_date", "updated_at"])

        publish_task_progress_recorded(actor.pk, task.pk, status, hours_worked, task.actual_hours)
        if old_status != status:
            publish_task_status_changed(actor.pk, task.pk, old_status, status)
            _notify_on_commit(task.pk, "status_changed")

    logger.info(f"User {actor.pk} recorded {hours_worked}h on task {task.pk} ({status})")
    return _refetch(task)


def list_progress(actor, task_id):
    task = _get_task(task_id)
    require(actor, Operation.ACCESS_TASK, task)
    return task.progress_updates.select_related("author")


def add_comment(actor, task_id, body):
    with transaction.atomic():
        task = _get_task(task_id)
        require(actor, Operation.ACCESS_TASK, task, message="Access denied to comment on this task")
        comment = Comment.objects.create(task=task, author=actor, body=body)
        publish_task_comment_added(actor.pk, task.pk, comment.pk)
        if task.assigned_to_id != actor.pk:
            _notify_on_commit(task.pk, "comment_added")

    logger.info(f"User {actor.pk} commented on task {task.pk}")
    return comment


def list_comments(actor, task_id):
    task = _get_task(task_id)
    require(actor, Operation.ACCESS_TASK, task)
    return task.comments.select_related("author")


def delete_task(actor, task_id):
    with transaction.atomic():
        task = _get_task(task_id, lock=True)
        require(actor, Operation.DELETE_TASK, task)
        dependents = list(
            TaskDependency.objects.filter(target=task)
            .exclude(task=task)
            .exclude(task__status__in=CLOSED_TASK_STATUSES)
            .values("task_id", "task__title", "task__status", "kind")
        )
        if dependents:
            logger.warning(f"Refused to delete task {task.pk}: {len(dependents)} open dependents")
            raise Conflict(
                "Cannot delete task that other open tasks depend on",
                details={"dependent_tasks": [
                    {"id": d["task_id"], "title": d["task__title"],
                     "status": d["task__status"], "kind": d["kind"]}
                    for d in dependents
                ]},
            )
        title, project_id = task.title, task.project_id
        task.delete()
        publish_task_deleted(actor.pk, int(task_id), title, project_id)

    logger.info(f"User {actor.pk} deleted task {task_id}")


def my_tasks(actor, status=None):
    queryset = task_queryset().filter(assigned_to=actor)
    if status:
        queryset = queryset.filter(status=status)
    return queryset


def task_stats(actor):
    """Aggregates over the tasks visible to ``actor`` in the task list."""
    tasks = scope_tasks(actor, Task.objects.all())
    # Aggregating over a distinct join would double count
    tasks = Task.objects.filter(pk__in=tasks.values("pk"))
    now = timezone.now()

    overview = tasks.aggregate(
        total_tasks=Count("id"),
        todo_tasks=Count("id", filter=Q(status=TaskStatus.TODO)),
        in_progress_tasks=Count("id", filter=Q(status=TaskStatus.IN_PROGRESS)),
        review_tasks=Count("id", filter=Q(status=TaskStatus.REVIEW)),
        completed_tasks=Count("id", filter=Q(status=TaskStatus.COMPLETED)),
        cancelled_tasks=Count("id", filter=Q(status=TaskStatus.CANCELLED)),
        overdue_tasks=Count("id", filter=Q(due_date__lt=now, status__in=OPEN_TASK_STATUSES)),
        total_estimated_hours=Sum("estimated_hours"),
        total_actual_hours=Sum("actual_hours"),
    )
    overview["total_estimated_hours"] = overview["total_estimated_hours"] or 0
    overview["total_actual_hours"] = overview["total_actual_hours"] or 0

    upcoming = (
        tasks.filter(status__in=OPEN_TASK_STATUSES, due_date__gte=now, due_date__lte=now + UPCOMING_WINDOW)
        .order_by("due_date")
        .values("id", "title", "status", "priority", "due_date", "project_id",
                "project__name", "assigned_to_id", "assigned_to__name")[:UPCOMING_LIMIT]
    )
    return {
        "overview": overview,
        "status_distribution": list(
            tasks.values("status").annotate(count=Count("id")).order_by("status")
        ),
        "priority_distribution": list(
            tasks.values("priority").annotate(count=Count("id")).order_by("priority")
        ),
        "upcoming_tasks": list(upcoming),
    }
