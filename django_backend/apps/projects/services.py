"""
Project registry.

A project belongs to exactly one team. Its manager and every assigned
member must be members of that team, and the planned window must end after
it starts. Mutations lock the project row and re-check these rules before
committing.
"""
import logging

from django.db import IntegrityError, transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone

from apps.common.authorization import Operation, require
from apps.common.exceptions import (
    AssignNewManagerFirst,
    Conflict,
    DuplicateName,
    InvalidRange,
    NotFound,
)
from apps.tasks.models import OPEN_TASK_STATUSES, Task
from apps.users.models import Team, UserRole
from apps.users.services import ensure_member, resolve_active_user

from .models import (
    CLOSED_PROJECT_STATUSES,
    Project,
    ProjectMembership,
    ProjectPriority,
    ProjectRole,
    ProjectStatus,
)
from .producer import (
    publish_project_created,
    publish_project_deleted,
    publish_project_member_added,
    publish_project_member_removed,
    publish_project_status_changed,
    publish_project_updated,
)

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "description",
    "priority",
    "budget_allocated",
    "budget_spent",
    "tags",
)


def project_queryset():
    return (
        Project.objects
        .select_related("team", "team__leader", "manager", "created_by")
        .prefetch_related("memberships__user")
    )


def _refetch(project):
    return project_queryset().get(pk=project.pk)


def _lock_project(project_id):
    try:
        return Project.objects.select_for_update().select_related("team").get(pk=project_id)
    except Project.DoesNotExist:
        raise NotFound("Project not found")


def _check_range(start_date, end_date):
    if start_date is not None and end_date is not None and end_date <= start_date:
        raise InvalidRange(
            details=[{"field": "end_date", "message": "End date must be after start date"}]
        )


def _ensure_unique_name(team, name, exclude_pk=None):
    clash = Project.objects.filter(team=team, name__iexact=name)
    if exclude_pk is not None:
        clash = clash.exclude(pk=exclude_pk)
    if clash.exists():
        raise DuplicateName("Project with this name already exists in the team")


def _save(project, **kwargs):
    try:
        with transaction.atomic():
            project.save(**kwargs)
    except IntegrityError:
        raise DuplicateName("Project with this name already exists in the team")


def _open_tasks(queryset):
    return list(queryset.filter(status__in=OPEN_TASK_STATUSES).values("id", "title", "status"))


def get_project(actor, project_id):
    try:
        project = project_queryset().get(pk=project_id)
    except Project.DoesNotExist:
        raise NotFound("Project not found")
    require(actor, Operation.ACCESS_PROJECT, project)
    return project


def task_summary(project):
    """Per-status task counts and logged hours for one project."""
    return list(
        Task.objects.filter(project=project)
        .values("status")
        .annotate(count=Count("id"), total_hours=Sum("actual_hours"))
        .order_by("status")
    )


def create_project(actor, team_id, name, manager_id, start_date, end_date, description="",
                   members=(), status=ProjectStatus.PLANNING, priority=None,
                   budget_allocated=0, budget_spent=0, tags=None):
    """
    Create a project under a team.

    ``members`` is a sequence of ``{"user_id", "role"}`` mappings; every
    member and the manager must already belong to the team.
    """
    _check_range(start_date, end_date)
    try:
        team = Team.objects.get(pk=team_id)
    except Team.DoesNotExist:
        raise NotFound("Team not found")
    require(actor, Operation.CREATE_PROJECT, team)

    with transaction.atomic():
        team = Team.objects.select_for_update().get(pk=team.pk)
        name = name.strip()
        _ensure_unique_name(team, name)

        manager = resolve_active_user(manager_id, "Project manager")
        ensure_member(team, manager, "Project manager must be a team member")

        assigned = []
        for entry in members:
            user = resolve_active_user(entry["user_id"])
            ensure_member(team, user, "All assigned members must be team members")
            assigned.append((user, entry.get("role") or ProjectRole.DEVELOPER))

        project = Project(
            name=name,
            description=description or "",
            team=team,
            manager=manager,
            status=status or ProjectStatus.PLANNING,
            priority=priority or ProjectPriority.MEDIUM,
            start_date=start_date,
            end_date=end_date,
            budget_allocated=budget_allocated or 0,
            budget_spent=budget_spent or 0,
            tags=list(tags or []),
            created_by=actor,
        )
        if project.status == ProjectStatus.COMPLETED:
            project.actual_end_date = timezone.now()
        _save(project)
        ProjectMembership.objects.bulk_create(
            [ProjectMembership(project=project, user=user, role=role) for user, role in assigned]
        )
        publish_project_created(actor.pk, project)

    logger.info(f"User {actor.pk} created project {project.pk} in team {team.pk}")
    return _refetch(project)


def update_project(actor, project_id, changes):
    """
    Apply ``changes`` to a project.

    Moving into ``completed`` stamps ``actual_end_date``. A change that would
    break the date window, the per-team name rule or the manager's team
    membership is rejected and nothing is written.
    """
    with transaction.atomic():
        project = _lock_project(project_id)
        require(actor, Operation.MANAGE_PROJECT, project)
        applied = {}

        if "name" in changes and changes["name"].strip() != project.name:
            name = changes["name"].strip()
            _ensure_unique_name(project.team, name, exclude_pk=project.pk)
            project.name = applied["name"] = name

        if changes.get("manager_id") is not None and changes["manager_id"] != project.manager_id:
            manager = resolve_active_user(changes["manager_id"], "New project manager")
            ensure_member(project.team, manager, "New project manager must be a team member")
            project.manager = manager
            applied["manager_id"] = manager.pk

        start_date = changes.get("start_date", project.start_date)
        end_date = changes.get("end_date", project.end_date)
        _check_range(start_date, end_date)
        for field in ("start_date", "end_date"):
            if field in changes:
                setattr(project, field, changes[field])
                applied[field] = changes[field].isoformat()

        for field in UPDATABLE_FIELDS:
            if field in changes:
                setattr(project, field, changes[field])
                applied[field] = str(changes[field]) if field.startswith("budget") else changes[field]

        old_status = project.status
        new_status = changes.get("status", old_status)
        if new_status != old_status:
            project.status = applied["status"] = new_status
            if new_status == ProjectStatus.COMPLETED:
                project.actual_end_date = timezone.now()

        _save(project)
        if applied:
            publish_project_updated(actor.pk, project.pk, applied)
        if new_status != old_status:
            publish_project_status_changed(actor.pk, project.pk, old_status, new_status)

    logger.info(f"User {actor.pk} updated project {project.pk}: {sorted(applied)}")
    return _refetch(project)


def add_member(actor, project_id, user_id, role=ProjectRole.DEVELOPER):
    with transaction.atomic():
        project = _lock_project(project_id)
        require(actor, Operation.MANAGE_PROJECT, project)
        user = resolve_active_user(user_id)
        ensure_member(project.team, user, "User must be a team member to be assigned to project")
        if project.memberships.filter(user=user).exists():
            raise Conflict("User is already assigned to this project")
        ProjectMembership.objects.create(project=project, user=user, role=role or ProjectRole.DEVELOPER)
        publish_project_member_added(actor.pk, project.pk, user.pk, role)

    logger.info(f"User {actor.pk} assigned user {user.pk} to project {project.pk}")
    return _refetch(project)


def remove_member(actor, project_id, user_id):
    """Refused for the manager and for anyone still holding open tasks here."""
    with transaction.atomic():
        project = _lock_project(project_id)
        require(actor, Operation.MANAGE_PROJECT, project)
        if str(project.manager_id) == str(user_id):
            raise AssignNewManagerFirst()

        membership = project.memberships.filter(user_id=user_id).first()
        if membership is None:
            raise Conflict("User is not assigned to this project")

        active = _open_tasks(Task.objects.filter(project=project, assigned_to_id=user_id))
        if active:
            logger.warning(f"Refused to remove user {user_id} from project {project.pk}: open tasks")
            raise Conflict(
                "Cannot remove user with active tasks. Reassign tasks first.",
                details={"active_tasks": active},
            )
        membership.delete()
        publish_project_member_removed(actor.pk, project.pk, int(user_id))

    logger.info(f"User {actor.pk} removed user {user_id} from project {project.pk}")
    return _refetch(project)


def delete_project(actor, project_id):
    with transaction.atomic():
        project = _lock_project(project_id)
        require(actor, Operation.MANAGE_PROJECT, project)
        active = _open_tasks(project.tasks.all())
        if active:
            logger.warning(f"Refused to delete project {project.pk}: {len(active)} open tasks")
            raise Conflict(
                "Cannot delete project with active tasks",
                details={"active_tasks": active},
            )
        name = project.name
        project.delete()
        publish_project_deleted(actor.pk, int(project_id), name)

    logger.info(f"User {actor.pk} deleted project {project_id}")


def project_stats(actor):
    """Admins see every project, team leaders the projects of teams they lead."""
    require(actor, Operation.VIEW_PROJECT_STATS)
    projects = Project.objects.all()
    if actor.role != UserRole.ADMIN:
        projects = projects.filter(team__leader=actor)

    now = timezone.now()
    overview = projects.aggregate(
        total_projects=Count("id"),
        active_projects=Count("id", filter=Q(status=ProjectStatus.ACTIVE)),
        completed_projects=Count("id", filter=Q(status=ProjectStatus.COMPLETED)),
        overdue_projects=Count(
            "id", filter=Q(end_date__lt=now) & ~Q(status__in=CLOSED_PROJECT_STATUSES)
        ),
        total_budget_allocated=Sum("budget_allocated"),
        total_budget_spent=Sum("budget_spent"),
    )
    overview["total_budget_allocated"] = overview["total_budget_allocated"] or 0
    overview["total_budget_spent"] = overview["total_budget_spent"] or 0

    return {
        "overview": overview,
        "status_distribution": list(
            projects.values("status").annotate(count=Count("id")).order_by("status")
        ),
        "priority_distribution": list(
            projects.values("priority").annotate(count=Count("id")).order_by("priority")
        ),
        "recent_projects": list(
            projects.order_by("-created_at").values(
                "id", "name", "status", "priority", "start_date", "end_date",
                "team_id", "team__name", "manager_id", "manager__name",
            )[:5]
        ),
    }
