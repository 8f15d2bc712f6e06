"""
Authorization engine.

All role-conditioned decisions live in ``RULES``: for each operation and
role, a rule is either ``ALLOW`` or a tuple of relation names, any one of
which grants the operation. Checks never raise and never write; callers use
``require`` to turn a refusal into ``PermissionDenied``.

An inactive actor is treated as if it did not exist and is refused
everything.
"""
from enum import Enum

from django.db.models import Q

from apps.common.exceptions import PermissionDenied
from apps.users.models import UserRole

ALLOW = True


class Operation(Enum):
    MANAGE_USERS = "manage_users"
    VIEW_USER = "view_user"
    UPDATE_USER = "update_user"
    MANAGE_TEAMS = "manage_teams"
    VIEW_TEAM = "view_team"
    LEAD_TEAM = "lead_team"
    CREATE_PROJECT = "create_project"
    MANAGE_PROJECT = "manage_project"
    ACCESS_PROJECT = "access_project"
    VIEW_PROJECT_STATS = "view_project_stats"
    MODIFY_TASK = "modify_task"
    ACCESS_TASK = "access_task"
    RECORD_PROGRESS = "record_progress"
    DELETE_TASK = "delete_task"


# Relation checks: (actor, target) -> bool

def _is_self(actor, user):
    return user is not None and actor.pk == user.pk


def _team_leader(actor, team):
    return team.leader_id == actor.pk


def _team_member(actor, team):
    return team.memberships.filter(user_id=actor.pk).exists()


def _project_manager(actor, project):
    return project.manager_id == actor.pk


def _project_team_leader(actor, project):
    return project.team.leader_id == actor.pk


def _project_member(actor, project):
    return project.memberships.filter(user_id=actor.pk).exists()


def _task_assignee(actor, task):
    return task.assigned_to_id == actor.pk


def _task_creator(actor, task):
    return task.created_by_id == actor.pk


def _task_project_manager(actor, task):
    return _project_manager(actor, task.project)


def _task_team_leader(actor, task):
    return _project_team_leader(actor, task.project)


def _task_project_member(actor, task):
    return _project_member(actor, task.project)


RELATIONS = {
    "self": _is_self,
    "team_leader": _team_leader,
    "team_member": _team_member,
    "project_manager": _project_manager,
    "project_team_leader": _project_team_leader,
    "project_member": _project_member,
    "task_assignee": _task_assignee,
    "task_creator": _task_creator,
    "task_project_manager": _task_project_manager,
    "task_team_leader": _task_team_leader,
    "task_project_member": _task_project_member,
}

_PROJECT_MANAGEMENT = ("project_manager", "project_team_leader")
_PROJECT_ACCESS = _PROJECT_MANAGEMENT + ("project_member",)
_TASK_MODIFY = ("task_assignee", "task_creator", "task_project_manager", "task_team_leader")
_TASK_ACCESS = _TASK_MODIFY + ("task_project_member",)
_TASK_DELETE = ("task_creator", "task_project_manager", "task_team_leader")


def _same_for_non_admins(rule):
    return {
        UserRole.ADMIN: ALLOW,
        UserRole.TEAM_LEADER: rule,
        UserRole.MEMBER: rule,
    }


RULES = {
    Operation.MANAGE_USERS: {UserRole.ADMIN: ALLOW},
    Operation.VIEW_USER: _same_for_non_admins(("self",)),
    Operation.UPDATE_USER: _same_for_non_admins(("self",)),
    Operation.MANAGE_TEAMS: {UserRole.ADMIN: ALLOW},
    Operation.VIEW_TEAM: _same_for_non_admins(("team_member",)),
    Operation.LEAD_TEAM: _same_for_non_admins(("team_leader",)),
    Operation.CREATE_PROJECT: {
        UserRole.ADMIN: ALLOW,
        UserRole.TEAM_LEADER: ("team_leader",),
    },
    Operation.MANAGE_PROJECT: _same_for_non_admins(_PROJECT_MANAGEMENT),
    Operation.ACCESS_PROJECT: _same_for_non_admins(_PROJECT_ACCESS),
    Operation.VIEW_PROJECT_STATS: {
        UserRole.ADMIN: ALLOW,
        UserRole.TEAM_LEADER: ALLOW,
    },
    Operation.MODIFY_TASK: _same_for_non_admins(_TASK_MODIFY),
    Operation.ACCESS_TASK: _same_for_non_admins(_TASK_ACCESS),
    # Modifiers plus every participant of the task's project.
    Operation.RECORD_PROGRESS: _same_for_non_admins(_TASK_ACCESS),
    Operation.DELETE_TASK: _same_for_non_admins(_TASK_DELETE),
}

DENIAL_MESSAGES = {
    Operation.MANAGE_USERS: "Admin access required",
    Operation.VIEW_USER: "Access denied",
    Operation.UPDATE_USER: "Access denied",
    Operation.MANAGE_TEAMS: "Admin access required",
    Operation.VIEW_TEAM: "Access denied to this team",
    Operation.LEAD_TEAM: "Team leader access required for this team",
    Operation.CREATE_PROJECT: "Only team leaders can create projects for their team",
    Operation.MANAGE_PROJECT: "Project management access required",
    Operation.ACCESS_PROJECT: "Access denied to this project",
    Operation.VIEW_PROJECT_STATS: "Team leader or admin access required",
    Operation.MODIFY_TASK: "Access denied to modify this task",
    Operation.ACCESS_TASK: "Access denied to this task",
    Operation.RECORD_PROGRESS: "Access denied to update task progress",
    Operation.DELETE_TASK: "Access denied to delete this task",
}


def _is_live(actor):
    return (
        actor is not None
        and getattr(actor, "is_authenticated", False)
        and getattr(actor, "is_active", False)
    )


def authorize(actor, operation, target=None):
    """Return True when ``actor`` may perform ``operation`` on ``target``."""
    if not _is_live(actor):
        return False
    rule = RULES[operation].get(actor.role)
    if rule is ALLOW:
        return True
    if not rule or target is None:
        return False
    return any(RELATIONS[name](actor, target) for name in rule)


def require(actor, operation, target=None, message=None):
    if not authorize(actor, operation, target):
        raise PermissionDenied(message or DENIAL_MESSAGES[operation])


def can_manage_users(actor):
    return authorize(actor, Operation.MANAGE_USERS)


def can_manage_teams(actor):
    return authorize(actor, Operation.MANAGE_TEAMS)


def can_lead_team(actor, team):
    return authorize(actor, Operation.LEAD_TEAM, team)


def can_view_team(actor, team):
    return authorize(actor, Operation.VIEW_TEAM, team)


def can_create_project(actor, team):
    return authorize(actor, Operation.CREATE_PROJECT, team)


def can_manage_project(actor, project):
    return authorize(actor, Operation.MANAGE_PROJECT, project)


def can_access_project(actor, project):
    return authorize(actor, Operation.ACCESS_PROJECT, project)


def can_modify_task(actor, task):
    return authorize(actor, Operation.MODIFY_TASK, task)


def can_access_task(actor, task):
    return authorize(actor, Operation.ACCESS_TASK, task)


def can_record_progress(actor, task):
    return authorize(actor, Operation.RECORD_PROGRESS, task)


def can_delete_task(actor, task):
    return authorize(actor, Operation.DELETE_TASK, task)


# Visibility filters for list endpoints

def _scoped(actor, queryset, leader_q, member_q):
    if not _is_live(actor):
        return queryset.none()
    if actor.role == UserRole.ADMIN:
        return queryset
    q = leader_q if actor.role == UserRole.TEAM_LEADER else member_q
    return queryset.filter(q).distinct()


def scope_users(actor, queryset):
    own = Q(pk=actor.pk) if actor is not None else Q(pk=None)
    return _scoped(actor, queryset, own, own)


def scope_teams(actor, queryset):
    q = Q(memberships__user=actor)
    return _scoped(actor, queryset, q, q)


def scope_projects(actor, queryset):
    participant = Q(manager=actor) | Q(memberships__user=actor)
    return _scoped(actor, queryset, participant | Q(team__leader=actor), participant)


def scope_tasks(actor, queryset):
    leader_q = (
        Q(project__team__leader=actor)
        | Q(project__manager=actor)
        | Q(project__memberships__user=actor)
        | Q(assigned_to=actor)
    )
    return _scoped(actor, queryset, leader_q, Q(assigned_to=actor))
