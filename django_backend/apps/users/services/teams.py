"""
Team registry.

The member rows of a team are the authoritative membership relation; the
leader always has a row tagged ``team_leader`` and nobody else does. Every
mutation locks the team row, re-validates that rule and only then commits.
"""
import logging

from django.db import IntegrityError, transaction

from apps.common.authorization import Operation, require
from apps.common.exceptions import (
    AssignNewLeaderFirst,
    Conflict,
    DuplicateName,
    NotFound,
)
from apps.users.models import Team, TeamMembership, TeamRole, User
from apps.users.producer import (
    publish_team_created,
    publish_team_deleted,
    publish_team_leader_changed,
    publish_team_member_added,
    publish_team_member_removed,
    publish_team_updated,
)

logger = logging.getLogger(__name__)

SETTINGS_FIELDS = ("allow_member_invite", "public_visibility")


def team_queryset():
    return Team.objects.select_related("leader", "created_by").prefetch_related("memberships__user")


def _lock_team(team_id):
    try:
        return Team.objects.select_for_update().get(pk=team_id)
    except Team.DoesNotExist:
        raise NotFound("Team not found")


def _refetch(team):
    return team_queryset().get(pk=team.pk)


def resolve_active_user(user_id, label="User"):
    """Inactive users are treated exactly like missing ones."""
    user = User.objects.filter(pk=user_id, is_active=True).first()
    if user is None:
        raise NotFound(f"{label} not found or inactive")
    return user


def _ensure_can_lead(user):
    if not user.can_lead_teams:
        raise Conflict("User must be admin or team leader to lead a team")


def _ensure_unique_name(name, exclude_pk=None):
    clash = Team.objects.filter(name__iexact=name)
    if exclude_pk is not None:
        clash = clash.exclude(pk=exclude_pk)
    if clash.exists():
        raise DuplicateName("Team with this name already exists")


def _assert_leadership(team):
    problems = team.leadership_violations()
    if problems:
        logger.error(f"Team {team.pk} leadership invariant broken: {problems}")
        raise Conflict("Team leadership is inconsistent", details=problems)


def _save_name(team, **kwargs):
    try:
        with transaction.atomic():
            team.save(**kwargs)
    except IntegrityError:
        raise DuplicateName("Team with this name already exists")


def get_team(actor, team_id):
    try:
        team = team_queryset().get(pk=team_id)
    except Team.DoesNotExist:
        raise NotFound("Team not found")
    require(actor, Operation.VIEW_TEAM, team)
    return team


def create_team(actor, name, leader_id, member_ids=(), description="", is_active=True,
                allow_member_invite=False, public_visibility=False):
    require(actor, Operation.MANAGE_TEAMS)
    name = name.strip()

    with transaction.atomic():
        _ensure_unique_name(name)
        leader = resolve_active_user(leader_id, "Team leader")
        _ensure_can_lead(leader)

        member_ids = {int(pk) for pk in member_ids} - {leader.pk}
        members = list(User.objects.filter(pk__in=member_ids, is_active=True))
        if len(members) != len(member_ids):
            missing = sorted(member_ids - {m.pk for m in members})
            raise NotFound("One or more members not found or inactive", details={"user_ids": missing})

        team = Team(
            name=name,
            description=description or "",
            leader=leader,
            is_active=is_active,
            allow_member_invite=allow_member_invite,
            public_visibility=public_visibility,
            created_by=actor,
        )
        _save_name(team)
        TeamMembership.objects.create(team=team, user=leader, role=TeamRole.TEAM_LEADER)
        TeamMembership.objects.bulk_create(
            [TeamMembership(team=team, user=member, role=TeamRole.MEMBER) for member in members]
        )
        _assert_leadership(team)
        publish_team_created(actor.pk, team.pk, team.name, leader.pk)

    logger.info(f"User {actor.pk} created team {team.pk} led by {leader.pk}")
    return _refetch(team)


def _reassign_leader(team, new_leader_id):
    new_leader = resolve_active_user(new_leader_id, "New team leader")
    if new_leader.pk == team.leader_id:
        return None
    _ensure_can_lead(new_leader)

    old_leader_id = team.leader_id
    TeamMembership.objects.filter(team=team, user_id=old_leader_id).update(role=TeamRole.MEMBER)
    TeamMembership.objects.update_or_create(
        team=team, user=new_leader, defaults={"role": TeamRole.TEAM_LEADER}
    )
    team.leader = new_leader
    team.save(update_fields=["leader", "updated_at"])
    return old_leader_id


def reassign_leader(actor, team_id, new_leader_id):
    """The old leader stays on the team as a plain member."""
    with transaction.atomic():
        team = _lock_team(team_id)
        require(actor, Operation.LEAD_TEAM, team)
        old_leader_id = _reassign_leader(team, new_leader_id)
        _assert_leadership(team)
        if old_leader_id is not None:
            publish_team_leader_changed(actor.pk, team.pk, old_leader_id, team.leader_id)

    if old_leader_id is not None:
        logger.info(f"Team {team.pk} leader changed {old_leader_id} -> {team.leader_id}")
    return _refetch(team)


def update_team(actor, team_id, changes):
    with transaction.atomic():
        team = _lock_team(team_id)
        require(actor, Operation.LEAD_TEAM, team)
        applied = {}

        if "name" in changes and changes["name"].strip() != team.name:
            name = changes["name"].strip()
            _ensure_unique_name(name, exclude_pk=team.pk)
            team.name = applied["name"] = name
        if "description" in changes:
            team.description = applied["description"] = changes["description"] or ""
        if "is_active" in changes:
            team.is_active = applied["is_active"] = changes["is_active"]
        for field in SETTINGS_FIELDS:
            if field in changes:
                setattr(team, field, changes[field])
                applied[field] = changes[field]
        _save_name(team)

        if changes.get("leader_id") is not None:
            old_leader_id = _reassign_leader(team, changes["leader_id"])
            if old_leader_id is not None:
                applied["leader_id"] = team.leader_id
                publish_team_leader_changed(actor.pk, team.pk, old_leader_id, team.leader_id)

        _assert_leadership(team)
        if applied:
            publish_team_updated(actor.pk, team.pk, team.name, applied)

    logger.info(f"User {actor.pk} updated team {team.pk}: {sorted(applied)}")
    return _refetch(team)


def add_member(actor, team_id, user_id):
    with transaction.atomic():
        team = _lock_team(team_id)
        require(actor, Operation.LEAD_TEAM, team)
        user = resolve_active_user(user_id)
        if TeamMembership.objects.filter(team=team, user=user).exists():
            raise Conflict("User is already a team member")
        TeamMembership.objects.create(team=team, user=user, role=TeamRole.MEMBER)
        _assert_leadership(team)
        publish_team_member_added(actor.pk, team.pk, team.name, user.pk)

    logger.info(f"User {actor.pk} added user {user.pk} to team {team.pk}")
    return _refetch(team)


def remove_member(actor, team_id, user_id):
    with transaction.atomic():
        team = _lock_team(team_id)
        require(actor, Operation.LEAD_TEAM, team)
        if str(team.leader_id) == str(user_id):
            raise AssignNewLeaderFirst()
        removed, _ = TeamMembership.objects.filter(team=team, user_id=user_id).delete()
        if not removed:
            raise Conflict("User is not a team member")
        _assert_leadership(team)
        publish_team_member_removed(actor.pk, team.pk, team.name, int(user_id))

    logger.info(f"User {actor.pk} removed user {user_id} from team {team.pk}")
    return _refetch(team)


def delete_team(actor, team_id):
    """
    Delete a team once none of its projects is still open.

    Closed projects of the team are removed along with it.
    """
    from apps.projects.models import OPEN_PROJECT_STATUSES, Project

    require(actor, Operation.MANAGE_TEAMS)
    with transaction.atomic():
        team = _lock_team(team_id)
        active = list(
            Project.objects.filter(team=team, status__in=OPEN_PROJECT_STATUSES)
            .values("id", "name", "status")
        )
        if active:
            logger.warning(f"Refused to delete team {team.pk}: {len(active)} active projects")
            raise Conflict(
                "Cannot delete team with active projects",
                details={"active_projects": active},
            )
        name = team.name
        team.delete()
        publish_team_deleted(actor.pk, int(team_id), name)

    logger.info(f"User {actor.pk} deleted team {team_id}")


def ensure_member(team, user, message="User is not a member of the team"):
    if not team.is_member(user):
        raise Conflict(message, details={"user_id": user.pk, "team_id": team.pk})

