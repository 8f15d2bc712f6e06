import logging

from django.db import IntegrityError, transaction
from django.db.models import Count, Q

from apps.common.authorization import Operation, require
from apps.common.exceptions import Conflict, DuplicateIdentity, NotFound
from apps.users.models import Team, User, UserRole
from apps.users.producer import (
    publish_role_changed,
    publish_user_created,
    publish_user_deleted,
    publish_user_updated,
)

from .identity import PROFILE_FIELDS, _check_password_rules

logger = logging.getLogger(__name__)

SELF_EDITABLE_FIELDS = ("name",) + PROFILE_FIELDS
ADMIN_EDITABLE_FIELDS = SELF_EDITABLE_FIELDS + ("email", "role", "is_active")


def _lock_user(user_id):
    try:
        return User.objects.select_for_update().get(pk=user_id)
    except User.DoesNotExist:
        raise NotFound("User not found")


def get_user(actor, user_id):
    try:
        user = User.objects.prefetch_related("teams").get(pk=user_id)
    except User.DoesNotExist:
        raise NotFound("User not found")
    require(actor, Operation.VIEW_USER, user)
    return user


def create_user(actor, name, email, password, role=UserRole.MEMBER, **profile):
    """Admin-side account creation; the new user records who created it."""
    require(actor, Operation.MANAGE_USERS)
    email = User.objects.normalize_email(email)
    _check_password_rules(password)
    try:
        with transaction.atomic():
            if User.objects.filter(email__iexact=email).exists():
                raise DuplicateIdentity()
            user = User.objects.create_user(
                email=email,
                password=password,
                name=name.strip(),
                role=role or UserRole.MEMBER,
                created_by=actor,
                **{k: v for k, v in profile.items() if k in PROFILE_FIELDS},
            )
            publish_user_created(actor.pk, user.pk, user.email, user.role)
    except IntegrityError:
        raise DuplicateIdentity()

    logger.info(f"User {actor.pk} created user {user.pk} ({user.role})")
    return user


def _active_teams_led(user):
    return list(Team.objects.filter(leader=user, is_active=True).values("id", "name"))


def _ensure_can_become_member(user):
    teams_led = _active_teams_led(user)
    if teams_led:
        raise Conflict(
            "Cannot demote user who is leading active teams",
            details={"teams_led": teams_led},
        )


def update_user(actor, user_id, changes):
    """
    Apply ``changes`` to a user.

    Admins may edit identity, role and the active flag; users editing
    themselves are limited to their name and profile. Fields the actor may
    not touch are ignored.
    """
    with transaction.atomic():
        user = _lock_user(user_id)
        require(actor, Operation.UPDATE_USER, user)

        allowed = ADMIN_EDITABLE_FIELDS if actor.is_admin else SELF_EDITABLE_FIELDS
        changes = {k: v for k, v in changes.items() if k in allowed}

        if "email" in changes:
            changes["email"] = User.objects.normalize_email(changes["email"])
            taken = User.objects.filter(email__iexact=changes["email"]).exclude(pk=user.pk)
            if taken.exists():
                raise DuplicateIdentity("Email already in use by another user")

        if user.pk == actor.pk and changes.get("is_active") is False:
            raise Conflict("Cannot deactivate your own account")

        old_role = user.role
        new_role = changes.get("role", old_role)
        if new_role != old_role and new_role == UserRole.MEMBER:
            _ensure_can_become_member(user)

        if "name" in changes:
            changes["name"] = changes["name"].strip()
        for field, value in changes.items():
            setattr(user, field, value)
        user.save()

        if changes:
            publish_user_updated(actor.pk, user.pk, {k: str(v) for k, v in changes.items()})
        if new_role != old_role:
            publish_role_changed(actor.pk, user.pk, old_role, new_role)

    logger.info(f"User {actor.pk} updated user {user.pk}: {sorted(changes)}")
    return user


def promote(actor, user_id):
    require(actor, Operation.MANAGE_USERS)
    with transaction.atomic():
        user = _lock_user(user_id)
        if user.role == UserRole.ADMIN:
            raise Conflict("Cannot modify admin role")
        if user.role == UserRole.TEAM_LEADER:
            raise Conflict("User is already a team leader")
        old_role = user.role
        user.role = UserRole.TEAM_LEADER
        user.save(update_fields=["role", "updated_at"])
        publish_role_changed(actor.pk, user.pk, old_role, user.role)

    logger.info(f"User {actor.pk} promoted user {user.pk} to team leader")
    return user


def demote(actor, user_id):
    """Demote a team leader to member; refused while they lead an active team."""
    require(actor, Operation.MANAGE_USERS)
    with transaction.atomic():
        user = _lock_user(user_id)
        if user.role == UserRole.ADMIN:
            raise Conflict("Cannot modify admin role")
        if user.role == UserRole.MEMBER:
            raise Conflict("User is already a member")
        _ensure_can_become_member(user)
        old_role = user.role
        user.role = UserRole.MEMBER
        user.save(update_fields=["role", "updated_at"])
        publish_role_changed(actor.pk, user.pk, old_role, user.role)

    logger.info(f"User {actor.pk} demoted user {user.pk} to member")
    return user


def _dependencies(user):
    from apps.projects.models import Project
    from apps.tasks.models import OPEN_TASK_STATUSES, Task

    found = []
    teams_led = Team.objects.filter(leader=user).count()
    projects_managed = Project.objects.filter(manager=user).count()
    open_tasks = Task.objects.filter(assigned_to=user, status__in=OPEN_TASK_STATUSES).count()
    if teams_led:
        found.append(f"{teams_led} teams as leader")
    if projects_managed:
        found.append(f"{projects_managed} projects as manager")
    if open_tasks:
        found.append(f"{open_tasks} active tasks")
    return found


def delete_user(actor, user_id):
    require(actor, Operation.MANAGE_USERS)
    if str(actor.pk) == str(user_id):
        raise Conflict("Cannot delete your own account")

    with transaction.atomic():
        user = _lock_user(user_id)
        dependencies = _dependencies(user)
        if dependencies:
            logger.warning(f"Refused to delete user {user.pk}: {dependencies}")
            raise Conflict(
                "Cannot delete user with active dependencies",
                details={
                    "dependencies": dependencies,
                    "suggestion": "Reassign or complete these items before deletion, "
                                  "or deactivate the user instead",
                },
            )
        email = user.email
        user.delete()
        publish_user_deleted(actor.pk, int(user_id), email)

    logger.info(f"User {actor.pk} deleted user {user_id}")


def user_stats(actor):
    require(actor, Operation.MANAGE_USERS)
    overview = User.objects.aggregate(
        total_users=Count("id"),
        active_users=Count("id", filter=Q(is_active=True)),
        admin_count=Count("id", filter=Q(role=UserRole.ADMIN)),
        team_leader_count=Count("id", filter=Q(role=UserRole.TEAM_LEADER)),
        member_count=Count("id", filter=Q(role=UserRole.MEMBER)),
    )
    role_distribution = list(
        User.objects.values("role").annotate(count=Count("id")).order_by("role")
    )
    recent_users = list(
        User.objects.order_by("-date_joined").values("id", "name", "email", "role", "date_joined")[:5]
    )
    return {
        "overview": overview,
        "role_distribution": role_distribution,
        "recent_users": recent_users,
    }
