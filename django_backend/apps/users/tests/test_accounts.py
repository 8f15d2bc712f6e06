from django.test import TestCase

from apps.common.exceptions import Conflict, DuplicateIdentity, NotFound, PermissionDenied
from apps.common.tests.factories import make_project, make_task, make_team, make_user
from apps.tasks.models import TaskStatus
from apps.users import services
from apps.users.models import User, UserRole


class AccountManagementTest(TestCase):
    """Test cases for admin-side account management"""

    def setUp(self):
        self.admin = make_user(UserRole.ADMIN)
        self.leader = make_user(UserRole.TEAM_LEADER)
        self.member = make_user()

    def test_admin_creates_user(self):
        user = services.create_user(self.admin, "New", "New@Example.com", "secret123")
        self.assertEqual(user.email, "new@example.com")
        self.assertEqual(user.role, UserRole.MEMBER)
        self.assertEqual(user.created_by, self.admin)

    def test_non_admin_cannot_create_user(self):
        with self.assertRaises(PermissionDenied):
            services.create_user(self.leader, "New", "new@example.com", "secret123")

    def test_get_user(self):
        self.assertEqual(services.get_user(self.member, self.member.pk), self.member)
        self.assertEqual(services.get_user(self.admin, self.member.pk), self.member)
        with self.assertRaises(PermissionDenied):
            services.get_user(self.member, self.leader.pk)
        with self.assertRaises(NotFound):
            services.get_user(self.admin, 999999)

    def test_self_update_ignores_privileged_fields(self):
        user = services.update_user(self.member, self.member.pk, {
            "name": " Renamed ",
            "department": "QA",
            "role": UserRole.ADMIN,
            "is_active": False,
        })
        self.assertEqual(user.name, "Renamed")
        self.assertEqual(user.department, "QA")
        self.assertEqual(user.role, UserRole.MEMBER)
        self.assertTrue(user.is_active)

    def test_member_cannot_update_someone_else(self):
        with self.assertRaises(PermissionDenied):
            services.update_user(self.member, self.leader.pk, {"name": "x"})

    def test_admin_update_email_must_be_unique(self):
        with self.assertRaises(DuplicateIdentity):
            services.update_user(self.admin, self.member.pk, {"email": self.leader.email.upper()})

    def test_admin_cannot_deactivate_self(self):
        with self.assertRaises(Conflict):
            services.update_user(self.admin, self.admin.pk, {"is_active": False})

    def test_admin_can_reactivate_user(self):
        self.member.is_active = False
        self.member.save()
        user = services.update_user(self.admin, self.member.pk, {"is_active": True})
        self.assertTrue(user.is_active)


class RoleChangeTest(TestCase):
    """Test cases for promote and demote"""

    def setUp(self):
        self.admin = make_user(UserRole.ADMIN)
        self.leader = make_user(UserRole.TEAM_LEADER)
        self.member = make_user()

    def test_promote_member(self):
        user = services.promote(self.admin, self.member.pk)
        self.assertEqual(user.role, UserRole.TEAM_LEADER)

    def test_promote_twice_conflicts(self):
        with self.assertRaises(Conflict):
            services.promote(self.admin, self.leader.pk)

    def test_admin_role_cannot_be_changed(self):
        other_admin = make_user(UserRole.ADMIN)
        with self.assertRaises(Conflict):
            services.promote(self.admin, other_admin.pk)
        with self.assertRaises(Conflict):
            services.demote(self.admin, other_admin.pk)

    def test_demote_leader_without_teams(self):
        self.assertEqual(services.demote(self.admin, self.leader.pk).role, UserRole.MEMBER)

    def test_demote_blocked_while_leading_active_team(self):
        team = make_team(self.leader)
        with self.assertRaises(Conflict) as ctx:
            services.demote(self.admin, self.leader.pk)
        self.assertEqual(ctx.exception.details["teams_led"], [{"id": team.pk, "name": team.name}])
        self.leader.refresh_from_db()
        self.assertEqual(self.leader.role, UserRole.TEAM_LEADER)

    def test_role_update_to_member_runs_same_guard(self):
        make_team(self.leader)
        with self.assertRaises(Conflict):
            services.update_user(self.admin, self.leader.pk, {"role": UserRole.MEMBER})

    def test_only_admin_changes_roles(self):
        with self.assertRaises(PermissionDenied):
            services.promote(self.leader, self.member.pk)


class DeleteUserTest(TestCase):
    """Test cases for user deletion"""

    def setUp(self):
        self.admin = make_user(UserRole.ADMIN)
        self.leader = make_user(UserRole.TEAM_LEADER)
        self.member = make_user()
        self.team = make_team(self.leader, [self.member])
        self.project = make_project(self.team, self.leader, [self.member])

    def test_cannot_delete_self(self):
        with self.assertRaises(Conflict):
            services.delete_user(self.admin, self.admin.pk)

    def test_blocked_by_leadership_and_management(self):
        with self.assertRaises(Conflict) as ctx:
            services.delete_user(self.admin, self.leader.pk)
        self.assertEqual(
            ctx.exception.details["dependencies"],
            ["1 teams as leader", "1 projects as manager"],
        )
        self.assertTrue(User.objects.filter(pk=self.leader.pk).exists())

    def test_blocked_by_open_tasks(self):
        make_task(self.project, self.member)
        with self.assertRaises(Conflict) as ctx:
            services.delete_user(self.admin, self.member.pk)
        self.assertEqual(ctx.exception.details["dependencies"], ["1 active tasks"])

    def test_closed_tasks_do_not_block(self):
        task = make_task(self.project, self.member, status=TaskStatus.COMPLETED)
        services.delete_user(self.admin, self.member.pk)
        self.assertFalse(User.objects.filter(pk=self.member.pk).exists())
        task.refresh_from_db()
        self.assertIsNone(task.assigned_to)

    def test_stats(self):
        stats = services.user_stats(self.admin)
        self.assertEqual(stats["overview"]["total_users"], 3)
        self.assertEqual(stats["overview"]["team_leader_count"], 1)
        self.assertEqual(len(stats["recent_users"]), 3)
