from django.test import TestCase

from apps.common.events import EventPublisherFactory
from apps.common.exceptions import (
    AssignNewLeaderFirst,
    Conflict,
    DuplicateName,
    NotFound,
    PermissionDenied,
)
from apps.common.kafka.config import USER_ACTIVITIES_TOPIC
from apps.common.tests.factories import make_project, make_team, make_user
from apps.projects.models import Project, ProjectStatus
from apps.users import services
from apps.users.models import Team, TeamRole, UserRole


class CreateTeamTest(TestCase):
    """Test cases for team creation"""

    def setUp(self):
        EventPublisherFactory.reset_publisher()
        self.admin = make_user(UserRole.ADMIN)
        self.leader = make_user(UserRole.TEAM_LEADER)
        self.member = make_user()

    def test_leader_is_tagged_member(self):
        team = services.create_team(self.admin, " Core ", self.leader.pk, [self.member.pk])
        self.assertEqual(team.name, "Core")
        roles = dict(team.memberships.values_list("user_id", "role"))
        self.assertEqual(roles, {self.leader.pk: TeamRole.TEAM_LEADER, self.member.pk: TeamRole.MEMBER})
        self.assertEqual(team.leadership_violations(), [])
        self.assertEqual(team.created_by, self.admin)

    def test_leader_listed_as_member_is_not_duplicated(self):
        team = services.create_team(self.admin, "Core", self.leader.pk, [self.leader.pk, self.member.pk])
        self.assertEqual(team.memberships.count(), 2)

    def test_only_admin_creates_teams(self):
        with self.assertRaises(PermissionDenied):
            services.create_team(self.leader, "Core", self.leader.pk)

    def test_leader_must_be_able_to_lead(self):
        with self.assertRaises(Conflict):
            services.create_team(self.admin, "Core", self.member.pk)
        self.assertFalse(Team.objects.exists())

    def test_inactive_leader_is_not_found(self):
        self.leader.is_active = False
        self.leader.save()
        with self.assertRaises(NotFound):
            services.create_team(self.admin, "Core", self.leader.pk)

    def test_unknown_member(self):
        with self.assertRaises(NotFound) as ctx:
            services.create_team(self.admin, "Core", self.leader.pk, [999999])
        self.assertEqual(ctx.exception.details, {"user_ids": [999999]})
        self.assertFalse(Team.objects.exists())

    def test_name_unique_ignoring_case(self):
        services.create_team(self.admin, "Core", self.leader.pk)
        with self.assertRaises(DuplicateName):
            services.create_team(self.admin, "CORE", self.admin.pk)

    def test_created_event(self):
        with self.captureOnCommitCallbacks(execute=True):
            team = services.create_team(self.admin, "Core", self.leader.pk)
        events = EventPublisherFactory.get_publisher().get_events(USER_ACTIVITIES_TOPIC)
        self.assertEqual(events[-1]["event_type"], "team_created")
        self.assertEqual(events[-1]["data"]["team_id"], team.pk)


class TeamMembershipTest(TestCase):
    """Test cases for leader reassignment and member changes"""

    def setUp(self):
        self.admin = make_user(UserRole.ADMIN)
        self.leader = make_user(UserRole.TEAM_LEADER)
        self.next_leader = make_user(UserRole.TEAM_LEADER)
        self.member = make_user()
        self.team = make_team(self.leader, [self.member])

    def test_get_team(self):
        self.assertEqual(services.get_team(self.member, self.team.pk), self.team)
        with self.assertRaises(PermissionDenied):
            services.get_team(make_user(), self.team.pk)

    def test_reassign_leader_keeps_old_leader_as_member(self):
        team = services.reassign_leader(self.leader, self.team.pk, self.next_leader.pk)
        self.assertEqual(team.leader, self.next_leader)
        roles = dict(team.memberships.values_list("user_id", "role"))
        self.assertEqual(roles[self.leader.pk], TeamRole.MEMBER)
        self.assertEqual(roles[self.next_leader.pk], TeamRole.TEAM_LEADER)
        self.assertEqual(team.leadership_violations(), [])

    def test_reassign_to_plain_member_conflicts(self):
        with self.assertRaises(Conflict):
            services.reassign_leader(self.admin, self.team.pk, self.member.pk)
        self.team.refresh_from_db()
        self.assertEqual(self.team.leader, self.leader)

    def test_member_cannot_manage_team(self):
        with self.assertRaises(PermissionDenied):
            services.add_member(self.member, self.team.pk, make_user().pk)

    def test_add_member(self):
        newcomer = make_user()
        team = services.add_member(self.leader, self.team.pk, newcomer.pk)
        self.assertTrue(team.is_member(newcomer))

    def test_add_existing_member_conflicts(self):
        with self.assertRaises(Conflict):
            services.add_member(self.leader, self.team.pk, self.member.pk)

    def test_remove_leader_requires_new_leader(self):
        with self.assertRaises(AssignNewLeaderFirst):
            services.remove_member(self.admin, self.team.pk, self.leader.pk)
        self.assertTrue(self.team.is_member(self.leader))

    def test_remove_member(self):
        team = services.remove_member(self.leader, self.team.pk, self.member.pk)
        self.assertFalse(team.is_member(self.member))

    def test_remove_non_member_conflicts(self):
        with self.assertRaises(Conflict):
            services.remove_member(self.leader, self.team.pk, make_user().pk)

    def test_update_team_with_leader_change(self):
        team = services.update_team(self.admin, self.team.pk, {
            "name": "Renamed",
            "leader_id": self.next_leader.pk,
            "public_visibility": True,
        })
        self.assertEqual(team.name, "Renamed")
        self.assertEqual(team.leader, self.next_leader)
        self.assertTrue(team.public_visibility)

    def test_update_team_name_clash(self):
        make_team(self.next_leader, name="Taken")
        with self.assertRaises(DuplicateName):
            services.update_team(self.leader, self.team.pk, {"name": "taken"})


class DeleteTeamTest(TestCase):
    """Test cases for team deletion"""

    def setUp(self):
        self.admin = make_user(UserRole.ADMIN)
        self.leader = make_user(UserRole.TEAM_LEADER)
        self.team = make_team(self.leader)

    def test_blocked_by_open_project(self):
        project = make_project(self.team, self.leader, status=ProjectStatus.ACTIVE)
        with self.assertRaises(Conflict) as ctx:
            services.delete_team(self.admin, self.team.pk)
        self.assertEqual(ctx.exception.details["active_projects"][0]["id"], project.pk)
        self.assertTrue(Team.objects.filter(pk=self.team.pk).exists())

    def test_closed_projects_are_removed_with_team(self):
        make_project(self.team, self.leader, status=ProjectStatus.COMPLETED)
        services.delete_team(self.admin, self.team.pk)
        self.assertFalse(Team.objects.filter(pk=self.team.pk).exists())
        self.assertFalse(Project.objects.exists())

    def test_leader_cannot_delete_team(self):
        with self.assertRaises(PermissionDenied):
            services.delete_team(self.leader, self.team.pk)
