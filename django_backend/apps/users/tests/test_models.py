from django.db import IntegrityError, transaction
from django.test import TestCase

from apps.common.tests.factories import make_team, make_user
from apps.users.models import Team, TeamMembership, TeamRole, User, UserRole


class UserModelTest(TestCase):
    """Test cases for the User model"""

    def test_email_is_normalized_to_lowercase(self):
        user = User.objects.create_user(email="  Jane@Example.COM ", password="secret123", name="Jane")
        self.assertEqual(user.email, "jane@example.com")
        self.assertEqual(User.objects.get_by_email("JANE@example.com"), user)

    def test_default_role_is_member(self):
        user = User.objects.create_user(email="m@example.com", password="secret123", name="M")
        self.assertEqual(user.role, UserRole.MEMBER)
        self.assertFalse(user.is_admin)
        self.assertFalse(user.can_lead_teams)

    def test_superuser_is_admin(self):
        user = User.objects.create_superuser(email="root@example.com", password="secret123", name="Root")
        self.assertTrue(user.is_admin)
        self.assertTrue(user.can_lead_teams)

    def test_email_must_be_set(self):
        with self.assertRaises(ValueError):
            User.objects.create_user(email="", password="secret123", name="Nobody")


class TeamModelTest(TestCase):
    """Test cases for the Team model"""

    def setUp(self):
        self.leader = make_user(UserRole.TEAM_LEADER)
        self.member = make_user()
        self.team = make_team(self.leader, [self.member], name="Platform")

    def test_membership_helpers(self):
        self.assertTrue(self.team.is_leader(self.leader))
        self.assertTrue(self.team.is_member(self.member))
        self.assertFalse(self.team.is_member(make_user()))
        self.assertEqual(self.team.member_count, 2)

    def test_consistent_team_has_no_violations(self):
        self.assertEqual(self.team.leadership_violations(), [])

    def test_untagged_leader_is_reported(self):
        TeamMembership.objects.filter(team=self.team, user=self.leader).update(role=TeamRole.MEMBER)
        self.assertIn("leader is not a member tagged team_leader", self.team.leadership_violations())

    def test_second_tagged_member_is_reported(self):
        TeamMembership.objects.filter(team=self.team, user=self.member).update(role=TeamRole.TEAM_LEADER)
        self.assertEqual(len(self.team.leadership_violations()), 1)

    def test_name_is_unique_ignoring_case(self):
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Team.objects.create(name="PLATFORM", leader=self.leader)

    def test_user_cannot_join_twice(self):
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                TeamMembership.objects.create(team=self.team, user=self.member)
