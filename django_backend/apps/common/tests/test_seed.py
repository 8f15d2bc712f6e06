from io import StringIO

from django.core.management import call_command
from django.test import TestCase

from apps.projects.models import Project
from apps.tasks.models import Task
from apps.users.models import Team, User, UserRole


class SeedCommandTest(TestCase):
    """Test cases for the seed management command"""

    def test_creates_default_admin_once(self):
        call_command("seed", stdout=StringIO())
        call_command("seed", stdout=StringIO())
        admins = User.objects.filter(role=UserRole.ADMIN)
        self.assertEqual(admins.count(), 1)
        self.assertTrue(admins.get().check_password("admin123"))

    def test_demo_data(self):
        call_command("seed", "--demo", "--members", "3", "--tasks", "4", "--random-seed", "7", stdout=StringIO())
        team = Team.objects.get()
        self.assertEqual(team.memberships.count(), 4)
        self.assertEqual(team.leadership_violations(), [])
        project = Project.objects.get()
        self.assertEqual(project.memberships.count(), 3)
        self.assertEqual(Task.objects.filter(project=project).count(), 4)
