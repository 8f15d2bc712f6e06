import logging
import random
from datetime import timedelta

from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from apps.projects import services as project_services
from apps.projects.models import ProjectRole, ProjectStatus
from apps.tasks import services as task_services
from apps.tasks.models import TaskPriority, TaskStatus, TaskType
from apps.users import services as user_services
from apps.users.models import User, UserRole

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_EMAIL = "admin@tracker.dummy"
DEFAULT_ADMIN_PASSWORD = "admin123"
DEMO_PASSWORD = "password123"

FIRST_NAMES = [
    'Alice', 'Bob', 'Charlie', 'Diana', 'Eve', 'Frank', 'Grace', 'Henry',
    'Ivy', 'Jack', 'Kate', 'Liam', 'Mia', 'Noah', 'Olivia', 'Peter',
]

LAST_NAMES = [
    'Smith', 'Johnson', 'Williams', 'Brown', 'Jones', 'Garcia', 'Miller',
    'Davis', 'Wilson', 'Anderson', 'Thomas', 'Moore',
]

TASK_TITLES = [
    'Set up CI pipeline', 'Write API documentation', 'Fix login redirect',
    'Design onboarding flow', 'Load test search endpoint', 'Review access rules',
    'Migrate reports to new schema', 'Add audit trail export',
]


class Command(BaseCommand):
    help = 'Create the default administrator and, optionally, demo data'

    def add_arguments(self, parser):
        parser.add_argument(
            '--demo',
            action='store_true',
            help='Also create a demo team with a project and tasks'
        )
        parser.add_argument(
            '--members',
            type=int,
            default=5,
            help='Number of demo members to create'
        )
        parser.add_argument(
            '--tasks',
            type=int,
            default=12,
            help='Number of demo tasks to create'
        )
        parser.add_argument(
            '--random-seed',
            type=int,
            default=None,
            help='Seed for reproducible demo data'
        )

    def handle(self, *args, **options):
        self.stdout.write('Starting database seeding...')
        admin = self.ensure_admin()

        if options['demo']:
            rng = random.Random(options['random_seed'])
            with transaction.atomic():
                summary = self.create_demo(admin, rng, options['members'], options['tasks'])
            self.stdout.write(self.style.SUCCESS(
                f"Demo data created: team '{summary['team']}', project '{summary['project']}', "
                f"{summary['members']} members, {summary['tasks']} tasks. "
                f"Demo users log in with password '{DEMO_PASSWORD}'."
            ))

        self.stdout.write(self.style.SUCCESS(
            f'Seeding complete. Admin user: {DEFAULT_ADMIN_EMAIL} / {DEFAULT_ADMIN_PASSWORD}'
        ))

    def ensure_admin(self):
        admin = User.objects.filter(email__iexact=DEFAULT_ADMIN_EMAIL).first()
        if admin is not None:
            self.stdout.write('Default admin already exists')
            return admin

        admin = User.objects.create_superuser(
            email=DEFAULT_ADMIN_EMAIL,
            password=DEFAULT_ADMIN_PASSWORD,
            name='System Admin',
        )
        logger.info(f"Created default admin {admin.pk}")
        self.stdout.write(f'Created default admin {DEFAULT_ADMIN_EMAIL}')
        return admin

    def _demo_user(self, admin, role, index):
        name = f'{FIRST_NAMES[index % len(FIRST_NAMES)]} {LAST_NAMES[index % len(LAST_NAMES)]}'
        email = f'{name.lower().replace(" ", ".")}.{index}@tracker.dummy'
        existing = User.objects.filter(email__iexact=email).first()
        if existing is not None:
            return existing
        return user_services.create_user(admin, name, email, DEMO_PASSWORD, role=role)

    def create_demo(self, admin, rng, num_members, num_tasks):
        self.stdout.write('Creating demo users...')
        leader = self._demo_user(admin, UserRole.TEAM_LEADER, 0)
        members = [self._demo_user(admin, UserRole.MEMBER, i) for i in range(1, num_members + 1)]

        self.stdout.write('Creating demo team...')
        suffix = timezone.now().strftime('%Y%m%d%H%M%S')
        team = user_services.create_team(
            admin,
            f'Demo Team {suffix}',
            leader.pk,
            [m.pk for m in members],
            description='Sample team created by the seed command',
        )

        self.stdout.write('Creating demo project...')
        start = timezone.now() - timedelta(days=7)
        project = project_services.create_project(
            leader,
            team.pk,
            'Platform Launch',
            leader.pk,
            start,
            start + timedelta(days=60),
            description='Sample project created by the seed command',
            members=[
                {'user_id': m.pk, 'role': rng.choice([ProjectRole.DEVELOPER, ProjectRole.TESTER, ProjectRole.DESIGNER])}
                for m in members
            ],
            status=ProjectStatus.ACTIVE,
            budget_allocated=rng.randint(10, 50) * 1000,
        )

        self.stdout.write('Creating demo tasks...')
        assignees = members or [leader]
        tasks = []
        for i in range(num_tasks):
            task_start = start + timedelta(days=rng.randint(0, 20))
            task = task_services.create_task(
                leader,
                project.pk,
                TASK_TITLES[i % len(TASK_TITLES)],
                rng.choice(assignees).pk,
                task_start,
                task_start + timedelta(days=rng.randint(2, 14)),
                priority=rng.choice(TaskPriority.values),
                task_type=rng.choice(TaskType.values),
                estimated_hours=rng.randint(2, 40),
            )
            status = rng.choice([TaskStatus.TODO, TaskStatus.IN_PROGRESS, TaskStatus.REVIEW, TaskStatus.COMPLETED])
            if status != TaskStatus.TODO:
                task = task_services.record_progress(
                    task.assigned_to, task.pk, status, 'Seeded progress', rng.randint(1, 8)
                )
            tasks.append(task)

        return {
            'team': team.name,
            'project': project.name,
            'members': len(members),
            'tasks': len(tasks),
        }
