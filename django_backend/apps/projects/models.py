import math
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import F
from django.db.models.functions import Lower
from django.utils import timezone


class ProjectStatus(models.TextChoices):
    PLANNING = "planning", "Planning"
    ACTIVE = "active", "Active"
    ON_HOLD = "on_hold", "On Hold"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"


class ProjectPriority(models.TextChoices):
    LOW = "low", "Low"
    MEDIUM = "medium", "Medium"
    HIGH = "high", "High"
    CRITICAL = "critical", "Critical"


class ProjectRole(models.TextChoices):
    PROJECT_MANAGER = "project_manager", "Project Manager"
    DEVELOPER = "developer", "Developer"
    TESTER = "tester", "Tester"
    DESIGNER = "designer", "Designer"
    OTHER = "other", "Other"


OPEN_PROJECT_STATUSES = (ProjectStatus.PLANNING, ProjectStatus.ACTIVE, ProjectStatus.ON_HOLD)
CLOSED_PROJECT_STATUSES = (ProjectStatus.COMPLETED, ProjectStatus.CANCELLED)


class Project(models.Model):
    name = models.CharField(max_length=100)
    description = models.TextField(max_length=1000, blank=True, default="")

    team = models.ForeignKey(
        "users.Team",
        on_delete=models.CASCADE,
        related_name="projects",
    )
    manager = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="projects_managed",
    )
    members = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        through="ProjectMembership",
        related_name="projects",
        blank=True,
    )

    status = models.CharField(
        max_length=16,
        choices=ProjectStatus.choices,
        default=ProjectStatus.PLANNING,
    )
    priority = models.CharField(
        max_length=16,
        choices=ProjectPriority.choices,
        default=ProjectPriority.MEDIUM,
    )

    start_date = models.DateTimeField()
    end_date = models.DateTimeField()
    actual_end_date = models.DateTimeField(null=True, blank=True)

    budget_allocated = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=0,
        validators=[MinValueValidator(0)],
    )
    budget_spent = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=0,
        validators=[MinValueValidator(0)],
    )
    tags = models.JSONField(default=list, blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="projects_created",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(Lower("name"), F("team"), name="uq_project_name_team_ci"),
        ]
        indexes = [
            models.Index(fields=["status"], name="projects_pr_status_5b2c1e_idx"),
            models.Index(fields=["priority"], name="projects_pr_priorit_8d4a7c_idx"),
            models.Index(fields=["start_date", "end_date"], name="projects_pr_start_d_3f9e6a_idx"),
        ]
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return self.name

    @property
    def duration(self):
        """Length of the planned window in whole days, rounded up."""
        if self.start_date and self.end_date:
            return math.ceil((self.end_date - self.start_date).total_seconds() / 86400)
        return 0

    @property
    def progress_percentage(self):
        """Elapsed share of the planned window; terminal statuses are fixed."""
        if self.status == ProjectStatus.COMPLETED:
            return 100
        if self.status == ProjectStatus.CANCELLED:
            return 0
        now = timezone.now()
        if now < self.start_date:
            return 0
        if now > self.end_date:
            return 100
        total = (self.end_date - self.start_date).total_seconds()
        elapsed = (now - self.start_date).total_seconds()
        return round(elapsed / total * 100)

    @property
    def budget_utilization(self):
        if not self.budget_allocated:
            return 0
        return round(Decimal(self.budget_spent) / Decimal(self.budget_allocated) * 100)

    @property
    def is_overdue(self):
        return self.status not in CLOSED_PROJECT_STATUSES and timezone.now() > self.end_date

    def is_manager(self, user):
        return self.manager_id == user.pk

    def is_assigned(self, user):
        return self.memberships.filter(user_id=user.pk).exists()

    def is_participant(self, user):
        return self.is_manager(user) or self.is_assigned(user)


class ProjectMembership(models.Model):
    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name="memberships")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="project_memberships",
    )
    role = models.CharField(max_length=20, choices=ProjectRole.choices, default=ProjectRole.DEVELOPER)
    assigned_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["project", "user"], name="uq_project_user"),
        ]
        ordering = ["assigned_at"]

    def __str__(self) -> str:
        return f"{self.user_id} on {self.project_id} ({self.role})"
