import math

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone


class TaskStatus(models.TextChoices):
    TODO = "todo", "To Do"
    IN_PROGRESS = "in_progress", "In Progress"
    REVIEW = "review", "Review"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"


class TaskPriority(models.TextChoices):
    LOW = "low", "Low"
    MEDIUM = "medium", "Medium"
    HIGH = "high", "High"
    CRITICAL = "critical", "Critical"


class TaskType(models.TextChoices):
    FEATURE = "feature", "Feature"
    BUG = "bug", "Bug"
    IMPROVEMENT = "improvement", "Improvement"
    RESEARCH = "research", "Research"
    TESTING = "testing", "Testing"
    DOCUMENTATION = "documentation", "Documentation"
    OTHER = "other", "Other"


class DependencyKind(models.TextChoices):
    BLOCKS = "blocks", "Blocks"
    DEPENDS_ON = "depends_on", "Depends On"


OPEN_TASK_STATUSES = (TaskStatus.TODO, TaskStatus.IN_PROGRESS, TaskStatus.REVIEW)
CLOSED_TASK_STATUSES = (TaskStatus.COMPLETED, TaskStatus.CANCELLED)

STATUS_PROGRESS = {
    TaskStatus.TODO: 0,
    TaskStatus.IN_PROGRESS: 25,
    TaskStatus.REVIEW: 75,
    TaskStatus.COMPLETED: 100,
    TaskStatus.CANCELLED: 0,
}


class Task(models.Model):
    title = models.CharField(max_length=200)
    description = models.TextField(max_length=2000, blank=True, default="")

    project = models.ForeignKey(
        "projects.Project",
        on_delete=models.CASCADE,
        related_name="tasks",
    )
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="tasks_assigned",
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="tasks_created",
    )

    status = models.CharField(
        max_length=16,
        choices=TaskStatus.choices,
        default=TaskStatus.TODO,
    )
    priority = models.CharField(
        max_length=16,
        choices=TaskPriority.choices,
        default=TaskPriority.MEDIUM,
    )
    task_type = models.CharField(
        max_length=16,
        choices=TaskType.choices,
        default=TaskType.FEATURE,
    )

    estimated_hours = models.DecimalField(
        max_digits=7,
        decimal_places=2,
        default=0,
        validators=[MinValueValidator(0)],
    )
    actual_hours = models.DecimalField(
        max_digits=7,
        decimal_places=2,
        default=0,
        validators=[MinValueValidator(0)],
    )

    start_date = models.DateTimeField()
    due_date = models.DateTimeField()
    completed_date = models.DateTimeField(null=True, blank=True)
    overdue_notified_at = models.DateTimeField(null=True, blank=True)

    tags = models.JSONField(default=list, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["status"], name="tasks_task_status_7a1c3d_idx"),
            models.Index(fields=["priority"], name="tasks_task_priorit_2e8f4b_idx"),
            models.Index(fields=["due_date"], name="tasks_task_due_dat_9b6d2a_idx"),
            models.Index(fields=["start_date", "due_date"], name="tasks_task_start_d_4c3e8f_idx"),
            models.Index(fields=["created_at"], name="tasks_task_created_1d5a9e_idx"),
        ]
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return self.title

    @property
    def is_closed(self):
        return self.status in CLOSED_TASK_STATUSES

    @property
    def progress_percentage(self):
        return STATUS_PROGRESS.get(self.status, 0)

    @property
    def duration(self):
        if self.start_date and self.due_date:
            return math.ceil((self.due_date - self.start_date).total_seconds() / 86400)
        return 0

    @property
    def time_remaining(self):
        """Whole days until the due date; 0 once the task is closed."""
        if self.is_closed or not self.due_date:
            return 0
        return math.ceil((self.due_date - timezone.now()).total_seconds() / 86400)

    @property
    def is_overdue(self):
        return not self.is_closed and timezone.now() > self.due_date


class TaskDependency(models.Model):
    """Directed edge from ``task`` to another task of the same project."""

    task = models.ForeignKey(Task, on_delete=models.CASCADE, related_name="dependencies")
    target = models.ForeignKey(Task, on_delete=models.CASCADE, related_name="dependents")
    kind = models.CharField(
        max_length=16,
        choices=DependencyKind.choices,
        default=DependencyKind.DEPENDS_ON,
    )

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["task", "target"], name="uq_task_dependency"),
        ]

    def __str__(self) -> str:
        return f"{self.task_id} {self.kind} {self.target_id}"


class Comment(models.Model):
    task = models.ForeignKey(Task, on_delete=models.CASCADE, related_name="comments")
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="task_comments",
    )
    body = models.TextField(max_length=1000)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self) -> str:
        return f"Comment by {self.author_id} on {self.task_id}"


class ProgressUpdate(models.Model):
    task = models.ForeignKey(Task, on_delete=models.CASCADE, related_name="progress_updates")
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="progress_updates",
    )
    status = models.CharField(max_length=16, choices=TaskStatus.choices)
    comment = models.TextField(max_length=1000, blank=True, default="")
    hours_worked = models.DecimalField(
        max_digits=7,
        decimal_places=2,
        default=0,
        validators=[MinValueValidator(0)],
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self) -> str:
        return f"{self.task_id} -> {self.status}"
