import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("projects", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Task",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(max_length=200)),
                ("description", models.TextField(blank=True, default="", max_length=2000)),
                ("status", models.CharField(choices=[("todo", "To Do"), ("in_progress", "In Progress"), ("review", "Review"), ("completed", "Completed"), ("cancelled", "Cancelled")], default="todo", max_length=16)),
                ("priority", models.CharField(choices=[("low", "Low"), ("medium", "Medium"), ("high", "High"), ("critical", "Critical")], default="medium", max_length=16)),
                ("task_type", models.CharField(choices=[("feature", "Feature"), ("bug", "Bug"), ("improvement", "Improvement"), ("research", "Research"), ("testing", "Testing"), ("documentation", "Documentation"), ("other", "Other")], default="feature", max_length=16)),
                ("estimated_hours", models.DecimalField(decimal_places=2, default=0, max_digits=7, validators=[django.core.validators.MinValueValidator(0)])),
                ("actual_hours", models.DecimalField(decimal_places=2, default=0, max_digits=7, validators=[django.core.validators.MinValueValidator(0)])),
                ("start_date", models.DateTimeField()),
                ("due_date", models.DateTimeField()),
                ("completed_date", models.DateTimeField(blank=True, null=True)),
                ("tags", models.JSONField(blank=True, default=list)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("assigned_to", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="tasks_assigned", to=settings.AUTH_USER_MODEL)),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="tasks_created", to=settings.AUTH_USER_MODEL)),
                ("project", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="tasks", to="projects.project")),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status"], name="tasks_task_status_7a1c3d_idx"),
                    models.Index(fields=["priority"], name="tasks_task_priorit_2e8f4b_idx"),
                    models.Index(fields=["due_date"], name="tasks_task_due_dat_9b6d2a_idx"),
                    models.Index(fields=["start_date", "due_date"], name="tasks_task_start_d_4c3e8f_idx"),
                    models.Index(fields=["created_at"], name="tasks_task_created_1d5a9e_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="TaskDependency",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("kind", models.CharField(choices=[("blocks", "Blocks"), ("depends_on", "Depends On")], default="depends_on", max_length=16)),
                ("target", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="dependents", to="tasks.task")),
                ("task", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="dependencies", to="tasks.task")),
            ],
            options={
                "constraints": [models.UniqueConstraint(fields=("task", "target"), name="uq_task_dependency")],
            },
        ),
        migrations.CreateModel(
            name="Comment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("body", models.TextField(max_length=1000)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("author", models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="task_comments", to=settings.AUTH_USER_MODEL)),
                ("task", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="comments", to="tasks.task")),
            ],
            options={
                "ordering": ["created_at", "id"],
            },
        ),
        migrations.CreateModel(
            name="ProgressUpdate",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("status", models.CharField(choices=[("todo", "To Do"), ("in_progress", "In Progress"), ("review", "Review"), ("completed", "Completed"), ("cancelled", "Cancelled")], max_length=16)),
                ("comment", models.TextField(blank=True, default="", max_length=1000)),
                ("hours_worked", models.DecimalField(decimal_places=2, default=0, max_digits=7, validators=[django.core.validators.MinValueValidator(0)])),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("author", models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="progress_updates", to=settings.AUTH_USER_MODEL)),
                ("task", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="progress_updates", to="tasks.task")),
            ],
            options={
                "ordering": ["created_at", "id"],
            },
        ),
    ]
