from rest_framework import serializers

from apps.tasks.models import (
    Comment,
    DependencyKind,
    ProgressUpdate,
    Task,
    TaskDependency,
    TaskPriority,
    TaskStatus,
    TaskType,
)
from apps.users.api.serializers import UserSummarySerializer


class ProjectRefSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    name = serializers.CharField()


class DependencySerializer(serializers.ModelSerializer):
    task_id = serializers.IntegerField(source="target_id")
    title = serializers.CharField(source="target.title")
    status = serializers.CharField(source="target.status")

    class Meta:
        model = TaskDependency
        fields = ["task_id", "title", "status", "kind"]


class CommentSerializer(serializers.ModelSerializer):
    author = UserSummarySerializer(read_only=True)

    class Meta:
        model = Comment
        fields = ["id", "author", "body", "created_at"]
        read_only_fields = fields


class ProgressUpdateSerializer(serializers.ModelSerializer):
    author = UserSummarySerializer(read_only=True)

    class Meta:
        model = ProgressUpdate
        fields = ["id", "author", "status", "comment", "hours_worked", "created_at"]
        read_only_fields = fields


class TaskSerializer(serializers.ModelSerializer):
    type = serializers.CharField(source="task_type", read_only=True)
    project = ProjectRefSerializer(read_only=True)
    assigned_to = UserSummarySerializer(read_only=True)
    created_by = UserSummarySerializer(read_only=True)
    dependencies = DependencySerializer(many=True, read_only=True)

    class Meta:
        model = Task
        fields = [
            "id",
            "title",
            "description",
            "project",
            "assigned_to",
            "created_by",
            "status",
            "priority",
            "type",
            "estimated_hours",
            "actual_hours",
            "start_date",
            "due_date",
            "completed_date",
            "tags",
            "dependencies",
            "progress_percentage",
            "duration",
            "time_remaining",
            "is_overdue",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class TaskDetailSerializer(TaskSerializer):
    comments = CommentSerializer(many=True, read_only=True)
    progress_updates = ProgressUpdateSerializer(many=True, read_only=True)

    class Meta(TaskSerializer.Meta):
        fields = TaskSerializer.Meta.fields + ["comments", "progress_updates"]
        read_only_fields = fields


class DependencyInputSerializer(serializers.Serializer):
    task_id = serializers.IntegerField()
    kind = serializers.ChoiceField(choices=DependencyKind.choices, default=DependencyKind.DEPENDS_ON)


def _unique_dependencies(value):
    ids = [entry["task_id"] for entry in value]
    if len(ids) != len(set(ids)):
        raise serializers.ValidationError("Duplicate dependency tasks are not allowed.")
    return value


class TaskCreateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=200)
    description = serializers.CharField(max_length=2000, required=False, allow_blank=True)
    project_id = serializers.IntegerField()
    assigned_to_id = serializers.IntegerField()
    priority = serializers.ChoiceField(choices=TaskPriority.choices, required=False)
    type = serializers.ChoiceField(choices=TaskType.choices, required=False, source="task_type")
    estimated_hours = serializers.DecimalField(
        max_digits=7, decimal_places=2, min_value=0, required=False, default=0
    )
    start_date = serializers.DateTimeField()
    due_date = serializers.DateTimeField()
    tags = serializers.ListField(
        child=serializers.CharField(max_length=50), required=False, default=list
    )
    dependencies = DependencyInputSerializer(many=True, required=False, default=list)

    def validate_title(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Task title is required.")
        return value

    def validate_dependencies(self, value):
        return _unique_dependencies(value)


class TaskUpdateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=200, required=False)
    description = serializers.CharField(max_length=2000, required=False, allow_blank=True)
    assigned_to_id = serializers.IntegerField(required=False)
    status = serializers.ChoiceField(choices=TaskStatus.choices, required=False)
    priority = serializers.ChoiceField(choices=TaskPriority.choices, required=False)
    type = serializers.ChoiceField(choices=TaskType.choices, required=False, source="task_type")
    estimated_hours = serializers.DecimalField(
        max_digits=7, decimal_places=2, min_value=0, required=False
    )
    start_date = serializers.DateTimeField(required=False)
    due_date = serializers.DateTimeField(required=False)
    tags = serializers.ListField(child=serializers.CharField(max_length=50), required=False)
    dependencies = DependencyInputSerializer(many=True, required=False)

    def validate_title(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Task title cannot be blank.")
        return value

    def validate_dependencies(self, value):
        return _unique_dependencies(value)


class ProgressSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=TaskStatus.choices)
    comment = serializers.CharField(max_length=1000, required=False, allow_blank=True, default="")
    hours_worked = serializers.DecimalField(
        max_digits=7, decimal_places=2, min_value=0, required=False, default=0
    )


class CommentCreateSerializer(serializers.Serializer):
    body = serializers.CharField(max_length=1000)

    def validate_body(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Comment cannot be empty.")
        return value


class MyTasksQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=TaskStatus.choices, required=False)
