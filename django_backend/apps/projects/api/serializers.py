from rest_framework import serializers

from apps.projects.models import (
    Project,
    ProjectMembership,
    ProjectPriority,
    ProjectRole,
    ProjectStatus,
)
from apps.users.api.serializers import TeamSummarySerializer, UserSummarySerializer


class ProjectMemberSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)

    class Meta:
        model = ProjectMembership
        fields = ["user", "role", "assigned_at"]


class ProjectSerializer(serializers.ModelSerializer):
    team = TeamSummarySerializer(read_only=True)
    manager = UserSummarySerializer(read_only=True)
    members = ProjectMemberSerializer(source="memberships", many=True, read_only=True)
    created_by = UserSummarySerializer(read_only=True)

    class Meta:
        model = Project
        fields = [
            "id",
            "name",
            "description",
            "team",
            "manager",
            "members",
            "status",
            "priority",
            "start_date",
            "end_date",
            "actual_end_date",
            "budget_allocated",
            "budget_spent",
            "tags",
            "duration",
            "progress_percentage",
            "budget_utilization",
            "is_overdue",
            "created_by",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ProjectDetailSerializer(ProjectSerializer):
    """Adds the per-status task summary passed in through the context."""

    task_summary = serializers.SerializerMethodField()

    class Meta(ProjectSerializer.Meta):
        fields = ProjectSerializer.Meta.fields + ["task_summary"]
        read_only_fields = fields

    def get_task_summary(self, obj):
        return self.context.get("task_summary", [])


class MemberInputSerializer(serializers.Serializer):
    user_id = serializers.IntegerField()
    role = serializers.ChoiceField(choices=ProjectRole.choices, default=ProjectRole.DEVELOPER)


class ProjectCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100)
    description = serializers.CharField(max_length=1000, required=False, allow_blank=True)
    team_id = serializers.IntegerField()
    manager_id = serializers.IntegerField()
    members = MemberInputSerializer(many=True, required=False, default=list)
    status = serializers.ChoiceField(choices=ProjectStatus.choices, required=False)
    priority = serializers.ChoiceField(choices=ProjectPriority.choices, required=False)
    start_date = serializers.DateTimeField()
    end_date = serializers.DateTimeField()
    budget_allocated = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=0, required=False, default=0
    )
    budget_spent = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=0, required=False, default=0
    )
    tags = serializers.ListField(
        child=serializers.CharField(max_length=50), required=False, default=list
    )

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Project name is required.")
        return value

    def validate_members(self, value):
        ids = [entry["user_id"] for entry in value]
        if len(ids) != len(set(ids)):
            raise serializers.ValidationError("Duplicate user IDs are not allowed.")
        return value


class ProjectUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100, required=False)
    description = serializers.CharField(max_length=1000, required=False, allow_blank=True)
    manager_id = serializers.IntegerField(required=False)
    status = serializers.ChoiceField(choices=ProjectStatus.choices, required=False)
    priority = serializers.ChoiceField(choices=ProjectPriority.choices, required=False)
    start_date = serializers.DateTimeField(required=False)
    end_date = serializers.DateTimeField(required=False)
    budget_allocated = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=0, required=False
    )
    budget_spent = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=0, required=False
    )
    tags = serializers.ListField(child=serializers.CharField(max_length=50), required=False)

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Project name cannot be blank.")
        return value
