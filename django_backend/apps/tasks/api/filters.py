import django_filters
from django.utils import timezone

from apps.tasks.models import OPEN_TASK_STATUSES, Task, TaskPriority, TaskStatus, TaskType


class TaskFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=TaskStatus.choices)
    priority = django_filters.ChoiceFilter(choices=TaskPriority.choices)
    type = django_filters.ChoiceFilter(field_name="task_type", choices=TaskType.choices)
    project = django_filters.NumberFilter(field_name="project_id")
    assigned_to = django_filters.NumberFilter(field_name="assigned_to_id")
    overdue = django_filters.BooleanFilter(method="filter_overdue")

    class Meta:
        model = Task
        fields = ["status", "priority", "type", "project", "assigned_to", "overdue"]

    def filter_overdue(self, queryset, name, value):
        overdue = {"due_date__lt": timezone.now(), "status__in": OPEN_TASK_STATUSES}
        if value:
            return queryset.filter(**overdue)
        return queryset.exclude(**overdue)

