import django_filters

from apps.projects.models import Project, ProjectPriority, ProjectStatus


class ProjectFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=ProjectStatus.choices)
    priority = django_filters.ChoiceFilter(choices=ProjectPriority.choices)
    team = django_filters.NumberFilter(field_name="team_id")

    class Meta:
        model = Project
        fields = ["status", "priority", "team"]
