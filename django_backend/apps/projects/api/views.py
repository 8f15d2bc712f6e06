from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.common.authorization import scope_projects
from apps.projects import services
from .filters import ProjectFilter
from .permissions import IsTeamLeaderOrAdmin
from .serializers import (
    MemberInputSerializer,
    ProjectCreateSerializer,
    ProjectDetailSerializer,
    ProjectSerializer,
    ProjectUpdateSerializer,
)


class ProjectViewSet(viewsets.GenericViewSet):
    serializer_class = ProjectSerializer
    filterset_class = ProjectFilter
    search_fields = ["name", "description", "tags"]
    ordering_fields = ["name", "status", "priority", "start_date", "end_date", "created_at", "updated_at"]
    ordering = ["-created_at"]

    def get_queryset(self):
        return scope_projects(self.request.user, services.project_queryset())

    def get_permissions(self):
        if self.action in ["create", "stats"]:
            return [permissions.IsAuthenticated(), IsTeamLeaderOrAdmin()]
        return super().get_permissions()

    def list(self, request):
        queryset = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(queryset)
        serializer = self.get_serializer(page, many=True)
        return self.get_paginated_response(serializer.data)

    def retrieve(self, request, pk=None):
        project = services.get_project(request.user, pk)
        serializer = ProjectDetailSerializer(
            project, context={"task_summary": services.task_summary(project)}
        )
        return Response(serializer.data)

    def create(self, request):
        serializer = ProjectCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        project = services.create_project(request.user, **serializer.validated_data)
        return Response(ProjectSerializer(project).data, status=status.HTTP_201_CREATED)

    def update(self, request, pk=None):
        serializer = ProjectUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        project = services.update_project(request.user, pk, serializer.validated_data)
        return Response(ProjectSerializer(project).data)

    def partial_update(self, request, pk=None):
        return self.update(request, pk)

    def destroy(self, request, pk=None):
        services.delete_project(request.user, pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=False, methods=["get"])
    def stats(self, request):
        return Response(services.project_stats(request.user))

    @action(detail=True, methods=["post"], url_path="members")
    def add_member(self, request, pk=None):
        serializer = MemberInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        project = services.add_member(request.user, pk, **serializer.validated_data)
        return Response(ProjectSerializer(project).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["delete"], url_path=r"members/(?P<user_id>\d+)")
    def remove_member(self, request, pk=None, user_id=None):
        project = services.remove_member(request.user, pk, user_id)
        return Response(ProjectSerializer(project).data)
