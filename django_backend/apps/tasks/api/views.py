from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.common.authorization import scope_tasks
from apps.tasks import services
from .filters import TaskFilter
from .serializers import (
    CommentCreateSerializer,
    CommentSerializer,
    MyTasksQuerySerializer,
    ProgressSerializer,
    ProgressUpdateSerializer,
    TaskCreateSerializer,
    TaskDetailSerializer,
    TaskSerializer,
    TaskUpdateSerializer,
)


class TaskViewSet(viewsets.GenericViewSet):
    serializer_class = TaskSerializer
    filterset_class = TaskFilter
    search_fields = ["title", "description"]
    ordering_fields = ["title", "status", "priority", "start_date", "due_date", "created_at", "updated_at"]
    ordering = ["-created_at"]

    def get_queryset(self):
        return scope_tasks(self.request.user, services.task_queryset())

    def _detail(self, task, status_code=status.HTTP_200_OK):
        task = services.task_queryset().prefetch_related(
            "comments__author", "progress_updates__author"
        ).get(pk=task.pk)
        return Response(TaskDetailSerializer(task).data, status=status_code)

    def list(self, request):
        queryset = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(queryset)
        serializer = self.get_serializer(page, many=True)
        return self.get_paginated_response(serializer.data)

    def retrieve(self, request, pk=None):
        return self._detail(services.get_task(request.user, pk))

    def create(self, request):
        serializer = TaskCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        task = services.create_task(request.user, **serializer.validated_data)
        return self._detail(task, status.HTTP_201_CREATED)

    def update(self, request, pk=None):
        serializer = TaskUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        task = services.update_task(request.user, pk, serializer.validated_data)
        return self._detail(task)

    def partial_update(self, request, pk=None):
        return self.update(request, pk)

    def destroy(self, request, pk=None):
        services.delete_task(request.user, pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=False, methods=["get"], url_path="my-tasks")
    def my_tasks(self, request):
        """Tasks assigned to the caller, soonest due first."""
        query = MyTasksQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        queryset = services.my_tasks(request.user, query.validated_data.get("status"))
        page = self.paginate_queryset(queryset.order_by("due_date", "pk"))
        serializer = self.get_serializer(page, many=True)
        return self.get_paginated_response(serializer.data)

    @action(detail=False, methods=["get"])
    def stats(self, request):
        return Response(services.task_stats(request.user))

    @action(detail=True, methods=["get", "put"])
    def progress(self, request, pk=None):
        if request.method == "GET":
            updates = services.list_progress(request.user, pk)
            return Response(ProgressUpdateSerializer(updates, many=True).data)

        serializer = ProgressSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        task = services.record_progress(request.user, pk, **serializer.validated_data)
        return self._detail(task)

    @action(detail=True, methods=["get", "post"])
    def comments(self, request, pk=None):
        if request.method == "GET":
            comments = services.list_comments(request.user, pk)
            return Response(CommentSerializer(comments, many=True).data)

        serializer = CommentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        comment = services.add_comment(request.user, pk, serializer.validated_data["body"])
        return Response(CommentSerializer(comment).data, status=status.HTTP_201_CREATED)
