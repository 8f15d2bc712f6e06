from datetime import timedelta

from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from apps.common.tests.factories import make_project, make_task, make_team, make_user
from apps.tasks.models import Task, TaskStatus
from apps.users.models import UserRole


class TaskAPITest(APITestCase):
    """Test cases for the task endpoints"""

    def setUp(self):
        self.client = APIClient()
        self.admin = make_user(UserRole.ADMIN)
        self.leader = make_user(UserRole.TEAM_LEADER)
        self.dev = make_user()
        self.tester = make_user()
        self.bystander = make_user()
        self.team = make_team(self.leader, [self.dev, self.tester, self.bystander])
        self.project = make_project(self.team, self.leader, [self.dev, self.tester])
        self.task = make_task(self.project, self.dev, title="Existing")

    def _payload(self, **overrides):
        start = timezone.now()
        payload = {
            "title": "Fix login",
            "project_id": self.project.pk,
            "assigned_to_id": self.dev.pk,
            "type": "bug",
            "priority": "high",
            "start_date": start.isoformat(),
            "due_date": (start + timedelta(days=2)).isoformat(),
        }
        payload.update(overrides)
        return payload

    def test_create_task(self):
        self.client.force_authenticate(self.leader)
        response = self.client.post(reverse("tasks-list"), self._payload(
            dependencies=[{"task_id": self.task.pk, "kind": "depends_on"}],
        ), format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["type"], "bug")
        self.assertEqual(response.data["status"], TaskStatus.TODO)
        self.assertEqual(response.data["progress_percentage"], 0)
        self.assertEqual(response.data["assigned_to"]["id"], self.dev.pk)
        self.assertEqual(response.data["dependencies"][0]["task_id"], self.task.pk)
        self.assertEqual(response.data["comments"], [])

    def test_member_cannot_create(self):
        self.client.force_authenticate(self.dev)
        response = self.client.post(reverse("tasks-list"), self._payload(), format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_assignee_outside_project(self):
        self.client.force_authenticate(self.leader)
        response = self.client.post(reverse("tasks-list"), self._payload(assigned_to_id=self.bystander.pk), format="json")
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["error"]["kind"], "Conflict")

    def test_invalid_payload(self):
        self.client.force_authenticate(self.leader)
        response = self.client.post(reverse("tasks-list"), self._payload(type="epic", title="  "), format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        fields = {item["field"] for item in response.data["error"]["details"]}
        self.assertEqual(fields, {"type", "title"})

    def test_member_lists_only_assigned_tasks(self):
        make_task(self.project, self.tester)
        self.client.force_authenticate(self.dev)
        response = self.client.get(reverse("tasks-list"))
        self.assertEqual([row["id"] for row in response.data["results"]], [self.task.pk])

        self.client.force_authenticate(self.leader)
        self.assertEqual(self.client.get(reverse("tasks-list")).data["count"], 2)

    def test_filters(self):
        make_task(self.project, self.tester, status=TaskStatus.REVIEW)
        make_task(self.project, self.dev, start=timezone.now() - timedelta(days=5), days=1)
        self.client.force_authenticate(self.admin)
        url = reverse("tasks-list")
        self.assertEqual(self.client.get(url, {"status": "review"}).data["count"], 1)
        self.assertEqual(self.client.get(url, {"assigned_to": self.dev.pk}).data["count"], 2)
        self.assertEqual(self.client.get(url, {"overdue": "true"}).data["count"], 1)
        self.assertEqual(self.client.get(url, {"project": self.project.pk, "search": "exist"}).data["count"], 1)

    def test_retrieve_requires_access(self):
        self.client.force_authenticate(self.tester)
        response = self.client.get(reverse("tasks-detail", args=[self.task.pk]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        self.client.force_authenticate(self.bystander)
        response = self.client.get(reverse("tasks-detail", args=[self.task.pk]))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_update_task(self):
        self.client.force_authenticate(self.dev)
        response = self.client.patch(
            reverse("tasks-detail", args=[self.task.pk]),
            {"status": "completed"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNotNone(response.data["completed_date"])
        self.assertEqual(response.data["progress_percentage"], 100)

    def test_record_progress(self):
        self.client.force_authenticate(self.tester)
        url = reverse("tasks-progress", args=[self.task.pk])
        response = self.client.put(url, {"status": "in_progress", "hours_worked": "1.5", "comment": "started"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["actual_hours"], "1.50")
        self.assertEqual(len(response.data["progress_updates"]), 1)

        history = self.client.get(url)
        self.assertEqual(history.data[0]["comment"], "started")

    def test_negative_hours_rejected(self):
        self.client.force_authenticate(self.dev)
        response = self.client.put(
            reverse("tasks-progress", args=[self.task.pk]),
            {"status": "in_progress", "hours_worked": "-1"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_comments(self):
        self.client.force_authenticate(self.tester)
        url = reverse("tasks-comments", args=[self.task.pk])
        response = self.client.post(url, {"body": "Nice work"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["author"]["id"], self.tester.pk)
        self.assertEqual(self.client.get(url).data[0]["body"], "Nice work")

        self.client.force_authenticate(self.bystander)
        self.assertEqual(self.client.post(url, {"body": "Hi"}, format="json").status_code, 403)

    def test_my_tasks(self):
        soon = make_task(self.project, self.dev, days=1)
        self.client.force_authenticate(self.dev)
        response = self.client.get(reverse("tasks-my-tasks"))
        self.assertEqual([row["id"] for row in response.data["results"]], [soon.pk, self.task.pk])
        self.assertEqual(self.client.get(reverse("tasks-my-tasks"), {"status": "done"}).status_code, 400)

    def test_delete_blocked_by_dependent(self):
        self.client.force_authenticate(self.leader)
        created = self.client.post(reverse("tasks-list"), self._payload(
            dependencies=[{"task_id": self.task.pk}],
        ), format="json")
        response = self.client.delete(reverse("tasks-detail", args=[self.task.pk]))
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

        Task.objects.filter(pk=created.data["id"]).update(status=TaskStatus.CANCELLED)
        response = self.client.delete(reverse("tasks-detail", args=[self.task.pk]))
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_stats(self):
        self.client.force_authenticate(self.dev)
        response = self.client.get(reverse("tasks-stats"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["overview"]["total_tasks"], 1)
