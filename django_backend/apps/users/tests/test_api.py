from datetime import timedelta

from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from apps.common.tests.factories import PASSWORD, make_team, make_user
from apps.users.models import UserRole
from apps.users.services import issue_session

from .test_identity import _token


class AuthenticationAPITest(APITestCase):
    """Test cases for the authentication endpoints"""

    def setUp(self):
        self.client = APIClient()

    def test_register(self):
        response = self.client.post(reverse("auth-register"), {
            "name": "Jane",
            "email": "jane@example.com",
            "password": PASSWORD,
        }, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["user"]["role"], UserRole.ADMIN)
        self.assertIn("access", response.data["tokens"])
        self.assertIn("access_token", response.cookies)

    def test_register_validation_error_body(self):
        response = self.client.post(reverse("auth-register"), {"email": "bad"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        error = response.data["error"]
        self.assertEqual(error["kind"], "ValidationFailed")
        fields = {item["field"] for item in error["details"]}
        self.assertTrue({"name", "email", "password"} <= fields)

    def test_register_cannot_claim_admin(self):
        make_user(UserRole.ADMIN)
        response = self.client.post(reverse("auth-register"), {
            "name": "Mallory",
            "email": "mallory@example.com",
            "password": PASSWORD,
            "role": "admin",
        }, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        fields = {item["field"] for item in response.data["error"]["details"]}
        self.assertIn("role", fields)

    def test_register_as_team_leader(self):
        make_user(UserRole.ADMIN)
        response = self.client.post(reverse("auth-register"), {
            "name": "Lee",
            "email": "lee@example.com",
            "password": PASSWORD,
            "role": "team_leader",
        }, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["user"]["role"], UserRole.TEAM_LEADER)

    def test_login_and_me(self):
        user = make_user(email="jane@example.com")
        response = self.client.post(reverse("auth-login"), {
            "email": "jane@example.com",
            "password": PASSWORD,
        }, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['tokens']['access']}")
        me = self.client.get(reverse("auth-me"))
        self.assertEqual(me.status_code, status.HTTP_200_OK)
        self.assertEqual(me.data["id"], user.pk)

    def test_login_failure(self):
        make_user(email="jane@example.com")
        response = self.client.post(reverse("auth-login"), {
            "email": "jane@example.com",
            "password": "wrong-pass",
        }, format="json")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data["error"]["kind"], "InvalidCredentials")
        self.assertFalse(response.data["error"]["retryable"])

    def test_me_requires_session(self):
        response = self.client.get(reverse("auth-me"))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_expired_token(self):
        user = make_user()
        token = _token(user.pk, expires_in=timedelta(seconds=-10))
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
        response = self.client.get(reverse("auth-me"))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data["error"]["kind"], "ExpiredCredential")

    def test_cookie_session(self):
        user = make_user()
        self.client.cookies["access_token"] = issue_session(user).access
        response = self.client.get(reverse("auth-me"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_refresh_and_logout(self):
        user = make_user()
        session = issue_session(user)
        response = self.client.post(reverse("auth-refresh"), {"refresh": session.refresh}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        rotated = response.data["tokens"]

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {rotated['access']}")
        response = self.client.post(reverse("auth-logout"), {"refresh": rotated["refresh"]}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        self.client.credentials()
        response = self.client.post(reverse("auth-refresh"), {"refresh": rotated["refresh"]}, format="json")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_change_password(self):
        user = make_user()
        self.client.force_authenticate(user)
        response = self.client.put(reverse("auth-change-password"), {
            "current_password": PASSWORD,
            "new_password": "another-pass-1",
        }, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        user.refresh_from_db()
        self.assertTrue(user.check_password("another-pass-1"))


class UserAPITest(APITestCase):
    """Test cases for the user management endpoints"""

    def setUp(self):
        self.client = APIClient()
        self.admin = make_user(UserRole.ADMIN)
        self.member = make_user()

    def test_member_cannot_list_users(self):
        self.client.force_authenticate(self.member)
        response = self.client.get(reverse("users-list"))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data["error"]["kind"], "PermissionDenied")

    def test_admin_lists_users_paginated(self):
        for _ in range(3):
            make_user()
        self.client.force_authenticate(self.admin)
        response = self.client.get(reverse("users-list"), {"limit": 2, "page": 2, "sort": "email", "order": "asc"})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["count"], 5)
        self.assertEqual(response.data["current_page"], 2)
        self.assertEqual(response.data["total_pages"], 3)
        self.assertTrue(response.data["has_next"])
        self.assertTrue(response.data["has_prev"])
        self.assertEqual(len(response.data["results"]), 2)

    def test_invalid_pagination_and_sort(self):
        self.client.force_authenticate(self.admin)
        self.assertEqual(self.client.get(reverse("users-list"), {"limit": 0}).status_code, 400)
        self.assertEqual(self.client.get(reverse("users-list"), {"limit": 101}).status_code, 400)
        self.assertEqual(self.client.get(reverse("users-list"), {"page": "x"}).status_code, 400)
        self.assertEqual(self.client.get(reverse("users-list"), {"sort": "password"}).status_code, 400)

    def test_filter_by_role(self):
        make_user(UserRole.TEAM_LEADER)
        self.client.force_authenticate(self.admin)
        response = self.client.get(reverse("users-list"), {"role": "team_leader"})
        self.assertEqual(response.data["count"], 1)

    def test_member_reads_self_only(self):
        self.client.force_authenticate(self.member)
        own = self.client.get(reverse("users-detail", args=[self.member.pk]))
        other = self.client.get(reverse("users-detail", args=[self.admin.pk]))
        self.assertEqual(own.status_code, status.HTTP_200_OK)
        self.assertEqual(other.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_creates_user(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post(reverse("users-list"), {
            "name": "Created",
            "email": "created@example.com",
            "password": PASSWORD,
            "role": "team_leader",
        }, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["created_by"]["id"], self.admin.pk)

    def test_duplicate_email(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post(reverse("users-list"), {
            "name": "Dup",
            "email": self.member.email.upper(),
            "password": PASSWORD,
        }, format="json")
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["error"]["kind"], "DuplicateIdentity")

    def test_promote_and_demote(self):
        self.client.force_authenticate(self.admin)
        response = self.client.put(reverse("users-promote", args=[self.member.pk]))
        self.assertEqual(response.data["role"], UserRole.TEAM_LEADER)

        make_team(self.member)
        response = self.client.put(reverse("users-demote", args=[self.member.pk]))
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertIn("teams_led", response.data["error"]["details"])

    def test_delete_user(self):
        self.client.force_authenticate(self.admin)
        response = self.client.delete(reverse("users-detail", args=[self.member.pk]))
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        response = self.client.delete(reverse("users-detail", args=[self.admin.pk]))
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_stats(self):
        self.client.force_authenticate(self.admin)
        response = self.client.get(reverse("users-stats"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["overview"]["total_users"], 2)


class TeamAPITest(APITestCase):
    """Test cases for the team endpoints"""

    def setUp(self):
        self.client = APIClient()
        self.admin = make_user(UserRole.ADMIN)
        self.leader = make_user(UserRole.TEAM_LEADER)
        self.member = make_user()

    def test_create_team(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post(reverse("teams-list"), {
            "name": "Core",
            "leader_id": self.leader.pk,
            "member_ids": [self.member.pk],
        }, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["member_count"], 2)
        self.assertEqual(response.data["leader"]["id"], self.leader.pk)

    def test_member_sees_own_teams(self):
        team = make_team(self.leader, [self.member])
        make_team(make_user(UserRole.TEAM_LEADER))
        self.client.force_authenticate(self.member)
        response = self.client.get(reverse("teams-list"))
        self.assertEqual([row["id"] for row in response.data["results"]], [team.pk])

    def test_member_management(self):
        team = make_team(self.leader)
        self.client.force_authenticate(self.leader)
        response = self.client.post(reverse("teams-add-member", args=[team.pk]), {"user_id": self.member.pk}, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        response = self.client.delete(reverse("teams-remove-member", args=[team.pk, self.leader.pk]))
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["error"]["kind"], "AssignNewLeaderFirst")

        response = self.client.delete(reverse("teams-remove-member", args=[team.pk, self.member.pk]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["member_count"], 1)

    def test_change_leader(self):
        team = make_team(self.leader)
        new_leader = make_user(UserRole.TEAM_LEADER)
        self.client.force_authenticate(self.admin)
        response = self.client.put(reverse("teams-leader", args=[team.pk]), {"leader_id": new_leader.pk}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["leader"]["id"], new_leader.pk)

    def test_unknown_team(self):
        self.client.force_authenticate(self.admin)
        response = self.client.get(reverse("teams-detail", args=[999999]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data["error"]["kind"], "NotFound")
