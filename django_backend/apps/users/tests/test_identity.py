from datetime import datetime, timedelta, timezone

import jwt
from django.test import TestCase
from rest_framework_simplejwt.settings import api_settings

from apps.common.events import EventPublisherFactory
from apps.common.exceptions import (
    DuplicateIdentity,
    ExpiredCredential,
    InvalidCredentials,
    MalformedCredential,
    PermissionDenied,
    ValidationFailed,
)
from apps.common.kafka.config import USER_ACTIVITIES_TOPIC
from apps.common.tests.factories import PASSWORD, make_user
from apps.users import services
from apps.users.models import User, UserRole


def _token(user_id, token_type="access", expires_in=timedelta(minutes=5)):
    payload = {
        api_settings.TOKEN_TYPE_CLAIM: token_type,
        api_settings.USER_ID_CLAIM: str(user_id),
        "exp": datetime.now(timezone.utc) + expires_in,
        "jti": "test",
    }
    return jwt.encode(payload, api_settings.SIGNING_KEY, algorithm=api_settings.ALGORITHM)


class RegisterTest(TestCase):
    """Test cases for registration"""

    def setUp(self):
        EventPublisherFactory.reset_publisher()

    def test_first_user_becomes_admin(self):
        user, session = services.register("First", "first@example.com", PASSWORD, role=UserRole.MEMBER)
        self.assertEqual(user.role, UserRole.ADMIN)
        self.assertEqual(session.user_id, user.pk)
        self.assertEqual(services.resolve_session(session.access), user)

    def test_later_users_get_requested_role(self):
        make_user(UserRole.ADMIN)
        user, _ = services.register("Lead", "lead@example.com", PASSWORD, role=UserRole.TEAM_LEADER)
        self.assertEqual(user.role, UserRole.TEAM_LEADER)
        other, _ = services.register("Plain", "plain@example.com", PASSWORD)
        self.assertEqual(other.role, UserRole.MEMBER)

    def test_duplicate_email_differing_in_case(self):
        services.register("A", "dup@example.com", PASSWORD)
        with self.assertRaises(DuplicateIdentity):
            services.register("B", "DUP@Example.com", PASSWORD)
        self.assertEqual(User.objects.count(), 1)

    def test_short_password_is_rejected(self):
        with self.assertRaises(ValidationFailed) as ctx:
            services.register("A", "a@example.com", "abc")
        self.assertEqual(ctx.exception.details[0]["field"], "password")

    def test_registration_event_is_published_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True):
            user, _ = services.register("A", "a@example.com", PASSWORD)
        events = EventPublisherFactory.get_publisher().get_events(USER_ACTIVITIES_TOPIC)
        self.assertEqual(events[-1]["event_type"], "user_registered")
        self.assertEqual(events[-1]["user_id"], user.pk)


class AuthenticateTest(TestCase):
    """Test cases for credential verification"""

    def setUp(self):
        self.user = make_user(email="jane@example.com")

    def test_valid_credentials(self):
        user, session = services.authenticate("JANE@example.com", PASSWORD)
        self.assertEqual(user, self.user)
        self.assertTrue(session.access)
        user.refresh_from_db()
        self.assertIsNotNone(user.last_login)

    def test_unknown_email_and_wrong_password_look_the_same(self):
        with self.assertRaises(InvalidCredentials) as unknown:
            services.authenticate("nobody@example.com", PASSWORD)
        with self.assertRaises(InvalidCredentials) as wrong:
            services.authenticate("jane@example.com", "not-the-password")
        self.assertEqual(unknown.exception.message, wrong.exception.message)

    def test_inactive_user_is_refused(self):
        self.user.is_active = False
        self.user.save()
        with self.assertRaises(InvalidCredentials) as ctx:
            services.authenticate("jane@example.com", PASSWORD)
        self.assertIn("deactivated", ctx.exception.message)


class SessionTest(TestCase):
    """Test cases for session tokens"""

    def setUp(self):
        self.user = make_user()
        self.session = services.issue_session(self.user)

    def test_resolve_session(self):
        self.assertEqual(services.resolve_session(self.session.access), self.user)

    def test_signing_key_is_long_enough_for_hs256(self):
        self.assertEqual(api_settings.ALGORITHM, "HS256")
        self.assertGreaterEqual(len(api_settings.SIGNING_KEY.encode()), 32)

    def test_expired_token(self):
        token = _token(self.user.pk, expires_in=timedelta(minutes=-1))
        with self.assertRaises(ExpiredCredential):
            services.resolve_session(token)

    def test_malformed_token(self):
        with self.assertRaises(MalformedCredential):
            services.resolve_session("not-a-token")

    def test_refresh_token_is_not_an_access_token(self):
        with self.assertRaises(MalformedCredential):
            services.resolve_session(self.session.refresh)

    def test_session_of_deactivated_user(self):
        self.user.is_active = False
        self.user.save()
        with self.assertRaises(InvalidCredentials):
            services.resolve_session(self.session.access)

    def test_refresh_rotates_and_revokes(self):
        rotated = services.refresh_session(self.session.refresh)
        self.assertNotEqual(rotated.refresh, self.session.refresh)
        self.assertEqual(services.resolve_session(rotated.access), self.user)
        with self.assertRaises(MalformedCredential):
            services.refresh_session(self.session.refresh)

    def test_logout_revokes_refresh_token(self):
        services.logout(self.user, self.session.refresh)
        with self.assertRaises(MalformedCredential):
            services.refresh_session(self.session.refresh)

    def test_cannot_logout_someone_else(self):
        with self.assertRaises(PermissionDenied):
            services.logout(make_user(), self.session.refresh)


class ChangePasswordTest(TestCase):
    """Test cases for password changes"""

    def setUp(self):
        self.user = make_user()

    def test_change_password(self):
        services.change_password(self.user, PASSWORD, "brand-new-pass")
        user, _ = services.authenticate(self.user.email, "brand-new-pass")
        self.assertEqual(user, self.user)

    def test_wrong_current_password(self):
        with self.assertRaises(InvalidCredentials):
            services.change_password(self.user, "wrong-pass", "brand-new-pass")
