"""
Identity store: registration, credential verification and session tokens.

Sessions are a pair of simplejwt tokens. Access tokens are validated with
PyJWT directly so that an expired signature and a malformed token surface
as different errors; refresh tokens go through simplejwt so rotation and
logout hit the blacklist.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

import jwt
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone as dj_timezone
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.settings import api_settings
from rest_framework_simplejwt.tokens import RefreshToken

from apps.common.exceptions import (
    DuplicateIdentity,
    ExpiredCredential,
    InvalidCredentials,
    MalformedCredential,
    PermissionDenied,
    ValidationFailed,
)
from apps.users.models import User, UserRole
from apps.users.producer import (
    publish_password_changed,
    publish_user_login,
    publish_user_login_failed,
    publish_user_logout,
    publish_user_registered,
)

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("phone", "department", "position", "avatar")


@dataclass(frozen=True)
class SessionToken:
    access: str
    refresh: str
    user_id: int
    expires_at: datetime

    def to_dict(self):
        return {
            "access": self.access,
            "refresh": self.refresh,
            "user_id": self.user_id,
            "expires_at": self.expires_at.isoformat(),
        }


def issue_session(user):
    refresh = RefreshToken.for_user(user)
    access = refresh.access_token
    return SessionToken(
        access=str(access),
        refresh=str(refresh),
        user_id=user.pk,
        expires_at=datetime.fromtimestamp(access["exp"], tz=timezone.utc),
    )


def _check_password_rules(password, user=None):
    try:
        validate_password(password, user)
    except DjangoValidationError as exc:
        raise ValidationFailed(
            details=[{"field": "password", "message": message} for message in exc.messages]
        )


def _stamp_last_login(user):
    user.last_login = dj_timezone.now()
    User.objects.filter(pk=user.pk).update(last_login=user.last_login)


def register(name, email, password, role=None, **profile):
    """
    Create an identity and open a session for it.

    The first identity ever registered becomes an admin whatever role was
    requested.
    """
    email = User.objects.normalize_email(email)
    _check_password_rules(password)
    try:
        with transaction.atomic():
            if User.objects.filter(email__iexact=email).exists():
                raise DuplicateIdentity()
            first = not User.objects.exists()
            user = User.objects.create_user(
                email=email,
                password=password,
                name=name.strip(),
                role=UserRole.ADMIN if first else (role or UserRole.MEMBER),
                **{k: v for k, v in profile.items() if k in PROFILE_FIELDS},
            )
            _stamp_last_login(user)
            publish_user_registered(user.pk, user.email, user.role)
    except IntegrityError:
        raise DuplicateIdentity()

    logger.info(f"Registered user {user.pk} with role {user.role}")
    return user, issue_session(user)


def authenticate(email, password):
    """
    Verify credentials and open a session.

    Unknown email and wrong password fail with the same message.
    """
    try:
        user = User.objects.get_by_email(email)
    except User.DoesNotExist:
        logger.warning("Login failed: unknown email")
        publish_user_login_failed(email, "unknown email")
        raise InvalidCredentials()

    if not user.check_password(password):
        logger.warning(f"Login failed for user {user.pk}: wrong password")
        publish_user_login_failed(email, "wrong password")
        raise InvalidCredentials()

    if not user.is_active:
        logger.warning(f"Login refused for inactive user {user.pk}")
        publish_user_login_failed(email, "inactive account")
        raise InvalidCredentials("Account is deactivated. Please contact administrator.")

    _stamp_last_login(user)
    publish_user_login(user.pk, user.email)
    logger.info(f"User {user.pk} logged in")
    return user, issue_session(user)


def change_password(user, current_password, new_password):
    if not user.check_password(current_password):
        raise InvalidCredentials("Current password is incorrect")
    _check_password_rules(new_password, user)

    with transaction.atomic():
        locked = User.objects.select_for_update().get(pk=user.pk)
        locked.set_password(new_password)
        locked.save(update_fields=["password", "updated_at"])
        publish_password_changed(user.pk)

    logger.info(f"User {user.pk} changed password")
    return locked


def _decode(token, expected_type):
    try:
        payload = jwt.decode(
            token,
            api_settings.SIGNING_KEY,
            algorithms=[api_settings.ALGORITHM],
        )
    except jwt.ExpiredSignatureError:
        raise ExpiredCredential()
    except jwt.InvalidTokenError:
        raise MalformedCredential()

    if payload.get(api_settings.TOKEN_TYPE_CLAIM) != expected_type:
        raise MalformedCredential()
    try:
        payload["user_id"] = int(payload[api_settings.USER_ID_CLAIM])
    except (KeyError, TypeError, ValueError):
        raise MalformedCredential()
    return payload


def _active_user(user_id):
    user = User.objects.filter(pk=user_id, is_active=True).first()
    if user is None:
        raise InvalidCredentials("User not found or inactive")
    return user


def resolve_session(token):
    """Return the active user an access token was issued to."""
    payload = _decode(token, "access")
    return _active_user(payload["user_id"])


def _load_refresh(token):
    payload = _decode(token, "refresh")
    try:
        refresh = RefreshToken(token)
    except TokenError:
        # Signature and expiry already passed, so the token was revoked.
        raise MalformedCredential("Session has been revoked")
    return payload, refresh


def refresh_session(token):
    """Rotate a refresh token: the old one is blacklisted, a new pair issued."""
    payload, refresh = _load_refresh(token)
    user = _active_user(payload["user_id"])
    refresh.blacklist()
    logger.debug(f"Rotated session for user {user.pk}")
    return issue_session(user)


def logout(user, token):
    payload, refresh = _load_refresh(token)
    if payload["user_id"] != user.pk:
        raise PermissionDenied("Cannot end another user's session")
    refresh.blacklist()
    publish_user_logout(user.pk, user.email)
    logger.info(f"User {user.pk} logged out")
