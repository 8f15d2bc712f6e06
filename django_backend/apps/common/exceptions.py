"""
Error kinds raised by the registries and rendered by the API.

Each error carries a machine-readable ``kind``, an HTTP-style status code,
a human message and optional ``details``. Only ``Transient`` is retryable.
"""
import logging

from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.db import DatabaseError
from django.http import Http404
from rest_framework import exceptions as drf_exceptions
from rest_framework import status
from rest_framework.response import Response

logger = logging.getLogger(__name__)


class DomainError(drf_exceptions.APIException):
    """Base class for every error the core raises deliberately."""

    kind = "Error"
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Request could not be processed"
    retryable = False

    def __init__(self, message=None, details=None):
        self.message = message or self.default_detail
        self.details = details
        super().__init__(detail=self.message)

    def to_dict(self):
        body = {
            "kind": self.kind,
            "message": self.message,
            "status": self.status_code,
            "retryable": self.retryable,
        }
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationFailed(DomainError):
    kind = "ValidationFailed"
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Validation failed"


class InvalidRange(ValidationFailed):
    kind = "InvalidRange"
    default_detail = "End date must be after start date"


class InvalidCredentials(DomainError):
    kind = "InvalidCredentials"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Invalid email or password"


class ExpiredCredential(DomainError):
    kind = "ExpiredCredential"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Session has expired"


class MalformedCredential(DomainError):
    kind = "MalformedCredential"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Session token is invalid"


class PermissionDenied(DomainError):
    kind = "PermissionDenied"
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "You do not have permission to perform this action"


class NotFound(DomainError):
    kind = "NotFound"
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class DuplicateIdentity(DomainError):
    kind = "DuplicateIdentity"
    status_code = status.HTTP_409_CONFLICT
    default_detail = "User with this email already exists"


class DuplicateName(DomainError):
    kind = "DuplicateName"
    status_code = status.HTTP_409_CONFLICT
    default_detail = "An entity with this name already exists"


class Conflict(DomainError):
    kind = "Conflict"
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Operation conflicts with the current state"


class AssignNewLeaderFirst(Conflict):
    kind = "AssignNewLeaderFirst"
    default_detail = "Cannot remove team leader. Assign a new leader first."


class AssignNewManagerFirst(Conflict):
    kind = "AssignNewManagerFirst"
    default_detail = "Cannot remove project manager. Assign a new manager first."


class RateLimited(DomainError):
    kind = "RateLimited"
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_detail = "Too many requests"
    retryable = True


class Transient(DomainError):
    kind = "Transient"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Temporary storage failure, please retry"
    retryable = True


def _field_details(detail, prefix=""):
    """Flatten a DRF error structure into ``[{field, message}]``."""
    items = []
    if isinstance(detail, dict):
        for key, value in detail.items():
            field = f"{prefix}.{key}" if prefix else str(key)
            if key == "non_field_errors":
                field = prefix or "non_field_errors"
            items.extend(_field_details(value, field))
    elif isinstance(detail, list):
        for index, value in enumerate(detail):
            if isinstance(value, (dict, list)):
                items.extend(_field_details(value, f"{prefix}.{index}" if prefix else str(index)))
            else:
                items.append({"field": prefix, "message": str(value)})
    else:
        items.append({"field": prefix, "message": str(detail)})
    return items


def translate_exception(exc):
    """Map framework and storage exceptions onto a ``DomainError``."""
    if isinstance(exc, DomainError):
        return exc
    if isinstance(exc, drf_exceptions.ValidationError):
        return ValidationFailed(details=_field_details(exc.detail))
    if isinstance(exc, (Http404, drf_exceptions.NotFound)):
        return NotFound(str(getattr(exc, "detail", "")) or None)
    if isinstance(exc, (drf_exceptions.NotAuthenticated, drf_exceptions.AuthenticationFailed)):
        return InvalidCredentials(str(exc.detail))
    if isinstance(exc, (drf_exceptions.PermissionDenied, DjangoPermissionDenied)):
        return PermissionDenied(str(getattr(exc, "detail", "")) or None)
    if isinstance(exc, drf_exceptions.Throttled):
        return RateLimited(str(exc.detail), details={"wait": exc.wait})
    if isinstance(exc, DatabaseError):
        return Transient()
    return None


def api_exception_handler(exc, context):
    """DRF exception handler rendering ``{"error": {...}}`` bodies."""
    # rest_framework.views loads the authentication classes, which import this module.
    from rest_framework.views import exception_handler

    error = translate_exception(exc)
    if error is None:
        response = exception_handler(exc, context)
        if response is not None:
            response.data = {
                "error": {
                    "kind": "Error",
                    "message": str(getattr(exc, "detail", exc)),
                    "status": response.status_code,
                    "retryable": False,
                }
            }
        return response

    if isinstance(error, Transient):
        logger.error(f"Transient failure handling request: {exc}", exc_info=exc)
    else:
        logger.debug(f"{error.kind}: {error.message}")

    headers = {}
    if isinstance(error, (InvalidCredentials, ExpiredCredential, MalformedCredential)):
        headers["WWW-Authenticate"] = 'Bearer realm="api"'
    if isinstance(exc, drf_exceptions.Throttled) and exc.wait is not None:
        headers["Retry-After"] = str(int(exc.wait))

    return Response({"error": error.to_dict()}, status=error.status_code, headers=headers)
