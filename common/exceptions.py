"""
Application errors and the DRF exception handler that renders them.

Services raise one of the typed errors below; views never catch them. The
handler converts every exception into the envelope

    {"success": false, "error": {"message": "...", "type": "..."}}

and logs 4xx as warnings and 5xx as errors with request context.
"""
import logging

from django.conf import settings
from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class AppError(exceptions.APIException):
    """Base class for domain errors raised by the service layer."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Request could not be processed."
    error_type = "error"

    def __init__(self, message=None):
        super().__init__(detail=message or self.default_detail)
        self.message = str(self.detail)


class InvalidRequest(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid request."
    error_type = "validation"


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "You do not have permission to perform this action"
    error_type = "authorization"


class FraudBlocked(Forbidden):
    default_detail = "Order blocked due to suspicious activity"
    error_type = "fraud"

    def __init__(self, message=None, flags=None):
        super().__init__(message)
        self.flags = list(flags or [])


class ResourceNotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Resource not found"
    error_type = "not_found"


class Conflict(AppError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Request conflicts with the current state of the resource"
    error_type = "conflict"


_DRF_TYPES = (
    (exceptions.ValidationError, "validation"),
    (exceptions.ParseError, "validation"),
    (exceptions.NotAuthenticated, "authentication"),
    (exceptions.AuthenticationFailed, "authentication"),
    (exceptions.PermissionDenied, "authorization"),
    (exceptions.NotFound, "not_found"),
    (exceptions.MethodNotAllowed, "method_not_allowed"),
    (exceptions.Throttled, "throttled"),
)


def _error_type(exc) -> str:
    if isinstance(exc, AppError):
        return exc.error_type
    for klass, name in _DRF_TYPES:
        if isinstance(exc, klass):
            return name
    return "error"


def _flatten_detail(detail) -> str:
    """Collapse DRF's nested error detail into a single readable message."""
    if isinstance(detail, dict):
        parts = []
        for field, value in detail.items():
            text = _flatten_detail(value)
            parts.append(text if field in ("detail", "non_field_errors") else f"{field}: {text}")
        return "; ".join(parts)
    if isinstance(detail, (list, tuple)):
        return " ".join(_flatten_detail(v) for v in detail)
    return str(detail)


def _request_context(context) -> dict:
    request = context.get("request") if context else None
    if request is None:
        return {}
    user = getattr(request, "user", None)
    body = ""
    try:
        body = str(request.data)[:500]
    except Exception:  # unreadable body must not mask the original error
        body = "<unreadable>"
    return {
        "method": request.method,
        "path": request.get_full_path(),
        "actor_id": str(user.pk) if user is not None and user.is_authenticated else None,
        "body": body,
    }


def custom_exception_handler(exc, context):
    """
    Render every error as the failure envelope.

    Known API errors keep their status code; anything else becomes a 500 whose
    message only carries the exception text when DEBUG is on.
    """
    if isinstance(exc, Http404):
        exc = exceptions.NotFound(str(exc) or ResourceNotFound.default_detail)
    elif isinstance(exc, DjangoPermissionDenied):
        exc = exceptions.PermissionDenied()

    response = exception_handler(exc, context)
    ctx = _request_context(context)

    if response is None:
        logger.error("Unhandled error %s %s: %s", ctx.get("method"), ctx.get("path"), exc,
                     exc_info=exc, extra={"request_context": ctx})
        message = str(exc) if settings.DEBUG else "Internal server error"
        return Response(
            {"success": False, "error": {"message": message, "type": "internal"}},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    message = _flatten_detail(exc.detail)
    error = {"message": message, "type": _error_type(exc)}
    if isinstance(exc, exceptions.ValidationError) and isinstance(exc.detail, dict):
        error["fields"] = exc.detail
    if isinstance(exc, FraudBlocked) and exc.flags:
        error["flags"] = exc.flags

    if response.status_code >= 500:
        logger.error("%s %s -> %s %s", ctx.get("method"), ctx.get("path"), response.status_code, message,
                     extra={"request_context": ctx})
    else:
        logger.warning("%s %s -> %s %s (actor=%s)", ctx.get("method"), ctx.get("path"),
                       response.status_code, message, ctx.get("actor_id"))

    response.data = {"success": False, "error": error}
    return response
