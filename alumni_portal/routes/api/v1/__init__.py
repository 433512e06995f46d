from flask import Blueprint, jsonify

from alumni_portal.errors import (
    AuthError,
    BackendUnavailable,
    Conflict,
    NotFound,
    PermissionDenied,
    ValidationError,
)

# GENERIC Error


def error(status=400, detail="Bad Request", errors=None):
    body = {"status": status, "detail": detail}
    if errors:
        body["errors"] = errors
    return jsonify(body), status


STATUS_FOR_ERROR = (
    (ValidationError, 422),
    (AuthError, 401),
    (PermissionDenied, 403),
    (NotFound, 404),
    (Conflict, 409),
    (BackendUnavailable, 503),
)


def error_from(exc):
    """JSON error response for a portal ``Error``"""
    for error_class, status in STATUS_FOR_ERROR:
        if isinstance(exc, error_class):
            return error(
                status=status, detail=exc.message, errors=getattr(exc, "errors", None)
            )
    return error(status=500, detail=exc.message)


endpoints = Blueprint("endpoints", __name__)
import alumni_portal.routes.api.v1.admin  # noqa: E402, F401
import alumni_portal.routes.api.v1.announcements  # noqa: E402, F401
import alumni_portal.routes.api.v1.auth  # noqa: E402, F401
import alumni_portal.routes.api.v1.deletion_requests  # noqa: E402, F401
import alumni_portal.routes.api.v1.jobs  # noqa: E402, F401
import alumni_portal.routes.api.v1.profile  # noqa: E402, F401
import alumni_portal.routes.api.v1.views  # noqa: E402, F401
