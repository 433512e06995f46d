"""Admin triage of deletion requests and alumni verification."""

import logging

from flask import jsonify, request

from alumni_portal.auth import admin_required, get_backend, get_gate
from alumni_portal.errors import Conflict, DeletionRequestNotFound, Error
from alumni_portal.models import DeletionStatus
from alumni_portal.routes.api.v1 import endpoints, error, error_from
from alumni_portal.services import (
    ActivityLogger,
    DeletionRequestService,
    ProfileService,
)
from alumni_portal.validators import validate_decision_request

logger = logging.getLogger()


def _deletion_service():
    store = get_backend().profile_store
    return DeletionRequestService(store, ActivityLogger(store))


@endpoints.route("/admin/deletion-requests", strict_slashes=False, methods=["GET"])
@admin_required
def list_deletion_requests():
    """All deletion requests, newest first; ``?status=`` filters by status."""
    status = request.args.get("status") or None
    if status and status not in [s.value for s in DeletionStatus]:
        return error(status=400, detail=f"Unknown status {status}")
    try:
        requests = _deletion_service().list_all(status)
    except Error as e:
        logger.error("[ROUTER]: " + e.message)
        return error_from(e)
    return jsonify(data=[r.serialize() for r in requests]), 200


@endpoints.route(
    "/admin/deletion-requests/<request_id>/decision",
    strict_slashes=False,
    methods=["POST"],
)
@admin_required
@validate_decision_request
def decide_deletion_request(request_id, form):
    status, note = form
    admin_id = get_gate().session.subject_id
    logger.info(f"[ROUTER]: Deciding deletion request {request_id}")
    try:
        requests = _deletion_service().decide(admin_id, request_id, status, note)
    except DeletionRequestNotFound as e:
        logger.error("[ROUTER]: " + e.message)
        return error(status=404, detail=e.message)
    except Conflict as e:
        logger.error("[ROUTER]: " + e.message)
        return error(status=409, detail=e.message)
    except Error as e:
        logger.error("[ROUTER]: " + e.message)
        return error_from(e)
    return jsonify(data=[r.serialize() for r in requests]), 200


@endpoints.route(
    "/admin/profiles/<user_id>/verification", strict_slashes=False, methods=["POST"]
)
@admin_required
def set_verification(user_id):
    body = request.get_json(silent=True) or {}
    verified = body.get("verified")
    if not isinstance(verified, bool):
        return error(status=422, detail="verified must be true or false")
    admin_id = get_gate().session.subject_id
    store = get_backend().profile_store
    try:
        profile = ProfileService(store, ActivityLogger(store)).set_verification(
            admin_id, user_id, verified
        )
    except Error as e:
        logger.error("[ROUTER]: " + e.message)
        return error_from(e)
    return jsonify(data=profile.serialize()), 200
