"""Account deletion requests of the signed-in user."""

import logging

from flask import jsonify, request

from alumni_portal import limiter
from alumni_portal.auth import get_backend, get_gate, session_required
from alumni_portal.errors import DeletionRequestConflict, Error
from alumni_portal.routes.api.v1 import endpoints, error, error_from
from alumni_portal.services import ActivityLogger, DeletionRequestService
from alumni_portal.utils.rate_limiting import (
    RateLimitConfig,
    get_subject_or_ip,
    is_rate_limiting_disabled,
)
from alumni_portal.validators import validate_deletion_reason

logger = logging.getLogger()


def _service():
    store = get_backend().profile_store
    return DeletionRequestService(store, ActivityLogger(store))


@endpoints.route("/deletion-requests", strict_slashes=False, methods=["GET"])
@session_required
def list_my_deletion_requests():
    subject_id = get_gate().session.subject_id
    try:
        requests = _service().list_mine(subject_id)
    except Error as e:
        logger.error("[ROUTER]: " + e.message)
        return error_from(e)
    return jsonify(data=[r.serialize() for r in requests]), 200


@endpoints.route("/deletion-requests", strict_slashes=False, methods=["POST"])
@limiter.limit(
    lambda: ";".join(RateLimitConfig.get_api_limits()) or "500 per hour",
    key_func=get_subject_or_ip,
    exempt_when=is_rate_limiting_disabled,
)
@session_required
def create_deletion_request():
    """
    Ask for the account to be deleted.

    Available to blocked accounts as well, so someone who is not an alumnus
    can still have their data removed.
    """
    subject_id = get_gate().session.subject_id
    body = request.get_json(silent=True) or {}
    try:
        reason = validate_deletion_reason(body.get("reason"))
    except ValueError as e:
        return error(status=422, detail=str(e), errors={"reason": str(e)})
    logger.info(f"[ROUTER]: Deletion requested by {subject_id}")
    try:
        deletion_request = _service().submit(subject_id, reason or None)
    except DeletionRequestConflict as e:
        logger.info("[ROUTER]: " + e.message)
        return error(status=409, detail=e.message)
    except Error as e:
        logger.error("[ROUTER]: " + e.message)
        return error_from(e)
    return jsonify(data=deletion_request.serialize()), 200
