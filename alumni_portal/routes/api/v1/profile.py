"""Profile, questionnaire and activity routes for the signed-in alumnus."""

import logging

from flask import jsonify

from alumni_portal import limiter
from alumni_portal.auth import gate_required, get_backend, get_gate, get_ledger
from alumni_portal.config import SETTINGS
from alumni_portal.errors import Error, ProfileNotFound
from alumni_portal.routes.api.v1 import endpoints, error, error_from
from alumni_portal.services import (
    ActivityLogger,
    ProfileService,
    QuestionnaireService,
)
from alumni_portal.utils.rate_limiting import (
    RateLimitConfig,
    get_subject_or_ip,
    is_rate_limiting_disabled,
)
from alumni_portal.validators import (
    validate_profile_request,
    validate_questionnaire_request,
)

logger = logging.getLogger()


@endpoints.route("/profile", strict_slashes=False, methods=["GET"])
@gate_required
def get_profile():
    """The user view derived from the session and the profile row."""
    return jsonify(data=get_gate().user.serialize()), 200


@endpoints.route("/profile", strict_slashes=False, methods=["PATCH", "PUT"])
@limiter.limit(
    lambda: ";".join(RateLimitConfig.get_api_limits()) or "500 per hour",
    key_func=get_subject_or_ip,
    exempt_when=is_rate_limiting_disabled,
)
@gate_required
@validate_profile_request
def update_profile(form):
    """
    Save the profile form.

    The change diff goes to the activity log; the view is then refreshed
    from the saved row.
    """
    gate = get_gate()
    subject_id = gate.session.subject_id
    logger.info(f"[ROUTER]: Updating profile {subject_id}")
    service = ProfileService(
        get_backend().profile_store, ActivityLogger(get_backend().profile_store)
    )
    try:
        service.update_profile(subject_id, form)
    except ProfileNotFound as e:
        logger.error("[ROUTER]: " + e.message)
        return error(status=404, detail=e.message)
    except Error as e:
        logger.error("[ROUTER]: " + e.message)
        return error_from(e)
    snapshot = gate.refresh_user()
    return jsonify(data=snapshot.serialize()), 200


@endpoints.route("/profile/questionnaire", strict_slashes=False, methods=["POST"])
@limiter.limit(
    lambda: ";".join(RateLimitConfig.get_api_limits()) or "500 per hour",
    key_func=get_subject_or_ip,
    exempt_when=is_rate_limiting_disabled,
)
@gate_required
@validate_questionnaire_request
def submit_questionnaire(form):
    gate = get_gate()
    subject_id = gate.session.subject_id
    logger.info(f"[ROUTER]: Saving questionnaire of {subject_id}")
    service = QuestionnaireService(get_backend().profile_store, get_ledger())
    try:
        service.submit(subject_id, form)
    except Error as e:
        logger.error("[ROUTER]: " + e.message)
        return error_from(e)
    snapshot = gate.complete_questionnaire()
    return jsonify(data=snapshot.serialize()), 200


@endpoints.route("/profile/activity", strict_slashes=False, methods=["GET"])
@gate_required
def get_activity():
    """The most recent activity of the signed-in user, newest first."""
    subject_id = get_gate().session.subject_id
    try:
        entries = ActivityLogger(get_backend().profile_store).recent(
            subject_id, limit=SETTINGS.get("ACTIVITY_LOG_LIMIT", 50)
        )
    except Error as e:
        logger.error("[ROUTER]: " + e.message)
        return error_from(e)
    return jsonify(data=[entry.serialize() for entry in entries]), 200
