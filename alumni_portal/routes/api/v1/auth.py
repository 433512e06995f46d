"""Sign-in, registration and session routes for the alumni portal."""

import logging

from flask import jsonify, request

from alumni_portal import limiter
from alumni_portal.auth import (
    gate_required,
    get_gate,
    is_page_load,
    session_required,
)
from alumni_portal.config import SETTINGS
from alumni_portal.errors import (
    BackendUnavailable,
    Conflict,
    EmailNotConfirmed,
    Error,
    InvalidCredentials,
    NotAuthenticated,
)
from alumni_portal.routes.api.v1 import endpoints, error, error_from
from alumni_portal.services.auth_gate import RESET_PASSWORD_PATH
from alumni_portal.utils.rate_limiting import (
    RateLimitConfig,
    get_rate_limit_key_for_auth,
    get_subject_or_ip,
    is_rate_limiting_disabled,
)
from alumni_portal.validators import (
    validate_email,
    validate_login_request,
    validate_password,
    validate_registration_request,
)

logger = logging.getLogger()

CALLBACK_PATH = "/auth/callback"
RESET_LINK_SENT = (
    "If an account exists for this email, a password reset link has been sent."
)


def _site_url(path):
    return SETTINGS.get("SITE_URL", "").rstrip("/") + path


@endpoints.route("/auth/login", strict_slashes=False, methods=["POST"])
@limiter.limit(
    lambda: ";".join(RateLimitConfig.get_auth_limits()) or "5 per minute",
    key_func=get_rate_limit_key_for_auth,
    exempt_when=is_rate_limiting_disabled,
)
@validate_login_request
def login(form):
    """
    Sign in with email and password.

    The session store emits SIGNED_IN, which reconciles the profile and may
    raise the quick questionnaire. The response carries the resulting gate
    snapshot.
    """
    logger.info("[ROUTER]: Signing in")
    email, password = form
    try:
        snapshot = get_gate().login(email, password)
    except (InvalidCredentials, EmailNotConfirmed) as e:
        logger.info("[ROUTER]: " + e.message)
        return error(status=401, detail=e.message)
    except Error as e:
        logger.error("[ROUTER]: " + e.message)
        return error_from(e)
    return jsonify(data=snapshot.serialize()), 200


@endpoints.route("/auth/register", strict_slashes=False, methods=["POST"])
@limiter.limit(
    lambda: ";".join(RateLimitConfig.get_user_creation_limits()) or "10 per hour",
    key_func=get_rate_limit_key_for_auth,
    exempt_when=is_rate_limiting_disabled,
)
@validate_registration_request
def register(form):
    """
    Create an alumni account.

    When the project requires e-mail confirmation no session is started and
    the user is sent back to the login view, which shows the one-shot
    "registered" banner.
    """
    logger.info("[ROUTER]: Registering user")
    email, password, metadata = form
    try:
        user, session = get_gate().register(
            email, password, metadata, redirect_to=_site_url(CALLBACK_PATH)
        )
    except Conflict as e:
        logger.info("[ROUTER]: " + e.message)
        return error(status=409, detail=e.message)
    except Error as e:
        logger.error("[ROUTER]: " + e.message)
        return error_from(e)
    return jsonify(
        data={
            "user": user.serialize(),
            "confirmation_required": session is None,
            "gate": get_gate().snapshot().serialize(),
        }
    ), 200


@endpoints.route("/auth/logout", strict_slashes=False, methods=["POST"])
def logout():
    logger.info("[ROUTER]: Signing out")
    try:
        snapshot = get_gate().logout()
    except Error as e:
        logger.error("[ROUTER]: " + e.message)
        return error_from(e)
    return jsonify(data=snapshot.serialize()), 200


@endpoints.route("/auth/session", strict_slashes=False, methods=["GET"])
def get_session():
    """Current gate snapshot of the calling tab; ``?mount=1`` on page load."""
    return jsonify(data=get_gate(mount=is_page_load()).snapshot().serialize()), 200


@endpoints.route("/auth/me", strict_slashes=False, methods=["GET"])
@gate_required
def get_me():
    return jsonify(data=get_gate().user.serialize()), 200


@endpoints.route("/auth/refresh", strict_slashes=False, methods=["POST"])
@gate_required
def refresh_me():
    """Re-read the profile; never raises the questionnaire prompt."""
    snapshot = get_gate().refresh_user()
    return jsonify(data=snapshot.serialize()), 200


@endpoints.route("/auth/forgot-password", strict_slashes=False, methods=["POST"])
@limiter.limit(
    lambda: ";".join(RateLimitConfig.get_password_reset_limits()) or "3 per hour",
    key_func=get_rate_limit_key_for_auth,
    exempt_when=is_rate_limiting_disabled,
)
def forgot_password():
    """Send the recovery e-mail. The answer does not reveal unknown accounts."""
    body = request.get_json(silent=True) or {}
    try:
        email = validate_email(body.get("email"))
    except ValueError as e:
        return error(status=422, detail=str(e), errors={"email": str(e)})
    logger.info("[ROUTER]: Requesting password reset")
    try:
        get_gate().request_password_reset(
            email, redirect_to=_site_url(RESET_PASSWORD_PATH)
        )
    except BackendUnavailable as e:
        logger.error("[ROUTER]: " + e.message)
        return error(status=503, detail=e.message)
    return jsonify(data={"message": RESET_LINK_SENT}), 200


@endpoints.route("/auth/reset-password", strict_slashes=False, methods=["POST"])
@limiter.limit(
    lambda: ";".join(RateLimitConfig.get_password_reset_limits()) or "3 per hour",
    key_func=get_subject_or_ip,
    exempt_when=is_rate_limiting_disabled,
)
@session_required
def reset_password():
    """Set a new password from the recovery link, or for any signed-in user."""
    body = request.get_json(silent=True) or {}
    try:
        validate_password(body.get("password"), body.get("confirm_password") or "")
    except ValueError as e:
        key = "confirm_password" if "match" in str(e) else "password"
        return error(status=422, detail=str(e), errors={key: str(e)})
    logger.info("[ROUTER]: Resetting password")
    try:
        snapshot = get_gate().complete_password_reset(body["password"])
    except Error as e:
        logger.error("[ROUTER]: " + e.message)
        return error_from(e)
    return jsonify(
        data={
            "message": "Your password has been successfully reset.",
            "gate": snapshot.serialize(),
        }
    ), 200


@endpoints.route("/auth/callback", strict_slashes=False, methods=["POST"])
def auth_callback():
    """Finish an e-mailed confirmation or recovery link."""
    body = request.get_json(silent=True) or {}
    token_hash = body.get("token_hash")
    kind = body.get("type") or "signup"
    logger.info(f"[ROUTER]: Completing {kind} link")
    try:
        snapshot = get_gate().verify_email(token_hash=token_hash, kind=kind)
    except NotAuthenticated as e:
        return error(status=401, detail=e.message)
    except Error as e:
        logger.error("[ROUTER]: " + e.message)
        return error_from(e)
    return jsonify(data=snapshot.serialize()), 200


@endpoints.route("/auth/questionnaire/dismiss", strict_slashes=False, methods=["POST"])
@gate_required
def dismiss_questionnaire():
    snapshot = get_gate().dismiss_questionnaire()
    return jsonify(data=snapshot.serialize()), 200
