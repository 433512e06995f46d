"""Rate limiting helpers for the alumni portal API"""

import hashlib
import logging

from flask import current_app, g, jsonify, request
from flask_limiter.util import get_remote_address
import rollbar

from alumni_portal.config import SETTINGS

logger = logging.getLogger(__name__)


def _current_subject_id():
    gate = g.get("gate")
    if gate is not None and gate.session is not None:
        return gate.session.subject_id
    return None


def get_subject_or_ip():
    """
    Subject id for requests whose gate is already resolved, IP address
    otherwise.
    """
    subject_id = _current_subject_id()
    if subject_id:
        return f"user:{subject_id}"
    return f"ip:{get_remote_address()}"


def get_rate_limit_key_for_auth():
    """
    Key function for the credential endpoints.
    Uses email + IP so one address cannot be hammered from many clients
    without tying the counter to the raw address in storage.
    """
    payload = request.get_json(silent=True) or {}
    email = payload.get("email", "") if isinstance(payload, dict) else ""
    ip = get_remote_address()
    if email:
        email_hash = hashlib.sha256(email.strip().lower().encode()).hexdigest()[:16]
        return f"auth:{email_hash}:{ip}"
    return f"auth:anon:{ip}"


def create_rate_limit_response(retry_after=None):
    """
    Create a standardized rate limit exceeded response and report it
    """
    ip_address = get_remote_address()
    endpoint = request.path or request.endpoint
    user_id = _current_subject_id()

    try:
        rollbar_data = {
            "user_id": user_id,
            "ip_address": ip_address,
            "endpoint": endpoint,
            "user_agent": request.headers.get("User-Agent"),
            "method": request.method,
            "url": request.url,
            "retry_after": retry_after,
        }
        if user_id:
            message = f"Rate limit applied to user {user_id} on endpoint {endpoint}"
        else:
            message = f"Rate limit applied to IP {ip_address} on endpoint {endpoint}"

        rollbar.report_message(
            message=message, level="warning", extra_data=rollbar_data
        )
        logger.warning(f"Rate limit applied: {message}")
    except Exception as e:
        # Don't let Rollbar errors prevent the rate limit response
        logger.error(f"Failed to send rate limit notification to Rollbar: {e}")

    response_data = {
        "status": 429,
        "detail": "Rate limit exceeded. Please try again later.",
        "error_code": "RATE_LIMIT_EXCEEDED",
    }
    if retry_after:
        response_data["retry_after"] = retry_after

    response = jsonify(response_data)
    response.status_code = 429
    if retry_after:
        response.headers["Retry-After"] = str(retry_after)
    return response


class RateLimitConfig:
    """Helper class to centralize rate limit configuration."""

    @classmethod
    def _get_config(cls):
        """Get rate limiting config from Flask app config or fallback to SETTINGS"""
        try:
            return current_app.config.get("RATE_LIMITING", {})
        except RuntimeError:
            return SETTINGS.get("RATE_LIMITING", {})

    @classmethod
    def is_enabled(cls):
        return cls._get_config().get("ENABLED", True)

    @classmethod
    def get_storage_uri(cls):
        config = cls._get_config()
        return (
            config.get("STORAGE_URI")
            or SETTINGS.get("CELERY_BROKER_URL")
            or "memory://"
        )

    @classmethod
    def get_default_limits(cls):
        return cls._get_config().get("DEFAULT_LIMITS", ["1000 per hour"])

    @classmethod
    def get_auth_limits(cls):
        return cls._get_config().get("AUTH_LIMITS", ["5 per minute"])

    @classmethod
    def get_password_reset_limits(cls):
        return cls._get_config().get("PASSWORD_RESET_LIMITS", ["3 per hour"])

    @classmethod
    def get_api_limits(cls):
        return cls._get_config().get("API_LIMITS", ["500 per hour"])

    @classmethod
    def get_user_creation_limits(cls):
        return cls._get_config().get("USER_CREATION_LIMITS", ["10 per hour"])


def is_rate_limiting_disabled():
    """exempt_when hook: true when limits are switched off for this app"""
    if not RateLimitConfig.is_enabled():
        return True
    from alumni_portal import limiter

    return not getattr(limiter, "enabled", True)


def rate_limit_error_handler(error):
    """Custom error handler for rate limit exceeded"""
    retry_after = getattr(error, "retry_after", None)
    logger.info(f"Rate limit exceeded: {error}")
    return create_rate_limit_response(retry_after=retry_after)
