"""The ALUMNI PORTAL API MODULE"""

from datetime import datetime, timezone
import logging
import os
import sys

from flask import Flask, got_request_exception, jsonify, request
from flask_compress import Compress
from flask_cors import CORS
from flask_limiter import Limiter
import rollbar
import rollbar.contrib.flask

from alumni_portal.backend import (
    supabase_backend_factory,
    supabase_service_backend_factory,
)
from alumni_portal.celery import make_celery
from alumni_portal.config import SETTINGS
from alumni_portal.utils.rate_limiting import (
    RateLimitConfig,
    get_subject_or_ip,
    is_rate_limiting_disabled,
    rate_limit_error_handler,
)

# Flask App
app = Flask(__name__)

# The browser keeps its tab id in X-Tab-Id; it must be allowed cross-origin
cors_origins = (
    SETTINGS.get("environment", {}).get("CORS_ORIGINS")
    or "http://localhost:5173,http://localhost:3000"
).split(",")
CORS(
    app,
    origins=cors_origins,
    supports_credentials=True,
    allow_headers=["Content-Type", "X-Tab-Id", "x-admin-secret"],
    methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
)

app.config["COMPRESS_MIMETYPES"] = ["application/json", "text/plain"]
app.config["COMPRESS_LEVEL"] = 6
app.config["COMPRESS_MIN_SIZE"] = 500

Compress(app)

logger = logging.getLogger()
log_level = SETTINGS.get("logging", {}).get("level", "INFO")
logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

# Suppress verbose HTTP client logs
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("hpack").setLevel(logging.WARNING)

# Ensure all unhandled exceptions are logged, and reported to rollbar
formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
handler = logging.StreamHandler(stream=sys.stdout)
handler.setLevel(logging.INFO)
handler.setFormatter(formatter)
logger.addHandler(handler)

rollbar.init(
    SETTINGS.get("environment", {}).get("ROLLBAR_SERVER_TOKEN"),
    os.getenv("ENVIRONMENT"),
)
with app.app_context():
    got_request_exception.connect(rollbar.contrib.flask.report_exception, app)


def validate_cors_origins():
    """Validate CORS origins to prevent security misconfigurations."""
    environment = os.getenv("ENVIRONMENT", "dev")
    logger.info(f"CORS origins for {environment}: {cors_origins}")

    if environment == "prod":
        for origin in cors_origins:
            origin_lower = origin.lower()
            if "localhost" in origin_lower or "127.0.0.1" in origin_lower:
                error_msg = (
                    f"Security Error: Localhost origin '{origin}' "
                    f"not allowed in production"
                )
                logger.error(error_msg)
                raise ValueError(error_msg)
        if not SETTINGS.get("environment", {}).get("CORS_ORIGINS"):
            error_msg = (
                "Security Error: CORS_ORIGINS must be explicitly "
                "set in production environment"
            )
            logger.error(error_msg)
            raise ValueError(error_msg)


try:
    validate_cors_origins()
except ValueError as e:
    if os.getenv("ENVIRONMENT") == "prod":
        logger.critical(f"CORS validation failed: {e}")
        raise
    logger.warning(f"CORS validation warning: {e}")


@app.after_request
def set_security_headers(response):
    """Add security headers to all responses."""
    environment = os.getenv("ENVIRONMENT", "dev")

    response.headers["Content-Security-Policy"] = (
        "default-src 'none'; frame-ancestors 'none'"
    )
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    response.headers["Permissions-Policy"] = (
        "geolocation=(), microphone=(), camera=(), "
        "payment=(), usb=(), magnetometer=(), gyroscope=()"
    )
    if environment == "prod" or request.is_secure:
        response.headers["Strict-Transport-Security"] = (
            "max-age=31536000; includeSubDomains; preload"
        )
    response.headers["Cross-Origin-Opener-Policy"] = "same-origin"
    response.headers["Cross-Origin-Resource-Policy"] = "same-origin"
    return response


# Signed session cookie holding the client-state ledger
app.config["SECRET_KEY"] = SETTINGS.get("SECRET_KEY") or os.getenv("SECRET_KEY")
if not app.config["SECRET_KEY"]:
    logger.warning("SECRET_KEY is not set; sessions cannot be stored")
app.config["PERMANENT_SESSION_LIFETIME"] = SETTINGS.get("SESSION_LIFETIME")
app.config["SESSION_COOKIE_HTTPONLY"] = True
app.config["SESSION_COOKIE_SAMESITE"] = "Lax"
app.config["SESSION_COOKIE_SECURE"] = SETTINGS.get("SESSION_COOKIE_SECURE", False)

app.config["RATE_LIMITING"] = SETTINGS.get("RATE_LIMITING", {})
app.config["broker_url"] = SETTINGS.get("CELERY_BROKER_URL")
app.config["result_backend"] = SETTINGS.get("CELERY_RESULT_BACKEND")
app.config["MAX_CONTENT_LENGTH"] = 1 * 1024 * 1024

# Stores used by the request gates and the deletion batch; tests swap these
app.config["BACKEND_FACTORY"] = supabase_backend_factory
app.config["SERVICE_BACKEND_FACTORY"] = supabase_service_backend_factory

# Celery
celery = make_celery(app)

# Rate Limiting (must be after celery)
limiter = Limiter(
    app=app,
    key_func=get_subject_or_ip,
    storage_uri=RateLimitConfig.get_storage_uri(),
    default_limits=RateLimitConfig.get_default_limits(),
    default_limits_exempt_when=is_rate_limiting_disabled,
    headers_enabled=True,
    enabled=RateLimitConfig.is_enabled(),
    on_breach=rate_limit_error_handler,
)


# Import tasks to register them with Celery
from alumni_portal import tasks  # noqa: E402,F401
from alumni_portal.routes.api.v1 import endpoints, error  # noqa: E402

# After the routes, which import the gate helpers while the blueprint loads
from alumni_portal.auth import close_gate  # noqa: E402, isort:skip

# Blueprint Flask Routing
app.register_blueprint(endpoints, url_prefix="/api/v1")
app.teardown_appcontext(close_gate)

total_routes = len(list(app.url_map.iter_rules()))
logger.info(f"Registered Flask app with {total_routes} total routes")


@app.route("/api-health", methods=["GET"])
def health_check():
    """Simple health check endpoint with deployment information"""
    return jsonify(
        {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": "1.0",
            "backend_configured": bool(
                SETTINGS.get("SUPABASE_URL") and SETTINGS.get("SUPABASE_ANON_KEY")
            ),
            "deployment": {
                "commit_sha": os.getenv("GIT_COMMIT_SHA", "unknown"),
                "branch": os.getenv("GIT_BRANCH", "unknown"),
                "environment": os.getenv("DEPLOYMENT_ENVIRONMENT", "unknown"),
            },
        }
    ), 200


@app.route("/ping", methods=["GET"])
def ping():
    """Simple ping endpoint without backend dependency"""
    return jsonify(
        {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "message": "pong",
        }
    ), 200


@app.errorhandler(403)
def forbidden(e):
    return error(status=403, detail="Forbidden")


@app.errorhandler(404)
def page_not_found(e):
    return error(status=404, detail="Not Found")


@app.errorhandler(405)
def method_not_allowed(e):
    return error(status=405, detail="Method Not Allowed")


@app.errorhandler(429)
def ratelimit_handler(e):
    return rate_limit_error_handler(e)


@app.errorhandler(500)
def internal_server_error(e):
    return error(status=500, detail="Internal Server Error")
