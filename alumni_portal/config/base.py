from datetime import timedelta
import logging
import os

logger = logging.getLogger(__name__)


def _limits(env_var, default):
    return [s.strip() for s in (os.getenv(env_var) or default).split(",")]


def _redis_url():
    return os.getenv("REDIS_URL") or (
        "redis://"
        + (os.getenv("REDIS_PORT_6379_TCP_ADDR") or "localhost")
        + ":"
        + (os.getenv("REDIS_PORT_6379_TCP_PORT") or "6379")
    )


SETTINGS = {
    "logging": {"level": os.getenv("LOG_LEVEL", "INFO")},
    "service": {"port": 3000},
    "environment": {
        "ROLLBAR_SERVER_TOKEN": os.getenv("ROLLBAR_SERVER_TOKEN"),
        "CORS_ORIGINS": os.getenv("CORS_ORIGINS"),
    },
    # Hosted auth + data API
    "SUPABASE_URL": os.getenv("SUPABASE_URL"),
    "SUPABASE_ANON_KEY": os.getenv("SUPABASE_ANON_KEY"),
    "SUPABASE_SERVICE_ROLE_KEY": os.getenv("SUPABASE_SERVICE_ROLE_KEY"),
    # Shared secret expected in the x-admin-secret header of the deletion batch
    "DELETION_ADMIN_SECRET": os.getenv("DELETION_ADMIN_SECRET"),
    # Public URL of the portal, used for e-mail confirmation and recovery links
    "SITE_URL": os.getenv("SITE_URL", "http://localhost:5173"),
    "SECRET_KEY": os.getenv("SECRET_KEY"),
    "SESSION_LIFETIME": timedelta(days=30),
    "SESSION_COOKIE_SECURE": os.getenv("SESSION_COOKIE_SECURE", "false").lower()
    == "true",
    # Tab-scoped ledger entries are kept for this many tabs per browser
    "MAX_TRACKED_TABS": int(os.getenv("MAX_TRACKED_TABS") or 8),
    "ALLOWED_PROFILE_ROLES": ["alumni", "admin"],
    "ADMIN_ROLES": ["admin"],
    "ANNOUNCEMENTS_LIMIT": 200,
    "ACTIVITY_LOG_LIMIT": 50,
    # Seconds between scheduled deletion batches; None disables the beat entry
    "DELETION_BATCH_INTERVAL": (
        int(os.getenv("DELETION_BATCH_INTERVAL"))
        if os.getenv("DELETION_BATCH_INTERVAL")
        else None
    ),
    "CELERY_BROKER_URL": _redis_url(),
    "CELERY_RESULT_BACKEND": _redis_url(),
    # Celery also expects lowercase versions
    "broker_url": _redis_url(),
    "result_backend": _redis_url(),
    # Rate limiting configuration
    "RATE_LIMITING": {
        "ENABLED": os.getenv("RATE_LIMITING_ENABLED", "true").lower() == "true",
        "STORAGE_URI": os.getenv("RATE_LIMIT_STORAGE_URI") or os.getenv("REDIS_URL"),
        # DEFAULT_LIMITS: Applied automatically to ALL endpoints (global fallback)
        "DEFAULT_LIMITS": _limits("DEFAULT_LIMITS", "1000 per hour,100 per minute"),
        "API_LIMITS": _limits("API_LIMITS", "100 per hour,20 per minute"),
        "AUTH_LIMITS": _limits("AUTH_LIMITS", "30 per minute,300 per hour"),
        "PASSWORD_RESET_LIMITS": _limits(
            "PASSWORD_RESET_LIMITS", "10 per hour,3 per minute"
        ),
        "USER_CREATION_LIMITS": _limits("USER_CREATION_LIMITS", "20 per hour"),
    },
}

if not os.getenv("SUPABASE_URL") or not os.getenv("SUPABASE_ANON_KEY"):
    logger.warning(
        "SUPABASE_URL or SUPABASE_ANON_KEY is not set. Requests that reach the "
        "auth or data API will fail until both are configured."
    )
