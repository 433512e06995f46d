"""Configuration for testing environment"""

import os

SETTINGS = {
    # Testing flags
    "testing": True,
    "TESTING": True,
    "DEBUG": False,
    "SUPABASE_URL": os.getenv("SUPABASE_URL", "http://localhost:54321"),
    "SUPABASE_ANON_KEY": os.getenv("SUPABASE_ANON_KEY", "test-anon-key"),
    "SUPABASE_SERVICE_ROLE_KEY": os.getenv(
        "SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key"
    ),
    "DELETION_ADMIN_SECRET": os.getenv("DELETION_ADMIN_SECRET", "test-admin-secret"),
    "SITE_URL": "http://localhost:5173",
    "DELETION_BATCH_INTERVAL": None,
    # Rate limiting configuration for testing
    "RATE_LIMITING": {
        "ENABLED": os.getenv("RATE_LIMITING_ENABLED", "false").lower() == "true",
        # Use in-memory storage for testing instead of Redis
        "STORAGE_URI": os.getenv("RATE_LIMIT_STORAGE_URI", "memory://"),
        "DEFAULT_LIMITS": ["100 per hour", "10 per minute"],
        "AUTH_LIMITS": ["2 per minute", "5 per hour"],  # Very low limits for testing
        "PASSWORD_RESET_LIMITS": ["1 per minute"],
        "API_LIMITS": ["50 per hour", "5 per minute"],
        "USER_CREATION_LIMITS": ["2 per minute"],
    },
    # Redis configuration for testing - fallback to localhost
    "CELERY_BROKER_URL": os.getenv("REDIS_URL", "redis://localhost:6379/2"),
    "CELERY_RESULT_BACKEND": os.getenv("REDIS_URL", "redis://localhost:6379/2"),
    "broker_url": os.getenv("REDIS_URL", "redis://localhost:6379/2"),
    "result_backend": os.getenv("REDIS_URL", "redis://localhost:6379/2"),
}
