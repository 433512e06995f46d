import os

if os.getenv("ENVIRONMENT") == "prod":
    SETTINGS = {
        "logging": {"level": "INFO"},
        "SESSION_COOKIE_SECURE": True,
        "DELETION_BATCH_INTERVAL": int(os.getenv("DELETION_BATCH_INTERVAL") or 3600),
    }
else:
    SETTINGS = {}
