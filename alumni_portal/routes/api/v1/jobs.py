"""Out-of-band jobs triggered by a scheduler or an operator."""

import hmac
import logging

from flask import jsonify, request

from alumni_portal.config import SETTINGS
from alumni_portal.errors import Error
from alumni_portal.routes.api.v1 import endpoints, error
from alumni_portal.tasks.deletion_processing import run_deletion_batch

logger = logging.getLogger()

ADMIN_SECRET_HEADER = "x-admin-secret"


@endpoints.route(
    "/jobs/process-deletion-requests", strict_slashes=False, methods=["POST"]
)
def process_deletion_requests():
    """
    Delete the accounts of approved, unprocessed deletion requests.

    Requires the shared secret in the ``x-admin-secret`` header.
    """
    secret = SETTINGS.get("DELETION_ADMIN_SECRET")
    if not secret:
        logger.error("[ROUTER]: DELETION_ADMIN_SECRET is not configured")
        return error(
            status=500, detail="Function misconfigured: missing DELETION_ADMIN_SECRET"
        )
    provided = request.headers.get(ADMIN_SECRET_HEADER, "")
    if not hmac.compare_digest(provided.encode(), secret.encode()):
        logger.warning("[ROUTER]: Rejected deletion batch with a bad secret")
        return error(status=401, detail="Unauthorized")

    logger.info("[ROUTER]: Running deletion batch")
    try:
        result = run_deletion_batch()
    except Error as e:
        logger.error("[ROUTER]: " + e.message)
        return error(status=500, detail=e.message)
    return jsonify(result), 200
