import logging

from flask import jsonify

from alumni_portal.auth import gate_required, get_backend, get_ledger
from alumni_portal.config import SETTINGS
from alumni_portal.errors import Error
from alumni_portal.routes.api.v1 import endpoints, error_from
from alumni_portal.services import AnnouncementService

logger = logging.getLogger()


def _service():
    return AnnouncementService(
        get_backend().profile_store,
        get_ledger(),
        limit=SETTINGS.get("ANNOUNCEMENTS_LIMIT", 200),
    )


@endpoints.route("/announcements", strict_slashes=False, methods=["GET"])
@gate_required
def list_announcements():
    service = _service()
    try:
        announcements = service.list_published()
    except Error as e:
        logger.error("[ROUTER]: " + e.message)
        return error_from(e)
    return jsonify(
        data=[a.serialize() for a in announcements],
        unseen=service.unseen_count(announcements),
    ), 200


@endpoints.route("/announcements/seen", strict_slashes=False, methods=["POST"])
@gate_required
def mark_announcements_seen():
    seen_at = _service().mark_seen()
    return jsonify(data={"seen_at": seen_at.isoformat()}), 200
