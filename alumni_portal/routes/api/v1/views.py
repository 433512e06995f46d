"""What the single-page client should render for a path."""

import logging

from flask import jsonify, request

from alumni_portal.auth import get_gate, get_ledger, is_page_load
from alumni_portal.dispatch import View, resolve_view
from alumni_portal.routes.api.v1 import endpoints
from alumni_portal.utils.ledger import JUST_REGISTERED, REGISTRATION_GREETING_SEEN

logger = logging.getLogger()


@endpoints.route("/view", strict_slashes=False, methods=["GET"])
def resolve():
    """
    Resolve ``?path=`` against the tab's gate.

    ``?mount=1`` marks a page load and reconciles the session again.

    The login screen consumes the one-shot notices: an approved deletion
    notice and the banner shown right after registering.
    """
    gate = get_gate(mount=is_page_load())
    snapshot = gate.snapshot()
    resolution = resolve_view(request.args.get("path", "/"), snapshot)

    notices = {}
    if resolution.view == View.AUTH:
        ledger = get_ledger()
        notices = {
            "blocked": gate.take_blocked_notice(),
            "just_registered": ledger.take(JUST_REGISTERED) is not None,
            "show_registration_greeting": not ledger.has(REGISTRATION_GREETING_SEEN),
        }

    return jsonify(
        data={
            **resolution.serialize(),
            "gate": snapshot.serialize(),
            "notices": notices,
        }
    ), 200


@endpoints.route("/view/registration-greeting", strict_slashes=False, methods=["POST"])
def registration_greeting_seen():
    """The pre-registration greeting is shown once per tab."""
    get_ledger().put(REGISTRATION_GREETING_SEEN, "1")
    return jsonify(data={"show_registration_greeting": False}), 200
