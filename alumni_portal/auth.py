"""Per-request access to the tab's auth gate

Every request rebuilds the gate for the browser tab named in the ``X-Tab-Id``
header from the signed session cookie, and closes it when the request ends.
"""

from functools import wraps
import logging

from flask import current_app, g, request

from alumni_portal.config import SETTINGS
from alumni_portal.errors import NotAuthenticated, PermissionDenied
from alumni_portal.routes.api.v1 import error
from alumni_portal.services import ActivityLogger, AuthGate, GateState
from alumni_portal.utils.ledger import (
    ClientStateLedger,
    FlaskSessionStorage,
    tab_storage_for,
)

logger = logging.getLogger()

TAB_HEADER = "X-Tab-Id"
PERSISTENT_NAMESPACE = "persistent"


def get_ledger():
    if "ledger" not in g:
        g.ledger = ClientStateLedger(
            tab_storage_for(
                request.headers.get(TAB_HEADER),
                max_tabs=SETTINGS.get("MAX_TRACKED_TABS", 8),
            ),
            FlaskSessionStorage(PERSISTENT_NAMESPACE, permanent=True),
        )
    return g.ledger


def get_backend():
    if "backend" not in g:
        g.backend = current_app.config["BACKEND_FACTORY"](get_ledger())
    return g.backend


def get_gate(mount=False):
    """The started gate of the current tab.

    ``mount`` is set on a page load of the client: the session is read and
    reconciled again instead of resuming the saved snapshot.
    """
    if "gate" not in g:
        backend = get_backend()
        gate = AuthGate(
            backend.session_store,
            backend.profile_store,
            get_ledger(),
            activity_logger=ActivityLogger(backend.profile_store),
            allowed_roles=SETTINGS.get("ALLOWED_PROFILE_ROLES", ["alumni", "admin"]),
            admin_roles=SETTINGS.get("ADMIN_ROLES", ["admin"]),
        )
        g.gate = gate
        if mount:
            gate.mount()
        else:
            gate.start()
    return g.gate


def close_gate(exc=None):
    gate = g.pop("gate", None)
    if gate is not None:
        gate.close()


def session_required(func):
    """Any signed-in session, including blocked and recovery ones."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        gate = get_gate()
        if gate.session is None:
            return error(status=401, detail=NotAuthenticated().message)
        return func(*args, **kwargs)

    return wrapper


def gate_required(func):
    """A fully authenticated account with a reconciled profile."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        gate = get_gate()
        if gate.session is None:
            return error(status=401, detail=NotAuthenticated().message)
        if gate.state != GateState.AUTHENTICATED:
            snapshot = gate.snapshot()
            logger.info(
                f"[ROUTER]: {snapshot.subject_id} refused in state {snapshot.state.value}"
            )
            return error(
                status=403, detail=snapshot.notice or PermissionDenied().message
            )
        return func(*args, **kwargs)

    return wrapper


def admin_required(func):
    """Interface check only; the data API enforces the admin policies itself."""

    @gate_required
    @wraps(func)
    def wrapper(*args, **kwargs):
        user = get_gate().user
        if user is None or not user.is_admin:
            return error(status=403, detail="Forbidden")
        return func(*args, **kwargs)

    return wrapper


def is_page_load():
    return request.args.get("mount", "").lower() in ("1", "true", "yes")
