"""Which screen a path shows for the current gate state"""

from enum import Enum
from typing import NamedTuple, Optional

from alumni_portal.services.auth_gate import GateState


class View(str, Enum):
    AUTH_CALLBACK = "auth_callback"
    RESET_PASSWORD = "reset_password"
    FORGOT_PASSWORD = "forgot_password"
    NOT_ALUMNI = "not_alumni"
    REQUEST_DELETION = "request_deletion"
    LOADING = "loading"
    DASHBOARD = "dashboard"
    AUTH = "auth"


FIXED_ROUTES = {
    "/auth/callback": View.AUTH_CALLBACK,
    "/auth/reset-password": View.RESET_PASSWORD,
    "/auth/forgot-password": View.FORGOT_PASSWORD,
    "/not-alumni": View.NOT_ALUMNI,
    "/request-deletion": View.REQUEST_DELETION,
}


class Resolution(NamedTuple):
    view: View
    redirect_to: Optional[str] = None

    def serialize(self):
        return {"view": self.view.value, "redirect_to": self.redirect_to}


def normalize_path(path) -> str:
    path = (path or "/").split("?", 1)[0].split("#", 1)[0]
    if not path.startswith("/"):
        path = "/" + path
    if len(path) > 1:
        path = path.rstrip("/")
    return path


def resolve_view(path, snapshot) -> Resolution:
    """Fixed paths win; otherwise the gate state picks the screen.

    A redirect the gate asks for is passed along unless the browser is
    already on that path.
    """
    path = normalize_path(path)
    redirect_to = snapshot.redirect_to
    if redirect_to and normalize_path(redirect_to) == path:
        redirect_to = None

    if path in FIXED_ROUTES:
        return Resolution(FIXED_ROUTES[path], redirect_to)
    if snapshot.is_loading:
        return Resolution(View.LOADING, redirect_to)
    if snapshot.state == GateState.PASSWORD_RECOVERY:
        return Resolution(View.RESET_PASSWORD, redirect_to)
    if snapshot.state == GateState.BLOCKED:
        return Resolution(View.NOT_ALUMNI, redirect_to)
    if snapshot.is_authenticated:
        return Resolution(View.DASHBOARD, redirect_to)
    return Resolution(View.AUTH, redirect_to)
