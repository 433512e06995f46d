"""Supabase adapters for the session and profile stores"""

import logging

import httpx
from postgrest.exceptions import APIError
from supabase import AuthError, ClientOptions, create_client

from alumni_portal.backend.base import (
    AdminAuth,
    AuthEvent,
    ChangeType,
    ProfileStore,
    SessionStore,
)
from alumni_portal.config import SETTINGS
from alumni_portal.errors import (
    BackendUnavailable,
    Conflict,
    EmailNotConfirmed,
    Error,
    InvalidCredentials,
    NotFound,
    PermissionDenied,
    SessionExpired,
)
from alumni_portal.errors import AuthError as PortalAuthError
from alumni_portal.models import Session, SessionUser
from alumni_portal.utils.ledger import AUTH_TOKEN

logger = logging.getLogger(__name__)


def translate_auth_error(exc):
    """Map an auth service exception onto the portal's error taxonomy."""
    if isinstance(exc, httpx.HTTPError):
        return BackendUnavailable()
    message = getattr(exc, "message", None) or str(exc)
    code = getattr(exc, "code", None) or ""
    status = getattr(exc, "status", None)
    lowered = message.lower()
    if code == "email_not_confirmed" or "email not confirmed" in lowered:
        return EmailNotConfirmed()
    if code == "invalid_credentials" or "invalid login credentials" in lowered:
        return InvalidCredentials()
    if code == "user_already_exists" or "already registered" in lowered:
        return Conflict("An account with this email already exists.")
    if code == "user_not_found" or status == 404:
        return NotFound(message)
    if "jwt" in lowered or "expired" in lowered or code == "session_not_found":
        return SessionExpired()
    if status is not None and status >= 500:
        return BackendUnavailable()
    return PortalAuthError(message)


def translate_api_error(exc):
    """Map a data API exception onto the portal's error taxonomy."""
    if isinstance(exc, httpx.HTTPError):
        return BackendUnavailable()
    code = str(getattr(exc, "code", "") or "")
    message = getattr(exc, "message", None) or str(exc)
    lowered = message.lower()
    if code == "PGRST116":
        return NotFound(message)
    if code in ("PGRST301", "PGRST303") or "jwt" in lowered:
        return SessionExpired()
    if code == "42501" or "permission" in lowered or "row-level security" in lowered:
        return PermissionDenied()
    if code == "23505":
        return Conflict(message)
    if "network" in lowered or "fetch" in lowered:
        return BackendUnavailable()
    return Error(message)


def _anonymous_options():
    return ClientOptions(auto_refresh_token=False, persist_session=False)


class SupabaseSessionStore(SessionStore):
    """GoTrue client bound to the tokens kept in the browser's ledger."""

    def __init__(self, client, ledger):
        super().__init__()
        self._client = client
        self._ledger = ledger
        self._session = None
        self._probed = False

    def _remember(self, session: Session):
        self._session = session
        self._probed = True
        self._ledger.put(AUTH_TOKEN, session.tokens())

    def _forget(self):
        self._session = None
        self._probed = True
        self._ledger.clear(AUTH_TOKEN)

    def sign_in_with_password(self, email, password):
        try:
            response = self._client.auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        except (AuthError, httpx.HTTPError) as e:
            logger.info(f"[BACKEND]: Sign-in rejected: {e}")
            raise translate_auth_error(e) from e
        session = Session.from_auth(response.session)
        self._remember(session)
        self._emit(AuthEvent.SIGNED_IN, session)
        return session

    def sign_up(self, email, password, metadata, redirect_to=None):
        options = {"data": metadata.present()}
        if redirect_to:
            options["email_redirect_to"] = redirect_to
        try:
            response = self._client.auth.sign_up(
                {"email": email, "password": password, "options": options}
            )
        except (AuthError, httpx.HTTPError) as e:
            logger.info(f"[BACKEND]: Sign-up rejected: {e}")
            raise translate_auth_error(e) from e
        user = SessionUser.from_auth(response.user)
        session = None
        if response.session is not None:
            session = Session.from_auth(response.session)
            self._remember(session)
            self._emit(AuthEvent.SIGNED_IN, session)
        return user, session

    def sign_out(self):
        try:
            if self.get_session() is not None:
                self._client.auth.sign_out()
        except (AuthError, httpx.HTTPError, Error) as e:
            # The local session is dropped either way
            logger.warning(f"[BACKEND]: Remote sign-out failed: {e}")
        finally:
            self._forget()
            self._emit(AuthEvent.SIGNED_OUT, None)

    def get_session(self):
        if self._probed:
            return self._session
        tokens = self._ledger.get(AUTH_TOKEN)
        if not tokens:
            self._probed = True
            return None
        try:
            response = self._client.auth.set_session(
                tokens["access_token"], tokens["refresh_token"]
            )
        except httpx.HTTPError as e:
            raise BackendUnavailable() from e
        except AuthError as e:
            logger.info(f"[BACKEND]: Stored session is no longer valid: {e}")
            self._forget()
            self._emit(AuthEvent.SIGNED_OUT, None)
            return None
        if response.session is None:
            self._forget()
            return None
        session = Session.from_auth(response.session)
        refreshed = session.access_token != tokens["access_token"]
        self._remember(session)
        if refreshed:
            self._emit(AuthEvent.TOKEN_REFRESHED, session)
        return session

    def get_user(self):
        if self.get_session() is None:
            return None
        try:
            response = self._client.auth.get_user()
        except (AuthError, httpx.HTTPError) as e:
            raise translate_auth_error(e) from e
        if response is None or response.user is None:
            return None
        return SessionUser.from_auth(response.user)

    def update_password(self, password):
        try:
            response = self._client.auth.update_user({"password": password})
        except (AuthError, httpx.HTTPError) as e:
            raise translate_auth_error(e) from e
        user = SessionUser.from_auth(response.user)
        if self._session is not None:
            self._session = self._session.model_copy(update={"user": user})
        self._emit(AuthEvent.USER_UPDATED, self._session)
        return user

    def verify_otp(self, token_hash, kind):
        try:
            response = self._client.auth.verify_otp(
                {"token_hash": token_hash, "type": kind}
            )
        except (AuthError, httpx.HTTPError) as e:
            raise translate_auth_error(e) from e
        if response.session is None:
            raise SessionExpired("This link is invalid or has expired.")
        session = Session.from_auth(response.session)
        self._remember(session)
        event = AuthEvent.PASSWORD_RECOVERY if kind == "recovery" else AuthEvent.SIGNED_IN
        self._emit(event, session)
        return session

    def request_password_reset(self, email, redirect_to=None):
        options = {"redirect_to": redirect_to} if redirect_to else {}
        try:
            self._client.auth.reset_password_for_email(email, options)
        except (AuthError, httpx.HTTPError) as e:
            raise translate_auth_error(e) from e


class SupabaseProfileStore(ProfileStore):
    def __init__(self, client):
        super().__init__()
        self._client = client

    def _execute(self, query):
        try:
            return query.execute()
        except (APIError, httpx.HTTPError) as e:
            logger.warning(f"[BACKEND]: Data API call failed: {e}")
            raise translate_api_error(e) from e

    @staticmethod
    def _filtered(query, filters):
        for column, value in (filters or {}).items():
            query = query.is_(column, "null") if value is None else query.eq(column, value)
        return query

    def select(
        self,
        table,
        filters=None,
        order_by=None,
        descending=False,
        limit=None,
        columns="*",
    ):
        query = self._filtered(self._client.table(table).select(columns), filters)
        if order_by:
            query = query.order(order_by, desc=descending)
        if limit:
            query = query.limit(limit)
        return self._execute(query).data or []

    def insert(self, table, values):
        rows = self._execute(self._client.table(table).insert(values)).data or [values]
        self._notify(table, ChangeType.INSERT, rows)
        return rows[0]

    def update(self, table, values, filters):
        query = self._filtered(self._client.table(table).update(values), filters)
        rows = self._execute(query).data or []
        self._notify(table, ChangeType.UPDATE, rows)
        return rows

    def upsert(self, table, values, on_conflict="id"):
        query = self._client.table(table).upsert(values, on_conflict=on_conflict)
        rows = self._execute(query).data or [values]
        self._notify(table, ChangeType.UPDATE, rows)
        return rows[0]

    def rpc(self, name, params):
        return self._execute(self._client.rpc(name, params)).data


class SupabaseAdminAuth(AdminAuth):
    def __init__(self, client):
        self._client = client

    def delete_user(self, subject_id):
        try:
            self._client.auth.admin.delete_user(subject_id)
        except (AuthError, httpx.HTTPError) as e:
            raise translate_auth_error(e) from e


def create_user_client():
    return create_client(
        SETTINGS.get("SUPABASE_URL"),
        SETTINGS.get("SUPABASE_ANON_KEY"),
        options=_anonymous_options(),
    )


def create_service_client():
    key = SETTINGS.get("SUPABASE_SERVICE_ROLE_KEY")
    if not key:
        raise Error("SUPABASE_SERVICE_ROLE_KEY is not configured")
    return create_client(SETTINGS.get("SUPABASE_URL"), key, options=_anonymous_options())
