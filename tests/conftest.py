"""
Test configuration and fixtures for the alumni portal API tests
"""

import copy
from datetime import datetime, timezone
import os
import sys
import uuid

import pytest

# Add the project root to the Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Set environment variables for testing before importing the app
os.environ["ENVIRONMENT"] = "testing"
os.environ["TESTING"] = "true"

if not os.environ.get("SECRET_KEY"):
    os.environ["SECRET_KEY"] = "test-secret-key-for-ci"
if not os.environ.get("SUPABASE_URL"):
    os.environ["SUPABASE_URL"] = "http://localhost:54321"
if not os.environ.get("SUPABASE_ANON_KEY"):
    os.environ["SUPABASE_ANON_KEY"] = "test-anon-key"

from alumni_portal import app as flask_app  # noqa: E402
from alumni_portal.backend import (  # noqa: E402
    AdminAuth,
    AuthEvent,
    Backend,
    ChangeType,
    ProfileStore,
    ServiceBackend,
    SessionStore,
)
from alumni_portal.errors import (  # noqa: E402
    Conflict,
    EmailNotConfirmed,
    InvalidCredentials,
    NotFound,
    SessionExpired,
)
from alumni_portal.models import Session, SessionUser  # noqa: E402
from alumni_portal.utils.ledger import ClientStateLedger  # noqa: E402

TEST_PASSWORD = "secret123"

REGISTRATION_FORM = {
    "email": "juan.delacruz@gmail.com",
    "password": TEST_PASSWORD,
    "confirm_password": TEST_PASSWORD,
    "first_name": "Juan",
    "last_name": "Dela Cruz",
    "course": "BSBA - Marketing Management",
    "graduation_year": 2021,
    "phone_number": "+63 917 555 0101",
}


def _now():
    return datetime.now(timezone.utc)


def make_user(subject_id=None, email="alumnus@example.com", metadata=None, **kwargs):
    return SessionUser(
        id=subject_id or str(uuid.uuid4()),
        email=email,
        email_confirmed_at=kwargs.pop("email_confirmed_at", _now()),
        created_at=kwargs.pop("created_at", _now()),
        user_metadata=metadata or {},
        **kwargs,
    )


def make_session(user=None, **user_kwargs):
    user = user or make_user(**user_kwargs)
    return Session(
        access_token=f"access-{uuid.uuid4().hex}",
        refresh_token=f"refresh-{uuid.uuid4().hex}",
        expires_at=int(_now().timestamp()) + 3600,
        issued_at=_now(),
        user=user,
    )


class FakeSessionStore(SessionStore):
    """In-memory auth service holding one browser's session."""

    def __init__(self):
        super().__init__()
        self.accounts = {}
        self.current = None
        self.otp_tokens = {}
        self.reset_requests = []
        self.sign_out_calls = 0
        self.fail_with = None

    def add_account(self, email, password=TEST_PASSWORD, confirmed=True, **kwargs):
        user = make_user(
            email=email,
            email_confirmed_at=_now() if confirmed else None,
            **kwargs,
        )
        self.accounts[email] = {"password": password, "user": user}
        return user

    def _check_failure(self):
        if self.fail_with is not None:
            raise self.fail_with

    def sign_in_with_password(self, email, password):
        self._check_failure()
        account = self.accounts.get(email)
        if account is None or account["password"] != password:
            raise InvalidCredentials()
        if not account["user"].email_confirmed:
            raise EmailNotConfirmed()
        session = make_session(account["user"])
        self.current = session
        self._emit(AuthEvent.SIGNED_IN, session)
        return session

    def sign_up(self, email, password, metadata, redirect_to=None):
        self._check_failure()
        if email in self.accounts:
            raise Conflict("An account with this email already exists.")
        user = self.add_account(
            email, password, confirmed=False, metadata=metadata.present()
        )
        self.accounts[email]["redirect_to"] = redirect_to
        return user, None

    def sign_out(self):
        self.sign_out_calls += 1
        self.current = None
        self._emit(AuthEvent.SIGNED_OUT, None)

    def get_session(self):
        self._check_failure()
        return self.current

    def get_user(self):
        return self.current.user if self.current else None

    def update_password(self, password):
        if self.current is None:
            raise SessionExpired()
        self.accounts[self.current.user.email]["password"] = password
        self._emit(AuthEvent.USER_UPDATED, self.current)
        return self.current.user

    def verify_otp(self, token_hash, kind):
        email = self.otp_tokens.pop(token_hash, None)
        if email is None:
            raise SessionExpired("This link is invalid or has expired.")
        account = self.accounts[email]
        account["user"] = account["user"].model_copy(
            update={"email_confirmed_at": _now()}
        )
        self.current = make_session(account["user"])
        event = AuthEvent.PASSWORD_RECOVERY if kind == "recovery" else AuthEvent.SIGNED_IN
        self._emit(event, self.current)
        return self.current

    def request_password_reset(self, email, redirect_to=None):
        self._check_failure()
        self.reset_requests.append((email, redirect_to))


class FakeProfileStore(ProfileStore):
    """
    In-memory tables. ``failures[(operation, table)]`` raises the given
    error and ``hooks[(operation, table)]`` runs before the operation.
    """

    def __init__(self):
        super().__init__()
        self.tables = {}
        self.failures = {}
        self.hooks = {}
        self.calls = []

    def rows(self, table):
        return self.tables.setdefault(table, [])

    def seed(self, table, **row):
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", _now().isoformat())
        self.rows(table).append(row)
        return row

    def _before(self, operation, table):
        self.calls.append((operation, table))
        hook = self.hooks.get((operation, table))
        if hook is not None:
            hook()
        failure = self.failures.get((operation, table))
        if failure is not None:
            raise failure

    @staticmethod
    def _matches(row, filters):
        for column, value in (filters or {}).items():
            if value is None:
                if row.get(column) is not None:
                    return False
            elif row.get(column) != value:
                return False
        return True

    def select(
        self,
        table,
        filters=None,
        order_by=None,
        descending=False,
        limit=None,
        columns="*",
    ):
        self._before("select", table)
        rows = [copy.deepcopy(r) for r in self.rows(table) if self._matches(r, filters)]
        if order_by:
            rows.sort(key=lambda r: r.get(order_by) or "", reverse=descending)
        if limit:
            rows = rows[:limit]
        return rows

    def insert(self, table, values):
        self._before("insert", table)
        row = dict(values)
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", _now().isoformat())
        self.rows(table).append(row)
        self._notify(table, ChangeType.INSERT, [copy.deepcopy(row)])
        return copy.deepcopy(row)

    def update(self, table, values, filters):
        self._before("update", table)
        updated = []
        for row in self.rows(table):
            if self._matches(row, filters):
                row.update(values)
                updated.append(copy.deepcopy(row))
        self._notify(table, ChangeType.UPDATE, updated)
        return updated

    def upsert(self, table, values, on_conflict="id"):
        self._before("upsert", table)
        for row in self.rows(table):
            if row.get(on_conflict) == values.get(on_conflict):
                row.update(values)
                return copy.deepcopy(row)
        return self.insert(table, values)

    def rpc(self, name, params):
        self._before("rpc", name)
        if name == "set_alumni_verification":
            for row in self.rows("profiles"):
                if row["id"] == params["p_user_id"]:
                    row["is_verified"] = params["p_verified"]
                    row["verified_at"] = _now().isoformat() if params["p_verified"] else None
            return None
        raise NotFound(f"Unknown function {name}")


class FakeAdminAuth(AdminAuth):
    def __init__(self, existing=()):
        self.existing = set(existing)
        self.deleted = []
        self.failing = {}

    def delete_user(self, subject_id):
        if subject_id in self.failing:
            raise self.failing[subject_id]
        if subject_id not in self.existing:
            raise NotFound(f"User {subject_id} not found")
        self.existing.discard(subject_id)
        self.deleted.append(subject_id)


@pytest.fixture
def ledger():
    return ClientStateLedger.in_memory()


@pytest.fixture
def session_store():
    return FakeSessionStore()


@pytest.fixture
def profile_store():
    return FakeProfileStore()


@pytest.fixture
def admin_auth():
    return FakeAdminAuth()


@pytest.fixture
def app(session_store, profile_store, admin_auth):
    """Application wired to the in-memory stores"""
    original = {
        key: flask_app.config[key]
        for key in ("BACKEND_FACTORY", "SERVICE_BACKEND_FACTORY", "TESTING")
    }
    flask_app.config.update(
        {
            "TESTING": True,
            "BACKEND_FACTORY": lambda ledger: Backend(session_store, profile_store),
            "SERVICE_BACKEND_FACTORY": lambda: ServiceBackend(
                admin_auth, profile_store
            ),
        }
    )
    yield flask_app
    flask_app.config.update(original)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def tab_headers():
    return {"X-Tab-Id": "tab-1"}


@pytest.fixture
def alumni_account(session_store):
    """Confirmed alumni account with a complete sign-up bag"""
    return session_store.add_account(
        "alumnus@example.com",
        metadata={
            "first_name": "Maria",
            "last_name": "Santos",
            "course": "BSIT",
            "graduation_year": 2019,
            "phone_number": "09171234567",
            "role": "alumni",
        },
    )


@pytest.fixture
def admin_account(session_store, profile_store):
    user = session_store.add_account(
        "admin@example.com",
        metadata={"first_name": "Ana", "last_name": "Reyes", "role": "admin"},
    )
    profile_store.seed(
        "profiles",
        id=user.id,
        email=user.email,
        first_name="Ana",
        last_name="Reyes",
        role="admin",
        course="BSIT",
        graduation_year=2010,
        questionnaire_completed=True,
    )
    return user


@pytest.fixture
def signed_in_client(client, tab_headers, alumni_account):
    response = client.post(
        "/api/v1/auth/login",
        json={"email": "alumnus@example.com", "password": TEST_PASSWORD},
        headers=tab_headers,
    )
    assert response.status_code == 200
    return client


@pytest.fixture
def admin_client(client, tab_headers, admin_account):
    response = client.post(
        "/api/v1/auth/login",
        json={"email": "admin@example.com", "password": TEST_PASSWORD},
        headers=tab_headers,
    )
    assert response.status_code == 200
    return client

