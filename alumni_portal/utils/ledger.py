"""Client-state ledger

The portal keeps a handful of small flags for the browser: one-shot banners,
per-tab guards and markers that outlive a tab. All of them go through
``ClientStateLedger`` so every key, its scope and its lifetime is declared in
one place. Values are JSON-serialisable and stored with an optional expiry.

Scopes:

* ``TAB``: lives as long as the browser tab (keyed by the ``X-Tab-Id``
  header when served over HTTP).
* ``PERSISTENT``: survives tab and browser restarts (the permanent session
  cookie).

One-shot keys can only be read with ``take()``, which returns the value and
clears it in the same step.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
import logging
from typing import Any, Optional

from dateutil import parser as date_parser
from flask import session

logger = logging.getLogger(__name__)


class Scope(str, Enum):
    TAB = "tab"
    PERSISTENT = "persistent"


@dataclass(frozen=True)
class LedgerKey:
    name: str
    scope: Scope
    ttl: Optional[timedelta] = None
    one_shot: bool = False
    per_subject: bool = False
    owner: str = ""

    def storage_key(self, subject_id: Optional[str] = None) -> str:
        if self.per_subject:
            if not subject_id:
                raise ValueError(f"{self.name} is stored per subject")
            return f"{self.name}:{subject_id}"
        return self.name


JUST_REGISTERED = LedgerKey(
    "just_registered",
    Scope.PERSISTENT,
    ttl=timedelta(days=1),
    one_shot=True,
    owner="login banner after registration",
)
REGISTRATION_GREETING_SEEN = LedgerKey(
    "reg_greeting_seen", Scope.TAB, owner="pre-registration greeting"
)
QUESTIONNAIRE_COMPLETED = LedgerKey(
    "questionnaire_completed",
    Scope.PERSISTENT,
    per_subject=True,
    owner="auth gate, questionnaire",
)
QUESTIONNAIRE_SHOWN = LedgerKey(
    "questionnaire_shown", Scope.TAB, per_subject=True, owner="auth gate"
)
BLOCKED_NOTICE = LedgerKey(
    "blocked_notice",
    Scope.PERSISTENT,
    ttl=timedelta(days=1),
    one_shot=True,
    owner="auth gate",
)
ANNOUNCEMENTS_SEEN_AT = LedgerKey(
    "announcements_seen_at", Scope.PERSISTENT, owner="announcements badge"
)
AUTH_TOKEN = LedgerKey("auth_token", Scope.PERSISTENT, owner="session store")
GATE_SNAPSHOT = LedgerKey(
    "gate_snapshot", Scope.TAB, ttl=timedelta(hours=12), owner="auth gate"
)

KEYS = {
    key.name: key
    for key in (
        JUST_REGISTERED,
        REGISTRATION_GREETING_SEEN,
        QUESTIONNAIRE_COMPLETED,
        QUESTIONNAIRE_SHOWN,
        BLOCKED_NOTICE,
        ANNOUNCEMENTS_SEEN_AT,
        AUTH_TOKEN,
        GATE_SNAPSHOT,
    )
}


class MemoryStorage:
    """Dict-backed storage, used for background jobs and tests."""

    def __init__(self, data=None):
        self.data = data if data is not None else {}

    def get_item(self, key):
        return self.data.get(key)

    def set_item(self, key, value):
        self.data[key] = value

    def remove_item(self, key):
        self.data.pop(key, None)


class FlaskSessionStorage:
    """Storage inside one namespace of the signed Flask session cookie."""

    def __init__(self, namespace, permanent=False):
        self.namespace = namespace
        self.permanent = permanent

    def _bucket(self, create=False):
        bucket = session.get(self.namespace)
        if bucket is None and create:
            bucket = {}
            session[self.namespace] = bucket
            if self.permanent:
                session.permanent = True
        return bucket

    def get_item(self, key):
        bucket = self._bucket()
        return bucket.get(key) if bucket else None

    def set_item(self, key, value):
        self._bucket(create=True)[key] = value
        session.modified = True

    def remove_item(self, key):
        bucket = self._bucket()
        if bucket and key in bucket:
            del bucket[key]
            session.modified = True


def tab_storage_for(tab_id, max_tabs=8):
    """Tab-scoped storage for ``tab_id``; drops the oldest tabs beyond ``max_tabs``."""
    tab_id = (tab_id or "default")[:64]
    order = [t for t in session.get("tabs", []) if t != tab_id]
    order.append(tab_id)
    while len(order) > max_tabs:
        stale = order.pop(0)
        session.pop(f"tab:{stale}", None)
    session["tabs"] = order
    return FlaskSessionStorage(f"tab:{tab_id}")


class ClientStateLedger:
    def __init__(self, tab_storage, persistent_storage, clock=None):
        self._storages = {Scope.TAB: tab_storage, Scope.PERSISTENT: persistent_storage}
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @classmethod
    def in_memory(cls):
        return cls(MemoryStorage(), MemoryStorage())

    def _resolve(self, key):
        if isinstance(key, str):
            if key not in KEYS:
                raise KeyError(f"Unknown ledger key: {key}")
            key = KEYS[key]
        return key

    def _read(self, key: LedgerKey, subject_id=None):
        storage = self._storages[key.scope]
        name = key.storage_key(subject_id)
        entry = storage.get_item(name)
        if entry is None:
            return None
        expires_at = entry.get("expires_at")
        if expires_at and date_parser.isoparse(expires_at) <= self._clock():
            logger.debug(f"Ledger entry {name} expired")
            storage.remove_item(name)
            return None
        return entry.get("value")

    def get(self, key, subject_id=None) -> Any:
        key = self._resolve(key)
        if key.one_shot:
            raise ValueError(f"{key.name} is one-shot and must be read with take()")
        return self._read(key, subject_id)

    def has(self, key, subject_id=None) -> bool:
        return self.get(key, subject_id) is not None

    def put(self, key, value, subject_id=None):
        key = self._resolve(key)
        entry = {"value": value}
        if key.ttl is not None:
            entry["expires_at"] = (self._clock() + key.ttl).isoformat()
        self._storages[key.scope].set_item(key.storage_key(subject_id), entry)

    def take(self, key, subject_id=None) -> Any:
        """Return the value and clear it."""
        key = self._resolve(key)
        value = self._read(key, subject_id)
        if value is not None:
            self._storages[key.scope].remove_item(key.storage_key(subject_id))
        return value

    def clear(self, key, subject_id=None):
        key = self._resolve(key)
        self._storages[key.scope].remove_item(key.storage_key(subject_id))
