"""Interfaces of the hosted backend as the portal consumes it"""

from abc import ABC, abstractmethod
from enum import Enum
import logging
import threading

logger = logging.getLogger(__name__)


class AuthEvent(str, Enum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    PASSWORD_RECOVERY = "PASSWORD_RECOVERY"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    USER_UPDATED = "USER_UPDATED"


class ChangeType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class Subscription:
    """Handle returned by every ``subscribe``; ``unsubscribe()`` is idempotent."""

    def __init__(self, registry, topic, callback):
        self._registry = registry
        self.topic = topic
        self.callback = callback
        self.active = True

    def unsubscribe(self):
        if self.active:
            self._registry._remove(self)
            self.active = False

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.unsubscribe()


class ObserverRegistry:
    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions = []

    def add(self, topic, callback) -> Subscription:
        subscription = Subscription(self, topic, callback)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def _remove(self, subscription):
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def emit(self, topic, *args):
        with self._lock:
            targets = [s for s in self._subscriptions if s.topic == topic]
        for subscription in targets:
            try:
                subscription.callback(*args)
            except Exception as e:
                # Failures stay with the observer that raised them
                logger.error(f"[BACKEND]: Observer for {topic} failed: {e}")

    def __len__(self):
        with self._lock:
            return len(self._subscriptions)


class SessionStore(ABC):
    """Credential exchange and the current session of one browser."""

    AUTH_TOPIC = "auth"

    def __init__(self):
        self._observers = ObserverRegistry()

    def on_auth_state_change(self, callback) -> Subscription:
        """Register ``callback(event, session)``."""
        return self._observers.add(self.AUTH_TOPIC, callback)

    def _emit(self, event: AuthEvent, session):
        logger.debug(f"[BACKEND]: Auth event {event.value}")
        self._observers.emit(self.AUTH_TOPIC, event, session)

    @abstractmethod
    def sign_in_with_password(self, email, password):
        """Return the new ``Session`` and emit ``SIGNED_IN``."""

    @abstractmethod
    def sign_up(self, email, password, metadata, redirect_to=None):
        """Return ``(SessionUser, Session | None)``; emit ``SIGNED_IN`` when a session is issued."""

    @abstractmethod
    def sign_out(self):
        """Drop the session and emit ``SIGNED_OUT``."""

    @abstractmethod
    def get_session(self):
        """Current ``Session`` or ``None``."""

    @abstractmethod
    def get_user(self):
        """Current ``SessionUser`` as the auth service sees it, or ``None``."""

    @abstractmethod
    def update_password(self, password):
        """Return the updated ``SessionUser`` and emit ``USER_UPDATED``."""

    @abstractmethod
    def verify_otp(self, token_hash, kind):
        """Exchange an e-mailed token; emits ``SIGNED_IN`` or ``PASSWORD_RECOVERY``."""

    @abstractmethod
    def request_password_reset(self, email, redirect_to=None):
        """Send the recovery e-mail."""


class ProfileStore(ABC):
    """Row access to the data API, scoped by whoever's token the store holds."""

    def __init__(self):
        self._observers = ObserverRegistry()

    def subscribe(self, table, callback) -> Subscription:
        """Register ``callback(change_type, row)`` for writes to ``table``."""
        return self._observers.add(table, callback)

    def _notify(self, table, change_type: ChangeType, rows):
        for row in rows:
            self._observers.emit(table, change_type, row)

    @abstractmethod
    def select(
        self,
        table,
        filters=None,
        order_by=None,
        descending=False,
        limit=None,
        columns="*",
    ):
        """Rows matching ``filters``; a ``None`` filter value means IS NULL."""

    def select_one(self, table, filters, order_by=None, descending=False):
        rows = self.select(
            table, filters, order_by=order_by, descending=descending, limit=1
        )
        return rows[0] if rows else None

    @abstractmethod
    def insert(self, table, values):
        """Insert one row and return it as stored."""

    @abstractmethod
    def update(self, table, values, filters):
        """Update matching rows and return them."""

    @abstractmethod
    def upsert(self, table, values, on_conflict="id"):
        """Insert or update one row and return it."""

    @abstractmethod
    def rpc(self, name, params):
        """Call a stored procedure."""


class AdminAuth(ABC):
    """Privileged account operations, only available with the service key."""

    @abstractmethod
    def delete_user(self, subject_id):
        """Hard-delete the account. Raises ``NotFound`` when it is already gone."""
