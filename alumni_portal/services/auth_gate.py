"""AUTH GATE

Owns the session, the derived user view and the "show questionnaire" flag
for one browser tab, and reacts to the session store's auth events. All
changes to that state go through the methods below; other code reads it
through ``snapshot()`` or by subscribing.

Reconciliation talks to the network without holding the lock. Its result is
applied only if no newer event (sign-out included) has bumped the generation
counter in the meantime, so a slow sign-in can never undo a sign-out.
"""

from enum import Enum
import logging
import threading
from typing import Optional

from pydantic import BaseModel
from pydantic import ValidationError as SchemaError
import rollbar

from alumni_portal.backend.base import AuthEvent, ObserverRegistry
from alumni_portal.errors import BackendUnavailable, Error, NotAuthenticated
from alumni_portal.models import ActivityCategory, Profile, UserView
from alumni_portal.services.activity_logger import ActivityLogger
from alumni_portal.services.reconciliation import (
    ProfileReconciler,
    ReconciliationOutcome,
)
from alumni_portal.utils.ledger import (
    BLOCKED_NOTICE,
    GATE_SNAPSHOT,
    JUST_REGISTERED,
    QUESTIONNAIRE_SHOWN,
)

logger = logging.getLogger(__name__)

RESET_PASSWORD_PATH = "/auth/reset-password"
NOT_ALUMNI_PATH = "/not-alumni"

DELETION_APPROVED_NOTICE = (
    "Your account deletion request has been approved. "
    "You no longer have access to the alumni portal."
)
NOT_ALUMNI_NOTICE = (
    "Thank you for registering. However, this platform is intended only for "
    "alumni of NBSC (formerly NBCC).\n\n"
    "Please proceed to request account deletion.\n\n"
    "Thank you."
)


class GateState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    ANONYMOUS = "anonymous"
    AUTHENTICATED_PENDING_PROFILE = "authenticated_pending_profile"
    AUTHENTICATED = "authenticated"
    BLOCKED = "blocked"
    PASSWORD_RECOVERY = "password_recovery"


SETTLING_STATES = (
    GateState.UNINITIALIZED,
    GateState.LOADING,
    GateState.AUTHENTICATED_PENDING_PROFILE,
)
# States a later request of the same tab may pick up without reconciling again
RESUMABLE_STATES = (
    GateState.AUTHENTICATED,
    GateState.BLOCKED,
    GateState.PASSWORD_RECOVERY,
)


class GateSnapshot(BaseModel):
    state: GateState = GateState.UNINITIALIZED
    subject_id: Optional[str] = None
    user: Optional[UserView] = None
    needs_questionnaire: bool = False
    redirect_to: Optional[str] = None
    notice: Optional[str] = None

    @property
    def is_loading(self) -> bool:
        return self.state in SETTLING_STATES

    @property
    def is_authenticated(self) -> bool:
        return self.state == GateState.AUTHENTICATED

    def serialize(self):
        data = self.model_dump(mode="json")
        data["is_loading"] = self.is_loading
        data["is_authenticated"] = self.is_authenticated
        return data


class AuthGate:
    SNAPSHOT_TOPIC = "snapshot"

    def __init__(
        self,
        session_store,
        profile_store,
        ledger,
        activity_logger=None,
        allowed_roles=("alumni", "admin"),
        admin_roles=("admin",),
        clock=None,
    ):
        self._session_store = session_store
        self._ledger = ledger
        self._reconciler = ProfileReconciler(profile_store, ledger, clock=clock)
        self._activity = activity_logger or ActivityLogger(profile_store)
        self._allowed_roles = tuple(allowed_roles)
        self._admin_roles = tuple(admin_roles)

        self._lock = threading.RLock()
        self._generation = 0
        self._state = GateState.UNINITIALIZED
        self._session = None
        self._user = None
        self._needs_questionnaire = False
        self._redirect_to = None
        self._notice = None

        self._listeners = ObserverRegistry()
        self._auth_subscription = None

    # Read side

    @property
    def state(self) -> GateState:
        return self._state

    @property
    def session(self):
        return self._session

    @property
    def user(self) -> Optional[UserView]:
        return self._user

    def snapshot(self) -> GateSnapshot:
        with self._lock:
            return GateSnapshot(
                state=self._state,
                subject_id=self._session.subject_id if self._session else None,
                user=self._user,
                needs_questionnaire=self._needs_questionnaire,
                redirect_to=self._redirect_to,
                notice=self._notice,
            )

    def subscribe(self, listener):
        """Register ``listener(snapshot)`` for every state change."""
        return self._listeners.add(self.SNAPSHOT_TOPIC, listener)

    def _publish(self):
        snapshot = self.snapshot()
        self._ledger.put(GATE_SNAPSHOT, snapshot.model_dump(mode="json"))
        self._listeners.emit(self.SNAPSHOT_TOPIC, snapshot)

    # Lifecycle

    def _attach(self):
        if self._auth_subscription is None:
            self._auth_subscription = self._session_store.on_auth_state_change(
                self.handle_auth_event
            )

    def close(self):
        if self._auth_subscription is not None:
            self._auth_subscription.unsubscribe()
            self._auth_subscription = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def start(self) -> GateSnapshot:
        """Pick up where this tab left off, or mount from scratch."""
        self._attach()
        saved = self._ledger.get(GATE_SNAPSHOT)
        if not saved:
            return self.mount()
        try:
            previous = GateSnapshot.model_validate(saved)
        except SchemaError:
            logger.warning("[GATE]: Discarding unreadable tab snapshot")
            self._ledger.clear(GATE_SNAPSHOT)
            return self.mount()

        try:
            session = self._session_store.get_session()
        except Error as e:
            logger.warning(f"[GATE]: Session probe failed, staying in loading: {e}")
            self._set_loading()
            return self.snapshot()

        if session is None:
            self._become_anonymous()
            return self.snapshot()

        if (
            previous.state in RESUMABLE_STATES
            and previous.subject_id == session.subject_id
        ):
            with self._lock:
                self._session = session
                self._state = previous.state
                self._user = previous.user
                self._needs_questionnaire = previous.needs_questionnaire
                self._redirect_to = previous.redirect_to
                self._notice = previous.notice
            if self._state == GateState.AUTHENTICATED:
                self._check_deletion_approval()
            return self.snapshot()

        return self._reconcile(session, offer_questionnaire=False)

    def _check_deletion_approval(self):
        # An admin may approve the request between two requests of the tab
        subject_id = self._session.subject_id
        if self._reconciler.has_approved_deletion(subject_id):
            logger.info(f"[GATE]: Deletion of {subject_id} approved since last request")
            with self._lock:
                self._state = GateState.BLOCKED
                self._user = None
                self._needs_questionnaire = False
            self._revoke_access(DELETION_APPROVED_NOTICE)

    def mount(self) -> GateSnapshot:
        """Probe for an existing session as on a page load.

        A session found this way is reconciled without offering the
        questionnaire.
        """
        self._attach()
        self._set_loading()
        try:
            session = self._session_store.get_session()
        except Error as e:
            logger.warning(f"[GATE]: Session probe failed, staying in loading: {e}")
            return self.snapshot()
        if session is None:
            self._become_anonymous()
            return self.snapshot()
        return self._reconcile(session, offer_questionnaire=False)

    # Auth events

    def handle_auth_event(self, event, session=None):
        event = AuthEvent(event)
        logger.debug(f"[GATE]: Received {event.value}")
        if event == AuthEvent.SIGNED_IN:
            if session is not None:
                self._reconcile(session, offer_questionnaire=True)
        elif event == AuthEvent.SIGNED_OUT:
            self._become_anonymous()
        elif event == AuthEvent.PASSWORD_RECOVERY:
            self._enter_recovery(session)
        elif event in (AuthEvent.TOKEN_REFRESHED, AuthEvent.USER_UPDATED):
            self._replace_session(session)

    def _set_loading(self):
        with self._lock:
            self._generation += 1
            self._state = GateState.LOADING
            self._session = None
            self._user = None
            self._needs_questionnaire = False
            self._redirect_to = None
            self._notice = None
            self._publish()

    def _become_anonymous(self):
        with self._lock:
            self._generation += 1
            if self._state != GateState.ANONYMOUS:
                logger.info("[GATE]: Session cleared")
            self._state = GateState.ANONYMOUS
            self._session = None
            self._user = None
            self._needs_questionnaire = False
            self._redirect_to = None
            self._notice = None
            self._publish()

    def _enter_recovery(self, session):
        with self._lock:
            self._generation += 1
            self._state = GateState.PASSWORD_RECOVERY
            self._session = session
            self._user = None
            self._needs_questionnaire = False
            self._redirect_to = RESET_PASSWORD_PATH
            self._notice = None
            self._publish()

    def _replace_session(self, session):
        with self._lock:
            if session is None or self._session is None:
                return
            if self._session.subject_id == session.subject_id:
                self._session = session
                self._publish()

    # Reconciliation

    def _reconcile(self, session, offer_questionnaire, background=False):
        with self._lock:
            self._generation += 1
            generation = self._generation
            same_subject = (
                self._session is not None
                and self._session.subject_id == session.subject_id
            )
            self._session = session
            if not same_subject:
                self._needs_questionnaire = False
            if not background:
                self._state = GateState.AUTHENTICATED_PENDING_PROFILE
                self._user = None
                self._redirect_to = None
                self._notice = None
                self._publish()

        try:
            outcome = self._reconciler.reconcile(session)
        except Exception as e:
            logger.error(f"[GATE]: Reconciliation failed for {session.subject_id}: {e}")
            rollbar.report_exc_info()
            user = session.user
            seed = user.metadata.profile_seed(user.id, user.email)
            outcome = ReconciliationOutcome(profile=Profile.from_row(seed), degraded=True)

        return self._apply(generation, session, outcome, offer_questionnaire)

    def _apply(self, generation, session, outcome, offer_questionnaire):
        revoke = False
        with self._lock:
            if (
                generation != self._generation
                or self._session is None
                or self._session.subject_id != session.subject_id
            ):
                logger.info(
                    f"[GATE]: Discarding stale reconciliation for {session.subject_id}"
                )
                return self.snapshot()

            profile = outcome.profile
            if outcome.approved_deletion:
                self._state = GateState.BLOCKED
                self._user = None
                self._needs_questionnaire = False
                revoke = True
            elif profile.role not in self._allowed_roles:
                logger.warning(
                    f"[GATE]: Role {profile.role!r} of {session.subject_id} is not "
                    "allowed in the portal"
                )
                self._state = GateState.BLOCKED
                self._user = UserView.build(session.user, profile, self._admin_roles)
                self._needs_questionnaire = False
                self._redirect_to = NOT_ALUMNI_PATH
                self._notice = NOT_ALUMNI_NOTICE
            else:
                self._user = UserView.build(session.user, profile, self._admin_roles)
                self._needs_questionnaire = self._decide_questionnaire(
                    session.subject_id, outcome, offer_questionnaire
                )
                self._state = GateState.AUTHENTICATED
                self._redirect_to = None
                self._notice = None
            self._publish()

        if revoke:
            self._revoke_access(DELETION_APPROVED_NOTICE)
        return self.snapshot()

    def _decide_questionnaire(self, subject_id, outcome, offer_questionnaire):
        showing = self._needs_questionnaire
        if outcome.degraded or outcome.questionnaire_completed:
            return False
        if not offer_questionnaire:
            # Only keeps an already visible prompt
            return showing
        if showing:
            return True
        if self._ledger.has(QUESTIONNAIRE_SHOWN, subject_id):
            return False
        self._ledger.put(QUESTIONNAIRE_SHOWN, "1", subject_id)
        logger.info(f"[GATE]: Prompting {subject_id} for the quick questionnaire")
        return True

    def _revoke_access(self, notice):
        subject_id = self._session.subject_id if self._session else None
        logger.warning(f"[GATE]: Access revoked for {subject_id}, signing out")
        self._ledger.put(BLOCKED_NOTICE, notice)
        try:
            self._session_store.sign_out()
        except Error as e:
            logger.warning(f"[GATE]: Sign-out during revocation failed: {e}")
        finally:
            self._become_anonymous()

    # Commands from the UI

    def login(self, email, password) -> GateSnapshot:
        """Exchange credentials; the resulting SIGNED_IN drives reconciliation."""
        self._attach()
        session = self._session_store.sign_in_with_password(email, password)
        if self._session is None:
            # Reconciliation revoked the new session
            logger.info(f"[GATE]: Sign-in of {session.subject_id} ended in revocation")
            return self.snapshot()
        self._activity.log(session.subject_id, ActivityCategory.LOGIN)
        logger.info(f"[GATE]: {session.subject_id} signed in")
        return self.snapshot()

    def register(self, email, password, metadata, redirect_to=None):
        """Create the account; returns ``(SessionUser, Session | None)``.

        The profile row is not written here. It is created from the metadata
        by the first reconciliation of the new account.
        """
        self._attach()
        user, session = self._session_store.sign_up(
            email, password, metadata, redirect_to=redirect_to
        )
        self._ledger.put(JUST_REGISTERED, "1")
        self._activity.log(
            user.id, ActivityCategory.REGISTRATION, metadata={"email": email}
        )
        logger.info(f"[GATE]: Registered {user.id}")
        return user, session

    def logout(self) -> GateSnapshot:
        subject_id = self._session.subject_id if self._session else None
        if subject_id:
            self._activity.log(subject_id, ActivityCategory.LOGOUT)
        try:
            self._session_store.sign_out()
        finally:
            self._become_anonymous()
        return self.snapshot()

    def refresh_user(self) -> GateSnapshot:
        """Re-read the profile in the background; never raises the prompt."""
        session = self._session
        if session is None:
            return self.snapshot()
        return self._reconcile(session, offer_questionnaire=False, background=True)

    def dismiss_questionnaire(self) -> GateSnapshot:
        with self._lock:
            self._needs_questionnaire = False
            self._publish()
        return self.snapshot()

    def complete_questionnaire(self) -> GateSnapshot:
        self.dismiss_questionnaire()
        return self.refresh_user()

    def request_password_reset(self, email, redirect_to=None):
        """Send the recovery e-mail. Unknown addresses are not reported."""
        try:
            self._session_store.request_password_reset(email, redirect_to=redirect_to)
        except BackendUnavailable:
            raise
        except Error as e:
            logger.info(f"[GATE]: Password reset for {email} not sent: {e}")

    def complete_password_reset(self, password) -> GateSnapshot:
        if self._session is None:
            raise NotAuthenticated(
                "Invalid or expired reset link. Please request a new password reset."
            )
        subject_id = self._session.subject_id
        self._session_store.update_password(password)
        self._activity.log(subject_id, ActivityCategory.PASSWORD_CHANGE)
        return self._reconcile(self._session, offer_questionnaire=False)

    def verify_email(self, token_hash=None, kind="signup") -> GateSnapshot:
        """Finish the e-mailed link flow.

        With a token the link is exchanged for a session (emitting
        SIGNED_IN, or PASSWORD_RECOVERY for recovery links). Without one the
        session must already exist.
        """
        self._attach()
        if token_hash:
            session = self._session_store.verify_otp(token_hash, kind)
        else:
            session = self._session or self._session_store.get_session()
            if session is None:
                raise NotAuthenticated("This link is invalid or has expired.")
        if kind != "recovery":
            self._activity.log(session.subject_id, ActivityCategory.EMAIL_VERIFICATION)
        return self.snapshot()

    def take_blocked_notice(self) -> Optional[str]:
        return self._ledger.take(BLOCKED_NOTICE)
