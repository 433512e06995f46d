"""Profile reconciliation

Brings the profile row of a signed-in subject in line with the session:
creates it from the sign-up metadata when missing, fills empty columns the
metadata knows about, and gathers what the auth gate needs to decide the
account's next state. Every step that only informs a decision fails open.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
from typing import Optional

from alumni_portal.errors import Error, NotFound
from alumni_portal.models import BACKFILL_FIELDS, DeletionRequest, Profile
from alumni_portal.utils.ledger import QUESTIONNAIRE_COMPLETED

logger = logging.getLogger(__name__)

PROFILES_TABLE = "profiles"
DELETION_REQUESTS_TABLE = "account_deletion_requests"
QUESTIONNAIRE_TABLE = "user_profile_questions"


@dataclass
class ReconciliationOutcome:
    profile: Profile
    approved_deletion: bool = False
    questionnaire_completed: bool = True
    degraded: bool = False


class ProfileReconciler:
    def __init__(self, profile_store, ledger, clock=None):
        self._store = profile_store
        self._ledger = ledger
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def reconcile(self, session) -> ReconciliationOutcome:
        user = session.user
        try:
            profile = self.ensure_profile(user)
        except Error as e:
            logger.error(f"[GATE]: Could not reconcile profile for {user.id}: {e}")
            seed = user.metadata.profile_seed(user.id, user.email, now=self._clock())
            return ReconciliationOutcome(profile=Profile.from_row(seed), degraded=True)

        return ReconciliationOutcome(
            profile=profile,
            approved_deletion=self.has_approved_deletion(user.id),
            questionnaire_completed=self.questionnaire_completed(profile),
        )

    def fetch(self, subject_id) -> Optional[Profile]:
        try:
            row = self._store.select_one(PROFILES_TABLE, {"id": subject_id})
        except NotFound:
            row = None
        return Profile.from_row(row) if row else None

    def ensure_profile(self, user) -> Profile:
        """Create or backfill the row, then re-read it."""
        metadata = user.metadata
        profile = self.fetch(user.id)

        if profile is None:
            seed = metadata.profile_seed(user.id, user.email, now=self._clock())
            logger.info(f"[GATE]: Creating missing profile for {user.id}")
            self._store.insert(PROFILES_TABLE, seed)
        else:
            patch = self.backfill_patch(profile, metadata)
            if not patch:
                return profile
            logger.info(
                f"[GATE]: Backfilling {sorted(patch)} for {user.id} from session metadata"
            )
            self._store.update(PROFILES_TABLE, patch, {"id": user.id})

        # Re-read so defaults and triggers on the server side are reflected
        refreshed = self.fetch(user.id)
        if refreshed is None:
            raise NotFound(f"Profile {user.id} missing after write")
        return refreshed

    @staticmethod
    def backfill_patch(profile: Profile, metadata) -> dict:
        """Columns that are empty on the row but present in the metadata."""
        known = metadata.present()
        return {
            field: known[field]
            for field in BACKFILL_FIELDS
            if field in known and profile.is_empty(field)
        }

    def latest_deletion_request(self, subject_id) -> Optional[DeletionRequest]:
        row = self._store.select_one(
            DELETION_REQUESTS_TABLE,
            {"user_id": subject_id},
            order_by="created_at",
            descending=True,
        )
        return DeletionRequest.from_row(row) if row else None

    def has_approved_deletion(self, subject_id) -> bool:
        try:
            request = self.latest_deletion_request(subject_id)
        except Error as e:
            logger.warning(
                f"[GATE]: Deletion status unavailable for {subject_id}, not blocking: {e}"
            )
            return False
        return request is not None and request.is_approved

    def questionnaire_completed(self, profile: Profile) -> bool:
        """True when the profile flag or a legacy completion marker exists.

        A legacy marker (the browser's completion flag or an answers row) is
        copied onto the profile flag and the ledger so later checks only
        need the flag. When the check itself fails the answer is ``True`` so
        nobody is interrupted because of a transient error.
        """
        if profile.questionnaire_completed:
            return True
        try:
            marker = self._ledger.has(QUESTIONNAIRE_COMPLETED, profile.id)
            if not marker:
                marker = (
                    self._store.select_one(
                        QUESTIONNAIRE_TABLE, {"user_id": profile.id}
                    )
                    is not None
                )
        except Error as e:
            logger.warning(f"[GATE]: Questionnaire status unavailable: {e}")
            return True
        if marker:
            self._backfill_completion(profile.id)
        return marker

    def _backfill_completion(self, subject_id):
        self._ledger.put(QUESTIONNAIRE_COMPLETED, "1", subject_id)
        try:
            self._store.update(
                PROFILES_TABLE, {"questionnaire_completed": True}, {"id": subject_id}
            )
        except Error as e:
            logger.warning(
                f"[GATE]: Could not record questionnaire completion for {subject_id}: {e}"
            )
