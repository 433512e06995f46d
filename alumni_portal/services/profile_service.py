"""PROFILE SERVICE"""

from datetime import datetime, timezone
import logging

from alumni_portal.errors import Error, NotFound, PermissionDenied, ProfileNotFound
from alumni_portal.models import ActivityCategory, Profile
from alumni_portal.services.activity_logger import ActivityLogger
from alumni_portal.services.reconciliation import PROFILES_TABLE

logger = logging.getLogger()

VERIFICATION_RPC = "set_alumni_verification"

EDITABLE_FIELDS = (
    "first_name",
    "last_name",
    "course",
    "graduation_year",
    "current_job",
    "company",
    "location",
    "phone_number",
)


class ProfileService:
    def __init__(self, profile_store, activity_logger=None):
        self._store = profile_store
        self._activity = activity_logger or ActivityLogger(profile_store)

    def get_profile(self, subject_id) -> Profile:
        logger.info(f"[SERVICE]: Getting profile {subject_id}")
        try:
            row = self._store.select_one(PROFILES_TABLE, {"id": subject_id})
        except NotFound:
            row = None
        if row is None:
            raise ProfileNotFound(f"Profile with id {subject_id} does not exist")
        return Profile.from_row(row)

    @staticmethod
    def changes_between(current: Profile, values: dict) -> dict:
        """``{field: {"old": ..., "new": ...}}`` for every field that differs."""
        changes = {}
        for field in EDITABLE_FIELDS:
            if field not in values:
                continue
            old = getattr(current, field)
            new = values[field]
            if (old or None) != (new or None):
                changes[field] = {"old": old, "new": new}
        return changes

    def update_profile(self, subject_id, values: dict) -> Profile:
        """Save the edit form and record what changed.

        Raises the backend's ``SessionExpired``, ``PermissionDenied`` or
        ``BackendUnavailable`` unchanged; their messages are the wording
        shown on the form.
        """
        current = self.get_profile(subject_id)
        patch = {k: v for k, v in values.items() if k in EDITABLE_FIELDS}
        changes = self.changes_between(current, patch)
        if not changes:
            logger.info(f"[SERVICE]: No profile changes for {subject_id}")
            return current

        patch["updated_at"] = datetime.now(timezone.utc).isoformat()
        try:
            rows = self._store.update(PROFILES_TABLE, patch, {"id": subject_id})
        except Error as e:
            logger.error(f"[SERVICE]: Profile update for {subject_id} failed: {e}")
            raise
        if not rows:
            # Row-level security filters the update down to nothing
            raise PermissionDenied()

        self._activity.log(
            subject_id,
            ActivityCategory.PROFILE_UPDATE,
            metadata={"changes": changes, "updated_fields": sorted(changes)},
        )
        return Profile.from_row(rows[0])

    def set_verification(self, admin_id, target_id, verified: bool):
        logger.info(
            f"[SERVICE]: {admin_id} setting verification of {target_id} to {verified}"
        )
        self._store.rpc(
            VERIFICATION_RPC, {"p_user_id": target_id, "p_verified": bool(verified)}
        )
        return self.get_profile(target_id)
