"""Activity logging for the signed-in account

Writes are best effort: a failure is logged and reported but never reaches
the user and never blocks the operation being recorded.
"""

import logging
from typing import Any, Optional

from flask import has_request_context, request
import rollbar

from alumni_portal.errors import Error
from alumni_portal.models import ACTIVITY_DESCRIPTIONS, ActivityCategory, ActivityLogEntry

logger = logging.getLogger(__name__)

ACTIVITY_TABLE = "activity_logs"


class ActivityLogger:
    def __init__(self, profile_store):
        self._store = profile_store

    def log(
        self,
        subject_id: Optional[str],
        category: ActivityCategory,
        description: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
        target_user_id: Optional[str] = None,
    ) -> bool:
        """Append one entry. Returns ``False`` when the write did not happen."""
        if not subject_id:
            logger.debug(f"[SERVICE]: Skipping {category.value} log without subject")
            return False

        user_agent = None
        if has_request_context():
            user_agent = request.headers.get("User-Agent", "Unknown")

        entry = ActivityLogEntry(
            user_id=subject_id,
            activity_type=category,
            description=description or ACTIVITY_DESCRIPTIONS[category],
            metadata=metadata or {},
            target_user_id=target_user_id,
            user_agent=user_agent,
        )
        try:
            self._store.insert(ACTIVITY_TABLE, entry.to_row())
        except Exception as e:
            logger.error(
                f"[SERVICE]: Failed to log {category.value} activity for "
                f"{subject_id}: {e}"
            )
            try:
                rollbar.report_message(
                    message=f"Activity log write failed: {category.value}",
                    level="warning",
                    extra_data={"user_id": subject_id, "error": str(e)},
                )
            except Exception as report_error:
                logger.error(f"Failed to send activity failure to Rollbar: {report_error}")
            return False
        logger.info(f"[SERVICE]: Logged {category.value} activity for {subject_id}")
        return True

    def recent(self, subject_id: str, limit: int = 50) -> list[ActivityLogEntry]:
        try:
            rows = self._store.select(
                ACTIVITY_TABLE,
                {"user_id": subject_id},
                order_by="created_at",
                descending=True,
                limit=limit,
            )
        except Error as e:
            logger.error(f"[SERVICE]: Failed to load activity for {subject_id}: {e}")
            raise
        return [ActivityLogEntry.from_row(row) for row in rows]
