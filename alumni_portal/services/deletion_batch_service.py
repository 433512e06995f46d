"""Processing of approved account deletions

Runs with the service role: removes the auth account of every approved,
unprocessed request and anonymizes the profile row, which is kept so the
activity history stays consistent.
"""

from datetime import datetime, timezone
import logging

from alumni_portal.errors import Error, NotFound
from alumni_portal.models import DeletionRequest, DeletionStatus
from alumni_portal.services.reconciliation import (
    DELETION_REQUESTS_TABLE,
    PROFILES_TABLE,
)

logger = logging.getLogger()

ANONYMIZED_PROFILE = {
    "first_name": "Deleted",
    "last_name": "User",
    "email": None,
    "course": None,
    "current_job": None,
    "company": None,
    "location": None,
    "phone_number": None,
}

NOTHING_TO_PROCESS = "No approved pending deletions."


class DeletionBatchService:
    def __init__(self, admin_auth, profile_store, clock=None):
        self._admin = admin_auth
        self._store = profile_store
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def pending(self):
        rows = self._store.select(
            DELETION_REQUESTS_TABLE,
            {"status": DeletionStatus.APPROVED.value, "processed_at": None},
            order_by="created_at",
            columns="id, user_id, status, processed_at, process_error",
        )
        return [DeletionRequest.from_row(row) for row in rows]

    def process_request(self, request: DeletionRequest) -> dict:
        try:
            try:
                self._admin.delete_user(request.user_id)
            except NotFound:
                logger.info(
                    f"[SERVICE]: Auth user {request.user_id} already removed, "
                    "anonymizing profile"
                )
            self._store.update(
                PROFILES_TABLE, dict(ANONYMIZED_PROFILE), {"id": request.user_id}
            )
            self._store.update(
                DELETION_REQUESTS_TABLE,
                {"processed_at": self._clock().isoformat(), "process_error": None},
                {"id": request.id},
            )
        except Error as e:
            logger.error(
                f"[SERVICE]: Deletion request {request.id} for {request.user_id} "
                f"failed: {e.message}"
            )
            self._record_failure(request, e.message)
            return {
                "id": request.id,
                "user_id": request.user_id,
                "status": "error",
                "error": e.message,
            }
        logger.info(f"[SERVICE]: Deleted account {request.user_id}")
        return {"id": request.id, "user_id": request.user_id, "status": "success"}

    def _record_failure(self, request, message):
        try:
            self._store.update(
                DELETION_REQUESTS_TABLE, {"process_error": message}, {"id": request.id}
            )
        except Error as e:
            logger.error(
                f"[SERVICE]: Could not record failure on deletion request {request.id}: {e}"
            )

    def run(self) -> dict:
        """Process every approved request that has not been processed yet.

        Failed rows keep ``processed_at`` empty and are retried on the next run.
        """
        requests = self.pending()
        if not requests:
            logger.info("[SERVICE]: No approved deletion requests to process")
            return {"processed": 0, "message": NOTHING_TO_PROCESS}

        results = [self.process_request(request) for request in requests]
        failed = sum(1 for result in results if result["status"] == "error")
        logger.info(
            f"[SERVICE]: Processed {len(results)} deletion requests, {failed} failed"
        )
        return {"processed": len(results), "results": results}
