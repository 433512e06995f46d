"""ACCOUNT DELETION REQUEST SERVICE"""

from datetime import datetime, timezone
import logging

from alumni_portal.errors import (
    Conflict,
    DeletionRequestConflict,
    DeletionRequestNotFound,
    NotFound,
    ValidationError,
)
from alumni_portal.models import (
    DECISIONS,
    ActivityCategory,
    DeletionRequest,
    DeletionStatus,
)
from alumni_portal.services.activity_logger import ActivityLogger
from alumni_portal.services.reconciliation import DELETION_REQUESTS_TABLE

logger = logging.getLogger()


class DeletionRequestService:
    def __init__(self, profile_store, activity_logger=None, clock=None):
        self._store = profile_store
        self._activity = activity_logger or ActivityLogger(profile_store)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _list(self, filters=None):
        rows = self._store.select(
            DELETION_REQUESTS_TABLE,
            filters or {},
            order_by="created_at",
            descending=True,
        )
        return [DeletionRequest.from_row(row) for row in rows]

    def get_request(self, request_id) -> DeletionRequest:
        try:
            row = self._store.select_one(DELETION_REQUESTS_TABLE, {"id": request_id})
        except NotFound:
            row = None
        if row is None:
            raise DeletionRequestNotFound(
                f"Deletion request with id {request_id} does not exist"
            )
        return DeletionRequest.from_row(row)

    def list_mine(self, subject_id):
        logger.info(f"[SERVICE]: Listing deletion requests of {subject_id}")
        return self._list({"user_id": subject_id})

    def has_pending(self, subject_id) -> bool:
        pending = self._store.select_one(
            DELETION_REQUESTS_TABLE,
            {"user_id": subject_id, "status": DeletionStatus.PENDING.value},
        )
        return pending is not None

    def submit(self, subject_id, reason=None) -> DeletionRequest:
        logger.info(f"[SERVICE]: Submitting deletion request for {subject_id}")
        if self.has_pending(subject_id):
            raise DeletionRequestConflict()
        try:
            row = self._store.insert(
                DELETION_REQUESTS_TABLE,
                {
                    "user_id": subject_id,
                    "reason": reason,
                    "status": DeletionStatus.PENDING.value,
                },
            )
        except Conflict as e:
            # A unique index on pending requests may catch a concurrent submit
            raise DeletionRequestConflict() from e
        request = DeletionRequest.from_row(row)
        self._activity.log(
            subject_id,
            ActivityCategory.DELETION_REQUESTED,
            metadata={"request_id": request.id},
        )
        return request

    def list_all(self, status=None):
        """Every request, newest first, optionally only those in ``status``."""
        filters = {}
        if status:
            filters["status"] = DeletionStatus(status).value
        return self._list(filters)

    def decide(self, admin_id, request_id, status, note=None):
        """Approve or deny a request and return the reloaded list."""
        status = DeletionStatus(status)
        if status not in DECISIONS:
            raise ValidationError(
                "Invalid decision", errors={"status": "Invalid decision"}
            )
        request = self.get_request(request_id)
        if request.is_processed:
            raise Conflict("This request has already been processed.")

        logger.info(
            f"[SERVICE]: {admin_id} marking deletion request {request_id} {status.value}"
        )
        self._store.update(
            DELETION_REQUESTS_TABLE,
            {
                "status": status.value,
                "decided_by": admin_id,
                "decided_at": self._clock().isoformat(),
                "decision_note": note,
            },
            {"id": request_id},
        )
        self._activity.log(
            admin_id,
            ActivityCategory.DELETION_DECIDED,
            metadata={"request_id": request_id, "status": status.value},
            target_user_id=request.user_id,
        )
        return self.list_all()
