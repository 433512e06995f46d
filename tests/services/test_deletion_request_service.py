"""
Tests for account deletion requests and their admin triage
"""

from datetime import datetime, timezone

import pytest

from alumni_portal.errors import (
    Conflict,
    DeletionRequestConflict,
    DeletionRequestNotFound,
    ValidationError,
)
from alumni_portal.models import DeletionStatus
from alumni_portal.services import DeletionRequestService

TABLE = "account_deletion_requests"
DECIDED_AT = datetime(2025, 3, 1, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def service(profile_store):
    return DeletionRequestService(profile_store, clock=lambda: DECIDED_AT)


class TestDeletionRequestSubmission:
    """Alumni asking for their account to be removed"""

    def test_submit_creates_pending_request(self, service, profile_store):
        request = service.submit("u1", "Moving abroad")

        assert request.status == DeletionStatus.PENDING
        assert request.reason == "Moving abroad"
        (entry,) = profile_store.rows("activity_logs")
        assert entry["activity_type"] == "deletion_requested"
        assert entry["metadata"] == {"request_id": request.id}

    def test_second_pending_request_conflicts(self, service, profile_store):
        service.submit("u1")

        with pytest.raises(DeletionRequestConflict) as exc:
            service.submit("u1")
        assert exc.value.message == "You already have a pending deletion request."
        assert len(profile_store.rows(TABLE)) == 1

    def test_denied_request_allows_a_new_one(self, service, profile_store):
        profile_store.seed(TABLE, user_id="u1", status="denied")

        service.submit("u1")

        assert len(profile_store.rows(TABLE)) == 2

    def test_unique_index_conflict_is_reported_as_pending(self, service, profile_store):
        profile_store.failures[("insert", TABLE)] = Conflict()

        with pytest.raises(DeletionRequestConflict):
            service.submit("u1")

    def test_list_mine_newest_first(self, service, profile_store):
        profile_store.seed(
            TABLE, id="r1", user_id="u1", status="denied", created_at="2025-01-01T00:00:00+00:00"
        )
        profile_store.seed(
            TABLE, id="r2", user_id="u1", status="pending", created_at="2025-02-01T00:00:00+00:00"
        )
        profile_store.seed(
            TABLE, id="r3", user_id="u2", status="pending", created_at="2025-03-01T00:00:00+00:00"
        )

        assert [r.id for r in service.list_mine("u1")] == ["r2", "r1"]
        assert service.has_pending("u1")
        assert not service.has_pending("u9")


class TestDeletionRequestDecision:
    """Admin approval and denial"""

    @pytest.fixture(autouse=True)
    def seed_requests(self, profile_store):
        profile_store.seed(
            TABLE, id="r1", user_id="u1", status="pending", created_at="2025-01-01T00:00:00+00:00"
        )
        profile_store.seed(
            TABLE, id="r2", user_id="u2", status="approved", created_at="2025-02-01T00:00:00+00:00"
        )

    def test_list_all_with_status(self, service):
        assert [r.id for r in service.list_all()] == ["r2", "r1"]
        assert [r.id for r in service.list_all("approved")] == ["r2"]

    def test_approve(self, service, profile_store):
        requests = service.decide("admin-1", "r1", "approved", "Confirmed by phone")

        decided = next(r for r in requests if r.id == "r1")
        assert decided.status == DeletionStatus.APPROVED
        assert decided.decided_by == "admin-1"
        assert decided.decided_at == DECIDED_AT
        assert decided.decision_note == "Confirmed by phone"

        (entry,) = profile_store.rows("activity_logs")
        assert entry["user_id"] == "admin-1"
        assert entry["target_user_id"] == "u1"
        assert entry["metadata"] == {"request_id": "r1", "status": "approved"}

    def test_deny_can_change_an_earlier_decision(self, service):
        requests = service.decide("admin-1", "r2", DeletionStatus.DENIED)

        assert next(r for r in requests if r.id == "r2").status == DeletionStatus.DENIED

    def test_pending_is_not_a_decision(self, service):
        with pytest.raises(ValidationError) as exc:
            service.decide("admin-1", "r1", "pending")
        assert exc.value.errors == {"status": "Invalid decision"}

    def test_processed_request_cannot_be_decided(self, service, profile_store):
        profile_store.rows(TABLE)[1]["processed_at"] = "2025-02-02T00:00:00+00:00"

        with pytest.raises(Conflict) as exc:
            service.decide("admin-1", "r2", "denied")
        assert exc.value.message == "This request has already been processed."

    def test_unknown_request(self, service):
        with pytest.raises(DeletionRequestNotFound):
            service.decide("admin-1", "missing", "approved")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
