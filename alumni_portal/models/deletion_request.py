"""ACCOUNT DELETION REQUEST MODEL"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class DeletionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"


# Statuses an admin may set
DECISIONS = (DeletionStatus.APPROVED, DeletionStatus.DENIED)


class DeletionRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    user_id: str
    reason: Optional[str] = None
    status: DeletionStatus = DeletionStatus.PENDING
    decided_by: Optional[str] = None
    decided_at: Optional[datetime] = None
    decision_note: Optional[str] = None
    processed_at: Optional[datetime] = None
    process_error: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: dict) -> "DeletionRequest":
        return cls.model_validate({**row, "id": str(row["id"])})

    @property
    def is_approved(self) -> bool:
        return self.status == DeletionStatus.APPROVED

    @property
    def is_processed(self) -> bool:
        return self.processed_at is not None

    def serialize(self):
        return self.model_dump(mode="json")
