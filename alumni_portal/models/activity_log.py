"""ACTIVITY LOG MODEL"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ActivityCategory(str, Enum):
    LOGIN = "login"
    LOGOUT = "logout"
    PROFILE_UPDATE = "profile_update"
    PASSWORD_CHANGE = "password_change"
    REGISTRATION = "registration"
    EMAIL_VERIFICATION = "email_verification"
    DELETION_REQUESTED = "deletion_requested"
    DELETION_DECIDED = "deletion_decided"


ACTIVITY_DESCRIPTIONS = {
    ActivityCategory.LOGIN: "User logged in",
    ActivityCategory.LOGOUT: "User logged out",
    ActivityCategory.PROFILE_UPDATE: "Profile information updated",
    ActivityCategory.PASSWORD_CHANGE: "Password changed",
    ActivityCategory.REGISTRATION: "Account registered",
    ActivityCategory.EMAIL_VERIFICATION: "Email address verified",
    ActivityCategory.DELETION_REQUESTED: "Account deletion requested",
    ActivityCategory.DELETION_DECIDED: "Account deletion request decided",
}


class ActivityLogEntry(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    user_id: str
    activity_type: ActivityCategory
    description: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    target_user_id: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: dict) -> "ActivityLogEntry":
        data = dict(row)
        if data.get("id") is not None:
            data["id"] = str(data["id"])
        data["metadata"] = data.get("metadata") or {}
        return cls.model_validate(data)

    def to_row(self) -> dict:
        return self.model_dump(
            mode="json", exclude={"id", "created_at"}, exclude_none=True
        )

    def serialize(self):
        return self.model_dump(mode="json")
