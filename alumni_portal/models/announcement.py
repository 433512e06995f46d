"""ANNOUNCEMENT MODEL"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

# Columns the portal reads; the rest of the row is owned by the publishers
ANNOUNCEMENT_COLUMNS = "id, title, body, audience, image_url, published_at, created_at"


class Announcement(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    title: str
    body: Optional[str] = None
    audience: Optional[str] = None
    image_url: Optional[str] = None
    published_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: dict) -> "Announcement":
        return cls.model_validate({**row, "id": str(row["id"])})

    @property
    def sort_key(self) -> Optional[datetime]:
        return self.published_at or self.created_at

    def serialize(self):
        return self.model_dump(mode="json")
