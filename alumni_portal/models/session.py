"""SESSION MODELS"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

SIGNUP_METADATA_FIELDS = (
    "first_name",
    "last_name",
    "course",
    "graduation_year",
    "phone_number",
    "current_job",
    "company",
    "location",
    "role",
)


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


class SignupMetadata(BaseModel):
    """Profile attributes supplied at sign-up and carried on the session.

    Every field is optional. Blank strings are treated as absent so that
    backfilling never copies an empty value over a real one. Unknown keys in
    the auth service's metadata bag are ignored.

    Defaulting rules, applied only when a profile row is synthesized:
    names and course become ``""``, graduation year becomes the current
    calendar year, role becomes ``alumni``; everything else stays ``None``.
    """

    model_config = ConfigDict(extra="ignore")

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    course: Optional[str] = None
    graduation_year: Optional[int] = None
    phone_number: Optional[str] = None
    current_job: Optional[str] = None
    company: Optional[str] = None
    location: Optional[str] = None
    role: Optional[str] = None

    @field_validator("*", mode="before")
    @classmethod
    def blank_is_absent(cls, value):
        return _blank_to_none(value)

    @field_validator("graduation_year", mode="before")
    @classmethod
    def parse_year(cls, value):
        if value is None:
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            return None

    @classmethod
    def from_bag(cls, bag: Optional[dict[str, Any]]) -> "SignupMetadata":
        bag = bag or {}
        # Older sign-ups stored the phone under "phone"
        if "phone_number" not in bag and "phone" in bag:
            bag = {**bag, "phone_number": bag["phone"]}
        return cls.model_validate(bag)

    def present(self) -> dict[str, Any]:
        """Fields that carry a value."""
        return {k: v for k, v in self.model_dump().items() if v is not None}

    def profile_seed(self, subject_id: str, email: Optional[str], now=None) -> dict:
        now = now or datetime.now(timezone.utc)
        return {
            "id": subject_id,
            "email": email,
            "first_name": self.first_name or "",
            "last_name": self.last_name or "",
            # Only the data API grants other roles
            "role": "alumni",
            "graduation_year": self.graduation_year or now.year,
            "course": self.course or "",
            "phone_number": self.phone_number,
            "current_job": self.current_job,
            "company": self.company,
            "location": self.location,
        }


class SessionUser(BaseModel):
    id: str
    email: Optional[str] = None
    email_confirmed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    user_metadata: dict[str, Any] = Field(default_factory=dict)
    app_metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def metadata(self) -> SignupMetadata:
        return SignupMetadata.from_bag(self.user_metadata)

    @property
    def email_confirmed(self) -> bool:
        return self.email_confirmed_at is not None

    @property
    def role(self) -> Optional[str]:
        return self.user_metadata.get("role") or self.app_metadata.get("role")

    @classmethod
    def from_auth(cls, user) -> "SessionUser":
        return cls(
            id=str(user.id),
            email=getattr(user, "email", None),
            email_confirmed_at=getattr(user, "email_confirmed_at", None),
            created_at=getattr(user, "created_at", None),
            user_metadata=dict(getattr(user, "user_metadata", None) or {}),
            app_metadata=dict(getattr(user, "app_metadata", None) or {}),
        )

    def serialize(self):
        return {
            "id": self.id,
            "email": self.email,
            "email_confirmed": self.email_confirmed,
            "role": self.role,
            "metadata": self.metadata.present(),
        }


class Session(BaseModel):
    access_token: str
    refresh_token: str
    expires_at: Optional[int] = None
    issued_at: Optional[datetime] = None
    user: SessionUser

    @property
    def subject_id(self) -> str:
        return self.user.id

    @classmethod
    def from_auth(cls, session) -> "Session":
        return cls(
            access_token=session.access_token,
            refresh_token=session.refresh_token,
            expires_at=getattr(session, "expires_at", None),
            issued_at=datetime.now(timezone.utc),
            user=SessionUser.from_auth(session.user),
        )

    def tokens(self) -> dict:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
        }
