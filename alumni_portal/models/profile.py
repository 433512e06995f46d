"""PROFILE MODELS"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

PHILIPPINE_REGIONS = (
    "Region I",
    "Region 2",
    "Region 3",
    "Region 4A",
    "Region 4B",
    "Region 5",
    "Region 6",
    "Region 7",
    "Region 8",
    "Region 9",
    "Region 10",
    "Region 11",
    "Region 12",
    "NCR",
    "CAR",
    "ARMM",
)

COURSES = (
    "BSIT",
    "TEP BSEd - English",
    "TEP BSEd - Math",
    "TEP - BEEd",
    "TEP - BECEd",
    "BSBA - Financial Management",
    "BSBA - Marketing Management",
    "BSBA - Operations Management",
)

# Fields copied from session metadata into empty profile columns
BACKFILL_FIELDS = (
    "first_name",
    "last_name",
    "course",
    "graduation_year",
    "phone_number",
    "current_job",
    "company",
    "location",
)

INTERNATIONAL = "International"
SEPARATOR = " - "


class LocationScope(str, Enum):
    PHILIPPINES = "Philippines"
    INTERNATIONAL = "International"


class LocationBreakdown(BaseModel):
    scope: LocationScope = LocationScope.PHILIPPINES
    region: str = ""
    specific_location: str = ""

    @classmethod
    def parse(cls, location: Optional[str]) -> "LocationBreakdown":
        """Split the stored free-text location.

        ``International - X`` is international, ``<known region> - X`` is in
        the Philippines, and anything else is kept whole as an international
        free-text place.
        """
        if not location or not location.strip():
            return cls()
        parts = [p.strip() for p in location.split(SEPARATOR) if p.strip()]
        if parts and parts[0] == INTERNATIONAL:
            return cls(
                scope=LocationScope.INTERNATIONAL,
                region=INTERNATIONAL,
                specific_location=SEPARATOR.join(parts[1:]),
            )
        if len(parts) >= 2 and parts[0] in PHILIPPINE_REGIONS:
            return cls(
                scope=LocationScope.PHILIPPINES,
                region=parts[0],
                specific_location=SEPARATOR.join(parts[1:]),
            )
        return cls(
            scope=LocationScope.INTERNATIONAL,
            region="",
            specific_location=location.strip(),
        )

    def format(self) -> Optional[str]:
        specific = self.specific_location.strip()
        if self.scope == LocationScope.INTERNATIONAL:
            return f"{INTERNATIONAL}{SEPARATOR}{specific}"
        if not self.region:
            return None
        return f"{self.region}{SEPARATOR}{specific}"


class Profile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: str = "alumni"
    graduation_year: Optional[int] = None
    course: Optional[str] = None
    current_job: Optional[str] = None
    company: Optional[str] = None
    location: Optional[str] = None
    phone_number: Optional[str] = None
    is_verified: bool = False
    verified_at: Optional[datetime] = None
    verified_by: Optional[str] = None
    location_verified: bool = False
    questionnaire_completed: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: dict) -> "Profile":
        # Columns may come back as explicit nulls
        cleaned = {k: v for k, v in row.items() if v is not None}
        return cls.model_validate({"id": row["id"], **cleaned})

    def is_empty(self, field: str) -> bool:
        value = getattr(self, field)
        if value is None:
            return True
        if isinstance(value, str):
            return not value.strip()
        if isinstance(value, int):
            return value == 0
        return False

    @property
    def location_breakdown(self) -> LocationBreakdown:
        return LocationBreakdown.parse(self.location)

    def serialize(self):
        data = self.model_dump(mode="json")
        data["location_breakdown"] = self.location_breakdown.model_dump(mode="json")
        return data


class UserView(BaseModel):
    """What the portal renders for the signed-in account."""

    id: str
    email: Optional[str] = None
    first_name: str = ""
    last_name: str = ""
    role: str = "alumni"
    graduation_year: Optional[int] = None
    course: str = ""
    current_job: Optional[str] = None
    company: Optional[str] = None
    location: Optional[str] = None
    location_breakdown: LocationBreakdown = Field(default_factory=LocationBreakdown)
    phone_number: Optional[str] = None
    email_confirmed: bool = False
    is_verified: bool = False
    location_verified: bool = False
    is_admin: bool = False
    created_at: Optional[datetime] = None

    @classmethod
    def build(cls, session_user, profile: Profile, admin_roles=("admin",)):
        return cls(
            id=profile.id,
            email=profile.email or session_user.email,
            first_name=profile.first_name or "",
            last_name=profile.last_name or "",
            role=profile.role,
            graduation_year=profile.graduation_year,
            course=profile.course or "",
            current_job=profile.current_job,
            company=profile.company,
            location=profile.location,
            location_breakdown=profile.location_breakdown,
            phone_number=profile.phone_number,
            email_confirmed=session_user.email_confirmed,
            is_verified=profile.is_verified,
            location_verified=profile.location_verified,
            is_admin=(session_user.role in admin_roles),
            created_at=profile.created_at or session_user.created_at,
        )

    def serialize(self):
        return self.model_dump(mode="json")


class EmploymentStatus(str, Enum):
    EMPLOYED = "employed"
    UNEMPLOYED = "unemployed"


class QuestionnaireAnswers(BaseModel):
    scope: LocationScope
    region: Optional[str] = None
    specific_location: str
    skills: str
    employment_status: EmploymentStatus

    @property
    def location(self) -> LocationBreakdown:
        return LocationBreakdown(
            scope=self.scope,
            region=self.region or "",
            specific_location=self.specific_location,
        )

    def answers_row(self, subject_id: str) -> dict:
        philippines = self.scope == LocationScope.PHILIPPINES
        return {
            "user_id": subject_id,
            "country": "Philippines" if philippines else self.specific_location,
            "region": self.region if philippines else INTERNATIONAL,
            "province": self.specific_location if philippines else None,
            "skills": self.skills,
            "employment_status": (
                "Employed"
                if self.employment_status == EmploymentStatus.EMPLOYED
                else "Unemployed"
            ),
        }
