"""ALUMNI PORTAL MODELS MODULE"""

from alumni_portal.models.activity_log import (
    ACTIVITY_DESCRIPTIONS,
    ActivityCategory,
    ActivityLogEntry,
)
from alumni_portal.models.announcement import ANNOUNCEMENT_COLUMNS, Announcement
from alumni_portal.models.deletion_request import (
    DECISIONS,
    DeletionRequest,
    DeletionStatus,
)
from alumni_portal.models.profile import (
    BACKFILL_FIELDS,
    COURSES,
    PHILIPPINE_REGIONS,
    EmploymentStatus,
    LocationBreakdown,
    LocationScope,
    Profile,
    QuestionnaireAnswers,
    UserView,
)
from alumni_portal.models.session import Session, SessionUser, SignupMetadata

__all__ = [
    "ACTIVITY_DESCRIPTIONS",
    "ANNOUNCEMENT_COLUMNS",
    "BACKFILL_FIELDS",
    "COURSES",
    "DECISIONS",
    "PHILIPPINE_REGIONS",
    "ActivityCategory",
    "ActivityLogEntry",
    "Announcement",
    "DeletionRequest",
    "DeletionStatus",
    "EmploymentStatus",
    "LocationBreakdown",
    "LocationScope",
    "Profile",
    "QuestionnaireAnswers",
    "Session",
    "SessionUser",
    "SignupMetadata",
    "UserView",
]
