"""ALUMNI PORTAL SERVICES MODULE"""

import logging
import sys

logger = logging.getLogger()


def handle_exception(exc_type, exc_value, exc_traceback):
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return
    logger.critical("Uncaught exception", exc_info=(exc_type, exc_value, exc_traceback))


sys.excepthook = handle_exception

from alumni_portal.services.activity_logger import ActivityLogger  # noqa: E402
from alumni_portal.services.announcement_service import (  # noqa: E402
    AnnouncementService,
)
from alumni_portal.services.deletion_batch_service import (  # noqa: E402
    DeletionBatchService,
)
from alumni_portal.services.deletion_request_service import (  # noqa: E402
    DeletionRequestService,
)
from alumni_portal.services.profile_service import ProfileService  # noqa: E402
from alumni_portal.services.questionnaire_service import (  # noqa: E402
    QuestionnaireService,
)
from alumni_portal.services.reconciliation import ProfileReconciler  # noqa: E402

# Import last, the gate builds on the reconciler and the activity logger
from alumni_portal.services.auth_gate import AuthGate, GateSnapshot, GateState  # noqa:E402, isort:skip

__all__ = [
    "ActivityLogger",
    "AnnouncementService",
    "AuthGate",
    "DeletionBatchService",
    "DeletionRequestService",
    "GateSnapshot",
    "GateState",
    "ProfileReconciler",
    "ProfileService",
    "QuestionnaireService",
]
