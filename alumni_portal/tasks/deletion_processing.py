"""ACCOUNT DELETION PROCESSING TASKS"""

import logging

from celery import Task
from flask import current_app
import rollbar

logger = logging.getLogger(__name__)


class DeletionProcessingTask(Task):
    """Base task for processing approved account deletions"""

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        logger.error(f"Deletion processing task failed: {exc}")
        rollbar.report_exc_info()


# Import celery after other imports to avoid circular dependency
from alumni_portal import celery  # noqa: E402


def run_deletion_batch():
    """Build service-role stores and process every approved request."""
    from alumni_portal.services.deletion_batch_service import DeletionBatchService

    backend = current_app.config["SERVICE_BACKEND_FACTORY"]()
    return DeletionBatchService(backend.admin_auth, backend.profile_store).run()


@celery.task(base=DeletionProcessingTask, bind=True)
def process_deletion_requests(self):
    """Celery task deleting the accounts of approved deletion requests"""
    logger.info("[TASK]: Starting deletion request processing")

    # Import here to get the app instance
    from alumni_portal import app

    with app.app_context():
        try:
            result = run_deletion_batch()
            logger.info(f"[TASK]: Processed {result['processed']} deletion requests")
            return result
        except Exception as error:
            logger.error(f"[TASK]: Error processing deletion requests: {str(error)}")
            raise self.retry(exc=error, countdown=60, max_retries=3) from error
