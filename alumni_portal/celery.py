from celery import Celery
from celery.signals import task_failure
import rollbar

from alumni_portal.config import SETTINGS


def celery_base_data_hook(request, data):
    data["framework"] = "celery"


rollbar.BASE_DATA_HOOK = celery_base_data_hook


@task_failure.connect
def handle_task_failure(**kw):
    rollbar.report_exc_info(extra_data=kw)


def make_celery(app):
    celery = Celery(
        app.import_name,
        backend=app.config["result_backend"],
        broker=app.config["broker_url"],
    )
    celery.conf.update(app.config)

    celery.conf.task_routes = {
        "alumni_portal.tasks.deletion_processing.process_deletion_requests": {
            "queue": "default"
        },
    }

    # Periodic deletion batch, only when an interval is configured
    beat_schedule = {}
    interval = SETTINGS.get("DELETION_BATCH_INTERVAL")
    if interval:
        beat_schedule["process-deletion-requests"] = {
            "task": "alumni_portal.tasks.deletion_processing.process_deletion_requests",
            "schedule": float(interval),
            "options": {"queue": "default"},
        }
    celery.conf.beat_schedule = beat_schedule
    celery.conf.timezone = "UTC"

    task_base = celery.Task

    class ContextTask(task_base):
        abstract = True

        def __call__(self, *args, **kwargs):
            with app.app_context():
                return task_base.__call__(self, *args, **kwargs)

    celery.Task = ContextTask
    return celery
