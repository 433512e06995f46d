"""TASKS MODULE"""

# Import tasks to ensure they are registered with Celery
from alumni_portal.tasks import deletion_processing  # noqa: F401
