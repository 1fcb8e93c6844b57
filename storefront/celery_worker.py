# storefront/celery_worker.py
from celery import Celery

from storefront.utils.settings import CELERY_BROKER_URL, CELERY_RESULT_BACKEND

celery_app = Celery(
    "storefront",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# tasks live outside this module, list them so the worker registers them
celery_app.conf.imports = (
    "storefront.tasks.expire",
    "storefront.tasks.reserve",
    "storefront.services.notification_service",
)

celery_app.conf.beat_schedule = {
    "abandon-stale-carts-hourly": {
        "task": "storefront.tasks.expire.abandon_stale_carts_task",
        "schedule": 60.0 * 60,
    },
}

celery_app.conf.timezone = "UTC"
celery_app.conf.task_acks_late = True
