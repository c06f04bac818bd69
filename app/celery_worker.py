# app/celery_worker.py
from celery import Celery

from app.utils.settings import CELERY_BROKER_URL, CELERY_RESULT_BACKEND, RECONCILE_INTERVAL_SECONDS

celery_app = Celery(
    "catalog",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# tasks have to be imported explicitly for the worker to register them
celery_app.conf.imports = (
    "app.tasks.reconcile",
)

celery_app.conf.beat_schedule = {
    "reconcile-catalog": {
        "task": "app.tasks.reconcile.reconcile_catalog_task",
        "schedule": float(RECONCILE_INTERVAL_SECONDS),
    },
}

celery_app.conf.timezone = "UTC"
