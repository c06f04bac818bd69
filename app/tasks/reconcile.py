# app/tasks/reconcile.py
from app.celery_worker import celery_app
from app.data.redis_client import RedisResource
from app.repos.product_repo import ProductRepo
from app.utils.logging import get_logger

logger = get_logger(__name__)


@celery_app.task(name="app.tasks.reconcile.reconcile_catalog_task")
def reconcile_catalog_task(resource: RedisResource | None = None):
    """Periodic repair of the product index structures (id list, names, counter)."""
    logger.info("Catalog reconcile task started")

    resource = resource or RedisResource()
    resource.connect()
    try:
        return ProductRepo(resource.acquire()).reconcile()
    finally:
        resource.disconnect()
