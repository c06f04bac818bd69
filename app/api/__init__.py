# app/api/__init__.py
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.api.errors import register_error_handlers
from app.api.routers import products
from app.api.routers.health import router as health_router
from app.data.redis_client import RedisResource, redis_resource
from app.data.seed import seed
from app.repos.product_repo import ProductRepo
from app.utils.logging import get_logger
from app.utils.settings import APP_VERSION, SEED_ON_STARTUP

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    resource: RedisResource = app.state.redis
    resource.connect()

    if SEED_ON_STARTUP:
        seed(ProductRepo(resource.acquire()))

    yield

    resource.disconnect()


def create_app(resource: RedisResource | None = None) -> FastAPI:
    app = FastAPI(
        title="Product Catalog API",
        version=APP_VERSION,
        lifespan=lifespan,
    )
    app.state.redis = resource or redis_resource

    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(products.router)
    return app
