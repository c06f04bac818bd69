import pytest
from fastapi.testclient import TestClient

from app.api import create_app
from app.data.redis_client import RedisResource
from app.repos.product_repo import ProductRepo
from tests.fakes import FakeRedis


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def repo(fake_redis: FakeRedis) -> ProductRepo:
    return ProductRepo(fake_redis)


@pytest.fixture
def client(fake_redis: FakeRedis):
    app = create_app(RedisResource(client=fake_redis))
    with TestClient(app) as c:
        yield c

