"""HTTP-level tests: routing, status codes, envelopes and headers."""

import importlib
import uuid
from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from app.api import create_app
from app.api.routers.health import format_uptime
from app.data.redis_client import RedisResource
from app.repos.product_repo import PRODUCT_COUNTER_KEY, product_key
from app.utils import settings
from tests.fakes import product_fields


def _create(client, **overrides) -> dict:
    response = client.post("/products", json=product_fields(**overrides))
    assert response.status_code == 201, response.text
    return response.json()["data"]


# ── Product lifecycle ────────────────────────────────────────────────────────


class TestLifecycle:

    def test_create_get_patch_delete(self, client):
        response = client.post("/products", json=product_fields())
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Product created"
        product = body["data"]
        assert product["name"] == "Widget"
        assert product["price"] == 19.99
        assert product["qty"] == 3
        assert product["createdAt"] == product["updatedAt"]

        response = client.get(f"/products/{product['id']}")
        assert response.status_code == 200
        assert response.json()["data"] == product

        response = client.patch(f"/products/{product['id']}", json={"price": 24.50})
        assert response.status_code == 200
        patched = response.json()["data"]
        assert patched["price"] == 24.5
        assert patched["qty"] == 3
        assert patched["name"] == "Widget"
        assert response.json()["message"] == "Product updated"
        assert datetime.fromisoformat(patched["updatedAt"]) >= datetime.fromisoformat(patched["createdAt"])

        response = client.delete(f"/products/{product['id']}")
        assert response.status_code == 204
        assert response.content == b""

        response = client.get(f"/products/{product['id']}")
        assert response.status_code == 404
        assert response.json()["error"] == "NotFoundError"

    def test_put_replaces_every_field(self, client):
        product = _create(client)
        response = client.put(f"/products/{product['id']}", json={
            "name": "Gadget",
            "description": "A gadget with a longer description",
            "price": 5,
            "qty": 0,
        })
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["name"] == "Gadget"
        assert data["qty"] == 0
        assert data["createdAt"] == product["createdAt"]

    def test_put_requires_every_field(self, client):
        product = _create(client)
        response = client.put(f"/products/{product['id']}", json={"name": "Gadget"})
        assert response.status_code == 400
        fields = [e["field"] for e in response.json()["details"]["validationErrors"]]
        assert fields == ["description", "price", "qty"]

    def test_duplicate_name_is_conflict(self, client):
        original = _create(client)
        response = client.post("/products", json=product_fields(price=1))
        assert response.status_code == 409
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "ConflictError"
        assert body["details"]["existingProductId"] == original["id"]

    def test_rename_to_existing_name_is_conflict(self, client):
        _create(client, name="Widget")
        gadget = _create(client, name="Gadget")
        response = client.patch(f"/products/{gadget['id']}", json={"name": "Widget"})
        assert response.status_code == 409

    def test_name_of_lost_record_can_be_reused(self, client, fake_redis):
        lost = _create(client)
        fake_redis.delete(product_key(lost["id"]))
        assert client.delete(f"/products/{lost['id']}").status_code == 404

        response = client.post("/products", json=product_fields())

        assert response.status_code == 201
        assert response.json()["data"]["id"] != lost["id"]

    def test_missing_product(self, client):
        missing = str(uuid.uuid4())
        for method in ("get", "delete"):
            response = getattr(client, method)(f"/products/{missing}")
            assert response.status_code == 404
            assert response.json()["details"] == {"resource": "Product", "id": missing}

        response = client.patch(f"/products/{missing}", json={"qty": 1})
        assert response.status_code == 404


# ── Validation failures ──────────────────────────────────────────────────────


class TestValidation:

    def test_invalid_body(self, client):
        response = client.post("/products", json={"name": "A", "price": 0})
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "ValidationError"
        assert body["message"].startswith("Validation failed:")
        fields = [e["field"] for e in body["details"]["validationErrors"]]
        assert fields == ["name", "description", "price", "qty"]

    def test_malformed_json(self, client):
        response = client.post(
            "/products",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400

    def test_empty_patch(self, client):
        product = _create(client)
        response = client.patch(f"/products/{product['id']}", json={})
        assert response.status_code == 400
        assert "At least one field" in response.json()["message"]

    def test_null_in_patch(self, client):
        product = _create(client)
        response = client.patch(f"/products/{product['id']}", json={"name": None})
        assert response.status_code == 400

    @pytest.mark.parametrize("product_id", ["not-a-uuid", "12345", str(uuid.uuid1())])
    def test_bad_product_id(self, client, product_id):
        response = client.get(f"/products/{product_id}")
        assert response.status_code == 400
        assert response.json()["details"]["validationErrors"][0]["field"] == "product_id"

    def test_min_price_above_max_price(self, client, fake_redis):
        fake_redis.commands.clear()

        response = client.get("/products", params={"minPrice": 50, "maxPrice": 10})

        assert response.status_code == 400
        errors = response.json()["details"]["validationErrors"]
        assert errors[0]["message"] == "minPrice must be less than maxPrice"
        # rejected before any store access
        assert fake_redis.commands == []

    @pytest.mark.parametrize("params", [{"page": 0}, {"limit": 101}, {"limit": "many"}])
    def test_bad_pagination(self, client, params):
        response = client.get("/products", params=params)
        assert response.status_code == 400


# ── Listing ──────────────────────────────────────────────────────────────────


class TestList:

    def test_pagination_headers_and_meta(self, client):
        for i in range(5):
            _create(client, name=f"Product {i}")

        response = client.get("/products", params={"page": 2, "limit": 2})

        assert response.status_code == 200
        assert response.headers["X-Total-Count"] == "5"
        assert response.headers["X-Page"] == "2"
        assert response.headers["X-Total-Pages"] == "3"
        body = response.json()
        assert [p["name"] for p in body["data"]] == ["Product 2", "Product 3"]
        assert body["pagination"] == {
            "page": 2,
            "limit": 2,
            "total": 5,
            "totalPages": 3,
            "hasNext": True,
            "hasPrev": True,
        }
        assert body["filters"] == {}

    def test_defaults(self, client):
        _create(client)
        body = client.get("/products").json()
        assert body["pagination"]["page"] == 1
        assert body["pagination"]["limit"] == 10

    def test_filters_are_applied_and_echoed(self, client):
        _create(client, name="Blue Widget", price=10)
        _create(client, name="Red Widget", price=30)
        _create(client, name="Gadget", price=20)

        response = client.get("/products", params={"name": "widget", "minPrice": "15"})

        body = response.json()
        assert [p["name"] for p in body["data"]] == ["Red Widget"]
        assert body["pagination"]["total"] == 1
        assert body["filters"] == {"name": "widget", "minPrice": 15.0}

    def test_snake_case_filter_names_are_ignored(self, client):
        _create(client, name="Cheap", price=5)
        _create(client, name="Pricey", price=500)

        body = client.get("/products", params={"min_price": "100", "max_price": "200"}).json()

        assert body["pagination"]["total"] == 2
        assert body["filters"] == {}

    def test_stats(self, client):
        _create(client, name="One")
        _create(client, name="Two")

        response = client.get("/products/stats")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["totalProducts"] == 2
        datetime.fromisoformat(body["data"]["timestamp"])


# ── Errors, correlation ids and health ───────────────────────────────────────


class TestEnvelope:

    def test_correlation_id_is_echoed(self, client):
        response = client.get("/products", headers={"X-Correlation-ID": "abc-123"})
        assert response.headers["X-Correlation-ID"] == "abc-123"

    def test_correlation_id_is_generated(self, client):
        response = client.get("/health")
        assert response.headers["X-Correlation-ID"].startswith("req-")

    def test_error_body_carries_correlation_id(self, client):
        response = client.get(
            f"/products/{uuid.uuid4()}",
            headers={"X-Correlation-ID": "trace-me"},
        )
        assert response.json()["correlationId"] == "trace-me"
        assert response.headers["X-Correlation-ID"] == "trace-me"

    def test_unknown_route(self, client):
        response = client.get("/nowhere")
        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "NotFoundError"
        assert "GET /nowhere" in body["message"]

    def test_method_not_allowed(self, client):
        response = client.post("/health")
        assert response.status_code == 405
        assert response.json()["error"] == "HttpError"

    def test_default_config_is_not_development(self, monkeypatch):
        monkeypatch.delenv("APP_ENV", raising=False)
        try:
            importlib.reload(settings)
            assert settings.APP_ENV == "production"
            assert settings.IS_DEVELOPMENT is False
        finally:
            monkeypatch.undo()
            importlib.reload(settings)

    def test_unexpected_error_hides_details_by_default(self, fake_redis, monkeypatch):
        def broken_get(name):
            raise RuntimeError("boom")

        monkeypatch.setattr(fake_redis, "get", broken_get)
        app = create_app(RedisResource(client=fake_redis))

        with TestClient(app, raise_server_exceptions=False) as client:
            response = client.get("/products/stats")

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "InternalServerError"
        assert "details" not in body
        assert "boom" not in response.text

    def test_storage_failure_hides_details_outside_development(self, client, fake_redis, monkeypatch):
        monkeypatch.setattr("app.api.errors.IS_DEVELOPMENT", False)
        fake_redis.fail_on.add("lrange")

        response = client.get("/products")

        assert response.status_code == 503
        body = response.json()
        assert body["error"] == "StorageError"
        assert "details" not in body

    def test_storage_failure_details_in_development(self, client, fake_redis, monkeypatch):
        monkeypatch.setattr("app.api.errors.IS_DEVELOPMENT", True)
        fake_redis.fail_on.add("hget")

        response = client.post("/products", json=product_fields())

        assert response.status_code == 503
        assert response.json()["details"]["operation"] == "create"

    def test_malformed_counter_is_storage_error(self, client, fake_redis):
        fake_redis.set(PRODUCT_COUNTER_KEY, "garbage")
        assert client.get("/products/stats").status_code == 503


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["uptime"]["seconds"] >= 0
        assert isinstance(body["uptime"]["human"], str)
        assert body["memory"]["maxRss"].endswith(" MB")
        assert body["responseTime"].endswith("ms")
        for key in ("version", "pythonVersion", "environment"):
            assert key in body

    def test_redis_health(self, client):
        response = client.get("/health/redis")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["responseTime"].endswith("ms")
        assert body["redis"]["connected"] is True
        assert body["redis"]["version"] == "7.2.4"
        assert body["redis"]["memory"] == {"used": "1.20M", "peak": "1.50M"}

    def test_redis_down(self, client, fake_redis):
        fake_redis.fail_on.add("ping")
        response = client.get("/health/redis")
        assert response.status_code == 503
        body = response.json()
        assert body["status"] == "unhealthy"
        assert body["error"] == "Redis connection failed"
        assert body["redis"] == {"connected": False}

    def test_detailed(self, client):
        _create(client)

        response = client.get("/health/detailed")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        api = body["services"]["api"]
        assert api["status"] == "healthy"
        assert api["uptime"]["seconds"] >= 0
        assert "maxRss" in api["memory"]
        redis_status = body["services"]["redis"]
        assert redis_status["connected"] is True
        assert redis_status["info"]["clients"] == {"connected": 2, "blocked": 0}
        assert redis_status["info"]["keyspace"]["keys"] > 0

    def test_detailed_degraded_without_redis(self, client, fake_redis):
        fake_redis.fail_on.add("ping")

        response = client.get("/health/detailed")

        assert response.status_code == 503
        body = response.json()
        assert body["status"] == "degraded"
        assert body["services"]["api"]["status"] == "healthy"
        assert body["services"]["redis"] == {"status": "unhealthy", "connected": False, "info": None}


@pytest.mark.parametrize("seconds,expected", [
    (0, "0s"),
    (59, "59s"),
    (3600, "1h"),
    (90061, "1d 1h 1m 1s"),
])
def test_format_uptime(seconds, expected):
    assert format_uptime(seconds) == expected
