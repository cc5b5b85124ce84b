"""
Integration tests for the products API.

The application runs in-process behind httpx; the database is replaced by an
in-memory repository and the cache by the in-process store.
"""

from decimal import Decimal
from uuid import uuid4

import httpx
import pytest

from cacheaside.api.dependencies import get_product_repository
from cacheaside.domain.cache.value_objects import CacheKey
from cacheaside.infrastructure.repositories.memory_cache_store import MemoryCacheStore
from cacheaside.main import app
from cacheaside.services.cache.coordinator import CacheAsideCoordinator

pytestmark = pytest.mark.integration


@pytest.fixture
def cache_store():
    return MemoryCacheStore(size_limit=64)


@pytest.fixture
async def api_client(product_repository, cache_store):
    """HTTP client against the app with test dependencies."""
    app.state.cache_coordinator = CacheAsideCoordinator(cache_store)
    app.dependency_overrides[get_product_repository] = lambda: product_repository

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


class TestProductsApi:
    """End-to-end behaviour of the product endpoints."""

    @pytest.mark.asyncio
    async def test_update_then_read_returns_new_price(
        self, api_client, product_repository
    ):
        """A read after an update never returns the old price."""
        product = product_repository.seed("P1", "10.00")

        response = await api_client.get(f"/products/{product.id}")
        assert response.status_code == 200
        assert Decimal(response.json()["price"]) == Decimal("10")

        # Change the row behind the cache's back: the cached copy is served.
        product.price = Decimal("11.00")
        response = await api_client.get(f"/products/{product.id}")
        assert Decimal(response.json()["price"]) == Decimal("10")

        response = await api_client.put(
            f"/products/{product.id}", json={"name": "P1", "price": "12.00"}
        )
        assert response.status_code == 200
        assert Decimal(response.json()["price"]) == Decimal("12")

        response = await api_client.get(f"/products/{product.id}")
        assert Decimal(response.json()["price"]) == Decimal("12")

    @pytest.mark.asyncio
    async def test_bypass_cache_reads_repository(self, api_client, product_repository):
        """bypass_cache=true skips the cached copy."""
        product = product_repository.seed("P1", "10.00")
        await api_client.get(f"/products/{product.id}")

        product.price = Decimal("11.00")
        response = await api_client.get(
            f"/products/{product.id}", params={"bypass_cache": "true"}
        )

        assert Decimal(response.json()["price"]) == Decimal("11")

    @pytest.mark.asyncio
    async def test_create_returns_location(self, api_client, cache_store):
        """Created products are returned with a Location header."""
        await api_client.get("/products")
        assert await cache_store.get(CacheKey("products")) is not None

        response = await api_client.post(
            "/products", json={"name": "Tea", "description": "Green", "price": "4.50"}
        )

        assert response.status_code == 201
        body = response.json()
        assert response.headers["location"].endswith(f"/products/{body['id']}")
        assert await cache_store.get(CacheKey("products")) is None

        listed = (await api_client.get("/products")).json()
        assert [p["id"] for p in listed] == [body["id"]]

    @pytest.mark.asyncio
    async def test_list_with_filters(self, api_client, product_repository):
        """Search, sort and paging are passed through."""
        product_repository.seed("Green tea", "4.00")
        product_repository.seed("Black tea", "3.00")
        product_repository.seed("Cup", "7.00")

        response = await api_client.get(
            "/products",
            params={"search": "tea", "sort_by": "price desc", "page": 1, "page_size": 1},
        )

        assert response.status_code == 200
        assert [p["name"] for p in response.json()] == ["Green tea"]

    @pytest.mark.asyncio
    async def test_long_search_is_served(self, api_client, product_repository):
        """A long non-ASCII search term returns the list, not a server error."""
        product_repository.seed("\u00e9" * 150, "4.00")

        response = await api_client.get("/products", params={"search": "\u00e9" * 150})

        assert response.status_code == 200
        assert len(response.json()) == 1

    @pytest.mark.asyncio
    async def test_missing_product_is_problem_details(self, api_client):
        """Unknown products return 404 problem details."""
        missing_id = uuid4()

        response = await api_client.get(
            f"/products/{missing_id}", headers={"x-correlation-id": "test-correlation-1"}
        )

        assert response.status_code == 404
        assert response.headers["content-type"].startswith("application/problem+json")
        body = response.json()
        assert body["type"] == "PRODUCT_NOT_FOUND"
        assert body["status"] == 404
        assert body["detail"] == f"The product with the ID {missing_id} is not found."
        assert body["correlation_id"] == "test-correlation-1"
        assert response.headers["x-correlation-id"] == "test-correlation-1"

    @pytest.mark.asyncio
    async def test_update_missing_product(self, api_client):
        """Updating an unknown product returns 404."""
        response = await api_client.put(
            f"/products/{uuid4()}", json={"name": "X", "price": "1.00"}
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_product(self, api_client, product_repository):
        """Deleted products are gone, cached or not."""
        product = product_repository.seed("P1", "10.00")
        await api_client.get(f"/products/{product.id}")

        response = await api_client.delete(f"/products/{product.id}")
        assert response.status_code == 204

        response = await api_client.get(f"/products/{product.id}")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_invalid_payload_rejected(self, api_client):
        """Negative prices fail validation."""
        response = await api_client.post("/products", json={"name": "X", "price": "-1"})
        assert response.status_code == 422


class TestHealthApi:
    """Health endpoints."""

    @pytest.mark.asyncio
    async def test_health(self, api_client):
        """Liveness reports healthy."""
        response = await api_client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_cache_health_reports_statistics(self, api_client, product_repository):
        """The cache report counts hits and misses."""
        product = product_repository.seed("P1", "10.00")
        await api_client.get(f"/products/{product.id}")
        await api_client.get(f"/products/{product.id}")

        response = await api_client.get("/health/cache")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["statistics"]["hits"] == 1
        assert body["statistics"]["misses"] == 1
        assert body["store"]["backend"] == "memory"
