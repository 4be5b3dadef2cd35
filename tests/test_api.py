"""
HTTP API tests using the FastAPI test client with an in-memory store.
"""

from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from itemstore.api.main import app, get_embedder_dep, get_store_dep
from itemstore.core.config import EmbeddingConfig
from itemstore.core.errors import StoreUnavailableError
from itemstore.core.store import InMemoryKeyValueStore
from itemstore.vector.embeddings import EmbeddingProvider


class BrokenStore(InMemoryKeyValueStore):
    def get(self, key):
        raise StoreUnavailableError("connection refused")

    def ping(self):
        return False


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


@pytest.fixture
def client(store):
    embedder = EmbeddingProvider(EmbeddingConfig())
    app.dependency_overrides[get_store_dep] = lambda: store
    app.dependency_overrides[get_embedder_dep] = lambda: embedder
    yield TestClient(app)
    app.dependency_overrides.clear()


def _add(client, title="Redis Guide", content="Learn about caching", **extra):
    response = client.post("/api/add-item", json={"title": title, "content": content, **extra})
    assert response.status_code == 201
    return response.json()


class TestHello:

    @pytest.mark.parametrize("path", ["/api/hello", "/functions/hello", "/hello"])
    def test_hello_on_every_prefix(self, client, path):
        response = client.get(path)
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["status"] == "success"
        assert "timestamp" in data

    def test_function_listing(self, client):
        data = client.get("/").json()
        assert "vector-search" in data["availableFunctions"]
        assert client.get("/api").json()["availableFunctions"] == data["availableFunctions"]


class TestItems:

    def test_add_item(self, client):
        data = _add(client, category="Databases")

        assert data["success"] is True
        assert data["itemId"].startswith("item:")
        item = data["item"]
        assert item["id"] == data["itemId"]
        assert item["category"] == "Databases"
        assert item["createdAt"] == item["updatedAt"]
        assert "combinedEmbedding" not in item
        assert data["embeddingFallback"] is True

    def test_add_item_default_category(self, client):
        assert _add(client)["item"]["category"] == "General"

    @pytest.mark.parametrize("body", [{"title": "", "content": "c"}, {"content": "c"}, {"title": "t"}])
    def test_add_item_validation(self, client, body):
        response = client.post("/api/add-item", json=body)
        assert response.status_code == 400
        assert response.json()["success"] is False
        assert response.json()["retryable"] is False

    def test_add_item_rejects_bad_ttl(self, client):
        response = client.post("/api/add-item", json={"title": "t", "content": "c", "ttlSeconds": 0})
        assert response.status_code == 400

    def test_get_item_by_query_and_body(self, client):
        item_id = _add(client)["itemId"]

        by_query = client.get("/api/get-item", params={"id": item_id})
        by_body = client.post("/api/get-item", json={"id": item_id})

        assert by_query.status_code == 200
        assert by_query.json()["item"]["title"] == "Redis Guide"
        assert by_body.json()["item"] == by_query.json()["item"]

    def test_get_item_not_found(self, client):
        response = client.get("/api/get-item", params={"id": "item:0:missing00"})
        assert response.status_code == 404
        assert response.json()["success"] is False

    def test_get_item_requires_id(self, client):
        assert client.get("/api/get-item").status_code == 400

    def test_delete_item(self, client):
        item_id = _add(client, category="Databases")["itemId"]

        response = client.delete("/api/delete-item", params={"id": item_id})
        assert response.status_code == 200
        assert response.json()["deletedItem"] == {
            "id": item_id,
            "title": "Redis Guide",
            "content": "Learn about caching",
            "category": "Databases",
        }

        again = client.post("/api/delete-item", json={"id": item_id})
        assert again.status_code == 404
        assert client.get("/api/get-item", params={"id": item_id}).status_code == 404


class TestSearch:

    def test_lexical_search(self, client):
        _add(client, category="Databases")
        _add(client, title="Other", content="Unrelated")

        response = client.get("/api/search-items", params={"query": "caching"})
        data = response.json()

        assert response.status_code == 200
        assert data["totalCount"] == 1
        assert data["items"][0]["relevanceScore"] == 0.7

    def test_lexical_search_post_with_category(self, client):
        _add(client, category="Databases")
        _add(client, title="Redis Queue", content="jobs", category="Queues")

        data = client.post("/api/search-items", json={"query": "redis", "category": "Queues"}).json()
        assert [i["title"] for i in data["items"]] == ["Redis Queue"]

    def test_lexical_search_invalid_limit(self, client):
        assert client.get("/api/search-items", params={"limit": 0}).status_code == 400

    def test_vector_search(self, client):
        for i in range(4):
            _add(client, title=f"Doc {i}", content=f"body {i}")

        response = client.post("/api/vector-search", json={"query": "body 2", "limit": 2})
        data = response.json()

        assert response.status_code == 200
        assert data["field"] == "combined"
        assert data["totalCount"] == 2
        scores = [i["relevanceScore"] for i in data["items"]]
        assert scores == sorted(scores, reverse=True)
        assert all(-1.0 <= s <= 1.0 for s in scores)

    @pytest.mark.parametrize("body", [{}, {"query": ""}, {"query": "q", "limit": 0}, {"query": "q", "field": "summary"}])
    def test_vector_search_validation(self, client, body):
        assert client.post("/api/vector-search", json=body).status_code == 400


class TestIndexAndHealth:

    def test_init_index(self, client):
        first = client.post("/api/init-index")
        assert first.status_code == 201
        assert first.json()["created"] is True
        assert first.json()["indexExists"] is False

        second = client.post("/functions/init-index")
        assert second.status_code == 200
        assert second.json()["indexExists"] is True

    def test_health(self, client):
        data = client.get("/health").json()
        assert data["status"] == "healthy"
        assert data["store_health"] is True
        assert data["index_exists"] is False

        client.post("/api/init-index")
        assert client.get("/health").json()["index_exists"] is True


class TestMalformedEmbeddingService:

    def test_add_and_search_fall_back(self, store):
        embedder = EmbeddingProvider(EmbeddingConfig(providers=("http",), http_url="http://embed.local/v1"))
        app.dependency_overrides[get_store_dep] = lambda: store
        app.dependency_overrides[get_embedder_dep] = lambda: embedder
        bad = MagicMock()
        bad.json.return_value = {"vector": ["x"] * 768}
        try:
            with patch("itemstore.vector.embeddings.requests.post", return_value=bad):
                client = TestClient(app)
                added = client.post("/api/add-item", json={"title": "t", "content": "c"})
                searched = client.post("/api/vector-search", json={"query": "t"})
        finally:
            app.dependency_overrides.clear()

        assert added.status_code == 201
        assert added.json()["embeddingFallback"] is True
        assert searched.status_code == 200
        assert searched.json()["totalCount"] == 1


class TestStoreUnavailable:

    @pytest.fixture
    def broken_client(self):
        embedder = EmbeddingProvider(EmbeddingConfig())
        app.dependency_overrides[get_store_dep] = lambda: BrokenStore()
        app.dependency_overrides[get_embedder_dep] = lambda: embedder
        yield TestClient(app)
        app.dependency_overrides.clear()

    def test_store_failure_is_retryable(self, broken_client):
        response = broken_client.get("/api/get-item", params={"id": "item:0:abcdefghi"})
        assert response.status_code == 503
        assert response.json()["retryable"] is True

    def test_health_reports_unhealthy(self, broken_client):
        data = broken_client.get("/health").json()
        assert data["status"] == "unhealthy"
        assert data["index_exists"] is False

    def test_init_index_fails(self, broken_client):
        assert broken_client.post("/api/init-index").status_code == 503
