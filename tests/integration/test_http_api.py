"""
Integration tests for the HTTP API.

Runs the FastAPI app against a temporary SQLite store.

Tests cover:
- The create / list / patch / delete round trip
- Descriptor header handling (missing, malformed, reserved fields)
- Bracket-notation filters and pagination metadata
- Error responses and 204 for missing targets
- Body errors only after the descriptor is resolved
"""

import json
import tempfile

import pytest
from fastapi.testclient import TestClient

from dbaas.docdb_server.api import Settings, create_app
from dbaas.docdb_server.config import ServerConfig, StorageConfig
from dbaas.docdb_server.schema import reset_collection_cache
from dbaas.docdb_server.store import generate_id

PEOPLE = {"name": "people", "properties": {"name": "string", "age": "number"}}
HEADERS = {"x-docdb-schema": json.dumps(PEOPLE)}
POSTS = {"name": "posts", "properties": {"tags": {"type": "array", "items": "string"}}}


class TestHttpApi:
    """Tests for the document routes."""

    @pytest.fixture
    def data_dir(self):
        """Create temporary data directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield tmpdir

    @pytest.fixture
    def client(self, data_dir):
        """Create test client with lifespan running."""
        reset_collection_cache()
        config = ServerConfig(storage=StorageConfig(data_dir=data_dir, wal_mode=False))
        app = create_app(settings=Settings(), config=config)
        with TestClient(app) as client:
            yield client
        reset_collection_cache()

    def create(self, client, **form):
        response = client.post("/", json=form, headers=HEADERS)
        assert response.status_code == 200
        return response.json()

    def test_crud_round_trip(self, client):
        """Create, list, patch, delete, then read back nothing."""
        created = self.create(client, name="foo", age=3)
        assert created["version"] == 0
        assert "_id" not in created

        listed = client.get("/", params={"age": "3"}, headers=HEADERS).json()
        assert listed["meta"]["total"] == 1
        assert listed["data"][0]["id"] == created["id"]

        patched = client.patch(
            f"/{created['id']}", json={"set": {"age": 4}, "inc": {"x": 1}}, headers=HEADERS
        )
        assert patched.status_code == 200
        assert patched.json()["version"] == 1
        assert patched.json()["age"] == 4
        assert patched.json()["updatedAt"] != patched.json()["createdAt"]

        deleted = client.delete(f"/{created['id']}", headers=HEADERS)
        assert deleted.status_code == 200
        assert deleted.json()["id"] == created["id"]

        after = client.get(f"/{created['id']}", headers=HEADERS).json()
        assert after["data"] == []
        assert after["meta"]["total"] == 0

    def test_missing_descriptor(self, client):
        """Requests without a descriptor are 404 and touch nothing."""
        assert client.get("/").status_code == 404
        assert client.post("/", json={"name": "foo"}).status_code == 404
        assert client.get("/health").json()["collections"] == {}

    def test_missing_descriptor_before_body(self, client):
        """A missing descriptor is 404 even when the body is unreadable."""
        target = f"/{generate_id()}"
        bad = {"content": "{not json", "headers": {"content-type": "application/json"}}

        assert client.post("/", **bad).status_code == 404
        assert client.put(target, **bad).status_code == 404
        assert client.patch(target, **bad).status_code == 404
        assert client.patch(target, json={"set": "oops"}).status_code == 404

    def test_malformed_body(self, client):
        """With a descriptor, bodies that are not JSON objects are 422."""
        created = self.create(client, name="foo")
        headers = {**HEADERS, "content-type": "application/json"}

        assert client.post("/", content="{not json", headers=headers).status_code == 422
        assert client.post("/", content="[1, 2]", headers=headers).status_code == 422
        response = client.patch(f"/{created['id']}", json={"set": "oops"}, headers=HEADERS)
        assert response.status_code == 422

    def test_malformed_descriptor(self, client):
        """Unparseable descriptors are treated as missing."""
        response = client.get("/", headers={"x-docdb-schema": "{not json"})
        assert response.status_code == 404

    def test_reserved_field_descriptor(self, client):
        """Reserved top-level fields are a server error."""
        headers = {"x-docdb-schema": json.dumps({"name": "people", "properties": {"page": "number"}})}

        response = client.post("/", json={"page": 1}, headers=headers)

        assert response.status_code == 500
        assert response.json()["error_code"] == "SCHEMA_CONFIGURATION_ERROR"
        assert client.get("/health").json()["collections"] == {}

    def test_operator_filter(self, client):
        """age[$lt]=100 filters numerically."""
        self.create(client, name="young", age=3)
        self.create(client, name="old", age=120)

        response = client.get("/", params={"age[$lt]": "100"}, headers=HEADERS)

        assert [doc["name"] for doc in response.json()["data"]] == ["young"]

    def test_sort_and_pagination(self, client):
        """skip=1&limit=1 of three documents is page 2 of 3."""
        for age in (1, 2, 3):
            self.create(client, name=f"p{age}", age=age)

        response = client.get(
            "/", params={"skip": "1", "limit": "1", "sort[age]": "-1"}, headers=HEADERS
        )

        body = response.json()
        assert [doc["age"] for doc in body["data"]] == [2]
        assert body["meta"] == {"skip": 1, "limit": 1, "total": 3, "page": 2, "npage": 3}

    def test_replace(self, client):
        """PUT replaces the document and resets the version."""
        created = self.create(client, name="foo", age=3)
        client.patch(f"/{created['id']}", json={"set": {"age": 4}}, headers=HEADERS)

        response = client.put(f"/{created['id']}", json={"name": "bar"}, headers=HEADERS)

        assert response.status_code == 200
        assert response.json()["version"] == 0
        assert response.json()["name"] == "bar"
        assert "age" not in response.json()

    def test_missing_targets_are_no_content(self, client):
        """Write verbs on a missing document answer 204."""
        missing = generate_id()
        assert client.put(f"/{missing}", json={"name": "x"}, headers=HEADERS).status_code == 204
        assert client.patch(f"/{missing}", json={"set": {"age": 1}}, headers=HEADERS).status_code == 204
        assert client.delete(f"/{missing}", headers=HEADERS).status_code == 204

    def test_invalid_identity(self, client):
        """Unparsable identities are 400."""
        response = client.get("/not-an-id", headers=HEADERS)
        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_ID"

    def test_validation_error(self, client):
        """Schema violations are 400 with details."""
        response = client.post("/", json={"name": "foo", "age": "old"}, headers=HEADERS)

        assert response.status_code == 400
        body = response.json()
        assert body["error_code"] == "VALIDATION_ERROR"
        assert body["details"]["errors"]

    def test_invalid_sort(self, client):
        """Unknown sort directions are 400."""
        response = client.get("/", params={"sort[age]": "sideways"}, headers=HEADERS)
        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_QUERY"

    def test_invalid_regex(self, client):
        """A malformed $regex is 400 naming the parameter."""
        self.create(client, name="foo")

        response = client.get("/", params={"name[$regex]": "("}, headers=HEADERS)

        assert response.status_code == 400
        body = response.json()
        assert body["error_code"] == "INVALID_QUERY"
        assert body["details"]["parameter"] == "name[$regex]"

    def test_patch_array_path(self, client):
        """Dotted paths that do not fit an array are 400, not a crash."""
        headers = {"x-docdb-schema": json.dumps(POSTS)}
        created = client.post("/", json={"tags": ["a"]}, headers=headers).json()

        response = client.patch(
            f"/{created['id']}", json={"set": {"tags.foo": "y"}}, headers=headers
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_ERROR"
        assert client.get(f"/{created['id']}", headers=headers).json()["data"][0]["tags"] == ["a"]

    def test_health(self, client):
        """Health reports per-collection counts."""
        self.create(client, name="foo")
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["collections"] == {"people": 1}


class TestCustomHeader:
    """Tests for a configured descriptor header."""

    @pytest.fixture
    def client(self):
        """Create test client reading descriptors from x-schema."""
        reset_collection_cache()
        with tempfile.TemporaryDirectory() as tmpdir:
            config = ServerConfig(storage=StorageConfig(data_dir=tmpdir, wal_mode=False))
            app = create_app(settings=Settings(schema_header="x-schema"), config=config)
            with TestClient(app) as client:
                yield client
        reset_collection_cache()

    def test_configured_header(self, client):
        """Only the configured header is read."""
        body = json.dumps(PEOPLE)
        assert client.get("/", headers={"x-docdb-schema": body}).status_code == 404
        assert client.get("/", headers={"x-schema": body}).status_code == 200
