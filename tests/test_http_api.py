"""Tests for the HTTP API — app factory and connection-flow endpoints.

Uses FastAPI's TestClient for synchronous request testing.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from netflow import __version__
from netflow.api.app import create_app
from netflow.api.routes.connection_flow import get_source
from netflow.sources import InMemorySource

PEOPLE = [
    {"id": "a", "name": "Ada", "location": "NYC"},
    {"id": "b", "name": "Bo", "location": "NYC"},
    {"id": "c", "name": "Cy", "location": "SF"},
]
RELATIONSHIPS = [
    {"fromId": "a", "toId": "b", "strength": 5},
    {"fromId": "b", "toId": "c", "strength": 9},
]


class _FailingSource:
    name = "broken"

    async def fetch(self, owner_id, depth=2):
        raise ConnectionError("store down")


class _RecordingSource(InMemorySource):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.calls: list[tuple[str, int]] = []

    async def fetch(self, owner_id, depth=2):
        self.calls.append((owner_id, depth))
        return await super().fetch(owner_id, depth)


@pytest.fixture
def app():
    return create_app(include_docs=True)


@pytest.fixture
def client(app):
    return TestClient(app)


class TestAppFactory:
    """Verify the app factory assembles routes correctly."""

    def test_creates_fastapi_app(self):
        assert create_app().title == "Netflow"

    def test_registers_routes(self):
        paths = {r.path for r in create_app().routes if hasattr(r, "path")}
        assert "/api/insights/connection-flow" in paths
        assert "/api/health" in paths

    def test_docs_disabled(self):
        paths = {r.path for r in create_app(include_docs=False).routes if hasattr(r, "path")}
        assert "/docs" not in paths
        assert "/openapi.json" not in paths


class TestHealthEndpoint:
    def test_health_check(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "version": __version__}


class TestGetConnectionFlow:
    def test_analyzes_stored_snapshot(self, app, client):
        source = _RecordingSource(PEOPLE, RELATIONSHIPS)
        app.dependency_overrides[get_source] = lambda: source

        resp = client.get(
            "/api/insights/connection-flow",
            params={"userId": "u-42", "depth": 3},
        )

        assert resp.status_code == 200
        data = resp.json()
        assert data["metrics"]["totalNodes"] == 3
        assert data["metrics"]["totalEdges"] == 2
        assert data["metrics"]["bridgeNodes"] == ["b", "c"]
        assert [c["name"] for c in data["clusters"]] == ["NYC", "SF"]
        assert all("x" in n and "y" in n for n in data["nodes"])
        assert source.calls == [("u-42", 3)]

    def test_defaults(self, app, client):
        source = _RecordingSource(PEOPLE, RELATIONSHIPS)
        app.dependency_overrides[get_source] = lambda: source

        resp = client.get("/api/insights/connection-flow")
        assert resp.status_code == 200
        assert source.calls == [("default-user", 2)]

    def test_min_strength_filters_edges(self, app, client):
        app.dependency_overrides[get_source] = lambda: InMemorySource(PEOPLE, RELATIONSHIPS)

        resp = client.get("/api/insights/connection-flow", params={"minStrength": 8})
        data = resp.json()
        assert data["metrics"]["totalEdges"] == 1
        assert data["edges"][0]["type"] == "strong"

    def test_seeded_layout_is_reproducible(self, app, client):
        app.dependency_overrides[get_source] = lambda: InMemorySource(PEOPLE, RELATIONSHIPS)

        params = {"seed": 13}
        first = client.get("/api/insights/connection-flow", params=params).json()
        second = client.get("/api/insights/connection-flow", params=params).json()
        assert [(n["x"], n["y"]) for n in first["nodes"]] == [
            (n["x"], n["y"]) for n in second["nodes"]
        ]

    def test_source_failure_returns_502(self, app, client):
        app.dependency_overrides[get_source] = lambda: _FailingSource()

        resp = client.get("/api/insights/connection-flow")
        assert resp.status_code == 502
        assert resp.json() == {"error": "Failed to analyze connection flow"}

    @pytest.mark.parametrize("params", [
        {"minStrength": 0},
        {"minStrength": 11},
        {"depth": 0},
        {"minStrength": "strong"},
    ])
    def test_invalid_params_rejected(self, app, client, params):
        app.dependency_overrides[get_source] = lambda: InMemorySource(PEOPLE, RELATIONSHIPS)

        resp = client.get("/api/insights/connection-flow", params=params)
        assert resp.status_code == 422


class TestPostConnectionFlow:
    def test_analyzes_posted_snapshot(self, client):
        resp = client.post("/api/insights/connection-flow", json={
            "people": PEOPLE,
            "relationships": RELATIONSHIPS,
            "seed": 3,
        })

        assert resp.status_code == 200
        data = resp.json()
        assert data["metrics"]["totalNodes"] == 3
        assert data["insights"][0].startswith("With 3 connections")
        assert set(data) == {
            "nodes", "edges", "clusters", "metrics", "patterns", "insights", "timestamp",
        }

    def test_layout_can_be_skipped(self, client):
        resp = client.post("/api/insights/connection-flow", json={
            "people": PEOPLE,
            "relationships": RELATIONSHIPS,
            "includeLayout": False,
        })
        assert all("x" not in n for n in resp.json()["nodes"])

    def test_empty_body(self, client):
        resp = client.post("/api/insights/connection-flow", json={})
        assert resp.status_code == 200
        assert resp.json()["nodes"] == []

    def test_strength_out_of_range_rejected(self, client):
        resp = client.post("/api/insights/connection-flow", json={
            "people": PEOPLE,
            "relationships": [{"fromId": "a", "toId": "b", "strength": 12}],
        })
        assert resp.status_code == 422

    def test_timestamps_accepted(self, client):
        resp = client.post("/api/insights/connection-flow", json={
            "people": [{"id": "a", "updatedAt": "2024-01-01T00:00:00Z"}, {"id": "b"}],
            "relationships": [
                {"fromId": "a", "toId": "b", "strength": 4, "createdAt": "2024-02-01T00:00:00Z"},
            ],
            "includeLayout": False,
        })
        assert resp.status_code == 200
        edge = resp.json()["edges"][0]
        assert edge["metadata"]["lastInteraction"].startswith("2024-02-01T00:00:00")
        assert resp.json()["nodes"][0]["name"] == "a"
