"""tests for the REST api."""

import json
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from voyageboard.api.server import create_app
from voyageboard.core.client import MockClient
from voyageboard.core.config import ApiConfig
from voyageboard.core.interaction import NEW_NODE_TITLE
from voyageboard.core.orchestrator import CONFIG_REQUIRED_MESSAGE
from voyageboard.core.state import AppState

FILL_REPLY = json.dumps({"steps": [
    {"title": "Capital Airport", "type": "transport", "cost": "¥50", "image_keyword": "airport"},
    {"title": "Forbidden City", "type": "location", "cost": "¥60", "image_keyword": "palace"},
]})
NEXT_REPLY = json.dumps({"title": "Jingshan Park", "type": "location", "cost": "¥2"})


@pytest.fixture
def state(temp_dir):
    client = MockClient({"user request": FILL_REPLY, "current stop": NEXT_REPLY}, delay=0)
    return AppState(data_dir=temp_dir, client=client, env_defaults=ApiConfig())


@pytest.fixture
def api(state):
    with TestClient(create_app(state)) as client:
        yield client


class TestBoard:
    """tests for board endpoints."""

    def test_health(self, api):
        assert api.get("/health").json() == {"status": "ok"}

    def test_seed_board(self, api):
        board = api.get("/board").json()
        assert [n["id"] for n in board["nodes"]] == ["1", "2"]
        assert board["connections"][0]["from_id"] == "1"
        assert board["connections"][0]["distance_km"] > 0
        assert board["pending"] == []
        assert board["transform"] == {"x": 0.0, "y": 0.0, "scale": 1.0}

    def test_create_node_in_viewport_center(self, api):
        node = api.post("/nodes", json={"type": "stay"}).json()
        assert (node["x"], node["y"]) == (500, 300)
        assert node["title"] == NEW_NODE_TITLE
        assert node["type"] == "stay"

    def test_create_node_at_position(self, api):
        node = api.post("/nodes", json={"type": "bogus", "x": 10, "y": 20, "title": "Lunch"}).json()
        assert (node["x"], node["y"], node["type"], node["title"]) == (10, 20, "note", "Lunch")

    def test_get_missing_node(self, api):
        assert api.get("/nodes/ghost").status_code == 404

    def test_patch(self, api):
        api.patch("/nodes/1", json={"title": "PEK", "weather": 2})
        node = api.get("/nodes/1").json()
        assert node["title"] == "PEK"
        assert node["weather"] == 2
        assert node["cost"] == "¥50"

    def test_patch_unknown_is_noop(self, api):
        response = api.patch("/nodes/ghost", json={"title": "x"})
        assert response.status_code == 200
        assert len(response.json()["nodes"]) == 2

    def test_delete_cascades(self, api):
        board = api.delete("/nodes/2").json()
        assert [n["id"] for n in board["nodes"]] == ["1"]
        assert board["connections"] == []

    def test_connections_are_unique(self, api):
        node = api.post("/nodes", json={"type": "note"}).json()
        api.post("/connections", json={"from_id": "2", "to_id": "1"})
        api.post("/connections", json={"from_id": node["id"], "to_id": "1"})
        board = api.post("/connections", json={"from_id": "1", "to_id": node["id"]}).json()
        assert len(board["connections"]) == 2

    def test_delete_connections(self, api):
        board = api.delete("/nodes/1/connections").json()
        assert board["connections"] == []
        assert len(board["nodes"]) == 2


class TestAi:
    """tests for ai endpoints."""

    def test_fill(self, api):
        result = api.post("/nodes/1/fill").json()
        assert result["node"]["title"] == "Capital Airport"
        assert result["node"]["type"] == "transport"
        assert [n["title"] for n in result["created"]] == ["Forbidden City"]
        assert api.get("/pending").json() == []

    def test_fill_missing_node(self, api):
        assert api.post("/nodes/ghost/fill").status_code == 404

    def test_next_stop(self, api):
        node = api.post("/nodes/2/next-stop").json()
        assert node["title"] == "Jingshan Park"
        assert node["pending"] is False
        board = api.get("/board").json()
        assert len(board["nodes"]) == 3
        assert any(c["from_id"] == "2" and c["to_id"] == node["id"] for c in board["connections"])

    def test_next_stop_needs_place_or_stay(self, api):
        note = api.post("/nodes", json={"type": "note"}).json()
        assert api.post(f"/nodes/{note['id']}/next-stop").status_code == 400

    def test_analyze_without_config(self, api):
        assert api.post("/analyze").json() == {"advice": CONFIG_REQUIRED_MESSAGE}


class TestViews:
    """tests for derived views and settings."""

    def test_itinerary_and_budget(self, api):
        api.post("/nodes", json={"type": "transport", "cost": "¥100"})
        itinerary = api.get("/itinerary").json()
        assert [n["id"] for n in itinerary][:2] == ["1", "2"]
        budget = api.get("/budget").json()
        assert budget["buckets"] == {"play": 50, "transport": 100, "stay": 650, "other": 0}
        assert budget["total"] == 800

    def test_export(self, api):
        response = api.get("/export/markdown")
        assert response.status_code == 200
        assert response.text.startswith("# Roadbook")
        assert "Wangfujing Hotel" in response.text

    def test_config(self, api):
        assert api.get("/config").json()["configured"] is False
        body = api.put("/config", json={
            "apiKey": "sk-123456789",
            "model": "ep-1",
            "baseUrl": "https://ark.example/api/v3",
        }).json()
        assert body["configured"] is True
        assert body["apiKey"] == "sk-1…"

    def test_config_write_failure(self, api, state):
        with patch("voyageboard.core.state.save_api_config", side_effect=OSError("read-only")):
            response = api.put("/config", json={"apiKey": "sk-123456789", "model": "ep-1"})
        assert response.status_code == 500
        assert "read-only" in response.json()["detail"]
        assert state.config.model == "ep-1"

    def test_transform(self, api):
        assert api.post("/transform/zoom", json={"delta": 100}).json()["scale"] == 3.0
        assert api.post("/transform/zoom", json={"delta": -100}).json()["scale"] == 0.2
        assert api.post("/transform/reset").json() == {"x": 0.0, "y": 0.0, "scale": 1.0}


class TestLifecycle:
    """tests for startup and shutdown."""

    def test_shutdown_saves_board(self, state, temp_dir):
        with TestClient(create_app(state)) as api:
            api.patch("/nodes/1", json={"title": "PEK"})
        reloaded = AppState(data_dir=temp_dir, mock=True, env_defaults=ApiConfig())
        assert reloaded.store.get_node("1").title == "PEK"
