"""Tests for the HTTP API."""

import json

import pytest
from fastapi.testclient import TestClient

from telemetry_svc.config import CONFIG_ENV_VAR
from telemetry_svc.main import app


@pytest.fixture
def client(monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    with TestClient(app) as c:
        yield c


def _record(client, session_id, kind, payload, **extra):
    response = client.post(
        "/telemetry/events",
        json={"session_id": session_id, "kind": kind, "payload": payload, **extra},
    )
    assert response.status_code == 200, response.text
    return response.json()["id"]


class TestEvents:
    def test_record_event(self, client):
        session_id = client.post("/telemetry/sessions", json={"user_id": "dev@example.com"}).json()["session_id"]

        event_id = _record(client, session_id, "prompt", {"content": "Build a todo app"})

        response = client.get(f"/telemetry/sessions/{session_id}/events")
        data = response.json()
        assert data["count"] == 1
        assert data["events"][0]["id"] == event_id
        assert data["events"][0]["kind"] == "prompt"

    def test_unknown_kind_rejected(self, client):
        response = client.post(
            "/telemetry/events",
            json={"session_id": "s-1", "kind": "telepathy", "payload": {}},
        )
        assert response.status_code == 422

    def test_invalid_payload_rejected(self, client):
        response = client.post(
            "/telemetry/events",
            json={"session_id": "s-1", "kind": "outcome", "payload": {"duration": 5}},
        )
        assert response.status_code == 422
        assert "Invalid outcome payload" in response.json()["detail"]

    @pytest.mark.parametrize(
        "kind, payload",
        [
            ("system", {"component": "conductor", "action": "dispatch", "agent": "architect", "metrics": None}),
            ("outcome", {"type": "success", "duration": "slow"}),
            ("plan", {"id": "plan-1", "name": "CRUD", "steps": ["oops"]}),
        ],
    )
    def test_wrongly_typed_payload_rejected(self, client, kind, payload):
        response = client.post(
            "/telemetry/events",
            json={"session_id": "s-1", "kind": kind, "payload": payload},
        )
        assert response.status_code == 422

        response = client.get("/telemetry/analytics")
        assert response.status_code == 200
        assert response.json()["total_events"] == 0

    def test_non_numeric_metric_does_not_break_analytics(self, client):
        _record(client, "s-1", "system", {
            "component": "conductor",
            "action": "dispatch",
            "agent": "architect",
            "status": "completed",
            "metrics": {"response_time_ms": "fast"},
        })

        response = client.get("/telemetry/analytics")

        assert response.status_code == 200
        agent = response.json()["agent_performance"][0]
        assert agent["usage"] == 1
        assert agent["average_response_time"] == 0


class TestSessions:
    def test_lifecycle(self, client):
        session_id = client.post("/telemetry/sessions", json={"metadata": {"platform": "web"}}).json()["session_id"]

        session = client.get(f"/telemetry/sessions/{session_id}").json()
        assert session["end_time"] is None
        assert session["metadata"] == {"platform": "web"}

        assert client.post(f"/telemetry/sessions/{session_id}/end").status_code == 200
        session = client.get(f"/telemetry/sessions/{session_id}").json()
        assert session["end_time"] is not None
        assert session["duration_ms"] >= 0

    def test_start_without_body(self, client):
        response = client.post("/telemetry/sessions")
        assert response.status_code == 200
        assert response.json()["session_id"].startswith("session_")

    def test_unknown_session(self, client):
        assert client.get("/telemetry/sessions/missing").status_code == 404

    def test_end_unknown_session_is_accepted(self, client):
        assert client.post("/telemetry/sessions/missing/end").status_code == 200


class TestAnalytics:
    def test_snapshot(self, client):
        _record(client, "s-1", "outcome", {"type": "success", "duration": 100})
        _record(client, "s-1", "outcome", {"type": "failure", "duration": 100})
        _record(client, "s-1", "error", {"message": "Timeout"})

        data = client.get("/telemetry/analytics").json()

        assert data["total_events"] == 3
        assert data["success_rate"] == 0.5
        assert data["common_issues"][0]["issue"] == "Timeout"

    def test_system_health(self, client):
        _record(client, "s-1", "error", {"message": "Timeout"})
        _record(client, "s-1", "prompt", {"content": "retry"})

        data = client.get("/telemetry/health").json()

        assert data["event_rate"] == 2
        assert data["error_rate"] == 0.5


class TestExport:
    def test_json(self, client):
        _record(client, "s-1", "prompt", {"content": "Build a todo app"})

        response = client.get("/telemetry/export")

        assert response.headers["content-type"].startswith("application/json")
        assert len(json.loads(response.text)["events"]) == 1

    def test_csv(self, client):
        _record(client, "s-1", "prompt", {"content": "Build a todo app"})

        response = client.get("/telemetry/export", params={"format": "csv"})

        assert response.headers["content-type"].startswith("text/csv")
        assert response.text.splitlines()[0] == "id,timestamp,session_id,user_id,kind,summary"

    def test_unknown_format(self, client):
        assert client.get("/telemetry/export", params={"format": "xml"}).status_code == 400


class TestMaintenance:
    def test_clear_everything(self, client):
        client.post("/telemetry/sessions")
        _record(client, "s-1", "prompt", {"content": "old"})

        response = client.post("/telemetry/maintenance/clear", json={"older_than": "2999-01-01T00:00:00"})

        assert response.status_code == 200
        data = response.json()
        assert data["events_removed"] == 1
        assert data["sessions_removed"] == 1

    def test_clear_keeps_recent(self, client):
        _record(client, "s-1", "prompt", {"content": "fresh"})

        data = client.post("/telemetry/maintenance/clear", json={"older_than_days": 1}).json()

        assert data["events_removed"] == 0

    def test_requires_exactly_one_cutoff(self, client):
        assert client.post("/telemetry/maintenance/clear", json={}).status_code == 422
        response = client.post(
            "/telemetry/maintenance/clear",
            json={"older_than": "2026-01-01T00:00:00Z", "older_than_days": 1},
        )
        assert response.status_code == 422


class TestService:
    def test_health(self, client):
        data = client.get("/health").json()

        assert data["status"] == "healthy"
        assert data["manager"]["events"] == 0
        assert "queue_depth" in data["emitter"]

    def test_root(self, client):
        data = client.get("/").json()
        assert data["service"] == "Telemetry Service"
        assert "/telemetry/events" in data["endpoints"]

    def test_not_configured_outside_lifespan(self, monkeypatch):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        client = TestClient(app)
        assert client.get("/telemetry/analytics").status_code == 503
