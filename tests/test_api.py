from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from monocle_engine.api import create_app
from monocle_engine.services import IntelligenceService
from monocle_engine.stores import InMemoryStore
from monocle_engine.text_generation import TextGenerator

NOW = datetime(2025, 3, 10, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def client():
    service = IntelligenceService(InMemoryStore(), TextGenerator([]), clock=lambda: NOW)
    with TestClient(create_app(service)) as test_client:
        yield test_client


def _create_thread(client, **fields):
    payload = {"title": "Board deck", "priority": "high", "progress": 30}
    payload.update(fields)
    response = client.post("/api/threads/u1", json=payload)
    assert response.status_code == 200
    return response.json()["data"]


def test_thread_crud(client):
    thread = _create_thread(client, deadline=(NOW + timedelta(days=2)).isoformat())
    assert thread["userId"] == "u1"
    assert thread["isIgnored"] is False

    listed = client.get("/api/threads/user/u1").json()["data"]
    assert [t["id"] for t in listed] == [thread["id"]]

    progress = client.patch(f"/api/threads/{thread['id']}/progress", json={"progress": 55}).json()
    assert progress["data"]["progress"] == 55

    ignored = client.patch(f"/api/threads/{thread['id']}/ignore", json={"isIgnored": True}).json()
    assert ignored["data"]["isIgnored"] is True

    assert client.delete(f"/api/threads/{thread['id']}").json() == {"success": True, "message": "Thread deleted"}
    missing = client.delete(f"/api/threads/{thread['id']}")
    assert missing.status_code == 404
    assert missing.json()["success"] is False


def test_validation_errors_use_envelope(client):
    response = client.post("/api/threads/u1", json={"title": "x", "priority": "urgent"})
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert "priority" in body["error"]

    response = client.patch("/api/threads/abc/progress", json={"progress": 101})
    assert response.status_code == 400


def test_recommendations_endpoints(client):
    _create_thread(client, deadline=(NOW + timedelta(hours=12)).isoformat())
    _create_thread(client, title="Expenses", priority="low", progress=80)

    generated = client.post("/api/intelligence/recommendations/u1/generate").json()
    assert generated["success"] is True
    assert [r["score"] for r in generated["data"]] == [85]
    assert generated["data"][0]["reasoning"]["title"] == "Deadline approaching"

    active = client.get("/api/intelligence/recommendations/u1").json()["data"]
    assert [r["id"] for r in active] == [generated["data"][0]["id"]]


def test_cognitive_load_endpoints(client):
    assert client.get("/api/intelligence/cognitive-load/u1").status_code == 404

    _create_thread(client)
    client.post("/api/intelligence/context-switch/u1")
    calculated = client.post("/api/intelligence/cognitive-load/u1/calculate").json()["data"]

    assert calculated["factors"]["activeThreads"] == 1
    assert calculated["factors"]["switchingFrequency"] == 1
    assert calculated["level"] == "low"

    latest = client.get("/api/intelligence/cognitive-load/u1").json()["data"]
    assert latest["id"] == calculated["id"]


def test_insight_endpoints(client):
    thread = _create_thread(client, deadline=(NOW + timedelta(hours=18)).isoformat())
    client.patch(f"/api/threads/{thread['id']}/ignore", json={"isIgnored": True})

    insights = client.post("/api/intelligence/insights/u1/generate").json()["data"]
    assert [(i["type"], i["severity"]) for i in insights] == [("ignored-work", "critical")]

    dismissed = client.put(f"/api/intelligence/insights/{insights[0]['id']}/dismiss").json()
    assert dismissed["message"] == "Insight dismissed"
    assert client.get("/api/intelligence/insights/u1").json()["data"] == []


def test_stats_and_activity_endpoints(client):
    assert client.post("/api/intelligence/focus-session/u1", json={"durationMinutes": 50, "tasksCompleted": 1}).json()[
        "success"
    ]
    assert client.put("/api/intelligence/stats/u1", json={"activeThreads": 3}).status_code == 200
    assert client.post("/api/intelligence/activities/u1", json={"type": "item-added"}).status_code == 200
    assert client.post("/api/intelligence/activities/u1", json={"type": "lunch"}).status_code == 400

    stats = client.get("/api/intelligence/stats/u1", params={"days": 3}).json()["data"]
    assert stats == [
        {
            "userId": "u1",
            "date": "2025-03-10",
            "focusTime": 50,
            "contextSwitches": 0,
            "completedTasks": 1,
            "activeThreads": 3,
        }
    ]
    summary = client.get("/api/intelligence/stats/u1/summary").json()["data"]
    assert summary["total_completed_tasks"] == 1


def test_chat_without_providers_apologises(client):
    response = client.post("/api/intelligence/chat/u1", json={"message": "What should I do?"})
    assert response.status_code == 200
    assert "(Fallback Mode)" in response.json()["data"]


def test_health(client):
    assert client.get("/health").json() == {"status": "OK"}


def test_thread_lookup_routes(client):
    soon = _create_thread(client, title="Board deck", deadline=(NOW + timedelta(days=2)).isoformat())
    later = _create_thread(client, title="Roadmap", priority="medium", deadline=(NOW + timedelta(days=20)).isoformat())
    ignored = _create_thread(client, title="Expenses", priority="high")
    client.put(f"/api/threads/{ignored['id']}/ignore", json={"isIgnored": True})

    assert client.get(f"/api/threads/{soon['id']}").json()["data"]["title"] == "Board deck"
    assert client.get("/api/threads/missing").status_code == 404

    active = client.get("/api/threads/user/u1/active").json()["data"]
    assert sorted(t["id"] for t in active) == sorted([soon["id"], later["id"]])

    high = client.get("/api/threads/user/u1/high-priority").json()["data"]
    assert sorted(t["id"] for t in high) == sorted([soon["id"], ignored["id"]])

    upcoming = client.get("/api/threads/user/u1/upcoming-deadlines").json()["data"]
    assert [t["id"] for t in upcoming] == [soon["id"]]
    upcoming = client.get("/api/threads/user/u1/upcoming-deadlines", params={"days": 30}).json()["data"]
    assert [t["id"] for t in upcoming] == [soon["id"], later["id"]]


def test_thread_general_update_changes_scoring_inputs(client):
    thread = _create_thread(client, title="Quarterly review", priority="low", progress=0)

    response = client.put(
        f"/api/threads/{thread['id']}",
        json={"priority": "high", "deadline": (NOW + timedelta(hours=6)).isoformat(), "tags": ["q1"]},
    )
    updated = response.json()["data"]
    assert updated["priority"] == "high"
    assert updated["tags"] == ["q1"]
    assert updated["title"] == "Quarterly review"

    scores = [r["score"] for r in client.post("/api/intelligence/recommendations/u1/generate").json()["data"]]
    assert scores == [85]

    cleared = client.put(f"/api/threads/{thread['id']}", json={"deadline": None}).json()["data"]
    assert cleared["deadline"] is None
    assert cleared["priority"] == "high"

    assert client.put(f"/api/threads/{thread['id']}", json={"priority": "urgent"}).status_code == 400
    assert client.put(f"/api/threads/{thread['id']}", json={"priority": None}).status_code == 400
    assert client.put("/api/threads/missing", json={"title": "x"}).status_code == 404


def test_unexpected_value_errors_are_server_errors():
    app = create_app(IntelligenceService(InMemoryStore(), clock=lambda: NOW))

    @app.get("/broken")
    def broken():
        raise ValueError("bug, not bad input")

    with TestClient(app, raise_server_exceptions=False) as test_client:
        response = test_client.get("/broken")
    assert response.status_code == 500


def test_service_input_errors_are_client_errors(client):
    thread = _create_thread(client)
    response = client.put(f"/api/threads/{thread['id']}", json={"title": "   "})
    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "title must not be empty"}
