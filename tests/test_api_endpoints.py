"""Integration tests for API endpoints.

These tests verify API endpoints work correctly end-to-end.
"""

import pytest
from fastapi.testclient import TestClient
from unittest.mock import MagicMock, patch
from urllib.parse import parse_qs, urlparse

from tomanage.engine.recommendation import NO_TASKS_MESSAGE
from tomanage.errors import ExternalServiceError
from tomanage.integrations.openai_client import ExtractionResult
from tomanage.models.task_factory import create_task


def _connect_ticktick(test_client: TestClient, monkeypatch) -> None:
    """Connect TickTick via the OAuth endpoints (mock token exchange)."""
    monkeypatch.setattr("tomanage.auth.ticktick_oauth.TICKTICK_CLIENT_ID", "test-client-id")
    monkeypatch.setattr("tomanage.auth.ticktick_oauth.TICKTICK_CLIENT_SECRET", "test-client-secret")

    auth_url_resp = test_client.get("/ticktick/auth-url", params={"redirect_uri": "http://localhost/cb"})
    assert auth_url_resp.status_code == 200
    state = parse_qs(urlparse(auth_url_resp.json()["url"]).query)["state"][0]
    assert state == auth_url_resp.json()["state"]

    mock_token_resp = MagicMock()
    # Avoid real token patterns (secret scanner will flag them).
    mock_token_resp.json.return_value = {"access_token": "test_access_token_value", "token_type": "bearer"}
    with patch("tomanage.auth.ticktick_oauth.requests.post", return_value=mock_token_resp):
        resp = test_client.post(
            "/ticktick/exchange",
            json={"code": "test-code", "state": state, "redirect_uri": "http://localhost/cb"},
        )
    assert resp.status_code == 200
    assert resp.json()["connected"] is True


def test_health(test_client):
    response = test_client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


class TestTaskEndpoints:
    """Test task CRUD API endpoints."""

    def test_create_task(self, test_client):
        """Test POST /tasks endpoint."""
        response = test_client.post("/tasks", json={"title": "Implement OAuth flow", "tags": ["auth", "duration:120"]})

        assert response.status_code == 201
        task = response.json()
        assert task["title"] == "Implement OAuth flow"
        assert task["tags"] == ["auth"]
        assert task["energy_required"] == "high"
        assert task["estimated_duration"] == 120
        assert task["context_type"] == "general"
        assert task["category"] == "work"
        assert task["urgency"] == "none"
        assert task["completed"] is False

    @pytest.mark.parametrize("body", [{"title": ""}, {}, {"title": "x", "unknown": 1}, {"title": "x", "priority": "urgent"}])
    def test_create_task_validation(self, test_client, body):
        assert test_client.post("/tasks", json=body).status_code == 422

    def test_list_and_get(self, test_client):
        created = test_client.post("/tasks", json={"title": "One"}).json()
        test_client.post("/tasks", json={"title": "Two"})

        listed = test_client.get("/tasks").json()["tasks"]
        assert [t["title"] for t in listed] == ["One", "Two"]

        response = test_client.get(f"/tasks/{created['id']}")
        assert response.status_code == 200
        assert response.json()["title"] == "One"

    def test_get_missing_task(self, test_client):
        assert test_client.get("/tasks/nonexistent").status_code == 404

    def test_update_task(self, test_client):
        created = test_client.post("/tasks", json={"title": "Draft", "priority": "low"}).json()

        response = test_client.patch(f"/tasks/{created['id']}", json={"title": "Final"})

        assert response.status_code == 200
        assert response.json()["title"] == "Final"
        assert response.json()["priority"] == "low"

    @pytest.mark.parametrize("body", [{"title": None}, {"priority": None}, {"completed": None}, {"tags": None}])
    def test_update_rejects_null_for_required_fields(self, test_client, body):
        created = test_client.post("/tasks", json={"title": "Done already", "completed": True}).json()

        response = test_client.patch(f"/tasks/{created['id']}", json=body)

        assert response.status_code == 422
        stored = test_client.get(f"/tasks/{created['id']}").json()
        assert stored["title"] == "Done already"
        assert stored["completed"] is True
        assert stored["completed_at"] is not None

    def test_update_clears_nullable_field(self, test_client):
        created = test_client.post("/tasks", json={"title": "Dated", "due_date": "2030-01-01T10:00:00Z"}).json()

        response = test_client.patch(f"/tasks/{created['id']}", json={"due_date": None})

        assert response.status_code == 200
        assert response.json()["due_date"] is None
        assert response.json()["urgency"] == "none"

    def test_update_rejects_id_change(self, test_client):
        created = test_client.post("/tasks", json={"title": "Draft"}).json()

        assert test_client.patch(f"/tasks/{created['id']}", json={"id": "other"}).status_code == 422

    def test_toggle_and_delete(self, test_client):
        created = test_client.post("/tasks", json={"title": "Finish me"}).json()

        toggled = test_client.post(f"/tasks/{created['id']}/toggle").json()
        assert toggled["completed"] is True
        assert toggled["completed_at"] is not None

        assert test_client.delete(f"/tasks/{created['id']}").status_code == 204
        assert test_client.get(f"/tasks/{created['id']}").status_code == 404

    def test_users_are_isolated(self, test_client):
        test_client.post("/tasks", json={"title": "Alice task"}, headers={"X-User-Id": "alice"})

        assert test_client.get("/tasks", headers={"X-User-Id": "bob"}).json()["tasks"] == []
        assert len(test_client.get("/tasks", headers={"X-User-Id": "alice"}).json()["tasks"]) == 1


class TestRecommendationEndpoints:

    def test_no_tasks(self, test_client):
        response = test_client.post("/recommendations", json={"method": "smart"})

        assert response.status_code == 200
        assert response.json()["message"] == NO_TASKS_MESSAGE
        assert response.json()["task"] is None

    def test_rule_based_recommendation(self, test_client):
        test_client.post("/tasks", json={"title": "Answer email", "priority": "high"})

        data = test_client.post("/recommendations", json={"method": "quick"}).json()

        assert data["task"]["title"] == "Answer email"
        assert data["source"] == "rules"
        assert data["method"] == "quick"

    def test_unknown_method(self, test_client):
        assert test_client.post("/recommendations", json={"method": "random"}).status_code == 422


class TestAIEndpoints:

    def test_chat(self, test_client, ai_client):
        ai_client.chat.return_value = "Hello!"

        response = test_client.post("/ai/chat", json={"messages": [{"role": "user", "content": "hi"}]})

        assert response.status_code == 200
        assert response.json() == {"content": "Hello!"}
        assert "# WHO I AM" in ai_client.chat.call_args.kwargs["system_prompt"]

    def test_chat_service_failure(self, test_client, ai_client):
        ai_client.chat.side_effect = ExternalServiceError("OpenAI client is not configured")

        response = test_client.post("/ai/chat", json={"messages": [{"role": "user", "content": "hi"}]})

        assert response.status_code == 502

    def test_extract_requires_input(self, test_client):
        assert test_client.post("/ai/extract", json={}).status_code == 422

    def test_extract_and_save(self, test_client, ai_client):
        ai_client.extract_tasks.return_value = ExtractionResult(tasks=[create_task({"title": "Buy milk"})])

        response = test_client.post("/ai/extract", json={"text": "buy milk", "save": True})

        assert response.status_code == 200
        assert [t["title"] for t in response.json()["tasks"]] == ["Buy milk"]
        assert [t["title"] for t in test_client.get("/tasks").json()["tasks"]] == ["Buy milk"]


class TestProfileEndpoints:

    def test_context(self, test_client):
        data = test_client.get("/context").json()

        assert data["period"] in ("morning", "afternoon", "evening")
        assert 0 <= data["current_hour"] <= 23

    def test_preferences(self, test_client):
        preferences = test_client.get("/preferences").json()
        assert preferences["role"] == "Software Engineer"

        preferences["role"] = "Staff Engineer"
        assert test_client.put("/preferences", json=preferences).status_code == 200
        assert test_client.get("/preferences").json()["role"] == "Staff Engineer"
        assert test_client.get("/profile").json()["preferences"]["role"] == "Staff Engineer"

    def test_patterns(self, test_client):
        response = test_client.put("/patterns/energy_patterns", json={"peak": "morning"})
        assert response.status_code == 200

        assert test_client.get("/patterns/energy_patterns").json() == {
            "pattern_type": "energy_patterns",
            "data": {"peak": "morning"},
        }
        assert test_client.get("/patterns").json() == {"energy_patterns": {"peak": "morning"}}
        assert test_client.get("/patterns/favourite_colour").status_code == 422

    def test_analytics(self, test_client):
        entry = {
            "task_id": "t1",
            "completed_at": "2026-01-26T10:30:00Z",
            "time_of_day": "10:30",
            "day_of_week": "Monday",
            "energy_level": "high",
            "context_type": "backend",
        }
        assert test_client.post("/analytics", json=entry).status_code == 201
        assert test_client.post("/analytics", json={**entry, "task_id": "t2"}).status_code == 201

        assert [e["task_id"] for e in test_client.get("/analytics", params={"limit": 1}).json()] == ["t2"]


class TestTickTickEndpoints:

    def test_status_when_not_connected(self, test_client):
        assert test_client.get("/ticktick/status").json() == {"connected": False, "last_sync": None}

    def test_sync_requires_connection(self, test_client):
        assert test_client.post("/sync").status_code == 400
        assert test_client.get("/ticktick/tasks").status_code == 400

    def test_auth_url_not_configured(self, test_client, monkeypatch):
        monkeypatch.setattr("tomanage.auth.ticktick_oauth.TICKTICK_CLIENT_ID", None)

        assert test_client.get("/ticktick/auth-url", params={"redirect_uri": "http://localhost/cb"}).status_code == 502

    def test_state_mismatch(self, test_client, monkeypatch):
        monkeypatch.setattr("tomanage.auth.ticktick_oauth.TICKTICK_CLIENT_ID", "test-client-id")
        test_client.get("/ticktick/auth-url", params={"redirect_uri": "http://localhost/cb"})

        with patch("tomanage.auth.ticktick_oauth.requests.post") as mock_post:
            response = test_client.post(
                "/ticktick/exchange",
                json={"code": "test-code", "state": "forged", "redirect_uri": "http://localhost/cb"},
            )

        assert response.status_code == 400
        mock_post.assert_not_called()

    def test_connect_sync_and_disconnect(self, test_client, fake_ticktick, monkeypatch):
        _connect_ticktick(test_client, monkeypatch)
        assert test_client.get("/ticktick/status").json()["connected"] is True

        fake_ticktick.records = [{"id": "tt-remote-1", "projectId": "p1", "title": "Remote task", "status": 0}]
        response = test_client.post("/sync")

        assert response.status_code == 200
        assert response.json()["fetched_count"] == 1
        assert [t["title"] for t in response.json()["tasks"]] == ["Remote task"]
        assert test_client.get("/ticktick/status").json()["last_sync"] is not None
        assert [t["title"] for t in test_client.get("/ticktick/tasks").json()["tasks"]] == ["Remote task"]

        assert test_client.post("/ticktick/disconnect").json()["connected"] is False
        assert test_client.get("/ticktick/status").json()["connected"] is False

    def test_sync_failure_maps_to_502(self, test_client, fake_ticktick, monkeypatch):
        _connect_ticktick(test_client, monkeypatch)
        fake_ticktick.fail_fetch = True

        assert test_client.post("/sync").status_code == 502
