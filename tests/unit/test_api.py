"""Unit tests for the HTTP API."""

import pytest
from fastapi.testclient import TestClient

from daydone.main import app


@pytest.fixture
def client(patched_db):
    """Test client backed by the in-memory store (lifespan not started)."""
    return TestClient(app)


@pytest.fixture
def user_id(client):
    response = client.post("/users", json={"name": "Alice", "email": "alice@example.com"})
    return response.json()["id"]


def _save(client, user_id, tasks, **body):
    return client.put(f"/users/{user_id}/logs/2024-03-14", json={"hours": "6", "notes": "", "tasks": tasks, **body})


@pytest.mark.unit
class TestHealthAndUsers:
    """Tests for health and user endpoints."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_add_and_list_users(self, client, user_id):
        response = client.get("/users")

        assert response.status_code == 200
        assert [u["name"] for u in response.json()] == ["Alice"]

    def test_add_user_blank_name(self, client):
        response = client.post("/users", json={"name": "  "})

        assert response.status_code == 422


@pytest.mark.unit
class TestDailyLogEndpoints:
    """Tests for loading and saving a day."""

    def test_empty_day_is_null(self, client, user_id):
        response = client.get(f"/users/{user_id}/logs/2024-03-14")

        assert response.status_code == 200
        assert response.json() is None

    def test_save_and_load(self, client, user_id):
        response = _save(client, user_id, [{"id": "temp-1", "task_name": "Review"}, {"id": "temp-2", "task_name": "Ship"}])

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "2 new tasks added successfully!"
        assert body["result"]["counts"] == {"created": 2, "updated": 0, "deleted": 0}

        loaded = client.get(f"/users/{user_id}/logs/2024-03-14").json()
        assert loaded["daily_log"]["hours_worked"] == 6.0
        assert [t["task_name"] for t in loaded["tasks"]] == ["Review", "Ship"]

    def test_unknown_user(self, client):
        response = _save(client, "404", [])

        assert response.status_code == 404

    def test_stale_save_conflict(self, client, user_id):
        first = _save(client, user_id, []).json()["result"]["daily_log"]
        _save(client, user_id, [], daily_log_id=first["id"])

        response = _save(client, user_id, [], daily_log_id=first["id"], expected_version=first["version"])

        assert response.status_code == 409
        body = response.json()
        assert body["kind"] == "stale_write"
        assert body["code"] == "ERR_STALE_WRITE"
        assert body["step"] == "save_daily_log"
        assert body["applied"] == {"created": 0, "updated": 0, "deleted": 0}

    def test_transport_failure_is_503(self, client, user_id, patched_db):
        patched_db.fail_on("create_record", collection="daily_logs")

        response = _save(client, user_id, [])

        assert response.status_code == 503
        assert response.json()["message"] == "Network error. Check your connection."

    def test_invalid_status_rejected(self, client, user_id):
        response = _save(client, user_id, [{"id": "temp-1", "task_name": "x", "status": "Done"}])

        assert response.status_code == 422

    def test_task_from_another_day_is_validation_error(self, client, user_id):
        other_day = client.put(
            f"/users/{user_id}/logs/2024-03-13",
            json={"hours": "2", "tasks": [{"id": "temp-1", "task_name": "Yesterday"}]},
        ).json()
        foreign_id = other_day["result"]["tasks"][0]["id"]

        response = _save(client, user_id, [{"id": foreign_id, "task_name": "Moved"}])

        assert response.status_code == 422
        body = response.json()
        assert body["code"] == "ERR_VALIDATION"
        assert body["kind"] == "validation"
        assert body["step"] == "validate_tasks"
        assert foreign_id in body["message"]


@pytest.mark.unit
class TestAggregateEndpoints:
    """Tests for metrics, points, calendar and leaderboard."""

    @pytest.fixture
    def saved(self, client, user_id):
        _save(client, user_id, [])
        return user_id

    def test_metrics(self, client, saved):
        response = client.get(f"/users/{saved}/metrics", params={"reference": "2024-03-14"})

        assert response.status_code == 200
        assert response.json()["today"] == 6.0
        assert response.json()["daily_progress"] == pytest.approx(60.0)

    def test_points(self, client, saved):
        body = client.get(f"/users/{saved}/points", params={"reference": "2024-03-14"}).json()

        assert (body["total_points"], body["rank"], body["level"], body["points_to_next"]) == (6.0, 1, 1, 94.0)

    def test_calendar(self, client, saved):
        body = client.get(f"/users/{saved}/calendar/2024").json()

        assert body["active_days"] == 1
        assert len(body["weeks"]) == 53

    def test_calendar_years(self, client):
        assert client.get("/calendar/years", params={"current_year": 2026}).json() == [2026, 2025, 2024, 2023, 2022]

    def test_leaderboard(self, client, saved):
        response = client.get("/leaderboard", params={"period": "week", "reference": "2024-03-14"})

        assert response.status_code == 200
        assert response.json() == [{"user_id": saved, "user_name": "Alice", "total_hours": 6.0, "rank": 1}]

    def test_leaderboard_limit(self, client, saved):
        response = client.get("/leaderboard", params={"period": "year", "reference": "2024-03-14", "limit": 1})

        assert len(response.json()) == 1

    def test_leaderboard_bad_period(self, client):
        response = client.get("/leaderboard", params={"period": "fortnight"})

        assert response.status_code == 422

    def test_unknown_user_metrics(self, client):
        assert client.get("/users/404/metrics").status_code == 404

    def test_points_store_failure(self, client, saved, patched_db):
        patched_db.fail_on("list_records", collection="daily_logs")

        response = client.get(f"/users/{saved}/points", params={"reference": "2024-03-14"})

        assert response.status_code == 503
        body = response.json()
        assert body["kind"] == "transport"
        assert body["code"] == "ERR_TRANSPORT"
        assert body["step"] == "list_daily_logs"

    def test_leaderboard_store_failure(self, client, saved, patched_db):
        patched_db.fail_on("list_records", collection="users")

        response = client.get("/leaderboard", params={"period": "week", "reference": "2024-03-14"})

        assert response.status_code == 503
        assert response.json()["step"] == "list_users"

    def test_calendar_store_failure(self, client, saved, patched_db):
        patched_db.fail_on("list_records", collection="daily_logs")

        response = client.get(f"/users/{saved}/calendar/2024")

        assert response.status_code == 503
        assert response.json()["message"] == "Network error. Check your connection."
