"""
HTTP-level tests for the Taskboard FastAPI application.

Uses TestClient with the database dependency overridden by a temporary
database, so the application lifespan never touches DATABASE_PATH.
"""

import logging
import uuid

import pytest
from fastapi.testclient import TestClient

from taskboard.api import app
from taskboard.config import Settings
from taskboard.dependencies import get_database, get_settings, get_task_service


def create_user(client, username="carol", email=None):
    response = client.post("/users", json={
        "username": username,
        "email": email or f"{username}@example.com",
        "first_name": username.title(),
        "last_name": "Tester",
        "password": "secret123",
    })
    assert response.status_code == 201, response.text
    return response.json()


def create_task(client, user_id, **fields):
    body = {"title": "Untitled", "user_id": user_id}
    body.update(fields)
    response = client.post("/tasks", json=body)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def carol(client):
    return create_user(client)


class TestHealth:
    def test_healthz(self, client):
        response = client.get("/healthz")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["database_connected"] is True


class TestUserEndpoints:
    def test_create_and_fetch(self, client, carol):
        assert "password" not in carol
        assert "password_hash" not in carol

        by_id = client.get(f"/users/{carol['id']}")
        by_name = client.get("/users/username/carol")
        by_email = client.get("/users/email/carol@example.com")

        assert by_id.json() == carol
        assert by_name.json()["id"] == carol["id"]
        assert by_email.json()["id"] == carol["id"]

    def test_duplicate_username_is_conflict(self, client, carol):
        response = client.post("/users", json={
            "username": "carol",
            "email": "another@example.com",
            "first_name": "C",
            "last_name": "W",
            "password": "secret123",
        })

        assert response.status_code == 409
        assert response.json()["error_code"] == "USER_ALREADY_EXISTS"

    def test_validation_error_lists_fields(self, client):
        response = client.post("/users", json={
            "username": "ab",
            "email": "not-an-email",
            "first_name": "A",
            "last_name": "B",
            "password": "123",
        })

        body = response.json()
        assert response.status_code == 400
        assert body["error_code"] == "VALIDATION_ERROR"
        assert body["message"] == "Validation failed"
        assert {"username", "email", "password"} <= set(body["errors"])
        assert body["path"] == "/users"

    def test_missing_user_is_404(self, client):
        response = client.get(f"/users/{uuid.uuid4()}")

        assert response.status_code == 404
        assert response.json()["error_code"] == "RESOURCE_NOT_FOUND"

    def test_exists_endpoints(self, client, carol):
        assert client.get("/users/exists/username/carol").json() is True
        assert client.get("/users/exists/username/dave").json() is False
        assert client.get("/users/exists/email/carol@example.com").json() is True

    def test_update_user(self, client, carol):
        response = client.put(f"/users/{carol['id']}", json={
            "first_name": "Caroline",
            "last_name": "White",
        })

        assert response.status_code == 200
        assert response.json()["first_name"] == "Caroline"
        assert response.json()["email"] == "carol@example.com"

    def test_soft_then_hard_delete(self, client, carol):
        assert client.delete(f"/users/{carol['id']}").status_code == 204
        assert client.get(f"/users/{carol['id']}").json()["is_active"] is False
        assert client.get("/users/active").json() == []
        assert len(client.get("/users").json()) == 1

        assert client.delete(f"/users/{carol['id']}/hard").status_code == 204
        assert client.get(f"/users/{carol['id']}").status_code == 404


class TestTaskCrud:
    def test_create_task(self, client, carol):
        task = create_task(client, carol["id"], title="Buy milk", priority="high",
                           due_date="2024-01-15T09:00:00")

        assert task["priority"] == "HIGH"
        assert task["status"] == "PENDING"
        assert task["user_id"] == carol["id"]
        assert task["username"] == "carol"
        assert task["is_active"] is True

    def test_create_for_unknown_user(self, client):
        response = client.post("/tasks", json={"title": "Orphan", "user_id": str(uuid.uuid4())})

        assert response.status_code == 404

    def test_invalid_priority_in_body(self, client, carol):
        response = client.post("/tasks", json={"title": "x", "user_id": carol["id"], "priority": "URGENT"})

        assert response.status_code == 400
        assert "priority" in response.json()["errors"]

    def test_blank_title_rejected(self, client, carol):
        response = client.post("/tasks", json={"title": "   ", "user_id": carol["id"]})

        assert response.status_code == 400
        assert "title" in response.json()["errors"]

    def test_get_update_delete(self, client, carol):
        task = create_task(client, carol["id"], title="Buy milk", description="2 litres")

        updated = client.put(f"/tasks/{task['id']}", json={"status": "completed"})
        assert updated.status_code == 200
        assert updated.json()["status"] == "COMPLETED"
        assert updated.json()["description"] == "2 litres"

        assert client.delete(f"/tasks/{task['id']}").status_code == 204
        assert client.get(f"/tasks/{task['id']}").json()["is_active"] is False

        assert client.delete(f"/tasks/{task['id']}/hard").status_code == 204
        assert client.get(f"/tasks/{task['id']}").status_code == 404

    def test_empty_update_is_bad_request(self, client, carol):
        task = create_task(client, carol["id"])

        response = client.put(f"/tasks/{task['id']}", json={})

        assert response.status_code == 400
        assert response.json()["error_code"] == "BAD_REQUEST"

    def test_malformed_task_id(self, client):
        response = client.get("/tasks/not-a-uuid")

        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    def test_title_exists(self, client, carol):
        create_task(client, carol["id"], title="Buy milk")

        assert client.get("/tasks/exists/title/Buy milk").json() is True
        assert client.get("/tasks/exists/title/Sell milk").json() is False


class TestTaskListing:
    """Fixed listing routes and search, all backed by the predicate builder."""

    @pytest.fixture
    def seeded(self, client):
        alice = create_user(client, "alice")
        bob = create_user(client, "bob")
        create_task(client, alice["id"], title="Buy milk", priority="HIGH", due_date="2024-01-15T00:00:00")
        create_task(client, alice["id"], title="Groceries", description="remember to buy bread",
                    status="IN_PROGRESS", priority="LOW", due_date="2024-02-01T00:00:00")
        clean = create_task(client, bob["id"], title="Clean house", status="COMPLETED", priority="HIGH")
        create_task(client, bob["id"], title="File taxes", status="COMPLETED", priority="LOW",
                    due_date="2024-01-31T00:00:00")
        client.delete(f"/tasks/{clean['id']}")
        return {"alice": alice, "bob": bob}

    @staticmethod
    def titles(response):
        assert response.status_code == 200, response.text
        return sorted(task["title"] for task in response.json()["content"])

    def test_list_all_with_page_metadata(self, client, seeded):
        response = client.get("/tasks", params={"size": 3})
        body = response.json()

        assert body["total_elements"] == 4
        assert body["total_pages"] == 2
        assert body["page_size"] == 3
        assert len(body["content"]) == 3
        assert body["first"] is True
        assert body["last"] is False

    def test_default_sort_newest_first(self, client, seeded):
        content = client.get("/tasks").json()["content"]

        assert content[0]["title"] == "File taxes"
        assert content[-1]["title"] == "Buy milk"

    def test_sort_by_title_ascending(self, client, seeded):
        content = client.get("/tasks", params={"sort": "title,asc"}).json()["content"]

        assert [task["title"] for task in content] == ["Buy milk", "Clean house", "File taxes", "Groceries"]

    def test_active(self, client, seeded):
        assert self.titles(client.get("/tasks/active")) == ["Buy milk", "File taxes", "Groceries"]

    def test_by_status_and_priority(self, client, seeded):
        assert self.titles(client.get("/tasks/status/completed")) == ["Clean house", "File taxes"]
        assert self.titles(client.get("/tasks/priority/HIGH")) == ["Buy milk", "Clean house"]
        assert self.titles(client.get("/tasks/active/status/COMPLETED")) == ["File taxes"]
        assert self.titles(client.get("/tasks/active/priority/high")) == ["Buy milk"]

    def test_by_user(self, client, seeded):
        bob_id = seeded["bob"]["id"]

        assert self.titles(client.get(f"/tasks/user/{bob_id}")) == ["Clean house", "File taxes"]
        assert self.titles(client.get(f"/tasks/user/{bob_id}/active")) == ["File taxes"]
        assert self.titles(client.get(f"/tasks/user/{bob_id}/status/COMPLETED")) == ["Clean house", "File taxes"]
        assert self.titles(client.get(f"/tasks/user/{bob_id}/priority/LOW")) == ["File taxes"]

    def test_unknown_user_listing_is_404(self, client, seeded):
        response = client.get(f"/tasks/user/{uuid.uuid4()}")

        assert response.status_code == 404

    def test_invalid_status_names_field(self, client, seeded):
        response = client.get("/tasks/status/DONE")
        body = response.json()

        assert response.status_code == 400
        assert body["error_code"] == "INVALID_FILTER_PARAMETER"
        assert "status" in body["errors"]

    def test_invalid_user_id_names_field(self, client, seeded):
        response = client.get("/tasks/user/nope")

        assert response.status_code == 400
        assert list(response.json()["errors"]) == ["user_id"]

    def test_invalid_sort(self, client, seeded):
        response = client.get("/tasks", params={"sort": "owner,asc"})

        assert response.status_code == 400
        assert "sort" in response.json()["errors"]

    def test_size_over_maximum(self, client, seeded):
        app.dependency_overrides[get_settings] = lambda: Settings(max_page_size=5)

        response = client.get("/tasks", params={"size": 6})

        assert response.status_code == 400
        assert "size" in response.json()["errors"]

    def test_search_query_get(self, client, seeded):
        assert self.titles(client.get("/tasks/search", params={"query": "BUY"})) == ["Buy milk", "Groceries"]

    def test_search_body_text(self, client, seeded):
        response = client.post("/tasks/search", json={"search_query": "Buy"})

        assert self.titles(response) == ["Buy milk", "Groceries"]

    def test_search_body_status_priority(self, client, seeded):
        response = client.post("/tasks/search", json={"status": "COMPLETED", "priority": "HIGH"})

        assert self.titles(response) == ["Clean house"]

    def test_search_body_due_range(self, client, seeded):
        response = client.post("/tasks/search", json={
            "due_date_from": "2024-01-01",
            "due_date_to": "2024-01-31",
        })

        assert self.titles(response) == ["Buy milk", "File taxes"]

    def test_search_empty_body_matches_all(self, client, seeded):
        response = client.post("/tasks/search", json={"search_query": ""})

        assert response.json()["total_elements"] == 4

    def test_search_inactive_only(self, client, seeded):
        response = client.post("/tasks/search", json={"is_active": False})

        assert self.titles(response) == ["Clean house"]

    def test_page_beyond_offset_range(self, client, seeded):
        response = client.get("/tasks", params={"page": 10 ** 20})
        body = response.json()

        assert response.status_code == 400
        assert body["error_code"] == "INVALID_FILTER_PARAMETER"
        assert "page" in body["errors"]

    def test_search_bad_timestamp(self, client, seeded):
        response = client.post("/tasks/search", json={"due_date_from": "January"})
        body = response.json()

        assert response.status_code == 400
        assert body["error_code"] == "INVALID_FILTER_PARAMETER"
        assert "due_date_from" in body["errors"]


class TestRequestLogging:
    def test_request_is_logged_with_status(self, client, caplog):
        with caplog.at_level(logging.INFO, logger="taskboard.api"):
            client.get("/healthz")

        messages = [record.getMessage() for record in caplog.records]
        assert any(message.startswith("→ GET /healthz") for message in messages)
        assert any(message.startswith("← GET /healthz 200") for message in messages)

    def test_unhandled_error_is_logged(self, client, caplog):
        def broken_service():
            raise RuntimeError("boom")

        app.dependency_overrides[get_task_service] = broken_service
        quiet = TestClient(app, raise_server_exceptions=False)

        with caplog.at_level(logging.INFO, logger="taskboard.api"):
            response = quiet.get("/tasks")

        failures = [record for record in caplog.records
                    if record.levelno == logging.ERROR and record.getMessage().startswith("✕ GET /tasks")]
        assert len(failures) == 1
        assert failures[0].getMessage().endswith("RuntimeError: boom")
        assert response.status_code == 500
        assert response.json()["error_code"] == "INTERNAL_SERVER_ERROR"


class TestErrorBodies:
    """Every failure, including framework-level ones, renders as ErrorResponse."""

    def test_unknown_route(self, client):
        response = client.get("/nope")
        body = response.json()

        assert response.status_code == 404
        assert body["error_code"] == "RESOURCE_NOT_FOUND"
        assert body["status"] == 404
        assert body["path"] == "/nope"
        assert "detail" not in body

    def test_method_not_allowed(self, client):
        response = client.delete("/healthz")

        assert response.status_code == 405
        assert response.json()["error_code"] == "METHOD_NOT_ALLOWED"

    def test_database_unavailable(self, client):
        del app.dependency_overrides[get_database]

        response = client.get("/tasks")
        body = response.json()

        assert response.status_code == 503
        assert body["error_code"] == "SERVICE_UNAVAILABLE"
        assert body["message"] == "Database not available"

    def test_unexpected_exception(self, client):
        def broken_service():
            raise ValueError("unexpected")

        app.dependency_overrides[get_task_service] = broken_service
        quiet = TestClient(app, raise_server_exceptions=False)

        response = quiet.get("/tasks/active")
        body = response.json()

        assert response.status_code == 500
        assert body["error_code"] == "INTERNAL_SERVER_ERROR"
        assert body["path"] == "/tasks/active"
        assert "unexpected" not in body["message"]


class TestCamelCaseBodies:
    """Request bodies accept camelCase keys as well as snake_case ones."""

    def test_create_user_camel_case(self, client):
        response = client.post("/users", json={
            "username": "dave",
            "email": "dave@example.com",
            "firstName": "Dave",
            "lastName": "Tester",
            "password": "secret123",
        })

        assert response.status_code == 201, response.text
        assert response.json()["first_name"] == "Dave"

    def test_create_task_camel_case(self, client, carol):
        response = client.post("/tasks", json={
            "title": "Buy milk",
            "userId": carol["id"],
            "dueDate": "2024-01-15T09:00:00",
        })

        assert response.status_code == 201, response.text
        assert response.json()["user_id"] == carol["id"]
        assert response.json()["due_date"].startswith("2024-01-15T09:00:00")

    def test_search_camel_case(self, client, carol):
        create_task(client, carol["id"], title="Buy milk", due_date="2024-01-15T00:00:00")
        create_task(client, carol["id"], title="Buy bread", due_date="2024-03-01T00:00:00")

        camel = client.post("/tasks/search", json={
            "searchQuery": "buy",
            "dueDateFrom": "2024-01-01",
            "dueDateTo": "2024-01-31",
            "isActive": True,
        })
        snake = client.post("/tasks/search", json={
            "search_query": "buy",
            "due_date_from": "2024-01-01",
            "due_date_to": "2024-01-31",
            "is_active": True,
        })

        assert [task["title"] for task in camel.json()["content"]] == ["Buy milk"]
        assert camel.json()["content"] == snake.json()["content"]
