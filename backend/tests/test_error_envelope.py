from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError, TimeoutError as PoolTimeoutError

from codesensei.config import get_settings
from codesensei.services import accounts

from conftest import TEST_PASSWORD, register


def test_validation_details_shown_outside_production(client):
    response = client.post("/auth/login", json={})

    assert response.status_code == 400
    body = response.json()
    assert body["status"] == "error"
    assert body["message"] == "Invalid or missing fields"
    assert body["details"]


def test_validation_details_hidden_in_production(build_app):
    settings = get_settings().model_copy(update={"environment": "production"})
    client = TestClient(build_app(settings))

    response = client.post("/auth/login", json={})

    assert response.status_code == 400
    assert response.json() == {"status": "error", "message": "Invalid or missing fields"}


def test_login_store_timeout_is_distinct_from_bad_credentials(client, monkeypatch):
    register(client)

    def slow_lookup(db, username_or_email):
        raise PoolTimeoutError("QueuePool limit of size 5 overflow 10 reached, connection timed out")

    monkeypatch.setattr(accounts, "find_by_credentials", slow_lookup)

    response = client.post("/auth/login", json={"username": "alice", "password": TEST_PASSWORD})
    assert response.status_code == 408
    assert response.json()["message"] == "Login request timed out. Please try again."


def test_register_locked_database_times_out(client, monkeypatch):
    def locked(db, username, email):
        raise OperationalError("SELECT users.id", {}, Exception("database is locked"))

    monkeypatch.setattr(accounts, "username_or_email_taken", locked)

    response = client.post(
        "/auth/register",
        json={"username": "alice", "email": "alice@x.com", "password": TEST_PASSWORD},
    )
    assert response.status_code == 408
    assert "timed out" in response.json()["message"]


def test_register_store_failure_is_upstream_error(client, monkeypatch):
    def broken(db, username, email):
        raise OperationalError("SELECT users.id", {}, Exception("no such table: users"))

    monkeypatch.setattr(accounts, "username_or_email_taken", broken)

    response = client.post(
        "/auth/register",
        json={"username": "alice", "email": "alice@x.com", "password": TEST_PASSWORD},
    )
    assert response.status_code == 500
    assert response.json()["message"] == "Error during registration"
    assert "no such table" in response.json()["details"]["error"]


def test_unknown_route_uses_envelope(client):
    response = client.get("/auth/nope")

    assert response.status_code == 404
    assert response.json() == {"status": "error", "message": "Not Found"}


def test_unauthenticated_response_advertises_bearer(client):
    response = client.get("/auth/profile")

    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"
