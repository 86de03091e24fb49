import mongomock
import pytest
from fastapi.testclient import TestClient

import config
from database import get_db
from main import app
from security import create_access_token
from user_store import UserStore, safe_user


@pytest.fixture
def db():
    """Fresh in-memory MongoDB per test."""
    return mongomock.MongoClient()["postsale_test"]


@pytest.fixture
def upload_dir(tmp_path, monkeypatch):
    path = tmp_path / "uploads"
    monkeypatch.setattr(config, "UPLOAD_DIR", str(path))
    return path


@pytest.fixture
def client(db, upload_dir, monkeypatch):
    monkeypatch.setattr(config, "STATS_SOURCE", "live")
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_user(db):
    return safe_user(UserStore(db).create("Admin", "admin@example.com", "admin123", role="admin"))


@pytest.fixture
def regular_user(db):
    return safe_user(UserStore(db).create("Regular", "user@example.com", "user1234", role="user"))


@pytest.fixture
def admin_headers(admin_user):
    return {"Authorization": f"Bearer {create_access_token(admin_user)}"}


@pytest.fixture
def user_headers(regular_user):
    return {"Authorization": f"Bearer {create_access_token(regular_user)}"}


@pytest.fixture
def log_event(client):
    """POST one event and return the response body."""

    def _log(event_type, event_data=None, user_id=None, session_id="sess_test", **extra):
        payload = {"eventType": event_type, "sessionId": session_id, "eventData": event_data or {}, **extra}
        if user_id is not None:
            payload["userId"] = user_id
        response = client.post("/api/logs/event", json=payload)
        assert response.status_code == 201, response.text
        return response.json()

    return _log
