import json

import pytest

from app.corpsite import create_app, db
from conftest import ADMIN_EMAIL, add_user, login


def test_health_ok(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.json["success"] is True
    assert r.json["data"]["status"] == "ok"


def test_healthz_plain(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.data == b"ok"


def test_request_id_echoed(client):
    r = client.get("/api/health", headers={"X-Request-ID": "abc123"})
    assert r.headers["X-Request-ID"] == "abc123"


def test_anonymous_gets_401_envelope(client):
    r = client.get("/api/users")
    assert r.status_code == 401
    assert r.json["success"] is False
    assert r.json["error"]["message"] == "Authentication required."


def test_login_returns_user_permissions_and_csrf(client):
    r = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": "admin-pass-123"})
    assert r.status_code == 200
    data = r.json["data"]
    assert data["user"]["email"] == ADMIN_EMAIL
    assert "users.manage" in data["user"]["permissions"]
    assert data["csrf_token"]


def test_login_by_username(client):
    r = client.post("/api/auth/login", json={"username": "admin", "password": "admin-pass-123"})
    assert r.status_code == 200


def test_login_bad_password(client):
    r = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": "nope"})
    assert r.status_code == 401
    assert r.json["error"]["message"] == "Invalid credentials."


def test_login_inactive_user_rejected(app, client):
    add_user(app, username="gone", email="gone@example.com", is_active=False)
    r = client.post("/api/auth/login", json={"email": "gone@example.com", "password": "user-pass-123"})
    assert r.status_code == 401


def test_login_rate_limited(client):
    for _ in range(5):
        client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": "wrong"})
    r = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": "admin-pass-123"})
    assert r.status_code == 429


def test_login_requires_json_body(client):
    r = client.post("/api/auth/login", data={"email": ADMIN_EMAIL})
    assert r.status_code == 400


def test_forbidden_without_permission(app, client):
    add_user(app, username="plain", email="plain@example.com")
    login(client, "plain@example.com", "user-pass-123")
    r = client.get("/api/users")
    assert r.status_code == 403
    assert r.json["error"]["details"] == "users.view"


def test_write_without_csrf_rejected(client, admin_headers):
    r = client.post("/api/roles", json={"key": "viewer", "name": "Viewer"})
    assert r.status_code == 400
    assert r.json["error"]["code"] == "CSRF_FAILED"


def test_profile_and_logout(client, admin_headers):
    r = client.get("/api/auth/profile")
    assert r.status_code == 200
    assert r.json["data"]["username"] == "admin"

    r = client.put("/api/auth/profile", json={"first_name": "Ada", "last_name": "Admin"}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json["data"]["full_name"] == "Ada Admin"

    r = client.post("/api/auth/logout")
    assert r.status_code == 200
    assert client.get("/api/auth/profile").status_code == 401


def test_change_password(client, admin_headers):
    r = client.put(
        "/api/auth/change-password",
        json={"current_password": "wrong-pass", "new_password": "new-pass-456", "confirm_password": "new-pass-456"},
        headers=admin_headers,
    )
    assert r.status_code == 400

    r = client.put(
        "/api/auth/change-password",
        json={"current_password": "admin-pass-123", "new_password": "new-pass-456", "confirm_password": "new-pass-456"},
        headers=admin_headers,
    )
    assert r.status_code == 200

    client.post("/api/auth/logout")
    r = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": "new-pass-456"})
    assert r.status_code == 200


def test_unknown_route_json_404(client):
    r = client.get("/api/does-not-exist")
    assert r.status_code == 404
    assert r.json["success"] is False


def test_cors_headers_for_allowed_origin(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'cors.db'}")
    monkeypatch.setenv("CORS_ORIGINS", "https://www.1931.co.th, https://admin.1931.co.th/")
    c = create_app().test_client()
    r = c.get("/api/health", headers={"Origin": "https://admin.1931.co.th"})
    assert r.headers["Access-Control-Allow-Origin"] == "https://admin.1931.co.th"
    r = c.get("/api/health", headers={"Origin": "https://evil.example"})
    assert "Access-Control-Allow-Origin" not in r.headers


def test_production_guardrails(tmp_path, monkeypatch):
    monkeypatch.setenv("ENV", "production")
    monkeypatch.setenv("SECRET_KEY", "a-long-random-production-secret")
    monkeypatch.delenv("DATABASE_URL", raising=False)
    with pytest.raises(RuntimeError, match="DATABASE_URL is required"):
        create_app()

    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'prod.db'}")
    with pytest.raises(RuntimeError, match="Postgres"):
        create_app()

    monkeypatch.setenv("DATABASE_URL", "postgresql+psycopg2://corpsite:pw@db.internal/corpsite")
    monkeypatch.setenv("SECRET_KEY", "change-me")
    with pytest.raises(RuntimeError, match="SECRET_KEY"):
        create_app()


def test_fork_hook_registered_once(tmp_path, monkeypatch):
    calls = []
    monkeypatch.setattr(db, "_fork_hook_registered", False)
    monkeypatch.setattr(db.os, "register_at_fork", lambda **kw: calls.append(kw), raising=False)
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'fork.db'}")

    first = create_app()
    second = create_app()
    assert len(calls) == 1
    assert first.extensions["sqlalchemy_engine"] in db._fork_engines
    assert second.extensions["sqlalchemy_engine"] in db._fork_engines


def test_register_creates_active_user_with_default_role(app, client):
    r = client.post(
        "/api/auth/register",
        json={
            "username": "somchai",
            "email": "Somchai@Example.com",
            "password": "register-pass-1",
            "password_confirm": "register-pass-1",
            "first_name": "Somchai",
            "role_ids": [1],
            "is_active": False,
        },
    )
    assert r.status_code == 201, r.json
    data = r.json["data"]
    assert data["email"] == "somchai@example.com"
    assert data["is_active"] is True
    assert data["first_name"] == "Somchai"
    assert [role["key"] for role in data["roles"]] == ["user"]

    headers = login(client, "somchai@example.com", "register-pass-1")
    assert client.get("/api/users").status_code == 403
    assert headers["X-CSRF-Token"]


def test_register_validation(client):
    body = {"username": "nid", "email": "nid@example.com", "password": "register-pass-1"}
    assert client.post("/api/auth/register", json={**body, "password_confirm": "different-1"}).status_code == 400
    assert client.post("/api/auth/register", json={**body, "email": 7}).status_code == 400
    assert client.post("/api/auth/register", json={**body, "email": ADMIN_EMAIL}).status_code == 409
    assert client.post("/api/auth/register", json=body).status_code == 201
    assert client.post("/api/auth/register", json={**body, "email": "nid2@example.com"}).status_code == 409


def test_register_rate_limited(client):
    for i in range(5):
        client.post("/api/auth/register", json={"username": f"u{i}", "email": "bad", "password": "x"})
    r = client.post(
        "/api/auth/register",
        json={"username": "late", "email": "late@example.com", "password": "register-pass-1"},
    )
    assert r.status_code == 429


def test_login_rejects_non_string_fields(client):
    assert client.post("/api/auth/login", json={"email": 5, "password": "x"}).status_code == 400
    assert client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ["admin-pass-123"]}).status_code == 400


def test_envelope_keeps_insertion_order(client):
    body = json.loads(client.get("/api/health").data)
    assert list(body) == ["success", "data"]
    assert list(body["data"]) == ["status", "message"]
