"""Tests for the users, roles, permissions and audit-log admin endpoints."""
import json

from app.corpsite.db import session_scope
from app.corpsite.models import AuditLog
from conftest import add_user, login


def _role_id(client, key):
    r = client.get("/api/roles", query_string={"search": key})
    return next(row["id"] for row in r.json["data"] if row["key"] == key)


def test_users_list_paginates(app, client, admin_headers):
    for i in range(12):
        add_user(app, username=f"user{i:02d}", email=f"user{i:02d}@example.com")

    r = client.get("/api/users", query_string={"page": 2, "limit": 5, "sort": "username", "order": "asc"})
    assert r.status_code == 200
    body = r.json
    assert body["pagination"] == {
        "page": 2,
        "limit": 5,
        "total_items": 13,
        "total_pages": 3,
        "has_previous": True,
        "has_next": True,
    }
    assert [u["username"] for u in body["data"]] == ["user04", "user05", "user06", "user07", "user08"]
    assert body["filters"] is None


def test_users_search_and_unknown_sort_falls_back(app, client, admin_headers):
    add_user(app, username="somchai", email="somchai@example.com")
    r = client.get("/api/users", query_string={"search": "SOMCHAI", "sort": "password_hash"})
    assert r.status_code == 200
    assert [u["email"] for u in r.json["data"]] == ["somchai@example.com"]
    assert r.json["filters"] == {"search": "SOMCHAI"}


def test_user_create_validation_and_conflict(client, admin_headers):
    r = client.post("/api/users", json={"username": "x", "email": "bad", "password": "short"}, headers=admin_headers)
    assert r.status_code == 400
    assert "Username" in r.json["error"]["message"]
    assert "Invalid email format." in r.json["error"]["details"]

    editor_id = _role_id(client, "editor")
    payload = {
        "username": "editor1",
        "email": "Editor1@Example.com",
        "password": "editor-pass-1",
        "password_confirm": "editor-pass-1",
        "role_ids": [editor_id],
        "first_name": "Nok",
    }
    r = client.post("/api/users", json=payload, headers=admin_headers)
    assert r.status_code == 201
    data = r.json["data"]
    assert data["email"] == "editor1@example.com"
    assert [role["key"] for role in data["roles"]] == ["editor"]

    r = client.post("/api/users", json=payload, headers=admin_headers)
    assert r.status_code == 409


def test_user_create_unknown_role(client, admin_headers):
    r = client.post(
        "/api/users",
        json={"username": "ghost", "email": "ghost@example.com", "password": "ghost-pass-1", "role_ids": [999]},
        headers=admin_headers,
    )
    assert r.status_code == 404


def test_user_update_roles_and_deactivate(app, client, admin_headers):
    uid = add_user(app, username="staff", email="staff@example.com")
    hr_id = _role_id(client, "hr")

    r = client.put(f"/api/users/{uid}", json={"role_ids": [hr_id]}, headers=admin_headers)
    assert r.status_code == 200
    assert [role["key"] for role in r.json["data"]["roles"]] == ["hr"]

    r = client.get(f"/api/users/{uid}")
    assert r.json["data"]["permissions"] == ["hr.manage", "hr.view"]

    r = client.put(f"/api/users/{uid}", json={"is_active": False}, headers=admin_headers)
    assert r.json["data"]["is_active"] is False
    # inactive accounts carry no permissions
    assert client.get(f"/api/users/{uid}").json["data"]["permissions"] == []


def test_cannot_deactivate_or_delete_self(client, admin_headers):
    me = client.get("/api/auth/profile").json["data"]["id"]
    r = client.put(f"/api/users/{me}", json={"is_active": False}, headers=admin_headers)
    assert r.status_code == 400
    r = client.delete(f"/api/users/{me}", headers=admin_headers)
    assert r.status_code == 400


def test_user_reset_password_and_delete(app, client, admin_headers):
    uid = add_user(app, username="temp", email="temp@example.com")
    r = client.put(f"/api/users/{uid}/reset-password", json={"password": "short"}, headers=admin_headers)
    assert r.status_code == 400
    r = client.put(
        f"/api/users/{uid}/reset-password",
        json={"password": "fresh-pass-1", "password_confirm": "fresh-pass-1"},
        headers=admin_headers,
    )
    assert r.status_code == 200

    r = client.delete(f"/api/users/{uid}", headers=admin_headers)
    assert r.status_code == 200
    assert client.get(f"/api/users/{uid}").status_code == 404


def test_roles_crud(client, admin_headers):
    perms = client.get("/api/permissions").json["data"]
    assert "audit.view" in [p["key"] for p in perms]
    audit_view = next(p["id"] for p in perms if p["key"] == "audit.view")

    r = client.post("/api/roles", json={"key": "Auditor", "name": "Auditor", "permission_ids": [audit_view]}, headers=admin_headers)
    assert r.status_code == 201
    role = r.json["data"]
    assert role["key"] == "auditor"
    assert [p["key"] for p in role["permissions"]] == ["audit.view"]

    r = client.post("/api/roles", json={"key": "auditor", "name": "Again"}, headers=admin_headers)
    assert r.status_code == 409
    r = client.post("/api/roles", json={"key": "bad key!", "name": "Bad"}, headers=admin_headers)
    assert r.status_code == 400

    r = client.put(f"/api/roles/{role['id']}", json={"name": "Auditors", "permission_ids": []}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json["data"]["name"] == "Auditors"
    assert r.json["data"]["permissions"] == []

    r = client.delete(f"/api/roles/{role['id']}", headers=admin_headers)
    assert r.status_code == 200
    assert client.get(f"/api/roles/{role['id']}").status_code == 404


def test_role_in_use_cannot_be_deleted(client, admin_headers):
    admin_role = _role_id(client, "admin")
    r = client.delete(f"/api/roles/{admin_role}", headers=admin_headers)
    assert r.status_code == 409
    assert r.json["error"]["details"] == "1 user(s)"


def test_roles_list_default_sort_by_name(client, admin_headers):
    r = client.get("/api/roles")
    names = [row["name"] for row in r.json["data"]]
    assert names == sorted(names)
    assert r.json["data"][0]["user_count"] in (0, 1)


def test_audit_logs_recorded_and_listed(app, client, admin_headers):
    client.post("/api/roles", json={"key": "viewer", "name": "Viewer"}, headers=admin_headers)

    r = client.get("/api/audit-logs")
    assert r.status_code == 200
    assert r.json["message"] == "Audit logs retrieved successfully"
    actions = [row["action"] for row in r.json["data"]]
    assert actions == ["role.create", "auth.login"]

    r = client.get("/api/audit-logs", query_string={"search": "viewer"})
    assert [row["action"] for row in r.json["data"]] == ["role.create"]
    assert json.loads(r.json["data"][0]["details"])["key"] == "viewer"

    r = client.get("/api/audit-logs", query_string={"sort": "action", "order": "asc"})
    assert [row["action"] for row in r.json["data"]] == ["auth.login", "role.create"]


def test_failed_login_is_audited(app, client):
    client.post("/api/auth/login", json={"email": "nobody@example.com", "password": "x"})
    with session_scope(app) as s:
        ev = s.query(AuditLog).filter(AuditLog.action == "auth.login_failed").one()
        assert ev.user_id is None
        assert ev.entity_id == "nobody@example.com"


def test_audit_logs_require_permission(app, client):
    add_user(app, username="ed", email="ed@example.com", role_key="editor")
    login(client, "ed@example.com", "user-pass-123")
    r = client.get("/api/audit-logs")
    assert r.status_code == 403


def test_is_active_accepts_string_booleans(app, client, admin_headers):
    uid = add_user(app, username="strbool", email="strbool@example.com")
    r = client.put(f"/api/users/{uid}", json={"is_active": "false"}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json["data"]["is_active"] is False
    r = client.put(f"/api/users/{uid}", json={"is_active": "1"}, headers=admin_headers)
    assert r.json["data"]["is_active"] is True

    r = client.post(
        "/api/users",
        json={"username": "offline", "email": "offline@example.com", "password": "user-pass-123", "is_active": "no"},
        headers=admin_headers,
    )
    assert r.status_code == 201
    assert r.json["data"]["is_active"] is False


def test_cannot_deactivate_self_with_string_false(client, admin_headers):
    me = client.get("/api/auth/profile").json["data"]["id"]
    r = client.put(f"/api/users/{me}", json={"is_active": "false"}, headers=admin_headers)
    assert r.status_code == 400
    assert client.get("/api/auth/profile").json["data"]["is_active"] is True


def test_user_endpoints_reject_non_string_fields(app, client, admin_headers):
    r = client.post("/api/users", json={"username": 5, "email": "n@example.com", "password": "user-pass-123"}, headers=admin_headers)
    assert r.status_code == 400
    uid = add_user(app, username="typed", email="typed@example.com")
    r = client.put(f"/api/users/{uid}/reset-password", json={"password": 12345678}, headers=admin_headers)
    assert r.status_code == 400
    r = client.post("/api/roles", json={"key": ["x"], "name": "X"}, headers=admin_headers)
    assert r.status_code == 400
