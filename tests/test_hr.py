"""Tests for departments, positions and employees."""
from conftest import add_user, login


def _department(client, headers, name="Engineering"):
    r = client.post("/api/hr/departments", json={"name": name, "description": "Builds things"}, headers=headers)
    assert r.status_code == 201, r.json
    return r.json["data"]


def _position(client, headers, name, department_id):
    r = client.post("/api/hr/positions", json={"name": name, "department_id": department_id}, headers=headers)
    assert r.status_code == 201, r.json
    return r.json["data"]


def test_hr_requires_permission(app, client):
    add_user(app, username="ed", email="ed@example.com", role_key="editor")
    headers = login(client, "ed@example.com", "user-pass-123")
    assert client.get("/api/hr/employees").status_code == 403
    assert client.post("/api/hr/departments", json={"name": "X"}, headers=headers).status_code == 403


def test_department_crud_and_conflicts(client, admin_headers):
    dept = _department(client, admin_headers)
    r = client.post("/api/hr/departments", json={"name": "Engineering"}, headers=admin_headers)
    assert r.status_code == 409

    r = client.put(f"/api/hr/departments/{dept['id']}", json={"is_active": False}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json["data"]["is_active"] is False

    _department(client, admin_headers, "Sales")
    r = client.get("/api/hr/departments", query_string={"active": "true"})
    assert [d["name"] for d in r.json["data"]] == ["Sales"]
    assert r.json["filters"] == {"active": True}

    _position(client, admin_headers, "Engineer", dept["id"])
    r = client.delete(f"/api/hr/departments/{dept['id']}", headers=admin_headers)
    assert r.status_code == 409


def test_position_requires_existing_department(client, admin_headers):
    r = client.post("/api/hr/positions", json={"name": "Ghost", "department_id": 404}, headers=admin_headers)
    assert r.status_code == 404


def test_positions_filter_by_department(client, admin_headers):
    eng = _department(client, admin_headers)
    sales = _department(client, admin_headers, "Sales")
    _position(client, admin_headers, "Engineer", eng["id"])
    _position(client, admin_headers, "Account Manager", sales["id"])

    r = client.get("/api/hr/positions", query_string={"department_id": sales["id"]})
    assert [p["name"] for p in r.json["data"]] == ["Account Manager"]
    assert r.json["data"][0]["department"]["name"] == "Sales"

    r = client.get("/api/hr/positions", query_string={"department_id": "abc"})
    assert r.status_code == 400


def test_employee_lifecycle(app, client, admin_headers):
    eng = _department(client, admin_headers)
    pos = _position(client, admin_headers, "Engineer", eng["id"])
    uid = add_user(app, username="nok", email="nok@example.com")

    r = client.post(
        "/api/hr/employees",
        json={"user_id": uid, "position_id": pos["id"], "salary": "35000", "start_date": "2024-05-01"},
        headers=admin_headers,
    )
    assert r.status_code == 201, r.json
    emp = r.json["data"]
    assert emp["status"] == "Probation"
    assert emp["department_id"] == eng["id"]
    assert emp["salary"] == 35000.0
    assert emp["start_date"] == "2024-05-01"
    assert emp["user"]["email"] == "nok@example.com"

    r = client.post("/api/hr/employees", json={"user_id": uid}, headers=admin_headers)
    assert r.status_code == 409

    r = client.put(f"/api/hr/employees/{emp['id']}", json={"status": "Active"}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json["data"]["status"] == "Active"
    assert r.json["data"]["salary"] == 35000.0

    r = client.put(f"/api/hr/employees/{emp['id']}", json={"status": "Fired"}, headers=admin_headers)
    assert r.status_code == 400
    r = client.put(f"/api/hr/employees/{emp['id']}", json={"salary": -1}, headers=admin_headers)
    assert r.status_code == 400
    r = client.put(f"/api/hr/employees/{emp['id']}", json={"start_date": "01/05/2024"}, headers=admin_headers)
    assert r.status_code == 400

    r = client.delete(f"/api/hr/positions/{pos['id']}", headers=admin_headers)
    assert r.status_code == 409

    r = client.delete(f"/api/hr/employees/{emp['id']}", headers=admin_headers)
    assert r.status_code == 200
    assert client.get(f"/api/hr/employees/{emp['id']}").status_code == 404


def test_employee_for_missing_user(client, admin_headers):
    r = client.post("/api/hr/employees", json={"user_id": 999}, headers=admin_headers)
    assert r.status_code == 404
    r = client.post("/api/hr/employees", json={}, headers=admin_headers)
    assert r.status_code == 400


def test_employees_list_filters_and_search(app, client, admin_headers):
    eng = _department(client, admin_headers)
    pos = _position(client, admin_headers, "Engineer", eng["id"])
    for name, status in (("anan", "Active"), ("bua", "Probation"), ("chai", "Active")):
        uid = add_user(app, username=name, email=f"{name}@example.com")
        client.post(
            "/api/hr/employees",
            json={"user_id": uid, "position_id": pos["id"], "status": status},
            headers=admin_headers,
        )

    r = client.get("/api/hr/employees", query_string={"status": "Active", "sort": "email", "order": "desc"})
    assert r.status_code == 200
    assert [e["user"]["username"] for e in r.json["data"]] == ["chai", "anan"]
    assert r.json["filters"] == {"status": "Active"}

    r = client.get("/api/hr/employees", query_string={"search": "engineer"})
    assert r.json["pagination"]["total_items"] == 3

    r = client.get("/api/hr/employees", query_string={"search": "bua"})
    assert [e["status"] for e in r.json["data"]] == ["Probation"]

    r = client.get("/api/hr/employees", query_string={"status": "Unknown"})
    assert r.status_code == 400


def test_my_employee_profile(app, client, admin_headers):
    uid = add_user(app, username="self", email="self@example.com")
    client.post("/api/hr/employees", json={"user_id": uid}, headers=admin_headers)
    client.post("/api/auth/logout")

    login(client, "self@example.com", "user-pass-123")
    r = client.get("/api/hr/my-employee-profile")
    assert r.status_code == 200
    assert r.json["data"]["user_id"] == uid

    client.post("/api/auth/logout")
    login(client)
    assert client.get("/api/hr/my-employee-profile").status_code == 404


def test_hr_rejects_wrong_json_types(app, client, admin_headers):
    r = client.post("/api/hr/departments", json={"name": 123}, headers=admin_headers)
    assert r.status_code == 400
    assert r.json["error"]["message"] == "name must be a string."
    assert client.post("/api/hr/positions", json={"name": {"en": "Dev"}}, headers=admin_headers).status_code == 400

    r = client.post("/api/hr/employees", json={"user_id": "abc"}, headers=admin_headers)
    assert r.status_code == 400
    r = client.post("/api/hr/employees", json={"user_id": 2**40}, headers=admin_headers)
    assert r.status_code == 400


def test_salary_must_be_finite_and_in_range(app, client, admin_headers):
    uid = add_user(app, username="pim", email="pim@example.com")
    for salary in ("NaN", "Infinity", "-Infinity", "1e20", 1e20, "lots"):
        r = client.post("/api/hr/employees", json={"user_id": uid, "salary": salary}, headers=admin_headers)
        assert r.status_code == 400, salary

    r = client.post("/api/hr/employees", json={"user_id": uid, "salary": "42000.456"}, headers=admin_headers)
    assert r.status_code == 201
    emp = r.json["data"]
    assert emp["salary"] == 42000.46
    r = client.put(f"/api/hr/employees/{emp['id']}", json={"salary": "NaN"}, headers=admin_headers)
    assert r.status_code == 400
    r = client.put(f"/api/hr/employees/{emp['id']}", json={"status": 5}, headers=admin_headers)
    assert r.status_code == 400
