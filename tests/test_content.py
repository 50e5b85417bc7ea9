"""Tests for public news/careers/contact endpoints and their admin counterparts."""
CONTACT = {
    "name": "Somsri",
    "email": "Somsri@Example.com",
    "subject": "Partnership",
    "message": "We would like to discuss a partnership.",
}


def _news(client, headers, title, date, category="company"):
    r = client.post(
        "/api/admin/news",
        json={"title": title, "date": date, "category": category, "image": "/api/files/x.png", "content": "..."},
        headers=headers,
    )
    assert r.status_code == 201, r.json
    return r.json["data"]


def test_public_news_list_and_detail(client, admin_headers):
    _news(client, admin_headers, "Older", "2024-01-01")
    newer = _news(client, admin_headers, "Newer", "2024-06-01", category="csr")
    client.post("/api/auth/logout")

    r = client.get("/api/news")
    assert r.status_code == 200
    assert r.json["message"] == "Successfully fetched news"
    assert [n["title"] for n in r.json["data"]] == ["Newer", "Older"]
    assert r.json["data"][0]["date"] == "2024-06-01"
    assert r.json["data"][0]["image"] == "/api/files/x.png"

    r = client.get("/api/news", query_string={"category": "csr"})
    assert [n["title"] for n in r.json["data"]] == ["Newer"]
    assert r.json["filters"] == {"category": "csr"}

    r = client.get(f"/api/news/{newer['id']}")
    assert r.json["data"]["title"] == "Newer"
    assert client.get("/api/news/999").status_code == 404


def test_admin_content_rejects_anonymous(client):
    assert client.get("/api/admin/careers").status_code == 401
    r = client.post("/api/admin/news", json={"title": "x"})
    # anonymous: no CSRF token in session
    assert r.status_code == 400
    assert r.json["error"]["code"] == "CSRF_FAILED"


def test_news_update_and_delete(client, admin_headers):
    item = _news(client, admin_headers, "Draft", "2024-02-02")
    r = client.put(f"/api/admin/news/{item['id']}", json={"title": "Final", "category": None}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json["data"]["title"] == "Final"
    assert r.json["data"]["category"] is None

    r = client.put(f"/api/admin/news/{item['id']}", json={"title": "  "}, headers=admin_headers)
    assert r.status_code == 400

    r = client.delete(f"/api/admin/news/{item['id']}", headers=admin_headers)
    assert r.status_code == 200
    assert client.get(f"/api/news/{item['id']}").status_code == 404


def test_careers_public_only_active(client, admin_headers):
    r = client.post("/api/admin/careers", json={"title": "Developer", "type": "Full-time", "location": "Bangkok"}, headers=admin_headers)
    assert r.status_code == 201
    open_id = r.json["data"]["id"]
    r = client.post("/api/admin/careers", json={"title": "Closed role", "is_active": False}, headers=admin_headers)
    closed_id = r.json["data"]["id"]

    assert [c["title"] for c in client.get("/api/careers").json["data"]] == ["Developer"]
    assert client.get(f"/api/careers/{open_id}").json["data"]["type"] == "Full-time"
    assert client.get(f"/api/careers/{closed_id}").status_code == 404

    r = client.get("/api/admin/careers")
    assert r.json["pagination"]["total_items"] == 2

    r = client.put(f"/api/admin/careers/{closed_id}", json={"is_active": "true"}, headers=admin_headers)
    assert r.json["data"]["is_active"] is True
    r = client.delete(f"/api/admin/careers/{open_id}", headers=admin_headers)
    assert r.status_code == 200
    assert [c["title"] for c in client.get("/api/careers").json["data"]] == ["Closed role"]


def test_contact_submit_is_public(client):
    r = client.post("/api/contact", json=CONTACT)
    assert r.status_code == 201
    assert r.json["message"] == "Contact submitted successfully"
    assert r.json["data"]["email"] == "somsri@example.com"
    assert r.json["data"]["status"] == "new"


def test_contact_validation(client):
    r = client.post("/api/contact", json={**CONTACT, "message": "too short", "email": "nope"})
    assert r.status_code == 400
    assert r.json["error"]["message"] == "A valid email is required."
    assert "Message must be at least 10 characters." in r.json["error"]["details"]


def test_admin_contacts_inbox(client, admin_headers):
    client.post("/api/contact", json=CONTACT)
    client.post("/api/contact", json={**CONTACT, "subject": "Job enquiry"})

    r = client.get("/api/admin/contacts")
    assert r.json["pagination"]["total_items"] == 2
    first_id = r.json["data"][-1]["id"]

    r = client.put(f"/api/admin/contacts/{first_id}", json={"status": "read"}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json["data"]["status"] == "read"

    r = client.put(f"/api/admin/contacts/{first_id}", json={"status": "spam"}, headers=admin_headers)
    assert r.status_code == 400

    r = client.get("/api/admin/contacts", query_string={"status": "new"})
    assert [m["subject"] for m in r.json["data"]] == ["Job enquiry"]
    assert client.get("/api/admin/contacts", query_string={"status": "bogus"}).status_code == 400


def test_contact_rejects_non_string_fields(client):
    r = client.post("/api/contact", json={**CONTACT, "name": ["a"]})
    assert r.status_code == 400
    assert r.json["error"]["message"] == "name must be a string."
    assert client.post("/api/contact", json={**CONTACT, "message": {"text": "hello there"}}).status_code == 400


def test_news_rejects_non_string_title(client, admin_headers):
    r = client.post("/api/admin/news", json={"title": 1931, "content": "Body"}, headers=admin_headers)
    assert r.status_code == 400
