"""ApiClient against the real app, through a requests-compatible adapter over the Flask test client."""
from urllib.parse import urlsplit

import pytest
import requests

from app.corpsite.client import ApiClient, ApiClientError
from app.corpsite.list_controller import ListController
from conftest import ADMIN_EMAIL, ADMIN_PASSWORD


class _Response:
    def __init__(self, resp):
        self.status_code = resp.status_code
        self._resp = resp

    def json(self):
        body = self._resp.get_json(silent=True)
        if body is None:
            raise ValueError("not JSON")
        return body


class FlaskSession:
    """Just enough of requests.Session for ApiClient."""

    def __init__(self, test_client):
        self.test_client = test_client
        self.calls = []

    def request(self, method, url, params=None, json=None, headers=None, timeout=None):
        path = urlsplit(url).path
        self.calls.append((method, path, params, headers))
        resp = self.test_client.open(path, method=method, query_string=params, json=json, headers=headers)
        return _Response(resp)


@pytest.fixture()
def api(client):
    return ApiClient("http://localhost/api", session=FlaskSession(client))


def test_login_stores_csrf_and_sends_it_on_writes(api):
    user = api.login(ADMIN_EMAIL, ADMIN_PASSWORD)
    assert user["email"] == ADMIN_EMAIL
    assert api.csrf_token

    role = api.post("/roles", {"key": "viewer", "name": "Viewer"})
    assert role["key"] == "viewer"
    method, path, _, headers = api.session.calls[-1]
    assert (method, path) == ("POST", "/api/roles")
    assert headers["X-CSRF-Token"] == api.csrf_token


def test_get_does_not_send_csrf(api):
    api.login(ADMIN_EMAIL, ADMIN_PASSWORD)
    api.get("/permissions")
    _, _, _, headers = api.session.calls[-1]
    assert "X-CSRF-Token" not in headers


def test_error_envelope_becomes_exception(api):
    with pytest.raises(ApiClientError) as exc:
        api.get("/users")
    assert exc.value.status == 401
    assert str(exc.value) == "Authentication required."

    with pytest.raises(ApiClientError) as exc:
        api.login(ADMIN_EMAIL, "wrong")
    assert exc.value.status == 401


def test_csrf_endpoint_then_logout(api):
    token = api.fetch_csrf_token()
    assert token and api.csrf_token == token
    api.login(ADMIN_EMAIL, ADMIN_PASSWORD)
    api.logout()
    assert api.csrf_token is None
    with pytest.raises(ApiClientError):
        api.get("/auth/profile")


def test_list_drops_empty_params(api):
    api.login(ADMIN_EMAIL, ADMIN_PASSWORD)
    result = api.list("/roles", {"page": 1, "limit": 2, "search": "", "sort": None})
    _, _, params, _ = api.session.calls[-1]
    assert params == {"page": 1, "limit": 2}
    assert result.total == 4  # admin, editor, hr, user
    assert len(result.data) == 2
    assert result.pagination["total_pages"] == 2


def test_controller_over_audit_logs_endpoint(api):
    api.login(ADMIN_EMAIL, ADMIN_PASSWORD)
    for key in ("alpha", "beta", "gamma"):
        api.post("/roles", {"key": key, "name": key.title()})

    ctl = ListController(api.fetcher_for("/audit-logs"), initial_limit=2, initial_sort=("created_at", "desc"))
    assert ctl.error is None
    assert ctl.total == 4  # login + 3 role.create
    assert ctl.total_pages == 2
    assert len(ctl.data) == 2

    ctl.set_search("role.create")
    assert ctl.total == 3
    assert ctl.page == 1

    ctl.toggle_sort("action")
    assert {row["action"] for row in ctl.data} == {"role.create"}

    ctl.next_page()
    assert ctl.page == 2
    assert len(ctl.data) == 1


def test_controller_keeps_error_from_api(api):
    ctl = ListController(api.fetcher_for("/audit-logs"))
    assert isinstance(ctl.error, ApiClientError)
    assert ctl.error.status == 401
    assert ctl.data == []


def test_network_failure_wrapped():
    class Broken:
        def request(self, *args, **kwargs):
            raise requests.ConnectionError("refused")

    api = ApiClient("http://127.0.0.1:9/api", session=Broken())
    with pytest.raises(ApiClientError) as exc:
        api.get("/health")
    assert "No response from server" in str(exc.value)
    assert exc.value.status is None
