from __future__ import annotations

import logging
from typing import Any

import requests

from app.corpsite.list_controller import FetchParams, Fetcher, ListResult

logger = logging.getLogger(__name__)

_WRITE_METHODS = ("POST", "PUT", "PATCH", "DELETE")


class ApiClientError(RuntimeError):
    def __init__(self, message: str, status: int | None = None, code: str | None = None):
        super().__init__(message)
        self.status = status
        self.code = code


class ApiClient:
    """
    Thin client for the /api envelope. Any object with a requests.Session-compatible
    `request(method, url, **kwargs)` can be passed as `session`.
    """

    def __init__(self, base_url: str, *, session: Any = None, timeout: float = 10):
        self.base_url = base_url.rstrip("/")
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout
        self.csrf_token: str | None = None

    def _url(self, path: str) -> str:
        return self.base_url + "/" + path.lstrip("/")

    def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> dict[str, Any]:
        method = method.upper()
        headers = {"Accept": "application/json"}
        if method in _WRITE_METHODS and self.csrf_token:
            headers["X-CSRF-Token"] = self.csrf_token
        if params:
            params = {k: v for k, v in params.items() if v is not None and v != ""}

        try:
            resp = self.session.request(method, self._url(path), params=params, json=json, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise ApiClientError(f"No response from server: {e}") from e

        try:
            body = resp.json()
        except ValueError:
            raise ApiClientError(f"Invalid JSON from {method} {path} (HTTP {resp.status_code})", status=resp.status_code) from None

        if not isinstance(body, dict):
            raise ApiClientError(f"Unexpected response shape from {method} {path}", status=resp.status_code)

        ok = 200 <= resp.status_code < 300 and body.get("success") is not False
        if not ok:
            err = body.get("error") or {}
            message = err.get("message") if isinstance(err, dict) else None
            if resp.status_code == 401:
                logger.warning("Unauthorized access: %s %s", method, path)
            raise ApiClientError(message or f"API error (HTTP {resp.status_code})", status=resp.status_code, code=err.get("code") if isinstance(err, dict) else None)
        return body

    def get(self, path: str, **params: Any) -> Any:
        return self.request("GET", path, params=params).get("data")

    def post(self, path: str, json: Any = None) -> Any:
        return self.request("POST", path, json=json).get("data")

    def put(self, path: str, json: Any = None) -> Any:
        return self.request("PUT", path, json=json).get("data")

    def delete(self, path: str) -> dict[str, Any]:
        return self.request("DELETE", path)

    # ---------- Auth ----------
    def fetch_csrf_token(self) -> str:
        data = self.get("/auth/csrf")
        self.csrf_token = data["csrf_token"]
        return self.csrf_token

    def login(self, identifier: str, password: str) -> dict[str, Any]:
        data = self.request("POST", "/auth/login", json={"email": identifier, "password": password})["data"]
        self.csrf_token = data.get("csrf_token")
        return data["user"]

    def logout(self) -> None:
        self.request("POST", "/auth/logout")
        self.csrf_token = None

    # ---------- Lists ----------
    def list(self, path: str, params: dict[str, Any] | None = None) -> ListResult:
        body = self.request("GET", path, params=params)
        pagination = body.get("pagination") or {}
        data = body.get("data") or []
        return ListResult(data=data, total=int(pagination.get("total_items", len(data))), pagination=pagination or None)

    def fetcher_for(self, path: str, **extra: Any) -> Fetcher:
        """Build a ListController fetcher for a list endpoint; `extra` adds fixed filters."""

        def fetch(params: FetchParams) -> ListResult:
            return self.list(path, {**extra, **params.as_query()})

        return fetch
