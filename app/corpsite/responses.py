"""
JSON envelope shared by every endpoint.

Success: {"success": true, "data": ..., "message": ...}
Lists:   adds "pagination" and "filters" (null when nothing was filtered)
Errors:  {"success": false, "error": {"code": ..., "message": ..., "details": ...}}
"""
from __future__ import annotations

from http import HTTPStatus
from typing import Any

from flask import jsonify
from flask.wrappers import Response


class ApiError(Exception):
    status_code = 400

    def __init__(self, message: str, *, code: str | None = None, details: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.code = code or HTTPStatus(self.status_code).phrase
        self.details = details


class BadRequest(ApiError):
    status_code = 400


class Unauthorized(ApiError):
    status_code = 401


class Forbidden(ApiError):
    status_code = 403


class NotFound(ApiError):
    status_code = 404


class Conflict(ApiError):
    status_code = 409


class TooManyRequests(ApiError):
    status_code = 429


def success(data: Any = None, message: str | None = None, *, status: int = 200) -> tuple[Response, int]:
    body: dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = data
    if message:
        body["message"] = message
    return jsonify(body), status


def created(data: Any = None, message: str | None = None) -> tuple[Response, int]:
    return success(data, message, status=201)


def paginated(items: list, pagination: dict, filters: dict | None = None, message: str | None = None) -> tuple[Response, int]:
    body: dict[str, Any] = {
        "success": True,
        "data": items,
        "pagination": pagination,
        "filters": filters or None,
    }
    if message:
        body["message"] = message
    return jsonify(body), 200


def error_body(status: int, message: str, *, code: str | None = None, details: str | None = None) -> dict:
    err: dict[str, Any] = {
        "code": code or HTTPStatus(status).phrase,
        "message": message,
    }
    if details:
        err["details"] = details
    return {"success": False, "error": err}


def error(status: int, message: str, *, code: str | None = None, details: str | None = None) -> tuple[Response, int]:
    return jsonify(error_body(status, message, code=code, details=details)), status


def require_json() -> dict:
    """Return the JSON object body or raise BadRequest."""
    from flask import request

    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise BadRequest("Request body must be a JSON object.")
    return payload


def require_json_list(wrapper_key: str | None = None) -> list:
    """Return the JSON array body, also accepted as {wrapper_key: [...]}, or raise BadRequest."""
    from flask import request

    payload = request.get_json(silent=True)
    if wrapper_key and isinstance(payload, dict):
        payload = payload.get(wrapper_key)
    if not isinstance(payload, list):
        raise BadRequest("Request body must be a JSON array.")
    return payload
