from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import datetime, timedelta

from flask import Blueprint, current_app, g, request, session

from app.corpsite.accounts import (
    authenticate,
    change_own_password,
    password_fields,
    register_user,
    serialize_user,
    update_profile,
)
from app.corpsite.audit import record_event
from app.corpsite.db import db_session
from app.corpsite.models import User
from app.corpsite.rbac import current_user, require_login
from app.corpsite.responses import TooManyRequests, Unauthorized, created, require_json, success
from app.corpsite.security import ensure_csrf_token, rotate_csrf_token
from app.corpsite.utils import str_field

bp = Blueprint("auth", __name__)

# Endpoints reachable without a CSRF token (they create the session, end it, or run before one exists).
CSRF_EXEMPT = frozenset({"auth.login", "auth.logout", "auth.csrf", "auth.register"})

_login_attempts: dict[str, list[datetime]] = defaultdict(list)
_LOGIN_RATE_LIMIT = 5
_LOGIN_RATE_WINDOW = 300  # seconds


def _check_rate_limit(ip: str) -> bool:
    now = datetime.utcnow()
    cutoff = now - timedelta(seconds=_LOGIN_RATE_WINDOW)
    _login_attempts[ip] = [t for t in _login_attempts[ip] if t > cutoff]
    return len(_login_attempts[ip]) >= _LOGIN_RATE_LIMIT


def _record_attempt(ip: str) -> None:
    _login_attempts[ip].append(datetime.utcnow())


def reset_rate_limits() -> None:
    _login_attempts.clear()


def load_current_user() -> None:
    """
    Loads g.current_user from the signed session cookie.
    Also assigns a per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    g.current_user = None
    if request.path.startswith(("/static/", "/healthz")):
        return

    user_id = session.get("user_id")
    if not user_id:
        return

    try:
        s = db_session()
        user = s.get(User, int(user_id))
    except Exception as e:
        current_app.logger.error("load_current_user DB error (clearing session): %s", e)
        session.pop("user_id", None)
        return

    if not user or not user.is_active:
        session.pop("user_id", None)
        return
    g.current_user = user


@bp.get("/csrf")
def csrf():
    return success({"csrf_token": ensure_csrf_token()})


@bp.post("/login")
def login():
    payload = require_json()
    identifier = str_field(payload, "email") or str_field(payload, "username")
    password = str_field(payload, "password", strip=False)
    ip = request.remote_addr or "unknown"

    if _check_rate_limit(ip):
        raise TooManyRequests("Too many login attempts. Please wait 5 minutes.")
    _record_attempt(ip)

    s = db_session()
    user = authenticate(s, identifier, password)
    if user is None:
        record_event(
            s,
            actor=None,
            action="auth.login_failed",
            entity_type="User",
            entity_id=identifier.lower() or None,
            details={"identifier": identifier},
        )
        s.commit()
        current_app.logger.info("Login failed identifier=%s ip=%s", identifier, ip)
        raise Unauthorized("Invalid credentials.")

    user.last_login = datetime.utcnow()
    session.clear()
    session["user_id"] = user.id
    token = rotate_csrf_token()
    _login_attempts[ip].clear()
    record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=user.id)
    s.commit()
    return success({"user": serialize_user(user, with_permissions=True), "csrf_token": token}, "Login successful")


@bp.post("/register")
def register():
    payload = require_json()
    key = f"register:{request.remote_addr or 'unknown'}"
    if _check_rate_limit(key):
        raise TooManyRequests("Too many sign-up attempts. Please wait 5 minutes.")
    _record_attempt(key)

    s = db_session()
    user = register_user(s, payload)
    s.commit()
    current_app.logger.info("User registered id=%s username=%s", user.id, user.username)
    return created(serialize_user(user), "Registration successful")


@bp.post("/logout")
def logout():
    user = getattr(g, "current_user", None)
    if user:
        s = db_session()
        record_event(s, actor=user, action="auth.logout", entity_type="User", entity_id=user.id)
        s.commit()
    session.clear()
    return success(message="Logged out")


@bp.get("/profile")
@require_login
def profile():
    return success(serialize_user(current_user(), with_permissions=True))


@bp.put("/profile")
@require_login
def profile_update():
    payload = require_json()
    s = db_session()
    user = current_user()
    update_profile(s, user, payload, user)
    s.commit()
    return success(serialize_user(user, with_permissions=True), "Profile updated")


@bp.put("/change-password")
@require_login
def change_password():
    payload = require_json()
    s = db_session()
    user = current_user()
    new, confirm = password_fields(payload, "new_password", "confirm_password")
    change_own_password(s, user, str_field(payload, "current_password", strip=False), new, confirm)
    s.commit()
    return success(message="Password changed")
