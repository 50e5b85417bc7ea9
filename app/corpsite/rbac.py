from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import g

from app.corpsite.models import User
from app.corpsite.responses import Forbidden, Unauthorized

# Every permission the API checks, with its display name. scripts/init_db.py seeds these.
PERMISSIONS: dict[str, str] = {
    "users.view": "Users: view",
    "users.manage": "Users: create, edit, delete",
    "roles.view": "Roles: view",
    "roles.manage": "Roles: create, edit, delete",
    "audit.view": "Audit logs: view",
    "hr.view": "HR: view employees, departments, positions",
    "hr.manage": "HR: manage employees, departments, positions",
    "content.manage": "Content: manage news, careers, contacts, uploads",
    "business.manage": "Business: manage micro-sites",
    "projects.manage": "Projects: manage portfolio projects and categories",
    "settings.manage": "Settings: manage site settings",
}


def user_permission_keys(user: User | None) -> set[str]:
    if not user or not user.is_active:
        return set()
    return {perm.key for role in user.roles for perm in role.permissions}


def user_has_permission(user: User | None, permission_key: str) -> bool:
    return permission_key in user_permission_keys(user)


def current_user() -> User:
    user: User | None = getattr(g, "current_user", None)
    if not user or not user.is_active:
        raise Unauthorized("Authentication required.")
    return user


def require_login(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        current_user()
        return fn(*args, **kwargs)

    return wrapped


def require_permission(permission_key: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            # Unauthenticated -> 401, authenticated but unauthorized -> 403
            user = current_user()
            if not user_has_permission(user, permission_key):
                g.missing_permission = permission_key
                raise Forbidden("You do not have permission to perform this action.", details=permission_key)
            return fn(*args, **kwargs)

        return wrapped

    return decorator
