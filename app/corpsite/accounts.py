"""
User and role management shared by the auth and admin blueprints.
"""
from __future__ import annotations

import re
from datetime import datetime
from typing import TYPE_CHECKING

from werkzeug.security import check_password_hash, generate_password_hash

from app.corpsite.audit import record_event
from app.corpsite.models import Permission, Role, User
from app.corpsite.responses import BadRequest, Conflict, NotFound
from app.corpsite.utils import clean_text, parse_bool, str_field

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

MIN_PASSWORD_LENGTH = 8
PROFILE_FIELDS = ("first_name", "last_name", "phone", "address", "line_id")
# Role given to self-registered accounts, when it exists.
REGISTERED_ROLE_KEY = "user"

_EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
_USERNAME_RE = re.compile(r"^[a-zA-Z0-9._-]{3,64}$")


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email or ""))


def serialize_permission(p: Permission) -> dict:
    return {"id": p.id, "key": p.key, "name": p.name}


def serialize_role(r: Role, *, with_permissions: bool = True) -> dict:
    out = {
        "id": r.id,
        "key": r.key,
        "name": r.name,
        "description": r.description,
        "user_count": len(r.users),
        "created_at": r.created_at.isoformat() if r.created_at else None,
        "updated_at": r.updated_at.isoformat() if r.updated_at else None,
    }
    if with_permissions:
        out["permissions"] = [serialize_permission(p) for p in sorted(r.permissions, key=lambda p: p.key)]
    return out


def serialize_user(u: User, *, with_permissions: bool = False) -> dict:
    out = {
        "id": u.id,
        "username": u.username,
        "email": u.email,
        "first_name": u.first_name,
        "last_name": u.last_name,
        "full_name": u.full_name,
        "phone": u.phone,
        "address": u.address,
        "line_id": u.line_id,
        "is_active": u.is_active,
        "last_login": u.last_login.isoformat() if u.last_login else None,
        "created_at": u.created_at.isoformat() if u.created_at else None,
        "roles": [{"id": r.id, "key": r.key, "name": r.name} for r in u.roles],
    }
    if with_permissions:
        from app.corpsite.rbac import user_permission_keys

        out["permissions"] = sorted(user_permission_keys(u))
    return out


def validate_password(password: str, confirm: str | None = None) -> list[str]:
    errors = []
    if not password:
        errors.append("Password is required.")
    elif len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    elif confirm is not None and password != confirm:
        errors.append("Passwords do not match.")
    return errors


def password_fields(payload: dict, key: str, confirm_key: str) -> tuple[str, str | None]:
    """Password and optional confirmation, unstripped. Confirmation is None when not sent."""
    password = str_field(payload, key, strip=False)
    confirm = str_field(payload, confirm_key, strip=False) if payload.get(confirm_key) is not None else None
    return password, confirm


def find_user_for_login(s: "Session", identifier: str) -> User | None:
    ident = (identifier or "").strip()
    if not ident:
        return None
    if "@" in ident:
        return s.query(User).filter(User.email == ident.lower()).one_or_none()
    return s.query(User).filter(User.username == ident).one_or_none()


def authenticate(s: "Session", identifier: str, password: str) -> User | None:
    user = find_user_for_login(s, identifier)
    if not user or not user.is_active or not check_password_hash(user.password_hash, password or ""):
        return None
    return user


def _roles_by_ids(s: "Session", role_ids) -> list[Role]:
    try:
        ids = [int(r) for r in (role_ids or [])]
    except (TypeError, ValueError):
        raise BadRequest("role_ids must be a list of integers.") from None
    if not ids:
        return []
    roles = s.query(Role).filter(Role.id.in_(ids)).all()
    missing = set(ids) - {r.id for r in roles}
    if missing:
        raise NotFound(f"Role not found: {sorted(missing)[0]}")
    return roles


def _permissions_by_ids(s: "Session", permission_ids) -> list[Permission]:
    try:
        ids = [int(p) for p in (permission_ids or [])]
    except (TypeError, ValueError):
        raise BadRequest("permission_ids must be a list of integers.") from None
    if not ids:
        return []
    perms = s.query(Permission).filter(Permission.id.in_(ids)).all()
    missing = set(ids) - {p.id for p in perms}
    if missing:
        raise NotFound(f"Permission not found: {sorted(missing)[0]}")
    return perms


# ---------- Users ----------

def create_user(
    s: "Session",
    payload: dict,
    actor: User | None,
    *,
    roles: list[Role] | None = None,
    action: str = "user.create",
) -> User:
    username = str_field(payload, "username")
    email = str_field(payload, "email").lower()
    password, confirm = password_fields(payload, "password", "password_confirm")

    errors = []
    if not username:
        errors.append("Username is required.")
    elif not _USERNAME_RE.match(username):
        errors.append("Username must be 3-64 letters, digits, dots, dashes or underscores.")
    if not email:
        errors.append("Email is required.")
    elif not is_valid_email(email):
        errors.append("Invalid email format.")
    errors.extend(validate_password(password, confirm))
    if errors:
        raise BadRequest(errors[0], details="; ".join(errors))

    if s.query(User).filter(User.email == email).one_or_none():
        raise Conflict("An account with this email already exists.")
    if s.query(User).filter(User.username == username).one_or_none():
        raise Conflict("An account with this username already exists.")

    if roles is None:
        roles = _roles_by_ids(s, payload.get("role_ids"))

    now = datetime.utcnow()
    user = User(
        username=username,
        email=email,
        password_hash=generate_password_hash(password),
        is_active=parse_bool(payload["is_active"]) if "is_active" in payload else True,
        created_at=now,
        updated_at=now,
    )
    for f in PROFILE_FIELDS:
        setattr(user, f, clean_text(payload.get(f)))
    user.roles.extend(roles)
    s.add(user)
    s.flush()

    record_event(
        s,
        actor=actor,
        action=action,
        entity_type="User",
        entity_id=user.id,
        details={"email": email, "username": username, "roles": [r.key for r in roles]},
    )
    return user


def register_user(s: "Session", payload: dict) -> User:
    """Public sign-up: account and profile fields only, always active, roles chosen server-side."""
    allowed = {k: payload[k] for k in ("username", "email", "password", "password_confirm", *PROFILE_FIELDS) if k in payload}
    role = s.query(Role).filter(Role.key == REGISTERED_ROLE_KEY).one_or_none()
    return create_user(s, allowed, None, roles=[role] if role else [], action="user.register")


def update_profile(s: "Session", user: User, payload: dict, actor: User) -> dict:
    changes = {}
    for f in PROFILE_FIELDS:
        if f not in payload:
            continue
        new = clean_text(payload.get(f))
        old = getattr(user, f)
        if new != old:
            changes[f] = {"old": old, "new": new}
            setattr(user, f, new)
    if changes:
        user.updated_at = datetime.utcnow()
        record_event(s, actor=actor, action="user.profile_update", entity_type="User", entity_id=user.id, details={"changes": changes})
    return changes


def update_user(s: "Session", user: User, payload: dict, actor: User) -> User:
    before = {"is_active": user.is_active, "roles": [r.key for r in user.roles], "email": user.email}

    if "email" in payload:
        email = str_field(payload, "email").lower()
        if not is_valid_email(email):
            raise BadRequest("Invalid email format.")
        if email != user.email:
            clash = s.query(User).filter(User.email == email, User.id != user.id).one_or_none()
            if clash:
                raise Conflict("An account with this email already exists.")
            user.email = email

    if "is_active" in payload:
        is_active = parse_bool(payload["is_active"])
        if not is_active and user.id == actor.id:
            raise BadRequest("You cannot deactivate your own account.")
        user.is_active = is_active

    if "role_ids" in payload:
        roles = _roles_by_ids(s, payload.get("role_ids"))
        user.roles.clear()
        user.roles.extend(roles)

    for f in PROFILE_FIELDS:
        if f in payload:
            setattr(user, f, clean_text(payload.get(f)))

    user.updated_at = datetime.utcnow()
    after = {"is_active": user.is_active, "roles": [r.key for r in user.roles], "email": user.email}
    record_event(s, actor=actor, action="user.update", entity_type="User", entity_id=user.id, details={"before": before, "after": after})
    return user


def reset_password(s: "Session", user: User, password: str, confirm: str | None, actor: User) -> None:
    errors = validate_password(password, confirm)
    if errors:
        raise BadRequest(errors[0])
    user.password_hash = generate_password_hash(password)
    user.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=actor,
        action="user.password_reset",
        entity_type="User",
        entity_id=user.id,
        details={"target_email": user.email, "reset_by": actor.email},
    )


def change_own_password(s: "Session", user: User, current: str, new: str, confirm: str | None) -> None:
    if not check_password_hash(user.password_hash, current or ""):
        raise BadRequest("Current password is incorrect.")
    errors = validate_password(new, confirm)
    if errors:
        raise BadRequest(errors[0])
    user.password_hash = generate_password_hash(new)
    user.updated_at = datetime.utcnow()
    record_event(s, actor=user, action="user.password_change", entity_type="User", entity_id=user.id)


def delete_user(s: "Session", user: User, actor: User) -> None:
    if user.id == actor.id:
        raise BadRequest("You cannot delete your own account.")
    record_event(s, actor=actor, action="user.delete", entity_type="User", entity_id=user.id, details={"email": user.email})
    s.delete(user)


# ---------- Roles ----------

def create_role(s: "Session", payload: dict, actor: User) -> Role:
    key = str_field(payload, "key").lower()
    name = str_field(payload, "name")
    if not key:
        raise BadRequest("Role key is required.")
    if not re.match(r"^[a-z0-9_.-]{2,64}$", key):
        raise BadRequest("Role key must be 2-64 lowercase letters, digits, dots, dashes or underscores.")
    if not name:
        raise BadRequest("Role name is required.")
    if s.query(Role).filter(Role.key == key).one_or_none():
        raise Conflict("A role with this key already exists.")

    perms = _permissions_by_ids(s, payload.get("permission_ids"))
    now = datetime.utcnow()
    role = Role(key=key, name=name, description=clean_text(payload.get("description")), created_at=now, updated_at=now)
    role.permissions.extend(perms)
    s.add(role)
    s.flush()
    record_event(s, actor=actor, action="role.create", entity_type="Role", entity_id=role.id, details={"key": key, "permissions": [p.key for p in perms]})
    return role


def update_role(s: "Session", role: Role, payload: dict, actor: User) -> Role:
    before = {"name": role.name, "permissions": sorted(p.key for p in role.permissions)}
    if "name" in payload:
        name = str_field(payload, "name")
        if not name:
            raise BadRequest("Role name is required.")
        role.name = name
    if "description" in payload:
        role.description = clean_text(payload.get("description"))
    if "permission_ids" in payload:
        perms = _permissions_by_ids(s, payload.get("permission_ids"))
        role.permissions.clear()
        role.permissions.extend(perms)
    role.updated_at = datetime.utcnow()
    after = {"name": role.name, "permissions": sorted(p.key for p in role.permissions)}
    record_event(s, actor=actor, action="role.update", entity_type="Role", entity_id=role.id, details={"before": before, "after": after})
    return role


def delete_role(s: "Session", role: Role, actor: User) -> None:
    if role.users:
        raise Conflict("Cannot delete a role that is assigned to users.", details=f"{len(role.users)} user(s)")
    record_event(s, actor=actor, action="role.delete", entity_type="Role", entity_id=role.id, details={"key": role.key})
    s.delete(role)
