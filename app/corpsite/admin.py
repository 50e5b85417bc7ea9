from flask import Blueprint

from app.corpsite.accounts import (
    create_role,
    create_user,
    delete_role,
    delete_user,
    password_fields,
    reset_password,
    serialize_permission,
    serialize_role,
    serialize_user,
    update_role,
    update_user,
)
from app.corpsite.audit import serialize_audit_log
from app.corpsite.db import db_session
from app.corpsite.listing import list_params_from_request, paginate
from app.corpsite.models import AuditLog, Permission, Role, User
from app.corpsite.rbac import current_user, require_permission
from app.corpsite.responses import NotFound, created, paginated, require_json, success

bp = Blueprint("admin", __name__)


def _get_or_404(model, obj_id: int, label: str):
    obj = db_session().get(model, obj_id)
    if obj is None:
        raise NotFound(f"{label} not found")
    return obj


# ============================================================================
# USERS
# ============================================================================

@bp.get("/users")
@require_permission("users.view")
def users_list():
    s = db_session()
    params = list_params_from_request(default_sort="created_at", default_order="desc")
    page = paginate(
        s.query(User),
        params,
        sortable={
            "id": User.id,
            "username": User.username,
            "email": User.email,
            "created_at": User.created_at,
            "last_login": User.last_login,
        },
        searchable=(User.username, User.email, User.first_name, User.last_name),
        default_sort=("created_at", "desc"),
        tiebreak=User.id,
    )
    return paginated([serialize_user(u) for u in page.items], page.pagination.to_dict(), page.filters)


@bp.get("/users/<int:user_id>")
@require_permission("users.view")
def users_detail(user_id: int):
    return success(serialize_user(_get_or_404(User, user_id, "User"), with_permissions=True))


@bp.post("/users")
@require_permission("users.manage")
def users_create():
    s = db_session()
    user = create_user(s, require_json(), current_user())
    s.commit()
    return created(serialize_user(user), f"Account created for {user.email}")


@bp.put("/users/<int:user_id>")
@require_permission("users.manage")
def users_update(user_id: int):
    s = db_session()
    user = _get_or_404(User, user_id, "User")
    update_user(s, user, require_json(), current_user())
    s.commit()
    return success(serialize_user(user), f"Account updated for {user.email}")


@bp.put("/users/<int:user_id>/reset-password")
@require_permission("users.manage")
def users_reset_password(user_id: int):
    s = db_session()
    user = _get_or_404(User, user_id, "User")
    password, confirm = password_fields(require_json(), "password", "password_confirm")
    reset_password(s, user, password, confirm, current_user())
    s.commit()
    return success(message=f"Password reset for {user.email}")


@bp.delete("/users/<int:user_id>")
@require_permission("users.manage")
def users_delete(user_id: int):
    s = db_session()
    user = _get_or_404(User, user_id, "User")
    delete_user(s, user, current_user())
    s.commit()
    return success(message="User deleted")


# ============================================================================
# ROLES & PERMISSIONS
# ============================================================================

@bp.get("/roles")
@require_permission("roles.view")
def roles_list():
    s = db_session()
    params = list_params_from_request(default_sort="name")
    page = paginate(
        s.query(Role),
        params,
        sortable={"id": Role.id, "key": Role.key, "name": Role.name, "created_at": Role.created_at},
        searchable=(Role.key, Role.name, Role.description),
        default_sort=("name", "asc"),
        tiebreak=Role.id,
    )
    return paginated([serialize_role(r) for r in page.items], page.pagination.to_dict(), page.filters)


@bp.get("/roles/<int:role_id>")
@require_permission("roles.view")
def roles_detail(role_id: int):
    return success(serialize_role(_get_or_404(Role, role_id, "Role")))


@bp.post("/roles")
@require_permission("roles.manage")
def roles_create():
    s = db_session()
    role = create_role(s, require_json(), current_user())
    s.commit()
    return created(serialize_role(role), "Role created")


@bp.put("/roles/<int:role_id>")
@require_permission("roles.manage")
def roles_update(role_id: int):
    s = db_session()
    role = _get_or_404(Role, role_id, "Role")
    update_role(s, role, require_json(), current_user())
    s.commit()
    return success(serialize_role(role), "Role updated")


@bp.delete("/roles/<int:role_id>")
@require_permission("roles.manage")
def roles_delete(role_id: int):
    s = db_session()
    role = _get_or_404(Role, role_id, "Role")
    delete_role(s, role, current_user())
    s.commit()
    return success(message="Role deleted")


@bp.get("/permissions")
@require_permission("roles.view")
def permissions_list():
    s = db_session()
    perms = s.query(Permission).order_by(Permission.key.asc()).all()
    return success([serialize_permission(p) for p in perms])


# ============================================================================
# AUDIT LOGS
# ============================================================================

@bp.get("/audit-logs")
@require_permission("audit.view")
def audit_logs_list():
    """
    Newest first unless `sort`/`order` say otherwise. Search covers action,
    entity type and the JSON details.
    """
    s = db_session()
    params = list_params_from_request(default_sort="created_at", default_order="desc")
    page = paginate(
        s.query(AuditLog),
        params,
        sortable={"created_at": AuditLog.created_at, "action": AuditLog.action},
        searchable=(AuditLog.action, AuditLog.entity_type, AuditLog.details),
        default_sort=("created_at", "desc"),
        tiebreak=AuditLog.id,
    )
    return paginated(
        [serialize_audit_log(ev) for ev in page.items],
        page.pagination.to_dict(),
        page.filters,
        "Audit logs retrieved successfully",
    )
