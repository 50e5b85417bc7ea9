import os
import sys
from datetime import datetime
from pathlib import Path

from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.corpsite.models import Permission, Role, User  # noqa: E402
from app.corpsite.modules.settings.service import ensure_default_settings  # noqa: E402
from app.corpsite.rbac import PERMISSIONS  # noqa: E402
from scripts._db_utils import script_session  # noqa: E402

# Non-admin roles and the permission keys they get.
EDITOR_PERMISSIONS = ("content.manage", "business.manage", "projects.manage")
HR_PERMISSIONS = ("hr.view", "hr.manage")


def seed_session(s) -> Role:
    """
    Seed permissions, roles and default settings into an open session. Idempotent.
    Returns the admin role.
    """
    perms: dict[str, Permission] = {}
    for key, name in PERMISSIONS.items():
        p = s.query(Permission).filter(Permission.key == key).one_or_none()
        if not p:
            p = Permission(key=key, name=name)
            s.add(p)
        perms[key] = p

    def ensure_role(key: str, name: str, description: str, perm_keys) -> Role:
        role = s.query(Role).filter(Role.key == key).one_or_none()
        if not role:
            now = datetime.utcnow()
            role = Role(key=key, name=name, description=description, created_at=now, updated_at=now)
            s.add(role)
        for k in perm_keys:
            if perms[k] not in role.permissions:
                role.permissions.append(perms[k])
        return role

    role_admin = ensure_role("admin", "Administrator", "Full access to the back-office", PERMISSIONS.keys())
    ensure_role("editor", "Content editor", "News, careers, projects, contact inbox and business pages", EDITOR_PERMISSIONS)
    ensure_role("hr", "HR officer", "Employees, departments and positions", HR_PERMISSIONS)
    ensure_role("user", "Registered user", "Self-registered account; profile access only", ())

    ensure_default_settings(s)
    return role_admin


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed permissions/roles/settings/admin user in an idempotent way.
    Does NOT overwrite an existing admin user's password.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@1931.co.th").strip().lower()
    admin_username = (os.environ.get("ADMIN_USERNAME") or "admin").strip()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///corpsite.db").strip()

    with script_session(db_url) as s:
        role_admin = seed_session(s)

        user = s.query(User).filter(User.email == admin_email).one_or_none()
        if not user:
            user = User(
                username=admin_username,
                email=admin_email,
                password_hash=generate_password_hash(admin_password),
                is_active=True,
            )
            s.add(user)
        if role_admin not in user.roles:
            user.roles.append(role_admin)

    print("Initialized database (seed_only).")
    print(f"Admin email: {admin_email}")
    print("Admin password: (from ADMIN_PASSWORD)")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
