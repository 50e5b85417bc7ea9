#!/usr/bin/env python3
"""Assign a role to a user (idempotent).

Usage:
  python scripts/assign_role.py --email someone@1931.co.th
  python scripts/assign_role.py --email someone@1931.co.th --role editor
"""

import argparse
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.corpsite.models import Role, User  # noqa: E402
from scripts._db_utils import script_session  # noqa: E402


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("--email", required=True, help="User email")
    parser.add_argument("--role", default="admin", help="Role key (default: admin)")
    args = parser.parse_args()

    db_url = (os.environ.get("DATABASE_URL") or "sqlite:///corpsite.db").strip()
    with script_session(db_url) as s:
        user = s.query(User).filter(User.email == args.email.strip().lower()).one_or_none()
        if not user:
            print(f"User not found: {args.email}")
            return 1
        role = s.query(Role).filter(Role.key == args.role).one_or_none()
        if not role:
            print(f"Role not found: {args.role}. Run python scripts/init_db.py first.")
            return 1
        if role in user.roles:
            print(f"{args.email} already has role {args.role}")
            return 0
        user.roles.append(role)
    print(f"Role {args.role} assigned to {args.email}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
