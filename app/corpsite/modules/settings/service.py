from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from app.corpsite.audit import record_event
from app.corpsite.modules.settings.models import Setting
from app.corpsite.responses import BadRequest, NotFound
from app.corpsite.utils import parse_bool, str_field

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.corpsite.models import User


# (key, value, type, group, is_public, description)
DEFAULT_SETTINGS = (
    ("site_title", "1931 Co., Ltd.", "text", "general", True, "Site title"),
    ("site_description", "", "textarea", "seo", True, "Default meta description"),
    ("contact_email", "", "text", "contact", True, "Public contact email"),
    ("contact_phone", "", "text", "contact", True, "Public contact phone"),
    ("contact_address", "", "textarea", "contact", True, "Office address"),
    ("social_facebook", "", "text", "social", True, "Facebook page URL"),
    ("social_line", "", "text", "social", True, "LINE official account"),
    ("announcement_enabled", "false", "boolean", "general", True, "Show the announcement bar"),
    ("announcement_text", "", "text", "general", True, "Announcement bar text"),
    ("contact_notify_email", "", "text", "contact", False, "Where contact form notifications go"),
)


def serialize_setting(st: Setting) -> dict:
    return {
        "id": st.id,
        "key": st.key,
        "value": st.value,
        "type": st.value_type,
        "description": st.description,
        "group": st.group,
        "is_public": st.is_public,
        "updated_at": st.updated_at.isoformat() if st.updated_at else None,
    }


def ensure_default_settings(s: "Session") -> int:
    """Insert missing default settings without touching existing values. Returns count added."""
    existing = {k for (k,) in s.query(Setting.key).all()}
    added = 0
    now = datetime.utcnow()
    for key, value, value_type, group, is_public, description in DEFAULT_SETTINGS:
        if key in existing:
            continue
        s.add(
            Setting(
                key=key,
                value=value,
                value_type=value_type,
                group=group,
                is_public=is_public,
                description=description,
                created_at=now,
                updated_at=now,
            )
        )
        added += 1
    return added


def public_settings(s: "Session") -> dict[str, str | None]:
    rows = s.query(Setting).filter(Setting.is_public.is_(True)).order_by(Setting.key.asc()).all()
    return {st.key: st.value for st in rows}


def update_settings(s: "Session", items: list, actor: "User") -> list[Setting]:
    """
    Apply a batch of {key, value, is_public?} updates. Validates the whole batch before
    touching any row so a bad entry leaves every setting unchanged.
    """
    if not isinstance(items, list) or not items:
        raise BadRequest("Body must be a non-empty list of settings.")

    keys = []
    for item in items:
        if not isinstance(item, dict):
            raise BadRequest("Each setting must be an object.")
        key = str_field(item, "key")
        if not key:
            raise BadRequest("Each setting needs a key.")
        keys.append(key)

    rows = {st.key: st for st in s.query(Setting).filter(Setting.key.in_(keys)).all()}
    missing = [k for k in keys if k not in rows]
    if missing:
        raise NotFound(f"Setting not found: {missing[0]}")

    now = datetime.utcnow()
    changed = []
    for key, item in zip(keys, items):
        st = rows[key]
        if "value" in item:
            value = item.get("value")
            st.value = None if value is None else str(value)
        if "is_public" in item:
            st.is_public = parse_bool(item["is_public"])
        st.updated_at = now
        changed.append(st)

    record_event(s, actor=actor, action="settings.update", entity_type="Setting", details={"keys": keys})
    return changed
