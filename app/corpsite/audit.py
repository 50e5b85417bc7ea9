import json
from typing import Any

from flask import g, has_request_context, request
from sqlalchemy.orm import Session

from app.corpsite.models import AuditLog, User


def record_event(
    s: Session,
    *,
    actor: User | None,
    action: str,
    entity_type: str | None = None,
    entity_id: str | int | None = None,
    details: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> AuditLog:
    """
    Append-only audit helper. Adds the row to `s`; the caller commits.
    """
    ip_address = None
    user_agent = None
    rid = request_id
    if has_request_context():
        rid = rid or getattr(g, "request_id", None)
        ip_address = request.remote_addr
        user_agent = (request.headers.get("User-Agent") or "")[:512] or None

    ev = AuditLog(
        request_id=rid,
        user_id=actor.id if actor else None,
        user_email=actor.email if actor else None,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        details=json.dumps(details, sort_keys=True, default=str) if details else None,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    s.add(ev)
    return ev


def serialize_audit_log(ev: AuditLog) -> dict:
    return {
        "id": ev.id,
        "created_at": ev.created_at.isoformat() if ev.created_at else None,
        "request_id": ev.request_id,
        "user_id": ev.user_id,
        "user_email": ev.user_email,
        "action": ev.action,
        "entity_type": ev.entity_type,
        "entity_id": ev.entity_id,
        "details": ev.details,
        "ip_address": ev.ip_address,
        "user_agent": ev.user_agent,
    }
