from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING

from app.corpsite.accounts import is_valid_email
from app.corpsite.audit import record_event
from app.corpsite.modules.content.models import Career, ContactMessage, News
from app.corpsite.modules.hr.service import parse_date
from app.corpsite.responses import BadRequest
from app.corpsite.utils import clean_text, parse_bool, str_field

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.corpsite.models import User


CONTACT_STATUSES = ("new", "read", "replied", "archived")


def serialize_news(n: News) -> dict:
    return {
        "id": n.id,
        "title": n.title,
        "category": n.category,
        "date": n.published_on.isoformat() if n.published_on else None,
        "image": n.image_url,
        "content": n.content,
        "created_at": n.created_at.isoformat() if n.created_at else None,
        "updated_at": n.updated_at.isoformat() if n.updated_at else None,
    }


def serialize_career(c: Career) -> dict:
    return {
        "id": c.id,
        "title": c.title,
        "type": c.employment_type,
        "location": c.location,
        "description": c.description,
        "is_active": c.is_active,
        "created_at": c.created_at.isoformat() if c.created_at else None,
        "updated_at": c.updated_at.isoformat() if c.updated_at else None,
    }


def serialize_contact(m: ContactMessage) -> dict:
    return {
        "id": m.id,
        "name": m.name,
        "email": m.email,
        "subject": m.subject,
        "message": m.message,
        "status": m.status,
        "created_at": m.created_at.isoformat() if m.created_at else None,
    }


# ---------- News ----------

def create_news(s: "Session", payload: dict, actor: "User") -> News:
    title = str_field(payload, "title")
    if not title:
        raise BadRequest("Title is required.")
    now = datetime.utcnow()
    item = News(
        title=title,
        category=clean_text(payload.get("category")),
        published_on=parse_date(payload.get("date")) or date.today(),
        image_url=clean_text(payload.get("image")),
        content=str_field(payload, "content", strip=False) or None,
        created_at=now,
        updated_at=now,
        created_by_user_id=actor.id,
    )
    s.add(item)
    s.flush()
    record_event(s, actor=actor, action="news.create", entity_type="News", entity_id=item.id, details={"title": title})
    return item


def update_news(s: "Session", item: News, payload: dict, actor: "User") -> News:
    if "title" in payload:
        title = str_field(payload, "title")
        if not title:
            raise BadRequest("Title is required.")
        item.title = title
    if "category" in payload:
        item.category = clean_text(payload.get("category"))
    if payload.get("date"):
        item.published_on = parse_date(payload.get("date"))
    if "image" in payload:
        item.image_url = clean_text(payload.get("image"))
    if "content" in payload:
        item.content = str_field(payload, "content", strip=False) or None
    item.updated_at = datetime.utcnow()
    record_event(s, actor=actor, action="news.update", entity_type="News", entity_id=item.id, details={"title": item.title})
    return item


def delete_news(s: "Session", item: News, actor: "User") -> None:
    record_event(s, actor=actor, action="news.delete", entity_type="News", entity_id=item.id, details={"title": item.title})
    s.delete(item)


# ---------- Careers ----------

def create_career(s: "Session", payload: dict, actor: "User") -> Career:
    title = str_field(payload, "title")
    if not title:
        raise BadRequest("Title is required.")
    now = datetime.utcnow()
    item = Career(
        title=title,
        employment_type=clean_text(payload.get("type")),
        location=clean_text(payload.get("location")),
        description=str_field(payload, "description", strip=False) or None,
        is_active=parse_bool(payload["is_active"]) if "is_active" in payload else True,
        created_at=now,
        updated_at=now,
    )
    s.add(item)
    s.flush()
    record_event(s, actor=actor, action="career.create", entity_type="Career", entity_id=item.id, details={"title": title})
    return item


def update_career(s: "Session", item: Career, payload: dict, actor: "User") -> Career:
    if "title" in payload:
        title = str_field(payload, "title")
        if not title:
            raise BadRequest("Title is required.")
        item.title = title
    if "type" in payload:
        item.employment_type = clean_text(payload.get("type"))
    if "location" in payload:
        item.location = clean_text(payload.get("location"))
    if "description" in payload:
        item.description = str_field(payload, "description", strip=False) or None
    if "is_active" in payload:
        item.is_active = parse_bool(payload["is_active"])
    item.updated_at = datetime.utcnow()
    record_event(s, actor=actor, action="career.update", entity_type="Career", entity_id=item.id, details={"title": item.title})
    return item


def delete_career(s: "Session", item: Career, actor: "User") -> None:
    record_event(s, actor=actor, action="career.delete", entity_type="Career", entity_id=item.id, details={"title": item.title})
    s.delete(item)


# ---------- Contact ----------

def validate_contact_payload(payload: dict) -> list[str]:
    """Validate a public contact form submission. Returns list of errors."""
    errors = []
    name = str_field(payload, "name")
    email = str_field(payload, "email")
    subject = str_field(payload, "subject")
    message = str_field(payload, "message")
    if not 2 <= len(name) <= 100:
        errors.append("Name must be between 2 and 100 characters.")
    if not is_valid_email(email):
        errors.append("A valid email is required.")
    if not 2 <= len(subject) <= 200:
        errors.append("Subject must be between 2 and 200 characters.")
    if len(message) < 10:
        errors.append("Message must be at least 10 characters.")
    return errors


def submit_contact(s: "Session", payload: dict, ip_address: str | None = None) -> ContactMessage:
    errors = validate_contact_payload(payload)
    if errors:
        raise BadRequest(errors[0], details="; ".join(errors))
    now = datetime.utcnow()
    msg = ContactMessage(
        name=str_field(payload, "name"),
        email=str_field(payload, "email").lower(),
        subject=str_field(payload, "subject"),
        message=str_field(payload, "message"),
        status="new",
        ip_address=ip_address,
        created_at=now,
        updated_at=now,
    )
    s.add(msg)
    s.flush()
    return msg


def set_contact_status(s: "Session", msg: ContactMessage, payload: dict, actor: "User") -> ContactMessage:
    status = str_field(payload, "status").lower()
    if status not in CONTACT_STATUSES:
        raise BadRequest(f"Invalid status. Must be one of: {', '.join(CONTACT_STATUSES)}")
    old = msg.status
    msg.status = status
    msg.updated_at = datetime.utcnow()
    record_event(s, actor=actor, action="contact.status", entity_type="ContactMessage", entity_id=msg.id, details={"old": old, "new": status})
    return msg
