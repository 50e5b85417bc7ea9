from __future__ import annotations

import re
from datetime import datetime
from typing import TYPE_CHECKING

from app.corpsite.audit import record_event
from app.corpsite.modules.business.models import (
    Business,
    BusinessContact,
    BusinessHour,
    BusinessService,
    GalleryImage,
    ServiceCategory,
)
from app.corpsite.responses import BadRequest, Conflict, NotFound
from app.corpsite.utils import clean_text, int_field, parse_amount, parse_bool, parse_sort_order, str_field

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.corpsite.models import User


VALID_STATUSES = ("draft", "published")
CONTACT_FIELDS = ("phone", "email", "line_id", "facebook", "instagram", "website", "address_th", "address_en")
TEXT_FIELDS = ("name_th", "name_en", "desc_th", "desc_en", "logo_url", "cover_url")
SERVICE_TEXT_FIELDS = ("name_th", "name_en", "desc_th", "desc_en", "price_text", "image_url")

_SLUG_INVALID = re.compile(r"[^a-z0-9-]+")
_SLUG_DASHES = re.compile(r"-+")
_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def sanitize_slug(raw: str) -> str:
    """Lowercase, replace anything outside [a-z0-9-] with '-', collapse and trim dashes."""
    s = (raw or "").strip().lower()
    s = _SLUG_INVALID.sub("-", s)
    s = _SLUG_DASHES.sub("-", s)
    return s.strip("-")


def generate_slug(name: str, custom_slug: str | None = None) -> str:
    if custom_slug and custom_slug.strip():
        return sanitize_slug(custom_slug)
    return sanitize_slug(name)


def _float_or_none(raw, field: str) -> float | None:
    if raw in (None, ""):
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        raise BadRequest(f"{field} must be a number.") from None


def serialize_business(b: Business, *, public: bool = False) -> dict:
    out = {
        "id": b.id,
        "slug": b.slug,
        "name_th": b.name_th,
        "name_en": b.name_en,
        "desc_th": b.desc_th,
        "desc_en": b.desc_en,
        "logo_url": b.logo_url,
        "cover_url": b.cover_url,
        "status": b.status,
        "is_active": b.is_active,
        "contact": serialize_contact(b.contact) if b.contact else None,
        "hours": [serialize_hour(h) for h in b.hours],
        "gallery": [serialize_gallery_image(g) for g in b.gallery],
    }
    if public:
        out["service_categories"] = [serialize_service_category(c) for c in b.service_categories if c.is_active]
        out["services"] = [serialize_service(v) for v in b.services if v.is_active]
    else:
        out["service_categories"] = [serialize_service_category(c) for c in b.service_categories]
        out["services"] = [serialize_service(v) for v in b.services]
    if not public:
        out["user_id"] = b.user_id
        out["created_at"] = b.created_at.isoformat() if b.created_at else None
        out["updated_at"] = b.updated_at.isoformat() if b.updated_at else None
    return out


def serialize_contact(c: BusinessContact) -> dict:
    out = {f: getattr(c, f) for f in CONTACT_FIELDS}
    out["map_lat"] = c.map_lat
    out["map_lng"] = c.map_lng
    return out


def serialize_hour(h: BusinessHour) -> dict:
    return {
        "day_of_week": h.day_of_week,
        "open_time": h.open_time,
        "close_time": h.close_time,
        "is_closed": h.is_closed,
    }


def serialize_gallery_image(g: GalleryImage) -> dict:
    return {"id": g.id, "image_url": g.image_url, "caption": g.caption, "sort_order": g.sort_order}


def serialize_service_category(c: ServiceCategory) -> dict:
    return {"id": c.id, "name_th": c.name_th, "name_en": c.name_en, "sort_order": c.sort_order, "is_active": c.is_active}


def serialize_service(v: BusinessService) -> dict:
    return {
        "id": v.id,
        "category_id": v.category_id,
        "category": {"id": v.category.id, "name_th": v.category.name_th, "name_en": v.category.name_en} if v.category else None,
        "name_th": v.name_th,
        "name_en": v.name_en,
        "desc_th": v.desc_th,
        "desc_en": v.desc_en,
        "price": str(v.price) if v.price is not None else None,
        "price_text": v.price_text,
        "duration_min": v.duration_min,
        "image_url": v.image_url,
        "sort_order": v.sort_order,
        "is_active": v.is_active,
    }


def get_published_business(s: "Session", slug: str) -> Business:
    b = (
        s.query(Business)
        .filter(Business.slug == slug)
        .filter(Business.status == "published")
        .filter(Business.is_active.is_(True))
        .one_or_none()
    )
    if b is None:
        raise NotFound("Business not found")
    return b


def get_owned_business(s: "Session", business_id: int, owner: "User") -> Business:
    b = s.get(Business, business_id)
    # Other owners' businesses are reported as missing, not forbidden.
    if b is None or b.user_id != owner.id:
        raise NotFound("Business not found")
    return b


def _ensure_slug_free(s: "Session", slug: str, exclude_id: int | None = None) -> None:
    q = s.query(Business).filter(Business.slug == slug)
    if exclude_id is not None:
        q = q.filter(Business.id != exclude_id)
    if q.first() is not None:
        raise Conflict("Slug already exists")


def create_business(s: "Session", payload: dict, owner: "User") -> Business:
    name_th = clean_text(payload.get("name_th"))
    name_en = clean_text(payload.get("name_en"))
    if not name_th and not name_en:
        raise BadRequest("Name is required (Thai or English)")

    slug = generate_slug(name_en or name_th or "", str_field(payload, "slug"))
    if not slug:
        raise BadRequest("Could not derive a URL slug; please provide one using a-z, 0-9 and dashes.")
    _ensure_slug_free(s, slug)

    now = datetime.utcnow()
    b = Business(
        user_id=owner.id,
        slug=slug,
        status="draft",
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    for f in TEXT_FIELDS:
        setattr(b, f, clean_text(payload.get(f)))
    s.add(b)
    s.flush()
    record_event(s, actor=owner, action="business.create", entity_type="Business", entity_id=b.id, details={"slug": slug})
    return b


def _apply_contact(s: "Session", b: Business, data: dict) -> None:
    if not isinstance(data, dict):
        raise BadRequest("contact must be an object.")
    contact = b.contact
    if contact is None:
        contact = BusinessContact(business_id=b.id)
        b.contact = contact
    for f in CONTACT_FIELDS:
        if f in data:
            setattr(contact, f, clean_text(data.get(f)))
    if "map_lat" in data:
        contact.map_lat = _float_or_none(data.get("map_lat"), "map_lat")
    if "map_lng" in data:
        contact.map_lng = _float_or_none(data.get("map_lng"), "map_lng")


def _parse_hours(raw) -> list[BusinessHour]:
    if not isinstance(raw, list):
        raise BadRequest("hours must be a list.")
    seen: set[int] = set()
    out = []
    for item in raw:
        if not isinstance(item, dict):
            raise BadRequest("Each hours entry must be an object.")
        try:
            day = int(item.get("day_of_week"))
        except (TypeError, ValueError):
            raise BadRequest("day_of_week must be an integer 0-6.") from None
        if not 0 <= day <= 6:
            raise BadRequest("day_of_week must be an integer 0-6.")
        if day in seen:
            raise BadRequest(f"Duplicate hours entry for day {day}.")
        seen.add(day)

        is_closed = parse_bool(item.get("is_closed", False))
        open_time = clean_text(item.get("open_time"))
        close_time = clean_text(item.get("close_time"))
        if not is_closed:
            for t in (open_time, close_time):
                if not t or not _TIME_RE.match(t):
                    raise BadRequest("Opening hours must be HH:MM.")
        out.append(BusinessHour(day_of_week=day, open_time=open_time, close_time=close_time, is_closed=is_closed))
    out.sort(key=lambda h: h.day_of_week)
    return out


def update_business(s: "Session", b: Business, payload: dict, owner: "User") -> Business:
    for f in TEXT_FIELDS:
        if f in payload:
            setattr(b, f, clean_text(payload.get(f)))
    if not b.name_th and not b.name_en:
        raise BadRequest("Name is required (Thai or English)")

    if payload.get("slug"):
        slug = sanitize_slug(str_field(payload, "slug"))
        if not slug:
            raise BadRequest("Slug must contain a-z, 0-9 or dashes.")
        if slug != b.slug:
            _ensure_slug_free(s, slug, exclude_id=b.id)
            b.slug = slug

    if "status" in payload:
        status = str_field(payload, "status").lower()
        if status not in VALID_STATUSES:
            raise BadRequest(f"Invalid status. Must be one of: {', '.join(VALID_STATUSES)}")
        b.status = status
    if "is_active" in payload:
        b.is_active = parse_bool(payload["is_active"])

    if "contact" in payload and payload["contact"] is not None:
        _apply_contact(s, b, payload["contact"])

    if "hours" in payload:
        new_hours = _parse_hours(payload["hours"])
        b.hours.clear()
        s.flush()
        b.hours.extend(new_hours)

    b.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=owner,
        action="business.update",
        entity_type="Business",
        entity_id=b.id,
        details={"slug": b.slug, "status": b.status, "fields": sorted(k for k in payload if k != "csrf_token")},
    )
    return b


def delete_business(s: "Session", b: Business, owner: "User") -> None:
    record_event(s, actor=owner, action="business.delete", entity_type="Business", entity_id=b.id, details={"slug": b.slug})
    s.delete(b)


def add_gallery_image(s: "Session", b: Business, payload: dict, owner: "User") -> GalleryImage:
    url = clean_text(payload.get("image_url"))
    if not url:
        raise BadRequest("image_url is required.")
    sort_order = int_field(payload, "sort_order")
    if sort_order is None:
        sort_order = max((g.sort_order for g in b.gallery), default=-1) + 1
    img = GalleryImage(business_id=b.id, image_url=url, caption=clean_text(payload.get("caption")), sort_order=sort_order)
    b.gallery.append(img)
    s.flush()
    record_event(s, actor=owner, action="business.gallery_add", entity_type="GalleryImage", entity_id=img.id, details={"business_id": b.id})
    return img


def remove_gallery_image(s: "Session", b: Business, image_id: int, owner: "User") -> None:
    img = next((g for g in b.gallery if g.id == image_id), None)
    if img is None:
        raise NotFound("Gallery image not found")
    b.gallery.remove(img)
    record_event(s, actor=owner, action="business.gallery_remove", entity_type="GalleryImage", entity_id=image_id, details={"business_id": b.id})


# ---------- Services / menu ----------

def _require_name(name_th: str | None, name_en: str | None) -> None:
    if not name_th and not name_en:
        raise BadRequest("Name is required (Thai or English)")


def _next_sort_order(rows) -> int:
    return max((r.sort_order for r in rows), default=-1) + 1


def _owned_category(b: Business, category_id: int) -> ServiceCategory:
    cat = next((c for c in b.service_categories if c.id == category_id), None)
    if cat is None:
        raise NotFound("Service category not found")
    return cat


def _owned_service(b: Business, service_id: int) -> BusinessService:
    svc = next((v for v in b.services if v.id == service_id), None)
    if svc is None:
        raise NotFound("Service not found")
    return svc


def add_service_category(s: "Session", b: Business, payload: dict, owner: "User") -> ServiceCategory:
    name_th = clean_text(payload.get("name_th"))
    name_en = clean_text(payload.get("name_en"))
    _require_name(name_th, name_en)
    sort_order = int_field(payload, "sort_order")
    cat = ServiceCategory(
        business_id=b.id,
        name_th=name_th,
        name_en=name_en,
        sort_order=_next_sort_order(b.service_categories) if sort_order is None else sort_order,
        is_active=parse_bool(payload["is_active"]) if "is_active" in payload else True,
    )
    b.service_categories.append(cat)
    s.flush()
    record_event(s, actor=owner, action="business.service_category_add", entity_type="ServiceCategory", entity_id=cat.id, details={"business_id": b.id})
    return cat


def update_service_category(s: "Session", b: Business, category_id: int, payload: dict, owner: "User") -> ServiceCategory:
    cat = _owned_category(b, category_id)
    for f in ("name_th", "name_en"):
        if f in payload:
            setattr(cat, f, clean_text(payload.get(f)))
    _require_name(cat.name_th, cat.name_en)
    if "sort_order" in payload:
        cat.sort_order = int_field(payload, "sort_order", 0)
    if "is_active" in payload:
        cat.is_active = parse_bool(payload["is_active"])
    record_event(s, actor=owner, action="business.service_category_update", entity_type="ServiceCategory", entity_id=cat.id, details={"business_id": b.id})
    return cat


def remove_service_category(s: "Session", b: Business, category_id: int, owner: "User") -> None:
    """Services in the category stay, uncategorised."""
    cat = _owned_category(b, category_id)
    for svc in b.services:
        if svc.category_id == cat.id:
            svc.category_id = None
            svc.category = None
    b.service_categories.remove(cat)
    record_event(s, actor=owner, action="business.service_category_remove", entity_type="ServiceCategory", entity_id=category_id, details={"business_id": b.id})


def _apply_service_fields(b: Business, svc: BusinessService, payload: dict) -> None:
    for f in SERVICE_TEXT_FIELDS:
        if f in payload:
            setattr(svc, f, clean_text(payload.get(f)))
    if "category_id" in payload:
        cat_id = int_field(payload, "category_id")
        cat = _owned_category(b, cat_id) if cat_id is not None else None
        svc.category_id = cat.id if cat else None
        svc.category = cat
    if "price" in payload:
        raw = payload.get("price")
        svc.price = None if raw in (None, "") else parse_amount(raw, "Price")
    if "duration_min" in payload:
        duration = int_field(payload, "duration_min")
        if duration is not None and duration < 0:
            raise BadRequest("duration_min cannot be negative.")
        svc.duration_min = duration
    if "sort_order" in payload:
        svc.sort_order = int_field(payload, "sort_order", 0)
    if "is_active" in payload:
        svc.is_active = parse_bool(payload["is_active"])


def add_service(s: "Session", b: Business, payload: dict, owner: "User") -> BusinessService:
    svc = BusinessService(business_id=b.id, sort_order=_next_sort_order(b.services), is_active=True)
    _apply_service_fields(b, svc, payload)
    _require_name(svc.name_th, svc.name_en)
    b.services.append(svc)
    s.flush()
    record_event(s, actor=owner, action="business.service_add", entity_type="BusinessService", entity_id=svc.id, details={"business_id": b.id})
    return svc


def update_service(s: "Session", b: Business, service_id: int, payload: dict, owner: "User") -> BusinessService:
    svc = _owned_service(b, service_id)
    _apply_service_fields(b, svc, payload)
    _require_name(svc.name_th, svc.name_en)
    record_event(s, actor=owner, action="business.service_update", entity_type="BusinessService", entity_id=svc.id, details={"business_id": b.id})
    return svc


def remove_service(s: "Session", b: Business, service_id: int, owner: "User") -> None:
    svc = _owned_service(b, service_id)
    b.services.remove(svc)
    record_event(s, actor=owner, action="business.service_remove", entity_type="BusinessService", entity_id=service_id, details={"business_id": b.id})


def reorder_services(s: "Session", b: Business, items, owner: "User") -> int:
    order = parse_sort_order(items)
    by_id = {v.id: v for v in b.services}
    for service_id, sort_order in order.items():
        if service_id not in by_id:
            raise NotFound("Service not found")
        by_id[service_id].sort_order = sort_order
    record_event(s, actor=owner, action="business.service_reorder", entity_type="Business", entity_id=b.id, details={"order": order})
    return len(order)
