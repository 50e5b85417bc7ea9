from __future__ import annotations

import json
from datetime import datetime
from typing import TYPE_CHECKING

from app.corpsite.audit import record_event
from app.corpsite.modules.business.service import sanitize_slug
from app.corpsite.modules.projects.models import Project, ProjectCategory
from app.corpsite.responses import BadRequest, Conflict, NotFound
from app.corpsite.utils import clean_text, int_field, parse_bool, parse_sort_order, str_field

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.corpsite.models import User


TEXT_FIELDS = ("location", "location_map_link", "owner", "status")
MAX_IMAGES = 20


def serialize_category(c: ProjectCategory) -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "slug": c.slug,
        "sort_order": c.sort_order,
        "is_active": c.is_active,
        "created_at": c.created_at.isoformat() if c.created_at else None,
        "updated_at": c.updated_at.isoformat() if c.updated_at else None,
    }


def serialize_project(p: Project, *, public: bool = False) -> dict:
    out = {
        "id": p.id,
        "title": p.title,
        "location": p.location,
        "location_map_link": p.location_map_link,
        "owner": p.owner,
        "category_id": p.category_id,
        "category": {"id": p.category.id, "name": p.category.name, "slug": p.category.slug} if p.category else None,
        "images": json.loads(p.images) if p.images else [],
        "description": p.description,
        "status": p.status,
        "sort_order": p.sort_order,
    }
    if not public:
        out["is_active"] = p.is_active
        out["created_at"] = p.created_at.isoformat() if p.created_at else None
        out["updated_at"] = p.updated_at.isoformat() if p.updated_at else None
    return out


# ---------- Categories ----------

def _category_slug(payload: dict, name: str) -> str:
    slug = sanitize_slug(str_field(payload, "slug") or name)
    if not slug:
        raise BadRequest("Could not derive a slug; please provide one using a-z, 0-9 and dashes.")
    return slug


def _ensure_category_unique(s: "Session", name: str, slug: str, exclude_id: int | None = None) -> None:
    q = s.query(ProjectCategory).filter((ProjectCategory.name == name) | (ProjectCategory.slug == slug))
    if exclude_id is not None:
        q = q.filter(ProjectCategory.id != exclude_id)
    if q.first() is not None:
        raise Conflict("A category with this name or slug already exists.")


def create_category(s: "Session", payload: dict, actor: "User") -> ProjectCategory:
    name = str_field(payload, "name")
    if not name:
        raise BadRequest("Category name is required.")
    slug = _category_slug(payload, name)
    _ensure_category_unique(s, name, slug)

    now = datetime.utcnow()
    cat = ProjectCategory(
        name=name,
        slug=slug,
        sort_order=int_field(payload, "sort_order", 0),
        is_active=parse_bool(payload["is_active"]) if "is_active" in payload else True,
        created_at=now,
        updated_at=now,
    )
    s.add(cat)
    s.flush()
    record_event(s, actor=actor, action="category.create", entity_type="ProjectCategory", entity_id=cat.id, details={"name": name})
    return cat


def update_category(s: "Session", cat: ProjectCategory, payload: dict, actor: "User") -> ProjectCategory:
    name = cat.name
    if "name" in payload:
        name = str_field(payload, "name")
        if not name:
            raise BadRequest("Category name is required.")
    slug = cat.slug
    if str_field(payload, "slug"):
        slug = _category_slug(payload, name)
    elif name != cat.name:
        # renamed without an explicit slug: follow the new name
        slug = _category_slug({}, name)
    if (name, slug) != (cat.name, cat.slug):
        _ensure_category_unique(s, name, slug, exclude_id=cat.id)
        cat.name, cat.slug = name, slug

    if "sort_order" in payload:
        cat.sort_order = int_field(payload, "sort_order", 0)
    if "is_active" in payload:
        cat.is_active = parse_bool(payload["is_active"])
    cat.updated_at = datetime.utcnow()
    record_event(s, actor=actor, action="category.update", entity_type="ProjectCategory", entity_id=cat.id, details={"name": cat.name, "slug": cat.slug})
    return cat


def delete_category(s: "Session", cat: ProjectCategory, actor: "User") -> None:
    in_use = s.query(Project).filter(Project.category_id == cat.id).count()
    if in_use:
        raise Conflict("Cannot delete a category that still has projects.", details=f"{in_use} project(s)")
    record_event(s, actor=actor, action="category.delete", entity_type="ProjectCategory", entity_id=cat.id, details={"name": cat.name})
    s.delete(cat)


def reorder(s: "Session", model, items, actor: "User", *, action: str) -> int:
    """Apply [{id, sort_order}] to rows of `model`; all ids must exist. Returns rows touched."""
    order = parse_sort_order(items)
    rows = {r.id: r for r in s.query(model).filter(model.id.in_(list(order))).all()}
    missing = [i for i in order if i not in rows]
    if missing:
        raise NotFound(f"Not found: id {missing[0]}")
    now = datetime.utcnow()
    for row_id, sort_order in order.items():
        rows[row_id].sort_order = sort_order
        rows[row_id].updated_at = now
    record_event(s, actor=actor, action=action, entity_type=model.__name__, details={"order": order})
    return len(rows)


# ---------- Projects ----------

def _category_or_404(s: "Session", payload: dict) -> ProjectCategory | None:
    cat_id = int_field(payload, "category_id")
    if cat_id is None:
        return None
    cat = s.get(ProjectCategory, cat_id)
    if cat is None:
        raise NotFound("Category not found")
    return cat


def _images_json(raw) -> str | None:
    if raw in (None, []):
        return None
    if not isinstance(raw, list) or not all(isinstance(u, str) and u.strip() for u in raw):
        raise BadRequest("images must be a list of URLs.")
    if len(raw) > MAX_IMAGES:
        raise BadRequest(f"A project can have at most {MAX_IMAGES} images.")
    return json.dumps([u.strip() for u in raw])


def create_project(s: "Session", payload: dict, actor: "User") -> Project:
    title = str_field(payload, "title")
    if not title:
        raise BadRequest("Title is required.")
    cat = _category_or_404(s, payload)

    now = datetime.utcnow()
    p = Project(
        title=title,
        category_id=cat.id if cat else None,
        images=_images_json(payload.get("images")),
        description=str_field(payload, "description", strip=False) or None,
        sort_order=int_field(payload, "sort_order", 0),
        is_active=parse_bool(payload["is_active"]) if "is_active" in payload else True,
        created_at=now,
        updated_at=now,
        created_by_user_id=actor.id,
        updated_by_user_id=actor.id,
    )
    for f in TEXT_FIELDS:
        setattr(p, f, clean_text(payload.get(f)))
    p.category = cat
    s.add(p)
    s.flush()
    record_event(s, actor=actor, action="project.create", entity_type="Project", entity_id=p.id, details={"title": title})
    return p


def update_project(s: "Session", p: Project, payload: dict, actor: "User") -> Project:
    """Only fields present in the payload change."""
    if "title" in payload:
        title = str_field(payload, "title")
        if not title:
            raise BadRequest("Title is required.")
        p.title = title
    if "category_id" in payload:
        cat = _category_or_404(s, payload)
        p.category_id = cat.id if cat else None
        p.category = cat
    for f in TEXT_FIELDS:
        if f in payload:
            setattr(p, f, clean_text(payload.get(f)))
    if "images" in payload:
        p.images = _images_json(payload.get("images"))
    if "description" in payload:
        p.description = str_field(payload, "description", strip=False) or None
    if "sort_order" in payload:
        p.sort_order = int_field(payload, "sort_order", 0)
    if "is_active" in payload:
        p.is_active = parse_bool(payload["is_active"])
    p.updated_at = datetime.utcnow()
    p.updated_by_user_id = actor.id
    record_event(s, actor=actor, action="project.update", entity_type="Project", entity_id=p.id, details={"title": p.title})
    return p


def delete_project(s: "Session", p: Project, actor: "User") -> list[str]:
    """Delete the row; returns its image URLs so the caller can drop stored files after commit."""
    images = json.loads(p.images) if p.images else []
    record_event(s, actor=actor, action="project.delete", entity_type="Project", entity_id=p.id, details={"title": p.title, "images": len(images)})
    s.delete(p)
    return images
