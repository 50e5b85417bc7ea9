from __future__ import annotations

from flask import Blueprint, current_app, request

from app.corpsite.db import db_session
from app.corpsite.listing import list_params_from_request, paginate
from app.corpsite.modules.projects.models import Project, ProjectCategory
from app.corpsite.modules.projects.service import (
    create_category,
    create_project,
    delete_category,
    delete_project,
    reorder,
    serialize_category,
    serialize_project,
    update_category,
    update_project,
)
from app.corpsite.modules.uploads.service import key_for_url
from app.corpsite.rbac import current_user, require_permission
from app.corpsite.responses import NotFound, created, paginated, require_json, require_json_list, success
from app.corpsite.storage import storage_from_config

bp = Blueprint("projects", __name__)


def _get_or_404(model, obj_id: int, label: str):
    obj = db_session().get(model, obj_id)
    if obj is None:
        raise NotFound(f"{label} not found")
    return obj


def _projects_page(public: bool):
    s = db_session()
    params = list_params_from_request(default_sort="sort_order")
    q = s.query(Project)
    filters = {}
    if public:
        q = q.filter(Project.is_active.is_(True))
    category = (request.args.get("category") or "").strip().lower()
    if category:
        q = q.join(ProjectCategory, Project.category_id == ProjectCategory.id).filter(ProjectCategory.slug == category)
        filters["category"] = category
    page = paginate(
        q,
        params,
        sortable={"sort_order": Project.sort_order, "title": Project.title, "created_at": Project.created_at},
        searchable=(Project.title, Project.location, Project.owner, Project.description),
        default_sort=("sort_order", "asc"),
        tiebreak=Project.id,
    )
    return paginated(
        [serialize_project(p, public=public) for p in page.items],
        page.pagination.to_dict(),
        {**page.filters, **filters},
        "Projects retrieved successfully" if public else None,
    )


def _remove_stored_images(urls: list[str]) -> None:
    base_url = current_app.config.get("PUBLIC_BASE_URL") or ""
    keys = [k for k in (key_for_url(u, base_url) for u in urls) if k]
    if not keys:
        return
    storage = storage_from_config(current_app.config)
    for key in keys:
        try:
            storage.delete(key)
        except Exception as e:
            # row deletion is already committed
            current_app.logger.warning("Could not delete stored image %s: %s", key, e)


# ---------- Public ----------
@bp.get("/projects")
def projects_list():
    return _projects_page(public=True)


@bp.get("/projects/<int:project_id>")
def projects_detail(project_id: int):
    p = _get_or_404(Project, project_id, "Project")
    if not p.is_active:
        raise NotFound("Project not found")
    return success(serialize_project(p, public=True), "Project retrieved successfully")


@bp.get("/categories")
def categories_list():
    rows = (
        db_session()
        .query(ProjectCategory)
        .filter(ProjectCategory.is_active.is_(True))
        .order_by(ProjectCategory.sort_order.asc(), ProjectCategory.id.asc())
        .all()
    )
    return success([serialize_category(c) for c in rows], "Categories retrieved successfully")


# ---------- Admin: projects ----------
@bp.get("/admin/projects")
@require_permission("projects.manage")
def admin_projects_list():
    return _projects_page(public=False)


@bp.get("/admin/projects/<int:project_id>")
@require_permission("projects.manage")
def admin_projects_detail(project_id: int):
    return success(serialize_project(_get_or_404(Project, project_id, "Project")))


@bp.post("/admin/projects")
@require_permission("projects.manage")
def admin_projects_create():
    s = db_session()
    p = create_project(s, require_json(), current_user())
    s.commit()
    return created(serialize_project(p), "Project created successfully")


@bp.put("/admin/projects/order")
@require_permission("projects.manage")
def admin_projects_order():
    s = db_session()
    count = reorder(s, Project, require_json_list("items"), current_user(), action="project.reorder")
    s.commit()
    return success({"updated": count}, "Project order updated successfully")


@bp.put("/admin/projects/<int:project_id>")
@require_permission("projects.manage")
def admin_projects_update(project_id: int):
    s = db_session()
    p = _get_or_404(Project, project_id, "Project")
    update_project(s, p, require_json(), current_user())
    s.commit()
    return success(serialize_project(p), "Project updated successfully")


@bp.delete("/admin/projects/<int:project_id>")
@require_permission("projects.manage")
def admin_projects_delete(project_id: int):
    s = db_session()
    images = delete_project(s, _get_or_404(Project, project_id, "Project"), current_user())
    s.commit()
    _remove_stored_images(images)
    return success(message="Project deleted successfully")


# ---------- Admin: categories ----------
@bp.get("/admin/categories")
@require_permission("projects.manage")
def admin_categories_list():
    rows = db_session().query(ProjectCategory).order_by(ProjectCategory.sort_order.asc(), ProjectCategory.id.asc()).all()
    return success([serialize_category(c) for c in rows])


@bp.get("/admin/categories/<int:category_id>")
@require_permission("projects.manage")
def admin_categories_detail(category_id: int):
    return success(serialize_category(_get_or_404(ProjectCategory, category_id, "Category")))


@bp.post("/admin/categories")
@require_permission("projects.manage")
def admin_categories_create():
    s = db_session()
    cat = create_category(s, require_json(), current_user())
    s.commit()
    return created(serialize_category(cat), "Category created successfully")


@bp.put("/admin/categories/order")
@require_permission("projects.manage")
def admin_categories_order():
    s = db_session()
    count = reorder(s, ProjectCategory, require_json_list("items"), current_user(), action="category.reorder")
    s.commit()
    return success({"updated": count}, "Category order updated successfully")


@bp.put("/admin/categories/<int:category_id>")
@require_permission("projects.manage")
def admin_categories_update(category_id: int):
    s = db_session()
    cat = _get_or_404(ProjectCategory, category_id, "Category")
    update_category(s, cat, require_json(), current_user())
    s.commit()
    return success(serialize_category(cat), "Category updated successfully")


@bp.delete("/admin/categories/<int:category_id>")
@require_permission("projects.manage")
def admin_categories_delete(category_id: int):
    s = db_session()
    delete_category(s, _get_or_404(ProjectCategory, category_id, "Category"), current_user())
    s.commit()
    return success(message="Category deleted successfully")
