from __future__ import annotations

from flask import Blueprint

from app.corpsite.db import db_session
from app.corpsite.listing import list_params_from_request, paginate
from app.corpsite.modules.business.models import Business
from app.corpsite.modules.business.service import (
    add_gallery_image,
    add_service,
    add_service_category,
    create_business,
    delete_business,
    get_owned_business,
    get_published_business,
    remove_gallery_image,
    remove_service,
    remove_service_category,
    reorder_services,
    serialize_business,
    serialize_gallery_image,
    serialize_service,
    serialize_service_category,
    update_business,
    update_service,
    update_service_category,
)
from app.corpsite.rbac import current_user, require_permission
from app.corpsite.responses import created, paginated, require_json, require_json_list, success

bp = Blueprint("business", __name__)


# ---------- Public ----------
@bp.get("/businesses/<slug>")
def business_public(slug: str):
    return success(serialize_business(get_published_business(db_session(), slug), public=True))


# ---------- Admin (owner-scoped) ----------
@bp.get("/admin/businesses")
@require_permission("business.manage")
def businesses_list():
    s = db_session()
    params = list_params_from_request(default_sort="created_at", default_order="desc")
    page = paginate(
        s.query(Business).filter(Business.user_id == current_user().id),
        params,
        sortable={"created_at": Business.created_at, "slug": Business.slug, "status": Business.status},
        searchable=(Business.slug, Business.name_th, Business.name_en),
        default_sort=("created_at", "desc"),
        tiebreak=Business.id,
    )
    return paginated([serialize_business(b) for b in page.items], page.pagination.to_dict(), page.filters)


@bp.get("/admin/businesses/<int:business_id>")
@require_permission("business.manage")
def businesses_detail(business_id: int):
    return success(serialize_business(get_owned_business(db_session(), business_id, current_user())))


@bp.post("/admin/businesses")
@require_permission("business.manage")
def businesses_create():
    s = db_session()
    b = create_business(s, require_json(), current_user())
    s.commit()
    return created(serialize_business(b), "Business created")


@bp.put("/admin/businesses/<int:business_id>")
@require_permission("business.manage")
def businesses_update(business_id: int):
    s = db_session()
    user = current_user()
    b = get_owned_business(s, business_id, user)
    update_business(s, b, require_json(), user)
    s.commit()
    return success(serialize_business(b), "Business updated")


@bp.delete("/admin/businesses/<int:business_id>")
@require_permission("business.manage")
def businesses_delete(business_id: int):
    s = db_session()
    user = current_user()
    delete_business(s, get_owned_business(s, business_id, user), user)
    s.commit()
    return success(message="Business deleted")


@bp.post("/admin/businesses/<int:business_id>/gallery")
@require_permission("business.manage")
def businesses_gallery_add(business_id: int):
    s = db_session()
    user = current_user()
    img = add_gallery_image(s, get_owned_business(s, business_id, user), require_json(), user)
    s.commit()
    return created(serialize_gallery_image(img), "Image added")


@bp.delete("/admin/businesses/<int:business_id>/gallery/<int:image_id>")
@require_permission("business.manage")
def businesses_gallery_remove(business_id: int, image_id: int):
    s = db_session()
    user = current_user()
    remove_gallery_image(s, get_owned_business(s, business_id, user), image_id, user)
    s.commit()
    return success(message="Image removed")


# ---------- Services / menu ----------
@bp.get("/admin/businesses/<int:business_id>/service-categories")
@require_permission("business.manage")
def businesses_service_categories_list(business_id: int):
    b = get_owned_business(db_session(), business_id, current_user())
    return success([serialize_service_category(c) for c in b.service_categories])


@bp.post("/admin/businesses/<int:business_id>/service-categories")
@require_permission("business.manage")
def businesses_service_categories_add(business_id: int):
    s = db_session()
    user = current_user()
    cat = add_service_category(s, get_owned_business(s, business_id, user), require_json(), user)
    s.commit()
    return created(serialize_service_category(cat), "Service category added")


@bp.put("/admin/businesses/<int:business_id>/service-categories/<int:category_id>")
@require_permission("business.manage")
def businesses_service_categories_update(business_id: int, category_id: int):
    s = db_session()
    user = current_user()
    cat = update_service_category(s, get_owned_business(s, business_id, user), category_id, require_json(), user)
    s.commit()
    return success(serialize_service_category(cat), "Service category updated")


@bp.delete("/admin/businesses/<int:business_id>/service-categories/<int:category_id>")
@require_permission("business.manage")
def businesses_service_categories_remove(business_id: int, category_id: int):
    s = db_session()
    user = current_user()
    remove_service_category(s, get_owned_business(s, business_id, user), category_id, user)
    s.commit()
    return success(message="Service category removed")


@bp.get("/admin/businesses/<int:business_id>/services")
@require_permission("business.manage")
def businesses_services_list(business_id: int):
    b = get_owned_business(db_session(), business_id, current_user())
    return success([serialize_service(v) for v in b.services])


@bp.post("/admin/businesses/<int:business_id>/services")
@require_permission("business.manage")
def businesses_services_add(business_id: int):
    s = db_session()
    user = current_user()
    svc = add_service(s, get_owned_business(s, business_id, user), require_json(), user)
    s.commit()
    return created(serialize_service(svc), "Service added")


@bp.put("/admin/businesses/<int:business_id>/services/order")
@require_permission("business.manage")
def businesses_services_order(business_id: int):
    s = db_session()
    user = current_user()
    count = reorder_services(s, get_owned_business(s, business_id, user), require_json_list("items"), user)
    s.commit()
    return success({"updated": count}, "Service order updated")


@bp.put("/admin/businesses/<int:business_id>/services/<int:service_id>")
@require_permission("business.manage")
def businesses_services_update(business_id: int, service_id: int):
    s = db_session()
    user = current_user()
    svc = update_service(s, get_owned_business(s, business_id, user), service_id, require_json(), user)
    s.commit()
    return success(serialize_service(svc), "Service updated")


@bp.delete("/admin/businesses/<int:business_id>/services/<int:service_id>")
@require_permission("business.manage")
def businesses_services_remove(business_id: int, service_id: int):
    s = db_session()
    user = current_user()
    remove_service(s, get_owned_business(s, business_id, user), service_id, user)
    s.commit()
    return success(message="Service removed")
