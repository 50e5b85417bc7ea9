from __future__ import annotations

from flask import Blueprint, request

from app.corpsite.db import db_session
from app.corpsite.listing import list_params_from_request, paginate
from app.corpsite.modules.content.models import Career, ContactMessage, News
from app.corpsite.modules.content.service import (
    CONTACT_STATUSES,
    create_career,
    create_news,
    delete_career,
    delete_news,
    serialize_career,
    serialize_contact,
    serialize_news,
    set_contact_status,
    submit_contact,
    update_career,
    update_news,
)
from app.corpsite.rbac import current_user, require_permission
from app.corpsite.responses import BadRequest, NotFound, created, paginated, require_json, success

bp = Blueprint("content", __name__)

# Public form; anonymous visitors have no session token to send.
CSRF_EXEMPT = frozenset({"content.contact_submit"})


def _get_or_404(model, obj_id: int, label: str):
    obj = db_session().get(model, obj_id)
    if obj is None:
        raise NotFound(f"{label} not found")
    return obj


def _news_page(public: bool):
    s = db_session()
    params = list_params_from_request(default_sort="date", default_order="desc")
    q = s.query(News)
    filters = {}
    category = (request.args.get("category") or "").strip()
    if category:
        q = q.filter(News.category == category)
        filters["category"] = category
    page = paginate(
        q,
        params,
        sortable={"date": News.published_on, "title": News.title, "created_at": News.created_at},
        searchable=(News.title, News.content),
        default_sort=("date", "desc"),
        tiebreak=News.id,
    )
    return paginated(
        [serialize_news(n) for n in page.items],
        page.pagination.to_dict(),
        {**page.filters, **filters},
        "Successfully fetched news" if public else None,
    )


def _careers_page(active_only: bool):
    s = db_session()
    params = list_params_from_request(default_sort="created_at", default_order="desc")
    q = s.query(Career)
    if active_only:
        q = q.filter(Career.is_active.is_(True))
    page = paginate(
        q,
        params,
        sortable={"created_at": Career.created_at, "title": Career.title, "location": Career.location},
        searchable=(Career.title, Career.location, Career.description, Career.employment_type),
        default_sort=("created_at", "desc"),
        tiebreak=Career.id,
    )
    return paginated([serialize_career(c) for c in page.items], page.pagination.to_dict(), page.filters)


# ---------- Public ----------
@bp.get("/news")
def news_list():
    return _news_page(public=True)


@bp.get("/news/<int:news_id>")
def news_detail(news_id: int):
    return success(serialize_news(_get_or_404(News, news_id, "News")), "Successfully fetched news detail")


@bp.get("/careers")
def careers_list():
    return _careers_page(active_only=True)


@bp.get("/careers/<int:career_id>")
def careers_detail(career_id: int):
    career = _get_or_404(Career, career_id, "Career")
    if not career.is_active:
        raise NotFound("Career not found")
    return success(serialize_career(career))


@bp.post("/contact")
def contact_submit():
    s = db_session()
    msg = submit_contact(s, require_json(), ip_address=request.remote_addr)
    s.commit()
    return created(serialize_contact(msg), "Contact submitted successfully")


# ---------- Admin: news ----------
@bp.post("/admin/news")
@require_permission("content.manage")
def admin_news_create():
    s = db_session()
    item = create_news(s, require_json(), current_user())
    s.commit()
    return created(serialize_news(item), "News created")


@bp.put("/admin/news/<int:news_id>")
@require_permission("content.manage")
def admin_news_update(news_id: int):
    s = db_session()
    item = _get_or_404(News, news_id, "News")
    update_news(s, item, require_json(), current_user())
    s.commit()
    return success(serialize_news(item), "News updated")


@bp.delete("/admin/news/<int:news_id>")
@require_permission("content.manage")
def admin_news_delete(news_id: int):
    s = db_session()
    delete_news(s, _get_or_404(News, news_id, "News"), current_user())
    s.commit()
    return success(message="News deleted")


# ---------- Admin: careers ----------
@bp.get("/admin/careers")
@require_permission("content.manage")
def admin_careers_list():
    return _careers_page(active_only=False)


@bp.post("/admin/careers")
@require_permission("content.manage")
def admin_careers_create():
    s = db_session()
    item = create_career(s, require_json(), current_user())
    s.commit()
    return created(serialize_career(item), "Career created")


@bp.put("/admin/careers/<int:career_id>")
@require_permission("content.manage")
def admin_careers_update(career_id: int):
    s = db_session()
    item = _get_or_404(Career, career_id, "Career")
    update_career(s, item, require_json(), current_user())
    s.commit()
    return success(serialize_career(item), "Career updated")


@bp.delete("/admin/careers/<int:career_id>")
@require_permission("content.manage")
def admin_careers_delete(career_id: int):
    s = db_session()
    delete_career(s, _get_or_404(Career, career_id, "Career"), current_user())
    s.commit()
    return success(message="Career deleted")


# ---------- Admin: contact messages ----------
@bp.get("/admin/contacts")
@require_permission("content.manage")
def admin_contacts_list():
    s = db_session()
    params = list_params_from_request(default_sort="created_at", default_order="desc")
    q = s.query(ContactMessage)
    filters = {}
    status = (request.args.get("status") or "").strip().lower()
    if status:
        if status not in CONTACT_STATUSES:
            raise BadRequest(f"Invalid status. Must be one of: {', '.join(CONTACT_STATUSES)}")
        q = q.filter(ContactMessage.status == status)
        filters["status"] = status
    page = paginate(
        q,
        params,
        sortable={"created_at": ContactMessage.created_at, "name": ContactMessage.name, "status": ContactMessage.status},
        searchable=(ContactMessage.name, ContactMessage.email, ContactMessage.subject, ContactMessage.message),
        default_sort=("created_at", "desc"),
        tiebreak=ContactMessage.id,
    )
    return paginated([serialize_contact(m) for m in page.items], page.pagination.to_dict(), {**page.filters, **filters})


@bp.put("/admin/contacts/<int:contact_id>")
@require_permission("content.manage")
def admin_contacts_update(contact_id: int):
    s = db_session()
    msg = _get_or_404(ContactMessage, contact_id, "Contact message")
    set_contact_status(s, msg, require_json(), current_user())
    s.commit()
    return success(serialize_contact(msg), "Contact updated")
