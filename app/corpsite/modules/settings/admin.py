from __future__ import annotations

from flask import Blueprint

from app.corpsite.db import db_session
from app.corpsite.modules.settings.models import Setting
from app.corpsite.modules.settings.service import public_settings, serialize_setting, update_settings
from app.corpsite.rbac import current_user, require_permission
from app.corpsite.responses import require_json_list, success

bp = Blueprint("settings", __name__)


@bp.get("/public/settings")
def settings_public():
    return success(public_settings(db_session()))


@bp.get("/settings")
@require_permission("settings.manage")
def settings_list():
    s = db_session()
    rows = s.query(Setting).order_by(Setting.group.asc(), Setting.key.asc()).all()
    return success([serialize_setting(st) for st in rows])


@bp.put("/settings")
@require_permission("settings.manage")
def settings_update():
    s = db_session()
    rows = update_settings(s, require_json_list("settings"), current_user())
    s.commit()
    return success([serialize_setting(st) for st in rows], "Settings updated")
