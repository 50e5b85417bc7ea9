from __future__ import annotations

import mimetypes

from flask import Blueprint, current_app, request, send_file

from app.corpsite.db import db_session
from app.corpsite.modules.uploads.service import store_image
from app.corpsite.rbac import current_user, require_permission
from app.corpsite.responses import BadRequest, NotFound, success
from app.corpsite.storage import StorageError, storage_from_config

bp = Blueprint("uploads", __name__)


@bp.post("/upload/image")
@require_permission("content.manage")
def upload_image():
    f = request.files.get("image")
    if f is None or not f.filename:
        raise BadRequest("No image file provided (field name: image).")
    s = db_session()
    storage = storage_from_config(current_app.config)
    result = store_image(
        s,
        storage,
        filename=f.filename,
        data=f.read(),
        folder=request.form.get("folder"),
        actor=current_user(),
        base_url=current_app.config.get("PUBLIC_BASE_URL") or "",
    )
    try:
        s.commit()
    except Exception:
        current_app.logger.warning("Upload commit failed; removing stored object %s", result["key"])
        storage.delete(result["key"])
        raise
    return success(result, "Image uploaded")


@bp.get("/files/<path:key>")
def file_get(key: str):
    storage = storage_from_config(current_app.config)
    if not storage.serves_files:
        # bucket objects are linked through PUBLIC_BASE_URL
        raise NotFound("File not found")
    try:
        fh = storage.open(key)
    except StorageError:
        raise NotFound("File not found") from None
    mimetype = mimetypes.guess_type(key)[0] or "application/octet-stream"
    return send_file(fh, mimetype=mimetype, max_age=86400)
