from __future__ import annotations

import uuid
from datetime import date
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

from app.corpsite.audit import record_event
from app.corpsite.modules.business.service import sanitize_slug
from app.corpsite.responses import BadRequest

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.corpsite.models import User
    from app.corpsite.storage import Storage


ALLOWED_EXTENSIONS = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}
MAX_IMAGE_BYTES = 10 * 1024 * 1024
DEFAULT_FOLDER = "uploads"


def image_extension(filename: str) -> str:
    ext = PurePosixPath((filename or "").replace("\\", "/")).suffix.lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise BadRequest(f"Invalid file type. Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}")
    return ext


def build_image_key(folder: str | None, ext: str, upload_date: date | None = None) -> str:
    """<folder>/<YYYY-MM-DD>/<uuid><ext>; folder is slug-sanitized."""
    safe_folder = sanitize_slug(folder or "") or DEFAULT_FOLDER
    upload_date = upload_date or date.today()
    return f"{safe_folder}/{upload_date.isoformat()}/{uuid.uuid4().hex}{ext}"


def public_url(key: str, base_url: str = "") -> str:
    if base_url:
        return f"{base_url.rstrip('/')}/{key}"
    return f"/api/files/{key}"


def key_for_url(url: str, base_url: str = "") -> str | None:
    """Storage key behind a URL produced by public_url(); None for external URLs."""
    prefixes = ["/api/files/"]
    if base_url:
        prefixes.insert(0, base_url.rstrip("/") + "/")
    for prefix in prefixes:
        if url.startswith(prefix):
            return url[len(prefix):] or None
    return None


def store_image(
    s: "Session",
    storage: "Storage",
    *,
    filename: str,
    data: bytes,
    folder: str | None,
    actor: "User",
    base_url: str = "",
) -> dict:
    if not data:
        raise BadRequest("Uploaded file is empty.")
    if len(data) > MAX_IMAGE_BYTES:
        raise BadRequest("File too large. Maximum size is 10MB.")
    ext = image_extension(filename)
    key = build_image_key(folder, ext)
    # audit row first; the caller deletes the object if the commit then fails
    record_event(
        s,
        actor=actor,
        action="upload.image",
        entity_type="File",
        entity_id=key,
        details={"filename": filename, "size": len(data)},
    )
    s.flush()
    key = storage.put_bytes(key, data, content_type=ALLOWED_EXTENSIONS[ext])
    return {"url": public_url(key, base_url), "key": key, "size": len(data)}
