from flask import Blueprint

from app.corpsite.responses import success

bp = Blueprint("routes", __name__)


@bp.get("/api/health")
def health():
    """Health check endpoint. Returns the JSON envelope."""
    return success({"status": "ok", "message": "Server is running"})


@bp.get("/healthz")
def healthz():
    """
    Fast health check for container liveness checks. No DB access, minimal overhead.
    """
    return "ok", 200
