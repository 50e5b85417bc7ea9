import logging
from datetime import timedelta

from dotenv import load_dotenv
from flask import Flask, g, request, session
from werkzeug.exceptions import HTTPException

from app.corpsite.config import load_config
from app.corpsite.db import init_db, teardown_db_session
from app.corpsite.responses import ApiError, error
from app.corpsite.routes import bp as routes_bp
from app.corpsite.auth import CSRF_EXEMPT as AUTH_CSRF_EXEMPT, bp as auth_bp, load_current_user
from app.corpsite.admin import bp as admin_bp
from app.corpsite.modules.hr.admin import bp as hr_bp
from app.corpsite.modules.content.admin import CSRF_EXEMPT as CONTENT_CSRF_EXEMPT, bp as content_bp
from app.corpsite.modules.business.admin import bp as business_bp
from app.corpsite.modules.projects.admin import bp as projects_bp
from app.corpsite.modules.settings.admin import bp as settings_bp
from app.corpsite.modules.uploads.admin import bp as uploads_bp

CSRF_EXEMPT_ENDPOINTS = AUTH_CSRF_EXEMPT | CONTENT_CSRF_EXEMPT
_UNGUARDED_PREFIXES = ("/static/", "/healthz", "/api/health")


def _configure_logging(app: Flask) -> None:
    level = getattr(logging, str(app.config.get("LOG_LEVEL") or "INFO").upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    app.logger.setLevel(level)


def _check_production_config(app: Flask) -> None:
    env = (app.config.get("ENV") or "").strip().lower()
    if env not in ("prod", "production"):
        return
    if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
        raise RuntimeError("DATABASE_URL is required in production.")
    if str(app.config["DATABASE_URL"]).startswith("sqlite"):
        raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
    if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
        raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True
    app.json.sort_keys = False

    _configure_logging(app)
    _check_production_config(app)

    init_db(app)

    if app.config.get("STORAGE_BACKEND") == "s3":
        missing_s3 = [k for k in ("S3_ENDPOINT", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY") if not app.config.get(k)]
        if missing_s3:
            app.logger.error("STORAGE CONFIG ERROR: Missing required S3 env vars: %s", ", ".join(missing_s3))
        if not app.config.get("PUBLIC_BASE_URL"):
            app.logger.warning("PUBLIC_BASE_URL not set; uploaded image URLs will not resolve with S3 storage")

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(admin_bp, url_prefix="/api")
    app.register_blueprint(hr_bp, url_prefix="/api/hr")
    app.register_blueprint(content_bp, url_prefix="/api")
    app.register_blueprint(business_bp, url_prefix="/api")
    app.register_blueprint(projects_bp, url_prefix="/api")
    app.register_blueprint(settings_bp, url_prefix="/api")
    app.register_blueprint(uploads_bp, url_prefix="/api")

    @app.before_request
    def _load_user():
        return load_current_user()

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(_UNGUARDED_PREFIXES):
            return None
        session.permanent = True
        if request.method not in ("POST", "PUT", "PATCH", "DELETE"):
            return None
        if request.endpoint in CSRF_EXEMPT_ENDPOINTS:
            return None
        from app.corpsite.security import validate_csrf

        if not validate_csrf(request):
            return error(400, "CSRF token missing or invalid.", code="CSRF_FAILED")
        return None

    @app.after_request
    def _cors_headers(resp):
        origin = (request.headers.get("Origin") or "").rstrip("/")
        if origin and origin in app.config.get("CORS_ORIGINS", ()):
            resp.headers["Access-Control-Allow-Origin"] = origin
            resp.headers["Access-Control-Allow-Credentials"] = "true"
            resp.headers["Access-Control-Allow-Headers"] = "Content-Type, X-CSRF-Token, X-Request-ID"
            resp.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, PATCH, DELETE, OPTIONS"
            resp.headers.add("Vary", "Origin")
        rid = getattr(g, "request_id", None)
        if rid:
            resp.headers["X-Request-ID"] = rid
        return resp

    app.teardown_appcontext(teardown_db_session)

    @app.errorhandler(ApiError)
    def _api_error(e: ApiError):
        if e.status_code == 403:
            app.logger.warning(
                "Forbidden: missing_permission=%s request_id=%s",
                getattr(g, "missing_permission", None),
                getattr(g, "request_id", None),
            )
        return error(e.status_code, e.message, code=e.code, details=e.details)

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):
        status = e.code or 500
        if status == 413:
            return error(413, "File too large.")
        return error(status, e.description or e.name)

    @app.errorhandler(Exception)
    def _unhandled(e: Exception):
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return error(500, "Internal server error.")

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
