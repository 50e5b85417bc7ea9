import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str
    log_level: str

    cors_origins: tuple[str, ...]
    public_base_url: str

    default_page_limit: int
    max_page_limit: int

    storage_backend: str
    local_storage_root: str
    s3_endpoint: str
    s3_region: str
    s3_bucket: str
    s3_access_key_id: str
    s3_secret_access_key: str


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getint(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def load_settings() -> Settings:
    origins = tuple(o.strip().rstrip("/") for o in _getenv("CORS_ORIGINS").split(",") if o.strip())
    env = _getenv("ENV", "development")
    # no sqlite fallback in production; create_app refuses to start without a database URL
    default_db = "" if env.lower() in ("prod", "production") else "sqlite:///corpsite.db"
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=env,
        database_url=_getenv("DATABASE_URL", default_db),
        log_level=_getenv("LOG_LEVEL", "INFO").upper(),
        cors_origins=origins,
        public_base_url=_getenv("PUBLIC_BASE_URL", "").rstrip("/"),
        default_page_limit=max(1, _getint("DEFAULT_PAGE_LIMIT", 10)),
        max_page_limit=max(1, _getint("MAX_PAGE_LIMIT", 100)),
        storage_backend=_getenv("STORAGE_BACKEND", "local"),
        local_storage_root=_getenv("LOCAL_STORAGE_ROOT", ""),
        s3_endpoint=_getenv("S3_ENDPOINT", ""),
        s3_region=_getenv("S3_REGION", "auto"),
        s3_bucket=_getenv("S3_BUCKET", ""),
        s3_access_key_id=_getenv("S3_ACCESS_KEY_ID", ""),
        s3_secret_access_key=_getenv("S3_SECRET_ACCESS_KEY", ""),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "LOG_LEVEL": s.log_level,
        "CORS_ORIGINS": s.cors_origins,
        "PUBLIC_BASE_URL": s.public_base_url,
        "DEFAULT_PAGE_LIMIT": s.default_page_limit,
        "MAX_PAGE_LIMIT": s.max_page_limit,
        "STORAGE_BACKEND": s.storage_backend,
        "LOCAL_STORAGE_ROOT": s.local_storage_root,
        "S3_ENDPOINT": s.s3_endpoint,
        "S3_REGION": s.s3_region,
        "S3_BUCKET": s.s3_bucket,
        "S3_ACCESS_KEY_ID": s.s3_access_key_id,
        "S3_SECRET_ACCESS_KEY": s.s3_secret_access_key,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,
        # image uploads are capped at 10MB per file in the upload handler
        "MAX_CONTENT_LENGTH": 16 * 1024 * 1024,
    }
