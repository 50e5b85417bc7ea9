import pytest
from werkzeug.security import generate_password_hash

from app.corpsite import create_app
from app.corpsite.auth import reset_rate_limits
from app.corpsite.db import session_scope
from app.corpsite.models import Base, Role, User
from scripts.init_db import seed_session

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin-pass-123"


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("LOCAL_STORAGE_ROOT", str(tmp_path / "storage"))
    for k in ("S3_ENDPOINT", "S3_REGION", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY", "PUBLIC_BASE_URL"):
        monkeypatch.delenv(k, raising=False)
    reset_rate_limits()

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        admin_role = seed_session(s)
        u = User(username="admin", email=ADMIN_EMAIL, password_hash=generate_password_hash(ADMIN_PASSWORD), is_active=True)
        u.roles.append(admin_role)
        s.add(u)

    yield app
    reset_rate_limits()


@pytest.fixture()
def client(app):
    return app.test_client()


def add_user(app, *, username, email, password="user-pass-123", role_key=None, is_active=True) -> int:
    with session_scope(app) as s:
        u = User(username=username, email=email, password_hash=generate_password_hash(password), is_active=is_active)
        if role_key:
            u.roles.append(s.query(Role).filter(Role.key == role_key).one())
        s.add(u)
        s.flush()
        return u.id


def login(client, email=ADMIN_EMAIL, password=ADMIN_PASSWORD) -> dict:
    """Log in and return headers carrying the CSRF token for write requests."""
    r = client.post("/api/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.json
    return {"X-CSRF-Token": r.json["data"]["csrf_token"]}


@pytest.fixture()
def admin_headers(client):
    return login(client)
