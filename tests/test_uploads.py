"""Tests for image uploads to local storage and serving them back."""
import io
import re
from datetime import date
from pathlib import Path

import pytest
from sqlalchemy.orm import Session

from app.corpsite.modules.uploads.service import build_image_key, image_extension, key_for_url, public_url
from app.corpsite.responses import BadRequest
from app.corpsite.storage import LocalStorage, S3Storage, StorageError, clean_key, storage_from_config

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def test_image_extension():
    assert image_extension("Photo.JPG") == ".jpg"
    assert image_extension("dir\\nested/pic.webp") == ".webp"
    with pytest.raises(BadRequest):
        image_extension("script.exe")
    with pytest.raises(BadRequest):
        image_extension("noext")


def test_build_image_key():
    key = build_image_key("News Images", ".png", date(2024, 5, 1))
    assert re.fullmatch(r"news-images/2024-05-01/[0-9a-f]{32}\.png", key)
    assert build_image_key("../../etc", ".png").startswith("etc/")
    assert build_image_key(None, ".gif").startswith("uploads/")


def test_public_url():
    assert public_url("uploads/a.png") == "/api/files/uploads/a.png"
    assert public_url("uploads/a.png", "https://cdn.1931.co.th/") == "https://cdn.1931.co.th/uploads/a.png"


def test_upload_and_serve(client, admin_headers):
    r = client.post(
        "/api/upload/image",
        data={"image": (io.BytesIO(PNG), "logo.png"), "folder": "business"},
        content_type="multipart/form-data",
        headers=admin_headers,
    )
    assert r.status_code == 200, r.json
    data = r.json["data"]
    assert data["key"].startswith("business/")
    assert data["size"] == len(PNG)
    assert data["url"] == f"/api/files/{data['key']}"

    r = client.get(data["url"])
    assert r.status_code == 200
    assert r.data == PNG
    assert r.mimetype == "image/png"


def test_upload_rejects_bad_files(client, admin_headers):
    r = client.post("/api/upload/image", data={}, content_type="multipart/form-data", headers=admin_headers)
    assert r.status_code == 400

    r = client.post(
        "/api/upload/image",
        data={"image": (io.BytesIO(b"MZ"), "tool.exe")},
        content_type="multipart/form-data",
        headers=admin_headers,
    )
    assert r.status_code == 400

    r = client.post(
        "/api/upload/image",
        data={"image": (io.BytesIO(b""), "empty.png")},
        content_type="multipart/form-data",
        headers=admin_headers,
    )
    assert r.status_code == 400


def test_upload_requires_login(client):
    r = client.post("/api/upload/image", data={"image": (io.BytesIO(PNG), "a.png")}, content_type="multipart/form-data")
    assert r.status_code == 400  # no CSRF token without a session


def test_missing_file_and_traversal(client):
    assert client.get("/api/files/uploads/nothing.png").status_code == 404
    assert client.get("/api/files/../secret.txt").status_code == 404


def test_clean_key():
    assert clean_key("\\news//2024/./a.png") == "news/2024/a.png"
    with pytest.raises(StorageError):
        clean_key("news/../../etc/passwd")
    with pytest.raises(StorageError):
        clean_key("//")


def test_local_storage(tmp_path):
    store = LocalStorage(root=tmp_path)
    assert store.put_bytes("/a/b.png", PNG) == "a/b.png"
    assert (tmp_path / "a" / "b.png").read_bytes() == PNG
    assert store.exists("a/b.png")
    assert not store.exists("../a/b.png")
    with store.open("a/b.png") as fh:
        assert fh.read() == PNG
    with pytest.raises(StorageError):
        store.open("a/missing.png")


def test_storage_from_config(tmp_path):
    local = storage_from_config({"LOCAL_STORAGE_ROOT": str(tmp_path)})
    assert isinstance(local, LocalStorage) and local.serves_files
    s3 = storage_from_config({"STORAGE_BACKEND": "S3", "S3_BUCKET": "corpsite-images"})
    assert isinstance(s3, S3Storage) and not s3.serves_files
    assert s3.region == "auto"
    with pytest.raises(StorageError):
        storage_from_config({"STORAGE_BACKEND": "s3"})
    with pytest.raises(StorageError):
        storage_from_config({"STORAGE_BACKEND": "ftp"})


def test_key_for_url():
    assert key_for_url("/api/files/projects/2024-01-01/a.png") == "projects/2024-01-01/a.png"
    assert key_for_url("https://cdn.1931.co.th/news/a.png", "https://cdn.1931.co.th/") == "news/a.png"
    assert key_for_url("/api/files/news/a.png", "https://cdn.1931.co.th") == "news/a.png"
    assert key_for_url("https://elsewhere.example/a.png", "https://cdn.1931.co.th") is None
    assert key_for_url("/api/files/") is None


def test_local_storage_delete(tmp_path):
    store = LocalStorage(root=tmp_path)
    store.put_bytes("a/b.png", PNG)
    store.delete("a/b.png")
    assert not store.exists("a/b.png")
    store.delete("a/b.png")  # already gone
    with pytest.raises(StorageError):
        store.delete("../outside.png")


def test_failed_commit_removes_stored_file(app, client, admin_headers, monkeypatch):
    def _broken_commit(self):
        raise RuntimeError("database went away")

    monkeypatch.setattr(Session, "commit", _broken_commit)
    r = client.post(
        "/api/upload/image",
        data={"image": (io.BytesIO(PNG), "logo.png"), "folder": "news"},
        content_type="multipart/form-data",
        headers=admin_headers,
    )
    assert r.status_code == 500
    root = app.config["LOCAL_STORAGE_ROOT"]
    assert [p for p in Path(root).rglob("*") if p.is_file()] == []
