from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO


class StorageError(RuntimeError):
    pass


def clean_key(key: str) -> str:
    """Collapse a client-supplied key to forward-slash segments; reject traversal."""
    parts = [p for p in key.replace("\\", "/").split("/") if p not in ("", ".")]
    if not parts or ".." in parts:
        raise StorageError(f"Invalid storage key: {key!r}")
    return "/".join(parts)


class Storage:
    # True when GET /api/files/<key> should stream objects itself
    serves_files = False

    def put_bytes(self, key: str, data: bytes, *, content_type: str | None = None) -> str:
        raise NotImplementedError

    def open(self, key: str) -> BinaryIO:
        raise NotImplementedError

    def exists(self, key: str) -> bool:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError


@dataclass(frozen=True)
class LocalStorage(Storage):
    root: Path
    serves_files = True

    def _path(self, key: str) -> Path:
        return self.root / clean_key(key)

    def put_bytes(self, key: str, data: bytes, *, content_type: str | None = None) -> str:
        p = self._path(key)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(data)
        return clean_key(key)

    def open(self, key: str) -> BinaryIO:
        p = self._path(key)
        if not p.is_file():
            raise StorageError(f"No stored object at {key!r}")
        return p.open("rb")

    def exists(self, key: str) -> bool:
        try:
            return self._path(key).is_file()
        except StorageError:
            return False

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


@dataclass(frozen=True)
class S3Storage(Storage):
    """Image bucket on S3 or an S3-compatible host; objects are read via PUBLIC_BASE_URL."""

    endpoint: str
    region: str
    bucket: str
    access_key_id: str
    secret_access_key: str

    def _client(self):
        import boto3

        endpoint = self.endpoint
        if endpoint and "://" not in endpoint:
            endpoint = f"https://{endpoint}"
        return boto3.client(
            "s3",
            endpoint_url=endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
        )

    def put_bytes(self, key: str, data: bytes, *, content_type: str | None = None) -> str:
        key = clean_key(key)
        extra: dict[str, str] = {"CacheControl": "public, max-age=86400"}
        if content_type:
            extra["ContentType"] = content_type
        self._client().put_object(Bucket=self.bucket, Key=key, Body=data, **extra)
        return key

    def open(self, key: str) -> BinaryIO:
        from botocore.exceptions import ClientError

        try:
            obj = self._client().get_object(Bucket=self.bucket, Key=clean_key(key))
        except ClientError as e:
            raise StorageError(f"No stored object at {key!r}") from e
        return obj["Body"]  # type: ignore[return-value]

    def exists(self, key: str) -> bool:
        from botocore.exceptions import ClientError

        try:
            self._client().head_object(Bucket=self.bucket, Key=clean_key(key))
        except ClientError:
            return False
        return True

    def delete(self, key: str) -> None:
        self._client().delete_object(Bucket=self.bucket, Key=clean_key(key))


def storage_from_config(config: dict) -> Storage:
    backend = (config.get("STORAGE_BACKEND") or "local").strip().lower()
    if backend == "s3":
        bucket = (config.get("S3_BUCKET") or "").strip()
        if not bucket:
            raise StorageError("STORAGE_BACKEND=s3 requires S3_BUCKET.")
        return S3Storage(
            endpoint=(config.get("S3_ENDPOINT") or "").strip(),
            region=(config.get("S3_REGION") or "auto").strip(),
            bucket=bucket,
            access_key_id=(config.get("S3_ACCESS_KEY_ID") or "").strip(),
            secret_access_key=(config.get("S3_SECRET_ACCESS_KEY") or "").strip(),
        )
    if backend != "local":
        raise StorageError(f"Unknown STORAGE_BACKEND {backend!r}; expected 'local' or 's3'.")
    root = config.get("LOCAL_STORAGE_ROOT") or os.path.join(os.getcwd(), "storage")
    return LocalStorage(root=Path(root))
