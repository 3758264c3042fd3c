# Overview: Object Storage Gateway; S3 uploads and deletes with a local-disk fallback.

"""
Object Storage Gateway

Binary assets (product images, vendor avatars/banners) are stored in S3 when
the bucket is configured, otherwise on local disk under UPLOADS_DIR.

KEY LAYOUT:
- S3:    {vendor_id}/{uuid}.{ext}
- Local: uploads/{vendor_id}/{uuid}.{ext}, served from /uploads/{vendor_id}/{uuid}.{ext}

The "uploads/" prefix is how delete() tells local keys from S3 keys.

LIFECYCLE: one ObjectStorage per process (see extensions.py). The boto3
client is created lazily on first use and never torn down.
"""

from __future__ import annotations

import os
import uuid
from urllib.parse import urlparse

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from flask import current_app

LOCAL_KEY_PREFIX = "uploads/"
LOCAL_URL_PREFIX = "/uploads/"

CONTENT_TYPES = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "webp": "image/webp",
    "svg": "image/svg+xml",
}


class StorageError(Exception):
    """Raised when the storage backend rejects an operation."""
    pass


class StorageNotConfiguredError(StorageError):
    """Raised for S3-only operations when no bucket is configured."""
    pass


class StoragePathError(StorageError):
    """Raised when a local path escapes the uploads directory."""
    pass


def file_extension(filename: str | None) -> str:
    if not filename or "." not in filename:
        return "bin"
    ext = filename.rsplit(".", 1)[1].strip().lower()
    return ext or "bin"


def guess_content_type(filename: str) -> str:
    return CONTENT_TYPES.get(file_extension(filename), "application/octet-stream")


class ObjectStorage:
    """Flask-extension-style storage gateway."""

    def __init__(self, app=None):
        self.bucket: str | None = None
        self.region: str | None = None
        self.cdn_url: str | None = None
        self.uploads_dir: str | None = None
        self.presign_expires = 300
        self._credentials: dict = {}
        self._client = None
        if app is not None:
            self.init_app(app)

    def init_app(self, app) -> None:
        self.bucket = app.config.get("AWS_S3_BUCKET_NAME")
        self.region = app.config.get("AWS_S3_REGION")
        self.cdn_url = (app.config.get("AWS_CDN_URL") or "").rstrip("/") or None
        self.presign_expires = int(app.config.get("PRESIGNED_UPLOAD_EXPIRES", 300))
        self._credentials = {
            "aws_access_key_id": app.config.get("AWS_ACCESS_KEY_ID"),
            "aws_secret_access_key": app.config.get("AWS_SECRET_ACCESS_KEY"),
        }
        self.uploads_dir = os.path.abspath(
            app.config.get("UPLOADS_DIR") or os.path.join(app.instance_path, "uploads")
        )
        self._client = None
        app.extensions["object_storage"] = self

    # ------------------------------------------------------------------
    # S3
    # ------------------------------------------------------------------

    @property
    def is_configured(self) -> bool:
        return bool(
            self.bucket
            and self.region
            and self._credentials.get("aws_access_key_id")
            and self._credentials.get("aws_secret_access_key")
        )

    @property
    def client(self):
        if not self.is_configured:
            raise StorageNotConfiguredError("S3 client is not configured")
        if self._client is None:
            self._client = boto3.client("s3", region_name=self.region, **self._credentials)
        return self._client

    def build_key(self, vendor_id: int, filename: str | None) -> str:
        return f"{vendor_id}/{uuid.uuid4()}.{file_extension(filename)}"

    def create_presigned_upload(self, *, key: str, content_type: str) -> str:
        """Presigned PUT URL valid for PRESIGNED_UPLOAD_EXPIRES seconds."""
        try:
            return self.client.generate_presigned_url(
                "put_object",
                Params={"Bucket": self.bucket, "Key": key, "ContentType": content_type},
                ExpiresIn=self.presign_expires,
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Could not presign upload: {exc}") from exc

    def public_url(self, key: str) -> str:
        if key.startswith(LOCAL_KEY_PREFIX):
            return LOCAL_URL_PREFIX + key[len(LOCAL_KEY_PREFIX):]
        if self.cdn_url:
            return f"{self.cdn_url}/{key}"
        if self.bucket and self.region:
            return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"
        return ""

    def key_from_url(self, url: str | None) -> str | None:
        """Inverse of public_url(); None for URLs we do not own."""
        if not url:
            return None
        if url.startswith(LOCAL_URL_PREFIX):
            return LOCAL_KEY_PREFIX + url[len(LOCAL_URL_PREFIX):]
        if self.cdn_url and url.startswith(self.cdn_url + "/"):
            return url[len(self.cdn_url) + 1:]
        if self.bucket:
            parsed = urlparse(url)
            if parsed.hostname and parsed.hostname.startswith(f"{self.bucket}.s3."):
                return parsed.path.lstrip("/") or None
        return None

    @staticmethod
    def key_belongs_to_vendor(key: str | None, vendor_id: int) -> bool:
        if not key:
            return False
        if key.startswith(LOCAL_KEY_PREFIX):
            key = key[len(LOCAL_KEY_PREFIX):]
        return key.startswith(f"{vendor_id}/")

    # ------------------------------------------------------------------
    # Local fallback
    # ------------------------------------------------------------------

    def resolve_local_path(self, relative_path: str) -> str:
        """
        Absolute path for a path below the uploads directory.

        SECURITY: raises StoragePathError for anything that resolves outside it.
        """
        root = os.path.realpath(self.uploads_dir)
        candidate = os.path.realpath(os.path.join(root, relative_path))
        if os.path.commonpath([root, candidate]) != root or candidate == root:
            raise StoragePathError("Invalid path")
        return candidate

    def save_local(self, *, vendor_id: int, filename: str | None, data: bytes) -> dict:
        name = f"{uuid.uuid4()}.{file_extension(filename)}"
        relative = f"{vendor_id}/{name}"
        path = self.resolve_local_path(relative)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as fh:
            fh.write(data)
        key = LOCAL_KEY_PREFIX + relative
        return {"key": key, "url": self.public_url(key)}

    # ------------------------------------------------------------------
    # Uploads and deletes
    # ------------------------------------------------------------------

    def upload(self, *, vendor_id: int, filename: str | None, data: bytes, content_type: str | None) -> dict:
        """
        Store bytes for a vendor. Tries S3 first and falls back to local disk
        when S3 is not configured or the put fails.

        Returns {"key", "url", "backend"}.
        """
        if self.is_configured:
            key = self.build_key(vendor_id, filename)
            try:
                self.client.put_object(
                    Bucket=self.bucket,
                    Key=key,
                    Body=data,
                    ContentType=content_type or guess_content_type(filename or ""),
                )
                return {"key": key, "url": self.public_url(key), "backend": "s3"}
            except (BotoCoreError, ClientError) as exc:
                current_app.logger.warning("S3 upload failed for %s, using local fallback: %s", key, exc)
        else:
            current_app.logger.warning("S3 not configured, storing upload on local disk")

        stored = self.save_local(vendor_id=vendor_id, filename=filename, data=data)
        stored["backend"] = "local"
        return stored

    def delete(self, key: str) -> None:
        """Delete one object. Raises StorageError on failure."""
        if key.startswith(LOCAL_KEY_PREFIX):
            path = self.resolve_local_path(key[len(LOCAL_KEY_PREFIX):])
            try:
                os.remove(path)
            except FileNotFoundError:
                return
            except OSError as exc:
                raise StorageError(f"Could not delete {key}: {exc}") from exc
            return

        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Could not delete {key}: {exc}") from exc

    def delete_many(self, keys) -> list[str]:
        """
        Best-effort delete: every key is attempted, failures are logged and
        suppressed. Returns the keys that could not be deleted.
        """
        failed = []
        for key in keys:
            if not key:
                continue
            try:
                self.delete(key)
            except StorageError:
                current_app.logger.exception("Failed to delete storage object %s", key)
                failed.append(key)
        return failed
