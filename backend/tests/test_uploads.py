# Overview: Pytest coverage for the object storage gateway and upload routes.

"""
Upload / Storage Tests

Covers:
1. Direct uploads fall back to local disk without S3 (and when S3 rejects the put)
2. Local files are served with content type and cache headers
3. Path traversal is rejected
4. Presigned uploads need S3; keys are prefixed with the vendor profile id
5. Best-effort bulk deletes
"""

import io
import os

import pytest
from botocore.exceptions import ClientError

from marketplace.extensions import storage
from marketplace.services.storage_service import StorageError, StoragePathError


class FakeS3Client:
    def __init__(self, *, fail_put: bool = False):
        self.fail_put = fail_put
        self.puts = []

    def put_object(self, **kwargs):
        if self.fail_put:
            raise ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject")
        self.puts.append(kwargs)

    def generate_presigned_url(self, operation, Params, ExpiresIn):
        return f"https://{Params['Bucket']}.s3.amazonaws.com/{Params['Key']}?X-Amz-Expires={ExpiresIn}"


@pytest.fixture
def s3(monkeypatch):
    """Configure the storage singleton for S3 with a fake client."""
    client = FakeS3Client()
    monkeypatch.setattr(storage, "bucket", "market-assets")
    monkeypatch.setattr(storage, "region", "us-east-1")
    monkeypatch.setattr(storage, "_credentials", {
        "aws_access_key_id": "AKIATEST",
        "aws_secret_access_key": "secret",
    })
    monkeypatch.setattr(storage, "_client", client)
    return client


def _upload(client, headers, data=b"\x89PNG fake", filename="photo.PNG"):
    return client.post(
        '/api/uploads/direct',
        data={"file": (io.BytesIO(data), filename)},
        content_type="multipart/form-data",
        headers=headers,
    )


class TestDirectUpload:

    def test_local_fallback_and_serving(self, client, vendor_a):
        response = _upload(client, vendor_a.headers)

        assert response.status_code == 201
        key, url = response.json["key"], response.json["url"]
        assert key.startswith(f"uploads/{vendor_a.profile.id}/")
        assert key.endswith(".png")
        assert url == "/" + key

        served = client.get(url)
        assert served.status_code == 200
        assert served.data == b"\x89PNG fake"
        assert served.headers["Content-Type"].startswith("image/png")
        assert served.headers["Cache-Control"] == "public, max-age=31536000, immutable"
        served.close()

    def test_s3_upload(self, client, vendor_a, s3):
        response = _upload(client, vendor_a.headers)

        assert response.status_code == 201
        key = response.json["key"]
        assert key.startswith(f"{vendor_a.profile.id}/")
        assert response.json["url"] == f"https://market-assets.s3.us-east-1.amazonaws.com/{key}"
        assert s3.puts[0]["Bucket"] == "market-assets"

    def test_s3_failure_falls_back_to_local(self, client, vendor_a, s3):
        s3.fail_put = True

        response = _upload(client, vendor_a.headers)

        assert response.status_code == 201
        assert response.json["key"].startswith("uploads/")

    def test_missing_file(self, client, vendor_a):
        response = client.post('/api/uploads/direct', data={}, content_type="multipart/form-data",
                               headers=vendor_a.headers)
        assert response.status_code == 400

    def test_requires_authentication(self, client, db_session):
        assert _upload(client, {}).status_code == 401


class TestServeAndPaths:

    def test_missing_file_is_404(self, client, db_session):
        assert client.get('/uploads/1/missing.png').status_code == 404

    def test_traversal_is_rejected(self, app):
        with pytest.raises(StoragePathError):
            storage.resolve_local_path("../outside.txt")
        with pytest.raises(StoragePathError):
            storage.resolve_local_path("1/../../outside.txt")

    def test_nested_path_resolves_inside_uploads_dir(self, app):
        path = storage.resolve_local_path("7/a.png")
        assert path.startswith(os.path.realpath(storage.uploads_dir) + os.sep)


class TestPresignedUpload:

    def test_not_configured_is_500(self, client, vendor_a):
        response = client.post('/api/uploads', json={"filename": "a.png", "content_type": "image/png"},
                               headers=vendor_a.headers)
        assert response.status_code == 500

    def test_presign_with_s3(self, client, vendor_a, s3):
        response = client.post('/api/uploads', json={"filename": "a.png", "content_type": "image/png"},
                               headers=vendor_a.headers)

        assert response.status_code == 200
        assert response.json["key"].startswith(f"{vendor_a.profile.id}/")
        assert response.json["upload_url"].startswith("https://market-assets.s3.amazonaws.com/")

    def test_presign_requires_filename_and_type(self, client, vendor_a, s3):
        response = client.post('/api/uploads', json={"filename": "a.png"}, headers=vendor_a.headers)
        assert response.status_code == 400


class TestKeysAndDeletes:

    def test_key_from_url(self, app, s3):
        assert storage.key_from_url("/uploads/3/a.png") == "uploads/3/a.png"
        assert storage.key_from_url("https://market-assets.s3.us-east-1.amazonaws.com/3/a.png") == "3/a.png"
        assert storage.key_from_url("https://elsewhere.example.com/3/a.png") is None

    def test_key_belongs_to_vendor(self):
        assert storage.key_belongs_to_vendor("uploads/3/a.png", 3)
        assert storage.key_belongs_to_vendor("3/a.png", 3)
        assert not storage.key_belongs_to_vendor("33/a.png", 3)
        assert not storage.key_belongs_to_vendor(None, 3)

    def test_delete_many_attempts_every_key(self, app, storage_deletes):
        storage_deletes.failing.add("1/b.png")

        failed = storage.delete_many(["1/a.png", "1/b.png", None, "1/c.png"])

        assert failed == ["1/b.png"]
        assert storage_deletes.attempted == ["1/a.png", "1/b.png", "1/c.png"]

    def test_local_delete_removes_file(self, app):
        stored = storage.save_local(vendor_id=9, filename="x.txt", data=b"x")
        path = storage.resolve_local_path(stored["key"][len("uploads/"):])
        assert os.path.exists(path)

        storage.delete(stored["key"])
        storage.delete(stored["key"])  # already gone: no error

        assert not os.path.exists(path)

    def test_s3_delete_failure_raises_storage_error(self, app, s3, monkeypatch):
        def denied(**kwargs):
            raise ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, "DeleteObject")

        monkeypatch.setattr(s3, "delete_object", denied, raising=False)

        with pytest.raises(StorageError):
            storage.delete("3/a.png")
