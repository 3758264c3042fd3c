# Overview: Flask routes for image uploads (presigned and direct) and local-fallback asset serving.

"""
Upload Routes

POST /api/uploads         presigned S3 PUT for browser-side uploads (S3 only)
POST /api/uploads/direct  multipart upload through the app; S3 first, local disk fallback
GET  /uploads/<path>      serves local-fallback files

SECURITY: keys are always prefixed with the caller's vendor profile id, so
product create/update can tell which objects the vendor owns.
"""
import os

from flask import Blueprint, request, g, current_app, send_file

from ..decorators import require_auth, require_vendor_profile
from ..extensions import storage
from ..services.storage_service import (
    StorageError,
    StorageNotConfiguredError,
    StoragePathError,
    guess_content_type,
)

uploads_bp = Blueprint("uploads", __name__)

ASSET_CACHE_CONTROL = "public, max-age=31536000, immutable"


@uploads_bp.post("/api/uploads")
@require_auth
@require_vendor_profile
def presign_upload_route():
    """
    Body: {filename: str, content_type: str}

    Returns:
        {upload_url, key, url}
    """
    payload = request.get_json(silent=True) or {}
    filename = payload.get("filename")
    content_type = payload.get("content_type")
    if not filename or not content_type:
        return {"error": "filename and content_type are required"}, 400

    key = storage.build_key(g.vendor_profile.id, filename)
    try:
        upload_url = storage.create_presigned_upload(key=key, content_type=content_type)
    except StorageNotConfiguredError as e:
        return {"error": str(e)}, 500
    except StorageError:
        current_app.logger.exception("Failed to presign upload for vendor %s", g.vendor_profile.id)
        return {"error": "Failed to create upload URL"}, 500

    return {"upload_url": upload_url, "key": key, "url": storage.public_url(key)}


@uploads_bp.post("/api/uploads/direct")
@require_auth
@require_vendor_profile
def direct_upload_route():
    """Multipart form with a single "file" field."""
    file = request.files.get("file")
    if file is None or not file.filename:
        return {"error": "No file provided"}, 400

    data = file.read()
    try:
        stored = storage.upload(
            vendor_id=g.vendor_profile.id,
            filename=file.filename,
            data=data,
            content_type=file.mimetype,
        )
    except (StorageError, OSError):
        current_app.logger.exception("Failed to store upload for vendor %s", g.vendor_profile.id)
        return {"error": "Failed to upload file"}, 500

    current_app.logger.info(
        "Stored %d bytes as %s (%s) for vendor %s",
        len(data), stored["key"], stored["backend"], g.vendor_profile.id,
    )
    return {"key": stored["key"], "url": stored["url"]}, 201


@uploads_bp.get("/uploads/<path:path>")
def serve_upload_route(path: str):
    try:
        file_path = storage.resolve_local_path(path)
    except StoragePathError as e:
        return {"error": str(e)}, 403

    if not os.path.isfile(file_path):
        return {"error": "File not found"}, 404

    response = send_file(file_path, mimetype=guess_content_type(os.path.basename(file_path)))
    response.headers["Cache-Control"] = ASSET_CACHE_CONTROL
    return response
