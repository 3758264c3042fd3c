from __future__ import annotations
import os


def _split_env(name: str, default: str = "") -> list[str]:
    raw = os.environ.get(name, default)
    return [part.strip() for part in raw.split(",") if part.strip()]


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/marketplace.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///marketplace.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Identity provider: bearer tokens are JWTs signed by the provider.
    # HS* algorithms use AUTH_JWT_KEY as the shared secret, RS*/ES* as the PEM public key.
    AUTH_JWT_KEY = os.environ.get("AUTH_JWT_KEY", "dev-identity-signing-key-change-me-please")
    AUTH_JWT_ALGORITHMS = _split_env("AUTH_JWT_ALGORITHMS", "HS256")
    AUTH_JWT_AUDIENCE = os.environ.get("AUTH_JWT_AUDIENCE") or None
    AUTH_JWT_ISSUER = os.environ.get("AUTH_JWT_ISSUER") or None

    # Object storage (S3). When any of these is missing, uploads fall back to UPLOADS_DIR.
    AWS_S3_BUCKET_NAME = os.environ.get("AWS_S3_BUCKET_NAME")
    AWS_S3_REGION = os.environ.get("AWS_S3_REGION")
    AWS_ACCESS_KEY_ID = os.environ.get("AWS_ACCESS_KEY_ID")
    AWS_SECRET_ACCESS_KEY = os.environ.get("AWS_SECRET_ACCESS_KEY")
    AWS_CDN_URL = os.environ.get("AWS_CDN_URL")
    PRESIGNED_UPLOAD_EXPIRES = int(os.environ.get("PRESIGNED_UPLOAD_EXPIRES", "300"))

    # None resolves to <instance_path>/uploads at init time
    UPLOADS_DIR = os.environ.get("UPLOADS_DIR")

    APP_URL = os.environ.get("APP_URL", "http://localhost:5000")

    CORS_ALLOWED_ORIGINS = _split_env(
        "CORS_ALLOWED_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173",
    )

    SHARE_LINK_SLUG_ATTEMPTS = int(os.environ.get("SHARE_LINK_SLUG_ATTEMPTS", "5"))
