# backend/marketplace/routes/system.py
"""
System health endpoint.

Reports database connectivity, role seeding and which storage backend
uploads will use.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db, storage
from ..models import Role, User, VendorProfile, Product, ROLE_NAMES
from marketplace.time_utils import utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        user_count = db.session.query(User).count()
        vendor_count = db.session.query(VendorProfile).count()
        product_count = db.session.query(Product).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "users": user_count,
                "vendors": vendor_count,
                "products": product_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_roles_health() -> dict:
    """Roles are seeded lazily on first sign-in; missing ones only degrade."""
    try:
        present = {r.name for r in db.session.query(Role).all()}
    except Exception:
        current_app.logger.exception("Role health check failed")
        db.session.rollback()
        return {"status": "unhealthy", "error": "Database error"}

    missing = [name for name in ROLE_NAMES if name not in present]
    if missing:
        return {"status": "degraded", "warning": f"Missing roles: {', '.join(missing)}"}
    return {"status": "healthy"}


def check_storage_health() -> dict:
    # Local fallback keeps uploads working without S3
    return {
        "status": "healthy",
        "backend": "s3" if storage.is_configured else "local",
    }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    roles_health = check_roles_health()
    storage_health = check_storage_health()

    all_checks = [database_health, roles_health, storage_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status, http_status = "unhealthy", 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "roles": roles_health,
            "storage": storage_health,
        }
    }

    return response, http_status
