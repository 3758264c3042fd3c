# Overview: Flask API routes for the root administration dashboard.

"""
Admin Routes

SECURITY: root only. Non-root callers get 403 with a redirect hint to the
vendor dashboard.
"""

from flask import Blueprint

from ..decorators import require_auth, require_root
from ..services import user_service
from ..services.reporting_service import admin_overview

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.get("/overview")
@require_auth
@require_root
def overview_route():
    return admin_overview()


@admin_bp.get("/users")
@require_auth
@require_root
def list_users_route():
    """Every user with role and vendor profile summary, newest first."""
    items = []
    for user in user_service.list_users():
        data = user.to_dict()
        profile = user.vendor_profile
        data["vendor"] = (
            {"id": profile.id, "display_name": profile.display_name, "slug": profile.slug}
            if profile is not None
            else None
        )
        items.append(data)
    return {"items": items, "count": len(items)}
