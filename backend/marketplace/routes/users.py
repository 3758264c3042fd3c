# Overview: Flask API routes for the signed-in user and root-only user deletion.

from flask import Blueprint, request, g, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..decorators import require_auth, require_root
from ..services import user_service
from ..services.permission_service import PermissionDeniedError
from ..validation import NotFoundError, ValidationError

users_bp = Blueprint("users", __name__, url_prefix="/api")


@users_bp.get("/user/me")
@require_auth
def me_route():
    """The caller's local user row plus its vendor profile, if provisioned."""
    user = g.current_user
    profile = user.vendor_profile
    return {
        "user": user.to_dict(),
        "vendor_profile": profile.to_dict() if profile is not None else None,
    }


@users_bp.post("/user/phone")
@require_auth
def update_phone_route():
    """
    Body: {phone: str}. Stored as digits only; at least 10 digits.
    """
    payload = request.get_json(silent=True) or {}

    try:
        user = user_service.update_phone(g.current_user, payload.get("phone"))
    except ValidationError as e:
        return e.to_dict(), 400
    except SQLAlchemyError:
        current_app.logger.exception("Failed to update phone for user %s", g.current_user.id)
        return {"error": "Failed to update phone number"}, 500

    return {"success": True, "user": user.to_dict()}


@users_bp.delete("/users/<int:user_id>")
@require_auth
@require_root
def delete_user_route(user_id: int):
    """
    Delete a user and everything its vendor profile owns.

    Root only; root cannot delete itself.
    """
    try:
        failed_keys = user_service.delete_user(user_id=user_id, actor=g.current_user)
    except PermissionDeniedError as e:
        return {"error": str(e)}, 403
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return e.to_dict(), 400
    except SQLAlchemyError:
        current_app.logger.exception("Failed to delete user %s", user_id)
        return {"error": "Failed to delete user"}, 500

    return {"success": True, "storage_failures": len(failed_keys)}
