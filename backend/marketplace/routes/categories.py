# Overview: Flask API routes for categories; public listing, root-only management.

from flask import Blueprint, request

from ..decorators import require_auth, require_root
from ..services import category_service
from ..validation import validate_category_payload, ValidationError, ConflictError, NotFoundError

categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("")
def list_categories_route():
    items = []
    for category, product_count in category_service.list_categories():
        data = category.to_dict()
        data["product_count"] = product_count
        items.append(data)
    return {"items": items}


@categories_bp.post("")
@require_auth
@require_root
def create_category_route():
    """Body: {name: str, description?: str}. The slug is derived from the name."""
    try:
        data = validate_category_payload(request.get_json(silent=True))
        category = category_service.create_category(**data)
    except ValidationError as e:
        return e.to_dict(), 400
    except ConflictError as e:
        return {"error": str(e)}, 409

    return category.to_dict(), 201


@categories_bp.patch("/<int:category_id>")
@require_auth
@require_root
def update_category_route(category_id: int):
    try:
        category = category_service.get_category(category_id)
        data = validate_category_payload(request.get_json(silent=True))
        category = category_service.update_category(category, **data)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return e.to_dict(), 400
    except ConflictError as e:
        return {"error": str(e)}, 409

    return category.to_dict()


@categories_bp.delete("/<int:category_id>")
@require_auth
@require_root
def delete_category_route(category_id: int):
    try:
        category = category_service.get_category(category_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    category_service.delete_category(category)
    return {"ok": True}
