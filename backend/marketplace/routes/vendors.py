# Overview: Flask API routes for vendor profiles; parses input and returns JSON responses.

"""
Vendor Routes

Public: vendor directory and vendor pages (profile plus published products).
Authenticated: the caller's own profile, provisioned on first access.
"""

from flask import Blueprint, request, jsonify, g, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..decorators import require_auth, require_vendor_profile
from ..services import vendor_service
from ..validation import NotFoundError, ValidationError


vendors_bp = Blueprint("vendors", __name__, url_prefix="/api/vendors")


@vendors_bp.get("")
def list_vendors_route():
    """
    Query parameters:
    - search: display name filter (optional)

    Returns:
        {items: VendorProfile[], count: int}
    """
    vendors = vendor_service.list_vendors(search=request.args.get("search") or None)
    return jsonify({
        "items": [v.to_public_dict() for v in vendors],
        "count": len(vendors),
    })


@vendors_bp.get("/me")
@require_auth
@require_vendor_profile
def get_my_vendor_route():
    return jsonify(g.vendor_profile.to_dict())


@vendors_bp.patch("/me")
@require_auth
@require_vendor_profile
def update_my_vendor_route():
    """
    Update the caller's public profile.

    Request body (all optional):
    {
        "display_name": "Tienda Ana",
        "bio": "...",
        "whatsapp": "+52 55 1234 5678",   // stored as digits
        "website": "https://...",
        "avatar_url": "...",
        "banner_url": "..."
    }
    """
    payload = request.get_json(silent=True)

    try:
        profile = vendor_service.update_vendor_profile(g.vendor_profile, payload)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except SQLAlchemyError:
        current_app.logger.exception("Failed to update vendor profile %s", g.vendor_profile.id)
        return jsonify({"error": "Failed to update profile"}), 500

    return jsonify(profile.to_dict())


@vendors_bp.get("/<slug>")
def get_vendor_route(slug: str):
    try:
        profile, products = vendor_service.get_vendor_with_products(slug)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404

    return jsonify({
        "vendor": profile.to_public_dict(),
        "items": [p.to_dict() for p in products],
    })
