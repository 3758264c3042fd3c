# Overview: Flask API routes for product management; parses input and returns JSON responses.

"""
Product management routes.

SECURITY: All routes require authentication and a captured phone number.
- Vendors list and modify only their own products
- Root may list (optionally by vendor_id) and modify any product
"""
from flask import Blueprint, request, g, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..services import products_service
from ..services.catalog_service import search_products
from ..services.permission_service import PermissionDeniedError, require_vendor_resource
from ..services.products_service import ProductImageError
from ..models import Product, PRODUCT_STATUSES
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    parse_image_payloads,
    parse_variant_payloads,
    validate_sale_payload,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from ..decorators import require_auth, require_phone_number, require_vendor_profile

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields=set(products_service.PRODUCT_MUTABLE_FIELDS),
    required_on_create={"name", "brand_name", "regular_price_cents"},
    extra_fields={"images", "variants"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _parse_product_payload(payload, *, partial: bool):
    """Returns (patch, images, variants); images/variants are None when omitted on update."""
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=partial)
    enforce_rules_product(patch, partial=partial)

    images = patch.pop("images", None)
    variants = patch.pop("variants", None)
    if images is not None or not partial:
        images = parse_image_payloads(images)
    if variants is not None or not partial:
        variants = parse_variant_payloads(variants)
    return patch, images, variants


@products_bp.get("")
@require_auth
@require_phone_number
@require_vendor_profile
def list_products_route():
    """
    Dashboard listing.

    Query params:
    - vendor_id: int (optional, root only)
    - status: draft|published|archived (optional)
    """
    vendor_id = request.args.get("vendor_id", type=int)
    status = request.args.get("status")
    if status and status not in PRODUCT_STATUSES:
        return {"error": f"status must be one of: {', '.join(PRODUCT_STATUSES)}"}, 400

    try:
        products = products_service.list_products(user=g.current_user, vendor_id=vendor_id, status=status)
    except PermissionDeniedError as e:
        return {"error": str(e)}, 403

    return {"items": [p.to_dict() for p in products], "count": len(products)}


@products_bp.get("/search")
def search_products_route():
    """Public search-as-you-type over published products."""
    q = request.args.get("q", "")
    try:
        products = search_products(q)
    except SQLAlchemyError:
        current_app.logger.exception("Failed to search products")
        return {"error": "Failed to search products"}, 500
    return {"items": [p.to_dict(include_vendor=True) for p in products]}


@products_bp.post("")
@require_auth
@require_phone_number
@require_vendor_profile
def create_product_route():
    """
    Create a product for the caller's vendor profile.

    Body: product fields plus optional images[] and variants[].
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch, images, variants = _parse_product_payload(payload, partial=False)
    except ValidationError as e:
        return e.to_dict(), 400

    try:
        created = products_service.create_product(
            vendor=g.vendor_profile,
            patch=patch,
            images=images,
            variants=variants,
        )
    except ValidationError as e:
        return e.to_dict(), 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ProductImageError as e:
        current_app.logger.warning("Product create for vendor %s rolled back: %s", g.vendor_profile.id, e)
        return {"error": str(e)}, 500
    except SQLAlchemyError:
        current_app.logger.exception("Failed to create product")
        return {"error": "Failed to create product"}, 500

    return created.to_dict(), 201


@products_bp.get("/<int:product_id>")
@require_auth
@require_phone_number
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(product_id)
        require_vendor_resource(g.current_user, product.vendor_id, resource="product")
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except PermissionDeniedError as e:
        return {"error": str(e)}, 403
    return product.to_dict(include_vendor=True)


@products_bp.patch("/<int:product_id>")
@require_auth
@require_phone_number
def update_product_route(product_id: int):
    """Partial update; images/variants replace the existing rows when present."""
    payload = request.get_json(silent=True) or {}

    try:
        product = products_service.get_product(product_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    try:
        patch, images, variants = _parse_product_payload(payload, partial=True)
    except ValidationError as e:
        return e.to_dict(), 400

    try:
        updated = products_service.update_product(
            product=product,
            actor=g.current_user,
            patch=patch,
            images=images,
            variants=variants,
        )
    except PermissionDeniedError as e:
        return {"error": str(e)}, 403
    except ValidationError as e:
        return e.to_dict(), 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except SQLAlchemyError:
        current_app.logger.exception("Failed to update product %s", product_id)
        return {"error": "Failed to update product"}, 500

    return updated.to_dict()


@products_bp.delete("/<int:product_id>")
@require_auth
@require_phone_number
def delete_product_route(product_id: int):
    """Delete a product, its images (storage included), variants, events and sales."""
    try:
        product = products_service.get_product(product_id)
        failed_keys = products_service.delete_product(product=product, actor=g.current_user)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except PermissionDeniedError as e:
        return {"error": str(e)}, 403
    except SQLAlchemyError:
        current_app.logger.exception("Failed to delete product %s", product_id)
        return {"error": "Failed to delete product"}, 500

    return {"ok": True, "storage_failures": len(failed_keys)}, 200


@products_bp.post("/<int:product_id>/sale")
@require_auth
@require_phone_number
def record_sale_route(product_id: int):
    """
    Record an offline sale.

    Body: {quantity?: int >= 1 (default 1), amount_cents?: int}
    """
    payload = request.get_json(silent=True)

    try:
        data = validate_sale_payload(payload)
        product = products_service.get_product(product_id)
        sale = products_service.record_manual_sale(
            product=product,
            actor=g.current_user,
            quantity=data["quantity"],
            amount_cents=data["amount_cents"],
        )
    except ValidationError as e:
        return e.to_dict(), 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except PermissionDeniedError as e:
        return {"error": str(e)}, 403
    except SQLAlchemyError:
        current_app.logger.exception("Failed to record sale for product %s", product_id)
        return {"error": "Failed to record sale"}, 500

    return {"sale": sale.to_dict(), "product": product.to_dict()}, 201
