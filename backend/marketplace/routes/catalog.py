# Overview: Flask API routes for the public catalog and weekly share links.

"""
Catalog Routes

Public reads (no authentication): home listing, product detail with
recommendations, best sellers, and share-link resolution.

POST /api/catalog/share is vendor tooling: it issues (or reuses) this week's
public link to the caller's catalog.
"""
from flask import Blueprint, request, g, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..decorators import require_auth, require_phone_number, require_vendor_profile
from ..services import catalog_service, share_service
from ..services.share_service import ShareLinkExpiredError
from ..validation import ConflictError, NotFoundError

catalog_bp = Blueprint("catalog", __name__, url_prefix="/api/catalog")

MAX_TAKE = 100


def _clamp_take(default: int) -> int:
    take = request.args.get("take", default, type=int)
    return max(1, min(take, MAX_TAKE))


@catalog_bp.get("/products")
def home_products_route():
    """
    Query params:
    - q: name filter (optional)
    - category: category slug (optional)
    - take: int (default 20, max 100)
    """
    products = catalog_service.get_home_products(
        take=_clamp_take(20),
        search=request.args.get("q") or None,
        category_slug=request.args.get("category") or None,
    )
    return {"items": [p.to_dict(include_vendor=True) for p in products]}


@catalog_bp.get("/products/<int:product_id>")
def product_detail_route(product_id: int):
    try:
        product = catalog_service.get_published_product(product_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return {
        "product": product.to_dict(include_vendor=True),
        "similar": [p.to_dict() for p in catalog_service.get_similar_products(product)],
        "more_from_vendor": [
            p.to_dict() for p in catalog_service.get_more_from_vendor(product.vendor_id, exclude_id=product.id)
        ],
    }


@catalog_bp.get("/best-sellers")
def best_sellers_route():
    products = catalog_service.get_best_sellers(take=_clamp_take(8))
    return {"items": [p.to_dict(include_vendor=True) for p in products]}


@catalog_bp.post("/share")
@require_auth
@require_phone_number
@require_vendor_profile
def issue_share_link_route():
    """
    Issue this week's share link for the caller's catalog.

    Returns 201 when a new link was created, 200 when this week's link already existed.
    """
    try:
        link, created = share_service.issue_share_link(g.vendor_profile)
    except ConflictError as e:
        return {"error": str(e)}, 409
    except SQLAlchemyError:
        current_app.logger.exception("Failed to issue share link for vendor %s", g.vendor_profile.id)
        return {"error": "Failed to create share link"}, 500

    data = link.to_dict()
    data["url"] = share_service.share_url(link)
    return data, 201 if created else 200


@catalog_bp.get("/share/<slug>")
def resolve_share_link_route(slug: str):
    try:
        link, products = share_service.resolve_share_link(slug)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ShareLinkExpiredError as e:
        return {"error": str(e)}, 410

    return {
        "link": link.to_dict(),
        "vendor": link.vendor.to_public_dict(),
        "items": [p.to_dict() for p in products],
    }
