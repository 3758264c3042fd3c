# Overview: Public catalog reads; home listing, product detail, recommendations and search.

from __future__ import annotations

from flask import current_app
from sqlalchemy import func, or_
from sqlalchemy.exc import DBAPIError

from ..extensions import db
from ..models import Category, Product
from ..validation import NotFoundError

SEARCH_LIMIT = 20
SEARCH_LANGUAGE = "spanish"


def _published():
    return db.session.query(Product).filter(Product.status == "published")


def _like_pattern(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def get_home_products(*, take: int = 20, search: str | None = None, category_slug: str | None = None) -> list[Product]:
    """Published products, in-stock and best-selling first."""
    query = _published()
    if search:
        query = query.filter(Product.name.ilike(_like_pattern(search.strip()), escape="\\"))
    if category_slug:
        query = query.join(Category, Product.category_id == Category.id).filter(Category.slug == category_slug)
    return (
        query.order_by(Product.stock.desc(), Product.sales_count.desc(), Product.created_at.desc(), Product.id.desc())
        .limit(take)
        .all()
    )


def get_published_product(product_id: int) -> Product:
    product = _published().filter(Product.id == product_id).first()
    if product is None:
        raise NotFoundError("Product not found")
    return product


def get_similar_products(product: Product, *, take: int = 8) -> list[Product]:
    """Same category or same brand, any vendor."""
    query = _published().filter(Product.id != product.id)
    filters = []
    if product.category_id is not None:
        filters.append(Product.category_id == product.category_id)
    if product.brand_id is not None:
        filters.append(Product.brand_id == product.brand_id)
    if filters:
        query = query.filter(or_(*filters))
    return query.order_by(Product.sales_count.desc(), Product.id.desc()).limit(take).all()


def get_more_from_vendor(vendor_id: int, *, exclude_id: int | None = None, take: int = 6) -> list[Product]:
    query = _published().filter(Product.vendor_id == vendor_id)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    return query.order_by(Product.sales_count.desc(), Product.created_at.desc()).limit(take).all()


def get_best_sellers(*, take: int = 8) -> list[Product]:
    return _published().order_by(Product.sales_count.desc(), Product.id.desc()).limit(take).all()


def search_products(q: str | None, *, limit: int = SEARCH_LIMIT) -> list[Product]:
    """
    Search-as-you-type over published products.

    PostgreSQL: full-text match OR pattern match; if the full-text query
    errors, falls back to the pattern match alone. Other databases use the
    pattern match directly.
    """
    text = (q or "").strip()
    if not text:
        return []

    pattern = _like_pattern(text)
    like_clause = or_(
        Product.name.ilike(pattern, escape="\\"),
        Product.description.ilike(pattern, escape="\\"),
    )
    ordering = (Product.stock.desc(), Product.sales_count.desc(), Product.id.desc())

    if db.engine.dialect.name == "postgresql":
        document = func.to_tsvector(
            SEARCH_LANGUAGE,
            func.coalesce(Product.name, "") + " " + func.coalesce(Product.description, ""),
        )
        fts_clause = document.op("@@")(func.plainto_tsquery(SEARCH_LANGUAGE, text))
        try:
            return _published().filter(or_(fts_clause, like_clause)).order_by(*ordering).limit(limit).all()
        except DBAPIError:
            db.session.rollback()
            current_app.logger.warning("Full-text search failed, falling back to pattern match", exc_info=True)

    return _published().filter(like_clause).order_by(*ordering).limit(limit).all()
