# Overview: Service-layer operations for the global, root-managed category taxonomy.

from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Category, Product
from ..text_utils import slugify
from ..validation import ConflictError, NotFoundError, ValidationError

DUPLICATE_MESSAGE = "A category with that name already exists"


def list_categories() -> list[tuple[Category, int]]:
    """Categories by name with their product counts."""
    counts = (
        db.session.query(Product.category_id, func.count(Product.id))
        .filter(Product.category_id.isnot(None))
        .group_by(Product.category_id)
        .all()
    )
    by_id = dict(counts)
    categories = db.session.query(Category).order_by(Category.name.asc()).all()
    return [(c, by_id.get(c.id, 0)) for c in categories]


def get_category(category_id: int) -> Category:
    category = db.session.get(Category, category_id)
    if category is None:
        raise NotFoundError("Category not found")
    return category


def _slug_for(name: str) -> str:
    slug = slugify(name)
    if not slug:
        raise ValidationError("name must contain letters or digits", "name")
    return slug


def _commit() -> None:
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError(DUPLICATE_MESSAGE) from exc


def create_category(*, name: str, description: str | None = None) -> Category:
    category = Category(name=name, slug=_slug_for(name), description=description)
    db.session.add(category)
    _commit()
    return category


def update_category(category: Category, *, name: str, description: str | None = None) -> Category:
    category.name = name
    category.slug = _slug_for(name)
    category.description = description
    _commit()
    return category


def delete_category(category: Category) -> None:
    """Products in the category are kept and become uncategorized."""
    db.session.query(Product).filter(Product.category_id == category.id).update({"category_id": None})
    db.session.delete(category)
    db.session.commit()
