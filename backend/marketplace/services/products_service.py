# Overview: Product Lifecycle Workflow; create/update/delete with storage compensation.

"""
Product Lifecycle Workflow

CREATE is a two-step saga because the database and the object store cannot
share a transaction:
  1. brand upsert + product row + variants, committed together
  2. image rows, committed separately
If step 2 fails, the product from step 1 is deleted and the vendor's
already-uploaded objects referenced by the payload are deleted. Both
compensations are best effort: failures are logged and never replace the
error that triggered them.

UPDATE is partial. images/variants, when supplied, replace the existing
rows wholesale.

DELETE removes storage objects first (best effort, every key attempted),
then child rows in dependency order, then the product.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db, storage
from ..models import (
    Brand,
    Category,
    CatalogShareLink,
    Product,
    ProductEvent,
    ProductImage,
    ProductSale,
    ProductVariant,
    User,
    VendorProfile,
)
from ..text_utils import first_free_slug, random_suffix, slugify
from ..validation import ConflictError, NotFoundError, ValidationError
from .concurrency import lock_for_update
from .permission_service import is_root, owned_vendor_id, require_vendor_resource, PermissionDeniedError

PRODUCT_MUTABLE_FIELDS = {
    "name",
    "description",
    "brand_name",
    "category_id",
    "regular_price_cents",
    "sale_price_cents",
    "sale_expires_at",
    "stock",
    "status",
    "is_featured",
}


class ProductImageError(Exception):
    """Raised when image rows could not be attached to a freshly created product."""
    pass


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def unique_product_slug(name: str, *, exclude_id: int | None = None) -> str:
    """
    Count-based unique slug: "red-shoes", then "red-shoes-2", ...

    Starts from the count of the base slug and every "base-*" slug, then
    skips suffixes already in use. A concurrent create can still collide,
    which surfaces as a ConflictError from the unique constraint.
    """
    base = slugify(name) or f"producto-{random_suffix(5)}"
    query = db.session.query(Product.slug).filter(
        or_(Product.slug == base, Product.slug.like(f"{base}-%"))
    )
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    return first_free_slug(base, {slug for (slug,) in query.all()})


def upsert_brand(vendor_id: int, brand_name: str) -> Brand | None:
    """Vendor-scoped brand keyed by slugified name; the display name follows the latest spelling."""
    brand_slug = slugify(brand_name)
    if not brand_slug:
        return None

    brand = db.session.query(Brand).filter_by(vendor_id=vendor_id, slug=brand_slug).first()
    if brand is None:
        brand = Brand(vendor_id=vendor_id, name=brand_name, slug=brand_slug)
        db.session.add(brand)
    else:
        brand.name = brand_name
    db.session.flush()
    return brand


def _require_category(category_id: int | None) -> None:
    if category_id is None:
        return
    if db.session.get(Category, category_id) is None:
        raise ValidationError("Category not found", "category_id")


def _build_images(images: list[dict]) -> list[ProductImage]:
    rows = []
    for img in images:
        url = img.get("url") or storage.public_url(img["storage_key"])
        rows.append(ProductImage(
            url=url,
            storage_key=img.get("storage_key"),
            position=img.get("position", 0),
            alt=img.get("alt"),
        ))
    return rows


def _require_owned_keys(vendor_id: int, images: list[dict]) -> None:
    """Images may only reference storage objects uploaded under the owning vendor."""
    for index, img in enumerate(images):
        key = img.get("storage_key")
        if key and not storage.key_belongs_to_vendor(key, vendor_id):
            field = f"images[{index}].storage_key"
            raise ValidationError(f"{field} does not belong to this vendor", field)


def _owned_keys(keys, vendor_id: int) -> list[str]:
    return [key for key in keys if storage.key_belongs_to_vendor(key, vendor_id)]


def _build_variants(variants: list[dict]) -> list[ProductVariant]:
    return [ProductVariant(**variant) for variant in variants]


def _commit_or_conflict(message: str) -> None:
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError(message) from exc
    except SQLAlchemyError:
        db.session.rollback()
        raise


def list_products(
    *,
    user: User,
    vendor_id: int | None = None,
    status: str | None = None,
) -> list[Product]:
    """
    Dashboard listing. Root sees every vendor (optionally filtered by
    vendor_id); a vendor only sees its own products.

    Raises:
        PermissionDeniedError: non-root caller without a vendor profile
    """
    if not is_root(user):
        vendor_id = owned_vendor_id(user)
        if vendor_id is None:
            raise PermissionDeniedError("Vendor profile not found")

    query = db.session.query(Product)
    if vendor_id is not None:
        query = query.filter(Product.vendor_id == vendor_id)
    if status:
        query = query.filter(Product.status == status)
    return query.order_by(Product.updated_at.desc(), Product.id.desc()).all()


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    return product


def create_product(
    *,
    vendor: VendorProfile,
    patch: dict,
    images: list[dict] | None = None,
    variants: list[dict] | None = None,
) -> Product:
    """
    Create a product for vendor from an already validated patch.

    Args:
        vendor: owning vendor profile
        patch: validated product fields (see PRODUCT_MUTABLE_FIELDS)
        images: parsed image payloads; may be empty
        variants: parsed variant payloads

    Returns:
        The committed Product with images and variants

    Raises:
        ValidationError: unknown category, or an image key owned by another vendor
        ConflictError: slug or brand uniqueness race
        ProductImageError: image rows failed; the product was rolled back
    """
    images = images or []
    variants = variants or []

    _require_category(patch.get("category_id"))
    _require_owned_keys(vendor.id, images)

    p = Product(vendor_id=vendor.id)
    apply_product_patch(p, patch)
    p.description = p.description or ""
    p.status = p.status or "published"

    brand_name = patch.get("brand_name")
    if brand_name:
        brand = upsert_brand(vendor.id, brand_name)
        p.brand_id = brand.id if brand else None

    p.slug = unique_product_slug(p.name)
    p.variants = _build_variants(variants)
    db.session.add(p)

    # Step 1: product row. Nothing is attached to storage until this succeeds.
    _commit_or_conflict("A product with this slug already exists")
    current_app.logger.info("Created product %s (%s) for vendor %s", p.id, p.slug, vendor.id)

    if not images:
        return p

    # Step 2: image rows, compensated on failure
    try:
        _persist_images(p, images)
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to attach images to product %s", p.id)
        _compensate_failed_create(product_id=p.id, vendor_id=vendor.id, images=images)
        raise ProductImageError("Could not add images to the product") from exc

    return p


def _persist_images(product: Product, images: list[dict]) -> None:
    product.images.extend(_build_images(images))
    db.session.commit()


def _compensate_failed_create(*, product_id: int, vendor_id: int, images: list[dict]) -> None:
    """Undo step 1 and discard the vendor's uploads. Never raises."""
    try:
        product = db.session.get(Product, product_id)
        if product is not None:
            db.session.delete(product)
            db.session.commit()
            current_app.logger.info("Deleted product %s after image failure", product_id)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to delete product %s after image failure", product_id)

    keys = [
        img["storage_key"]
        for img in images
        if storage.key_belongs_to_vendor(img.get("storage_key"), vendor_id)
    ]
    failed = storage.delete_many(keys)
    if failed:
        current_app.logger.warning("Orphaned storage objects after failed create: %s", failed)


def update_product(
    *,
    product: Product,
    actor: User,
    patch: dict,
    images: list[dict] | None = None,
    variants: list[dict] | None = None,
) -> Product:
    """
    Partial update. Omitted fields keep their values; images/variants are
    replaced wholesale when supplied (None means "leave as is").

    Raises:
        PermissionDeniedError: actor is neither root nor the owning vendor
        ValidationError: unknown category, or an image key owned by another vendor
        ConflictError: slug or brand uniqueness race
    """
    require_vendor_resource(actor, product.vendor_id, resource="product")

    if "category_id" in patch:
        _require_category(patch["category_id"])
    if images is not None:
        _require_owned_keys(product.vendor_id, images)

    if "brand_name" in patch:
        brand_name = patch["brand_name"]
        if brand_name:
            brand = upsert_brand(product.vendor_id, brand_name)
            product.brand_id = brand.id if brand else None
        else:
            product.brand_id = None
            patch = {**patch, "brand_name": None}

    if "name" in patch and patch["name"] != product.name:
        product.slug = unique_product_slug(patch["name"], exclude_id=product.id)

    apply_product_patch(product, patch)

    dropped_keys: set[str] = set()
    if images is not None:
        old_keys = {img.storage_key for img in product.images if img.storage_key}
        new_keys = {img.get("storage_key") for img in images if img.get("storage_key")}
        dropped_keys = old_keys - new_keys
        product.images = _build_images(images)

    if variants is not None:
        product.variants = _build_variants(variants)

    _commit_or_conflict("A product with this slug already exists")

    if dropped_keys:
        storage.delete_many(_owned_keys(sorted(dropped_keys), product.vendor_id))

    return product


def _delete_product_rows(product_ids: list[int]) -> None:
    """Child rows first: the schema rejects deleting a product with survivors."""
    if not product_ids:
        return
    db.session.query(ProductEvent).filter(ProductEvent.product_id.in_(product_ids)).delete()
    db.session.query(ProductSale).filter(ProductSale.product_id.in_(product_ids)).delete()
    db.session.query(ProductImage).filter(ProductImage.product_id.in_(product_ids)).delete()
    db.session.query(ProductVariant).filter(ProductVariant.product_id.in_(product_ids)).delete()
    db.session.query(Product).filter(Product.id.in_(product_ids)).delete()


def delete_product(*, product: Product, actor: User) -> list[str]:
    """
    Delete a product and everything it owns.

    Storage objects are attempted first; a failed object delete is logged and
    does not stop the database deletion.

    Returns:
        Storage keys whose deletion failed

    Raises:
        PermissionDeniedError: actor is neither root nor the owning vendor
    """
    require_vendor_resource(actor, product.vendor_id, resource="product")

    product_id = product.id
    keys = _owned_keys((img.storage_key for img in product.images), product.vendor_id)
    failed = storage.delete_many(keys)
    current_app.logger.info(
        "Deleted %d of %d storage objects for product %s", len(keys) - len(failed), len(keys), product_id
    )

    try:
        _delete_product_rows([product_id])
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise
    return failed


def purge_vendor_catalog(vendor_id: int) -> list[str]:
    """
    Remove every product, brand and share link owned by a vendor.

    Used by user deletion. Returns storage keys whose deletion failed.
    The caller commits.
    """
    products = db.session.query(Product).filter(Product.vendor_id == vendor_id).all()
    product_ids = [p.id for p in products]

    # Vendor-scoped rows first, matching the per-product order
    db.session.query(ProductEvent).filter(ProductEvent.vendor_id == vendor_id).delete()
    db.session.query(ProductSale).filter(ProductSale.vendor_id == vendor_id).delete()

    keys = _owned_keys((img.storage_key for p in products for img in p.images), vendor_id)
    failed = storage.delete_many(keys)

    _delete_product_rows(product_ids)
    db.session.query(CatalogShareLink).filter(CatalogShareLink.vendor_id == vendor_id).delete()
    db.session.query(Brand).filter(Brand.vendor_id == vendor_id).delete()
    return failed


def record_manual_sale(*, product: Product, actor: User, quantity: int, amount_cents: int | None) -> ProductSale:
    """
    Record an offline sale. Stock floors at zero; the counter update and the
    sale row commit together.
    """
    require_vendor_resource(actor, product.vendor_id, resource="product")

    try:
        locked = lock_for_update(
            db.session.query(Product).filter(Product.id == product.id)
        ).populate_existing().one()
        if amount_cents is None:
            amount_cents = locked.effective_price_cents * quantity

        locked.stock = max(0, (locked.stock or 0) - quantity)
        locked.sales_count = (locked.sales_count or 0) + quantity
        sale = ProductSale(
            product_id=locked.id,
            vendor_id=locked.vendor_id,
            quantity=quantity,
            amount_cents=amount_cents,
        )
        db.session.add(sale)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise
    return sale
