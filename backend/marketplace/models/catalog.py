from __future__ import annotations

from datetime import timezone

from ..extensions import db
from marketplace.time_utils import to_utc_z, utcnow

PRODUCT_STATUSES = ("draft", "published", "archived")


class Category(db.Model):
    """Global, root-managed product taxonomy."""
    __tablename__ = "categories"
    __table_args__ = (
        db.UniqueConstraint("slug", name="uq_categories_slug"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    slug = db.Column(db.String(160), nullable=False)
    description = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    A vendor's catalog item.

    SLUG: globally unique, derived from the name with a count-based numeric
    suffix ("red-shoes", "red-shoes-2").

    PRICING: integer cents. sale_price_cents applies until sale_expires_at
    (no expiry means the sale price applies indefinitely).

    IMAGES / VARIANTS: owned rows, replaced wholesale on update.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("slug", name="uq_products_slug"),
        db.CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        db.Index("ix_products_vendor_status", "vendor_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendor_profiles.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(280), nullable=False)
    description = db.Column(db.Text, nullable=False, default="")

    brand_id = db.Column(db.Integer, db.ForeignKey("brands.id"), nullable=True, index=True)
    brand_name = db.Column(db.String(100), nullable=True)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)

    regular_price_cents = db.Column(db.Integer, nullable=False)
    sale_price_cents = db.Column(db.Integer, nullable=True)
    sale_expires_at = db.Column(db.DateTime(timezone=True), nullable=True)

    stock = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default="published", index=True)
    is_featured = db.Column(db.Boolean, nullable=False, default=False)
    sales_count = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    vendor = db.relationship("VendorProfile", backref=db.backref("products", lazy="dynamic"))
    brand = db.relationship("Brand")
    category = db.relationship("Category")
    images = db.relationship(
        "ProductImage",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductImage.position",
    )
    variants = db.relationship(
        "ProductVariant",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductVariant.id",
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} slug={self.slug!r} vendor_id={self.vendor_id}>"

    @property
    def effective_price_cents(self) -> int:
        """Sale price while the sale is active, regular price otherwise."""
        if self.sale_price_cents is None:
            return self.regular_price_cents
        expires_at = self.sale_expires_at
        if expires_at is not None:
            if expires_at.tzinfo is not None:
                expires_at = expires_at.astimezone(timezone.utc).replace(tzinfo=None)
            if expires_at <= utcnow():
                return self.regular_price_cents
        return self.sale_price_cents

    @property
    def cover_image_url(self) -> str | None:
        return self.images[0].url if self.images else None

    def to_dict(self, *, include_vendor: bool = False) -> dict:
        data = {
            "id": self.id,
            "vendor_id": self.vendor_id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "brand_id": self.brand_id,
            "brand_name": self.brand_name,
            "category_id": self.category_id,
            "regular_price_cents": self.regular_price_cents,
            "sale_price_cents": self.sale_price_cents,
            "sale_expires_at": to_utc_z(self.sale_expires_at),
            "effective_price_cents": self.effective_price_cents,
            "stock": self.stock,
            "status": self.status,
            "is_featured": self.is_featured,
            "sales_count": self.sales_count,
            "images": [img.to_dict() for img in self.images],
            "variants": [v.to_dict() for v in self.variants],
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_vendor and self.vendor is not None:
            data["vendor"] = {
                "id": self.vendor.id,
                "display_name": self.vendor.display_name,
                "slug": self.vendor.slug,
                "whatsapp": self.vendor.whatsapp,
            }
        return data


class ProductImage(db.Model):
    """Display image; storage_key is set when the asset lives in our storage and must be deleted with it."""
    __tablename__ = "product_images"
    __table_args__ = (
        db.Index("ix_product_images_product_position", "product_id", "position"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    url = db.Column(db.String(1024), nullable=False)
    storage_key = db.Column(db.String(512), nullable=True)
    position = db.Column(db.Integer, nullable=False, default=0)
    alt = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", back_populates="images")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "url": self.url,
            "storage_key": self.storage_key,
            "position": self.position,
            "alt": self.alt,
        }


class ProductVariant(db.Model):
    __tablename__ = "product_variants"
    __table_args__ = (
        db.CheckConstraint("stock >= 0", name="ck_product_variants_stock_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    size = db.Column(db.String(64), nullable=True)
    color = db.Column(db.String(64), nullable=True)
    model = db.Column(db.String(128), nullable=True)
    sku = db.Column(db.String(64), nullable=True)
    price_cents = db.Column(db.Integer, nullable=True)
    stock = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", back_populates="variants")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "size": self.size,
            "color": self.color,
            "model": self.model,
            "sku": self.sku,
            "price_cents": self.price_cents,
            "stock": self.stock,
        }
