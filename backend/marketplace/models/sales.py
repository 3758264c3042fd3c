from __future__ import annotations

from ..extensions import db
from marketplace.time_utils import to_utc_z

EVENT_PENDING = "pending"
EVENT_RESOLVED = "resolved"
EVENT_DISCARDED = "discarded"
EVENT_STATUSES = (EVENT_PENDING, EVENT_RESOLVED, EVENT_DISCARDED)

EVENT_TYPE_PURCHASE_INTENT = "purchase_intent"


class ProductSale(db.Model):
    """
    Fulfilled sale record.

    IMMUTABLE: append-only; rows disappear only with their product or vendor.
    """
    __tablename__ = "product_sales"
    __table_args__ = (
        db.Index("ix_product_sales_vendor_created", "vendor_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendor_profiles.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    amount_cents = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "vendor_id": self.vendor_id,
            "quantity": self.quantity,
            "amount_cents": self.amount_cents,
            "created_at": to_utc_z(self.created_at),
        }


class ProductEvent(db.Model):
    """
    Buyer-initiated signal on a product, usually a purchase intent.

    STATE MACHINE: pending -> resolved | discarded. Both targets are terminal.
    """
    __tablename__ = "product_events"
    __table_args__ = (
        db.Index("ix_product_events_vendor_status", "vendor_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendor_profiles.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    type = db.Column(db.String(32), nullable=False, default=EVENT_TYPE_PURCHASE_INTENT)
    status = db.Column(db.String(16), nullable=False, default=EVENT_PENDING)

    buyer_name = db.Column(db.String(120), nullable=True)
    buyer_contact = db.Column(db.String(64), nullable=True)
    note = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    product = db.relationship("Product")

    def to_dict(self, *, include_product: bool = False) -> dict:
        data = {
            "id": self.id,
            "product_id": self.product_id,
            "vendor_id": self.vendor_id,
            "user_id": self.user_id,
            "type": self.type,
            "status": self.status,
            "buyer_name": self.buyer_name,
            "buyer_contact": self.buyer_contact,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
            "resolved_at": to_utc_z(self.resolved_at),
        }
        if include_product and self.product is not None:
            data["product"] = {
                "id": self.product.id,
                "name": self.product.name,
                "slug": self.product.slug,
                "stock": self.product.stock,
            }
        return data
