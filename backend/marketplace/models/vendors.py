from __future__ import annotations

from ..extensions import db
from marketplace.time_utils import to_utc_z


class VendorProfile(db.Model):
    """
    Public seller profile, 1:1 with a User.

    Provisioned lazily the first time a user needs vendor capabilities.
    Owns its products, brands and catalog share links.
    """
    __tablename__ = "vendor_profiles"
    __table_args__ = (
        db.UniqueConstraint("user_id", name="uq_vendor_profiles_user"),
        db.UniqueConstraint("slug", name="uq_vendor_profiles_slug"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    display_name = db.Column(db.String(120), nullable=False)
    slug = db.Column(db.String(160), nullable=False)
    bio = db.Column(db.Text, nullable=True)

    # WhatsApp number used for purchase-intent deep links ("" until the vendor sets it)
    whatsapp = db.Column(db.String(32), nullable=False, default="")
    website = db.Column(db.String(255), nullable=True)
    avatar_url = db.Column(db.String(512), nullable=True)
    banner_url = db.Column(db.String(512), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    user = db.relationship("User", backref=db.backref("vendor_profile", uselist=False, lazy=True))

    def __repr__(self) -> str:
        return f"<VendorProfile id={self.id} slug={self.slug!r}>"

    def to_public_dict(self) -> dict:
        return {
            "id": self.id,
            "display_name": self.display_name,
            "slug": self.slug,
            "bio": self.bio,
            "whatsapp": self.whatsapp,
            "website": self.website,
            "avatar_url": self.avatar_url,
            "banner_url": self.banner_url,
        }

    def to_dict(self) -> dict:
        data = self.to_public_dict()
        data.update({
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        })
        return data


class Brand(db.Model):
    """Vendor-scoped brand, upserted by slugified name."""
    __tablename__ = "brands"
    __table_args__ = (
        db.UniqueConstraint("vendor_id", "slug", name="uq_brands_vendor_slug"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendor_profiles.id"), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    slug = db.Column(db.String(120), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {"id": self.id, "vendor_id": self.vendor_id, "name": self.name, "slug": self.slug}


class CatalogShareLink(db.Model):
    """
    Public, slugged link to a vendor's published catalog for one week.

    One link per (vendor, week_label); reissuing within the same week returns
    the existing row.
    """
    __tablename__ = "catalog_share_links"
    __table_args__ = (
        db.UniqueConstraint("slug", name="uq_catalog_share_links_slug"),
        db.Index("ix_catalog_share_links_vendor_week", "vendor_id", "week_label"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendor_profiles.id"), nullable=False, index=True)
    slug = db.Column(db.String(200), nullable=False)
    week_label = db.Column(db.String(16), nullable=False)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    vendor = db.relationship("VendorProfile")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "vendor_id": self.vendor_id,
            "vendor_slug": self.vendor.slug if self.vendor else None,
            "slug": self.slug,
            "week_label": self.week_label,
            "expires_at": to_utc_z(self.expires_at),
            "created_at": to_utc_z(self.created_at),
        }
