# Overview: Service-layer operations for vendor profiles; provisioning, updates and public lookups.

"""
Vendor Service

WHY: Every user who needs vendor capabilities gets exactly one VendorProfile,
created on first need rather than at sign-up.

SLUGS: slugify(display name), or "vendedor-xxxxx" when the name has no
slug-able characters. Collisions get a numeric suffix
that skips suffixes already taken.
Concurrent provisioning for the same user is resolved by the unique
user_id constraint (get-or-create under race).
"""

from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..models import Product, VendorProfile
from ..text_utils import first_free_slug, normalize_phone_number, random_suffix, slugify
from ..validation import ValidationError, NotFoundError
from .concurrency import get_or_create_under_race
from .identity_service import SessionUser

VENDOR_PROFILE_MUTABLE_FIELDS = {"display_name", "bio", "whatsapp", "website", "avatar_url", "banner_url"}


def build_vendor_slug(base: str) -> str:
    slug = slugify(base)
    if slug:
        return slug
    return f"vendedor-{random_suffix(5)}"


def unique_vendor_slug(base: str, *, exclude_id: int | None = None) -> str:
    slug = build_vendor_slug(base)
    query = db.session.query(VendorProfile.slug).filter(
        or_(VendorProfile.slug == slug, VendorProfile.slug.like(f"{slug}-%"))
    )
    if exclude_id is not None:
        query = query.filter(VendorProfile.id != exclude_id)
    return first_free_slug(slug, {taken for (taken,) in query.all()})


def _find_profile(user_id: int) -> VendorProfile | None:
    return db.session.query(VendorProfile).filter_by(user_id=user_id).first()


def get_or_create_vendor_profile(session_user: SessionUser) -> VendorProfile:
    """
    Return the caller's vendor profile, provisioning it on first use.

    Raises IntegrityError only if creation failed and no profile exists
    afterwards (e.g. a slug collision from a concurrent different user).
    """
    user = session_user.user

    def _create():
        display_name = session_user.identity.display_name
        profile = VendorProfile(
            user_id=user.id,
            display_name=display_name,
            slug=unique_vendor_slug(display_name),
            whatsapp="",
        )
        db.session.add(profile)
        db.session.commit()
        return profile

    return get_or_create_under_race(lambda: _find_profile(user.id), _create)


def update_vendor_profile(profile: VendorProfile, payload: dict) -> VendorProfile:
    """
    Partial update of the public profile fields.

    Changing display_name does not change the slug: public links keep working.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    for key in payload:
        if key not in VENDOR_PROFILE_MUTABLE_FIELDS:
            raise ValidationError(f"Field not allowed: {key}", key)

    if "display_name" in payload:
        name = (payload["display_name"] or "").strip()
        if not name:
            raise ValidationError("display_name cannot be blank", "display_name")
        if len(name) > 120:
            raise ValidationError("display_name exceeds max length 120", "display_name")
        profile.display_name = name

    if "whatsapp" in payload:
        profile.whatsapp = normalize_phone_number(payload["whatsapp"])

    for key in ("bio", "website", "avatar_url", "banner_url"):
        if key in payload:
            value = payload[key]
            profile_value = str(value).strip() if value is not None else None
            setattr(profile, key, profile_value or None)

    db.session.commit()
    return profile


def list_vendors(*, search: str | None = None) -> list[VendorProfile]:
    query = db.session.query(VendorProfile)
    if search:
        query = query.filter(VendorProfile.display_name.ilike(f"%{search.strip()}%"))
    return query.order_by(VendorProfile.display_name.asc(), VendorProfile.id.asc()).all()


def get_vendor_by_slug(slug: str) -> VendorProfile:
    profile = db.session.query(VendorProfile).filter_by(slug=slug).first()
    if profile is None:
        raise NotFoundError("Vendor not found")
    return profile


def get_vendor_with_products(slug: str) -> tuple[VendorProfile, list[Product]]:
    """Public vendor page: the profile plus its published products, in-stock first."""
    profile = get_vendor_by_slug(slug)
    products = (
        db.session.query(Product)
        .filter(Product.vendor_id == profile.id, Product.status == "published")
        .order_by(Product.stock.desc(), Product.created_at.desc(), Product.id.desc())
        .all()
    )
    return profile, products
