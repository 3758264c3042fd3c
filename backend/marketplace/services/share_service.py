# Overview: Catalog Share Workflow; weekly public links to a vendor's published catalog.

"""
Catalog Share Service

A share link is a public slug that resolves to every published product of
one vendor. Links are weekly: the period is the ISO week label of the
Monday-start week, and the link expires at the end of that week.

IDEMPOTENCE: issuing twice in the same week for the same vendor returns the
same link.

SLUGS: "{vendor_slug}-{week_label}". On collision with another vendor's link
a short random suffix is appended and the check repeated, up to
SHARE_LINK_SLUG_ATTEMPTS times. A collision with this vendor's own link
(e.g. created before a slug change) reuses and refreshes that link.
"""

from __future__ import annotations

from datetime import datetime, timezone

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import CatalogShareLink, Product, VendorProfile
from ..text_utils import build_share_url, random_suffix
from ..validation import ConflictError, NotFoundError
from marketplace.time_utils import end_of_week, utcnow, week_label

SLUG_SUFFIX_LENGTH = 4


class ShareLinkExpiredError(Exception):
    """410-level: the link existed but its week is over."""
    pass


def _find_by_slug(slug: str) -> CatalogShareLink | None:
    return db.session.query(CatalogShareLink).filter_by(slug=slug).first()


def issue_share_link(vendor: VendorProfile, *, now: datetime | None = None) -> tuple[CatalogShareLink, bool]:
    """
    Get or create this week's share link for vendor.

    Returns:
        (link, created)

    Raises:
        ConflictError: no free slug within the attempt bound
    """
    now = now or utcnow()
    label = week_label(now)

    existing = (
        db.session.query(CatalogShareLink)
        .filter_by(vendor_id=vendor.id, week_label=label)
        .first()
    )
    if existing is not None:
        return existing, False

    expires_at = end_of_week(now)
    base_slug = f"{vendor.slug}-{label}".lower()
    candidate = base_slug
    attempts = current_app.config.get("SHARE_LINK_SLUG_ATTEMPTS", 5)

    for _ in range(attempts):
        clash = _find_by_slug(candidate)

        if clash is None:
            link = CatalogShareLink(
                vendor_id=vendor.id,
                slug=candidate,
                week_label=label,
                expires_at=expires_at,
            )
            db.session.add(link)
            try:
                db.session.commit()
            except IntegrityError:
                # Lost a race for this slug; try another
                db.session.rollback()
                candidate = f"{base_slug}-{random_suffix(SLUG_SUFFIX_LENGTH)}"
                continue
            current_app.logger.info("Issued share link %s for vendor %s", link.slug, vendor.id)
            return link, True

        if clash.vendor_id == vendor.id:
            clash.week_label = label
            clash.expires_at = expires_at
            db.session.commit()
            return clash, False

        candidate = f"{base_slug}-{random_suffix(SLUG_SUFFIX_LENGTH)}"

    raise ConflictError("Could not allocate a unique share link")


def share_url(link: CatalogShareLink) -> str:
    return build_share_url(
        current_app.config["APP_URL"],
        f"/v/{link.vendor.slug}/share/{link.slug}",
    )


def resolve_share_link(slug: str, *, now: datetime | None = None) -> tuple[CatalogShareLink, list[Product]]:
    """
    Public resolution of a share slug.

    Raises:
        NotFoundError: unknown slug
        ShareLinkExpiredError: the link's week is over
    """
    link = _find_by_slug(slug)
    if link is None:
        raise NotFoundError("Share link not found")

    expires_at = link.expires_at
    if expires_at.tzinfo is not None:
        expires_at = expires_at.astimezone(timezone.utc).replace(tzinfo=None)
    if expires_at < (now or utcnow()):
        raise ShareLinkExpiredError("Share link has expired")

    products = (
        db.session.query(Product)
        .filter(Product.vendor_id == link.vendor_id, Product.status == "published")
        .order_by(Product.stock.desc(), Product.created_at.desc(), Product.id.desc())
        .all()
    )
    return link, products


def cleanup_expired_links(*, dry_run: bool = False, now: datetime | None = None) -> int:
    """Delete links whose week ended. Returns how many were (or would be) deleted."""
    query = db.session.query(CatalogShareLink).filter(CatalogShareLink.expires_at < (now or utcnow()))
    if dry_run:
        return query.count()
    deleted = query.delete()
    db.session.commit()
    return deleted
