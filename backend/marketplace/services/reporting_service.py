# Overview: Dashboard aggregates for vendors and the root overview.

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import func

from ..extensions import db
from ..models import Product, ProductEvent, ProductSale, User, VendorProfile, EVENT_PENDING
from marketplace.time_utils import utcnow


def vendor_dashboard_stats(vendor: VendorProfile, *, days: int = 30) -> dict:
    """
    Product count, pending purchase intents, units sold, revenue, and a
    per-day sales series for the last `days` days (oldest first, zero-filled).
    """
    products_count = db.session.query(func.count(Product.id)).filter(Product.vendor_id == vendor.id).scalar()
    pending_events = (
        db.session.query(func.count(ProductEvent.id))
        .filter(ProductEvent.vendor_id == vendor.id, ProductEvent.status == EVENT_PENDING)
        .scalar()
    )
    units, revenue = (
        db.session.query(
            func.coalesce(func.sum(ProductSale.quantity), 0),
            func.coalesce(func.sum(ProductSale.amount_cents), 0),
        )
        .filter(ProductSale.vendor_id == vendor.id)
        .one()
    )

    today = utcnow().date()
    start = today - timedelta(days=days - 1)
    recent = (
        db.session.query(ProductSale.created_at, ProductSale.quantity, ProductSale.amount_cents)
        .filter(ProductSale.vendor_id == vendor.id, ProductSale.created_at >= datetime.combine(start, datetime.min.time()))
        .all()
    )
    series = {start + timedelta(days=i): {"units": 0, "revenue_cents": 0} for i in range(days)}
    for created_at, quantity, amount in recent:
        bucket = series.get(created_at.date())
        if bucket is None:
            continue
        bucket["units"] += quantity or 0
        bucket["revenue_cents"] += amount or 0

    return {
        "products": products_count or 0,
        "pending_events": pending_events or 0,
        "units_sold": int(units or 0),
        "revenue_cents": int(revenue or 0),
        "sales_series": [
            {"date": day.isoformat(), **values} for day, values in sorted(series.items())
        ],
    }


def admin_overview() -> dict:
    return {
        "users": db.session.query(func.count(User.id)).scalar() or 0,
        "vendors": db.session.query(func.count(VendorProfile.id)).scalar() or 0,
        "products": db.session.query(func.count(Product.id)).scalar() or 0,
        "events": db.session.query(func.count(ProductEvent.id)).scalar() or 0,
    }
