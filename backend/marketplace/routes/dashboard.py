# Overview: Flask API route for the vendor dashboard aggregates.

from flask import Blueprint, g

from ..decorators import require_auth, require_phone_number, require_vendor_profile
from ..services.reporting_service import vendor_dashboard_stats

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("/stats")
@require_auth
@require_phone_number
@require_vendor_profile
def stats_route():
    """Product count, pending intents, units sold, revenue and the 30-day sales series."""
    return vendor_dashboard_stats(g.vendor_profile)
