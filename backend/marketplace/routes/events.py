# Overview: Flask API routes for purchase-intent events; parses input and returns JSON responses.

"""
Purchase-intent routes.

POST /api/events is public: anonymous buyers may express interest. The
listing and the resolution routes are vendor tooling.
"""
from flask import Blueprint, request, g, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..decorators import optional_auth, require_auth, require_phone_number, require_vendor_profile
from ..services import event_service
from ..services.event_service import OutOfStockError
from ..services.permission_service import PermissionDeniedError
from ..validation import validate_event_payload, ValidationError, ConflictError, NotFoundError

events_bp = Blueprint("events", __name__, url_prefix="/api/events")


@events_bp.post("")
@optional_auth
def create_event_route():
    """
    Record a purchase intent.

    Body: {product_id: int, buyer_name?: str, buyer_contact?: str, note?: str}

    Returns:
        {event: ProductEvent, whatsapp_url: str | null}
    """
    payload = request.get_json(silent=True)

    try:
        data = validate_event_payload(payload)
        event, whatsapp_url = event_service.create_purchase_intent(
            session_user=g.session_user,
            **data,
        )
    except ValidationError as e:
        return e.to_dict(), 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except SQLAlchemyError:
        current_app.logger.exception("Failed to record purchase intent")
        return {"error": "Failed to record purchase intent"}, 500

    return {"event": event.to_dict(), "whatsapp_url": whatsapp_url}, 201


@events_bp.get("")
@require_auth
@require_phone_number
@require_vendor_profile
def list_events_route():
    """
    Query params:
    - status: pending|resolved|discarded (optional)
    - vendor_id: int (optional, root only)
    """
    try:
        events = event_service.list_events(
            user=g.current_user,
            vendor_id=request.args.get("vendor_id", type=int),
            status=request.args.get("status") or None,
        )
    except ValidationError as e:
        return e.to_dict(), 400
    except PermissionDeniedError as e:
        return {"error": str(e)}, 403

    return {"items": [e.to_dict(include_product=True) for e in events], "count": len(events)}


@events_bp.post("/<int:event_id>/mark-sold")
@require_auth
@require_phone_number
def mark_sold_route(event_id: int):
    """Resolve a pending event as a one-unit sale."""
    try:
        event = event_service.get_event(event_id)
        sale = event_service.mark_event_sold(event=event, actor=g.current_user)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except PermissionDeniedError as e:
        return {"error": str(e)}, 403
    except ConflictError as e:
        return {"error": str(e)}, 409
    except OutOfStockError as e:
        return {"error": str(e)}, 400
    except SQLAlchemyError:
        current_app.logger.exception("Failed to mark event %s as sold", event_id)
        return {"error": "Failed to mark event as sold"}, 500

    return {"event": event.to_dict(include_product=True), "sale": sale.to_dict()}


@events_bp.post("/<int:event_id>/discard")
@require_auth
@require_phone_number
def discard_route(event_id: int):
    try:
        event = event_service.get_event(event_id)
        event_service.discard_event(event=event, actor=g.current_user)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except PermissionDeniedError as e:
        return {"error": str(e)}, 403
    except ConflictError as e:
        return {"error": str(e)}, 409
    except SQLAlchemyError:
        current_app.logger.exception("Failed to discard event %s", event_id)
        return {"error": "Failed to discard event"}, 500

    return {"event": event.to_dict()}
