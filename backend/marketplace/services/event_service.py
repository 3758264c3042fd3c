# Overview: Purchase-intent events; creation, listing and the pending -> resolved|discarded transitions.

"""
Purchase Intent Service

A buyer taps "buy" on a product: we record a pending ProductEvent and hand
back a WhatsApp deep link to the vendor. The vendor later resolves the event
as sold (stock and sales bookkeeping) or discards it.

STATE MACHINE: pending -> resolved | discarded; both are terminal.

ATOMICITY: mark_event_sold commits the stock decrement, the sales counter,
the ProductSale row and the event transition in one transaction.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import (
    Product,
    ProductEvent,
    ProductSale,
    User,
    EVENT_DISCARDED,
    EVENT_PENDING,
    EVENT_RESOLVED,
    EVENT_STATUSES,
    EVENT_TYPE_PURCHASE_INTENT,
)
from ..text_utils import whatsapp_link
from ..validation import ConflictError, NotFoundError, ValidationError
from .concurrency import lock_for_update
from .identity_service import SessionUser
from .permission_service import PermissionDeniedError, is_root, owned_vendor_id, require_vendor_resource
from marketplace.time_utils import utcnow


class OutOfStockError(ValueError):
    """400-level: the product has no stock left to sell."""


def purchase_message(product: Product) -> str:
    return f"Hola, me interesa el producto \"{product.name}\" ({product.slug})."


def create_purchase_intent(
    *,
    product_id: int,
    buyer_name: str | None = None,
    buyer_contact: str | None = None,
    note: str | None = None,
    session_user: SessionUser | None = None,
) -> tuple[ProductEvent, str | None]:
    """
    Record a pending purchase intent.

    The buyer contact is optional; when omitted, the signed-in buyer's phone
    is used if there is one.

    Returns:
        (event, whatsapp_url) - whatsapp_url is None when the vendor has no number
    """
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")

    user = session_user.user if session_user else None
    contact = buyer_contact or (user.phone if user else None)

    event = ProductEvent(
        product_id=product.id,
        vendor_id=product.vendor_id,
        user_id=user.id if user else None,
        type=EVENT_TYPE_PURCHASE_INTENT,
        status=EVENT_PENDING,
        buyer_name=buyer_name,
        buyer_contact=contact,
        note=note,
    )
    db.session.add(event)
    db.session.commit()

    whatsapp = product.vendor.whatsapp if product.vendor else ""
    url = whatsapp_link(whatsapp, purchase_message(product)) if whatsapp else None
    return event, url


def list_events(*, user: User, vendor_id: int | None = None, status: str | None = None) -> list[ProductEvent]:
    """Root sees every event (optionally one vendor's); vendors see their own."""
    if status is not None and status not in EVENT_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(EVENT_STATUSES)}", "status")

    if not is_root(user):
        vendor_id = owned_vendor_id(user)
        if vendor_id is None:
            raise PermissionDeniedError("Vendor profile not found")

    query = db.session.query(ProductEvent)
    if vendor_id is not None:
        query = query.filter(ProductEvent.vendor_id == vendor_id)
    if status:
        query = query.filter(ProductEvent.status == status)
    return query.order_by(ProductEvent.created_at.desc(), ProductEvent.id.desc()).all()


def get_event(event_id: int) -> ProductEvent:
    event = db.session.get(ProductEvent, event_id)
    if event is None:
        raise NotFoundError("Event not found")
    return event


def _require_pending(event: ProductEvent) -> None:
    if event.status != EVENT_PENDING:
        raise ConflictError(f"Event is already {event.status}")


def mark_event_sold(*, event: ProductEvent, actor: User) -> ProductSale:
    """
    Resolve a pending purchase intent as a sale of one unit.

    Raises:
        PermissionDeniedError: actor is neither root nor the owning vendor
        ConflictError: event is not pending
        OutOfStockError: product stock is 0
    """
    require_vendor_resource(actor, event.vendor_id, resource="event")
    _require_pending(event)

    try:
        # Status is re-checked on the locked row
        event = lock_for_update(
            db.session.query(ProductEvent).filter(ProductEvent.id == event.id)
        ).populate_existing().one()
        if event.status != EVENT_PENDING:
            db.session.rollback()
            raise ConflictError(f"Event is already {event.status}")

        product = lock_for_update(
            db.session.query(Product).filter(Product.id == event.product_id)
        ).populate_existing().one()
        if product.stock <= 0:
            db.session.rollback()
            raise OutOfStockError("The product has no stock available")

        product.stock = product.stock - 1
        product.sales_count = (product.sales_count or 0) + 1

        sale = ProductSale(
            product_id=product.id,
            vendor_id=event.vendor_id,
            quantity=1,
            amount_cents=product.effective_price_cents,
        )
        db.session.add(sale)

        event.status = EVENT_RESOLVED
        event.resolved_at = utcnow()

        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to mark event %s as sold", event.id)
        raise

    return sale


def discard_event(*, event: ProductEvent, actor: User) -> ProductEvent:
    require_vendor_resource(actor, event.vendor_id, resource="event")
    _require_pending(event)

    event = lock_for_update(
        db.session.query(ProductEvent).filter(ProductEvent.id == event.id)
    ).populate_existing().one()
    if event.status != EVENT_PENDING:
        db.session.rollback()
        raise ConflictError(f"Event is already {event.status}")

    event.status = EVENT_DISCARDED
    event.resolved_at = utcnow()
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise
    return event
