# Overview: Service-layer operations for users; phone capture, role changes and cascading deletion.

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db, storage
from ..models import ProductEvent, Role, User, VendorProfile, ROLE_NAMES
from ..text_utils import normalize_phone_number, validate_phone_number
from ..validation import NotFoundError, ValidationError
from .permission_service import require_root
from .products_service import purge_vendor_catalog


def update_phone(user: User, phone) -> User:
    """Store the caller's phone as digits only; at least 10 digits."""
    if not phone or not isinstance(phone, str):
        raise ValidationError("phone is required", "phone")
    normalized = normalize_phone_number(phone)
    if not validate_phone_number(normalized):
        raise ValidationError("Invalid phone number (minimum 10 digits)", "phone")

    user.phone = normalized
    db.session.commit()
    return user


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.created_at.desc(), User.id.desc()).all()


def find_user_by_email(email: str) -> User | None:
    return db.session.query(User).filter(User.email == email.strip().lower()).first()


def set_role(user: User, role_name: str) -> User:
    """Manual role change (root elevation happens only through here)."""
    if role_name not in ROLE_NAMES:
        raise ValidationError(f"role must be one of: {', '.join(ROLE_NAMES)}", "role")
    role = db.session.query(Role).filter_by(name=role_name).first()
    if role is None:
        raise NotFoundError(f"Role {role_name} not seeded; run 'flask system init'")
    user.role = role
    db.session.commit()
    return user


def delete_user(*, user_id: int, actor: User) -> list[str]:
    """
    Root-only deletion of a user and everything its vendor profile owns.

    Order: vendor events and sales, product image objects, images, variants,
    products, share links, brands, avatar/banner objects, vendor profile,
    user. Storage failures are logged and do not abort the deletion.

    Returns:
        Storage keys whose deletion failed

    Raises:
        PermissionDeniedError: actor is not root
        NotFoundError: no such user
        ValidationError: actor tried to delete itself
    """
    require_root(actor)

    target = db.session.get(User, user_id)
    if target is None:
        raise NotFoundError("User not found")
    if target.id == actor.id:
        raise ValidationError("You cannot delete your own account")

    failed: list[str] = []
    try:
        profile = db.session.query(VendorProfile).filter_by(user_id=target.id).first()
        if profile is not None:
            failed.extend(purge_vendor_catalog(profile.id))

            profile_keys = [storage.key_from_url(url) for url in (profile.avatar_url, profile.banner_url)]
            failed.extend(storage.delete_many([k for k in profile_keys if k]))

            db.session.delete(profile)
            db.session.flush()

        # Purchase intents this user made as a buyer on other catalogs survive anonymously
        db.session.query(ProductEvent).filter(ProductEvent.user_id == target.id).update({"user_id": None})

        db.session.delete(target)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to delete user %s", user_id)
        raise

    current_app.logger.info("Deleted user %s (storage failures: %d)", user_id, len(failed))
    return failed
