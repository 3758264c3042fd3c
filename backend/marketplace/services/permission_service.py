# Overview: Authorization Policy; role checks and row-ownership checks.

"""
Authorization Policy

Two roles and one delegation rule:
- root may act on any vendor's resources
- a vendor may act only on resources whose vendor_id is its own profile id

There is no other sharing model.
"""

from __future__ import annotations

from ..models import User


class PermissionDeniedError(Exception):
    """Raised when the caller may not act on a resource."""
    pass


def is_root(user: User | None) -> bool:
    return bool(user is not None and user.is_root)


def owned_vendor_id(user: User | None) -> int | None:
    if user is None or user.vendor_profile is None:
        return None
    return user.vendor_profile.id


def can_manage_vendor_resource(user: User | None, vendor_id: int) -> bool:
    """True if user is root or owns the vendor profile vendor_id."""
    if is_root(user):
        return True
    return owned_vendor_id(user) == vendor_id


def require_vendor_resource(user: User | None, vendor_id: int, *, resource: str = "resource") -> None:
    if not can_manage_vendor_resource(user, vendor_id):
        raise PermissionDeniedError(f"Not allowed to modify this {resource}")


def require_root(user: User | None) -> None:
    if not is_root(user):
        raise PermissionDeniedError("Root access required")
