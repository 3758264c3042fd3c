# Overview: Request and permission decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import identity_service
from .services.vendor_service import get_or_create_vendor_profile

SESSION_COOKIE_NAME = "__session"

SIGN_IN_PATH = "/sign-in"
COMPLETE_PROFILE_PATH = "/complete-profile"
DASHBOARD_PATH = "/dashboard"


def _extract_token() -> str | None:
    """Bearer token from the Authorization header, or the identity provider's session cookie."""
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1].strip() or None
    return request.cookies.get(SESSION_COOKIE_NAME)


def _resolve_session() -> None:
    session_user = identity_service.get_session_user(_extract_token())
    g.session_user = session_user
    g.current_user = session_user.user if session_user else None


def _is_authenticated() -> bool:
    return getattr(g, "current_user", None) is not None


def optional_auth(f):
    """
    Resolve the caller if a valid token is present; anonymous otherwise.

    Sets g.session_user / g.current_user (None when anonymous).
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        _resolve_session()
        return f(*args, **kwargs)

    return decorated_function


def require_auth(f):
    """
    Require a valid identity token.

    Sets the following Flask g attributes:
    - g.session_user: identity claims plus local user
    - g.current_user: the local User row

    Returns 401 with a sign-in redirect hint otherwise.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        _resolve_session()
        if not _is_authenticated():
            return jsonify({"error": "Authentication required", "redirect": SIGN_IN_PATH}), 401
        return f(*args, **kwargs)

    return decorated_function


def require_root(f):
    """Root-only routes. Must be stacked under @require_auth."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return jsonify({"error": "Authentication required", "redirect": SIGN_IN_PATH}), 401
        if not g.current_user.is_root:
            return jsonify({"error": "Root access required", "redirect": DASHBOARD_PATH}), 403
        return f(*args, **kwargs)

    return decorated_function


def require_phone_number(f):
    """Vendor tooling is gated on a captured phone number."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return jsonify({"error": "Authentication required", "redirect": SIGN_IN_PATH}), 401
        if not g.current_user.phone:
            return jsonify({
                "error": "Phone number required",
                "redirect": COMPLETE_PROFILE_PATH,
            }), 403
        return f(*args, **kwargs)

    return decorated_function


def require_vendor_profile(f):
    """
    Provision (on first use) and attach the caller's vendor profile as
    g.vendor_profile. Must be stacked under @require_auth.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return jsonify({"error": "Authentication required", "redirect": SIGN_IN_PATH}), 401
        g.vendor_profile = get_or_create_vendor_profile(g.session_user)
        return f(*args, **kwargs)

    return decorated_function
