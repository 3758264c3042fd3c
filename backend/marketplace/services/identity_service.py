# Overview: Identity/Session Adapter; maps identity-provider tokens to local users.

"""
Identity/Session Adapter

WHY: Authentication is delegated to an external identity provider. Each
request carries the provider's signed JWT; this module verifies it and
resolves the caller to a local User row.

LAZY PROVISIONING:
- First sight of a subject creates a User with the default "vendor" role.
- Later sights only re-sync the email and touch updated_at. The role is
  never overwritten, so manual elevation to "root" survives.
- Concurrent first requests race on users.external_id; the loser re-reads
  the winner's row (see concurrency.get_or_create_under_race).

FAIL OPEN: any unexpected persistence error resolves to "anonymous" (None)
so public pages keep rendering.
"""

from __future__ import annotations

from dataclasses import dataclass

import jwt
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Role, User, ROLE_NAMES, ROLE_VENDOR
from .concurrency import get_or_create_under_race
from marketplace.time_utils import utcnow


class IdentityError(Exception):
    """Raised when an identity token is missing, malformed, expired or forged."""
    pass


@dataclass(frozen=True)
class ExternalIdentity:
    """Claims we rely on from the identity provider."""
    subject: str
    email: str
    name: str | None = None
    username: str | None = None

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        if self.username:
            return self.username
        if self.email and "@" in self.email:
            return self.email.split("@", 1)[0]
        return "Vendedor"


@dataclass
class SessionUser:
    """Resolved caller: provider identity plus local user row."""
    identity: ExternalIdentity
    user: User


def decode_identity_token(token: str | None) -> ExternalIdentity:
    """
    Verify signature, expiry and (when configured) audience/issuer.

    Raises IdentityError for anything that is not a valid identity token.
    """
    if not token:
        raise IdentityError("Missing identity token")

    config = current_app.config
    options = {"require": ["sub"]}
    try:
        claims = jwt.decode(
            token,
            config["AUTH_JWT_KEY"],
            algorithms=config["AUTH_JWT_ALGORITHMS"],
            audience=config.get("AUTH_JWT_AUDIENCE"),
            issuer=config.get("AUTH_JWT_ISSUER"),
            options=options,
        )
    except jwt.PyJWTError as exc:
        raise IdentityError(str(exc)) from exc

    name = claims.get("name")
    if not name:
        parts = [claims.get("given_name"), claims.get("family_name")]
        name = " ".join(p for p in parts if p) or None

    return ExternalIdentity(
        subject=str(claims["sub"]),
        email=(claims.get("email") or "").strip().lower(),
        name=name,
        username=claims.get("username") or claims.get("preferred_username"),
    )


def _find_role(name: str) -> Role | None:
    return db.session.query(Role).filter_by(name=name).first()


def ensure_roles() -> None:
    """Seed the enumerated roles. Idempotent and safe under concurrent callers."""
    for name in ROLE_NAMES:
        def _create(role_name=name):
            role = Role(name=role_name)
            db.session.add(role)
            db.session.commit()
            return role

        get_or_create_under_race(lambda role_name=name: _find_role(role_name), _create)


def _find_user(subject: str) -> User | None:
    return db.session.query(User).filter_by(external_id=subject).first()


def provision_user(identity: ExternalIdentity) -> User:
    """
    Get-or-create the local user for an identity and sync its email.

    Raises SQLAlchemyError on persistence failures.
    """
    def _create():
        user = User(
            external_id=identity.subject,
            email=identity.email,
            role=_find_role(ROLE_VENDOR),
        )
        db.session.add(user)
        db.session.commit()
        current_app.logger.info("Provisioned user %s for subject %s", user.id, identity.subject)
        return user

    user = get_or_create_under_race(lambda: _find_user(identity.subject), _create)

    # Role is never synced from the provider
    if user.email != identity.email:
        user.email = identity.email
    user.updated_at = utcnow()
    db.session.commit()
    return user


def get_session_user(token: str | None) -> SessionUser | None:
    """
    Resolve a bearer token to a SessionUser, or None when the caller is
    anonymous, the token is invalid, or persistence fails.
    """
    if not token:
        return None

    try:
        identity = decode_identity_token(token)
    except IdentityError as exc:
        current_app.logger.info("Rejected identity token: %s", exc)
        return None

    try:
        ensure_roles()
        user = provision_user(identity)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Database error while resolving session user")
        return None

    return SessionUser(identity=identity, user=user)
