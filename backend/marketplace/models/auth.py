from __future__ import annotations

from ..extensions import db
from marketplace.time_utils import to_utc_z

ROLE_VENDOR = "vendor"
ROLE_ROOT = "root"
ROLE_NAMES = (ROLE_VENDOR, ROLE_ROOT)


class Role(db.Model):
    """
    Enumerated roles: "vendor" (default for every new user) and "root".

    Seeded once by ensure_roles(); rows are never renamed or deleted.
    """
    __tablename__ = "roles"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_roles_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(32), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Role {self.name}>"

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}


class User(db.Model):
    """
    Local mirror of an identity-provider account.

    Created lazily the first time a valid identity token is seen; email is
    re-synced on every session resolution. The role is only ever changed
    explicitly (CLI or root), never by session resolution.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.UniqueConstraint("external_id", name="uq_users_external_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Subject claim of the identity provider token
    external_id = db.Column(db.String(128), nullable=False)
    email = db.Column(db.String(255), nullable=False, default="")

    # Digits only; required before full dashboard access
    phone = db.Column(db.String(32), nullable=True)

    role_id = db.Column(db.Integer, db.ForeignKey("roles.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    role = db.relationship("Role", lazy="joined")

    @property
    def role_name(self) -> str | None:
        return self.role.name if self.role else None

    @property
    def is_root(self) -> bool:
        return self.role_name == ROLE_ROOT

    def __repr__(self) -> str:
        return f"<User id={self.id} external_id={self.external_id!r} role={self.role_name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "external_id": self.external_id,
            "email": self.email,
            "phone": self.phone,
            "role": self.role_name,
            "has_vendor_profile": self.vendor_profile is not None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
