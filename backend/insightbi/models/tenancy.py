from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


SUBSCRIPTION_TIERS = ("trial", "basic", "pro", "enterprise")


class Company(db.Model):
    """
    Multi-tenant root: Every tenant is a Company.

    WHY: Enables shared-database multi-tenancy with strict isolation.
    All users, products, sales, collections and chat history belong to
    exactly one company. No data may cross company boundaries.

    DESIGN:
    - slug is a unique, indexed alternate key (lookup by slug is a DB query,
      there is no secondary map to keep in sync)
    - Companies are soft-deactivated (is_active=False), never hard-deleted
    - settings is a free-form JSON blob (currency, timezone, language, ...)
    """
    __tablename__ = "companies"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(120), nullable=False, unique=True, index=True)

    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    industry = db.Column(db.String(120), nullable=True)
    size = db.Column(db.String(32), nullable=True)
    logo_url = db.Column(db.String(512), nullable=True)

    subscription = db.Column(db.String(32), nullable=False, default="trial")
    max_users = db.Column(db.Integer, nullable=False, default=5)
    max_storage_mb = db.Column(db.Integer, nullable=False, default=1000)
    settings = db.Column(db.JSON, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Company id={self.id} slug={self.slug!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "industry": self.industry,
            "size": self.size,
            "logo_url": self.logo_url,
            "subscription": self.subscription,
            "max_users": self.max_users,
            "max_storage_mb": self.max_storage_mb,
            "settings": self.settings or {},
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class CompanyInvitation(db.Model):
    """
    Pending invitation for an email address to join a company.

    The token is the only credential needed to accept. Expiry is checked at
    read time; expired rows are kept for audit rather than purged.
    """
    __tablename__ = "company_invitations"
    __table_args__ = (
        db.Index("ix_company_invitations_company_email", "company_id", "email"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    email = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(32), nullable=False, default="viewer")
    token = db.Column(db.String(64), nullable=False, unique=True, index=True)
    invited_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    accepted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    company = db.relationship("Company", backref=db.backref("invitations", lazy=True))

    def to_dict(self, include_token: bool = False) -> dict:
        data = {
            "id": self.id,
            "company_id": self.company_id,
            "email": self.email,
            "role": self.role,
            "invited_by_user_id": self.invited_by_user_id,
            "expires_at": to_utc_z(self.expires_at),
            "accepted_at": to_utc_z(self.accepted_at),
            "revoked_at": to_utc_z(self.revoked_at),
            "created_at": to_utc_z(self.created_at),
        }
        if include_token:
            data["token"] = self.token
        return data
