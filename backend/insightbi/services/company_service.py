# Overview: Service-layer operations for companies, invitations and company users.

"""
Company (tenant) management.

MULTI-TENANT: Companies are the tenant root. Everything here either creates
a tenant or operates on exactly one, identified by id or slug.

Slug lookup is a query on the unique companies.slug index; there is no
secondary map to keep in sync when a company is renamed.
"""
from __future__ import annotations

import re
import secrets
import unicodedata
from datetime import timedelta

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import (
    Company,
    CompanyInvitation,
    User,
    Product,
    Sale,
    Collection,
    Customer,
    DataImport,
)
from ..permissions import ROLES
from ..time_utils import utcnow
from ..validation import ConflictError, ValidationError
from . import auth_service
from .permission_service import validate_role


DEFAULT_COMPANY_SETTINGS = {
    "currency": "CLP",
    "timezone": "America/Santiago",
    "language": "es",
    "date_format": "DD-MM-YYYY",
}

SUBSCRIPTIONS = ("trial", "basic", "pro", "enterprise")

COMPANY_MUTABLE_FIELDS = {
    "name", "slug", "email", "phone", "address", "industry", "size",
    "logo_url", "subscription", "max_users", "max_storage_mb", "settings",
}


class CompanyError(ValueError):
    """Company-level business rule failure (inactive company, bad invitation...)."""


def generate_slug(name: str) -> str:
    """
    Build a URL slug from a company name.

    "Distribuidora Ñuñoa & Cía." -> "distribuidora-nunoa-cia"
    """
    normalized = unicodedata.normalize("NFKD", name or "")
    ascii_name = normalized.encode("ascii", "ignore").decode("ascii").lower()
    slug = re.sub(r"[^a-z0-9]+", "-", ascii_name).strip("-")
    return slug or "company"


def get_company_by_slug(slug: str) -> Company | None:
    return db.session.query(Company).filter(Company.slug == (slug or "").strip().lower()).first()


def is_slug_available(slug: str, exclude_company_id: int | None = None) -> bool:
    query = db.session.query(Company.id).filter(Company.slug == slug)
    if exclude_company_id is not None:
        query = query.filter(Company.id != exclude_company_id)
    return query.first() is None


def unique_slug(base: str) -> str:
    """Return base, or base-2, base-3, ... whichever is free first."""
    candidate = base
    suffix = 2
    while not is_slug_available(candidate):
        candidate = f"{base}-{suffix}"
        suffix += 1
    return candidate


def _normalize_explicit_slug(slug: str) -> str:
    cleaned = generate_slug(slug)
    if cleaned != slug.strip().lower():
        raise ValidationError("slug may only contain lowercase letters, digits and '-'")
    return cleaned


def create_company(*, name: str, slug: str | None = None, commit: bool = True, **fields) -> Company:
    """
    Create a company.

    slug omitted -> derived from name and made unique with a numeric suffix.
    slug given   -> must be free, otherwise ConflictError("Company slug already exists").
    """
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")

    if slug:
        slug = _normalize_explicit_slug(slug)
        if not is_slug_available(slug):
            raise ConflictError("Company slug already exists")
    else:
        slug = unique_slug(generate_slug(name))

    subscription = fields.pop("subscription", "trial")
    settings = dict(DEFAULT_COMPANY_SETTINGS)
    settings.update(fields.pop("settings", None) or {})

    company = Company(name=name, slug=slug, subscription=subscription, settings=settings)
    for key, value in fields.items():
        if key in COMPANY_MUTABLE_FIELDS:
            setattr(company, key, value)

    db.session.add(company)
    if commit:
        db.session.commit()
    else:
        db.session.flush()

    current_app.logger.info("Created company id=%s slug=%s", company.id, company.slug)
    return company


def create_default_company(*, name: str, owner_username: str, owner_email: str, owner_password: str,
                           owner_full_name: str | None = None) -> tuple[Company, User]:
    """
    Signup flow: trial company (5 users, 1000 MB) plus its first company_admin.

    Both rows are committed together; a weak password or taken username
    leaves no orphan company behind.
    """
    try:
        company = create_company(
            name=name,
            subscription="trial",
            max_users=5,
            max_storage_mb=1000,
            commit=False,
        )
        owner = auth_service.create_user(
            username=owner_username,
            email=owner_email,
            password=owner_password,
            company_id=company.id,
            role="company_admin",
            full_name=owner_full_name,
            commit=False,
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return company, owner


def get_company(company_id: int) -> Company | None:
    return db.session.get(Company, company_id)


def list_companies(*, include_inactive: bool = False) -> list[dict]:
    query = db.session.query(Company).order_by(Company.name.asc(), Company.id.asc())
    if not include_inactive:
        query = query.filter(Company.is_active.is_(True))
    return [c.to_dict() for c in query.all()]


def update_company(*, company_id: int, patch: dict) -> dict | None:
    company = db.session.get(Company, company_id)
    if company is None:
        return None

    if "slug" in patch and patch["slug"] != company.slug:
        slug = _normalize_explicit_slug(patch["slug"])
        if not is_slug_available(slug, exclude_company_id=company.id):
            raise ConflictError("Company slug already exists")
        patch = {**patch, "slug": slug}

    if "settings" in patch and patch["settings"] is not None:
        merged = dict(company.settings or {})
        merged.update(patch["settings"])
        patch = {**patch, "settings": merged}

    for key, value in patch.items():
        if key in COMPANY_MUTABLE_FIELDS:
            setattr(company, key, value)

    db.session.commit()
    return company.to_dict()


def deactivate_company(*, company_id: int) -> bool:
    """Soft-deactivate; sessions of its users stop validating immediately."""
    company = db.session.get(Company, company_id)
    if company is None:
        return False
    company.is_active = False
    db.session.commit()
    current_app.logger.info("Deactivated company id=%s", company_id)
    return True


def validate_company_access(user: User, company_id: int) -> bool:
    """A user may act on their own company; super_admin may act on any."""
    if user is None or not user.is_active:
        return False
    if user.role == "super_admin":
        return True
    return user.company_id == company_id


def current_storage_mb(company_id: int) -> float:
    total_bytes = (
        db.session.query(func.coalesce(func.sum(DataImport.file_size), 0))
        .filter(DataImport.company_id == company_id)
        .scalar()
    )
    return round((total_bytes or 0) / (1024 * 1024), 2)


def get_company_stats(company_id: int) -> dict | None:
    company = db.session.get(Company, company_id)
    if company is None:
        return None

    def _count(model):
        return db.session.query(func.count(model.id)).filter(model.company_id == company_id).scalar() or 0

    user_count = _count(User)
    active_users = auth_service.count_active_users(company_id)

    return {
        "company_id": company.id,
        "user_count": user_count,
        "active_user_count": active_users,
        "is_active": company.is_active,
        "subscription": company.subscription,
        "max_users": company.max_users,
        "current_storage_mb": current_storage_mb(company_id),
        "max_storage_mb": company.max_storage_mb,
        "product_count": _count(Product),
        "sale_count": _count(Sale),
        "collection_count": _count(Collection),
        "customer_count": _count(Customer),
    }


# -- Users ---------------------------------------------------------------

def list_company_users(company_id: int) -> list[dict]:
    users = (
        db.session.query(User)
        .filter(User.company_id == company_id)
        .order_by(User.username.asc())
        .all()
    )
    return [u.to_dict() for u in users]


def update_user_role(*, company_id: int, user_id: int, role: str, actor: User) -> dict:
    role = validate_role(role)
    if role == "super_admin" and actor.role != "super_admin":
        raise CompanyError("Only super_admin can grant super_admin")

    user = db.session.get(User, user_id)
    if user is None or user.company_id != company_id:
        return None

    user.role = role
    db.session.commit()
    return user.to_dict()


def set_user_active(*, company_id: int, user_id: int, is_active: bool) -> dict | None:
    user = db.session.get(User, user_id)
    if user is None or user.company_id != company_id:
        return None
    if is_active and not user.is_active:
        auth_service.ensure_user_quota(user.company)
    user.is_active = is_active
    db.session.commit()
    return user.to_dict()


# -- Invitations -----------------------------------------------------------

def _invitation_ttl() -> timedelta:
    return timedelta(days=current_app.config.get("INVITATION_TTL_DAYS", 7))


def create_invitation(*, company_id: int, email: str, role: str = "viewer",
                      invited_by: User | None = None) -> CompanyInvitation:
    company = db.session.get(Company, company_id)
    if company is None or not company.is_active:
        raise CompanyError("Company not found or inactive")

    email = (email or "").strip().lower()
    if not email or "@" not in email:
        raise ValidationError("A valid email is required")
    role = validate_role(role)
    if role == "super_admin":
        raise ValidationError("Cannot invite super_admin users")

    if db.session.query(User.id).filter(User.email == email).first():
        raise ConflictError("A user with this email already exists")

    auth_service.ensure_user_quota(company)

    invitation = CompanyInvitation(
        company_id=company_id,
        email=email,
        role=role,
        token=secrets.token_urlsafe(32),
        invited_by_user_id=invited_by.id if invited_by else None,
        expires_at=utcnow() + _invitation_ttl(),
    )
    db.session.add(invitation)
    db.session.commit()
    return invitation


def get_invitation(token: str) -> CompanyInvitation | None:
    """
    Look up a usable invitation.

    Expired, accepted and revoked invitations are treated as not found.
    """
    invitation = db.session.query(CompanyInvitation).filter_by(token=token).first()
    if invitation is None:
        return None
    if invitation.accepted_at is not None or invitation.revoked_at is not None:
        return None
    if invitation.expires_at < utcnow():
        return None
    return invitation


def list_invitations(company_id: int, *, pending_only: bool = False) -> list[dict]:
    query = (
        db.session.query(CompanyInvitation)
        .filter(CompanyInvitation.company_id == company_id)
        .order_by(CompanyInvitation.id.desc())
    )
    if pending_only:
        query = query.filter(
            CompanyInvitation.accepted_at.is_(None),
            CompanyInvitation.revoked_at.is_(None),
            CompanyInvitation.expires_at >= utcnow(),
        )
    return [i.to_dict() for i in query.all()]


def accept_invitation(*, token: str, username: str, password: str, full_name: str | None = None) -> User:
    """
    Accept an invitation: create the user in the inviting company with the invited role.

    Raises CompanyError when the invitation is unknown, expired or already used.
    """
    invitation = get_invitation(token)
    if invitation is None:
        raise CompanyError("Invitation not found or expired")

    try:
        user = auth_service.create_user(
            username=username,
            email=invitation.email,
            password=password,
            company_id=invitation.company_id,
            role=invitation.role,
            full_name=full_name,
            commit=False,
        )
        invitation.accepted_at = utcnow()
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return user


def revoke_invitation(*, company_id: int, invitation_id: int) -> bool:
    invitation = db.session.get(CompanyInvitation, invitation_id)
    if invitation is None or invitation.company_id != company_id:
        return False
    if invitation.accepted_at is not None:
        raise CompanyError("Invitation already accepted")
    invitation.revoked_at = utcnow()
    db.session.commit()
    return True


def available_roles() -> list[str]:
    return list(ROLES)


DEMO_PRODUCTS = 30


def create_demo_company(*, seed: int | None = None, user_id: int | None = None) -> Company:
    """
    Throwaway company ("demo-<hex>" slug) filled with simulated data.

    The data is generated with is_simulated set, so nothing here can be
    mistaken for real history.
    """
    from . import mock_data_service

    suffix = secrets.token_hex(3)
    company = create_company(
        name=f"Demo {suffix.upper()}",
        slug=f"demo-{suffix}",
        subscription="trial",
        settings={"demo": True},
    )
    mock_data_service.generate_test_data(company.id, products=DEMO_PRODUCTS, seed=seed, user_id=user_id)
    current_app.logger.info("Created demo company id=%s", company.id)
    return company
