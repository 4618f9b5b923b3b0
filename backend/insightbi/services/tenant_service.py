"""
Multi-Tenant Service: Tenant Validation and Scoping Helpers

WHY: Centralize tenant validation logic for reuse across services and routes.
Every request is scoped to a tenant (company), and cross-tenant access must
be explicitly denied.

SECURITY INVARIANTS:
1. Every authenticated request has g.company_id set
2. Ids from client input (product_id, customer_id, ...) are validated
   against the caller's company before use
3. Queries touching tenant data filter by company_id
4. Cross-tenant access attempts are logged as security events

USAGE:
    from insightbi.services.tenant_service import require_in_company

    product = require_in_company(Product, payload["product_id"], g.company_id)
"""

from flask import g, has_request_context, request

from ..extensions import db
from ..models import Company
from .permission_service import log_security_event


class TenantAccessError(Exception):
    """Raised when cross-tenant access is attempted."""
    pass


def get_current_company_id() -> int:
    """
    Get current tenant's company_id from Flask g context.

    SECURITY: Raises TenantAccessError if company_id not set.
    This should never happen after @require_auth, but is a safety check.
    """
    if not hasattr(g, 'company_id') or g.company_id is None:
        raise TenantAccessError("Tenant context not established")
    return g.company_id


def scoped_query(model, company_id: int):
    """Base query for a tenant-owned model, filtered to one company."""
    return db.session.query(model).filter(model.company_id == company_id)


def require_in_company(model, record_id, company_id: int, *, label: str | None = None):
    """
    Load a tenant-owned record by id, enforcing company ownership.

    SECURITY: A record that exists in another company raises the same error
    as a missing record, so existence is never revealed across tenants.

    Raises:
        TenantAccessError if the record is missing or belongs to another company
    """
    name = label or model.__name__
    try:
        record_id = int(record_id)
    except (TypeError, ValueError):
        raise TenantAccessError(f"{name} not found")

    record = db.session.get(model, record_id)
    if record is None:
        raise TenantAccessError(f"{name} not found")

    if record.company_id != company_id:
        # CRITICAL: Cross-tenant access attempt
        _log_cross_tenant_attempt(
            f"{name} {record_id} belongs to company {record.company_id}, not {company_id}",
            company_id=company_id,
        )
        raise TenantAccessError(f"{name} not found")

    return record


def find_in_company(model, record_id, company_id: int):
    """Like require_in_company but returns None instead of raising."""
    try:
        return require_in_company(model, record_id, company_id)
    except TenantAccessError:
        return None


def validate_company_active(company_id: int) -> Company:
    """Raise TenantAccessError unless the company exists and is active."""
    company = db.session.get(Company, company_id)
    if company is None or not company.is_active:
        raise TenantAccessError("Company not found or inactive")
    return company


def _log_cross_tenant_attempt(reason: str, company_id: int | None) -> None:
    user = getattr(g, "current_user", None) if has_request_context() else None
    log_security_event(
        user_id=user.id if user is not None else None,
        event_type="CROSS_TENANT_ACCESS",
        resource=request.path if has_request_context() else None,
        action=request.method if has_request_context() else None,
        reason=reason,
        ip_address=request.remote_addr if has_request_context() else None,
        company_id=company_id,
    )
