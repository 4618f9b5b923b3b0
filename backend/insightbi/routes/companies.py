# Overview: Flask API routes for company (tenant) management and invitations.

# backend/insightbi/routes/companies.py
"""
Company management routes.

MULTI-TENANT: A user may read and manage only their own company
(validate_company_access); super_admin may act on any. Another tenant's
company is reported as not found.

Invitation lookup and acceptance are public: the token is the credential.
"""
from flask import Blueprint, request, g, current_app

from ..services import company_service
from ..services.auth_service import PasswordValidationError, UserQuotaError
from ..services.company_service import CompanyError, SUBSCRIPTIONS
from ..services.permission_service import log_security_event, user_has_permission
from ..models import Company
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    ConflictError,
)
from ..decorators import require_auth, require_permission

COMPANY_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "slug", "email", "phone", "address", "industry", "size", "logo_url",
        "subscription", "max_users", "max_storage_mb", "settings",
    },
    required_on_create={"name"},
)

# Plan limits are not self-service.
ADMIN_ONLY_FIELDS = {"subscription", "max_users", "max_storage_mb"}


companies_bp = Blueprint("companies", __name__, url_prefix="/api/companies")
invitations_bp = Blueprint("invitations", __name__, url_prefix="/api/invitations")


def _company_visible(company_id: int) -> bool:
    if company_service.validate_company_access(g.current_user, company_id):
        return True
    log_security_event(
        user_id=g.current_user.id,
        event_type="CROSS_TENANT_ACCESS",
        resource=request.path,
        reason=f"company {company_id} requested from company {g.company_id}",
        ip_address=request.remote_addr,
        company_id=g.company_id,
    )
    return False


def _validate_company_patch(payload: dict, *, partial: bool) -> dict:
    patch = validate_payload(model=Company, payload=payload, policy=COMPANY_POLICY, partial=partial)
    if "subscription" in patch and patch["subscription"] not in SUBSCRIPTIONS:
        raise ValidationError(f"subscription must be one of: {', '.join(SUBSCRIPTIONS)}")
    for field in ("max_users", "max_storage_mb"):
        if field in patch and (patch[field] is None or patch[field] < 1):
            raise ValidationError(f"{field} must be >= 1")
    return patch


@companies_bp.get("")
@require_auth
@require_permission("MANAGE_ALL_COMPANIES")
def list_companies_route():
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    items = company_service.list_companies(include_inactive=include_inactive)
    return {"items": items, "count": len(items)}


@companies_bp.post("")
@require_auth
@require_permission("MANAGE_ALL_COMPANIES")
def create_company_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = _validate_company_patch(payload, partial=False)
        company = company_service.create_company(**patch)
    except (ValidationError, ConflictError) as e:
        # Duplicate slug is a 400 on this endpoint
        return {"error": str(e)}, 400
    return company.to_dict(), 201


@companies_bp.get("/current")
@require_auth
def current_company_route():
    company = company_service.get_company(g.company_id)
    if company is None:
        return {"error": "Company not found"}, 404
    return company.to_dict()


@companies_bp.get("/validate-slug")
@require_auth
def validate_slug_route():
    slug = (request.args.get("slug") or "").strip().lower()
    if not slug:
        return {"error": "slug is required"}, 400
    normalized = company_service.generate_slug(slug)
    return {
        "slug": slug,
        "normalized": normalized,
        "valid": normalized == slug,
        "available": normalized == slug and company_service.is_slug_available(slug),
    }


@companies_bp.post("/demo")
@require_auth
@require_permission("MANAGE_ALL_COMPANIES")
def create_demo_company_route():
    payload = request.get_json(silent=True) or {}
    try:
        company = company_service.create_demo_company(seed=payload.get("seed"), user_id=g.current_user.id)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to create demo company")
        return {"error": "Internal server error"}, 500
    return {"company": company.to_dict(), "stats": company_service.get_company_stats(company.id)}, 201


@companies_bp.get("/<int:company_id>")
@require_auth
@require_permission("VIEW_COMPANY")
def get_company_route(company_id: int):
    company = company_service.get_company(company_id)
    if company is None or not _company_visible(company_id):
        return {"error": "Company not found"}, 404
    return company.to_dict()


@companies_bp.put("/<int:company_id>")
@require_auth
@require_permission("MANAGE_COMPANY")
def update_company_route(company_id: int):
    if company_service.get_company(company_id) is None or not _company_visible(company_id):
        return {"error": "Company not found"}, 404

    payload = request.get_json(silent=True) or {}
    try:
        patch = _validate_company_patch(payload, partial=True)
    except ValidationError as e:
        return {"error": str(e)}, 400

    if ADMIN_ONLY_FIELDS & patch.keys() and not user_has_permission(g.current_user, "MANAGE_ALL_COMPANIES"):
        return {
            "error": "Permission denied",
            "required_permission": "MANAGE_ALL_COMPANIES",
        }, 403

    try:
        updated = company_service.update_company(company_id=company_id, patch=patch)
    except (ValidationError, ConflictError) as e:
        return {"error": str(e)}, 400
    if updated is None:
        return {"error": "Company not found"}, 404
    return updated


@companies_bp.delete("/<int:company_id>")
@require_auth
@require_permission("MANAGE_ALL_COMPANIES")
def deactivate_company_route(company_id: int):
    if not company_service.deactivate_company(company_id=company_id):
        return {"error": "Company not found"}, 404
    return {"ok": True}


@companies_bp.get("/<int:company_id>/stats")
@require_auth
@require_permission("VIEW_COMPANY")
def company_stats_route(company_id: int):
    if not _company_visible(company_id):
        return {"error": "Company not found"}, 404
    stats = company_service.get_company_stats(company_id)
    if stats is None:
        return {"error": "Company not found"}, 404
    return stats


@companies_bp.get("/<int:company_id>/users")
@require_auth
@require_permission("MANAGE_COMPANY")
def company_users_route(company_id: int):
    if not _company_visible(company_id):
        return {"error": "Company not found"}, 404
    items = company_service.list_company_users(company_id)
    return {"items": items, "count": len(items), "roles": company_service.available_roles()}


@companies_bp.put("/<int:company_id>/users/<int:user_id>")
@require_auth
@require_permission("MANAGE_COMPANY")
def update_company_user_route(company_id: int, user_id: int):
    """Change a user's role and/or active flag. Body: {role?, is_active?}"""
    if not _company_visible(company_id):
        return {"error": "Company not found"}, 404

    payload = request.get_json(silent=True) or {}
    if "role" not in payload and "is_active" not in payload:
        return {"error": "role or is_active is required"}, 400
    if user_id == g.current_user.id and payload.get("is_active") is False:
        return {"error": "You cannot deactivate yourself"}, 400

    try:
        result = None
        if "role" in payload:
            result = company_service.update_user_role(
                company_id=company_id, user_id=user_id, role=payload["role"], actor=g.current_user,
            )
            if result is None:
                return {"error": "User not found"}, 404
        if "is_active" in payload:
            result = company_service.set_user_active(
                company_id=company_id, user_id=user_id, is_active=bool(payload["is_active"]),
            )
    except CompanyError as e:
        return {"error": str(e)}, 403
    except UserQuotaError as e:
        return {"error": str(e)}, 409
    except ValueError as e:
        return {"error": str(e)}, 400

    if result is None:
        return {"error": "User not found"}, 404
    return result


@companies_bp.get("/<int:company_id>/invitations")
@require_auth
@require_permission("MANAGE_COMPANY")
def list_invitations_route(company_id: int):
    if not _company_visible(company_id):
        return {"error": "Company not found"}, 404
    pending_only = request.args.get("pending", "false").lower() == "true"
    items = company_service.list_invitations(company_id, pending_only=pending_only)
    return {"items": items, "count": len(items)}


@companies_bp.post("/<int:company_id>/invitations")
@require_auth
@require_permission("MANAGE_COMPANY")
def create_invitation_route(company_id: int):
    if not _company_visible(company_id):
        return {"error": "Company not found"}, 404

    payload = request.get_json(silent=True) or {}
    try:
        invitation = company_service.create_invitation(
            company_id=company_id,
            email=payload.get("email"),
            role=payload.get("role") or "viewer",
            invited_by=g.current_user,
        )
    except ConflictError as e:
        return {"error": str(e)}, 409
    except UserQuotaError as e:
        return {"error": str(e)}, 409
    except CompanyError as e:
        return {"error": str(e)}, 400
    except ValueError as e:
        return {"error": str(e)}, 400

    current_app.logger.info("Invitation %s created for company %s", invitation.id, company_id)
    return invitation.to_dict(include_token=True), 201


@companies_bp.delete("/<int:company_id>/invitations/<int:invitation_id>")
@require_auth
@require_permission("MANAGE_COMPANY")
def revoke_invitation_route(company_id: int, invitation_id: int):
    if not _company_visible(company_id):
        return {"error": "Company not found"}, 404
    try:
        revoked = company_service.revoke_invitation(company_id=company_id, invitation_id=invitation_id)
    except CompanyError as e:
        return {"error": str(e)}, 409
    if not revoked:
        return {"error": "Invitation not found"}, 404
    return {"ok": True}


@invitations_bp.get("/<token>")
def get_invitation_route(token: str):
    invitation = company_service.get_invitation(token)
    if invitation is None:
        return {"error": "Invitation not found or expired"}, 404
    data = invitation.to_dict()
    data["company_name"] = invitation.company.name
    return data


@invitations_bp.post("/<token>/accept")
def accept_invitation_route(token: str):
    """Body: {username, password, full_name?}"""
    payload = request.get_json(silent=True) or {}
    if not payload.get("username") or not payload.get("password"):
        return {"error": "username and password are required"}, 400

    try:
        user = company_service.accept_invitation(
            token=token,
            username=payload["username"],
            password=payload["password"],
            full_name=payload.get("full_name"),
        )
    except CompanyError as e:
        return {"error": str(e)}, 404
    except UserQuotaError as e:
        return {"error": str(e)}, 409
    except PasswordValidationError as e:
        return {"error": str(e)}, 400
    except ValueError as e:
        return {"error": str(e)}, 400

    return {"user": user.to_dict()}, 201
