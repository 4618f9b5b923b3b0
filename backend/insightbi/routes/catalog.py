# Overview: Flask API routes for categories, suppliers and warehouses.

"""
Catalog reference data routes.

/api/categories, /api/suppliers and /api/warehouses share one set of
handlers; the URL segment picks the model and its write policy.
"""
from flask import Blueprint, request, g

from ..services import catalog_service
from ..services.catalog_service import CATALOG_MODELS
from ..services.tenant_service import TenantAccessError
from ..validation import ModelValidationPolicy, validate_payload, ValidationError, ConflictError
from ..decorators import require_auth, require_permission

CATALOG_POLICIES = {
    "categories": ModelValidationPolicy(
        writable_fields={"name", "description", "color"},
        required_on_create={"name"},
    ),
    "suppliers": ModelValidationPolicy(
        writable_fields={"name", "contact_name", "email", "phone", "address", "lead_time_days", "is_active"},
        required_on_create={"name"},
    ),
    "warehouses": ModelValidationPolicy(
        writable_fields={"name", "code", "address", "is_default"},
        required_on_create={"name"},
    ),
}

LABELS = {"categories": "Category", "suppliers": "Supplier", "warehouses": "Warehouse"}

KIND = "<any(categories, suppliers, warehouses):kind>"

catalog_bp = Blueprint("catalog", __name__, url_prefix="/api")


def _patch(kind: str, *, partial: bool) -> dict:
    payload = request.get_json(silent=True) or {}
    patch = validate_payload(model=CATALOG_MODELS[kind], payload=payload, policy=CATALOG_POLICIES[kind], partial=partial)
    if patch.get("lead_time_days") is not None and patch["lead_time_days"] < 0:
        raise ValidationError("lead_time_days must be >= 0")
    return patch


@catalog_bp.get(f"/{KIND}")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_entries_route(kind: str):
    return catalog_service.list_entries(CATALOG_MODELS[kind], company_id=g.company_id)


@catalog_bp.post(f"/{KIND}")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def create_entry_route(kind: str):
    try:
        patch = _patch(kind, partial=False)
        created = catalog_service.create_entry(CATALOG_MODELS[kind], company_id=g.company_id, patch=patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    return created, 201


@catalog_bp.put(f"/{KIND}/<int:entry_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def update_entry_route(kind: str, entry_id: int):
    try:
        patch = _patch(kind, partial=True)
        return catalog_service.update_entry(
            CATALOG_MODELS[kind], company_id=g.company_id, entry_id=entry_id, patch=patch,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except TenantAccessError:
        return {"error": f"{LABELS[kind]} not found"}, 404


@catalog_bp.delete(f"/{KIND}/<int:entry_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def delete_entry_route(kind: str, entry_id: int):
    try:
        catalog_service.delete_entry(CATALOG_MODELS[kind], company_id=g.company_id, entry_id=entry_id)
    except ConflictError as e:
        return {"error": str(e)}, 409
    except TenantAccessError:
        return {"error": f"{LABELS[kind]} not found"}, 404
    return {"ok": True}
