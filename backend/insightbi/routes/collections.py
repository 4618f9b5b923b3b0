# Overview: Flask API routes for collections and accounts receivable.

# backend/insightbi/routes/collections.py
"""
Collections (legacy, per sale) and receivables (per invoice).

Status is derived server-side: a pending collection past its due date is
overdue; a receivable's status, aging and priority follow its due date and
outstanding balance.

SECURITY:
- Read operations require VIEW_COLLECTIONS permission
- Write operations require MANAGE_COLLECTIONS permission
"""
from flask import Blueprint, request, g

from ..models import AccountReceivable, Collection, CollectionActivity, Payment
from ..services import collections_service
from ..services.tenant_service import TenantAccessError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_collection,
    enforce_rules_payment,
    ValidationError,
    ConflictError,
)
from ..decorators import require_auth, require_permission

COLLECTION_POLICY = ModelValidationPolicy(
    writable_fields={"sale_id", "customer_id", "customer_name", "amount_cents", "due_date", "status", "notes"},
    required_on_create={"amount_cents", "due_date"},
)

RECEIVABLE_POLICY = ModelValidationPolicy(
    writable_fields={
        "customer_id", "enhanced_sale_id", "invoice_number", "invoice_date", "due_date",
        "original_amount_cents", "outstanding_amount_cents", "currency", "collection_agent",
    },
    required_on_create={"invoice_number", "invoice_date", "due_date", "original_amount_cents"},
)

PAYMENT_POLICY = ModelValidationPolicy(
    writable_fields={"amount_cents", "payment_date", "method", "reference"},
    required_on_create={"amount_cents"},
)

ACTIVITY_POLICY = ModelValidationPolicy(
    writable_fields={"activity_type", "outcome", "notes", "activity_date", "next_contact_date"},
    required_on_create={"activity_type"},
)

collections_bp = Blueprint("collections", __name__, url_prefix="/api/collections")
receivables_bp = Blueprint("receivables", __name__, url_prefix="/api/receivables")


# -- Legacy collections ---------------------------------------------------------

@collections_bp.get("")
@require_auth
@require_permission("VIEW_COLLECTIONS")
def list_collections_route():
    """Query params: status (pending|paid|overdue|cancelled), page, per_page."""
    try:
        return collections_service.list_collections(
            company_id=g.company_id,
            status=request.args.get("status"),
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400


@collections_bp.post("")
@require_auth
@require_permission("MANAGE_COLLECTIONS")
def create_collection_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Collection, payload=payload, policy=COLLECTION_POLICY, partial=False)
        enforce_rules_collection(patch)
        collection = collections_service.create_collection(company_id=g.company_id, patch=patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    return collection.to_dict(), 201


@collections_bp.put("/<int:collection_id>")
@require_auth
@require_permission("MANAGE_COLLECTIONS")
def update_collection_route(collection_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Collection, payload=payload, policy=COLLECTION_POLICY, partial=True)
        enforce_rules_collection(patch)
        return collections_service.update_collection(
            company_id=g.company_id, collection_id=collection_id, patch=patch,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except TenantAccessError:
        return {"error": "Collection not found"}, 404


@collections_bp.post("/refresh-statuses")
@require_auth
@require_permission("MANAGE_COLLECTIONS")
def refresh_collection_statuses_route():
    """Mark pending collections past their due date as overdue."""
    updated = collections_service.refresh_collection_statuses(company_id=g.company_id)
    return {"updated": updated}


@collections_bp.get("/summary")
@require_auth
@require_permission("VIEW_COLLECTIONS")
def collections_summary_route():
    return collections_service.collections_summary(g.company_id)


# -- Receivables ----------------------------------------------------------------

@receivables_bp.get("")
@require_auth
@require_permission("VIEW_COLLECTIONS")
def list_receivables_route():
    return collections_service.list_receivables(
        company_id=g.company_id,
        status=request.args.get("status"),
        customer_id=request.args.get("customer_id", type=int),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )


@receivables_bp.post("")
@require_auth
@require_permission("MANAGE_COLLECTIONS")
def create_receivable_route():
    payload = request.get_json(silent=True) or {}
    try:
        data = validate_payload(model=AccountReceivable, payload=payload, policy=RECEIVABLE_POLICY, partial=False)
        if data["original_amount_cents"] <= 0:
            raise ValidationError("original_amount_cents must be > 0")
        receivable = collections_service.create_receivable(company_id=g.company_id, data=data)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    return receivable.to_dict(), 201


@receivables_bp.get("/summary")
@require_auth
@require_permission("VIEW_COLLECTIONS")
def receivables_summary_route():
    """Outstanding balance per aging bucket."""
    return collections_service.receivables_summary(g.company_id)


@receivables_bp.post("/refresh")
@require_auth
@require_permission("MANAGE_COLLECTIONS")
def refresh_receivables_route():
    return {"updated": collections_service.refresh_receivables(company_id=g.company_id)}


@receivables_bp.get("/<int:receivable_id>")
@require_auth
@require_permission("VIEW_COLLECTIONS")
def get_receivable_route(receivable_id: int):
    try:
        return collections_service.get_receivable(company_id=g.company_id, receivable_id=receivable_id)
    except TenantAccessError:
        return {"error": "Receivable not found"}, 404


@receivables_bp.post("/<int:receivable_id>/payments")
@require_auth
@require_permission("MANAGE_COLLECTIONS")
def record_payment_route(receivable_id: int):
    """Reduce the outstanding balance; overpayment is a 409."""
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Payment, payload=payload, policy=PAYMENT_POLICY, partial=False)
        enforce_rules_payment(patch)
        result = collections_service.record_payment(
            company_id=g.company_id, receivable_id=receivable_id, patch=patch, user_id=g.current_user.id,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except TenantAccessError:
        return {"error": "Receivable not found"}, 404
    return result, 201


@receivables_bp.get("/<int:receivable_id>/activities")
@require_auth
@require_permission("VIEW_COLLECTIONS")
def list_activities_route(receivable_id: int):
    try:
        return collections_service.list_activities(company_id=g.company_id, receivable_id=receivable_id)
    except TenantAccessError:
        return {"error": "Receivable not found"}, 404


@receivables_bp.post("/<int:receivable_id>/activities")
@require_auth
@require_permission("MANAGE_COLLECTIONS")
def log_activity_route(receivable_id: int):
    """Log a call / email / visit / ... against a receivable."""
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=CollectionActivity, payload=payload, policy=ACTIVITY_POLICY, partial=False)
        created = collections_service.log_activity(
            company_id=g.company_id, receivable_id=receivable_id, patch=patch, user_id=g.current_user.id,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except TenantAccessError:
        return {"error": "Receivable not found"}, 404
    return created, 201
