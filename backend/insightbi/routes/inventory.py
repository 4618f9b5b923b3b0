# backend/insightbi/routes/inventory.py
"""
Inventory analytics and stock movement routes.

SECURITY: All routes require authentication.
- Read operations require VIEW_INVENTORY permission
- ABC persistence and alert sync require RUN_ANALYTICS permission
- Movements require ADJUST_INVENTORY permission

Time semantics:
- API accepts ISO-8601 datetimes with Z/offsets; backend normalizes to UTC-naive internally.
"""
from flask import Blueprint, request, g, current_app

from ..models import InventoryMovement
from ..services import ai_service, analytics_service, inventory_service, products_service
from ..services.tenant_service import TenantAccessError
from ..time_utils import parse_iso_datetime
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    ConflictError,
    enforce_rules_movement,
)
from ..decorators import require_auth, require_permission


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")

MOVEMENT_POLICY = ModelValidationPolicy(
    writable_fields={
        "product_id", "warehouse_id", "movement_type", "quantity", "unit_cost_cents",
        "reason", "document_number", "notes", "movement_date",
    },
    required_on_create={"product_id", "movement_type", "quantity"},
)


@inventory_bp.get("/alerts")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_alerts_route():
    """Alerts computed from current stock. Query params: priority, type."""
    return analytics_service.current_alerts(
        g.company_id,
        priority=request.args.get("priority"),
        alert_type=request.args.get("type"),
    )


@inventory_bp.post("/alerts/sync")
@require_auth
@require_permission("RUN_ANALYTICS")
def sync_alerts_route():
    """Persist the current alert set as StockAlert rows; resolve cleared ones."""
    try:
        return analytics_service.sync_stock_alerts(g.company_id)
    except Exception:
        current_app.logger.exception("Failed to sync stock alerts")
        return {"error": "Internal server error"}, 500


@inventory_bp.get("/kpis")
@require_auth
@require_permission("VIEW_INVENTORY")
def kpis_route():
    return analytics_service.inventory_analytics(g.company_id)


@inventory_bp.get("/abc")
@require_auth
@require_permission("VIEW_INVENTORY")
def abc_route():
    rows = analytics_service.classify_abc(products_service.company_products(g.company_id))
    return {"items": rows, "count": len(rows), "summary": analytics_service.summarize_abc(rows)}


@inventory_bp.post("/abc")
@require_auth
@require_permission("RUN_ANALYTICS")
def apply_abc_route():
    """Classify and store abc_classification on every active product."""
    return analytics_service.apply_abc_classification(g.company_id)


@inventory_bp.get("/products/<int:product_id>/analysis")
@require_auth
@require_permission("VIEW_INVENTORY")
def product_analysis_route(product_id: int):
    try:
        return analytics_service.product_analysis(company_id=g.company_id, product_id=product_id)
    except TenantAccessError:
        return {"error": "Product not found"}, 404


@inventory_bp.get("/recommendations")
@require_auth
@require_permission("VIEW_INVENTORY")
def recommendations_route():
    """Rule-based recommendations; available without an AI key."""
    items = ai_service.generate_inventory_recommendations(g.company_id)
    return {"items": items, "count": len(items)}


@inventory_bp.get("/movements")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_movements_route():
    """
    Query params: product_id, type, start, end (ISO-8601), page, per_page.
    """
    try:
        start = parse_iso_datetime(request.args.get("start"))
        end = parse_iso_datetime(request.args.get("end"))
    except ValueError:
        return {"error": "start/end must be ISO-8601 datetimes"}, 400

    try:
        return inventory_service.list_movements(
            company_id=g.company_id,
            product_id=request.args.get("product_id", type=int),
            movement_type=request.args.get("type"),
            start=start,
            end=end,
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
    except TenantAccessError:
        return {"error": "Product not found"}, 404


@inventory_bp.post("/movements")
@require_auth
@require_permission("ADJUST_INVENTORY")
def create_movement_route():
    """
    Record a stock movement.

    in / out / transfer take a positive quantity; adjustment a signed delta.
    Stock never goes negative (409).
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=InventoryMovement,
            payload=payload,
            policy=MOVEMENT_POLICY,
            partial=False,
        )
        enforce_rules_movement(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        result = inventory_service.record_movement(
            company_id=g.company_id, patch=patch, user_id=g.current_user.id,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except TenantAccessError as e:
        return {"error": str(e)}, 404

    return result, 201
