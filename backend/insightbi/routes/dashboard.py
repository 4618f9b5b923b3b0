# Overview: Flask API routes for dashboard analytics and saved dashboard layouts.

"""
Dashboard routes.

/api/dashboard/*  aggregated figures (read-only, VIEW_ANALYTICS)
/api/dashboards   the caller's saved layouts (CRUD)

Figures that come from generated data carry "simulated": true.
"""
from flask import Blueprint, request, g, current_app

from ..models import Dashboard
from ..services import analytics_service, dashboard_service
from ..services.tenant_service import TenantAccessError
from ..validation import ModelValidationPolicy, validate_payload, ValidationError
from ..decorators import require_auth, require_permission

DASHBOARD_POLICY = ModelValidationPolicy(
    writable_fields={"name", "layout", "is_default"},
    required_on_create={"name"},
)

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")
dashboards_bp = Blueprint("dashboards", __name__, url_prefix="/api/dashboards")


@dashboard_bp.get("/analytics")
@require_auth
@require_permission("VIEW_ANALYTICS")
def dashboard_analytics_route():
    """Revenue, inventory value, pending collections, 12-month trend, top products."""
    try:
        return analytics_service.dashboard_analytics(g.company_id)
    except Exception:
        current_app.logger.exception("Failed to build dashboard analytics")
        return {"error": "Internal server error"}, 500


@dashboard_bp.get("/executive")
@require_auth
@require_permission("VIEW_ANALYTICS")
def executive_dashboard_route():
    try:
        return analytics_service.executive_dashboard(g.company_id)
    except Exception:
        current_app.logger.exception("Failed to build executive dashboard")
        return {"error": "Internal server error"}, 500


@dashboards_bp.get("")
@require_auth
@require_permission("VIEW_ANALYTICS")
def list_dashboards_route():
    return dashboard_service.list_dashboards(company_id=g.company_id, user_id=g.current_user.id)


@dashboards_bp.post("")
@require_auth
@require_permission("VIEW_ANALYTICS")
def create_dashboard_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Dashboard, payload=payload, policy=DASHBOARD_POLICY, partial=False)
        created = dashboard_service.create_dashboard(
            company_id=g.company_id, user_id=g.current_user.id, patch=patch,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    return created, 201


@dashboards_bp.get("/<int:dashboard_id>")
@require_auth
@require_permission("VIEW_ANALYTICS")
def get_dashboard_route(dashboard_id: int):
    try:
        return dashboard_service.get_dashboard(
            dashboard_id=dashboard_id, company_id=g.company_id, user_id=g.current_user.id,
        )
    except TenantAccessError:
        return {"error": "Dashboard not found"}, 404


@dashboards_bp.put("/<int:dashboard_id>")
@require_auth
@require_permission("VIEW_ANALYTICS")
def update_dashboard_route(dashboard_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Dashboard, payload=payload, policy=DASHBOARD_POLICY, partial=True)
        return dashboard_service.update_dashboard(
            dashboard_id=dashboard_id, company_id=g.company_id, user_id=g.current_user.id, patch=patch,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except TenantAccessError:
        return {"error": "Dashboard not found"}, 404


@dashboards_bp.delete("/<int:dashboard_id>")
@require_auth
@require_permission("VIEW_ANALYTICS")
def delete_dashboard_route(dashboard_id: int):
    try:
        dashboard_service.delete_dashboard(
            dashboard_id=dashboard_id, company_id=g.company_id, user_id=g.current_user.id,
        )
    except TenantAccessError:
        return {"error": "Dashboard not found"}, 404
    return {"ok": True}
