# Overview: Flask API routes for the AI assistant; status, business analysis and recommendations.

"""
AI routes.

All three work without a GEMINI_API_KEY: status reports enabled=false,
analysis returns the disabled summary and recommendations are rule-based.
"""
from flask import Blueprint, g, current_app

from ..decorators import require_auth, require_permission
from ..services import ai_service

ai_bp = Blueprint("ai", __name__, url_prefix="/api/ai")


@ai_bp.get("/status")
@require_auth
def ai_status_route():
    return ai_service.status()


@ai_bp.post("/analysis")
@require_auth
@require_permission("USE_AI")
def ai_analysis_route():
    try:
        return ai_service.analyze_business_data(g.company_id)
    except Exception:
        current_app.logger.exception("Failed to run business analysis")
        return {"error": "Internal server error"}, 500


@ai_bp.get("/recommendations")
@require_auth
@require_permission("USE_AI")
def ai_recommendations_route():
    insights = ai_service.generate_inventory_recommendations(g.company_id)
    return {"items": insights, "count": len(insights), "ai_enabled": ai_service.is_enabled()}
