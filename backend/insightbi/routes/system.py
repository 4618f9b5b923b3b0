# backend/insightbi/routes/system.py
"""
System health and version endpoints.

Public (no auth) so load balancers and uptime checks can call them.
"""

import time

from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db
from ..services import ai_service
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)

APP_VERSION = "1.0.0"


def check_database_health() -> dict:
    """Round-trip a trivial query and report latency."""
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2)}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
@system_bp.get("/api/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "healthy"
    return {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": to_utc_z(utcnow()),
        "checks": {
            "database": database,
            "ai": {"status": "enabled" if ai_service.is_enabled() else "disabled"},
        },
    }, 200 if healthy else 503


@system_bp.get("/api/version")
def version():
    return {"name": "insightbi", "version": APP_VERSION}
