# Overview: Service-layer operations for saved dashboard layouts.

"""
Saved dashboard layouts.

MULTI-TENANT: a layout belongs to one user inside one company; another
user's layout is reported as not found. At most one layout per user is the
default.
"""
from __future__ import annotations

from ..extensions import db
from ..models import Dashboard
from ..validation import ValidationError
from .tenant_service import TenantAccessError, require_in_company


def _require_dashboard(dashboard_id: int, *, company_id: int, user_id: int) -> Dashboard:
    dashboard = require_in_company(Dashboard, dashboard_id, company_id)
    if dashboard.user_id != user_id:
        raise TenantAccessError("Dashboard not found")
    return dashboard


def _clear_default(company_id: int, user_id: int) -> None:
    db.session.query(Dashboard).filter(
        Dashboard.company_id == company_id,
        Dashboard.user_id == user_id,
        Dashboard.is_default.is_(True),
    ).update({"is_default": False})


def _check_layout(layout) -> None:
    if layout is None:
        return
    if not isinstance(layout, list) or not all(isinstance(w, dict) for w in layout):
        raise ValidationError("layout must be a list of widget objects")


def list_dashboards(*, company_id: int, user_id: int) -> dict:
    rows = (
        db.session.query(Dashboard)
        .filter(Dashboard.company_id == company_id, Dashboard.user_id == user_id)
        .order_by(Dashboard.is_default.desc(), Dashboard.name.asc(), Dashboard.id.asc())
        .all()
    )
    return {"items": [d.to_dict() for d in rows], "count": len(rows)}


def get_dashboard(*, dashboard_id: int, company_id: int, user_id: int) -> dict:
    return _require_dashboard(dashboard_id, company_id=company_id, user_id=user_id).to_dict()


def create_dashboard(*, company_id: int, user_id: int, patch: dict) -> dict:
    _check_layout(patch.get("layout"))
    if patch.get("is_default"):
        _clear_default(company_id, user_id)
    dashboard = Dashboard(company_id=company_id, user_id=user_id, **patch)
    db.session.add(dashboard)
    db.session.commit()
    return dashboard.to_dict()


def update_dashboard(*, dashboard_id: int, company_id: int, user_id: int, patch: dict) -> dict:
    dashboard = _require_dashboard(dashboard_id, company_id=company_id, user_id=user_id)
    if "layout" in patch:
        _check_layout(patch["layout"])
    if patch.get("is_default"):
        _clear_default(company_id, user_id)
    for key, value in patch.items():
        setattr(dashboard, key, value)
    db.session.commit()
    return dashboard.to_dict()


def delete_dashboard(*, dashboard_id: int, company_id: int, user_id: int) -> bool:
    dashboard = _require_dashboard(dashboard_id, company_id=company_id, user_id=user_id)
    db.session.delete(dashboard)
    db.session.commit()
    return True
