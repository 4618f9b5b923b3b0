# backend/insightbi/services/analytics_service.py
"""
Inventory analytics: KPIs, ABC classification, stock alerts and
replenishment math.

The first half of this module is pure (takes Product rows or plain dicts,
touches no session) so the rules can be exercised without a database. The
DB-backed wrappers below load tenant data and feed it through them.

Turnover and demand are derived from recorded sales and out-movements only.
Figures built from generated test records are flagged with "simulated".
"""
from __future__ import annotations

import math
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Any, Iterable

from flask import current_app

from ..extensions import db
from ..models import Category, Collection, InventoryMovement, Product, Sale, StockAlert, Supplier
from ..time_utils import today as _today, utcnow, to_utc_z
from .products_service import EXCESS_STOCK_FACTOR, company_products
from .tenant_service import require_in_company

ABC_A_LIMIT = 80.0
ABC_B_LIMIT = 95.0
CRITICAL_STOCK_FACTOR = 0.5
EXPIRY_WARNING_DAYS = 30
SLOW_MOVING_DAYS = 180
LOW_MARGIN_PERCENT = 20.0
NO_DEMAND_DAYS = 999
DEFAULT_LEAD_TIME_DAYS = 7
DEFAULT_ORDERING_COST = 50.0
DEFAULT_HOLDING_COST = 5.0

PRIORITY_ORDER = {"critical": 0, "high": 1, "medium": 2, "low": 3}

SERVICE_LEVEL_Z = {
    90: 1.28,
    95: 1.65,
    98: 2.05,
    99: 2.33,
    99.9: 3.09,
}


def _field(item: Any, key: str, default=None):
    if isinstance(item, dict):
        value = item.get(key, default)
    else:
        value = getattr(item, key, default)
    return default if value is None else value


def _value_cents(item: Any) -> int:
    return int(_field(item, "price_cents", 0)) * int(_field(item, "stock", 0))


def _cost_value_cents(item: Any) -> int:
    return int(_field(item, "cost_cents", 0)) * int(_field(item, "stock", 0))


def _is_low(item: Any) -> bool:
    stock = int(_field(item, "stock", 0))
    return 0 < stock <= int(_field(item, "min_stock", 10))


def _is_excess(item: Any) -> bool:
    max_stock = int(_field(item, "max_stock", 0))
    return max_stock > 0 and int(_field(item, "stock", 0)) >= max_stock * EXCESS_STOCK_FACTOR


# ---------------------------------------------------------------------------
# Pure calculations
# ---------------------------------------------------------------------------

def calculate_kpis(products: Iterable[Any], annual_cogs_cents: int = 0) -> dict:
    """
    Portfolio-level inventory KPIs.

    Turnover is annual cost of goods sold over inventory held at cost, so
    both sides of the ratio are in the same unit.
    """
    items = list(products)
    total = len(items)
    total_value = sum(_value_cents(p) for p in items)
    total_cost_value = sum(_cost_value_cents(p) for p in items)
    out_count = sum(1 for p in items if int(_field(p, "stock", 0)) == 0)
    low_count = sum(1 for p in items if _is_low(p))
    excess_count = sum(1 for p in items if _is_excess(p))

    turnover = (annual_cogs_cents / total_cost_value) if total_cost_value > 0 else 0.0
    days_of_inventory = (365 / turnover) if turnover > 0 else 0.0

    if turnover > 2:
        liquidity = 85
    elif turnover > 1:
        liquidity = 65
    else:
        liquidity = 45

    abc_counts = {"A": 0, "B": 0, "C": 0}
    for row in classify_abc(items):
        abc_counts[row["classification"]] += 1

    return {
        "total_products": total,
        "total_value_cents": total_value,
        "total_cost_value_cents": total_cost_value,
        "low_stock_count": low_count,
        "out_of_stock_count": out_count,
        "excess_stock_count": excess_count,
        "turnover": round(turnover, 2),
        "days_of_inventory": round(days_of_inventory, 1),
        "liquidity_index": liquidity,
        "abc_distribution": {
            k: round(v * 100 / total, 1) if total else 0.0 for k, v in abc_counts.items()
        },
        "service_level": round((total - out_count) * 100 / total, 1) if total else 0.0,
    }


def classify_abc(products: Iterable[Any]) -> list[dict]:
    """
    Pareto classification by stock value (price * stock).

    Cumulative share up to 80% is A, up to 95% is B, the rest is C.
    Returns one row per product, highest value first.
    """
    items = sorted(
        products,
        key=lambda p: (-_value_cents(p), _field(p, "id", 0)),
    )
    total_value = sum(_value_cents(p) for p in items)

    rows: list[dict] = []
    cumulative = 0
    for p in items:
        value = _value_cents(p)
        cumulative += value
        if total_value <= 0:
            share = 100.0
            klass = "C"
        else:
            share = cumulative * 100 / total_value
            if share <= ABC_A_LIMIT:
                klass = "A"
            elif share <= ABC_B_LIMIT:
                klass = "B"
            else:
                klass = "C"
        rows.append(
            {
                "product_id": _field(p, "id"),
                "sku": _field(p, "sku"),
                "name": _field(p, "name"),
                "value_cents": value,
                "percent_of_total": round(value * 100 / total_value, 2) if total_value > 0 else 0.0,
                "cumulative_percent": round(share, 2),
                "classification": klass,
            }
        )
    return rows


def summarize_abc(rows: list[dict]) -> dict:
    total_value = sum(r["value_cents"] for r in rows)
    summary = {}
    for klass in ("A", "B", "C"):
        members = [r for r in rows if r["classification"] == klass]
        value = sum(r["value_cents"] for r in members)
        summary[klass] = {
            "count": len(members),
            "value_cents": value,
            "value_percent": round(value * 100 / total_value, 1) if total_value > 0 else 0.0,
        }
    return summary


def _alert(p: Any, alert_type: str, priority: str, message: str, threshold, current) -> dict:
    return {
        "product_id": _field(p, "id"),
        "sku": _field(p, "sku"),
        "product_name": _field(p, "name"),
        "alert_type": alert_type,
        "priority": priority,
        "message": message,
        "threshold": threshold,
        "current_value": current,
    }


def generate_alerts(products: Iterable[Any], today: date | None = None) -> list[dict]:
    """
    Stock and expiry alerts for a set of products, most urgent first.

    An empty shelf yields only out_of_stock; low_stock is reserved for
    0 < stock <= min_stock.
    """
    today = today or _today()
    alerts: list[dict] = []

    for p in products:
        stock = int(_field(p, "stock", 0))
        min_stock = int(_field(p, "min_stock", 10))
        max_stock = int(_field(p, "max_stock", 0))

        if stock == 0:
            alerts.append(_alert(
                p, "out_of_stock", "critical",
                "Producto agotado - requiere reposición inmediata",
                min_stock, stock,
            ))
        elif stock <= min_stock:
            if stock <= min_stock * CRITICAL_STOCK_FACTOR:
                alerts.append(_alert(
                    p, "low_stock", "critical",
                    f"Stock crítico: Solo {stock} unidades disponibles",
                    min_stock, stock,
                ))
            else:
                alerts.append(_alert(
                    p, "low_stock", "high",
                    f"Stock bajo: {stock} unidades (mínimo: {min_stock})",
                    min_stock, stock,
                ))

        if _is_excess(p):
            alerts.append(_alert(
                p, "excess_stock", "medium",
                f"Exceso de stock: {stock} unidades (máximo recomendado: {max_stock})",
                max_stock, stock,
            ))

        expiration = _field(p, "expiration_date")
        if isinstance(expiration, str):
            expiration = date.fromisoformat(expiration[:10])
        if isinstance(expiration, datetime):
            expiration = expiration.date()
        if expiration is not None:
            days_left = (expiration - today).days
            if days_left < 0:
                alerts.append(_alert(
                    p, "expired", "critical",
                    f"Producto vencido desde {expiration.isoformat()}",
                    0, days_left,
                ))
            elif days_left <= EXPIRY_WARNING_DAYS:
                alerts.append(_alert(
                    p, "expiring", "high",
                    f"Producto vence en {days_left} días",
                    EXPIRY_WARNING_DAYS, days_left,
                ))

    alerts.sort(key=lambda a: (PRIORITY_ORDER[a["priority"]], a["product_id"] or 0))
    return alerts


def calculate_reorder_point(avg_daily_demand: float, lead_time_days: float, safety_stock: float) -> int:
    return math.ceil(avg_daily_demand * lead_time_days + safety_stock)


def calculate_eoq(annual_demand: float, ordering_cost: float, holding_cost: float) -> int:
    """Economic order quantity; 0 when any input is non-positive."""
    if annual_demand <= 0 or ordering_cost <= 0 or holding_cost <= 0:
        return 0
    return math.ceil(math.sqrt(2 * annual_demand * ordering_cost / holding_cost))


def calculate_safety_stock(avg_demand: float, std_demand: float, lead_time_days: float,
                           service_level: float = 95) -> int:
    z = SERVICE_LEVEL_Z.get(service_level, SERVICE_LEVEL_Z[95])
    if std_demand <= 0 or lead_time_days <= 0:
        return 0
    return math.ceil(z * std_demand * math.sqrt(lead_time_days))


def analyze_product(
    product: Any,
    daily_demand: float,
    *,
    days_without_movement: int | None = None,
    lead_time_days: int = DEFAULT_LEAD_TIME_DAYS,
) -> dict:
    """
    Per-product replenishment view.

    Recommendation (first match wins):
        stock <= min*0.5             -> REPONER / CRITICO
        stock <= min                 -> REPONER / ALTO
        idle > 180 days, margin < 20 -> LIQUIDAR / MEDIO
        stock >= max*1.2             -> REDUCIR / MEDIO
        otherwise                    -> MANTENER / BAJO
    """
    stock = int(_field(product, "stock", 0))
    min_stock = int(_field(product, "min_stock", 10))
    max_stock = int(_field(product, "max_stock", 0))
    safety = int(_field(product, "safety_stock", 5))
    price = int(_field(product, "price_cents", 0))
    cost = int(_field(product, "cost_cents", 0)) or price
    idle_days = NO_DEMAND_DAYS if days_without_movement is None else days_without_movement

    margin = ((price - cost) * 100 / price) if price > 0 else 0.0
    days_of_stock = (stock / daily_demand) if daily_demand > 0 else NO_DEMAND_DAYS
    monthly_units = daily_demand * 30
    rotation = (monthly_units / stock) if stock > 0 else 0.0

    if stock <= min_stock * CRITICAL_STOCK_FACTOR:
        recommendation, alert_level, status = "REPONER", "CRITICO", "critical"
    elif stock <= min_stock:
        recommendation, alert_level, status = "REPONER", "ALTO", "low"
    elif idle_days > SLOW_MOVING_DAYS and margin < LOW_MARGIN_PERCENT:
        recommendation, alert_level, status = "LIQUIDAR", "MEDIO", "slow_moving"
    elif _is_excess(product):
        recommendation, alert_level, status = "REDUCIR", "MEDIO", "excess"
    else:
        recommendation, alert_level, status = "MANTENER", "BAJO", "ok"

    reorder_point = calculate_reorder_point(daily_demand, lead_time_days, safety)
    eoq = calculate_eoq(monthly_units * 12, DEFAULT_ORDERING_COST, DEFAULT_HOLDING_COST)

    suggested = 0
    if recommendation == "REPONER":
        target = max_stock if max_stock > 0 else reorder_point + eoq
        suggested = max(eoq, reorder_point - stock, target - stock, 0)

    return {
        "product_id": _field(product, "id"),
        "sku": _field(product, "sku"),
        "name": _field(product, "name"),
        "stock": stock,
        "daily_demand": round(daily_demand, 2),
        "days_of_stock": round(days_of_stock, 1),
        "days_without_movement": idle_days,
        "rotation": round(rotation, 2),
        "profit_margin": round(margin, 2),
        "reorder_point": reorder_point,
        "eoq": eoq,
        "status": status,
        "recommendation": recommendation,
        "suggested_order_quantity": suggested,
        "alert_level": alert_level,
    }


# ---------------------------------------------------------------------------
# DB-backed wrappers
# ---------------------------------------------------------------------------

def _completed_sales(company_id: int):
    return db.session.query(Sale).filter(Sale.company_id == company_id, Sale.status == "completed")


def annual_cogs_cents(company_id: int, as_of: datetime | None = None) -> int:
    """Cost of goods sold over the trailing 365 days, at current product cost."""
    as_of = as_of or utcnow()
    total = (
        db.session.query(db.func.coalesce(db.func.sum(Sale.quantity * Product.cost_cents), 0))
        .join(Product, Product.id == Sale.product_id)
        .filter(
            Sale.company_id == company_id,
            Sale.status == "completed",
            Sale.sale_date >= as_of - timedelta(days=365),
        )
        .scalar()
    )
    return int(total or 0)


def _month_keys(months: int, as_of: date) -> list[str]:
    keys = []
    year, month = as_of.year, as_of.month
    for _ in range(months):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            month = 12
            year -= 1
    return list(reversed(keys))


def _month_start(key: str) -> datetime:
    year, month = key.split("-")
    return datetime(int(year), int(month), 1)


def demand_history(company_id: int, months: int = 12, *, product_id: int | None = None) -> list[dict]:
    """
    Monthly units sold and revenue, oldest month first.

    Units come from completed sales plus out-movements that are not tied to
    a sale (manual dispatches), so nothing is counted twice.
    """
    keys = _month_keys(months, _today())
    since = _month_start(keys[0])
    buckets = {k: {"month": k, "units": 0, "revenue_cents": 0, "orders": 0} for k in keys}

    sales = _completed_sales(company_id).filter(Sale.sale_date >= since)
    if product_id is not None:
        sales = sales.filter(Sale.product_id == product_id)
    for sale in sales.all():
        key = sale.sale_date.strftime("%Y-%m")
        if key in buckets:
            buckets[key]["units"] += sale.quantity
            buckets[key]["revenue_cents"] += sale.total_cents
            buckets[key]["orders"] += 1

    movements = db.session.query(InventoryMovement).filter(
        InventoryMovement.company_id == company_id,
        InventoryMovement.movement_type == "out",
        InventoryMovement.sale_id.is_(None),
        InventoryMovement.movement_date >= since,
    )
    if product_id is not None:
        movements = movements.filter(InventoryMovement.product_id == product_id)
    for mv in movements.all():
        key = mv.movement_date.strftime("%Y-%m")
        if key in buckets:
            buckets[key]["units"] += mv.quantity

    return [buckets[k] for k in keys]


def _units_sold_since(company_id: int, since: datetime) -> dict[int, int]:
    rows = (
        db.session.query(Sale.product_id, db.func.coalesce(db.func.sum(Sale.quantity), 0))
        .filter(Sale.company_id == company_id, Sale.status == "completed", Sale.sale_date >= since)
        .group_by(Sale.product_id)
        .all()
    )
    return {pid: int(units) for pid, units in rows}


def _has_simulated_sales(company_id: int) -> bool:
    return _completed_sales(company_id).filter(Sale.is_simulated.is_(True)).first() is not None


def inventory_analytics(company_id: int) -> dict:
    products = company_products(company_id)
    abc_rows = classify_abc(products)
    alerts = generate_alerts(products)
    return {
        "kpis": calculate_kpis(products, annual_cogs_cents(company_id)),
        "abc": summarize_abc(abc_rows),
        "alerts_summary": _alerts_summary(alerts),
        "simulated": _has_simulated_sales(company_id),
    }


def apply_abc_classification(company_id: int) -> dict:
    """Classify active products and persist the class on each row."""
    products = company_products(company_id)
    rows = classify_abc(products)
    by_id = {p.id: p for p in products}
    for row in rows:
        by_id[row["product_id"]].abc_classification = row["classification"]
    db.session.commit()
    return {"items": rows, "count": len(rows), "summary": summarize_abc(rows)}


def _alerts_summary(alerts: list[dict]) -> dict:
    summary = {priority: 0 for priority in PRIORITY_ORDER}
    for a in alerts:
        summary[a["priority"]] += 1
    summary["total"] = len(alerts)
    return summary


def current_alerts(company_id: int, *, priority: str | None = None, alert_type: str | None = None) -> dict:
    alerts = generate_alerts(company_products(company_id))
    if priority:
        alerts = [a for a in alerts if a["priority"] == priority]
    if alert_type:
        alerts = [a for a in alerts if a["alert_type"] == alert_type]
    return {"items": alerts, "count": len(alerts), "summary": _alerts_summary(alerts)}


def sync_stock_alerts(company_id: int) -> dict:
    """
    Persist the current alert set.

    Unresolved rows are matched on (product_id, alert_type): matches are
    refreshed, new conditions are inserted and rows whose condition cleared
    are resolved.
    """
    fresh = {(a["product_id"], a["alert_type"]): a for a in generate_alerts(company_products(company_id))}
    existing = (
        db.session.query(StockAlert)
        .filter(StockAlert.company_id == company_id, StockAlert.is_resolved.is_(False))
        .all()
    )

    now = utcnow()
    resolved = 0
    seen = set()
    for row in existing:
        key = (row.product_id, row.alert_type)
        alert = fresh.get(key)
        if alert is None or key in seen:
            row.is_resolved = True
            row.resolved_at = now
            resolved += 1
            continue
        seen.add(key)
        row.priority = alert["priority"]
        row.message = alert["message"]
        row.threshold = alert["threshold"]
        row.current_value = alert["current_value"]

    created = 0
    for key, alert in fresh.items():
        if key in seen:
            continue
        db.session.add(
            StockAlert(
                company_id=company_id,
                product_id=alert["product_id"],
                alert_type=alert["alert_type"],
                priority=alert["priority"],
                message=alert["message"],
                threshold=alert["threshold"],
                current_value=alert["current_value"],
            )
        )
        created += 1

    db.session.commit()
    current_app.logger.info(
        "Stock alerts synced for company %s: %s created, %s resolved", company_id, created, resolved
    )
    return {"created": created, "resolved": resolved, "active": len(fresh)}


def product_analysis(*, company_id: int, product_id: int) -> dict:
    product = require_in_company(Product, product_id, company_id)
    now = utcnow()
    sold_30d = _units_sold_since(company_id, now - timedelta(days=30)).get(product.id, 0)

    lead_time = DEFAULT_LEAD_TIME_DAYS
    if product.supplier_id:
        supplier = db.session.get(Supplier, product.supplier_id)
        if supplier is not None and supplier.lead_time_days:
            lead_time = supplier.lead_time_days

    idle_days = None
    if product.last_movement_at is not None:
        idle_days = max(0, (now - product.last_movement_at.replace(tzinfo=None)).days)

    history = demand_history(company_id, 6, product_id=product.id)
    monthly = [h["units"] for h in history]
    mean = sum(monthly) / len(monthly)
    variance = sum((m - mean) ** 2 for m in monthly) / len(monthly)
    daily_std = math.sqrt(variance) / 30

    result = analyze_product(product, sold_30d / 30, days_without_movement=idle_days, lead_time_days=lead_time)
    result["lead_time_days"] = lead_time
    result["safety_stock_calculated"] = calculate_safety_stock(mean / 30, daily_std, lead_time, 95)
    result["demand_history"] = history
    return result


def executive_dashboard(company_id: int) -> dict:
    """Inventory KPIs with demand trend, movers and a naive next-month forecast."""
    products = company_products(company_id)
    history = demand_history(company_id, 12)
    now = utcnow()
    sold_90d = _units_sold_since(company_id, now - timedelta(days=90))

    movers = sorted(
        (
            {"product_id": p.id, "sku": p.sku, "name": p.name, "units_sold_90d": sold_90d.get(p.id, 0), "stock": p.stock}
            for p in products
        ),
        key=lambda r: (-r["units_sold_90d"], r["product_id"]),
    )
    slow = [
        r for r in movers
        if r["units_sold_90d"] == 0 and r["stock"] > 0
    ]

    recent = [h["units"] for h in history[-3:]]
    has_history = any(h["units"] for h in history)
    forecast = round(sum(recent) / len(recent)) if has_history else None

    return {
        "kpis": calculate_kpis(products, annual_cogs_cents(company_id)),
        "abc": summarize_abc(classify_abc(products)),
        "alerts_summary": _alerts_summary(generate_alerts(products)),
        "demand_history": history,
        "forecast_next_month_units": forecast,
        "top_movers": movers[:5],
        "slow_movers": slow[:5],
        "has_sales_history": has_history,
        "simulated": _has_simulated_sales(company_id),
    }


def dashboard_analytics(company_id: int) -> dict:
    """Cross-domain dashboard: revenue, inventory, collections."""
    now = utcnow()
    month_start = datetime(now.year, now.month, 1)

    total_revenue = (
        _completed_sales(company_id)
        .with_entities(db.func.coalesce(db.func.sum(Sale.total_cents), 0))
        .scalar()
    )
    monthly_sales = (
        _completed_sales(company_id)
        .filter(Sale.sale_date >= month_start)
        .with_entities(db.func.coalesce(db.func.sum(Sale.total_cents), 0))
        .scalar()
    )
    pending_collections = (
        db.session.query(db.func.coalesce(db.func.sum(Collection.amount_cents), 0))
        .filter(Collection.company_id == company_id, Collection.status.in_(("pending", "overdue")))
        .scalar()
    )

    products = company_products(company_id)
    categories = {
        c.id: c.name
        for c in db.session.query(Category).filter(Category.company_id == company_id).all()
    }
    distribution: dict[str, dict] = defaultdict(lambda: {"products": 0, "stock": 0, "value_cents": 0})
    for p in products:
        bucket = distribution[categories.get(p.category_id, "Sin categoría")]
        bucket["products"] += 1
        bucket["stock"] += p.stock
        bucket["value_cents"] += p.stock_value_cents

    top_rows = (
        db.session.query(
            Product.id,
            Product.sku,
            Product.name,
            db.func.sum(Sale.quantity).label("units"),
            db.func.sum(Sale.total_cents).label("revenue"),
        )
        .join(Sale, Sale.product_id == Product.id)
        .filter(Sale.company_id == company_id, Sale.status == "completed")
        .group_by(Product.id, Product.sku, Product.name)
        .order_by(db.func.sum(Sale.total_cents).desc(), Product.id.asc())
        .limit(5)
        .all()
    )

    status_counts = dict(
        db.session.query(Collection.status, db.func.count(Collection.id))
        .filter(Collection.company_id == company_id)
        .group_by(Collection.status)
        .all()
    )

    return {
        "kpis": {
            "total_revenue_cents": int(total_revenue or 0),
            "inventory_value_cents": sum(p.stock_value_cents for p in products),
            "pending_collections_cents": int(pending_collections or 0),
            "monthly_sales_cents": int(monthly_sales or 0),
        },
        "sales_trend": [
            {"month": h["month"], "revenue_cents": h["revenue_cents"], "units": h["units"]}
            for h in demand_history(company_id, 12)
        ],
        "inventory_distribution": [
            {"category": name, **values} for name, values in sorted(distribution.items())
        ],
        "top_products": [
            {
                "product_id": row.id,
                "sku": row.sku,
                "name": row.name,
                "units": int(row.units or 0),
                "revenue_cents": int(row.revenue or 0),
            }
            for row in top_rows
        ],
        "collection_status": {
            status: int(status_counts.get(status, 0))
            for status in ("pending", "paid", "overdue", "cancelled")
        },
        "generated_at": to_utc_z(now),
        "simulated": _has_simulated_sales(company_id),
    }
