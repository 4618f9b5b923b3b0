# Overview: Service-layer operations for the AI assistant; builds business context and calls Gemini.

"""
AI assistant.

Every entry point works without a GEMINI_API_KEY: chat answers with
AI_DISABLED_MESSAGE, analysis returns a payload with enabled=False, and the
inventory recommendations are rule-based and never call the model.

MULTI-TENANT: the business context sent to the model is built from one
company's rows only.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Collection, Product, Sale
from ..number_utils import format_cents
from . import gemini_client
from .gemini_client import AIServiceError
from .products_service import EXCESS_STOCK_FACTOR, company_products


AI_DISABLED_MESSAGE = "La IA está deshabilitada porque no hay GEMINI_API_KEY configurada."
AI_DISABLED_SUMMARY = "IA deshabilitada: falta GEMINI_API_KEY en variables de entorno."
AI_ERROR_MESSAGE = "Lo siento, hubo un error al procesar tu consulta. Por favor, inténtalo de nuevo."
AI_ANALYSIS_ERROR_SUMMARY = "No se pudo generar el análisis en este momento."

INSIGHT_TYPES = ("opportunity", "warning", "prediction", "recommendation")
INSIGHT_CATEGORIES = ("inventory", "sales", "collections", "general")

ANALYSIS_SCHEMA = {
    "type": "object",
    "properties": {
        "summary": {"type": "string"},
        "insights": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "type": {"type": "string", "enum": list(INSIGHT_TYPES)},
                    "title": {"type": "string"},
                    "message": {"type": "string"},
                    "priority": {"type": "string", "enum": ["low", "medium", "high", "critical"]},
                    "category": {"type": "string", "enum": list(INSIGHT_CATEGORIES)},
                    "confidence": {"type": "number"},
                },
                "required": ["type", "title", "message", "priority", "category", "confidence"],
            },
        },
        "recommendations": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["summary", "insights", "recommendations"],
}

CHAT_SYSTEM_PROMPT = """Eres un asistente de inteligencia de negocios especializado en análisis de datos comerciales.
Ayudas a empresarios a entender mejor su negocio y tomar decisiones informadas.

INSTRUCCIONES:
- Responde siempre en español
- Usa los datos reales proporcionados
- Sé específico y práctico en tus respuestas
- Proporciona recomendaciones accionables
- Si no tienes suficiente información, pide clarificaciones específicas
"""

ANALYSIS_SYSTEM_PROMPT = (
    "Eres un consultor de inteligencia de negocios experto. Analiza los datos de negocio "
    "y entrega un resumen ejecutivo, como máximo 5 insights y 5 recomendaciones. "
    "Usa datos reales y específicos. Responde en español."
)


def is_enabled() -> bool:
    return bool(gemini_client.api_key())


def status() -> dict:
    return {
        "enabled": is_enabled(),
        "chat_model": current_app.config.get("GEMINI_CHAT_MODEL"),
        "analysis_model": current_app.config.get("GEMINI_ANALYSIS_MODEL"),
    }


def build_business_context(company_id: int) -> dict:
    """Aggregate snapshot of one company used to ground model answers."""
    products = company_products(company_id)
    low = [p for p in products if 0 < p.stock <= p.min_stock]
    out = [p for p in products if p.stock == 0]

    completed = db.session.query(Sale).filter(Sale.company_id == company_id, Sale.status == "completed")
    sales_count = completed.count()
    revenue = completed.with_entities(func.coalesce(func.sum(Sale.total_cents), 0)).scalar()

    status_counts = dict(
        db.session.query(Collection.status, func.count(Collection.id))
        .filter(Collection.company_id == company_id)
        .group_by(Collection.status)
        .all()
    )

    top_rows = (
        db.session.query(Product.name, func.sum(Sale.quantity).label("units"))
        .join(Sale, Sale.product_id == Product.id)
        .filter(Sale.company_id == company_id, Sale.status == "completed")
        .group_by(Product.id, Product.name)
        .order_by(func.sum(Sale.quantity).desc())
        .limit(5)
        .all()
    )
    recent = completed.order_by(Sale.sale_date.desc(), Sale.id.desc()).limit(3).all()

    return {
        "total_products": len(products),
        "total_sales": sales_count,
        "total_revenue_cents": int(revenue or 0),
        "low_stock_count": len(low),
        "out_of_stock_count": len(out),
        "low_stock_items": [
            {"name": p.name, "stock": p.stock, "min_stock": p.min_stock} for p in (low + out)[:10]
        ],
        "pending_collections": int(status_counts.get("pending", 0)) + int(status_counts.get("overdue", 0)),
        "overdue_collections": int(status_counts.get("overdue", 0)),
        "top_products": [{"name": name, "units": int(units or 0)} for name, units in top_rows],
        "recent_sales": [
            {"customer": s.customer_name, "total_cents": s.total_cents} for s in recent
        ],
    }


def _context_text(ctx: dict) -> str:
    lines = [
        "CONTEXTO DE NEGOCIO ACTUAL:",
        f"- Total de productos: {ctx['total_products']}",
        f"- Total de ventas registradas: {ctx['total_sales']}",
        f"- Ingresos totales: {format_cents(ctx['total_revenue_cents'])}",
        f"- Productos con stock bajo: {ctx['low_stock_count']}",
        f"- Productos agotados: {ctx['out_of_stock_count']}",
        f"- Cobros pendientes: {ctx['pending_collections']}",
        f"- Cobros vencidos: {ctx['overdue_collections']}",
    ]
    if ctx["low_stock_items"]:
        lines.append("")
        lines.append("PRODUCTOS CON PROBLEMAS DE STOCK:")
        lines.extend(
            f"- {i['name']}: {i['stock']} unidades (mínimo: {i['min_stock']})" for i in ctx["low_stock_items"]
        )
    if ctx["top_products"]:
        lines.append("")
        lines.append("PRODUCTOS MÁS VENDIDOS:")
        lines.extend(f"- {i['name']}: {i['units']} unidades" for i in ctx["top_products"])
    if ctx["recent_sales"]:
        lines.append("")
        lines.append("VENTAS RECIENTES:")
        lines.extend(
            f"- {format_cents(s['total_cents'])} ({s['customer'] or 'sin cliente'})" for s in ctx["recent_sales"]
        )
    return "\n".join(lines)


def analyze_business_data(company_id: int) -> dict:
    """Structured analysis {summary, insights[], recommendations[]} from the analysis model."""
    if not is_enabled():
        return {"enabled": False, "summary": AI_DISABLED_SUMMARY, "insights": [], "recommendations": []}

    ctx = build_business_context(company_id)
    try:
        result = gemini_client.generate(
            model=current_app.config["GEMINI_ANALYSIS_MODEL"],
            contents=[{"role": "user", "parts": [{"text": _context_text(ctx)}]}],
            system_instruction=ANALYSIS_SYSTEM_PROMPT,
            response_schema=ANALYSIS_SCHEMA,
        )
    except AIServiceError as e:
        current_app.logger.warning("Business analysis failed for company %s: %s", company_id, e)
        return {
            "enabled": True,
            "error": str(e),
            "summary": AI_ANALYSIS_ERROR_SUMMARY,
            "insights": [],
            "recommendations": [],
        }

    return {
        "enabled": True,
        "summary": result.get("summary", ""),
        "insights": (result.get("insights") or [])[:5],
        "recommendations": (result.get("recommendations") or [])[:5],
    }


def to_gemini_contents(history: list[dict], message: str, limit: int) -> list[dict]:
    """Map stored turns to Gemini roles, keeping only the last `limit` history entries."""
    recent = history[-limit:] if limit > 0 else []
    contents = [
        {
            "role": "user" if turn.get("role") == "user" else "model",
            "parts": [{"text": turn.get("content", "")}],
        }
        for turn in recent
    ]
    contents.append({"role": "user", "parts": [{"text": message}]})
    return contents


def chat(company_id: int, history: list[dict], message: str) -> str:
    """
    One assistant turn.

    history: prior turns [{"role": "user"|"assistant", "content": str}], oldest first.
    """
    if not is_enabled():
        return AI_DISABLED_MESSAGE

    limit = int(current_app.config.get("AI_HISTORY_LIMIT", 20))
    system = CHAT_SYSTEM_PROMPT + "\n" + _context_text(build_business_context(company_id))
    try:
        return gemini_client.generate(
            model=current_app.config["GEMINI_CHAT_MODEL"],
            contents=to_gemini_contents(history, message, limit),
            system_instruction=system,
        )
    except AIServiceError as e:
        current_app.logger.warning("Chat turn failed for company %s: %s", company_id, e)
        return AI_ERROR_MESSAGE


def generate_inventory_recommendations(company_id: int) -> list[dict]:
    """Rule-based inventory insights; available with or without a model."""
    products = company_products(company_id)
    insights: list[dict] = []

    out = [p for p in products if p.stock == 0]
    if out:
        names = ", ".join(p.name for p in out[:3]) + ("..." if len(out) > 3 else "")
        insights.append({
            "type": "warning",
            "title": "Productos Agotados",
            "message": f"{len(out)} productos están completamente agotados: {names}",
            "priority": "critical",
            "category": "inventory",
            "confidence": 1.0,
            "data": {"products": [p.id for p in out]},
        })

    low = [p for p in products if 0 < p.stock <= p.min_stock]
    if low:
        insights.append({
            "type": "warning",
            "title": "Stock Bajo",
            "message": f"{len(low)} productos tienen stock por debajo del mínimo recomendado",
            "priority": "high",
            "category": "inventory",
            "confidence": 0.9,
            "data": {"products": [p.id for p in low]},
        })

    top_rows = (
        db.session.query(Sale.product_id, func.sum(Sale.quantity).label("units"))
        .filter(Sale.company_id == company_id, Sale.status == "completed")
        .group_by(Sale.product_id)
        .order_by(func.sum(Sale.quantity).desc(), Sale.product_id.asc())
        .limit(3)
        .all()
    )
    by_id = {p.id: p for p in products}
    top = [by_id[pid] for pid, _ in top_rows if pid in by_id]
    if top:
        insights.append({
            "type": "opportunity",
            "title": "Productos Estrella",
            "message": "Considera aumentar el stock de tus productos más vendidos: "
                       + ", ".join(p.name for p in top),
            "priority": "medium",
            "category": "inventory",
            "confidence": 0.8,
            "data": {"products": [p.id for p in top]},
        })

    excess = [p for p in products if p.max_stock > 0 and p.stock >= p.max_stock * EXCESS_STOCK_FACTOR]
    if excess:
        tied_up = sum(p.stock_value_cents for p in excess)
        insights.append({
            "type": "recommendation",
            "title": "Exceso de Inventario",
            "message": f"{len(excess)} productos superan el stock máximo; "
                       f"considera liquidar o promocionar ({format_cents(tied_up)} inmovilizados)",
            "priority": "medium",
            "category": "inventory",
            "confidence": 0.75,
            "data": {"products": [p.id for p in excess]},
        })

    return insights
