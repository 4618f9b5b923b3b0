"""Exports (CSV, Excel) and printable reports (HTML/PDF via WeasyPrint).

All tabular exports are described by one ExportConfig; all reports by one
ReportTemplate made of sections. There is a single HTML renderer, and the
PDF path only hands its output to WeasyPrint, so the tabular PDF and the
inventory dashboard report share layout and styling.
"""
from __future__ import annotations

import csv
import io
import logging
import os
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable

from jinja2 import Environment, FileSystemLoader
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from ..extensions import db
from ..models import AccountReceivable, Category, Collection, Customer, Product, Sale
from ..number_utils import format_chilean_number, format_currency
from ..time_utils import today, utcnow

log = logging.getLogger(__name__)

_TEMPLATE_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "templates", "reports")

_jinja_env = Environment(
    loader=FileSystemLoader(_TEMPLATE_DIR),
    autoescape=True,
)

COLUMN_FORMATS = ("text", "number", "currency", "date", "percentage")

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
CSV_MIMETYPE = "text/csv; charset=utf-8"
PDF_MIMETYPE = "application/pdf"
HTML_MIMETYPE = "text/html; charset=utf-8"

HEADER_FILL = PatternFill(start_color="3B82F6", end_color="3B82F6", fill_type="solid")
STRIPE_FILL = PatternFill(start_color="F8FAFC", end_color="F8FAFC", fill_type="solid")
HEADER_FONT = Font(bold=True, color="FFFFFF")
HEADER_BORDER = Border(*(Side(style="thin", color="000000"),) * 4)
CELL_BORDER = Border(*(Side(style="thin", color="CCCCCC"),) * 4)

XLSX_NUMBER_FORMATS = {
    "currency": '"$"#,##0',
    "number": "#,##0",
    "percentage": "0.00%",
    "date": "dd/mm/yyyy",
}

SHEET_NAME_MAX = 31
_SHEET_NAME_INVALID = re.compile(r"[\[\]:*?/\\]")


class ReportError(ValueError):
    """Raised when an export or report cannot be produced."""


class PdfUnavailableError(ReportError):
    """The PDF engine (WeasyPrint and its native libraries) cannot be loaded."""


@dataclass
class ExportColumn:
    key: str
    header: str
    width: int = 15
    format: str = "text"

    def __post_init__(self):
        if self.format not in COLUMN_FORMATS:
            raise ReportError(f"Unknown column format: {self.format}")


@dataclass
class ExportConfig:
    title: str
    filename: str
    columns: list[ExportColumn]
    rows: list[dict[str, Any]]
    subtitle: str | None = None
    summary: list[tuple[str, Any]] = field(default_factory=list)


@dataclass
class KpiCard:
    label: str
    value: str
    hint: str | None = None


@dataclass
class KpiSection:
    cards: list[KpiCard]
    title: str | None = None


@dataclass
class TableSection:
    config: ExportConfig
    title: str | None = None


@dataclass
class Bar:
    label: str
    value: float
    display: str | None = None


@dataclass
class BarChartSection:
    title: str
    bars: list[Bar]


@dataclass
class TextSection:
    text: str
    title: str | None = None


@dataclass
class ReportTemplate:
    title: str
    sections: list[Any]
    subtitle: str | None = None


# -- Value formatting ---------------------------------------------------------------

def format_value(value: Any, fmt: str) -> str:
    """Human-readable cell text (es-CL conventions) for HTML/PDF output."""
    if value is None or value == "":
        return ""
    if fmt == "currency":
        return format_currency(float(value), "CLP")
    if fmt == "number":
        number = float(value)
        return format_chilean_number(number, 0 if number.is_integer() else 2)
    if fmt == "percentage":
        return f"{format_chilean_number(float(value), 2)}%"
    if fmt == "date":
        if isinstance(value, (date, datetime)):
            return value.strftime("%d/%m/%Y")
        return str(value)
    return str(value)


def _raw_value(value: Any, fmt: str) -> Any:
    if value is None:
        return ""
    if fmt == "date" and isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


# -- CSV / Excel --------------------------------------------------------------------

def to_csv(config: ExportConfig) -> bytes:
    """UTF-8 with BOM so Excel opens accented headers correctly."""
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow([c.header for c in config.columns])
    for row in config.rows:
        writer.writerow([_raw_value(row.get(c.key), c.format) for c in config.columns])
    return ("\ufeff" + buf.getvalue()).encode("utf-8")


def _write_data_sheet(ws, config: ExportConfig) -> None:
    ws.append([c.header for c in config.columns])
    for idx, column in enumerate(config.columns, start=1):
        cell = ws.cell(row=1, column=idx)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.border = HEADER_BORDER
        cell.alignment = Alignment(horizontal="center", vertical="center")
        ws.column_dimensions[get_column_letter(idx)].width = column.width

    for r, row in enumerate(config.rows, start=2):
        for idx, column in enumerate(config.columns, start=1):
            value = row.get(column.key)
            if column.format == "percentage" and value is not None:
                value = float(value) / 100
            cell = ws.cell(row=r, column=idx, value=value)
            cell.border = CELL_BORDER
            number_format = XLSX_NUMBER_FORMATS.get(column.format)
            if number_format:
                cell.number_format = number_format
            if column.format in ("currency", "number", "percentage"):
                cell.alignment = Alignment(horizontal="right")
            elif column.format == "date":
                cell.alignment = Alignment(horizontal="center")
            if r % 2 == 0:
                cell.fill = STRIPE_FILL
    ws.freeze_panes = "A2"


def _write_summary_sheet(ws, config: ExportConfig) -> None:
    ws.append([config.title, ""])
    ws["A1"].font = Font(bold=True, size=14)
    if config.subtitle:
        ws.append([config.subtitle, ""])
    ws.append(["", ""])
    for label, value in config.summary:
        ws.append([label, value])
    ws.append(["", ""])
    ws.append(["Generado el:", today().strftime("%d/%m/%Y")])
    ws.column_dimensions["A"].width = 35
    ws.column_dimensions["B"].width = 25


def _workbook_bytes(wb: Workbook) -> bytes:
    out = io.BytesIO()
    wb.save(out)
    return out.getvalue()


def to_xlsx(config: ExportConfig) -> bytes:
    """Styled workbook: a "Resumen" sheet when there is a summary, then "Datos"."""
    wb = Workbook()
    if config.summary:
        _write_summary_sheet(wb.active, config)
        wb.active.title = "Resumen"
        data_ws = wb.create_sheet("Datos")
    else:
        data_ws = wb.active
        data_ws.title = "Datos"
    _write_data_sheet(data_ws, config)
    return _workbook_bytes(wb)


def sheet_names(titles: list[str]) -> list[str]:
    """Excel-safe, unique sheet names (<= 31 chars, no []:*?/\\)."""
    used: set[str] = set()
    names = []
    for title in titles:
        base = _SHEET_NAME_INVALID.sub("", title or "").strip()[:SHEET_NAME_MAX] or "Hoja"
        name = base
        n = 2
        while name.lower() in used:
            suffix = f" ({n})"
            name = base[: SHEET_NAME_MAX - len(suffix)] + suffix
            n += 1
        used.add(name.lower())
        names.append(name)
    return names


def to_xlsx_multi(configs: list[ExportConfig]) -> bytes:
    if not configs:
        raise ReportError("At least one sheet is required")
    wb = Workbook()
    wb.remove(wb.active)
    for name, config in zip(sheet_names([c.title for c in configs]), configs):
        _write_data_sheet(wb.create_sheet(name), config)
    return _workbook_bytes(wb)


# -- Reports (HTML / PDF) -----------------------------------------------------------

def _section_view(section: Any) -> dict:
    if isinstance(section, KpiSection):
        return {"kind": "kpis", "title": section.title, "cards": section.cards}
    if isinstance(section, TableSection):
        config = section.config
        return {
            "kind": "table",
            "title": section.title or config.title,
            "headers": [c.header for c in config.columns],
            "aligns": ["right" if c.format in ("currency", "number", "percentage") else "left"
                       for c in config.columns],
            "rows": [[format_value(row.get(c.key), c.format) for c in config.columns] for row in config.rows],
            "summary": [(label, value) for label, value in config.summary],
        }
    if isinstance(section, BarChartSection):
        top = max((b.value for b in section.bars), default=0)
        return {
            "kind": "bars",
            "title": section.title,
            "bars": [
                {
                    "label": b.label,
                    "display": b.display if b.display is not None else format_chilean_number(b.value, 0),
                    "percent": round(b.value * 100 / top, 1) if top > 0 else 0,
                }
                for b in section.bars
            ],
        }
    if isinstance(section, TextSection):
        return {"kind": "text", "title": section.title, "text": section.text}
    raise ReportError(f"Unsupported report section: {type(section).__name__}")


def render_report_html(template: ReportTemplate) -> str:
    page = _jinja_env.get_template("report.html")
    return page.render(
        title=template.title,
        subtitle=template.subtitle,
        sections=[_section_view(s) for s in template.sections],
        generated_at=utcnow().strftime("%d/%m/%Y %H:%M UTC"),
    )


def write_pdf(html: str) -> bytes:
    from weasyprint import HTML
    return HTML(string=html).write_pdf()


def render_report_pdf(template: ReportTemplate) -> bytes:
    html = render_report_html(template)
    try:
        return write_pdf(html)
    except (ImportError, OSError) as exc:
        # WeasyPrint raises OSError when its native libraries are missing.
        log.error("PDF rendering failed: %s", exc)
        raise PdfUnavailableError("PDF rendering is not available on this server") from exc


def to_pdf(config: ExportConfig) -> bytes:
    sections: list[Any] = []
    if config.summary:
        sections.append(KpiSection(cards=[KpiCard(label=str(l), value=str(v)) for l, v in config.summary]))
    sections.append(TableSection(config=ExportConfig(
        title=config.title, filename=config.filename, columns=config.columns, rows=config.rows,
    )))
    return render_report_pdf(ReportTemplate(title=config.title, subtitle=config.subtitle, sections=sections))


# -- Preset configs -----------------------------------------------------------------

def _stamp() -> str:
    return today().isoformat()


def _stock_status(p: Product) -> str:
    if p.stock == 0:
        return "Agotado"
    if p.stock <= p.min_stock:
        return "Stock bajo"
    if p.max_stock and p.stock >= p.max_stock * 1.2:
        return "Exceso"
    return "Normal"


def inventory_export_config(company_id: int) -> ExportConfig:
    categories = {
        c.id: c.name for c in db.session.query(Category).filter(Category.company_id == company_id).all()
    }
    products = (
        db.session.query(Product)
        .filter(Product.company_id == company_id, Product.is_active.is_(True))
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )
    rows = [
        {
            "name": p.name,
            "sku": p.sku,
            "category": categories.get(p.category_id, ""),
            "stock": p.stock,
            "min_stock": p.min_stock,
            "max_stock": p.max_stock,
            "cost": p.cost_cents / 100,
            "price": p.price_cents / 100,
            "stock_value": p.stock_value_cents / 100,
            "status": _stock_status(p),
        }
        for p in products
    ]
    return ExportConfig(
        title="Reporte de Inventario",
        subtitle="Control de stock y análisis de productos",
        filename=f"inventario-{_stamp()}",
        columns=[
            ExportColumn("name", "Producto", 40),
            ExportColumn("sku", "SKU", 20),
            ExportColumn("category", "Categoría", 25),
            ExportColumn("stock", "Stock Actual", 15, "number"),
            ExportColumn("min_stock", "Stock Mínimo", 15, "number"),
            ExportColumn("max_stock", "Stock Máximo", 15, "number"),
            ExportColumn("cost", "Costo Unitario", 18, "currency"),
            ExportColumn("price", "Precio Venta", 18, "currency"),
            ExportColumn("stock_value", "Valor Stock", 20, "currency"),
            ExportColumn("status", "Estado", 15),
        ],
        rows=rows,
        summary=[
            ("Total de productos", len(rows)),
            ("Valor total del inventario", format_currency(sum(r["stock_value"] for r in rows), "CLP")),
            ("Productos agotados", sum(1 for r in rows if r["status"] == "Agotado")),
            ("Productos con stock bajo", sum(1 for r in rows if r["status"] == "Stock bajo")),
        ],
    )


def sales_export_config(company_id: int, start: datetime | None = None, end: datetime | None = None) -> ExportConfig:
    query = (
        db.session.query(Sale, Product.name)
        .join(Product, Product.id == Sale.product_id)
        .filter(Sale.company_id == company_id)
    )
    if start is not None:
        query = query.filter(Sale.sale_date >= start)
    if end is not None:
        query = query.filter(Sale.sale_date <= end)
    rows = [
        {
            "date": sale.sale_date.date() if sale.sale_date else None,
            "product": product_name,
            "quantity": sale.quantity,
            "unit_price": sale.unit_price_cents / 100,
            "total": sale.total_cents / 100,
            "customer": sale.customer_name or "",
            "status": sale.status,
        }
        for sale, product_name in query.order_by(Sale.sale_date.desc(), Sale.id.desc()).all()
    ]
    completed = [r for r in rows if r["status"] == "completed"]
    return ExportConfig(
        title="Reporte de Ventas",
        subtitle="Análisis de transacciones y rendimiento",
        filename=f"ventas-{_stamp()}",
        columns=[
            ExportColumn("date", "Fecha", 14, "date"),
            ExportColumn("product", "Producto", 40),
            ExportColumn("quantity", "Cantidad", 12, "number"),
            ExportColumn("unit_price", "Precio Unit.", 18, "currency"),
            ExportColumn("total", "Total", 18, "currency"),
            ExportColumn("customer", "Cliente", 30),
            ExportColumn("status", "Estado", 14),
        ],
        rows=rows,
        summary=[
            ("Total de ventas", len(completed)),
            ("Ingresos", format_currency(sum(r["total"] for r in completed), "CLP")),
            ("Unidades vendidas", sum(r["quantity"] for r in completed)),
        ],
    )


def collections_export_config(company_id: int) -> ExportConfig:
    collections = (
        db.session.query(Collection)
        .filter(Collection.company_id == company_id)
        .order_by(Collection.due_date.asc(), Collection.id.asc())
        .all()
    )
    as_of = today()
    rows = [
        {
            "customer": c.customer_name,
            "amount": c.amount_cents / 100,
            "due_date": c.due_date,
            "status": c.status,
            "overdue_days": max((as_of - c.due_date).days, 0) if c.status in ("pending", "overdue") else 0,
            "paid_at": c.paid_at.date() if c.paid_at else None,
        }
        for c in collections
    ]
    open_rows = [r for r in rows if r["status"] in ("pending", "overdue")]
    return ExportConfig(
        title="Reporte de Cobranza",
        subtitle="Estado de cuentas por cobrar y pagos",
        filename=f"cobranza-{_stamp()}",
        columns=[
            ExportColumn("customer", "Cliente", 35),
            ExportColumn("amount", "Monto", 18, "currency"),
            ExportColumn("due_date", "Fecha Vencimiento", 16, "date"),
            ExportColumn("status", "Estado", 14),
            ExportColumn("overdue_days", "Días Vencido", 12, "number"),
            ExportColumn("paid_at", "Fecha Pago", 16, "date"),
        ],
        rows=rows,
        summary=[
            ("Cobros pendientes", len(open_rows)),
            ("Monto pendiente", format_currency(sum(r["amount"] for r in open_rows), "CLP")),
            ("Cobros vencidos", sum(1 for r in rows if r["status"] == "overdue")),
        ],
    )


def receivables_export_config(company_id: int) -> ExportConfig:
    customers = {
        c.id: c.name for c in db.session.query(Customer).filter(Customer.company_id == company_id).all()
    }
    receivables = (
        db.session.query(AccountReceivable)
        .filter(AccountReceivable.company_id == company_id)
        .order_by(AccountReceivable.due_date.asc(), AccountReceivable.id.asc())
        .all()
    )
    rows = [
        {
            "invoice_number": r.invoice_number,
            "customer": customers.get(r.customer_id, ""),
            "invoice_date": r.invoice_date,
            "due_date": r.due_date,
            "amount": r.original_amount_cents / 100,
            "paid": (r.original_amount_cents - r.outstanding_amount_cents) / 100,
            "outstanding": r.outstanding_amount_cents / 100,
            "status": r.status,
            "aging_days": r.aging_days,
            "priority": r.priority,
        }
        for r in receivables
    ]
    return ExportConfig(
        title="Cuentas por Cobrar",
        subtitle="Antigüedad de saldos por factura",
        filename=f"cuentas-por-cobrar-{_stamp()}",
        columns=[
            ExportColumn("invoice_number", "Factura", 16),
            ExportColumn("customer", "Cliente", 35),
            ExportColumn("invoice_date", "Fecha Emisión", 14, "date"),
            ExportColumn("due_date", "Fecha Vencimiento", 16, "date"),
            ExportColumn("amount", "Monto", 18, "currency"),
            ExportColumn("paid", "Pagado", 18, "currency"),
            ExportColumn("outstanding", "Pendiente", 18, "currency"),
            ExportColumn("status", "Estado", 16),
            ExportColumn("aging_days", "Días Vencido", 12, "number"),
            ExportColumn("priority", "Prioridad", 12),
        ],
        rows=rows,
        summary=[
            ("Facturas", len(rows)),
            ("Saldo pendiente", format_currency(sum(r["outstanding"] for r in rows), "CLP")),
        ],
    )


def customers_export_config(company_id: int) -> ExportConfig:
    customers = (
        db.session.query(Customer)
        .filter(Customer.company_id == company_id)
        .order_by(Customer.name.asc(), Customer.id.asc())
        .all()
    )
    rows = [
        {
            "code": c.code or "",
            "name": c.name,
            "tax_id": c.tax_id or "",
            "email": c.email or "",
            "phone": c.phone or "",
            "city": c.city or "",
            "segment": c.segment or "",
            "credit_limit": (c.credit_limit_cents or 0) / 100,
        }
        for c in customers
    ]
    return ExportConfig(
        title="Clientes",
        filename=f"clientes-{_stamp()}",
        columns=[
            ExportColumn("code", "Código", 14),
            ExportColumn("name", "Nombre", 35),
            ExportColumn("tax_id", "RUT", 16),
            ExportColumn("email", "Correo", 30),
            ExportColumn("phone", "Teléfono", 18),
            ExportColumn("city", "Ciudad", 18),
            ExportColumn("segment", "Segmento", 16),
            ExportColumn("credit_limit", "Límite de Crédito", 18, "currency"),
        ],
        rows=rows,
        summary=[("Total de clientes", len(rows))],
    )


EXPORT_DATASETS: dict[str, Callable[..., ExportConfig]] = {
    "inventory": inventory_export_config,
    "sales": sales_export_config,
    "collections": collections_export_config,
    "receivables": receivables_export_config,
    "customers": customers_export_config,
}

WORKBOOK_DATASETS = ("inventory", "sales", "collections")


def build_export(dataset: str, fmt: str, *, company_id: int, **filters) -> tuple[bytes, str, str]:
    """Returns (body, mimetype, download filename)."""
    builder = EXPORT_DATASETS.get(dataset)
    if builder is None:
        raise ReportError(f"Unknown dataset: {dataset}")
    config = builder(company_id, **filters)
    if fmt == "csv":
        return to_csv(config), CSV_MIMETYPE, f"{config.filename}.csv"
    if fmt == "xlsx":
        return to_xlsx(config), XLSX_MIMETYPE, f"{config.filename}.xlsx"
    if fmt == "pdf":
        return to_pdf(config), PDF_MIMETYPE, f"{config.filename}.pdf"
    raise ReportError("format must be csv, xlsx or pdf")


def build_workbook(*, company_id: int) -> tuple[bytes, str, str]:
    configs = [EXPORT_DATASETS[name](company_id) for name in WORKBOOK_DATASETS]
    return to_xlsx_multi(configs), XLSX_MIMETYPE, f"insightbi-{_stamp()}.xlsx"


def inventory_report_template(company_id: int) -> ReportTemplate:
    """Inventory dashboard: KPI cards, ABC value bars, alert table."""
    from .analytics_service import (
        annual_cogs_cents,
        calculate_kpis,
        classify_abc,
        generate_alerts,
        summarize_abc,
    )
    from .products_service import company_products

    products = company_products(company_id)
    kpis = calculate_kpis(products, annual_cogs_cents(company_id))
    abc = summarize_abc(classify_abc(products))
    alerts = generate_alerts(products)

    priority_labels = {"critical": "Crítica", "high": "Alta", "medium": "Media", "low": "Baja"}
    alert_config = ExportConfig(
        title="Alertas de Inventario",
        filename="alertas",
        columns=[
            ExportColumn("sku", "SKU", 16),
            ExportColumn("product_name", "Producto", 35),
            ExportColumn("priority", "Prioridad", 12),
            ExportColumn("message", "Detalle", 50),
        ],
        rows=[{**a, "priority": priority_labels[a["priority"]]} for a in alerts],
    )

    return ReportTemplate(
        title="Reporte de Inventario",
        subtitle=f"Generado el {today().strftime('%d/%m/%Y')}",
        sections=[
            KpiSection(cards=[
                KpiCard("Productos", format_chilean_number(kpis["total_products"])),
                KpiCard("Valor del inventario", format_currency(kpis["total_value_cents"] / 100, "CLP")),
                KpiCard("Rotación anual", format_chilean_number(kpis["turnover"], 2),
                        f"{format_chilean_number(kpis['days_of_inventory'], 0)} días de inventario"),
                KpiCard("Nivel de servicio", f"{format_chilean_number(kpis['service_level'], 1)}%"),
                KpiCard("Stock bajo", str(kpis["low_stock_count"])),
                KpiCard("Agotados", str(kpis["out_of_stock_count"])),
            ]),
            BarChartSection(
                title="Clasificación ABC (valor de inventario)",
                bars=[
                    Bar(
                        label=f"Clase {klass} ({abc[klass]['count']} productos)",
                        value=abc[klass]["value_cents"] / 100,
                        display=f"{format_chilean_number(abc[klass]['value_percent'], 1)}%",
                    )
                    for klass in ("A", "B", "C")
                ],
            ),
            TableSection(config=alert_config),
            TextSection(
                title="Índice de liquidez",
                text=f"El índice de liquidez del inventario es {kpis['liquidity_index']} "
                     f"sobre 100 con una rotación de {format_chilean_number(kpis['turnover'], 2)}.",
            ),
        ],
    )
