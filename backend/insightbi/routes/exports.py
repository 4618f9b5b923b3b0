# Overview: Flask API routes for file exports and rendered reports.

"""
Export routes.

GET /api/exports/<dataset>?format=csv|xlsx|pdf   one dataset (sales also takes start/end)
GET /api/exports/workbook                         inventory, sales and collections in one .xlsx
GET /api/reports/inventory?format=pdf|html        inventory report (KPIs, ABC, alerts)

Every file is built from the caller's company only.
"""
from flask import Blueprint, Response, request, g, current_app

from ..decorators import require_auth, require_permission
from ..services import export_service
from ..services.export_service import PdfUnavailableError, ReportError
from ..time_utils import parse_iso_datetime

exports_bp = Blueprint("exports", __name__, url_prefix="/api/exports")
reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _attachment(body: bytes, mimetype: str, filename: str) -> Response:
    return Response(
        body,
        content_type=mimetype,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _report_error(e: ReportError):
    if isinstance(e, PdfUnavailableError):
        return {"error": str(e)}, 503
    return {"error": str(e)}, 400


@exports_bp.get("/workbook")
@require_auth
@require_permission("EXPORT_DATA")
def export_workbook_route():
    try:
        body, mimetype, filename = export_service.build_workbook(company_id=g.company_id)
    except Exception:
        current_app.logger.exception("Failed to build export workbook")
        return {"error": "Internal server error"}, 500
    return _attachment(body, mimetype, filename)


@exports_bp.get("/<dataset>")
@require_auth
@require_permission("EXPORT_DATA")
def export_dataset_route(dataset: str):
    fmt = (request.args.get("format") or "csv").lower()
    filters = {}
    if dataset == "sales":
        try:
            filters["start"] = parse_iso_datetime(request.args.get("start"))
            filters["end"] = parse_iso_datetime(request.args.get("end"))
        except ValueError:
            return {"error": "start/end must be ISO-8601 datetimes"}, 400

    try:
        body, mimetype, filename = export_service.build_export(
            dataset, fmt, company_id=g.company_id, **filters
        )
    except ReportError as e:
        return _report_error(e)
    except Exception:
        current_app.logger.exception("Failed to export %s", dataset)
        return {"error": "Internal server error"}, 500
    return _attachment(body, mimetype, filename)


@reports_bp.get("/inventory")
@require_auth
@require_permission("EXPORT_DATA")
def inventory_report_route():
    fmt = (request.args.get("format") or "pdf").lower()
    if fmt not in ("pdf", "html"):
        return {"error": "format must be pdf or html"}, 400

    template = export_service.inventory_report_template(g.company_id)
    if fmt == "html":
        return Response(export_service.render_report_html(template), content_type=export_service.HTML_MIMETYPE)

    try:
        body = export_service.render_report_pdf(template)
    except ReportError as e:
        return _report_error(e)
    return _attachment(body, export_service.PDF_MIMETYPE, "reporte-inventario.pdf")
