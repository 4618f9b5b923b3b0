# Overview: Flask API routes for data ingestion; file uploads, dry-run validation and progress streams.

"""
Data ingestion routes.

Supports CSV, JSON, and Excel (.xlsx) uploads for products, sales,
receivables and customers. Headers may use Spanish aliases; see
import_schemas for the accepted names.

POST /api/data-ingestion/<type>         import, JSON summary
POST /api/data-ingestion/<type>/stream  import, application/x-ndjson progress
POST /api/data-ingestion/validate       dry run, nothing is written
GET  /api/data-ingestion/templates/<type>?format=csv|xlsx
GET  /api/data-ingestion/history

POST /api/import/<type> is kept as an alias of the plain import.
"""

from flask import Blueprint, Response, request, g, current_app, stream_with_context

from ..decorators import require_auth, require_permission
from ..services import import_service
from ..services.import_service import IngestionError
from ..services.import_schemas import SCHEMAS

imports_bp = Blueprint("imports", __name__, url_prefix="/api/data-ingestion")
legacy_import_bp = Blueprint("legacy_import", __name__, url_prefix="/api/import")


def _read_upload():
    """Return (filename, bytes) of the multipart "file" field or raise IngestionError."""
    if "file" not in request.files:
        raise IngestionError("file is required")
    upload = request.files["file"]
    filename = upload.filename or ""
    if not filename:
        raise IngestionError("file is required")
    return filename, upload.read()


def _check_type(data_type: str) -> None:
    if data_type not in SCHEMAS:
        raise IngestionError(f"Unsupported data type: {data_type}")


def _run_import(data_type: str):
    try:
        _check_type(data_type)
        filename, content = _read_upload()
        rows = import_service.parse_upload(filename, content)
        result = import_service.import_rows(
            company_id=g.company_id,
            data_type=data_type,
            rows=rows,
            file_name=filename,
            file_size=len(content),
            user_id=g.current_user.id,
        )
    except IngestionError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to import %s", data_type)
        return {"error": "Internal server error"}, 500
    return result, 201


@imports_bp.post("/<data_type>")
@require_auth
@require_permission("IMPORT_DATA")
def import_route(data_type: str):
    return _run_import(data_type)


@legacy_import_bp.post("/<data_type>")
@require_auth
@require_permission("IMPORT_DATA")
def legacy_import_route(data_type: str):
    return _run_import(data_type)


@imports_bp.post("/<data_type>/stream")
@require_auth
@require_permission("IMPORT_DATA")
def import_stream_route(data_type: str):
    """
    Import with progress.

    One JSON object per line: start, row_error*, progress*, then complete
    (or error). Closing the connection mid-import marks the run cancelled.
    """
    try:
        _check_type(data_type)
        filename, content = _read_upload()
        rows = import_service.parse_upload(filename, content)
    except IngestionError as e:
        return {"error": str(e)}, 400

    events = import_service.iter_import_progress(
        company_id=g.company_id,
        data_type=data_type,
        rows=rows,
        file_name=filename,
        file_size=len(content),
        user_id=g.current_user.id,
    )
    return Response(stream_with_context(events), mimetype="application/x-ndjson")


@imports_bp.post("/validate")
@require_auth
@require_permission("IMPORT_DATA")
def validate_route():
    data_type = request.form.get("data_type") or request.args.get("data_type")
    if not data_type:
        return {"error": "data_type is required"}, 400
    try:
        _check_type(data_type)
        filename, content = _read_upload()
        rows = import_service.parse_upload(filename, content)
        return import_service.validate_rows(data_type, rows)
    except IngestionError as e:
        return {"error": str(e)}, 400


@imports_bp.get("/templates/<data_type>")
@require_auth
@require_permission("IMPORT_DATA")
def template_route(data_type: str):
    fmt = (request.args.get("format") or "csv").lower()
    try:
        body, mimetype, filename = import_service.build_template(data_type, fmt)
    except IngestionError as e:
        return {"error": str(e)}, 400
    return Response(
        body,
        content_type=mimetype,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@imports_bp.get("/history")
@require_auth
@require_permission("IMPORT_DATA")
def history_route():
    return import_service.list_import_history(
        company_id=g.company_id,
        data_type=request.args.get("data_type"),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )
