# Overview: Service-layer operations for file ingestion; parsing, validation and row-by-row import.

from __future__ import annotations

import csv
import io
import json
import logging
from typing import Any, Iterator

from flask import current_app
from openpyxl import Workbook, load_workbook

from ..extensions import db
from ..models import Company, DataImport
from ..time_utils import utcnow
from .company_service import current_storage_mb
from .import_schemas import SCHEMAS, BaseImportSchema, SchemaContext
from .query_utils import paginate_query

log = logging.getLogger(__name__)


class IngestionError(ValueError):
    """Raised when an upload cannot be read or imported."""


CSV_EXTENSIONS = (".csv", ".txt", ".tsv")
EXCEL_EXTENSIONS = (".xlsx", ".xlsm")
JSON_EXTENSIONS = (".json",)

PREVIEW_ROWS = 10
MAX_STORED_ERRORS = 200
# Header is row 1 in every source format, so data row i is reported as i + 2.
FIRST_DATA_ROW = 2


def get_schema(data_type: str) -> BaseImportSchema:
    schema = SCHEMAS.get(data_type)
    if schema is None:
        raise IngestionError(f"Unsupported data type: {data_type}")
    return schema


# -- Parsing ----------------------------------------------------------------------

def _decode(content: bytes) -> str:
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        return content.decode("latin-1")


def _is_blank(row: dict[str, Any]) -> bool:
    return all(v is None or (isinstance(v, str) and not v.strip()) for v in row.values())


def _parse_csv(content: bytes) -> list[dict[str, Any]]:
    text = _decode(content).lstrip("\ufeff")
    if not text.strip():
        return []
    sample = text[:4096]
    try:
        dialect = csv.Sniffer().sniff(sample, delimiters=",;\t")
        delimiter = dialect.delimiter
    except csv.Error:
        delimiter = ","
    reader = csv.DictReader(io.StringIO(text), delimiter=delimiter)
    rows = []
    for row in reader:
        row.pop(None, None)  # overflow cells on ragged lines
        if not _is_blank(row):
            rows.append(row)
    return rows


def _parse_excel(content: bytes) -> list[dict[str, Any]]:
    try:
        wb = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except Exception as exc:  # noqa: BLE001
        raise IngestionError(f"Could not read Excel file: {exc}")
    try:
        ws = wb.worksheets[0]
        values = ws.iter_rows(values_only=True)
        header = next(values, None)
        if header is None:
            return []
        headers = [str(h).strip() if h is not None else "" for h in header]
        rows = []
        for raw in values:
            row = {h: v for h, v in zip(headers, raw) if h}
            if not _is_blank(row):
                rows.append(row)
        return rows
    finally:
        wb.close()


def _parse_json(content: bytes) -> list[dict[str, Any]]:
    try:
        payload = json.loads(_decode(content))
    except json.JSONDecodeError as exc:
        raise IngestionError(f"Invalid JSON: {exc.msg}")
    if isinstance(payload, dict):
        payload = payload.get("data")
    if not isinstance(payload, list) or not all(isinstance(item, dict) for item in payload):
        raise IngestionError("JSON must be an array of objects or {\"data\": [...]}")
    return payload


def parse_upload(filename: str, content: bytes) -> list[dict[str, Any]]:
    """
    Read an uploaded CSV / Excel / JSON file into a list of raw row dicts.

    Keys are the source headers as written; alias mapping happens per schema.
    """
    name = (filename or "").lower()
    if name.endswith(CSV_EXTENSIONS):
        rows = _parse_csv(content)
    elif name.endswith(EXCEL_EXTENSIONS):
        rows = _parse_excel(content)
    elif name.endswith(JSON_EXTENSIONS):
        rows = _parse_json(content)
    else:
        raise IngestionError("Unsupported file type")
    log.debug("Parsed %s rows from %s", len(rows), filename)
    return rows


# -- Validation -------------------------------------------------------------------

def validate_rows(data_type: str, rows: list[dict[str, Any]]) -> dict[str, Any]:
    """Dry run: normalize and validate every row without writing anything."""
    schema = get_schema(data_type)
    errors = []
    preview = []
    valid = 0
    for index, raw in enumerate(rows):
        normalized = schema.normalize_row(raw)
        row_errors = schema.validate_row(normalized)
        if row_errors:
            errors.append({"row": index + FIRST_DATA_ROW, "errors": row_errors})
            continue
        valid += 1
        if len(preview) < PREVIEW_ROWS:
            preview.append(_jsonable(schema.public(normalized)))
    return {
        "data_type": data_type,
        "total": len(rows),
        "valid": valid,
        "invalid": len(rows) - valid,
        "errors": errors,
        "preview": preview,
    }


def _jsonable(row: dict[str, Any]) -> dict[str, Any]:
    return {k: (v.isoformat() if hasattr(v, "isoformat") else v) for k, v in row.items()}


# -- Import -----------------------------------------------------------------------

def _ensure_storage(company_id: int, file_size: int) -> None:
    company = db.session.get(Company, company_id)
    if company is None:
        raise IngestionError("Company not found")
    if current_storage_mb(company_id) + file_size / (1024 * 1024) > company.max_storage_mb:
        raise IngestionError("Storage quota exceeded for this company")


def _final_status(successful: int, failed: int) -> str:
    if failed == 0:
        return "completed"
    if successful == 0:
        return "failed"
    return "completed_with_errors"


def _import_events(
    *,
    company_id: int,
    data_type: str,
    rows: list[dict[str, Any]],
    file_name: str | None = None,
    file_size: int = 0,
    user_id: int | None = None,
    batch_size: int | None = None,
) -> Iterator[dict[str, Any]]:
    schema = get_schema(data_type)
    _ensure_storage(company_id, file_size)
    batch_size = max(1, int(batch_size or current_app.config.get("IMPORT_BATCH_SIZE", 100)))

    record = DataImport(
        company_id=company_id,
        data_type=data_type,
        file_name=file_name,
        file_size=file_size,
        status="processing",
        total_records=len(rows),
        created_by_user_id=user_id,
    )
    db.session.add(record)
    db.session.commit()
    import_id = record.id

    total = len(rows)
    counts = {"successful": 0, "created": 0, "updated": 0, "failed": 0}
    errors: list[dict[str, Any]] = []

    def _progress(processed: int) -> dict[str, Any]:
        return {
            "type": "progress",
            "processed": processed,
            "total": total,
            "successful": counts["successful"],
            "failed": counts["failed"],
            "percent": round(processed * 100 / total) if total else 100,
        }

    def _store_counts() -> None:
        record.successful_records = counts["successful"]
        record.created_records = counts["created"]
        record.updated_records = counts["updated"]
        record.failed_records = counts["failed"]
        record.errors = errors[:MAX_STORED_ERRORS]

    processed = 0
    try:
        yield {"type": "start", "import_id": import_id, "data_type": data_type, "total": total}

        for index, raw in enumerate(rows):
            row_number = index + FIRST_DATA_ROW
            normalized = schema.normalize_row(raw)
            row_errors = schema.validate_row(normalized)

            if not row_errors:
                nested = db.session.begin_nested()
                try:
                    outcome = schema.post_row(
                        normalized,
                        SchemaContext(
                            company_id=company_id,
                            user_id=user_id,
                            import_id=import_id,
                            row_number=row_number,
                        ),
                    )
                    nested.commit()
                    counts["successful"] += 1
                    counts[outcome] += 1
                except Exception as exc:  # noqa: BLE001
                    nested.rollback()
                    row_errors = [str(exc)]

            if row_errors:
                counts["failed"] += 1
                errors.append({"row": row_number, "errors": row_errors})
                yield {"type": "row_error", "row": row_number, "errors": row_errors}

            processed += 1
            if processed % batch_size == 0:
                _store_counts()
                db.session.commit()
                yield _progress(processed)

        _store_counts()
        record.status = _final_status(counts["successful"], counts["failed"])
        record.completed_at = utcnow()
        db.session.commit()
        if total % batch_size or total == 0:
            yield _progress(processed)

        current_app.logger.info(
            "Import %s (%s) for company %s: %s ok, %s failed",
            import_id, data_type, company_id, counts["successful"], counts["failed"],
        )
        yield {"type": "complete", **_result(record, errors)}
    except GeneratorExit:
        # Client went away mid-stream: keep what was committed, stop here.
        db.session.rollback()
        record = db.session.get(DataImport, import_id)
        if record is not None and record.status == "processing":
            record.status = "cancelled"
            record.completed_at = utcnow()
            db.session.commit()
        current_app.logger.warning("Import %s cancelled after %s rows", import_id, processed)
        raise


def _result(record: DataImport, errors: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "import_id": record.id,
        "status": record.status,
        "total": record.total_records,
        "successful": record.successful_records,
        "created": record.created_records,
        "updated": record.updated_records,
        "failed": record.failed_records,
        "errors": errors,
    }


def import_rows(
    *,
    company_id: int,
    data_type: str,
    rows: list[dict[str, Any]],
    file_name: str | None = None,
    file_size: int = 0,
    user_id: int | None = None,
) -> dict[str, Any]:
    """
    Import rows synchronously.

    Each valid row is written inside its own SAVEPOINT; a failing row is
    rolled back alone and reported, earlier rows stay. The run is recorded
    as a DataImport.
    """
    result: dict[str, Any] = {}
    for event in _import_events(
        company_id=company_id,
        data_type=data_type,
        rows=rows,
        file_name=file_name,
        file_size=file_size,
        user_id=user_id,
    ):
        if event["type"] == "complete":
            result = {k: v for k, v in event.items() if k != "type"}
    return result


def iter_import_progress(**kwargs) -> Iterator[str]:
    """Same as import_rows, as JSON-lines progress events for a streaming response."""
    events = _import_events(**kwargs)
    try:
        for event in events:
            yield json.dumps(event, ensure_ascii=False, default=str) + "\n"
    except IngestionError as exc:
        yield json.dumps({"type": "error", "error": str(exc)}, ensure_ascii=False) + "\n"
    finally:
        events.close()


def list_import_history(*, company_id: int, data_type: str | None = None, page=None, per_page=None) -> dict:
    query = db.session.query(DataImport).filter(DataImport.company_id == company_id)
    if data_type:
        query = query.filter(DataImport.data_type == data_type)
    query = query.order_by(DataImport.created_at.desc(), DataImport.id.desc())
    return paginate_query(query, page=page, per_page=per_page)


# -- Templates --------------------------------------------------------------------

def build_template(data_type: str, fmt: str = "csv") -> tuple[bytes, str, str]:
    """Example file: canonical headers plus two sample rows. Returns (body, mimetype, filename)."""
    schema = get_schema(data_type)
    headers = list(schema.aliases.keys())
    samples = [[row.get(h, "") for h in headers] for row in schema.template_rows]

    if fmt == "csv":
        buf = io.StringIO()
        writer = csv.writer(buf)
        writer.writerow(headers)
        writer.writerows(samples)
        body = ("\ufeff" + buf.getvalue()).encode("utf-8")
        return body, "text/csv; charset=utf-8", f"plantilla_{data_type}.csv"

    if fmt == "xlsx":
        wb = Workbook()
        ws = wb.active
        ws.title = data_type[:31]
        ws.append(headers)
        for sample in samples:
            ws.append(sample)
        for idx, header in enumerate(headers, start=1):
            ws.column_dimensions[ws.cell(row=1, column=idx).column_letter].width = max(12, len(header) + 4)
        out = io.BytesIO()
        wb.save(out)
        return (
            out.getvalue(),
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            f"plantilla_{data_type}.xlsx",
        )

    raise IngestionError("format must be csv or xlsx")
