# Overview: Pytest coverage for file ingestion: parsing, aliases, dedup, dry runs and progress streams.

import io
import json

from openpyxl import Workbook, load_workbook

from insightbi.models import AccountReceivable, Customer, DataImport, EnhancedSale, InventoryMovement, Product
from insightbi.services import import_service
from insightbi.services.import_schemas import normalize_header


PRODUCTS_CSV = (
    "Código;Nombre;Precio Venta;Costo;Stock Actual;Stock Mínimo;Categoría\n"
    "P-100;Harina 1kg;$1.290;850;40;10;Abarrotes\n"
    "P-101;Azúcar 1kg;1.150;700;0;5;Abarrotes\n"
    "P-102;;990;500;10;2;Abarrotes\n"
    "P-103;Arroz 1kg;abc;500;10;2;Abarrotes\n"
)


def _upload(content, filename="productos.csv", **extra):
    if isinstance(content, str):
        content = content.encode("utf-8")
    data = {"file": (io.BytesIO(content), filename)}
    data.update(extra)
    return {"data": data, "content_type": "multipart/form-data"}


def _events(resp):
    return [json.loads(line) for line in resp.get_data(as_text=True).splitlines() if line.strip()]


def test_normalize_header():
    assert normalize_header("Stock Mínimo") == "stock_minimo"
    assert normalize_header(" Código ") == "codigo"
    assert normalize_header("Precio-Venta") == "precio_venta"


class TestProductImport:

    def test_spanish_headers_and_row_errors(self, client, db_session, headers_a, company_a):
        resp = client.post("/api/data-ingestion/products", headers=headers_a, **_upload(PRODUCTS_CSV))
        assert resp.status_code == 201
        result = resp.json
        assert result["status"] == "completed_with_errors"
        assert (result["total"], result["successful"], result["failed"]) == (4, 2, 2)
        assert result["created"] == 2
        assert [e["row"] for e in result["errors"]] == [4, 5]
        assert "name is required" in result["errors"][0]["errors"]

        harina = db_session.query(Product).filter_by(company_id=company_a.id, sku="P-100").one()
        assert harina.price_cents == 129_000
        assert harina.cost_cents == 85_000
        assert harina.stock == 40
        assert harina.category.name == "Abarrotes"

        record = db_session.get(DataImport, result["import_id"])
        assert record.failed_records == 2

    def test_reimport_adjusts_stock(self, client, db_session, headers_a, company_a):
        client.post("/api/data-ingestion/products", headers=headers_a, **_upload(PRODUCTS_CSV))
        again = "sku,name,stock\nP-100,Harina 1kg,25\n"
        result = client.post("/api/data-ingestion/products", headers=headers_a, **_upload(again)).json
        assert result["status"] == "completed"
        assert result["updated"] == 1

        harina = db_session.query(Product).filter_by(company_id=company_a.id, sku="P-100").one()
        assert harina.stock == 25
        assert harina.price_cents == 129_000
        kinds = [
            (m.movement_type, m.quantity)
            for m in db_session.query(InventoryMovement)
            .filter_by(product_id=harina.id)
            .order_by(InventoryMovement.id)
        ]
        assert kinds == [("in", 40), ("adjustment", -15)]

    def test_json_upload(self, client, db_session, headers_a, company_a):
        body = json.dumps({"data": [{"codigo": "J-1", "nombre": "Jugo 1L", "precio": "1.990", "stock_actual": 12}]})
        result = client.post(
            "/api/data-ingestion/products", headers=headers_a, **_upload(body, "productos.json")
        ).json
        assert result["successful"] == 1
        assert db_session.query(Product).filter_by(company_id=company_a.id, sku="J-1").one().price_cents == 199_000

    def test_excel_upload(self, client, db_session, headers_a, company_a):
        wb = Workbook()
        ws = wb.active
        ws.append(["SKU", "Producto", "Precio", "Cantidad"])
        ws.append(["X-1", "Queso gouda", 8990, 7])
        buf = io.BytesIO()
        wb.save(buf)

        result = client.post(
            "/api/import/products", headers=headers_a, **_upload(buf.getvalue(), "productos.xlsx")
        ).json
        assert result["successful"] == 1
        product = db_session.query(Product).filter_by(company_id=company_a.id, sku="X-1").one()
        assert (product.price_cents, product.stock) == (899_000, 7)

    def test_import_is_per_company(self, client, db_session, headers_a, headers_b, company_b):
        client.post("/api/data-ingestion/products", headers=headers_a, **_upload(PRODUCTS_CSV))
        assert db_session.query(Product).filter_by(company_id=company_b.id).count() == 0


class TestOtherTypes:

    def test_sales_import_dedupes_invoices(self, client, db_session, headers_a, company_a):
        csv_body = (
            "Folio,Cliente,RUT,Fecha,Monto Total,Estado\n"
            "F-1,Comercial Andes SpA,76.123.456-7,15-01-2026,1.190.000,pendiente\n"
        )
        first = client.post("/api/data-ingestion/sales", headers=headers_a, **_upload(csv_body, "ventas.csv")).json
        assert first["created"] == 1

        csv_body = csv_body.replace("pendiente", "pagada")
        second = client.post("/api/data-ingestion/sales", headers=headers_a, **_upload(csv_body, "ventas.csv")).json
        assert second["updated"] == 1

        invoices = db_session.query(EnhancedSale).filter_by(company_id=company_a.id).all()
        assert len(invoices) == 1
        assert invoices[0].payment_status == "paid"
        assert invoices[0].total_cents == 119_000_000
        assert db_session.query(Customer).filter_by(company_id=company_a.id).count() == 1

    def test_customers_import(self, client, db_session, headers_a, company_a):
        csv_body = "codigo,razon_social,rut,ciudad\nCLI-1,Ferretería Sur,77.987.654-3,Concepción\n"
        result = client.post("/api/data-ingestion/customers", headers=headers_a, **_upload(csv_body)).json
        assert result["created"] == 1
        customer = db_session.query(Customer).filter_by(company_id=company_a.id, code="CLI-1").one()
        assert customer.city == "Concepción"

    def test_receivables_import(self, client, db_session, headers_a, company_a):
        csv_body = (
            "numero_factura,cliente,fecha_emision,fecha_vencimiento,monto\n"
            "F-77,Comercial Andes SpA,2026-01-01,2026-01-31,500.000\n"
        )
        result = client.post("/api/data-ingestion/receivables", headers=headers_a, **_upload(csv_body)).json
        assert result["successful"] == 1, result["errors"]
        receivable = db_session.query(AccountReceivable).filter_by(company_id=company_a.id).one()
        assert receivable.outstanding_amount_cents == 50_000_000


class TestIngestionEdges:

    def test_unsupported_data_type(self, client, headers_a):
        resp = client.post("/api/data-ingestion/widgets", headers=headers_a, **_upload(PRODUCTS_CSV))
        assert resp.status_code == 400

    def test_unsupported_extension(self, client, headers_a):
        resp = client.post("/api/data-ingestion/products", headers=headers_a, **_upload("x", "productos.pdf"))
        assert resp.status_code == 400

    def test_missing_file(self, client, headers_a):
        resp = client.post("/api/data-ingestion/products", headers=headers_a)
        assert resp.status_code == 400

    def test_invalid_json(self, client, headers_a):
        resp = client.post("/api/data-ingestion/products", headers=headers_a, **_upload("{nope", "p.json"))
        assert resp.status_code == 400

    def test_storage_quota(self, client, db_session, headers_a, company_a):
        company_a.max_storage_mb = 0
        db_session.commit()
        resp = client.post("/api/data-ingestion/products", headers=headers_a, **_upload(PRODUCTS_CSV))
        assert resp.status_code == 400
        assert "Storage quota" in resp.json["error"]


class TestValidateAndStream:

    def test_validate_writes_nothing(self, client, db_session, headers_a, company_a):
        resp = client.post(
            "/api/data-ingestion/validate",
            headers=headers_a,
            **_upload(PRODUCTS_CSV, data_type="products"),
        )
        assert resp.status_code == 200
        assert (resp.json["valid"], resp.json["invalid"]) == (2, 2)
        assert resp.json["preview"][0]["sku"] == "P-100"
        assert db_session.query(Product).filter_by(company_id=company_a.id).count() == 0

    def test_validate_requires_type(self, client, headers_a):
        resp = client.post("/api/data-ingestion/validate", headers=headers_a, **_upload(PRODUCTS_CSV))
        assert resp.status_code == 400

    def test_stream_events(self, client, db_session, headers_a, company_a):
        resp = client.post("/api/data-ingestion/products/stream", headers=headers_a, **_upload(PRODUCTS_CSV))
        assert resp.status_code == 200
        assert resp.mimetype == "application/x-ndjson"

        events = _events(resp)
        types = [e["type"] for e in events]
        assert types[0] == "start"
        assert types[-1] == "complete"
        assert types.count("row_error") == 2
        # IMPORT_BATCH_SIZE is 2 under test
        progress = [e for e in events if e["type"] == "progress"]
        assert [p["processed"] for p in progress] == [2, 4]
        assert progress[-1]["percent"] == 100
        assert events[-1]["status"] == "completed_with_errors"

        record = db_session.get(DataImport, events[0]["import_id"])
        assert record.status == "completed_with_errors"

    def test_stream_reports_quota_error(self, client, db_session, headers_a, company_a):
        company_a.max_storage_mb = 0
        db_session.commit()
        resp = client.post("/api/data-ingestion/products/stream", headers=headers_a, **_upload(PRODUCTS_CSV))
        events = _events(resp)
        assert [e["type"] for e in events] == ["error"]

    def test_closed_stream_marks_import_cancelled(self, db_session, company_a, user_a):
        events = import_service.iter_import_progress(
            company_id=company_a.id,
            data_type="products",
            rows=import_service.parse_upload("productos.csv", PRODUCTS_CSV.encode("utf-8")),
            file_name="productos.csv",
            file_size=len(PRODUCTS_CSV),
            user_id=user_a.id,
        )
        start = json.loads(next(events))
        assert start["type"] == "start"
        events.close()

        record = db_session.get(DataImport, start["import_id"])
        assert record.status == "cancelled"
        assert record.completed_at is not None
        assert db_session.query(Product).filter_by(company_id=company_a.id).count() == 0


class TestTemplatesAndHistory:

    def test_csv_template(self, client, headers_a):
        resp = client.get("/api/data-ingestion/templates/products", headers=headers_a)
        assert resp.status_code == 200
        assert 'filename="plantilla_products.csv"' in resp.headers["Content-Disposition"]
        text = resp.data.decode("utf-8")
        assert text.startswith("\ufeffsku,name,price")

    def test_xlsx_template(self, client, headers_a):
        resp = client.get("/api/data-ingestion/templates/customers?format=xlsx", headers=headers_a)
        assert resp.status_code == 200
        ws = load_workbook(io.BytesIO(resp.data)).active
        assert ws.cell(row=1, column=1).value == "code"
        assert ws.max_row == 3

    def test_template_bad_format(self, client, headers_a):
        resp = client.get("/api/data-ingestion/templates/products?format=pdf", headers=headers_a)
        assert resp.status_code == 400

    def test_history(self, client, headers_a, headers_b):
        client.post("/api/data-ingestion/products", headers=headers_a, **_upload(PRODUCTS_CSV))
        mine = client.get("/api/data-ingestion/history", headers=headers_a).json
        theirs = client.get("/api/data-ingestion/history", headers=headers_b).json
        assert mine["count"] == 1
        assert mine["items"][0]["file_name"] == "productos.csv"
        assert theirs["count"] == 0
