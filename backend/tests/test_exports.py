# Overview: Pytest coverage for CSV / Excel / PDF exports and the declarative report renderer.

import io

import pytest
from openpyxl import load_workbook

from insightbi.services import export_service
from insightbi.services.export_service import (
    Bar,
    BarChartSection,
    ExportColumn,
    ExportConfig,
    KpiCard,
    KpiSection,
    ReportError,
    ReportTemplate,
    TextSection,
    format_value,
    sheet_names,
    to_csv,
    to_xlsx,
)


def _config(**extra):
    return ExportConfig(
        title="Ventas",
        filename="ventas",
        columns=[
            ExportColumn("name", "Producto"),
            ExportColumn("total", "Total", format="currency"),
            ExportColumn("margin", "Margen", format="percentage"),
        ],
        rows=[{"name": "Café", "total": 15289, "margin": 12.5}],
        **extra,
    )


class TestRenderers:

    def test_csv_has_bom_and_headers(self):
        text = to_csv(_config()).decode("utf-8")
        assert text.startswith("\ufeffProducto,Total,Margen")
        assert "Café,15289,12.5" in text

    def test_xlsx_sheets(self):
        wb = load_workbook(io.BytesIO(to_xlsx(_config(summary=[("Total", "$15.289")]))))
        assert wb.sheetnames == ["Resumen", "Datos"]
        data = wb["Datos"]
        assert data["A1"].value == "Producto"
        assert data["B2"].number_format == '"$"#,##0'
        assert data["C2"].value == pytest.approx(0.125)

    def test_xlsx_without_summary(self):
        wb = load_workbook(io.BytesIO(to_xlsx(_config())))
        assert wb.sheetnames == ["Datos"]

    def test_sheet_names(self):
        long_title = "Reporte de cuentas por cobrar vencidas"
        names = sheet_names(["Ventas", "ventas", "a/b:c", long_title, long_title, ""])
        assert names[:3] == ["Ventas", "ventas (2)", "abc"]
        assert all(len(n) <= 31 for n in names)
        assert names[3] != names[4]
        assert names[5] == "Hoja"

    def test_format_value(self):
        assert format_value(15289, "currency") == "$15.289"
        assert format_value(1234.5, "number") == "1.234,50"
        assert format_value(12.5, "percentage") == "12,50%"
        assert format_value(None, "currency") == ""

    def test_unknown_column_format(self):
        with pytest.raises(ReportError):
            ExportColumn("x", "X", format="emoji")

    def test_report_html_sections(self):
        html = export_service.render_report_html(ReportTemplate(
            title="Resumen <mensual>",
            sections=[
                KpiSection(cards=[KpiCard("Ventas", "$1.000")]),
                BarChartSection(title="ABC", bars=[Bar("A", 80), Bar("B", 20)]),
                TextSection(text="Todo en orden"),
            ],
        ))
        assert "Resumen &lt;mensual&gt;" in html
        assert "$1.000" in html
        assert "Todo en orden" in html
        assert 'style="width: 25.0%"' in html

    def test_pdf_unavailable(self, monkeypatch):
        def _missing(html):
            raise OSError("cannot load library 'libpango'")
        monkeypatch.setattr(export_service, "write_pdf", _missing)
        with pytest.raises(export_service.PdfUnavailableError):
            export_service.render_report_pdf(ReportTemplate(title="x", sections=[]))


class TestExportRoutes:

    def test_inventory_csv(self, client, headers_a, product_a, product_b):
        resp = client.get("/api/exports/inventory?format=csv", headers=headers_a)
        assert resp.status_code == 200
        assert resp.content_type.startswith("text/csv")
        assert "attachment;" in resp.headers["Content-Disposition"]
        text = resp.data.decode("utf-8")
        assert "PROD-A-001" in text
        assert "PROD-B-001" not in text

    def test_inventory_xlsx(self, client, headers_a, product_a):
        resp = client.get("/api/exports/inventory?format=xlsx", headers=headers_a)
        assert resp.status_code == 200
        wb = load_workbook(io.BytesIO(resp.data))
        assert wb.sheetnames == ["Resumen", "Datos"]
        assert wb["Datos"]["B2"].value == "PROD-A-001"

    def test_pdf_export(self, client, headers_a, product_a, monkeypatch):
        captured = {}

        def _fake_pdf(html):
            captured["html"] = html
            return b"%PDF-1.7 fake"

        monkeypatch.setattr(export_service, "write_pdf", _fake_pdf)
        resp = client.get("/api/exports/inventory?format=pdf", headers=headers_a)
        assert resp.status_code == 200
        assert resp.content_type == "application/pdf"
        assert resp.data.startswith(b"%PDF")
        assert "PROD-A-001" in captured["html"]

    def test_pdf_unavailable_is_503(self, client, headers_a, monkeypatch):
        def _missing(html):
            raise ImportError("No module named 'weasyprint'")
        monkeypatch.setattr(export_service, "write_pdf", _missing)
        resp = client.get("/api/reports/inventory?format=pdf", headers=headers_a)
        assert resp.status_code == 503

    def test_inventory_report_html(self, client, headers_a, product_a):
        resp = client.get("/api/reports/inventory?format=html", headers=headers_a)
        assert resp.status_code == 200
        assert resp.content_type.startswith("text/html")
        assert "Clasificación ABC" in resp.data.decode("utf-8")

    def test_workbook(self, client, headers_a, product_a):
        resp = client.get("/api/exports/workbook", headers=headers_a)
        assert resp.status_code == 200
        wb = load_workbook(io.BytesIO(resp.data))
        assert len(wb.sheetnames) == 3

    def test_sales_range(self, client, headers_a, product_a):
        client.post("/api/sales", json={"product_id": product_a.id, "quantity": 1}, headers=headers_a)
        resp = client.get("/api/exports/sales?format=csv&start=2000-01-01T00:00:00Z", headers=headers_a)
        assert resp.status_code == 200
        assert "Café en grano 1kg" in resp.data.decode("utf-8")

        bad = client.get("/api/exports/sales?start=yesterday", headers=headers_a)
        assert bad.status_code == 400

    @pytest.mark.parametrize("path", [
        "/api/exports/widgets",
        "/api/exports/inventory?format=docx",
        "/api/reports/inventory?format=xlsx",
    ])
    def test_bad_requests(self, client, headers_a, path):
        assert client.get(path, headers=headers_a).status_code == 400
