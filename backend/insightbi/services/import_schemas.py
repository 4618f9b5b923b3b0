from __future__ import annotations

import unicodedata
from dataclasses import dataclass
from typing import Any

from ..extensions import db
from ..models import AccountReceivable, Customer, EnhancedSale, Product, Salesperson
from ..models.sales import PAYMENT_STATUSES
from ..number_utils import parse_chilean_number, to_cents
from ..time_utils import parse_flexible_date
from .catalog_service import default_warehouse, get_or_create_category
from .collections_service import create_receivable, refresh_receivable
from .inventory_service import apply_movement
from .products_service import find_product_by_sku
from .sales_service import create_customer, create_enhanced_sale, find_customer, find_salesperson


def normalize_header(header: Any) -> str:
    """'Stock Actual' -> 'stock_actual', 'Código' -> 'codigo'."""
    text = str(header or "").strip().lower()
    text = unicodedata.normalize("NFKD", text)
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    for sep in (" ", "-", "."):
        text = text.replace(sep, "_")
    while "__" in text:
        text = text.replace("__", "_")
    return text.strip("_")


def _to_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text if text else None


def _to_bool(value: Any, default: bool = True) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() in ("1", "true", "yes", "si", "sí", "activo", "x")


@dataclass
class SchemaContext:
    company_id: int
    user_id: int | None
    import_id: int | None
    row_number: int


class BaseImportSchema:
    data_type: str = ""
    aliases: dict[str, tuple[str, ...]] = {}
    template_rows: list[dict[str, Any]] = []

    def __init__(self) -> None:
        self._lookup = {}
        for field, names in self.aliases.items():
            for name in (field, *names):
                self._lookup.setdefault(normalize_header(name), field)

    def field_for(self, header: Any) -> str | None:
        return self._lookup.get(normalize_header(header))

    def map_row(self, raw_row: dict[str, Any]) -> dict[str, Any]:
        """Rename source headers to canonical fields; unknown columns are dropped."""
        mapped: dict[str, Any] = {}
        for header, value in raw_row.items():
            field = self.field_for(header)
            if field is not None and field not in mapped:
                mapped[field] = value
        return mapped

    # Conversion helpers record problems on the row instead of raising, so a
    # single pass can report every bad cell.
    def _number(self, row: dict, field: str, errors: list[str]):
        try:
            return parse_chilean_number(row.get(field))
        except ValueError:
            errors.append(f"{field}: invalid number '{row.get(field)}'")
            return None

    def _integer(self, row: dict, field: str, errors: list[str]) -> int | None:
        number = self._number(row, field, errors)
        if number is None:
            return None
        if not float(number).is_integer():
            errors.append(f"{field}: must be a whole number")
            return None
        return int(number)

    def _cents(self, row: dict, field: str, errors: list[str]) -> int | None:
        try:
            return to_cents(row.get(field))
        except ValueError:
            errors.append(f"{field}: invalid amount '{row.get(field)}'")
            return None

    def _date(self, row: dict, field: str, errors: list[str]):
        try:
            return parse_flexible_date(row.get(field))
        except ValueError:
            errors.append(f"{field}: invalid date '{row.get(field)}'")
            return None

    def normalize_row(self, raw_row: dict[str, Any]) -> dict[str, Any]:
        raise NotImplementedError

    def validate_row(self, normalized_row: dict[str, Any]) -> list[str]:
        raise NotImplementedError

    def post_row(self, normalized_row: dict[str, Any], context: SchemaContext) -> str:
        """Write one row. Returns "created" or "updated"."""
        raise NotImplementedError

    @staticmethod
    def public(normalized_row: dict[str, Any]) -> dict[str, Any]:
        return {k: v for k, v in normalized_row.items() if not k.startswith("_")}


class ProductsSchema(BaseImportSchema):
    data_type = "products"
    aliases = {
        "sku": ("codigo", "código", "code", "product_code"),
        "name": ("nombre", "producto", "product_name"),
        "price": ("precio", "precio_venta", "selling_price"),
        "cost": ("cost_price", "costo", "precio_costo"),
        "stock": ("stock_actual", "cantidad", "current_stock", "quantity"),
        "min_stock": ("stock_minimo", "stock_mínimo", "minstock"),
        "max_stock": ("stock_maximo", "stock_máximo"),
        "reorder_point": ("punto_reorden",),
        "location": ("ubicacion", "ubicación"),
        "unit_measure": ("unidad_medida", "unidad"),
        "description": ("descripcion", "descripción"),
        "category": ("categoria", "categoría"),
        "is_active": ("activo",),
    }
    template_rows = [
        {"sku": "PROD-001", "name": "Laptop Dell Inspiron", "price": "599.990", "cost": "450.000",
         "stock": 25, "min_stock": 5, "max_stock": 100, "category": "Electrónicos",
         "location": "A-01", "unit_measure": "unidad"},
        {"sku": "PROD-002", "name": "Mouse inalámbrico", "price": "12.990", "cost": "7.500",
         "stock": 150, "min_stock": 20, "max_stock": 400, "category": "Accesorios",
         "location": "B-03", "unit_measure": "unidad"},
    ]

    def normalize_row(self, raw_row: dict[str, Any]) -> dict[str, Any]:
        row = self.map_row(raw_row)
        errors: list[str] = []
        normalized = {
            "sku": _to_text(row.get("sku")),
            "name": _to_text(row.get("name")),
            "price_cents": self._cents(row, "price", errors),
            "cost_cents": self._cents(row, "cost", errors),
            "stock": self._integer(row, "stock", errors),
            "min_stock": self._integer(row, "min_stock", errors),
            "max_stock": self._integer(row, "max_stock", errors),
            "reorder_point": self._integer(row, "reorder_point", errors),
            "location": _to_text(row.get("location")),
            "unit_measure": _to_text(row.get("unit_measure")),
            "description": _to_text(row.get("description")),
            "category": _to_text(row.get("category")),
            "is_active": _to_bool(row.get("is_active")),
            "_errors": errors,
        }
        return normalized

    def validate_row(self, normalized_row: dict[str, Any]) -> list[str]:
        errors = list(normalized_row.get("_errors") or [])
        if not normalized_row.get("sku"):
            errors.append("sku is required")
        if not normalized_row.get("name"):
            errors.append("name is required")
        for field in ("price_cents", "cost_cents", "stock", "min_stock", "max_stock", "reorder_point"):
            value = normalized_row.get(field)
            if value is not None and value < 0:
                errors.append(f"{field} cannot be negative")
        min_stock = normalized_row.get("min_stock")
        max_stock = normalized_row.get("max_stock")
        if min_stock is not None and max_stock is not None and max_stock < min_stock:
            errors.append("max_stock must be >= min_stock")
        return errors

    def post_row(self, normalized_row: dict[str, Any], context: SchemaContext) -> str:
        company_id = context.company_id
        product = find_product_by_sku(company_id=company_id, sku=normalized_row["sku"])
        created = product is None
        if created:
            warehouse = default_warehouse(company_id)
            product = Product(
                company_id=company_id,
                sku=normalized_row["sku"],
                stock=0,
                warehouse_id=warehouse.id if warehouse else None,
            )
            db.session.add(product)

        product.name = normalized_row["name"]
        for field in ("price_cents", "cost_cents", "min_stock", "max_stock", "reorder_point",
                      "location", "unit_measure", "description"):
            value = normalized_row.get(field)
            if value is not None:
                setattr(product, field, value)
        product.is_active = normalized_row.get("is_active", True)
        if normalized_row.get("category"):
            product.category_id = get_or_create_category(
                company_id=company_id, name=normalized_row["category"]
            ).id
        db.session.flush()

        target = normalized_row.get("stock")
        if target is not None and target != product.stock:
            delta = target - product.stock
            apply_movement(
                product=product,
                movement_type="in" if created else "adjustment",
                quantity=delta,
                user_id=context.user_id,
                unit_cost_cents=product.cost_cents,
                reason="Importación de archivo",
                document_number=f"IMP-{context.import_id}" if context.import_id else None,
            )
        return "created" if created else "updated"


class SalesSchema(BaseImportSchema):
    """Invoice headers (EnhancedSale). Deduplicated on invoice_number."""

    data_type = "sales"
    aliases = {
        "invoice_number": ("numero_factura", "número_factura", "factura", "folio", "invoice"),
        "customer": ("cliente", "customer_name", "razon_social"),
        "customer_tax_id": ("rut", "rut_cliente", "tax_id"),
        "sale_date": ("fecha", "fecha_venta", "date"),
        "due_date": ("fecha_vencimiento", "vencimiento"),
        "total": ("monto_total", "total_amount", "monto"),
        "subtotal": ("neto", "monto_neto"),
        "tax": ("iva", "impuesto", "tax_amount"),
        "discount": ("descuento",),
        "payment_method": ("metodo_pago", "método_pago", "forma_pago"),
        "payment_status": ("estado_pago", "estado"),
        "salesperson": ("vendedor", "ejecutivo"),
        "channel": ("canal",),
    }
    template_rows = [
        {"invoice_number": "F-1001", "customer": "Comercial Andes SpA", "customer_tax_id": "76.123.456-7",
         "sale_date": "15-01-2025", "due_date": "14-02-2025", "subtotal": "1.000.000", "tax": "190.000",
         "total": "1.190.000", "payment_method": "transferencia", "payment_status": "pending",
         "salesperson": "María González", "channel": "directo"},
        {"invoice_number": "F-1002", "customer": "Distribuidora Sur Ltda", "customer_tax_id": "77.987.654-3",
         "sale_date": "16-01-2025", "due_date": "15-02-2025", "subtotal": "420.000", "tax": "79.800",
         "total": "499.800", "payment_method": "credito", "payment_status": "paid",
         "salesperson": "Juan Pérez", "channel": "online"},
    ]

    _status_aliases = {
        "pagado": "paid", "pagada": "paid", "pendiente": "pending", "parcial": "partial",
        "vencido": "overdue", "vencida": "overdue", "anulada": "cancelled", "anulado": "cancelled",
    }

    def normalize_row(self, raw_row: dict[str, Any]) -> dict[str, Any]:
        row = self.map_row(raw_row)
        errors: list[str] = []
        status = (_to_text(row.get("payment_status")) or "pending").lower()
        return {
            "invoice_number": _to_text(row.get("invoice_number")),
            "customer": _to_text(row.get("customer")),
            "customer_tax_id": _to_text(row.get("customer_tax_id")),
            "sale_date": self._date(row, "sale_date", errors),
            "due_date": self._date(row, "due_date", errors),
            "total_cents": self._cents(row, "total", errors),
            "subtotal_cents": self._cents(row, "subtotal", errors),
            "tax_cents": self._cents(row, "tax", errors),
            "discount_cents": self._cents(row, "discount", errors),
            "payment_method": _to_text(row.get("payment_method")),
            "payment_status": self._status_aliases.get(status, status),
            "salesperson": _to_text(row.get("salesperson")),
            "channel": _to_text(row.get("channel")),
            "_errors": errors,
        }

    def validate_row(self, normalized_row: dict[str, Any]) -> list[str]:
        errors = list(normalized_row.get("_errors") or [])
        if not normalized_row.get("invoice_number"):
            errors.append("invoice_number is required")
        if not normalized_row.get("customer") and not normalized_row.get("customer_tax_id"):
            errors.append("customer or customer_tax_id is required")
        if normalized_row.get("sale_date") is None and not any("sale_date" in e for e in errors):
            errors.append("sale_date is required")
        total = normalized_row.get("total_cents")
        if total is None and normalized_row.get("subtotal_cents") is None:
            if not any(e.startswith(("total", "subtotal")) for e in errors):
                errors.append("total is required")
        elif total is not None and total < 0:
            errors.append("total cannot be negative")
        if normalized_row.get("payment_status") not in PAYMENT_STATUSES:
            errors.append(f"payment_status must be one of: {', '.join(PAYMENT_STATUSES)}")
        return errors

    def post_row(self, normalized_row: dict[str, Any], context: SchemaContext) -> str:
        company_id = context.company_id
        customer = _resolve_customer(company_id, normalized_row.get("customer"), normalized_row.get("customer_tax_id"))
        salesperson = None
        if normalized_row.get("salesperson"):
            salesperson = find_salesperson(company_id=company_id, name=normalized_row["salesperson"])
            if salesperson is None:
                salesperson = Salesperson(company_id=company_id, name=normalized_row["salesperson"])
                db.session.add(salesperson)
                db.session.flush()

        tax = normalized_row.get("tax_cents") or 0
        discount = normalized_row.get("discount_cents") or 0
        total = normalized_row.get("total_cents")
        subtotal = normalized_row.get("subtotal_cents")
        if total is None:
            total = subtotal - discount + tax

        existing = (
            db.session.query(EnhancedSale)
            .filter(EnhancedSale.company_id == company_id,
                    EnhancedSale.invoice_number == normalized_row["invoice_number"])
            .first()
        )
        if existing is not None:
            existing.customer_id = customer.id if customer else existing.customer_id
            existing.salesperson_id = salesperson.id if salesperson else existing.salesperson_id
            existing.sale_date = normalized_row["sale_date"]
            existing.due_date = normalized_row.get("due_date")
            existing.total_cents = total
            existing.tax_cents = tax
            existing.discount_cents = discount
            existing.subtotal_cents = subtotal if subtotal is not None else max(total - tax + discount, 0)
            existing.payment_status = normalized_row["payment_status"]
            existing.payment_method = normalized_row.get("payment_method")
            existing.channel = normalized_row.get("channel")
            db.session.flush()
            return "updated"

        create_enhanced_sale(
            company_id=company_id,
            data={
                "invoice_number": normalized_row["invoice_number"],
                "customer_id": customer.id if customer else None,
                "salesperson_id": salesperson.id if salesperson else None,
                "sale_date": normalized_row["sale_date"],
                "due_date": normalized_row.get("due_date"),
                "total_cents": total,
                "tax_cents": tax,
                "discount_cents": discount,
                "subtotal_cents": subtotal,
                "payment_status": normalized_row["payment_status"],
                "payment_method": normalized_row.get("payment_method"),
                "channel": normalized_row.get("channel"),
            },
            commit=False,
        )
        return "created"


class ReceivablesSchema(BaseImportSchema):
    """Accounts receivable. Deduplicated on invoice_number."""

    data_type = "receivables"
    aliases = {
        "invoice_number": ("numero_factura", "número_factura", "factura", "folio"),
        "customer": ("cliente", "customer_name", "razon_social"),
        "customer_tax_id": ("rut", "rut_cliente", "tax_id"),
        "invoice_date": ("fecha_factura", "fecha_emision", "fecha"),
        "due_date": ("fecha_vencimiento", "vencimiento"),
        "original_amount": ("monto_original", "monto", "amount"),
        "outstanding_amount": ("saldo_pendiente", "saldo", "outstanding"),
        "collection_agent": ("cobrador", "agente", "agent"),
    }
    template_rows = [
        {"invoice_number": "F-1001", "customer": "Comercial Andes SpA", "customer_tax_id": "76.123.456-7",
         "invoice_date": "15-01-2025", "due_date": "14-02-2025", "original_amount": "1.190.000",
         "outstanding_amount": "1.190.000", "collection_agent": "Ana Rojas"},
        {"invoice_number": "F-0987", "customer": "Distribuidora Sur Ltda", "customer_tax_id": "77.987.654-3",
         "invoice_date": "02-12-2024", "due_date": "01-01-2025", "original_amount": "2.500.000",
         "outstanding_amount": "800.000", "collection_agent": "Ana Rojas"},
    ]

    def normalize_row(self, raw_row: dict[str, Any]) -> dict[str, Any]:
        row = self.map_row(raw_row)
        errors: list[str] = []
        return {
            "invoice_number": _to_text(row.get("invoice_number")),
            "customer": _to_text(row.get("customer")),
            "customer_tax_id": _to_text(row.get("customer_tax_id")),
            "invoice_date": self._date(row, "invoice_date", errors),
            "due_date": self._date(row, "due_date", errors),
            "original_amount_cents": self._cents(row, "original_amount", errors),
            "outstanding_amount_cents": self._cents(row, "outstanding_amount", errors),
            "collection_agent": _to_text(row.get("collection_agent")),
            "_errors": errors,
        }

    def validate_row(self, normalized_row: dict[str, Any]) -> list[str]:
        errors = list(normalized_row.get("_errors") or [])
        if not normalized_row.get("invoice_number"):
            errors.append("invoice_number is required")
        if not normalized_row.get("customer") and not normalized_row.get("customer_tax_id"):
            errors.append("customer or customer_tax_id is required")
        for field in ("invoice_date", "due_date"):
            if normalized_row.get(field) is None and not any(e.startswith(field) for e in errors):
                errors.append(f"{field} is required")
        original = normalized_row.get("original_amount_cents")
        outstanding = normalized_row.get("outstanding_amount_cents")
        if original is None:
            if not any(e.startswith("original_amount") for e in errors):
                errors.append("original_amount is required")
        elif original <= 0:
            errors.append("original_amount must be > 0")
        if outstanding is not None and original is not None and not 0 <= outstanding <= original:
            errors.append("outstanding_amount must be between 0 and original_amount")
        invoice_date = normalized_row.get("invoice_date")
        due_date = normalized_row.get("due_date")
        if invoice_date and due_date and due_date < invoice_date:
            errors.append("due_date cannot be before invoice_date")
        return errors

    def post_row(self, normalized_row: dict[str, Any], context: SchemaContext) -> str:
        company_id = context.company_id
        customer = _resolve_customer(company_id, normalized_row.get("customer"), normalized_row.get("customer_tax_id"))
        sale = (
            db.session.query(EnhancedSale.id)
            .filter(EnhancedSale.company_id == company_id,
                    EnhancedSale.invoice_number == normalized_row["invoice_number"])
            .first()
        )
        outstanding = normalized_row.get("outstanding_amount_cents")
        if outstanding is None:
            outstanding = normalized_row["original_amount_cents"]

        existing = (
            db.session.query(AccountReceivable)
            .filter(AccountReceivable.company_id == company_id,
                    AccountReceivable.invoice_number == normalized_row["invoice_number"])
            .first()
        )
        if existing is not None:
            existing.customer_id = customer.id if customer else existing.customer_id
            existing.invoice_date = normalized_row["invoice_date"]
            existing.due_date = normalized_row["due_date"]
            existing.original_amount_cents = normalized_row["original_amount_cents"]
            existing.outstanding_amount_cents = outstanding
            existing.collection_agent = normalized_row.get("collection_agent") or existing.collection_agent
            refresh_receivable(existing)
            db.session.flush()
            return "updated"

        create_receivable(
            company_id=company_id,
            data={
                "invoice_number": normalized_row["invoice_number"],
                "customer_id": customer.id if customer else None,
                "enhanced_sale_id": sale.id if sale else None,
                "invoice_date": normalized_row["invoice_date"],
                "due_date": normalized_row["due_date"],
                "original_amount_cents": normalized_row["original_amount_cents"],
                "outstanding_amount_cents": outstanding,
                "collection_agent": normalized_row.get("collection_agent"),
            },
            commit=False,
        )
        return "created"


class CustomersSchema(BaseImportSchema):
    """Customer master. Deduplicated on code, then tax id (RUT)."""

    data_type = "customers"
    aliases = {
        "code": ("codigo", "código", "customer_code", "codigo_cliente"),
        "name": ("nombre", "razon_social", "razón_social", "customer", "cliente"),
        "tax_id": ("rut",),
        "email": ("correo", "correo_electronico", "mail"),
        "phone": ("telefono", "teléfono", "fono"),
        "address": ("direccion", "dirección"),
        "city": ("ciudad", "comuna"),
        "segment": ("segmento",),
        "credit_limit": ("limite_credito", "límite_crédito", "credito"),
        "payment_terms_days": ("plazo_pago", "dias_credito"),
    }
    template_rows = [
        {"code": "CLI-001", "name": "Comercial Andes SpA", "tax_id": "76.123.456-7",
         "email": "pagos@andes.cl", "phone": "+56 2 2345 6789", "address": "Av. Providencia 1234",
         "city": "Santiago", "segment": "corporativo", "credit_limit": "5.000.000"},
        {"code": "CLI-002", "name": "Distribuidora Sur Ltda", "tax_id": "77.987.654-3",
         "email": "contacto@dsur.cl", "phone": "+56 41 234 5678", "address": "Calle O'Higgins 55",
         "city": "Concepción", "segment": "pyme", "credit_limit": "1.500.000"},
    ]

    def normalize_row(self, raw_row: dict[str, Any]) -> dict[str, Any]:
        row = self.map_row(raw_row)
        errors: list[str] = []
        return {
            "code": _to_text(row.get("code")),
            "name": _to_text(row.get("name")),
            "tax_id": _to_text(row.get("tax_id")),
            "email": _to_text(row.get("email")),
            "phone": _to_text(row.get("phone")),
            "address": _to_text(row.get("address")),
            "city": _to_text(row.get("city")),
            "segment": _to_text(row.get("segment")),
            "credit_limit_cents": self._cents(row, "credit_limit", errors),
            "payment_terms_days": self._integer(row, "payment_terms_days", errors),
            "_errors": errors,
        }

    def validate_row(self, normalized_row: dict[str, Any]) -> list[str]:
        errors = list(normalized_row.get("_errors") or [])
        if not normalized_row.get("name"):
            errors.append("name is required")
        email = normalized_row.get("email")
        if email and "@" not in email:
            errors.append(f"email: invalid address '{email}'")
        limit = normalized_row.get("credit_limit_cents")
        if limit is not None and limit < 0:
            errors.append("credit_limit cannot be negative")
        return errors

    def post_row(self, normalized_row: dict[str, Any], context: SchemaContext) -> str:
        fields = {
            k: v for k, v in self.public(normalized_row).items()
            if v is not None
        }
        existing = find_customer(
            company_id=context.company_id,
            code=normalized_row.get("code"),
            tax_id=normalized_row.get("tax_id"),
        )
        if existing is not None:
            for key, value in fields.items():
                setattr(existing, key, value)
            db.session.flush()
            return "updated"
        create_customer(company_id=context.company_id, patch=fields, commit=False)
        return "created"


def _resolve_customer(company_id: int, name: str | None, tax_id: str | None) -> Customer:
    customer = find_customer(company_id=company_id, tax_id=tax_id, name=name)
    if customer is None:
        customer = create_customer(
            company_id=company_id,
            patch={"name": name or tax_id, "tax_id": tax_id},
            commit=False,
        )
    return customer


SCHEMAS: dict[str, BaseImportSchema] = {
    "products": ProductsSchema(),
    "sales": SalesSchema(),
    "receivables": ReceivablesSchema(),
    "customers": CustomersSchema(),
}
