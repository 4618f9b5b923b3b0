# Overview: Flask API routes for sales, invoices, customers and salespeople.

# backend/insightbi/routes/sales.py
"""
Sales routes.

MULTI-TENANT: Every sale, invoice and customer is scoped to g.company_id.
product_id / customer_id / salesperson_id from the payload must belong to
the caller's company (404 otherwise, same as a missing record).

Stock: creating a completed legacy sale decrements stock (409 when there is
not enough); cancelling a completed sale restores it. Invoices
(/api/sales/enhanced) do not move stock.
"""
from flask import Blueprint, request, g

from ..models import Customer, EnhancedSale, Sale, Salesperson
from ..services import sales_service
from ..services.tenant_service import TenantAccessError
from ..time_utils import parse_iso_datetime
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_sale,
    ValidationError,
    ConflictError,
)
from ..decorators import require_auth, require_permission

SALE_POLICY = ModelValidationPolicy(
    writable_fields={
        "product_id", "customer_id", "customer_name", "customer_email",
        "quantity", "unit_price_cents", "status", "sale_date",
    },
    required_on_create={"product_id", "quantity"},
)

INVOICE_POLICY = ModelValidationPolicy(
    writable_fields={
        "invoice_number", "customer_id", "salesperson_id", "sale_date", "due_date",
        "subtotal_cents", "tax_cents", "discount_cents", "total_cents",
        "payment_status", "payment_method", "channel", "currency", "notes",
    },
    required_on_create={"invoice_number", "sale_date"},
)

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={
        "code", "name", "tax_id", "email", "phone", "address", "city", "segment",
        "credit_limit_cents", "payment_terms_days", "is_active",
    },
    required_on_create={"name"},
)

SALESPERSON_POLICY = ModelValidationPolicy(
    writable_fields={"code", "name", "email", "commission_rate_bps", "is_active"},
    required_on_create={"name"},
)

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")
customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")
salespeople_bp = Blueprint("salespeople", __name__, url_prefix="/api/salespeople")


def _date_range():
    try:
        return parse_iso_datetime(request.args.get("start")), parse_iso_datetime(request.args.get("end"))
    except ValueError:
        raise ValidationError("start/end must be ISO-8601 datetimes")


# -- Legacy sales ---------------------------------------------------------------

@sales_bp.get("")
@require_auth
@require_permission("VIEW_SALES")
def list_sales_route():
    """Query params: start, end (ISO-8601), status, product_id, page, per_page."""
    try:
        start, end = _date_range()
    except ValidationError as e:
        return {"error": str(e)}, 400

    return sales_service.list_sales(
        company_id=g.company_id,
        start=start,
        end=end,
        status=request.args.get("status"),
        product_id=request.args.get("product_id", type=int),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )


@sales_bp.post("")
@require_auth
@require_permission("MANAGE_SALES")
def create_sale_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Sale, payload=payload, policy=SALE_POLICY, partial=False)
        enforce_rules_sale(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        sale = sales_service.create_sale(patch=patch, company_id=g.company_id, user_id=g.current_user.id)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except TenantAccessError as e:
        return {"error": str(e)}, 404

    return sale.to_dict(), 201


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_permission("VIEW_SALES")
def get_sale_route(sale_id: int):
    try:
        return sales_service.get_sale(sale_id=sale_id, company_id=g.company_id)
    except TenantAccessError:
        return {"error": "Sale not found"}, 404


@sales_bp.put("/<int:sale_id>/status")
@require_auth
@require_permission("MANAGE_SALES")
def update_sale_status_route(sale_id: int):
    """Body: {"status": "pending" | "completed" | "cancelled"}"""
    payload = request.get_json(silent=True) or {}
    status = payload.get("status")
    if not status:
        return {"error": "status is required"}, 400

    try:
        return sales_service.update_sale_status(
            sale_id=sale_id, company_id=g.company_id, status=status, user_id=g.current_user.id,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except TenantAccessError:
        return {"error": "Sale not found"}, 404


# -- Invoices -------------------------------------------------------------------

@sales_bp.get("/enhanced")
@require_auth
@require_permission("VIEW_SALES")
def list_invoices_route():
    try:
        start, end = _date_range()
    except ValidationError as e:
        return {"error": str(e)}, 400

    return sales_service.list_enhanced_sales(
        company_id=g.company_id,
        start=start.date() if start else None,
        end=end.date() if end else None,
        payment_status=request.args.get("payment_status"),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )


@sales_bp.post("/enhanced")
@require_auth
@require_permission("MANAGE_SALES")
def create_invoice_route():
    """
    Create an invoice.

    items: [{product_id, quantity, unit_price_cents?, discount_cents?}]; with
    items the totals are computed (19% IVA unless tax_rate_bps is given).
    """
    payload = dict(request.get_json(silent=True) or {})
    items = payload.pop("items", None)
    tax_rate_bps = payload.pop("tax_rate_bps", None)

    if items is not None and not isinstance(items, list):
        return {"error": "items must be a list"}, 400

    try:
        data = validate_payload(model=EnhancedSale, payload=payload, policy=INVOICE_POLICY, partial=False)
        data["items"] = items or []
        if tax_rate_bps is not None:
            if not isinstance(tax_rate_bps, int) or tax_rate_bps < 0:
                raise ValidationError("tax_rate_bps must be a non-negative integer")
            data["tax_rate_bps"] = tax_rate_bps
        sale = sales_service.create_enhanced_sale(company_id=g.company_id, data=data)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    except (TypeError, ValueError) as e:
        return {"error": str(e)}, 400

    return sale.to_dict(include_items=True), 201


@sales_bp.get("/enhanced/<int:sale_id>")
@require_auth
@require_permission("VIEW_SALES")
def get_invoice_route(sale_id: int):
    try:
        return sales_service.get_enhanced_sale(sale_id=sale_id, company_id=g.company_id)
    except TenantAccessError:
        return {"error": "Invoice not found"}, 404


# -- Customers ------------------------------------------------------------------

@customers_bp.get("")
@require_auth
@require_permission("VIEW_SALES")
def list_customers_route():
    return sales_service.list_customers(
        company_id=g.company_id,
        search=request.args.get("search"),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )


@customers_bp.post("")
@require_auth
@require_permission("MANAGE_SALES")
def create_customer_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
        customer = sales_service.create_customer(company_id=g.company_id, patch=patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    return customer.to_dict(), 201


@customers_bp.get("/<int:customer_id>")
@require_auth
@require_permission("VIEW_SALES")
def get_customer_route(customer_id: int):
    try:
        return sales_service.get_customer(company_id=g.company_id, customer_id=customer_id)
    except TenantAccessError:
        return {"error": "Customer not found"}, 404


@customers_bp.put("/<int:customer_id>")
@require_auth
@require_permission("MANAGE_SALES")
def update_customer_route(customer_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
        return sales_service.update_customer(company_id=g.company_id, customer_id=customer_id, patch=patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except TenantAccessError:
        return {"error": "Customer not found"}, 404


@customers_bp.delete("/<int:customer_id>")
@require_auth
@require_permission("MANAGE_SALES")
def delete_customer_route(customer_id: int):
    """Customers with sales history are deactivated, not deleted."""
    try:
        sales_service.delete_customer(company_id=g.company_id, customer_id=customer_id)
    except TenantAccessError:
        return {"error": "Customer not found"}, 404
    return {"ok": True}


# -- Salespeople ----------------------------------------------------------------

@salespeople_bp.get("")
@require_auth
@require_permission("VIEW_SALES")
def list_salespeople_route():
    return sales_service.list_salespeople(company_id=g.company_id)


@salespeople_bp.post("")
@require_auth
@require_permission("MANAGE_SALES")
def create_salesperson_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Salesperson, payload=payload, policy=SALESPERSON_POLICY, partial=False)
        created = sales_service.create_salesperson(company_id=g.company_id, patch=patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    return created, 201


@salespeople_bp.put("/<int:salesperson_id>")
@require_auth
@require_permission("MANAGE_SALES")
def update_salesperson_route(salesperson_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Salesperson, payload=payload, policy=SALESPERSON_POLICY, partial=True)
        return sales_service.update_salesperson(
            company_id=g.company_id, salesperson_id=salesperson_id, patch=patch,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except TenantAccessError:
        return {"error": "Salesperson not found"}, 404
