# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/insightbi/routes/products.py
"""
Product management routes with multi-tenant support.

MULTI-TENANT: All product operations are scoped to the caller's company
(g.company_id, set by @require_auth). Category, supplier and warehouse ids
in the payload must belong to the same company.

SECURITY: All routes require authentication.
- Read operations require VIEW_INVENTORY permission
- Write operations require MANAGE_PRODUCTS permission
"""
from flask import Blueprint, request, g

from ..services import products_service
from ..services.tenant_service import TenantAccessError
from ..models import Product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    ValidationError,
    ConflictError,
)
from ..decorators import require_auth, require_permission

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku", "name", "description", "category_id", "supplier_id", "warehouse_id",
        "price_cents", "cost_cents", "stock", "min_stock", "max_stock", "safety_stock",
        "reorder_point", "location", "unit_measure", "expiration_date", "is_active",
    },
    required_on_create={"sku", "name"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _list(stock_filter: str | None = None):
    try:
        return products_service.list_products(
            company_id=g.company_id,
            search=request.args.get("search"),
            category_id=request.args.get("category_id", type=int),
            supplier_id=request.args.get("supplier_id", type=int),
            warehouse_id=request.args.get("warehouse_id", type=int),
            stock_filter=stock_filter or request.args.get("stock"),
            include_inactive=request.args.get("include_inactive", "false").lower() == "true",
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
    except ValueError as e:
        return {"error": str(e)}, 400


@products_bp.get("")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_products():
    """
    List products with optional filters and pagination.

    Query params:
    - search: matches name or sku
    - category_id / supplier_id / warehouse_id
    - stock: low | out | excess
    - page / per_page (default 20, max 100); omit page to get everything
    """
    return _list()


@products_bp.get("/low-stock")
@require_auth
@require_permission("VIEW_INVENTORY")
def low_stock_products():
    return _list("low")


@products_bp.get("/out-of-stock")
@require_auth
@require_permission("VIEW_INVENTORY")
def out_of_stock_products():
    return _list("out")


@products_bp.get("/excess-stock")
@require_auth
@require_permission("VIEW_INVENTORY")
def excess_stock_products():
    return _list("excess")


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission("VIEW_INVENTORY")
def get_product_route(product_id: int):
    try:
        return products_service.get_product(product_id=product_id, company_id=g.company_id)
    except TenantAccessError:
        return {"error": "Product not found"}, 404


@products_bp.post("")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def create_product_route():
    """
    Create a product in the caller's company.

    A non-zero "stock" is booked as an opening "in" movement.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        created = products_service.create_product(patch=patch, company_id=g.company_id, user_id=g.current_user.id)
    except ConflictError as e:
        return {"error": str(e)}, 409
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    except ValueError as e:
        return {"error": str(e)}, 400

    return created, 201


@products_bp.put("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def update_product_route(product_id: int):
    """
    Update a product. A changed "stock" is booked as an adjustment movement.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        existing = products_service.require_product(product_id=product_id, company_id=g.company_id)
        enforce_rules_product(patch, existing=existing)
        updated = products_service.update_product(
            product_id=product_id, patch=patch, company_id=g.company_id, user_id=g.current_user.id,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except TenantAccessError as e:
        return {"error": str(e)}, 404

    return updated, 200


@products_bp.delete("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def delete_product_route(product_id: int):
    """Soft-delete: sales and movements keep referencing the product."""
    try:
        products_service.delete_product(product_id=product_id, company_id=g.company_id)
    except TenantAccessError:
        return {"error": "Product not found"}, 404

    return {"ok": True}, 200
