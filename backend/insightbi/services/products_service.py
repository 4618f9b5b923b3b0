# backend/insightbi/services/products_service.py
"""
Products Service with Multi-Tenant Support

MULTI-TENANT: All product operations are tenant-scoped.
- list_products filters by company_id
- create_product validates category/supplier/warehouse ownership
- update_product and delete_product verify the product belongs to the company

Stock changes made through create/update are recorded as inventory
movements (initial "in", then "adjustment" deltas) so history stays complete.
"""
from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..models import Category, Product, Supplier, Warehouse
from ..validation import ConflictError
from .inventory_service import apply_movement, lock_product
from .query_utils import paginate_query
from .tenant_service import require_in_company

PRODUCT_MUTABLE_FIELDS = {
    "sku", "name", "description", "category_id", "supplier_id", "warehouse_id",
    "price_cents", "cost_cents", "min_stock", "max_stock", "safety_stock",
    "reorder_point", "location", "unit_measure", "expiration_date", "is_active",
}

EXCESS_STOCK_FACTOR = 1.2

STOCK_FILTERS = ("low", "out", "excess")


def _check_references(patch: dict, company_id: int) -> None:
    for field, model in (("category_id", Category), ("supplier_id", Supplier), ("warehouse_id", Warehouse)):
        if patch.get(field) is not None:
            require_in_company(model, patch[field], company_id)


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _sku_taken(company_id: int, sku: str, exclude_id: int | None = None) -> bool:
    query = db.session.query(Product.id).filter(Product.company_id == company_id, Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    return query.first() is not None


def stock_filter_clause(stock_filter: str):
    """SQL predicate for the low / out / excess stock views."""
    if stock_filter == "low":
        return (Product.stock > 0) & (Product.stock <= Product.min_stock)
    if stock_filter == "out":
        return Product.stock == 0
    if stock_filter == "excess":
        return (Product.max_stock > 0) & (Product.stock >= Product.max_stock * EXCESS_STOCK_FACTOR)
    raise ValueError(f"Unknown stock filter: {stock_filter}")


def list_products(
    *,
    company_id: int,
    search: str | None = None,
    category_id: int | None = None,
    supplier_id: int | None = None,
    warehouse_id: int | None = None,
    stock_filter: str | None = None,
    include_inactive: bool = False,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Tenant-scoped product listing with optional filters and pagination.

    Returns:
        Dict with 'items', 'count', and pagination metadata if paginated.
    """
    query = db.session.query(Product).filter(Product.company_id == company_id)

    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(or_(Product.name.ilike(like), Product.sku.ilike(like)))
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    if supplier_id is not None:
        query = query.filter(Product.supplier_id == supplier_id)
    if warehouse_id is not None:
        query = query.filter(Product.warehouse_id == warehouse_id)
    if stock_filter:
        query = query.filter(stock_filter_clause(stock_filter))

    query = query.order_by(Product.name.asc(), Product.id.asc())
    return paginate_query(query, page=page, per_page=per_page)


def require_product(*, product_id: int, company_id: int) -> Product:
    return require_in_company(Product, product_id, company_id)


def get_product(*, product_id: int, company_id: int) -> dict:
    return require_in_company(Product, product_id, company_id).to_dict()


def create_product(*, patch: dict, company_id: int, user_id: int | None = None) -> dict:
    """
    Create product using a validated patch dict.

    Raises:
        TenantAccessError: If a referenced category/supplier/warehouse is foreign
        ConflictError: If SKU already exists in the company
    """
    sku = patch.get("sku")
    if not sku:
        raise ValueError("sku is required")

    _check_references(patch, company_id)

    if _sku_taken(company_id, sku):
        raise ConflictError("SKU already exists for this company.")

    p = Product(company_id=company_id, stock=0)
    apply_product_patch(p, patch)

    db.session.add(p)
    db.session.flush()  # ensure p.id exists before the opening movement

    initial_stock = patch.get("stock") or 0
    if initial_stock > 0:
        apply_movement(
            product=p,
            movement_type="in",
            quantity=initial_stock,
            user_id=user_id,
            unit_cost_cents=p.cost_cents,
            reason="Initial stock",
        )

    db.session.commit()
    return p.to_dict()


def update_product(*, product_id: int, patch: dict, company_id: int, user_id: int | None = None) -> dict:
    """
    Update a product. A changed "stock" value is booked as an adjustment movement.

    Raises:
        TenantAccessError: product (or referenced category/supplier/warehouse) not in company
        ConflictError: SKU collision
    """
    p = lock_product(product_id, company_id)
    _check_references(patch, company_id)

    if "sku" in patch and patch["sku"] != p.sku and _sku_taken(company_id, patch["sku"], exclude_id=p.id):
        raise ConflictError("SKU already exists for this company.")

    apply_product_patch(p, patch)

    if "stock" in patch and patch["stock"] is not None and patch["stock"] != p.stock:
        apply_movement(
            product=p,
            movement_type="adjustment",
            quantity=patch["stock"] - p.stock,
            user_id=user_id,
            reason="Manual stock edit",
        )

    db.session.commit()
    return p.to_dict()


def delete_product(*, product_id: int, company_id: int) -> bool:
    """
    Soft-delete a product.

    Soft-delete only: sales and movements keep referencing the row.
    """
    p = require_in_company(Product, product_id, company_id)
    if not p.is_active:
        return True
    p.is_active = False
    db.session.commit()
    return True


def find_product_by_sku(*, company_id: int, sku: str) -> Product | None:
    return db.session.query(Product).filter(Product.company_id == company_id, Product.sku == sku).first()


def company_products(company_id: int, *, include_inactive: bool = False) -> list[Product]:
    query = db.session.query(Product).filter(Product.company_id == company_id)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    return query.order_by(Product.id.asc()).all()
