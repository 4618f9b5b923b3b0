# Overview: Service-layer operations for stock movements; encapsulates business logic and database work.

"""
Inventory movements.

Product.stock is the running on-hand quantity; InventoryMovement is the
append-only history that explains it. Every stock change goes through
apply_movement() so the two never drift and analytics can aggregate real
history (units out per month, last movement date).

CONCURRENCY: the product row is loaded with SELECT ... FOR UPDATE where the
database supports it, and Product carries a version_id, so two racing
adjustments cannot silently overwrite each other.
"""
from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..models import InventoryMovement, Product, Warehouse
from ..models.inventory import MOVEMENT_TYPES
from ..time_utils import utcnow
from ..validation import ConflictError, ValidationError
from .query_utils import paginate_query
from .tenant_service import require_in_company


def lock_product(product_id: int, company_id: int) -> Product:
    product = (
        db.session.query(Product)
        .filter(Product.id == product_id)
        .with_for_update()
        .first()
    )
    if product is None or product.company_id != company_id:
        # Raises TenantAccessError (and logs cross-tenant probes)
        require_in_company(Product, product_id, company_id)
    return product


def apply_movement(
    *,
    product: Product,
    movement_type: str,
    quantity: int,
    user_id: int | None = None,
    warehouse_id: int | None = None,
    unit_cost_cents: int | None = None,
    reason: str | None = None,
    document_number: str | None = None,
    sale_id: int | None = None,
    notes: str | None = None,
    movement_date: datetime | None = None,
) -> InventoryMovement:
    """
    Apply a stock movement to an already-loaded product (caller commits).

    in / out / transfer take a positive quantity; adjustment takes a signed
    delta. Stock never goes negative: ConflictError instead.
    """
    if movement_type not in MOVEMENT_TYPES:
        raise ValidationError(f"movement_type must be one of: {', '.join(MOVEMENT_TYPES)}")

    if movement_type == "in":
        new_stock = product.stock + quantity
    elif movement_type == "out":
        new_stock = product.stock - quantity
    elif movement_type == "adjustment":
        new_stock = product.stock + quantity
    else:
        if warehouse_id is None:
            raise ValidationError("warehouse_id is required for transfer")
        require_in_company(Warehouse, warehouse_id, product.company_id)
        product.warehouse_id = warehouse_id
        new_stock = product.stock

    if new_stock < 0:
        raise ConflictError(
            f"Insufficient stock for {product.sku}: have {product.stock}, need {abs(quantity)}"
        )

    when = movement_date or utcnow()
    product.stock = new_stock
    if product.last_movement_at is None or when >= product.last_movement_at:
        product.last_movement_at = when

    movement = InventoryMovement(
        company_id=product.company_id,
        product_id=product.id,
        warehouse_id=warehouse_id if warehouse_id is not None else product.warehouse_id,
        movement_type=movement_type,
        quantity=quantity,
        stock_after=new_stock,
        unit_cost_cents=unit_cost_cents,
        reason=reason,
        document_number=document_number,
        sale_id=sale_id,
        user_id=user_id,
        notes=notes,
        movement_date=when,
    )
    db.session.add(movement)
    return movement


def record_movement(*, company_id: int, patch: dict, user_id: int | None = None) -> dict:
    """
    Record a movement from a validated payload and commit.

    Raises:
        TenantAccessError: product/warehouse not in company
        ConflictError: stock would go negative
    """
    product = lock_product(patch["product_id"], company_id)
    movement = apply_movement(
        product=product,
        movement_type=patch["movement_type"],
        quantity=patch["quantity"],
        user_id=user_id,
        warehouse_id=patch.get("warehouse_id"),
        unit_cost_cents=patch.get("unit_cost_cents"),
        reason=patch.get("reason"),
        document_number=patch.get("document_number"),
        notes=patch.get("notes"),
        movement_date=patch.get("movement_date"),
    )
    db.session.commit()
    return {"movement": movement.to_dict(), "product": product.to_dict()}


def list_movements(
    *,
    company_id: int,
    product_id: int | None = None,
    movement_type: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = db.session.query(InventoryMovement).filter(InventoryMovement.company_id == company_id)
    if product_id is not None:
        require_in_company(Product, product_id, company_id)
        query = query.filter(InventoryMovement.product_id == product_id)
    if movement_type:
        query = query.filter(InventoryMovement.movement_type == movement_type)
    if start is not None:
        query = query.filter(InventoryMovement.movement_date >= start)
    if end is not None:
        query = query.filter(InventoryMovement.movement_date <= end)

    query = query.order_by(InventoryMovement.movement_date.desc(), InventoryMovement.id.desc())
    return paginate_query(query, page=page, per_page=per_page)
