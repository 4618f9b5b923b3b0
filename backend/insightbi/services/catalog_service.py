# Overview: Service-layer CRUD for categories, suppliers and warehouses.

"""
Catalog reference data (categories, suppliers, warehouses).

These are small tenant-owned lookup tables. Names (codes for warehouses)
are unique per company; deleting a row that products still reference is a
conflict rather than a cascade.
"""
from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Category, Product, Supplier, Warehouse
from ..validation import ConflictError
from .tenant_service import require_in_company


CATALOG_MODELS = {
    "categories": Category,
    "suppliers": Supplier,
    "warehouses": Warehouse,
}

_PRODUCT_FK = {
    Category: Product.category_id,
    Supplier: Product.supplier_id,
    Warehouse: Product.warehouse_id,
}


def list_entries(model, *, company_id: int) -> dict:
    rows = (
        db.session.query(model)
        .filter(model.company_id == company_id)
        .order_by(model.name.asc(), model.id.asc())
        .all()
    )
    return {"items": [r.to_dict() for r in rows], "count": len(rows)}


def create_entry(model, *, company_id: int, patch: dict) -> dict:
    if model is Warehouse and patch.get("is_default"):
        _clear_default_warehouse(company_id)

    entry = model(company_id=company_id, **patch)
    db.session.add(entry)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"{model.__name__} already exists for this company.")
    return entry.to_dict()


def update_entry(model, *, company_id: int, entry_id: int, patch: dict) -> dict:
    entry = require_in_company(model, entry_id, company_id)
    if model is Warehouse and patch.get("is_default"):
        _clear_default_warehouse(company_id)
    for key, value in patch.items():
        setattr(entry, key, value)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"{model.__name__} already exists for this company.")
    return entry.to_dict()


def delete_entry(model, *, company_id: int, entry_id: int) -> bool:
    entry = require_in_company(model, entry_id, company_id)
    in_use = db.session.query(Product.id).filter(_PRODUCT_FK[model] == entry.id).first()
    if in_use:
        raise ConflictError(f"{model.__name__} is still referenced by products.")
    db.session.delete(entry)
    db.session.commit()
    return True


def get_or_create_category(*, company_id: int, name: str) -> Category:
    """Resolve a category by name (case-insensitive), creating it if missing. Caller commits."""
    name = name.strip()
    category = (
        db.session.query(Category)
        .filter(Category.company_id == company_id, db.func.lower(Category.name) == name.lower())
        .first()
    )
    if category is None:
        category = Category(company_id=company_id, name=name)
        db.session.add(category)
        db.session.flush()
    return category


def default_warehouse(company_id: int) -> Warehouse | None:
    return (
        db.session.query(Warehouse)
        .filter(Warehouse.company_id == company_id)
        .order_by(Warehouse.is_default.desc(), Warehouse.id.asc())
        .first()
    )


def _clear_default_warehouse(company_id: int) -> None:
    db.session.query(Warehouse).filter(
        Warehouse.company_id == company_id,
        Warehouse.is_default.is_(True),
    ).update({"is_default": False})
