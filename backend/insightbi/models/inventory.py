from __future__ import annotations

from ..extensions import db
from ..time_utils import to_iso_date, to_utc_z


MOVEMENT_TYPES = ("in", "out", "adjustment", "transfer")
ALERT_TYPES = ("out_of_stock", "low_stock", "excess_stock", "expiring", "expired")
ALERT_PRIORITIES = ("critical", "high", "medium", "low")


class Category(db.Model):
    __tablename__ = "categories"
    __table_args__ = (
        db.UniqueConstraint("company_id", "name", name="uq_categories_company_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=True)
    color = db.Column(db.String(16), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "name": self.name,
            "description": self.description,
            "color": self.color,
            "created_at": to_utc_z(self.created_at),
        }


class Supplier(db.Model):
    __tablename__ = "suppliers"
    __table_args__ = (
        db.UniqueConstraint("company_id", "name", name="uq_suppliers_company_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    contact_name = db.Column(db.String(255), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    lead_time_days = db.Column(db.Integer, nullable=False, default=7)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "name": self.name,
            "contact_name": self.contact_name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "lead_time_days": self.lead_time_days,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Warehouse(db.Model):
    __tablename__ = "warehouses"
    __table_args__ = (
        db.UniqueConstraint("company_id", "code", name="uq_warehouses_company_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    code = db.Column(db.String(32), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    is_default = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "name": self.name,
            "code": self.code,
            "address": self.address,
            "is_default": self.is_default,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Product master data and current stock position.

    MULTI-TENANT: Products are scoped to a company via company_id.

    SKU: unique within a company (UniqueConstraint). Imports use the SKU as
    the dedup key, so re-importing a file updates instead of duplicating.

    stock is the current on-hand quantity. Every change that is not a plain
    master-data edit goes through an InventoryMovement so the history can be
    aggregated later (turnover, demand).

    abc_classification is written by analytics_service.apply_abc_classification
    and is only as fresh as the last run.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("company_id", "sku", name="uq_products_company_sku"),
        db.Index("ix_products_company_name", "company_id", "name"),
        db.Index("ix_products_company_active", "company_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=True, index=True)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    cost_cents = db.Column(db.Integer, nullable=False, default=0)

    stock = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=10)
    max_stock = db.Column(db.Integer, nullable=False, default=1000)
    safety_stock = db.Column(db.Integer, nullable=False, default=5)
    reorder_point = db.Column(db.Integer, nullable=False, default=15)

    location = db.Column(db.String(120), nullable=True)
    unit_measure = db.Column(db.String(32), nullable=False, default="unidad")
    expiration_date = db.Column(db.Date, nullable=True)
    last_movement_at = db.Column(db.DateTime(timezone=True), nullable=True)

    abc_classification = db.Column(db.String(1), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_simulated = db.Column(db.Boolean, nullable=False, default=False)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("Category", backref=db.backref("products", lazy=True))
    supplier = db.relationship("Supplier", backref=db.backref("products", lazy=True))
    warehouse = db.relationship("Warehouse", backref=db.backref("products", lazy=True))

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} company_id={self.company_id}>"

    @property
    def stock_value_cents(self) -> int:
        return (self.price_cents or 0) * (self.stock or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "category_id": self.category_id,
            "category_name": self.category.name if self.category else None,
            "supplier_id": self.supplier_id,
            "warehouse_id": self.warehouse_id,
            "price_cents": self.price_cents,
            "cost_cents": self.cost_cents,
            "stock": self.stock,
            "min_stock": self.min_stock,
            "max_stock": self.max_stock,
            "safety_stock": self.safety_stock,
            "reorder_point": self.reorder_point,
            "location": self.location,
            "unit_measure": self.unit_measure,
            "expiration_date": to_iso_date(self.expiration_date),
            "last_movement_at": to_utc_z(self.last_movement_at),
            "abc_classification": self.abc_classification,
            "is_active": self.is_active,
            "is_simulated": self.is_simulated,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryMovement(db.Model):
    """
    Append-only stock history.

    quantity is always positive for in/out/transfer; adjustment carries a
    signed delta. stock_after is the product stock right after applying it.
    """
    __tablename__ = "inventory_movements"
    __table_args__ = (
        db.Index("ix_inventory_movements_company_date", "company_id", "movement_date"),
        db.Index("ix_inventory_movements_product", "product_id", "movement_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=True)

    movement_type = db.Column(db.String(16), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    stock_after = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=True)

    reason = db.Column(db.String(255), nullable=True)
    document_number = db.Column(db.String(64), nullable=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    movement_date = db.Column(db.DateTime(timezone=True), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("movements", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "product_id": self.product_id,
            "warehouse_id": self.warehouse_id,
            "movement_type": self.movement_type,
            "quantity": self.quantity,
            "stock_after": self.stock_after,
            "unit_cost_cents": self.unit_cost_cents,
            "reason": self.reason,
            "document_number": self.document_number,
            "sale_id": self.sale_id,
            "user_id": self.user_id,
            "notes": self.notes,
            "movement_date": to_utc_z(self.movement_date),
            "created_at": to_utc_z(self.created_at),
        }


class StockAlert(db.Model):
    """Persisted alert, kept in sync with product state by analytics_service.sync_stock_alerts."""
    __tablename__ = "stock_alerts"
    __table_args__ = (
        db.Index("ix_stock_alerts_company_open", "company_id", "is_resolved"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    alert_type = db.Column(db.String(32), nullable=False)
    priority = db.Column(db.String(16), nullable=False)
    message = db.Column(db.String(512), nullable=False)
    threshold = db.Column(db.Integer, nullable=True)
    current_value = db.Column(db.Integer, nullable=True)

    is_resolved = db.Column(db.Boolean, nullable=False, default=False)
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("stock_alerts", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "product_id": self.product_id,
            "alert_type": self.alert_type,
            "priority": self.priority,
            "message": self.message,
            "threshold": self.threshold,
            "current_value": self.current_value,
            "is_resolved": self.is_resolved,
            "resolved_at": to_utc_z(self.resolved_at),
            "created_at": to_utc_z(self.created_at),
        }
