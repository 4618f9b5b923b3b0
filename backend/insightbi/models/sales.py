from __future__ import annotations

from ..extensions import db
from ..time_utils import to_iso_date, to_utc_z


SALE_STATUSES = ("pending", "completed", "cancelled")
PAYMENT_STATUSES = ("pending", "partial", "paid", "overdue", "cancelled")


class Customer(db.Model):
    """
    Customer master data.

    code and tax_id (RUT) are the dedup keys used by imports; both are
    optional but unique within a company when present.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.UniqueConstraint("company_id", "code", name="uq_customers_company_code"),
        db.Index("ix_customers_company_tax_id", "company_id", "tax_id"),
        db.Index("ix_customers_company_name", "company_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    code = db.Column(db.String(64), nullable=True)
    name = db.Column(db.String(255), nullable=False)
    tax_id = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(120), nullable=True)
    segment = db.Column(db.String(64), nullable=True)
    credit_limit_cents = db.Column(db.Integer, nullable=True)
    payment_terms_days = db.Column(db.Integer, nullable=False, default=30)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "code": self.code,
            "name": self.name,
            "tax_id": self.tax_id,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "city": self.city,
            "segment": self.segment,
            "credit_limit_cents": self.credit_limit_cents,
            "payment_terms_days": self.payment_terms_days,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Salesperson(db.Model):
    __tablename__ = "salespeople"
    __table_args__ = (
        db.UniqueConstraint("company_id", "code", name="uq_salespeople_company_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    code = db.Column(db.String(64), nullable=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    commission_rate_bps = db.Column(db.Integer, nullable=False, default=0)  # 250 = 2.5%
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "code": self.code,
            "name": self.name,
            "email": self.email,
            "commission_rate_bps": self.commission_rate_bps,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Sale(db.Model):
    """
    Single-product sale (the primary sales record used by dashboards).

    A completed sale has a matching "out" InventoryMovement (sale_id) and has
    decremented product stock. Customer fields are denormalized on purpose:
    walk-in sales have no Customer row.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_company_date", "company_id", "sale_date"),
        db.Index("ix_sales_company_status", "company_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    customer_name = db.Column(db.String(255), nullable=True)
    customer_email = db.Column(db.String(255), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    total_cents = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(16), nullable=False, default="completed")
    sale_date = db.Column(db.DateTime(timezone=True), nullable=False)
    is_simulated = db.Column(db.Boolean, nullable=False, default=False)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("sales", lazy=True))
    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "customer_email": self.customer_email,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "total_cents": self.total_cents,
            "status": self.status,
            "sale_date": to_utc_z(self.sale_date),
            "is_simulated": self.is_simulated,
            "created_at": to_utc_z(self.created_at),
        }


class EnhancedSale(db.Model):
    """
    Invoice-grade sale with numbering, tax and discount breakdown.

    Imported invoices land here. Totals are computed from SaleItem rows when
    items are given; imported headers without items keep the file's totals.
    Stock is not touched (invoices describe already-shipped goods).
    """
    __tablename__ = "enhanced_sales"
    __table_args__ = (
        db.UniqueConstraint("company_id", "invoice_number", name="uq_enhanced_sales_company_invoice"),
        db.Index("ix_enhanced_sales_company_date", "company_id", "sale_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    invoice_number = db.Column(db.String(64), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    salesperson_id = db.Column(db.Integer, db.ForeignKey("salespeople.id"), nullable=True, index=True)

    sale_date = db.Column(db.Date, nullable=False)
    due_date = db.Column(db.Date, nullable=True)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    payment_status = db.Column(db.String(16), nullable=False, default="pending")
    payment_method = db.Column(db.String(32), nullable=True)
    channel = db.Column(db.String(32), nullable=True)
    currency = db.Column(db.String(3), nullable=False, default="CLP")
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("enhanced_sales", lazy=True))
    salesperson = db.relationship("Salesperson", backref=db.backref("enhanced_sales", lazy=True))
    items = db.relationship(
        "SaleItem",
        backref="enhanced_sale",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="SaleItem.id",
    )

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "company_id": self.company_id,
            "invoice_number": self.invoice_number,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "salesperson_id": self.salesperson_id,
            "sale_date": to_iso_date(self.sale_date),
            "due_date": to_iso_date(self.due_date),
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": self.tax_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "payment_status": self.payment_status,
            "payment_method": self.payment_method,
            "channel": self.channel,
            "currency": self.currency,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [i.to_dict() for i in self.items]
        return data


class SaleItem(db.Model):
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    enhanced_sale_id = db.Column(db.Integer, db.ForeignKey("enhanced_sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    line_total_cents = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "enhanced_sale_id": self.enhanced_sale_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "discount_cents": self.discount_cents,
            "line_total_cents": self.line_total_cents,
        }
