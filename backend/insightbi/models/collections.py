from __future__ import annotations

from ..extensions import db
from ..time_utils import to_iso_date, to_utc_z


COLLECTION_STATUSES = ("pending", "paid", "overdue", "cancelled")
RECEIVABLE_STATUSES = ("current", "overdue_30", "overdue_60", "overdue_90", "overdue_120_plus", "paid")
RECEIVABLE_PRIORITIES = ("low", "medium", "high", "critical")
ACTIVITY_TYPES = ("call", "email", "visit", "letter", "agreement", "note")


class Collection(db.Model):
    """
    Money owed against a Sale.

    status is derived: pending becomes overdue once due_date has passed
    (collections_service.refresh_collection_statuses), and paid/cancelled
    are explicit terminal transitions.
    """
    __tablename__ = "collections"
    __table_args__ = (
        db.Index("ix_collections_company_status", "company_id", "status"),
        db.Index("ix_collections_company_due", "company_id", "due_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    customer_name = db.Column(db.String(255), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    due_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="pending")
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    is_simulated = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", backref=db.backref("collections", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "sale_id": self.sale_id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "amount_cents": self.amount_cents,
            "due_date": to_iso_date(self.due_date),
            "status": self.status,
            "paid_at": to_utc_z(self.paid_at),
            "notes": self.notes,
            "is_simulated": self.is_simulated,
            "created_at": to_utc_z(self.created_at),
        }


class AccountReceivable(db.Model):
    """
    Invoice-level receivable with aging.

    outstanding_amount_cents only moves through Payment rows; status,
    aging_days and priority are recomputed from due_date and the outstanding
    balance whenever a payment is posted or the receivable is refreshed.
    """
    __tablename__ = "accounts_receivable"
    __table_args__ = (
        db.UniqueConstraint("company_id", "invoice_number", name="uq_receivables_company_invoice"),
        db.Index("ix_receivables_company_status", "company_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    enhanced_sale_id = db.Column(db.Integer, db.ForeignKey("enhanced_sales.id"), nullable=True, index=True)

    invoice_number = db.Column(db.String(64), nullable=False)
    invoice_date = db.Column(db.Date, nullable=False)
    due_date = db.Column(db.Date, nullable=False)
    original_amount_cents = db.Column(db.Integer, nullable=False)
    outstanding_amount_cents = db.Column(db.Integer, nullable=False)
    currency = db.Column(db.String(3), nullable=False, default="CLP")

    aging_days = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(24), nullable=False, default="current")
    priority = db.Column(db.String(16), nullable=False, default="low")

    collection_agent = db.Column(db.String(120), nullable=True)
    last_contact_date = db.Column(db.Date, nullable=True)
    next_contact_date = db.Column(db.Date, nullable=True)
    is_simulated = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    customer = db.relationship("Customer", backref=db.backref("receivables", lazy=True))
    enhanced_sale = db.relationship("EnhancedSale", backref=db.backref("receivables", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "enhanced_sale_id": self.enhanced_sale_id,
            "invoice_number": self.invoice_number,
            "invoice_date": to_iso_date(self.invoice_date),
            "due_date": to_iso_date(self.due_date),
            "original_amount_cents": self.original_amount_cents,
            "outstanding_amount_cents": self.outstanding_amount_cents,
            "currency": self.currency,
            "aging_days": self.aging_days,
            "status": self.status,
            "priority": self.priority,
            "collection_agent": self.collection_agent,
            "last_contact_date": to_iso_date(self.last_contact_date),
            "next_contact_date": to_iso_date(self.next_contact_date),
            "is_simulated": self.is_simulated,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Payment(db.Model):
    __tablename__ = "payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    receivable_id = db.Column(db.Integer, db.ForeignKey("accounts_receivable.id"), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    payment_date = db.Column(db.Date, nullable=False)
    method = db.Column(db.String(32), nullable=True)
    reference = db.Column(db.String(120), nullable=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    receivable = db.relationship("AccountReceivable", backref=db.backref("payments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "receivable_id": self.receivable_id,
            "amount_cents": self.amount_cents,
            "payment_date": to_iso_date(self.payment_date),
            "method": self.method,
            "reference": self.reference,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


class CollectionActivity(db.Model):
    __tablename__ = "collection_activities"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    receivable_id = db.Column(db.Integer, db.ForeignKey("accounts_receivable.id"), nullable=False, index=True)
    activity_type = db.Column(db.String(16), nullable=False)
    outcome = db.Column(db.String(120), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    activity_date = db.Column(db.Date, nullable=False)
    next_contact_date = db.Column(db.Date, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    receivable = db.relationship("AccountReceivable", backref=db.backref("activities", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "receivable_id": self.receivable_id,
            "activity_type": self.activity_type,
            "outcome": self.outcome,
            "notes": self.notes,
            "user_id": self.user_id,
            "activity_date": to_iso_date(self.activity_date),
            "next_contact_date": to_iso_date(self.next_contact_date),
            "created_at": to_utc_z(self.created_at),
        }
