# Overview: Service-layer operations for collections, receivables, payments and collection activities.

"""
Collections and accounts receivable.

Collection (legacy, per Sale) and AccountReceivable (per invoice) both
derive their status from dates and balances instead of trusting a status
typed in by a client:

- Collection: pending -> overdue once due_date < today; paid / cancelled
  are explicit transitions (mark paid, cancel).
- AccountReceivable: status, aging_days and priority are recomputed from
  due_date and outstanding balance on every payment and on refresh.
"""
from __future__ import annotations

from datetime import date

from sqlalchemy import func

from ..extensions import db
from ..models import AccountReceivable, Collection, CollectionActivity, Customer, EnhancedSale, Payment, Sale
from ..models.collections import ACTIVITY_TYPES, COLLECTION_STATUSES
from ..time_utils import today as utc_today, utcnow
from ..validation import ConflictError, ValidationError
from .query_utils import paginate_query
from .tenant_service import require_in_company


# -- Aging helpers ---------------------------------------------------------------

def calculate_aging_days(due_date: date, as_of: date | None = None) -> int:
    """Days past due; 0 when not yet due."""
    as_of = as_of or utc_today()
    return max(0, (as_of - due_date).days)


def determine_collection_status(aging_days: int, outstanding_cents: int = 1) -> str:
    if outstanding_cents <= 0:
        return "paid"
    if aging_days <= 0:
        return "current"
    if aging_days <= 30:
        return "overdue_30"
    if aging_days <= 60:
        return "overdue_60"
    if aging_days <= 90:
        return "overdue_90"
    return "overdue_120_plus"


def calculate_priority(amount: float, aging_days: int) -> str:
    """amount is in CLP (major units)."""
    if aging_days > 90 and amount > 5_000_000:
        return "critical"
    if aging_days > 60 and amount > 2_000_000:
        return "high"
    if aging_days > 30 or amount > 1_000_000:
        return "medium"
    return "low"


def refresh_receivable(receivable: AccountReceivable, as_of: date | None = None) -> None:
    aging = calculate_aging_days(receivable.due_date, as_of)
    receivable.aging_days = aging if receivable.outstanding_amount_cents > 0 else 0
    receivable.status = determine_collection_status(aging, receivable.outstanding_amount_cents)
    receivable.priority = (
        "low" if receivable.status == "paid"
        else calculate_priority(receivable.outstanding_amount_cents / 100, aging)
    )


# -- Legacy collections -------------------------------------------------------------

def refresh_collection_statuses(*, company_id: int, as_of: date | None = None) -> int:
    """Flip pending collections past their due date to overdue. Returns rows changed."""
    as_of = as_of or utc_today()
    changed = (
        db.session.query(Collection)
        .filter(
            Collection.company_id == company_id,
            Collection.status == "pending",
            Collection.due_date < as_of,
        )
        .update({"status": "overdue"}, synchronize_session="fetch")
    )
    db.session.commit()
    return changed


def list_collections(*, company_id: int, status: str | None = None, page=None, per_page=None) -> dict:
    refresh_collection_statuses(company_id=company_id)
    query = db.session.query(Collection).filter(Collection.company_id == company_id)
    if status:
        if status not in COLLECTION_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(COLLECTION_STATUSES)}")
        query = query.filter(Collection.status == status)
    query = query.order_by(Collection.due_date.asc(), Collection.id.asc())
    return paginate_query(query, page=page, per_page=per_page)


def create_collection(*, company_id: int, patch: dict, commit: bool = True) -> Collection:
    sale = None
    if patch.get("sale_id") is not None:
        sale = require_in_company(Sale, patch["sale_id"], company_id)
    if patch.get("customer_id") is not None:
        require_in_company(Customer, patch["customer_id"], company_id)

    customer_name = patch.get("customer_name") or (sale.customer_name if sale else None)
    if not customer_name:
        raise ValidationError("customer_name is required")

    collection = Collection(
        company_id=company_id,
        sale_id=sale.id if sale else None,
        customer_id=patch.get("customer_id"),
        customer_name=customer_name,
        amount_cents=patch["amount_cents"],
        due_date=patch["due_date"],
        notes=patch.get("notes"),
        is_simulated=bool(patch.get("is_simulated", False)),
    )
    status = patch.get("status") or "pending"
    _set_collection_status(collection, status)
    if collection.status == "pending" and collection.due_date < utc_today():
        collection.status = "overdue"

    db.session.add(collection)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return collection


def _set_collection_status(collection: Collection, status: str) -> None:
    if status not in COLLECTION_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(COLLECTION_STATUSES)}")
    if collection.status in ("paid", "cancelled") and status != collection.status:
        raise ConflictError(f"Collection is already {collection.status}")
    if status == "overdue":
        # overdue is derived from due_date, not set by hand
        status = "pending"
    collection.status = status
    if status == "paid" and collection.paid_at is None:
        collection.paid_at = utcnow()


def update_collection(*, company_id: int, collection_id: int, patch: dict) -> dict:
    collection = require_in_company(Collection, collection_id, company_id)
    for key in ("customer_name", "amount_cents", "due_date", "notes"):
        if key in patch:
            setattr(collection, key, patch[key])
    if "status" in patch:
        _set_collection_status(collection, patch["status"])
    if collection.status in ("pending", "overdue"):
        collection.status = "overdue" if collection.due_date < utc_today() else "pending"
    db.session.commit()
    return collection.to_dict()


def collections_summary(company_id: int) -> dict:
    refresh_collection_statuses(company_id=company_id)
    rows = (
        db.session.query(Collection.status, func.count(Collection.id), func.coalesce(func.sum(Collection.amount_cents), 0))
        .filter(Collection.company_id == company_id)
        .group_by(Collection.status)
        .all()
    )
    summary = {s: {"count": 0, "amount_cents": 0} for s in COLLECTION_STATUSES}
    for status, count, amount in rows:
        summary[status] = {"count": count, "amount_cents": int(amount)}
    return summary


# -- Receivables -----------------------------------------------------------------------

def create_receivable(*, company_id: int, data: dict, commit: bool = True) -> AccountReceivable:
    invoice_number = (data.get("invoice_number") or "").strip()
    if not invoice_number:
        raise ValidationError("invoice_number is required")
    exists = db.session.query(AccountReceivable.id).filter(
        AccountReceivable.company_id == company_id,
        AccountReceivable.invoice_number == invoice_number,
    ).first()
    if exists:
        raise ConflictError(f"Receivable for invoice {invoice_number} already exists")

    if data.get("customer_id") is not None:
        require_in_company(Customer, data["customer_id"], company_id)
    if data.get("enhanced_sale_id") is not None:
        require_in_company(EnhancedSale, data["enhanced_sale_id"], company_id, label="Invoice")

    original = data["original_amount_cents"]
    outstanding = data.get("outstanding_amount_cents")
    if outstanding is None:
        outstanding = original
    if outstanding < 0 or outstanding > original:
        raise ValidationError("outstanding amount must be between 0 and the original amount")

    receivable = AccountReceivable(
        company_id=company_id,
        customer_id=data.get("customer_id"),
        enhanced_sale_id=data.get("enhanced_sale_id"),
        invoice_number=invoice_number,
        invoice_date=data["invoice_date"],
        due_date=data["due_date"],
        original_amount_cents=original,
        outstanding_amount_cents=outstanding,
        currency=data.get("currency") or "CLP",
        collection_agent=data.get("collection_agent"),
        is_simulated=bool(data.get("is_simulated", False)),
    )
    refresh_receivable(receivable)
    db.session.add(receivable)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return receivable


def list_receivables(*, company_id: int, status: str | None = None, customer_id: int | None = None,
                     page=None, per_page=None) -> dict:
    query = db.session.query(AccountReceivable).filter(AccountReceivable.company_id == company_id)
    if status:
        query = query.filter(AccountReceivable.status == status)
    if customer_id is not None:
        query = query.filter(AccountReceivable.customer_id == customer_id)
    query = query.order_by(AccountReceivable.due_date.asc(), AccountReceivable.id.asc())
    return paginate_query(query, page=page, per_page=per_page)


def refresh_receivables(*, company_id: int, as_of: date | None = None) -> int:
    rows = (
        db.session.query(AccountReceivable)
        .filter(AccountReceivable.company_id == company_id, AccountReceivable.status != "paid")
        .all()
    )
    for r in rows:
        refresh_receivable(r, as_of)
    db.session.commit()
    return len(rows)


def get_receivable(*, company_id: int, receivable_id: int) -> dict:
    receivable = require_in_company(AccountReceivable, receivable_id, company_id, label="Receivable")
    data = receivable.to_dict()
    data["payments"] = [p.to_dict() for p in receivable.payments]
    data["activities"] = [a.to_dict() for a in receivable.activities]
    return data


def record_payment(*, company_id: int, receivable_id: int, patch: dict, user_id: int | None = None) -> dict:
    """
    Post a payment against a receivable.

    Overpayment is rejected; the receivable's status, aging and priority are
    re-derived from the new balance.
    """
    receivable = require_in_company(AccountReceivable, receivable_id, company_id, label="Receivable")
    amount = patch["amount_cents"]
    if amount > receivable.outstanding_amount_cents:
        raise ConflictError("Payment exceeds outstanding amount")

    payment = Payment(
        company_id=company_id,
        receivable_id=receivable.id,
        amount_cents=amount,
        payment_date=patch.get("payment_date") or utc_today(),
        method=patch.get("method"),
        reference=patch.get("reference"),
        created_by_user_id=user_id,
    )
    db.session.add(payment)

    receivable.outstanding_amount_cents -= amount
    refresh_receivable(receivable)

    if receivable.enhanced_sale is not None:
        receivable.enhanced_sale.payment_status = (
            "paid" if receivable.outstanding_amount_cents == 0 else "partial"
        )

    db.session.commit()
    return {"payment": payment.to_dict(), "receivable": receivable.to_dict()}


def log_activity(*, company_id: int, receivable_id: int, patch: dict, user_id: int | None = None) -> dict:
    receivable = require_in_company(AccountReceivable, receivable_id, company_id, label="Receivable")
    activity_type = patch.get("activity_type")
    if activity_type not in ACTIVITY_TYPES:
        raise ValidationError(f"activity_type must be one of: {', '.join(ACTIVITY_TYPES)}")

    activity = CollectionActivity(
        company_id=company_id,
        receivable_id=receivable.id,
        activity_type=activity_type,
        outcome=patch.get("outcome"),
        notes=patch.get("notes"),
        user_id=user_id,
        activity_date=patch.get("activity_date") or utc_today(),
        next_contact_date=patch.get("next_contact_date"),
    )
    db.session.add(activity)
    receivable.last_contact_date = activity.activity_date
    if activity.next_contact_date is not None:
        receivable.next_contact_date = activity.next_contact_date
    db.session.commit()
    return activity.to_dict()


def list_activities(*, company_id: int, receivable_id: int) -> dict:
    receivable = require_in_company(AccountReceivable, receivable_id, company_id, label="Receivable")
    items = [a.to_dict() for a in sorted(receivable.activities, key=lambda a: (a.activity_date, a.id), reverse=True)]
    return {"items": items, "count": len(items)}


AGING_BUCKETS = ("current", "overdue_30", "overdue_60", "overdue_90", "overdue_120_plus")


def receivables_summary(company_id: int) -> dict:
    refresh_receivables(company_id=company_id)
    rows = (
        db.session.query(
            AccountReceivable.status,
            func.count(AccountReceivable.id),
            func.coalesce(func.sum(AccountReceivable.outstanding_amount_cents), 0),
        )
        .filter(AccountReceivable.company_id == company_id, AccountReceivable.status != "paid")
        .group_by(AccountReceivable.status)
        .all()
    )
    buckets = {b: {"count": 0, "outstanding_cents": 0} for b in AGING_BUCKETS}
    for status, count, amount in rows:
        if status in buckets:
            buckets[status] = {"count": count, "outstanding_cents": int(amount)}
    total = sum(b["outstanding_cents"] for b in buckets.values())
    overdue = total - buckets["current"]["outstanding_cents"]
    return {
        "buckets": buckets,
        "total_outstanding_cents": total,
        "overdue_outstanding_cents": overdue,
        "overdue_ratio": round(overdue / total, 4) if total else 0.0,
    }
