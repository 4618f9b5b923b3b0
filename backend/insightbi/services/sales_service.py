# Overview: Service-layer operations for sales, invoices, customers and salespeople.

"""
Sales Service with Multi-Tenant Support

Two sale records coexist:

- Sale: one product, one quantity. This is the operational record: a
  completed Sale decrements Product.stock through an "out" movement
  (same transaction), and cancelling it books the stock back in.
- EnhancedSale + SaleItem: invoice-grade record (numbering, tax, discount,
  payment status). Created by invoice imports and the invoice API; it does
  not move stock because invoices describe goods already shipped.

Dashboards aggregate Sale; receivables and invoice analytics use EnhancedSale.
"""
from __future__ import annotations

from datetime import datetime

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Customer, EnhancedSale, Product, Sale, SaleItem, Salesperson
from ..models.sales import PAYMENT_STATUSES, SALE_STATUSES
from ..time_utils import utcnow
from ..validation import ConflictError, ValidationError
from .inventory_service import apply_movement, lock_product
from .query_utils import paginate_query
from .tenant_service import require_in_company


# Chilean VAT (IVA)
DEFAULT_TAX_RATE_BPS = 1900


# -- Sales --------------------------------------------------------------------

def list_sales(
    *,
    company_id: int,
    start: datetime | None = None,
    end: datetime | None = None,
    status: str | None = None,
    product_id: int | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = db.session.query(Sale).filter(Sale.company_id == company_id)
    if start is not None:
        query = query.filter(Sale.sale_date >= start)
    if end is not None:
        query = query.filter(Sale.sale_date <= end)
    if status:
        query = query.filter(Sale.status == status)
    if product_id is not None:
        query = query.filter(Sale.product_id == product_id)
    query = query.order_by(Sale.sale_date.desc(), Sale.id.desc())
    return paginate_query(query, page=page, per_page=per_page)


def get_sale(*, sale_id: int, company_id: int) -> dict:
    return require_in_company(Sale, sale_id, company_id).to_dict()


def create_sale(*, patch: dict, company_id: int, user_id: int | None = None, commit: bool = True) -> Sale:
    """
    Record a sale.

    unit_price_cents defaults to the product price; total is always
    quantity * unit price. A completed sale takes stock out immediately.

    Raises:
        TenantAccessError: product/customer not in company
        ConflictError: insufficient stock
    """
    status = patch.get("status") or "completed"
    if status not in SALE_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(SALE_STATUSES)}")

    product = lock_product(patch["product_id"], company_id)
    customer = None
    if patch.get("customer_id") is not None:
        customer = require_in_company(Customer, patch["customer_id"], company_id)

    quantity = patch["quantity"]
    if status == "completed" and product.stock < quantity:
        raise ConflictError(
            f"Insufficient stock for {product.sku}: have {product.stock}, need {quantity}"
        )

    unit_price = patch.get("unit_price_cents")
    if unit_price is None:
        unit_price = product.price_cents

    sale = Sale(
        company_id=company_id,
        product_id=product.id,
        customer_id=customer.id if customer else None,
        customer_name=patch.get("customer_name") or (customer.name if customer else None),
        customer_email=patch.get("customer_email") or (customer.email if customer else None),
        quantity=quantity,
        unit_price_cents=unit_price,
        total_cents=quantity * unit_price,
        status=status,
        sale_date=patch.get("sale_date") or utcnow(),
        is_simulated=bool(patch.get("is_simulated", False)),
        created_by_user_id=user_id,
    )
    db.session.add(sale)
    db.session.flush()

    if status == "completed":
        apply_movement(
            product=product,
            movement_type="out",
            quantity=quantity,
            user_id=user_id,
            sale_id=sale.id,
            reason="Sale",
            document_number=f"SALE-{sale.id}",
            movement_date=sale.sale_date,
        )

    if commit:
        db.session.commit()
    return sale


def update_sale_status(*, sale_id: int, company_id: int, status: str, user_id: int | None = None) -> dict:
    """
    Move a sale between pending / completed / cancelled, keeping stock consistent.

    pending -> completed   takes stock out
    completed -> cancelled books stock back in
    cancelled is terminal
    """
    if status not in SALE_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(SALE_STATUSES)}")

    sale = require_in_company(Sale, sale_id, company_id)
    if sale.status == status:
        return sale.to_dict()
    if sale.status == "cancelled":
        raise ConflictError("Cancelled sales cannot be reopened")

    product = lock_product(sale.product_id, company_id)
    if status == "completed":
        apply_movement(
            product=product, movement_type="out", quantity=sale.quantity, user_id=user_id,
            sale_id=sale.id, reason="Sale completed", document_number=f"SALE-{sale.id}",
        )
    elif status == "cancelled" and sale.status == "completed":
        apply_movement(
            product=product, movement_type="in", quantity=sale.quantity, user_id=user_id,
            sale_id=sale.id, reason="Sale cancelled", document_number=f"SALE-{sale.id}",
        )
    elif status == "pending":
        raise ConflictError("Completed sales cannot go back to pending")

    sale.status = status
    db.session.commit()
    return sale.to_dict()


# -- Enhanced sales (invoices) -------------------------------------------------

def _invoice_taken(company_id: int, invoice_number: str) -> bool:
    return db.session.query(EnhancedSale.id).filter(
        EnhancedSale.company_id == company_id,
        EnhancedSale.invoice_number == invoice_number,
    ).first() is not None


def compute_invoice_totals(items: list[dict], *, header_discount_cents: int = 0,
                           tax_rate_bps: int = DEFAULT_TAX_RATE_BPS) -> dict:
    """Subtotal from line totals, tax on (subtotal - discount), total = base + tax."""
    subtotal = sum(i["line_total_cents"] for i in items)
    base = max(subtotal - header_discount_cents, 0)
    tax = round(base * tax_rate_bps / 10_000)
    return {
        "subtotal_cents": subtotal,
        "discount_cents": header_discount_cents,
        "tax_cents": tax,
        "total_cents": base + tax,
    }


def create_enhanced_sale(*, company_id: int, data: dict, commit: bool = True) -> EnhancedSale:
    """
    Create an invoice.

    data["items"] (optional): [{product_id, quantity, unit_price_cents?, discount_cents?}].
    With items, totals are computed; without items, header amounts are taken as given.

    Raises ConflictError on a duplicate invoice_number.
    """
    invoice_number = (data.get("invoice_number") or "").strip()
    if not invoice_number:
        raise ValidationError("invoice_number is required")
    if _invoice_taken(company_id, invoice_number):
        raise ConflictError(f"Invoice {invoice_number} already exists")
    if data.get("sale_date") is None:
        raise ValidationError("sale_date is required")

    payment_status = data.get("payment_status") or "pending"
    if payment_status not in PAYMENT_STATUSES:
        raise ValidationError(f"payment_status must be one of: {', '.join(PAYMENT_STATUSES)}")

    if data.get("customer_id") is not None:
        require_in_company(Customer, data["customer_id"], company_id)
    if data.get("salesperson_id") is not None:
        require_in_company(Salesperson, data["salesperson_id"], company_id)

    sale = EnhancedSale(
        company_id=company_id,
        invoice_number=invoice_number,
        customer_id=data.get("customer_id"),
        salesperson_id=data.get("salesperson_id"),
        sale_date=data["sale_date"],
        due_date=data.get("due_date"),
        payment_status=payment_status,
        payment_method=data.get("payment_method"),
        channel=data.get("channel"),
        currency=data.get("currency") or "CLP",
        notes=data.get("notes"),
    )

    items = data.get("items") or []
    if items:
        lines = []
        for raw in items:
            product = require_in_company(Product, raw.get("product_id"), company_id)
            quantity = int(raw.get("quantity") or 0)
            if quantity <= 0:
                raise ValidationError("item quantity must be > 0")
            unit_price = raw.get("unit_price_cents")
            unit_price = product.price_cents if unit_price is None else int(unit_price)
            discount = int(raw.get("discount_cents") or 0)
            line_total = max(quantity * unit_price - discount, 0)
            lines.append({
                "product_id": product.id,
                "quantity": quantity,
                "unit_price_cents": unit_price,
                "discount_cents": discount,
                "line_total_cents": line_total,
            })
        totals = compute_invoice_totals(
            lines,
            header_discount_cents=int(data.get("discount_cents") or 0),
            tax_rate_bps=int(data.get("tax_rate_bps", DEFAULT_TAX_RATE_BPS)),
        )
        for key, value in totals.items():
            setattr(sale, key, value)
        sale.items = [SaleItem(**line) for line in lines]
    else:
        total = data.get("total_cents")
        if total is None:
            raise ValidationError("total_cents is required when no items are given")
        sale.total_cents = total
        sale.tax_cents = data.get("tax_cents") or 0
        sale.discount_cents = data.get("discount_cents") or 0
        sale.subtotal_cents = data.get("subtotal_cents") or max(total - sale.tax_cents + sale.discount_cents, 0)

    db.session.add(sale)
    if commit:
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError(f"Invoice {invoice_number} already exists")
    else:
        db.session.flush()
    return sale


def list_enhanced_sales(*, company_id: int, start=None, end=None, payment_status: str | None = None,
                        page: int | None = None, per_page: int | None = None) -> dict:
    query = db.session.query(EnhancedSale).filter(EnhancedSale.company_id == company_id)
    if start is not None:
        query = query.filter(EnhancedSale.sale_date >= start)
    if end is not None:
        query = query.filter(EnhancedSale.sale_date <= end)
    if payment_status:
        query = query.filter(EnhancedSale.payment_status == payment_status)
    query = query.order_by(EnhancedSale.sale_date.desc(), EnhancedSale.id.desc())
    return paginate_query(query, page=page, per_page=per_page)


def get_enhanced_sale(*, sale_id: int, company_id: int) -> dict:
    return require_in_company(EnhancedSale, sale_id, company_id, label="Invoice").to_dict(include_items=True)


# -- Customers / salespeople ---------------------------------------------------

def list_customers(*, company_id: int, search: str | None = None, page=None, per_page=None) -> dict:
    query = db.session.query(Customer).filter(Customer.company_id == company_id)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(Customer.name.ilike(like), Customer.tax_id.ilike(like), Customer.code.ilike(like)))
    query = query.order_by(Customer.name.asc(), Customer.id.asc())
    return paginate_query(query, page=page, per_page=per_page)


def create_customer(*, company_id: int, patch: dict, commit: bool = True) -> Customer:
    if patch.get("code") and db.session.query(Customer.id).filter(
        Customer.company_id == company_id, Customer.code == patch["code"]
    ).first():
        raise ConflictError("Customer code already exists for this company.")
    customer = Customer(company_id=company_id, **patch)
    db.session.add(customer)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return customer


def get_customer(*, company_id: int, customer_id: int) -> dict:
    return require_in_company(Customer, customer_id, company_id).to_dict()


def update_customer(*, company_id: int, customer_id: int, patch: dict) -> dict:
    customer = require_in_company(Customer, customer_id, company_id)
    if patch.get("code") and patch["code"] != customer.code and db.session.query(Customer.id).filter(
        Customer.company_id == company_id, Customer.code == patch["code"]
    ).first():
        raise ConflictError("Customer code already exists for this company.")
    for key, value in patch.items():
        setattr(customer, key, value)
    db.session.commit()
    return customer.to_dict()


def delete_customer(*, company_id: int, customer_id: int) -> bool:
    """Customers with history are deactivated instead of deleted."""
    customer = require_in_company(Customer, customer_id, company_id)
    has_history = (
        db.session.query(Sale.id).filter(Sale.customer_id == customer.id).first()
        or db.session.query(EnhancedSale.id).filter(EnhancedSale.customer_id == customer.id).first()
    )
    if has_history:
        customer.is_active = False
    else:
        db.session.delete(customer)
    db.session.commit()
    return True


def list_salespeople(*, company_id: int) -> dict:
    rows = (
        db.session.query(Salesperson)
        .filter(Salesperson.company_id == company_id)
        .order_by(Salesperson.name.asc())
        .all()
    )
    return {"items": [r.to_dict() for r in rows], "count": len(rows)}


def create_salesperson(*, company_id: int, patch: dict) -> dict:
    person = Salesperson(company_id=company_id, **patch)
    db.session.add(person)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Salesperson code already exists for this company.")
    return person.to_dict()


def update_salesperson(*, company_id: int, salesperson_id: int, patch: dict) -> dict:
    person = require_in_company(Salesperson, salesperson_id, company_id)
    for key, value in patch.items():
        setattr(person, key, value)
    db.session.commit()
    return person.to_dict()


def find_customer(*, company_id: int, code: str | None = None, tax_id: str | None = None,
                  name: str | None = None) -> Customer | None:
    """Dedup lookup used by imports: code first, then tax id (RUT), then exact name."""
    base = db.session.query(Customer).filter(Customer.company_id == company_id)
    if code:
        found = base.filter(Customer.code == code).first()
        if found:
            return found
    if tax_id:
        found = base.filter(Customer.tax_id == tax_id).first()
        if found:
            return found
    if name:
        return base.filter(db.func.lower(Customer.name) == name.strip().lower()).first()
    return None


def find_salesperson(*, company_id: int, name: str) -> Salesperson | None:
    return (
        db.session.query(Salesperson)
        .filter(Salesperson.company_id == company_id, db.func.lower(Salesperson.name) == name.strip().lower())
        .first()
    )
