# Overview: Service-layer operations for generating simulated business data and data statistics.

"""
Simulated data for demos and trials.

Everything written here is flagged is_simulated (products, sales,
collections, receivables) and the run is recorded as a DataImport with
data_type "test_data", so analytics can tell generated history from real
history. Generation is deterministic for a given seed.

Stock is consistent with history: each product opens with an "in"
movement, every completed sale writes an "out" movement, and a product
that runs dry mid-year is restocked with a purchase movement first.
"""
from __future__ import annotations

import random
import unicodedata
from datetime import datetime, time, timedelta

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import (
    AccountReceivable,
    Collection,
    Company,
    Customer,
    DataImport,
    InventoryMovement,
    Product,
    Sale,
    Salesperson,
    Supplier,
    Warehouse,
)
from ..time_utils import to_utc_z, today, utcnow
from ..validation import ValidationError
from .catalog_service import default_warehouse, get_or_create_category
from .collections_service import refresh_receivable
from .inventory_service import apply_movement
from .sales_service import find_customer, find_salesperson

MAX_PRODUCTS = 500
MAX_MONTHS = 36

PRODUCT_NAMES = {
    "Electrónicos": [
        "Smartphone Premium", "Laptop Profesional", "Tablet 10 pulgadas", "Auriculares Bluetooth",
        "Smart TV 55 pulgadas", "Cámara Digital", "Parlante Portátil", "Smartwatch",
    ],
    "Ropa y Accesorios": [
        "Polera Básica", "Jeans Premium", "Chaqueta Invierno", "Zapatillas Deportivas",
        "Camisa Formal", "Pantalón Chino", "Bufanda Lana", "Cinturón Cuero",
    ],
    "Hogar y Jardín": [
        "Aspiradora Robot", "Cafetera Express", "Juego Sábanas", "Lámpara LED",
        "Organizador Closet", "Macetero Cerámica", "Cortina Blackout", "Alfombra Sala",
    ],
    "Deportes": [
        "Pelota Fútbol", "Raqueta Tenis", "Bicicleta MTB", "Pesas Ajustables",
        "Colchoneta Yoga", "Guantes Boxeo", "Botella Termo", "Mancuernas 5kg",
    ],
    "Alimentación": [
        "Café Premium", "Miel Orgánica", "Aceite Oliva", "Quinoa 1kg",
        "Frutos Secos Mix", "Té Verde", "Chocolate 70%", "Granola Casera",
    ],
    "Ferretería": [
        "Taladro Percutor", "Martillo Carpintero", "Destornillador Set", "Nivel Láser",
        "Cinta Métrica", "Alicate Universal", "Sierra Manual", "Pegamento Universal",
    ],
    "Oficina y Papelería": [
        "Resma Papel A4", "Bolígrafos Pack", "Carpeta Archivador", "Calculadora Científica",
        "Corchetera", "Marcadores Colores", "Agenda Anual", "Cuaderno Universitario",
    ],
}

CUSTOMER_NAMES = [
    "Juan Pérez", "María González", "Carlos Rodríguez", "Ana Martínez", "Luis López",
    "Carmen Sánchez", "José Ramírez", "Laura Torres", "Miguel Flores", "Isabel Ruiz",
    "David Morales", "Patricia Jiménez", "Roberto Herrera", "Elena Castro", "Fernando Silva",
    "Mónica Vargas", "Alejandro Mendoza", "Beatriz Aguilar", "Raúl Delgado", "Sofía Vega",
]

SALESPERSON_NAMES = ["Andrea Muñoz", "Diego Castillo", "Valentina Rojas", "Matías Espinoza", "Francisca Pavez"]

SUPPLIER_NAMES = ["Proveedor A", "Proveedor B", "Proveedor C", "Proveedor D", "Proveedor E"]

CITIES = ["Santiago", "Valparaíso", "Concepción", "La Serena", "Temuco", "Antofagasta"]
SEGMENTS = ["retail", "mayorista", "corporativo", "pyme"]


def _rut_check_digit(number: int) -> str:
    total, factor = 0, 2
    for digit in reversed(str(number)):
        total += int(digit) * factor
        factor = 2 if factor == 7 else factor + 1
    rest = 11 - total % 11
    return {11: "0", 10: "K"}.get(rest, str(rest))


def _fake_rut(rng: random.Random) -> str:
    number = rng.randint(5_000_000, 25_000_000)
    return f"{number:,}".replace(",", ".") + "-" + _rut_check_digit(number)


def _email(name: str) -> str:
    ascii_name = unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode("ascii")
    return ascii_name.lower().replace(" ", ".") + "@email.com"


def _random_datetime(rng: random.Random, start: datetime, end: datetime) -> datetime:
    span = (end - start).total_seconds()
    return start + timedelta(seconds=rng.random() * span)


def _collection_status(rng: random.Random, sale_day, due_day, as_of) -> str:
    """Older invoices are more likely to be paid."""
    age = (as_of - sale_day).days
    paid_probability = 0.8 if age > 90 else 0.6 if age > 30 else 0.4
    if rng.random() < paid_probability:
        return "paid"
    return "overdue" if due_day < as_of else "pending"


def generate_test_data(
    company_id: int,
    *,
    products: int = 50,
    months: int = 12,
    sales: int | None = None,
    seed: int | None = None,
    user_id: int | None = None,
) -> dict:
    """
    Generate a year (by default) of simulated activity for one company.

    Returns counts per entity plus the DataImport id of the run.
    """
    if db.session.get(Company, company_id) is None:
        raise ValidationError("Company not found")
    if not 1 <= products <= MAX_PRODUCTS:
        raise ValidationError(f"products must be between 1 and {MAX_PRODUCTS}")
    if not 1 <= months <= MAX_MONTHS:
        raise ValidationError(f"months must be between 1 and {MAX_MONTHS}")
    sales_count = sales if sales is not None else products * 15
    if sales_count < 0:
        raise ValidationError("sales must be >= 0")

    rng = random.Random(seed)
    now = utcnow()
    start = now - timedelta(days=30 * months)
    as_of = today()
    counts = {
        "categories": 0, "suppliers": 0, "warehouses": 0, "products": 0, "customers": 0,
        "salespeople": 0, "sales": 0, "movements": 0, "collections": 0, "receivables": 0,
    }

    try:
        # Catalog
        categories = {}
        for name in PRODUCT_NAMES:
            categories[name] = get_or_create_category(company_id=company_id, name=name)
        counts["categories"] = len(categories)

        suppliers = []
        for name in SUPPLIER_NAMES:
            supplier = (
                db.session.query(Supplier)
                .filter(Supplier.company_id == company_id, Supplier.name == name)
                .first()
            )
            if supplier is None:
                supplier = Supplier(company_id=company_id, name=name, lead_time_days=rng.randint(3, 15))
                db.session.add(supplier)
                counts["suppliers"] += 1
            suppliers.append(supplier)

        warehouse = default_warehouse(company_id)
        if warehouse is None:
            warehouse = Warehouse(company_id=company_id, name="Bodega Central", code="BC", is_default=True)
            db.session.add(warehouse)
            counts["warehouses"] += 1
        db.session.flush()

        # People
        customers = []
        for i, name in enumerate(CUSTOMER_NAMES, start=1):
            code = f"CLI-{i:04d}"
            customer = find_customer(company_id=company_id, code=code)
            if customer is None:
                customer = Customer(
                    company_id=company_id,
                    code=code,
                    name=name,
                    tax_id=_fake_rut(rng),
                    email=_email(name),
                    phone=f"+56 9 {rng.randint(1000, 9999)} {rng.randint(1000, 9999)}",
                    city=rng.choice(CITIES),
                    segment=rng.choice(SEGMENTS),
                    credit_limit_cents=rng.randint(5, 50) * 100_000 * 100,
                    payment_terms_days=rng.choice([15, 30, 45, 60]),
                )
                db.session.add(customer)
                counts["customers"] += 1
            customers.append(customer)

        for i, name in enumerate(SALESPERSON_NAMES, start=1):
            if find_salesperson(company_id=company_id, name=name) is None:
                db.session.add(Salesperson(
                    company_id=company_id,
                    code=f"VEN-{i:03d}",
                    name=name,
                    email=_email(name),
                    commission_rate_bps=rng.choice([150, 200, 250, 300]),
                ))
                counts["salespeople"] += 1
        db.session.flush()

        # Products, each opening with an "in" movement at the start of the period
        offset = db.session.query(func.count(Product.id)).filter(Product.company_id == company_id).scalar() or 0
        created_products = []
        for i in range(offset + 1, offset + products + 1):
            category = rng.choice(list(PRODUCT_NAMES))
            base_name = rng.choice(PRODUCT_NAMES[category])
            cost = rng.randint(5_000, 150_000)
            price = round(cost * rng.uniform(1.3, 2.5))
            min_stock = rng.randint(5, 20)
            max_stock = min_stock * rng.randint(3, 8)
            expiration = None
            if category == "Alimentación":
                expiration = as_of + timedelta(days=rng.randint(-10, 365))

            product = Product(
                company_id=company_id,
                sku=f"SIM-{category[:3].upper()}-{i:04d}",
                name=f"{base_name} {i}",
                description=f"{base_name} de alta calidad ({category.lower()})",
                category_id=categories[category].id,
                supplier_id=rng.choice(suppliers).id,
                warehouse_id=warehouse.id,
                price_cents=price * 100,
                cost_cents=cost * 100,
                stock=0,
                min_stock=min_stock,
                max_stock=max_stock,
                safety_stock=max(1, min_stock // 2),
                reorder_point=min_stock + max(1, min_stock // 2),
                location=f"Pasillo {rng.randint(1, 10)}-{rng.randint(1, 50)}",
                expiration_date=expiration,
                is_simulated=True,
            )
            db.session.add(product)
            db.session.flush()
            apply_movement(
                product=product,
                movement_type="in",
                quantity=rng.randint(min_stock, max_stock),
                user_id=user_id,
                unit_cost_cents=product.cost_cents,
                reason="Stock inicial",
                movement_date=start,
            )
            counts["movements"] += 1
            created_products.append(product)
        counts["products"] = len(created_products)

        # Sales in date order, so stock checks see the stock of the day
        sale_dates = sorted(_random_datetime(rng, start, now) for _ in range(sales_count))
        completed_sales = []
        for when in sale_dates:
            product = rng.choice(created_products)
            customer = rng.choice(customers)
            quantity = rng.randint(1, 10)
            status = rng.choices(["completed", "pending", "cancelled"], weights=[85, 10, 5])[0]
            unit_price = round(product.price_cents * rng.uniform(0.9, 1.1))

            if status == "completed" and product.stock < quantity:
                apply_movement(
                    product=product,
                    movement_type="in",
                    quantity=max(product.max_stock - product.stock, quantity),
                    user_id=user_id,
                    unit_cost_cents=product.cost_cents,
                    reason="Compra a proveedor",
                    movement_date=when - timedelta(hours=1),
                )
                counts["movements"] += 1

            sale = Sale(
                company_id=company_id,
                product_id=product.id,
                customer_id=customer.id,
                customer_name=customer.name,
                customer_email=customer.email,
                quantity=quantity,
                unit_price_cents=unit_price,
                total_cents=quantity * unit_price,
                status=status,
                sale_date=when,
                is_simulated=True,
                created_by_user_id=user_id,
            )
            db.session.add(sale)
            db.session.flush()
            counts["sales"] += 1

            if status == "completed":
                apply_movement(
                    product=product,
                    movement_type="out",
                    quantity=quantity,
                    user_id=user_id,
                    sale_id=sale.id,
                    reason="Sale",
                    document_number=f"SALE-{sale.id}",
                    movement_date=when,
                )
                counts["movements"] += 1
                completed_sales.append((sale, customer))

        # Collections (80% of completed sales) and invoice-level receivables
        invoice_offset = (
            db.session.query(func.count(AccountReceivable.id))
            .filter(AccountReceivable.company_id == company_id)
            .scalar()
            or 0
        )
        for sale, customer in completed_sales:
            if rng.random() >= 0.8:
                continue
            sale_day = sale.sale_date.date()
            due_day = sale_day + timedelta(days=rng.randint(15, 60))
            status = _collection_status(rng, sale_day, due_day, as_of)
            paid_at = None
            if status == "paid":
                paid_day = min(sale_day + timedelta(days=rng.randint(1, 60)), as_of)
                paid_at = datetime.combine(paid_day, time(12, 0))
            db.session.add(Collection(
                company_id=company_id,
                sale_id=sale.id,
                customer_id=customer.id,
                customer_name=customer.name,
                amount_cents=sale.total_cents,
                due_date=due_day,
                status=status,
                paid_at=paid_at,
                is_simulated=True,
            ))
            counts["collections"] += 1

            if rng.random() < 0.3:
                invoice_offset += 1
                outstanding = 0 if status == "paid" else sale.total_cents
                if status != "paid" and rng.random() < 0.3:
                    outstanding = round(sale.total_cents * rng.uniform(0.2, 0.8))
                receivable = AccountReceivable(
                    company_id=company_id,
                    customer_id=customer.id,
                    invoice_number=f"SIM-F-{invoice_offset:06d}",
                    invoice_date=sale_day,
                    due_date=due_day,
                    original_amount_cents=sale.total_cents,
                    outstanding_amount_cents=outstanding,
                    collection_agent=rng.choice(SALESPERSON_NAMES),
                    is_simulated=True,
                )
                refresh_receivable(receivable, as_of)
                db.session.add(receivable)
                counts["receivables"] += 1

        total = sum(counts.values())
        record = DataImport(
            company_id=company_id,
            data_type="test_data",
            file_name=None,
            file_size=0,
            status="completed",
            total_records=total,
            successful_records=total,
            created_records=total,
            failed_records=0,
            created_by_user_id=user_id,
            completed_at=utcnow(),
        )
        db.session.add(record)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        "Generated simulated data for company %s: %s products, %s sales",
        company_id, counts["products"], counts["sales"],
    )
    return {"import_id": record.id, "simulated": True, **counts}


def data_statistics(company_id: int) -> dict:
    """Per-entity counts, sales date range and money totals for one company."""

    def _count(model, *criteria):
        return (
            db.session.query(func.count(model.id))
            .filter(model.company_id == company_id, *criteria)
            .scalar()
            or 0
        )

    first_sale, last_sale = (
        db.session.query(func.min(Sale.sale_date), func.max(Sale.sale_date))
        .filter(Sale.company_id == company_id)
        .one()
    )
    revenue = (
        db.session.query(func.coalesce(func.sum(Sale.total_cents), 0))
        .filter(Sale.company_id == company_id, Sale.status == "completed")
        .scalar()
    )
    inventory_value = (
        db.session.query(func.coalesce(func.sum(Product.price_cents * Product.stock), 0))
        .filter(Product.company_id == company_id, Product.is_active.is_(True))
        .scalar()
    )
    pending = (
        db.session.query(func.coalesce(func.sum(Collection.amount_cents), 0))
        .filter(Collection.company_id == company_id, Collection.status.in_(("pending", "overdue")))
        .scalar()
    )
    outstanding = (
        db.session.query(func.coalesce(func.sum(AccountReceivable.outstanding_amount_cents), 0))
        .filter(AccountReceivable.company_id == company_id)
        .scalar()
    )

    return {
        "counts": {
            "products": _count(Product),
            "customers": _count(Customer),
            "sales": _count(Sale),
            "movements": _count(InventoryMovement),
            "collections": _count(Collection),
            "receivables": _count(AccountReceivable),
            "imports": _count(DataImport),
        },
        "simulated": {
            "products": _count(Product, Product.is_simulated.is_(True)),
            "sales": _count(Sale, Sale.is_simulated.is_(True)),
            "collections": _count(Collection, Collection.is_simulated.is_(True)),
            "receivables": _count(AccountReceivable, AccountReceivable.is_simulated.is_(True)),
        },
        "date_range": {
            "first_sale": to_utc_z(first_sale),
            "last_sale": to_utc_z(last_sale),
        },
        "totals": {
            "revenue_cents": int(revenue or 0),
            "inventory_value_cents": int(inventory_value or 0),
            "pending_collections_cents": int(pending or 0),
            "receivables_outstanding_cents": int(outstanding or 0),
        },
    }
