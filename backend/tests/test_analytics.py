# Overview: Pytest coverage for inventory KPIs, ABC classification, alerts and reorder math.

import random
from datetime import date, timedelta

from insightbi.services.analytics_service import (
    calculate_eoq,
    calculate_kpis,
    calculate_reorder_point,
    classify_abc,
    generate_alerts,
    summarize_abc,
)


def _p(pid, stock, price=1000, cost=500, min_stock=10, max_stock=100, **extra):
    return {
        "id": pid, "sku": f"SKU-{pid}", "name": f"Producto {pid}",
        "stock": stock, "price_cents": price, "cost_cents": cost,
        "min_stock": min_stock, "max_stock": max_stock, **extra,
    }


class TestClassifyAbc:

    def test_pareto_buckets(self):
        products = [
            _p(1, 70, price=10_000),   # 700k -> 70%
            _p(2, 20, price=10_000),   # 200k -> 90%
            _p(3, 10, price=10_000),   # 100k -> 100%
        ]
        rows = classify_abc(products)
        assert [r["product_id"] for r in rows] == [1, 2, 3]
        assert [r["classification"] for r in rows] == ["A", "B", "C"]
        assert rows[-1]["cumulative_percent"] == 100.0

        summary = summarize_abc(rows)
        assert summary["A"]["count"] == 1
        assert summary["A"]["value_percent"] == 70.0

    def test_zero_value_portfolio_is_all_c(self):
        rows = classify_abc([_p(1, 0), _p(2, 0)])
        assert {r["classification"] for r in rows} == {"C"}

    def test_empty(self):
        assert classify_abc([]) == []


class TestGenerateAlerts:

    def test_out_of_stock_only(self):
        alerts = generate_alerts([_p(1, 0)])
        assert [(a["alert_type"], a["priority"]) for a in alerts] == [("out_of_stock", "critical")]

    def test_low_stock_priorities(self):
        alerts = generate_alerts([_p(1, 5), _p(2, 8)])
        by_id = {a["product_id"]: a for a in alerts}
        assert by_id[1]["alert_type"] == "low_stock"
        assert by_id[1]["priority"] == "critical"  # 5 <= 10 * 0.5
        assert by_id[2]["priority"] == "high"

    def test_excess_stock(self):
        alerts = generate_alerts([_p(1, 120, max_stock=100), _p(2, 119, max_stock=100)])
        assert [(a["product_id"], a["alert_type"]) for a in alerts] == [(1, "excess_stock")]
        assert alerts[0]["priority"] == "medium"

    def test_expiry(self):
        today = date(2026, 1, 15)
        alerts = generate_alerts(
            [
                _p(1, 50, expiration_date=today - timedelta(days=1)),
                _p(2, 50, expiration_date=(today + timedelta(days=10)).isoformat()),
                _p(3, 50, expiration_date=today + timedelta(days=60)),
            ],
            today=today,
        )
        assert [(a["product_id"], a["alert_type"], a["priority"]) for a in alerts] == [
            (1, "expired", "critical"),
            (2, "expiring", "high"),
        ]

    def test_sorted_by_priority(self):
        alerts = generate_alerts([_p(1, 200, max_stock=100), _p(2, 0)])
        assert [a["priority"] for a in alerts] == ["critical", "medium"]


class TestKpis:

    def test_turnover_and_liquidity(self):
        products = [_p(1, 10, price=2000, cost=1000), _p(2, 0)]
        kpis = calculate_kpis(products, annual_cogs_cents=30_000)
        assert kpis["total_products"] == 2
        assert kpis["total_value_cents"] == 20_000
        assert kpis["total_cost_value_cents"] == 10_000
        assert kpis["turnover"] == 3.0
        assert kpis["liquidity_index"] == 85
        assert kpis["out_of_stock_count"] == 1
        assert kpis["service_level"] == 50.0

    def test_no_sales(self):
        kpis = calculate_kpis([_p(1, 10)])
        assert kpis["turnover"] == 0.0
        assert kpis["days_of_inventory"] == 0.0
        assert kpis["liquidity_index"] == 45

    def test_empty_portfolio(self):
        kpis = calculate_kpis([])
        assert kpis["total_products"] == 0
        assert kpis["service_level"] == 0.0


def test_reorder_math():
    assert calculate_reorder_point(2.0, 7, 5) == 19
    assert calculate_eoq(1200, 50, 5) == 155
    assert calculate_eoq(0, 50, 5) == 0


def test_out_of_stock_product_raises_alert_end_to_end(client, headers_a, product_a):
    headers = headers_a
    resp = client.post("/api/inventory/movements", headers=headers, json={
        "product_id": product_a.id, "movement_type": "out", "quantity": product_a.stock,
    })
    assert resp.status_code == 201

    alerts = client.get("/api/inventory/alerts", headers=headers).json
    types = [(a["product_id"], a["alert_type"]) for a in alerts["items"]]
    assert (product_a.id, "out_of_stock") in types
    assert (product_a.id, "low_stock") not in types

    kpis = client.get("/api/inventory/kpis", headers=headers).json
    assert kpis["kpis"]["out_of_stock_count"] == 1


def test_new_empty_product_shows_in_alerts(client, headers_a):
    created = client.post("/api/products", headers=headers_a, json={
        "sku": "NEW-001", "name": "Aceite 1L", "stock": 0, "min_stock": 10,
    })
    assert created.status_code == 201

    alerts = client.get("/api/inventory/alerts", headers=headers_a).json["items"]
    mine = [a for a in alerts if a["product_id"] == created.json["id"]]
    assert [a["alert_type"] for a in mine] == ["out_of_stock"]
    assert mine[0]["priority"] == "critical"


def test_partition_holds_for_random_portfolios():
    rng = random.Random(20240301)
    for _ in range(25):
        products = [
            _p(pid, rng.randint(0, 500), price=rng.randint(0, 50_000))
            for pid in range(1, rng.randint(1, 60) + 1)
        ]
        rows = classify_abc(products)
        assert sorted(r["product_id"] for r in rows) == [p["id"] for p in products]
        assert all(r["classification"] in ("A", "B", "C") for r in rows)
        summary = summarize_abc(rows)
        assert sum(summary[k]["count"] for k in "ABC") == len(products)


def test_excess_stock_views_agree(client, headers_a):
    unbounded = client.post("/api/products", headers=headers_a, json={
        "sku": "NOMAX-1", "name": "Bolsa reutilizable", "stock": 5, "min_stock": 0, "max_stock": 0,
    })
    overstocked = client.post("/api/products", headers=headers_a, json={
        "sku": "OVER-1", "name": "Sal 1kg", "stock": 20, "min_stock": 0, "max_stock": 10,
    })
    assert unbounded.status_code == 201
    assert overstocked.status_code == 201

    listed = client.get("/api/products/excess-stock", headers=headers_a).json
    assert [p["sku"] for p in listed["items"]] == ["OVER-1"]

    kpis = client.get("/api/inventory/kpis", headers=headers_a).json
    assert kpis["kpis"]["excess_stock_count"] == listed["count"]
