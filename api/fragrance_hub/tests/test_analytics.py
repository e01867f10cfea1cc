from datetime import date, timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest

from fragrance_hub.analytics import (
    build_advanced_report, category_performance, dashboard_summary, inventory_turnover,
    inventory_value, order_type_counts, reorder_quantity, sales_trend, stock_alerts, stock_status,
    summarize_orders, supplier_performance, top_products,
)
from fragrance_hub.tests.factories import NOW, make_item, make_order, make_product


def test_average_order_value_is_zero_without_orders():
    summary = summarize_orders([])
    assert summary.total_orders == 0
    assert summary.average_order_value == 0.0


def test_order_summary():
    orders = [
        make_order(1, [make_item(1, 2, 50)]),
        make_order(2, [make_item(2, 1, 200)]),
    ]
    summary = summarize_orders(orders)
    assert summary.total_revenue == 300.0
    assert summary.average_order_value == 150.0


def test_turnover_is_zero_without_inventory_value():
    assert inventory_turnover(500.0, 0.0) == 0.0
    assert inventory_turnover(500.0, 250.0) == 2.0


def test_turnover_is_zero_when_inventory_value_is_negative():
    assert inventory_turnover(500.0, -250.0) == 0.0


def test_stock_status_boundaries():
    assert stock_status(make_product(1, current_stock=0)) == "out"
    assert stock_status(make_product(1, current_stock=-2)) == "out"
    assert stock_status(make_product(1, current_stock=5)) == "low"
    assert stock_status(make_product(1, current_stock=6)) == "ok"
    assert stock_status(make_product(1, current_stock=50)) == "high"


def test_zero_stock_is_out_not_low():
    alerts = stock_alerts([make_product(1, current_stock=0), make_product(2, current_stock=4)])
    assert alerts.out_of_stock_ids == [1]
    assert alerts.low_stock_ids == [2]
    # counters overlap: both are at or under the reorder point
    assert alerts.reorder_ids == [1, 2]


def test_reorder_quantity_never_negative():
    assert reorder_quantity(make_product(1, current_stock=100)) == 0
    assert reorder_quantity(make_product(1, current_stock=0, min_stock=5, max_stock=50)) == 28
    assert reorder_quantity(make_product(1, current_stock=-3, min_stock=5, max_stock=50)) == 31


def test_inventory_value():
    items = [make_product(1, current_stock=2, price=Decimal("10.5")), make_product(2, current_stock=0)]
    assert inventory_value(items) == pytest.approx(21.0)


def test_top_products_grouped_and_stable():
    items = [
        make_item(1, 1, 100, "First"),
        make_item(2, 2, 50, "Second"),
        make_item(3, 5, 10, "Third"),
        make_item(1, 1, 20, "First"),
    ]
    by_revenue = top_products(items, by="revenue")
    assert [t.product_id for t in by_revenue] == [1, 2, 3]
    assert by_revenue[0].quantity_sold == 2
    assert by_revenue[0].revenue == 120.0

    tied = top_products([make_item(9, 1, 10), make_item(4, 1, 10), make_item(7, 1, 10)])
    assert [t.product_id for t in tied] == [9, 4, 7]

    by_quantity = top_products(items, by="quantity", limit=1)
    assert [t.product_id for t in by_quantity] == [3]


def test_category_performance_uses_margin_and_counts_unsold_products():
    products = [
        make_product(1, category="Parfum"),
        make_product(2, category="Parfum"),
        make_product(3, category="Eau de Toilette"),
    ]
    result = category_performance(products, [make_item(1, 2, 100)], margin=0.30)
    parfum = next(c for c in result if c.category == "Parfum")
    assert parfum.products == 2
    assert parfum.sales == 200.0
    assert parfum.profit == pytest.approx(60.0)
    edt = next(c for c in result if c.category == "Eau de Toilette")
    assert edt.products == 1 and edt.sales == 0.0


def test_sales_trend_is_daily_and_ascending():
    orders = [
        make_order(1, [make_item(1, 1, 10)], created_at=NOW),
        make_order(2, [make_item(1, 1, 30)], created_at=NOW - timedelta(days=1)),
        make_order(3, [make_item(1, 1, 5)], created_at=NOW),
    ]
    trend = sales_trend(orders)
    assert [p.date for p in trend] == ["2026-10-16", "2026-10-17"]
    assert trend[1].orders == 2 and trend[1].sales == 15.0


def test_order_type_counts_normalize_legacy_spellings():
    orders = [
        make_order(1, [], order_type="storeToShop"),
        make_order(2, [], order_type="store-to-shop"),
        make_order(3, [], order_type=None),
    ]
    counts = order_type_counts(orders)
    assert counts["store_to_shop"] == 2
    assert counts["delivery"] == 1
    assert counts["pickup"] == 0


def test_supplier_performance_on_time_deliveries():
    pos = [
        SimpleNamespace(supplier_id=1, total_amount=Decimal("100"), status="received",
                        expected_delivery_date=date(2026, 10, 10), actual_delivery_date=date(2026, 10, 9)),
        SimpleNamespace(supplier_id=1, total_amount=Decimal("50"), status="received",
                        expected_delivery_date=date(2026, 10, 10), actual_delivery_date=date(2026, 10, 12)),
        SimpleNamespace(supplier_id=2, total_amount=Decimal("10"), status="sent",
                        expected_delivery_date=None, actual_delivery_date=None),
    ]
    result = {s.supplier: s for s in supplier_performance(pos, {1: "Argeville", 2: "Givaudan"})}
    assert result["Argeville"].orders == 2
    assert result["Argeville"].total_value == 150.0
    assert result["Argeville"].on_time_deliveries == 1
    assert result["Argeville"].total_deliveries == 2
    assert result["Givaudan"].total_deliveries == 0


def test_dashboard_summary():
    products = [
        make_product(1, current_stock=0),
        make_product(2, current_stock=3),
        make_product(3, current_stock=40, price=Decimal("500")),
    ]
    movements = [SimpleNamespace(product_id=2), SimpleNamespace(product_id=2), SimpleNamespace(product_id=1)]
    summary = dashboard_summary(products, movements)
    assert summary.total_products == 3
    assert summary.out_of_stock == 1
    assert summary.low_stock == 1
    assert summary.top_by_value[0].product_id == 3
    assert summary.top_by_movement[0].product_id == 2
    assert {p.product_id for p in summary.attention} == {1, 2}


def test_advanced_report_window():
    products = [make_product(1, current_stock=10, price=Decimal("20"))]
    orders = [
        make_order(1, [make_item(1, 2, 20)], created_at=NOW - timedelta(days=2)),
        make_order(2, [make_item(1, 9, 20)], created_at=NOW - timedelta(days=45)),
    ]
    report = build_advanced_report(products, orders, [], [], days=30, now=NOW)
    assert report.orders.total_orders == 1
    assert report.cost_of_goods_sold == 40.0
    assert report.inventory_value == 200.0
    assert report.inventory_turnover == pytest.approx(0.2)
    assert report.top_products[0].quantity_sold == 2
    assert report.profit_margin == 0.30

    wider = build_advanced_report(products, orders, [], [], days=90, now=NOW)
    assert wider.orders.total_orders == 2
