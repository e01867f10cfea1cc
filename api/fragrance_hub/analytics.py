# fragrance_hub/analytics.py
"""
Derived analytics over in-memory entity lists.

Stock status, reorder suggestions, revenue aggregates, category and
supplier performance. Orders, movements and purchase orders are filtered to
a date window [now - N days, now]; product-level figures (inventory value,
alerts, category counts) always cover every product.
"""
from __future__ import annotations
import math
from collections import OrderedDict
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Literal, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

from fragrance_hub.db_models import OrderType


# ============================================================================
# Per-product helpers
# ============================================================================

def stock_status(product: Any) -> str:
    """out / low / high / ok"""
    stock = product.current_stock or 0
    if stock <= 0:
        return "out"
    if stock <= (product.min_stock or 0):
        return "low"
    if stock >= (product.max_stock or 0):
        return "high"
    return "ok"


def reorder_quantity(product: Any) -> int:
    """Units needed to reach the midpoint of min/max stock; never negative."""
    target = math.ceil(((product.max_stock or 0) + (product.min_stock or 0)) / 2)
    return max(0, target - (product.current_stock or 0))


def _f(value: Any) -> float:
    return float(value) if value is not None else 0.0


def _as_datetime(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    return None


# ============================================================================
# Date window
# ============================================================================

def date_window(days: int, now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    end = _as_datetime(now) if now is not None else datetime.now(timezone.utc)
    return end - timedelta(days=days), end


def in_window(items: Iterable[Any], attr: str, window: Tuple[datetime, datetime]) -> List[Any]:
    start, end = window
    out = []
    for item in items:
        ts = _as_datetime(getattr(item, attr, None))
        if ts is not None and start <= ts <= end:
            out.append(item)
    return out


# ============================================================================
# Result models
# ============================================================================

class OrderSummary(BaseModel):
    total_revenue: float = 0.0
    total_orders: int = 0
    average_order_value: float = 0.0


class TopProduct(BaseModel):
    product_id: int
    product_name: str
    quantity_sold: int = 0
    revenue: float = 0.0


class SalesTrendPoint(BaseModel):
    date: str
    sales: float
    orders: int


class CategoryPerformance(BaseModel):
    category: str
    products: int = 0
    sales: float = 0.0
    profit: float = 0.0


class StockAlerts(BaseModel):
    """Independent counters; a product can count towards low and reorder at once."""
    out_of_stock: int = 0
    low_stock: int = 0
    reorder: int = 0
    out_of_stock_ids: List[int] = Field(default_factory=list)
    low_stock_ids: List[int] = Field(default_factory=list)
    reorder_ids: List[int] = Field(default_factory=list)


class MovementSummary(BaseModel):
    stock_in: int = 0
    stock_out: int = 0
    movements: int = 0


class SupplierPerformance(BaseModel):
    supplier: str
    orders: int = 0
    total_value: float = 0.0
    on_time_deliveries: int = 0
    total_deliveries: int = 0


class ProductValue(BaseModel):
    product_id: int
    commercial_name: str
    code: str
    value: float = 0.0
    movement_count: int = 0


class DashboardSummary(BaseModel):
    total_products: int
    out_of_stock: int
    low_stock: int
    total_value: float
    top_by_value: List[ProductValue]
    top_by_movement: List[ProductValue]
    attention: List[ProductValue]


class AdvancedReport(BaseModel):
    days: int
    start: datetime
    end: datetime
    orders: OrderSummary
    inventory_value: float
    cost_of_goods_sold: float
    inventory_turnover: float
    top_products: List[TopProduct]
    sales_trend: List[SalesTrendPoint]
    category_performance: List[CategoryPerformance]
    movements: MovementSummary
    alerts: StockAlerts
    suppliers: List[SupplierPerformance]
    order_types: Dict[str, int]
    profit_margin: float


# ============================================================================
# Aggregates
# ============================================================================

def summarize_orders(orders: Sequence[Any]) -> OrderSummary:
    revenue = sum(_f(o.total_amount) for o in orders)
    count = len(orders)
    return OrderSummary(
        total_revenue=revenue,
        total_orders=count,
        average_order_value=revenue / count if count > 0 else 0.0,
    )


def inventory_value(products: Iterable[Any]) -> float:
    return sum((p.current_stock or 0) * _f(p.price) for p in products)


def sold_items(orders: Iterable[Any]) -> List[Any]:
    return [item for o in orders for item in (getattr(o, "items", None) or [])]


def cost_of_goods_sold(items: Iterable[Any]) -> float:
    return sum(i.quantity * _f(i.unit_price) for i in items)


def inventory_turnover(cogs: float, value: float) -> float:
    """
    COGS over current inventory value. Zero when the value is zero or
    negative (negative stock can push it below zero); a negative ratio has no
    meaning as a turnover rate.
    """
    return cogs / value if value > 0 else 0.0


def top_products(
    items: Iterable[Any],
    by: Literal["revenue", "quantity"] = "revenue",
    limit: int = 15,
) -> List[TopProduct]:
    """Group sold lines by product; ties keep first-encountered order."""
    grouped: "OrderedDict[int, TopProduct]" = OrderedDict()
    for item in items:
        entry = grouped.get(item.product_id)
        if entry is None:
            entry = grouped[item.product_id] = TopProduct(
                product_id=item.product_id, product_name=item.product_name or "Unknown Product"
            )
        entry.quantity_sold += item.quantity
        entry.revenue += _f(item.total_price)

    field = "quantity_sold" if by == "quantity" else "revenue"
    return sorted(grouped.values(), key=lambda t: getattr(t, field), reverse=True)[:limit]


def sales_trend(orders: Iterable[Any]) -> List[SalesTrendPoint]:
    """Daily revenue and order count, oldest day first."""
    by_day: Dict[str, SalesTrendPoint] = {}
    for o in orders:
        day = _as_datetime(o.created_at).astimezone(timezone.utc).date().isoformat()
        point = by_day.setdefault(day, SalesTrendPoint(date=day, sales=0.0, orders=0))
        point.sales += _f(o.total_amount)
        point.orders += 1
    return [by_day[d] for d in sorted(by_day)]


def category_performance(
    products: Iterable[Any],
    items: Iterable[Any],
    margin: float,
) -> List[CategoryPerformance]:
    """Every product counts, with or without sales; profit is an estimate (sales x margin)."""
    sales_by_product: Dict[Any, float] = {}
    for item in items:
        sales_by_product[item.product_id] = sales_by_product.get(item.product_id, 0.0) + _f(item.total_price)

    stats: Dict[str, CategoryPerformance] = {}
    for p in products:
        entry = stats.setdefault(p.category, CategoryPerformance(category=p.category))
        entry.products += 1
        sales = sales_by_product.get(p.id, 0.0)
        entry.sales += sales
        entry.profit += sales * margin
    return sorted(stats.values(), key=lambda c: c.sales, reverse=True)


def stock_alerts(products: Iterable[Any]) -> StockAlerts:
    alerts = StockAlerts()
    for p in products:
        stock = p.current_stock or 0
        if stock == 0:
            alerts.out_of_stock += 1
            alerts.out_of_stock_ids.append(p.id)
        if 0 < stock <= (p.min_stock or 0):
            alerts.low_stock += 1
            alerts.low_stock_ids.append(p.id)
        if stock <= (p.reorder_point or 0):
            alerts.reorder += 1
            alerts.reorder_ids.append(p.id)
    return alerts


def movement_summary(movements: Iterable[Any]) -> MovementSummary:
    summary = MovementSummary()
    for m in movements:
        kind = getattr(m.movement_type, "value", m.movement_type)
        if kind == "in":
            summary.stock_in += m.quantity
        elif kind == "out":
            summary.stock_out += m.quantity
        summary.movements += 1
    return summary


def supplier_performance(purchase_orders: Iterable[Any], supplier_names: Optional[Dict[Any, str]] = None) -> List[SupplierPerformance]:
    supplier_names = supplier_names or {}
    stats: Dict[str, SupplierPerformance] = {}
    for po in purchase_orders:
        name = supplier_names.get(po.supplier_id) or getattr(po, "supplier_name", None) or "Unknown Supplier"
        entry = stats.setdefault(name, SupplierPerformance(supplier=name))
        entry.orders += 1
        entry.total_value += _f(po.total_amount)
        if getattr(po.status, "value", po.status) == "received":
            entry.total_deliveries += 1
            if po.actual_delivery_date and po.expected_delivery_date:
                if po.actual_delivery_date <= po.expected_delivery_date:
                    entry.on_time_deliveries += 1
    return list(stats.values())


def order_type_counts(orders: Iterable[Any]) -> Dict[str, int]:
    counts = {t.value: 0 for t in OrderType}
    for o in orders:
        counts[OrderType.parse(o.order_type).value] += 1
    return counts


# ============================================================================
# Assembled reports
# ============================================================================

def _product_value(p: Any, movement_count: int = 0) -> ProductValue:
    return ProductValue(
        product_id=p.id,
        commercial_name=p.commercial_name,
        code=p.code,
        value=(p.current_stock or 0) * _f(p.price),
        movement_count=movement_count,
    )


def dashboard_summary(products: Sequence[Any], movements: Sequence[Any]) -> DashboardSummary:
    movement_counts: Dict[Any, int] = {}
    for m in movements:
        movement_counts[m.product_id] = movement_counts.get(m.product_id, 0) + 1

    statuses = [stock_status(p) for p in products]
    by_value = sorted(products, key=lambda p: (p.current_stock or 0) * _f(p.price), reverse=True)[:5]
    by_movement = sorted(products, key=lambda p: movement_counts.get(p.id, 0), reverse=True)[:5]
    attention = [p for p, s in zip(products, statuses) if s in ("out", "low")][:5]

    return DashboardSummary(
        total_products=len(products),
        out_of_stock=statuses.count("out"),
        low_stock=statuses.count("low"),
        total_value=inventory_value(products),
        top_by_value=[_product_value(p, movement_counts.get(p.id, 0)) for p in by_value],
        top_by_movement=[_product_value(p, movement_counts.get(p.id, 0)) for p in by_movement],
        attention=[_product_value(p, movement_counts.get(p.id, 0)) for p in attention],
    )


def build_advanced_report(
    products: Sequence[Any],
    orders: Sequence[Any],
    movements: Sequence[Any],
    purchase_orders: Sequence[Any],
    days: int = 30,
    sort_by: Literal["revenue", "quantity"] = "revenue",
    margin: float = 0.30,
    top_limit: int = 15,
    supplier_names: Optional[Dict[Any, str]] = None,
    now: Optional[datetime] = None,
) -> AdvancedReport:
    window = date_window(days, now)
    window_orders = in_window(orders, "created_at", window)
    window_movements = in_window(movements, "performed_at", window)
    window_pos = in_window(purchase_orders, "order_date", window)

    items = sold_items(window_orders)
    value = inventory_value(products)
    cogs = cost_of_goods_sold(items)

    return AdvancedReport(
        days=days,
        start=window[0],
        end=window[1],
        orders=summarize_orders(window_orders),
        inventory_value=value,
        cost_of_goods_sold=cogs,
        inventory_turnover=inventory_turnover(cogs, value),
        top_products=top_products(items, by=sort_by, limit=top_limit),
        sales_trend=sales_trend(window_orders),
        category_performance=category_performance(products, items, margin),
        movements=movement_summary(window_movements),
        alerts=stock_alerts(products),
        suppliers=supplier_performance(window_pos, supplier_names),
        order_types=order_type_counts(window_orders),
        profit_margin=margin,
    )
