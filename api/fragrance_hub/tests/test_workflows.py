"""Orders, purchase orders, stock movements and product reports against SQLite."""
import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import select

from fragrance_hub import database
from fragrance_hub.db_models import (
    MovementType, Order, OrderStatus, OrderType, PurchaseOrderStatus, ReportStatus, StockMovement,
)
from fragrance_hub.errors import ValidationFailed, ZeroRowsAffected
from fragrance_hub.services.activity import ActivityService
from fragrance_hub.services.catalog import CatalogService
from fragrance_hub.services.movements import MovementService
from fragrance_hub.services.orders import OrderService
from fragrance_hub.services.product_reports import ProductReportService
from fragrance_hub.services.purchasing import PurchaseOrderService
from fragrance_hub.tests.factories import product_payload


@pytest.fixture
async def products(gateway):
    catalog = CatalogService(gateway)
    return [
        await catalog.create_product(product_payload("CH-001", current_stock=10)),
        await catalog.create_product(product_payload("DI-002", current_stock=4)),
    ]


def _order(products, **kw):
    data = {
        "customer_name": "Amina",
        "order_type": "storeToShop",
        "items": [
            {"product_id": products[0].id, "quantity": 3, "unit_price": Decimal("150")},
            {"product_id": products[1].id, "quantity": 1, "unit_price": Decimal("80")},
        ],
    }
    data.update(kw)
    return data


async def _stock(gateway, product_id):
    return (await CatalogService(gateway).get_product(product_id)).current_stock


# ============================================================================
# Orders
# ============================================================================

async def test_create_order_moves_stock_atomically(gateway, products):
    order = await OrderService(gateway).create_order(_order(products), user_id="u-1")

    assert order.order_number.startswith("ORD")
    assert order.order_type == OrderType.store_to_shop.value
    assert order.total_amount == Decimal("530")
    assert [i.product_name for i in order.items] == ["Bleu CH-001", "Bleu DI-002"]
    assert await _stock(gateway, products[0].id) == 7
    assert await _stock(gateway, products[1].id) == 3

    movements = await MovementService(gateway).get_stock_movements()
    assert len(movements) == 2
    assert {m.movement_type for m in movements} == {MovementType.stock_out}
    assert {m.reference_number for m in movements} == {order.order_number}
    assert {m.reason for m in movements} == {"Sale"}


async def test_replayed_order_number_is_applied_once(gateway, products):
    service = OrderService(gateway)
    first = await service.create_order(_order(products, order_number="ORD-CLIENT-1"))
    again = await service.create_order(_order(products, order_number="ORD-CLIENT-1"))
    assert again.id == first.id
    assert await _stock(gateway, products[0].id) == 7
    assert len(await MovementService(gateway).get_stock_movements()) == 2


async def test_order_with_missing_product_changes_nothing(gateway, products):
    data = _order(products)
    data["items"].append({"product_id": 9999, "quantity": 1, "unit_price": Decimal("1")})
    with pytest.raises(ZeroRowsAffected):
        await OrderService(gateway).create_order(data)
    assert await _stock(gateway, products[0].id) == 10
    assert await OrderService(gateway).get_orders() == []


async def test_order_validation(gateway, products):
    service = OrderService(gateway)
    with pytest.raises(ValidationFailed):
        await service.create_order(_order(products, items=[]))
    with pytest.raises(ValidationFailed):
        await service.create_order(_order(products, customer_name="  "))
    with pytest.raises(ValidationFailed):
        await service.create_order(_order(products, order_type="teleport"))


async def test_update_order_any_status(gateway, products):
    service = OrderService(gateway)
    order = await service.create_order(_order(products))
    shipped = await service.update_order(order.id, {"status": "delivered", "order_type": "Pickup"})
    assert shipped.status == OrderStatus.delivered
    assert shipped.order_type == "pickup"
    back = await service.update_order(order.id, {"status": "pending"})
    assert back.status == OrderStatus.pending


async def test_legacy_order_types_are_normalized(gateway, products):
    service = OrderService(gateway)
    order = await service.create_order(_order(products, order_type=None))
    assert order.order_type == "delivery"

    restricted, _ = database.get_session_factories()
    async with restricted() as session:
        stored = await session.get(Order, order.id)
        stored.order_type = "International-to-Tanzania"
        await session.commit()

    assert (await service.get_order(order.id)).order_type == "international_to_tanzania"
    assert await service.migrate_order_types() == 1
    assert await service.migrate_order_types() == 0


async def test_delete_order(gateway, products):
    service = OrderService(gateway)
    order = await service.create_order(_order(products))
    await service.delete_order(order.id)
    assert await service.get_order(order.id) is None
    with pytest.raises(ZeroRowsAffected):
        await service.delete_order(order.id)


# ============================================================================
# Purchase orders
# ============================================================================

async def _purchase_order(gateway, products, status="sent"):
    supplier = (await CatalogService(gateway).get_suppliers())[0]
    return await PurchaseOrderService(gateway).create_purchase_order({
        "supplier_id": supplier.id,
        "status": status,
        "items": [
            {"product_id": products[0].id, "quantity": 10, "unit_price": Decimal("90")},
            {"product_id": products[1].id, "quantity": 2, "unit_price": Decimal("40")},
        ],
    })


async def test_create_purchase_order(gateway, products):
    po = await _purchase_order(gateway, products)
    assert po.po_number.startswith("PO")
    assert po.total_amount == Decimal("980")
    assert po.supplier.name == "Argeville"
    assert [i.received_quantity for i in po.items] == [0, 0]


async def test_receive_is_cumulative_and_idempotent(gateway, products):
    service = PurchaseOrderService(gateway)
    po = await _purchase_order(gateway, products)
    first, second = po.items

    received = await service.receive_purchase_order(po.id, {first.id: 4, second.id: 0})
    assert received.status == PurchaseOrderStatus.received
    assert received.actual_delivery_date is not None
    assert await _stock(gateway, products[0].id) == 14

    # same quantities again: nothing moves
    await service.receive_purchase_order(po.id, {first.id: 4, second.id: 0})
    assert await _stock(gateway, products[0].id) == 14

    await service.receive_purchase_order(po.id, {first.id: 10, second.id: 2})
    assert await _stock(gateway, products[0].id) == 20
    assert await _stock(gateway, products[1].id) == 6

    movements = await MovementService(gateway).get_stock_movements(products[0].id)
    assert sorted(m.quantity for m in movements) == [4, 6]
    assert {m.reason for m in movements} == {"Purchase order receipt"}
    assert {m.reference_number for m in movements} == {po.po_number}


async def test_receive_rejects_over_delivery_and_decrease(gateway, products):
    service = PurchaseOrderService(gateway)
    po = await _purchase_order(gateway, products)
    first = po.items[0]
    with pytest.raises(ValidationFailed):
        await service.receive_purchase_order(po.id, {first.id: 11})
    await service.receive_purchase_order(po.id, {first.id: 5})
    with pytest.raises(ValidationFailed):
        await service.receive_purchase_order(po.id, {first.id: 3})
    assert await _stock(gateway, products[0].id) == 15


async def test_receive_requires_sent_or_confirmed(gateway, products):
    po = await _purchase_order(gateway, products, status="draft")
    with pytest.raises(ValidationFailed):
        await PurchaseOrderService(gateway).receive_purchase_order(po.id)
    assert await _stock(gateway, products[0].id) == 10


async def test_receive_without_quantities_receives_everything(gateway, products):
    po = await _purchase_order(gateway, products, status="confirmed")
    done = await PurchaseOrderService(gateway).receive_purchase_order(po.id)
    assert [i.received_quantity for i in done.items] == [10, 2]
    assert await _stock(gateway, products[1].id) == 6


async def test_status_update(gateway, products):
    service = PurchaseOrderService(gateway)
    po = await _purchase_order(gateway, products, status="draft")
    sent = await service.update_purchase_order_status(po.id, PurchaseOrderStatus.sent)
    assert sent.status == PurchaseOrderStatus.sent
    with pytest.raises(ValidationFailed):
        await service.update_purchase_order_status(po.id, PurchaseOrderStatus.received)


# ============================================================================
# Movements, reports, activity
# ============================================================================

async def test_manual_movement_adjusts_stock(gateway, products):
    service = MovementService(gateway)
    movement = await service.create_stock_movement(
        {"product_id": products[1].id, "movement_type": "out", "quantity": 6, "reason": "Damaged"},
        user_id="u-1",
    )
    assert movement.movement_type == MovementType.stock_out
    # stock may go negative
    assert await _stock(gateway, products[1].id) == -2

    with pytest.raises(ZeroRowsAffected):
        await service.create_stock_movement(
            {"product_id": 9999, "movement_type": "in", "quantity": 1, "reason": "x"}
        )


async def test_product_report_review(gateway, products):
    service = ProductReportService(gateway)
    report = await service.create_product_report(
        {"product_id": products[0].id, "report_type": "remove", "quantity": 2, "reason": "Broken"},
        user_id="staff-1",
    )
    assert report["status"] == ReportStatus.pending
    assert report["product"]["code"] == "CH-001"
    assert report["reporter"]["full_name"] == "Unknown User"
    assert report["reporter"]["email"] == "unknown@example.com"

    approved = await service.update_product_report_status(report["id"], "approved", "ok", user_id="admin")
    assert approved["status"] == ReportStatus.approved
    assert approved["admin_notes"] == "ok"
    # approval does not touch stock
    assert await _stock(gateway, products[0].id) == 10

    with pytest.raises(ValidationFailed):
        await service.update_product_report_status(report["id"], "rejected")
    with pytest.raises(ValidationFailed):
        await service.update_product_report_status(report["id"], "pending")

    listed = await service.get_product_reports()
    assert [r["id"] for r in listed] == [report["id"]]
    assert await service.get_product_reports("pending") == []

    # an unknown status is an error, not an empty list
    with pytest.raises(ValidationFailed):
        await service.get_product_reports("archived")
    with pytest.raises(ValidationFailed):
        await service.update_product_report_status(report["id"], "archived")


async def test_activity_log_records_changes(gateway, products):
    await OrderService(gateway).create_order(_order(products), user_id="u-7")
    activity = ActivityService(gateway)
    entries = await activity.get_activity_log(entity_type="order")
    assert [e.action for e in entries] == ["create_order"]
    assert entries[0].user_id == "u-7"

    await activity.log_activity("export", "product", "bulk", "u-7", {"rows": 2})
    mine = await activity.get_activity_log(user_id="u-7")
    assert {e.action for e in mine} == {"create_order", "export"}


async def test_movements_are_append_only_rows(gateway, products):
    await OrderService(gateway).create_order(_order(products))
    restricted, _ = database.get_session_factories()
    async with restricted() as session:
        rows = (await session.execute(select(StockMovement))).scalars().all()
    assert all(r.quantity > 0 for r in rows)


async def test_concurrent_movements_keep_stock_and_ledger_in_step(gateway, products):
    service = MovementService(gateway)
    product_id = products[0].id

    async def move(kind, qty):
        return await service.create_stock_movement(
            {"product_id": product_id, "movement_type": kind, "quantity": qty, "reason": "Count"}
        )

    await asyncio.gather(*[move("out", 1) for _ in range(5)], move("in", 3))
    assert await _stock(gateway, product_id) == 8

    rows = await service.get_stock_movements(product_id)
    net = sum(m.quantity if m.movement_type == MovementType.stock_in else -m.quantity for m in rows)
    assert len(rows) == 6
    assert 10 + net == 8


async def test_concurrent_orders_each_take_their_stock(gateway, products):
    service = OrderService(gateway)
    await asyncio.gather(*[service.create_order(_order(products)) for _ in range(3)])
    assert await _stock(gateway, products[0].id) == 1
    assert await _stock(gateway, products[1].id) == 1
