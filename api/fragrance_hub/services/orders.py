# fragrance_hub/services/orders.py
"""
Sales orders.

Creating an order inserts the order, its lines, decrements stock and appends
one "out" ledger row per line, all in one transaction. Replaying a create
with an order_number that already exists returns the stored order instead of
applying the stock effects twice.
"""
from __future__ import annotations
import logging
import secrets
import string
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from fragrance_hub.db_models import (
    MovementType, Order, OrderItem, OrderStatus, OrderType, Product, utcnow,
)
from fragrance_hub.errors import ValidationFailed, ZeroRowsAffected
from fragrance_hub.services.access import DataGateway
from fragrance_hub.services.activity import record_activity
from fragrance_hub.services.movements import apply_movement

logger = logging.getLogger(__name__)

_NUMBER_ALPHABET = string.ascii_uppercase + string.digits

ORDER_FIELDS = (
    "customer_name", "customer_email", "customer_phone", "pickup_by_staff",
    "pickup_person_name", "pickup_person_phone", "status", "notes",
)


def generate_number(prefix: str, now: Optional[datetime] = None) -> str:
    """PREFIX + yymmdd + 4 random characters, e.g. ORD2610174K2Q."""
    now = now or datetime.now()
    suffix = "".join(secrets.choice(_NUMBER_ALPHABET) for _ in range(4))
    return f"{prefix}{now:%y%m%d}{suffix}"


def parse_order_type(raw: Any) -> OrderType:
    try:
        return OrderType.parse(raw)
    except ValueError as e:
        raise ValidationFailed(str(e)) from e


def _normalize_loaded(order: Order) -> Order:
    # legacy spellings are normalized on the way out; unknown values degrade to delivery
    try:
        order.order_type = OrderType.parse(order.order_type).value
    except ValueError:
        logger.warning(f"Order {order.order_number} has unknown order_type {order.order_type!r}")
        order.order_type = OrderType.delivery.value
    return order


def order_query():
    return select(Order).options(selectinload(Order.items))


async def _load_products(session: AsyncSession, product_ids: List[int]) -> Dict[int, Product]:
    result = await session.execute(select(Product).where(Product.id.in_(product_ids)))
    products = {p.id: p for p in result.scalars().all()}
    missing = [pid for pid in product_ids if pid not in products]
    if missing:
        raise ZeroRowsAffected(f"Products not found: {', '.join(map(str, missing))}")
    return products


class OrderService:
    def __init__(self, gateway: DataGateway):
        self.gateway = gateway

    async def get_orders(self) -> List[Order]:
        async def op(session: AsyncSession) -> List[Order]:
            result = await session.execute(order_query().order_by(Order.created_at.desc(), Order.id.desc()))
            return [_normalize_loaded(o) for o in result.scalars().all()]

        return await self.gateway.read("get_orders", op)

    async def get_order(self, order_id: int) -> Optional[Order]:
        async def op(session: AsyncSession) -> Optional[Order]:
            result = await session.execute(order_query().where(Order.id == order_id))
            order = result.scalar_one_or_none()
            return _normalize_loaded(order) if order is not None else None

        return await self.gateway.read_one("get_order", op)

    async def get_orders_by_ids(self, order_ids: List[int]) -> List[Order]:
        async def op(session: AsyncSession) -> List[Order]:
            result = await session.execute(order_query().where(Order.id.in_(order_ids)).order_by(Order.id))
            return [_normalize_loaded(o) for o in result.scalars().all()]

        return await self.gateway.read("get_orders_by_ids", op)

    async def create_order(self, data: Dict[str, Any], user_id: Optional[str] = None) -> Order:
        items = data.get("items") or []
        if not items:
            raise ValidationFailed("An order needs at least one item")
        if not (data.get("customer_name") or "").strip():
            raise ValidationFailed("Customer name is required")
        order_type = parse_order_type(data.get("order_type"))
        requested_number = (data.get("order_number") or "").strip() or None

        async def op(session: AsyncSession) -> Order:
            if requested_number:
                result = await session.execute(order_query().where(Order.order_number == requested_number))
                existing = result.scalar_one_or_none()
                if existing is not None:
                    logger.info(f"Order {requested_number} already exists, returning stored order")
                    return _normalize_loaded(existing)

            products = await _load_products(session, list(dict.fromkeys(i["product_id"] for i in items)))
            order = Order(
                order_number=requested_number or generate_number("ORD"),
                customer_name=data["customer_name"].strip(),
                customer_email=data.get("customer_email"),
                customer_phone=data.get("customer_phone"),
                order_type=order_type.value,
                pickup_by_staff=bool(data.get("pickup_by_staff")),
                pickup_person_name=data.get("pickup_person_name"),
                pickup_person_phone=data.get("pickup_person_phone"),
                status=OrderStatus(data.get("status") or OrderStatus.pending),
                notes=data.get("notes"),
                created_by=user_id,
                items=[],
            )
            total = Decimal("0")
            for line in items:
                product = products[line["product_id"]]
                quantity = int(line["quantity"])
                unit_price = Decimal(str(line["unit_price"]))
                line_total = unit_price * quantity
                total += line_total
                order.items.append(OrderItem(
                    product_id=product.id,
                    batch_id=line.get("batch_id"),
                    product_name=line.get("product_name") or product.commercial_name,
                    quantity=quantity,
                    unit_price=unit_price,
                    total_price=line_total,
                ))
            order.total_amount = total
            session.add(order)
            await session.flush()

            for item in order.items:
                await apply_movement(
                    session,
                    products[item.product_id],
                    MovementType.stock_out,
                    item.quantity,
                    "Sale",
                    reference_number=order.order_number,
                    performed_by=user_id,
                    batch_id=item.batch_id,
                )
            record_activity(
                session, "create_order", "order", order.id, user_id,
                {"order_number": order.order_number, "total_amount": str(total), "items": len(order.items)},
            )
            await session.flush()
            logger.info(f"Order {order.order_number} created with {len(order.items)} items, total {total}")
            return order

        return await self.gateway.write("create_order", op, payload=data)

    async def update_order(self, order_id: int, updates: Dict[str, Any], user_id: Optional[str] = None) -> Order:
        """Any status may follow any other; there are no transition rules."""
        changes = {k: v for k, v in updates.items() if k in ORDER_FIELDS}
        if "order_type" in updates and updates["order_type"] is not None:
            changes["order_type"] = parse_order_type(updates["order_type"]).value
        if changes.get("status") is not None:
            changes["status"] = OrderStatus(changes["status"])

        async def op(session: AsyncSession) -> Order:
            result = await session.execute(order_query().where(Order.id == order_id))
            order = result.scalar_one_or_none()
            if order is None:
                raise ZeroRowsAffected(f"Order {order_id} not found")
            previous_status = order.status
            for key, value in changes.items():
                setattr(order, key, value)
            order.updated_at = utcnow()
            await session.flush()
            details = {"fields": sorted(changes)}
            if "status" in changes:
                details["status"] = [getattr(previous_status, "value", previous_status), order.status.value]
            record_activity(session, "update_order", "order", order.id, user_id, details)
            return _normalize_loaded(order)

        return await self.gateway.write("update_order", op, payload=changes)

    async def delete_order(self, order_id: int, user_id: Optional[str] = None) -> None:
        async def op(session: AsyncSession) -> None:
            result = await session.execute(order_query().where(Order.id == order_id))
            order = result.scalar_one_or_none()
            if order is None:
                raise ZeroRowsAffected(f"Order {order_id} not found")
            await session.delete(order)
            record_activity(session, "delete_order", "order", order_id, user_id, {"order_number": order.order_number})

        await self.gateway.write("delete_order", op)

    async def migrate_order_types(self) -> int:
        """Rewrite historical order_type spellings to their canonical value. Returns rows changed."""
        async def op(session: AsyncSession) -> int:
            result = await session.execute(select(Order))
            changed = 0
            for order in result.scalars().all():
                try:
                    canonical = OrderType.parse(order.order_type).value
                except ValueError:
                    logger.warning(f"Order {order.order_number}: cannot map order_type {order.order_type!r}")
                    continue
                if canonical != order.order_type:
                    order.order_type = canonical
                    changed += 1
            logger.info(f"Normalized order_type on {changed} orders")
            return changed

        return await self.gateway.write("migrate_order_types", op)
