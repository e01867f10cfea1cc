# fragrance_hub/services/purchasing.py
"""
Purchase orders.

Receiving is cumulative: the caller states how many units of each line have
arrived in total, and only the difference to what was already booked moves
stock. Replaying the same receipt is therefore a no-op.
"""
from __future__ import annotations
import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from fragrance_hub.db_models import (
    MovementType, Product, PurchaseOrder, PurchaseOrderItem, PurchaseOrderStatus, Supplier, utcnow,
)
from fragrance_hub.errors import ValidationFailed, ZeroRowsAffected
from fragrance_hub.services.access import DataGateway
from fragrance_hub.services.activity import record_activity
from fragrance_hub.services.movements import apply_movement
from fragrance_hub.services.orders import generate_number

logger = logging.getLogger(__name__)

RECEIVABLE_STATUSES = {
    PurchaseOrderStatus.sent,
    PurchaseOrderStatus.confirmed,
    PurchaseOrderStatus.received,
}


def po_query():
    return select(PurchaseOrder).options(
        selectinload(PurchaseOrder.items),
        selectinload(PurchaseOrder.supplier),
    )


class PurchaseOrderService:
    def __init__(self, gateway: DataGateway):
        self.gateway = gateway

    async def get_purchase_orders(self) -> List[PurchaseOrder]:
        async def op(session: AsyncSession) -> List[PurchaseOrder]:
            result = await session.execute(
                po_query().order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc())
            )
            return list(result.scalars().all())

        return await self.gateway.read("get_purchase_orders", op)

    async def get_purchase_order(self, po_id: int) -> Optional[PurchaseOrder]:
        async def op(session: AsyncSession) -> Optional[PurchaseOrder]:
            result = await session.execute(po_query().where(PurchaseOrder.id == po_id))
            return result.scalar_one_or_none()

        return await self.gateway.read_one("get_purchase_order", op)

    async def create_purchase_order(self, data: Dict[str, Any], user_id: Optional[str] = None) -> PurchaseOrder:
        items = data.get("items") or []
        if not items:
            raise ValidationFailed("A purchase order needs at least one item")

        async def op(session: AsyncSession) -> PurchaseOrder:
            supplier = await session.get(Supplier, data["supplier_id"])
            if supplier is None:
                raise ZeroRowsAffected(f"Supplier {data['supplier_id']} not found")
            product_ids = list(dict.fromkeys(i["product_id"] for i in items))
            result = await session.execute(select(Product).where(Product.id.in_(product_ids)))
            products = {p.id: p for p in result.scalars().all()}
            missing = [pid for pid in product_ids if pid not in products]
            if missing:
                raise ZeroRowsAffected(f"Products not found: {', '.join(map(str, missing))}")

            po = PurchaseOrder(
                po_number=generate_number("PO"),
                supplier_id=supplier.id,
                status=PurchaseOrderStatus(data.get("status") or PurchaseOrderStatus.draft),
                order_date=data.get("order_date") or utcnow().date(),
                expected_delivery_date=data.get("expected_delivery_date"),
                notes=data.get("notes"),
                created_by=user_id,
                items=[],
            )
            total = Decimal("0")
            for line in items:
                product = products[line["product_id"]]
                quantity = int(line["quantity"])
                unit_price = Decimal(str(line["unit_price"]))
                total += unit_price * quantity
                po.items.append(PurchaseOrderItem(
                    product_id=product.id,
                    product_name=line.get("product_name") or product.commercial_name,
                    quantity=quantity,
                    received_quantity=0,
                    unit_price=unit_price,
                    total_price=unit_price * quantity,
                ))
            po.total_amount = total
            session.add(po)
            await session.flush()
            await session.refresh(po, ["supplier"])
            record_activity(
                session, "create_purchase_order", "purchase_order", po.id, user_id,
                {"po_number": po.po_number, "supplier": supplier.name, "total_amount": str(total)},
            )
            return po

        return await self.gateway.write("create_purchase_order", op, payload=data)

    async def update_purchase_order_status(
        self,
        po_id: int,
        status: PurchaseOrderStatus,
        user_id: Optional[str] = None,
    ) -> PurchaseOrder:
        """Status change only. Moving to received goes through receive_purchase_order so stock follows."""
        status = PurchaseOrderStatus(status)
        if status == PurchaseOrderStatus.received:
            raise ValidationFailed("Use the receive operation to mark a purchase order as received")

        async def op(session: AsyncSession) -> PurchaseOrder:
            result = await session.execute(po_query().where(PurchaseOrder.id == po_id))
            po = result.scalar_one_or_none()
            if po is None:
                raise ZeroRowsAffected(f"Purchase order {po_id} not found")
            if po.status == PurchaseOrderStatus.received:
                raise ValidationFailed(f"Purchase order {po.po_number} is already received")
            previous = po.status
            po.status = status
            po.updated_at = utcnow()
            record_activity(
                session, "update_purchase_order_status", "purchase_order", po.id, user_id,
                {"from": previous.value, "to": status.value},
            )
            await session.flush()
            return po

        return await self.gateway.write("update_purchase_order_status", op)

    async def receive_purchase_order(
        self,
        po_id: int,
        received: Optional[Dict[int, int]] = None,
        user_id: Optional[str] = None,
        received_on: Optional[date] = None,
    ) -> PurchaseOrder:
        """
        Book arrived goods: set received quantities, increment stock by the
        newly received delta, append "in" movements and mark the PO received,
        in one transaction. Lines missing from `received` are received in full.
        """
        received = {int(k): int(v) for k, v in (received or {}).items()}

        async def op(session: AsyncSession) -> PurchaseOrder:
            # row lock: received quantities are read, compared and rewritten below
            result = await session.execute(po_query().where(PurchaseOrder.id == po_id).with_for_update())
            po = result.scalar_one_or_none()
            if po is None:
                raise ZeroRowsAffected(f"Purchase order {po_id} not found")
            if po.status not in RECEIVABLE_STATUSES:
                raise ValidationFailed(
                    f"Purchase order {po.po_number} is {po.status.value}; only sent or confirmed orders can be received"
                )
            unknown = set(received) - {item.id for item in po.items}
            if unknown:
                raise ValidationFailed(f"Items not on purchase order {po.po_number}: {sorted(unknown)}")

            product_ids = [item.product_id for item in po.items]
            result = await session.execute(select(Product).where(Product.id.in_(product_ids)))
            products = {p.id: p for p in result.scalars().all()}

            booked = 0
            for item in po.items:
                target = received.get(item.id, item.quantity)
                if target < 0 or target > item.quantity:
                    raise ValidationFailed(
                        f"Received quantity for {item.product_name} must be between 0 and {item.quantity}"
                    )
                delta = target - (item.received_quantity or 0)
                if delta < 0:
                    raise ValidationFailed(
                        f"Received quantity for {item.product_name} cannot go below {item.received_quantity}"
                    )
                if delta == 0:
                    continue
                product = products.get(item.product_id)
                if product is None:
                    raise ZeroRowsAffected(f"Product {item.product_id} not found")
                await apply_movement(
                    session,
                    product,
                    MovementType.stock_in,
                    delta,
                    "Purchase order receipt",
                    reference_number=po.po_number,
                    performed_by=user_id,
                )
                item.received_quantity = target
                booked += delta

            po.status = PurchaseOrderStatus.received
            po.actual_delivery_date = po.actual_delivery_date or received_on or utcnow().date()
            po.updated_at = utcnow()
            if booked:
                record_activity(
                    session, "receive_purchase_order", "purchase_order", po.id, user_id,
                    {"po_number": po.po_number, "units": booked},
                )
            await session.flush()
            logger.info(f"Purchase order {po.po_number}: {booked} units booked into stock")
            return po

        return await self.gateway.write("receive_purchase_order", op)
