# fragrance_hub/services/movements.py
"""
Stock movement ledger.

Append-only: movements are never updated or deleted by the application.
Each append adjusts the product's current_stock in the same transaction.
"""
from __future__ import annotations
import logging
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from fragrance_hub.db_models import MovementType, Product, StockMovement, utcnow
from fragrance_hub.errors import ValidationFailed, ZeroRowsAffected
from fragrance_hub.services.access import DataGateway
from fragrance_hub.services.activity import record_activity

logger = logging.getLogger(__name__)


async def apply_movement(
    session: AsyncSession,
    product: Product,
    movement_type: MovementType,
    quantity: int,
    reason: str,
    reference_number: Optional[str] = None,
    notes: Optional[str] = None,
    performed_by: Optional[str] = None,
    batch_id: Optional[int] = None,
) -> StockMovement:
    """
    Append one ledger row and move the product's stock by the same amount.

    The stock change is a single `current_stock = current_stock + delta`
    statement, so concurrent writers on one product never lose an update.
    """
    if quantity <= 0:
        raise ValidationFailed("Movement quantity must be a positive integer")
    movement = StockMovement(
        product_id=product.id,
        batch_id=batch_id,
        movement_type=movement_type,
        quantity=quantity,
        reason=reason,
        reference_number=reference_number,
        notes=notes,
        performed_by=performed_by,
        performed_at=utcnow(),
    )
    session.add(movement)
    delta = quantity if movement_type == MovementType.stock_in else -quantity
    now = utcnow()
    values = {"current_stock": Product.current_stock + delta, "updated_at": now}
    if performed_by:
        values["updated_by"] = performed_by
    stmt = (
        update(Product)
        .where(Product.id == product.id)
        .values(**values)
        .returning(Product.current_stock)
        .execution_options(synchronize_session=False)
    )
    stock_after = (await session.execute(stmt)).scalar_one()
    # keep the loaded row in step without scheduling a second UPDATE
    set_committed_value(product, "current_stock", stock_after)
    set_committed_value(product, "updated_at", now)
    if performed_by:
        set_committed_value(product, "updated_by", performed_by)
    return movement


class MovementService:
    def __init__(self, gateway: DataGateway):
        self.gateway = gateway

    async def get_stock_movements(self, product_id: Optional[int] = None) -> List[StockMovement]:
        async def op(session: AsyncSession) -> List[StockMovement]:
            stmt = select(StockMovement)
            if product_id is not None:
                stmt = stmt.where(StockMovement.product_id == product_id)
            stmt = stmt.order_by(StockMovement.performed_at.desc(), StockMovement.id.desc())
            result = await session.execute(stmt)
            return list(result.scalars().all())

        return await self.gateway.read("get_stock_movements", op)

    async def create_stock_movement(self, data: dict, user_id: Optional[str] = None) -> StockMovement:
        movement_type = MovementType(data["movement_type"])
        quantity = int(data["quantity"])
        product_id = data["product_id"]

        async def op(session: AsyncSession) -> StockMovement:
            product = await session.get(Product, product_id)
            if product is None:
                raise ZeroRowsAffected(f"Product {product_id} not found")
            movement = await apply_movement(
                session,
                product,
                movement_type,
                quantity,
                data.get("reason") or "",
                reference_number=data.get("reference_number"),
                notes=data.get("notes"),
                performed_by=user_id,
                batch_id=data.get("batch_id"),
            )
            await session.flush()
            record_activity(
                session, f"stock_{movement_type.value}", "product", product.id, user_id,
                {"quantity": quantity, "movement_id": movement.id, "stock_after": product.current_stock},
            )
            logger.info(
                f"Movement {movement_type.value} x{quantity} on product {product.id}, stock now {product.current_stock}"
            )
            return movement

        return await self.gateway.write("create_stock_movement", op, payload=data)
