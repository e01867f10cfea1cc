# fragrance_hub/routers/orders.py
"""
Orders Router - sales orders, status updates and PDF export.
"""
from __future__ import annotations
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response

from fragrance_hub.exports import order_pdf_filename, orders_to_pdf
from fragrance_hub.models import BulkOrdersPdfIn, OrderIn, OrderOut, OrderUpdate
from fragrance_hub.routers.deps import get_user_id
from fragrance_hub.services.access import DataGateway, get_gateway
from fragrance_hub.services.orders import OrderService

router = APIRouter(prefix="/orders", tags=["Orders"])


def get_orders_service(gateway: DataGateway = Depends(get_gateway)) -> OrderService:
    return OrderService(gateway)


def _pdf_response(orders) -> Response:
    return Response(
        content=orders_to_pdf(orders),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{order_pdf_filename(orders)}"'},
    )


@router.get("", response_model=List[OrderOut])
async def list_orders(service: OrderService = Depends(get_orders_service)):
    return await service.get_orders()


@router.post("", response_model=OrderOut, status_code=201)
async def create_order(
    request: OrderIn,
    service: OrderService = Depends(get_orders_service),
    user_id: Optional[str] = Depends(get_user_id),
):
    """Order, lines, stock decrement and sale movements in one transaction."""
    return await service.create_order(request.model_dump(), user_id)


@router.post("/pdf")
async def bulk_orders_pdf(
    request: BulkOrdersPdfIn,
    service: OrderService = Depends(get_orders_service),
):
    if not request.order_ids:
        raise HTTPException(400, detail="No orders selected")
    orders = await service.get_orders_by_ids(request.order_ids)
    if not orders:
        raise HTTPException(404, detail="No matching orders")
    return _pdf_response(orders)


@router.post("/normalize-types")
async def normalize_order_types(service: OrderService = Depends(get_orders_service)):
    """Rewrite legacy order_type spellings in place."""
    return {"updated": await service.migrate_order_types()}


@router.get("/{order_id}", response_model=OrderOut)
async def get_order(order_id: int, service: OrderService = Depends(get_orders_service)):
    order = await service.get_order(order_id)
    if order is None:
        raise HTTPException(404, detail="Order not found")
    return order


@router.get("/{order_id}/pdf")
async def order_pdf(order_id: int, service: OrderService = Depends(get_orders_service)):
    order = await service.get_order(order_id)
    if order is None:
        raise HTTPException(404, detail="Order not found")
    return _pdf_response([order])


@router.patch("/{order_id}", response_model=OrderOut)
async def update_order(
    order_id: int,
    request: OrderUpdate,
    service: OrderService = Depends(get_orders_service),
    user_id: Optional[str] = Depends(get_user_id),
):
    updates = request.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(400, detail="No fields to update")
    return await service.update_order(order_id, updates, user_id)


@router.delete("/{order_id}", status_code=204)
async def delete_order(
    order_id: int,
    service: OrderService = Depends(get_orders_service),
    user_id: Optional[str] = Depends(get_user_id),
):
    await service.delete_order(order_id, user_id)
    return Response(status_code=204)
