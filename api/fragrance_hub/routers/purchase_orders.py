# fragrance_hub/routers/purchase_orders.py
from __future__ import annotations
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from fragrance_hub.db_models import PurchaseOrder
from fragrance_hub.models import (
    PurchaseOrderIn, PurchaseOrderOut, PurchaseOrderReceiveIn, PurchaseOrderStatusIn,
)
from fragrance_hub.routers.deps import get_user_id
from fragrance_hub.services.access import DataGateway, get_gateway
from fragrance_hub.services.purchasing import PurchaseOrderService

router = APIRouter(prefix="/purchase-orders", tags=["Purchase Orders"])


def get_purchasing(gateway: DataGateway = Depends(get_gateway)) -> PurchaseOrderService:
    return PurchaseOrderService(gateway)


def po_out(po: PurchaseOrder) -> PurchaseOrderOut:
    out = PurchaseOrderOut.model_validate(po)
    out.supplier_name = po.supplier.name if po.supplier is not None else None
    return out


@router.get("", response_model=List[PurchaseOrderOut])
async def list_purchase_orders(service: PurchaseOrderService = Depends(get_purchasing)):
    return [po_out(po) for po in await service.get_purchase_orders()]


@router.post("", response_model=PurchaseOrderOut, status_code=201)
async def create_purchase_order(
    request: PurchaseOrderIn,
    service: PurchaseOrderService = Depends(get_purchasing),
    user_id: Optional[str] = Depends(get_user_id),
):
    return po_out(await service.create_purchase_order(request.model_dump(), user_id))


@router.get("/{po_id}", response_model=PurchaseOrderOut)
async def get_purchase_order(po_id: int, service: PurchaseOrderService = Depends(get_purchasing)):
    po = await service.get_purchase_order(po_id)
    if po is None:
        raise HTTPException(404, detail="Purchase order not found")
    return po_out(po)


@router.patch("/{po_id}/status", response_model=PurchaseOrderOut)
async def update_purchase_order_status(
    po_id: int,
    request: PurchaseOrderStatusIn,
    service: PurchaseOrderService = Depends(get_purchasing),
    user_id: Optional[str] = Depends(get_user_id),
):
    return po_out(await service.update_purchase_order_status(po_id, request.status, user_id))


@router.post("/{po_id}/receive", response_model=PurchaseOrderOut)
async def receive_purchase_order(
    po_id: int,
    request: PurchaseOrderReceiveIn,
    service: PurchaseOrderService = Depends(get_purchasing),
    user_id: Optional[str] = Depends(get_user_id),
):
    """
    Book received quantities (cumulative per line) into stock.

    Lines left out of the body are received in full. Replaying the same body
    changes nothing.
    """
    return po_out(await service.receive_purchase_order(po_id, request.received, user_id))
