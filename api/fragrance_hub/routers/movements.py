# fragrance_hub/routers/movements.py
from __future__ import annotations
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from fragrance_hub.models import StockMovementIn, StockMovementOut
from fragrance_hub.routers.deps import get_user_id
from fragrance_hub.services.access import DataGateway, get_gateway
from fragrance_hub.services.movements import MovementService

router = APIRouter(prefix="/movements", tags=["Stock Movements"])


def get_movements(gateway: DataGateway = Depends(get_gateway)) -> MovementService:
    return MovementService(gateway)


@router.get("", response_model=List[StockMovementOut])
async def list_movements(
    product_id: Optional[int] = Query(None),
    service: MovementService = Depends(get_movements),
):
    """Ledger rows, newest first."""
    return await service.get_stock_movements(product_id)


@router.post("", response_model=StockMovementOut, status_code=201)
async def create_movement(
    request: StockMovementIn,
    service: MovementService = Depends(get_movements),
    user_id: Optional[str] = Depends(get_user_id),
):
    return await service.create_stock_movement(request.model_dump(), user_id)
