# fragrance_hub/routers/activity.py
from __future__ import annotations
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from fragrance_hub.models import ActivityOut
from fragrance_hub.services.access import DataGateway, get_gateway
from fragrance_hub.services.activity import ActivityService

router = APIRouter(prefix="/activity", tags=["Activity"])


@router.get("", response_model=List[ActivityOut])
async def list_activity(
    entity_type: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None),
    limit: int = Query(500, ge=1, le=5000),
    gateway: DataGateway = Depends(get_gateway),
):
    return await ActivityService(gateway).get_activity_log(entity_type, user_id, limit)
