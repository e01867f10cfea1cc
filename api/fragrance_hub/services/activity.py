# fragrance_hub/services/activity.py
"""
Activity log. Entries are appended inside the caller's transaction so the
audit row commits or rolls back with the change it describes.
"""
from __future__ import annotations
from typing import Any, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fragrance_hub.db_models import ActivityLog
from fragrance_hub.services.access import DataGateway


def record_activity(
    session: AsyncSession,
    action: str,
    entity_type: str,
    entity_id: Any,
    user_id: Optional[str] = None,
    details: Optional[dict] = None,
) -> ActivityLog:
    entry = ActivityLog(
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        details=details or {},
    )
    session.add(entry)
    return entry


class ActivityService:
    def __init__(self, gateway: DataGateway):
        self.gateway = gateway

    async def get_activity_log(
        self,
        entity_type: Optional[str] = None,
        user_id: Optional[str] = None,
        limit: int = 500,
    ) -> List[ActivityLog]:
        async def op(session: AsyncSession) -> List[ActivityLog]:
            stmt = select(ActivityLog)
            if entity_type:
                stmt = stmt.where(ActivityLog.entity_type == entity_type)
            if user_id:
                stmt = stmt.where(ActivityLog.user_id == user_id)
            stmt = stmt.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc()).limit(limit)
            result = await session.execute(stmt)
            return list(result.scalars().all())

        return await self.gateway.read("get_activity_log", op)

    async def log_activity(
        self,
        action: str,
        entity_type: str,
        entity_id: Any,
        user_id: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> ActivityLog:
        async def op(session: AsyncSession) -> ActivityLog:
            entry = record_activity(session, action, entity_type, entity_id, user_id, details)
            await session.flush()
            return entry

        return await self.gateway.write("log_activity", op)
