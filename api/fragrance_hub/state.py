# fragrance_hub/state.py
"""
In-process session and notification state.

An AppState is created in the application lifespan and cleared on
shutdown. Each logged-in user gets a UserSession with its own notification
list; logout discards it.
"""
from __future__ import annotations
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

PRIORITIES = ("critical", "high", "medium", "low")


@dataclass
class Notification:
    type: str
    title: str
    message: str
    entity_type: str
    entity_id: str
    priority: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    is_read: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def stock_notification(product: Any) -> Optional[Notification]:
    stock = product.current_stock or 0
    name = product.commercial_name
    if stock == 0:
        return Notification(
            type="out_of_stock",
            title="Out of Stock",
            message=f"{name} is out of stock",
            entity_type="product",
            entity_id=str(product.id),
            priority="critical",
        )
    if 0 < stock <= (product.min_stock or 0):
        return Notification(
            type="low_stock",
            title="Low Stock",
            message=f"{name} is running low ({stock} left)",
            entity_type="product",
            entity_id=str(product.id),
            priority="high",
        )
    if (product.min_stock or 0) < stock <= (product.reorder_point or 0):
        return Notification(
            type="reorder_point",
            title="Reorder Point Reached",
            message=f"{name} has reached its reorder point ({stock} left)",
            entity_type="product",
            entity_id=str(product.id),
            priority="medium",
        )
    return None


class NotificationCenter:
    def __init__(self):
        self.notifications: List[Notification] = []

    def refresh(self, products: Iterable[Any]) -> List[Notification]:
        """Add stock notifications; a product with an unread one of the same type is skipped."""
        unread = {(n.type, n.entity_id) for n in self.notifications if not n.is_read}
        created = []
        for product in products:
            note = stock_notification(product)
            if note is None or (note.type, note.entity_id) in unread:
                continue
            unread.add((note.type, note.entity_id))
            created.append(note)
        self.notifications = created[::-1] + self.notifications
        return created

    def mark_read(self, notification_id: str) -> bool:
        for n in self.notifications:
            if n.id == notification_id:
                n.is_read = True
                return True
        return False

    def mark_all_read(self) -> None:
        for n in self.notifications:
            n.is_read = True

    def delete(self, notification_id: str) -> bool:
        before = len(self.notifications)
        self.notifications = [n for n in self.notifications if n.id != notification_id]
        return len(self.notifications) != before

    def clear(self) -> None:
        self.notifications = []

    def unread_count(self) -> int:
        return sum(1 for n in self.notifications if not n.is_read)


@dataclass
class UserSession:
    user: Dict[str, Any]
    notifications: NotificationCenter = field(default_factory=NotificationCenter)
    opened_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class AppState:
    def __init__(self):
        self.sessions: Dict[str, UserSession] = {}

    def open_session(self, user: Dict[str, Any]) -> UserSession:
        user_id = str(user["id"])
        session = self.sessions.get(user_id)
        if session is None:
            session = self.sessions[user_id] = UserSession(user=dict(user))
            logger.info(f"Session opened for {user_id}")
        else:
            session.user = dict(user)
        return session

    def get_session(self, user_id: str) -> Optional[UserSession]:
        return self.sessions.get(user_id)

    def close_session(self, user_id: str) -> bool:
        session = self.sessions.pop(user_id, None)
        if session is None:
            return False
        session.notifications.clear()
        logger.info(f"Session closed for {user_id}")
        return True

    def clear(self) -> None:
        for user_id in list(self.sessions):
            self.close_session(user_id)
