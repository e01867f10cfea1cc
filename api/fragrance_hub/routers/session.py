# fragrance_hub/routers/session.py
"""
Session Router - login/logout and per-user stock notifications.

Authentication itself happens upstream; login only registers the
authenticated profile with the in-process state.
"""
from __future__ import annotations
from dataclasses import asdict
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from fragrance_hub.models import LoginIn, NotificationOut, SessionOut
from fragrance_hub.services.access import DataGateway, get_gateway
from fragrance_hub.services.catalog import CatalogService
from fragrance_hub.routers.deps import get_app_state
from fragrance_hub.state import AppState, UserSession

router = APIRouter(prefix="/session", tags=["Session"])


def _session_out(session: UserSession) -> SessionOut:
    return SessionOut(
        user=LoginIn(**session.user),
        unread_count=session.notifications.unread_count(),
        notifications=[NotificationOut(**asdict(n)) for n in session.notifications.notifications],
    )


def _require(state: AppState, user_id: str) -> UserSession:
    session = state.get_session(user_id)
    if session is None:
        raise HTTPException(404, detail="No active session")
    return session


@router.post("/login", response_model=SessionOut)
async def login(
    request: LoginIn,
    state: AppState = Depends(get_app_state),
    gateway: DataGateway = Depends(get_gateway),
):
    session = state.open_session(request.model_dump(mode="json"))
    session.notifications.refresh(await CatalogService(gateway).get_products())
    return _session_out(session)


@router.post("/{user_id}/logout")
async def logout(user_id: str, state: AppState = Depends(get_app_state)):
    return {"closed": state.close_session(user_id)}


@router.get("/{user_id}", response_model=SessionOut)
async def get_session_state(user_id: str, state: AppState = Depends(get_app_state)):
    return _session_out(_require(state, user_id))


@router.post("/{user_id}/notifications/refresh", response_model=List[NotificationOut])
async def refresh_notifications(
    user_id: str,
    state: AppState = Depends(get_app_state),
    gateway: DataGateway = Depends(get_gateway),
):
    """Returns only the notifications created by this refresh."""
    session = _require(state, user_id)
    created = session.notifications.refresh(await CatalogService(gateway).get_products())
    return [NotificationOut(**asdict(n)) for n in created]


@router.post("/{user_id}/notifications/read-all")
async def mark_all_read(user_id: str, state: AppState = Depends(get_app_state)):
    session = _require(state, user_id)
    session.notifications.mark_all_read()
    return {"unread_count": 0}


@router.post("/{user_id}/notifications/{notification_id}/read")
async def mark_read(user_id: str, notification_id: str, state: AppState = Depends(get_app_state)):
    session = _require(state, user_id)
    if not session.notifications.mark_read(notification_id):
        raise HTTPException(404, detail="Notification not found")
    return {"unread_count": session.notifications.unread_count()}


@router.delete("/{user_id}/notifications/{notification_id}")
async def delete_notification(user_id: str, notification_id: str, state: AppState = Depends(get_app_state)):
    session = _require(state, user_id)
    if not session.notifications.delete(notification_id):
        raise HTTPException(404, detail="Notification not found")
    return {"unread_count": session.notifications.unread_count()}


@router.delete("/{user_id}/notifications")
async def clear_notifications(user_id: str, state: AppState = Depends(get_app_state)):
    _require(state, user_id).notifications.clear()
    return {"unread_count": 0}
