# fragrance_hub/routers/deps.py
"""Shared router dependencies."""
from __future__ import annotations
from typing import Optional

from fastapi import Header, HTTPException, Request

from fragrance_hub.state import AppState


def get_user_id(x_user: Optional[str] = Header(None)) -> Optional[str]:
    """Acting user id, passed by the client after authentication."""
    return (x_user or "").strip() or None


def get_app_state(request: Request) -> AppState:
    state = getattr(request.app.state, "fragrance", None)
    if state is None:
        raise HTTPException(503, detail="Application state not initialized")
    return state
