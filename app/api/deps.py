from __future__ import annotations

from fastapi import Request

from app.services.broadcaster import Broadcaster
from app.services.sessions import SessionManager


def get_broadcaster(request: Request) -> Broadcaster:
    return request.app.state.broadcaster


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.sessions
