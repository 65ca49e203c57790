from __future__ import annotations

import json

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sse_starlette.sse import EventSourceResponse

from app.agents.research_agent import ResearchAgent
from app.api.deps import get_broadcaster, get_session_manager
from app.llm_client import BackendFailureError
from app.models.schemas import (
    ActionRequest,
    ActionResponse,
    ErrorResponse,
    StreamRequest,
    StreamStartResponse,
    ToolsResponse,
)
from app.models.session import STREAM_ID_PREFIX, ResearchAction
from app.services import logger as log_service
from app.services.broadcaster import Broadcaster, SubscriptionConflictError
from app.services.sessions import SessionManager
from app.tools.research_tools import build_registry

router = APIRouter(prefix="/api/research", tags=["research"])


def _error(message: str, status_code: int = 422) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


@router.get("/tools", response_model=ToolsResponse)
async def list_tools():
    """Tool schemas exposed to the model backend."""
    return ToolsResponse(tools=build_registry().schemas())


@router.post(
    "/stream",
    response_model=StreamStartResponse,
    responses={422: {"model": ErrorResponse}},
)
async def start_stream(
    request: StreamRequest,
    sessions: SessionManager = Depends(get_session_manager),
):
    """Start an action in the background. Returns the stream_id to subscribe to."""
    try:
        action = ResearchAction(request.action_type)
    except ValueError:
        return _error(f"Unknown action: {request.action_type}")

    content = request.selection or request.full_content
    if not content.strip():
        return _error("Content is required")

    params = {
        "query": content,
        "topic": content,
        "task": content,
        "context": request.context,
        "depth": request.depth or "standard",
    }
    try:
        session = sessions.start(action, params)
    except Exception as e:
        log_service.log_event(
            event_type="stream_start_error",
            message="Failed to start research stream",
            error=str(e),
            action=action.value,
        )
        return _error(str(e))

    return StreamStartResponse(stream_id=session.id)


@router.get("/streams/{stream_id}")
async def stream_events(
    stream_id: str,
    broadcaster: Broadcaster = Depends(get_broadcaster),
    sessions: SessionManager = Depends(get_session_manager),
):
    """SSE channel for one stream. Each data line is one JSON message."""
    if not stream_id.startswith(STREAM_ID_PREFIX) or stream_id not in sessions:
        raise HTTPException(status_code=404, detail="Stream not found")
    try:
        subscription = broadcaster.subscribe(stream_id)
    except SubscriptionConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))

    async def event_generator():
        try:
            async for event in subscription:
                yield {"data": json.dumps(event.to_message())}
        finally:
            subscription.unsubscribe()

    return EventSourceResponse(event_generator())


@router.post(
    "/{action}",
    response_model=ActionResponse,
    responses={422: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)
async def run_action(action: str, request: ActionRequest):
    """Run an action to completion and return the whole answer."""
    try:
        research_action = ResearchAction(action)
    except ValueError:
        return _error(f"Unknown action: {action}")

    agent = ResearchAgent()
    try:
        content = await agent.generate(research_action, request.model_dump())
    except BackendFailureError as e:
        return _error(str(e), status_code=502)
    return ActionResponse(content=content)
