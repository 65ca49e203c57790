from __future__ import annotations

from typing import Any

from pydantic import BaseModel


# --- Requests ---


class StreamRequest(BaseModel):
    action_type: str
    full_content: str = ""
    selection: str | None = None
    context: dict[str, Any] | None = None
    depth: str = "standard"
    stream: bool = True


class ActionRequest(BaseModel):
    query: str | None = None
    topic: str | None = None
    task: str | None = None
    context: dict[str, Any] | None = None
    depth: str = "standard"


# --- Responses ---


class StreamStartResponse(BaseModel):
    stream_id: str


class ActionResponse(BaseModel):
    content: str


class ErrorResponse(BaseModel):
    error: str


class ToolsResponse(BaseModel):
    tools: list[dict[str, Any]]
