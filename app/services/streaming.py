from __future__ import annotations

from app.models.events import EventType, StreamEvent


def content(text: str) -> StreamEvent:
    return StreamEvent(event=EventType.CONTENT, data={"text": text})


def tool_status(description: str) -> StreamEvent:
    return StreamEvent(event=EventType.TOOL_STATUS, data={"description": description})


def done() -> StreamEvent:
    return StreamEvent(event=EventType.DONE)


def error(message: str) -> StreamEvent:
    return StreamEvent(event=EventType.ERROR, data={"message": message})
