from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventType(str, Enum):
    CONTENT = "content"
    TOOL_STATUS = "tool_status"
    DONE = "done"
    ERROR = "error"


TERMINAL_EVENTS = frozenset({EventType.DONE, EventType.ERROR})


@dataclass
class StreamEvent:
    event: EventType
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.event in TERMINAL_EVENTS

    def to_message(self) -> dict[str, Any]:
        """Channel wire shape: one key naming the event."""
        if self.event == EventType.CONTENT:
            return {"content": self.data.get("text", "")}
        if self.event == EventType.TOOL_STATUS:
            return {"tool_status": {"description": self.data.get("description", "")}}
        if self.event == EventType.DONE:
            return {"done": True}
        return {"error": self.data.get("message", "")}

    @classmethod
    def from_message(cls, message: dict[str, Any]) -> StreamEvent:
        if "tool_status" in message:
            status = message["tool_status"] or {}
            return cls(EventType.TOOL_STATUS, {"description": status.get("description", "")})
        if "content" in message:
            return cls(EventType.CONTENT, {"text": message["content"]})
        if message.get("done"):
            return cls(EventType.DONE)
        if "error" in message:
            return cls(EventType.ERROR, {"message": message["error"]})
        raise ValueError(f"Unrecognized stream message: {message!r}")
