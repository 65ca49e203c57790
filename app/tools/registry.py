from __future__ import annotations

import inspect
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from app.services import logger as log_service

ToolHandler = Callable[..., Awaitable[str]]
StatusFormatter = Callable[[dict[str, Any]], str]


class ToolNotFoundError(LookupError):
    def __init__(self, name: str):
        super().__init__(f"Unknown tool: {name}")
        self.name = name


@dataclass(frozen=True)
class ToolSchema:
    name: str
    description: str
    properties: dict[str, Any] = field(default_factory=dict)
    required: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "function",
            "name": self.name,
            "description": self.description,
            "parameters": {
                "type": "object",
                "properties": self.properties,
                "required": list(self.required),
            },
        }


@dataclass
class ToolInvocation:
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    id: str = ""


@dataclass
class RegisteredTool:
    schema: ToolSchema
    handler: ToolHandler
    status: StatusFormatter | None = None


class ToolRegistry:
    """Name -> (schema, handler) table consulted by the agent tool loop."""

    def __init__(self, session_id: str | None = None):
        self.session_id = session_id
        self._tools: dict[str, RegisteredTool] = {}

    def register(
        self,
        schema: ToolSchema,
        handler: ToolHandler,
        *,
        status: StatusFormatter | None = None,
    ) -> None:
        if schema.name in self._tools:
            raise ValueError(f"Tool already registered: {schema.name}")
        self._tools[schema.name] = RegisteredTool(schema=schema, handler=handler, status=status)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def schemas(self) -> list[dict[str, Any]]:
        return [tool.schema.to_dict() for tool in self._tools.values()]

    def get(self, name: str) -> RegisteredTool:
        try:
            return self._tools[name]
        except KeyError:
            raise ToolNotFoundError(name) from None

    def describe(self, invocation: ToolInvocation) -> str:
        """Progress line for an invocation. Never raises."""
        fallback = f"Running {invocation.name}..."
        tool = self._tools.get(invocation.name)
        if tool is None or tool.status is None:
            return fallback
        try:
            return tool.status(invocation.arguments)
        except Exception as e:
            log_service.logger.warning(f"Status formatter for {invocation.name} failed: {e}")
            return fallback

    async def dispatch(self, invocation: ToolInvocation) -> str:
        tool = self.get(invocation.name)

        try:
            inspect.signature(tool.handler).bind(**invocation.arguments)
        except TypeError as e:
            return f"Invalid arguments for {invocation.name}: {e}"

        t0 = time.monotonic()
        result = await tool.handler(**invocation.arguments)
        log_service.log_tool_call(
            session_id=self.session_id,
            tool_name=invocation.name,
            duration_ms=int((time.monotonic() - t0) * 1000),
            result_chars=len(result),
        )
        return result
