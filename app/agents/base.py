from __future__ import annotations

import time
from enum import Enum
from typing import Any, AsyncGenerator

import openai

from app.config import settings
from app.llm_client import (
    BackendFailureError,
    TextBlock,
    TextDelta,
    TurnComplete,
    client as llm_client,
    get_model,
)
from app.models.events import StreamEvent
from app.services import logger as log_service
from app.services import streaming
from app.tools.registry import ToolInvocation, ToolNotFoundError, ToolRegistry


class AgentState(str, Enum):
    BUILDING = "building"
    AWAITING_MODEL = "awaiting_model"
    TOOL_REQUESTED = "tool_requested"
    DISPATCHING = "dispatching"
    STREAMING = "streaming"
    DONE = "done"
    ERROR = "error"


class ToolBudgetExceededError(RuntimeError):
    pass


class BaseAgent:
    """Streaming tool-use loop over the OpenRouter chat backend.

    Subclasses register their tools on ``registry`` and build the message
    history. ``run`` is an async generator of StreamEvents: any number of
    content / tool_status events followed by exactly one done or error.
    """

    name: str = "base"
    instructions: str = ""

    def __init__(
        self,
        model: str | None = None,
        session_id: str | None = None,
        *,
        registry: ToolRegistry | None = None,
        max_tool_calls: int | None = None,
    ):
        self.model = model or get_model()
        self.session_id = session_id
        self.registry = registry or ToolRegistry(session_id=session_id)
        self.max_tool_calls = (
            settings.agent_max_tool_calls if max_tool_calls is None else max_tool_calls
        )
        self.client = None
        self.state = AgentState.BUILDING
        self.tool_calls_made = 0
        self.history: list[dict[str, Any]] = []

    async def run(
        self,
        messages: list[dict[str, Any]],
        *,
        tool_choice: str = "auto",
    ) -> AsyncGenerator[StreamEvent, None]:
        try:
            async for event in self._tool_loop(messages, tool_choice=tool_choice):
                yield event
        except (ToolNotFoundError, ToolBudgetExceededError, BackendFailureError) as e:
            yield self._fail(str(e), e)
        except openai.APIError as e:
            yield self._fail(str(e), e)
        except Exception as e:
            yield self._fail(f"{self.name} agent failed: {e}", e)

    def _fail(self, message: str, exc: BaseException) -> StreamEvent:
        self.state = AgentState.ERROR
        log_service.log_event(
            event_type="agent_error",
            message=message,
            agent=self.name,
            session_id=self.session_id,
            error_type=type(exc).__name__,
        )
        return streaming.error(message)

    async def _tool_loop(
        self,
        messages: list[dict[str, Any]],
        *,
        tool_choice: str,
    ) -> AsyncGenerator[StreamEvent, None]:
        active_client = self.client or llm_client()
        tools = self.registry.schemas()
        self.history = list(messages)
        choice = tool_choice

        while True:
            self.state = AgentState.AWAITING_MODEL
            t0 = time.monotonic()
            turn: TurnComplete | None = None
            async for item in active_client.messages.stream_turn(
                model=self.model,
                max_tokens=settings.agent_max_tokens,
                system=self.instructions,
                messages=self.history,
                tools=tools or None,
                tool_choice=choice,
            ):
                if isinstance(item, TextDelta):
                    self.state = AgentState.STREAMING
                    yield streaming.content(item.text)
                elif isinstance(item, TurnComplete):
                    turn = item

            if turn is None:
                raise BackendFailureError("Model stream ended before the turn completed")

            log_service.log_llm_call(
                model=self.model,
                caller=self.name,
                input_tokens=turn.usage.input_tokens,
                output_tokens=turn.usage.output_tokens,
                duration_ms=int((time.monotonic() - t0) * 1000),
            )

            if not turn.tool_calls:
                self.state = AgentState.DONE
                yield streaming.done()
                return

            self.state = AgentState.TOOL_REQUESTED
            self.tool_calls_made += len(turn.tool_calls)
            if self.tool_calls_made > self.max_tool_calls:
                raise ToolBudgetExceededError(
                    f"Stopped after {self.max_tool_calls} tool calls without a final answer."
                )

            assistant_blocks: list[Any] = []
            if turn.text:
                assistant_blocks.append(TextBlock(type="text", text=turn.text))
            assistant_blocks.extend(turn.tool_calls)
            self.history.append({"role": "assistant", "content": assistant_blocks})

            tool_results = []
            for call in turn.tool_calls:
                invocation = ToolInvocation(name=call.name, arguments=call.input, id=call.id)
                yield streaming.tool_status(self.registry.describe(invocation))
                self.state = AgentState.DISPATCHING
                result = await self.registry.dispatch(invocation)
                tool_results.append({
                    "type": "tool_result",
                    "tool_use_id": call.id,
                    "content": result,
                })
            self.history.append({"role": "user", "content": tool_results})

            # A forced tool call only applies to the opening turn.
            choice = "auto"
