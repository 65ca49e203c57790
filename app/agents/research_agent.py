from __future__ import annotations

from typing import Any, AsyncGenerator, Mapping

from app.agents.base import AgentState, BaseAgent
from app.llm_client import BackendFailureError
from app.models.events import EventType, StreamEvent
from app.models.session import ResearchAction
from app.services import streaming
from app.services.prompt_store import prompts
from app.tools.registry import ToolRegistry
from app.tools.research_tools import build_registry

PROMPTS = prompts.scoped("research_agent")

TOOL_CHOICE = {
    ResearchAction.RESEARCH: "required",
    ResearchAction.SUGGEST_TOPICS: "auto",
    ResearchAction.BREAK_DOWN_TASK: "auto",
}


def format_context(context: Mapping[str, Any] | None) -> str:
    """Render the originating card's metadata as a bullet list."""
    if not context:
        return ""
    lines = [PROMPTS.render("context_header")]
    for key, value in context.items():
        if value in (None, "", [], {}):
            continue
        if isinstance(value, (list, tuple)):
            value = ", ".join(str(v) for v in value)
        lines.append(f"- {key}: {value}")
    return "\n".join(lines) if len(lines) > 1 else ""


class ResearchAgent(BaseAgent):
    """Researches, suggests topics for, or breaks down a card's content."""

    name = "research"

    def __init__(
        self,
        model: str | None = None,
        session_id: str | None = None,
        *,
        registry: ToolRegistry | None = None,
        max_tool_calls: int | None = None,
    ):
        super().__init__(
            model,
            session_id,
            registry=registry or build_registry(session_id),
            max_tool_calls=max_tool_calls,
        )

    @property
    def instructions(self) -> str:
        return PROMPTS.render("instructions")

    def build_messages(self, action: ResearchAction, params: Mapping[str, Any]) -> list[dict[str, Any]]:
        query = params.get("query") or ""
        values = {
            "query": query,
            "topic": params.get("topic") or query,
            "task": params.get("task") or query,
            "depth": params.get("depth") or "standard",
            "context": format_context(params.get("context")),
        }
        return [{"role": "user", "content": PROMPTS.render(action.value, **values)}]

    async def stream(
        self,
        action: ResearchAction | str,
        params: Mapping[str, Any],
    ) -> AsyncGenerator[StreamEvent, None]:
        self.state = AgentState.BUILDING
        try:
            action = ResearchAction(action)
            messages = self.build_messages(action, params)
        except (ValueError, KeyError) as e:
            self.state = AgentState.ERROR
            yield streaming.error(f"Could not build prompt: {e}")
            return

        async for event in self.run(messages, tool_choice=TOOL_CHOICE[action]):
            yield event

    async def generate(self, action: ResearchAction | str, params: Mapping[str, Any]) -> str:
        """Run an action without streaming and return the full answer."""
        parts: list[str] = []
        async for event in self.stream(action, params):
            if event.event == EventType.CONTENT:
                parts.append(event.data["text"])
            elif event.event == EventType.ERROR:
                raise BackendFailureError(event.data["message"])
        return "".join(parts)
