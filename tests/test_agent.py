from __future__ import annotations

import pytest

from app.agents.base import AgentState
from app.agents.research_agent import ResearchAgent, format_context
from app.llm_client import BackendFailureError, TextDelta, ToolUseBlock, TurnComplete
from app.models.events import EventType
from app.models.session import ResearchAction
from app.tools.registry import ToolRegistry, ToolSchema


def tool_call(name: str, call_id: str = "call_1", **arguments) -> ToolUseBlock:
    return ToolUseBlock(type="tool_use", id=call_id, name=name, input=arguments)


class FakeMessages:
    """Replays one scripted list of stream items per model turn."""

    def __init__(self, turns):
        self.turns = list(turns)
        self.calls = []

    async def stream_turn(self, **kwargs):
        self.calls.append({**kwargs, "messages": list(kwargs["messages"])})
        if not self.turns:
            raise AssertionError("unexpected extra model turn")
        for item in self.turns.pop(0):
            if isinstance(item, Exception):
                raise item
            yield item


class FakeClient:
    def __init__(self, turns):
        self.messages = FakeMessages(turns)


def fake_registry(log: list) -> ToolRegistry:
    registry = ToolRegistry(session_id="research_test")

    async def web_search(query: str, num_results: int = 5) -> str:
        log.append(("web_search", query))
        return f"results for {query}"

    async def web_fetch(url: str, extract_main_content: bool = True) -> str:
        log.append(("web_fetch", url))
        return f"text of {url}"

    registry.register(
        ToolSchema("web_search", "search", {"query": {"type": "string"}}, ("query",)),
        web_search,
        status=lambda args: f"Searching the web for '{args['query']}'...",
    )
    registry.register(
        ToolSchema("web_fetch", "fetch", {"url": {"type": "string"}}, ("url",)),
        web_fetch,
        status=lambda args: f"Fetching content from {args['url']}...",
    )
    return registry


def make_agent(turns, log=None, **kwargs) -> ResearchAgent:
    agent = ResearchAgent(
        model="test/model",
        session_id="research_test",
        registry=fake_registry(log if log is not None else []),
        **kwargs,
    )
    agent.client = FakeClient(turns)
    return agent


async def collect(agent, action="research", params=None):
    return [e async for e in agent.stream(action, params or {"query": "SF Ruby"})]


@pytest.mark.asyncio
async def test_research_runs_tool_then_streams_answer():
    log = []
    agent = make_agent(
        [
            [TurnComplete(tool_calls=[tool_call("web_search", query="SF Ruby meetup")])],
            [TextDelta("SF Ruby "), TextDelta("meets monthly."), TurnComplete(text="SF Ruby meets monthly.")],
        ],
        log,
    )

    events = await collect(agent)

    assert [e.event for e in events] == [
        EventType.TOOL_STATUS,
        EventType.CONTENT,
        EventType.CONTENT,
        EventType.DONE,
    ]
    assert events[0].data["description"] == "Searching the web for 'SF Ruby meetup'..."
    assert "".join(e.data["text"] for e in events if e.event == EventType.CONTENT) == "SF Ruby meets monthly."
    assert log == [("web_search", "SF Ruby meetup")]
    assert agent.state == AgentState.DONE


@pytest.mark.asyncio
async def test_research_forces_tool_use_only_on_first_turn():
    agent = make_agent(
        [
            [TurnComplete(tool_calls=[tool_call("web_search", query="q")])],
            [TextDelta("answer"), TurnComplete(text="answer")],
        ]
    )

    await collect(agent)

    choices = [call["tool_choice"] for call in agent.client.messages.calls]
    assert choices == ["required", "auto"]


@pytest.mark.asyncio
async def test_suggest_topics_does_not_force_tools():
    agent = make_agent([[TextDelta("ideas"), TurnComplete(text="ideas")]])

    events = await collect(agent, "suggest_topics", {"topic": "Ruby"})

    assert events[-1].event == EventType.DONE
    assert agent.client.messages.calls[0]["tool_choice"] == "auto"


@pytest.mark.asyncio
async def test_tool_results_are_appended_to_history():
    agent = make_agent(
        [
            [TurnComplete(text="Let me look.", tool_calls=[
                tool_call("web_search", "call_a", query="q"),
                tool_call("web_fetch", "call_b", url="https://example.com"),
            ])],
            [TurnComplete(text="")],
        ]
    )

    events = await collect(agent)

    second_turn = agent.client.messages.calls[1]["messages"]
    assistant, results = second_turn[-2], second_turn[-1]
    assert assistant["role"] == "assistant"
    assert [b.type for b in assistant["content"]] == ["text", "tool_use", "tool_use"]
    assert results["role"] == "user"
    assert results["content"] == [
        {"type": "tool_result", "tool_use_id": "call_a", "content": "results for q"},
        {"type": "tool_result", "tool_use_id": "call_b", "content": "text of https://example.com"},
    ]
    assert [e.event for e in events] == [EventType.TOOL_STATUS, EventType.TOOL_STATUS, EventType.DONE]


@pytest.mark.asyncio
async def test_unknown_tool_ends_with_error():
    agent = make_agent([[TurnComplete(tool_calls=[tool_call("delete_everything")])]])

    events = await collect(agent)

    assert events[-1].event == EventType.ERROR
    assert events[-1].data["message"] == "Unknown tool: delete_everything"
    assert agent.state == AgentState.ERROR


@pytest.mark.asyncio
async def test_tool_budget_is_enforced():
    looping_turn = [TurnComplete(tool_calls=[tool_call("web_search", query="again")])]
    agent = make_agent([looping_turn] * 3, max_tool_calls=2)

    events = await collect(agent)

    terminal = [e for e in events if e.is_terminal]
    assert len(terminal) == 1
    assert events[-1].event == EventType.ERROR
    assert "Stopped after 2 tool calls" in events[-1].data["message"]
    assert len(agent.client.messages.calls) == 3


@pytest.mark.asyncio
async def test_backend_failure_mid_stream_keeps_partial_content_then_errors():
    agent = make_agent([[TextDelta("partial "), BackendFailureError("upstream reset")]])

    events = await collect(agent)

    assert [e.event for e in events] == [EventType.CONTENT, EventType.ERROR]
    assert events[-1].data["message"] == "upstream reset"


@pytest.mark.asyncio
async def test_truncated_model_stream_is_an_error():
    agent = make_agent([[TextDelta("no end")]])

    events = await collect(agent)

    assert events[-1].event == EventType.ERROR


@pytest.mark.asyncio
async def test_unexpected_exception_is_wrapped():
    agent = make_agent([[ZeroDivisionError("boom")]])

    events = await collect(agent)

    assert events == [events[-1]]
    assert events[-1].data["message"] == "research agent failed: boom"


@pytest.mark.asyncio
async def test_missing_backend_key_surfaces_as_error(monkeypatch):
    from app.agents import base

    def no_client():
        raise BackendFailureError("OPENROUTER_API_KEY is not configured")

    monkeypatch.setattr(base, "llm_client", no_client)
    agent = ResearchAgent(model="test/model", registry=fake_registry([]))

    events = await collect(agent)

    assert len(events) == 1
    assert events[0].event == EventType.ERROR
    assert "OPENROUTER_API_KEY" in events[0].data["message"]


@pytest.mark.asyncio
async def test_unknown_action_is_an_error_event():
    agent = make_agent([])

    events = await collect(agent, "summarize")

    assert len(events) == 1
    assert events[0].event == EventType.ERROR
    assert events[0].data["message"].startswith("Could not build prompt:")


@pytest.mark.asyncio
async def test_generate_returns_joined_text():
    agent = make_agent([[TextDelta("a"), TextDelta("b"), TurnComplete(text="ab")]])

    assert await agent.generate(ResearchAction.BREAK_DOWN_TASK, {"task": "ship"}) == "ab"


@pytest.mark.asyncio
async def test_generate_raises_on_error_event():
    agent = make_agent([[BackendFailureError("nope")]])

    with pytest.raises(BackendFailureError, match="nope"):
        await agent.generate("research", {"query": "q"})


def test_build_messages_falls_back_to_query():
    agent = make_agent([])

    messages = agent.build_messages(
        ResearchAction.BREAK_DOWN_TASK,
        {"query": "Plan the SF Ruby meetup", "context": {"title": "Meetup", "tags": ["ruby", "sf"]}},
    )

    prompt = messages[0]["content"]
    assert "Task: Plan the SF Ruby meetup" in prompt
    assert "- title: Meetup" in prompt
    assert "- tags: ruby, sf" in prompt


def test_format_context_skips_empty_values():
    assert format_context(None) == ""
    assert format_context({"title": "", "labels": []}) == ""
    assert format_context({"title": "Card", "due": None}) == "Card context:\n- title: Card"
