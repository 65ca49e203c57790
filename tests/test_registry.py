from __future__ import annotations

import pytest

from app.tools.registry import ToolInvocation, ToolNotFoundError, ToolRegistry, ToolSchema

ECHO = ToolSchema(
    name="echo",
    description="Echo the input back.",
    properties={"text": {"type": "string"}},
    required=("text",),
)


async def echo(text: str) -> str:
    return f"echo: {text}"


@pytest.fixture
def registry():
    registry = ToolRegistry(session_id="research_test")
    registry.register(ECHO, echo, status=lambda args: f"Echoing {args['text']}...")
    return registry


def test_schema_to_dict_uses_flat_function_shape():
    assert ECHO.to_dict() == {
        "type": "function",
        "name": "echo",
        "description": "Echo the input back.",
        "parameters": {
            "type": "object",
            "properties": {"text": {"type": "string"}},
            "required": ["text"],
        },
    }


def test_register_rejects_duplicates(registry):
    with pytest.raises(ValueError):
        registry.register(ECHO, echo)


def test_registry_lists_names_and_schemas(registry):
    assert "echo" in registry
    assert registry.names == ["echo"]
    assert registry.schemas()[0]["name"] == "echo"


def test_get_unknown_tool_raises(registry):
    with pytest.raises(ToolNotFoundError, match="Unknown tool: nope"):
        registry.get("nope")


def test_describe_uses_status_formatter(registry):
    assert registry.describe(ToolInvocation("echo", {"text": "hi"})) == "Echoing hi..."


def test_describe_falls_back_when_formatter_fails(registry):
    assert registry.describe(ToolInvocation("echo", {})) == "Running echo..."
    assert registry.describe(ToolInvocation("nope", {})) == "Running nope..."


@pytest.mark.asyncio
async def test_dispatch_invokes_handler(registry):
    result = await registry.dispatch(ToolInvocation("echo", {"text": "hi"}, id="call_1"))
    assert result == "echo: hi"


@pytest.mark.asyncio
async def test_dispatch_reports_bad_arguments_as_text(registry):
    result = await registry.dispatch(ToolInvocation("echo", {"wrong": 1}))
    assert result.startswith("Invalid arguments for echo:")


@pytest.mark.asyncio
async def test_dispatch_unknown_tool_raises(registry):
    with pytest.raises(ToolNotFoundError):
        await registry.dispatch(ToolInvocation("nope", {}))
