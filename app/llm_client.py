"""OpenRouter chat client with a streaming tool-call adapter."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, AsyncIterator

from app.config import settings


class BackendFailureError(RuntimeError):
    """The model backend could not be reached or rejected the request."""


@dataclass
class Usage:
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass
class TextBlock:
    type: str
    text: str


@dataclass
class ToolUseBlock:
    type: str
    id: str
    name: str
    input: dict[str, Any]


@dataclass
class TextDelta:
    text: str


@dataclass
class TurnComplete:
    text: str = ""
    tool_calls: list[ToolUseBlock] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)
    finish_reason: str | None = None


def _parse_arguments(raw: str) -> dict[str, Any]:
    try:
        parsed = json.loads(raw or "{}")
    except json.JSONDecodeError:
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _block_attr(block: Any, name: str) -> Any:
    if isinstance(block, dict):
        return block.get(name)
    return getattr(block, name, None)


class OpenRouterMessagesAdapter:
    def __init__(self, openai_client: Any):
        self._client = openai_client

    def _to_openai_messages(self, system: str, messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
        openai_messages: list[dict[str, Any]] = [{"role": "system", "content": system}]

        for message in messages:
            role = message["role"]
            content = message["content"]

            if isinstance(content, str):
                openai_messages.append({"role": role, "content": content})
                continue

            if role == "assistant" and isinstance(content, list):
                text_parts: list[str] = []
                tool_calls: list[dict[str, Any]] = []
                for block in content:
                    btype = _block_attr(block, "type")
                    if btype == "text":
                        text_value = _block_attr(block, "text")
                        if text_value:
                            text_parts.append(text_value)
                    elif btype == "tool_use":
                        tool_calls.append(
                            {
                                "id": _block_attr(block, "id"),
                                "type": "function",
                                "function": {
                                    "name": _block_attr(block, "name"),
                                    "arguments": json.dumps(_block_attr(block, "input") or {}),
                                },
                            }
                        )
                msg: dict[str, Any] = {"role": "assistant"}
                msg["content"] = "".join(text_parts) if text_parts else None
                if tool_calls:
                    msg["tool_calls"] = tool_calls
                openai_messages.append(msg)
                continue

            if role == "user" and isinstance(content, list):
                for tool_result in content:
                    if tool_result.get("type") != "tool_result":
                        continue
                    openai_messages.append(
                        {
                            "role": "tool",
                            "tool_call_id": tool_result.get("tool_use_id", ""),
                            "content": str(tool_result.get("content", "")),
                        }
                    )
                continue

            openai_messages.append({"role": role, "content": str(content)})

        return openai_messages

    def _to_openai_tools(self, tools: list[dict[str, Any]]) -> list[dict[str, Any]]:
        return [
            {
                "type": "function",
                "function": {
                    "name": t["name"],
                    "description": t.get("description", ""),
                    "parameters": t.get("parameters", {"type": "object", "properties": {}}),
                },
            }
            for t in tools
        ]

    async def stream_turn(
        self,
        *,
        model: str,
        max_tokens: int,
        system: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        tool_choice: str = "auto",
    ) -> AsyncIterator[TextDelta | TurnComplete]:
        """Stream one model turn.

        Yields a ``TextDelta`` per content fragment, then exactly one
        ``TurnComplete`` carrying the tool calls assembled from the deltas.
        """
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": self._to_openai_messages(system, messages),
            "max_tokens": max_tokens,
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        if tools:
            kwargs["tools"] = self._to_openai_tools(tools)
            kwargs["tool_choice"] = tool_choice

        stream = await self._client.chat.completions.create(**kwargs)

        text_parts: list[str] = []
        pending: dict[int, dict[str, str]] = {}
        usage = Usage()
        finish_reason: str | None = None
        try:
            async for chunk in stream:
                chunk_usage = getattr(chunk, "usage", None)
                if chunk_usage:
                    usage = Usage(
                        input_tokens=getattr(chunk_usage, "prompt_tokens", 0) or 0,
                        output_tokens=getattr(chunk_usage, "completion_tokens", 0) or 0,
                    )

                choices = getattr(chunk, "choices", None) or []
                if not choices:
                    continue
                choice = choices[0]
                finish_reason = getattr(choice, "finish_reason", None) or finish_reason
                delta = getattr(choice, "delta", None)
                if not delta:
                    continue

                text = getattr(delta, "content", None)
                if text:
                    text_parts.append(text)
                    yield TextDelta(text=text)

                # Tool calls arrive as fragments keyed by index.
                for tc in getattr(delta, "tool_calls", None) or []:
                    index = getattr(tc, "index", None) or 0
                    entry = pending.setdefault(index, {"id": "", "name": "", "arguments": ""})
                    if getattr(tc, "id", None):
                        entry["id"] = tc.id
                    function = getattr(tc, "function", None)
                    if function is None:
                        continue
                    if getattr(function, "name", None):
                        entry["name"] = function.name
                    if getattr(function, "arguments", None):
                        entry["arguments"] += function.arguments
        finally:
            close = getattr(stream, "close", None)
            if close is not None:
                await close()

        tool_calls = [
            ToolUseBlock(
                type="tool_use",
                id=entry["id"] or f"call_{index}",
                name=entry["name"],
                input=_parse_arguments(entry["arguments"]),
            )
            for index, entry in sorted(pending.items())
        ]
        yield TurnComplete(
            text="".join(text_parts),
            tool_calls=tool_calls,
            usage=usage,
            finish_reason=finish_reason,
        )


class OpenRouterClientAdapter:
    def __init__(self, openai_client: Any):
        self.messages = OpenRouterMessagesAdapter(openai_client)


def get_client() -> OpenRouterClientAdapter:
    """Get OpenRouter client via OpenAI-compatible SDK."""
    from openai import AsyncOpenAI

    if not settings.openrouter_api_key:
        raise BackendFailureError("OPENROUTER_API_KEY is not configured")

    base_url = settings.openrouter_base_url.strip() or "https://openrouter.ai/api/v1"
    openai_client = AsyncOpenAI(
        api_key=settings.openrouter_api_key,
        base_url=base_url,
    )
    return OpenRouterClientAdapter(openai_client)


def get_model() -> str:
    """Get the active OpenRouter model id."""
    if settings.openrouter_model:
        return settings.openrouter_model
    return settings.default_model


_client: OpenRouterClientAdapter | None = None


def client() -> OpenRouterClientAdapter:
    """Get or create the LLM client."""
    global _client
    if _client is None:
        _client = get_client()
    return _client
