from __future__ import annotations

import json
from typing import Any, AsyncIterator

import httpx

from app.client.consumer import Phase, StreamConsumer
from app.services import streaming


class StreamStartError(RuntimeError):
    pass


class ResearchStreamClient:
    """HTTP client for the research stream API."""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = 30.0,
    ):
        # Reads on the SSE connection block until the next event, so only
        # connect/write/pool get the timeout.
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout, read=None),
        )

    async def __aenter__(self) -> ResearchStreamClient:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def start(
        self,
        action: str,
        full_content: str,
        *,
        selection: str | None = None,
        context: dict[str, Any] | None = None,
        depth: str = "standard",
    ) -> str:
        body: dict[str, Any] = {
            "action_type": action,
            "full_content": full_content,
            "stream": True,
            "depth": depth,
        }
        if selection:
            body["selection"] = selection
        if context:
            body["context"] = context

        response = await self._client.post("/api/research/stream", json=body)
        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if response.is_error or "error" in payload:
            raise StreamStartError(payload.get("error") or f"HTTP {response.status_code}")
        return payload["stream_id"]

    async def messages(self, stream_id: str) -> AsyncIterator[dict[str, Any]]:
        """Yield channel messages until a done or error message arrives."""
        async with self._client.stream(
            "GET",
            f"/api/research/streams/{stream_id}",
            headers={"Accept": "text/event-stream"},
        ) as response:
            response.raise_for_status()
            async for line in response.aiter_lines():
                if not line.startswith("data:"):
                    continue
                data = line[len("data:"):].strip()
                if not data:
                    continue
                message = json.loads(data)
                yield message
                if message.get("done") or "error" in message:
                    return

    async def run(
        self,
        consumer: StreamConsumer,
        action: str,
        *,
        selection: str | None = None,
        context: dict[str, Any] | None = None,
        depth: str = "standard",
    ) -> Phase:
        """Start a session and feed its stream into consumer."""
        consumer.start(action, selection)
        try:
            stream_id = await self.start(
                action,
                consumer.state.source_document or "",
                selection=selection,
                context=context,
                depth=depth,
            )
        except (StreamStartError, httpx.HTTPError) as e:
            consumer.handle_event(streaming.error(f"Failed to start AI processing: {e}"))
            return consumer.phase

        async for message in self.messages(stream_id):
            consumer.handle_message(message)
            if consumer.phase != Phase.STREAMING:
                break
        return consumer.phase
