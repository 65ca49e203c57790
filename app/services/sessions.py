from __future__ import annotations

import asyncio
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Mapping

from app.agents.research_agent import ResearchAgent
from app.config import settings
from app.models.events import StreamEvent
from app.models.session import ResearchAction, Session
from app.services import logger as log_service
from app.services import streaming
from app.services.broadcaster import Broadcaster

# Produces the event stream for one session: (action, params, session_id).
EventSource = Callable[[ResearchAction, Mapping[str, Any], str], AsyncIterator[StreamEvent]]


def research_agent_source(
    action: ResearchAction,
    params: Mapping[str, Any],
    session_id: str,
) -> AsyncIterator[StreamEvent]:
    return ResearchAgent(session_id=session_id).stream(action, params)


@dataclass
class SessionHandle:
    session: Session
    queue: asyncio.Queue = field(default_factory=asyncio.Queue)
    producer: asyncio.Task | None = None
    forwarder: asyncio.Task | None = None
    terminal_sent: bool = False


class SessionManager:
    """Runs each accepted session as a producer task and a forwarder task.

    The producer drains the agent into a per-session queue; the forwarder
    waits for the first subscriber, then publishes queued events to the
    broadcaster. A session nobody subscribes to in time is cancelled.
    Exactly one terminal event is published per session.
    """

    def __init__(
        self,
        broadcaster: Broadcaster,
        source: EventSource = research_agent_source,
        *,
        timeout_seconds: float | None = None,
        subscribe_timeout_seconds: float | None = None,
    ):
        self.broadcaster = broadcaster
        self.source = source
        self.timeout_seconds = (
            settings.agent_session_timeout_seconds if timeout_seconds is None else timeout_seconds
        )
        self.subscribe_timeout_seconds = (
            settings.stream_subscribe_timeout_seconds
            if subscribe_timeout_seconds is None
            else subscribe_timeout_seconds
        )
        self._sessions: dict[str, SessionHandle] = {}

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def start(self, action: ResearchAction | str, params: Mapping[str, Any]) -> Session:
        """Accept a session and schedule it. Returns without waiting."""
        session = Session(action=ResearchAction(action))
        handle = SessionHandle(session=session)
        self._sessions[session.id] = handle

        handle.producer = asyncio.create_task(
            self._produce(handle, dict(params)), name=f"{session.id}:producer"
        )
        handle.forwarder = asyncio.create_task(
            self._forward(handle), name=f"{session.id}:forwarder"
        )
        self.broadcaster.on_unsubscribe(session.id, self.cancel)
        log_service.log_session_event(session.id, "accepted", "running", {"action": session.action.value})
        return session

    async def _produce(self, handle: SessionHandle, params: dict[str, Any]) -> None:
        session = handle.session

        async def drain() -> None:
            async with aclosing(self.source(session.action, params, session.id)) as events:
                async for event in events:
                    await handle.queue.put(event)
                    if event.is_terminal:
                        return
            await handle.queue.put(streaming.error("Session ended without a result."))

        try:
            await asyncio.wait_for(drain(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            log_service.log_session_event(session.id, "producer", "timeout")
            await handle.queue.put(
                streaming.error(f"Research timed out after {self.timeout_seconds:g} seconds.")
            )
        except Exception as e:
            log_service.log_session_event(session.id, "producer", "failed", {"error": str(e)})
            await handle.queue.put(streaming.error(f"Research failed: {e}"))

    async def _forward(self, handle: SessionHandle) -> None:
        session_id = handle.session.id
        try:
            # Events queue up until the client attaches, so an early terminal
            # event still reaches it.
            if not await self.broadcaster.wait_for_subscriber(
                session_id, timeout=self.subscribe_timeout_seconds
            ):
                log_service.log_session_event(session_id, "forwarder", "no_subscriber")
                if handle.producer is not None:
                    handle.producer.cancel()
                return
            while not handle.terminal_sent:
                event = await handle.queue.get()
                self.broadcaster.publish(session_id, event)
                if event.is_terminal:
                    handle.terminal_sent = True
                    log_service.log_session_event(session_id, "terminal", event.event.value)
        finally:
            self.broadcaster.close(session_id)
            self._sessions.pop(session_id, None)

    def cancel(self, session_id: str) -> bool:
        """Stop a session whose subscriber went away."""
        handle = self._sessions.get(session_id)
        if handle is None or handle.terminal_sent:
            return False
        log_service.log_session_event(session_id, "cancelled", "cancelled")
        for task in (handle.producer, handle.forwarder):
            if task is not None and not task.done():
                task.cancel()
        return True

    async def wait(self, session_id: str) -> None:
        handle = self._sessions.get(session_id)
        if handle is None:
            return
        tasks = [t for t in (handle.producer, handle.forwarder) if t is not None]
        await asyncio.gather(*tasks, return_exceptions=True)

    async def shutdown(self) -> None:
        for session_id in list(self._sessions):
            self.cancel(session_id)
        tasks = [
            task
            for handle in list(self._sessions.values())
            for task in (handle.producer, handle.forwarder)
            if task is not None
        ]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._sessions.clear()
