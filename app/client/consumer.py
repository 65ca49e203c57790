from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Protocol

from app.client.markdown import escape_html, render_markdown, strip_code_fences
from app.models.events import EventType, StreamEvent
from app.services.logger import logger

ACTION_LABELS = {
    "research": "Researching topic...",
    "suggest_topics": "Suggesting topics...",
    "break_down_task": "Breaking down task...",
}


class Phase(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    COMPLETE = "complete"
    ERRORED = "errored"


class DocumentHost(Protocol):
    """The editable document a result is applied to."""

    def read(self) -> str: ...

    def write(self, text: str) -> None: ...


class StringDocument:
    def __init__(self, value: str = ""):
        self.value = value

    def read(self) -> str:
        return self.value

    def write(self, text: str) -> None:
        self.value = text


class FileDocument:
    def __init__(self, path: str | Path):
        self.path = Path(path)

    def read(self) -> str:
        return self.path.read_text(encoding="utf-8")

    def write(self, text: str) -> None:
        self.path.write_text(text, encoding="utf-8")


@dataclass
class ClientStreamState:
    accumulated_text: str = ""
    phase: Phase = Phase.IDLE
    selection: str | None = None
    source_document: str | None = None
    status: str = ""
    display_html: str = ""
    error: str | None = None


class StreamConsumer:
    """Client-side state machine for one streamed result.

    Phases only move forward: idle -> streaming -> complete | errored.
    Messages arriving after a terminal phase are ignored until ``start``.
    """

    def __init__(self, host: DocumentHost):
        self.host = host
        self.state = ClientStreamState()
        self._unsubscribe: Callable[[], Any] | None = None

    @property
    def phase(self) -> Phase:
        return self.state.phase

    @property
    def can_apply(self) -> bool:
        return self.state.phase == Phase.COMPLETE and bool(self.state.accumulated_text)

    def start(self, action: str, selection: str | None = None) -> None:
        """Capture the document and selection, then wait for the stream."""
        document = self.host.read()
        if not document or not document.strip():
            raise ValueError("Please add some content to the document first")

        self._detach()
        self.state = ClientStreamState(
            phase=Phase.STREAMING,
            selection=selection or None,
            source_document=document,
            status=ACTION_LABELS.get(action, "Processing..."),
        )

    def attach(self, unsubscribe: Callable[[], Any]) -> None:
        self._unsubscribe = unsubscribe

    def handle_message(self, message: dict[str, Any]) -> None:
        if self.state.phase != Phase.STREAMING:
            logger.debug(f"Ignoring message in {self.state.phase.value} phase")
            return
        self.handle_event(StreamEvent.from_message(message))

    def handle_event(self, event: StreamEvent) -> None:
        if self.state.phase != Phase.STREAMING:
            return

        if event.event == EventType.TOOL_STATUS:
            self.state.status = event.data.get("description", "")
        elif event.event == EventType.CONTENT:
            self.state.accumulated_text += event.data.get("text", "")
            self.state.display_html = render_markdown(self.state.accumulated_text)
        elif event.event == EventType.DONE:
            self.state.phase = Phase.COMPLETE
            self.state.status = "Complete"
            self._detach()
        elif event.event == EventType.ERROR:
            message = event.data.get("message", "")
            self.state.phase = Phase.ERRORED
            self.state.status = "Error"
            self.state.error = message
            self.state.display_html = f'<span class="error">{escape_html(message)}</span>'
            self._detach()

    def edit(self, text: str) -> None:
        """Replace the finished result with a hand-edited version."""
        if self.state.phase != Phase.COMPLETE:
            raise RuntimeError("Only a completed result can be edited")
        self.state.accumulated_text = text
        self.state.display_html = render_markdown(text)

    def apply(self) -> str | None:
        """Write the result into the host document and close.

        With a captured selection, the first literal occurrence of that text
        in the captured document is replaced; otherwise the whole document is.
        """
        if not self.can_apply:
            return None

        clean = strip_code_fences(self.state.accumulated_text)
        if self.state.selection:
            final = self.state.source_document.replace(self.state.selection, clean, 1)
        else:
            final = clean

        self.host.write(final)
        self.close()
        return final

    def copy(self) -> str:
        text = self.state.accumulated_text
        self.close()
        return text

    def discard(self) -> None:
        self.close()

    def close(self) -> None:
        self._detach()
        self.state = ClientStreamState()

    def _detach(self) -> None:
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is not None:
            unsubscribe()
