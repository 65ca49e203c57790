from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

STREAM_ID_PREFIX = "research_"


class ResearchAction(str, Enum):
    RESEARCH = "research"
    SUGGEST_TOPICS = "suggest_topics"
    BREAK_DOWN_TASK = "break_down_task"


def new_stream_id() -> str:
    # The id is the only thing guarding the stream, so keep it unguessable.
    return STREAM_ID_PREFIX + secrets.token_hex(16)


@dataclass(frozen=True)
class Session:
    action: ResearchAction
    id: str = field(default_factory=new_stream_id)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
