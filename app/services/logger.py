"""Centralized logging service using loguru."""
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from loguru import logger

from app.config import settings

LOG_DIR = Path(settings.log_dir)
LOG_DIR.mkdir(exist_ok=True)

logger.remove()

logger.add(
    sys.stderr,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    level=settings.app_log_level.upper(),
    colorize=True,
)

# One file per day, a week kept
logger.add(
    LOG_DIR / "researchstream_{time:YYYY-MM-DD}.log",
    format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
    level="DEBUG",
    rotation="00:00",
    retention="7 days",
    compression="zip",
)

# Framework and network libraries still log through stdlib logging
for logger_name in (
    "uvicorn",
    "uvicorn.error",
    "uvicorn.access",
    "fastapi",
    "sse_starlette.sse",
    "httpx",
    "httpcore",
    "openai._base_client",
    "asyncio",
):
    logging.getLogger(logger_name).setLevel(settings.noisy_log_level.upper())


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def log_llm_call(
    model: str,
    caller: str,
    input_tokens: int = 0,
    output_tokens: int = 0,
    duration_ms: int = 0,
    status: str = "success",
    error: Optional[str] = None,
) -> None:
    """Log one model backend turn."""
    call_data = {
        "timestamp": _now(),
        "model": model,
        "caller": caller,
        "input_tokens": input_tokens,
        "output_tokens": output_tokens,
        "total_tokens": input_tokens + output_tokens,
        "duration_ms": duration_ms,
        "status": status,
        "error": error,
    }
    if error:
        logger.error(f"LLM_CALL_FAILED: {json.dumps(call_data)}")
    else:
        logger.info(f"LLM_CALL: {json.dumps(call_data)}")


def log_tool_call(
    session_id: Optional[str],
    tool_name: str,
    duration_ms: int = 0,
    result_chars: int = 0,
    status: str = "success",
    error: Optional[str] = None,
) -> None:
    """Log a dispatched tool invocation."""
    tool_data = {
        "timestamp": _now(),
        "session_id": session_id,
        "tool": tool_name,
        "duration_ms": duration_ms,
        "result_chars": result_chars,
        "status": status,
        "error": error,
    }
    if error:
        logger.error(f"TOOL_CALL_FAILED: {json.dumps(tool_data)}")
    else:
        logger.info(f"TOOL_CALL: {json.dumps(tool_data)}")


def log_session_event(
    session_id: str,
    stage: str,
    status: str,
    data: Optional[dict] = None,
) -> None:
    """Log a session lifecycle transition."""
    session_data = {
        "timestamp": _now(),
        "session_id": session_id,
        "stage": stage,
        "status": status,
        "data": data,
    }
    logger.info(f"SESSION: {json.dumps(session_data, default=str)}")


def log_event(
    event_type: str,
    message: str,
    **kwargs,
) -> None:
    """Log a generic event."""
    event_data = {
        "timestamp": _now(),
        "event_type": event_type,
        "message": message,
        **kwargs,
    }
    if kwargs.get("error"):
        logger.error(f"EVENT: {json.dumps(event_data, default=str)}")
    else:
        logger.info(f"EVENT: {json.dumps(event_data, default=str)}")
