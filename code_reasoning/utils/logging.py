"""Structured logging utilities for Code Reasoning MCP.

Provides a consistent logging setup with:
- stderr-only output (stdout carries JSON-RPC for the stdio transport)
- Structured JSON logging for production, human-readable text for development
- Context injection for session IDs and tool names
- Optional rotating log file
- Automatic redaction of sensitive data and truncation of long thoughts
"""

from __future__ import annotations

import sys
from collections.abc import Generator
from contextlib import contextmanager
from contextvars import ContextVar
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from loguru import logger

if TYPE_CHECKING:
    from loguru import Record

# Context variables for request tracking
_session_id: ContextVar[str | None] = ContextVar("session_id", default=None)
_tool_name: ContextVar[str | None] = ContextVar("tool_name", default=None)

MAX_LOG_LENGTH = 200
LOG_FILE_NAME = "code-reasoning.log"


class LogFormat(str, Enum):
    """Supported log output formats."""

    JSON = "json"
    TEXT = "text"


class LogLevel(str, Enum):
    """Supported log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


# Sensitive keys to redact from logs
SENSITIVE_KEYS = frozenset(
    {
        "apikey",
        "password",
        "secret",
        "token",
        "authorization",
        "credential",
        "privatekey",
    }
)


def redact_sensitive(data: dict[str, Any], depth: int = 0) -> dict[str, Any]:
    """Recursively redact sensitive values from a dictionary.

    Args:
        data: Dictionary to redact.
        depth: Current recursion depth (prevents infinite recursion).

    Returns:
        Dictionary with sensitive values replaced with "[REDACTED]".

    """
    if depth > 10:
        return data

    result: dict[str, Any] = {}
    for key, value in data.items():
        key_lower = str(key).lower().replace("_", "").replace("-", "")
        if any(sensitive in key_lower for sensitive in SENSITIVE_KEYS):
            result[key] = "[REDACTED]"
        elif isinstance(value, dict):
            result[key] = redact_sensitive(value, depth + 1)
        elif isinstance(value, list):
            result[key] = [
                redact_sensitive(item, depth + 1) if isinstance(item, dict) else item
                for item in value
            ]
        else:
            result[key] = value
    return result


def truncate_for_log(text: str, limit: int = MAX_LOG_LENGTH) -> str:
    """Shorten long text for log payloads."""
    if len(text) <= limit:
        return text
    return text[:limit] + "... [truncated]"


def _inject_context(record: Record) -> None:
    """Loguru patcher: add context variables and redact extra data."""
    extra = record["extra"]
    if session_id := _session_id.get():
        extra.setdefault("session_id", session_id)
    if tool_name := _tool_name.get():
        extra.setdefault("tool", tool_name)
    redacted = redact_sensitive(dict(extra))
    extra.clear()
    extra.update(redacted)


def text_format(record: Record) -> str:
    """Build the loguru format template for human-readable output.

    Args:
        record: Loguru record dictionary.

    Returns:
        Format template; loguru fills in the record fields.

    """
    context_parts = []
    if session_id := record["extra"].get("session_id"):
        context_parts.append(f"sess={str(session_id)[:8]}")
    if tool_name := record["extra"].get("tool"):
        context_parts.append(f"tool={tool_name}")

    context = f"[{' '.join(context_parts)}] " if context_parts else ""
    # Escape braces so loguru does not treat context as placeholders
    context = context.replace("{", "{{").replace("}", "}}")

    return (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
        f"{context}"
        "<level>{message}</level>\n{exception}"
    )


def configure_logging(
    level: LogLevel | str = LogLevel.INFO,
    log_format: LogFormat | str = LogFormat.TEXT,
    log_file: str | Path | None = None,
    *,
    debug: bool = False,
) -> None:
    """Configure loguru handlers for the server.

    Args:
        level: Minimum log level (ignored when debug is on).
        log_format: Output format (json or text).
        log_file: Optional file path for a rotating JSON log.
        debug: Force DEBUG level.

    """
    if debug:
        level_value = LogLevel.DEBUG.value
    elif isinstance(level, LogLevel):
        level_value = level.value
    else:
        level_value = LogLevel(level.upper()).value
    fmt = log_format if isinstance(log_format, LogFormat) else LogFormat(log_format.lower())

    logger.remove()
    logger.configure(patcher=_inject_context)

    if fmt == LogFormat.JSON:
        logger.add(sys.stderr, format="{message}", level=level_value, serialize=True)
    else:
        logger.add(sys.stderr, format=text_format, level=level_value, colorize=True)

    if log_file:
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path,
            format="{message}",
            level=level_value,
            serialize=True,
            rotation="10 MB",
            retention=10,
            compression="gz",
        )


def default_log_file(config_dir: Path) -> Path:
    """Location of the rotating log file inside the config directory."""
    return config_dir / "logs" / LOG_FILE_NAME


@contextmanager
def log_context(
    session_id: str | None = None,
    tool_name: str | None = None,
) -> Generator[None, None, None]:
    """Scope logging context for the duration of a tool call.

    Example:
        with log_context(session_id="abc123", tool_name="code-reasoning"):
            logger.info("Processing")  # Includes session_id and tool

    """
    tokens = []
    if session_id:
        tokens.append(_session_id.set(session_id))
    if tool_name:
        tokens.append(_tool_name.set(tool_name))
    try:
        yield
    finally:
        for token in reversed(tokens):
            token.var.reset(token)


def get_session_id() -> str | None:
    """Get the current session ID from context."""
    return _session_id.get()


def get_tool_name() -> str | None:
    """Get the current tool name from context."""
    return _tool_name.get()
