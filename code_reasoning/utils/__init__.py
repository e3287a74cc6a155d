"""Utility modules for Code Reasoning MCP."""

from .errors import (
    ChainInvariantError,
    CodeReasoningException,
    ConfigException,
    MalformedRequestError,
    PromptArgumentError,
    PromptNotFoundError,
    ToolExecutionError,
)
from .logging import configure_logging, log_context, redact_sensitive, truncate_for_log
from .session import SessionManager, SessionNotFoundError

__all__ = [
    "CodeReasoningException",
    "MalformedRequestError",
    "ChainInvariantError",
    "ConfigException",
    "PromptNotFoundError",
    "PromptArgumentError",
    "ToolExecutionError",
    "configure_logging",
    "log_context",
    "redact_sensitive",
    "truncate_for_log",
    "SessionManager",
    "SessionNotFoundError",
]
