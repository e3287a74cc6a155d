"""Custom exceptions for Code Reasoning MCP."""

from __future__ import annotations

from typing import Any


class CodeReasoningException(Exception):
    """Base exception for Code Reasoning MCP."""

    pass


class MalformedRequestError(CodeReasoningException):
    """Raised when a payload cannot be read as a thought record at all.

    Covers missing required fields, wrong types, unknown fields and empty
    text. Structural problems with a well-formed record are reported as
    typed violations instead, never as exceptions.
    """

    def __init__(self, problems: list[str]) -> None:
        """Initialize malformed request error.

        Args:
            problems: One human-readable line per offending field.

        """
        self.problems = problems
        super().__init__("; ".join(problems) if problems else "Malformed request")


class ChainInvariantError(CodeReasoningException):
    """Raised when the thought chain's internal bookkeeping is inconsistent.

    This indicates a defect in the engine, not a bad submission.
    """

    pass


class ConfigException(CodeReasoningException):
    """Raised during configuration issues."""

    pass


class PromptNotFoundError(CodeReasoningException):
    """Raised when a prompt name is not registered."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Prompt not found: {name}")


class PromptArgumentError(CodeReasoningException):
    """Raised when prompt arguments fail validation."""

    def __init__(self, name: str, errors: list[str]) -> None:
        self.name = name
        self.errors = errors
        super().__init__("Validation errors:\n" + "\n".join(errors))


class ToolExecutionError(Exception):
    """Raised when tool execution fails in MCP context.

    Provides structured error information that can be returned
    to the LLM client in a parseable format.
    """

    def __init__(
        self,
        tool_name: str,
        error_message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize tool execution error.

        Args:
            tool_name: Name of the tool that failed.
            error_message: Human-readable error message.
            details: Optional dictionary with additional error details.

        """
        self.tool_name = tool_name
        self.error_message = error_message
        self.details = details or {}
        super().__init__(f"Tool {tool_name} failed: {error_message}")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization.

        Returns:
            Dictionary representation of the error.

        """
        return {
            "error": True,
            "tool": self.tool_name,
            "message": self.error_message,
            "details": self.details,
        }
