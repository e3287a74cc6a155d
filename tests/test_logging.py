"""Unit tests for code_reasoning/utils/logging.py."""

from __future__ import annotations

import sys
from collections.abc import Generator
from pathlib import Path
from typing import Any

import orjson
import pytest
from loguru import logger

from code_reasoning.utils.logging import (
    MAX_LOG_LENGTH,
    LogFormat,
    LogLevel,
    configure_logging,
    default_log_file,
    get_session_id,
    get_tool_name,
    log_context,
    redact_sensitive,
    text_format,
    truncate_for_log,
)


@pytest.fixture(autouse=True)
def restore_logger() -> Generator[None, None, None]:
    """Put loguru back to its default handler after each test."""
    yield
    logger.remove()
    logger.configure(patcher=lambda record: None)
    logger.add(sys.stderr)


@pytest.fixture
def captured() -> list[Any]:
    """Configure logging and capture formatted messages in a list."""
    configure_logging(LogLevel.DEBUG)
    messages: list[Any] = []
    logger.add(messages.append, format="{message}", level="DEBUG")
    return messages


class TestEnums:
    """LogFormat and LogLevel values."""

    def test_formats(self) -> None:
        assert LogFormat.JSON.value == "json"
        assert LogFormat.TEXT.value == "text"

    def test_levels(self) -> None:
        assert [level.value for level in LogLevel] == [
            "DEBUG",
            "INFO",
            "WARNING",
            "ERROR",
            "CRITICAL",
        ]


class TestRedactSensitive:
    """Sensitive data redaction."""

    def test_redacts_api_key(self) -> None:
        assert redact_sensitive({"api_key": "sk-123"})["api_key"] == "[REDACTED]"

    def test_redacts_mixed_case_and_dashes(self) -> None:
        result = redact_sensitive({"X-Auth-Token": "t", "Password": "p"})
        assert result == {"X-Auth-Token": "[REDACTED]", "Password": "[REDACTED]"}

    def test_redacts_nested_and_lists(self) -> None:
        data = {"outer": {"secret": "s"}, "items": [{"token": "t"}, "plain"]}
        result = redact_sensitive(data)
        assert result["outer"]["secret"] == "[REDACTED]"
        assert result["items"] == [{"token": "[REDACTED]"}, "plain"]

    def test_preserves_non_sensitive(self) -> None:
        data = {"thought_number": 3, "branch_id": "B1"}
        assert redact_sensitive(data) == data

    def test_max_depth_protection(self) -> None:
        data: dict[str, Any] = {"password": "deep"}
        for _ in range(15):
            data = {"nested": data}
        # Must not recurse forever; deepest levels are returned untouched
        assert isinstance(redact_sensitive(data), dict)


class TestTruncate:
    """Long thought previews."""

    def test_short_text_unchanged(self) -> None:
        assert truncate_for_log("short") == "short"

    def test_long_text_truncated(self) -> None:
        result = truncate_for_log("x" * (MAX_LOG_LENGTH + 50))
        assert result == "x" * MAX_LOG_LENGTH + "... [truncated]"

    def test_custom_limit(self) -> None:
        assert truncate_for_log("abcdef", limit=3) == "abc... [truncated]"


class TestTextFormat:
    """Text format template."""

    def test_no_context(self) -> None:
        template = text_format({"extra": {}})  # type: ignore[arg-type]
        assert "[" not in template.split("|")[-1]
        assert "{message}" in template

    def test_with_context(self) -> None:
        template = text_format(
            {"extra": {"session_id": "abcdefghijkl", "tool": "code-reasoning"}}  # type: ignore[arg-type]
        )
        assert "[sess=abcdefgh tool=code-reasoning]" in template

    def test_braces_escaped(self) -> None:
        template = text_format({"extra": {"tool": "{odd}"}})  # type: ignore[arg-type]
        assert "tool={{odd}}" in template


class TestLogContext:
    """Context variables scoped to a tool call."""

    def test_sets_and_resets(self) -> None:
        assert get_session_id() is None
        with log_context(session_id="s-1", tool_name="code-reasoning"):
            assert get_session_id() == "s-1"
            assert get_tool_name() == "code-reasoning"
        assert get_session_id() is None
        assert get_tool_name() is None

    def test_nested(self) -> None:
        with log_context(session_id="outer"), log_context(session_id="inner"):
            assert get_session_id() == "inner"
        assert get_session_id() is None

    def test_resets_on_exception(self) -> None:
        with pytest.raises(RuntimeError), log_context(tool_name="t"):
            raise RuntimeError("boom")
        assert get_tool_name() is None


class TestConfigureLogging:
    """Handler setup and record patching."""

    def test_context_injected(self, captured: list[Any]) -> None:
        with log_context(session_id="abc", tool_name="code-reasoning"):
            logger.info("inside")
        logger.info("outside")

        inside, outside = captured
        assert inside.record["extra"]["session_id"] == "abc"
        assert inside.record["extra"]["tool"] == "code-reasoning"
        assert "session_id" not in outside.record["extra"]

    def test_extra_redacted(self, captured: list[Any]) -> None:
        logger.bind(api_key="sk-live").info("calling")
        assert captured[0].record["extra"]["api_key"] == "[REDACTED]"

    def test_level_filter(self) -> None:
        configure_logging(LogLevel.WARNING)
        messages: list[Any] = []
        logger.add(messages.append, format="{message}", level="WARNING")
        logger.info("hidden")
        logger.warning("shown")
        assert [str(m).strip() for m in messages] == ["shown"]

    def test_debug_flag_forces_debug(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging("ERROR", LogFormat.TEXT, debug=True)
        logger.debug("debug line")
        logger.remove()
        assert "debug line" in capsys.readouterr().err

    def test_json_output(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(LogLevel.INFO, "json")
        logger.info("structured")
        logger.remove()

        line = capsys.readouterr().err.strip().splitlines()[-1]
        payload = orjson.loads(line)
        assert payload["record"]["message"] == "structured"

    def test_nothing_on_stdout(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(LogLevel.DEBUG)
        logger.info("to stderr")
        logger.remove()
        assert capsys.readouterr().out == ""

    def test_file_logging(self, tmp_path: Path) -> None:
        log_file = default_log_file(tmp_path)
        configure_logging(LogLevel.INFO, log_file=log_file)
        logger.info("written to file")
        logger.remove()

        assert log_file.parent.name == "logs"
        payload = orjson.loads(log_file.read_text().strip().splitlines()[-1])
        assert payload["record"]["message"] == "written to file"
