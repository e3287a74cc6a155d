"""pytest configuration and fixtures."""

from __future__ import annotations

from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest

from code_reasoning.config import reload_config
from code_reasoning.tools import ThoughtChainEngine, ThoughtRecord, ValidationLimits
from code_reasoning.tools.reasoning_session import reset_session_manager


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[Path, None, None]:
    """Keep config and prompt values out of the real home directory."""
    home = tmp_path / "code-reasoning-home"
    monkeypatch.setenv("CODE_REASONING_HOME", str(home))
    for key in (
        "MAX_THOUGHTS",
        "MAX_THOUGHT_LENGTH",
        "TIMEOUT_MS",
        "DEBUG",
        "LOG_FILE",
        "LOG_TO_FILE",
        "SERVER_TRANSPORT",
        "SERVER_HOST",
        "SESSION_MAX_IDLE_MINUTES",
        "CLEANUP_INTERVAL_SECONDS",
        "PROMPTS_ENABLED",
    ):
        monkeypatch.delenv(key, raising=False)
    reload_config()
    reset_session_manager()

    import code_reasoning.server as server_module

    server_module._prompt_manager = None
    server_module._cleanup_task = None
    yield home
    server_module._prompt_manager = None
    # Tool calls schedule the cleanup task on the test's own event loop
    server_module._cleanup_task = None
    reset_session_manager()
    reload_config()


@pytest.fixture
def make_record() -> Callable[..., ThoughtRecord]:
    """Build a ThoughtRecord with sensible defaults."""

    def _make(thought_number: int = 1, **kwargs: Any) -> ThoughtRecord:
        data: dict[str, Any] = {
            "thought": f"Thought {thought_number}",
            "thought_number": thought_number,
            "total_thoughts": kwargs.pop("total_thoughts", 5),
            "next_thought_needed": kwargs.pop("next_thought_needed", True),
        }
        data.update(kwargs)
        return ThoughtRecord(**data)

    return _make


@pytest.fixture
def engine() -> ThoughtChainEngine:
    """Fresh engine with default limits."""
    return ThoughtChainEngine(ValidationLimits())


@pytest.fixture
def small_engine() -> ThoughtChainEngine:
    """Engine with tight limits for bounds tests."""
    return ThoughtChainEngine(ValidationLimits(max_thoughts=3, max_thought_length=50))
