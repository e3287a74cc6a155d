"""Code Reasoning MCP Configuration.

Centralized configuration management with environment variable support.
All values are in-memory only; nothing here is written back to disk.

Usage:
    from code_reasoning.config import get_config
    print(get_config().reasoning.max_thoughts)
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from loguru import logger

from code_reasoning.utils.errors import ConfigException

DEFAULT_MAX_THOUGHT_LENGTH = 20000
DEFAULT_MAX_THOUGHTS = 20
DEFAULT_TIMEOUT_MS = 60000


def _get_env(key: str, default: str = "") -> str:
    """Get environment variable, treating empty string as unset."""
    value = os.getenv(key, default)
    return value if value else default


def _get_env_int(key: str, default: int) -> int:
    """Get environment variable as integer."""
    value = os.getenv(key)
    if value:
        try:
            return int(value)
        except ValueError:
            logger.warning(f"Invalid integer for {key}: {value}, using default {default}")
    return default


def _get_env_bool(key: str, default: bool = False) -> bool:
    """Get environment variable as boolean."""
    value = _get_env(key, "").lower()
    if not value:
        return default
    return value in ("true", "1", "yes")


@dataclass(frozen=True)
class ServerConfig:
    """Server runtime configuration."""

    name: str = field(default_factory=lambda: _get_env("SERVER_NAME", "code-reasoning-server"))
    transport: str = field(default_factory=lambda: _get_env("SERVER_TRANSPORT", "stdio"))
    host: str = field(default_factory=lambda: _get_env("SERVER_HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: _get_env_int("SERVER_PORT", 8000))


@dataclass(frozen=True)
class ReasoningConfig:
    """Bounds applied to every reasoning session."""

    max_thought_length: int = field(
        default_factory=lambda: _get_env_int("MAX_THOUGHT_LENGTH", DEFAULT_MAX_THOUGHT_LENGTH)
    )
    max_thoughts: int = field(
        default_factory=lambda: _get_env_int("MAX_THOUGHTS", DEFAULT_MAX_THOUGHTS)
    )
    # Advisory wall-clock budget per session; reported, never enforced by the engine
    timeout_ms: int = field(default_factory=lambda: _get_env_int("TIMEOUT_MS", DEFAULT_TIMEOUT_MS))
    debug: bool = field(default_factory=lambda: _get_env_bool("DEBUG", False))

    def __post_init__(self) -> None:
        for name in ("max_thought_length", "max_thoughts", "timeout_ms"):
            value = getattr(self, name)
            if value < 1:
                raise ConfigException(f"{name} must be a positive integer (got {value})")

    def with_overrides(self, **changes: Any) -> ReasoningConfig:
        """Return a copy with some values replaced (e.g. from CLI flags)."""
        return dataclasses.replace(self, **changes)


@dataclass(frozen=True)
class SessionConfig:
    """Session registry configuration."""

    max_idle_minutes: int = field(
        default_factory=lambda: _get_env_int("SESSION_MAX_IDLE_MINUTES", 30)
    )
    cleanup_interval_seconds: int = field(
        default_factory=lambda: _get_env_int("CLEANUP_INTERVAL_SECONDS", 60)
    )


@dataclass(frozen=True)
class PromptConfig:
    """Prompt provider configuration."""

    enabled: bool = field(default_factory=lambda: _get_env_bool("PROMPTS_ENABLED", True))
    config_dir: Path = field(
        default_factory=lambda: Path(_get_env("CODE_REASONING_HOME", "~/.code-reasoning"))
        .expanduser()
    )

    @property
    def values_file(self) -> Path:
        """Location of persisted prompt argument values."""
        return self.config_dir / "prompt_values.json"


@dataclass(frozen=True)
class LoggingConfig:
    """Log output configuration."""

    level: str = field(default_factory=lambda: _get_env("LOG_LEVEL", "INFO").upper())
    format: str = field(default_factory=lambda: _get_env("LOG_FORMAT", "text").lower())
    file: str = field(default_factory=lambda: _get_env("LOG_FILE", ""))
    to_file: bool = field(default_factory=lambda: _get_env_bool("LOG_TO_FILE", False))


@dataclass(frozen=True)
class Config:
    """Root configuration object."""

    server: ServerConfig = field(default_factory=ServerConfig)
    reasoning: ReasoningConfig = field(default_factory=ReasoningConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    prompts: PromptConfig = field(default_factory=PromptConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary (for logging/debugging)."""
        return {
            "server": {
                "name": self.server.name,
                "transport": self.server.transport,
                "host": self.server.host,
                "port": self.server.port,
            },
            "reasoning": {
                "max_thought_length": self.reasoning.max_thought_length,
                "max_thoughts": self.reasoning.max_thoughts,
                "timeout_ms": self.reasoning.timeout_ms,
                "debug": self.reasoning.debug,
            },
            "session": {
                "max_idle_minutes": self.session.max_idle_minutes,
                "cleanup_interval_seconds": self.session.cleanup_interval_seconds,
            },
            "prompts": {
                "enabled": self.prompts.enabled,
                "config_dir": str(self.prompts.config_dir),
            },
            "logging": {
                "level": self.logging.level,
                "format": self.logging.format,
            },
        }


# Global config instance (lazy-loaded)
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def reload_config() -> Config:
    """Reload configuration (for testing)."""
    global _config
    _config = Config()
    return _config
