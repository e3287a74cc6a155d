"""Persistence of prompt argument values between sessions.

Values live in a small JSON file so users do not have to retype common
arguments:

    {"global": {"working_directory": "..."}, "prompts": {"bug-analysis": {...}}}

Storage failures are logged and never raised; losing remembered values
must not break prompt rendering or the reasoning chain.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import orjson
from loguru import logger

from .templates import GLOBAL_ARGUMENTS


def _empty() -> dict[str, Any]:
    return {"global": {}, "prompts": {}}


class PromptValueStore:
    """Global and per-prompt argument values backed by a JSON file."""

    def __init__(self, path: str | Path) -> None:
        """Load stored values.

        Args:
            path: JSON file location; created on first save.

        """
        self.path = Path(path).expanduser()
        self._values = self._load()

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            logger.debug(f"No prompt values file at {self.path}, starting empty")
            return _empty()

        try:
            data = orjson.loads(self.path.read_bytes())
        except (OSError, orjson.JSONDecodeError) as e:
            logger.warning(f"Could not load prompt values from {self.path}: {e}")
            return _empty()

        if not isinstance(data, dict):
            logger.warning(f"Ignoring prompt values file {self.path}: not a JSON object")
            return _empty()

        values = _empty()
        global_values = data.get("global")
        if isinstance(global_values, dict):
            values["global"] = {str(k): str(v) for k, v in global_values.items()}
        prompts = data.get("prompts")
        if isinstance(prompts, dict):
            values["prompts"] = {
                str(name): {str(k): str(v) for k, v in stored.items()}
                for name, stored in prompts.items()
                if isinstance(stored, dict)
            }
        return values

    def save(self) -> bool:
        """Write values to disk.

        Returns:
            True on success; failures are logged.

        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_bytes(orjson.dumps(self._values, option=orjson.OPT_INDENT_2))
        except OSError as e:
            logger.error(f"Error saving prompt values to {self.path}: {e}")
            return False
        return True

    @property
    def global_values(self) -> dict[str, str]:
        return dict(self._values["global"])

    def get_stored_values(self, prompt_name: str) -> dict[str, str]:
        """Stored values for a prompt: global values overlaid by per-prompt ones."""
        result = dict(self._values["global"])
        result.update(self._values["prompts"].get(prompt_name, {}))
        return result

    def update_stored_values(self, prompt_name: str, args: dict[str, Any]) -> None:
        """Remember the non-empty values of a prompt call and persist them."""
        global_values: dict[str, str] = self._values["global"]
        for key in GLOBAL_ARGUMENTS:
            value = args.get(key)
            if isinstance(value, str) and value.strip():
                global_values[key] = value

        prompt_values: dict[str, str] = self._values["prompts"].setdefault(prompt_name, {})
        for key, value in args.items():
            if key in GLOBAL_ARGUMENTS:
                continue
            if value is None or not str(value).strip():
                continue
            prompt_values[key] = str(value)

        self.save()

    def clear(self, prompt_name: str | None = None) -> None:
        """Forget stored values for one prompt, or everything."""
        if prompt_name is None:
            self._values = _empty()
        else:
            self._values["prompts"].pop(prompt_name, None)
        self.save()
