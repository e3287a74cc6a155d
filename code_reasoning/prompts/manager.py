"""Prompt manager: lookup, argument validation and rendering."""

from __future__ import annotations

from typing import Any

from loguru import logger

from code_reasoning.utils.errors import PromptArgumentError, PromptNotFoundError

from .templates import BUILTIN_PROMPTS, GLOBAL_ARGUMENTS, ReasoningPrompt
from .value_store import PromptValueStore


class PromptManager:
    """Registry of reasoning prompts.

    Applying a prompt merges remembered values (global, then per prompt)
    under the explicit arguments, validates the result against the
    prompt's declared arguments and renders the template. Explicit values
    are remembered for next time when a value store is attached.
    """

    def __init__(
        self,
        value_store: PromptValueStore | None = None,
        prompts: dict[str, ReasoningPrompt] | None = None,
    ) -> None:
        self._prompts = dict(BUILTIN_PROMPTS if prompts is None else prompts)
        self.value_store = value_store
        logger.debug(f"PromptManager initialized with {len(self._prompts)} prompts")

    def register(self, prompt: ReasoningPrompt) -> None:
        """Add or replace a prompt."""
        self._prompts[prompt.name] = prompt
        logger.debug(f"Registered prompt: {prompt.name}")

    def list_prompts(self) -> list[ReasoningPrompt]:
        return list(self._prompts.values())

    def get_prompt(self, name: str) -> ReasoningPrompt:
        """Look up a prompt by name.

        Raises:
            PromptNotFoundError: If no prompt has this name.

        """
        prompt = self._prompts.get(name)
        if prompt is None:
            raise PromptNotFoundError(name)
        return prompt

    @staticmethod
    def validate_arguments(prompt: ReasoningPrompt, args: dict[str, Any]) -> list[str]:
        """Check required and unknown arguments.

        Returns:
            One message per problem, empty if the arguments are usable.

        """
        errors: list[str] = []
        for arg in prompt.arguments:
            value = args.get(arg.name)
            if arg.required and (value is None or not str(value).strip()):
                errors.append(f"Missing required argument: {arg.name} ({arg.description})")

        known = prompt.argument_names() | GLOBAL_ARGUMENTS
        errors.extend(f"Unknown argument: {name}" for name in args if name not in known)
        return errors

    def resolve_arguments(self, name: str, args: dict[str, Any] | None = None) -> dict[str, Any]:
        """Merge stored values with explicit arguments and validate.

        Raises:
            PromptNotFoundError: If no prompt has this name.
            PromptArgumentError: If arguments are missing or unknown.

        """
        prompt = self.get_prompt(name)
        explicit = {k: v for k, v in (args or {}).items() if v is not None}

        merged: dict[str, Any] = {}
        if self.value_store is not None:
            allowed = prompt.argument_names() | GLOBAL_ARGUMENTS
            stored = self.value_store.get_stored_values(name)
            merged.update({k: v for k, v in stored.items() if k in allowed})
        merged.update({k: v for k, v in explicit.items() if str(v).strip()})
        # Unknown names are only reported for what the caller passed
        merged.update({k: v for k, v in explicit.items() if k not in merged})

        errors = self.validate_arguments(prompt, merged)
        if errors:
            raise PromptArgumentError(name, errors)
        return merged

    def apply_prompt(self, name: str, args: dict[str, Any] | None = None) -> str:
        """Render a prompt's checklist text.

        Raises:
            PromptNotFoundError: If no prompt has this name.
            PromptArgumentError: If arguments are missing or unknown.

        """
        merged = self.resolve_arguments(name, args)
        text = self.get_prompt(name).render(merged)
        self._remember(name, args or {})
        return text

    def create_thought(self, name: str, args: dict[str, Any] | None = None) -> dict[str, Any]:
        """Build the opening thought payload for a chain started from a prompt."""
        prompt = self.get_prompt(name)
        merged = self.resolve_arguments(name, args)
        return {
            "thought": prompt.render_thought(merged),
            "thought_number": 1,
            "total_thoughts": prompt.suggested_total_thoughts,
            "next_thought_needed": True,
        }

    def _remember(self, name: str, args: dict[str, Any]) -> None:
        if self.value_store is None or not args:
            return
        self.value_store.update_stored_values(name, args)
