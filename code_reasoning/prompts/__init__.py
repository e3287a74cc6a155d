"""Canned reasoning prompts and remembered argument values."""

from .manager import PromptManager
from .templates import BUILTIN_PROMPTS, GLOBAL_ARGUMENTS, PromptArgument, ReasoningPrompt
from .value_store import PromptValueStore

__all__ = [
    "BUILTIN_PROMPTS",
    "GLOBAL_ARGUMENTS",
    "PromptArgument",
    "PromptManager",
    "PromptValueStore",
    "ReasoningPrompt",
]
