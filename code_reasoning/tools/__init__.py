"""Code Reasoning tools - thought chain engine and session facade."""

from .reasoning_session import (
    ReasoningSession,
    ReasoningSessionManager,
    format_thought,
    get_session_manager,
    reset_session_manager,
)
from .thought_chain import HistoryView, ThoughtChainEngine
from .thought_types import (
    REOPENED_WITHOUT_FLAG,
    BranchInfo,
    ChainState,
    SessionStatus,
    SubmitOutcome,
    ThoughtRecord,
    ValidationLimits,
    Violation,
    ViolationKind,
)
from .validator import ChainView, validate

__all__ = [
    # Engine
    "BranchInfo",
    "HistoryView",
    "ThoughtChainEngine",
    # Facade
    "ReasoningSession",
    "ReasoningSessionManager",
    "format_thought",
    "get_session_manager",
    "reset_session_manager",
    # Types
    "REOPENED_WITHOUT_FLAG",
    "ChainState",
    "SessionStatus",
    "SubmitOutcome",
    "ThoughtRecord",
    "ValidationLimits",
    "Violation",
    "ViolationKind",
    # Validation
    "ChainView",
    "validate",
]
