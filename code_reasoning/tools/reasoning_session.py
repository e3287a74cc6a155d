"""Reasoning session facade and per-client session registry.

The facade is the boundary a transport calls into: it parses one wire
payload, hands the record to the chain engine and shapes the engine's
outcome into a JSON-ready dict. It never touches the history directly.

Response shapes:
    accepted  -> {"status": "processed", "thought_number", "total_thoughts",
                  "next_thought_needed", "branch_id"?, "known_branches",
                  "thought_history_length", "session_status",
                  "remaining_thoughts", "warnings"?}
    rejected  -> {"status": "failed", "error", "kind", "guidance", "example"}
    bounds    -> same as rejected with "status": "aborted" and "total_processed"
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from datetime import datetime, timedelta
from typing import Any

from loguru import logger

from code_reasoning.config import ReasoningConfig, get_config
from code_reasoning.utils.errors import MalformedRequestError
from code_reasoning.utils.logging import truncate_for_log
from code_reasoning.utils.session import SessionManager

from .thought_chain import ThoughtChainEngine
from .thought_types import (
    REOPENED_WITHOUT_FLAG,
    SubmitOutcome,
    ThoughtRecord,
    ValidationLimits,
    Violation,
    ViolationKind,
)

DEFAULT_SESSION_ID = "default"

# Example payloads returned with a rejection so the client can correct itself
BRANCH_EXAMPLE: dict[str, Any] = {
    "thought": "Exploring alternative: Consider algorithm X.",
    "thought_number": 3,
    "total_thoughts": 7,
    "next_thought_needed": True,
    "branch_from_thought": 2,
    "branch_id": "alternative-algo-x",
}

REVISION_EXAMPLE: dict[str, Any] = {
    "thought": "Revisiting earlier point: Assumption Y was flawed.",
    "thought_number": 4,
    "total_thoughts": 6,
    "next_thought_needed": True,
    "is_revision": True,
    "revises_thought": 2,
}

SPLIT_EXAMPLE: dict[str, Any] = {
    "thought": "Breaking down the thought into smaller parts...",
    "thought_number": 2,
    "total_thoughts": 5,
    "next_thought_needed": True,
}

DEFAULT_EXAMPLE: dict[str, Any] = {
    "thought": "Initial exploration of the problem.",
    "thought_number": 1,
    "total_thoughts": 5,
    "next_thought_needed": True,
}

DEFAULT_GUIDANCE = "Check the tool description and provided schema for correct usage."


def format_thought(record: ThoughtRecord) -> str:
    """Render a record as a readable block for the debug log.

    Args:
        record: Accepted thought record.

    Returns:
        Multi-line text with a header naming the kind of step.

    """
    if record.is_revision:
        header = (
            f"🔄 Revision {record.thought_number}/{record.effective_total} "
            f"(revising thought {record.revises_thought})"
        )
    elif record.branch_from_thought is not None:
        header = (
            f"🌿 Branch {record.thought_number}/{record.effective_total} "
            f"(from thought {record.branch_from_thought}, ID: {record.branch_id})"
        )
    else:
        header = f"💭 Thought {record.thought_number}/{record.effective_total}"

    body = "\n".join(f"  {line}" for line in record.thought.split("\n"))
    return f"\n{header}\n---\n{body}\n---"


def example_for(kind: ViolationKind, problems: list[str] | None = None) -> dict[str, Any]:
    """Pick a corrective example payload for a rejection."""
    if kind == ViolationKind.DANGLING_BRANCH:
        return dict(BRANCH_EXAMPLE)
    if kind in (ViolationKind.DANGLING_REVISION, ViolationKind.SELF_REFERENTIAL_REVISION):
        return dict(REVISION_EXAMPLE)
    if kind == ViolationKind.TEXT_TOO_LONG:
        return dict(SPLIT_EXAMPLE)
    if kind == ViolationKind.MALFORMED_REQUEST and problems:
        first = problems[0]
        if first.startswith("branch"):
            return dict(BRANCH_EXAMPLE)
        if first.startswith(("is_revision", "revises_thought")):
            return dict(REVISION_EXAMPLE)
        if first.startswith("thought:"):
            return dict(SPLIT_EXAMPLE)
    return dict(DEFAULT_EXAMPLE)


def guidance_for(
    kind: ViolationKind,
    limits: ValidationLimits,
    problems: list[str] | None = None,
) -> str:
    """Pick a one-sentence hint on how to fix a rejected thought."""
    if kind == ViolationKind.TEXT_TOO_LONG:
        return f"The thought is too long. Keep it under {limits.max_thought_length} characters."
    if kind == ViolationKind.SESSION_BOUNDS_EXCEEDED:
        return (
            f"The maximum thought limit ({limits.max_thoughts}) was reached. "
            "Reset the session to start a new chain."
        )
    if kind == ViolationKind.INVALID_NUMBERING:
        return "Ensure thought_number and total_thoughts are positive integers."
    if kind == ViolationKind.DANGLING_BRANCH:
        return (
            'When branching, provide both "branch_from_thought" (number) and '
            '"branch_id" (string), forking from a thought that was accepted.'
        )
    if kind == ViolationKind.DANGLING_REVISION:
        return (
            "When revising, set is_revision=true and provide revises_thought naming "
            "an earlier accepted thought."
        )
    if kind == ViolationKind.SELF_REFERENTIAL_REVISION:
        return "A thought cannot revise itself. Point revises_thought at an earlier thought."

    if kind == ViolationKind.MALFORMED_REQUEST and problems:
        first = problems[0]
        if first.startswith("thought:"):
            return (
                "The 'thought' field is empty or invalid. Must be a non-empty string "
                f"below {limits.max_thought_length} characters."
            )
        if first.startswith(("thought_number", "total_thoughts")):
            return "Ensure thought_number is a positive integer and increments correctly."
        if first.startswith("branch"):
            return (
                'When branching, provide both "branch_from_thought" (number) and '
                '"branch_id" (string).'
            )
        if first.startswith(("is_revision", "revises_thought")):
            return (
                "When revising, set is_revision=true and provide revises_thought "
                "(positive number)."
            )
    return DEFAULT_GUIDANCE


class ReasoningSession:
    """One client's reasoning session: a chain engine plus response shaping."""

    def __init__(
        self,
        config: ReasoningConfig | None = None,
        engine: ThoughtChainEngine | None = None,
        session_id: str = DEFAULT_SESSION_ID,
    ) -> None:
        """Initialize a session.

        Args:
            config: Limits and debug flag (global config if None).
            engine: Pre-built engine, mainly for tests.
            session_id: Identifier used in logs and summaries.

        """
        self.config = config or get_config().reasoning
        self.session_id = session_id
        self.engine = engine or ThoughtChainEngine(
            ValidationLimits(
                max_thought_length=self.config.max_thought_length,
                max_thoughts=self.config.max_thoughts,
            )
        )
        self.created_at = datetime.now()
        self.updated_at = self.created_at
        self._budget_warned = False

    @property
    def limits(self) -> ValidationLimits:
        return self.engine.limits

    # --- Submission ---

    def process_thought(self, payload: Any) -> dict[str, Any]:
        """Parse, submit and shape one thought.

        Args:
            payload: Wire payload (mapping of wire field names).

        Returns:
            Success or rejection dict; never raises for bad input.

        """
        start = time.perf_counter()

        if self.config.debug:
            preview = payload.get("thought") if isinstance(payload, Mapping) else None
            logger.debug(
                "Validating thought data",
                thought=truncate_for_log(preview) if isinstance(preview, str) else preview,
            )

        try:
            record = ThoughtRecord.from_payload(payload)
        except MalformedRequestError as e:
            logger.warning(f"Malformed thought request: {e}")
            return self._malformed_response(e)

        outcome = self.engine.submit(record)
        self.updated_at = datetime.now()
        elapsed_ms = (time.perf_counter() - start) * 1000

        if not outcome.accepted:
            assert outcome.violation is not None
            logger.warning(
                f"Rejected thought {record.thought_number}: "
                f"{outcome.violation.kind.value} - {outcome.violation.message}",
                processing_time_ms=round(elapsed_ms, 2),
            )
            return self._rejection_response(outcome.violation)

        logger.debug(format_thought(record))
        logger.info(
            f"Thought {record.thought_number} processed",
            is_revision=bool(record.is_revision),
            branch_id=record.branch_id,
            next_thought_needed=record.next_thought_needed,
            processing_time_ms=round(elapsed_ms, 2),
        )
        if REOPENED_WITHOUT_FLAG in outcome.warnings:
            logger.warning(
                f"Thought {record.thought_number} submitted after the chain was completed "
                "without needs_more_thoughts; session stays closed"
            )
        if outcome.reopened:
            logger.info(f"Session reopened by thought {record.thought_number}")

        self._check_budget()
        return self._success_response(outcome)

    def _check_budget(self) -> None:
        if self._budget_warned or not self.over_budget:
            return
        self._budget_warned = True
        logger.warning(
            f"Session {self.session_id} exceeded its time budget "
            f"({self.config.timeout_ms} ms) after {self.engine.history_length} thoughts"
        )

    @property
    def elapsed_ms(self) -> float:
        return (datetime.now() - self.created_at) / timedelta(milliseconds=1)

    @property
    def over_budget(self) -> bool:
        """Whether the advisory wall-clock budget has been used up."""
        return self.elapsed_ms > self.config.timeout_ms

    # --- Response shaping ---

    def _success_response(self, outcome: SubmitOutcome) -> dict[str, Any]:
        record = outcome.record
        assert record is not None
        state = outcome.state

        response: dict[str, Any] = {
            "status": "processed",
            "thought_number": record.thought_number,
            "total_thoughts": record.effective_total,
            "next_thought_needed": record.next_thought_needed,
        }
        if record.branch_id is not None:
            response["branch_id"] = record.branch_id
        response.update(
            {
                "known_branches": list(state.branch_ids),
                "thought_history_length": state.history_length,
                "session_status": state.status.value,
                "remaining_thoughts": state.remaining,
            }
        )
        if outcome.warnings:
            response["warnings"] = list(outcome.warnings)
        if outcome.reopened:
            response["reopened"] = True
        return response

    def _rejection_response(self, violation: Violation) -> dict[str, Any]:
        response: dict[str, Any] = {
            "status": "failed",
            "error": violation.message,
            "kind": violation.kind.value,
            "guidance": guidance_for(violation.kind, self.limits),
            "example": example_for(violation.kind),
        }
        if violation.field is not None:
            response["field"] = violation.field
        if violation.kind == ViolationKind.SESSION_BOUNDS_EXCEEDED:
            response["status"] = "aborted"
            response["total_processed"] = self.engine.history_length
        return response

    def _malformed_response(self, error: MalformedRequestError) -> dict[str, Any]:
        kind = ViolationKind.MALFORMED_REQUEST
        return {
            "status": "failed",
            "error": "Validation Error: " + ", ".join(error.problems),
            "kind": kind.value,
            "guidance": guidance_for(kind, self.limits, error.problems),
            "example": example_for(kind, error.problems),
        }

    # --- Read-only queries ---

    def current(self) -> dict[str, Any] | None:
        """Most recently accepted thought."""
        record = self.engine.current()
        return record.to_payload() if record else None

    def thought(self, thought_number: int) -> dict[str, Any] | None:
        """Most recent thought carrying this number."""
        record = self.engine.by_number(thought_number)
        return record.to_payload() if record else None

    def branch(self, branch_id: str) -> dict[str, Any] | None:
        """Records and fork point of a branch, or None if unknown."""
        info = self.engine.branch_info(branch_id)
        if info is None:
            return None
        return {
            "branch_id": branch_id,
            "branch_from_thought": info.fork_point,
            "parent_branch": info.parent_id,
            "thoughts": [r.to_payload() for r in info.records],
        }

    def history(self) -> dict[str, Any]:
        """Full history in arrival order, with the known branch ids."""
        view = self.engine.all()
        return {
            "thoughts": [r.to_payload() for r in view],
            "branches": list(self.engine.branch_ids()),
            "thought_history_length": len(view),
        }

    def summary(self) -> dict[str, Any]:
        """Compact description of the session for status reporting."""
        state = self.engine.state()
        return {
            "session_id": self.session_id,
            "session_status": state.status.value,
            "thought_history_length": state.history_length,
            "current_thought": state.thought_number,
            "total_thoughts": state.total_thoughts,
            "remaining_thoughts": state.remaining,
            "known_branches": list(state.branch_ids),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "elapsed_ms": round(self.elapsed_ms),
            "over_budget": self.over_budget,
        }


class ReasoningSessionManager(SessionManager[ReasoningSession]):
    """Keeps one reasoning session per MCP client session key.

    Sessions are created on first use and live until reset or until the
    idle cleanup removes them.
    """

    def __init__(self, config: ReasoningConfig | None = None) -> None:
        super().__init__()
        self._config = config

    @property
    def config(self) -> ReasoningConfig:
        return self._config or get_config().reasoning

    def get_or_create(self, session_id: str = DEFAULT_SESSION_ID) -> ReasoningSession:
        """Return the session for a key, creating it on first use."""
        with self._lock:
            if session_id not in self._sessions:
                self._register_session(
                    session_id, ReasoningSession(self.config, session_id=session_id)
                )
                logger.info(f"Created reasoning session {session_id}")
            return self._sessions[session_id]

    def process_thought(self, session_id: str, payload: Any) -> dict[str, Any]:
        """Submit a thought to a session, serialized with other calls."""
        with self._lock:
            return self.get_or_create(session_id).process_thought(payload)

    def reset(self, session_id: str = DEFAULT_SESSION_ID) -> bool:
        """Tear down a session; the next thought starts a fresh chain.

        Returns:
            True if a session existed.

        """
        removed = self._remove_session(session_id)
        if removed is not None:
            logger.info(
                f"Reset reasoning session {session_id} "
                f"({removed.engine.history_length} thoughts discarded)"
            )
        return removed is not None


# Global manager (lazy-loaded)
_manager: ReasoningSessionManager | None = None


def get_session_manager() -> ReasoningSessionManager:
    """Get the global session manager instance."""
    global _manager
    if _manager is None:
        _manager = ReasoningSessionManager()
    return _manager


def reset_session_manager(config: ReasoningConfig | None = None) -> ReasoningSessionManager:
    """Replace the global session manager (CLI overrides and tests)."""
    global _manager
    _manager = ReasoningSessionManager(config)
    return _manager
