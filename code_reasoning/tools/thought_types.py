"""Type definitions for the thought chain.

This module contains the Pydantic models and enums shared by the validator,
the chain engine and the session facade. Separated from logic for clean
imports and testability.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from code_reasoning.utils.errors import MalformedRequestError

# Warning code attached to an accepted submission that follows a normal close.
REOPENED_WITHOUT_FLAG = "reopened_without_flag"


class ViolationKind(str, Enum):
    """Why a submitted thought was rejected."""

    INVALID_NUMBERING = "InvalidNumbering"
    TEXT_TOO_LONG = "TextTooLong"
    DANGLING_REVISION = "DanglingRevision"
    DANGLING_BRANCH = "DanglingBranch"
    SELF_REFERENTIAL_REVISION = "SelfReferentialRevision"
    SESSION_BOUNDS_EXCEEDED = "SessionBoundsExceeded"
    # Raised before validation runs, never by the validator itself
    MALFORMED_REQUEST = "MalformedRequest"


class SessionStatus(str, Enum):
    """Continuation state of a reasoning session."""

    OPEN = "open"
    CLOSED = "closed"


class ThoughtRecord(BaseModel):
    """One submitted reasoning step.

    Field names are the wire names used by MCP clients. Types are strict:
    ``True`` is not a thought number and ``"3"`` is not an integer.
    Range checks (``thought_number >= 1`` and friends) belong to the
    validator so they surface as typed violations, not parse errors.
    """

    model_config = ConfigDict(
        frozen=True,
        strict=True,
        extra="forbid",
        str_strip_whitespace=True,
    )

    thought: str = Field(min_length=1, description="Current reasoning step")
    thought_number: int = Field(description="Position this record claims (1-based)")
    total_thoughts: int = Field(description="Current estimate of the chain's length")
    next_thought_needed: bool = Field(description="False marks the chain complete")
    is_revision: bool | None = None
    revises_thought: int | None = None
    branch_from_thought: int | None = None
    branch_id: str | None = Field(default=None, min_length=1)
    needs_more_thoughts: bool | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> ThoughtRecord:
        """Parse a wire payload into a record.

        Args:
            payload: Mapping of wire field names to values.

        Returns:
            The parsed record.

        Raises:
            MalformedRequestError: If the payload cannot be read as a record.

        """
        if not isinstance(payload, Mapping):
            raise MalformedRequestError(
                [f"payload: expected an object, got {type(payload).__name__}"]
            )

        try:
            return cls.model_validate(dict(payload))
        except ValidationError as e:
            problems = []
            for err in e.errors():
                loc = ".".join(str(part) for part in err["loc"]) or "payload"
                problems.append(f"{loc}: {err['msg']}")
            raise MalformedRequestError(problems) from e

    @property
    def opens_branch(self) -> bool:
        """Whether this record names a fork point."""
        return self.branch_from_thought is not None

    @property
    def effective_total(self) -> int:
        """Total thoughts, raised to this record's number when it overshoots."""
        return max(self.total_thoughts, self.thought_number)

    def to_payload(self) -> dict[str, Any]:
        """Convert back to wire form, omitting unset optional fields."""
        return self.model_dump(exclude_none=True)


class ValidationLimits(BaseModel):
    """Configured bounds applied before structural validation."""

    model_config = ConfigDict(frozen=True)

    max_thought_length: int = Field(default=20000, ge=1)
    max_thoughts: int = Field(default=20, ge=1)


class Violation(BaseModel):
    """A typed rejection of a submitted record."""

    model_config = ConfigDict(frozen=True)

    kind: ViolationKind
    message: str
    field: str | None = None


class BranchInfo(BaseModel):
    """Snapshot of a branch: fork point, parent and records so far."""

    model_config = ConfigDict(frozen=True)

    branch_id: str
    fork_point: int
    parent_id: str | None = None
    records: tuple[ThoughtRecord, ...] = ()


class ChainState(BaseModel):
    """Echo of the chain position after a submission."""

    model_config = ConfigDict(frozen=True)

    thought_number: int | None = None
    total_thoughts: int | None = None
    next_thought_needed: bool = True
    status: SessionStatus = SessionStatus.OPEN
    remaining: int | None = None
    history_length: int = 0
    branch_ids: tuple[str, ...] = ()


class SubmitOutcome(BaseModel):
    """Result of a single submit call."""

    model_config = ConfigDict(frozen=True)

    accepted: bool
    state: ChainState
    record: ThoughtRecord | None = None
    violation: Violation | None = None
    reopened: bool = False
    warnings: tuple[str, ...] = ()
