"""Pure validation rules for submitted thoughts.

Stateless functions that decide whether a candidate record may join the
chain. Each check takes the candidate, a read-only view of the chain and
returns a Violation or None (no problem found).

Checks run in a fixed order and the first failure wins:
    1. Session bounds  - history already holds max_thoughts records
    2. Text length     - thought longer than max_thought_length
    3. Numbering       - thought_number / total_thoughts below 1
    4. Revision        - target missing, not earlier, or self-referential
    5. Branch          - fork point missing or branch_id absent

Limits are passed in by the caller so configuration changes never touch
these rules.
"""

from __future__ import annotations

from collections.abc import Set
from typing import Protocol

from .thought_types import ThoughtRecord, ValidationLimits, Violation, ViolationKind


class ChainView(Protocol):
    """Read-only view of the chain needed by the validator."""

    @property
    def history_length(self) -> int:
        """Number of accepted records."""
        ...

    def has_branch(self, branch_id: str) -> bool:
        """Whether a branch with this id has been opened."""
        ...

    def resolve_parent(self, fork_point: int) -> str | None:
        """Branch id that owns a fork point (None for the main line)."""
        ...

    def lineage_numbers(self, branch_id: str | None) -> Set[int]:
        """Thought numbers reachable from a branch (main line for None)."""
        ...

    def known_numbers(self) -> Set[int]:
        """Every thought number accepted so far, in any lineage."""
        ...


# --- Rule 1: Session Bounds ---


def check_session_bounds(view: ChainView, limits: ValidationLimits) -> Violation | None:
    """Reject once the session has accepted max_thoughts records.

    Args:
        view: Current chain view
        limits: Configured bounds

    Returns:
        SessionBoundsExceeded violation, or None

    """
    if view.history_length >= limits.max_thoughts:
        return Violation(
            kind=ViolationKind.SESSION_BOUNDS_EXCEEDED,
            message=(
                f"Max thoughts exceeded ({limits.max_thoughts}): "
                f"{view.history_length} thoughts already accepted in this session"
            ),
        )
    return None


# --- Rule 2: Text Length ---


def check_text_length(record: ThoughtRecord, limits: ValidationLimits) -> Violation | None:
    """Reject thoughts longer than the configured maximum."""
    if len(record.thought) > limits.max_thought_length:
        return Violation(
            kind=ViolationKind.TEXT_TOO_LONG,
            message=(
                f"Thought exceeds maximum length of {limits.max_thought_length} characters "
                f"(got {len(record.thought)}). Break it into multiple steps."
            ),
            field="thought",
        )
    return None


# --- Rule 3: Numbering ---


def check_numbering(record: ThoughtRecord) -> Violation | None:
    """Reject non-positive thought_number or total_thoughts."""
    if record.thought_number < 1:
        return Violation(
            kind=ViolationKind.INVALID_NUMBERING,
            message=f"thought_number must be a positive integer (got {record.thought_number})",
            field="thought_number",
        )
    if record.total_thoughts < 1:
        return Violation(
            kind=ViolationKind.INVALID_NUMBERING,
            message=f"total_thoughts must be a positive integer (got {record.total_thoughts})",
            field="total_thoughts",
        )
    return None


# --- Rule 4: Revision Targets ---


def revision_lineage(record: ThoughtRecord, view: ChainView) -> Set[int]:
    """Thought numbers a revision carried by this record may target.

    The main line is always reachable. A record on a known branch also
    reaches that branch and its ancestors; a record opening a new branch
    reaches the lineage it forks from.
    """
    if record.branch_id is not None and view.has_branch(record.branch_id):
        return view.lineage_numbers(record.branch_id)
    if record.branch_from_thought is not None:
        return view.lineage_numbers(view.resolve_parent(record.branch_from_thought))
    return view.lineage_numbers(None)


def check_revision(record: ThoughtRecord, view: ChainView) -> Violation | None:
    """Reject revisions whose target is absent, later, or the record itself.

    Args:
        record: Candidate record
        view: Current chain view

    Returns:
        DanglingRevision or SelfReferentialRevision violation, or None

    """
    target = record.revises_thought

    if record.is_revision is not True:
        if target is not None:
            return Violation(
                kind=ViolationKind.DANGLING_REVISION,
                message="Cannot set revises_thought if is_revision is not true.",
                field="revises_thought",
            )
        return None

    if target is None:
        return Violation(
            kind=ViolationKind.DANGLING_REVISION,
            message="If is_revision is true, revises_thought (number) is required.",
            field="revises_thought",
        )

    if target == record.thought_number:
        return Violation(
            kind=ViolationKind.SELF_REFERENTIAL_REVISION,
            message=f"Thought {record.thought_number} cannot revise itself.",
            field="revises_thought",
        )

    if target > record.thought_number:
        return Violation(
            kind=ViolationKind.DANGLING_REVISION,
            message=(
                f"revises_thought ({target}) must name an earlier thought than "
                f"thought_number ({record.thought_number})."
            ),
            field="revises_thought",
        )

    if target not in revision_lineage(record, view):
        return Violation(
            kind=ViolationKind.DANGLING_REVISION,
            message=(
                f"Invalid revises_thought ({target}): no such thought in the "
                f"{_lineage_label(record.branch_id)}."
            ),
            field="revises_thought",
        )

    return None


# --- Rule 5: Branch Lineage ---


def check_branch(record: ThoughtRecord, view: ChainView) -> Violation | None:
    """Reject branches without an id or forking from a point that does not exist.

    Args:
        record: Candidate record
        view: Current chain view

    Returns:
        DanglingBranch violation, or None

    """
    fork_point = record.branch_from_thought
    branch_id = record.branch_id

    if fork_point is None:
        if branch_id is not None and not view.has_branch(branch_id):
            return Violation(
                kind=ViolationKind.DANGLING_BRANCH,
                message=(
                    f"Unknown branch_id '{branch_id}': open a branch by providing "
                    "branch_from_thought together with branch_id."
                ),
                field="branch_id",
            )
        return None

    if branch_id is None:
        return Violation(
            kind=ViolationKind.DANGLING_BRANCH,
            message=(
                "If branching, both branch_id (string) and branch_from_thought "
                "(number) are required."
            ),
            field="branch_id",
        )

    if view.has_branch(branch_id):
        reachable = view.lineage_numbers(branch_id)
    else:
        reachable = view.known_numbers()

    if fork_point not in reachable:
        return Violation(
            kind=ViolationKind.DANGLING_BRANCH,
            message=(
                f"Invalid branch_from_thought ({fork_point}): cannot branch from a "
                f"non-existent thought. The session has {view.history_length} thought(s)."
            ),
            field="branch_from_thought",
        )

    return None


def validate(
    record: ThoughtRecord, view: ChainView, limits: ValidationLimits
) -> Violation | None:
    """Run every rule in order and return the first violation.

    Args:
        record: Candidate record
        view: Read-only chain view
        limits: Configured bounds

    Returns:
        The first violation found, or None if the record is acceptable

    """
    return (
        check_session_bounds(view, limits)
        or check_text_length(record, limits)
        or check_numbering(record)
        or check_revision(record, view)
        or check_branch(record, view)
    )


def _lineage_label(branch_id: str | None) -> str:
    if branch_id is None:
        return "main line"
    return f"lineage of branch '{branch_id}'"
