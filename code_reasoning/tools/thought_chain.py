"""Thought chain engine.

Owns the canonical history of accepted thoughts and the branch index, and
decides whether the reasoning session is still open. The calling LLM does
all reasoning; the engine only tracks, validates and sequences the steps.

Architecture:
    - One engine instance per session, no module-level state
    - History is append-only, records are immutable
    - Cross references (revisions, fork points) are plain thought numbers
      resolved through indexes, never back-pointers
    - No I/O: logging and persistence belong to the callers

State machine:
    OPEN    -> CLOSED  when an accepted record has next_thought_needed=False
    CLOSED  -> OPEN    only when the closing record had needs_more_thoughts=True
                       and a later record has a strictly greater thought_number
    CLOSED  -> CLOSED  any other submission is accepted but flagged
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence, Set
from dataclasses import dataclass, field
from typing import overload

from code_reasoning.utils.errors import ChainInvariantError

from .thought_types import (
    REOPENED_WITHOUT_FLAG,
    BranchInfo,
    ChainState,
    SessionStatus,
    SubmitOutcome,
    ThoughtRecord,
    ValidationLimits,
)
from .validator import validate


@dataclass
class BranchState:
    """An alternate continuation diverging from a prior thought."""

    branch_id: str
    fork_point: int
    parent_id: str | None = None  # None when forked from the main line
    records: list[ThoughtRecord] = field(default_factory=list)
    numbers: set[int] = field(default_factory=set)


class HistoryView(Sequence[ThoughtRecord]):
    """Read-only snapshot of the history at the time it was taken.

    Iteration is lazy and restartable; records accepted after the snapshot
    are not visible through it.
    """

    __slots__ = ("_records", "_length")

    def __init__(self, records: list[ThoughtRecord], length: int) -> None:
        self._records = records
        self._length = length

    @overload
    def __getitem__(self, index: int) -> ThoughtRecord: ...

    @overload
    def __getitem__(self, index: slice) -> tuple[ThoughtRecord, ...]: ...

    def __getitem__(self, index: int | slice) -> ThoughtRecord | tuple[ThoughtRecord, ...]:
        if isinstance(index, slice):
            return tuple(self._records[: self._length][index])
        if index < 0:
            index += self._length
        if not 0 <= index < self._length:
            raise IndexError("history index out of range")
        return self._records[index]

    def __len__(self) -> int:
        return self._length

    def __iter__(self) -> Iterator[ThoughtRecord]:
        for i in range(self._length):
            yield self._records[i]

    def __eq__(self, other: object) -> bool:
        if isinstance(other, HistoryView):
            return list(self) == list(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"HistoryView(length={self._length})"


class ThoughtChainEngine:
    """The only component allowed to mutate history and branch index.

    Example usage flow:
        1. engine = ThoughtChainEngine(ValidationLimits(max_thoughts=20))
        2. outcome = engine.submit(record)
        3. if not outcome.accepted: inspect outcome.violation and resubmit
        4. engine.current(), engine.by_number(2), engine.branch("B1")

    """

    def __init__(self, limits: ValidationLimits | None = None) -> None:
        """Initialize an empty chain.

        Args:
            limits: Bounds enforced on every submission (defaults apply if None).

        """
        self._limits = limits or ValidationLimits()
        self._history: list[ThoughtRecord] = []
        self._branches: dict[str, BranchState] = {}
        self._by_number: dict[int, ThoughtRecord] = {}
        self._main_numbers: set[int] = set()
        self._current: ThoughtRecord | None = None
        self._closing: ThoughtRecord | None = None
        self._status = SessionStatus.OPEN

    # --- ChainView protocol (read by the validator) ---

    @property
    def history_length(self) -> int:
        """Number of accepted records."""
        return len(self._history)

    def has_branch(self, branch_id: str) -> bool:
        """Whether a branch with this id has been opened."""
        return branch_id in self._branches

    def resolve_parent(self, fork_point: int) -> str | None:
        """Find the lineage owning a fork point.

        The main line wins when it holds the number; otherwise the branch
        whose record with that number arrived most recently.
        """
        if fork_point in self._main_numbers:
            return None
        for record in reversed(self._history):
            if record.thought_number == fork_point and record.branch_id is not None:
                return record.branch_id
        return None

    def lineage_numbers(self, branch_id: str | None) -> Set[int]:
        """Thought numbers reachable from a branch, including the main line."""
        numbers = set(self._main_numbers)
        seen: set[str] = set()
        current = branch_id
        while current is not None and current in self._branches and current not in seen:
            seen.add(current)
            branch = self._branches[current]
            numbers |= branch.numbers
            current = branch.parent_id
        return frozenset(numbers)

    def known_numbers(self) -> Set[int]:
        """Every thought number accepted so far."""
        return frozenset(self._by_number)

    # --- Mutation ---

    @property
    def limits(self) -> ValidationLimits:
        """Bounds applied to submissions."""
        return self._limits

    @property
    def status(self) -> SessionStatus:
        """Whether the session still expects thoughts."""
        return self._status

    def submit(self, record: ThoughtRecord) -> SubmitOutcome:
        """Validate and, if acceptable, append a record.

        Args:
            record: Candidate record.

        Returns:
            Outcome with the updated state on acceptance, or the violation
            and unchanged state on rejection.

        """
        violation = validate(record, self, self._limits)
        if violation is not None:
            return SubmitOutcome(accepted=False, state=self.state(), violation=violation)

        reopened, warnings = self._advance(record)
        self._append(record)
        self._check_invariants()

        return SubmitOutcome(
            accepted=True,
            state=self.state(),
            record=record,
            reopened=reopened,
            warnings=tuple(warnings),
        )

    def _advance(self, record: ThoughtRecord) -> tuple[bool, list[str]]:
        """Apply the state machine transition for an accepted record."""
        warnings: list[str] = []
        reopened = False

        if self._status == SessionStatus.CLOSED:
            closing = self._closing
            if closing is None:
                raise ChainInvariantError("Closed session has no closing record")

            may_reopen = (
                closing.needs_more_thoughts is True
                and record.thought_number > closing.thought_number
            )
            if may_reopen:
                reopened = record.next_thought_needed
                self._set_status_from(record)
            else:
                warnings.append(REOPENED_WITHOUT_FLAG)
                if not record.next_thought_needed:
                    self._closing = record
        else:
            self._set_status_from(record)

        return reopened, warnings

    def _set_status_from(self, record: ThoughtRecord) -> None:
        if record.next_thought_needed:
            self._status = SessionStatus.OPEN
            self._closing = None
        else:
            self._status = SessionStatus.CLOSED
            self._closing = record

    def _append(self, record: ThoughtRecord) -> None:
        if record.branch_id is not None:
            self._add_to_branch(record, record.branch_id)
        else:
            self._main_numbers.add(record.thought_number)

        self._history.append(record)
        self._by_number[record.thought_number] = record
        self._current = record

    def _add_to_branch(self, record: ThoughtRecord, branch_id: str) -> None:
        # Runs before the record joins the history so it cannot be its own parent
        branch = self._branches.get(branch_id)
        if branch is None:
            # Validator guarantees a fork point for unseen branches
            fork_point = record.branch_from_thought
            if fork_point is None:
                raise ChainInvariantError(
                    f"Branch '{branch_id}' opened without branch_from_thought"
                )
            branch = BranchState(
                branch_id=branch_id,
                fork_point=fork_point,
                parent_id=self.resolve_parent(fork_point),
            )
            self._branches[branch_id] = branch

        branch.records.append(record)
        branch.numbers.add(record.thought_number)

    def _check_invariants(self) -> None:
        branched = sum(len(b.records) for b in self._branches.values())
        main = sum(1 for r in self._history if r.branch_id is None)
        if branched + main != len(self._history):
            raise ChainInvariantError(
                f"History ({len(self._history)}) disagrees with main line ({main}) "
                f"plus branches ({branched})"
            )
        if self._current is not self._history[-1]:
            raise ChainInvariantError("Current pointer does not match last accepted record")

    # --- Queries ---

    def current(self) -> ThoughtRecord | None:
        """Most recently accepted record, or None before the first one."""
        return self._current

    def by_number(self, thought_number: int) -> ThoughtRecord | None:
        """Most recent accepted record carrying this thought number."""
        return self._by_number.get(thought_number)

    def branch(self, branch_id: str) -> tuple[ThoughtRecord, ...] | None:
        """Ordered records of a branch, or None if unknown."""
        branch = self._branches.get(branch_id)
        if branch is None:
            return None
        return tuple(branch.records)

    def branch_info(self, branch_id: str) -> BranchInfo | None:
        """Frozen snapshot of a branch, or None if unknown."""
        branch = self._branches.get(branch_id)
        if branch is None:
            return None
        return BranchInfo(
            branch_id=branch.branch_id,
            fork_point=branch.fork_point,
            parent_id=branch.parent_id,
            records=tuple(branch.records),
        )

    def branch_ids(self) -> tuple[str, ...]:
        """Known branch identifiers in first-seen order."""
        return tuple(self._branches)

    def all(self) -> HistoryView:
        """Read-only view of the full history in arrival order."""
        return HistoryView(self._history, len(self._history))

    def state(self) -> ChainState:
        """Current chain position and continuation state."""
        current = self._current
        if current is None:
            return ChainState(
                status=self._status,
                history_length=0,
                branch_ids=self.branch_ids(),
            )

        total = current.effective_total
        return ChainState(
            thought_number=current.thought_number,
            total_thoughts=total,
            next_thought_needed=self._status == SessionStatus.OPEN,
            status=self._status,
            remaining=max(total - current.thought_number, 0),
            history_length=len(self._history),
            branch_ids=self.branch_ids(),
        )
