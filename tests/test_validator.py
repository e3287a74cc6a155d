"""Unit tests for the pure validation rules."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from code_reasoning.tools import ThoughtChainEngine, ThoughtRecord, ValidationLimits, ViolationKind
from code_reasoning.tools.validator import (
    check_branch,
    check_numbering,
    check_revision,
    check_session_bounds,
    check_text_length,
    revision_lineage,
    validate,
)

MakeRecord = Callable[..., ThoughtRecord]


class TestSessionBounds:
    """Rule 1: the session accepts at most max_thoughts records."""

    def test_under_limit(self, small_engine: ThoughtChainEngine, make_record: MakeRecord) -> None:
        small_engine.submit(make_record(1))
        assert check_session_bounds(small_engine, small_engine.limits) is None

    def test_at_limit(self, small_engine: ThoughtChainEngine, make_record: MakeRecord) -> None:
        for n in range(1, 4):
            small_engine.submit(make_record(n))
        violation = check_session_bounds(small_engine, small_engine.limits)
        assert violation is not None
        assert violation.kind == ViolationKind.SESSION_BOUNDS_EXCEEDED

    def test_bounds_checked_before_anything_else(
        self, small_engine: ThoughtChainEngine, make_record: MakeRecord
    ) -> None:
        for n in range(1, 4):
            small_engine.submit(make_record(n))
        # Also too long and badly numbered; bounds still win
        record = make_record(0, thought="x" * 100)
        violation = validate(record, small_engine, small_engine.limits)
        assert violation is not None
        assert violation.kind == ViolationKind.SESSION_BOUNDS_EXCEEDED


class TestTextLength:
    """Rule 2: thought text length."""

    def test_exactly_at_limit(self, make_record: MakeRecord) -> None:
        limits = ValidationLimits(max_thought_length=10)
        assert check_text_length(make_record(1, thought="x" * 10), limits) is None

    def test_over_limit(self, make_record: MakeRecord) -> None:
        limits = ValidationLimits(max_thought_length=10)
        violation = check_text_length(make_record(1, thought="x" * 11), limits)
        assert violation is not None
        assert violation.kind == ViolationKind.TEXT_TOO_LONG
        assert violation.field == "thought"
        assert "10" in violation.message


class TestNumbering:
    """Rule 3: positive numbering."""

    @pytest.mark.parametrize("number", [0, -1, -100])
    def test_non_positive_thought_number(self, make_record: MakeRecord, number: int) -> None:
        violation = check_numbering(make_record(number))
        assert violation is not None
        assert violation.kind == ViolationKind.INVALID_NUMBERING
        assert violation.field == "thought_number"

    def test_non_positive_total(self, make_record: MakeRecord) -> None:
        violation = check_numbering(make_record(1, total_thoughts=0))
        assert violation is not None
        assert violation.field == "total_thoughts"

    def test_total_below_number_is_fine(self, make_record: MakeRecord) -> None:
        assert check_numbering(make_record(7, total_thoughts=3)) is None


class TestRevision:
    """Rule 4: revision targets."""

    def test_not_a_revision(self, engine: ThoughtChainEngine, make_record: MakeRecord) -> None:
        assert check_revision(make_record(1), engine) is None

    def test_target_without_flag(self, engine: ThoughtChainEngine, make_record: MakeRecord) -> None:
        engine.submit(make_record(1))
        violation = check_revision(make_record(2, revises_thought=1), engine)
        assert violation is not None
        assert violation.kind == ViolationKind.DANGLING_REVISION

    def test_flag_without_target(self, engine: ThoughtChainEngine, make_record: MakeRecord) -> None:
        violation = check_revision(make_record(2, is_revision=True), engine)
        assert violation is not None
        assert violation.kind == ViolationKind.DANGLING_REVISION

    def test_self_reference(self, engine: ThoughtChainEngine, make_record: MakeRecord) -> None:
        engine.submit(make_record(1))
        engine.submit(make_record(2))
        violation = check_revision(make_record(2, is_revision=True, revises_thought=2), engine)
        assert violation is not None
        assert violation.kind == ViolationKind.SELF_REFERENTIAL_REVISION

    def test_forward_reference(self, engine: ThoughtChainEngine, make_record: MakeRecord) -> None:
        engine.submit(make_record(1))
        violation = check_revision(make_record(2, is_revision=True, revises_thought=5), engine)
        assert violation is not None
        assert violation.kind == ViolationKind.DANGLING_REVISION

    def test_unknown_target(self, engine: ThoughtChainEngine, make_record: MakeRecord) -> None:
        engine.submit(make_record(1))
        violation = check_revision(make_record(4, is_revision=True, revises_thought=3), engine)
        assert violation is not None
        assert violation.kind == ViolationKind.DANGLING_REVISION
        assert "main line" in violation.message

    def test_valid_target(self, engine: ThoughtChainEngine, make_record: MakeRecord) -> None:
        engine.submit(make_record(1))
        engine.submit(make_record(2))
        assert check_revision(make_record(3, is_revision=True, revises_thought=1), engine) is None

    def test_branch_record_can_revise_own_branch(
        self, engine: ThoughtChainEngine, make_record: MakeRecord
    ) -> None:
        engine.submit(make_record(1))
        engine.submit(make_record(2, branch_from_thought=1, branch_id="B1"))
        record = make_record(3, branch_id="B1", is_revision=True, revises_thought=2)
        assert check_revision(record, engine) is None

    def test_main_line_cannot_revise_branch_only_thought(
        self, engine: ThoughtChainEngine, make_record: MakeRecord
    ) -> None:
        engine.submit(make_record(1))
        engine.submit(make_record(2, branch_from_thought=1, branch_id="B1"))
        violation = check_revision(make_record(3, is_revision=True, revises_thought=2), engine)
        assert violation is not None
        assert violation.kind == ViolationKind.DANGLING_REVISION

    def test_revision_lineage_for_new_branch(
        self, engine: ThoughtChainEngine, make_record: MakeRecord
    ) -> None:
        engine.submit(make_record(1))
        engine.submit(make_record(2, branch_from_thought=1, branch_id="B1"))
        record = make_record(3, branch_from_thought=2, branch_id="B2")
        assert revision_lineage(record, engine) == {1, 2}


class TestBranch:
    """Rule 5: branch lineage."""

    def test_fork_without_id(self, engine: ThoughtChainEngine, make_record: MakeRecord) -> None:
        engine.submit(make_record(1))
        violation = check_branch(make_record(2, branch_from_thought=1), engine)
        assert violation is not None
        assert violation.kind == ViolationKind.DANGLING_BRANCH
        assert violation.field == "branch_id"

    def test_fork_from_unseen_thought(
        self, engine: ThoughtChainEngine, make_record: MakeRecord
    ) -> None:
        engine.submit(make_record(1))
        violation = check_branch(make_record(2, branch_from_thought=5, branch_id="B1"), engine)
        assert violation is not None
        assert violation.kind == ViolationKind.DANGLING_BRANCH
        assert violation.field == "branch_from_thought"

    def test_unknown_branch_without_fork(
        self, engine: ThoughtChainEngine, make_record: MakeRecord
    ) -> None:
        engine.submit(make_record(1))
        violation = check_branch(make_record(2, branch_id="ghost"), engine)
        assert violation is not None
        assert violation.kind == ViolationKind.DANGLING_BRANCH

    def test_continue_known_branch(
        self, engine: ThoughtChainEngine, make_record: MakeRecord
    ) -> None:
        engine.submit(make_record(1))
        engine.submit(make_record(2, branch_from_thought=1, branch_id="B1"))
        assert check_branch(make_record(3, branch_id="B1"), engine) is None

    def test_fork_from_branch_thought(
        self, engine: ThoughtChainEngine, make_record: MakeRecord
    ) -> None:
        engine.submit(make_record(1))
        engine.submit(make_record(2, branch_from_thought=1, branch_id="B1"))
        assert check_branch(make_record(3, branch_from_thought=2, branch_id="B2"), engine) is None

    def test_empty_session_has_nothing_to_fork(
        self, engine: ThoughtChainEngine, make_record: MakeRecord
    ) -> None:
        violation = validate(
            make_record(1, branch_from_thought=1, branch_id="B1"), engine, engine.limits
        )
        assert violation is not None
        assert violation.kind == ViolationKind.DANGLING_BRANCH


class TestValidateOrder:
    """The first failing rule wins."""

    def test_first_record_is_accepted(
        self, engine: ThoughtChainEngine, make_record: MakeRecord
    ) -> None:
        assert validate(make_record(1, total_thoughts=3), engine, engine.limits) is None

    def test_length_before_numbering(self, make_record: MakeRecord) -> None:
        engine = ThoughtChainEngine(ValidationLimits(max_thought_length=5))
        violation = validate(make_record(0, thought="too long text"), engine, engine.limits)
        assert violation is not None
        assert violation.kind == ViolationKind.TEXT_TOO_LONG

    def test_revision_before_branch(
        self, engine: ThoughtChainEngine, make_record: MakeRecord
    ) -> None:
        record = make_record(2, is_revision=True, revises_thought=9, branch_from_thought=9)
        violation = validate(record, engine, engine.limits)
        assert violation is not None
        assert violation.kind == ViolationKind.DANGLING_REVISION
