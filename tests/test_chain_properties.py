"""Property-based tests for the thought chain engine.

Uses hypothesis to generate arbitrary submission sequences and verify the
engine's invariants hold for every one of them.
"""

from __future__ import annotations

from typing import Any

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from code_reasoning.tools import (
    SessionStatus,
    ThoughtChainEngine,
    ThoughtRecord,
    ValidationLimits,
    ViolationKind,
)

# =============================================================================
# Strategy Definitions
# =============================================================================

numbers = st.integers(min_value=-2, max_value=12)
branch_ids = st.sampled_from(["B1", "B2", "alt"])

# Autouse env fixture is function scoped; engines are built inside each example
SUPPRESSED = [HealthCheck.function_scoped_fixture]


@st.composite
def records(draw: st.DrawFn) -> ThoughtRecord:
    """Arbitrary record: valid, invalid and everything in between."""
    data: dict[str, Any] = {
        "thought": draw(st.text(alphabet="abc xyz", min_size=1, max_size=30).filter(str.strip)),
        "thought_number": draw(numbers),
        "total_thoughts": draw(numbers),
        "next_thought_needed": draw(st.booleans()),
    }
    if draw(st.booleans()):
        data["is_revision"] = draw(st.booleans())
    if draw(st.booleans()):
        data["revises_thought"] = draw(numbers)
    if draw(st.booleans()):
        data["branch_from_thought"] = draw(numbers)
    if draw(st.booleans()):
        data["branch_id"] = draw(branch_ids)
    if draw(st.booleans()):
        data["needs_more_thoughts"] = draw(st.booleans())
    return ThoughtRecord(**data)


@st.composite
def plain_chains(draw: st.DrawFn) -> list[ThoughtRecord]:
    """Valid linear chains with arbitrary numbering above zero."""
    size = draw(st.integers(min_value=1, max_value=15))
    return [
        ThoughtRecord(
            thought=f"step {i}",
            thought_number=draw(st.integers(min_value=1, max_value=30)),
            total_thoughts=draw(st.integers(min_value=1, max_value=30)),
            next_thought_needed=True,
        )
        for i in range(size)
    ]


# =============================================================================
# Properties
# =============================================================================


@given(st.lists(records(), max_size=25))
@settings(max_examples=200, deadline=None, suppress_health_check=SUPPRESSED)
def test_history_is_exactly_the_accepted_records(submissions: list[ThoughtRecord]) -> None:
    """History length equals accepted count, in arrival order."""
    engine = ThoughtChainEngine(ValidationLimits(max_thoughts=10))
    accepted: list[ThoughtRecord] = []

    for record in submissions:
        before = len(engine.all())
        outcome = engine.submit(record)
        if outcome.accepted:
            accepted.append(record)
        else:
            assert len(engine.all()) == before

    assert len(engine.all()) == len(accepted)
    assert list(engine.all()) == accepted


@given(st.lists(records(), max_size=25))
@settings(max_examples=200, deadline=None, suppress_health_check=SUPPRESSED)
def test_branch_records_partition_history(submissions: list[ThoughtRecord]) -> None:
    """Every accepted record is on the main line or in exactly one branch."""
    engine = ThoughtChainEngine(ValidationLimits(max_thoughts=15))
    for record in submissions:
        engine.submit(record)

    branched = {bid: engine.branch(bid) or () for bid in engine.branch_ids()}
    for bid, members in branched.items():
        assert all(r.branch_id == bid for r in members)
    main = [r for r in engine.all() if r.branch_id is None]
    assert len(main) + sum(len(m) for m in branched.values()) == len(engine.all())


@given(st.lists(records(), max_size=20), records())
@settings(max_examples=200, deadline=None, suppress_health_check=SUPPRESSED)
def test_revision_must_target_existing_earlier_thought(
    prefix: list[ThoughtRecord], candidate: ThoughtRecord
) -> None:
    """Forward or unseen revision targets are always DanglingRevision."""
    engine = ThoughtChainEngine(ValidationLimits(max_thoughts=50))
    for record in prefix:
        engine.submit(record)

    known = {r.thought_number for r in engine.all()}
    target = candidate.revises_thought
    bad_target = target is not None and (
        target > candidate.thought_number or target not in known
    )
    if not (candidate.is_revision and bad_target and target != candidate.thought_number):
        return
    if candidate.thought_number < 1 or candidate.total_thoughts < 1:
        return

    before = len(engine.all())
    outcome = engine.submit(candidate)
    assert not outcome.accepted
    assert outcome.violation is not None
    assert outcome.violation.kind == ViolationKind.DANGLING_REVISION
    assert len(engine.all()) == before


@given(plain_chains(), st.integers(min_value=1, max_value=10))
@settings(max_examples=100, deadline=None, suppress_health_check=SUPPRESSED)
def test_bounds_hit_on_the_next_attempt(chain: list[ThoughtRecord], max_thoughts: int) -> None:
    """The (max_thoughts + 1)-th attempt fails whatever the numbering."""
    engine = ThoughtChainEngine(ValidationLimits(max_thoughts=max_thoughts))
    for i, record in enumerate(chain):
        outcome = engine.submit(record)
        if i < max_thoughts:
            assert outcome.accepted
        else:
            assert outcome.violation is not None
            assert outcome.violation.kind == ViolationKind.SESSION_BOUNDS_EXCEEDED
    assert len(engine.all()) == min(len(chain), max_thoughts)


@given(st.integers(min_value=1, max_value=50), st.integers(min_value=5, max_value=20000))
@settings(max_examples=100, deadline=None, suppress_health_check=SUPPRESSED)
def test_first_plain_record_always_accepted(max_thoughts: int, max_length: int) -> None:
    """Thought 1 of 3 needs no backward reference under any limits."""
    engine = ThoughtChainEngine(
        ValidationLimits(max_thoughts=max_thoughts, max_thought_length=max_length)
    )
    outcome = engine.submit(
        ThoughtRecord(thought="Plan", thought_number=1, total_thoughts=3, next_thought_needed=True)
    )
    assert outcome.accepted
    assert engine.status == SessionStatus.OPEN


@given(st.lists(records(), max_size=20))
@settings(max_examples=100, deadline=None, suppress_health_check=SUPPRESSED)
def test_queries_are_idempotent(submissions: list[ThoughtRecord]) -> None:
    """Repeated queries without a submit return the same results."""
    engine = ThoughtChainEngine(ValidationLimits(max_thoughts=20))
    for record in submissions:
        engine.submit(record)

    assert engine.current() == engine.current()
    assert engine.all() == engine.all()
    assert engine.state() == engine.state()
    for n in range(-2, 13):
        assert engine.by_number(n) == engine.by_number(n)


@given(st.lists(records(), max_size=20))
@settings(max_examples=100, deadline=None, suppress_health_check=SUPPRESSED)
def test_remaining_never_negative(submissions: list[ThoughtRecord]) -> None:
    engine = ThoughtChainEngine(ValidationLimits(max_thoughts=20))
    for record in submissions:
        state = engine.submit(record).state
        if state.remaining is not None:
            assert state.remaining >= 0
