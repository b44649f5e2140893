"""Tests for the first-improvement local search."""

import threading

import pytest

from composer.matrix import CompatibilityMatrixBuilder
from composer.optimizer import (
    LocalSearchOptimizer,
    merge_moves,
    split_moves,
    swap_moves,
)
from composer.scoring import CompositionScorer
from config.schema import CompositionCriteria
from data.providers import NoBookingHistory
from models.composition import OptimizerStatus
from models.content import ContentGroup, ContentItem, ContentType
from models.student import (
    LearningAnalytics,
    LearningPace,
    LearningStyle,
    ProgressRecord,
    StudentState,
)


# ─── Helpers ──────────────────────────────────────────────────────────────────

def student(sid: str, unit: int) -> StudentState:
    return StudentState(
        student_id=sid,
        progress=[ProgressRecord(course_id="c1", progress_percentage=50.0,
                                 learning_pace=LearningPace.AVERAGE)],
        unlearned=[ContentGroup(course_id="c1", content_items=[
            ContentItem(id=f"mat_{unit}_1", unit_number=unit, lesson_number=1,
                        content_type=ContentType.READING, difficulty_level=5),
        ])],
        analytics=LearningAnalytics(preferred_learning_style=LearningStyle.VISUAL),
    )


def make_scorer(states: dict[str, StudentState]) -> CompositionScorer:
    matrix = CompatibilityMatrixBuilder(NoBookingHistory(), max_workers=1).build(states)
    return CompositionScorer(states, matrix)


class CountingScorer(CompositionScorer):
    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.calls = 0

    def score_partition(self, groups):
        self.calls += 1
        return super().score_partition(groups)


@pytest.fixture
def crossed() -> tuple[CompositionScorer, list[list[str]]]:
    """a/b need unit 1, c/d need unit 2; start with the wrong pairing."""
    states = {
        "a": student("a", 1), "b": student("b", 1),
        "c": student("c", 2), "d": student("d", 2),
    }
    return make_scorer(states), [["a", "c"], ["b", "d"]]


# ─── Moves ────────────────────────────────────────────────────────────────────

class TestMoves:
    def test_swap_count(self):
        variations = list(swap_moves(((0, 1), (2, 3))))
        assert len(variations) == 4
        assert ((1, 2), (3, 0)) in variations

    def test_swap_skips_singletons(self):
        assert list(swap_moves(((0,), (1, 2)))) == []

    def test_merge_within_bounds(self):
        assert list(merge_moves(((0,), (1,)), 2, 9)) == [((0, 1),)]

    def test_merge_above_max_blocked(self):
        assert list(merge_moves(((0, 1), (2, 3)), 2, 3)) == []

    def test_merge_below_min_blocked(self):
        assert list(merge_moves(((0,), (1,)), 3, 9)) == []

    def test_split_at_midpoint(self):
        assert list(split_moves(((0, 1, 2, 3),), 2)) == [((0, 1), (2, 3))]

    def test_split_needs_two_min_groups(self):
        assert list(split_moves(((0, 1, 2),), 2)) == []

    def test_moves_preserve_students(self):
        partition = ((0, 1, 2), (3, 4), (5,))
        for variation in list(swap_moves(partition)) + list(merge_moves(partition, 2, 9)):
            assert sorted(s for g in variation for s in g) == list(range(6))


# ─── Search ───────────────────────────────────────────────────────────────────

class TestLocalSearch:
    def test_fixes_crossed_pairs(self, crossed):
        scorer, groups = crossed
        outcome = LocalSearchOptimizer(scorer, CompositionCriteria()).optimize(groups)
        assert outcome.status == OptimizerStatus.CONVERGED
        assert {frozenset(g) for g in outcome.groups} == {
            frozenset({"a", "b"}), frozenset({"c", "d"}),
        }
        assert outcome.final_score > outcome.initial_score

    def test_input_not_modified(self, crossed):
        scorer, groups = crossed
        LocalSearchOptimizer(scorer, CompositionCriteria()).optimize(groups)
        assert groups == [["a", "c"], ["b", "d"]]

    def test_score_strictly_increasing(self, crossed):
        scorer, groups = crossed
        outcome = LocalSearchOptimizer(scorer, CompositionCriteria()).optimize(groups)
        history = outcome.score_history
        assert all(later > earlier for earlier, later in zip(history, history[1:]))
        assert len(history) == outcome.iterations + 1

    def test_idempotent_at_local_optimum(self, crossed):
        scorer, groups = crossed
        optimizer = LocalSearchOptimizer(scorer, CompositionCriteria())
        first = optimizer.optimize(groups)
        second = optimizer.optimize(first.groups)
        assert second.iterations == 0
        assert second.status == OptimizerStatus.CONVERGED
        assert second.groups == first.groups

    def test_iteration_limit(self, crossed):
        scorer, groups = crossed
        outcome = LocalSearchOptimizer(
            scorer, CompositionCriteria(), max_iterations=0
        ).optimize(groups)
        assert outcome.status == OptimizerStatus.ITERATION_LIMIT
        assert outcome.iterations == 0
        assert outcome.groups == groups

    def test_iteration_limit_stops_without_rescan(self, crossed):
        scorer, groups = crossed
        limited = CountingScorer(scorer.states, scorer.matrix)
        outcome = LocalSearchOptimizer(
            limited, CompositionCriteria(), max_iterations=1
        ).optimize(groups)
        assert outcome.status == OptimizerStatus.ITERATION_LIMIT
        assert outcome.iterations == 1

        unlimited = CountingScorer(scorer.states, scorer.matrix)
        converged = LocalSearchOptimizer(unlimited, CompositionCriteria()).optimize(groups)
        assert converged.status == OptimizerStatus.CONVERGED
        assert converged.iterations == 1
        # the converged run needs one more full scan to prove the optimum
        assert limited.calls < unlimited.calls

    def test_cancelled_before_start(self, crossed):
        scorer, groups = crossed
        cancel = threading.Event()
        cancel.set()
        outcome = LocalSearchOptimizer(scorer, CompositionCriteria()).optimize(
            groups, cancel=cancel
        )
        assert outcome.status == OptimizerStatus.CANCELLED
        assert outcome.groups == groups
        assert outcome.final_score == outcome.initial_score

    def test_time_limit(self, crossed):
        scorer, groups = crossed
        ticks = iter(range(1000))
        outcome = LocalSearchOptimizer(
            scorer, CompositionCriteria(), time_limit_seconds=1,
            clock=lambda: float(next(ticks)),
        ).optimize(groups)
        assert outcome.status == OptimizerStatus.CANCELLED

    def test_parallel_adopts_same_moves(self):
        states = {f"s{i}": student(f"s{i}", 1 + i % 3) for i in range(9)}
        groups = [["s0", "s1", "s2"], ["s3", "s4", "s5"], ["s6", "s7", "s8"]]
        sequential = LocalSearchOptimizer(
            make_scorer(states), CompositionCriteria(), max_workers=1
        ).optimize(groups)
        parallel = LocalSearchOptimizer(
            make_scorer(states), CompositionCriteria(), max_workers=4, chunk_size=8
        ).optimize(groups)
        assert parallel.groups == sequential.groups
        assert parallel.score_history == pytest.approx(sequential.score_history)

    def test_empty_partition(self):
        outcome = LocalSearchOptimizer(make_scorer({}), CompositionCriteria()).optimize([])
        assert outcome.groups == []
        assert outcome.status == OptimizerStatus.CONVERGED
        assert outcome.final_score == 0.0

    def test_respects_size_bounds(self):
        states = {f"s{i}": student(f"s{i}", 1) for i in range(6)}
        criteria = CompositionCriteria(min_students=2, max_students=3)
        outcome = LocalSearchOptimizer(make_scorer(states), criteria).optimize(
            [["s0", "s1"], ["s2", "s3"], ["s4", "s5"]]
        )
        assert all(2 <= len(g) <= 3 for g in outcome.groups)
