"""Tests for content clustering and the pairwise compatibility matrix."""

import itertools

import pytest

from composer.cache import TTLCache
from composer.content import (
    ContentCompatibilityAnalyzer,
    group_focus_content,
    shared_content,
)
from composer.matrix import CompatibilityMatrixBuilder
from data.providers import DataUnavailableError, NoBookingHistory
from models.content import ContentGroup, ContentItem, ContentType
from models.student import (
    LearningAnalytics,
    LearningPace,
    LearningStyle,
    ProgressRecord,
    StudentState,
)


# ─── Helpers ──────────────────────────────────────────────────────────────────

def item(unit: int, lesson: int, difficulty: int = 5) -> ContentItem:
    return ContentItem(
        id=f"mat_{unit}_{lesson}",
        unit_number=unit,
        lesson_number=lesson,
        content_type=ContentType.READING,
        difficulty_level=difficulty,
    )


def student(
    sid: str,
    items=(),
    style: LearningStyle = LearningStyle.MIXED,
    pace=LearningPace.AVERAGE,
    progress: float = 50.0,
) -> StudentState:
    return StudentState(
        student_id=sid,
        progress=[] if pace is None else [
            ProgressRecord(course_id="c1", progress_percentage=progress, learning_pace=pace)
        ],
        unlearned=[ContentGroup(course_id="c1", content_items=list(items))],
        analytics=LearningAnalytics(preferred_learning_style=style),
    )


class FixedHistory:
    """Booking history returning the same count for every pair."""

    def __init__(self, count: int) -> None:
        self.count = count
        self.calls = 0

    def get_shared_class_count(self, student_a: str, student_b: str) -> int:
        self.calls += 1
        return self.count


class BrokenHistory:
    def get_shared_class_count(self, student_a: str, student_b: str) -> int:
        raise DataUnavailableError(student_a, "history service down")


def builder(history=None, cache=None) -> CompatibilityMatrixBuilder:
    return CompatibilityMatrixBuilder(history or NoBookingHistory(), cache=cache, max_workers=1)


# ─── Shared content ───────────────────────────────────────────────────────────

class TestSharedContent:
    def test_identical_lesson(self):
        a = student("a", [item(3, 2)])
        b = student("b", [item(3, 2)])
        assert [i.content_key for i in shared_content(a, b)] == ["3-2"]

    def test_adjacent_lesson_within_tolerance(self):
        a = student("a", [item(3, 2)])
        b = student("b", [item(3, 3)])
        assert [i.content_key for i in shared_content(a, b, tolerance=1)] == ["3-2"]
        assert shared_content(a, b, tolerance=0) == []

    def test_different_unit_never_shared(self):
        a = student("a", [item(3, 2)])
        b = student("b", [item(4, 2)])
        assert shared_content(a, b) == []

    def test_deduplicated_by_key(self):
        a = student("a", [item(1, 1), item(1, 1)])
        b = student("b", [item(1, 1)])
        assert len(shared_content(a, b)) == 1


class TestGroupFocusContent:
    def test_only_items_everyone_needs(self):
        members = [
            student("a", [item(1, 1), item(2, 1)]),
            student("b", [item(1, 1)]),
        ]
        assert [i.content_key for i in group_focus_content(members)] == ["1-1"]

    def test_limited_to_three(self):
        items = [item(1, 1), item(1, 2), item(1, 3), item(1, 4), item(1, 5)]
        members = [student("a", items), student("b", items)]
        assert len(group_focus_content(members, limit=3)) == 3

    def test_independent_of_member_order(self):
        members = [
            student("a", [item(2, 1), item(2, 2)]),
            student("b", [item(2, 2), item(2, 3)]),
            student("c", [item(2, 2)]),
        ]
        results = {
            tuple(i.content_key for i in group_focus_content(list(perm)))
            for perm in itertools.permutations(members)
        }
        assert len(results) == 1
        # 2-2 is needed exactly by all three members
        assert next(iter(results))[0] == "2-2"

    def test_empty_group(self):
        assert group_focus_content([]) == []


# ─── Content clusters ─────────────────────────────────────────────────────────

class TestContentCompatibilityAnalyzer:
    def test_key_below_min_students_dropped(self):
        states = {
            "a": student("a", [item(3, 2), item(1, 1)]),
            "b": student("b", [item(1, 1)]),
        }
        clusters = ContentCompatibilityAnalyzer(min_students=2).analyze(states)
        assert "3-2" not in clusters
        assert clusters["1-1"] == ["a", "b"]

    def test_student_listed_once_per_key(self):
        states = {
            "a": student("a", [item(1, 1), item(1, 1)]),
            "b": student("b", [item(1, 1)]),
        }
        clusters = ContentCompatibilityAnalyzer(min_students=2).analyze(states)
        assert clusters["1-1"] == ["a", "b"]

    def test_empty_states(self):
        assert ContentCompatibilityAnalyzer(min_students=2).analyze({}) == {}


# ─── Pair compatibility ───────────────────────────────────────────────────────

class TestCompatibility:
    def test_identical_students_score_90(self):
        """Shared lesson, same style, same pace, no history: 40 + 25 + 25 + 0."""
        a = student("a", [item(3, 2)], LearningStyle.VISUAL, LearningPace.AVERAGE)
        b = student("b", [item(3, 2)], LearningStyle.VISUAL, LearningPace.AVERAGE)
        pair = builder().compatibility(a, b)
        assert pair.compatibility_score == pytest.approx(90.0)
        assert pair.learning_style_match == 1.0
        assert pair.pace_compatibility == 1.0
        assert pair.social_history == 0.0
        assert [i.content_key for i in pair.shared_content] == ["3-2"]

    def test_opposite_students_score_15(self):
        """No content, visual vs auditory, slow vs fast: 0.3·25 + 0.3·25."""
        a = student("a", [item(1, 1)], LearningStyle.VISUAL, LearningPace.SLOW)
        b = student("b", [item(5, 1)], LearningStyle.AUDITORY, LearningPace.FAST)
        assert builder().compatibility(a, b).compatibility_score == pytest.approx(15.0)

    def test_symmetric(self):
        a = student("a", [item(2, 1)], LearningStyle.VISUAL, LearningPace.SLOW)
        b = student("b", [item(2, 2)], LearningStyle.MIXED, LearningPace.AVERAGE)
        b1 = builder()
        assert (
            b1.compatibility(a, b).compatibility_score
            == b1.compatibility(b, a).compatibility_score
        )

    def test_mixed_style_partial_match(self):
        a = student("a", style=LearningStyle.MIXED)
        b = student("b", style=LearningStyle.KINESTHETIC)
        assert builder().learning_style_match(a, b) == pytest.approx(0.7)

    def test_average_pace_partial_match(self):
        a = student("a", pace=LearningPace.SLOW)
        b = student("b", pace=LearningPace.AVERAGE)
        assert builder().pace_compatibility(a, b) == pytest.approx(0.7)

    def test_missing_pace_neutral(self):
        a = student("a", pace=None)
        b = student("b", pace=LearningPace.FAST)
        assert builder().pace_compatibility(a, b) == pytest.approx(0.5)

    def test_social_history_adds_points(self):
        a = student("a", [item(3, 2)], LearningStyle.VISUAL)
        b = student("b", [item(3, 2)], LearningStyle.VISUAL)
        pair = builder(FixedHistory(3)).compatibility(a, b)
        assert pair.social_history == pytest.approx(0.6)
        assert pair.compatibility_score == pytest.approx(96.0)

    def test_social_history_capped(self):
        a, b = student("a"), student("b")
        assert builder(FixedHistory(10)).compatibility(a, b).social_history == 1.0

    def test_failing_history_counts_as_zero(self):
        a = student("a", [item(3, 2)], LearningStyle.VISUAL)
        b = student("b", [item(3, 2)], LearningStyle.VISUAL)
        pair = builder(BrokenHistory()).compatibility(a, b)
        assert pair.social_history == 0.0
        assert pair.compatibility_score == pytest.approx(90.0)


# ─── Matrix ───────────────────────────────────────────────────────────────────

class TestMatrix:
    def _states(self, n: int = 4) -> dict[str, StudentState]:
        return {f"s{i}": student(f"s{i}", [item(1, i % 2 + 1)]) for i in range(n)}

    def test_all_pairs(self):
        matrix = builder().build(self._states(4))
        assert len(matrix) == 6

    def test_order_independent_lookup(self):
        matrix = builder().build(self._states(3))
        assert matrix.get("s0", "s1") is matrix.get("s1", "s0")
        assert ("s2", "s0") in matrix

    def test_unknown_pair_default(self):
        matrix = builder().build(self._states(2))
        assert matrix.get("s0", "x") is None
        assert matrix.score("s0", "x") == 0.0

    def test_partners(self):
        matrix = builder().build(self._states(4))
        partners = {p.partner_of("s0") for p in matrix.partners("s0")}
        assert partners == {"s1", "s2", "s3"}

    def test_parallel_equals_sequential(self):
        states = self._states(6)
        sequential = builder().build(states)
        parallel = CompatibilityMatrixBuilder(NoBookingHistory(), max_workers=4).build(states)
        for pair in sequential:
            assert parallel.score(pair.student_a, pair.student_b) == pair.compatibility_score

    def test_history_lookups_cached(self):
        history = FixedHistory(1)
        cache = TTLCache(ttl_seconds=300)
        states = self._states(3)
        builder(history, cache).build(states)
        builder(history, cache).build(states)
        assert history.calls == 3
        assert cache.hits == 3

    def test_expired_lookups_purged_on_build(self):
        now = [0.0]
        cache = TTLCache(ttl_seconds=300, clock=lambda: now[0])
        builder(FixedHistory(1), cache).build(self._states(3))
        assert len(cache) == 3

        now[0] = 301.0
        builder(FixedHistory(1), cache).build({})
        assert len(cache) == 0

    def test_empty_and_single(self):
        assert len(builder().build({})) == 0
        assert len(builder().build(self._states(1))) == 0
