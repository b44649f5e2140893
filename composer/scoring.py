"""Composite scoring of compositions and partitions."""

from typing import Optional, Sequence

from composer.content import group_focus_content
from composer.matrix import CompatibilityMatrix
from config.schema import CompatibilityPolicy, ScoringWeights
from models.composition import ClassComposition, CompositionScore
from models.content import ContentItem
from models.student import StudentState

# Sub-score when the group has no data for a measure
NEUTRAL_SCORE = 50.0


def _clamp(value: float) -> float:
    return max(0.0, min(100.0, value))


def _variance(values: Sequence[float]) -> float:
    mean = sum(values) / len(values)
    return sum((v - mean) ** 2 for v in values) / len(values)


class CompositionScorer:
    """Scores groups against five weighted sub-scores (0–100 each).

    total = 0.30 content + 0.25 difficulty + 0.20 progress
            + 0.15 social + 0.10 size

    Group totals are memoized by member set: within one run a group's
    score only depends on who is in it.
    """

    def __init__(
        self,
        states: dict[str, StudentState],
        matrix: Optional[CompatibilityMatrix] = None,
        weights: Optional[ScoringWeights] = None,
        policy: Optional[CompatibilityPolicy] = None,
    ) -> None:
        self.states = states
        self.matrix = matrix or CompatibilityMatrix()
        self.weights = weights or ScoringWeights()
        self.policy = policy or CompatibilityPolicy()
        self._totals: dict[frozenset[str], float] = {}

    # ─── Public API ───────────────────────────────────────────────────────────

    def evaluate(self, composition: ClassComposition) -> CompositionScore:
        """Scores an existing composition with its own focus and optimal size."""
        return self._score(
            composition.student_ids,
            composition.content_focus,
            composition.optimal_class_size,
        )

    def evaluate_group(self, student_ids: Sequence[str]) -> CompositionScore:
        """Scores a tentative group (focus derived, optimal size = actual size)."""
        return self._score(student_ids, self.focus_content(student_ids), len(student_ids))

    def focus_content(self, student_ids: Sequence[str]) -> list[ContentItem]:
        members = [self.states[sid] for sid in student_ids if sid in self.states]
        if len(members) < len(student_ids):
            # unknown member: nothing is shared by everyone
            return []
        return group_focus_content(
            members, self.policy.lesson_tolerance, self.policy.max_focus_items
        )

    def group_total(self, student_ids: Sequence[str]) -> float:
        key = frozenset(student_ids)
        total = self._totals.get(key)
        if total is None:
            total = self.evaluate_group(list(student_ids)).total_score
            self._totals[key] = total
        return total

    def score_partition(self, groups: Sequence[Sequence[str]]) -> float:
        """Size-weighted mean of the group totals (0 for an empty partition)."""
        weighted = 0.0
        n_students = 0
        for group in groups:
            weighted += self.group_total(group) * len(group)
            n_students += len(group)
        return weighted / n_students if n_students else 0.0

    # ─── Sub-scores ───────────────────────────────────────────────────────────

    def _score(
        self,
        student_ids: Sequence[str],
        focus: list[ContentItem],
        optimal_size: int,
    ) -> CompositionScore:
        content = self.content_alignment(student_ids, focus)
        difficulty = self.difficulty_balance(focus)
        progress = self.progress_compatibility(student_ids)
        social = self.social_compatibility(student_ids)
        size = self.size_optimization(len(student_ids), optimal_size)

        w = self.weights
        total = (
            content * w.content
            + difficulty * w.difficulty
            + progress * w.progress
            + social * w.social
            + size * w.size
        )
        return CompositionScore(
            total_score=_clamp(total),
            content_alignment=content,
            difficulty_balance=difficulty,
            progress_compatibility=progress,
            social_compatibility=social,
            size_optimization=size,
        )

    def content_alignment(self, student_ids: Sequence[str], focus: list[ContentItem]) -> float:
        """Mean share of focus items each member still needs (±1 lesson), × 100."""
        if not student_ids or not focus:
            return 0.0
        tolerance = self.policy.lesson_tolerance
        total = 0.0
        for sid in student_ids:
            state = self.states.get(sid)
            if state is None:
                continue
            needed = sum(1 for item in focus if state.needs(item, tolerance))
            total += needed / len(focus) * 100
        return _clamp(total / len(student_ids))

    def difficulty_balance(self, focus: list[ContentItem]) -> float:
        if not focus:
            return NEUTRAL_SCORE
        return _clamp(100 - 10 * _variance([item.difficulty_level for item in focus]))

    def progress_compatibility(self, student_ids: Sequence[str]) -> float:
        levels = [
            self.states[sid].average_progress
            for sid in student_ids
            if sid in self.states and self.states[sid].average_progress is not None
        ]
        if not levels:
            return NEUTRAL_SCORE
        return _clamp(100 - _variance(levels) / 10)

    def social_compatibility(self, student_ids: Sequence[str]) -> float:
        if len(student_ids) == 1:
            return 100.0
        scores = []
        for i, a in enumerate(student_ids):
            for b in student_ids[i + 1:]:
                pair = self.matrix.get(a, b)
                if pair is not None:
                    scores.append(pair.compatibility_score)
        if not scores:
            return NEUTRAL_SCORE
        return _clamp(sum(scores) / len(scores))

    @staticmethod
    def size_optimization(actual_size: int, optimal_size: int) -> float:
        return _clamp(100 - 20 * abs(actual_size - optimal_size))
