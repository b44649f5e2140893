"""Pairwise student compatibility (symmetric matrix)."""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from itertools import combinations
from typing import Iterator, Optional

from composer.cache import TTLCache
from composer.content import shared_content
from config.schema import CompatibilityPolicy
from data.providers import BookingHistoryProvider, DataUnavailableError
from models.composition import PairCompatibility
from models.student import LearningPace, LearningStyle, StudentState

logger = logging.getLogger(__name__)


class CompatibilityMatrix:
    """Pair-keyed store of PairCompatibility; lookups are order-independent."""

    def __init__(self) -> None:
        self._pairs: dict[frozenset[str], PairCompatibility] = {}
        self._lock = threading.Lock()

    def add(self, compatibility: PairCompatibility) -> None:
        with self._lock:
            self._pairs[compatibility.pair] = compatibility

    def get(self, student_a: str, student_b: str) -> Optional[PairCompatibility]:
        return self._pairs.get(frozenset((student_a, student_b)))

    def score(self, student_a: str, student_b: str, default: float = 0.0) -> float:
        pair = self.get(student_a, student_b)
        return pair.compatibility_score if pair is not None else default

    def partners(self, student_id: str) -> list[PairCompatibility]:
        return [p for key, p in self._pairs.items() if student_id in key]

    def __contains__(self, pair: tuple[str, str]) -> bool:
        return frozenset(pair) in self._pairs

    def __iter__(self) -> Iterator[PairCompatibility]:
        return iter(list(self._pairs.values()))

    def __len__(self) -> int:
        return len(self._pairs)


class CompatibilityMatrixBuilder:
    """Computes PairCompatibility for every unordered student pair.

    score = 40 · [shared content] + 25 · style + 25 · pace + 10 · social,
    clamped to 0–100 (constants from CompatibilityPolicy).
    """

    def __init__(
        self,
        history: BookingHistoryProvider,
        policy: Optional[CompatibilityPolicy] = None,
        cache: Optional[TTLCache] = None,
        max_workers: int = 4,
    ) -> None:
        self.history = history
        self.policy = policy or CompatibilityPolicy()
        self.cache = cache
        self.max_workers = max_workers

    def build(self, states: dict[str, StudentState]) -> CompatibilityMatrix:
        if self.cache is not None:
            purged = self.cache.purge_expired()
            if purged:
                logger.debug(f"Purged {purged} expired history lookup(s)")
        matrix = CompatibilityMatrix()
        pairs = list(combinations(states.values(), 2))

        def compute(pair: tuple[StudentState, StudentState]) -> None:
            matrix.add(self.compatibility(*pair))

        if self.max_workers <= 1 or len(pairs) <= 1:
            for pair in pairs:
                compute(pair)
        else:
            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(pairs))) as pool:
                # list() re-raises worker exceptions
                list(pool.map(compute, pairs))

        logger.info(f"Compatibility matrix: {len(matrix)} pair(s) for {len(states)} student(s)")
        return matrix

    # ─── Single pair ──────────────────────────────────────────────────────────

    def compatibility(self, state_a: StudentState, state_b: StudentState) -> PairCompatibility:
        p = self.policy
        shared = shared_content(state_a, state_b, p.lesson_tolerance)
        style = self.learning_style_match(state_a, state_b)
        pace = self.pace_compatibility(state_a, state_b)
        social = self.social_history(state_a.student_id, state_b.student_id)

        score = (
            (p.shared_content_points if shared else 0.0)
            + style * p.learning_style_weight
            + pace * p.pace_weight
            + social * p.social_weight
        )
        return PairCompatibility(
            student_a=state_a.student_id,
            student_b=state_b.student_id,
            compatibility_score=max(0.0, min(100.0, score)),
            shared_content=shared,
            learning_style_match=style,
            pace_compatibility=pace,
            social_history=social,
        )

    def learning_style_match(self, state_a: StudentState, state_b: StudentState) -> float:
        style_a = state_a.analytics.preferred_learning_style
        style_b = state_b.analytics.preferred_learning_style
        if style_a == style_b:
            return self.policy.exact_match
        if LearningStyle.MIXED in (style_a, style_b):
            return self.policy.partial_match
        return self.policy.mismatch

    def pace_compatibility(self, state_a: StudentState, state_b: StudentState) -> float:
        pace_a, pace_b = state_a.pace, state_b.pace
        if pace_a is None or pace_b is None:
            return self.policy.neutral_pace
        if pace_a == pace_b:
            return self.policy.exact_match
        if (pace_a == LearningPace.AVERAGE) != (pace_b == LearningPace.AVERAGE):
            return self.policy.partial_match
        return self.policy.mismatch

    def social_history(self, student_a: str, student_b: str) -> float:
        """min(1, 0.2 × classes both students booked together)."""
        key = tuple(sorted((student_a, student_b)))
        try:
            if self.cache is not None:
                count = self.cache.get_or_compute(
                    key, lambda: self.history.get_shared_class_count(*key)
                )
            else:
                count = self.history.get_shared_class_count(*key)
        except DataUnavailableError as e:
            logger.warning(f"No booking history for {student_a}/{student_b}: {e}")
            count = 0
        return min(1.0, count * self.policy.social_per_shared_class)
