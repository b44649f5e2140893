"""First-improvement local search over a student partition.

Architecture:
  - A partition is a tuple of groups, each group a tuple of indices into
    an immutable student-id tuple. Moves never mutate; they yield new
    partitions, so variations can be scored in parallel safely.
  - Move families, enumerated in this order per iteration:
      swap   exchange one student between two groups (both sizes > 1)
      merge  join two groups (min_students ≤ combined size ≤ max_students)
      split  halve a group of size ≥ 2·min_students at its midpoint
  - The first variation (in enumeration order) that strictly beats the
    current score is adopted. Stops at a local optimum, after
    max_iterations accepted moves, or on cancel / time limit.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from itertools import chain, islice
from typing import Callable, Iterator, Optional

from composer.scoring import CompositionScorer
from config.schema import CompositionCriteria
from models.composition import OptimizerStatus

logger = logging.getLogger(__name__)

Group = tuple[int, ...]
Partition = tuple[Group, ...]

# Minimum gain for a move to count as an improvement (float noise)
IMPROVEMENT_EPSILON = 1e-9


# ─── Moves ────────────────────────────────────────────────────────────────────

def swap_moves(partition: Partition) -> Iterator[Partition]:
    for i, group_a in enumerate(partition):
        for j in range(i + 1, len(partition)):
            group_b = partition[j]
            if len(group_a) <= 1 or len(group_b) <= 1:
                continue
            for a in group_a:
                for b in group_b:
                    variation = list(partition)
                    variation[i] = tuple(s for s in group_a if s != a) + (b,)
                    variation[j] = tuple(s for s in group_b if s != b) + (a,)
                    yield tuple(variation)


def merge_moves(partition: Partition, min_students: int, max_students: int) -> Iterator[Partition]:
    for i, group_a in enumerate(partition):
        for j in range(i + 1, len(partition)):
            combined = len(group_a) + len(partition[j])
            if min_students <= combined <= max_students:
                variation = list(partition)
                variation[i] = group_a + partition[j]
                del variation[j]
                yield tuple(variation)


def split_moves(partition: Partition, min_students: int) -> Iterator[Partition]:
    for i, group in enumerate(partition):
        if len(group) < 2 * min_students:
            continue
        mid = len(group) // 2
        first, second = group[:mid], group[mid:]
        if len(first) >= min_students and len(second) >= min_students:
            yield partition[:i] + (first, second) + partition[i + 1:]


def candidate_moves(partition: Partition, criteria: CompositionCriteria) -> Iterator[Partition]:
    """All variations of one iteration in discovery order (swap, merge, split)."""
    return chain(
        swap_moves(partition),
        merge_moves(partition, criteria.min_students, criteria.max_students),
        split_moves(partition, criteria.min_students),
    )


# ─── Optimizer ────────────────────────────────────────────────────────────────

@dataclass
class OptimizationOutcome:
    groups: list[list[str]]
    status: OptimizerStatus
    iterations: int
    initial_score: float
    final_score: float
    score_history: list[float] = field(default_factory=list)


class LocalSearchOptimizer:
    """Improves a partition with swap/merge/split moves.

    Usage:
        optimizer = LocalSearchOptimizer(scorer, criteria, max_iterations=100)
        outcome = optimizer.optimize(groups)
    """

    def __init__(
        self,
        scorer: CompositionScorer,
        criteria: CompositionCriteria,
        max_iterations: int = 100,
        max_workers: int = 1,
        time_limit_seconds: Optional[float] = None,
        chunk_size: int = 64,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.scorer = scorer
        self.criteria = criteria
        self.max_iterations = max_iterations
        self.max_workers = max_workers
        self.time_limit_seconds = time_limit_seconds
        self.chunk_size = chunk_size
        self._clock = clock
        self._deadline: Optional[float] = None
        self._cancel: Optional[threading.Event] = None
        self._students: tuple[str, ...] = ()

    def optimize(
        self,
        groups: list[list[str]],
        cancel: Optional[threading.Event] = None,
    ) -> OptimizationOutcome:
        """Runs the search; the input list is not modified."""
        self._students = tuple(sid for group in groups for sid in group)
        index = {sid: i for i, sid in enumerate(self._students)}
        current: Partition = tuple(tuple(index[sid] for sid in group) for group in groups)

        self._cancel = cancel
        self._deadline = (
            self._clock() + self.time_limit_seconds
            if self.time_limit_seconds is not None else None
        )

        best = self._score(current)
        history = [best]
        initial = best
        iterations = 0

        pool = (
            ThreadPoolExecutor(max_workers=self.max_workers)
            if self.max_workers > 1 else None
        )
        try:
            while True:
                if self._should_stop():
                    status = OptimizerStatus.CANCELLED
                    break
                if iterations >= self.max_iterations:
                    status = OptimizerStatus.ITERATION_LIMIT
                    break
                found, aborted = self._first_improvement(current, best, pool)
                if aborted:
                    status = OptimizerStatus.CANCELLED
                    break
                if found is None:
                    status = OptimizerStatus.CONVERGED
                    break
                current, best = found
                history.append(best)
                iterations += 1
                logger.debug(f"  Move #{iterations} | score: {best:.3f}")
        finally:
            if pool is not None:
                pool.shutdown(wait=True)

        logger.info(
            f"Local search {status.value} after {iterations} move(s): "
            f"{initial:.2f} → {best:.2f}"
        )
        return OptimizationOutcome(
            groups=self._to_ids(current),
            status=status,
            iterations=iterations,
            initial_score=initial,
            final_score=best,
            score_history=history,
        )

    # ─── Internals ────────────────────────────────────────────────────────────

    def _to_ids(self, partition: Partition) -> list[list[str]]:
        return [[self._students[i] for i in group] for group in partition]

    def _score(self, partition: Partition) -> float:
        return self.scorer.score_partition(self._to_ids(partition))

    def _should_stop(self) -> bool:
        if self._cancel is not None and self._cancel.is_set():
            return True
        return self._deadline is not None and self._clock() >= self._deadline

    def _first_improvement(
        self,
        current: Partition,
        best: float,
        pool: Optional[ThreadPoolExecutor],
    ) -> tuple[Optional[tuple[Partition, float]], bool]:
        """First variation beating ``best`` in discovery order.

        Returns ``(found, aborted)``; ``found`` is None at a local optimum.
        Variations are scored in ordered chunks, so the parallel and the
        sequential scan adopt the same move.
        """
        moves = candidate_moves(current, self.criteria)
        while True:
            if self._should_stop():
                return None, True
            chunk = list(islice(moves, self.chunk_size))
            if not chunk:
                return None, False
            if pool is not None:
                scores = list(pool.map(self._score, chunk))
            else:
                scores = map(self._score, chunk)
            for variation, score in zip(chunk, scores):
                if score > best + IMPROVEMENT_EPSILON:
                    return (variation, score), False
