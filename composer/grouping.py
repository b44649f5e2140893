"""Initial partition of the student pool by up to three strategies."""

import logging
import math
from dataclasses import dataclass, field

from composer.matrix import CompatibilityMatrix
from config.schema import (
    CompositionCriteria,
    GroupingOptions,
    GroupingStrategy,
    OptimizeFor,
)
from models.student import StudentState

logger = logging.getLogger(__name__)


@dataclass
class CandidateGrouping:
    """Disjoint groups plus the students no group accepted."""

    groups: list[list[str]] = field(default_factory=list)
    unplaced: list[str] = field(default_factory=list)


class CandidateGroupingGenerator:
    """Builds the start partition for the local search.

    Strategies run in the order content → social → progress (``balanced``
    runs all three, otherwise only the one named by ``optimize_for``).
    A student is assigned by at most one strategy. Leftovers become
    individual classes or, if those are disallowed, are reported unplaced.
    """

    def __init__(self, criteria: CompositionCriteria, options: GroupingOptions) -> None:
        self.criteria = criteria
        self.options = options

    def generate(
        self,
        states: dict[str, StudentState],
        content_clusters: dict[str, list[str]],
        matrix: CompatibilityMatrix,
    ) -> CandidateGrouping:
        result = CandidateGrouping()
        used: set[str] = set()
        mode = self.options.optimize_for

        def take(groups: list[list[str]], label: str) -> None:
            for group in groups:
                result.groups.append(group)
                used.update(group)
            logger.info(f"{label} strategy: {len(groups)} group(s)")

        if mode in (OptimizeFor.CONTENT, OptimizeFor.BALANCED):
            take(self.content_groups(states, content_clusters, used), "Content")

        if mode in (OptimizeFor.SOCIAL, OptimizeFor.BALANCED):
            remaining = self._ordered([s for s in states if s not in used], states)
            take(self.social_groups(remaining, matrix), "Social")

        if mode in (OptimizeFor.PROGRESS, OptimizeFor.BALANCED):
            remaining = self._ordered([s for s in states if s not in used], states)
            take(self.progress_groups(remaining, states), "Progress")

        leftovers = self._ordered([s for s in states if s not in used], states)
        if self.options.allow_individual_classes:
            result.groups.extend([sid] for sid in leftovers)
        else:
            result.unplaced = leftovers
        if leftovers:
            logger.info(
                f"{len(leftovers)} student(s) left over → "
                + ("individual classes" if self.options.allow_individual_classes else "unplaced")
            )
        return result

    def _ordered(self, student_ids: list[str], states: dict[str, StudentState]) -> list[str]:
        """Struggling students first (stable) when prioritization is on."""
        if not self.options.prioritize_struggling_students:
            return student_ids
        return sorted(
            student_ids,
            key=lambda sid: not (sid in states and states[sid].is_struggling),
        )

    # ─── Strategies ───────────────────────────────────────────────────────────

    def content_groups(
        self,
        states: dict[str, StudentState],
        content_clusters: dict[str, list[str]],
        used: set[str],
    ) -> list[list[str]]:
        """One group per lesson cluster, up to max_students unused members."""
        groups = []
        taken: set[str] = set(used)
        for members in content_clusters.values():
            available = self._ordered([s for s in members if s not in taken], states)
            if len(available) < self.criteria.min_students:
                continue
            group = available[: self.criteria.max_students]
            groups.append(group)
            taken.update(group)
        return groups

    def social_groups(
        self, students: list[str], matrix: CompatibilityMatrix
    ) -> list[list[str]]:
        """Greedy groups around the most compatible seeds.

        Candidates join a seed when their pair score reaches the policy
        threshold (60); groups below min_students are discarded and their
        students stay available for later strategies.
        """
        threshold = self.options.compatibility.social_group_threshold
        totals = {
            sid: sum(matrix.score(sid, other) for other in students if other != sid)
            for sid in students
        }
        ranking = sorted(students, key=lambda sid: -totals[sid])

        groups = []
        seen: set[str] = set()
        for seed in ranking:
            if seed in seen:
                continue
            group = [seed]
            seen.add(seed)

            candidates = sorted(
                (sid for sid in students if sid not in seen),
                key=lambda sid: -matrix.score(seed, sid),
            )
            for candidate in candidates:
                if len(group) >= self.criteria.max_students:
                    break
                if matrix.score(seed, candidate) >= threshold:
                    group.append(candidate)
                    seen.add(candidate)

            if len(group) >= self.criteria.min_students:
                groups.append(group)
        return groups

    def progress_groups(
        self, students: list[str], states: dict[str, StudentState]
    ) -> list[list[str]]:
        """Buckets of similar progress band and pace (pace only if heterogeneous)."""
        width = self.options.compatibility.progress_band_width
        buckets: dict[tuple, list[str]] = {}
        for sid in students:
            state = states.get(sid)
            if state is None or state.average_progress is None:
                continue
            if self.options.strategy == GroupingStrategy.HETEROGENEOUS:
                key: tuple = (state.pace,)
            else:
                key = (math.floor(state.average_progress / width), state.pace)
            buckets.setdefault(key, []).append(sid)

        return [
            members[: self.criteria.max_students]
            for members in buckets.values()
            if len(members) >= self.criteria.min_students
        ]
