"""Class composition engine: gather → analyze + matrix → generate → optimize → build.

Usage:
    engine = ClassCompositionEngine.from_dataset(dataset, config)
    result = engine.generate_class_compositions(student_ids)
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional, Union

from pydantic import ValidationError

from composer.builder import ClassCompositionBuilder
from composer.cache import TTLCache
from composer.content import ContentCompatibilityAnalyzer
from composer.gatherer import StudentDataGatherer
from composer.grouping import CandidateGroupingGenerator
from composer.matrix import CompatibilityMatrixBuilder
from composer.optimizer import LocalSearchOptimizer
from composer.scoring import CompositionScorer
from config.defaults import SIZE_SUGGESTION
from config.schema import ComposerConfig, CompositionCriteria, GroupingOptions
from data.providers import (
    BookingHistoryProvider,
    CurriculumProvider,
    DataUnavailableError,
    DatasetBookingHistory,
    DatasetCurriculumProvider,
    NoBookingHistory,
    RetryingBookingHistory,
    RetryingCurriculumProvider,
)
from models.composition import (
    ClassComposition,
    ClassSizeSuggestion,
    CompositionResult,
    CompositionScore,
    PairCompatibility,
)
from models.content import ContentItem, ContentType, CourseType
from models.dataset import StudentDataset
from models.student import StudentState

logger = logging.getLogger(__name__)


class InvalidCriteriaError(ValueError):
    """Criteria or grouping options violate their bounds."""


def _merge(model_cls, base, overrides):
    """Validates ``overrides`` (model, dict of changed fields or None) on top of ``base``."""
    if overrides is None:
        return base
    if isinstance(overrides, model_cls):
        # model_copy(update=...) skips validation, so re-check
        overrides = overrides.model_dump()
    try:
        return model_cls.model_validate({**base.model_dump(), **dict(overrides)})
    except ValidationError as e:
        raise InvalidCriteriaError(f"Invalid {model_cls.__name__}: {e}") from e


class ClassCompositionEngine:
    """Facade over the composition stages.

    The engine holds no state between runs apart from the injected
    booking-history cache; every run builds fresh student states.
    """

    def __init__(
        self,
        curriculum: CurriculumProvider,
        history: Optional[BookingHistoryProvider] = None,
        config: Optional[ComposerConfig] = None,
        cache: Optional[TTLCache] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config or ComposerConfig()
        settings = self.config.engine
        self.curriculum = RetryingCurriculumProvider(
            curriculum, settings.retry_attempts, settings.retry_delay_seconds, sleep
        )
        self.history = RetryingBookingHistory(
            history or NoBookingHistory(),
            settings.retry_attempts, settings.retry_delay_seconds, sleep,
        )
        self.cache = cache if cache is not None else TTLCache(settings.cache_ttl_seconds)

    @classmethod
    def from_dataset(
        cls, dataset: StudentDataset, config: Optional[ComposerConfig] = None, **kwargs: Any
    ) -> "ClassCompositionEngine":
        return cls(
            DatasetCurriculumProvider(dataset),
            DatasetBookingHistory(dataset),
            config=config,
            **kwargs,
        )

    # ─── Settings ─────────────────────────────────────────────────────────────

    def resolve_settings(
        self,
        criteria: Union[CompositionCriteria, dict, None] = None,
        options: Union[GroupingOptions, dict, None] = None,
    ) -> tuple[CompositionCriteria, GroupingOptions]:
        """Config defaults overlaid with per-call overrides; raises InvalidCriteriaError."""
        return (
            _merge(CompositionCriteria, self.config.criteria, criteria),
            _merge(GroupingOptions, self.config.options, options),
        )

    def _gatherer(self) -> StudentDataGatherer:
        return StudentDataGatherer(self.curriculum, self.config.engine.max_workers)

    def _matrix_builder(self, options: GroupingOptions) -> CompatibilityMatrixBuilder:
        return CompatibilityMatrixBuilder(
            self.history,
            options.compatibility,
            cache=self.cache,
            max_workers=self.config.engine.max_workers,
        )

    def gather_states(
        self, student_ids: list[str], course_type: Optional[CourseType] = None
    ) -> dict[str, StudentState]:
        """Student states keyed by id; unavailable students get a neutral state."""
        return self._gatherer().gather(student_ids, course_type)

    def build_scorer(
        self,
        states: dict[str, StudentState],
        options: Optional[GroupingOptions] = None,
    ) -> CompositionScorer:
        """Scorer over a fresh compatibility matrix of ``states``."""
        options = options or self.config.options
        matrix = self._matrix_builder(options).build(states)
        return CompositionScorer(states, matrix, options.scoring, options.compatibility)

    # ─── Public API ───────────────────────────────────────────────────────────

    def generate_class_compositions(
        self,
        student_ids: list[str],
        course_type: Optional[CourseType] = None,
        criteria: Union[CompositionCriteria, dict, None] = None,
        options: Union[GroupingOptions, dict, None] = None,
        cancel: Optional[threading.Event] = None,
    ) -> CompositionResult:
        """Partitions the students into optimized class compositions."""
        criteria, options = self.resolve_settings(criteria, options)
        t0 = time.time()

        states = self.gather_states(student_ids, course_type)

        analyzer = ContentCompatibilityAnalyzer(criteria.min_students)
        matrix_builder = self._matrix_builder(options)
        if self.config.engine.max_workers > 1:
            with ThreadPoolExecutor(max_workers=2) as pool:
                clusters_future = pool.submit(analyzer.analyze, states)
                matrix_future = pool.submit(matrix_builder.build, states)
                clusters, matrix = clusters_future.result(), matrix_future.result()
        else:
            clusters = analyzer.analyze(states)
            matrix = matrix_builder.build(states)

        candidates = CandidateGroupingGenerator(criteria, options).generate(
            states, clusters, matrix
        )

        scorer = CompositionScorer(states, matrix, options.scoring, options.compatibility)
        optimizer = LocalSearchOptimizer(
            scorer,
            criteria,
            max_iterations=options.max_iterations,
            max_workers=self.config.engine.max_workers,
            time_limit_seconds=self.config.engine.time_limit_seconds,
        )
        outcome = optimizer.optimize(candidates.groups, cancel=cancel)

        compositions = ClassCompositionBuilder(options.compatibility).build(outcome.groups, states)

        warnings: list[str] = []
        unavailable = [sid for sid, s in states.items() if not s.data_available]
        if unavailable:
            warnings.append(
                f"No data for {len(unavailable)} student(s), neutral state used: "
                + ", ".join(unavailable)
            )
        if candidates.unplaced:
            msg = (
                f"{len(candidates.unplaced)} student(s) could not be placed "
                f"(individual classes disabled): " + ", ".join(candidates.unplaced)
            )
            logger.warning(msg)
            warnings.append(msg)

        threshold = options.min_confidence_threshold * 100
        for comp in compositions:
            score = scorer.evaluate(comp)
            if score.total_score < threshold:
                warnings.append(
                    f"Composition {comp.id} ({', '.join(comp.student_ids)}) scores "
                    f"{score.total_score:.1f} – below confidence threshold {threshold:.0f}"
                )

        logger.info(
            f"{len(compositions)} composition(s) for {len(states)} student(s) "
            f"in {time.time() - t0:.2f}s ({outcome.status.value})"
        )
        return CompositionResult(
            compositions=compositions,
            unplaced_students=candidates.unplaced,
            unavailable_students=unavailable,
            optimizer_status=outcome.status,
            iterations=outcome.iterations,
            initial_score=outcome.initial_score,
            final_score=outcome.final_score,
            warnings=warnings,
        )

    def evaluate_composition(
        self,
        composition: ClassComposition,
        student_states: Optional[dict[str, StudentState]] = None,
    ) -> CompositionScore:
        """Scores a composition; student data is gathered when not supplied."""
        if student_states is None:
            student_states = self.gather_states(composition.student_ids)
        members = {
            sid: student_states[sid] for sid in composition.student_ids if sid in student_states
        }
        return self.build_scorer(members).evaluate(composition)

    def find_compatible_students(
        self,
        target_id: str,
        candidate_ids: list[str],
        course_type: Optional[CourseType] = None,
        limit: int = 8,
    ) -> list[PairCompatibility]:
        """Best partners for ``target_id``, sorted by descending score."""
        candidates = [c for c in dict.fromkeys(candidate_ids) if c != target_id]
        states = self.gather_states([target_id, *candidates], course_type)
        target = states[target_id]
        if not target.data_available:
            raise DataUnavailableError(target_id, "target student not found")

        builder = self._matrix_builder(self.config.options)
        compatibilities = [
            builder.compatibility(target, states[cid])
            for cid in candidates
            if states[cid].data_available
        ]
        compatibilities.sort(key=lambda c: -c.compatibility_score)
        return compatibilities[:limit]

    def suggest_optimal_class_size(
        self,
        student_ids: list[str],
        content_items: list[ContentItem],
        course_type: Optional[CourseType] = None,
    ) -> ClassSizeSuggestion:
        """Class size recommendation from content difficulty and student needs."""
        states = self.gather_states(student_ids, course_type)
        cfg = SIZE_SUGGESTION
        recommended = cfg["recommended"]
        min_size = cfg["min"]
        max_size = cfg["max"]
        reasoning: list[str] = []

        if content_items:
            avg_difficulty = sum(i.difficulty_level for i in content_items) / len(content_items)
            if avg_difficulty > cfg["hard_difficulty"]:
                recommended = min(recommended, cfg["hard_recommended"])
                max_size = cfg["hard_max"]
                reasoning.append("High content difficulty favors smaller classes")
            elif avg_difficulty < cfg["easy_difficulty"]:
                recommended = max(recommended, cfg["easy_recommended"])
                max_size = cfg["easy_max"]
                reasoning.append("Lower content difficulty allows larger classes")

        if any(i.content_type == ContentType.SPEAKING for i in content_items):
            recommended = min(recommended, cfg["speaking_max_recommended"])
            reasoning.append("Speaking practice is more effective in smaller groups")

        if states:
            struggling = sum(1 for s in states.values() if s.is_struggling)
            if struggling / len(states) > cfg["struggling_ratio"]:
                recommended = min(recommended, cfg["struggling_recommended"])
                reasoning.append(
                    "High proportion of struggling students benefits from smaller classes"
                )

        paces = {s.pace for s in states.values() if s.pace is not None}
        if len(paces) > cfg["distinct_paces"]:
            recommended = min(recommended, cfg["mixed_pace_recommended"])
            reasoning.append("Mixed learning paces require smaller, more focused groups")

        return ClassSizeSuggestion(
            recommended_size=min(max(recommended, min_size), max_size),
            min_effective_size=min_size,
            max_effective_size=max_size,
            reasoning=reasoning,
        )
