from config.schema import (
    ComposerConfig,
    CompositionCriteria,
    EngineSettings,
    GroupingOptions,
    GroupingStrategy,
    OptimizeFor,
)
from models.content import ContentType


def default_criteria() -> CompositionCriteria:
    """Academy defaults: groups of 2–9 students.

    Difficulty variance 3, progress gap 30 percentage points.
    """
    return CompositionCriteria(
        max_students=9,
        min_students=2,
        max_difficulty_variance=3.0,
        max_progress_gap=30.0,
        content_compatibility_threshold=0.7,
        peer_compatibility_weight=0.3,
    )


def default_options() -> GroupingOptions:
    """All three candidate strategies, 1:1 classes allowed, 100 search moves."""
    return GroupingOptions(
        strategy=GroupingStrategy.MIXED,
        optimize_for=OptimizeFor.BALANCED,
        allow_individual_classes=True,
        prioritize_struggling_students=True,
        max_iterations=100,
        min_confidence_threshold=0.6,
    )


def default_config() -> ComposerConfig:
    return ComposerConfig(
        criteria=default_criteria(),
        options=default_options(),
        engine=EngineSettings(),
    )


# ─── Curriculum metadata ──────────────────────────────────────────────────────

# Material type of the content library → content type of the lesson
MATERIAL_CONTENT_TYPES: dict[str, ContentType] = {
    "PDF": ContentType.READING,
    "Audio": ContentType.LISTENING,
    "Video": ContentType.LISTENING,
    "Book": ContentType.READING,
    "Other": ContentType.SPEAKING,
}

# Estimated lesson duration per content type (minutes)
CONTENT_DURATIONS: dict[ContentType, int] = {
    ContentType.SPEAKING: 30,
    ContentType.LISTENING: 25,
    ContentType.READING: 30,
    ContentType.WRITING: 40,
    ContentType.GRAMMAR: 30,
    ContentType.VOCABULARY: 20,
}


def difficulty_for(unit_number: int, lesson_number: int) -> int:
    """Difficulty grows with unit and lesson, clamped to 1–10."""
    return max(1, min(10, int(unit_number * 1.5 + lesson_number * 0.3)))


# ─── Class size suggestion ────────────────────────────────────────────────────

SIZE_SUGGESTION = {
    "recommended": 4,
    "min": 2,
    "max": 6,
    # avg difficulty above → small classes
    "hard_difficulty": 8,
    "hard_recommended": 3,
    "hard_max": 4,
    # avg difficulty below → large classes
    "easy_difficulty": 4,
    "easy_recommended": 6,
    "easy_max": 9,
    "speaking_max_recommended": 5,
    # share of struggling students above → small classes
    "struggling_ratio": 0.5,
    "struggling_recommended": 3,
    # more distinct paces than this → focused groups
    "distinct_paces": 2,
    "mixed_pace_recommended": 4,
}
