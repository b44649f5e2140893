from models.content import ContentItem, ContentGroup, ContentType, CourseType, UrgencyLevel
from models.student import (
    LearningAnalytics,
    LearningPace,
    LearningStyle,
    ProgressRecord,
    StudentState,
)
from models.composition import (
    ClassComposition,
    ClassSizeSuggestion,
    ClassType,
    CompositionResult,
    CompositionScore,
    OptimizerStatus,
    PairCompatibility,
    SchedulingPriority,
)
from models.dataset import StudentDataset, StudentRecord

__all__ = [
    "ContentItem",
    "ContentGroup",
    "ContentType",
    "CourseType",
    "UrgencyLevel",
    "LearningAnalytics",
    "LearningPace",
    "LearningStyle",
    "ProgressRecord",
    "StudentState",
    "ClassComposition",
    "ClassSizeSuggestion",
    "ClassType",
    "CompositionResult",
    "CompositionScore",
    "OptimizerStatus",
    "PairCompatibility",
    "SchedulingPriority",
    "StudentDataset",
    "StudentRecord",
]
