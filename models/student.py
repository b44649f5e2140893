"""Per-student state assembled for one composition run (Pydantic v2)."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from models.content import ContentGroup, ContentItem, CourseType, UrgencyLevel


class LearningPace(str, Enum):
    SLOW = "slow"
    AVERAGE = "average"
    FAST = "fast"


class LearningStyle(str, Enum):
    VISUAL = "visual"
    AUDITORY = "auditory"
    KINESTHETIC = "kinesthetic"
    READING_WRITING = "reading_writing"
    MIXED = "mixed"


# Students with more struggling topics than this count as struggling
STRUGGLING_TOPIC_LIMIT = 2


class ProgressRecord(BaseModel):
    """Progress of a student in one enrolled course."""

    course_id: str
    course_type: Optional[CourseType] = None
    progress_percentage: float = Field(0.0, ge=0.0, le=100.0)
    learning_pace: LearningPace = LearningPace.AVERAGE
    struggling_topics: list[str] = []


class LearningAnalytics(BaseModel):
    """Learning analytics of a student."""

    preferred_learning_style: LearningStyle = LearningStyle.MIXED
    best_time_slots: list[str] = []    # "mon_18:00"
    worst_time_slots: list[str] = []


class StudentState(BaseModel):
    """Everything the engine knows about one student during a run.

    An empty state (no progress, no unlearned content) contributes no
    constraints; ``data_available`` is False when the provider failed.
    """

    student_id: str
    progress: list[ProgressRecord] = []
    unlearned: list[ContentGroup] = []
    analytics: LearningAnalytics = Field(default_factory=LearningAnalytics)
    data_available: bool = True

    @classmethod
    def empty(cls, student_id: str) -> "StudentState":
        """Neutral state for a student whose data could not be fetched."""
        return cls(student_id=student_id, data_available=False)

    @property
    def content_items(self) -> list[ContentItem]:
        """All unlearned items across the content groups, in provider order."""
        return [item for group in self.unlearned for item in group.content_items]

    @property
    def average_progress(self) -> Optional[float]:
        if not self.progress:
            return None
        return sum(p.progress_percentage for p in self.progress) / len(self.progress)

    @property
    def pace(self) -> Optional[LearningPace]:
        """Pace of the first (primary) course, None without progress data."""
        return self.progress[0].learning_pace if self.progress else None

    @property
    def is_struggling(self) -> bool:
        return bool(self.progress) and (
            len(self.progress[0].struggling_topics) > STRUGGLING_TOPIC_LIMIT
        )

    def needs(self, item: ContentItem, tolerance: int = 1) -> bool:
        """True if any unlearned item matches ``item`` within the lesson tolerance."""
        return any(own.matches(item, tolerance) for own in self.content_items)

    def needs_exactly(self, item: ContentItem) -> bool:
        return any(own.content_key == item.content_key for own in self.content_items)

    def has_urgency(self, level: UrgencyLevel) -> bool:
        return any(group.urgency_level == level for group in self.unlearned)
