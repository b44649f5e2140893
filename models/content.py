"""Curriculum content model: lessons and unlearned content groups (Pydantic v2)."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ContentType(str, Enum):
    SPEAKING = "speaking"
    LISTENING = "listening"
    READING = "reading"
    WRITING = "writing"
    GRAMMAR = "grammar"
    VOCABULARY = "vocabulary"


class UrgencyLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class CourseType(str, Enum):
    BASIC = "Basic"
    EVERYDAY_A = "Everyday A"
    EVERYDAY_B = "Everyday B"
    SPEAK_UP = "Speak Up"
    BUSINESS_ENGLISH = "Business English"
    ONE_ON_ONE = "1-on-1"


class ContentItem(BaseModel):
    """A single lesson of the curriculum.

    Reference data owned by the curriculum provider, therefore immutable.
    """

    model_config = ConfigDict(frozen=True)

    id: str                                        # "mat_3_2"
    title: str = ""
    unit_number: int = Field(ge=1)
    lesson_number: int = Field(ge=1)
    content_type: ContentType
    difficulty_level: int = Field(ge=1, le=10)
    estimated_duration_minutes: int = Field(30, gt=0)
    learning_objectives: tuple[str, ...] = ()

    @property
    def content_key(self) -> str:
        """Cluster key, e.g. "3-2" for unit 3, lesson 2."""
        return f"{self.unit_number}-{self.lesson_number}"

    def matches(self, other: "ContentItem", tolerance: int = 1) -> bool:
        """Same unit and lesson numbers at most ``tolerance`` apart."""
        return (
            self.unit_number == other.unit_number
            and abs(self.lesson_number - other.lesson_number) <= tolerance
        )


class ContentGroup(BaseModel):
    """Content a student still has to learn within one course."""

    course_id: str
    course_type: Optional[CourseType] = None
    content_items: list[ContentItem] = []
    urgency_level: UrgencyLevel = UrgencyLevel.MEDIUM
    priority_score: float = 0.0
