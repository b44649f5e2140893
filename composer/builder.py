"""Turns the optimized partition into ClassComposition records."""

import math
import uuid
from typing import Optional

from composer.content import group_focus_content
from config.schema import CompatibilityPolicy
from models.composition import ClassComposition, ClassType, SchedulingPriority
from models.content import ContentItem, ContentType, UrgencyLevel
from models.student import StudentState

# Duration bounds of a class (minutes)
MIN_DURATION = 45
MAX_DURATION = 120
# Students per "unit" of base duration; larger groups take proportionally longer
STUDENTS_PER_DURATION_UNIT = 4


def _round_half_up(value: float) -> int:
    """Rounds .5 upwards (round() would round to the even neighbour)."""
    return int(math.floor(value + 0.5))


def difficulty_level(focus: list[ContentItem]) -> int:
    """Rounded mean difficulty of the focus content, 5 without focus."""
    if not focus:
        return 5
    return _round_half_up(sum(item.difficulty_level for item in focus) / len(focus))


def teacher_requirements(focus: list[ContentItem]) -> list[str]:
    requirements: list[str] = []
    max_difficulty = max((item.difficulty_level for item in focus), default=0)
    if max_difficulty > 8:
        requirements.append("advanced_certification")
    elif max_difficulty > 6:
        requirements.append("intermediate_certification")

    content_types = {item.content_type for item in focus}
    if ContentType.SPEAKING in content_types:
        requirements.append("speaking_specialist")
    if ContentType.WRITING in content_types:
        requirements.append("writing_specialist")
    return requirements


def scheduling_priority(members: list[StudentState]) -> SchedulingPriority:
    """urgent > high > medium over all unlearned content groups of the members."""
    if any(m.has_urgency(UrgencyLevel.URGENT) for m in members):
        return SchedulingPriority.URGENT
    if any(m.has_urgency(UrgencyLevel.HIGH) for m in members):
        return SchedulingPriority.HIGH
    return SchedulingPriority.MEDIUM


def recommended_duration(group_size: int, focus: list[ContentItem]) -> int:
    base = sum(item.estimated_duration_minutes for item in focus)
    factor = max(1.0, group_size / STUDENTS_PER_DURATION_UNIT)
    return min(MAX_DURATION, max(MIN_DURATION, _round_half_up(base * factor)))


class ClassCompositionBuilder:
    """Derives the scheduling attributes of each final group."""

    def __init__(self, policy: Optional[CompatibilityPolicy] = None) -> None:
        self.policy = policy or CompatibilityPolicy()

    def build(
        self, groups: list[list[str]], states: dict[str, StudentState]
    ) -> list[ClassComposition]:
        return [self.build_one(group, states) for group in groups if group]

    def build_one(self, group: list[str], states: dict[str, StudentState]) -> ClassComposition:
        members = [states[sid] for sid in group if sid in states]
        focus = (
            group_focus_content(members, self.policy.lesson_tolerance, self.policy.max_focus_items)
            if len(members) == len(group) else []
        )
        return ClassComposition(
            id=f"comp_{uuid.uuid4().hex[:12]}",
            student_ids=list(group),
            content_focus=focus,
            class_type=ClassType.INDIVIDUAL if len(group) == 1 else ClassType.GROUP,
            difficulty_level=difficulty_level(focus),
            teacher_requirements=teacher_requirements(focus),
            scheduling_priority=scheduling_priority(members),
            optimal_class_size=len(group),
            learning_objectives=[obj for item in focus for obj in item.learning_objectives],
            recommended_duration=recommended_duration(len(group), focus),
        )
