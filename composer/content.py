"""Content-based clustering and shared-content helpers."""

import logging
from collections import defaultdict

from models.content import ContentItem
from models.student import StudentState

logger = logging.getLogger(__name__)


def shared_content(
    state_a: StudentState, state_b: StudentState, tolerance: int = 1
) -> list[ContentItem]:
    """Items of A that B also needs: same unit, lessons at most ``tolerance`` apart.

    Deduplicated by content key, in A's order.
    """
    items_b = state_b.content_items
    shared: dict[str, ContentItem] = {}
    for item in state_a.content_items:
        if item.content_key in shared:
            continue
        if any(item.matches(other, tolerance) for other in items_b):
            shared[item.content_key] = item
    return list(shared.values())


def group_focus_content(
    members: list[StudentState], tolerance: int = 1, limit: int = 3
) -> list[ContentItem]:
    """Focus content of a group: the ``limit`` most broadly shared items.

    Only items every member needs (within the lesson tolerance) qualify.
    They are ranked by how many members need exactly that lesson, then by
    unit and lesson, so the result does not depend on member order.
    """
    if not members:
        return []

    candidates: dict[str, ContentItem] = {}
    for state in members:
        for item in state.content_items:
            candidates.setdefault(item.content_key, item)

    shared = [
        item for item in candidates.values()
        if all(state.needs(item, tolerance) for state in members)
    ]
    breadth = {
        item.content_key: sum(1 for state in members if state.needs_exactly(item))
        for item in shared
    }
    shared.sort(key=lambda i: (-breadth[i.content_key], i.unit_number, i.lesson_number))
    return shared[:limit]


class ContentCompatibilityAnalyzer:
    """Clusters students by lessons they still need ("unit-lesson" keys)."""

    def __init__(self, min_students: int) -> None:
        self.min_students = min_students

    def analyze(self, states: dict[str, StudentState]) -> dict[str, list[str]]:
        """Content key → distinct student ids, keys below ``min_students`` dropped.

        Clusters may overlap; deduplication happens in the grouping generator.
        """
        clusters: dict[str, list[str]] = defaultdict(list)
        for student_id, state in states.items():
            for item in state.content_items:
                members = clusters[item.content_key]
                if student_id not in members:
                    members.append(student_id)

        result = {
            key: members for key, members in clusters.items()
            if len(members) >= self.min_students
        }
        logger.info(
            f"Content analysis: {len(clusters)} lesson key(s), "
            f"{len(result)} with >= {self.min_students} student(s)"
        )
        return result
