"""Assembles the per-student state of a composition run."""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from data.providers import CurriculumProvider, DataUnavailableError
from models.content import CourseType
from models.student import StudentState

logger = logging.getLogger(__name__)


def _matches_course_type(record_type: Optional[CourseType], course_type: CourseType) -> bool:
    # Records without a course type belong to every course type
    return record_type is None or record_type == course_type


class StudentDataGatherer:
    """Fetches progress, unlearned content and analytics for a list of students.

    Students whose provider calls fail get an empty state
    (``data_available=False``); the batch is never aborted.
    """

    def __init__(self, provider: CurriculumProvider, max_workers: int = 4) -> None:
        self.provider = provider
        self.max_workers = max_workers

    def gather(
        self,
        student_ids: list[str],
        course_type: Optional[CourseType] = None,
    ) -> dict[str, StudentState]:
        """Returns ``{student_id: StudentState}`` in input order (duplicates removed)."""
        unique_ids = list(dict.fromkeys(student_ids))
        if self.max_workers <= 1 or len(unique_ids) <= 1:
            states = [self._fetch(sid, course_type) for sid in unique_ids]
        else:
            workers = min(self.max_workers, len(unique_ids))
            with ThreadPoolExecutor(max_workers=workers) as pool:
                states = list(pool.map(lambda sid: self._fetch(sid, course_type), unique_ids))

        result = {state.student_id: state for state in states}
        unavailable = [s.student_id for s in states if not s.data_available]
        logger.info(
            f"Gathered {len(result)} student(s)"
            + (f", {len(unavailable)} without data" if unavailable else "")
        )
        return result

    def _fetch(self, student_id: str, course_type: Optional[CourseType]) -> StudentState:
        try:
            progress = self.provider.get_progress(student_id)
            unlearned = self.provider.get_unlearned_content(student_id)
            analytics = self.provider.get_learning_analytics(student_id)
        except DataUnavailableError as e:
            logger.warning(f"{e} – continuing with an empty state")
            return StudentState.empty(student_id)

        if course_type is not None:
            progress = [p for p in progress if _matches_course_type(p.course_type, course_type)]
            unlearned = [u for u in unlearned if _matches_course_type(u.course_type, course_type)]

        return StudentState(
            student_id=student_id,
            progress=progress,
            unlearned=unlearned,
            analytics=analytics,
        )
