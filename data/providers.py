"""Collaborator contracts of the composition engine.

The engine reads student data through two providers:

  - CurriculumProvider      progress, unlearned content, learning analytics
  - BookingHistoryProvider  number of classes two students booked together

Dataset* implementations serve a StudentDataset from memory; the Retrying*
wrappers add bounded retries at the collaborator boundary so the engine
itself never retries.
"""

import logging
import time
from typing import Callable, Optional, Protocol, TypeVar

from models.content import ContentGroup
from models.dataset import StudentDataset
from models.student import LearningAnalytics, ProgressRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DataUnavailableError(Exception):
    """A provider could not deliver data for a student."""

    def __init__(self, student_id: str, reason: str = "") -> None:
        self.student_id = student_id
        self.reason = reason
        super().__init__(
            f"Data unavailable for student {student_id}" + (f": {reason}" if reason else "")
        )


# ─── Contracts ────────────────────────────────────────────────────────────────

class CurriculumProvider(Protocol):
    def get_progress(self, student_id: str) -> list[ProgressRecord]: ...

    def get_unlearned_content(self, student_id: str) -> list[ContentGroup]: ...

    def get_learning_analytics(self, student_id: str) -> LearningAnalytics: ...


class BookingHistoryProvider(Protocol):
    def get_shared_class_count(self, student_a: str, student_b: str) -> int: ...


# ─── Retry ────────────────────────────────────────────────────────────────────

def with_retry(
    fn: Callable[[], T],
    attempts: int = 3,
    delay: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
    description: str = "provider call",
    give_up_on: tuple[type[Exception], ...] = (),
) -> T:
    """Calls ``fn`` up to ``attempts`` times with linear backoff.

    Attempt n waits n × delay seconds before attempt n+1. The last
    exception is re-raised when every attempt failed; exceptions in
    ``give_up_on`` are re-raised immediately.
    """
    last_error: Optional[Exception] = None
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except give_up_on:
            raise
        except Exception as e:
            last_error = e
            if attempt < attempts:
                logger.warning(
                    f"{description} failed (attempt {attempt}/{attempts}): {e}"
                )
                sleep(delay * attempt)
    assert last_error is not None
    raise last_error


class RetryingCurriculumProvider:
    """Wraps a CurriculumProvider; exhausted retries raise DataUnavailableError."""

    def __init__(
        self,
        inner: CurriculumProvider,
        attempts: int = 3,
        delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.inner = inner
        self.attempts = attempts
        self.delay = delay
        self._sleep = sleep

    def _call(self, student_id: str, name: str, fn: Callable[[], T]) -> T:
        try:
            return with_retry(
                fn, self.attempts, self.delay, self._sleep,
                description=f"{name}({student_id})",
                give_up_on=(DataUnavailableError,),
            )
        except DataUnavailableError:
            raise
        except Exception as e:
            raise DataUnavailableError(student_id, f"{name}: {e}") from e

    def get_progress(self, student_id: str) -> list[ProgressRecord]:
        return self._call(student_id, "get_progress",
                          lambda: self.inner.get_progress(student_id))

    def get_unlearned_content(self, student_id: str) -> list[ContentGroup]:
        return self._call(student_id, "get_unlearned_content",
                          lambda: self.inner.get_unlearned_content(student_id))

    def get_learning_analytics(self, student_id: str) -> LearningAnalytics:
        return self._call(student_id, "get_learning_analytics",
                          lambda: self.inner.get_learning_analytics(student_id))


class RetryingBookingHistory:
    """Wraps a BookingHistoryProvider with bounded retries."""

    def __init__(
        self,
        inner: BookingHistoryProvider,
        attempts: int = 3,
        delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.inner = inner
        self.attempts = attempts
        self.delay = delay
        self._sleep = sleep

    def get_shared_class_count(self, student_a: str, student_b: str) -> int:
        try:
            return with_retry(
                lambda: self.inner.get_shared_class_count(student_a, student_b),
                self.attempts, self.delay, self._sleep,
                description=f"get_shared_class_count({student_a}, {student_b})",
                give_up_on=(DataUnavailableError,),
            )
        except DataUnavailableError:
            raise
        except Exception as e:
            raise DataUnavailableError(student_a, f"booking history: {e}") from e


# ─── In-memory providers ──────────────────────────────────────────────────────

class DatasetCurriculumProvider:
    """Serves progress, unlearned content and analytics from a StudentDataset."""

    def __init__(self, dataset: StudentDataset) -> None:
        self._records = {s.student_id: s for s in dataset.students}

    def _record(self, student_id: str):
        record = self._records.get(student_id)
        if record is None:
            raise DataUnavailableError(student_id, "unknown student")
        return record

    def get_progress(self, student_id: str) -> list[ProgressRecord]:
        return list(self._record(student_id).progress)

    def get_unlearned_content(self, student_id: str) -> list[ContentGroup]:
        return list(self._record(student_id).unlearned)

    def get_learning_analytics(self, student_id: str) -> LearningAnalytics:
        return self._record(student_id).analytics


class DatasetBookingHistory:
    """Counts distinct classes both students booked, from the dataset history."""

    def __init__(self, dataset: StudentDataset) -> None:
        self._bookings = {sid: set(classes) for sid, classes in dataset.bookings.items()}

    def get_shared_class_count(self, student_a: str, student_b: str) -> int:
        return len(
            self._bookings.get(student_a, set()) & self._bookings.get(student_b, set())
        )


class NoBookingHistory:
    """Booking history without any entries (social history is always 0)."""

    def get_shared_class_count(self, student_a: str, student_b: str) -> int:
        return 0
