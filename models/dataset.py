"""StudentDataset: student records and booking history as one JSON document."""

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from models.content import ContentGroup
from models.student import LearningAnalytics, ProgressRecord


class StudentRecord(BaseModel):
    """Stored data of one student as the curriculum provider delivers it."""

    student_id: str
    name: str = ""
    progress: list[ProgressRecord] = []
    unlearned: list[ContentGroup] = []
    analytics: LearningAnalytics = Field(default_factory=LearningAnalytics)


class StudentDataset(BaseModel):
    """Student records plus booking history (student id → booked class ids)."""

    students: list[StudentRecord]
    bookings: dict[str, list[str]] = {}
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None
    data_version: str = "1.0"

    @property
    def student_ids(self) -> list[str]:
        return [s.student_id for s in self.students]

    def get(self, student_id: str) -> Optional[StudentRecord]:
        return next((s for s in self.students if s.student_id == student_id), None)

    def summary(self) -> str:
        """Short overview of the dataset."""
        n_items = sum(
            len(g.content_items) for s in self.students for g in s.unlearned
        )
        keys = {
            item.content_key
            for s in self.students for g in s.unlearned for item in g.content_items
        }
        n_classes = len({c for classes in self.bookings.values() for c in classes})
        lines = [
            f"Students: {len(self.students)}",
            f"Unlearned items: {n_items} ({len(keys)} distinct lessons)",
            f"Booked classes in history: {n_classes}",
        ]
        return "\n".join(lines)

    # ─── Persistence ───────────────────────────────────────────────────────

    def save_json(self, path: Path) -> None:
        """Writes the dataset as a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        now = datetime.now(timezone.utc)
        updated = self.model_copy(update={
            "modified_at": now,
            "created_at": self.created_at or now,
        })
        with open(path, "w", encoding="utf-8") as f:
            f.write(updated.model_dump_json(indent=2))

    @classmethod
    def load_json(cls, path: Path) -> "StudentDataset":
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Dataset file not found: {path}")
        with open(path, "r", encoding="utf-8") as f:
            return cls.model_validate_json(f.read())
