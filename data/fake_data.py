"""Test data generator for the class composer.

Produces a realistic StudentDataset with deliberate difficulties:
  1. Clustered progress: most students sit in a few "waves" of the
     curriculum, so content clusters exist but overlap.
  2. Stragglers: a few students far ahead/behind share content with nobody
     and end up in individual classes (or unplaced).
  3. Mixed learning styles and paces, so social compatibility varies.
  4. Booking history: students of the same wave often booked the same
     classes before.
"""

import random
from typing import Optional

from config.defaults import CONTENT_DURATIONS, MATERIAL_CONTENT_TYPES, difficulty_for
from models.content import ContentGroup, ContentItem, CourseType, UrgencyLevel
from models.dataset import StudentDataset, StudentRecord
from models.student import LearningAnalytics, LearningPace, LearningStyle, ProgressRecord

# ─── Name lists ───────────────────────────────────────────────────────────────

_FIRST_NAMES = [
    "Anna", "Ben", "Chen", "Dana", "Elif", "Finn", "Grace", "Hiro", "Ines",
    "Jonas", "Kemal", "Lena", "Mila", "Noah", "Olga", "Pavel", "Quinn",
    "Rosa", "Sami", "Tara", "Umar", "Vera", "Wen", "Yusuf", "Zoe",
]

_LAST_NAMES = [
    "Fischer", "Kim", "Novak", "Okafor", "Petrov", "Rossi", "Schmidt",
    "Tanaka", "Weber", "Yilmaz", "Zhang", "Costa", "Larsen", "Moreau",
]

_TIME_SLOTS = [
    "mon_18:00", "tue_18:00", "wed_10:00", "wed_19:00", "thu_18:00",
    "fri_17:00", "sat_10:00", "sat_14:00",
]

_TOPICS = [
    "past tense", "prepositions", "phrasal verbs", "conditionals",
    "pronunciation", "articles", "reported speech", "listening speed",
]

# Weighted: most students learn at an average pace
_PACES = [(LearningPace.SLOW, 2), (LearningPace.AVERAGE, 5), (LearningPace.FAST, 2)]
_STYLES = [
    (LearningStyle.VISUAL, 3), (LearningStyle.AUDITORY, 3),
    (LearningStyle.KINESTHETIC, 1), (LearningStyle.READING_WRITING, 2),
    (LearningStyle.MIXED, 3),
]


class FakeStudentGenerator:
    """Generates a StudentDataset for one course."""

    UNITS = 6
    LESSONS_PER_UNIT = 4

    def __init__(
        self,
        num_students: int = 24,
        seed: Optional[int] = None,
        course_type: CourseType = CourseType.EVERYDAY_A,
        num_waves: int = 3,
        num_stragglers: int = 2,
    ) -> None:
        self.num_students = num_students
        self.rng = random.Random(seed)
        self.course_type = course_type
        self.num_waves = num_waves
        self.num_stragglers = min(num_stragglers, num_students)
        self.course_id = f"course_{course_type.value.lower().replace(' ', '_')}"
        self._curriculum = self._generate_curriculum()

    # ─── Curriculum ───────────────────────────────────────────────────────────

    def _generate_curriculum(self) -> list[ContentItem]:
        materials = list(MATERIAL_CONTENT_TYPES)
        items = []
        for unit in range(1, self.UNITS + 1):
            for lesson in range(1, self.LESSONS_PER_UNIT + 1):
                content_type = MATERIAL_CONTENT_TYPES[self.rng.choice(materials)]
                items.append(ContentItem(
                    id=f"mat_{unit}_{lesson}",
                    title=f"Unit {unit} – Lesson {lesson}",
                    unit_number=unit,
                    lesson_number=lesson,
                    content_type=content_type,
                    difficulty_level=difficulty_for(unit, lesson),
                    estimated_duration_minutes=CONTENT_DURATIONS[content_type],
                    learning_objectives=(
                        f"Unit {unit}.{lesson}: {self.rng.choice(_TOPICS)}",
                    ),
                ))
        return items

    @property
    def curriculum(self) -> list[ContentItem]:
        return list(self._curriculum)

    # ─── Students ─────────────────────────────────────────────────────────────

    def _weighted(self, choices):
        values, weights = zip(*choices)
        return self.rng.choices(values, weights=weights, k=1)[0]

    def _position(self, index: int) -> int:
        """Curriculum index of the student's next lesson."""
        total = len(self._curriculum)
        if index < self.num_stragglers:
            # first or last lessons only
            return self.rng.choice([0, total - 2])
        wave = index % self.num_waves
        centre = (wave + 1) * total // (self.num_waves + 1)
        return max(0, min(total - 2, centre + self.rng.randint(-1, 1)))

    def _make_student(self, index: int) -> tuple[StudentRecord, int]:
        sid = f"stu_{index + 1:03d}"
        position = self._position(index)
        remaining = self._curriculum[position:position + self.rng.randint(2, 5)]
        progress_pct = round(position / len(self._curriculum) * 100, 1)

        pace = self._weighted(_PACES)
        struggling = self.rng.sample(_TOPICS, self.rng.choice([0, 0, 1, 2, 3, 4]))
        urgency = (
            UrgencyLevel.URGENT if len(struggling) > 3
            else UrgencyLevel.HIGH if pace == LearningPace.SLOW
            else UrgencyLevel.MEDIUM
        )
        best = self.rng.sample(_TIME_SLOTS, 2)
        worst = self.rng.sample([s for s in _TIME_SLOTS if s not in best], 1)

        record = StudentRecord(
            student_id=sid,
            name=f"{self.rng.choice(_FIRST_NAMES)} {self.rng.choice(_LAST_NAMES)}",
            progress=[ProgressRecord(
                course_id=self.course_id,
                course_type=self.course_type,
                progress_percentage=progress_pct,
                learning_pace=pace,
                struggling_topics=struggling,
            )],
            unlearned=[ContentGroup(
                course_id=self.course_id,
                course_type=self.course_type,
                content_items=remaining,
                urgency_level=urgency,
                priority_score=float(len(struggling) * 10),
            )],
            analytics=LearningAnalytics(
                preferred_learning_style=self._weighted(_STYLES),
                best_time_slots=best,
                worst_time_slots=worst,
            ),
        )
        return record, position

    def _generate_bookings(self, positions: dict[str, int]) -> dict[str, list[str]]:
        """Past classes: students near each other in the curriculum met before."""
        bookings: dict[str, list[str]] = {}
        for sid, position in positions.items():
            # one past class per lesson already behind the student (last 3)
            past = [f"class_{p:03d}" for p in range(max(0, position - 3), position)]
            bookings[sid] = [c for c in past if self.rng.random() < 0.6]
        return bookings

    def generate(self) -> StudentDataset:
        students = []
        positions: dict[str, int] = {}
        for index in range(self.num_students):
            record, position = self._make_student(index)
            students.append(record)
            positions[record.student_id] = position
        return StudentDataset(students=students, bookings=self._generate_bookings(positions))

    # ─── Output ───────────────────────────────────────────────────────────────

    def print_summary(self, dataset: StudentDataset) -> None:
        """Prints a Rich overview table of the generated data."""
        from rich.console import Console
        from rich.table import Table
        from rich import box

        console = Console()
        table = Table(title="Generated test data", box=box.ROUNDED)
        table.add_column("Category", style="bold cyan")
        table.add_column("Count", justify="right")
        table.add_column("Details")

        paces: dict[str, int] = {}
        for s in dataset.students:
            for p in s.progress[:1]:
                paces[p.learning_pace.value] = paces.get(p.learning_pace.value, 0) + 1
        table.add_row("Students", str(len(dataset.students)),
                      ", ".join(f"{k}: {v}" for k, v in sorted(paces.items())))
        table.add_row("Lessons", str(len(self._curriculum)),
                      f"{self.UNITS} units × {self.LESSONS_PER_UNIT} lessons")
        table.add_row("Past classes",
                      str(len({c for cs in dataset.bookings.values() for c in cs})), "")
        console.print(table)
