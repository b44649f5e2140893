"""Result models of the composition engine (Pydantic v2)."""

from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from models.content import ContentItem


class ClassType(str, Enum):
    INDIVIDUAL = "individual"
    GROUP = "group"


class SchedulingPriority(str, Enum):
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class OptimizerStatus(str, Enum):
    CONVERGED = "converged"              # no improving move left
    ITERATION_LIMIT = "iteration_limit"  # max_iterations reached while still improving
    CANCELLED = "cancelled"              # cancel token or time limit


# ─── Pair compatibility ───────────────────────────────────────────────────────

class PairCompatibility(BaseModel):
    """How well two students fit into the same class (symmetric)."""

    student_a: str
    student_b: str
    compatibility_score: float = Field(ge=0.0, le=100.0)
    shared_content: list[ContentItem] = []
    learning_style_match: float = Field(ge=0.0, le=1.0)
    pace_compatibility: float = Field(ge=0.0, le=1.0)
    social_history: float = Field(ge=0.0, le=1.0)

    @property
    def pair(self) -> frozenset[str]:
        return frozenset((self.student_a, self.student_b))

    def partner_of(self, student_id: str) -> str:
        """The other student of the pair."""
        if student_id == self.student_a:
            return self.student_b
        if student_id == self.student_b:
            return self.student_a
        raise KeyError(f"{student_id} is not part of pair {self.student_a}/{self.student_b}")


# ─── Scores ───────────────────────────────────────────────────────────────────

class CompositionScore(BaseModel):
    """Weighted score of a single composition, every value in 0–100."""

    total_score: float = Field(ge=0.0, le=100.0)
    content_alignment: float = Field(ge=0.0, le=100.0)
    difficulty_balance: float = Field(ge=0.0, le=100.0)
    progress_compatibility: float = Field(ge=0.0, le=100.0)
    social_compatibility: float = Field(ge=0.0, le=100.0)
    size_optimization: float = Field(ge=0.0, le=100.0)


# ─── Compositions ─────────────────────────────────────────────────────────────

class ClassComposition(BaseModel):
    """A finalized student grouping with its scheduling attributes."""

    id: str
    student_ids: list[str] = Field(min_length=1)
    content_focus: list[ContentItem] = Field(default=[], max_length=3)
    class_type: ClassType
    difficulty_level: int = Field(5, ge=1, le=10)
    teacher_requirements: list[str] = []
    scheduling_priority: SchedulingPriority = SchedulingPriority.MEDIUM
    optimal_class_size: int = Field(ge=1)
    learning_objectives: list[str] = []
    recommended_duration: int = Field(60, ge=45, le=120)  # minutes
    prerequisite_check: bool = True

    @property
    def size(self) -> int:
        return len(self.student_ids)


class ClassSizeSuggestion(BaseModel):
    """Recommended class size for a set of students and content."""

    recommended_size: int
    min_effective_size: int
    max_effective_size: int
    reasoning: list[str] = []


class CompositionResult(BaseModel):
    """Output of one composition run."""

    compositions: list[ClassComposition]
    unplaced_students: list[str] = []     # individual classes disallowed, no group found
    unavailable_students: list[str] = []  # provider failed, neutral state used
    optimizer_status: OptimizerStatus
    iterations: int = 0
    initial_score: float = 0.0
    final_score: float = 0.0
    warnings: list[str] = []

    @property
    def placed_students(self) -> list[str]:
        return [sid for comp in self.compositions for sid in comp.student_ids]

    def get_composition_for(self, student_id: str) -> Optional[ClassComposition]:
        """Composition containing ``student_id``, None if unplaced."""
        return next(
            (c for c in self.compositions if student_id in c.student_ids), None
        )

    def print_rich(self) -> None:
        """Prints the compositions as a Rich table."""
        from rich.console import Console
        from rich.panel import Panel
        from rich.table import Table
        from rich import box

        console = Console()
        status_color = {
            OptimizerStatus.CONVERGED: "green",
            OptimizerStatus.ITERATION_LIMIT: "yellow",
            OptimizerStatus.CANCELLED: "yellow",
        }[self.optimizer_status]
        lines = [
            f"Status: [{status_color}]{self.optimizer_status.value}[/{status_color}] "
            f"after {self.iterations} iteration(s)",
            f"Score: {self.initial_score:.1f} → {self.final_score:.1f}",
            f"Compositions: {len(self.compositions)} | "
            f"placed: {len(self.placed_students)} | "
            f"unplaced: {len(self.unplaced_students)}",
        ]
        console.print(Panel("\n".join(lines), title="Class composition", border_style="cyan"))

        table = Table(box=box.ROUNDED, show_lines=True)
        table.add_column("ID", style="dim")
        table.add_column("Type")
        table.add_column("Students")
        table.add_column("Focus")
        table.add_column("Diff.", justify="right")
        table.add_column("Min.", justify="right")
        table.add_column("Priority")
        table.add_column("Teacher")
        for comp in self.compositions:
            focus = ", ".join(item.content_key for item in comp.content_focus) or "–"
            prio_color = {"urgent": "red", "high": "yellow"}.get(
                comp.scheduling_priority.value, "white"
            )
            table.add_row(
                comp.id,
                comp.class_type.value,
                ", ".join(comp.student_ids),
                focus,
                str(comp.difficulty_level),
                str(comp.recommended_duration),
                f"[{prio_color}]{comp.scheduling_priority.value}[/{prio_color}]",
                ", ".join(comp.teacher_requirements) or "–",
            )
        console.print(table)

        for w in self.warnings:
            console.print(f"[yellow]• {w}[/yellow]")

    # ─── Persistence ───────────────────────────────────────────────────────

    def save_json(self, path: Path) -> None:
        """Writes the result as a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(self.model_dump_json(indent=2))

    @classmethod
    def load_json(cls, path: Path) -> "CompositionResult":
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Result file not found: {path}")
        with open(path, "r", encoding="utf-8") as f:
            return cls.model_validate_json(f.read())
