"""Quality report for finished class compositions.

Scores each composition, aggregates them and summarizes the size
distribution of the partition.
"""

from collections import Counter

from pydantic import BaseModel

from composer.scoring import CompositionScorer
from models.composition import ClassType, CompositionResult
from models.student import StudentState


# ─── Metric models ────────────────────────────────────────────────────────────

class GroupQualityMetrics(BaseModel):
    """Quality metrics of a single composition."""

    composition_id: str
    size: int
    class_type: ClassType
    focus: list[str]               # content keys "unit-lesson"
    total_score: float
    content_alignment: float
    difficulty_balance: float
    progress_compatibility: float
    social_compatibility: float
    size_optimization: float
    progress_gap: float            # percentage points, 0 without data


class CompositionQualityReport(BaseModel):
    """Full quality report of a CompositionResult."""

    group_metrics: list[GroupQualityMetrics]
    mean_total_score: float        # size-weighted
    min_total_score: float
    size_histogram: dict[int, int]  # group size → number of compositions
    individual_share: float        # 0.0–1.0 of placed students
    placed_students: int
    unplaced_students: int
    optimizer_status: str
    iterations: int


# ─── Analyzer ─────────────────────────────────────────────────────────────────

class QualityAnalyzer:
    """Computes quality metrics of a finished CompositionResult."""

    def __init__(self, scorer: CompositionScorer) -> None:
        self.scorer = scorer

    @property
    def states(self) -> dict[str, StudentState]:
        return self.scorer.states

    def analyze(self, result: CompositionResult) -> CompositionQualityReport:
        """Main method: computes all metrics and returns a report."""
        metrics = [self._group_metrics(comp) for comp in result.compositions]

        placed = sum(m.size for m in metrics)
        weighted = sum(m.total_score * m.size for m in metrics)
        individual = sum(m.size for m in metrics if m.class_type == ClassType.INDIVIDUAL)

        return CompositionQualityReport(
            group_metrics=metrics,
            mean_total_score=round(weighted / placed, 2) if placed else 0.0,
            min_total_score=round(min((m.total_score for m in metrics), default=0.0), 2),
            size_histogram=dict(sorted(Counter(m.size for m in metrics).items())),
            individual_share=round(individual / placed, 4) if placed else 0.0,
            placed_students=placed,
            unplaced_students=len(result.unplaced_students),
            optimizer_status=result.optimizer_status.value,
            iterations=result.iterations,
        )

    def print_rich(self, report: CompositionQualityReport) -> None:
        """Prints the quality report via Rich."""
        from rich.console import Console
        from rich.panel import Panel
        from rich.table import Table
        from rich import box

        console = Console()

        mean_color = _score_color(report.mean_total_score)
        individual_color = (
            "green" if report.individual_share <= 0.1
            else "yellow" if report.individual_share <= 0.3
            else "red"
        )
        histogram = ", ".join(
            f"{size}×{count}" for size, count in report.size_histogram.items()
        ) or "–"
        console.print(Panel(
            f"Status: [bold]{report.optimizer_status}[/bold] | "
            f"Iterations: {report.iterations}\n"
            f"Ø Score (size-weighted): "
            f"[{mean_color}]{report.mean_total_score:.1f}[/{mean_color}] | "
            f"Min: {report.min_total_score:.1f}\n"
            f"Placed: [bold]{report.placed_students}[/bold] | "
            f"Unplaced: [bold]{report.unplaced_students}[/bold] | "
            f"Individual share: "
            f"[{individual_color}]{report.individual_share:.1%}[/{individual_color}]\n"
            f"Group sizes: {histogram}",
            title="Quality report – overview",
            border_style="cyan",
        ))

        table = Table(title="Compositions", box=box.ROUNDED, show_lines=False)
        table.add_column("ID", style="dim")
        table.add_column("Size", justify="right", width=5)
        table.add_column("Focus")
        table.add_column("Total", justify="right", width=6)
        table.add_column("Cont.", justify="right", width=6)
        table.add_column("Diff.", justify="right", width=6)
        table.add_column("Prog.", justify="right", width=6)
        table.add_column("Soc.", justify="right", width=6)
        table.add_column("Size", justify="right", width=6)
        table.add_column("Gap", justify="right", width=6)

        for m in sorted(report.group_metrics, key=lambda x: -x.total_score):
            color = _score_color(m.total_score)
            table.add_row(
                m.composition_id, str(m.size),
                ", ".join(m.focus) or "–",
                f"[{color}]{m.total_score:.1f}[/{color}]",
                f"{m.content_alignment:.0f}",
                f"{m.difficulty_balance:.0f}",
                f"{m.progress_compatibility:.0f}",
                f"{m.social_compatibility:.0f}",
                f"{m.size_optimization:.0f}",
                f"{m.progress_gap:.1f}",
            )
        console.print(table)

    # ── Private ──────────────────────────────────────────────────────────────

    def _group_metrics(self, comp) -> GroupQualityMetrics:
        score = self.scorer.evaluate(comp)
        levels = [
            self.states[sid].average_progress
            for sid in comp.student_ids
            if sid in self.states and self.states[sid].average_progress is not None
        ]
        return GroupQualityMetrics(
            composition_id=comp.id,
            size=comp.size,
            class_type=comp.class_type,
            focus=[item.content_key for item in comp.content_focus],
            total_score=round(score.total_score, 2),
            content_alignment=round(score.content_alignment, 2),
            difficulty_balance=round(score.difficulty_balance, 2),
            progress_compatibility=round(score.progress_compatibility, 2),
            social_compatibility=round(score.social_compatibility, 2),
            size_optimization=round(score.size_optimization, 2),
            progress_gap=round(max(levels) - min(levels), 2) if levels else 0.0,
        )


def _score_color(score: float) -> str:
    return "green" if score >= 70 else "yellow" if score >= 50 else "red"
