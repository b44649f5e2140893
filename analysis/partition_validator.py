"""Post-run validation of composition results.

Checks the final partition independently of the optimizer: every
requested student exactly once, size bounds kept, plus soft quality
thresholds of the criteria.
"""

from collections import Counter
from typing import Literal, Optional

from pydantic import BaseModel

from composer.scoring import CompositionScorer, _variance
from config.schema import CompositionCriteria, GroupingOptions
from models.composition import ClassType, CompositionResult
from models.student import StudentState


class ValidationViolation(BaseModel):
    """A single violation."""

    severity: Literal["error", "warning"]
    check: str           # e.g. "duplicate_student"
    description: str
    entity: str          # composition id / student id


class ValidationReport(BaseModel):
    """Outcome of the post-run validation."""

    violations: list[ValidationViolation]
    is_valid: bool       # True without errors (warnings ok)

    @property
    def errors(self) -> list[ValidationViolation]:
        return [v for v in self.violations if v.severity == "error"]

    @property
    def warnings(self) -> list[ValidationViolation]:
        return [v for v in self.violations if v.severity == "warning"]

    def print_rich(self) -> None:
        """Prints the report via Rich."""
        from rich.console import Console
        from rich.panel import Panel
        from rich.table import Table
        from rich import box

        console = Console()
        status = (
            "[bold green]✓ VALID[/bold green]"
            if self.is_valid
            else "[bold red]✗ VIOLATIONS FOUND[/bold red]"
        )
        lines = [status, f"Errors: {len(self.errors)} | Warnings: {len(self.warnings)}"]
        console.print(Panel("\n".join(lines), title="Composition validation", border_style="cyan"))

        if not self.violations:
            console.print("[dim]No violations found.[/dim]")
            return

        table = Table(box=box.ROUNDED, show_lines=True)
        table.add_column("Type", width=8)
        table.add_column("Check", width=24)
        table.add_column("Entity", width=18)
        table.add_column("Description")

        for v in self.violations:
            color = "red" if v.severity == "error" else "yellow"
            table.add_row(
                f"[{color}]{v.severity.upper()}[/{color}]",
                v.check,
                v.entity,
                v.description,
            )
        console.print(table)


class PartitionValidator:
    """Checks a CompositionResult against the run's criteria and options."""

    def __init__(
        self,
        criteria: Optional[CompositionCriteria] = None,
        options: Optional[GroupingOptions] = None,
    ) -> None:
        self.criteria = criteria or CompositionCriteria()
        self.options = options or GroupingOptions()

    def validate(
        self,
        result: CompositionResult,
        student_ids: list[str],
        states: Optional[dict[str, StudentState]] = None,
        scorer: Optional[CompositionScorer] = None,
    ) -> ValidationReport:
        """Runs all checks. Soft checks need ``states``; confidence needs ``scorer``."""
        violations: list[ValidationViolation] = []

        violations.extend(self._check_coverage(result, student_ids))
        violations.extend(self._check_sizes(result))
        if states is not None:
            violations.extend(self._check_difficulty_variance(result))
            violations.extend(self._check_progress_gap(result, states))
        if scorer is not None:
            violations.extend(self._check_scores(result, scorer))

        has_errors = any(v.severity == "error" for v in violations)
        return ValidationReport(violations=violations, is_valid=not has_errors)

    # ── Hard checks ──────────────────────────────────────────────────────────

    def _check_coverage(
        self, result: CompositionResult, student_ids: list[str]
    ) -> list[ValidationViolation]:
        """Each requested student is placed exactly once or reported unplaced."""
        violations: list[ValidationViolation] = []
        counts = Counter(result.placed_students)
        counts.update(result.unplaced_students)

        for sid, n in sorted(counts.items()):
            if n > 1:
                violations.append(ValidationViolation(
                    severity="error",
                    check="duplicate_student",
                    entity=sid,
                    description=f"Appears {n} times across compositions/unplaced.",
                ))

        requested = set(student_ids)
        for sid in student_ids:
            if sid not in counts:
                violations.append(ValidationViolation(
                    severity="error",
                    check="missing_student",
                    entity=sid,
                    description="Neither placed nor reported as unplaced.",
                ))
        for sid in sorted(set(counts) - requested):
            violations.append(ValidationViolation(
                severity="error",
                check="unknown_student",
                entity=sid,
                description="Placed although not requested.",
            ))
        return violations

    def _check_sizes(self, result: CompositionResult) -> list[ValidationViolation]:
        violations: list[ValidationViolation] = []
        c = self.criteria
        for comp in result.compositions:
            size = comp.size
            if size == 0:
                violations.append(ValidationViolation(
                    severity="error", check="empty_group", entity=comp.id,
                    description="Composition without students.",
                ))
            elif size == 1:
                if not self.options.allow_individual_classes:
                    violations.append(ValidationViolation(
                        severity="error", check="individual_not_allowed", entity=comp.id,
                        description="Individual class although individual classes are disabled.",
                    ))
            elif size < c.min_students or size > c.max_students:
                violations.append(ValidationViolation(
                    severity="error", check="size_bounds", entity=comp.id,
                    description=(
                        f"{size} students outside "
                        f"[{c.min_students}, {c.max_students}]."
                    ),
                ))
            if size > 1 and comp.class_type == ClassType.INDIVIDUAL:
                violations.append(ValidationViolation(
                    severity="error", check="class_type", entity=comp.id,
                    description=f"Marked individual with {size} students.",
                ))
        return violations

    # ── Soft checks ──────────────────────────────────────────────────────────

    def _check_difficulty_variance(self, result: CompositionResult) -> list[ValidationViolation]:
        violations: list[ValidationViolation] = []
        limit = self.criteria.max_difficulty_variance
        for comp in result.compositions:
            if len(comp.content_focus) < 2:
                continue
            variance = _variance([item.difficulty_level for item in comp.content_focus])
            if variance > limit:
                violations.append(ValidationViolation(
                    severity="warning", check="difficulty_variance", entity=comp.id,
                    description=f"Focus difficulty variance {variance:.2f} > {limit}.",
                ))
        return violations

    def _check_progress_gap(
        self, result: CompositionResult, states: dict[str, StudentState]
    ) -> list[ValidationViolation]:
        violations: list[ValidationViolation] = []
        limit = self.criteria.max_progress_gap
        for comp in result.compositions:
            levels = [
                states[sid].average_progress
                for sid in comp.student_ids
                if sid in states and states[sid].average_progress is not None
            ]
            if len(levels) < 2:
                continue
            gap = max(levels) - min(levels)
            if gap > limit:
                violations.append(ValidationViolation(
                    severity="warning", check="progress_gap", entity=comp.id,
                    description=f"Progress gap {gap:.1f} pp > {limit:.1f} pp.",
                ))
        return violations

    def _check_scores(
        self, result: CompositionResult, scorer: CompositionScorer
    ) -> list[ValidationViolation]:
        violations: list[ValidationViolation] = []
        alignment_min = self.criteria.content_compatibility_threshold * 100
        confidence_min = self.options.min_confidence_threshold * 100
        for comp in result.compositions:
            if comp.size == 1:
                continue
            score = scorer.evaluate(comp)
            if score.content_alignment < alignment_min:
                violations.append(ValidationViolation(
                    severity="warning", check="content_alignment", entity=comp.id,
                    description=(
                        f"Content alignment {score.content_alignment:.1f} "
                        f"< {alignment_min:.0f}."
                    ),
                ))
            if score.total_score < confidence_min:
                violations.append(ValidationViolation(
                    severity="warning", check="low_confidence", entity=comp.id,
                    description=f"Total score {score.total_score:.1f} < {confidence_min:.0f}.",
                ))
        return violations
