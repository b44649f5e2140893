"""Class Composer: main CLI.

Usage:
  python main.py config init                 Write the default configuration
  python main.py config show                 Show the configuration
  python main.py generate                    Generate a fake student dataset
  python main.py compose                     Compose classes for a dataset
  python main.py evaluate <result.json>      Score a saved result
  python main.py compatible <student_id>     Best partners for a student
  python main.py suggest-size                Class size recommendation
  python main.py scenario save <name>        Save scenario
  python main.py scenario load <name>        Load scenario
  python main.py scenario list               List scenarios
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich import box

from models.content import CourseType

console = Console()

# Default path of the generated dataset
DEFAULT_DATA_JSON = Path("output/students.json")

COURSE_TYPES = click.Choice([c.value for c in CourseType])


def _load_config_or_abort(path: Optional[Path] = None):
    """Loads the configuration (defaults without file) or aborts with an error."""
    from config.manager import ConfigManager
    mgr = ConfigManager()
    try:
        return mgr, mgr.load_or_default(path)
    except ValueError as e:
        console.print(f"[red bold]Configuration error:[/red bold]\n{e}")
        sys.exit(1)


def _load_dataset_or_abort(data_path: str):
    from models.dataset import StudentDataset
    try:
        return StudentDataset.load_json(Path(data_path))
    except FileNotFoundError as e:
        console.print(
            f"[red]{e}[/red]\n"
            "Use [bold]python main.py generate[/bold] to create test data."
        )
        sys.exit(1)


def _split_ids(value: Optional[str]) -> list[str]:
    if not value:
        return []
    return [s.strip() for s in value.split(",") if s.strip()]


def _course_type(value: Optional[str]) -> Optional[CourseType]:
    return CourseType(value) if value else None


# ─── CONFIG ───────────────────────────────────────────────────────────────────

@click.group("config")
def cmd_config():
    """Show or initialize the configuration."""


@cmd_config.command("init")
@click.option("--force", is_flag=True, default=False, help="Overwrite an existing file.")
def config_init(force: bool):
    """Writes the default configuration as commented YAML."""
    from config.defaults import default_config
    from config.manager import ConfigManager

    mgr = ConfigManager()
    if not mgr.first_run_check() and not force:
        console.print(
            "[yellow]A configuration already exists.[/yellow]\n"
            "Use [bold]--force[/bold] to overwrite it."
        )
        return
    mgr.save(default_config())


@cmd_config.command("show")
def config_show():
    """Shows the active configuration."""
    mgr, config = _load_config_or_abort()

    console.print(Panel(
        f"[bold]{config.academy_name}[/bold]  |  "
        f"strategy: {config.options.strategy.value}  |  "
        f"optimize for: {config.options.optimize_for.value}",
        title="Composer configuration",
        border_style="cyan",
    ))

    c = config.criteria
    table = Table(title="Criteria", box=box.ROUNDED)
    table.add_column("Setting")
    table.add_column("Value", justify="right")
    table.add_row("Students per group", f"{c.min_students}–{c.max_students}")
    table.add_row("Max. difficulty variance", f"{c.max_difficulty_variance}")
    table.add_row("Max. progress gap", f"{c.max_progress_gap} pp")
    table.add_row("Content threshold", f"{c.content_compatibility_threshold:.0%}")
    table.add_row("Peer weight", f"{c.peer_compatibility_weight}")
    console.print(table)

    w = config.options.scoring
    table2 = Table(title="Scoring weights", box=box.ROUNDED)
    table2.add_column("Content")
    table2.add_column("Difficulty")
    table2.add_column("Progress")
    table2.add_column("Social")
    table2.add_column("Size")
    table2.add_row(*(f"{v:.2f}" for v in (w.content, w.difficulty, w.progress, w.social, w.size)))
    console.print(table2)

    o, e = config.options, config.engine
    console.print(
        f"\n[bold]Options:[/bold] individual classes: "
        f"{'yes' if o.allow_individual_classes else 'no'} | "
        f"struggling first: {'yes' if o.prioritize_struggling_students else 'no'} | "
        f"max iterations: {o.max_iterations} | confidence ≥ {o.min_confidence_threshold:.0%}"
    )
    console.print(
        f"[bold]Engine:[/bold] workers {e.max_workers} | "
        f"retries {e.retry_attempts}×{e.retry_delay_seconds}s | "
        f"cache TTL {e.cache_ttl_seconds}s | "
        f"time limit {e.time_limit_seconds if e.time_limit_seconds is not None else '–'}"
    )


# ─── GENERATE ─────────────────────────────────────────────────────────────────

@click.command("generate")
@click.option("--seed", default=42, help="Random seed for reproducible data.")
@click.option("--students", "num_students", default=24, type=click.IntRange(min=1),
              help="Number of students.")
@click.option("--course-type", type=COURSE_TYPES, default=CourseType.EVERYDAY_A.value,
              help="Course of the generated students.")
@click.option("--output", "-o", default=str(DEFAULT_DATA_JSON),
              help="Path of the JSON dataset.")
def cmd_generate(seed: int, num_students: int, course_type: str, output: str):
    """Generates a fake student dataset (progress, content, history)."""
    from data.fake_data import FakeStudentGenerator

    console.print("[bold]Generating test data...[/bold]")
    gen = FakeStudentGenerator(num_students=num_students, seed=seed,
                               course_type=CourseType(course_type))
    dataset = gen.generate()
    gen.print_summary(dataset)
    console.print(f"\n[dim]{dataset.summary()}[/dim]")

    out_path = Path(output)
    dataset.save_json(out_path)
    console.print(f"[green]✓[/green] Dataset saved: {out_path}")


# ─── COMPOSE ──────────────────────────────────────────────────────────────────

@click.command("compose")
@click.option("--data", "data_path", default=str(DEFAULT_DATA_JSON),
              help="Path of the JSON dataset.")
@click.option("--students", default=None,
              help="Comma-separated student ids (default: all).")
@click.option("--course-type", type=COURSE_TYPES, default=None,
              help="Only consider records of this course.")
@click.option("--min-students", type=int, default=None, help="Override min_students.")
@click.option("--max-students", type=int, default=None, help="Override max_students.")
@click.option("--optimize-for", type=click.Choice(["content", "social", "progress", "balanced"]),
              default=None, help="Override the grouping focus.")
@click.option("--no-individual", is_flag=True, default=False,
              help="Disallow individual classes.")
@click.option("--output", "-o", default=None, help="Save the result as JSON.")
@click.option("--report/--no-report", default=True,
              help="Show validation and quality report.")
def cmd_compose(data_path: str, students: Optional[str], course_type: Optional[str],
                min_students: Optional[int], max_students: Optional[int],
                optimize_for: Optional[str], no_individual: bool,
                output: Optional[str], report: bool):
    """Composes optimized classes for the students of a dataset."""
    from analysis.partition_validator import PartitionValidator
    from analysis.quality_report import QualityAnalyzer
    from composer.engine import ClassCompositionEngine, InvalidCriteriaError

    mgr, config = _load_config_or_abort()
    dataset = _load_dataset_or_abort(data_path)
    student_ids = _split_ids(students) or dataset.student_ids

    criteria: dict = {}
    if min_students is not None:
        criteria["min_students"] = min_students
    if max_students is not None:
        criteria["max_students"] = max_students
    options: dict = {}
    if optimize_for is not None:
        options["optimize_for"] = optimize_for
    if no_individual:
        options["allow_individual_classes"] = False

    engine = ClassCompositionEngine.from_dataset(dataset, config)
    try:
        resolved_criteria, resolved_options = engine.resolve_settings(criteria, options)
    except InvalidCriteriaError as e:
        console.print(f"[red bold]Invalid criteria:[/red bold]\n{e}")
        sys.exit(1)

    console.print(f"[bold]Composing classes for {len(student_ids)} student(s)...[/bold]")
    result = engine.generate_class_compositions(
        student_ids, _course_type(course_type), resolved_criteria, resolved_options
    )
    result.print_rich()

    if report:
        states = engine.gather_states(student_ids, _course_type(course_type))
        scorer = engine.build_scorer(states, resolved_options)
        PartitionValidator(resolved_criteria, resolved_options).validate(
            result, student_ids, states, scorer
        ).print_rich()
        analyzer = QualityAnalyzer(scorer)
        analyzer.print_rich(analyzer.analyze(result))

    if output:
        out_path = Path(output)
        result.save_json(out_path)
        console.print(f"[green]✓[/green] Result saved: {out_path}")


# ─── EVALUATE ─────────────────────────────────────────────────────────────────

@click.command("evaluate")
@click.argument("result_path", type=click.Path(exists=True, path_type=Path))
@click.option("--data", "data_path", default=str(DEFAULT_DATA_JSON),
              help="Path of the JSON dataset.")
def cmd_evaluate(result_path: Path, data_path: str):
    """Scores every composition of a saved result."""
    from composer.engine import ClassCompositionEngine
    from models.composition import CompositionResult

    mgr, config = _load_config_or_abort()
    dataset = _load_dataset_or_abort(data_path)
    try:
        result = CompositionResult.load_json(result_path)
    except ValueError as e:
        console.print(f"[red bold]Unreadable result file:[/red bold]\n{e}")
        sys.exit(1)

    engine = ClassCompositionEngine.from_dataset(dataset, config)
    states = engine.gather_states(result.placed_students)

    table = Table(title=f"Evaluation: {result_path.name}", box=box.ROUNDED)
    table.add_column("ID", style="dim")
    table.add_column("Students")
    for label in ("Total", "Content", "Difficulty", "Progress", "Social", "Size"):
        table.add_column(label, justify="right")
    for comp in result.compositions:
        score = engine.evaluate_composition(comp, states)
        table.add_row(
            comp.id, ", ".join(comp.student_ids),
            f"[bold]{score.total_score:.1f}[/bold]",
            f"{score.content_alignment:.1f}", f"{score.difficulty_balance:.1f}",
            f"{score.progress_compatibility:.1f}", f"{score.social_compatibility:.1f}",
            f"{score.size_optimization:.1f}",
        )
    console.print(table)


# ─── COMPATIBLE ───────────────────────────────────────────────────────────────

@click.command("compatible")
@click.argument("student_id")
@click.option("--data", "data_path", default=str(DEFAULT_DATA_JSON),
              help="Path of the JSON dataset.")
@click.option("--candidates", default=None,
              help="Comma-separated candidate ids (default: all others).")
@click.option("--course-type", type=COURSE_TYPES, default=None)
@click.option("--limit", default=8, type=click.IntRange(min=1), help="Number of partners.")
def cmd_compatible(student_id: str, data_path: str, candidates: Optional[str],
                   course_type: Optional[str], limit: int):
    """Lists the most compatible partners of a student."""
    from composer.engine import ClassCompositionEngine
    from data.providers import DataUnavailableError

    mgr, config = _load_config_or_abort()
    dataset = _load_dataset_or_abort(data_path)
    candidate_ids = _split_ids(candidates) or dataset.student_ids

    engine = ClassCompositionEngine.from_dataset(dataset, config)
    try:
        partners = engine.find_compatible_students(
            student_id, candidate_ids, _course_type(course_type), limit
        )
    except DataUnavailableError as e:
        console.print(f"[red bold]No data:[/red bold] {e}")
        sys.exit(1)

    table = Table(title=f"Compatible with {student_id}", box=box.ROUNDED)
    table.add_column("Student")
    table.add_column("Score", justify="right")
    table.add_column("Shared lessons")
    table.add_column("Style", justify="right")
    table.add_column("Pace", justify="right")
    table.add_column("History", justify="right")
    for pair in partners:
        table.add_row(
            pair.partner_of(student_id),
            f"[bold]{pair.compatibility_score:.1f}[/bold]",
            ", ".join(item.content_key for item in pair.shared_content) or "–",
            f"{pair.learning_style_match:.1f}",
            f"{pair.pace_compatibility:.1f}",
            f"{pair.social_history:.1f}",
        )
    console.print(table)


# ─── SUGGEST SIZE ─────────────────────────────────────────────────────────────

@click.command("suggest-size")
@click.option("--data", "data_path", default=str(DEFAULT_DATA_JSON),
              help="Path of the JSON dataset.")
@click.option("--students", default=None,
              help="Comma-separated student ids (default: all).")
@click.option("--course-type", type=COURSE_TYPES, default=None)
def cmd_suggest_size(data_path: str, students: Optional[str], course_type: Optional[str]):
    """Recommends a class size for the students' open content."""
    from composer.engine import ClassCompositionEngine

    mgr, config = _load_config_or_abort()
    dataset = _load_dataset_or_abort(data_path)
    student_ids = _split_ids(students) or dataset.student_ids

    engine = ClassCompositionEngine.from_dataset(dataset, config)
    states = engine.gather_states(student_ids, _course_type(course_type))
    content = list({
        item.content_key: item for s in states.values() for item in s.content_items
    }.values())

    suggestion = engine.suggest_optimal_class_size(
        student_ids, content, _course_type(course_type)
    )
    lines = [
        f"Recommended: [bold]{suggestion.recommended_size}[/bold] "
        f"(effective {suggestion.min_effective_size}–{suggestion.max_effective_size})",
    ]
    lines.extend(f"• {r}" for r in suggestion.reasoning)
    console.print(Panel("\n".join(lines), title="Class size", border_style="cyan"))


# ─── SCENARIO ─────────────────────────────────────────────────────────────────

@click.group("scenario")
def cmd_scenario():
    """Manage scenarios (save, load, list)."""


@cmd_scenario.command("save")
@click.argument("name")
@click.option("--description", "-d", default="", help="Scenario description.")
@click.option("--overwrite", is_flag=True, default=False, help="Overwrite without asking.")
def scenario_save(name: str, description: str, overwrite: bool):
    """Saves the active configuration as a scenario."""
    mgr, config = _load_config_or_abort()
    mgr.save_scenario(config, name, description, overwrite=overwrite)


@cmd_scenario.command("load")
@click.argument("name")
def scenario_load(name: str):
    """Loads a saved scenario as the active configuration."""
    from config.manager import ConfigManager
    mgr = ConfigManager()
    try:
        config = mgr.load_scenario(name)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    mgr.save(config)
    console.print(f"[green]✓[/green] Scenario '{name}' is the active config.")


@cmd_scenario.command("list")
def scenario_list():
    """Lists all saved scenarios."""
    from config.manager import ConfigManager
    mgr = ConfigManager()
    scenarios = mgr.list_scenarios()

    if not scenarios:
        console.print("[dim]No scenarios saved.[/dim]")
        return

    table = Table(title="Saved scenarios", box=box.ROUNDED)
    table.add_column("Name", style="bold")
    table.add_column("Created")
    table.add_column("Description")
    for s in scenarios:
        table.add_row(s["name"], s.get("created", ""), s.get("description", ""))
    console.print(table)


# ─── MAIN CLI ─────────────────────────────────────────────────────────────────

@click.group()
@click.option("--verbose", "-v", is_flag=True, default=False, help="Debug logging.")
def cli(verbose: bool):
    """Class composer: optimized student groupings for language classes.

    Start with: python main.py generate && python main.py compose
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
        force=True,
    )


def main():
    cli()


# Register commands
cli.add_command(cmd_config)
cli.add_command(cmd_generate)
cli.add_command(cmd_compose)
cli.add_command(cmd_evaluate)
cli.add_command(cmd_compatible)
cli.add_command(cmd_suggest_size)
cli.add_command(cmd_scenario)


if __name__ == "__main__":
    main()
