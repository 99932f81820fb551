"""
CLI entry point for reviewcore.
"""

# Standard library imports
import shutil
from datetime import datetime
from pathlib import Path
from typing import List, Optional

# Third-party imports
import typer
from rich.console import Console
from rich.table import Table

# Local application imports
from reviewcore.config import settings
from reviewcore.db.database import ScheduleDatabase
from reviewcore.db.db_utils import backup_database, find_latest_backup
from reviewcore.exceptions import DatabaseError
from reviewcore.models import LearnerStats, Lesson
from reviewcore.parser import (
    YAMLProcessorConfig,
    load_and_process_lesson_yamls,
)
from reviewcore.cli._review_logic import build_generator, review_logic


console = Console()

app = typer.Typer(
    name="reviewcore",
    help="Reviewcore: adaptive spaced-repetition review scheduling.",
    add_completion=False,
    rich_markup_mode="markdown",
)


# ---------------------------------------------------------------------------
# Helpers for resolving the --db path (REVIEWCORE_DB envvar, then settings)
# ---------------------------------------------------------------------------


def _resolve_db_path(db: Optional[Path]) -> Path:
    """Resolve db path from the CLI flag, falling back to the configured default."""
    if db is not None:
        return db
    return settings.db_path


# Common typer options reused across commands
_db_option = typer.Option(  # noqa: B008
    None,
    "--db",
    help="Path to the DuckDB database file. "
    "Falls back to REVIEWCORE_DB env var.",
    envvar="REVIEWCORE_DB",
)

_learner_argument = typer.Argument(  # noqa: B008
    ..., help="Identifier of the learner."
)


def _fail(message: str) -> typer.Exit:
    """Print an error and return the Exit to raise."""
    console.print(f"[bold red]Error:[/bold red] {message}")
    return typer.Exit(code=1)


# ---------------------------------------------------------------------------
# Ingest helpers & command
# ---------------------------------------------------------------------------


def _load_lessons_from_source(source_dir: Path) -> List[Lesson]:
    """
    Load lessons from YAML files in source_dir.

    Prints any processing errors. Exits with code 1 when nothing could be
    loaded because of errors, and with code 0 when there was simply nothing
    to load.
    """
    config = YAMLProcessorConfig(source_directory=source_dir)
    lessons, errors = load_and_process_lesson_yamls(config)

    if errors:
        console.print(
            "[bold red]Errors encountered during YAML processing:[/bold red]"
        )
        for error in errors:
            console.print(f"- {error}")

    if not lessons:
        if errors:
            raise typer.Exit(code=1)
        console.print("[yellow]No lessons found to ingest. Exiting.[/yellow]")
        raise typer.Exit(code=0)

    return lessons


@app.command()
def ingest(
    db: Optional[Path] = _db_option,
    source_dir: Optional[Path] = typer.Option(  # noqa: B008
        None,
        "--source-dir",
        help="Directory containing lesson YAML files.",
    ),
):
    """
    Ingest lessons defined in YAML files into the database. Re-ingesting a
    lesson replaces its items.
    """
    db_path = _resolve_db_path(db)
    if source_dir is None:
        console.print(
            "[bold red]Error: --source-dir is required "
            "for ingestion.[/bold red]"
        )
        raise typer.Exit(code=1)

    console.print(f"Starting ingestion from [cyan]{source_dir}[/cyan]...")
    try:
        lessons = _load_lessons_from_source(source_dir)
        with ScheduleDatabase(db_path=db_path) as db_inst:
            db_inst.initialize_schema()
            item_count = db_inst.upsert_lessons(lessons)
    except typer.Exit:
        raise
    except DatabaseError as e:
        console.print(f"[bold red]Database Error:[/bold red] {e}")
        raise typer.Exit(code=1)
    except Exception as e:
        console.print(
            "[bold red]An unexpected error occurred "
            f"during ingestion:[/bold red] {e}"
        )
        raise typer.Exit(code=1) from e

    console.print("[bold green]Ingestion complete![/bold green]")
    console.print(
        f"- [green]{len(lessons)}[/green] lessons with "
        f"[green]{item_count}[/green] items were ingested or updated."
    )


# ---------------------------------------------------------------------------
# Lesson completion & enrollment
# ---------------------------------------------------------------------------


@app.command()
def complete(
    learner_id: str = _learner_argument,
    lesson_id: str = typer.Argument(..., help="Lesson that was completed."),  # noqa: B008
    on: Optional[datetime] = typer.Option(  # noqa: B008
        None,
        "--on",
        formats=["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S"],
        help="Completion date (UTC). Defaults to now.",
    ),
    db: Optional[Path] = _db_option,
):
    """Record that a learner completed a lesson."""
    db_path = _resolve_db_path(db)
    try:
        with ScheduleDatabase(db_path=db_path) as db_inst:
            db_inst.initialize_schema()
            db_inst.mark_lesson_completed(learner_id, lesson_id, on)
    except DatabaseError as e:
        raise _fail(str(e)) from e

    console.print(
        f"[green]Lesson [cyan]{lesson_id}[/cyan] marked completed "
        f"for [cyan]{learner_id}[/cyan].[/green]"
    )


@app.command()
def enroll(
    learner_id: str = _learner_argument,
    item_id: str = typer.Argument(..., help="Content item to schedule."),  # noqa: B008
    db: Optional[Path] = _db_option,
):
    """Put a content item into a learner's schedule, due today."""
    db_path = _resolve_db_path(db)
    try:
        with ScheduleDatabase(db_path=db_path) as db_inst:
            db_inst.initialize_schema()
            if db_inst.get_item(item_id) is None:
                raise _fail(f"Unknown item '{item_id}'.")
            enrolled = build_generator(db_inst).enroll_item(learner_id, item_id)
    except DatabaseError as e:
        raise _fail(str(e)) from e

    if not enrolled:
        raise _fail(f"Could not enroll item '{item_id}'.")
    console.print(
        f"[green]Item [cyan]{item_id}[/cyan] is scheduled for "
        f"[cyan]{learner_id}[/cyan].[/green]"
    )


# ---------------------------------------------------------------------------
# Review commands
# ---------------------------------------------------------------------------


@app.command()
def review(
    learner_id: str = _learner_argument,
    db: Optional[Path] = _db_option,
    limit: Optional[int] = typer.Option(
        None,
        "--limit",
        "-l",
        min=1,
        help="Maximum number of items in the session.",
    ),
):
    """Starts an interactive review session for the learner."""
    db_path = _resolve_db_path(db)
    try:
        backup_path = backup_database(db_path)
        if backup_path.exists() and "backups" in str(backup_path):
            console.print(f"Database backed up to: [dim]{backup_path}[/dim]")

        console.print(
            f"Starting review for learner: [bold cyan]{learner_id}[/bold cyan]"
        )
        unsaved = review_logic(learner_id=learner_id, db_path=db_path, limit=limit)
    except DatabaseError as e:
        console.print(f"[bold]A database error occurred: {e}[/bold]")
        raise typer.Exit(code=1) from e
    except Exception as e:
        console.print(f"[bold]An unexpected error occurred:[/bold] {e}")
        raise typer.Exit(code=1) from e

    if unsaved:
        console.print(
            f"[bold yellow]{unsaved} answers could not be saved.[/bold yellow]"
        )
        raise typer.Exit(code=1)


@app.command()
def answer(
    learner_id: str = _learner_argument,
    item_id: str = typer.Argument(..., help="Content item that was answered."),  # noqa: B008
    correct: bool = typer.Option(  # noqa: B008
        ...,
        "--correct/--incorrect",
        help="Whether the answer was correct.",
    ),
    difficulty: Optional[int] = typer.Option(  # noqa: B008
        None,
        "--difficulty",
        "-d",
        help="Difficulty 1-5. Defaults to the item's declared difficulty.",
    ),
    db: Optional[Path] = _db_option,
):
    """Apply a single answer to the learner's schedule."""
    db_path = _resolve_db_path(db)
    try:
        with ScheduleDatabase(db_path=db_path) as db_inst:
            db_inst.initialize_schema()
            if difficulty is None:
                item = db_inst.get_item(item_id)
                if item is None:
                    raise _fail(
                        f"Unknown item '{item_id}'; pass --difficulty explicitly."
                    )
                difficulty = item.difficulty
            outcome = build_generator(db_inst).record_response(
                learner_id=learner_id,
                item_id=item_id,
                was_correct=correct,
                difficulty=difficulty,
            )
    except ValueError as e:
        raise _fail(str(e)) from e
    except DatabaseError as e:
        raise _fail(str(e)) from e

    record = outcome.record
    if not outcome.saved:
        console.print(f"[bold red]Progress not saved:[/bold red] {outcome.error}")
        raise typer.Exit(code=1)
    console.print(
        f"[green]Recorded.[/green] Next review on "
        f"[bold]{record.next_review_at.isoformat()}[/bold] "
        f"(interval {record.interval_days} days, ease {record.ease_factor:.2f}, "
        f"stage {record.learning_stage.name})."
    )


# ---------------------------------------------------------------------------
# Stats helpers & command
# ---------------------------------------------------------------------------


def _display_overall_stats(cons: Console, learner_id: str, stats_data: LearnerStats):
    overall_table = Table(title=f"Schedule of {learner_id}", show_header=False)
    overall_table.add_column("Metric", style="cyan")
    overall_table.add_column("Value", style="magenta")
    overall_table.add_row("Scheduled Items", str(stats_data.total))
    overall_table.add_row("Due Today", str(stats_data.due_today))
    cons.print(overall_table)


def _display_stage_stats(cons: Console, stats_data: LearnerStats):
    """
    Render a table of item counts per learning stage, in stage order.
    """
    stages_table = Table(title="Learning Stages")
    stages_table.add_column("Stage", style="cyan")
    stages_table.add_column("Count", style="magenta")
    for stage, count in stats_data.stages.items():
        stages_table.add_row(stage, str(count))
    cons.print(stages_table)


@app.command()
def stats(
    learner_id: str = _learner_argument,
    db: Optional[Path] = _db_option,
):
    """Display scheduling statistics for a learner."""
    db_path = _resolve_db_path(db)
    try:
        with ScheduleDatabase(db_path=db_path) as db_inst:
            db_inst.initialize_schema()
            stats_data = build_generator(db_inst).get_learner_stats(learner_id)
    except DatabaseError as e:
        console.print(f"[bold]A database error occurred: {e}[/bold]")
        raise typer.Exit(code=1) from e

    _display_overall_stats(console, learner_id, stats_data)
    if not stats_data.total:
        console.print("[yellow]No scheduled items for this learner.[/yellow]")
        return
    _display_stage_stats(console, stats_data)


# ---------------------------------------------------------------------------
# Restore command
# ---------------------------------------------------------------------------


@app.command()
def restore(
    db: Optional[Path] = _db_option,
    yes: bool = typer.Option(
        False, "--yes", "-y", help="Bypass confirmation prompt."
    ),
):
    """Restores the database from the most recent backup."""
    db_path = _resolve_db_path(db)
    console.print(
        "[bold yellow]Attempting to restore database "
        "from backup...[/bold yellow]"
    )

    latest_backup = find_latest_backup(db_path)

    if not latest_backup:
        console.print("[bold red]Error: No backup files found.[/bold red]")
        raise typer.Exit(code=1)

    console.print(f"Found latest backup: [cyan]{latest_backup.name}[/cyan]")

    if not yes:
        confirmed = typer.confirm(
            "Are you sure you want to overwrite the current "
            "database with this backup?"
        )
        if not confirmed:
            console.print("Restore operation cancelled.")
            raise typer.Exit()

    try:
        shutil.copy2(latest_backup, db_path)
        console.print(
            "[bold green]Database successfully restored "
            f"from {latest_backup.name}[/bold green]"
        )
    except OSError as e:
        console.print(
            "[bold red]An unexpected error occurred "
            f"during restore: {e}[/bold red]"
        )
        raise typer.Exit(code=1) from e


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main():
    """
    Run the CLI application, exiting with status 1 on an unexpected exception.
    """
    try:
        app()
    except Exception as e:
        console.print(f"[bold red]UNEXPECTED ERROR: {e}[/bold red]")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
