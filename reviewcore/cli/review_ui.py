"""
Command-line interface for reviewing a learner's items.
"""

from datetime import date

from rich.console import Console
from rich.panel import Panel

from reviewcore.constants import (
    DEFAULT_SESSION_LIMIT,
    MAX_DIFFICULTY,
    MIN_DIFFICULTY,
)
from reviewcore.models import ReviewItem
from reviewcore.session_generator import SessionGenerator

console = Console()


def _get_answer_result() -> bool:
    """
    Ask whether the learner's answer was correct, repeating until y or n is entered.
    """
    while True:
        reply = console.input("[bold]Correct? (y/n): [/bold]").strip().lower()
        if reply in ("y", "yes"):
            return True
        if reply in ("n", "no"):
            return False
        console.print("[bold red]Please answer 'y' or 'n'.[/bold red]")


def _get_difficulty(default: int) -> int:
    """
    Prompt for a difficulty between 1 and 5; an empty reply keeps `default`.
    """
    while True:
        raw = console.input(
            f"[bold]Difficulty ({MIN_DIFFICULTY}-{MAX_DIFFICULTY}, Enter for {default}): [/bold]"
        ).strip()
        if not raw:
            return default
        try:
            difficulty = int(raw)
        except ValueError:
            console.print("[bold red]Invalid input. Please enter a number.[/bold red]")
            continue
        if MIN_DIFFICULTY <= difficulty <= MAX_DIFFICULTY:
            return difficulty
        console.print(
            f"[bold red]Invalid difficulty. Please enter a number between "
            f"{MIN_DIFFICULTY} and {MAX_DIFFICULTY}.[/bold red]"
        )


def _display_item(item: ReviewItem) -> None:
    """
    Show an item's prompt, wait for Enter, then reveal the answer.

    Items whose content could not be loaded are shown by id only.
    """
    prompt = item.content.prompt if item.content else item.item_id
    console.print(Panel(prompt, title="Prompt", border_style="green"))
    console.input("[italic]Press Enter to see the answer...[/italic]")
    answer = item.content.answer if item.content else "(content unavailable)"
    console.print(Panel(answer, title="Answer", border_style="blue"))


def start_review_flow(
    generator: SessionGenerator,
    learner_id: str,
    limit: int = DEFAULT_SESSION_LIMIT,
) -> int:
    """
    Run an interactive review session for the learner.

    Returns:
        int: The number of answers that could not be saved.
    """
    console.print("[bold cyan]Starting review session...[/bold cyan]")
    session = generator.build_session(learner_id, limit=limit)

    if session.is_empty:
        console.print(
            "[bold yellow]Nothing to review. Complete a lesson to get started.[/bold yellow]"
        )
        console.print("[bold cyan]Review session finished.[/bold cyan]")
        return 0

    if session.source == "fallback":
        console.print(
            "[yellow]No scheduled reviews are due; practising recently "
            "completed lesson content instead.[/yellow]"
        )

    unsaved = 0
    total = len(session.items)
    for position, item in enumerate(session.items, start=1):
        console.rule(f"[bold]Item {position} of {total}[/bold]")

        _display_item(item)
        was_correct = _get_answer_result()
        difficulty = _get_difficulty(item.difficulty)

        outcome = generator.record_response(
            learner_id=learner_id,
            item_id=item.item_id,
            was_correct=was_correct,
            difficulty=difficulty,
        )
        record = outcome.record
        days_until_due = (record.next_review_at - date.today()).days
        due_date_str = record.next_review_at.strftime("%Y-%m-%d")
        if outcome.saved:
            console.print(
                f"[green]Recorded.[/green] Next review in [bold]{days_until_due} days[/bold] on {due_date_str}."
            )
        else:
            unsaved += 1
            console.print(
                f"[bold red]Progress not saved:[/bold red] {outcome.error}"
            )
        console.print("")

    console.print("[bold cyan]Review session finished. Well done![/bold cyan]")
    return unsaved
