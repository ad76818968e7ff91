"""
CLI view formatters using Rich for pretty console output.

Handles table formatting and display of sessions, records and
recommendations.
"""

from rich.console import Console
from rich.table import Table

from ..core.exercise_types import format_amount, format_label, resolve_exercise_type
from ..core.models import Exercise, PersonalRecord, Session, SessionResult
from ..core.recommendation import Recommendation

console = Console()


def _sets_summary(session: Session) -> str:
    parts = []
    for s in session.sets:
        text = f"{s.duration}s" if s.duration is not None else str(s.reps)
        if s.weight:
            text += f"@{s.weight:g}"
        if s.band_color:
            text += f"#{s.band_color}"
        parts.append(text)
    return ", ".join(parts)


def format_session_table(
    sessions: list[Session],
    results: dict[str, SessionResult] | None = None,
) -> Table:
    """
    Create a Rich table displaying session history.

    Args:
        sessions: Sessions to display
        results: Detection results by session id, for the PR column

    Returns:
        Rich Table object
    """
    results = results or {}
    table = Table(title="Session History")

    table.add_column("#", justify="right", style="dim", width=3)
    table.add_column("Date", style="cyan")
    table.add_column("Exercise", style="magenta")
    table.add_column("Sets")
    table.add_column("PRs", justify="right", style="bold green")
    table.add_column("ID", style="dim")

    for i, session in enumerate(sessions, 1):
        result = results.get(session.session_id)
        table.add_row(
            str(i),
            session.performed_at.strftime("%Y-%m-%d %H:%M"),
            session.exercise_id,
            _sets_summary(session),
            str(result.pr_count) if result and result.pr_count else "-",
            session.session_id,
        )

    return table


def format_records_table(records: list[PersonalRecord], exercise: Exercise, unit: str = "lbs") -> Table:
    """
    Create a Rich table of current records for one exercise.

    Records are shown as "previous → value" when they replaced an older one.
    """
    exercise_type = resolve_exercise_type(exercise.exercise_type)
    table = Table(title=f"Personal Records: {exercise.display_name}")

    table.add_column("Record", style="cyan")
    table.add_column("Value", justify="right", style="bold")
    table.add_column("Previous", justify="right", style="dim")
    table.add_column("Date")
    table.add_column("Session", style="dim")

    for r in sorted(records, key=lambda r: (r.category.value, str(r.key))):
        previous = (
            format_amount(exercise_type, r.category, r.previous_value, r.key, unit)
            if r.previous_value is not None
            else "-"
        )
        table.add_row(
            format_label(exercise_type, r.category, r.key, unit),
            format_amount(exercise_type, r.category, r.value, r.key, unit),
            previous,
            r.achieved_at.strftime("%Y-%m-%d"),
            r.source_session_id,
        )

    return table


def print_session_result(result: SessionResult, exercise: Exercise, unit: str = "lbs") -> None:
    """Print the PR outcome of a freshly logged session."""
    if not result.is_pr:
        console.print("[dim]No new personal records.[/dim]")
        return

    label = "PR" if result.pr_count == 1 else "PRs"
    console.print(f"[bold green]🏆 {result.pr_count} new {label}![/bold green]")
    for t in result.trace:
        if t.is_pr:
            console.print(f"  [green]•[/green] {t.reason}")


def print_trace(result: SessionResult) -> None:
    """Print every comparison made for a session, PR or not."""
    for t in result.trace:
        mark = "[green]✓[/green]" if t.is_pr else "[dim]·[/dim]"
        console.print(f"  {mark} {t.reason}")


def format_recommendations_table(recommendations: list[Recommendation]) -> Table:
    """Create a Rich table of ranked recommendations."""
    table = Table(title="Recommended Exercises")

    table.add_column("#", justify="right", style="dim", width=3)
    table.add_column("Exercise", style="cyan")
    table.add_column("Score", justify="right", style="bold")
    table.add_column("Why")

    for i, rec in enumerate(recommendations, 1):
        table.add_row(
            str(i),
            rec.exercise.display_name,
            f"{rec.score:.2f}",
            "\n".join(rec.reasoning),
        )

    return table


def format_exercises_table(exercises: list[Exercise]) -> Table:
    """Create a Rich table listing the exercise catalog."""
    table = Table(title="Exercises")

    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Type", style="magenta")
    table.add_column("Archetype")
    table.add_column("Primary mover")
    table.add_column("Recovery (h)", justify="right")

    for ex in sorted(exercises, key=lambda e: e.exercise_id):
        profile = ex.profile
        recovery = profile.recovery_hours if profile and profile.recovery_hours is not None else None
        table.add_row(
            ex.exercise_id,
            ex.display_name,
            ex.exercise_type or "-",
            profile.archetype if profile else "-",
            profile.primary_mover.replace("_", " ") if profile else "-",
            f"{recovery:g}" if recovery is not None else "-",
        )

    return table


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]{message}[/green]")


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[red]Error: {message}[/red]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]Warning: {message}[/yellow]")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[blue]{message}[/blue]")


def confirm_action(message: str) -> bool:
    """
    Prompt user for confirmation.

    Args:
        message: Confirmation message

    Returns:
        True if confirmed, False otherwise
    """
    response = console.input(f"{message} [y/N]: ")
    return response.lower() in ("y", "yes")
