"""
CLI entry point using Typer.

Provides commands for record tracking and recommendations:
- init: Create the history file
- log-session: Log a session and detect PRs
- history: Display logged sessions
- records: Show personal records for an exercise
- recommend: Suggest what to train next
- rebuild-records: Recompute records from history
- exercises: List the exercise catalog
"""

from .app import app
from .commands import analysis, sessions  # noqa: F401  (registers commands)

__all__ = ["app"]


if __name__ == "__main__":
    app()
