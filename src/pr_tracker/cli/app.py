"""Shared Typer app object, shared option types, and store utilities."""

import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.logging import RichHandler

from ..core.config import EngineConfig
from ..core.engine.config_loader import load_engine_config
from ..io.history_store import HistoryStore, get_default_history_path
from ..io.record_store import JsonlRecordStore
from . import views

# Shared options used across commands
HistoryPathOption = Annotated[
    Optional[Path],
    typer.Option("--history-path", "-p", help="Path to history JSONL file"),
]
UserOption = Annotated[
    str,
    typer.Option("--user", "-u", help="User ID"),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", "-j", help="Output as JSON for machine processing"),
]
ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", help="Engine config YAML to merge over the bundled defaults"),
]

app = typer.Typer(
    name="pr-tracker",
    help="Personal record detection and exercise recommendations for logged workouts.",
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging"),
    ] = False,
) -> None:
    """
    Track personal records and get exercise recommendations.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=views.console, show_path=False)],
        force=True,
    )


def get_store(history_path: Path | None) -> HistoryStore:
    """Get history store from path or default location."""
    if history_path is None:
        history_path = get_default_history_path()
    return HistoryStore(history_path)


def get_record_store(store: HistoryStore) -> JsonlRecordStore:
    """Record store kept next to the history file."""
    return JsonlRecordStore(store.records_path)


def get_config(config_path: Path | None = None) -> EngineConfig:
    """Engine config from bundled YAML plus user (or given) overrides."""
    return load_engine_config(config_path)


def require_history(store: HistoryStore) -> None:
    """Exit with an error if the history file has not been initialized."""
    if not store.exists():
        views.print_error(f"History file not found: {store.history_path}")
        views.print_info("Run 'init' first to create the history file.")
        raise typer.Exit(1)
