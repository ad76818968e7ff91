"""Session commands: init, log-session, history."""

import json
import uuid
from datetime import datetime
from typing import Annotated, Optional

import typer

from ...core.detection import PRDetector, detect_safely
from ...core.errors import RecordStoreError
from ...core.exercises.registry import EXERCISE_REGISTRY, get_exercise
from ...core.models import Session
from ...io.serializers import (
    ValidationError,
    parse_sets_string,
    session_result_to_dict,
    session_to_dict,
    validate_datetime,
)
from .. import views
from ..app import (
    ConfigOption,
    HistoryPathOption,
    JsonOption,
    UserOption,
    app,
    get_config,
    get_record_store,
    get_store,
    require_history,
)


@app.command()
def init(
    history_path: HistoryPathOption = None,
) -> None:
    """
    Create an empty history file.
    """
    store = get_store(history_path)
    if store.exists():
        views.print_info(f"History already exists: {store.history_path}")
        return
    store.init()
    views.print_success(f"Created history file: {store.history_path}")


@app.command("log-session")
def log_session(
    exercise_id: Annotated[
        str,
        typer.Option("--exercise", "-e", help="Exercise ID (see 'exercises')"),
    ],
    sets: Annotated[
        Optional[str],
        typer.Option("--sets", "-s", help="Sets: 8@225,8@225  |  10,8  |  30s,25s@10  |  12#red"),
    ] = None,
    date: Annotated[
        Optional[str],
        typer.Option("--date", "-d", help="YYYY-MM-DD or YYYY-MM-DDTHH:MM (default: now)"),
    ] = None,
    user_id: UserOption = "me",
    session_id: Annotated[
        Optional[str],
        typer.Option("--session-id", help="Session ID (default: generated)"),
    ] = None,
    logged_by: Annotated[
        Optional[str],
        typer.Option("--logged-by", help="Account entering the session, if not the user"),
    ] = None,
    synthetic: Annotated[
        bool,
        typer.Option("--synthetic", help="Mark as generated data (ignored by workload analysis)"),
    ] = False,
    explain: Annotated[
        bool,
        typer.Option("--explain", help="Show every record comparison, not just PRs"),
    ] = False,
    history_path: HistoryPathOption = None,
    config_path: ConfigOption = None,
    json_out: JsonOption = False,
) -> None:
    """
    Log a completed session and detect personal records.

      pr-tracker log-session -e bench_press -s "5@185,5@185,5@195"

    The session is always stored; if record detection fails it is reported
    as a warning and can be recomputed with 'rebuild-records'.
    """
    try:
        exercise = get_exercise(exercise_id)
    except ValueError as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    store = get_store(history_path)
    require_history(store)

    if sets is None:
        sets = views.console.input("Sets (e.g. 8@225,8@225): ").strip()

    try:
        parsed_sets = parse_sets_string(sets)
        performed_at = (
            validate_datetime(date) if date else datetime.now().replace(microsecond=0)
        )
    except ValidationError as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    session = Session(
        session_id=session_id or uuid.uuid4().hex[:8],
        user_id=user_id,
        exercise_id=exercise.exercise_id,
        performed_at=performed_at,
        sets=tuple(parsed_sets),
        logged_by=logged_by,
        synthetic=synthetic,
    )

    try:
        store.append_session(session)
    except ValidationError as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    # Session is stored from here on; record problems are warnings only.
    cfg = get_config(config_path)
    result = None
    try:
        records = get_record_store(store)
    except RecordStoreError as e:
        views.print_warning(f"Records file unreadable, PRs not checked: {e}")
    else:
        result = detect_safely(PRDetector(EXERCISE_REGISTRY, records, cfg), session)
        if result is None:
            views.print_warning(
                "PR detection could not complete. Run 'rebuild-records' to recompute."
            )

    if json_out:
        print(json.dumps({
            "session": session_to_dict(session),
            "result": session_result_to_dict(result) if result else None,
        }, indent=2))
        return

    views.print_success(
        f"Logged {exercise.display_name}: {len(session.sets)} sets "
        f"on {session.performed_at:%Y-%m-%d} (id {session.session_id})"
    )
    if result is not None:
        views.print_session_result(result, exercise, cfg.weight_unit)
        if explain:
            views.print_trace(result)


@app.command("history")
def show_history(
    user_id: UserOption = "me",
    exercise_id: Annotated[
        Optional[str],
        typer.Option("--exercise", "-e", help="Only this exercise"),
    ] = None,
    limit: Annotated[
        Optional[int],
        typer.Option("--limit", "-n", help="Show only the last N sessions"),
    ] = None,
    history_path: HistoryPathOption = None,
    json_out: JsonOption = False,
) -> None:
    """
    Display logged sessions.
    """
    store = get_store(history_path)
    require_history(store)

    try:
        sessions = store.sessions_for(user_id, exercise_id)
        records = get_record_store(store)
    except (ValidationError, RecordStoreError) as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    if limit is not None:
        sessions = sessions[-limit:] if limit > 0 else []

    results = {}
    for s in sessions:
        result = records.get_result(s.session_id)
        if result is not None:
            results[s.session_id] = result

    if json_out:
        print(json.dumps([
            {
                **session_to_dict(s),
                "pr_count": results[s.session_id].pr_count if s.session_id in results else None,
            }
            for s in sessions
        ], indent=2))
        return

    if not sessions:
        views.print_info("No sessions logged yet.")
        return

    views.console.print(views.format_session_table(sessions, results))
