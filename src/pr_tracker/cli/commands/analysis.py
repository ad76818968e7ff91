"""Analysis commands: records, recommend, rebuild-records, exercises."""

import json
from datetime import datetime
from typing import Annotated, Optional

import typer

from ...core.detection import replay_history
from ...core.errors import PRDetectionError, RecordStoreError
from ...core.exercises.registry import EXERCISE_REGISTRY, get_exercise
from ...core.recommendation import recommend
from ...core.workload import analyze_workload
from ...io.record_store import JsonlRecordStore, install_records
from ...io.serializers import ValidationError, record_to_dict, validate_datetime
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
def records(
    exercise_id: Annotated[
        str,
        typer.Option("--exercise", "-e", help="Exercise ID"),
    ],
    user_id: UserOption = "me",
    show_all: Annotated[
        bool,
        typer.Option("--all", "-a", help="Include superseded records"),
    ] = False,
    history_path: HistoryPathOption = None,
    config_path: ConfigOption = None,
    json_out: JsonOption = False,
) -> None:
    """
    Show personal records for an exercise.
    """
    try:
        exercise = get_exercise(exercise_id)
    except ValueError as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    store = get_store(history_path)
    require_history(store)
    try:
        record_store = get_record_store(store)
    except RecordStoreError as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    if show_all:
        found = [
            r for r in record_store.all_records()
            if r.user_id == user_id and r.exercise_id == exercise.exercise_id
        ]
    else:
        found = record_store.current_records(user_id, exercise.exercise_id)

    if json_out:
        print(json.dumps([record_to_dict(r) for r in found], indent=2))
        return

    if not found:
        views.print_info(f"No records yet for {exercise.display_name}.")
        return

    views.console.print(views.format_records_table(found, exercise, get_config(config_path).weight_unit))


@app.command("recommend")
def recommend_exercises(
    user_id: UserOption = "me",
    count: Annotated[
        int,
        typer.Option("--count", "-n", help="Number of exercises to suggest"),
    ] = 5,
    only_performed: Annotated[
        bool,
        typer.Option("--only-performed", help="Only suggest exercises done in the lookback window"),
    ] = False,
    at: Annotated[
        Optional[str],
        typer.Option("--at", help="Analyse as of this time (default: now)"),
    ] = None,
    history_path: HistoryPathOption = None,
    config_path: ConfigOption = None,
    json_out: JsonOption = False,
) -> None:
    """
    Suggest what to train next based on recent muscle workload.
    """
    store = get_store(history_path)
    require_history(store)

    try:
        now = validate_datetime(at) if at else datetime.now()
        sessions = store.load_history()
    except ValidationError as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    cfg = get_config(config_path)
    snapshot = analyze_workload(sessions, EXERCISE_REGISTRY, now, cfg, user_id=user_id)
    ranked = recommend(
        snapshot,
        EXERCISE_REGISTRY.values(),
        count,
        cfg,
        catalog=EXERCISE_REGISTRY,
        only_performed=only_performed,
    )

    if json_out:
        print(json.dumps({
            "days_since_last_workout": snapshot.days_since_last_workout,
            "recommendations": [
                {
                    "exercise_id": r.exercise.exercise_id,
                    "score": round(r.score, 4),
                    "reasoning": r.reasoning,
                    "breakdown": r.breakdown,
                }
                for r in ranked
            ],
        }, indent=2))
        return

    days = snapshot.days_since_last_workout
    if days is not None:
        views.print_info(f"Last workout: {days} day(s) ago, {snapshot.session_count} sessions analysed")

    if not ranked:
        views.print_info("No exercises available right now (everything is recovering).")
        return

    views.console.print(views.format_recommendations_table(ranked))


@app.command("rebuild-records")
def rebuild_records(
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation"),
    ] = False,
    history_path: HistoryPathOption = None,
    config_path: ConfigOption = None,
) -> None:
    """
    Recompute all personal records by replaying history in order.
    """
    store = get_store(history_path)
    require_history(store)

    if not yes and not views.confirm_action("Delete all records and recompute from history?"):
        views.print_info("Cancelled.")
        raise typer.Exit(0)

    try:
        sessions = store.load_history()
    except ValidationError as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    # Replay into a staging file; the current records stay in place until it is complete
    staging_path = store.records_path.with_name(store.records_path.name + ".rebuild")
    try:
        staging_path.unlink(missing_ok=True)
        staging = JsonlRecordStore(staging_path)
        replay_history(sessions, EXERCISE_REGISTRY, get_config(config_path), store=staging)
        record_store = install_records(staging, store.records_path)
    except (OSError, PRDetectionError) as e:
        staging_path.unlink(missing_ok=True)
        views.print_error(f"Rebuild failed, existing records kept: {e}")
        raise typer.Exit(1)

    pr_sessions = sum(
        1 for s in sessions
        if (r := record_store.get_result(s.session_id)) is not None and r.is_pr
    )
    views.print_success(
        f"Rebuilt {len(record_store.all_records())} records from {len(sessions)} sessions "
        f"({pr_sessions} with PRs)"
    )


@app.command("exercises")
def list_exercises(
    json_out: JsonOption = False,
) -> None:
    """
    List the exercise catalog.
    """
    exercises = list(EXERCISE_REGISTRY.values())

    if json_out:
        print(json.dumps([
            {
                "exercise_id": e.exercise_id,
                "display_name": e.display_name,
                "exercise_type": e.exercise_type,
                "archetype": e.profile.archetype if e.profile else None,
            }
            for e in sorted(exercises, key=lambda e: e.exercise_id)
        ], indent=2))
        return

    views.console.print(views.format_exercises_table(exercises))
