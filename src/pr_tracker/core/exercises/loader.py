"""
YAML → Exercise loader.

Loads exercise definitions from individual YAML files in the bundled
``src/pr_tracker/exercises/`` directory.  Each file (e.g. bench_press.yaml)
holds one exercise:

    exercise_id: bench_press
    display_name: Bench Press
    exercise_type: regular
    muscle_profile:
      primary_mover: pectoralis_major
      archetype: push
      recovery_hours: 48
      difficulty_level: 3
      muscles:
        - {name: pectoralis_major, role: primary_mover}

User overrides: place matching files in ``~/.pr-tracker/exercises/``.
A user file is deep-merged over the bundled definition, so only changed
keys need to be listed.  A user file whose name does not match any
bundled file is treated as a new exercise.

``exercise_type`` is kept as written; an unknown type is not an error
here because PR detection degrades it to ``regular``.
"""

from __future__ import annotations

import warnings
from pathlib import Path

from ..engine.config_loader import _deep_merge, _load_yaml_file, get_config_home
from ..models import Exercise, MuscleInvolvement, MuscleProfile

_REQUIRED_EXERCISE_FIELDS: frozenset[str] = frozenset(
    {"exercise_id", "display_name", "exercise_type"}
)

_REQUIRED_PROFILE_FIELDS: frozenset[str] = frozenset(
    {"primary_mover", "archetype", "muscles"}
)


def _profile_from_dict(d: dict) -> MuscleProfile:
    """Convert a raw muscle_profile mapping, raising ValueError on missing fields."""
    missing = _REQUIRED_PROFILE_FIELDS - set(d)
    if missing:
        raise ValueError(f"muscle_profile missing fields: {sorted(missing)}")

    muscles = []
    for m in d["muscles"]:
        if not isinstance(m, dict) or "name" not in m or "role" not in m:
            raise ValueError(f"muscle entry needs 'name' and 'role': {m!r}")
        muscles.append(
            MuscleInvolvement(
                muscle=str(m["name"]),
                role=str(m["role"]),
                contraction_type=str(m.get("contraction_type", "isotonic")),
            )
        )

    recovery = d.get("recovery_hours")
    difficulty = d.get("difficulty_level")
    return MuscleProfile(
        primary_mover=str(d["primary_mover"]),
        muscles=tuple(muscles),
        archetype=str(d["archetype"]),
        recovery_hours=float(recovery) if recovery is not None else None,
        difficulty_level=int(difficulty) if difficulty is not None else None,
    )


def exercise_from_dict(d: dict) -> Exercise:
    """Convert a raw dict (from YAML) to an Exercise.

    Raises ValueError if any required field is absent.
    """
    missing = _REQUIRED_EXERCISE_FIELDS - set(d)
    if missing:
        raise ValueError(f"Exercise missing fields: {sorted(missing)}")

    raw_profile = d.get("muscle_profile")
    profile = _profile_from_dict(raw_profile) if raw_profile else None
    raw_type = d["exercise_type"]

    return Exercise(
        exercise_id=str(d["exercise_id"]),
        display_name=str(d["display_name"]),
        exercise_type=str(raw_type) if raw_type is not None else None,
        profile=profile,
    )


def _get_bundled_exercises_dir() -> Path | None:
    """Return path to the bundled exercises/ data directory, or None if not found."""
    # loader.py lives at src/pr_tracker/core/exercises/loader.py
    # three levels up → src/pr_tracker/
    candidate = Path(__file__).parent.parent.parent / "exercises"
    return candidate if candidate.is_dir() else None


def _get_user_exercises_dir() -> Path | None:
    """Return ~/.pr-tracker/exercises/ if it exists, else None."""
    p = get_config_home() / "exercises"
    return p if p.is_dir() else None


def load_exercises_from_yaml(
    bundled_dir: Path | None = None,
    user_dir: Path | None = None,
) -> dict[str, Exercise]:
    """Return {exercise_id: Exercise} loaded from per-exercise YAML files.

    Loads each ``<exercise_id>.yaml`` from the bundled exercises/ directory,
    deep-merging a same-named file from the user directory over it.
    User-only files are loaded as new exercises.  Invalid definitions are
    skipped with a warning.
    """
    bundled_dir = bundled_dir if bundled_dir is not None else _get_bundled_exercises_dir()
    user_dir = user_dir if user_dir is not None else _get_user_exercises_dir()

    stems: dict[str, Path] = {}
    if bundled_dir is not None and bundled_dir.is_dir():
        for p in sorted(bundled_dir.glob("*.yaml")):
            stems[p.stem] = p

    user_files: dict[str, Path] = {}
    if user_dir is not None and user_dir.is_dir():
        for p in sorted(user_dir.glob("*.yaml")):
            user_files[p.stem] = p

    result: dict[str, Exercise] = {}
    for stem in list(stems) + [s for s in user_files if s not in stems]:
        raw: dict = {}
        if stem in stems:
            raw = _load_yaml_file(stems[stem])
        if stem in user_files:
            raw = _deep_merge(raw, _load_yaml_file(user_files[stem]))
        if not raw:
            continue
        try:
            ex = exercise_from_dict(raw)
        except (ValueError, TypeError) as exc:
            warnings.warn(f"pr-tracker: skipping exercise '{stem}': {exc}", stacklevel=2)
            continue
        result[ex.exercise_id] = ex

    return result
