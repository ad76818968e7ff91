"""
Exercise registry.

All catalog exercises are registered here.  Use get_exercise() to look up
an Exercise by its exercise_id string.

Exercises are loaded from per-exercise YAML files in the bundled
``src/pr_tracker/exercises/`` directory at import time.  If no definition
can be loaded a RuntimeError is raised; the application cannot start
without a catalog.

User overrides: place matching files in ``~/.pr-tracker/exercises/``.
"""

from ..models import Exercise


def _build_registry() -> dict[str, Exercise]:
    from .loader import load_exercises_from_yaml

    loaded = load_exercises_from_yaml()
    if not loaded:
        raise RuntimeError(
            "pr-tracker: no exercise definitions could be loaded from YAML. "
            "Check that src/pr_tracker/exercises/*.yaml files are present and valid."
        )
    return loaded


EXERCISE_REGISTRY: dict[str, Exercise] = _build_registry()


def get_exercise(exercise_id: str) -> Exercise:
    """
    Return the Exercise for the given exercise_id.

    Args:
        exercise_id: Any exercise in the registry, e.g. "bench_press"

    Returns:
        Exercise for the requested id

    Raises:
        ValueError: If exercise_id is not in the registry
    """
    if exercise_id not in EXERCISE_REGISTRY:
        valid = ", ".join(sorted(EXERCISE_REGISTRY))
        raise ValueError(f"Unknown exercise '{exercise_id}'. Valid IDs: {valid}")
    return EXERCISE_REGISTRY[exercise_id]
