"""
Exercise catalog for pr-tracker.

Each exercise carries a type tag selecting its record rules and an
optional muscle profile used for workload analysis and recommendations.
"""

from .loader import exercise_from_dict, load_exercises_from_yaml
from .registry import EXERCISE_REGISTRY, get_exercise

__all__ = [
    "EXERCISE_REGISTRY",
    "exercise_from_dict",
    "get_exercise",
    "load_exercises_from_yaml",
]
