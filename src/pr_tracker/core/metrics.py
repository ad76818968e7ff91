"""
Session aggregation.

Reduces the ordered sets of one session to every scalar the record
categories need, in a single pass and without touching the inputs.
"""

from dataclasses import dataclass, field
from typing import Sequence

from .config import EngineConfig
from .models import ExerciseType, SetEntry


def epley_one_rm(weight: float, reps: int, coefficient: float = 0.0333) -> float:
    """
    Estimate a one-rep max with the Epley formula.

        1RM = w * (1 + c * reps)

    A single rep is the weight itself.

    Args:
        weight: Load lifted
        reps: Reps completed at that load
        coefficient: Epley coefficient (default 0.0333)

    Returns:
        Estimated 1RM, or 0.0 for an empty set
    """
    if weight <= 0 or reps <= 0:
        return 0.0
    if reps == 1:
        return float(weight)
    return weight * (1 + coefficient * reps)


def weights_match(a: float, b: float, tolerance: float) -> bool:
    """True if two weights fall in the same bucket."""
    return abs(a - b) <= tolerance


@dataclass
class WeightBucket:
    """Sets of one session grouped at (approximately) the same weight."""

    weight: float  # first weight seen for the bucket
    set_count: int = 0
    total_reps: int = 0
    best_hold: int = 0


@dataclass(frozen=True)
class SessionMetrics:
    """Everything the record categories read from one session."""

    exercise_type: ExerciseType
    set_count: int = 0
    total_reps: int = 0
    load_volume: float = 0.0
    is_loaded: bool = False
    best_one_rm: float = 0.0
    heaviest_weight: float = 0.0
    best_weight_by_reps: dict[int, float] = field(default_factory=dict)
    weight_buckets: tuple[WeightBucket, ...] = ()
    min_hold: int = 0
    max_hold: int = 0
    best_distance: int = 0
    total_distance: int = 0
    best_reps_by_band: dict[str, int] = field(default_factory=dict)

    @property
    def volume(self) -> float:
        """
        Session volume.

        Sum of weight x reps when any set carries weight; total reps when
        every set is unloaded.  Cardio volume is total distance.
        """
        if self.exercise_type is ExerciseType.CARDIO:
            return float(self.total_distance)
        if self.is_loaded:
            return self.load_volume
        return float(self.total_reps)

    @property
    def heaviest_bucket(self) -> WeightBucket | None:
        """Bucket holding the heaviest weight lifted, if any set was loaded."""
        loaded = [b for b in self.weight_buckets if b.weight > 0]
        if not loaded:
            return None
        return max(loaded, key=lambda b: b.weight)


def aggregate_session(
    exercise_type: ExerciseType,
    sets: Sequence[SetEntry],
    config: EngineConfig | None = None,
) -> SessionMetrics:
    """
    Aggregate a session's sets in one traversal.

    Args:
        exercise_type: Resolved type of the exercise
        sets: Ordered sets of the session
        config: Engine config (tolerance and Epley coefficient)

    Returns:
        SessionMetrics for the session (all zeros for an empty session)
    """
    cfg = config or EngineConfig()

    total_reps = 0
    load_volume = 0.0
    is_loaded = False
    best_one_rm = 0.0
    heaviest = 0.0
    best_weight_by_reps: dict[int, float] = {}
    buckets: list[WeightBucket] = []
    min_hold: int | None = None
    max_hold = 0
    best_distance = 0
    best_reps_by_band: dict[str, int] = {}

    for s in sets:
        total_reps += s.reps
        load_volume += s.weight * s.reps
        hold = s.hold_seconds
        min_hold = hold if min_hold is None else min(min_hold, hold)
        max_hold = max(max_hold, hold)
        best_distance = max(best_distance, s.reps)

        if s.weight > 0:
            is_loaded = True
            heaviest = max(heaviest, s.weight)
            best_one_rm = max(best_one_rm, epley_one_rm(s.weight, s.reps, cfg.one_rm_coefficient))
            if s.reps > 0:
                best_weight_by_reps[s.reps] = max(best_weight_by_reps.get(s.reps, 0.0), s.weight)

        bucket = next((b for b in buckets if weights_match(b.weight, s.weight, cfg.weight_tolerance)), None)
        if bucket is None:
            bucket = WeightBucket(weight=s.weight)
            buckets.append(bucket)
        bucket.set_count += 1
        bucket.total_reps += s.reps
        bucket.best_hold = max(bucket.best_hold, hold)

        if s.band_color:
            band = s.band_color.strip().lower()
            best_reps_by_band[band] = max(best_reps_by_band.get(band, 0), s.reps)

    return SessionMetrics(
        exercise_type=exercise_type,
        set_count=len(sets),
        total_reps=total_reps,
        load_volume=load_volume,
        is_loaded=is_loaded,
        best_one_rm=best_one_rm,
        heaviest_weight=heaviest,
        best_weight_by_reps=best_weight_by_reps,
        weight_buckets=tuple(buckets),
        min_hold=min_hold or 0,
        max_hold=max_hold,
        best_distance=best_distance,
        total_distance=total_reps,
        best_reps_by_band=best_reps_by_band,
    )
