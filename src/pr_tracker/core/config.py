"""
Configuration constants for PR detection and exercise recommendation.

All adjustable parameters are centralized here.  The same values ship in
the bundled engine.yaml; ``EngineConfig.from_dict`` builds a typed config
from the merged YAML so callers never read these module globals directly.
"""

from dataclasses import dataclass, field, fields
from typing import Any, Final

# =============================================================================
# RECORD MATCHING
# =============================================================================

WEIGHT_TOLERANCE: Final[float] = 0.5  # Weights within ±0.5 share a bucket
MAX_REP_SPECIFIC_REPS: Final[int] = 10  # Rep counts above this get no rep-specific PR
MAX_ROUND_COUNT: Final[int] = 10  # Cardio round counts above this get no rep-specific PR
ONE_RM_COEFFICIENT: Final[float] = 0.0333  # Epley: w * (1 + c * reps)
WEIGHT_UNIT: Final[str] = "lbs"

# =============================================================================
# WORKLOAD ANALYSIS
# =============================================================================

LOOKBACK_DAYS: Final[int] = 31  # Workload history window
DEFAULT_RECOVERY_HOURS: Final[float] = 48.0  # Used when an exercise has none
FULL_INTENSITY_SETS: Final[int] = 5  # Sets for a session to count at full intensity
MIN_RECENCY_FACTOR: Final[float] = 0.1  # Floor for the linear recency decay
WORKLOAD_CAP: Final[float] = 1.0  # Per-muscle workload ceiling

ROLE_WEIGHTS: Final[dict[str, float]] = {
    "primary_mover": 1.0,
    "synergist": 0.7,
    "stabilizer": 0.4,
}
UNKNOWN_ROLE_WEIGHT: Final[float] = 0.5

# Sessions logged by these accounts never count towards workload
ADMIN_ACCOUNTS: Final[tuple[str, ...]] = ("admin",)

# =============================================================================
# RECOMMENDATION SCORING
# =============================================================================

BASE_SCORE: Final[float] = 1.0
MUSCLE_BALANCE_WEIGHT: Final[float] = 3.0
ARCHETYPE_WEIGHT: Final[float] = 2.0
DIFFICULTY_WEIGHT: Final[float] = 1.5
RECENT_PENALTY: Final[float] = 0.5  # Multiplier for exercises done in the window
UNDERWORKED_THRESHOLD: Final[float] = 0.3  # Workload below this is "underworked"
ARCHETYPE_COUNT: Final[int] = 6  # push, pull, squat, hinge, carry, core
OVERUSE_PENALTY: Final[float] = 3.0
ARCHETYPE_VARIETY_THRESHOLD: Final[int] = 3  # Fewer sessions than this: "adds variety"
DEFAULT_DIFFICULTY_TARGET: Final[float] = 3.0
DIFFICULTY_STEP: Final[float] = 0.5  # Target sits this far above recent average
MAX_DIFFICULTY: Final[int] = 5
DIFFICULTY_FALLOFF: Final[float] = 0.2  # Score lost per level of difficulty mismatch


@dataclass(frozen=True)
class EngineConfig:
    """
    Typed engine configuration.

    Passed explicitly to the detector, analyzer and scorer so tests can vary
    any knob without touching module state.
    """

    weight_tolerance: float = WEIGHT_TOLERANCE
    max_rep_specific_reps: int = MAX_REP_SPECIFIC_REPS
    max_round_count: int = MAX_ROUND_COUNT
    one_rm_coefficient: float = ONE_RM_COEFFICIENT
    weight_unit: str = WEIGHT_UNIT

    lookback_days: int = LOOKBACK_DAYS
    default_recovery_hours: float = DEFAULT_RECOVERY_HOURS
    full_intensity_sets: int = FULL_INTENSITY_SETS
    min_recency_factor: float = MIN_RECENCY_FACTOR
    workload_cap: float = WORKLOAD_CAP
    role_weights: dict[str, float] = field(default_factory=lambda: dict(ROLE_WEIGHTS))
    unknown_role_weight: float = UNKNOWN_ROLE_WEIGHT
    admin_accounts: tuple[str, ...] = ADMIN_ACCOUNTS

    base_score: float = BASE_SCORE
    muscle_balance_weight: float = MUSCLE_BALANCE_WEIGHT
    archetype_weight: float = ARCHETYPE_WEIGHT
    difficulty_weight: float = DIFFICULTY_WEIGHT
    recent_penalty: float = RECENT_PENALTY
    underworked_threshold: float = UNDERWORKED_THRESHOLD
    archetype_count: int = ARCHETYPE_COUNT
    overuse_penalty: float = OVERUSE_PENALTY
    archetype_variety_threshold: int = ARCHETYPE_VARIETY_THRESHOLD
    default_difficulty_target: float = DEFAULT_DIFFICULTY_TARGET
    difficulty_step: float = DIFFICULTY_STEP
    max_difficulty: int = MAX_DIFFICULTY
    difficulty_falloff: float = DIFFICULTY_FALLOFF

    def __post_init__(self) -> None:
        """Validate config values."""
        if self.weight_tolerance < 0:
            raise ValueError("weight_tolerance must be non-negative")
        if self.max_rep_specific_reps < 1:
            raise ValueError("max_rep_specific_reps must be at least 1")
        if self.lookback_days < 1:
            raise ValueError("lookback_days must be at least 1")
        if self.default_recovery_hours < 0:
            raise ValueError("default_recovery_hours must be non-negative")
        if self.full_intensity_sets < 1:
            raise ValueError("full_intensity_sets must be at least 1")
        if self.archetype_count < 1:
            raise ValueError("archetype_count must be at least 1")

        weights = [self.role_weights.get(r, 0.0) for r in ("primary_mover", "synergist", "stabilizer")]
        if not weights[0] > weights[1] > weights[2]:
            raise ValueError(
                "role_weights must be strictly ordered: primary_mover > synergist > stabilizer"
            )

    def role_weight(self, role: str) -> float:
        """Return the workload weight for a muscle role."""
        return self.role_weights.get(role, self.unknown_role_weight)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EngineConfig":
        """
        Build an EngineConfig from a (possibly partial) dict.

        Accepts either a flat mapping or the sectioned layout used by
        engine.yaml (``records:``, ``workload:``, ``recommendation:``).
        Unknown keys are ignored.

        Args:
            data: Raw mapping, usually from load_engine_config()

        Returns:
            EngineConfig with defaults for every missing key
        """
        flat: dict[str, Any] = {}
        for key, value in data.items():
            if isinstance(value, dict) and key != "role_weights":
                flat.update(value)
            else:
                flat[key] = value

        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in flat.items() if k in known}

        if "role_weights" in kwargs:
            merged = dict(ROLE_WEIGHTS)
            merged.update({str(k): float(v) for k, v in kwargs["role_weights"].items()})
            kwargs["role_weights"] = merged
        if "admin_accounts" in kwargs:
            kwargs["admin_accounts"] = tuple(str(a) for a in kwargs["admin_accounts"])

        return cls(**kwargs)
