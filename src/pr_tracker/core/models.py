"""
Data models for pr-tracker.

Sessions and sets are immutable inputs; records are created once and never
edited.  Exercise metadata keeps its raw type string so that malformed
catalog entries can be degraded later instead of failing at load time.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Union

# Record key: None, a rep/round/set count, a weight, or a band colour
RecordKey = Union[int, float, str, None]


class ExerciseType(str, Enum):
    """Exercise type tag selecting a rule set."""

    REGULAR = "regular"
    BODYWEIGHT = "bodyweight"
    BANDED_RESISTANCE = "banded_resistance"
    BANDED_ASSISTANCE = "banded_assistance"
    CARDIO = "cardio"
    STATIC_HOLD = "static_hold"


class Category(str, Enum):
    """Personal record categories."""

    ONE_RM = "one_rm"
    VOLUME = "volume"
    REP_SPECIFIC = "rep_specific"
    DENSITY = "density"
    ENDURANCE = "endurance"
    CONSISTENCY = "consistency"
    TIME = "time"
    HYPERTROPHY = "hypertrophy"


class MuscleRole(str, Enum):
    """How a muscle participates in an exercise."""

    PRIMARY_MOVER = "primary_mover"
    SYNERGIST = "synergist"
    STABILIZER = "stabilizer"


@dataclass(frozen=True)
class SetEntry:
    """
    A single set within a session.

    For cardio, ``reps`` is the distance in metres.  Static holds log their
    duration either in ``duration`` or, as older entries do, in ``reps``.
    """

    weight: float = 0.0
    reps: int = 0
    duration: int | None = None  # seconds
    band_color: str | None = None

    def __post_init__(self) -> None:
        """Validate set data."""
        if self.weight < 0:
            raise ValueError("weight must be non-negative")
        if self.reps < 0:
            raise ValueError("reps must be non-negative")
        if self.duration is not None and self.duration < 0:
            raise ValueError("duration must be non-negative")

    @property
    def hold_seconds(self) -> int:
        """Hold time in seconds."""
        return self.duration if self.duration is not None else self.reps


@dataclass(frozen=True)
class Session:
    """One logged performance of an exercise."""

    session_id: str
    user_id: str
    exercise_id: str
    performed_at: datetime
    sets: tuple[SetEntry, ...] = ()
    logged_by: str | None = None  # account that entered it, if not the user
    synthetic: bool = False  # generated/demo data

    def __post_init__(self) -> None:
        """Validate session data."""
        if not self.session_id:
            raise ValueError("session_id must be non-empty")
        if not self.user_id:
            raise ValueError("user_id must be non-empty")
        if not self.exercise_id:
            raise ValueError("exercise_id must be non-empty")
        # Accept lists from callers but store a tuple
        if not isinstance(self.sets, tuple):
            object.__setattr__(self, "sets", tuple(self.sets))


@dataclass(frozen=True)
class MuscleInvolvement:
    """A muscle and its role in an exercise."""

    muscle: str
    role: str  # MuscleRole value; unknown roles get the fallback weight
    contraction_type: str = "isotonic"


@dataclass(frozen=True)
class MuscleProfile:
    """Muscle-involvement metadata for an exercise."""

    primary_mover: str
    muscles: tuple[MuscleInvolvement, ...]
    archetype: str  # push, pull, squat, hinge, carry, core
    recovery_hours: float | None = None
    difficulty_level: int | None = None  # 1..5

    def muscles_with_role(self, *roles: str) -> list[str]:
        """Return muscle names having any of the given roles."""
        return [m.muscle for m in self.muscles if m.role in roles]


@dataclass(frozen=True)
class Exercise:
    """
    Catalog entry for an exercise.

    ``exercise_type`` is the raw catalog string; resolve it with
    ``exercise_types.resolve_exercise_type``.
    """

    exercise_id: str
    display_name: str
    exercise_type: str | None = "regular"
    profile: MuscleProfile | None = None


@dataclass(frozen=True)
class PersonalRecord:
    """
    A record created when a session beats the best for a (category, key).

    Superseded records are kept; ``previous_record_id`` links each record to
    the one it replaced.
    """

    record_id: str
    user_id: str
    exercise_id: str
    category: Category
    value: float
    key: RecordKey
    source_session_id: str
    achieved_at: datetime
    previous_record_id: str | None = None
    previous_value: float | None = None


@dataclass(frozen=True)
class CategoryTrace:
    """Why a single (category, key) comparison did or did not produce a PR."""

    category: Category
    key: RecordKey
    value: float
    is_pr: bool
    reason: str


@dataclass
class SessionResult:
    """Outcome of PR detection for one session."""

    session_id: str
    is_pr: bool = False
    pr_count: int = 0
    created_records: list[PersonalRecord] = field(default_factory=list)
    trace: list[CategoryTrace] = field(default_factory=list)

    @classmethod
    def empty(cls, session_id: str) -> "SessionResult":
        """Result for a session that yielded no comparable values."""
        return cls(session_id=session_id)
