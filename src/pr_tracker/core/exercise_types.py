"""
Per-type record rules.

Each exercise type maps to one ``TypeRules`` entry in ``TYPE_RULES``:
the categories it tracks (with and without added load), the function that
turns SessionMetrics into comparable candidates, and how values are shown.
The loaded branch is chosen per session (any set with weight > 0), so the
same exercise can be logged both ways over time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from .config import EngineConfig
from .metrics import SessionMetrics
from .models import Category, ExerciseType, RecordKey

logger = logging.getLogger(__name__)

# Catalog strings from older data that name a current type
LEGACY_TYPE_ALIASES: dict[str, ExerciseType] = {
    "banded": ExerciseType.BANDED_RESISTANCE,
    "weighted": ExerciseType.REGULAR,
}

# Key used for volume measured in reps rather than load
REP_VOLUME_KEY = "reps"


@dataclass(frozen=True)
class Candidate:
    """
    One value a session offers for a (category, key) comparison.

    seeds_baseline: with no prior best the value only becomes the baseline
        (density and hypertrophy need something to beat).
    observe_only: never a PR; only raises the stored baseline.
    match_weight: key is a weight and matches stored keys within tolerance.
    """

    category: Category
    key: RecordKey
    value: float
    seeds_baseline: bool = False
    observe_only: bool = False
    match_weight: bool = False


Extractor = Callable[[SessionMetrics, EngineConfig], list[Candidate]]


@dataclass(frozen=True)
class TypeRules:
    """Rule set for one exercise type."""

    unloaded: frozenset[Category]
    loaded: frozenset[Category]
    extract: Extractor
    display_name: str


# =============================================================================
# CANDIDATE EXTRACTION
# =============================================================================


def _volume_candidate(m: SessionMetrics) -> list[Candidate]:
    if m.volume <= 0:
        return []
    key = None if m.is_loaded else REP_VOLUME_KEY
    return [Candidate(Category.VOLUME, key, m.volume)]


def _rep_max_candidates(m: SessionMetrics, cfg: EngineConfig) -> list[Candidate]:
    return [
        Candidate(Category.REP_SPECIFIC, int(reps), float(weight))
        for reps, weight in sorted(m.best_weight_by_reps.items())
        if reps <= cfg.max_rep_specific_reps
    ]


def _regular(m: SessionMetrics, cfg: EngineConfig) -> list[Candidate]:
    out: list[Candidate] = []
    if m.best_one_rm > 0:
        out.append(Candidate(Category.ONE_RM, None, m.best_one_rm))
    out.extend(_volume_candidate(m))
    out.extend(_rep_max_candidates(m, cfg))

    heaviest = m.heaviest_bucket
    for bucket in m.weight_buckets:
        if bucket.weight <= 0:
            continue
        out.append(
            Candidate(
                Category.DENSITY,
                float(bucket.weight),
                float(bucket.set_count),
                seeds_baseline=True,
                match_weight=True,
            )
        )
        # Only the heaviest weight can set a hypertrophy PR; lighter
        # buckets still establish history for later sessions.
        if bucket.total_reps > 0:
            out.append(
                Candidate(
                    Category.HYPERTROPHY,
                    float(bucket.weight),
                    float(bucket.total_reps),
                    seeds_baseline=True,
                    observe_only=bucket is not heaviest,
                    match_weight=True,
                )
            )
    return out


def _bodyweight(m: SessionMetrics, cfg: EngineConfig) -> list[Candidate]:
    out = _volume_candidate(m)
    if m.is_loaded:
        out.extend(_rep_max_candidates(m, cfg))
    return out


def _banded(m: SessionMetrics, cfg: EngineConfig) -> list[Candidate]:
    out = _volume_candidate(m)
    out.extend(
        Candidate(Category.REP_SPECIFIC, band, float(reps))
        for band, reps in sorted(m.best_reps_by_band.items())
        if reps > 0
    )
    return out


def _cardio(m: SessionMetrics, cfg: EngineConfig) -> list[Candidate]:
    if m.total_distance <= 0:
        return []
    out = [
        Candidate(Category.ENDURANCE, None, float(m.best_distance)),
        Candidate(Category.VOLUME, None, float(m.total_distance)),
    ]
    if m.set_count <= cfg.max_round_count:
        out.append(Candidate(Category.REP_SPECIFIC, m.set_count, float(m.total_distance)))
    return out


def _static_hold(m: SessionMetrics, cfg: EngineConfig) -> list[Candidate]:
    if m.max_hold <= 0:
        return []
    out = [Candidate(Category.TIME, None, float(m.max_hold))]
    if m.set_count >= 2 and m.min_hold > 0:
        out.append(Candidate(Category.CONSISTENCY, m.set_count, float(m.min_hold)))
    for bucket in m.weight_buckets:
        if bucket.weight > 0 and bucket.best_hold > 0:
            out.append(
                Candidate(
                    Category.REP_SPECIFIC,
                    float(bucket.weight),
                    float(bucket.best_hold),
                    match_weight=True,
                )
            )
    return out


# =============================================================================
# DISPATCH TABLE
# =============================================================================

_BANDED_CATEGORIES = frozenset({Category.VOLUME, Category.REP_SPECIFIC})

TYPE_RULES: dict[ExerciseType, TypeRules] = {
    ExerciseType.REGULAR: TypeRules(
        unloaded=frozenset({Category.ONE_RM, Category.VOLUME, Category.REP_SPECIFIC,
                            Category.DENSITY, Category.HYPERTROPHY}),
        loaded=frozenset({Category.ONE_RM, Category.VOLUME, Category.REP_SPECIFIC,
                          Category.DENSITY, Category.HYPERTROPHY}),
        extract=_regular,
        display_name="Weighted",
    ),
    ExerciseType.BODYWEIGHT: TypeRules(
        unloaded=frozenset({Category.VOLUME}),
        loaded=frozenset({Category.VOLUME, Category.REP_SPECIFIC}),
        extract=_bodyweight,
        display_name="Bodyweight",
    ),
    ExerciseType.BANDED_RESISTANCE: TypeRules(
        unloaded=_BANDED_CATEGORIES,
        loaded=_BANDED_CATEGORIES,
        extract=_banded,
        display_name="Banded Resistance",
    ),
    ExerciseType.BANDED_ASSISTANCE: TypeRules(
        unloaded=_BANDED_CATEGORIES,
        loaded=_BANDED_CATEGORIES,
        extract=_banded,
        display_name="Banded Assistance",
    ),
    ExerciseType.CARDIO: TypeRules(
        unloaded=frozenset({Category.VOLUME, Category.REP_SPECIFIC, Category.ENDURANCE}),
        loaded=frozenset({Category.VOLUME, Category.REP_SPECIFIC, Category.ENDURANCE}),
        extract=_cardio,
        display_name="Cardio",
    ),
    ExerciseType.STATIC_HOLD: TypeRules(
        unloaded=frozenset({Category.CONSISTENCY, Category.TIME}),
        loaded=frozenset({Category.REP_SPECIFIC, Category.CONSISTENCY, Category.TIME}),
        extract=_static_hold,
        display_name="Static Hold",
    ),
}

_missing = set(ExerciseType) - set(TYPE_RULES)
if _missing:
    raise RuntimeError(f"TYPE_RULES has no entry for: {sorted(t.value for t in _missing)}")


# =============================================================================
# PUBLIC API
# =============================================================================


def resolve_exercise_type(raw: ExerciseType | str | None) -> ExerciseType:
    """
    Resolve a catalog type string to an ExerciseType.

    Missing or unknown values degrade to REGULAR with a logged warning so
    that PR detection can still run.
    """
    if isinstance(raw, ExerciseType):
        return raw
    if not isinstance(raw, str) or not raw.strip():
        logger.warning("Exercise type missing (%r); treating as regular", raw)
        return ExerciseType.REGULAR

    value = raw.strip().lower()
    if value in LEGACY_TYPE_ALIASES:
        return LEGACY_TYPE_ALIASES[value]
    try:
        return ExerciseType(value)
    except ValueError:
        logger.warning("Unknown exercise type %r; treating as regular", raw)
        return ExerciseType.REGULAR


def applicable_categories(
    exercise_type: ExerciseType,
    metrics: SessionMetrics | None = None,
) -> frozenset[Category]:
    """
    Categories tracked for an exercise type.

    Without metrics the unloaded branch is returned; with metrics the branch
    follows whether this session carried any weight.
    """
    rules = TYPE_RULES[exercise_type]
    if metrics is not None and metrics.is_loaded:
        return rules.loaded
    return rules.unloaded


def session_candidates(
    exercise_type: ExerciseType,
    metrics: SessionMetrics,
    config: EngineConfig | None = None,
) -> list[Candidate]:
    """Comparable values this session offers, limited to applicable categories."""
    cfg = config or EngineConfig()
    allowed = applicable_categories(exercise_type, metrics)
    return [c for c in TYPE_RULES[exercise_type].extract(metrics, cfg) if c.category in allowed]


# =============================================================================
# FORMATTING
# =============================================================================


def format_weight(weight: float) -> str:
    """225.0 -> '225', 227.5 -> '227.5'."""
    if float(weight).is_integer():
        return str(int(weight))
    return f"{weight:.1f}"


def format_distance(meters: float) -> str:
    """850 -> '850m', 1500 -> '1,500m', 10500 -> '10.5km'."""
    meters = int(meters)
    if meters >= 10000:
        return f"{meters / 1000:.1f}km"
    return f"{meters:,}m"


def format_hold(seconds: float, weight: float = 0.0, unit: str = "lbs") -> str:
    """30 -> '30s hold', 90 -> '1m 30s hold', with ' +25 lbs' when weighted."""
    seconds = int(seconds)
    if seconds < 60:
        text = f"{seconds}s hold"
    else:
        minutes, rest = divmod(seconds, 60)
        text = f"{minutes}m hold" if rest == 0 else f"{minutes}m {rest}s hold"
    if weight > 0:
        text += f" +{format_weight(weight)} {unit}"
    return text


def format_rounds(count: int) -> str:
    return "1 Round" if count == 1 else f"{count} Rounds"


def format_amount(
    exercise_type: ExerciseType,
    category: Category,
    value: float,
    key: RecordKey = None,
    unit: str = "lbs",
) -> str:
    """Display string for a category value."""
    if category is Category.DENSITY:
        return f"{int(value)} sets"
    if category is Category.HYPERTROPHY:
        return f"{int(value)} reps"

    if exercise_type is ExerciseType.CARDIO:
        return format_distance(value)

    if exercise_type is ExerciseType.STATIC_HOLD:
        weight = float(key) if category is Category.REP_SPECIFIC and key is not None else 0.0
        return format_hold(value, weight, unit)

    if category is Category.VOLUME:
        if key == REP_VOLUME_KEY:
            return f"{int(value)} reps"
        return f"{value:,.0f} {unit}"

    if category is Category.REP_SPECIFIC and exercise_type in (
        ExerciseType.BANDED_RESISTANCE,
        ExerciseType.BANDED_ASSISTANCE,
    ):
        return f"{int(value)} reps"

    return f"{format_weight(value)} {unit}"


def format_label(
    exercise_type: ExerciseType,
    category: Category,
    key: RecordKey = None,
    unit: str = "lbs",
) -> str:
    """Short label naming a (category, key) record."""
    if category is Category.ONE_RM:
        return "1RM"
    if category is Category.VOLUME:
        return "Total Distance" if exercise_type is ExerciseType.CARDIO else "Volume"
    if category is Category.ENDURANCE:
        return "Best Distance"
    if category is Category.TIME:
        return "Longest Hold"
    if category is Category.CONSISTENCY:
        return f"Min Hold ({key} sets)"
    if category is Category.DENSITY:
        return f"Sets @ {format_weight(float(key))} {unit}"
    if category is Category.HYPERTROPHY:
        return f"Best @ {format_weight(float(key))} {unit}"

    # rep_specific
    if exercise_type is ExerciseType.CARDIO:
        return format_rounds(int(key))
    if exercise_type is ExerciseType.STATIC_HOLD:
        return f"Hold @ {format_weight(float(key))} {unit}"
    if exercise_type in (ExerciseType.BANDED_RESISTANCE, ExerciseType.BANDED_ASSISTANCE):
        return f"Band: {str(key).title()}"
    return f"{key} Rep Max"


def format_value(
    category: Category,
    metrics: SessionMetrics,
    key: RecordKey = None,
    config: EngineConfig | None = None,
) -> str:
    """
    Display this session's value for a (category, key).

    Returns '-' when the session offers no value for it.
    """
    cfg = config or EngineConfig()
    for c in session_candidates(metrics.exercise_type, metrics, cfg):
        if c.category is category and (key is None or c.key == key or (
            c.match_weight and isinstance(key, (int, float))
            and abs(float(c.key) - float(key)) <= cfg.weight_tolerance
        )):
            return format_amount(metrics.exercise_type, category, c.value, c.key, cfg.weight_unit)
    return "-"
