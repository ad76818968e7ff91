"""
Exercise recommendation scoring.

    score = BASE
          + MUSCLE_BALANCE_WEIGHT * muscle_need
          + ARCHETYPE_WEIGHT      * archetype_diversity
          + DIFFICULTY_WEIGHT     * difficulty_fit
    score *= RECENT_PENALTY   if the exercise was done in the window

muscle_need is the role-weighted mean of (1 - workload) over the
exercise's primary movers and synergists, so the less those muscles have
been trained the higher the score.  Exercises inside their recovery window
are dropped before scoring.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from .config import EngineConfig
from .models import Exercise, MuscleProfile, MuscleRole
from .workload import WorkloadSnapshot

logger = logging.getLogger(__name__)

_SCORED_ROLES = (MuscleRole.PRIMARY_MOVER.value, MuscleRole.SYNERGIST.value)


@dataclass
class Recommendation:
    """A ranked exercise with the reasons it was picked."""

    exercise: Exercise
    score: float
    reasoning: list[str] = field(default_factory=list)
    breakdown: dict[str, float | bool] = field(default_factory=dict)


def _pretty(muscle: str) -> str:
    return muscle.replace("_", " ")


def muscle_need_score(profile: MuscleProfile, snapshot: WorkloadSnapshot, config: EngineConfig) -> float:
    """
    Role-weighted mean of remaining capacity over primary movers and synergists.

    Returns 0.0 for a profile with no primary movers or synergists.
    """
    total_weight = 0.0
    need = 0.0
    for m in profile.muscles:
        if m.role not in _SCORED_ROLES:
            continue
        weight = config.role_weight(m.role)
        remaining = max(0.0, config.workload_cap - snapshot.workload_score(m.muscle)) / config.workload_cap
        need += weight * remaining
        total_weight += weight
    return need / total_weight if total_weight else 0.0


def archetype_diversity_score(archetype: str, snapshot: WorkloadSnapshot, config: EngineConfig) -> float:
    """1.0 for an under-represented archetype, reduced in proportion to overuse."""
    total = snapshot.total_archetype_sessions
    if total == 0:
        return 1.0
    share = snapshot.archetype_frequency(archetype) / total
    ideal = 1.0 / config.archetype_count
    if share <= ideal:
        return 1.0
    return max(0.0, 1.0 - (share - ideal) * config.overuse_penalty)


def difficulty_target(snapshot: WorkloadSnapshot, catalog: Mapping[str, Exercise], config: EngineConfig) -> float:
    """Mean difficulty of recently done exercises plus one half-step, capped."""
    levels = [
        catalog[eid].profile.difficulty_level
        for eid in snapshot.recent_exercise_ids
        if eid in catalog
        and catalog[eid].profile is not None
        and catalog[eid].profile.difficulty_level is not None
    ]
    if not levels:
        return config.default_difficulty_target
    return min(float(config.max_difficulty), sum(levels) / len(levels) + config.difficulty_step)


def difficulty_fit_score(level: int | None, target: float, config: EngineConfig) -> float:
    if level is None:
        level = config.default_difficulty_target
    return max(0.0, 1.0 - abs(level - target) * config.difficulty_falloff)


def build_reasoning(exercise: Exercise, snapshot: WorkloadSnapshot, config: EngineConfig) -> list[str]:
    """Human-readable reasons; always names the muscles addressed."""
    profile = exercise.profile
    reasons: list[str] = []

    underworked = [
        _pretty(m.muscle) for m in profile.muscles
        if m.role in _SCORED_ROLES and snapshot.workload_score(m.muscle) < config.underworked_threshold
    ]
    if underworked:
        reasons.append("Targets underworked muscles: " + ", ".join(underworked))

    frequency = snapshot.archetype_frequency(profile.archetype)
    if frequency == 0:
        reasons.append(f"Introduces new movement pattern: {profile.archetype}")
    elif frequency < config.archetype_variety_threshold:
        reasons.append(f"Adds variety to {profile.archetype} movements")

    if profile.difficulty_level is not None:
        reasons.append(f"Difficulty level: {profile.difficulty_level}/{config.max_difficulty}")

    reasons.append(f"Primary focus: {_pretty(profile.primary_mover)}")
    return reasons


def score_exercise(
    exercise: Exercise,
    snapshot: WorkloadSnapshot,
    target: float,
    config: EngineConfig,
) -> tuple[float, dict[str, float | bool]]:
    """
    Score one exercise.

    Returns:
        (score, breakdown) where breakdown lists every term
    """
    profile = exercise.profile
    need = muscle_need_score(profile, snapshot, config)
    diversity = archetype_diversity_score(profile.archetype, snapshot, config)
    fit = difficulty_fit_score(profile.difficulty_level, target, config)
    recent = snapshot.was_recently_performed(exercise.exercise_id)

    score = (
        config.base_score
        + config.muscle_balance_weight * need
        + config.archetype_weight * diversity
        + config.difficulty_weight * fit
    )
    penalty = config.recent_penalty if recent else 1.0
    score *= penalty

    breakdown: dict[str, float | bool] = {
        "base_score": config.base_score,
        "muscle_need": need,
        "weighted_muscle_score": config.muscle_balance_weight * need,
        "archetype_score": diversity,
        "weighted_archetype_score": config.archetype_weight * diversity,
        "difficulty_score": fit,
        "weighted_difficulty_score": config.difficulty_weight * fit,
        "recently_performed": recent,
        "recent_penalty": penalty,
    }
    return score, breakdown


def recommend(
    snapshot: WorkloadSnapshot,
    candidates: Iterable[Exercise],
    count: int = 5,
    config: EngineConfig | None = None,
    catalog: Mapping[str, Exercise] | None = None,
    only_performed: bool = False,
) -> list[Recommendation]:
    """
    Rank candidate exercises.

    Args:
        snapshot: Workload snapshot for the user
        candidates: Exercises visible to the user
        count: Maximum number of results
        config: Engine configuration
        catalog: Full catalog for difficulty lookups (defaults to candidates)
        only_performed: Restrict to exercises done inside the lookback window

    Returns:
        Recommendations sorted by score (desc), then exercise id
    """
    cfg = config or EngineConfig()
    pool = list(candidates)
    lookup = catalog if catalog is not None else {e.exercise_id: e for e in pool}
    target = difficulty_target(snapshot, lookup, cfg)

    ranked: list[Recommendation] = []
    for exercise in pool:
        if exercise.profile is None:
            continue
        if only_performed and not snapshot.was_recently_performed(exercise.exercise_id):
            continue
        if snapshot.in_recovery(exercise.exercise_id):
            logger.debug("Excluding %s: in recovery", exercise.exercise_id)
            continue

        score, breakdown = score_exercise(exercise, snapshot, target, cfg)
        ranked.append(
            Recommendation(
                exercise=exercise,
                score=score,
                reasoning=build_reasoning(exercise, snapshot, cfg),
                breakdown=breakdown,
            )
        )

    ranked.sort(key=lambda r: (-r.score, r.exercise.exercise_id))
    return ranked[: max(0, count)]
