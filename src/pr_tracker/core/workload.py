"""
Muscle workload analysis.

Replays the sessions inside the lookback window through each exercise's
muscle profile.  Every session adds, for each muscle it involves,

    contribution = min(1, sets / FULL_INTENSITY_SETS)
                   * max(MIN_RECENCY, 1 - days_ago / LOOKBACK_DAYS)
                   * role_weight

and a muscle's total is capped at WORKLOAD_CAP.  The result is a read-only
snapshot; analysing the same history twice gives the same snapshot.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from .config import EngineConfig
from .models import Exercise, Session

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkloadSnapshot:
    """Per-muscle workload, archetype frequency and recovery state."""

    analysis_time: datetime
    muscle_workload: dict[str, float] = field(default_factory=dict)
    archetype_counts: dict[str, int] = field(default_factory=dict)
    last_performed: dict[str, datetime] = field(default_factory=dict)
    recovery_hours: dict[str, float] = field(default_factory=dict)
    muscle_last_worked: dict[str, datetime] = field(default_factory=dict)
    session_count: int = 0

    def workload_score(self, muscle: str) -> float:
        """Accumulated workload for a muscle (0.0 if never trained)."""
        return self.muscle_workload.get(muscle, 0.0)

    def archetype_frequency(self, archetype: str) -> int:
        """Number of sessions in the window for a movement archetype."""
        return self.archetype_counts.get(archetype, 0)

    def in_recovery(self, exercise_id: str) -> bool:
        """
        True while the exercise is inside its recovery window.

        The window is open at its end: exactly ``recovery_hours`` after the
        last session the exercise is available again.
        """
        last = self.last_performed.get(exercise_id)
        if last is None:
            return False
        elapsed = self.analysis_time - last
        return elapsed < timedelta(hours=self.recovery_hours.get(exercise_id, 0.0))

    def was_recently_performed(self, exercise_id: str) -> bool:
        """True if the exercise was done inside the lookback window."""
        return exercise_id in self.last_performed

    @property
    def total_archetype_sessions(self) -> int:
        return sum(self.archetype_counts.values())

    @property
    def recent_exercise_ids(self) -> list[str]:
        """Exercises done in the window, most recent first."""
        return sorted(self.last_performed, key=lambda eid: self.last_performed[eid], reverse=True)

    @property
    def days_since_last_workout(self) -> int | None:
        if not self.last_performed:
            return None
        return (self.analysis_time - max(self.last_performed.values())).days

    def days_since_muscle_worked(self, muscle: str) -> int | None:
        last = self.muscle_last_worked.get(muscle)
        if last is None:
            return None
        return (self.analysis_time - last).days


def is_countable(session: Session, config: EngineConfig) -> bool:
    """Synthetic sessions and sessions logged by admin accounts never count."""
    if session.synthetic:
        return False
    return session.logged_by not in config.admin_accounts


def analyze_workload(
    sessions: Iterable[Session],
    catalog: Mapping[str, Exercise],
    now: datetime | None = None,
    config: EngineConfig | None = None,
    user_id: str | None = None,
) -> WorkloadSnapshot:
    """
    Build a workload snapshot from session history.

    Args:
        sessions: Session history (any order)
        catalog: exercise_id -> Exercise, for muscle profiles
        now: Analysis time (default: current time)
        config: Engine configuration
        user_id: Only count this user's sessions when given

    Returns:
        WorkloadSnapshot for the lookback window ending at ``now``
    """
    cfg = config or EngineConfig()
    now = now or datetime.now()
    window_start = now - timedelta(days=cfg.lookback_days)

    window = sorted(
        (
            s for s in sessions
            if (user_id is None or s.user_id == user_id)
            and window_start <= s.performed_at <= now
            and is_countable(s, cfg)
        ),
        key=lambda s: s.performed_at,
    )

    workload: dict[str, float] = {}
    archetypes: dict[str, int] = {}
    last_performed: dict[str, datetime] = {}
    recovery: dict[str, float] = {}
    muscle_last: dict[str, datetime] = {}

    for session in window:
        last_performed[session.exercise_id] = session.performed_at

        exercise = catalog.get(session.exercise_id)
        profile = exercise.profile if exercise else None
        if profile is None:
            recovery[session.exercise_id] = cfg.default_recovery_hours
            continue

        recovery[session.exercise_id] = (
            profile.recovery_hours if profile.recovery_hours is not None
            else cfg.default_recovery_hours
        )
        archetypes[profile.archetype] = archetypes.get(profile.archetype, 0) + 1

        days_ago = (now - session.performed_at).days
        intensity = min(1.0, len(session.sets) / cfg.full_intensity_sets)
        recency = max(cfg.min_recency_factor, 1.0 - days_ago / cfg.lookback_days)

        for involvement in profile.muscles:
            contribution = intensity * recency * cfg.role_weight(involvement.role)
            workload[involvement.muscle] = min(
                cfg.workload_cap, workload.get(involvement.muscle, 0.0) + contribution
            )
            muscle_last[involvement.muscle] = session.performed_at

    logger.debug(
        "Workload over %d sessions: %d muscles, %d archetypes",
        len(window), len(workload), len(archetypes),
    )

    return WorkloadSnapshot(
        analysis_time=now,
        muscle_workload=workload,
        archetype_counts=archetypes,
        last_performed=last_performed,
        recovery_hours=recovery,
        muscle_last_worked=muscle_last,
        session_count=len(window),
    )
