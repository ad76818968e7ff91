"""
PR detection.

For every logged session the detector resolves the exercise's rules,
aggregates the sets, and compares each (category, key) value against the
current best.  Comparison and write happen under the pair lock and commit
as one batch, so a session either gets all of its records or none.

Usage:
    store = MemoryRecordStore()
    detector = PRDetector(catalog, store)
    result = detector.process(session)
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Collection, Iterable, Mapping
from dataclasses import replace

from .config import EngineConfig
from .errors import PRDetectionError, RecordConflictError, StaleRecordError
from .exercise_types import (
    Candidate,
    format_amount,
    format_label,
    resolve_exercise_type,
    session_candidates,
)
from .metrics import aggregate_session
from .models import (
    Category,
    CategoryTrace,
    Exercise,
    ExerciseType,
    PersonalRecord,
    Session,
    SessionResult,
)
from .records import BestEntry, BestKey, CommitBatch, MemoryRecordStore, PairSnapshot

logger = logging.getLogger(__name__)

# One retry against fresh bests, then give up
MAX_COMMIT_ATTEMPTS = 2

# Categories whose values add up when two weight buckets share one key
_ADDITIVE_CATEGORIES = frozenset({Category.DENSITY, Category.HYPERTROPHY})


def _new_record_id() -> str:
    return uuid.uuid4().hex[:16]


def _merge_candidates(first: Candidate, second: Candidate) -> Candidate:
    """Combine two candidates that resolved to the same stored key."""
    if first.category in _ADDITIVE_CATEGORIES:
        value = first.value + second.value
    else:
        value = max(first.value, second.value)
    return replace(
        first,
        value=value,
        seeds_baseline=first.seeds_baseline or second.seeds_baseline,
        observe_only=first.observe_only and second.observe_only,
    )


class PRDetector:
    """
    Detects and stores personal records for logged sessions.

    Args:
        catalog: exercise_id -> Exercise
        store: Record store holding current bests and results
        config: Engine configuration
    """

    def __init__(
        self,
        catalog: Mapping[str, Exercise],
        store: MemoryRecordStore,
        config: EngineConfig | None = None,
    ):
        self.catalog = catalog
        self.store = store
        self.config = config or EngineConfig()

    def exercise_type_for(self, exercise_id: str) -> ExerciseType:
        """Resolve the rule set for an exercise, degrading to regular."""
        exercise = self.catalog.get(exercise_id)
        if exercise is None:
            logger.warning("Exercise %r not in catalog; treating as regular", exercise_id)
            return ExerciseType.REGULAR
        return resolve_exercise_type(exercise.exercise_type)

    def process(self, session: Session) -> SessionResult:
        """
        Run detection for one session.

        A session that was already processed returns its stored result
        without comparing again.  A session with no sets returns an empty
        result.

        Raises:
            RecordConflictError: If the commit conflicts twice in a row
        """
        stored = self.store.get_result(session.session_id)
        if stored is not None:
            logger.debug("Session %s already processed; skipping", session.session_id)
            return stored

        if not session.sets:
            return SessionResult.empty(session.session_id)

        exercise_type = self.exercise_type_for(session.exercise_id)
        metrics = aggregate_session(exercise_type, session.sets, self.config)
        candidates = session_candidates(exercise_type, metrics, self.config)

        for attempt in range(1, MAX_COMMIT_ATTEMPTS + 1):
            with self.store.lock(session.user_id, session.exercise_id):
                stored = self.store.get_result(session.session_id)
                if stored is not None:
                    return stored

                snapshot = self.store.snapshot(session.user_id, session.exercise_id)
                batch = self._evaluate(session, exercise_type, candidates, snapshot)
                try:
                    self.store.commit(batch)
                except StaleRecordError as exc:
                    logger.warning(
                        "Stale bests for session %s (attempt %d/%d): %s",
                        session.session_id, attempt, MAX_COMMIT_ATTEMPTS, exc,
                    )
                    continue

            for record in batch.records:
                logger.info(
                    "PR: %s %s %s=%s (key=%s)",
                    session.user_id, session.exercise_id,
                    record.category.value, record.value, record.key,
                )
            return batch.result

        raise RecordConflictError(session.user_id, session.exercise_id, session.session_id)

    # -------------------------------------------------------------------------
    # Comparison
    # -------------------------------------------------------------------------

    def _canonical_key(self, candidate: Candidate, known: Collection[BestKey]) -> BestKey:
        """
        Map a candidate to the stored key it should be compared with.

        Weight keys match the closest known weight within tolerance; the
        stored weight stays the key so a bucket never drifts.
        """
        if not candidate.match_weight:
            return (candidate.category, candidate.key)

        weight = float(candidate.key)
        matches = [
            key for (category, key) in known
            if category is candidate.category
            and isinstance(key, float)
            and abs(key - weight) <= self.config.weight_tolerance
        ]
        if not matches:
            return (candidate.category, weight)
        return (candidate.category, min(matches, key=lambda k: abs(k - weight)))

    def _resolve_keys(
        self,
        candidates: list[Candidate],
        bests: Mapping[BestKey, BestEntry],
    ) -> list[tuple[BestKey, Candidate]]:
        """
        Pair each candidate with its stored key, merging candidates that
        land on the same key.

        Two buckets of one session can both sit within tolerance of a
        single stored weight; their set and rep counts are combined.
        """
        known = set(bests)
        resolved: dict[BestKey, Candidate] = {}
        for candidate in candidates:
            best_key = self._canonical_key(candidate, known)
            if best_key in resolved:
                resolved[best_key] = _merge_candidates(resolved[best_key], candidate)
            else:
                resolved[best_key] = candidate
                known.add(best_key)
        return list(resolved.items())

    def _evaluate(
        self,
        session: Session,
        exercise_type: ExerciseType,
        candidates: list[Candidate],
        snapshot: PairSnapshot,
    ) -> CommitBatch:
        unit = self.config.weight_unit
        working = dict(snapshot.bests)
        updates: dict[BestKey, BestEntry] = {}
        result = SessionResult(session_id=session.session_id)

        for best_key, candidate in self._resolve_keys(candidates, working):
            category, key = best_key
            best = working.get(best_key)
            label = format_label(exercise_type, category, key, unit)
            shown = format_amount(exercise_type, category, candidate.value, key, unit)

            if best is None and (candidate.seeds_baseline or candidate.observe_only):
                entry = BestEntry(value=candidate.value, session_id=session.session_id)
                working[best_key] = updates[best_key] = entry
                result.trace.append(
                    CategoryTrace(category, key, candidate.value, False, f"Baseline set for {label}: {shown}")
                )
                continue

            if best is not None and candidate.observe_only:
                # Lighter buckets keep the baseline current but never set a PR
                if candidate.value > best.value:
                    entry = BestEntry(value=candidate.value, session_id=session.session_id)
                    working[best_key] = updates[best_key] = entry
                    reason = (
                        f"Baseline for {label} raised to {shown}; PRs are only "
                        f"counted at the heaviest weight of a session"
                    )
                else:
                    reason = f"{label} is only tracked at the heaviest weight of a session"
                result.trace.append(CategoryTrace(category, key, candidate.value, False, reason))
                continue

            if best is not None and candidate.value <= best.value:
                previous = format_amount(exercise_type, category, best.value, key, unit)
                reason = (
                    f"Current {label} ({shown}) did not exceed previous best "
                    f"({previous} from session {best.session_id})"
                )
                result.trace.append(CategoryTrace(category, key, candidate.value, False, reason))
                continue

            record = PersonalRecord(
                record_id=_new_record_id(),
                user_id=session.user_id,
                exercise_id=session.exercise_id,
                category=category,
                value=candidate.value,
                key=key,
                source_session_id=session.session_id,
                achieved_at=session.performed_at,
                previous_record_id=best.record_id if best else None,
                previous_value=best.value if best else None,
            )
            if best is None:
                reason = f"First recorded {label}: {shown}"
            else:
                previous = format_amount(exercise_type, category, best.value, key, unit)
                reason = f"New {label}: {shown} (previous: {previous} from session {best.session_id})"

            entry = BestEntry(value=candidate.value, session_id=session.session_id, record_id=record.record_id)
            working[best_key] = updates[best_key] = entry
            result.created_records.append(record)
            result.trace.append(CategoryTrace(category, key, candidate.value, True, reason))

        result.pr_count = len(result.created_records)
        result.is_pr = result.pr_count > 0

        return CommitBatch(
            user_id=session.user_id,
            exercise_id=session.exercise_id,
            base_version=snapshot.version,
            result=result,
            best_updates=updates,
        )


def detect_safely(detector: PRDetector, session: Session) -> SessionResult | None:
    """
    Run detection without letting a PR failure escape.

    Returns None when PR attribution had to be skipped; the session itself
    is unaffected.
    """
    try:
        return detector.process(session)
    except PRDetectionError as exc:
        logger.warning("PR detection skipped for session %s: %s", session.session_id, exc)
        return None


def replay_history(
    sessions: Iterable[Session],
    catalog: Mapping[str, Exercise],
    config: EngineConfig | None = None,
    store: MemoryRecordStore | None = None,
) -> MemoryRecordStore:
    """
    Rebuild records by replaying sessions in chronological order.

    Args:
        sessions: Sessions of any users and exercises
        catalog: exercise_id -> Exercise
        config: Engine configuration
        store: Empty store to fill (a fresh in-memory store by default)

    Returns:
        The store holding every record the history produces
    """
    target = store if store is not None else MemoryRecordStore()
    detector = PRDetector(catalog, target, config)
    for session in sorted(sessions, key=lambda s: (s.performed_at, s.session_id)):
        detector.process(session)
    return target


def pr_session_ids(
    sessions: Iterable[Session],
    catalog: Mapping[str, Exercise],
    config: EngineConfig | None = None,
) -> set[str]:
    """Ids of sessions that set at least one PR when history is replayed."""
    sessions = list(sessions)
    store = replay_history(sessions, catalog, config)
    ids: set[str] = set()
    for session in sessions:
        result = store.get_result(session.session_id)
        if result is not None and result.is_pr:
            ids.add(session.session_id)
    return ids
