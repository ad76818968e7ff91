"""
Current-best index and record history.

The store keeps an explicit map ``(user, exercise) -> {(category, key):
BestEntry}`` that is updated on every commit, so "what is the current best"
never depends on row order.  Each (user, exercise) pair has a lock that
serializes compare-then-write, and a version counter that makes commit a
compare-and-swap: a batch built against an older snapshot is rejected.
"""

from __future__ import annotations

import copy
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from .errors import StaleRecordError
from .models import Category, PersonalRecord, RecordKey, SessionResult

PairId = tuple[str, str]  # (user_id, exercise_id)
BestKey = tuple[Category, RecordKey]


@dataclass(frozen=True)
class BestEntry:
    """
    Current best for one (category, key).

    ``record_id`` is None for a baseline seeded from history that did not
    itself count as a PR (first density or hypertrophy observation).
    """

    value: float
    session_id: str
    record_id: str | None = None


@dataclass
class PairSnapshot:
    """Copy of one pair's bests at a given version."""

    version: int
    bests: dict[BestKey, BestEntry] = field(default_factory=dict)


@dataclass
class CommitBatch:
    """Everything one detection pass writes, applied all-or-nothing."""

    user_id: str
    exercise_id: str
    base_version: int
    result: SessionResult
    best_updates: dict[BestKey, BestEntry] = field(default_factory=dict)

    @property
    def records(self) -> list[PersonalRecord]:
        return self.result.created_records


class MemoryRecordStore:
    """In-memory record store; also the base for file-backed stores."""

    def __init__(self) -> None:
        self._pair_locks: dict[PairId, threading.Lock] = {}
        self._state_lock = threading.RLock()
        self._clear()

    def _clear(self) -> None:
        """Drop all bests, records and results."""
        with self._state_lock:
            self._bests: dict[PairId, dict[BestKey, BestEntry]] = {}
            self._versions: dict[PairId, int] = {}
            self._records: list[PersonalRecord] = []
            self._records_by_id: dict[str, PersonalRecord] = {}
            self._results: dict[str, SessionResult] = {}

    # -------------------------------------------------------------------------
    # Serialization point
    # -------------------------------------------------------------------------

    @contextmanager
    def lock(self, user_id: str, exercise_id: str) -> Iterator[None]:
        """Hold the compare-then-write lock for one (user, exercise) pair."""
        pair = (user_id, exercise_id)
        with self._state_lock:
            pair_lock = self._pair_locks.setdefault(pair, threading.Lock())
        with pair_lock:
            yield

    def snapshot(self, user_id: str, exercise_id: str) -> PairSnapshot:
        """Return a copy of the pair's bests and the version they belong to."""
        pair = (user_id, exercise_id)
        with self._state_lock:
            return PairSnapshot(
                version=self._versions.get(pair, 0),
                bests=dict(self._bests.get(pair, {})),
            )

    def commit(self, batch: CommitBatch) -> None:
        """
        Apply a batch if the pair is still at ``batch.base_version``.

        Raises:
            StaleRecordError: If the pair changed since the snapshot
        """
        pair = (batch.user_id, batch.exercise_id)
        with self._state_lock:
            current = self._versions.get(pair, 0)
            if current != batch.base_version:
                raise StaleRecordError(
                    f"Bests for {pair} moved from version {batch.base_version} to {current}"
                )
            self._persist(batch)
            self._apply(batch)

    def _persist(self, batch: CommitBatch) -> None:
        """Durably write a batch before it is applied.  No-op in memory."""

    def _apply(self, batch: CommitBatch) -> None:
        pair = (batch.user_id, batch.exercise_id)
        bests = self._bests.setdefault(pair, {})
        bests.update(batch.best_updates)
        self._versions[pair] = self._versions.get(pair, 0) + 1
        for record in batch.records:
            self._records.append(record)
            self._records_by_id[record.record_id] = record
        self._results[batch.result.session_id] = copy.deepcopy(batch.result)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_result(self, session_id: str) -> SessionResult | None:
        """Stored detection result for a session, or None if unprocessed."""
        with self._state_lock:
            result = self._results.get(session_id)
            return copy.deepcopy(result) if result is not None else None

    def get_record(self, record_id: str) -> PersonalRecord | None:
        return self._records_by_id.get(record_id)

    def all_records(self) -> list[PersonalRecord]:
        with self._state_lock:
            return list(self._records)

    def current_records(self, user_id: str, exercise_id: str) -> list[PersonalRecord]:
        """Records that are the current best for each (category, key) of a pair."""
        with self._state_lock:
            bests = self._bests.get((user_id, exercise_id), {})
            return [
                self._records_by_id[entry.record_id]
                for entry in bests.values()
                if entry.record_id is not None and entry.record_id in self._records_by_id
            ]

    def record_history(
        self,
        user_id: str,
        exercise_id: str,
        category: Category,
        key: RecordKey = None,
    ) -> list[PersonalRecord]:
        """
        Record chain for one (category, key), newest first.

        Follows ``previous_record_id`` from the current best.
        """
        with self._state_lock:
            entry = self._bests.get((user_id, exercise_id), {}).get((category, key))
            chain: list[PersonalRecord] = []
            record_id = entry.record_id if entry else None
            while record_id is not None:
                record = self._records_by_id.get(record_id)
                if record is None:
                    break
                chain.append(record)
                record_id = record.previous_record_id
            return chain

    def processed_session_ids(self) -> set[str]:
        with self._state_lock:
            return set(self._results)
