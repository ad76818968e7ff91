"""
JSONL-backed record store.

Every committed detection batch is appended as one JSON line before it is
applied in memory, so a batch is either fully on disk or absent.  Opening
the store replays the file to rebuild the current-best index.

Several processes may share one file.  Compare-then-write holds an
exclusive ``flock`` on a sidecar lock file and first applies any batches
other writers appended, so each batch is built against the latest bests.
Every line carries the pair version it was built on; a line whose version
no longer matches on replay is skipped.
"""

import fcntl
import json
import logging
import os
import threading
from collections.abc import Iterator
from contextlib import ExitStack, contextmanager
from pathlib import Path
from typing import Any

from ..core.errors import RecordStoreError
from ..core.models import SessionResult
from ..core.records import BestEntry, CommitBatch, MemoryRecordStore
from .serializers import ValidationError, dict_to_session_result, session_result_to_dict, validate_category

logger = logging.getLogger(__name__)


def lock_path_for(records_path: Path) -> Path:
    """Sidecar lock file next to a records file."""
    return records_path.with_name(f".{records_path.name}.lock")


@contextmanager
def _file_lock(records_path: Path) -> Iterator[None]:
    """Exclusive cross-process lock on a records file."""
    lock_path = lock_path_for(records_path)
    try:
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        fh = open(lock_path, "a", encoding="utf-8")
    except OSError as e:
        raise RecordStoreError(f"Cannot lock {records_path}: {e}") from e
    with fh:
        fcntl.flock(fh, fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(fh, fcntl.LOCK_UN)


def _batch_to_dict(batch: CommitBatch) -> dict[str, Any]:
    return {
        "user_id": batch.user_id,
        "exercise_id": batch.exercise_id,
        "base_version": batch.base_version,
        "result": session_result_to_dict(batch.result),
        "bests": [
            {
                "category": category.value,
                "key": key,
                "value": entry.value,
                "session_id": entry.session_id,
                "record_id": entry.record_id,
            }
            for (category, key), entry in batch.best_updates.items()
        ],
    }


def _dict_to_batch(data: dict[str, Any]) -> CommitBatch:
    result: SessionResult = dict_to_session_result(data["result"])
    updates = {
        (validate_category(b["category"]), b.get("key")): BestEntry(
            value=float(b["value"]),
            session_id=str(b["session_id"]),
            record_id=b.get("record_id"),
        )
        for b in data.get("bests", [])
    }
    return CommitBatch(
        user_id=str(data["user_id"]),
        exercise_id=str(data["exercise_id"]),
        base_version=int(data.get("base_version", 0)),
        result=result,
        best_updates=updates,
    )


class JsonlRecordStore(MemoryRecordStore):
    """
    Record store persisted to a JSONL file of commit batches.

    Raises:
        RecordStoreError: If the file cannot be read, parsed or written
    """

    def __init__(self, records_path: str | Path):
        self.records_path = Path(records_path)
        self._file_guard = threading.RLock()
        self._lock_stack: ExitStack | None = None
        self._lock_depth = 0
        self._offset = 0
        self._line_num = 0
        self._file_id: tuple[int, int] | None = None
        super().__init__()
        self._refresh()

    # -------------------------------------------------------------------------
    # Cross-process serialization
    # -------------------------------------------------------------------------

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        """Hold the file lock; reentrant within a thread."""
        with self._file_guard:
            if self._lock_depth == 0:
                stack = ExitStack()
                stack.enter_context(_file_lock(self.records_path))
                self._lock_stack = stack
            self._lock_depth += 1
            try:
                yield
            finally:
                self._lock_depth -= 1
                if self._lock_depth == 0:
                    self._lock_stack.close()
                    self._lock_stack = None

    @contextmanager
    def lock(self, user_id: str, exercise_id: str) -> Iterator[None]:
        """Pair lock plus file lock, with batches from other writers applied."""
        with super().lock(user_id, exercise_id), self._exclusive():
            self._refresh()
            yield

    def commit(self, batch: CommitBatch) -> None:
        """
        Append and apply a batch if the pair is still at ``batch.base_version``
        on disk.

        Raises:
            StaleRecordError: If any writer moved the pair since the snapshot
            RecordStoreError: If the file cannot be read or written
        """
        with self._exclusive():
            self._refresh()
            super().commit(batch)

    # -------------------------------------------------------------------------
    # File access
    # -------------------------------------------------------------------------

    def _reset_position(self) -> None:
        self._clear()
        self._offset = 0
        self._line_num = 0
        self._file_id = None

    def _refresh(self) -> None:
        """Apply complete lines appended to the file since it was last read."""
        try:
            with open(self.records_path, "rb") as f:
                stat = os.fstat(f.fileno())
                file_id = (stat.st_dev, stat.st_ino)
                if file_id != self._file_id or stat.st_size < self._offset:
                    # New or replaced file: replay it from the start
                    self._reset_position()
                    self._file_id = file_id
                f.seek(self._offset)
                data = f.read()
        except FileNotFoundError:
            if self._file_id is not None:
                self._reset_position()
            return
        except OSError as e:
            raise RecordStoreError(f"Cannot read {self.records_path}: {e}") from e

        complete = data.rfind(b"\n") + 1
        with self._state_lock:
            for raw in data[:complete].splitlines():
                self._line_num += 1
                line = raw.strip()
                if not line:
                    continue
                try:
                    batch = _dict_to_batch(json.loads(line.decode("utf-8")))
                except (KeyError, TypeError, ValueError, ValidationError) as e:
                    raise RecordStoreError(
                        f"Error parsing line {self._line_num} in {self.records_path}: {e}"
                    ) from e
                self._replay(batch)
        self._offset += complete

    def _replay(self, batch: CommitBatch) -> None:
        pair = (batch.user_id, batch.exercise_id)
        current = self._versions.get(pair, 0)
        if batch.base_version != current:
            logger.warning(
                "Skipping stale batch for session %s in %s (built on version %d, now %d)",
                batch.result.session_id, self.records_path, batch.base_version, current,
            )
            return
        self._apply(batch)

    def _persist(self, batch: CommitBatch) -> None:
        line = json.dumps(_batch_to_dict(batch), separators=(",", ":")) + "\n"
        try:
            self.records_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.records_path, "ab") as f:
                f.write(line.encode("utf-8"))
                end = f.tell()
                stat = os.fstat(f.fileno())
        except OSError as e:
            raise RecordStoreError(f"Cannot write {self.records_path}: {e}") from e
        self._offset = end
        self._line_num += 1
        self._file_id = (stat.st_dev, stat.st_ino)

    # -------------------------------------------------------------------------
    # Whole-file operations
    # -------------------------------------------------------------------------

    def reset(self) -> None:
        """Delete all records (file and memory)."""
        with self._exclusive():
            try:
                self.records_path.unlink(missing_ok=True)
            except OSError as e:
                raise RecordStoreError(f"Cannot delete {self.records_path}: {e}") from e
            self._reset_position()


def install_records(source: JsonlRecordStore, records_path: str | Path) -> JsonlRecordStore:
    """
    Move a fully built store's file to ``records_path`` and open it there.

    The old file is never read, so a corrupt one can still be replaced.
    The move is a rename under the target's lock: readers see either the
    old or the new file.
    """
    records_path = Path(records_path)
    with _file_lock(records_path):
        try:
            if source.records_path.exists():
                source.records_path.replace(records_path)
            else:
                # Source never committed anything: no records
                records_path.unlink(missing_ok=True)
        except OSError as e:
            raise RecordStoreError(f"Cannot replace {records_path}: {e}") from e
    lock_path_for(source.records_path).unlink(missing_ok=True)
    return JsonlRecordStore(records_path)
