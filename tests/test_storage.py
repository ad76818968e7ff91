"""
Tests for sets-string parsing, the JSONL history file and the JSONL record store.
"""

import logging
from datetime import datetime, timedelta

import pytest

from pr_tracker.core.detection import PRDetector
from pr_tracker.core.errors import PRDetectionError, RecordStoreError, StaleRecordError
from pr_tracker.core.models import Category, Exercise, Session, SessionResult, SetEntry
from pr_tracker.core.records import CommitBatch
from pr_tracker.io.history_store import HistoryStore
from pr_tracker.io.record_store import JsonlRecordStore, install_records
from pr_tracker.io.serializers import (
    ValidationError,
    json_line_to_session,
    parse_sets_string,
    session_to_json_line,
    validate_datetime,
)

T0 = datetime(2026, 3, 2, 18, 0)

CATALOG = {"bench": Exercise("bench", "Bench Press", "regular")}


def _session(sid: str, sets: list[SetEntry], days: int = 0, exercise_id: str = "bench") -> Session:
    return Session(
        session_id=sid,
        user_id="u1",
        exercise_id=exercise_id,
        performed_at=T0 + timedelta(days=days),
        sets=tuple(sets),
    )


# =============================================================================
# Sets string
# =============================================================================


class TestParseSetsString:
    def test_reps_at_weight(self):
        assert parse_sets_string("8@225, 6@235") == [
            SetEntry(weight=225.0, reps=8),
            SetEntry(weight=235.0, reps=6),
        ]

    def test_bare_reps(self):
        assert parse_sets_string("10,8") == [SetEntry(reps=10), SetEntry(reps=8)]

    def test_repeated_sets(self):
        sets = parse_sets_string("5x3@135")
        assert len(sets) == 3
        assert all(s == SetEntry(weight=135.0, reps=5) for s in sets)

    def test_holds(self):
        assert parse_sets_string("30s, 45s@25") == [
            SetEntry(duration=30),
            SetEntry(weight=25.0, duration=45),
        ]

    def test_band(self):
        assert parse_sets_string("12#Red") == [SetEntry(reps=12, band_color="red")]

    @pytest.mark.parametrize("bad", ["", "   ", "abc", "8@", "5x0@100", ",,"])
    def test_invalid(self, bad):
        with pytest.raises(ValidationError):
            parse_sets_string(bad)


class TestSerializers:
    def test_session_line_round_trip(self):
        session = Session(
            session_id="s1",
            user_id="u1",
            exercise_id="plank",
            performed_at=T0,
            sets=(SetEntry(duration=30), SetEntry(weight=10.0, duration=20)),
            logged_by="coach",
            synthetic=True,
        )
        assert json_line_to_session(session_to_json_line(session)) == session

    def test_bad_json(self):
        with pytest.raises(ValidationError, match="Invalid JSON"):
            json_line_to_session("{not json")

    def test_missing_field(self):
        with pytest.raises(ValidationError, match="session_id"):
            json_line_to_session('{"user_id": "u1"}')

    def test_datetime_formats(self):
        assert validate_datetime("2026-03-02") == datetime(2026, 3, 2)
        assert validate_datetime("2026-03-02T18:00") == T0
        with pytest.raises(ValidationError):
            validate_datetime("03/02/2026")


# =============================================================================
# History store
# =============================================================================


class TestHistoryStore:
    @pytest.fixture
    def store(self, tmp_path):
        s = HistoryStore(tmp_path / "history.jsonl")
        s.init()
        return s

    def test_missing_file(self, tmp_path):
        store = HistoryStore(tmp_path / "nope.jsonl")
        assert store.exists() is False
        with pytest.raises(FileNotFoundError, match="init"):
            store.load_history()

    def test_records_file_sits_next_to_history(self, store, tmp_path):
        assert store.records_path == tmp_path / "records.jsonl"

    def test_append_keeps_chronological_order(self, store):
        store.append_session(_session("late", [SetEntry(reps=5, weight=100)], days=2))
        store.append_session(_session("early", [SetEntry(reps=5, weight=100)], days=0))
        store.append_session(_session("mid", [SetEntry(reps=5, weight=100)], days=1))

        assert [s.session_id for s in store.load_history()] == ["early", "mid", "late"]

    def test_duplicate_id_rejected(self, store):
        store.append_session(_session("s1", [SetEntry(reps=5)]))
        with pytest.raises(ValidationError, match="already logged"):
            store.append_session(_session("s1", [SetEntry(reps=6)], days=1))

    def test_lookups(self, store):
        store.append_session(_session("s1", [SetEntry(reps=5)]))
        store.append_session(_session("s2", [SetEntry(reps=5)], days=1, exercise_id="squat"))

        assert store.get_session("s2").exercise_id == "squat"
        assert store.get_session("zzz") is None
        assert [s.session_id for s in store.sessions_for("u1", "bench")] == ["s1"]
        assert len(store.sessions_for("u1")) == 2
        assert store.sessions_for("u2") == []

    def test_corrupt_line_reports_line_number(self, store):
        store.append_session(_session("s1", [SetEntry(reps=5)]))
        with open(store.history_path, "a", encoding="utf-8") as f:
            f.write("garbage\n")
        with pytest.raises(ValidationError, match="line 2"):
            store.load_history()


# =============================================================================
# Record store
# =============================================================================


class TestJsonlRecordStore:
    def test_records_survive_reopen(self, tmp_path):
        path = tmp_path / "records.jsonl"
        first = JsonlRecordStore(path)
        PRDetector(CATALOG, first).process(_session("s1", [SetEntry(reps=5, weight=200)]))

        reopened = JsonlRecordStore(path)
        assert reopened.processed_session_ids() == {"s1"}
        assert sorted(r.record_id for r in reopened.all_records()) == sorted(
            r.record_id for r in first.all_records()
        )
        assert reopened.get_result("s1").is_pr is True

    def test_detection_continues_from_reloaded_bests(self, tmp_path):
        path = tmp_path / "records.jsonl"
        PRDetector(CATALOG, JsonlRecordStore(path)).process(_session("s1", [SetEntry(reps=5, weight=200)]))

        store = JsonlRecordStore(path)
        result = PRDetector(CATALOG, store).process(_session("s2", [SetEntry(reps=5, weight=210)], days=1))

        one_rm = next(r for r in result.created_records if r.category is Category.ONE_RM)
        assert one_rm.previous_value == pytest.approx(200 * (1 + 0.0333 * 5))
        assert one_rm.previous_record_id is not None
        assert len(store.record_history("u1", "bench", Category.ONE_RM)) == 2

    def test_reprocessing_after_reopen_writes_nothing(self, tmp_path):
        path = tmp_path / "records.jsonl"
        session = _session("s1", [SetEntry(reps=5, weight=200)])
        PRDetector(CATALOG, JsonlRecordStore(path)).process(session)
        size = path.stat().st_size

        result = PRDetector(CATALOG, JsonlRecordStore(path)).process(session)
        assert result.is_pr is True
        assert path.stat().st_size == size

    def test_reset(self, tmp_path):
        path = tmp_path / "records.jsonl"
        store = JsonlRecordStore(path)
        PRDetector(CATALOG, store).process(_session("s1", [SetEntry(reps=5, weight=200)]))

        store.reset()
        assert not path.exists()
        assert store.all_records() == []
        assert store.get_result("s1") is None

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "records.jsonl"
        path.write_text("{broken\n", encoding="utf-8")
        with pytest.raises(RecordStoreError, match="line 1"):
            JsonlRecordStore(path)

    def test_unreadable_path_is_a_store_error(self, tmp_path):
        path = tmp_path / "records.jsonl"
        path.mkdir()
        with pytest.raises(RecordStoreError):
            JsonlRecordStore(path)
        assert issubclass(RecordStoreError, PRDetectionError)


# =============================================================================
# Several stores on one file
# =============================================================================


class TestSharedRecordFile:
    """Two store instances (two processes in practice) writing one file."""

    def test_second_writer_sees_first_writers_best(self, tmp_path):
        path = tmp_path / "records.jsonl"
        first = JsonlRecordStore(path)
        second = JsonlRecordStore(path)

        PRDetector(CATALOG, first).process(_session("s1", [SetEntry(reps=10, weight=100)]))
        result = PRDetector(CATALOG, second).process(_session("s2", [SetEntry(reps=5, weight=100)], days=1))

        assert [r for r in result.created_records if r.category is Category.VOLUME] == []
        reopened = JsonlRecordStore(path)
        volume = [r for r in reopened.current_records("u1", "bench") if r.category is Category.VOLUME]
        assert [r.value for r in volume] == [1000]
        assert [r.source_session_id for r in volume] == ["s1"]

    def test_commit_built_on_old_version_is_rejected(self, tmp_path):
        path = tmp_path / "records.jsonl"
        first = JsonlRecordStore(path)
        second = JsonlRecordStore(path)
        base = second.snapshot("u1", "bench").version

        PRDetector(CATALOG, first).process(_session("s1", [SetEntry(reps=5, weight=200)]))
        batch = CommitBatch(
            user_id="u1",
            exercise_id="bench",
            base_version=base,
            result=SessionResult(session_id="s2"),
        )
        with pytest.raises(StaleRecordError):
            second.commit(batch)

        assert len(path.read_text(encoding="utf-8").splitlines()) == 1
        assert second.processed_session_ids() == {"s1"}

    def test_stale_line_is_skipped_on_load(self, tmp_path, caplog):
        a, b = tmp_path / "a.jsonl", tmp_path / "b.jsonl"
        PRDetector(CATALOG, JsonlRecordStore(a)).process(_session("s1", [SetEntry(reps=10, weight=100)]))
        PRDetector(CATALOG, JsonlRecordStore(b)).process(_session("s2", [SetEntry(reps=5, weight=100)], days=1))

        # Both lines were built on version 0 of the same pair
        merged = tmp_path / "records.jsonl"
        merged.write_text(a.read_text(encoding="utf-8") + b.read_text(encoding="utf-8"), encoding="utf-8")

        with caplog.at_level(logging.WARNING, logger="pr_tracker.io.record_store"):
            store = JsonlRecordStore(merged)
        assert store.processed_session_ids() == {"s1"}
        assert "Skipping stale batch for session s2" in caplog.text

    def test_replaced_file_is_reloaded(self, tmp_path):
        path = tmp_path / "records.jsonl"
        store = JsonlRecordStore(path)
        PRDetector(CATALOG, store).process(_session("s1", [SetEntry(reps=5, weight=200)]))

        other = tmp_path / "other.jsonl"
        PRDetector(CATALOG, JsonlRecordStore(other)).process(_session("s9", [SetEntry(reps=3, weight=100)]))
        other.replace(path)

        result = PRDetector(CATALOG, store).process(_session("s2", [SetEntry(reps=5, weight=150)], days=1))
        assert store.processed_session_ids() == {"s9", "s2"}
        assert result.is_pr is True


class TestInstallRecords:
    def test_replaces_corrupt_target(self, tmp_path):
        target = tmp_path / "records.jsonl"
        target.write_text("{broken\n", encoding="utf-8")
        staging = JsonlRecordStore(tmp_path / "records.jsonl.rebuild")
        PRDetector(CATALOG, staging).process(_session("s1", [SetEntry(reps=5, weight=200)]))

        installed = install_records(staging, target)

        assert installed.processed_session_ids() == {"s1"}
        assert not staging.records_path.exists()
        assert JsonlRecordStore(target).processed_session_ids() == {"s1"}

    def test_empty_source_clears_target(self, tmp_path):
        target = tmp_path / "records.jsonl"
        PRDetector(CATALOG, JsonlRecordStore(target)).process(_session("s1", [SetEntry(reps=5, weight=200)]))

        installed = install_records(JsonlRecordStore(tmp_path / "empty.jsonl"), target)

        assert not target.exists()
        assert installed.all_records() == []
