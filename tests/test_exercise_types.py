"""
Tests for per-type record rules and session aggregation.

The applicability table is checked cell by cell; aggregation values are
hand-computed from the sets.
"""

import logging

import pytest

from pr_tracker.core.config import EngineConfig
from pr_tracker.core.exercise_types import (
    TYPE_RULES,
    applicable_categories,
    format_amount,
    format_distance,
    format_hold,
    format_label,
    format_rounds,
    format_value,
    resolve_exercise_type,
    session_candidates,
)
from pr_tracker.core.metrics import aggregate_session, epley_one_rm
from pr_tracker.core.models import Category, ExerciseType, SetEntry

C = Category
T = ExerciseType


def _set(reps: int = 0, weight: float = 0.0, duration: int | None = None, band: str | None = None) -> SetEntry:
    return SetEntry(weight=weight, reps=reps, duration=duration, band_color=band)


# =============================================================================
# Applicability table
# =============================================================================


class TestApplicability:
    """Which categories each type tracks, with and without added load."""

    @pytest.mark.parametrize(
        "exercise_type, sets, expected",
        [
            (T.REGULAR, [_set(5, 100)],
             {C.ONE_RM, C.VOLUME, C.REP_SPECIFIC, C.DENSITY, C.HYPERTROPHY}),
            (T.BODYWEIGHT, [_set(10)], {C.VOLUME}),
            (T.BODYWEIGHT, [_set(10, 25)], {C.VOLUME, C.REP_SPECIFIC}),
            (T.BANDED_RESISTANCE, [_set(12, band="red")], {C.VOLUME, C.REP_SPECIFIC}),
            (T.BANDED_ASSISTANCE, [_set(12, band="red")], {C.VOLUME, C.REP_SPECIFIC}),
            (T.CARDIO, [_set(500)], {C.VOLUME, C.REP_SPECIFIC, C.ENDURANCE}),
            (T.STATIC_HOLD, [_set(duration=30)], {C.CONSISTENCY, C.TIME}),
            (T.STATIC_HOLD, [_set(duration=30, weight=25)], {C.REP_SPECIFIC, C.CONSISTENCY, C.TIME}),
        ],
    )
    def test_table(self, exercise_type, sets, expected):
        metrics = aggregate_session(exercise_type, sets)
        assert applicable_categories(exercise_type, metrics) == expected

    def test_every_type_has_rules(self):
        assert set(TYPE_RULES) == set(ExerciseType)

    def test_without_metrics_uses_unloaded_branch(self):
        assert applicable_categories(T.BODYWEIGHT) == {C.VOLUME}

    def test_branch_is_chosen_per_session(self):
        """One set with weight is enough to switch a session to the loaded rules."""
        metrics = aggregate_session(T.BODYWEIGHT, [_set(10), _set(8, 10)])
        assert C.REP_SPECIFIC in applicable_categories(T.BODYWEIGHT, metrics)

    def test_candidates_stay_inside_applicable_categories(self):
        sets = [_set(5, 100)] * 3
        for exercise_type in ExerciseType:
            metrics = aggregate_session(exercise_type, sets)
            allowed = applicable_categories(exercise_type, metrics)
            assert {c.category for c in session_candidates(exercise_type, metrics)} <= allowed


# =============================================================================
# Type resolution
# =============================================================================


class TestResolveExerciseType:
    def test_known_values(self):
        assert resolve_exercise_type("cardio") is T.CARDIO
        assert resolve_exercise_type(" Static_Hold ") is T.STATIC_HOLD
        assert resolve_exercise_type(T.BODYWEIGHT) is T.BODYWEIGHT

    def test_legacy_banded(self):
        assert resolve_exercise_type("banded") is T.BANDED_RESISTANCE

    @pytest.mark.parametrize("raw", [None, "", "juggling", 42])
    def test_bad_values_fall_back_to_regular(self, raw, caplog):
        with caplog.at_level(logging.WARNING):
            assert resolve_exercise_type(raw) is T.REGULAR
        assert "treating as regular" in caplog.text


# =============================================================================
# Aggregation
# =============================================================================


class TestAggregateSession:
    def test_epley(self):
        assert epley_one_rm(100, 1) == 100
        assert epley_one_rm(100, 10) == pytest.approx(133.3)
        assert epley_one_rm(0, 10) == 0.0
        assert epley_one_rm(100, 0) == 0.0

    def test_weighted_session(self):
        sets = [_set(5, 200), _set(5, 200), _set(3, 220)]
        m = aggregate_session(T.REGULAR, sets)

        assert m.set_count == 3
        assert m.total_reps == 13
        assert m.volume == pytest.approx(200 * 5 * 2 + 220 * 3)
        assert m.is_loaded is True
        assert m.heaviest_weight == 220
        assert m.best_one_rm == pytest.approx(220 * (1 + 0.0333 * 3))
        assert m.best_weight_by_reps == {5: 200, 3: 220}

    def test_pure_bodyweight_volume_is_total_reps(self):
        m = aggregate_session(T.BODYWEIGHT, [_set(10), _set(8), _set(6)])
        assert m.is_loaded is False
        assert m.volume == 24

    def test_mixed_load_volume_counts_only_weight_times_reps(self):
        m = aggregate_session(T.BODYWEIGHT, [_set(10), _set(8, 20)])
        assert m.is_loaded is True
        assert m.volume == 160

    def test_weight_buckets_within_tolerance(self):
        sets = [_set(5, 100), _set(5, 100.5), _set(5, 101.0), _set(5, 150)]
        m = aggregate_session(T.REGULAR, sets)

        buckets = {b.weight: (b.set_count, b.total_reps) for b in m.weight_buckets}
        assert buckets == {100: (2, 10), 101.0: (1, 5), 150: (1, 5)}
        assert m.heaviest_bucket.weight == 150

    def test_tolerance_comes_from_config(self):
        sets = [_set(5, 100), _set(5, 101.0)]
        m = aggregate_session(T.REGULAR, sets, EngineConfig(weight_tolerance=2.0))
        assert len(m.weight_buckets) == 1

    def test_holds(self):
        m = aggregate_session(T.STATIC_HOLD, [_set(duration=s) for s in (15, 12, 10, 14, 13)])
        assert m.min_hold == 10
        assert m.max_hold == 15
        assert m.set_count == 5

    def test_cardio_distances(self):
        m = aggregate_session(T.CARDIO, [_set(500), _set(600), _set(450)])
        assert m.best_distance == 600
        assert m.total_distance == 1550
        assert m.volume == 1550

    def test_bands(self):
        m = aggregate_session(T.BANDED_RESISTANCE, [_set(12, band="Red"), _set(15, band="red")])
        assert m.best_reps_by_band == {"red": 15}

    def test_empty_session(self):
        m = aggregate_session(T.REGULAR, [])
        assert m.set_count == 0
        assert m.volume == 0
        assert m.heaviest_bucket is None
        assert session_candidates(T.REGULAR, m) == []

    def test_inputs_are_not_modified(self):
        sets = [_set(5, 100), _set(5, 100)]
        before = list(sets)
        aggregate_session(T.REGULAR, sets)
        assert sets == before


# =============================================================================
# Formatting
# =============================================================================


class TestFormatting:
    @pytest.mark.parametrize(
        "meters, expected",
        [(50, "50m"), (850, "850m"), (1500, "1,500m"), (9999, "9,999m"), (10500, "10.5km")],
    )
    def test_distance(self, meters, expected):
        assert format_distance(meters) == expected

    @pytest.mark.parametrize(
        "seconds, weight, expected",
        [(30, 0, "30s hold"), (60, 0, "1m hold"), (90, 0, "1m 30s hold"), (45, 25, "45s hold +25 lbs")],
    )
    def test_hold(self, seconds, weight, expected):
        assert format_hold(seconds, weight) == expected

    def test_rounds(self):
        assert format_rounds(1) == "1 Round"
        assert format_rounds(3) == "3 Rounds"

    def test_labels(self):
        assert format_label(T.REGULAR, C.ONE_RM) == "1RM"
        assert format_label(T.REGULAR, C.REP_SPECIFIC, 5) == "5 Rep Max"
        assert format_label(T.BANDED_RESISTANCE, C.REP_SPECIFIC, "red") == "Band: Red"
        assert format_label(T.CARDIO, C.REP_SPECIFIC, 3) == "3 Rounds"
        assert format_label(T.REGULAR, C.HYPERTROPHY, 185.0) == "Best @ 185 lbs"

    def test_amounts(self):
        assert format_amount(T.REGULAR, C.ONE_RM, 227.5) == "227.5 lbs"
        assert format_amount(T.REGULAR, C.VOLUME, 1650) == "1,650 lbs"
        assert format_amount(T.BODYWEIGHT, C.VOLUME, 30, "reps") == "30 reps"
        assert format_amount(T.CARDIO, C.ENDURANCE, 1500) == "1,500m"
        assert format_amount(T.STATIC_HOLD, C.REP_SPECIFIC, 40, 25.0) == "40s hold +25 lbs"
        assert format_amount(T.REGULAR, C.DENSITY, 4, 100.0) == "4 sets"

    def test_format_value_reads_session(self):
        m = aggregate_session(T.CARDIO, [_set(500)] * 3)
        assert format_value(C.VOLUME, m) == "1,500m"
        assert format_value(C.REP_SPECIFIC, m, 3) == "1,500m"
        assert format_value(C.REP_SPECIFIC, m, 4) == "-"
