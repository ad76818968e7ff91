"""
Tests for the YAML configuration layer and the exercise catalog loader.
"""

import pytest

from pr_tracker.core.config import EngineConfig
from pr_tracker.core.engine.config_loader import load_config_dict, load_engine_config
from pr_tracker.core.exercises import EXERCISE_REGISTRY, get_exercise, load_exercises_from_yaml
from pr_tracker.core.exercise_types import resolve_exercise_type
from pr_tracker.core.models import ExerciseType


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path, monkeypatch):
    """Keep a real ~/.pr-tracker out of these tests."""
    monkeypatch.setenv("HOME", str(tmp_path / "home"))


# =============================================================================
# EngineConfig
# =============================================================================


class TestEngineConfig:
    def test_defaults(self):
        cfg = EngineConfig()
        assert cfg.weight_tolerance == 0.5
        assert cfg.max_rep_specific_reps == 10
        assert cfg.lookback_days == 31
        assert cfg.role_weight("primary_mover") == 1.0
        assert cfg.role_weight("synergist") == 0.7
        assert cfg.role_weight("stabilizer") == 0.4
        assert cfg.role_weight("mystery") == cfg.unknown_role_weight

    def test_from_sectioned_dict(self):
        cfg = EngineConfig.from_dict({
            "records": {"weight_tolerance": 1.0},
            "workload": {"lookback_days": 14, "role_weights": {"stabilizer": 0.2}},
            "recommendation": {"recent_penalty": 0.25},
        })
        assert cfg.weight_tolerance == 1.0
        assert cfg.lookback_days == 14
        assert cfg.role_weight("stabilizer") == 0.2
        assert cfg.role_weight("primary_mover") == 1.0
        assert cfg.recent_penalty == 0.25

    def test_from_flat_dict_ignores_unknown_keys(self):
        cfg = EngineConfig.from_dict({"full_intensity_sets": 4, "colour": "blue"})
        assert cfg.full_intensity_sets == 4

    def test_admin_accounts_become_tuple(self):
        cfg = EngineConfig.from_dict({"admin_accounts": ["admin", "coach_bot"]})
        assert cfg.admin_accounts == ("admin", "coach_bot")

    @pytest.mark.parametrize(
        "weights",
        [
            {"primary_mover": 0.7, "synergist": 0.7, "stabilizer": 0.4},
            {"primary_mover": 1.0, "synergist": 0.3, "stabilizer": 0.4},
        ],
    )
    def test_role_weights_must_be_strictly_ordered(self, weights):
        with pytest.raises(ValueError, match="strictly ordered"):
            EngineConfig(role_weights=weights)

    @pytest.mark.parametrize(
        "kwargs",
        [{"weight_tolerance": -1}, {"lookback_days": 0}, {"full_intensity_sets": 0}],
    )
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            EngineConfig(**kwargs)


# =============================================================================
# YAML loading
# =============================================================================


class TestLoadEngineConfig:
    def test_bundled_yaml_matches_defaults(self):
        assert load_engine_config() == EngineConfig()

    def test_bundled_sections_present(self):
        data = load_config_dict()
        assert {"records", "workload", "recommendation"} <= set(data)

    def test_user_override_is_deep_merged(self, tmp_path):
        user = tmp_path / "engine.yaml"
        user.write_text(
            "workload:\n"
            "  lookback_days: 14\n"
            "  role_weights:\n"
            "    stabilizer: 0.3\n",
            encoding="utf-8",
        )
        cfg = load_engine_config(user)

        assert cfg.lookback_days == 14
        assert cfg.role_weight("stabilizer") == 0.3
        assert cfg.role_weight("synergist") == 0.7
        assert cfg.full_intensity_sets == 5

    def test_override_from_config_home(self, tmp_path):
        home = tmp_path / "home" / ".pr-tracker"
        home.mkdir(parents=True)
        (home / "engine.yaml").write_text("records:\n  weight_unit: kg\n", encoding="utf-8")

        assert load_engine_config().weight_unit == "kg"

    def test_broken_user_yaml_warns_and_keeps_defaults(self, tmp_path):
        user = tmp_path / "engine.yaml"
        user.write_text("records: [unclosed\n", encoding="utf-8")

        with pytest.warns(UserWarning, match="ignoring"):
            cfg = load_engine_config(user)
        assert cfg == EngineConfig()


# =============================================================================
# Exercise catalog
# =============================================================================


class TestExerciseLoader:
    def test_bundled_catalog(self):
        assert "bench_press" in EXERCISE_REGISTRY
        assert "running" in EXERCISE_REGISTRY
        assert EXERCISE_REGISTRY["running"].profile is None

    def test_every_bundled_type_resolves_cleanly(self, caplog):
        for exercise in EXERCISE_REGISTRY.values():
            resolve_exercise_type(exercise.exercise_type)
        assert "treating as regular" not in caplog.text

    def test_bundled_profiles(self):
        bench = get_exercise("bench_press")
        assert resolve_exercise_type(bench.exercise_type) is ExerciseType.REGULAR
        assert bench.profile.archetype == "push"
        assert bench.profile.primary_mover in {m.muscle for m in bench.profile.muscles}

    def test_unknown_exercise(self):
        with pytest.raises(ValueError, match="Unknown exercise 'curling'"):
            get_exercise("curling")

    def test_user_override_and_new_exercise(self, tmp_path):
        bundled = tmp_path / "bundled"
        user = tmp_path / "user"
        bundled.mkdir()
        user.mkdir()
        (bundled / "dip.yaml").write_text(
            "exercise_id: dip\n"
            "display_name: Dip\n"
            "exercise_type: bodyweight\n"
            "muscle_profile:\n"
            "  primary_mover: triceps_brachii\n"
            "  archetype: push\n"
            "  recovery_hours: 48\n"
            "  muscles:\n"
            "    - {name: triceps_brachii, role: primary_mover}\n",
            encoding="utf-8",
        )
        (user / "dip.yaml").write_text(
            "muscle_profile:\n  recovery_hours: 24\n", encoding="utf-8"
        )
        (user / "sled_push.yaml").write_text(
            "exercise_id: sled_push\ndisplay_name: Sled Push\nexercise_type: regular\n",
            encoding="utf-8",
        )

        catalog = load_exercises_from_yaml(bundled, user)

        assert set(catalog) == {"dip", "sled_push"}
        assert catalog["dip"].profile.recovery_hours == 24
        assert catalog["dip"].profile.archetype == "push"
        assert catalog["sled_push"].profile is None

    def test_invalid_definition_is_skipped(self, tmp_path):
        bundled = tmp_path / "bundled"
        bundled.mkdir()
        (bundled / "broken.yaml").write_text("display_name: Broken\n", encoding="utf-8")
        (bundled / "ok.yaml").write_text(
            "exercise_id: ok\ndisplay_name: OK\nexercise_type: cardio\n", encoding="utf-8"
        )

        with pytest.warns(UserWarning, match="skipping exercise 'broken'"):
            catalog = load_exercises_from_yaml(bundled, tmp_path / "missing")
        assert list(catalog) == ["ok"]

    def test_legacy_type_kept_as_written(self, tmp_path):
        bundled = tmp_path / "bundled"
        bundled.mkdir()
        (bundled / "band_row.yaml").write_text(
            "exercise_id: band_row\ndisplay_name: Band Row\nexercise_type: banded\n",
            encoding="utf-8",
        )
        catalog = load_exercises_from_yaml(bundled, tmp_path / "missing")
        assert catalog["band_row"].exercise_type == "banded"
        assert resolve_exercise_type("banded") is ExerciseType.BANDED_RESISTANCE
