"""
YAML → typed config loader.

Loads engine constants from engine.yaml (bundled with the package) and
optionally merges user overrides from ~/.pr-tracker/engine.yaml.

Usage:
    from pr_tracker.core.engine.config_loader import load_engine_config
    cfg = load_engine_config()
    cfg.weight_tolerance   # 0.5

If a YAML file cannot be read or parsed, a warning is issued and the file
is ignored; missing keys fall back to the defaults in config.py.
"""

from __future__ import annotations

import importlib.resources
import os
import warnings
from pathlib import Path
from typing import Any

import yaml

from ..config import EngineConfig

# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML mapping; warn and return {} if it cannot be used."""
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError) as exc:
        warnings.warn(f"pr-tracker: ignoring {path} ({exc})", stacklevel=2)
        return {}
    return data if isinstance(data, dict) else {}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge *override* into *base* (non-destructive to base)."""
    result = dict(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(result.get(k), dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def get_config_home() -> Path:
    """Return the per-user data directory (~/.pr-tracker)."""
    home = Path(os.environ.get("HOME", "~")).expanduser()
    return home / ".pr-tracker"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def get_bundled_yaml_path() -> Path | None:
    """Return the path to the bundled engine.yaml, or None if not found."""
    ref = importlib.resources.files("pr_tracker").joinpath("engine.yaml")
    with importlib.resources.as_file(ref) as p:
        return p if p.exists() else None


def get_user_yaml_path() -> Path | None:
    """Return ~/.pr-tracker/engine.yaml if it exists, else None."""
    p = get_config_home() / "engine.yaml"
    return p if p.exists() else None


def load_config_dict(user_path: Path | None = None) -> dict[str, Any]:
    """
    Load and merge engine configuration from YAML sources.

    Load order (later overrides earlier):
    1. Bundled src/pr_tracker/engine.yaml
    2. User override (``user_path`` or ~/.pr-tracker/engine.yaml)

    Returns:
        Merged dict of config sections.  Empty dict if no YAML available.
    """
    config: dict[str, Any] = {}

    bundled = get_bundled_yaml_path()
    if bundled is not None:
        config = _deep_merge(config, _load_yaml_file(bundled))

    user = user_path if user_path is not None else get_user_yaml_path()
    if user is not None and user.exists():
        config = _deep_merge(config, _load_yaml_file(user))

    return config


def load_engine_config(user_path: Path | None = None) -> EngineConfig:
    """Load the merged YAML configuration as an EngineConfig."""
    return EngineConfig.from_dict(load_config_dict(user_path))
