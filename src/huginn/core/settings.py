"""Runtime settings helpers for Huginn."""

from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .error_handling import ConfigurationError

_PACKAGE_ROOT = Path(__file__).resolve().parent.parent
_DEFAULT_PROJECT_ROOT = Path(os.environ.get("HUGINN_PROJECT_ROOT", Path.cwd()))
_DEFAULT_CACHE_DIR = Path(os.environ.get("HUGINN_CACHE_DIR", ".cache/huginn"))
DEFAULT_CONFIG_PATH = _PACKAGE_ROOT / "config" / "default.yaml"

# Used when the packaged YAML is missing; keep in sync with config/default.yaml
_BUILTIN_DEFAULTS: Dict[str, Any] = {
    "cache_dir": ".cache/huginn",
    "docs_paths": ["docs/"],
    "file_extensions": [".md", ".markdown"],
    "encoding": "utf-8",
    "max_file_size": 10 * 1024 * 1024,
    "index": {
        "max_line_weight": 200,
        "metadata_bonus": 5.0,
        "category_priority": {},
    },
    "search": {
        "max_results_ceiling": 500,
        "preview_context_lines": 1,
        "cache": {"enabled": True, "max_entries": 256, "ttl_seconds": 3600},
    },
    "highlight": {
        "max_highlights": 50,
        "base_class": "search-highlight",
        "exact_class": "exact-match",
        "partial_class": "partial-match",
        "fuzzy_class": "fuzzy-match",
        "semantic_class": "semantic-match",
    },
    "similarity": {"category_bonus": 0.1, "duplicate_threshold": 0.9},
    "complexity": {"low_max": 3.0, "medium_max": 6.0},
}


def get_project_root(override: Optional[str] = None) -> Path:
    """Return the project root used for scanning docs and caching."""
    if override:
        return Path(override).expanduser().resolve()
    env_root = os.environ.get("HUGINN_PROJECT_ROOT")
    if env_root:
        return Path(env_root).expanduser().resolve()
    if _DEFAULT_PROJECT_ROOT:
        return Path(_DEFAULT_PROJECT_ROOT).expanduser().resolve()
    return _PACKAGE_ROOT


def get_cache_dir(config: Optional[Dict[str, Any]] = None, project_root: Optional[Path] = None) -> Path:
    """Return the directory holding the exported index.

    ``HUGINN_CACHE_DIR`` wins over the ``cache_dir`` config key; relative
    paths resolve against the project root.
    """
    cache = os.environ.get("HUGINN_CACHE_DIR")
    base = project_root or get_project_root()
    if cache:
        cache_path = Path(cache).expanduser()
    elif config and config.get("cache_dir"):
        cache_path = Path(config["cache_dir"]).expanduser()
    else:
        cache_path = _DEFAULT_CACHE_DIR
    if cache_path.is_absolute():
        return cache_path
    return base / cache_path


def deep_update(target: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``updates`` into ``target``."""
    for key, value in updates.items():
        if key in target and isinstance(target[key], dict) and isinstance(value, dict):
            deep_update(target[key], value)
        else:
            target[key] = value
    return target


def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """Load configuration, layering ``config_path`` over the packaged defaults."""
    config = copy.deepcopy(_BUILTIN_DEFAULTS)

    layers = [DEFAULT_CONFIG_PATH]
    if config_path is not None:
        layers.append(Path(config_path))

    for path in layers:
        if not path.exists():
            if path is DEFAULT_CONFIG_PATH:
                continue
            raise ConfigurationError(f"Config file not found: {path}")
        try:
            with path.open("r", encoding="utf-8") as handle:
                data = yaml.safe_load(handle) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping")
        deep_update(config, data)

    return config
