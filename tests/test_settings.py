"""Tests for configuration loading and path resolution."""

from __future__ import annotations

from pathlib import Path

import pytest

from huginn.core.error_handling import ConfigurationError
from huginn.core.settings import deep_update, get_cache_dir, get_project_root, load_config


def test_packaged_defaults_load() -> None:
    config = load_config()

    assert config["search"]["max_results_ceiling"] == 500
    assert config["highlight"]["exact_class"] == "exact-match"
    assert config["similarity"]["category_bonus"] == 0.1


def test_user_config_is_deep_merged(tmp_path: Path) -> None:
    config_path = tmp_path / "huginn.yaml"
    config_path.write_text("search:\n  cache:\n    enabled: false\n", encoding="utf-8")

    config = load_config(config_path)

    assert config["search"]["cache"]["enabled"] is False
    assert config["search"]["cache"]["max_entries"] == 256
    assert config["search"]["max_results_ceiling"] == 500


def test_invalid_config_files(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        load_config(tmp_path / "missing.yaml")

    not_a_mapping = tmp_path / "list.yaml"
    not_a_mapping.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="mapping"):
        load_config(not_a_mapping)


def test_project_root_and_cache_dir(project_root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    assert get_project_root() == project_root.resolve()
    assert get_cache_dir({"cache_dir": "cache"}, project_root) == project_root / "cache"

    monkeypatch.setenv("HUGINN_CACHE_DIR", str(project_root / "elsewhere"))
    assert get_cache_dir({"cache_dir": "cache"}, project_root) == project_root / "elsewhere"


def test_deep_update() -> None:
    target = {"a": {"b": 1, "c": 2}, "d": 1}

    assert deep_update(target, {"a": {"b": 3}, "d": {"e": 1}}) == {"a": {"b": 3, "c": 2}, "d": {"e": 1}}
