#!/usr/bin/env python3
"""Tests for configuration defaults, YAML loading and overrides."""

from pathlib import Path

import pytest

from visualizer_config import ConfigError, VisualizerConfig, load_config


def test_defaults_without_file(tmp_path):
    config = load_config(tmp_path)
    assert config.app_path == "app"
    assert config.base_branch == "main"
    assert config.report_formats == ["markdown", "json", "html"]
    assert config.output_root == tmp_path / "docs/system-diagrams"


def test_default_file_is_read(tmp_path):
    (tmp_path / ".system_visualizer.yml").write_text(
        "base_branch: develop\n"
        "report_formats: [json]\n"
        "scan:\n"
        "  chunk_size: 10\n"
        "  max_workers: 2\n"
        "  exclude_dirs: [legacy]\n"
    )
    config = load_config(tmp_path)
    assert config.base_branch == "develop"
    assert config.report_formats == ["json"]
    assert config.chunk_size == 10
    scan_config = config.to_scan_config()
    assert scan_config.max_workers == 2
    assert "legacy" in scan_config.exclude_dirs
    assert "vendor" in scan_config.exclude_dirs


def test_explicit_file_must_exist(tmp_path):
    with pytest.raises(ConfigError):
        load_config(tmp_path, tmp_path / "missing.yml")


def test_empty_file_keeps_defaults(tmp_path):
    path = tmp_path / "empty.yml"
    path.write_text("")
    assert load_config(tmp_path, path).chunk_size == 100


@pytest.mark.parametrize("text", [
    "- just\n- a list\n",
    "report_formats: [pdf]\n",
    "unknown_key: 1\n",
    "chunk_size: 0\n",
    "scan: nope\n",
    "base_branch: [unclosed\n",
    "report_formats: json\n",
    "scan:\n  exclude_dirs: [1, 2]\n",
])
def test_invalid_files(tmp_path, text):
    path = tmp_path / "bad.yml"
    path.write_text(text)
    with pytest.raises(ConfigError):
        load_config(tmp_path, path)


def test_scalar_exclude_dirs_is_rejected(tmp_path):
    path = tmp_path / "bad.yml"
    path.write_text("exclude_dirs: vendor\n")
    with pytest.raises(ConfigError, match="exclude_dirs must be a list"):
        load_config(tmp_path, path)


def test_overrides_skip_none():
    config = VisualizerConfig(repo_root=Path("/repo"))
    config.apply_overrides(output_path="out", base_branch=None)
    assert config.base_branch == "main"
    assert config.output_root == Path("/repo/out")


def test_absolute_output_path():
    config = VisualizerConfig(repo_root=Path("/repo"), output_path="/tmp/diagrams")
    assert config.output_root == Path("/tmp/diagrams")


def test_app_dir_is_last_segment():
    assert VisualizerConfig(app_path="engines/core/app").app_dir == "app"
