#!/usr/bin/env python3
"""
Visualizer Config - Settings for a system visualizer run.

Defaults live on the VisualizerConfig dataclass. An optional YAML file
(``.system_visualizer.yml`` in the repository root, or an explicit
``--config`` path) overrides them, and command-line flags override the file.

Example file:

    app_path: app
    output_path: docs/system-diagrams
    base_branch: develop
    report_formats: [markdown, json]
    scan:
      chunk_size: 200
      max_workers: 8
"""

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

import yaml

from scanner import ScanConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = ".system_visualizer.yml"
REPORT_FORMATS = ("markdown", "json", "html")


class ConfigError(Exception):
    """Raised for unreadable or malformed configuration."""


@dataclass
class VisualizerConfig:
    """Configuration for one run."""
    repo_root: Path = field(default_factory=lambda: Path("."))
    app_path: str = "app"
    output_path: str = "docs/system-diagrams"
    base_branch: str = "main"
    report_formats: list[str] = field(default_factory=lambda: list(REPORT_FORMATS))
    chunk_size: int = 100
    max_workers: int = 4
    show_progress: bool = False
    exclude_dirs: list[str] = field(default_factory=list)

    @property
    def output_root(self) -> Path:
        output = Path(self.output_path)
        return output if output.is_absolute() else Path(self.repo_root) / output

    @property
    def app_dir(self) -> str:
        return Path(self.app_path).name

    def to_scan_config(self) -> ScanConfig:
        scan_config = ScanConfig(
            repo_root=Path(self.repo_root),
            app_path=self.app_path,
            chunk_size=self.chunk_size,
            max_workers=self.max_workers,
            show_progress=self.show_progress
        )
        scan_config.exclude_dirs.update(self.exclude_dirs)
        return scan_config

    def apply_overrides(self, **overrides: Any) -> 'VisualizerConfig':
        """Set every override that is not None."""
        known = {f.name for f in fields(self)}
        for key, value in overrides.items():
            if value is None:
                continue
            if key not in known:
                raise ConfigError(f"Unknown configuration key: {key}")
            setattr(self, key, value)
        self._validate()
        return self

    def _validate(self):
        for name in ("report_formats", "exclude_dirs"):
            value = getattr(self, name)
            if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
                raise ConfigError(f"{name} must be a list of strings")
        unknown = [fmt for fmt in self.report_formats if fmt not in REPORT_FORMATS]
        if unknown:
            raise ConfigError(f"Unknown report format(s): {', '.join(unknown)}")
        if not isinstance(self.chunk_size, int) or self.chunk_size < 1:
            raise ConfigError("chunk_size must be at least 1")
        if not isinstance(self.max_workers, int) or self.max_workers < 1:
            raise ConfigError("max_workers must be at least 1")


def _flatten(data: dict) -> dict:
    flat = {key: value for key, value in data.items() if key != "scan"}
    scan = data.get("scan") or {}
    if not isinstance(scan, dict):
        raise ConfigError("'scan' section must be a mapping")
    flat.update(scan)
    return flat


def load_config(repo_root: Path, config_path: Optional[Path] = None) -> VisualizerConfig:
    """
    Build a configuration from defaults and an optional YAML file.

    Args:
        repo_root: Repository root; also where the default config file is looked up
        config_path: Explicit config file; must exist when given

    Returns:
        VisualizerConfig

    Raises:
        ConfigError: If the file cannot be read or contains invalid settings
    """
    config = VisualizerConfig(repo_root=Path(repo_root))

    if config_path is None:
        candidate = Path(repo_root) / DEFAULT_CONFIG_FILE
        if not candidate.exists():
            return config
        config_path = candidate
    elif not Path(config_path).exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to read config {config_path}: {e}") from e

    if data is None:
        return config
    if not isinstance(data, dict):
        raise ConfigError(f"Config {config_path} must contain a mapping")

    logger.info(f"Loaded configuration from {config_path}")
    return config.apply_overrides(**_flatten(data))
