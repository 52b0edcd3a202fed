#!/usr/bin/env python3
"""
Artifacts - Write generated diagrams and reports under the output root.

Writing is the point of a run, so any failure here is fatal: the first file
that cannot be written raises OutputWriteError naming that file.
"""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class OutputWriteError(Exception):
    """Raised when an output artifact cannot be written."""

    def __init__(self, path: Path, reason: str):
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"failed to write {self.path}: {reason}")


def write_artifact(output_root: Path, filename: str, text: str) -> Path:
    """
    Write one text artifact, creating parent directories.

    Args:
        output_root: Output directory
        filename: Path relative to the output directory
        text: File contents

    Returns:
        Path written

    Raises:
        OutputWriteError: If the directory or file cannot be written
    """
    path = Path(output_root) / filename
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    except OSError as e:
        raise OutputWriteError(path, e.strerror or str(e)) from e
    logger.debug(f"Wrote {path}")
    return path


def write_artifacts(output_root: Path, artifacts: dict[str, str]) -> list[Path]:
    """Write every artifact in order; stops at the first failure."""
    return [write_artifact(output_root, filename, text) for filename, text in artifacts.items()]
