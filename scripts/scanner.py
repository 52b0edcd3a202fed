#!/usr/bin/env python3
"""
Scanner - Read component files in batches and populate the component registry.

Collects Ruby files under the application root (or takes an explicit list of
changed files), reads each batch in parallel, runs the pattern extractor and
registers the resulting records sequentially. Unreadable files are skipped and
reported; they never abort the scan.

Usage:
    from scanner import Scanner, ScanConfig

    config = ScanConfig(repo_root=Path("."), app_path="app")
    result = Scanner(config).scan_repository()

    for kind, name, record in result.registry.all_kinds():
        print(kind.value, name, record.dependencies)
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional

from tqdm import tqdm

from component_registry import ComponentRecord, ComponentRegistry
from pattern_extractor import ComponentKind, component_for_path, extract

logger = logging.getLogger(__name__)


class ScanError(Exception):
    """Raised when the repository or application root cannot be read."""


@dataclass
class ScanConfig:
    """Configuration for a scan pass."""
    repo_root: Path = field(default_factory=lambda: Path("."))
    app_path: str = "app"
    chunk_size: int = 100
    max_workers: int = 4
    show_progress: bool = False
    file_extensions: set[str] = field(default_factory=lambda: {'.rb'})
    exclude_dirs: set[str] = field(default_factory=lambda: {
        '.git', 'node_modules', 'vendor', 'tmp', 'log', 'coverage'
    })

    @property
    def app_root(self) -> Path:
        return Path(self.repo_root) / self.app_path

    @property
    def app_dir(self) -> str:
        return Path(self.app_path).name


@dataclass
class ScanResult:
    """Result of one scan pass."""
    registry: ComponentRegistry
    files_scanned: int = 0
    skipped: list[dict] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def read_source(file_path: Path) -> Optional[str]:
    """
    Read a source file as text.

    Args:
        file_path: Absolute or working-directory-relative path

    Returns:
        File text, or None if the file is missing or unreadable
    """
    try:
        with open(file_path, 'r', encoding='utf-8', errors='replace') as f:
            return f.read()
    except OSError as e:
        logger.warning(f"Skipping unreadable file {file_path}: {e}")
        return None


class Scanner:
    """
    Scan component files into a ComponentRegistry.

    Features:
    - Full repository walk of app/{models,controllers,services,workers}
    - Changed-file driven scan for PR analysis
    - Parallel reads per chunk, sequential registration
    - Optional tqdm progress bar
    """

    def __init__(self, config: ScanConfig, registry: Optional[ComponentRegistry] = None):
        """
        Initialize the scanner.

        Args:
            config: ScanConfig with scan settings
            registry: Registry to populate; a new one is created if omitted
        """
        self.config = config
        if isinstance(self.config.repo_root, str):
            self.config.repo_root = Path(self.config.repo_root)
        self.registry = registry if registry is not None else ComponentRegistry()

    def scan_repository(self) -> ScanResult:
        """
        Scan every component file under the application root.

        Returns:
            ScanResult with the populated registry

        Raises:
            ScanError: If the application root does not exist
        """
        app_root = self.config.app_root
        if not app_root.is_dir():
            raise ScanError(f"Application path does not exist: {app_root}")

        files = []
        for kind in ComponentKind:
            files.extend(self._collect_files(app_root / kind.directory))

        relative = [self._relative(path) for path in files]
        logger.info(f"Found {len(relative)} component files under {app_root}")
        return self._scan(relative)

    def scan_files(self, changed_files: list[str]) -> ScanResult:
        """
        Scan only the given repository-relative paths.

        Paths that are not component files are ignored; component files that
        no longer exist (deleted in the change) are reported as skipped.

        Args:
            changed_files: Ordered list of repository-relative paths

        Returns:
            ScanResult with records for the touched components
        """
        relative = [path for path in changed_files
                    if component_for_path(path, self.config.app_dir) is not None]
        logger.info(f"{len(relative)} of {len(changed_files)} changed files are components")
        return self._scan(relative)

    def _scan(self, relative_paths: list[str]) -> ScanResult:
        result = ScanResult(registry=self.registry)

        with tqdm(total=len(relative_paths), desc="Scanning components", unit="file",
                  disable=not self.config.show_progress) as progress:
            for chunk in self._chunk_list(relative_paths):
                contents = self._read_chunk(chunk)

                # Registration stays sequential and in path order
                for rel_path, content in zip(chunk, contents):
                    if content is None:
                        result.skipped.append({
                            "file": rel_path,
                            "error": "file not found or unreadable"
                        })
                        continue

                    try:
                        self._register(rel_path, content)
                        result.files_scanned += 1
                    except Exception as e:
                        result.errors.append(f"Error analyzing {rel_path}: {e}")
                        logger.debug(f"Error analyzing {rel_path}: {e}")

                progress.update(len(chunk))

        return result

    def _register(self, rel_path: str, content: str):
        classified = component_for_path(rel_path, self.config.app_dir)
        if classified is None:
            return
        kind, name = classified
        record = ComponentRecord.from_extraction(name, kind, rel_path, extract(content, kind))
        self.registry.register(record)

    def _read_chunk(self, chunk: list[str]) -> list[Optional[str]]:
        paths = [self.config.repo_root / rel_path for rel_path in chunk]
        if self.config.max_workers <= 1 or len(paths) <= 1:
            return [read_source(path) for path in paths]

        with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            return list(executor.map(read_source, paths))

    def _collect_files(self, directory: Path) -> list[Path]:
        """
        Collect component files below one kind directory.

        Args:
            directory: e.g. app/models

        Returns:
            Sorted list of file paths
        """
        if not directory.is_dir():
            logger.debug(f"No component directory at {directory}")
            return []

        files = []
        for file_path in directory.rglob("*"):
            if not file_path.is_file():
                continue

            # Skip excluded directories
            nested_parts = file_path.relative_to(directory).parts[:-1]
            if any(excluded in nested_parts for excluded in self.config.exclude_dirs):
                continue

            if file_path.suffix not in self.config.file_extensions:
                continue

            files.append(file_path)

        return sorted(files)

    def _chunk_list(self, items: list) -> Iterator[list]:
        """Split list into chunks of ``chunk_size``."""
        size = max(1, self.config.chunk_size)
        for i in range(0, len(items), size):
            yield items[i:i + size]

    def _relative(self, file_path: Path) -> str:
        try:
            return file_path.relative_to(self.config.repo_root).as_posix()
        except ValueError:
            return file_path.as_posix()
