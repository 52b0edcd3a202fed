#!/usr/bin/env python3
"""
Risk Signals - Per-file security, performance, database and test-coverage findings.

Scans changed files line by line against a declarative rule table and flags
risk signal shapes (SQL injection, mass assignment, XSS, authentication
bypass, N+1 queries, unattached eager loading, controller aggregation, missing
foreign key indexes, schema alterations, bulk writes). Changed application
files without a test at any conventional mirrored path are flagged as well.

Signals are additive findings; they do not feed the 0-100 risk score.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Optional

from pattern_extractor import KIND_DIRECTORIES, ComponentKind
from scanner import read_source

logger = logging.getLogger(__name__)


class Severity(Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Category(Enum):
    SECURITY = "Security"
    PERFORMANCE = "Performance"
    DATABASE = "Database"
    TEST_COVERAGE = "Test Coverage"

    @property
    def key(self) -> str:
        return self.name.lower()


@dataclass
class RiskSignal:
    """A single per-file risk finding."""
    file: str
    line: int
    rule: str
    category: Category
    severity: Severity
    message: str
    suggestion: str = ""
    code_snippet: str = ""

    def to_dict(self) -> dict:
        return {
            "file": self.file,
            "line": self.line,
            "rule": self.rule,
            "category": self.category.value,
            "severity": self.severity.value,
            "message": self.message,
            "suggestion": self.suggestion,
            "code_snippet": self.code_snippet,
        }


# Detection rules; "message" may reference the first match group as {0}
DETECTION_PATTERNS = [
    # Security
    {
        "name": "sql_injection",
        "pattern": r"\.(?:where|find_by_sql|order|joins|having|group|select|pluck)\s*\(\s*\"[^\"\n]*#\{",
        "severity": Severity.CRITICAL,
        "category": Category.SECURITY,
        "message": "String-interpolated query filter (possible SQL injection)",
        "suggestion": "Use placeholders or hash conditions instead of interpolation"
    },
    {
        "name": "mass_assignment",
        "pattern": r"\.permit!",
        "severity": Severity.HIGH,
        "category": Category.SECURITY,
        "message": "Blanket parameter permit (possible mass assignment)",
        "suggestion": "Permit an explicit list of attributes"
    },
    {
        "name": "xss",
        "pattern": r"\.html_safe\b|\braw\s*\(|<%==",
        "severity": Severity.HIGH,
        "category": Category.SECURITY,
        "message": "Raw or html_safe output (possible XSS)",
        "suggestion": "Escape output or sanitize with an allow-list"
    },
    {
        "name": "auth_bypass",
        "pattern": r"skip_before_(?:action|filter)\s+:(authenticate\w*)",
        "severity": Severity.CRITICAL,
        "category": Category.SECURITY,
        "message": "Authentication filter {0} is skipped",
        "suggestion": "Confirm the skipped actions are meant to be public"
    },

    # Performance
    {
        "name": "n_plus_one",
        "pattern": r"\b(?:has_many|has_one|belongs_to|has_and_belongs_to_many)\s+:(\w+)",
        "severity": Severity.MEDIUM,
        "category": Category.PERFORMANCE,
        "message": "Possible N+1 query: iteration near association {0} issues a lookup",
        "suggestion": "Eager load with includes or batch the lookup",
        "context_check": "n_plus_one"
    },
    {
        "name": "unattached_eager_load",
        "pattern": r"(?<![.\w])(?:includes|preload|eager_load)\s*[(:]",
        "severity": Severity.LOW,
        "category": Category.PERFORMANCE,
        "message": "Eager-load hint not attached to a query",
        "suggestion": "Chain the hint onto the relation it should preload"
    },
    {
        "name": "controller_aggregation",
        "pattern": r"\.(count|size|length)\b",
        "severity": Severity.LOW,
        "category": Category.PERFORMANCE,
        "message": "Aggregation call .{0} in controller",
        "suggestion": "Use counter caches or move aggregation into a query object",
        "path_filter": "controllers/"
    },

    # Database
    {
        "name": "missing_index",
        "pattern": r"\bbelongs_to\s+:(\w+)",
        "severity": Severity.MEDIUM,
        "category": Category.DATABASE,
        "message": "Foreign key {0}_id may need an index",
        "suggestion": "Add an index on the foreign key column"
    },
    {
        "name": "schema_change",
        "pattern": r"\b(add_column|remove_column|rename_column|change_column|add_index|remove_index|create_table|drop_table|add_reference)\b",
        "severity": Severity.HIGH,
        "category": Category.DATABASE,
        "message": "Schema alteration via {0}",
        "suggestion": "Check migration locking and rollback behavior"
    },
    {
        "name": "bulk_operation",
        "pattern": r"\.(update_all|delete_all|destroy_all)\b",
        "severity": Severity.MEDIUM,
        "category": Category.DATABASE,
        "message": "Bulk data operation .{0}",
        "suggestion": "Bulk writes skip validations and callbacks; scope them carefully"
    },
]

ITERATION_PATTERN = re.compile(r"\.(?:each|map|find_each)\b")
LOOKUP_PATTERN = re.compile(r"\.(?:find_by|find|where)\b")

# Lines after an association declaration searched for an iteration,
# and lines after the iteration searched for a lookup
ASSOCIATION_WINDOW = 5
ITERATION_WINDOW = 3

# File extensions to scan
SCAN_EXTENSIONS = {".rb", ".erb", ".haml", ".slim", ".rake"}


def _snippet(line: str) -> str:
    code_snippet = line.strip()[:100]
    if len(line.strip()) > 100:
        code_snippet += "..."
    return code_snippet


def check_n_plus_one_context(lines: list[str], line_idx: int) -> bool:
    """Check whether an iteration issuing a lookup follows an association line."""
    last = min(len(lines), line_idx + 1 + ASSOCIATION_WINDOW)
    for i in range(line_idx + 1, last):
        if not ITERATION_PATTERN.search(lines[i]):
            continue
        block_end = min(len(lines), i + 1 + ITERATION_WINDOW)
        for j in range(i, block_end):
            if LOOKUP_PATTERN.search(lines[j]):
                return True
    return False


def scan_content(file_path: str, content: str) -> list[RiskSignal]:
    """
    Scan one file's text against the detection rules.

    Args:
        file_path: Repository-relative path, used for path filters and reporting
        content: File text

    Returns:
        Findings in line order, rule-table order within a line
    """
    findings = []
    lines = (content or "").splitlines()
    posix_path = str(file_path).replace("\\", "/")

    for line_idx, line in enumerate(lines):
        # Skip Ruby comment lines
        if line.lstrip().startswith("#"):
            continue

        for pattern_info in DETECTION_PATTERNS:
            path_filter = pattern_info.get("path_filter")
            if path_filter and path_filter not in posix_path:
                continue

            for match in re.finditer(pattern_info["pattern"], line):
                if pattern_info.get("context_check") == "n_plus_one":
                    if not check_n_plus_one_context(lines, line_idx):
                        continue

                findings.append(RiskSignal(
                    file=posix_path,
                    line=line_idx + 1,
                    rule=pattern_info["name"],
                    category=pattern_info["category"],
                    severity=pattern_info["severity"],
                    message=pattern_info["message"].format(*match.groups()),
                    suggestion=pattern_info["suggestion"],
                    code_snippet=_snippet(line)
                ))

    return findings


def scan_files(repo_root: Path, changed_files: list[str]) -> list[RiskSignal]:
    """
    Scan changed files that still exist on disk.

    Missing or unreadable files are skipped with a warning.
    """
    findings = []
    for rel_path in changed_files:
        if PurePosixPath(rel_path).suffix not in SCAN_EXTENSIONS:
            continue
        content = read_source(Path(repo_root) / rel_path)
        if content is None:
            continue
        findings.extend(scan_content(rel_path, content))
    return findings


def expected_test_paths(file_path: str, app_dir: str = "app") -> list[str]:
    """
    Conventional mirrored test paths for an application file.

    ``app/models/user.rb`` mirrors to ``spec/models/user_spec.rb`` and
    ``test/models/user_test.rb``; controllers also mirror to
    ``spec/requests/<resource>_spec.rb``.

    Args:
        file_path: Repository-relative path
        app_dir: Name of the application root directory

    Returns:
        Candidate test paths, or an empty list for non-application files
    """
    posix = PurePosixPath(str(file_path).replace("\\", "/"))
    if posix.suffix != ".rb":
        return []

    parts = posix.parts
    for idx in range(len(parts) - 2):
        if parts[idx] != app_dir:
            continue
        directory = parts[idx + 1]
        if directory not in KIND_DIRECTORIES.values():
            continue

        prefix = PurePosixPath(*parts[:idx]) if idx else PurePosixPath()
        nested = PurePosixPath(*parts[idx + 2:-1]) if len(parts) > idx + 3 else PurePosixPath()
        stem = posix.stem

        candidates = [
            prefix / "spec" / directory / nested / f"{stem}_spec.rb",
            prefix / "test" / directory / nested / f"{stem}_test.rb",
        ]
        if directory == KIND_DIRECTORIES[ComponentKind.CONTROLLER]:
            resource = re.sub(r"_controller$", "", stem)
            candidates.append(prefix / "spec" / "requests" / nested / f"{resource}_spec.rb")

        return [candidate.as_posix() for candidate in candidates]

    return []


def find_missing_tests(
    repo_root: Path,
    changed_files: list[str],
    app_dir: str = "app"
) -> list[RiskSignal]:
    """
    Flag changed application files with no test at any mirrored path.

    A test counts as present if it exists under ``repo_root`` or is itself
    part of the change.
    """
    repo_root = Path(repo_root)
    changed = {str(path).replace("\\", "/") for path in changed_files}
    findings = []

    for rel_path in changed_files:
        candidates = expected_test_paths(rel_path, app_dir)
        if not candidates:
            continue
        if any(candidate in changed or (repo_root / candidate).is_file() for candidate in candidates):
            continue

        findings.append(RiskSignal(
            file=str(rel_path).replace("\\", "/"),
            line=0,
            rule="missing_test",
            category=Category.TEST_COVERAGE,
            severity=Severity.MEDIUM,
            message=f"No test found for {rel_path}",
            suggestion=f"Add {candidates[0]}"
        ))

    return findings


def collect_signals(
    repo_root: Path,
    changed_files: list[str],
    app_dir: str = "app"
) -> list[RiskSignal]:
    """All content signals plus test-coverage findings for a change set."""
    signals = scan_files(repo_root, changed_files)
    signals.extend(find_missing_tests(repo_root, changed_files, app_dir))
    return signals


def count_by_category(signals: list[RiskSignal]) -> dict[str, int]:
    """Signal counts per category key; every category is present."""
    counts = {category.key: 0 for category in Category}
    for signal in signals:
        counts[signal.category.key] += 1
    return counts


def group_by_category(signals: list[RiskSignal]) -> dict[str, list[RiskSignal]]:
    grouped = {category.key: [] for category in Category}
    for signal in signals:
        grouped[signal.category.key].append(signal)
    return grouped


def signals_for_files(signals: list[RiskSignal], files: list[str]) -> list[RiskSignal]:
    """Subset of signals raised against the given files."""
    wanted = {str(path).replace("\\", "/") for path in files}
    return [signal for signal in signals if signal.file in wanted]


def severity_rank(severity: Optional[Severity]) -> int:
    order = [Severity.LOW, Severity.MEDIUM, Severity.HIGH, Severity.CRITICAL]
    return order.index(severity) if severity in order else -1
