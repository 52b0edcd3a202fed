#!/usr/bin/env python3
"""
Risk Scorer - Weighted 0-100 impact score for a set of changed files.

Counts model, controller, service and test changes in a change set and
combines them into a bounded score with a discrete level and rule-based
recommendations. Also scores each commit of a commit timeline and breaks
the change down by component kind and domain.

The score is a fixed weighted sum:

    files*2 + models*5 + controllers*3 + services*4 - tests*2, clamped to 0..100

Per-file risk signals (see risk_signals.py) are reported next to the score
but are not part of it.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from graph_analytics import classify_domain
from pattern_extractor import ComponentKind, component_for_path


class RiskLevel(Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"

    @property
    def style_class(self) -> str:
        return self.name.lower()


FACTOR_WEIGHTS = {
    "file_count": 2,
    "model_changes": 5,
    "controller_changes": 3,
    "service_changes": 4,
    "test_changes": -2,
}

# Upper bound (inclusive) of each level band
LEVEL_BANDS = [
    (30, RiskLevel.LOW),
    (60, RiskLevel.MEDIUM),
    (80, RiskLevel.HIGH),
    (100, RiskLevel.CRITICAL),
]

MAX_SCORE = 100
ADDITIONAL_REVIEW_SCORE = 60
SPLIT_MODEL_THRESHOLD = 3
API_CONTRACT_THRESHOLD = 2
DOWNSTREAM_SERVICE_THRESHOLD = 1

RECOMMENDATIONS = {
    "split": "Consider splitting this change: it touches more than {0} model files",
    "tests": "Add tests: no test files changed alongside {0} changed files",
    "api": "Verify API contracts: more than {0} controllers changed",
    "downstream": "Check downstream consumers: more than {0} service changed",
    "review": "Request additional review: risk score {0} exceeds {1}",
}


@dataclass
class RiskAssessment:
    """Aggregate risk for one change set."""
    score: int
    level: RiskLevel
    factors: dict[str, int] = field(default_factory=dict)
    recommendations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "level": self.level.value,
            "factors": dict(self.factors),
            "recommendations": list(self.recommendations),
        }


@dataclass
class CommitRecord:
    """One commit as supplied by the version-control collaborator."""
    sha: str
    message: str = ""
    author: str = ""
    date: str = ""
    files: list[str] = field(default_factory=list)


@dataclass
class CommitRiskRecord:
    """Risk view of one commit in timeline order."""
    sha: str
    short_sha: str
    message: str
    author: str
    date: str
    files: list[str]
    signal_counts: dict[str, int]
    impact_score: int
    impact_level: RiskLevel

    def to_dict(self) -> dict:
        return {
            "sha": self.sha,
            "short_sha": self.short_sha,
            "message": self.message,
            "author": self.author,
            "date": self.date,
            "files": list(self.files),
            "signal_counts": dict(self.signal_counts),
            "impact_score": self.impact_score,
            "impact_level": self.impact_level.value,
        }


def count_factors(changed_files: list[str]) -> dict[str, int]:
    """Count the score factors by path substring."""
    paths = [str(path).replace("\\", "/") for path in changed_files]
    return {
        "file_count": len(paths),
        "model_changes": sum(1 for p in paths if "models/" in p),
        "controller_changes": sum(1 for p in paths if "controllers/" in p),
        "service_changes": sum(1 for p in paths if "services/" in p),
        "test_changes": sum(1 for p in paths if "spec/" in p or "test/" in p),
    }


def weighted_score(factors: dict[str, int]) -> int:
    raw = sum(FACTOR_WEIGHTS[name] * factors.get(name, 0) for name in FACTOR_WEIGHTS)
    return max(0, min(MAX_SCORE, raw))


def level_for(score: int) -> RiskLevel:
    """Level band for a score; band boundaries belong to the lower band."""
    for upper, level in LEVEL_BANDS:
        if score <= upper:
            return level
    return RiskLevel.CRITICAL


def recommend(factors: dict[str, int], score: int) -> list[str]:
    recommendations = []
    if factors["model_changes"] > SPLIT_MODEL_THRESHOLD:
        recommendations.append(RECOMMENDATIONS["split"].format(SPLIT_MODEL_THRESHOLD))
    if factors["test_changes"] == 0 and factors["file_count"] > 1:
        recommendations.append(RECOMMENDATIONS["tests"].format(factors["file_count"]))
    if factors["controller_changes"] > API_CONTRACT_THRESHOLD:
        recommendations.append(RECOMMENDATIONS["api"].format(API_CONTRACT_THRESHOLD))
    if factors["service_changes"] > DOWNSTREAM_SERVICE_THRESHOLD:
        recommendations.append(RECOMMENDATIONS["downstream"].format(DOWNSTREAM_SERVICE_THRESHOLD))
    if score > ADDITIONAL_REVIEW_SCORE:
        recommendations.append(RECOMMENDATIONS["review"].format(score, ADDITIONAL_REVIEW_SCORE))
    return recommendations


def score(changed_files: list[str]) -> RiskAssessment:
    """
    Score a change set.

    Args:
        changed_files: Ordered repository-relative paths; may be empty

    Returns:
        RiskAssessment with score, level, factors and recommendations
    """
    factors = count_factors(changed_files)
    total = weighted_score(factors)
    return RiskAssessment(
        score=total,
        level=level_for(total),
        factors=factors,
        recommendations=recommend(factors, total)
    )


def file_impact(file_path: str) -> str:
    """Impact tier of a single changed file, by location."""
    path = str(file_path).replace("\\", "/")
    if "app/models/" in path:
        return "high"
    if "app/services/" in path or "app/controllers/" in path:
        return "medium"
    return "low"


def score_commits(
    commits: list[CommitRecord],
    signal_counter: Optional[Callable[[list[str]], dict[str, int]]] = None
) -> list[CommitRiskRecord]:
    """
    Score each commit in the order given (oldest first).

    Args:
        commits: Commit records from the version-control collaborator
        signal_counter: Maps a commit's files to per-category signal counts

    Returns:
        CommitRiskRecord list in input order
    """
    records = []
    for commit in commits:
        assessment = score(commit.files)
        counts = signal_counter(commit.files) if signal_counter else {}
        records.append(CommitRiskRecord(
            sha=commit.sha,
            short_sha=commit.sha[:7],
            message=commit.message,
            author=commit.author,
            date=commit.date,
            files=list(commit.files),
            signal_counts=counts,
            impact_score=assessment.score,
            impact_level=assessment.level
        ))
    return records


def highest_impact(records: list[CommitRiskRecord]) -> Optional[CommitRiskRecord]:
    """First commit with the maximum impact score."""
    best = None
    for record in records:
        if best is None or record.impact_score > best.impact_score:
            best = record
    return best


def change_statistics(changed_files: list[str], app_dir: str = "app") -> dict:
    """
    Break a change set down by component kind and domain bucket.

    Returns:
        Dictionary with ``by_kind``, ``tests``, ``other`` and ``by_domain``
    """
    by_kind = {kind.directory: 0 for kind in ComponentKind}
    by_domain: dict[str, int] = {}
    tests = 0
    other = 0

    for path in changed_files:
        posix = str(path).replace("\\", "/")
        classified = component_for_path(posix, app_dir)
        if classified is not None:
            kind, name = classified
            by_kind[kind.directory] += 1
            domain = classify_domain(name, kind)
            by_domain[domain] = by_domain.get(domain, 0) + 1
        elif "spec/" in posix or "test/" in posix:
            tests += 1
        else:
            other += 1

    return {
        "by_kind": by_kind,
        "tests": tests,
        "other": other,
        "by_domain": dict(sorted(by_domain.items(), key=lambda item: (-item[1], item[0]))),
    }
