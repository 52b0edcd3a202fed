#!/usr/bin/env python3
"""
Report Renderer - Markdown, JSON, HTML and review-comment reports.

Formats a RiskReport (the PR analysis payload) and the component inventory of
a full scan. Nothing is computed here beyond counting and ordering; scores,
levels and tiers come from the scorer and analytics modules.

Usage:
    from report_renderer import RiskReport, output_markdown, output_json

    print(output_markdown(report))
"""

import html
import json
from dataclasses import dataclass, field
from typing import Optional

import graph_analytics as analytics
from component_registry import ComponentRegistry
from pattern_extractor import ComponentKind
from risk_scorer import CommitRiskRecord, RiskAssessment
from risk_signals import Category, RiskSignal, count_by_category, group_by_category, severity_rank

TOP_REFERENCED = 15


@dataclass
class RiskReport:
    """Everything a PR analysis run reports."""
    generated_at: str
    codebase_version: str
    base_ref: str
    changed_files: list[str]
    assessment: RiskAssessment
    signals: list[RiskSignal] = field(default_factory=list)
    change_stats: dict = field(default_factory=dict)
    affected_components: dict[ComponentKind, list[str]] = field(default_factory=dict)
    commits: list[CommitRiskRecord] = field(default_factory=list)
    highest_impact_commit: Optional[CommitRiskRecord] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "generated_at": self.generated_at,
            "codebase_version": self.codebase_version,
            "base_ref": self.base_ref,
            "changed_files": list(self.changed_files),
            "assessment": self.assessment.to_dict(),
            "signal_counts": count_by_category(self.signals),
            "signals": {
                key: [signal.to_dict() for signal in signals]
                for key, signals in group_by_category(self.signals).items()
            },
            "change_stats": self.change_stats,
            "affected_components": {
                kind.directory: list(self.affected_components.get(kind, []))
                for kind in ComponentKind
            },
            "commits": [record.to_dict() for record in self.commits],
            "highest_impact_commit": (
                self.highest_impact_commit.to_dict() if self.highest_impact_commit else None
            ),
        }


def _by_severity(signals: list[RiskSignal]) -> list[RiskSignal]:
    return sorted(signals, key=lambda signal: -severity_rank(signal.severity))


def _location(signal: RiskSignal) -> str:
    return f"{signal.file}:{signal.line}" if signal.line else signal.file


def output_json(report: RiskReport) -> str:
    """Format the report as JSON."""
    return json.dumps(report.to_dict(), indent=2)


def output_markdown(report: RiskReport) -> str:
    """Format the report as Markdown."""
    assessment = report.assessment
    lines = ["# PR Risk Analysis Report\n"]

    lines.append("## Summary\n")
    lines.append(f"- **Generated:** {report.generated_at}")
    lines.append(f"- **Codebase Version:** {report.codebase_version}")
    lines.append(f"- **Base:** `{report.base_ref}`")
    lines.append(f"- **Files Changed:** {len(report.changed_files)}")
    lines.append(f"- **Risk Score:** {assessment.score}/100")
    lines.append(f"- **Risk Level:** {assessment.level.value}")
    lines.append("")

    lines.append("### Risk Factors\n")
    lines.append("| Factor | Count |")
    lines.append("|--------|-------|")
    for name, value in assessment.factors.items():
        lines.append(f"| {name} | {value} |")
    lines.append("")

    lines.append("## Recommendations\n")
    if assessment.recommendations:
        for recommendation in assessment.recommendations:
            lines.append(f"- {recommendation}")
    else:
        lines.append("No specific recommendations.")
    lines.append("")

    lines.append("## Risk Signals\n")
    lines.append("| Category | Count |")
    lines.append("|----------|-------|")
    counts = count_by_category(report.signals)
    for category in Category:
        lines.append(f"| {category.value} | {counts[category.key]} |")
    lines.append("")

    grouped = group_by_category(report.signals)
    for category in Category:
        signals = grouped[category.key]
        if not signals:
            continue
        lines.append(f"### {category.value}\n")
        lines.append("| # | Location | Issue | Severity | Suggested Fix |")
        lines.append("|---|----------|-------|----------|---------------|")
        for idx, signal in enumerate(_by_severity(signals), 1):
            lines.append(
                f"| {idx} | `{_location(signal)}` | {signal.message} | "
                f"{signal.severity.value} | {signal.suggestion} |"
            )
        lines.append("")

    stats = report.change_stats
    if stats:
        lines.append("## Change Statistics\n")
        lines.append("| Kind | Files |")
        lines.append("|------|-------|")
        for kind, count in stats.get("by_kind", {}).items():
            lines.append(f"| {kind} | {count} |")
        lines.append(f"| tests | {stats.get('tests', 0)} |")
        lines.append(f"| other | {stats.get('other', 0)} |")
        lines.append("")

        by_domain = stats.get("by_domain", {})
        if by_domain:
            lines.append("### By Domain\n")
            for domain, count in by_domain.items():
                lines.append(f"- **{domain}:** {count}")
            lines.append("")

    if any(report.affected_components.values()):
        lines.append("## Affected Components\n")
        for kind in ComponentKind:
            names = report.affected_components.get(kind, [])
            if names:
                lines.append(f"- **{kind.value}s:** {', '.join(names)}")
        lines.append("")

    if report.commits:
        lines.append("## Commit Timeline\n")
        lines.append("| Commit | Message | Author | Files | Impact | Level |")
        lines.append("|--------|---------|--------|-------|--------|-------|")
        for record in report.commits:
            lines.append(
                f"| `{record.short_sha}` | {record.message} | {record.author} | "
                f"{len(record.files)} | {record.impact_score}/100 | {record.impact_level.value} |"
            )
        lines.append("")
        if report.highest_impact_commit:
            top = report.highest_impact_commit
            lines.append(f"**Highest impact commit:** `{top.short_sha}` {top.message} "
                         f"({top.impact_score}/100)")
            lines.append("")

    lines.append("## Changed Files\n")
    if report.changed_files:
        for path in report.changed_files:
            lines.append(f"- `{path}`")
    else:
        lines.append("No changed files.")

    return "\n".join(lines) + "\n"


def output_html(report: RiskReport) -> str:
    """Format the report as a standalone HTML page; every value is escaped."""
    esc = html.escape
    assessment = report.assessment
    level_class = assessment.level.style_class

    lines = [
        "<!DOCTYPE html>",
        "<html>",
        "<head>",
        '<meta charset="utf-8">',
        "<title>PR Risk Analysis Report</title>",
        "<style>",
        "body { font-family: sans-serif; margin: 2em; }",
        "table { border-collapse: collapse; margin-bottom: 1em; }",
        "th, td { border: 1px solid #ccc; padding: 4px 8px; text-align: left; }",
        ".low { background: #ccffcc; }",
        ".medium { background: #ffffcc; }",
        ".high { background: #ffcccc; }",
        ".critical { background: #cc0000; color: #ffffff; }",
        "</style>",
        "</head>",
        "<body>",
        "<h1>PR Risk Analysis Report</h1>",
        f"<p>Generated {esc(report.generated_at)} for {esc(report.codebase_version)} "
        f"against <code>{esc(report.base_ref)}</code></p>",
        f'<p class="{level_class}"><strong>Risk Score:</strong> {assessment.score}/100 '
        f"({esc(assessment.level.value)})</p>",
        f"<p><strong>Files Changed:</strong> {len(report.changed_files)}</p>",
    ]

    lines.append("<h2>Risk Factors</h2>")
    lines.append("<table><tr><th>Factor</th><th>Count</th></tr>")
    for name, value in assessment.factors.items():
        lines.append(f"<tr><td>{esc(name)}</td><td>{value}</td></tr>")
    lines.append("</table>")

    lines.append("<h2>Recommendations</h2>")
    if assessment.recommendations:
        lines.append("<ul>")
        lines.extend(f"<li>{esc(item)}</li>" for item in assessment.recommendations)
        lines.append("</ul>")
    else:
        lines.append("<p>No specific recommendations.</p>")

    lines.append("<h2>Risk Signals</h2>")
    counts = count_by_category(report.signals)
    lines.append("<table><tr><th>Category</th><th>Count</th></tr>")
    for category in Category:
        lines.append(f"<tr><td>{esc(category.value)}</td><td>{counts[category.key]}</td></tr>")
    lines.append("</table>")
    lines.append("<table><tr><th>Category</th><th>Location</th><th>Issue</th>"
                 "<th>Severity</th><th>Suggested Fix</th></tr>")
    for category, signals in group_by_category(report.signals).items():
        for signal in _by_severity(signals):
            lines.append(
                f"<tr><td>{esc(signal.category.value)}</td><td><code>{esc(_location(signal))}</code></td>"
                f"<td>{esc(signal.message)}</td><td>{esc(signal.severity.value)}</td>"
                f"<td>{esc(signal.suggestion)}</td></tr>"
            )
    lines.append("</table>")

    stats = report.change_stats
    if stats:
        lines.append("<h2>Change Statistics</h2>")
        lines.append("<table><tr><th>Kind</th><th>Files</th></tr>")
        for kind, count in stats.get("by_kind", {}).items():
            lines.append(f"<tr><td>{esc(kind)}</td><td>{count}</td></tr>")
        lines.append(f"<tr><td>tests</td><td>{stats.get('tests', 0)}</td></tr>")
        lines.append(f"<tr><td>other</td><td>{stats.get('other', 0)}</td></tr>")
        lines.append("</table>")

        by_domain = stats.get("by_domain", {})
        if by_domain:
            lines.append("<h3>By Domain</h3>")
            lines.append("<ul>")
            lines.extend(f"<li><strong>{esc(domain)}:</strong> {count}</li>"
                         for domain, count in by_domain.items())
            lines.append("</ul>")

    if any(report.affected_components.values()):
        lines.append("<h2>Affected Components</h2>")
        lines.append("<ul>")
        for kind in ComponentKind:
            names = report.affected_components.get(kind, [])
            if names:
                lines.append(f"<li><strong>{esc(kind.value)}s:</strong> {esc(', '.join(names))}</li>")
        lines.append("</ul>")

    if report.commits:
        lines.append("<h2>Commit Timeline</h2>")
        lines.append("<table><tr><th>Commit</th><th>Message</th><th>Author</th>"
                     "<th>Files</th><th>Impact</th><th>Level</th></tr>")
        for record in report.commits:
            lines.append(
                f'<tr class="{record.impact_level.style_class}"><td><code>{esc(record.short_sha)}</code></td>'
                f"<td>{esc(record.message)}</td><td>{esc(record.author)}</td>"
                f"<td>{len(record.files)}</td><td>{record.impact_score}/100</td>"
                f"<td>{esc(record.impact_level.value)}</td></tr>"
            )
        lines.append("</table>")
        if report.highest_impact_commit:
            top = report.highest_impact_commit
            lines.append(f"<p><strong>Highest impact commit:</strong> <code>{esc(top.short_sha)}</code> "
                         f"{esc(top.message)} ({top.impact_score}/100)</p>")

    lines.append("<h2>Changed Files</h2>")
    lines.append("<ul>")
    lines.extend(f"<li><code>{esc(path)}</code></li>" for path in report.changed_files)
    lines.append("</ul>")
    lines.append("</body>")
    lines.append("</html>")

    return "\n".join(lines) + "\n"


def output_summary(report: RiskReport) -> str:
    """Short Markdown block for posting on a review thread."""
    assessment = report.assessment
    stats = report.change_stats.get("by_kind", {})
    counts = count_by_category(report.signals)

    lines = ["## System Impact Analysis\n"]
    lines.append(f"**Risk Score:** {assessment.score}/100 ({assessment.level.value})")
    lines.append(f"**Changed Files:** {len(report.changed_files)}")
    if stats:
        breakdown = ", ".join(f"{count} {kind}" for kind, count in stats.items() if count)
        if breakdown:
            lines.append(f"**Components:** {breakdown}")
    lines.append("**Signals:** " + ", ".join(
        f"{category.value} {counts[category.key]}" for category in Category
    ))

    if assessment.recommendations:
        lines.append("")
        lines.append("### Recommendations")
        for recommendation in assessment.recommendations:
            lines.append(f"- {recommendation}")

    if report.highest_impact_commit:
        top = report.highest_impact_commit
        lines.append("")
        lines.append(f"Highest impact commit: `{top.short_sha}` {top.message} ({top.impact_score}/100)")

    return "\n".join(lines) + "\n"


def output_analysis_markdown(registry: ComponentRegistry) -> str:
    """Component inventory with fan-in, fan-out, complexity and cycles."""
    summary = analytics.summarize(registry)
    lines = ["# System Analysis\n"]

    lines.append("## Summary\n")
    lines.append("| Kind | Components |")
    lines.append("|------|------------|")
    for kind, count in summary["components"].items():
        lines.append(f"| {kind} | {count} |")
    lines.append(f"| **Total** | **{summary['total_components']}** |")
    lines.append("")

    lines.append("## Circular Dependencies\n")
    if summary["circular_dependencies"]:
        for first, second in summary["circular_dependencies"]:
            lines.append(f"- {first} <-> {second}")
    else:
        lines.append("No circular dependencies found.")
    lines.append("")

    lines.append("## High Complexity Areas\n")
    if summary["high_complexity"]:
        lines.append("| Component | Complexity |")
        lines.append("|-----------|------------|")
        for entry in summary["high_complexity"]:
            lines.append(f"| {entry['name']} | {entry['score']} |")
    else:
        lines.append("No high complexity areas.")
    lines.append("")

    references = analytics.reference_counts(registry, ComponentKind.MODEL)
    referenced = [(name, count) for name, count in analytics.top_by(references, TOP_REFERENCED) if count]
    if referenced:
        lines.append("## Most Referenced Models\n")
        lines.append("| Model | References |")
        lines.append("|-------|------------|")
        for name, count in referenced:
            lines.append(f"| {name} | {count} |")
        lines.append("")

    for kind in ComponentKind:
        records = list(registry.all(kind))
        if not records:
            continue
        lines.append(f"## {kind.value}s\n")
        if kind == ComponentKind.MODEL:
            lines.append("| Name | Path | Dependencies | Associations | Complexity |")
            lines.append("|------|------|--------------|--------------|------------|")
        elif kind == ComponentKind.CONTROLLER:
            lines.append("| Name | Path | Dependencies | Actions | Complexity |")
            lines.append("|------|------|--------------|---------|------------|")
        else:
            lines.append("| Name | Path | Dependencies | Complexity |")
            lines.append("|------|------|--------------|------------|")

        for record in records:
            deps = len(record.dependencies)
            complexity = analytics.complexity_score(record)
            if kind == ComponentKind.MODEL:
                extra = f" {len(record.associations)} |"
            elif kind == ComponentKind.CONTROLLER:
                extra = f" {len(record.actions)} |"
            else:
                extra = ""
            lines.append(f"| {record.name} | `{record.source_path}` | {deps} |{extra} {complexity} |")
        lines.append("")

    return "\n".join(lines)
