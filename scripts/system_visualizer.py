#!/usr/bin/env python3
"""
System Visualizer - Dependency diagrams and change risk for Rails codebases.

Scans app/{models,controllers,services,workers} with regular expressions,
builds a component graph and writes Mermaid diagrams plus Markdown, JSON and
HTML reports. For a pull request it scores the changed files, flags per-file
risk signals and scores each commit on the branch.

Usage:
    python scripts/system_visualizer.py analyze [options]
    python scripts/system_visualizer.py pr [BASE] [options]
    python scripts/system_visualizer.py risk-assessment [BASE] [--format json]
    python scripts/system_visualizer.py export {html,json,markdown} [BASE]
    python scripts/system_visualizer.py test-coverage [BASE]
    python scripts/system_visualizer.py complexity

Exit Codes:
    0 - Success
    1 - Fatal error (unreadable app path, invalid config, output write failure)
    2 - Critical risk level with --fail-on-critical
"""

import argparse
import logging
import sys
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

import diagram_renderer as diagrams
import graph_analytics as analytics
import report_renderer as reports
import risk_scorer
from artifacts import OutputWriteError, write_artifact, write_artifacts
from component_registry import ComponentRegistry
from git_changes import get_changed_files, get_codebase_version, get_commits
from risk_signals import collect_signals, count_by_category, find_missing_tests, signals_for_files
from scanner import ScanError, ScanResult, Scanner
from visualizer_config import ConfigError, VisualizerConfig, load_config

logger = logging.getLogger(__name__)

REPORT_BASENAME = "reports/pr_analysis_report"
REPORT_EXTENSIONS = {"markdown": "md", "json": "json", "html": "html"}
REPORT_RENDERERS = {
    "markdown": reports.output_markdown,
    "json": reports.output_json,
    "html": reports.output_html,
}
EXIT_FATAL = 1
EXIT_CRITICAL = 2


@dataclass
class AnalysisContext:
    """State of one run: configuration, populated registry and scan outcome."""
    config: VisualizerConfig
    registry: ComponentRegistry = field(default_factory=ComponentRegistry)
    scan_result: Optional[ScanResult] = None


def scan_repository(config: VisualizerConfig) -> AnalysisContext:
    """Full scan of the application tree."""
    context = AnalysisContext(config=config)
    context.scan_result = Scanner(config.to_scan_config(), context.registry).scan_repository()
    _log_scan(context.scan_result)
    return context


def scan_changes(config: VisualizerConfig, changed_files: list[str]) -> AnalysisContext:
    """Scan only the changed component files."""
    context = AnalysisContext(config=config)
    context.scan_result = Scanner(config.to_scan_config(), context.registry).scan_files(changed_files)
    _log_scan(context.scan_result)
    return context


def _log_scan(result: ScanResult):
    logger.info(f"Registered {len(result.registry)} components from {result.files_scanned} files")
    for skipped in result.skipped:
        logger.warning(f"Skipped {skipped['file']}: {skipped['error']}")
    for error in result.errors:
        logger.warning(error)


def resolve_changed_files(config: VisualizerConfig, files: Optional[list[str]] = None) -> list[str]:
    """Explicit file list if given, otherwise the git diff against the base branch."""
    if files is not None:
        return list(dict.fromkeys(files))
    return get_changed_files(config.repo_root, config.base_branch)


def run_analyze(config: VisualizerConfig) -> tuple[AnalysisContext, list[Path]]:
    """
    Full analysis: every structural diagram plus the inventory report.

    Returns:
        Tuple of (context, written paths)

    Raises:
        ScanError: If the application path does not exist
        OutputWriteError: If an artifact cannot be written
    """
    context = scan_repository(config)
    artifacts = diagrams.structural_diagrams(context.registry)
    artifacts["reports/analysis.md"] = reports.output_analysis_markdown(context.registry)
    return context, write_artifacts(config.output_root, artifacts)


def build_risk_report(
    config: VisualizerConfig,
    changed_files: list[str],
    with_commits: bool = True
) -> tuple[AnalysisContext, reports.RiskReport]:
    """
    Score a change set and gather everything the PR reports show.

    Args:
        config: Run configuration
        changed_files: Ordered repository-relative paths
        with_commits: Also score each commit between the base branch and HEAD

    Returns:
        Tuple of (context holding the changed components, report)
    """
    context = scan_changes(config, changed_files)
    signals = collect_signals(config.repo_root, changed_files, config.app_dir)

    commits = get_commits(config.repo_root, config.base_branch) if with_commits else []
    records = risk_scorer.score_commits(
        commits,
        lambda files: count_by_category(signals_for_files(signals, files))
    )

    report = reports.RiskReport(
        generated_at=datetime.now().isoformat(timespec="seconds"),
        codebase_version=get_codebase_version(config.repo_root),
        base_ref=config.base_branch,
        changed_files=list(changed_files),
        assessment=risk_scorer.score(changed_files),
        signals=signals,
        change_stats=risk_scorer.change_statistics(changed_files, config.app_dir),
        affected_components=analytics.affected_components(context.registry, changed_files, config.app_dir),
        commits=records,
        highest_impact_commit=risk_scorer.highest_impact(records)
    )
    logger.info(f"Risk score {report.assessment.score}/100 ({report.assessment.level.value}) "
                f"for {len(changed_files)} changed files")
    return context, report


def pr_artifacts(context: AnalysisContext, report: reports.RiskReport) -> dict[str, str]:
    """Every PR diagram and report body keyed by output file name."""
    config = context.config
    artifacts = {
        "pr-changes.md": diagrams.fenced(diagrams.generate_pr_diagram(
            context.registry, report.changed_files, report.assessment,
            report.affected_components, report.signals, config.app_dir
        )),
        "risk-assessment.md": diagrams.fenced(diagrams.generate_risk_diagram(
            report.assessment, report.changed_files, report.signals
        )),
    }

    for record in report.commits:
        artifacts[f"commit-{record.short_sha}.md"] = diagrams.fenced(
            diagrams.generate_commit_diagram(record, signals_for_files(report.signals, record.files))
        )
    artifacts["commit-timeline.md"] = diagrams.fenced(
        diagrams.generate_timeline_diagram(report.commits, report.highest_impact_commit)
    )

    for fmt in config.report_formats:
        artifacts[f"{REPORT_BASENAME}.{REPORT_EXTENSIONS[fmt]}"] = REPORT_RENDERERS[fmt](report)
    artifacts["reports/pr_comment.md"] = reports.output_summary(report)
    return artifacts


def run_pr(
    config: VisualizerConfig,
    files: Optional[list[str]] = None
) -> tuple[reports.RiskReport, list[Path]]:
    """
    PR analysis: impact, risk, commit and timeline diagrams plus reports.

    Commits are only read from git when no explicit file list is given.
    """
    changed_files = resolve_changed_files(config, files)
    context, report = build_risk_report(config, changed_files, with_commits=files is None)
    return report, write_artifacts(config.output_root, pr_artifacts(context, report))


def _split_files(value: Optional[str]) -> Optional[list[str]]:
    if value is None:
        return None
    return [part.strip() for part in value.replace("\n", ",").split(",") if part.strip()]


def _critical_exit(args, report: reports.RiskReport) -> int:
    if getattr(args, "fail_on_critical", False) and report.assessment.level == risk_scorer.RiskLevel.CRITICAL:
        print(f"Risk level is Critical ({report.assessment.score}/100)", file=sys.stderr)
        return EXIT_CRITICAL
    return 0


def command_analyze(args, config: VisualizerConfig) -> int:
    context, written = run_analyze(config)
    print(f"Analyzed {len(context.registry)} components")
    print(f"Wrote {len(written)} files to {config.output_root}")
    return 0


def command_pr(args, config: VisualizerConfig) -> int:
    report, written = run_pr(config, _split_files(args.files))
    print(reports.output_summary(report))
    print(f"Wrote {len(written)} files to {config.output_root}")
    return _critical_exit(args, report)


def command_risk_assessment(args, config: VisualizerConfig) -> int:
    files = _split_files(args.files)
    _, report = build_risk_report(config, resolve_changed_files(config, files), with_commits=files is None)
    if args.output_format == "json":
        print(reports.output_json(report))
    else:
        print(reports.output_markdown(report))
    return _critical_exit(args, report)


def command_export(args, config: VisualizerConfig) -> int:
    files = _split_files(args.files)
    _, report = build_risk_report(config, resolve_changed_files(config, files), with_commits=files is None)
    path = write_artifact(
        config.output_root,
        f"{REPORT_BASENAME}.{REPORT_EXTENSIONS[args.export_format]}",
        REPORT_RENDERERS[args.export_format](report)
    )
    print(f"Exported {args.export_format} report to {path}")
    return _critical_exit(args, report)


def command_test_coverage(args, config: VisualizerConfig) -> int:
    changed_files = resolve_changed_files(config, _split_files(args.files))
    missing = find_missing_tests(config.repo_root, changed_files, config.app_dir)

    print("# Test Coverage\n")
    if not missing:
        print("All changed components have tests.")
        return 0
    for signal in missing:
        print(f"- `{signal.file}`: {signal.suggestion}")
    return 0


def command_complexity(args, config: VisualizerConfig) -> int:
    context = scan_repository(config)

    print("# Complexity\n")
    print("## High Complexity Areas\n")
    areas = analytics.high_complexity_areas(context.registry)
    if areas:
        for name, score in areas:
            print(f"- {name}: {score}")
    else:
        print("No high complexity areas.")

    print("\n## Circular Dependencies\n")
    cycles = analytics.find_cycles(context.registry)
    if cycles:
        for first, second in cycles:
            print(f"- {first} <-> {second}")
    else:
        print("No circular dependencies found.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--repo",
        default=".",
        help="Repository root (default: current directory)"
    )
    common.add_argument(
        "--app-path",
        help="Application directory relative to the repository root (default: app)"
    )
    common.add_argument(
        "--output",
        help="Output directory for diagrams and reports (default: docs/system-diagrams)"
    )
    common.add_argument(
        "--config",
        help="YAML config file (default: .system_visualizer.yml in the repository root)"
    )
    common.add_argument(
        "--progress",
        action="store_true",
        help="Show a progress bar while scanning"
    )
    common.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging"
    )

    changes = argparse.ArgumentParser(add_help=False)
    changes.add_argument(
        "base",
        nargs="?",
        help="Base branch to diff against (default: from config, main)"
    )
    changes.add_argument(
        "--files",
        help="Comma-separated changed files to use instead of git"
    )

    gate = argparse.ArgumentParser(add_help=False)
    gate.add_argument(
        "--fail-on-critical",
        action="store_true",
        help="Exit with code 2 when the risk level is Critical"
    )

    parser = argparse.ArgumentParser(
        prog="system-visualizer",
        description="Visualize Rails component dependencies and assess change risk",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s analyze
  %(prog)s analyze --repo /path/to/rails/app --output docs/diagrams
  %(prog)s pr develop --fail-on-critical
  %(prog)s pr --files app/models/user.rb,spec/models/user_spec.rb
  %(prog)s risk-assessment --format json
  %(prog)s export html
  %(prog)s test-coverage
  %(prog)s complexity
"""
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze = subparsers.add_parser("analyze", parents=[common], help="Full analysis with all diagrams")
    analyze.set_defaults(handler=command_analyze)

    pr = subparsers.add_parser("pr", parents=[common, changes, gate],
                               help="PR impact analysis with diagrams and reports")
    pr.set_defaults(handler=command_pr)

    risk = subparsers.add_parser("risk-assessment", parents=[common, changes, gate],
                                 help="Print the risk report for the current changes")
    risk.add_argument(
        "--format",
        dest="output_format",
        choices=["markdown", "json"],
        default="markdown",
        help="Output format (default: markdown)"
    )
    risk.set_defaults(handler=command_risk_assessment)

    export = subparsers.add_parser("export", parents=[common, gate], help="Write one report format")
    export.add_argument(
        "export_format",
        choices=list(REPORT_EXTENSIONS),
        help="Report format"
    )
    export.add_argument(
        "base",
        nargs="?",
        help="Base branch to diff against (default: from config, main)"
    )
    export.add_argument(
        "--files",
        help="Comma-separated changed files to use instead of git"
    )
    export.set_defaults(handler=command_export)

    coverage = subparsers.add_parser("test-coverage", parents=[common, changes],
                                     help="List changed components without tests")
    coverage.set_defaults(handler=command_test_coverage)

    complexity = subparsers.add_parser("complexity", parents=[common],
                                       help="Print high complexity areas and cycles")
    complexity.set_defaults(handler=command_complexity)

    return parser


def main(argv: Optional[list[str]] = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s"
    )

    try:
        if not Path(args.repo).is_dir():
            raise ScanError(f"Repository root does not exist: {args.repo}")
        config = load_config(Path(args.repo), Path(args.config) if args.config else None)
        config.apply_overrides(
            app_path=args.app_path,
            output_path=args.output,
            base_branch=getattr(args, "base", None),
            show_progress=True if args.progress else None
        )
        exit_code = args.handler(args, config)
    except (ScanError, ConfigError, OutputWriteError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(EXIT_FATAL)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
