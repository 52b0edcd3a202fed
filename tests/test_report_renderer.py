#!/usr/bin/env python3
"""Tests for Markdown, JSON, HTML and summary reports."""

import json

import pytest

import report_renderer as reports
import risk_scorer
from pattern_extractor import ComponentKind
from risk_scorer import CommitRecord
from risk_signals import Category, RiskSignal, Severity

CHANGED = ["app/models/user.rb", "app/controllers/users_controller.rb"]


@pytest.fixture
def report():
    signals = [
        RiskSignal(file="app/models/user.rb", line=2, rule="missing_index", category=Category.DATABASE,
                   severity=Severity.MEDIUM, message="Foreign key firm_id may need an index",
                   suggestion="Add an index on the foreign key column"),
        RiskSignal(file="app/controllers/users_controller.rb", line=0, rule="missing_test",
                   category=Category.TEST_COVERAGE, severity=Severity.MEDIUM,
                   message="No test found for app/controllers/users_controller.rb",
                   suggestion="Add spec/controllers/users_controller_spec.rb"),
        RiskSignal(file="app/controllers/users_controller.rb", line=5, rule="xss",
                   category=Category.SECURITY, severity=Severity.HIGH,
                   message="Raw output <script>", suggestion="Escape output"),
    ]
    records = risk_scorer.score_commits([
        CommitRecord(sha="abcdef1234", message="Add firm to user", author="Ada", files=CHANGED),
    ])
    return reports.RiskReport(
        generated_at="2024-01-01T00:00:00",
        codebase_version="abc1234 (main)",
        base_ref="main",
        changed_files=CHANGED,
        assessment=risk_scorer.score(CHANGED),
        signals=signals,
        change_stats=risk_scorer.change_statistics(CHANGED),
        affected_components={ComponentKind.MODEL: ["User", "Firm"], ComponentKind.CONTROLLER: ["UsersController"]},
        commits=records,
        highest_impact_commit=records[0]
    )


def test_json_payload(report):
    data = json.loads(reports.output_json(report))
    assert data["assessment"]["score"] == 12
    assert data["assessment"]["level"] == "Low"
    assert data["changed_files"] == CHANGED
    assert data["signal_counts"] == {"security": 1, "performance": 0, "database": 1, "test_coverage": 1}
    assert [s["rule"] for s in data["signals"]["database"]] == ["missing_index"]
    assert data["affected_components"]["models"] == ["User", "Firm"]
    assert data["affected_components"]["workers"] == []
    assert data["commits"][0]["short_sha"] == "abcdef1"
    assert data["highest_impact_commit"]["impact_score"] == 12


def test_json_without_commits(report):
    report.commits = []
    report.highest_impact_commit = None
    data = json.loads(reports.output_json(report))
    assert data["commits"] == []
    assert data["highest_impact_commit"] is None


def test_markdown_sections(report):
    text = reports.output_markdown(report)
    assert text.startswith("# PR Risk Analysis Report")
    assert "- **Risk Score:** 12/100" in text
    assert "| model_changes | 1 |" in text
    assert "## Risk Signals" in text
    assert "| Security | 1 |" in text
    assert "`app/models/user.rb:2`" in text
    assert "`app/controllers/users_controller.rb` | No test found" in text
    assert "- **Models:** User, Firm" in text
    assert "| `abcdef1` | Add firm to user | Ada | 2 | 12/100 | Low |" in text
    assert "- `app/models/user.rb`" in text


def test_markdown_without_changes():
    report = reports.RiskReport(
        generated_at="now",
        codebase_version="unknown",
        base_ref="main",
        changed_files=[],
        assessment=risk_scorer.score([])
    )
    text = reports.output_markdown(report)
    assert "No specific recommendations." in text
    assert "No changed files." in text
    assert "## Commit Timeline" not in text


def test_html_escapes_values(report):
    text = reports.output_html(report)
    assert text.startswith("<!DOCTYPE html>")
    assert "Raw output &lt;script&gt;" in text
    assert "<script>" not in text
    assert '<p class="low">' in text


def test_html_lists_statistics_components_and_top_commit(report):
    text = reports.output_html(report)
    assert "<p><strong>Files Changed:</strong> 2</p>" in text
    assert "<tr><td>Security</td><td>1</td></tr>" in text
    assert "<tr><td>models</td><td>1</td></tr>" in text
    assert "<strong>User Management:</strong>" in text
    assert "<li><strong>Models:</strong> User, Firm</li>" in text
    assert "<li><strong>Controllers:</strong> UsersController</li>" in text
    assert "<strong>Highest impact commit:</strong> <code>abcdef1</code>" in text


def test_markdown_and_html_share_domain_breakdown():
    changed = ["app/models/invoice.rb", "app/services/billing_service.rb"]
    report = reports.RiskReport(
        generated_at="now",
        codebase_version="unknown",
        base_ref="main",
        changed_files=changed,
        assessment=risk_scorer.score(changed),
        change_stats=risk_scorer.change_statistics(changed),
        affected_components={ComponentKind.MODEL: ["Invoice"]}
    )
    markdown = reports.output_markdown(report)
    page = reports.output_html(report)
    assert "- **Payments:**" in markdown
    assert "<strong>Payments:</strong>" in page
    assert "<li><strong>Models:</strong> Invoice</li>" in page


def test_summary(report):
    text = reports.output_summary(report)
    assert "**Risk Score:** 12/100 (Low)" in text
    assert "**Components:** 1 models, 1 controllers" in text
    assert "Security 1" in text
    assert "Highest impact commit: `abcdef1`" in text


def test_analysis_markdown(build_registry):
    registry = build_registry(
        (ComponentKind.MODEL, "A", ["B"], {"b": "belongs_to"}),
        (ComponentKind.MODEL, "B", ["A"]),
        (ComponentKind.CONTROLLER, "AController", ["A"], None, ["index"]),
    )
    text = reports.output_analysis_markdown(registry)
    assert "| models | 2 |" in text
    assert "| **Total** | **3** |" in text
    assert "- A <-> B" in text
    assert "No high complexity areas." in text
    assert "| A | 2 |" in text
    assert "| A | `app/models/a.rb` | 1 | 1 | 2 |" in text
    assert "| AController | `app/controllers/acontroller.rb` | 1 | 1 | 1 |" in text
