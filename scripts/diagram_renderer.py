#!/usr/bin/env python3
"""
Diagram Renderer - Mermaid graph descriptions of the component graph and risk.

Every view is a pure function of the registry and of analytics / risk scorer
output; tiers and groupings are computed elsewhere and only formatted here.

Views:
    overview, models, controllers, services, workers, dependency analysis,
    service dependency map, circular dependencies, PR impact, risk overview,
    per-commit impact and commit timeline
"""

import re
from contextlib import contextmanager
from pathlib import PurePosixPath
from typing import Iterator, Optional

import graph_analytics as analytics
from component_registry import ComponentRegistry
from pattern_extractor import ComponentKind, component_for_path
from risk_scorer import CommitRiskRecord, RiskAssessment, file_impact
from risk_signals import Category, RiskSignal, count_by_category

CLASS_DEFS = [
    "classDef low fill:#ccffcc,stroke:#66ff66,stroke-width:2px",
    "classDef medium fill:#ffffcc,stroke:#ffaa66,stroke-width:2px",
    "classDef high fill:#ffcccc,stroke:#ff6666,stroke-width:2px",
    "classDef critical fill:#cc0000,stroke:#990000,stroke-width:3px,color:#ffffff",
    "classDef securityRisk fill:#ff6b6b,stroke:#d63031,stroke-width:2px",
    "classDef performanceRisk fill:#fdcb6e,stroke:#e17055,stroke-width:2px",
    "classDef databaseImpact fill:#74b9ff,stroke:#0984e3,stroke-width:2px",
    "classDef testCoverage fill:#dfe6e9,stroke:#636e72,stroke-width:2px",
]

CATEGORY_STYLES = {
    Category.SECURITY: ("SecurityRisks", "Security Risks", "securityRisk"),
    Category.PERFORMANCE: ("PerformanceRisks", "Performance Risks", "performanceRisk"),
    Category.DATABASE: ("DatabaseImpacts", "Database Impacts", "databaseImpact"),
    Category.TEST_COVERAGE: ("TestCoverageGaps", "Test Coverage Gaps", "testCoverage"),
}

OVERVIEW_MODELS_PER_DOMAIN = 5
OVERVIEW_TOP_SERVICES = 10
OVERVIEW_TOP_CONTROLLERS = 8
OVERVIEW_KEY_SERVICES = 3
OVERVIEW_KEY_DEPENDENCIES = 3
MAX_CROSS_DOMAIN_EDGES = 50
MAX_SERVICE_EDGES = 30
TOP_REFERENCED = 15
TOP_DEPENDENT = 10
KEY_REFERENCED = 5
MAX_LABEL_MESSAGE = 40


def node_id(value: str) -> str:
    """Mermaid-safe identifier: every character outside [A-Za-z0-9_] becomes _."""
    return re.sub(r"[^A-Za-z0-9_]", "_", value)


def component_id(kind: ComponentKind, name: str) -> str:
    """Node id scoped by kind, so a model and a service may share a name."""
    return f"{kind.name.lower()}_{name}"


def escape_label(text: str) -> str:
    return str(text).replace('"', "#quot;")


class MermaidGraph:
    """Line-oriented builder for a Mermaid flowchart."""

    def __init__(self, direction: str = "TD"):
        self.lines = [f"graph {direction}"]
        self._depth = 1

    def _add(self, text: str):
        self.lines.append("  " * self._depth + text)

    @contextmanager
    def subgraph(self, title: str) -> Iterator['MermaidGraph']:
        self._add(f'subgraph "{escape_label(title)}"')
        self._depth += 1
        try:
            yield self
        finally:
            self._depth -= 1
            self._add("end")

    def node(self, ident: str, label: str, style: Optional[str] = None):
        suffix = f":::{style}" if style else ""
        self._add(f'{node_id(ident)}["{escape_label(label)}"]{suffix}')

    def edge(self, source: str, target: str, dotted: bool = False):
        arrow = "-.->" if dotted else "-->"
        self._add(f"{node_id(source)} {arrow} {node_id(target)}")

    def comment(self, text: str):
        self._add(f"%% {text}")

    def blank(self):
        self.lines.append("")

    def render(self) -> str:
        lines = list(self.lines)
        lines.append("")
        lines.extend(f"  {class_def}" for class_def in CLASS_DEFS)
        return "\n".join(lines) + "\n"


def fenced(diagram: str) -> str:
    """Wrap a diagram in a Markdown mermaid code fence."""
    return f"```mermaid\n{diagram.rstrip()}\n```\n"


def generate_overview_diagram(registry: ComponentRegistry) -> str:
    """Top models per domain, busiest services and controllers, key edges."""
    graph = MermaidGraph()
    services = analytics.top_by(analytics.dependency_counts(registry, ComponentKind.SERVICE),
                                OVERVIEW_TOP_SERVICES)
    controllers = analytics.top_by(
        {record.name: len(record.actions) for record in registry.all(ComponentKind.CONTROLLER)},
        OVERVIEW_TOP_CONTROLLERS
    )

    with graph.subgraph("Rails Application Architecture"):
        for domain, models in analytics.group_by_domain(registry.names(ComponentKind.MODEL)).items():
            with graph.subgraph(f"{domain} Models"):
                for model in models[:OVERVIEW_MODELS_PER_DOMAIN]:
                    graph.node(component_id(ComponentKind.MODEL, model), model)
                hidden = len(models) - OVERVIEW_MODELS_PER_DOMAIN
                if hidden > 0:
                    graph.node(f"more_{domain}", f"... {hidden} more")

        with graph.subgraph("Top Services by Dependencies"):
            for name, count in services:
                graph.node(component_id(ComponentKind.SERVICE, name), f"{name}<br/>{count} deps")

        with graph.subgraph("Top Controllers by Actions"):
            for name, count in controllers:
                graph.node(component_id(ComponentKind.CONTROLLER, name), f"{name}<br/>{count} actions")

    graph.blank()
    graph.comment("Key architectural relationships")
    for name, _ in services[:OVERVIEW_KEY_SERVICES]:
        record = registry.get(ComponentKind.SERVICE, name)
        for dependency in record.dependencies[:OVERVIEW_KEY_DEPENDENCIES]:
            if registry.contains(ComponentKind.MODEL, dependency):
                graph.edge(component_id(ComponentKind.SERVICE, name),
                           component_id(ComponentKind.MODEL, dependency), dotted=True)

    return graph.render()


def generate_models_diagram(registry: ComponentRegistry) -> str:
    """Models grouped by domain, colored by dependency count, cross-domain edges."""
    graph = MermaidGraph()
    domains = analytics.group_by_domain(registry.names(ComponentKind.MODEL))

    for domain, models in domains.items():
        with graph.subgraph(domain):
            for model in models:
                record = registry.get(ComponentKind.MODEL, model)
                deps = len(record.dependencies)
                graph.node(model, f"{model}<br/>{len(record.associations)} assoc, {deps} deps",
                           analytics.tier(deps, analytics.MODEL_DEPENDENCY_TIERS))
        graph.blank()

    edges = 0
    for domain, models in domains.items():
        for other_domain, other_models in domains.items():
            if domain == other_domain:
                continue
            for model in models:
                record = registry.get(ComponentKind.MODEL, model)
                for other in other_models:
                    if edges < MAX_CROSS_DOMAIN_EDGES and other in record.dependencies:
                        graph.edge(model, other, dotted=True)
                        edges += 1

    return graph.render()


def generate_kind_diagram(registry: ComponentRegistry, kind: ComponentKind) -> str:
    """Controllers, services or workers with their edges to known models and services."""
    graph = MermaidGraph()
    with graph.subgraph(f"{kind.value}s"):
        for record in registry.all(kind):
            graph.node(record.name, record.name)
    graph.blank()

    for record in registry.all(kind):
        for dependency in record.dependencies:
            if (registry.contains(ComponentKind.MODEL, dependency)
                    or registry.contains(ComponentKind.SERVICE, dependency)):
                graph.edge(record.name, dependency)

    return graph.render()


def generate_dependency_analysis(registry: ComponentRegistry) -> str:
    """Most referenced models and models with the most dependencies."""
    graph = MermaidGraph()
    references = {name: count for name, count in
                  analytics.reference_counts(registry, ComponentKind.MODEL).items() if count > 0}
    top_referenced = analytics.top_by(references, TOP_REFERENCED)
    most_dependent = analytics.top_by(analytics.dependency_counts(registry, ComponentKind.MODEL),
                                      TOP_DEPENDENT)

    with graph.subgraph("Dependency Analysis"):
        with graph.subgraph("Most Referenced Models"):
            for name, count in top_referenced:
                graph.node(name, f"{name}<br/>{count} references",
                           analytics.tier(count, analytics.REFERENCE_COUNT_TIERS))
        with graph.subgraph("Models with Most Dependencies"):
            for name, count in most_dependent:
                graph.node(f"deps_{name}", f"{name}<br/>{count} deps",
                           analytics.tier(count, analytics.MOST_DEPENDENT_TIERS))

    graph.blank()
    graph.comment("Key dependency relationships")
    for name, _ in top_referenced[:KEY_REFERENCED]:
        for _, dependent, record in registry.all_kinds():
            if name in record.dependencies:
                graph.edge(dependent, name)

    return graph.render()


def generate_service_dependency_map(registry: ComponentRegistry) -> str:
    """Services grouped by domain with service-to-service edges."""
    graph = MermaidGraph()
    domains = analytics.group_by_domain(registry.names(ComponentKind.SERVICE), ComponentKind.SERVICE)

    with graph.subgraph("Service Dependency Map"):
        for domain, services in domains.items():
            with graph.subgraph(f"{domain} Services"):
                for name in services:
                    deps = len(registry.get(ComponentKind.SERVICE, name).dependencies)
                    graph.node(name, f"{name}<br/>{deps} deps",
                               analytics.tier(deps, analytics.SERVICE_DEPENDENCY_TIERS))

    graph.blank()
    edges = 0
    for record in registry.all(ComponentKind.SERVICE):
        for dependency in record.dependencies:
            if edges < MAX_SERVICE_EDGES and registry.contains(ComponentKind.SERVICE, dependency):
                graph.edge(record.name, dependency, dotted=True)
                edges += 1

    return graph.render()


def generate_circular_dependency_diagram(registry: ComponentRegistry) -> str:
    """Mutual model dependencies and high complexity areas."""
    graph = MermaidGraph()
    cycles = analytics.find_cycles(registry)

    with graph.subgraph("Circular Dependency Analysis"):
        if cycles:
            with graph.subgraph("Circular Dependencies Found"):
                for first, second in cycles:
                    graph.edge(first, second)
                    graph.edge(second, first)
        else:
            graph.node("NoCircular", "No circular dependencies found", "low")

        with graph.subgraph("High Complexity Areas"):
            for name, score in analytics.high_complexity_areas(registry):
                graph.node(f"complex_{name}", f"{name}<br/>Complexity: {score}", "high")

    return graph.render()


def _risk_node(graph: MermaidGraph, assessment: RiskAssessment, ident: str = "RiskScore"):
    graph.node(ident, f"Risk Score: {assessment.score}/100<br/>Level: {assessment.level.value}",
               assessment.level.style_class)


def _category_nodes(graph: MermaidGraph, signals: list[RiskSignal], source: str):
    counts = count_by_category(signals)
    for category, (ident, title, style) in CATEGORY_STYLES.items():
        count = counts[category.key]
        if count:
            graph.node(f"{source}_{ident}", f"{title}: {count}", style)
            graph.edge(source, f"{source}_{ident}")


def generate_pr_diagram(
    registry: ComponentRegistry,
    changed_files: list[str],
    assessment: RiskAssessment,
    affected: dict[ComponentKind, list[str]],
    signals: Optional[list[RiskSignal]] = None,
    app_dir: str = "app"
) -> str:
    """
    Impact of a change set: changed files, affected components, risk.

    Args:
        registry: Registry holding at least the changed components
        changed_files: Ordered changed paths
        assessment: Risk assessment of the change set
        affected: Affected component names per kind
        signals: Per-file risk signals, summarized per category
        app_dir: Name of the application root directory
    """
    graph = MermaidGraph()
    _risk_node(graph, assessment)

    with graph.subgraph("PR Impact Analysis"):
        with graph.subgraph("Changed Files"):
            for path in changed_files:
                impact = file_impact(path)
                graph.node(f"file_{path}", f"{PurePosixPath(path).name}<br/>{impact} impact", impact)
        graph.blank()

        for kind in ComponentKind:
            names = affected.get(kind, [])
            if not names:
                continue
            with graph.subgraph(f"Affected {kind.value}s"):
                for name in names:
                    graph.node(component_id(kind, name), _component_label(registry, kind, name))
            graph.blank()

    graph.blank()
    graph.comment("Direct file changes")
    for path in changed_files:
        classified = component_for_path(path, app_dir)
        if classified is not None:
            graph.edge(f"file_{path}", component_id(*classified))
        graph.edge(f"file_{path}", "RiskScore", dotted=True)

    graph.comment("Dependency relationships")
    for kind in ComponentKind:
        for name in affected.get(kind, []):
            record = registry.get(kind, name)
            if record is None:
                continue
            for dependency in record.dependencies:
                for target_kind in ComponentKind:
                    if dependency in affected.get(target_kind, []):
                        graph.edge(component_id(kind, name), component_id(target_kind, dependency),
                                   dotted=True)

    if signals:
        graph.comment("Risk signals")
        _category_nodes(graph, signals, "RiskScore")

    return graph.render()


def _component_label(registry: ComponentRegistry, kind: ComponentKind, name: str) -> str:
    record = registry.get(kind, name)
    if record is None:
        return name
    deps = len(record.dependencies)
    if kind == ComponentKind.MODEL:
        return f"{name}<br/>{deps} deps, {len(record.associations)} assoc"
    if kind == ComponentKind.CONTROLLER:
        return f"{name}<br/>{deps} deps, {len(record.actions)} actions"
    return f"{name}<br/>{deps} deps"


def generate_risk_diagram(
    assessment: RiskAssessment,
    changed_files: list[str],
    signals: list[RiskSignal]
) -> str:
    """Risk score with contributing files and signal categories."""
    graph = MermaidGraph()
    _risk_node(graph, assessment)

    for path in changed_files:
        impact = file_impact(path)
        graph.node(f"file_{path}", f"{PurePosixPath(path).name}<br/>{path}<br/>Impact: {impact}", impact)
        graph.edge(f"file_{path}", "RiskScore")

    _category_nodes(graph, signals, "RiskScore")

    factors = "<br/>".join(f"{name}: {value}" for name, value in assessment.factors.items())
    graph.node("RiskFactors", f"Factors<br/>{factors}")
    graph.edge("RiskScore", "RiskFactors", dotted=True)

    return graph.render()


def _commit_label(record: CommitRiskRecord) -> str:
    message = record.message
    if len(message) > MAX_LABEL_MESSAGE:
        message = message[:MAX_LABEL_MESSAGE - 3] + "..."
    return f"{record.short_sha}<br/>{message}<br/>Impact: {record.impact_score}/100"


def generate_commit_diagram(record: CommitRiskRecord, signals: list[RiskSignal]) -> str:
    """Impact of a single commit: its files and signal categories."""
    graph = MermaidGraph()
    commit_id = f"commit_{record.short_sha}"
    graph.node(commit_id, f"{_commit_label(record)}<br/>{record.author}", record.impact_level.style_class)

    with graph.subgraph("Changed Files"):
        for path in record.files:
            impact = file_impact(path)
            graph.node(f"file_{path}", f"{PurePosixPath(path).name}<br/>{impact} impact", impact)

    for path in record.files:
        graph.edge(f"file_{path}", commit_id)

    _category_nodes(graph, signals, commit_id)
    return graph.render()


def generate_timeline_diagram(
    records: list[CommitRiskRecord],
    highest: Optional[CommitRiskRecord] = None
) -> str:
    """Commits left to right, oldest first, colored by impact level."""
    graph = MermaidGraph(direction="LR")
    if not records:
        graph.node("NoCommits", "No commits found", "low")
        return graph.render()

    for record in records:
        label = _commit_label(record)
        if highest is not None and record is highest:
            label += "<br/>Highest impact"
        graph.node(f"commit_{record.short_sha}", label, record.impact_level.style_class)

    for previous, current in zip(records, records[1:]):
        graph.edge(f"commit_{previous.short_sha}", f"commit_{current.short_sha}")

    return graph.render()


def structural_diagrams(registry: ComponentRegistry) -> dict[str, str]:
    """All full-analysis views keyed by output file name."""
    return {
        "overview.md": fenced(generate_overview_diagram(registry)),
        "models.md": fenced(generate_models_diagram(registry)),
        "controllers.md": fenced(generate_kind_diagram(registry, ComponentKind.CONTROLLER)),
        "services.md": fenced(generate_kind_diagram(registry, ComponentKind.SERVICE)),
        "workers.md": fenced(generate_kind_diagram(registry, ComponentKind.WORKER)),
        "dependency-analysis.md": fenced(generate_dependency_analysis(registry)),
        "service-dependency-map.md": fenced(generate_service_dependency_map(registry)),
        "circular-dependency-analysis.md": fenced(generate_circular_dependency_diagram(registry)),
    }
