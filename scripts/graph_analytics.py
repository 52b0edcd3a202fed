#!/usr/bin/env python3
"""
Graph Analytics - Metrics over a populated component registry.

Computes reference counts (fan-in), dependency counts (fan-out), additive
complexity scores, 2-node circular dependencies between models and display
grouping of component names into domain buckets. Also owns the severity-tier
thresholds the diagrams are colored with.

All functions are read-only over the registry.
"""

from typing import Iterable, Optional

from component_registry import ComponentRecord, ComponentRegistry
from pattern_extractor import ComponentKind, component_for_path

# Domain buckets in priority order: (label, keywords)
MODEL_DOMAINS = [
    ("User Management", ["user", "contact", "firm", "lawyer", "client"]),
    ("Court Cases", ["court", "case", "matter"]),
    ("Documents", ["document", "file", "attachment"]),
    ("Payments", ["payment", "bill", "invoice", "charge"]),
    ("Accounting", ["account", "ledger", "journal", "transaction"]),
    ("Communication", ["email", "message", "notification", "reminder"]),
]

SERVICE_DOMAINS = [
    ("User Management", ["user", "contact", "firm", "lawyer", "client", "auth"]),
    ("Court Cases", ["court", "case", "matter"]),
    ("Documents", ["document", "file", "attachment"]),
    ("Payments", ["payment", "bill", "invoice", "charge"]),
    ("Accounting", ["account", "ledger", "journal", "transaction"]),
    ("Communication", ["email", "message", "notification", "reminder"]),
    ("Integration", ["integration", "sync", "api", "webhook"]),
]

OTHER_DOMAIN = "Other"

# Severity tiers: (medium above, high above)
MODEL_DEPENDENCY_TIERS = (5, 10)
REFERENCE_COUNT_TIERS = (10, 20)
MOST_DEPENDENT_TIERS = (8, 15)
SERVICE_DEPENDENCY_TIERS = (4, 8)

# Complexity reporting cut-offs
MODEL_COMPLEXITY_THRESHOLD = 10
SERVICE_COMPLEXITY_THRESHOLD = 8
HIGH_COMPLEXITY_LIMIT = 10


def reference_counts(registry: ComponentRegistry, kind: ComponentKind) -> dict[str, int]:
    """
    Count incoming dependency edges (fan-in) for components of one kind.

    Every edge A -> B over all registered components increments B when B is
    registered under ``kind``. Self-references count.

    Args:
        registry: Populated registry
        kind: Kind whose components are counted

    Returns:
        Mapping of every registered name of ``kind`` to its reference count
    """
    counts = {name: 0 for name in registry.names(kind)}
    for _, _, record in registry.all_kinds():
        for dependency in record.dependencies:
            if dependency in counts:
                counts[dependency] += 1
    return counts


def dependency_counts(registry: ComponentRegistry, kind: ComponentKind) -> dict[str, int]:
    """Fan-out: number of declared dependencies per component of ``kind``."""
    return {record.name: len(record.dependencies) for record in registry.all(kind)}


def complexity_score(record: ComponentRecord) -> int:
    """Additive complexity heuristic, not cyclomatic complexity."""
    if record.kind == ComponentKind.MODEL:
        return len(record.dependencies) + len(record.associations)
    return len(record.dependencies)


def find_cycles(registry: ComponentRegistry) -> list[tuple[str, str]]:
    """
    Find 2-node mutual dependencies between models.

    Only direct A <-> B pairs are detected; longer cycles are not. Each
    unordered pair is reported once as a sorted tuple, in discovery order.
    """
    cycles = []
    seen = set()

    for model in registry.all(ComponentKind.MODEL):
        for dependency in model.dependencies:
            if dependency == model.name:
                continue
            other = registry.get(ComponentKind.MODEL, dependency)
            if other is None or model.name not in other.dependencies:
                continue
            pair = tuple(sorted((model.name, dependency)))
            if pair not in seen:
                seen.add(pair)
                cycles.append(pair)

    return cycles


def classify_domain(name: str, kind: ComponentKind = ComponentKind.MODEL) -> str:
    """Domain bucket for one name; first matching bucket wins."""
    rules = SERVICE_DOMAINS if kind == ComponentKind.SERVICE else MODEL_DOMAINS
    lowered = name.lower()
    for label, keywords in rules:
        if any(keyword in lowered for keyword in keywords):
            return label
    return OTHER_DOMAIN


def group_by_domain(names: Iterable[str], kind: ComponentKind = ComponentKind.MODEL) -> dict[str, list[str]]:
    """
    Group names into display-only domain buckets.

    Args:
        names: Component names, grouped in the order given
        kind: SERVICE selects the service keyword table (adds ``auth`` and
            the Integration bucket); every other kind uses the model table

    Returns:
        Ordered mapping of non-empty buckets to names
    """
    rules = SERVICE_DOMAINS if kind == ComponentKind.SERVICE else MODEL_DOMAINS
    domains = {label: [] for label, _ in rules}
    domains[OTHER_DOMAIN] = []

    for name in names:
        domains[classify_domain(name, kind)].append(name)

    return {label: members for label, members in domains.items() if members}


def high_complexity_areas(registry: ComponentRegistry) -> list[tuple[str, int]]:
    """Models scoring above 10 and services above 8, highest first, top 10."""
    scores = {}
    for record in registry.all(ComponentKind.MODEL):
        score = complexity_score(record)
        if score > MODEL_COMPLEXITY_THRESHOLD:
            scores[record.name] = score
    for record in registry.all(ComponentKind.SERVICE):
        score = complexity_score(record)
        if score > SERVICE_COMPLEXITY_THRESHOLD:
            scores[record.name] = score
    return top_by(scores, HIGH_COMPLEXITY_LIMIT)


def top_by(values: dict[str, int], limit: Optional[int] = None) -> list[tuple[str, int]]:
    """Sort a name -> count mapping descending; ties keep insertion order."""
    ranked = sorted(values.items(), key=lambda item: -item[1])
    return ranked[:limit] if limit is not None else ranked


def tier(value: int, thresholds: tuple[int, int]) -> str:
    """Map a count onto the low/medium/high severity tiers."""
    medium_above, high_above = thresholds
    if value > high_above:
        return "high"
    if value > medium_above:
        return "medium"
    return "low"


def summarize(registry: ComponentRegistry) -> dict:
    """Per-kind component counts plus cycle and complexity summaries."""
    return {
        "components": {kind.directory: registry.count(kind) for kind in ComponentKind},
        "total_components": len(registry),
        "circular_dependencies": [list(pair) for pair in find_cycles(registry)],
        "high_complexity": [
            {"name": name, "score": score} for name, score in high_complexity_areas(registry)
        ],
    }


def affected_components(
    registry: ComponentRegistry,
    changed_files: Iterable[str],
    app_dir: str = "app"
) -> dict[ComponentKind, list[str]]:
    """
    Components touched by a change set plus their direct dependencies.

    A dependency is listed under the kind it is registered as. Unregistered
    names ending in Controller, Service or Worker go to that kind; anything
    else is listed as a model.

    Args:
        registry: Registry holding at least the changed components
        changed_files: Repository-relative paths
        app_dir: Name of the application root directory

    Returns:
        Ordered, de-duplicated names per kind; every kind is present
    """
    affected = {kind: [] for kind in ComponentKind}

    def add(kind: ComponentKind, name: str):
        if name not in affected[kind]:
            affected[kind].append(name)

    for path in changed_files:
        classified = component_for_path(str(path).replace("\\", "/"), app_dir)
        if classified is None:
            continue
        kind, name = classified
        add(kind, name)
        record = registry.get(kind, name)
        if record is None:
            continue
        for dependency in record.dependencies:
            add(registry.kind_of(dependency) or kind_for_name(dependency), dependency)

    return affected


def kind_for_name(name: str) -> ComponentKind:
    """Guess the kind of an unregistered name from its suffix."""
    for kind in (ComponentKind.CONTROLLER, ComponentKind.SERVICE, ComponentKind.WORKER):
        if name.endswith(kind.value):
            return kind
    return ComponentKind.MODEL
