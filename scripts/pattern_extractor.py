#!/usr/bin/env python3
"""
Pattern Extractor - Lexical dependency extraction for Rails-style components.

Scans the text of a single source file with regular expressions and returns the
relationships it declares: associations, service references and generic model
references, plus kind-specific facts (association map for models, action list
for controllers). No syntax tree is built; false positives and negatives of the
scan are accepted.

Usage:
    from pattern_extractor import ComponentKind, extract

    result = extract(content, ComponentKind.MODEL)
    print(result.dependencies, result.associations)
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath
from typing import Optional


class ComponentKind(Enum):
    MODEL = "Model"
    CONTROLLER = "Controller"
    SERVICE = "Service"
    WORKER = "Worker"

    @property
    def directory(self) -> str:
        """Name of the app/ subdirectory holding this kind."""
        return KIND_DIRECTORIES[self]


KIND_DIRECTORIES = {
    ComponentKind.MODEL: "models",
    ComponentKind.CONTROLLER: "controllers",
    ComponentKind.SERVICE: "services",
    ComponentKind.WORKER: "workers",
}

ASSOCIATION_KINDS = ("belongs_to", "has_many", "has_one", "has_and_belongs_to_many")

ASSOCIATION_PATTERN = re.compile(
    r"\b(" + "|".join(ASSOCIATION_KINDS) + r")\s+:(\w+)"
)

SERVICE_REFERENCE_PATTERN = re.compile(r"(\w+)Service\.(?:new|call)\b")

GENERIC_REFERENCE_PATTERN = re.compile(r"(\w+)\.(?:find|where|new)")

ACTION_PATTERN = re.compile(r"\bdef\s+(\w+)")

RESERVED_ACTIONS = {"initialize", "private", "protected"}

# Which reference scans run for each kind
KIND_SCANS = {
    ComponentKind.MODEL: {"associations": True, "generic": False},
    ComponentKind.CONTROLLER: {"associations": False, "generic": True},
    ComponentKind.SERVICE: {"associations": False, "generic": True},
    ComponentKind.WORKER: {"associations": False, "generic": True},
}


@dataclass
class ExtractionResult:
    """Relationships and facts extracted from one file."""
    dependencies: list[str] = field(default_factory=list)
    associations: dict[str, str] = field(default_factory=dict)
    actions: list[str] = field(default_factory=list)


def canonical_name(token: str) -> str:
    """Turn an underscore-delimited token into a canonical name.

    Each word is capitalized (first letter upper, remainder lower) and the
    words are concatenated: ``user_service`` becomes ``UserService``.
    """
    return "".join(word.capitalize() for word in token.split("_"))


def component_for_path(path: str, app_dir: str = "app") -> Optional[tuple[ComponentKind, str]]:
    """
    Classify a repository-relative path as a component.

    Args:
        path: Path such as ``app/models/user.rb``
        app_dir: Name of the application root directory

    Returns:
        (kind, canonical name) tuple, or None if the path is not a Ruby file
        under one of the component directories of the application root
    """
    posix = PurePosixPath(str(path).replace("\\", "/"))
    if posix.suffix != ".rb":
        return None

    parts = posix.parts[:-1]
    for idx in range(1, len(parts)):
        if parts[idx - 1] != app_dir:
            continue
        for kind, directory in KIND_DIRECTORIES.items():
            if parts[idx] == directory:
                return kind, canonical_name(posix.stem)
    return None


def _add_unique(values: list[str], seen: set[str], value: str):
    if value and value not in seen:
        seen.add(value)
        values.append(value)


def extract_associations(content: str) -> dict[str, str]:
    """Map raw association names to their declaration kind (last wins)."""
    associations = {}
    for match in ASSOCIATION_PATTERN.finditer(content):
        associations[match.group(2)] = match.group(1)
    return associations


def extract_actions(content: str) -> list[str]:
    """Public method names in scan order, reserved names and repeats removed."""
    actions = []
    seen = set()
    for match in ACTION_PATTERN.finditer(content):
        name = match.group(1)
        if name in RESERVED_ACTIONS:
            continue
        _add_unique(actions, seen, name)
    return actions


def extract_dependencies(content: str, kind: ComponentKind) -> list[str]:
    """Referenced canonical names, deduplicated in first-seen order."""
    scans = KIND_SCANS[kind]
    dependencies = []
    seen = set()

    if scans["associations"]:
        for match in ASSOCIATION_PATTERN.finditer(content):
            _add_unique(dependencies, seen, canonical_name(match.group(2)))

    for match in SERVICE_REFERENCE_PATTERN.finditer(content):
        _add_unique(dependencies, seen, f"{match.group(1)}Service")

    if scans["generic"]:
        for match in GENERIC_REFERENCE_PATTERN.finditer(content):
            _add_unique(dependencies, seen, canonical_name(match.group(1)))

    return dependencies


def extract(content: str, kind: ComponentKind) -> ExtractionResult:
    """
    Extract declared relationships from a file's text.

    Args:
        content: Full source text of the file
        kind: Component kind the file was declared as

    Returns:
        ExtractionResult; associations are only filled for models and
        actions only for controllers
    """
    content = content or ""
    result = ExtractionResult(dependencies=extract_dependencies(content, kind))

    if kind == ComponentKind.MODEL:
        result.associations = extract_associations(content)
    elif kind == ComponentKind.CONTROLLER:
        result.actions = extract_actions(content)

    return result
