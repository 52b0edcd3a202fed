#!/usr/bin/env python3
"""
Component Registry - Analyzed models, controllers, services and workers.

Holds one ComponentRecord per analyzed file, keyed by (kind, canonical name).
Each kind has its own map, so a model and a service may share a name. Lookups
of unknown names return None; dependency names are never validated.

Usage:
    from component_registry import ComponentRecord, ComponentRegistry

    registry = ComponentRegistry()
    registry.register(record)
    user = registry.get(ComponentKind.MODEL, "User")
"""

from dataclasses import dataclass, field
from typing import Iterator, Optional

from pattern_extractor import ComponentKind, ExtractionResult


@dataclass(frozen=True)
class ComponentRecord:
    """One analyzed source file."""
    name: str
    kind: ComponentKind
    source_path: str
    dependencies: tuple[str, ...] = ()
    associations: dict[str, str] = field(default_factory=dict)
    actions: tuple[str, ...] = ()

    @classmethod
    def from_extraction(
        cls,
        name: str,
        kind: ComponentKind,
        source_path: str,
        extraction: ExtractionResult
    ) -> 'ComponentRecord':
        """Build a record from an extraction result."""
        return cls(
            name=name,
            kind=kind,
            source_path=source_path,
            dependencies=tuple(extraction.dependencies),
            associations=dict(extraction.associations),
            actions=tuple(extraction.actions)
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        data = {
            "name": self.name,
            "kind": self.kind.value,
            "source_path": self.source_path,
            "dependencies": list(self.dependencies),
        }
        if self.kind == ComponentKind.MODEL:
            data["associations"] = dict(self.associations)
        if self.kind == ComponentKind.CONTROLLER:
            data["actions"] = list(self.actions)
        return data


class ComponentRegistry:
    """
    Registry of analyzed components, one map per kind.

    Features:
    - O(1) lookup by (kind, name)
    - Registration order preserved for iteration
    - Absent lookups return None instead of raising
    """

    def __init__(self):
        self._components: dict[ComponentKind, dict[str, ComponentRecord]] = {
            kind: {} for kind in ComponentKind
        }

    def register(self, record: ComponentRecord):
        """
        Store a record under its own kind and name.

        A record already registered under the same key is replaced.

        Args:
            record: ComponentRecord to store
        """
        self._components[record.kind][record.name] = record

    def get(self, kind: ComponentKind, name: str) -> Optional[ComponentRecord]:
        return self._components[kind].get(name)

    def contains(self, kind: ComponentKind, name: str) -> bool:
        return name in self._components[kind]

    def all(self, kind: ComponentKind) -> Iterator[ComponentRecord]:
        """Iterate records of one kind in registration order."""
        return iter(list(self._components[kind].values()))

    def names(self, kind: ComponentKind) -> list[str]:
        return list(self._components[kind].keys())

    def all_kinds(self) -> Iterator[tuple[ComponentKind, str, ComponentRecord]]:
        """Iterate (kind, name, record) over every kind in declaration order."""
        for kind in ComponentKind:
            for name, record in list(self._components[kind].items()):
                yield kind, name, record

    def kind_of(self, name: str) -> Optional[ComponentKind]:
        """First kind (in declaration order) that has a component named ``name``."""
        for kind in ComponentKind:
            if name in self._components[kind]:
                return kind
        return None

    def count(self, kind: ComponentKind) -> int:
        return len(self._components[kind])

    def __len__(self) -> int:
        return sum(len(components) for components in self._components.values())

    def to_dict(self) -> dict:
        """Serialize all records grouped by kind directory name."""
        return {
            kind.directory: [record.to_dict() for record in self._components[kind].values()]
            for kind in ComponentKind
        }
