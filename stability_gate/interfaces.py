"""
Interfaces for the stores the evaluator consults.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Protocol, Set

from .models import DeprecationCase, ExtensionState, NodeKey, PackageDescriptor
from .tracker import DeprecationTracker


class ClassificationSource(Protocol):
    """Point-in-time extension classification and feature tag lookup."""

    tracker: DeprecationTracker

    def effective_classification_at(self, extension: str, release: str) -> ExtensionState:
        ...

    def is_registered_tag(self, tag: str) -> bool:
        ...

    def open_cases_at(self, extension: str, release: str) -> List[DeprecationCase]:
        ...


class DescriptorSource(Protocol):
    """Access to a validated dependency graph."""

    def get(self, key: NodeKey) -> PackageDescriptor:
        ...

    def replace(self, descriptor: PackageDescriptor) -> Optional[PackageDescriptor]:
        ...

    def layers(self, keys: Iterable[NodeKey]) -> List[List[NodeKey]]:
        ...

    def transitive_dependents(self, key: NodeKey) -> Set[NodeKey]:
        ...

    def packages_using(self, extension: str) -> List[NodeKey]:
        ...

    def keys(self) -> List[NodeKey]:
        ...
