"""
Dependency graph of package descriptors.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict, deque
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set

from .errors import (
    DependencyCycle,
    DuplicateDescriptor,
    LaterReleaseDependency,
    UnknownPackage,
)
from .models import NodeKey, Ordering, PackageDescriptor
from .timeline import ReleaseTimeline


logger = logging.getLogger(__name__)


def find_cycle(adjacency: Mapping[NodeKey, Sequence[NodeKey]]) -> Optional[List[NodeKey]]:
    """Return one dependency cycle as a closed path, or None if acyclic.

    Edges pointing at nodes missing from ``adjacency`` are ignored.
    """
    WHITE, GREY, BLACK = 0, 1, 2
    colour: Dict[NodeKey, int] = defaultdict(int)

    for root in adjacency:
        if colour[root] != WHITE:
            continue
        colour[root] = GREY
        path = [root]
        stack = [iter(adjacency[root])]
        while stack:
            child = next(stack[-1], None)
            if child is None:
                colour[path.pop()] = BLACK
                stack.pop()
                continue
            if child not in adjacency or colour[child] == BLACK:
                continue
            if colour[child] == GREY:
                return path[path.index(child):] + [child]
            colour[child] = GREY
            path.append(child)
            stack.append(iter(adjacency[child]))
    return None


class DependencyGraph:
    """Directed acyclic graph whose nodes are (package, release) pairs.

    Cycles are rejected when a descriptor is submitted, so a graph that
    accepted its input can always be evaluated. Dependencies may be submitted
    after their dependents; missing nodes surface when a closure is requested.
    """

    def __init__(self, timeline: ReleaseTimeline):
        self.timeline = timeline
        self._descriptors: Dict[NodeKey, PackageDescriptor] = {}
        self._dependents: Dict[NodeKey, Set[NodeKey]] = defaultdict(set)
        self._lock = threading.RLock()

    def _validate(self, descriptor: PackageDescriptor) -> None:
        self.timeline.index_of(descriptor.release)
        for dep in descriptor.dependencies:
            if self.timeline.order(dep.release, descriptor.release) is Ordering.AFTER:
                raise LaterReleaseDependency(str(descriptor.key), str(dep))

    def _check_acyclic(self, staged: Mapping[NodeKey, PackageDescriptor]) -> None:
        # Any new cycle passes through a staged node, so only walk from those.
        adjacency: Dict[NodeKey, Sequence[NodeKey]] = {}
        stack = list(staged)
        while stack:
            node = stack.pop()
            if node in adjacency:
                continue
            descriptor = staged.get(node) or self._descriptors.get(node)
            if descriptor is None:
                continue
            adjacency[node] = descriptor.dependencies
            stack.extend(descriptor.dependencies)
        cycle = find_cycle(adjacency)
        if cycle is not None:
            logger.warning("Rejected descriptors closing a cycle: %s", " -> ".join(map(str, cycle)))
            raise DependencyCycle(cycle)

    def _link(self, descriptor: PackageDescriptor) -> None:
        self._descriptors[descriptor.key] = descriptor
        for dep in descriptor.dependencies:
            self._dependents[dep].add(descriptor.key)

    def _unlink(self, key: NodeKey) -> None:
        old = self._descriptors.pop(key, None)
        if old is None:
            return
        for dep in old.dependencies:
            self._dependents.get(dep, set()).discard(key)

    def submit(self, descriptor: PackageDescriptor) -> NodeKey:
        """Add a descriptor; resubmitting an identical one is a no-op.

        Raises:
            UnknownRelease: a referenced release is not on the timeline
            LaterReleaseDependency: a dependency comes from a later release
            DuplicateDescriptor: a different descriptor exists for the key
            DependencyCycle: the descriptor would close a cycle
        """
        self._validate(descriptor)
        with self._lock:
            existing = self._descriptors.get(descriptor.key)
            if existing is not None:
                if existing == descriptor:
                    return descriptor.key
                raise DuplicateDescriptor(descriptor.package_id, descriptor.release)
            self._check_acyclic({descriptor.key: descriptor})
            self._link(descriptor)
        logger.debug("Submitted %s with %d dependencies", descriptor.key, len(descriptor.dependencies))
        return descriptor.key

    def replace(self, descriptor: PackageDescriptor) -> Optional[PackageDescriptor]:
        """Swap in a new descriptor for an existing key and return the old one.

        Cached verdicts are not touched; the caller invalidates.
        """
        self._validate(descriptor)
        with self._lock:
            self._check_acyclic({descriptor.key: descriptor})
            old = self._descriptors.get(descriptor.key)
            self._unlink(descriptor.key)
            self._link(descriptor)
        return old

    def bulk_load(self, descriptors: Iterable[PackageDescriptor]) -> List[NodeKey]:
        """Add many descriptors with a single cycle pass; all or nothing."""
        staged: Dict[NodeKey, PackageDescriptor] = {}
        for descriptor in descriptors:
            self._validate(descriptor)
            previous = staged.get(descriptor.key) or self._descriptors.get(descriptor.key)
            if previous is not None and previous != descriptor:
                raise DuplicateDescriptor(descriptor.package_id, descriptor.release)
            staged[descriptor.key] = descriptor
        with self._lock:
            self._check_acyclic(staged)
            for descriptor in staged.values():
                if descriptor.key not in self._descriptors:
                    self._link(descriptor)
        logger.info("Loaded %d descriptors into the dependency graph", len(staged))
        return list(staged)

    def get(self, key: NodeKey) -> PackageDescriptor:
        key = NodeKey(*key)
        try:
            return self._descriptors[key]
        except KeyError:
            raise UnknownPackage(key.package_id, key.release) from None

    def dependents_of(self, key: NodeKey) -> frozenset:
        with self._lock:
            return frozenset(self._dependents.get(NodeKey(*key), ()))

    def transitive_dependents(self, key: NodeKey) -> Set[NodeKey]:
        """Every node that reaches ``key`` through dependency edges."""
        seen: Set[NodeKey] = set()
        queue = deque([NodeKey(*key)])
        with self._lock:
            while queue:
                node = queue.popleft()
                for parent in self._dependents.get(node, ()):
                    if parent not in seen:
                        seen.add(parent)
                        queue.append(parent)
        return seen

    def packages_using(self, extension: str) -> List[NodeKey]:
        with self._lock:
            return sorted(
                key for key, d in self._descriptors.items() if extension in d.extensions_used
            )

    def _reachable(self, keys: Iterable[NodeKey]) -> Dict[NodeKey, PackageDescriptor]:
        reachable: Dict[NodeKey, PackageDescriptor] = {}
        with self._lock:
            stack = [NodeKey(*key) for key in keys]
            while stack:
                node = stack.pop()
                if node in reachable:
                    continue
                reachable[node] = self.get(node)
                stack.extend(reachable[node].dependencies)
        return reachable

    def closure(self, key: NodeKey) -> Dict[NodeKey, PackageDescriptor]:
        """Descriptors reachable from ``key``, including itself.

        Raises:
            UnknownPackage: a reachable node has no descriptor
            DependencyCycle: the reachable subgraph is cyclic
        """
        reachable = self._reachable([key])
        cycle = find_cycle({k: d.dependencies for k, d in reachable.items()})
        if cycle is not None:
            raise DependencyCycle(cycle)
        return reachable

    def topological_order(self, keys: Iterable[NodeKey]) -> List[NodeKey]:
        """Dependencies-first order over the union of the closures of ``keys``."""
        return topological_layers_flat(self._reachable(keys))

    def layers(self, keys: Iterable[NodeKey]) -> List[List[NodeKey]]:
        """Group the closures of ``keys`` into layers; each layer only depends on earlier ones."""
        return topological_layers(self._reachable(keys))

    def keys(self) -> List[NodeKey]:
        with self._lock:
            return sorted(self._descriptors)

    def descriptors(self) -> List[PackageDescriptor]:
        with self._lock:
            return [self._descriptors[key] for key in sorted(self._descriptors)]

    def __contains__(self, key: object) -> bool:
        return key in self._descriptors

    def __len__(self) -> int:
        return len(self._descriptors)


def topological_layers(nodes: Mapping[NodeKey, PackageDescriptor]) -> List[List[NodeKey]]:
    """Kahn's algorithm, emitting one sorted layer per round."""
    in_degree: Dict[NodeKey, int] = {key: 0 for key in nodes}
    dependents: Dict[NodeKey, List[NodeKey]] = defaultdict(list)
    for key, descriptor in nodes.items():
        for dep in descriptor.dependencies:
            if dep in nodes:
                in_degree[key] += 1
                dependents[dep].append(key)

    layer = sorted(key for key, degree in in_degree.items() if degree == 0)
    layers: List[List[NodeKey]] = []
    visited = 0
    while layer:
        layers.append(layer)
        visited += len(layer)
        following = []
        for node in layer:
            for parent in dependents[node]:
                in_degree[parent] -= 1
                if in_degree[parent] == 0:
                    following.append(parent)
        layer = sorted(following)

    if visited != len(nodes):
        remaining = {k: d.dependencies for k, d in nodes.items() if in_degree[k] > 0}
        raise DependencyCycle(find_cycle(remaining) or sorted(remaining))
    return layers


def topological_layers_flat(nodes: Mapping[NodeKey, PackageDescriptor]) -> List[NodeKey]:
    return [key for layer in topological_layers(nodes) for key in layer]
