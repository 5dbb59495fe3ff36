"""
Stability evaluator: per-package verdicts over the dependency graph.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set

from tqdm import tqdm

from .config import EvaluationPolicy
from .errors import EvaluationCancelled
from .interfaces import ClassificationSource, DescriptorSource
from .models import (
    CaseStatus,
    DeprecationCase,
    ExtensionState,
    NodeKey,
    PackageDescriptor,
    StabilityVerdict,
    Violation,
    ViolationKind,
    sort_violations,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeprecationNotice:
    """An extension a package uses that is inside a deprecation cycle."""

    package: NodeKey
    extension: str
    case: DeprecationCase
    status: CaseStatus
    effective_release: Optional[str]


class StabilityEvaluator:
    """Compute and cache stability verdicts.

    Dependencies are always evaluated before their dependents: a request walks
    the closure of the node in topological order and every node reads its
    dependencies' verdicts from the cache. Concurrent requests for the same
    node share one computation.
    """

    def __init__(
        self,
        registry: ClassificationSource,
        graph: DescriptorSource,
        policy: Optional[EvaluationPolicy] = None,
    ):
        """Initialize the evaluator.

        Args:
            registry: Extension classifications (with its deprecation tracker)
            graph: Validated dependency graph
            policy: Policy toggles and batch settings
        """
        self.registry = registry
        self.graph = graph
        self.policy = policy or EvaluationPolicy()
        self._cache: Dict[NodeKey, StabilityVerdict] = {}
        self._inflight: Dict[NodeKey, Future] = {}
        self._generation: Dict[NodeKey, int] = defaultdict(int)
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Criteria
    # ------------------------------------------------------------------

    def _extension_violations(self, descriptor: PackageDescriptor) -> List[Violation]:
        violations = []
        for extension in descriptor.extensions_used:
            state = self.registry.effective_classification_at(extension, descriptor.release)
            if state is ExtensionState.STABLE:
                continue
            if state is ExtensionState.DEPRECATED and not self.policy.deprecated_is_violation:
                continue
            violations.append(Violation(
                kind=ViolationKind.USES_EXPERIMENTAL_EXTENSION,
                subject=extension,
                detail=f"extension {extension} is {state.value} at {descriptor.release}",
            ))
        return violations

    def _feature_violations(self, descriptor: PackageDescriptor) -> List[Violation]:
        violations = []
        for tag in descriptor.experimental_feature_tags:
            detail = f"experimental feature {tag}"
            if not self.registry.is_registered_tag(tag):
                detail += " (unregistered)"
            violations.append(Violation(ViolationKind.USES_EXPERIMENTAL_FEATURE, tag, detail))
        return violations

    def _configuration_violations(self, descriptor: PackageDescriptor) -> List[Violation]:
        violations = []
        # The CI-only flag is deliberately not checked.
        if descriptor.errors_on_warnings_default:
            violations.append(Violation(
                ViolationKind.ERRORS_ON_WARNINGS_BY_DEFAULT,
                "",
                "default build configuration turns warnings into errors",
            ))
        if not descriptor.language_edition:
            violations.append(Violation(
                ViolationKind.MISSING_LANGUAGE_EDITION,
                "",
                "no language edition declared",
            ))
        return violations

    def _compute(self, key: NodeKey) -> StabilityVerdict:
        descriptor = self.graph.get(key)
        violations = (
            self._extension_violations(descriptor)
            + self._feature_violations(descriptor)
            + self._configuration_violations(descriptor)
        )

        unstable: Set[NodeKey] = set()
        for dep in descriptor.dependencies:
            dep_verdict = self._dependency_verdict(dep)
            if dep_verdict.is_stable:
                continue
            unstable.add(dep)
            unstable.update(dep_verdict.unstable_dependencies)
            detail = f"dependency {dep} is not stable"
            if dep_verdict.unstable_dependencies:
                via = ", ".join(sorted(str(d) for d in dep_verdict.unstable_dependencies))
                detail += f" (via {via})"
            violations.append(Violation(ViolationKind.UNSTABLE_DEPENDENCY, dep.package_id, detail))

        return StabilityVerdict(
            package_id=key.package_id,
            release=key.release,
            is_stable=not violations,
            violations=sort_violations(violations),
            unstable_dependencies=frozenset(unstable),
        )

    def _dependency_verdict(self, dep: NodeKey) -> StabilityVerdict:
        verdict = self._cache.get(dep)
        if verdict is not None:
            return verdict
        # Evicted by a concurrent invalidation after the walk cached it.
        logger.debug("Dependency %s missing from cache; re-evaluating", dep)
        return self.evaluate(dep.package_id, dep.release)

    # ------------------------------------------------------------------
    # Cache and coalescing
    # ------------------------------------------------------------------

    def _resolve(self, key: NodeKey) -> StabilityVerdict:
        with self._lock:
            verdict = self._cache.get(key)
            if verdict is not None:
                logger.debug("Cache hit: %s", key)
                return verdict
            future = self._inflight.get(key)
            if future is not None:
                owner = False
            else:
                owner = True
                future = Future()
                self._inflight[key] = future
                generation = self._generation[key]

        if not owner:
            return future.result()

        try:
            verdict = self._compute_current(key, generation, future)
        except BaseException as e:
            with self._lock:
                if self._inflight.get(key) is future:
                    del self._inflight[key]
            future.set_exception(e)
            raise

        future.set_result(verdict)
        return verdict

    def _compute_current(self, key: NodeKey, generation: int, future: Future) -> StabilityVerdict:
        while True:
            verdict = self._compute(key)
            with self._lock:
                if self._generation[key] == generation:
                    self._cache[key] = verdict
                    if self._inflight.get(key) is future:
                        del self._inflight[key]
                    return verdict
                generation = self._generation[key]
            # Invalidated mid-computation: the inputs may mix old and new
            # dependency results, so compute again instead of publishing.
            logger.debug("Verdict for %s invalidated during evaluation; retrying", key)

    def evaluate(self, package_id: str, release: str) -> StabilityVerdict:
        """Return the stability verdict for one node.

        Raises:
            UnknownPackage: the node or one of its dependencies is unknown
            DependencyCycle: the node's closure contains a cycle
        """
        key = NodeKey(package_id, release)
        verdict = self._cache.get(key)
        if verdict is not None:
            logger.debug("Cache hit: %s", key)
            return verdict

        # Structural validation happens here, before anything is cached.
        for layer in self.graph.layers([key]):
            for node in layer:
                if node != key:
                    self._resolve(node)
        return self._resolve(key)

    def evaluate_many(
        self,
        keys: Iterable[NodeKey],
        cancel_event: Optional[threading.Event] = None,
    ) -> Dict[NodeKey, StabilityVerdict]:
        """Evaluate many nodes on a thread pool, one topological layer at a time.

        Setting ``cancel_event`` stops nodes that have not started yet and
        raises EvaluationCancelled. Verdicts already cached stay cached.
        """
        keys = [NodeKey(*key) for key in keys]
        layers = self.graph.layers(keys)
        total = sum(len(layer) for layer in layers)
        logger.info("Evaluating %d node(s) in %d layer(s)", total, len(layers))

        results: Dict[NodeKey, StabilityVerdict] = {}
        with ThreadPoolExecutor(max_workers=self.policy.max_workers) as pool, tqdm(
            total=total, desc="Evaluating", unit="pkg", disable=not self.policy.show_progress
        ) as progress:
            for layer in layers:
                self._check_cancelled(cancel_event, {})
                pending = {pool.submit(self._resolve, node): node for node in layer}
                while pending:
                    done, _ = wait(pending, timeout=0.05, return_when=FIRST_COMPLETED)
                    for future in done:
                        node = pending.pop(future)
                        try:
                            results[node] = future.result()
                        except BaseException:
                            self._cancel(pending)
                            raise
                        progress.update(1)
                    self._check_cancelled(cancel_event, pending)

        logger.info("Evaluated %d node(s)", len(results))
        return {key: results[key] for key in keys}

    def evaluate_all(
        self, cancel_event: Optional[threading.Event] = None
    ) -> Dict[NodeKey, StabilityVerdict]:
        return self.evaluate_many(self.graph.keys(), cancel_event=cancel_event)

    @staticmethod
    def _cancel(pending: Dict[Future, NodeKey]) -> None:
        for future in pending:
            future.cancel()

    def _check_cancelled(
        self, cancel_event: Optional[threading.Event], pending: Dict[Future, NodeKey]
    ) -> None:
        if cancel_event is None or not cancel_event.is_set():
            return
        self._cancel(pending)
        logger.warning("Batch evaluation cancelled")
        raise EvaluationCancelled("batch evaluation cancelled")

    def cached(self, package_id: str, release: str) -> Optional[StabilityVerdict]:
        return self._cache.get(NodeKey(package_id, release))

    def invalidate(self, package_id: str, release: str) -> Set[NodeKey]:
        """Drop the cached verdict for a node and everything that depends on it.

        Returns the keys whose cached verdicts were evicted.
        """
        key = NodeKey(package_id, release)
        affected = {key} | self.graph.transitive_dependents(key)
        evicted = set()
        with self._lock:
            for node in affected:
                self._generation[node] += 1
                self._inflight.pop(node, None)
                if self._cache.pop(node, None) is not None:
                    evicted.add(node)
        logger.info("Invalidated %s (%d cached verdict(s) evicted)", key, len(evicted))
        return evicted

    def resubmit(self, descriptor: PackageDescriptor) -> Set[NodeKey]:
        """Replace a node's descriptor and invalidate it and its dependents."""
        self.graph.replace(descriptor)
        return self.invalidate(descriptor.package_id, descriptor.release)

    def invalidate_extension(self, extension: str) -> Set[NodeKey]:
        """Invalidate every package using ``extension``, after a registry change."""
        evicted: Set[NodeKey] = set()
        for key in self.graph.packages_using(extension):
            evicted |= self.invalidate(key.package_id, key.release)
        return evicted

    def clear(self) -> None:
        with self._lock:
            for node in self._cache:
                self._generation[node] += 1
            self._cache.clear()
            self._inflight.clear()

    # ------------------------------------------------------------------
    # Deprecation notices
    # ------------------------------------------------------------------

    def deprecation_notices(self, package_id: str, release: str) -> List[DeprecationNotice]:
        """Extensions the package uses whose deprecation is announced but not yet effective."""
        key = NodeKey(package_id, release)
        descriptor = self.graph.get(key)
        notices = []
        tracker = self.registry.tracker
        for extension in sorted(descriptor.extensions_used):
            for case in self.registry.open_cases_at(extension, release):
                notices.append(DeprecationNotice(
                    package=key,
                    extension=extension,
                    case=case,
                    status=tracker.status_at(case, release),
                    effective_release=tracker.effective_release(case),
                ))
        return notices
