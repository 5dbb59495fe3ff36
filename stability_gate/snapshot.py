"""
Load and save ecosystem snapshots (timeline, registry, cases and graph).
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import requests

from .config import EvaluationPolicy
from .errors import SnapshotError, StructuralError
from .evaluator import StabilityEvaluator
from .graph import DependencyGraph
from .models import PackageDescriptor, TransitionEvent
from .registry import ExtensionRegistry
from .timeline import ReleaseTimeline, pep440_key
from .tracker import DeprecationTracker


logger = logging.getLogger(__name__)

ORDERINGS = {None: None, "append": None, "pep440": pep440_key}


@dataclass
class Snapshot:
    """One self-contained ecosystem snapshot."""

    timeline: ReleaseTimeline
    registry: ExtensionRegistry
    graph: DependencyGraph
    policy: EvaluationPolicy = field(default_factory=EvaluationPolicy)
    ordering: Optional[str] = None

    @property
    def tracker(self) -> DeprecationTracker:
        return self.registry.tracker

    def evaluator(self) -> StabilityEvaluator:
        return StabilityEvaluator(self.registry, self.graph, self.policy)


def empty_snapshot(
    policy: Optional[EvaluationPolicy] = None, ordering: Optional[str] = None
) -> Snapshot:
    """Create an empty set of wired-up stores."""
    policy = policy or EvaluationPolicy()
    if ordering not in ORDERINGS:
        raise SnapshotError(f"Unknown release ordering: {ordering}")
    timeline = ReleaseTimeline(key=ORDERINGS[ordering])
    tracker = DeprecationTracker(timeline)
    registry = ExtensionRegistry(
        timeline, tracker, default_minimum_cycles=policy.default_minimum_cycles
    )
    return Snapshot(
        timeline=timeline,
        registry=registry,
        graph=DependencyGraph(timeline),
        policy=policy,
        ordering=ordering,
    )


def snapshot_from_dict(data: Dict[str, Any]) -> Snapshot:
    """Build a snapshot from its JSON form.

    Raises:
        SnapshotError: missing fields or wrong types
        StructuralError: the content itself is invalid (cycles, bad transitions, ...)
    """
    if not isinstance(data, dict):
        raise SnapshotError("Snapshot must be a JSON object")
    try:
        policy = EvaluationPolicy.from_mapping(data.get("policy"))
        snapshot = empty_snapshot(policy, data.get("ordering"))

        for release in data.get("releases", []):
            snapshot.timeline.append(str(release))

        for tag, description in (data.get("featureTags") or {}).items():
            snapshot.registry.register_feature_tag(tag, description or "")

        for record in data.get("transitions", []):
            event = TransitionEvent.from_record(record)
            snapshot.registry.record_transition(
                event.extension,
                event.release,
                event.new_state,
                minimum_cycles=record.get("minimumCycles"),
            )

        for record in data.get("cases", []):
            snapshot.tracker.open_case(
                record["subject"], str(record["announcedAt"]), int(record["minimumCycles"])
            )

        snapshot.graph.bulk_load(
            PackageDescriptor.from_record(record) for record in data.get("packages", [])
        )
    except StructuralError:
        raise
    except (KeyError, TypeError, ValueError) as e:
        raise SnapshotError(f"Malformed snapshot: {e}") from e

    logger.info(
        "Loaded snapshot: %d release(s), %d extension(s), %d package node(s)",
        len(snapshot.timeline), len(snapshot.registry.extensions()), len(snapshot.graph),
    )
    return snapshot


def snapshot_to_dict(snapshot: Snapshot) -> Dict[str, Any]:
    transitions = []
    for event in snapshot.registry.all_events():
        record = event.to_record()
        case = snapshot.tracker.case_announced_at(
            event.extension, event.release, event.new_state
        )
        if case is not None:
            record["minimumCycles"] = case.minimum_cycles
        transitions.append(record)

    rule_cases = [
        {
            "subject": case.subject,
            "announcedAt": case.announced_at,
            "minimumCycles": case.minimum_cycles,
        }
        for case in snapshot.tracker.all_cases()
        if case.to_state is None
    ]

    return {
        "ordering": snapshot.ordering,
        "policy": snapshot.policy.to_mapping(),
        "releases": snapshot.timeline.releases(),
        "featureTags": snapshot.registry.feature_tags(),
        "transitions": transitions,
        "cases": rule_cases,
        "packages": [d.to_record() for d in snapshot.graph.descriptors()],
    }


def load_snapshot(path: Path) -> Snapshot:
    path = Path(path)
    logger.info("Reading snapshot from %s", path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise SnapshotError(f"Invalid JSON in {path}: {e}") from e
    return snapshot_from_dict(data)


def save_snapshot(snapshot: Snapshot, path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(snapshot_to_dict(snapshot), f, indent=2)
    return path


def fetch_snapshot(
    url: str, session: Optional[requests.Session] = None, timeout: float = 30
) -> Snapshot:
    """Download a snapshot published by a package index."""
    session = session or requests.Session()
    logger.info("Fetching snapshot from %s", url)
    with session.get(url, timeout=timeout) as response:
        response.raise_for_status()
        try:
            data = response.json()
        except ValueError as e:
            raise SnapshotError(f"Invalid JSON from {url}: {e}") from e
    return snapshot_from_dict(data)
