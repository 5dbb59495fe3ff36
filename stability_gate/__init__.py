"""
Stability Gate

Classify packages as stable from their declared configuration, extension
classifications and transitive dependencies, honoring deprecation cycles.
"""

__version__ = "0.1.0"

from .config import EvaluationPolicy
from .errors import (
    DependencyCycle,
    DuplicateDescriptor,
    DuplicateRelease,
    EvaluationCancelled,
    InvalidTransition,
    LaterReleaseDependency,
    OutOfRange,
    ReleaseOutOfOrder,
    SnapshotError,
    StabilityGateError,
    StructuralError,
    UnknownPackage,
    UnknownRelease,
)
from .evaluator import DeprecationNotice, StabilityEvaluator
from .graph import DependencyGraph
from .models import (
    CaseStatus,
    DeprecationCase,
    ExtensionState,
    NodeKey,
    Ordering,
    PackageDescriptor,
    StabilityVerdict,
    TransitionEvent,
    Violation,
    ViolationKind,
)
from .registry import ExtensionRegistry
from .snapshot import Snapshot, empty_snapshot, fetch_snapshot, load_snapshot, save_snapshot
from .timeline import ReleaseTimeline, pep440_key
from .tracker import DeprecationTracker

__all__ = [
    "CaseStatus",
    "DependencyCycle",
    "DependencyGraph",
    "DeprecationCase",
    "DeprecationNotice",
    "DeprecationTracker",
    "DuplicateDescriptor",
    "DuplicateRelease",
    "EvaluationCancelled",
    "EvaluationPolicy",
    "ExtensionRegistry",
    "ExtensionState",
    "InvalidTransition",
    "LaterReleaseDependency",
    "NodeKey",
    "Ordering",
    "OutOfRange",
    "PackageDescriptor",
    "ReleaseOutOfOrder",
    "ReleaseTimeline",
    "Snapshot",
    "SnapshotError",
    "StabilityEvaluator",
    "StabilityGateError",
    "StabilityVerdict",
    "StructuralError",
    "TransitionEvent",
    "UnknownPackage",
    "UnknownRelease",
    "Violation",
    "ViolationKind",
    "empty_snapshot",
    "fetch_snapshot",
    "load_snapshot",
    "pep440_key",
    "save_snapshot",
]
