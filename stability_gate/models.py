"""
Core data models for stability classification.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, NamedTuple, Optional, Tuple

from .errors import SnapshotError


class ExtensionState(Enum):
    """Classification of an extension at a given release."""

    EXPERIMENTAL = "Experimental"
    STABLE = "Stable"
    DEPRECATED = "Deprecated"
    REMOVED = "Removed"


class Ordering(Enum):
    """Result of comparing two releases on a timeline."""

    BEFORE = "Before"
    AFTER = "After"
    EQUAL = "Equal"


class ViolationKind(Enum):
    """Stability criteria, in reporting order."""

    USES_EXPERIMENTAL_EXTENSION = (1, "UsesExperimentalExtension")
    USES_EXPERIMENTAL_FEATURE = (2, "UsesExperimentalFeature")
    ERRORS_ON_WARNINGS_BY_DEFAULT = (3, "ErrorsOnWarningsByDefault")
    MISSING_LANGUAGE_EDITION = (4, "MissingLanguageEdition")
    UNSTABLE_DEPENDENCY = (5, "UnstableDependency")

    @property
    def ordinal(self) -> int:
        return self.value[0]

    @property
    def label(self) -> str:
        return self.value[1]

    @classmethod
    def from_label(cls, label: str) -> "ViolationKind":
        for kind in cls:
            if kind.label == label:
                return kind
        raise ValueError(f"Unknown violation kind: {label}")


class CaseStatus(Enum):
    """Lifecycle status of a deprecation case at a release."""

    ANNOUNCED = "Announced"
    WARNING_ACTIVE = "WarningActive"
    EFFECTIVE = "Effective"


class NodeKey(NamedTuple):
    """A (package, release) node in the dependency graph."""

    package_id: str
    release: str

    def __str__(self) -> str:
        return f"{self.package_id}@{self.release}"


def _name_set(record: Dict, name: str) -> FrozenSet[str]:
    values = record.get(name) or []
    if not isinstance(values, (list, tuple, set, frozenset)):
        raise SnapshotError(f"{name} must be a list of names, got {type(values).__name__}")
    return frozenset(values)


@dataclass(frozen=True)
class PackageDescriptor:
    """Declared configuration of one package at one release."""

    package_id: str
    release: str
    extensions_used: FrozenSet[str] = frozenset()
    experimental_feature_tags: FrozenSet[str] = frozenset()
    errors_on_warnings_default: bool = False
    errors_on_warnings_ci: bool = False
    language_edition: Optional[str] = None
    dependencies: Tuple[NodeKey, ...] = ()

    def __post_init__(self) -> None:
        # Normalise so that equal declarations compare and hash equal.
        object.__setattr__(self, "extensions_used", frozenset(self.extensions_used))
        object.__setattr__(
            self, "experimental_feature_tags", frozenset(self.experimental_feature_tags)
        )
        seen = []
        for dep in self.dependencies:
            dep = NodeKey(*dep)
            if dep not in seen:
                seen.append(dep)
        object.__setattr__(self, "dependencies", tuple(seen))

    @property
    def key(self) -> NodeKey:
        return NodeKey(self.package_id, self.release)

    def to_record(self) -> Dict:
        return {
            "packageId": self.package_id,
            "release": self.release,
            "extensionsUsed": sorted(self.extensions_used),
            "experimentalFeatureTags": sorted(self.experimental_feature_tags),
            "errorsOnWarningsDefault": self.errors_on_warnings_default,
            "errorsOnWarningsCi": self.errors_on_warnings_ci,
            "languageEdition": self.language_edition,
            "dependencies": [
                {"packageId": dep.package_id, "release": dep.release}
                for dep in self.dependencies
            ],
        }

    @classmethod
    def from_record(cls, record: Dict) -> "PackageDescriptor":
        dependencies = []
        for dep in record.get("dependencies", []) or []:
            if isinstance(dep, dict):
                dependencies.append(NodeKey(dep["packageId"], str(dep["release"])))
            else:
                package_id, release = dep
                dependencies.append(NodeKey(package_id, str(release)))
        return cls(
            package_id=record["packageId"],
            release=str(record["release"]),
            extensions_used=_name_set(record, "extensionsUsed"),
            experimental_feature_tags=_name_set(record, "experimentalFeatureTags"),
            errors_on_warnings_default=bool(record.get("errorsOnWarningsDefault", False)),
            errors_on_warnings_ci=bool(record.get("errorsOnWarningsCi", False)),
            language_edition=record.get("languageEdition"),
            dependencies=tuple(dependencies),
        )


@dataclass(frozen=True)
class TransitionEvent:
    """A recorded classification change for an extension."""

    extension: str
    release: str
    new_state: ExtensionState

    def to_record(self) -> Dict:
        return {
            "extension": self.extension,
            "release": self.release,
            "newState": self.new_state.value,
        }

    @classmethod
    def from_record(cls, record: Dict) -> "TransitionEvent":
        return cls(
            extension=record["extension"],
            release=str(record["release"]),
            new_state=ExtensionState(record["newState"]),
        )


@dataclass(frozen=True)
class Violation:
    """One failed stability criterion."""

    kind: ViolationKind
    subject: str
    detail: str

    @property
    def sort_key(self) -> Tuple[int, str, str]:
        return (self.kind.ordinal, self.subject, self.detail)

    def to_record(self) -> Dict:
        return {"kind": self.kind.label, "detail": self.detail}

    def __str__(self) -> str:
        if not self.subject:
            return self.kind.label
        return f"{self.kind.label}({self.subject})"


@dataclass(frozen=True)
class StabilityVerdict:
    """Stability result for one (package, release) node."""

    package_id: str
    release: str
    is_stable: bool
    violations: Tuple[Violation, ...] = ()
    unstable_dependencies: FrozenSet[NodeKey] = field(default_factory=frozenset)

    @property
    def key(self) -> NodeKey:
        return NodeKey(self.package_id, self.release)

    def violation_kinds(self) -> List[ViolationKind]:
        return [violation.kind for violation in self.violations]

    def to_record(self) -> Dict:
        return {
            "packageId": self.package_id,
            "release": self.release,
            "isStable": self.is_stable,
            "violations": [violation.to_record() for violation in self.violations],
            "unstableDependencies": sorted(
                {dep.package_id for dep in self.unstable_dependencies}
            ),
        }


@dataclass(frozen=True)
class DeprecationCase:
    """A tracked breaking reclassification of an extension or rule."""

    case_id: int
    subject: str
    announced_at: str
    minimum_cycles: int
    effective_not_before: Optional[str] = None
    from_state: Optional[ExtensionState] = None
    to_state: Optional[ExtensionState] = None

    def to_record(self) -> Dict:
        return {
            "subject": self.subject,
            "announcedAt": self.announced_at,
            "minimumCycles": self.minimum_cycles,
            "effectiveNotBefore": self.effective_not_before,
            "fromState": self.from_state.value if self.from_state else None,
            "toState": self.to_state.value if self.to_state else None,
        }


def sort_violations(violations: Iterable[Violation]) -> Tuple[Violation, ...]:
    """Order violations by criterion ordinal, then subject name."""
    return tuple(sorted(violations, key=lambda v: v.sort_key))
