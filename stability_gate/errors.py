"""
Structural error types.

Policy outcomes are never raised; they are reported as violations in a
verdict. Everything here means the caller's input must be fixed.
"""

from __future__ import annotations

from typing import Iterable, List


class StabilityGateError(Exception):
    """Base class for all errors raised by this package."""


class StructuralError(StabilityGateError):
    """Input that cannot be evaluated until the caller corrects it."""


class DuplicateRelease(StructuralError, ValueError):
    def __init__(self, release: str):
        super().__init__(f"Release already registered: {release}")
        self.release = release


class ReleaseOutOfOrder(StructuralError, ValueError):
    def __init__(self, release: str, latest: str):
        super().__init__(f"Release {release} does not follow latest release {latest}")
        self.release = release
        self.latest = latest


class UnknownRelease(StructuralError, KeyError):
    def __init__(self, release: str):
        super().__init__(f"Unknown release: {release}")
        self.release = release

    def __str__(self) -> str:
        return self.args[0]


class OutOfRange(StructuralError, IndexError):
    def __init__(self, release: str, steps: int, available: int):
        super().__init__(
            f"Cannot advance {steps} release(s) from {release}; only {available} follow it"
        )
        self.release = release
        self.steps = steps
        self.available = available


class InvalidTransition(StructuralError, ValueError):
    def __init__(self, extension: str, reason: str):
        super().__init__(f"Invalid transition for {extension}: {reason}")
        self.extension = extension
        self.reason = reason


class UnknownPackage(StructuralError, KeyError):
    def __init__(self, package_id: str, release: str):
        super().__init__(f"Unknown package: {package_id}@{release}")
        self.package_id = package_id
        self.release = release

    def __str__(self) -> str:
        return self.args[0]


class DuplicateDescriptor(StructuralError, ValueError):
    def __init__(self, package_id: str, release: str):
        super().__init__(
            f"A different descriptor is already submitted for {package_id}@{release}"
        )
        self.package_id = package_id
        self.release = release


class LaterReleaseDependency(StructuralError, ValueError):
    def __init__(self, package: str, dependency: str):
        super().__init__(f"{package} depends on {dependency} from a later release")
        self.package = package
        self.dependency = dependency


class DependencyCycle(StructuralError, ValueError):
    def __init__(self, cycle: Iterable):
        self.cycle: List = list(cycle)
        path = " -> ".join(str(node) for node in self.cycle)
        super().__init__(f"Dependency cycle detected: {path}")


class SnapshotError(StabilityGateError, ValueError):
    """Malformed serialized snapshot."""


class EvaluationCancelled(StabilityGateError):
    """A batch evaluation was cancelled before all nodes started."""
