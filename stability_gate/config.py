"""
Evaluation policy settings.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping, Optional


@dataclass(frozen=True)
class EvaluationPolicy:
    """Tunable policy and execution settings for the evaluator.

    Attributes:
        deprecated_is_violation: Count an extension whose deprecation is in
            effect as non-stable. When False only Removed (and Experimental)
            extensions are violations.
        default_minimum_cycles: Deprecation cycle length for breaking
            transitions recorded without an explicit one.
        max_workers: Thread pool size for batch evaluation.
        show_progress: Show a progress bar during batch evaluation.
    """

    deprecated_is_violation: bool = True
    default_minimum_cycles: int = 1
    max_workers: int = 4
    show_progress: bool = False

    def __post_init__(self) -> None:
        if self.default_minimum_cycles < 1:
            raise ValueError("default_minimum_cycles must be >= 1")
        if self.max_workers < 1:
            raise ValueError("max_workers must be >= 1")

    _ALIASES = {
        "deprecatedIsViolation": "deprecated_is_violation",
        "defaultMinimumCycles": "default_minimum_cycles",
        "maxWorkers": "max_workers",
        "showProgress": "show_progress",
    }

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "EvaluationPolicy":
        """Build a policy from a snapshot ``policy`` section; unknown keys are rejected."""
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for name, value in data.items():
            attr = cls._ALIASES.get(name, name)
            if attr not in known:
                raise ValueError(f"Unknown policy setting: {name}")
            kwargs[attr] = value
        return cls(**kwargs)

    def to_mapping(self) -> Dict[str, Any]:
        return {alias: getattr(self, attr) for alias, attr in self._ALIASES.items()}
