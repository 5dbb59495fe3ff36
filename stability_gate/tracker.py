"""
Deprecation cycle tracking for breaking reclassifications.
"""

from __future__ import annotations

import itertools
import logging
import threading
from typing import Dict, List, Optional

from .errors import OutOfRange
from .models import CaseStatus, DeprecationCase, ExtensionState
from .timeline import ReleaseTimeline


logger = logging.getLogger(__name__)


class DeprecationTracker:
    """Open deprecation cases and answer point-in-time status queries.

    Status is derived purely from release ordering; nothing advances on its
    own. A case opened at release R with ``minimum_cycles`` N is announced at
    R, in its warning period strictly between R and R+N, and effective from
    R+N onward.
    """

    def __init__(self, timeline: ReleaseTimeline):
        self.timeline = timeline
        self._cases: Dict[str, List[DeprecationCase]] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def open_case(
        self,
        subject: str,
        announced_at: str,
        minimum_cycles: int,
        from_state: Optional[ExtensionState] = None,
        to_state: Optional[ExtensionState] = None,
    ) -> DeprecationCase:
        """Open a case for an extension or rule id."""
        if minimum_cycles < 1:
            raise ValueError(f"minimum_cycles must be >= 1, got {minimum_cycles}")
        # Validates the announcement release.
        self.timeline.index_of(announced_at)
        with self._lock:
            case = DeprecationCase(
                case_id=next(self._ids),
                subject=subject,
                announced_at=announced_at,
                minimum_cycles=minimum_cycles,
                effective_not_before=self._effective_release(announced_at, minimum_cycles),
                from_state=from_state,
                to_state=to_state,
            )
            self._cases.setdefault(subject, []).append(case)
        logger.info(
            "Opened deprecation case %d for %s at %s (minimum %d cycle(s))",
            case.case_id, subject, announced_at, minimum_cycles,
        )
        return case

    def _effective_release(self, announced_at: str, minimum_cycles: int) -> Optional[str]:
        try:
            return self.timeline.advance(announced_at, minimum_cycles)
        except OutOfRange:
            return None

    def effective_release(self, case: DeprecationCase) -> Optional[str]:
        """The release the case takes effect at, once the timeline contains it."""
        if case.effective_not_before is not None:
            return case.effective_not_before
        return self._effective_release(case.announced_at, case.minimum_cycles)

    def status_at(self, case: DeprecationCase, release: str) -> CaseStatus:
        elapsed = self.timeline.distance(case.announced_at, release)
        if elapsed >= case.minimum_cycles:
            return CaseStatus.EFFECTIVE
        if elapsed <= 0:
            return CaseStatus.ANNOUNCED
        return CaseStatus.WARNING_ACTIVE

    def is_effective(self, case: DeprecationCase, release: str) -> bool:
        return self.status_at(case, release) is CaseStatus.EFFECTIVE

    def case_announced_at(
        self, subject: str, release: str, to_state: Optional[ExtensionState] = None
    ) -> Optional[DeprecationCase]:
        """The case for ``subject`` opened at ``release`` with the given target state.

        Rule-level cases have no target state and match ``to_state=None``.
        """
        for case in self._cases.get(subject, []):
            if case.announced_at == release and case.to_state is to_state:
                return case
        return None

    def cases_for(self, subject: str) -> List[DeprecationCase]:
        return list(self._cases.get(subject, []))

    def all_cases(self) -> List[DeprecationCase]:
        with self._lock:
            cases = [case for cases in self._cases.values() for case in cases]
        return sorted(cases, key=lambda case: case.case_id)
