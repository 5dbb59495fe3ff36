"""
Extension classification registry.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional

from .errors import InvalidTransition
from .models import DeprecationCase, ExtensionState, Ordering, TransitionEvent
from .timeline import ReleaseTimeline
from .tracker import DeprecationTracker


logger = logging.getLogger(__name__)


LEGAL_TRANSITIONS: Dict[ExtensionState, frozenset] = {
    ExtensionState.EXPERIMENTAL: frozenset({ExtensionState.STABLE}),
    ExtensionState.STABLE: frozenset({ExtensionState.DEPRECATED}),
    ExtensionState.DEPRECATED: frozenset({ExtensionState.REMOVED}),
    ExtensionState.REMOVED: frozenset(),
}

# Transitions that withdraw something packages may rely on. These go through
# a deprecation cycle; promotions take effect immediately.
BREAKING_TRANSITIONS = frozenset({
    (ExtensionState.STABLE, ExtensionState.DEPRECATED),
    (ExtensionState.DEPRECATED, ExtensionState.REMOVED),
})

DEFAULT_STATE = ExtensionState.EXPERIMENTAL


class ExtensionRegistry:
    """Per-extension classification history across releases.

    Also holds the table of known experimental feature tags. Tags have no
    lifecycle; the table only documents them.
    """

    def __init__(
        self,
        timeline: ReleaseTimeline,
        tracker: Optional[DeprecationTracker] = None,
        default_minimum_cycles: int = 1,
    ):
        """Initialize the registry.

        Args:
            timeline: Release ordering shared with the tracker and graph
            tracker: Where breaking transitions open deprecation cases
            default_minimum_cycles: Cycle length used when a transition does not give one
        """
        self.timeline = timeline
        self.tracker = tracker if tracker is not None else DeprecationTracker(timeline)
        self.default_minimum_cycles = default_minimum_cycles
        self._events: Dict[str, List[TransitionEvent]] = {}
        self._feature_tags: Dict[str, str] = {}
        self._lock = threading.Lock()

    def current_state(self, extension: str) -> ExtensionState:
        events = self._events.get(extension)
        return events[-1].new_state if events else DEFAULT_STATE

    def record_transition(
        self,
        extension: str,
        release: str,
        new_state: ExtensionState,
        minimum_cycles: Optional[int] = None,
    ) -> TransitionEvent:
        """Record a classification change.

        Raises:
            UnknownRelease: the release is not on the timeline
            InvalidTransition: illegal edge, or release not after the last event
        """
        new_state = ExtensionState(new_state)
        self.timeline.index_of(release)
        with self._lock:
            events = self._events.get(extension, [])
            current = events[-1].new_state if events else DEFAULT_STATE
            if events and self.timeline.order(release, events[-1].release) is not Ordering.AFTER:
                logger.warning("Rejected %s transition of %s at %s", new_state.value, extension, release)
                raise InvalidTransition(
                    extension,
                    f"release {release} is not after last transition at {events[-1].release}",
                )
            if new_state not in LEGAL_TRANSITIONS[current]:
                logger.warning("Rejected %s -> %s for %s", current.value, new_state.value, extension)
                raise InvalidTransition(
                    extension, f"{current.value} -> {new_state.value} is not allowed"
                )

            event = TransitionEvent(extension=extension, release=release, new_state=new_state)
            self._events.setdefault(extension, []).append(event)

            if (current, new_state) in BREAKING_TRANSITIONS:
                cycles = minimum_cycles if minimum_cycles is not None else self.default_minimum_cycles
                self.tracker.open_case(
                    extension, release, cycles, from_state=current, to_state=new_state
                )

        logger.info("%s: %s -> %s at %s", extension, current.value, new_state.value, release)
        return event

    def _events_until(self, extension: str, release: str) -> List[TransitionEvent]:
        position = self.timeline.index_of(release)
        return [
            event
            for event in self._events.get(extension, [])
            if self.timeline.index_of(event.release) <= position
        ]

    def classification_at(self, extension: str, release: str) -> ExtensionState:
        """State from the latest transition at or before ``release``."""
        events = self._events_until(extension, release)
        return events[-1].new_state if events else DEFAULT_STATE

    def effective_classification_at(self, extension: str, release: str) -> ExtensionState:
        """Classification with grandfathering applied.

        A breaking transition whose deprecation case is not yet effective at
        ``release`` is skipped, so the pre-transition state still governs.
        """
        for event in reversed(self._events_until(extension, release)):
            case = self._case_for(event)
            if case is None or self.tracker.is_effective(case, release):
                return event.new_state
        return DEFAULT_STATE

    def _case_for(self, event: TransitionEvent) -> Optional[DeprecationCase]:
        return self.tracker.case_announced_at(event.extension, event.release, event.new_state)

    def open_cases_at(self, extension: str, release: str) -> List[DeprecationCase]:
        """Cases for ``extension`` announced by ``release`` that are not yet effective."""
        return [
            case
            for case in self.tracker.cases_for(extension)
            if case.to_state is not None
            and self.timeline.distance(case.announced_at, release) >= 0
            and not self.tracker.is_effective(case, release)
        ]

    def is_stable_usable(self, extension: str, release: str) -> bool:
        return self.classification_at(extension, release) is ExtensionState.STABLE

    def history(self, extension: str) -> List[TransitionEvent]:
        return list(self._events.get(extension, []))

    def extensions(self) -> List[str]:
        return sorted(self._events)

    def all_events(self) -> List[TransitionEvent]:
        events = [event for history in self._events.values() for event in history]
        return sorted(events, key=lambda e: (self.timeline.index_of(e.release), e.extension))

    def register_feature_tag(self, tag: str, description: str = "") -> None:
        self._feature_tags[tag] = description

    def is_registered_tag(self, tag: str) -> bool:
        return tag in self._feature_tags

    def feature_tags(self) -> Dict[str, str]:
        return dict(self._feature_tags)
