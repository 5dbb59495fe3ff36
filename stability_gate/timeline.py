"""
Append-only release timeline.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, Iterator, List, Optional

from packaging import version as pkg_version

from .errors import DuplicateRelease, OutOfRange, ReleaseOutOfOrder, UnknownRelease
from .models import Ordering


logger = logging.getLogger(__name__)


def pep440_key(release: str) -> pkg_version.Version:
    """Ordering key for timelines whose release ids are PEP 440 versions."""
    return pkg_version.Version(release)


class ReleaseTimeline:
    """Ordered sequence of release identifiers.

    Releases are opaque strings ordered by the position at which they were
    appended. When ``key`` is given, every appended release must also sort
    strictly after the previous one under that key.
    """

    def __init__(self, releases: Optional[List[str]] = None, key: Optional[Callable] = None):
        self.key = key
        self._releases: List[str] = []
        self._positions: Dict[str, int] = {}
        self._lock = threading.Lock()
        for release in releases or []:
            self.append(release)

    def append(self, release: str) -> None:
        """Register the next release.

        Raises:
            DuplicateRelease: the release is already on the timeline
            ReleaseOutOfOrder: the ordering key places it before the latest release
        """
        release = str(release)
        with self._lock:
            if release in self._positions:
                raise DuplicateRelease(release)
            if self.key is not None and self._releases:
                latest = self._releases[-1]
                if not self.key(release) > self.key(latest):
                    raise ReleaseOutOfOrder(release, latest)
            self._positions[release] = len(self._releases)
            self._releases.append(release)
        logger.debug("Registered release %s at position %d", release, self._positions[release])

    def index_of(self, release: str) -> int:
        try:
            return self._positions[release]
        except KeyError:
            raise UnknownRelease(release) from None

    def contains(self, release: str) -> bool:
        return release in self._positions

    def order(self, a: str, b: str) -> Ordering:
        """Compare two releases."""
        ia, ib = self.index_of(a), self.index_of(b)
        if ia < ib:
            return Ordering.BEFORE
        if ia > ib:
            return Ordering.AFTER
        return Ordering.EQUAL

    def distance(self, a: str, b: str) -> int:
        """Number of positions from ``a`` forward to ``b`` (negative if ``b`` is earlier)."""
        return self.index_of(b) - self.index_of(a)

    def advance(self, release: str, n: int) -> str:
        """Return the release ``n`` positions after ``release``."""
        start = self.index_of(release)
        if n < 0:
            raise ValueError("n must be non-negative")
        target = start + n
        if target >= len(self._releases):
            raise OutOfRange(release, n, len(self._releases) - start - 1)
        return self._releases[target]

    @property
    def latest(self) -> Optional[str]:
        return self._releases[-1] if self._releases else None

    def releases(self) -> List[str]:
        return list(self._releases)

    def __contains__(self, release: object) -> bool:
        return release in self._positions

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._releases))

    def __len__(self) -> int:
        return len(self._releases)
