"""Change detection over successive readiness assessments.

Notification layers should announce only what changed: blocker codes that
appeared, codes that went away and flips of the overall ``can`` flag.  The
first observation of a meeting only records a baseline.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass, field

from assembly_governance.readiness.validator import Readiness


@dataclass(frozen=True)
class ReadinessDiff:
    """Difference between two readiness observations of one meeting."""

    meeting_id: str
    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    became_ready: bool = False
    became_not_ready: bool = False
    initial: bool = False

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed or self.became_ready or self.became_not_ready)


def diff_readiness(meeting_id: str, previous: Readiness | None, current: Readiness) -> ReadinessDiff:
    """Compare *current* with *previous*; ``None`` marks a first observation."""
    if previous is None:
        return ReadinessDiff(meeting_id=meeting_id, initial=True)

    before = set(previous.codes)
    after = set(current.codes)
    return ReadinessDiff(
        meeting_id=meeting_id,
        added=[code for code in current.codes if code not in before],
        removed=[code for code in previous.codes if code not in after],
        became_ready=current.can and not previous.can,
        became_not_ready=previous.can and not current.can,
    )


class ReadinessDiffer:
    """Remembers the last readiness per meeting and reports changes.

    Example
    -------
    >>> differ = ReadinessDiffer()
    >>> differ.observe("m1", Readiness(can=False, codes=["open_motions"])).initial
    True
    >>> differ.observe("m1", Readiness(can=True)).removed
    ['open_motions']
    """

    def __init__(self) -> None:
        self._last: dict[str, Readiness] = {}
        self._lock = threading.Lock()

    def observe(self, meeting_id: str, readiness: Readiness) -> ReadinessDiff:
        with self._lock:
            previous = self._last.get(meeting_id)
            self._last[meeting_id] = readiness
        return diff_readiness(meeting_id, previous, readiness)

    def forget(self, meeting_id: str) -> None:
        with self._lock:
            self._last.pop(meeting_id, None)

    def last(self, meeting_id: str) -> Readiness | None:
        with self._lock:
            return self._last.get(meeting_id)
