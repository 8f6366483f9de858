"""Meeting validation readiness.

A meeting may be validated (signed off) when all of the following hold:

- a president is named;
- no motion is still open;
- every closed motion has a usable result: a consistent manual count or at
  least one electronic ballot;
- official results were consolidated for every closed motion.

Each failed condition adds a machine-readable code and a human reason.

Example
-------
>>> readiness = MeetingValidator(store).assess("meeting-1", ctx)
>>> readiness.can, readiness.codes
(False, ['missing_president'])
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from assembly_governance.errors import NotFoundError, require_id

if TYPE_CHECKING:
    from assembly_governance.context import Context
    from assembly_governance.store.ports import GovernanceStore
    from assembly_governance.store.records import Motion

logger = logging.getLogger(__name__)


class ReadinessCode(str, Enum):
    """Blocker codes reported by ``MeetingValidator``."""

    MISSING_PRESIDENT = "missing_president"
    OPEN_MOTIONS = "open_motions"
    BAD_CLOSED_RESULTS = "bad_closed_results"
    CONSOLIDATION_MISSING = "consolidation_missing"


@dataclass(frozen=True)
class ReadinessMetrics:
    open_motions: int = 0
    closed_motions: int = 0
    bad_closed_motions: int = 0
    consolidated_motions: int = 0

    @property
    def consolidation_done(self) -> bool:
        return self.closed_motions == 0 or self.consolidated_motions >= self.closed_motions


@dataclass(frozen=True)
class Readiness:
    """Whether a meeting can be validated, and why not.

    Attributes
    ----------
    can:
        ``True`` when no blocker was found.
    codes:
        Blocker codes in a fixed order.
    reasons:
        One human-readable reason per code, same order.
    metrics:
        The counts behind the decision.
    """

    can: bool
    codes: list[str] = field(default_factory=list)
    reasons: list[str] = field(default_factory=list)
    metrics: ReadinessMetrics = ReadinessMetrics()


def is_usable_closed_motion(motion: "Motion", ballot_count: int) -> bool:
    return motion.has_consistent_manual_count or ballot_count > 0


class MeetingValidator:
    """Assesses validation readiness from store aggregates.

    Parameters
    ----------
    store:
        Object satisfying the store read contracts.
    """

    def __init__(self, store: "GovernanceStore") -> None:
        self._store = store

    def metrics(self, meeting_id: str, ctx: "Context") -> ReadinessMetrics:
        open_count = closed = bad = consolidated = 0
        for motion in self._store.list_motions(meeting_id, ctx.tenant_id):
            if motion.is_open:
                open_count += 1
            if not motion.is_closed:
                continue
            closed += 1
            if not is_usable_closed_motion(
                motion, self._store.count_ballots(motion.id, ctx.tenant_id)
            ):
                bad += 1
            if motion.official_source is not None:
                consolidated += 1
        return ReadinessMetrics(
            open_motions=open_count,
            closed_motions=closed,
            bad_closed_motions=bad,
            consolidated_motions=consolidated,
        )

    def assess(self, meeting_id: str, ctx: "Context") -> Readiness:
        """Return the validation readiness of *meeting_id*.

        Raises
        ------
        InvalidInputError
            When *meeting_id* is blank.
        NotFoundError
            When the meeting does not exist in ``ctx.tenant_id``.
        """
        meeting_id = require_id("meeting_id", meeting_id)
        meeting = self._store.find_meeting(meeting_id, ctx.tenant_id)
        if meeting is None:
            raise NotFoundError("meeting", meeting_id)

        metrics = self.metrics(meeting_id, ctx)
        codes: list[str] = []
        reasons: list[str] = []

        if not (meeting.president_name or "").strip():
            codes.append(ReadinessCode.MISSING_PRESIDENT.value)
            reasons.append("President not set.")
        if metrics.open_motions > 0:
            codes.append(ReadinessCode.OPEN_MOTIONS.value)
            reasons.append(f"{metrics.open_motions} motion(s) still open.")
        if metrics.bad_closed_motions > 0:
            codes.append(ReadinessCode.BAD_CLOSED_RESULTS.value)
            reasons.append(
                f"{metrics.bad_closed_motions} closed motion(s) without a usable result "
                "(consistent manual count or e-vote)."
            )
        if not metrics.consolidation_done:
            codes.append(ReadinessCode.CONSOLIDATION_MISSING.value)
            reasons.append("Consolidation not done (official results not persisted).")

        logger.debug("Meeting %s readiness codes: %s", meeting_id, codes)
        return Readiness(can=not codes, codes=codes, reasons=reasons, metrics=metrics)
