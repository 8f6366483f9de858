"""Pre-conditions for meeting lifecycle transitions.

Lifecycle::

    draft -> scheduled -> frozen -> live <-> paused -> closed -> validated -> archived

``scheduled`` and ``frozen`` may step back one state.  ``archived`` is
final.

Per-transition checks
---------------------
========================  ==========================================  =====================
Transition                Blocking issue                              Warning
========================  ==========================================  =====================
draft -> scheduled        no motions                                  -
scheduled -> frozen       nobody present or remote                    no president
frozen -> live            -                                           quorum not met
live -> paused            a motion is open                            -
live/paused -> closed     a motion is open                            -
closed -> validated       closed motion without usable result         not consolidated
========================  ==========================================  =====================
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from assembly_governance.decision.quorum import QuorumEvaluator, QuorumStatus
from assembly_governance.errors import (
    BusinessRuleViolation,
    NotFoundError,
    ViolationCode,
    require_id,
)
from assembly_governance.readiness.validator import is_usable_closed_motion
from assembly_governance.store.records import AttendanceMode, MeetingStatus

if TYPE_CHECKING:
    from assembly_governance.context import Context
    from assembly_governance.store.ports import GovernanceStore
    from assembly_governance.store.records import Meeting

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[MeetingStatus, tuple[MeetingStatus, ...]] = {
    MeetingStatus.DRAFT: (MeetingStatus.SCHEDULED,),
    MeetingStatus.SCHEDULED: (MeetingStatus.FROZEN, MeetingStatus.DRAFT),
    MeetingStatus.FROZEN: (MeetingStatus.LIVE, MeetingStatus.SCHEDULED),
    MeetingStatus.LIVE: (MeetingStatus.PAUSED, MeetingStatus.CLOSED),
    MeetingStatus.PAUSED: (MeetingStatus.LIVE, MeetingStatus.CLOSED),
    MeetingStatus.CLOSED: (MeetingStatus.VALIDATED,),
    MeetingStatus.VALIDATED: (MeetingStatus.ARCHIVED,),
    MeetingStatus.ARCHIVED: (),
}

_ATTENDING_MODES: frozenset[AttendanceMode] = frozenset(
    {AttendanceMode.PRESENT, AttendanceMode.REMOTE}
)


@dataclass(frozen=True)
class TransitionIssue:
    code: str
    message: str


@dataclass(frozen=True)
class TransitionCheck:
    """Issues found before moving a meeting to ``to_status``.

    Only ``issues`` block the transition; ``warnings`` are informative.
    """

    from_status: MeetingStatus
    to_status: MeetingStatus
    issues: list[TransitionIssue] = field(default_factory=list)
    warnings: list[TransitionIssue] = field(default_factory=list)

    @property
    def can_proceed(self) -> bool:
        return not self.issues


@dataclass(frozen=True)
class TransitionReadiness:
    """Checks for every transition reachable from the current status."""

    meeting_id: str
    current_status: MeetingStatus
    transitions: dict[MeetingStatus, TransitionCheck] = field(default_factory=dict)


class TransitionChecker:
    """Evaluates lifecycle pre-conditions from store aggregates.

    Parameters
    ----------
    store:
        Object satisfying the store read contracts.
    quorum_evaluator:
        Optional shared ``QuorumEvaluator`` for the frozen -> live warning.
    """

    def __init__(
        self,
        store: "GovernanceStore",
        quorum_evaluator: QuorumEvaluator | None = None,
    ) -> None:
        self._store = store
        self._quorum = quorum_evaluator or QuorumEvaluator(store)

    def _load(self, meeting_id: str, ctx: "Context") -> "Meeting":
        meeting_id = require_id("meeting_id", meeting_id)
        meeting = self._store.find_meeting(meeting_id, ctx.tenant_id)
        if meeting is None:
            raise NotFoundError("meeting", meeting_id)
        return meeting

    def issues_before(
        self,
        meeting_id: str,
        to_status: MeetingStatus | str,
        ctx: "Context",
        from_status: MeetingStatus | None = None,
    ) -> TransitionCheck:
        """Return blocking issues and warnings for moving to *to_status*.

        Parameters
        ----------
        from_status:
            Overrides the meeting's stored status, e.g. to check a chain of
            transitions ahead of time.

        Raises
        ------
        NotFoundError
            When the meeting does not exist in ``ctx.tenant_id``.
        ValueError
            When *to_status* is not a known status.
        """
        meeting = self._load(meeting_id, ctx)
        target = MeetingStatus(to_status)
        source = from_status or meeting.status
        tenant_id = ctx.tenant_id
        issues: list[TransitionIssue] = []
        warnings: list[TransitionIssue] = []

        if source is MeetingStatus.ARCHIVED:
            issues.append(
                TransitionIssue("archived_immutable", "Archived meetings cannot change status.")
            )
        elif target not in ALLOWED_TRANSITIONS[source]:
            issues.append(
                TransitionIssue(
                    ViolationCode.INVALID_TRANSITION.value,
                    f"Transition {source.value} -> {target.value} is not allowed.",
                )
            )

        motions = self._store.list_motions(meeting.id, tenant_id)
        open_count = sum(1 for motion in motions if motion.is_open)

        match (source, target):
            case (MeetingStatus.DRAFT, MeetingStatus.SCHEDULED):
                if not motions:
                    issues.append(TransitionIssue("no_motions", "No motion has been created."))
            case (MeetingStatus.SCHEDULED, MeetingStatus.FROZEN):
                attending = self._store.present_headcount(
                    meeting.id, tenant_id, _ATTENDING_MODES
                ).members
                if attending == 0:
                    issues.append(
                        TransitionIssue("no_attendance", "No attendance has been recorded.")
                    )
                if not (meeting.president_name or "").strip():
                    warnings.append(
                        TransitionIssue("no_president", "No president assigned (optional).")
                    )
            case (MeetingStatus.FROZEN, MeetingStatus.LIVE):
                quorum = self._quorum.evaluate_for_meeting(meeting.id, ctx)
                if quorum.status is QuorumStatus.NOT_MET:
                    warnings.append(
                        TransitionIssue("quorum_not_met", "Quorum not reached (you may continue).")
                    )
            case (MeetingStatus.LIVE, MeetingStatus.PAUSED):
                if open_count > 0:
                    issues.append(
                        TransitionIssue(
                            "motion_open",
                            f"Cannot pause: {open_count} vote(s) in progress.",
                        )
                    )
            case (MeetingStatus.LIVE | MeetingStatus.PAUSED, MeetingStatus.CLOSED):
                if open_count > 0:
                    issues.append(
                        TransitionIssue("motion_open", f"{open_count} motion(s) still open.")
                    )
            case (MeetingStatus.CLOSED, MeetingStatus.VALIDATED):
                closed = [motion for motion in motions if motion.is_closed]
                bad = sum(
                    1
                    for motion in closed
                    if not is_usable_closed_motion(
                        motion, self._store.count_ballots(motion.id, tenant_id)
                    )
                )
                if bad > 0:
                    issues.append(
                        TransitionIssue("bad_results", f"{bad} motion(s) without a usable result.")
                    )
                consolidated = sum(1 for motion in closed if motion.official_source is not None)
                if consolidated < len(closed):
                    warnings.append(
                        TransitionIssue(
                            "not_consolidated",
                            "Results not consolidated (consolidation recommended).",
                        )
                    )
            case _:
                pass

        check = TransitionCheck(
            from_status=source, to_status=target, issues=issues, warnings=warnings
        )
        logger.debug(
            "Meeting %s %s -> %s: %d issue(s), %d warning(s)",
            meeting.id,
            source.value,
            target.value,
            len(issues),
            len(warnings),
        )
        return check

    def transition_readiness(self, meeting_id: str, ctx: "Context") -> TransitionReadiness:
        """Run ``issues_before`` for every state reachable from the current one."""
        meeting = self._load(meeting_id, ctx)
        return TransitionReadiness(
            meeting_id=meeting.id,
            current_status=meeting.status,
            transitions={
                target: self.issues_before(meeting.id, target, ctx)
                for target in ALLOWED_TRANSITIONS[meeting.status]
            },
        )

    def require_transition(
        self, meeting_id: str, to_status: MeetingStatus | str, ctx: "Context"
    ) -> TransitionCheck:
        """Return the check, raising when the transition is blocked.

        Raises
        ------
        BusinessRuleViolation
            ``invalid_transition`` listing the blocking issue codes.
        """
        check = self.issues_before(meeting_id, to_status, ctx)
        if not check.can_proceed:
            codes = ", ".join(issue.code for issue in check.issues)
            raise BusinessRuleViolation(
                ViolationCode.INVALID_TRANSITION,
                f"Cannot move meeting {meeting_id} to {check.to_status.value}: {codes}",
            )
        return check
