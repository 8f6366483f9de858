"""Official (certified) results for motions.

For each motion a single authoritative tally is chosen:

- ``manual``: when the motion carries a closed, consistent paper count
  (``manual_total > 0`` and ``for + against + abstain == total``).
- ``evote``: otherwise, from the electronic ballots.

The chosen tally then goes through the same quorum and majority rules as the
live results.  Without a vote policy, ``for > against`` decides and a tie is
rejected.  Every decision comes with a reason quoting the numbers behind it.

Consolidation writes official results for every closed motion of a meeting.
It is idempotent, leaves open motions alone and is refused once the meeting
has been validated.

Example
-------
>>> reconciler = ResultReconciler(store)
>>> result = reconciler.compute_official_tallies("motion-1", ctx)
>>> result.source, result.decision
(<ResultSource.MANUAL: 'manual'>, <Decision.ADOPTED: 'adopted'>)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from assembly_governance.decision.formatting import (
    format_pct,
    format_weight,
    majority_base_label,
    quorum_basis_label,
)
from assembly_governance.decision.majority import MajorityResult, evaluate_majority
from assembly_governance.decision.quorum import QuorumEvaluator, QuorumResult, QuorumStatus
from assembly_governance.errors import (
    BusinessRuleViolation,
    NotFoundError,
    ViolationCode,
    require_id,
)
from assembly_governance.policies.resolver import resolve_vote_policy
from assembly_governance.store.records import (
    Decision,
    MeetingStatus,
    OfficialRecord,
    ResultSource,
    is_consistent_manual_count,
)

if TYPE_CHECKING:
    from assembly_governance.context import Context
    from assembly_governance.store.ports import GovernanceStore
    from assembly_governance.store.records import MotionContext

logger = logging.getLogger(__name__)

LOCKED_STATUSES: frozenset[MeetingStatus] = frozenset(
    {MeetingStatus.VALIDATED, MeetingStatus.ARCHIVED}
)


@dataclass(frozen=True)
class OfficialResult:
    """Certified tally and decision for one motion."""

    motion_id: str
    source: ResultSource
    for_: float
    against: float
    abstain: float
    total: float
    decision: Decision
    reason: str
    quorum: QuorumResult
    majority: MajorityResult

    def to_record(self) -> OfficialRecord:
        return OfficialRecord(
            motion_id=self.motion_id,
            source=self.source,
            for_=self.for_,
            against=self.against,
            abstain=self.abstain,
            total=self.total,
            decision=self.decision,
            reason=self.reason,
        )


@dataclass(frozen=True)
class ConsolidationReport:
    """Outcome of ``consolidate_meeting``."""

    meeting_id: str
    updated: int
    results: list[OfficialResult] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Reason texts
# ---------------------------------------------------------------------------


def quorum_failure_reason(quorum: QuorumResult) -> str:
    block = quorum.failed_block
    if block is None or block.threshold is None:
        return "Quorum not reached (second condition not configured)"
    return (
        f"Quorum not reached ({format_pct(block.ratio)} < "
        f"{format_pct(block.threshold)} {quorum_basis_label(block.basis)})"
    )


def simple_majority_reason(for_weight: float, against_weight: float) -> str:
    for_fmt = format_weight(for_weight)
    against_fmt = format_weight(against_weight)
    if for_weight > against_weight:
        return f"Simple majority (For: {for_fmt} > Against: {against_fmt})"
    if for_weight == against_weight:
        return f"Tie (For: {for_fmt} = Against: {against_fmt})"
    return f"Simple majority not reached (For: {for_fmt} <= Against: {against_fmt})"


def decide(
    quorum: QuorumResult,
    majority: MajorityResult,
    for_weight: float,
    against_weight: float,
) -> tuple[Decision, str]:
    """Return the official decision and its reason.

    With a vote policy the majority result decides; without one, a plain
    ``for > against`` comparison does.  An unmet quorum always rejects.
    """
    quorum_failed = quorum.status is QuorumStatus.NOT_MET

    if majority.applied:
        decision = Decision.ADOPTED if majority.met else Decision.REJECTED
        if quorum_failed:
            return decision, quorum_failure_reason(quorum)
        ratio_pct = format_pct(majority.ratio)
        threshold_pct = format_pct(majority.threshold)
        label = majority_base_label(majority.base)
        if majority.met:
            return decision, f"Majority reached ({ratio_pct} >= {threshold_pct} {label})"
        return decision, f"Majority not reached ({ratio_pct} < {threshold_pct} {label})"

    if quorum_failed:
        return Decision.REJECTED, quorum_failure_reason(quorum)
    decision = Decision.ADOPTED if for_weight > against_weight else Decision.REJECTED
    return decision, simple_majority_reason(for_weight, against_weight)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class ResultReconciler:
    """Computes, persists and consolidates official results.

    Parameters
    ----------
    store:
        Object satisfying the store contracts.
    quorum_evaluator:
        Optional shared ``QuorumEvaluator``.
    """

    def __init__(
        self,
        store: "GovernanceStore",
        quorum_evaluator: QuorumEvaluator | None = None,
    ) -> None:
        self._store = store
        self._quorum = quorum_evaluator or QuorumEvaluator(store)

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    def compute_official_tallies(self, motion_id: str, ctx: "Context") -> OfficialResult:
        """Compute the official result of one motion without persisting it.

        Raises
        ------
        InvalidInputError
            When *motion_id* is blank.
        NotFoundError
            When the motion does not exist in ``ctx.tenant_id``.
        """
        motion_id = require_id("motion_id", motion_id)
        motion = self._store.find_motion_context(motion_id, ctx.tenant_id)
        if motion is None:
            raise NotFoundError("motion", motion_id)
        return self._compute(motion)

    def _compute(self, motion: "MotionContext") -> OfficialResult:
        if is_consistent_manual_count(
            motion.manual_total, motion.manual_for, motion.manual_against, motion.manual_abstain
        ):
            source = ResultSource.MANUAL
            for_weight = motion.manual_for or 0.0
            against_weight = motion.manual_against or 0.0
            abstain_weight = motion.manual_abstain or 0.0
            total = motion.manual_total or 0.0
        else:
            source = ResultSource.EVOTE
            tally = self._store.weighted_tally(motion.motion_id, motion.tenant_id)
            for_weight = tally.for_.weight
            against_weight = tally.against.weight
            abstain_weight = tally.abstain.weight
            total = tally.total_weight

        policy = resolve_vote_policy(
            self._store, motion.motion_vote_policy_id, motion.meeting_vote_policy_id
        )
        quorum = self._quorum.evaluate_for_motion_context(motion)
        majority = evaluate_majority(
            policy,
            for_weight,
            against_weight,
            abstain_weight,
            self._store.active_headcount(motion.tenant_id).weight,
            quorum=quorum,
        )
        decision, reason = decide(quorum, majority, for_weight, against_weight)
        return OfficialResult(
            motion_id=motion.motion_id,
            source=source,
            for_=for_weight,
            against=against_weight,
            abstain=abstain_weight,
            total=total,
            decision=decision,
            reason=reason,
            quorum=quorum,
            majority=majority,
        )

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    def _require_unlocked_meeting(self, meeting_id: str, ctx: "Context") -> None:
        meeting = self._store.find_meeting(meeting_id, ctx.tenant_id)
        if meeting is None:
            raise NotFoundError("meeting", meeting_id)
        if meeting.status in LOCKED_STATUSES:
            raise BusinessRuleViolation(
                ViolationCode.MEETING_LOCKED,
                f"Meeting {meeting_id} is {meeting.status.value}; official results are frozen.",
            )

    def compute_and_persist_motion(self, motion_id: str, ctx: "Context") -> OfficialResult:
        """Compute the official result of one motion and write it back."""
        result = self.compute_official_tallies(motion_id, ctx)
        motion = self._store.find_motion_context(result.motion_id, ctx.tenant_id)
        if motion is None:
            raise NotFoundError("motion", result.motion_id)
        self._require_unlocked_meeting(motion.meeting_id, ctx)
        self._store.persist_official_results(ctx.tenant_id, [result.to_record()])
        logger.info(
            "Persisted official result for motion %s: %s (%s)",
            result.motion_id,
            result.decision.value,
            result.source.value,
        )
        return result

    def consolidate_meeting(self, meeting_id: str, ctx: "Context") -> ConsolidationReport:
        """Compute and persist official results for every closed motion.

        All results are computed before any is written, and written in one
        batch.  Open motions are skipped.

        Raises
        ------
        NotFoundError
            When the meeting does not exist in ``ctx.tenant_id``.
        BusinessRuleViolation
            ``meeting_locked`` once the meeting is validated or archived.
        """
        meeting_id = require_id("meeting_id", meeting_id)
        self._require_unlocked_meeting(meeting_id, ctx)

        results: list[OfficialResult] = []
        for motion in self._store.list_motions(meeting_id, ctx.tenant_id):
            if not motion.is_closed:
                continue
            results.append(self.compute_official_tallies(motion.id, ctx))

        updated = self._store.persist_official_results(
            ctx.tenant_id, [result.to_record() for result in results]
        )
        logger.info("Consolidated %d closed motion(s) for meeting %s", updated, meeting_id)
        return ConsolidationReport(meeting_id=meeting_id, updated=updated, results=results)
