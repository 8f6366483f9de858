"""Majority evaluation: turning weighted tallies into adopted/rejected.

Rules
-----
1. The base total is the expressed weight (for + against + abstain) for the
   ``expressed`` and ``present`` bases, and the eligible weight for
   ``eligible``.
2. ``ratio = for / max(base_total, EPSILON)``.
3. Adopted iff ``base_total > 0``, some weight was expressed and
   ``ratio >= threshold``.
4. A quorum that was evaluated and not met forces rejection.
5. ``abstention_as_against`` moves abstentions to the reported against
   weight.  The ``for`` weight and the adoption ratio are unchanged:
   abstentions already sit in the expressed denominator.

Without a vote policy the result is ``no_policy``, never adopted/rejected.

Example
-------
>>> from assembly_governance.decision.majority import evaluate_majority
>>> from assembly_governance.policies.schema import VotePolicy
>>> result = evaluate_majority(VotePolicy(id="v", threshold=0.5), 6.0, 3.0, 1.0, eligible_weight=20.0)
>>> result.met, result.ratio
(True, 0.6)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from assembly_governance.decision.quorum import QuorumEvaluator, QuorumResult, QuorumStatus
from assembly_governance.errors import NotFoundError, require_id
from assembly_governance.policies.resolver import resolve_vote_policy
from assembly_governance.policies.schema import MajorityBase, VotePolicy
from assembly_governance.store.records import Decision, Headcount, Tally

if TYPE_CHECKING:
    from assembly_governance.context import Context
    from assembly_governance.store.ports import GovernanceStore
    from assembly_governance.store.records import MotionContext

logger = logging.getLogger(__name__)

EPSILON: float = 1e-9

@dataclass(frozen=True)
class MajorityResult:
    """Outcome of a majority evaluation.

    Attributes
    ----------
    applied:
        ``False`` when no vote policy applies.
    met:
        ``True`` when adopted, ``None`` when not applied.
    ratio:
        ``for_weight / base_total``, unrounded.
    threshold, base:
        Copied from the policy.
    base_total:
        The denominator actually used.
    for_weight, against_weight, abstain_weight:
        Reported weights; ``against_weight`` includes abstentions when
        ``abstention_as_against`` is set.
    quorum_gated:
        ``True`` when an unmet quorum overrode the ratio.
    """

    applied: bool
    met: bool | None
    ratio: float | None = None
    threshold: float | None = None
    base: MajorityBase | None = None
    base_total: float = 0.0
    for_weight: float = 0.0
    against_weight: float = 0.0
    abstain_weight: float = 0.0
    abstention_as_against: bool = False
    quorum_gated: bool = False

    @classmethod
    def no_policy(
        cls, for_weight: float = 0.0, against_weight: float = 0.0, abstain_weight: float = 0.0
    ) -> "MajorityResult":
        return cls(
            applied=False,
            met=None,
            for_weight=for_weight,
            against_weight=against_weight,
            abstain_weight=abstain_weight,
        )

    @property
    def decision(self) -> Decision:
        if not self.applied:
            return Decision.NO_POLICY
        return Decision.ADOPTED if self.met else Decision.REJECTED


def evaluate_majority(
    policy: VotePolicy | None,
    for_weight: float,
    against_weight: float,
    abstain_weight: float,
    eligible_weight: float,
    quorum: QuorumResult | None = None,
) -> MajorityResult:
    """Apply *policy* to weighted tallies.

    Parameters
    ----------
    policy:
        The vote policy, or ``None`` for a ``no_policy`` result.
    for_weight, against_weight, abstain_weight:
        Weighted tallies, never negative.
    eligible_weight:
        Sum of active members' voting power.
    quorum:
        Quorum result for the same motion.  A ``not_met`` quorum forces
        ``met=False``.
    """
    if min(for_weight, against_weight, abstain_weight) < 0:
        raise ValueError("tally weights must be >= 0")

    if policy is None:
        return MajorityResult.no_policy(for_weight, against_weight, abstain_weight)

    expressed_weight = for_weight + against_weight + abstain_weight

    match policy.base:
        case MajorityBase.EXPRESSED | MajorityBase.PRESENT:
            base_total = expressed_weight
        case MajorityBase.ELIGIBLE:
            base_total = eligible_weight

    ratio = for_weight / max(base_total, EPSILON) if base_total > 0 else 0.0
    adopted = base_total > 0 and expressed_weight > 0 and ratio >= policy.threshold

    quorum_gated = quorum is not None and quorum.status is QuorumStatus.NOT_MET
    if quorum_gated:
        adopted = False

    reported_against = against_weight
    if policy.abstention_as_against:
        reported_against += abstain_weight

    return MajorityResult(
        applied=True,
        met=adopted,
        ratio=ratio,
        threshold=policy.threshold,
        base=policy.base,
        base_total=base_total,
        for_weight=for_weight,
        against_weight=reported_against,
        abstain_weight=abstain_weight,
        abstention_as_against=policy.abstention_as_against,
        quorum_gated=quorum_gated,
    )


@dataclass(frozen=True)
class MotionOutcome:
    """Live result of a motion from its electronic ballots."""

    motion_id: str
    meeting_id: str
    tally: Tally
    eligible: Headcount
    quorum: QuorumResult
    majority: MajorityResult
    decision: Decision
    reason: str


def _live_decision(
    tally: Tally, quorum: QuorumResult, majority: MajorityResult
) -> tuple[Decision, str]:
    if tally.ballot_count == 0:
        return Decision.NO_VOTES, "No ballot recorded for this motion."
    if quorum.status is QuorumStatus.NOT_MET:
        return Decision.NO_QUORUM, "Quorum not reached."
    match majority.decision:
        case Decision.ADOPTED:
            return Decision.ADOPTED, "Majority threshold reached."
        case Decision.REJECTED:
            return Decision.REJECTED, "Majority threshold not reached."
        case _:
            return Decision.NO_POLICY, "No vote policy defined for this motion."


class MajorityEvaluator:
    """Evaluates motions' majority from a store.

    Parameters
    ----------
    store:
        Object satisfying the store read contracts.
    quorum_evaluator:
        Optional shared ``QuorumEvaluator``; one is built on *store* when
        omitted.
    """

    def __init__(
        self,
        store: "GovernanceStore",
        quorum_evaluator: QuorumEvaluator | None = None,
    ) -> None:
        self._store = store
        self._quorum = quorum_evaluator or QuorumEvaluator(store)

    def _load(self, motion_id: str, ctx: "Context") -> "MotionContext":
        motion_id = require_id("motion_id", motion_id)
        motion = self._store.find_motion_context(motion_id, ctx.tenant_id)
        if motion is None:
            raise NotFoundError("motion", motion_id)
        return motion

    def evaluate(self, motion_id: str, ctx: "Context") -> MajorityResult:
        """Evaluate the majority of *motion_id* from its ballots."""
        return self.evaluate_motion(motion_id, ctx).majority

    def evaluate_motion(self, motion_id: str, ctx: "Context") -> MotionOutcome:
        """Combine ballots, policies and quorum into a live ``MotionOutcome``.

        Raises
        ------
        InvalidInputError
            When *motion_id* is blank.
        NotFoundError
            When the motion does not exist in ``ctx.tenant_id``.
        """
        motion = self._load(motion_id, ctx)
        tally = self._store.weighted_tally(motion.motion_id, motion.tenant_id)
        eligible = self._store.active_headcount(motion.tenant_id)
        policy = resolve_vote_policy(
            self._store, motion.motion_vote_policy_id, motion.meeting_vote_policy_id
        )
        quorum = self._quorum.evaluate_for_motion_context(motion)
        majority = evaluate_majority(
            policy,
            tally.for_.weight,
            tally.against.weight,
            tally.abstain.weight,
            eligible.weight,
            quorum=quorum,
        )
        decision, reason = _live_decision(tally, quorum, majority)
        logger.debug("Motion %s live decision: %s", motion.motion_id, decision.value)
        return MotionOutcome(
            motion_id=motion.motion_id,
            meeting_id=motion.meeting_id,
            tally=tally,
            eligible=eligible,
            quorum=quorum,
            majority=majority,
            decision=decision,
            reason=reason,
        )
