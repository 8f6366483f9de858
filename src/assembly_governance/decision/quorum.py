"""Quorum evaluation for meetings and motions.

Provides the pure ``evaluate_quorum`` function and the ``QuorumEvaluator``
service that gathers attendance/member counts from a store before calling
it.

Modes
-----
- ``single``: one ratio against one threshold.
- ``evolving``: as ``single``, but the second convocation uses
  ``threshold_call2`` when set.
- ``double``: a second ratio (``denominator2``/``threshold2``) must also
  pass.  An unconfigured second dimension never passes.

When evaluating for a motion, attendees whose ``present_from_at`` is after
the motion's ``opened_at`` are not counted.

Example
-------
>>> from assembly_governance.decision.quorum import evaluate_quorum
>>> from assembly_governance.policies.schema import QuorumPolicy
>>> from assembly_governance.store.records import Headcount
>>> policy = QuorumPolicy(id="q", threshold=0.5)
>>> result = evaluate_quorum(policy, Headcount(40, 40.0), Headcount(100, 100.0))
>>> result.met
False
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from assembly_governance.errors import NotFoundError, require_id
from assembly_governance.policies.resolver import resolve_quorum_policy
from assembly_governance.policies.schema import QuorumBasis, QuorumMode, QuorumPolicy
from assembly_governance.store.records import AttendanceMode, Headcount

if TYPE_CHECKING:
    from assembly_governance.context import Context
    from assembly_governance.store.ports import GovernanceStore
    from assembly_governance.store.records import MotionContext

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Value objects
# ---------------------------------------------------------------------------


class QuorumStatus(str, Enum):
    """Outcome class of a quorum evaluation."""

    MET = "met"
    NOT_MET = "not_met"
    NOT_APPLICABLE = "not_applicable"


@dataclass(frozen=True)
class QuorumBlock:
    """One ratio/threshold comparison.

    Attributes
    ----------
    configured:
        ``False`` for a ``double`` policy missing its second dimension.
    met:
        Whether ``ratio >= threshold``.
    ratio:
        ``numerator / denominator``, or ``0.0`` when the denominator is 0.
    threshold:
        Threshold in force, ``None`` when unconfigured.
    numerator, denominator:
        Present and eligible totals on ``basis``.
    basis:
        Whether the block counts members or weight.
    """

    configured: bool
    met: bool
    ratio: float
    threshold: float | None
    numerator: float
    denominator: float
    basis: QuorumBasis | None

    @classmethod
    def unconfigured(cls) -> "QuorumBlock":
        return cls(
            configured=False,
            met=False,
            ratio=0.0,
            threshold=None,
            numerator=0.0,
            denominator=0.0,
            basis=None,
        )


@dataclass(frozen=True)
class QuorumResult:
    """Outcome of a quorum evaluation.

    ``status`` distinguishes "no policy" from "policy not satisfied";
    ``applied``/``met``/``ratio``/``threshold`` are convenience views.
    """

    status: QuorumStatus
    justification: str
    meeting_id: str = ""
    primary: QuorumBlock | None = None
    secondary: QuorumBlock | None = None
    policy_id: str | None = None
    policy_name: str | None = None
    mode: QuorumMode | None = None
    convocation_no: int = 1
    counted_modes: tuple[AttendanceMode, ...] = ()
    present: Headcount = Headcount()
    eligible: Headcount = Headcount()
    late_cutoff: datetime | None = None

    @classmethod
    def not_applicable(cls, meeting_id: str = "") -> "QuorumResult":
        return cls(
            status=QuorumStatus.NOT_APPLICABLE,
            justification="No quorum policy applied.",
            meeting_id=meeting_id,
        )

    @property
    def applied(self) -> bool:
        return self.status is not QuorumStatus.NOT_APPLICABLE

    @property
    def met(self) -> bool | None:
        match self.status:
            case QuorumStatus.MET:
                return True
            case QuorumStatus.NOT_MET:
                return False
            case QuorumStatus.NOT_APPLICABLE:
                return None

    @property
    def ratio(self) -> float | None:
        return self.primary.ratio if self.primary is not None else None

    @property
    def threshold(self) -> float | None:
        return self.primary.threshold if self.primary is not None else None

    @property
    def basis(self) -> QuorumBasis | None:
        return self.primary.basis if self.primary is not None else None

    @property
    def late_arrivals_excluded(self) -> bool:
        return self.late_cutoff is not None

    @property
    def failed_block(self) -> QuorumBlock | None:
        """The first block that did not pass, for reason texts."""
        for block in (self.primary, self.secondary):
            if block is not None and not block.met:
                return block
        return None


# ---------------------------------------------------------------------------
# Pure computation
# ---------------------------------------------------------------------------


def counted_modes(policy: QuorumPolicy) -> tuple[AttendanceMode, ...]:
    """Return the attendance modes *policy* counts, ``present`` first."""
    modes = [AttendanceMode.PRESENT]
    if policy.count_remote:
        modes.append(AttendanceMode.REMOTE)
    if policy.include_proxies:
        modes.append(AttendanceMode.PROXY)
    return tuple(modes)


def _ratio_block(
    basis: QuorumBasis, threshold: float, present: Headcount, eligible: Headcount
) -> QuorumBlock:
    match basis:
        case QuorumBasis.ELIGIBLE_MEMBERS:
            numerator = float(present.members)
            denominator = float(eligible.members)
        case QuorumBasis.ELIGIBLE_WEIGHT:
            numerator = float(present.weight)
            denominator = float(eligible.weight)

    if denominator <= 0:
        return QuorumBlock(
            configured=True,
            met=False,
            ratio=0.0,
            threshold=threshold,
            numerator=numerator,
            denominator=0.0,
            basis=basis,
        )

    ratio = numerator / denominator
    return QuorumBlock(
        configured=True,
        met=ratio >= threshold,
        ratio=ratio,
        threshold=threshold,
        numerator=numerator,
        denominator=denominator,
        basis=basis,
    )


def _justification(
    policy: QuorumPolicy,
    convocation_no: int,
    modes: tuple[AttendanceMode, ...],
    primary: QuorumBlock,
    secondary: QuorumBlock | None,
    met: bool,
    late_cutoff: datetime | None,
) -> str:
    status = "met" if met else "not met"
    modes_label = ", ".join(mode.value for mode in modes)
    basis = primary.basis.value if primary.basis is not None else "-"
    text = (
        f"{policy.name} (convocation {convocation_no}): basis {basis} "
        f"(ratio {primary.ratio:.4f} / threshold {primary.threshold:.4f}). "
        f"Counted: {modes_label}. Result: {status}."
    )
    if policy.mode is QuorumMode.DOUBLE:
        if secondary is None or not secondary.configured:
            text += " Second condition not configured."
        else:
            basis2 = secondary.basis.value if secondary.basis is not None else "-"
            text += (
                f" Second condition: basis {basis2} "
                f"(ratio {secondary.ratio:.4f} / threshold {secondary.threshold:.4f})."
            )
    if late_cutoff is not None:
        text += " Late arrivals excluded (present_from_at > opened_at)."
    return text


def evaluate_quorum(
    policy: QuorumPolicy | None,
    present: Headcount,
    eligible: Headcount,
    convocation_no: int = 1,
    late_cutoff: datetime | None = None,
    meeting_id: str = "",
) -> QuorumResult:
    """Evaluate *policy* against present and eligible totals.

    Parameters
    ----------
    policy:
        The quorum policy, or ``None`` for a not-applicable result.
    present:
        Attendees counted under the policy's modes (already filtered by
        ``late_cutoff``).
    eligible:
        Active members of the tenant.
    convocation_no:
        1 for the first call, 2 for the second.
    late_cutoff:
        The motion's ``opened_at``; only recorded for the justification.

    Returns
    -------
    QuorumResult
    """
    if policy is None:
        return QuorumResult.not_applicable(meeting_id)

    modes = counted_modes(policy)
    primary = _ratio_block(
        policy.denominator, policy.threshold_for(convocation_no), present, eligible
    )
    met = primary.met
    secondary: QuorumBlock | None = None

    match policy.mode:
        case QuorumMode.DOUBLE:
            if policy.is_second_dimension_configured:
                secondary = _ratio_block(
                    policy.denominator2, policy.threshold2, present, eligible  # type: ignore[arg-type]
                )
                met = primary.met and secondary.met
            else:
                secondary = QuorumBlock.unconfigured()
                met = False
        case QuorumMode.SINGLE | QuorumMode.EVOLVING:
            pass

    return QuorumResult(
        status=QuorumStatus.MET if met else QuorumStatus.NOT_MET,
        justification=_justification(
            policy, convocation_no, modes, primary, secondary, met, late_cutoff
        ),
        meeting_id=meeting_id,
        primary=primary,
        secondary=secondary,
        policy_id=policy.id,
        policy_name=policy.name,
        mode=policy.mode,
        convocation_no=convocation_no,
        counted_modes=modes,
        present=present,
        eligible=eligible,
        late_cutoff=late_cutoff,
    )


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class QuorumEvaluator:
    """Computes quorum for meetings and motions from a store.

    Parameters
    ----------
    store:
        Any object satisfying the read contracts in
        :mod:`assembly_governance.store.ports`.
    """

    def __init__(self, store: "GovernanceStore") -> None:
        self._store = store

    def evaluate_for_meeting(self, meeting_id: str, ctx: "Context") -> QuorumResult:
        """Evaluate the meeting-level policy without late-arrival exclusion.

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

        policy = resolve_quorum_policy(self._store, None, meeting.quorum_policy_id)
        return self._evaluate(policy, meeting.id, ctx.tenant_id, meeting.convocation_no, None)

    def evaluate_for_motion(self, motion_id: str, ctx: "Context") -> QuorumResult:
        """Evaluate the motion's effective policy, excluding late arrivals.

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
        return self.evaluate_for_motion_context(motion)

    def evaluate_for_motion_context(self, motion: "MotionContext") -> QuorumResult:
        """Evaluate an already-loaded motion context."""
        policy = resolve_quorum_policy(
            self._store, motion.motion_quorum_policy_id, motion.meeting_quorum_policy_id
        )
        return self._evaluate(
            policy, motion.meeting_id, motion.tenant_id, motion.convocation_no, motion.opened_at
        )

    def _evaluate(
        self,
        policy: QuorumPolicy | None,
        meeting_id: str,
        tenant_id: str,
        convocation_no: int,
        late_cutoff: datetime | None,
    ) -> QuorumResult:
        if policy is None:
            return QuorumResult.not_applicable(meeting_id)

        modes = frozenset(counted_modes(policy))
        present = self._store.present_headcount(meeting_id, tenant_id, modes, late_cutoff)
        eligible = self._store.active_headcount(tenant_id)
        result = evaluate_quorum(
            policy, present, eligible, convocation_no, late_cutoff, meeting_id
        )
        logger.debug("Quorum for meeting %s: %s", meeting_id, result.justification)
        return result
