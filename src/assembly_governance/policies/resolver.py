"""Motion-over-meeting policy resolution.

A motion may carry its own quorum/vote policy ids; otherwise it inherits the
meeting's.  Quorum evaluation, majority evaluation and official results all
resolve policies through this module so they can never disagree.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from assembly_governance.policies.schema import QuorumPolicy, VotePolicy
    from assembly_governance.store.ports import PolicyReader
    from assembly_governance.store.records import MotionContext


def pick_policy_id(motion_level: str | None, meeting_level: str | None) -> str | None:
    """Return the motion-level id when set, else the meeting-level id."""
    if motion_level:
        return motion_level
    if meeting_level:
        return meeting_level
    return None


@dataclass(frozen=True)
class ResolvedPolicies:
    """Policies in force for one motion.  Either may be ``None``."""

    quorum: "QuorumPolicy | None"
    vote: "VotePolicy | None"


def resolve_quorum_policy(
    policies: "PolicyReader",
    motion_level: str | None,
    meeting_level: str | None,
) -> "QuorumPolicy | None":
    """Resolve the effective quorum policy.

    A dangling id resolves to ``None`` (no policy), never to a default.
    """
    policy_id = pick_policy_id(motion_level, meeting_level)
    if policy_id is None:
        return None
    return policies.find_quorum_policy(policy_id)


def resolve_vote_policy(
    policies: "PolicyReader",
    motion_level: str | None,
    meeting_level: str | None,
) -> "VotePolicy | None":
    """Resolve the effective vote policy (same precedence as quorum)."""
    policy_id = pick_policy_id(motion_level, meeting_level)
    if policy_id is None:
        return None
    return policies.find_vote_policy(policy_id)


def resolve_for_motion(
    policies: "PolicyReader", motion: "MotionContext"
) -> ResolvedPolicies:
    """Resolve both policies for *motion*."""
    return ResolvedPolicies(
        quorum=resolve_quorum_policy(
            policies, motion.motion_quorum_policy_id, motion.meeting_quorum_policy_id
        ),
        vote=resolve_vote_policy(
            policies, motion.motion_vote_policy_id, motion.meeting_vote_policy_id
        ),
    )
