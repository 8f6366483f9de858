"""Quorum and vote policy models, presets and resolution."""
from __future__ import annotations

from assembly_governance.policies.resolver import (
    ResolvedPolicies,
    resolve_for_motion,
    resolve_quorum_policy,
    resolve_vote_policy,
)
from assembly_governance.policies.schema import (
    MajorityBase,
    PolicySet,
    QuorumBasis,
    QuorumMode,
    QuorumPolicy,
    VotePolicy,
)

__all__ = [
    "MajorityBase",
    "PolicySet",
    "QuorumBasis",
    "QuorumMode",
    "QuorumPolicy",
    "ResolvedPolicies",
    "VotePolicy",
    "resolve_for_motion",
    "resolve_quorum_policy",
    "resolve_vote_policy",
]
