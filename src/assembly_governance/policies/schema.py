"""Policy schema — Pydantic v2 models for quorum and majority rules.

A ``QuorumPolicy`` says how much participation a vote needs to be valid; a
``VotePolicy`` says how for/against/abstain weights become a decision.  Both
are immutable and can be attached to a meeting or overridden per motion.
``PolicySet`` groups them into a document that round-trips through YAML.

Example
-------
>>> from assembly_governance.policies.schema import PolicySet
>>> policies = PolicySet.presets()
>>> policies.vote("two_thirds").base
<MajorityBase.EXPRESSED: 'expressed'>
"""
from __future__ import annotations

from enum import Enum

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class QuorumMode(str, Enum):
    """How the quorum threshold(s) are applied."""

    SINGLE = "single"
    EVOLVING = "evolving"
    DOUBLE = "double"


class QuorumBasis(str, Enum):
    """Denominator used for a quorum ratio."""

    ELIGIBLE_MEMBERS = "eligible_members"
    ELIGIBLE_WEIGHT = "eligible_weight"


class MajorityBase(str, Enum):
    """Denominator used for a majority ratio."""

    EXPRESSED = "expressed"
    PRESENT = "present"
    ELIGIBLE = "eligible"


def _check_fraction(name: str, value: float | None) -> float | None:
    if value is not None and not 0.0 <= value <= 1.0:
        raise ValueError(f"{name} must be within [0, 1], got {value}")
    return value


# ---------------------------------------------------------------------------
# Quorum policy
# ---------------------------------------------------------------------------


class QuorumPolicy(BaseModel):
    """Participation rule for a meeting or motion.

    Attributes
    ----------
    id:
        Identifier referenced by meetings and motions.
    name:
        Display name, quoted in justifications.
    mode:
        ``single`` applies ``threshold``; ``evolving`` swaps in
        ``threshold_call2`` on the second convocation; ``double`` also
        requires the ``denominator2``/``threshold2`` dimension.
    denominator:
        Basis of the primary ratio.
    threshold:
        Minimum primary ratio, in [0, 1].
    threshold_call2:
        Relaxed threshold for the second convocation (``evolving`` only).
    denominator2, threshold2:
        Second dimension for ``double`` mode.  When either is missing the
        policy can never be satisfied.
    include_proxies:
        Count attendees represented by proxy.
    count_remote:
        Count remote attendees.
    """

    model_config = {"frozen": True}

    id: str
    name: str = "Quorum"
    mode: QuorumMode = QuorumMode.SINGLE
    denominator: QuorumBasis = QuorumBasis.ELIGIBLE_MEMBERS
    threshold: float = 0.0
    threshold_call2: float | None = None
    denominator2: QuorumBasis | None = None
    threshold2: float | None = None
    include_proxies: bool = True
    count_remote: bool = True

    @field_validator("threshold")
    @classmethod
    def threshold_in_range(cls, value: float) -> float:
        _check_fraction("threshold", value)
        return value

    @field_validator("threshold_call2", "threshold2")
    @classmethod
    def optional_threshold_in_range(cls, value: float | None) -> float | None:
        return _check_fraction("threshold", value)

    @property
    def is_second_dimension_configured(self) -> bool:
        """``True`` when both ``denominator2`` and ``threshold2`` are set."""
        return self.denominator2 is not None and self.threshold2 is not None

    def threshold_for(self, convocation_no: int) -> float:
        """Return the primary threshold in force for *convocation_no*."""
        if (
            self.mode is QuorumMode.EVOLVING
            and convocation_no == 2
            and self.threshold_call2 is not None
        ):
            return self.threshold_call2
        return self.threshold


# ---------------------------------------------------------------------------
# Vote policy
# ---------------------------------------------------------------------------


class VotePolicy(BaseModel):
    """Majority rule for a meeting or motion.

    Attributes
    ----------
    id:
        Identifier referenced by meetings and motions.
    name:
        Display name.
    base:
        Which total the ``for`` weight is divided by.
    threshold:
        Minimum ratio for adoption, in [0, 1].
    abstention_as_against:
        Report abstentions on the against side.
    """

    model_config = {"frozen": True}

    id: str
    name: str = "Majority"
    base: MajorityBase = MajorityBase.EXPRESSED
    threshold: float = 0.5
    abstention_as_against: bool = False

    @field_validator("threshold")
    @classmethod
    def threshold_in_range(cls, value: float) -> float:
        _check_fraction("threshold", value)
        return value


# ---------------------------------------------------------------------------
# Policy set
# ---------------------------------------------------------------------------


class PolicySet(BaseModel):
    """Named collection of quorum and vote policies."""

    quorum_policies: list[QuorumPolicy] = Field(default_factory=list)
    vote_policies: list[VotePolicy] = Field(default_factory=list)

    @model_validator(mode="after")
    def ids_are_unique(self) -> "PolicySet":
        for label, items in (
            ("quorum", self.quorum_policies),
            ("vote", self.vote_policies),
        ):
            seen: set[str] = set()
            for policy in items:
                if policy.id in seen:
                    raise ValueError(f"Duplicate {label} policy id {policy.id!r}")
                seen.add(policy.id)
        return self

    def quorum(self, policy_id: str) -> QuorumPolicy | None:
        """Return the quorum policy with *policy_id*, or ``None``."""
        for policy in self.quorum_policies:
            if policy.id == policy_id:
                return policy
        return None

    def vote(self, policy_id: str) -> VotePolicy | None:
        """Return the vote policy with *policy_id*, or ``None``."""
        for policy in self.vote_policies:
            if policy.id == policy_id:
                return policy
        return None

    def merged(self, other: "PolicySet") -> "PolicySet":
        """Return a new set with *other*'s policies replacing same-id entries."""
        quorum = {p.id: p for p in self.quorum_policies}
        quorum.update({p.id: p for p in other.quorum_policies})
        vote = {p.id: p for p in self.vote_policies}
        vote.update({p.id: p for p in other.vote_policies})
        return PolicySet(
            quorum_policies=list(quorum.values()),
            vote_policies=list(vote.values()),
        )

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, object]:
        """Serialise to a plain Python dict (JSON-compatible)."""
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "PolicySet":
        """Deserialise from a plain Python dict."""
        return cls.model_validate(data)

    def to_yaml(self) -> str:
        """Serialise to a YAML string."""
        return yaml.dump(
            self.to_dict(),
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )

    @classmethod
    def from_yaml(cls, yaml_str: str) -> "PolicySet":
        """Deserialise from a YAML string."""
        data: dict[str, object] = yaml.safe_load(yaml_str) or {}
        return cls.from_dict(data)

    @classmethod
    def presets(cls) -> "PolicySet":
        """Return the built-in policies offered to new tenants."""
        return cls(
            quorum_policies=[
                QuorumPolicy(
                    id="half_members",
                    name="Half of members",
                    denominator=QuorumBasis.ELIGIBLE_MEMBERS,
                    threshold=0.5,
                ),
                QuorumPolicy(
                    id="third_weight_evolving",
                    name="One third of weight, none on second call",
                    mode=QuorumMode.EVOLVING,
                    denominator=QuorumBasis.ELIGIBLE_WEIGHT,
                    threshold=1 / 3,
                    threshold_call2=0.0,
                ),
                QuorumPolicy(
                    id="double_half",
                    name="Half of members and half of weight",
                    mode=QuorumMode.DOUBLE,
                    denominator=QuorumBasis.ELIGIBLE_MEMBERS,
                    threshold=0.5,
                    denominator2=QuorumBasis.ELIGIBLE_WEIGHT,
                    threshold2=0.5,
                ),
            ],
            vote_policies=[
                VotePolicy(
                    id="simple_majority",
                    name="Simple majority",
                    base=MajorityBase.EXPRESSED,
                    threshold=0.5,
                ),
                VotePolicy(
                    id="absolute_majority",
                    name="Absolute majority",
                    base=MajorityBase.ELIGIBLE,
                    threshold=0.5,
                ),
                VotePolicy(
                    id="two_thirds",
                    name="Two-thirds majority",
                    base=MajorityBase.EXPRESSED,
                    threshold=2 / 3,
                ),
            ],
        )
