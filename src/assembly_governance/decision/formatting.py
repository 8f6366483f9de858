"""Presentation rules for numbers quoted in decision reasons.

Ratios stay unrounded everywhere else; rounding happens only here.

- Percentages: ``ratio * 100``, shown without decimals when within 0.01 of
  an integer, otherwise with one decimal (``66.7%``).
- Weights: shown without decimals when within 1e-4 of an integer, otherwise
  with two decimals (``12.50``).
"""
from __future__ import annotations

from assembly_governance.policies.schema import MajorityBase, QuorumBasis

_PCT_INTEGER_TOLERANCE = 0.01
_WEIGHT_INTEGER_TOLERANCE = 0.0001


def format_pct(value: float | None) -> str:
    """Format a ratio in [0, 1] as a percentage string."""
    if value is None:
        return "0%"
    pct = value * 100
    if abs(pct - round(pct)) < _PCT_INTEGER_TOLERANCE:
        return f"{int(round(pct))}%"
    return f"{pct:.1f}%"


def format_weight(value: float) -> str:
    """Format a vote weight."""
    if abs(value - round(value)) < _WEIGHT_INTEGER_TOLERANCE:
        return str(int(round(value)))
    return f"{value:.2f}"


def quorum_basis_label(basis: QuorumBasis | None) -> str:
    match basis:
        case QuorumBasis.ELIGIBLE_MEMBERS:
            return "of eligible members"
        case QuorumBasis.ELIGIBLE_WEIGHT:
            return "of eligible weight"
        case None:
            return "of eligible weight"


def majority_base_label(base: MajorityBase | None) -> str:
    match base:
        case MajorityBase.EXPRESSED | MajorityBase.PRESENT:
            return "of expressed votes"
        case MajorityBase.ELIGIBLE:
            return "of eligible weight"
        case None:
            return "of votes cast"
