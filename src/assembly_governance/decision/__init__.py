"""Quorum, majority and official result computation.

Evaluators are pure over the aggregates they read: identical store contents
give identical results.
"""
from __future__ import annotations

from assembly_governance.decision.majority import (
    MajorityEvaluator,
    MajorityResult,
    MotionOutcome,
    evaluate_majority,
)
from assembly_governance.decision.official import (
    ConsolidationReport,
    OfficialResult,
    ResultReconciler,
)
from assembly_governance.decision.quorum import (
    QuorumEvaluator,
    QuorumResult,
    QuorumStatus,
    evaluate_quorum,
)

__all__ = [
    "ConsolidationReport",
    "MajorityEvaluator",
    "MajorityResult",
    "MotionOutcome",
    "OfficialResult",
    "QuorumEvaluator",
    "QuorumResult",
    "QuorumStatus",
    "ResultReconciler",
    "evaluate_majority",
    "evaluate_quorum",
]
