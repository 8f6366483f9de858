"""Meeting readiness: validation blockers, change detection and lifecycle checks."""
from __future__ import annotations

from assembly_governance.readiness.differ import ReadinessDiff, ReadinessDiffer
from assembly_governance.readiness.transitions import (
    ALLOWED_TRANSITIONS,
    TransitionCheck,
    TransitionChecker,
    TransitionReadiness,
)
from assembly_governance.readiness.validator import MeetingValidator, Readiness, ReadinessCode

__all__ = [
    "ALLOWED_TRANSITIONS",
    "MeetingValidator",
    "Readiness",
    "ReadinessCode",
    "ReadinessDiff",
    "ReadinessDiffer",
    "TransitionCheck",
    "TransitionChecker",
    "TransitionReadiness",
]
