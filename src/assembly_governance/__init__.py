"""assembly-governance — Decision engine for general assembly meetings.

Computes quorum, majority and official (certified) results for motions,
keeps the proxy delegation ledger and reports meeting readiness.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import assembly_governance as gov
>>> store = gov.InMemoryStore.from_yaml(open("meeting.yaml").read())
>>> ctx = gov.Context(tenant_id="tenant-1")
>>> gov.ResultReconciler(store).compute_official_tallies("motion-1", ctx).decision
<Decision.ADOPTED: 'adopted'>
"""
from __future__ import annotations

__version__: str = "0.1.0"

from assembly_governance.context import Context
from assembly_governance.errors import (
    BusinessRuleViolation,
    GovernanceError,
    InvalidInputError,
    LockTimeoutError,
    NotFoundError,
    ViolationCode,
)
from assembly_governance.events import DomainEvent

# ---------------------------------------------------------------------------
# Policies
# ---------------------------------------------------------------------------
from assembly_governance.policies.schema import (
    MajorityBase,
    PolicySet,
    QuorumBasis,
    QuorumMode,
    QuorumPolicy,
    VotePolicy,
)

# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------
from assembly_governance.store.memory import InMemoryStore
from assembly_governance.store.ports import GovernanceStore
from assembly_governance.store.records import (
    Attendance,
    AttendanceMode,
    Ballot,
    BallotValue,
    Decision,
    Meeting,
    MeetingStatus,
    Member,
    Motion,
    ProxyEdge,
    ResultSource,
)

# ---------------------------------------------------------------------------
# Decision
# ---------------------------------------------------------------------------
from assembly_governance.decision.quorum import QuorumEvaluator, QuorumResult, QuorumStatus
from assembly_governance.decision.majority import MajorityEvaluator, MajorityResult, MotionOutcome
from assembly_governance.decision.official import (
    ConsolidationReport,
    OfficialResult,
    ResultReconciler,
)

# ---------------------------------------------------------------------------
# Proxies and readiness
# ---------------------------------------------------------------------------
from assembly_governance.proxies.ledger import ProxyChange, ProxyLedger
from assembly_governance.readiness.differ import ReadinessDiff, ReadinessDiffer
from assembly_governance.readiness.transitions import TransitionCheck, TransitionChecker
from assembly_governance.readiness.validator import MeetingValidator, Readiness

# ---------------------------------------------------------------------------
# Ambient
# ---------------------------------------------------------------------------
from assembly_governance.audit.logger import AuditLogger, EventDispatcher
from assembly_governance.config.loader import ConfigLoader, EngineConfig

__all__ = [
    "__version__",
    "Attendance",
    "AttendanceMode",
    "AuditLogger",
    "Ballot",
    "BallotValue",
    "BusinessRuleViolation",
    "ConfigLoader",
    "ConsolidationReport",
    "Context",
    "Decision",
    "DomainEvent",
    "EngineConfig",
    "EventDispatcher",
    "GovernanceError",
    "GovernanceStore",
    "InMemoryStore",
    "InvalidInputError",
    "LockTimeoutError",
    "MajorityBase",
    "MajorityEvaluator",
    "MajorityResult",
    "Meeting",
    "MeetingStatus",
    "MeetingValidator",
    "Member",
    "Motion",
    "MotionOutcome",
    "NotFoundError",
    "OfficialResult",
    "PolicySet",
    "ProxyChange",
    "ProxyEdge",
    "ProxyLedger",
    "QuorumBasis",
    "QuorumEvaluator",
    "QuorumMode",
    "QuorumPolicy",
    "QuorumResult",
    "QuorumStatus",
    "Readiness",
    "ReadinessDiff",
    "ReadinessDiffer",
    "ResultReconciler",
    "ResultSource",
    "TransitionCheck",
    "TransitionChecker",
    "ViolationCode",
    "VotePolicy",
]
