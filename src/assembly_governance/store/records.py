"""Record types exchanged with the persistence layer.

These are the shapes the engine reads and writes; how they are stored is up
to the ``store`` implementation.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

MANUAL_TOLERANCE: float = 1e-6


class MeetingStatus(str, Enum):
    """Lifecycle status of a meeting."""

    DRAFT = "draft"
    SCHEDULED = "scheduled"
    FROZEN = "frozen"
    LIVE = "live"
    PAUSED = "paused"
    CLOSED = "closed"
    VALIDATED = "validated"
    ARCHIVED = "archived"


class AttendanceMode(str, Enum):
    """How a member attends a meeting."""

    PRESENT = "present"
    REMOTE = "remote"
    PROXY = "proxy"
    EXCUSED = "excused"


class BallotValue(str, Enum):
    """Choice recorded on a ballot.  ``nsp`` means "does not vote"."""

    FOR = "for"
    AGAINST = "against"
    ABSTAIN = "abstain"
    NSP = "nsp"


class ResultSource(str, Enum):
    """Where an official tally came from."""

    MANUAL = "manual"
    EVOTE = "evote"


class Decision(str, Enum):
    """Terminal decision recorded on a motion."""

    ADOPTED = "adopted"
    REJECTED = "rejected"
    NO_QUORUM = "no_quorum"
    NO_VOTES = "no_votes"
    NO_POLICY = "no_policy"


def is_consistent_manual_count(
    total: float | None,
    for_: float | None,
    against: float | None,
    abstain: float | None,
) -> bool:
    """Return ``True`` for a closed, internally consistent manual count.

    The total must be positive and equal the sum of its parts within
    ``MANUAL_TOLERANCE``.  Missing parts count as zero.
    """
    total_value = total or 0.0
    if total_value <= 0:
        return False
    parts = (for_ or 0.0) + (against or 0.0) + (abstain or 0.0)
    return abs(parts - total_value) < MANUAL_TOLERANCE


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


@dataclass
class Member:
    """A member of a tenant, with voting power."""

    id: str
    tenant_id: str
    name: str = ""
    voting_power: float = 1.0
    active: bool = True

    def __post_init__(self) -> None:
        if self.voting_power < 0:
            raise ValueError("voting_power must be >= 0")


@dataclass
class Meeting:
    """A general assembly sitting."""

    id: str
    tenant_id: str
    title: str = ""
    status: MeetingStatus = MeetingStatus.DRAFT
    convocation_no: int = 1
    quorum_policy_id: str | None = None
    vote_policy_id: str | None = None
    president_name: str | None = None


@dataclass
class Motion:
    """A resolution put to the vote.

    ``manual_*`` fields hold a degraded-mode paper count.  ``official_*``
    and ``decision`` are written back at consolidation.
    """

    id: str
    meeting_id: str
    tenant_id: str
    title: str = ""
    quorum_policy_id: str | None = None
    vote_policy_id: str | None = None
    opened_at: datetime | None = None
    closed_at: datetime | None = None
    manual_total: float | None = None
    manual_for: float | None = None
    manual_against: float | None = None
    manual_abstain: float | None = None
    official_source: ResultSource | None = None
    official_for: float | None = None
    official_against: float | None = None
    official_abstain: float | None = None
    official_total: float | None = None
    decision: Decision | None = None
    decision_reason: str | None = None

    def __post_init__(self) -> None:
        if (
            self.opened_at is not None
            and self.closed_at is not None
            and self.closed_at < self.opened_at
        ):
            raise ValueError(f"Motion {self.id}: closed_at precedes opened_at")

    @property
    def is_open(self) -> bool:
        return self.opened_at is not None and self.closed_at is None

    @property
    def is_closed(self) -> bool:
        return self.closed_at is not None

    @property
    def has_consistent_manual_count(self) -> bool:
        return is_consistent_manual_count(
            self.manual_total, self.manual_for, self.manual_against, self.manual_abstain
        )


@dataclass(frozen=True)
class MotionContext:
    """A motion joined with the meeting fields the engine needs."""

    motion_id: str
    title: str
    tenant_id: str
    meeting_id: str
    convocation_no: int = 1
    motion_quorum_policy_id: str | None = None
    meeting_quorum_policy_id: str | None = None
    motion_vote_policy_id: str | None = None
    meeting_vote_policy_id: str | None = None
    manual_total: float | None = None
    manual_for: float | None = None
    manual_against: float | None = None
    manual_abstain: float | None = None
    opened_at: datetime | None = None
    closed_at: datetime | None = None


@dataclass
class Attendance:
    """A member's check-in for a meeting."""

    meeting_id: str
    member_id: str
    mode: AttendanceMode = AttendanceMode.PRESENT
    effective_power: float = 1.0
    present_from_at: datetime | None = None
    checked_out_at: datetime | None = None

    def counts_at(self, modes: frozenset[AttendanceMode], late_cutoff: datetime | None) -> bool:
        """Return ``True`` when this attendance counts for *modes* at *late_cutoff*."""
        if self.checked_out_at is not None or self.mode not in modes:
            return False
        if late_cutoff is None or self.present_from_at is None:
            return True
        return self.present_from_at <= late_cutoff


@dataclass(frozen=True)
class Ballot:
    """One member's ballot on one motion; weight is voting power at cast time."""

    motion_id: str
    member_id: str
    tenant_id: str
    value: BallotValue
    weight: float = 1.0
    cast_at: datetime | None = None


@dataclass
class ProxyEdge:
    """A delegation ``giver -> receiver`` for one meeting.

    Edges are revoked, never deleted.
    """

    id: str
    tenant_id: str
    meeting_id: str
    giver_member_id: str
    receiver_member_id: str
    created_at: datetime
    revoked_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.revoked_at is None


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Headcount:
    """A member count and the summed weight of those members."""

    members: int = 0
    weight: float = 0.0


@dataclass(frozen=True)
class TallyLine:
    count: int = 0
    weight: float = 0.0


@dataclass(frozen=True)
class Tally:
    """Per-motion ballot aggregate."""

    for_: TallyLine = field(default_factory=TallyLine)
    against: TallyLine = field(default_factory=TallyLine)
    abstain: TallyLine = field(default_factory=TallyLine)
    nsp: TallyLine = field(default_factory=TallyLine)

    @property
    def expressed_members(self) -> int:
        return self.for_.count + self.against.count + self.abstain.count

    @property
    def expressed_weight(self) -> float:
        return self.for_.weight + self.against.weight + self.abstain.weight

    @property
    def total_weight(self) -> float:
        return self.expressed_weight + self.nsp.weight

    @property
    def ballot_count(self) -> int:
        return self.expressed_members + self.nsp.count

    @classmethod
    def from_ballots(cls, ballots: list[Ballot]) -> "Tally":
        """Aggregate *ballots*.  ``nsp`` ballots carry no weight."""
        counts = {value: 0 for value in BallotValue}
        weights = {value: 0.0 for value in BallotValue}
        for ballot in ballots:
            counts[ballot.value] += 1
            if ballot.value is not BallotValue.NSP:
                weights[ballot.value] += ballot.weight
        return cls(
            for_=TallyLine(counts[BallotValue.FOR], weights[BallotValue.FOR]),
            against=TallyLine(counts[BallotValue.AGAINST], weights[BallotValue.AGAINST]),
            abstain=TallyLine(counts[BallotValue.ABSTAIN], weights[BallotValue.ABSTAIN]),
            nsp=TallyLine(counts[BallotValue.NSP], 0.0),
        )


@dataclass(frozen=True)
class OfficialRecord:
    """The certified fields written back onto a motion."""

    motion_id: str
    source: ResultSource
    for_: float
    against: float
    abstain: float
    total: float
    decision: Decision
    reason: str
