"""Shared fixtures: a fixed-clock context and an assembly builder."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from assembly_governance.context import Context
from assembly_governance.policies.schema import QuorumPolicy, VotePolicy
from assembly_governance.store.memory import InMemoryStore
from assembly_governance.store.records import (
    Attendance,
    AttendanceMode,
    Ballot,
    BallotValue,
    Meeting,
    MeetingStatus,
    Member,
    Motion,
)

TENANT = "tenant-1"
OPENED_AT = datetime(2026, 3, 14, 18, 0, tzinfo=timezone.utc)
CLOSED_AT = OPENED_AT + timedelta(minutes=10)


class AssemblyBuilder:
    """Populates an ``InMemoryStore`` with one tenant's meeting data."""

    def __init__(self) -> None:
        self.store = InMemoryStore()
        self._powers: dict[str, float] = {}
        self._next_member = 0

    def members(
        self,
        count: int,
        voting_power: float = 1.0,
        tenant_id: str = TENANT,
        active: bool = True,
    ) -> list[str]:
        ids = []
        for _ in range(count):
            self._next_member += 1
            member_id = f"member-{self._next_member:03d}"
            self.store.add_member(
                Member(
                    id=member_id,
                    tenant_id=tenant_id,
                    name=member_id,
                    voting_power=voting_power,
                    active=active,
                )
            )
            self._powers[member_id] = voting_power
            ids.append(member_id)
        return ids

    def meeting(
        self,
        meeting_id: str = "meeting-1",
        quorum_policy: QuorumPolicy | None = None,
        vote_policy: VotePolicy | None = None,
        status: MeetingStatus = MeetingStatus.LIVE,
        convocation_no: int = 1,
        president_name: str | None = "Ada Lovelace",
        tenant_id: str = TENANT,
    ) -> Meeting:
        if quorum_policy is not None:
            self.store.add_quorum_policy(quorum_policy)
        if vote_policy is not None:
            self.store.add_vote_policy(vote_policy)
        meeting = Meeting(
            id=meeting_id,
            tenant_id=tenant_id,
            title=f"Assembly {meeting_id}",
            status=status,
            convocation_no=convocation_no,
            quorum_policy_id=quorum_policy.id if quorum_policy else None,
            vote_policy_id=vote_policy.id if vote_policy else None,
            president_name=president_name,
        )
        self.store.add_meeting(meeting)
        return meeting

    def motion(
        self,
        motion_id: str = "motion-1",
        meeting_id: str = "meeting-1",
        closed: bool = True,
        opened: bool = True,
        tenant_id: str = TENANT,
        **fields: object,
    ) -> Motion:
        motion = Motion(
            id=motion_id,
            meeting_id=meeting_id,
            tenant_id=tenant_id,
            title=f"Resolution {motion_id}",
            opened_at=OPENED_AT if opened else None,
            closed_at=CLOSED_AT if (opened and closed) else None,
            **fields,  # type: ignore[arg-type]
        )
        self.store.add_motion(motion)
        return motion

    def attend(
        self,
        member_ids: list[str],
        meeting_id: str = "meeting-1",
        mode: AttendanceMode = AttendanceMode.PRESENT,
        present_from_at: datetime | None = None,
        checked_out_at: datetime | None = None,
    ) -> None:
        for member_id in member_ids:
            self.store.add_attendance(
                Attendance(
                    meeting_id=meeting_id,
                    member_id=member_id,
                    mode=mode,
                    effective_power=self._powers.get(member_id, 1.0),
                    present_from_at=present_from_at,
                    checked_out_at=checked_out_at,
                )
            )

    def vote(
        self,
        member_ids: list[str],
        value: BallotValue,
        motion_id: str = "motion-1",
        tenant_id: str = TENANT,
    ) -> None:
        for member_id in member_ids:
            self.store.add_ballot(
                Ballot(
                    motion_id=motion_id,
                    member_id=member_id,
                    tenant_id=tenant_id,
                    value=value,
                    weight=self._powers.get(member_id, 1.0),
                    cast_at=OPENED_AT + timedelta(minutes=1),
                )
            )


@pytest.fixture()
def ctx() -> Context:
    return Context(tenant_id=TENANT, clock=lambda: OPENED_AT)


@pytest.fixture()
def assembly() -> AssemblyBuilder:
    return AssemblyBuilder()


@pytest.fixture()
def half_members() -> QuorumPolicy:
    return QuorumPolicy(id="half", name="Half of members", threshold=0.5)


@pytest.fixture()
def simple_majority() -> VotePolicy:
    return VotePolicy(id="simple", name="Simple majority", threshold=0.5)
