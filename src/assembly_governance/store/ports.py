"""Read/write contracts the engine consumes.

The engine never talks to a database directly; it is handed an object that
satisfies these protocols.  ``InMemoryStore`` in :mod:`.memory` is the
reference implementation.  A SQL-backed store would implement
``ProxyStore.transaction`` with ``SELECT ... FOR UPDATE`` on the giver's and
receiver's proxy rows.
"""
from __future__ import annotations

from datetime import datetime
from typing import ContextManager, Iterable, Protocol

from assembly_governance.policies.schema import QuorumPolicy, VotePolicy
from assembly_governance.store.records import (
    AttendanceMode,
    Headcount,
    Meeting,
    Motion,
    MotionContext,
    OfficialRecord,
    ProxyEdge,
    Tally,
)


class PolicyReader(Protocol):
    def find_quorum_policy(self, policy_id: str) -> QuorumPolicy | None: ...

    def find_vote_policy(self, policy_id: str) -> VotePolicy | None: ...


class MeetingReader(Protocol):
    def find_meeting(self, meeting_id: str, tenant_id: str) -> Meeting | None: ...


class MotionStore(Protocol):
    def find_motion_context(self, motion_id: str, tenant_id: str) -> MotionContext | None: ...

    def list_motions(self, meeting_id: str, tenant_id: str) -> list[Motion]: ...

    def persist_official_results(
        self, tenant_id: str, records: Iterable[OfficialRecord]
    ) -> int:
        """Write all *records* atomically and return how many were written."""
        ...


class AttendanceReader(Protocol):
    def present_headcount(
        self,
        meeting_id: str,
        tenant_id: str,
        modes: frozenset[AttendanceMode],
        late_cutoff: datetime | None = None,
    ) -> Headcount:
        """Return the count and summed weight of counted attendees in one read."""
        ...


class MemberReader(Protocol):
    def active_headcount(self, tenant_id: str) -> Headcount:
        """Return the count and summed voting power of active members in one read."""
        ...

    def member_in_tenant(self, member_id: str, tenant_id: str) -> bool: ...


class BallotReader(Protocol):
    def weighted_tally(self, motion_id: str, tenant_id: str) -> Tally: ...

    def count_ballots(self, motion_id: str, tenant_id: str) -> int: ...


class ProxyTransaction(Protocol):
    """Operations available while the proxy rows of a meeting are locked."""

    def count_active_as_giver(self, member_id: str) -> int: ...

    def count_active_as_receiver(self, member_id: str) -> int: ...

    def active_edge_for(self, giver_member_id: str) -> ProxyEdge | None: ...

    def upsert_edge(
        self, giver_member_id: str, receiver_member_id: str, now: datetime
    ) -> ProxyEdge: ...

    def revoke_edge(self, giver_member_id: str, now: datetime) -> ProxyEdge | None: ...


class ProxyStore(Protocol):
    def transaction(
        self,
        meeting_id: str,
        tenant_id: str,
        member_ids: Iterable[str],
        timeout_seconds: float,
    ) -> ContextManager[ProxyTransaction]:
        """Lock *member_ids*' proxy rows in *meeting_id* for one transaction.

        Writes made through the yielded transaction become visible only when
        the block exits normally; any exception rolls them back.
        """
        ...

    def list_edges(
        self, meeting_id: str, tenant_id: str, active_only: bool = True
    ) -> list[ProxyEdge]: ...


class GovernanceStore(
    PolicyReader,
    MeetingReader,
    MotionStore,
    AttendanceReader,
    MemberReader,
    BallotReader,
    ProxyStore,
    Protocol,
):
    """Everything the engine reads and writes, in one object."""
