"""Thread-safe in-memory implementation of the store contracts.

Used by the test-suite and by the CLI, which loads a YAML fixture into it.

Proxy transactions lock one row-lock per ``(meeting, member)`` in sorted key
order, so two requests touching a common member are serialised and no two
requests can deadlock.  Writes are staged and applied on commit only.

Example
-------
>>> store = InMemoryStore.from_yaml(open("meeting.yaml").read())
>>> store.active_headcount("tenant-1").members
12
"""
from __future__ import annotations

import contextlib
import threading
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Iterable, Iterator

import yaml

from assembly_governance.errors import LockTimeoutError
from assembly_governance.policies.schema import PolicySet, QuorumPolicy, VotePolicy
from assembly_governance.store.records import (
    Attendance,
    AttendanceMode,
    Ballot,
    BallotValue,
    Headcount,
    Meeting,
    MeetingStatus,
    Member,
    Motion,
    MotionContext,
    OfficialRecord,
    ProxyEdge,
    Tally,
)


def _as_datetime(value: object) -> datetime | None:
    """Coerce a YAML scalar into an aware UTC ``datetime``."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _as_float(value: object) -> float | None:
    if value is None:
        return None
    return float(value)  # type: ignore[arg-type]


class _RowLock:
    """A row lock and the number of transactions holding or awaiting it."""

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class _InMemoryProxyTransaction:
    """Staged view over one meeting's proxy edges."""

    def __init__(self, store: "InMemoryStore", meeting_id: str, tenant_id: str) -> None:
        self._store = store
        self._meeting_id = meeting_id
        self._tenant_id = tenant_id
        self._staged: dict[str, ProxyEdge | None] = {}
        self._revocations: dict[str, datetime] = {}
        self._created: list[ProxyEdge] = []

    def _active_edges(self) -> dict[str, ProxyEdge]:
        with self._store._data_lock:
            active = {
                edge.giver_member_id: edge
                for edge in self._store._proxies
                if edge.meeting_id == self._meeting_id
                and edge.tenant_id == self._tenant_id
                and edge.is_active
            }
        for giver, edge in self._staged.items():
            if edge is None:
                active.pop(giver, None)
            else:
                active[giver] = edge
        return active

    def count_active_as_giver(self, member_id: str) -> int:
        return 1 if member_id in self._active_edges() else 0

    def count_active_as_receiver(self, member_id: str) -> int:
        return sum(
            1
            for edge in self._active_edges().values()
            if edge.receiver_member_id == member_id
        )

    def active_edge_for(self, giver_member_id: str) -> ProxyEdge | None:
        return self._active_edges().get(giver_member_id)

    def upsert_edge(
        self, giver_member_id: str, receiver_member_id: str, now: datetime
    ) -> ProxyEdge:
        current = self.active_edge_for(giver_member_id)
        if current is not None and current.receiver_member_id == receiver_member_id:
            return current
        if current is not None:
            self._revoke(current, now)
        edge = ProxyEdge(
            id=str(uuid.uuid4()),
            tenant_id=self._tenant_id,
            meeting_id=self._meeting_id,
            giver_member_id=giver_member_id,
            receiver_member_id=receiver_member_id,
            created_at=now,
        )
        self._created.append(edge)
        self._staged[giver_member_id] = edge
        return edge

    def revoke_edge(self, giver_member_id: str, now: datetime) -> ProxyEdge | None:
        current = self.active_edge_for(giver_member_id)
        if current is None:
            return None
        self._revoke(current, now)
        self._staged[giver_member_id] = None
        return replace(current, revoked_at=now)

    def _revoke(self, edge: ProxyEdge, now: datetime) -> None:
        if any(created.id == edge.id for created in self._created):
            self._created = [c for c in self._created if c.id != edge.id]
        else:
            self._revocations[edge.id] = now

    def commit(self) -> None:
        with self._store._data_lock:
            for edge in self._store._proxies:
                if edge.id in self._revocations:
                    edge.revoked_at = self._revocations[edge.id]
            self._store._proxies.extend(self._created)


class InMemoryStore:
    """Reference ``GovernanceStore`` holding everything in process memory.

    Parameters
    ----------
    policies:
        Initial policy set.  Defaults to an empty set.
    """

    def __init__(self, policies: PolicySet | None = None) -> None:
        self._data_lock = threading.RLock()
        self._row_locks: dict[tuple[str, str], _RowLock] = {}
        self._row_locks_guard = threading.Lock()
        self._policies = policies or PolicySet()
        self._members: dict[str, Member] = {}
        self._meetings: dict[str, Meeting] = {}
        self._motions: dict[str, Motion] = {}
        self._attendances: dict[tuple[str, str], Attendance] = {}
        self._ballots: dict[tuple[str, str], Ballot] = {}
        self._proxies: list[ProxyEdge] = []

    # ------------------------------------------------------------------
    # Write API (fixture / operator side)
    # ------------------------------------------------------------------

    def add_policies(self, policies: PolicySet) -> None:
        with self._data_lock:
            self._policies = self._policies.merged(policies)

    def add_quorum_policy(self, policy: QuorumPolicy) -> None:
        self.add_policies(PolicySet(quorum_policies=[policy]))

    def add_vote_policy(self, policy: VotePolicy) -> None:
        self.add_policies(PolicySet(vote_policies=[policy]))

    def add_member(self, member: Member) -> None:
        with self._data_lock:
            self._members[member.id] = member

    def add_meeting(self, meeting: Meeting) -> None:
        with self._data_lock:
            self._meetings[meeting.id] = meeting

    def add_motion(self, motion: Motion) -> None:
        with self._data_lock:
            self._motions[motion.id] = motion

    def add_attendance(self, attendance: Attendance) -> None:
        with self._data_lock:
            self._attendances[(attendance.meeting_id, attendance.member_id)] = attendance

    def add_ballot(self, ballot: Ballot) -> None:
        """Record *ballot*.  A member may cast only one ballot per motion."""
        key = (ballot.motion_id, ballot.member_id)
        with self._data_lock:
            if key in self._ballots:
                raise ValueError(
                    f"Member {ballot.member_id} already voted on motion {ballot.motion_id}"
                )
            self._ballots[key] = ballot

    def get_motion(self, motion_id: str) -> Motion | None:
        with self._data_lock:
            return self._motions.get(motion_id)

    def set_meeting_status(self, meeting_id: str, status: MeetingStatus) -> None:
        with self._data_lock:
            self._meetings[meeting_id].status = status

    # ------------------------------------------------------------------
    # PolicyReader
    # ------------------------------------------------------------------

    def find_quorum_policy(self, policy_id: str) -> QuorumPolicy | None:
        return self._policies.quorum(policy_id)

    def find_vote_policy(self, policy_id: str) -> VotePolicy | None:
        return self._policies.vote(policy_id)

    @property
    def policies(self) -> PolicySet:
        return self._policies

    # ------------------------------------------------------------------
    # MeetingReader / MotionStore
    # ------------------------------------------------------------------

    def find_meeting(self, meeting_id: str, tenant_id: str) -> Meeting | None:
        with self._data_lock:
            meeting = self._meetings.get(meeting_id)
        if meeting is None or meeting.tenant_id != tenant_id:
            return None
        return meeting

    def find_motion_context(self, motion_id: str, tenant_id: str) -> MotionContext | None:
        with self._data_lock:
            motion = self._motions.get(motion_id)
            if motion is None or motion.tenant_id != tenant_id:
                return None
            meeting = self._meetings.get(motion.meeting_id)
            if meeting is None or meeting.tenant_id != tenant_id:
                return None
            return MotionContext(
                motion_id=motion.id,
                title=motion.title,
                tenant_id=motion.tenant_id,
                meeting_id=meeting.id,
                convocation_no=meeting.convocation_no,
                motion_quorum_policy_id=motion.quorum_policy_id,
                meeting_quorum_policy_id=meeting.quorum_policy_id,
                motion_vote_policy_id=motion.vote_policy_id,
                meeting_vote_policy_id=meeting.vote_policy_id,
                manual_total=motion.manual_total,
                manual_for=motion.manual_for,
                manual_against=motion.manual_against,
                manual_abstain=motion.manual_abstain,
                opened_at=motion.opened_at,
                closed_at=motion.closed_at,
            )

    def list_motions(self, meeting_id: str, tenant_id: str) -> list[Motion]:
        with self._data_lock:
            return [
                motion
                for motion in self._motions.values()
                if motion.meeting_id == meeting_id and motion.tenant_id == tenant_id
            ]

    def persist_official_results(
        self, tenant_id: str, records: Iterable[OfficialRecord]
    ) -> int:
        records = list(records)
        with self._data_lock:
            for record in records:
                motion = self._motions.get(record.motion_id)
                if motion is None or motion.tenant_id != tenant_id:
                    raise KeyError(f"No motion {record.motion_id!r} for tenant {tenant_id!r}")
            for record in records:
                motion = self._motions[record.motion_id]
                motion.official_source = record.source
                motion.official_for = record.for_
                motion.official_against = record.against
                motion.official_abstain = record.abstain
                motion.official_total = record.total
                motion.decision = record.decision
                motion.decision_reason = record.reason
        return len(records)

    # ------------------------------------------------------------------
    # AttendanceReader
    # ------------------------------------------------------------------

    def present_headcount(
        self,
        meeting_id: str,
        tenant_id: str,
        modes: frozenset[AttendanceMode],
        late_cutoff: datetime | None = None,
    ) -> Headcount:
        with self._data_lock:
            if self.find_meeting(meeting_id, tenant_id) is None:
                return Headcount()
            counted = [
                attendance
                for (mid, _), attendance in self._attendances.items()
                if mid == meeting_id and attendance.counts_at(modes, late_cutoff)
            ]
        return Headcount(
            members=len(counted),
            weight=sum(attendance.effective_power for attendance in counted),
        )

    # ------------------------------------------------------------------
    # MemberReader
    # ------------------------------------------------------------------

    def active_headcount(self, tenant_id: str) -> Headcount:
        with self._data_lock:
            active = [m for m in self._members.values() if m.tenant_id == tenant_id and m.active]
        return Headcount(members=len(active), weight=sum(m.voting_power for m in active))

    def member_in_tenant(self, member_id: str, tenant_id: str) -> bool:
        with self._data_lock:
            member = self._members.get(member_id)
        return member is not None and member.tenant_id == tenant_id

    # ------------------------------------------------------------------
    # BallotReader
    # ------------------------------------------------------------------

    def _ballots_for(self, motion_id: str, tenant_id: str) -> list[Ballot]:
        with self._data_lock:
            return [
                ballot
                for (mid, _), ballot in self._ballots.items()
                if mid == motion_id and ballot.tenant_id == tenant_id
            ]

    def weighted_tally(self, motion_id: str, tenant_id: str) -> Tally:
        return Tally.from_ballots(self._ballots_for(motion_id, tenant_id))

    def count_ballots(self, motion_id: str, tenant_id: str) -> int:
        return len(self._ballots_for(motion_id, tenant_id))

    # ------------------------------------------------------------------
    # ProxyStore
    # ------------------------------------------------------------------

    def _checkout_row_lock(self, key: tuple[str, str]) -> threading.Lock:
        with self._row_locks_guard:
            entry = self._row_locks.get(key)
            if entry is None:
                entry = _RowLock()
                self._row_locks[key] = entry
            entry.users += 1
            return entry.lock

    def _return_row_lock(self, key: tuple[str, str]) -> None:
        with self._row_locks_guard:
            entry = self._row_locks[key]
            entry.users -= 1
            if entry.users == 0:
                del self._row_locks[key]

    @property
    def row_lock_count(self) -> int:
        """Number of row locks currently held or waited on."""
        with self._row_locks_guard:
            return len(self._row_locks)

    @contextlib.contextmanager
    def transaction(
        self,
        meeting_id: str,
        tenant_id: str,
        member_ids: Iterable[str],
        timeout_seconds: float,
    ) -> Iterator[_InMemoryProxyTransaction]:
        keys = sorted({(meeting_id, member_id) for member_id in member_ids})
        checked_out: list[tuple[str, str]] = []
        held: list[threading.Lock] = []
        try:
            for key in keys:
                lock = self._checkout_row_lock(key)
                checked_out.append(key)
                if not lock.acquire(timeout=timeout_seconds):
                    raise LockTimeoutError([f"{m}/{p}" for m, p in keys], timeout_seconds)
                held.append(lock)
            tx = _InMemoryProxyTransaction(self, meeting_id, tenant_id)
            yield tx
            tx.commit()
        finally:
            for lock in reversed(held):
                lock.release()
            for key in checked_out:
                self._return_row_lock(key)

    def list_edges(
        self, meeting_id: str, tenant_id: str, active_only: bool = True
    ) -> list[ProxyEdge]:
        with self._data_lock:
            return [
                replace(edge)
                for edge in self._proxies
                if edge.meeting_id == meeting_id
                and edge.tenant_id == tenant_id
                and (edge.is_active or not active_only)
            ]

    # ------------------------------------------------------------------
    # Fixture loading
    # ------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "InMemoryStore":
        """Build a store from a fixture document.

        Records without a ``tenant_id`` inherit the top-level one.  Attendance
        power and ballot weight default to the member's voting power.
        """
        default_tenant = str(data.get("tenant_id", "default"))
        store = cls(PolicySet.from_dict(data.get("policies") or {}))  # type: ignore[arg-type]

        for raw in data.get("members", []) or []:  # type: ignore[union-attr]
            store.add_member(
                Member(
                    id=str(raw["id"]),
                    tenant_id=str(raw.get("tenant_id", default_tenant)),
                    name=str(raw.get("name", "")),
                    voting_power=float(raw.get("voting_power", 1.0)),
                    active=bool(raw.get("active", True)),
                )
            )

        for raw in data.get("meetings", []) or []:  # type: ignore[union-attr]
            store.add_meeting(
                Meeting(
                    id=str(raw["id"]),
                    tenant_id=str(raw.get("tenant_id", default_tenant)),
                    title=str(raw.get("title", "")),
                    status=MeetingStatus(raw.get("status", "draft")),
                    convocation_no=int(raw.get("convocation_no", 1)),
                    quorum_policy_id=raw.get("quorum_policy_id"),
                    vote_policy_id=raw.get("vote_policy_id"),
                    president_name=raw.get("president_name"),
                )
            )

        for raw in data.get("motions", []) or []:  # type: ignore[union-attr]
            store.add_motion(
                Motion(
                    id=str(raw["id"]),
                    meeting_id=str(raw["meeting_id"]),
                    tenant_id=str(raw.get("tenant_id", default_tenant)),
                    title=str(raw.get("title", "")),
                    quorum_policy_id=raw.get("quorum_policy_id"),
                    vote_policy_id=raw.get("vote_policy_id"),
                    opened_at=_as_datetime(raw.get("opened_at")),
                    closed_at=_as_datetime(raw.get("closed_at")),
                    manual_total=_as_float(raw.get("manual_total")),
                    manual_for=_as_float(raw.get("manual_for")),
                    manual_against=_as_float(raw.get("manual_against")),
                    manual_abstain=_as_float(raw.get("manual_abstain")),
                )
            )

        for raw in data.get("attendances", []) or []:  # type: ignore[union-attr]
            member = store._members.get(str(raw["member_id"]))
            default_power = member.voting_power if member else 1.0
            store.add_attendance(
                Attendance(
                    meeting_id=str(raw["meeting_id"]),
                    member_id=str(raw["member_id"]),
                    mode=AttendanceMode(raw.get("mode", "present")),
                    effective_power=float(raw.get("effective_power", default_power)),
                    present_from_at=_as_datetime(raw.get("present_from_at")),
                    checked_out_at=_as_datetime(raw.get("checked_out_at")),
                )
            )

        for raw in data.get("ballots", []) or []:  # type: ignore[union-attr]
            member = store._members.get(str(raw["member_id"]))
            default_weight = member.voting_power if member else 1.0
            store.add_ballot(
                Ballot(
                    motion_id=str(raw["motion_id"]),
                    member_id=str(raw["member_id"]),
                    tenant_id=str(raw.get("tenant_id", default_tenant)),
                    value=BallotValue(raw["value"]),
                    weight=float(raw.get("weight", default_weight)),
                    cast_at=_as_datetime(raw.get("cast_at")),
                )
            )

        now = datetime.now(tz=timezone.utc)
        for raw in data.get("proxies", []) or []:  # type: ignore[union-attr]
            store._proxies.append(
                ProxyEdge(
                    id=str(raw.get("id") or uuid.uuid4()),
                    tenant_id=str(raw.get("tenant_id", default_tenant)),
                    meeting_id=str(raw["meeting_id"]),
                    giver_member_id=str(raw["giver"]),
                    receiver_member_id=str(raw["receiver"]),
                    created_at=_as_datetime(raw.get("created_at")) or now,
                    revoked_at=_as_datetime(raw.get("revoked_at")),
                )
            )
        return store

    @classmethod
    def from_yaml(cls, yaml_str: str) -> "InMemoryStore":
        """Build a store from a YAML fixture string."""
        data: dict[str, object] = yaml.safe_load(yaml_str) or {}
        return cls.from_dict(data)
