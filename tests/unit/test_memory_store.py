"""Tests for InMemoryStore and its YAML fixture loader."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from assembly_governance.store.memory import InMemoryStore
from assembly_governance.store.records import (
    AttendanceMode,
    Ballot,
    BallotValue,
    Decision,
    Headcount,
    MeetingStatus,
    Motion,
    OfficialRecord,
    ResultSource,
)

FIXTURE = """
tenant_id: acme
policies:
  quorum_policies:
    - id: half
      threshold: 0.5
  vote_policies:
    - id: simple
members:
  - {id: alice, voting_power: 3}
  - {id: bob}
  - {id: carol, voting_power: 2}
  - {id: dave, active: false}
  - {id: eve, tenant_id: other}
meetings:
  - id: agm
    title: Annual general meeting
    status: live
    quorum_policy_id: half
    vote_policy_id: simple
    president_name: Alice
motions:
  - id: budget
    meeting_id: agm
    opened_at: "2026-03-14T18:00:00"
    closed_at: "2026-03-14T18:10:00+00:00"
attendances:
  - {meeting_id: agm, member_id: alice}
  - {meeting_id: agm, member_id: bob, mode: remote, present_from_at: "2026-03-14T18:05:00"}
ballots:
  - {motion_id: budget, member_id: alice, value: for}
  - {motion_id: budget, member_id: bob, value: against, weight: 0.5}
proxies:
  - {meeting_id: agm, giver: carol, receiver: alice}
"""


@pytest.fixture()
def store() -> InMemoryStore:
    return InMemoryStore.from_yaml(FIXTURE)


class TestFixtureLoading:
    def test_policies_loaded(self, store: InMemoryStore) -> None:
        assert store.find_quorum_policy("half").threshold == 0.5
        assert store.find_vote_policy("simple") is not None

    def test_members_inherit_tenant(self, store: InMemoryStore) -> None:
        assert store.member_in_tenant("alice", "acme")
        assert not store.member_in_tenant("eve", "acme")
        assert store.member_in_tenant("eve", "other")

    def test_active_members_and_weight(self, store: InMemoryStore) -> None:
        assert store.active_headcount("acme") == Headcount(members=3, weight=6.0)

    def test_naive_datetimes_are_utc(self, store: InMemoryStore) -> None:
        motion = store.get_motion("budget")
        assert motion.opened_at == datetime(2026, 3, 14, 18, 0, tzinfo=timezone.utc)
        assert motion.is_closed

    def test_attendance_power_defaults_to_voting_power(self, store: InMemoryStore) -> None:
        modes = frozenset({AttendanceMode.PRESENT, AttendanceMode.REMOTE})
        assert store.present_headcount("agm", "acme", modes) == Headcount(members=2, weight=4.0)

    def test_late_cutoff_filters_attendance(self, store: InMemoryStore) -> None:
        modes = frozenset({AttendanceMode.PRESENT, AttendanceMode.REMOTE})
        cutoff = datetime(2026, 3, 14, 18, 0, tzinfo=timezone.utc)
        assert store.present_headcount("agm", "acme", modes, cutoff) == Headcount(members=1, weight=3.0)

    def test_ballot_weight_defaults_to_voting_power(self, store: InMemoryStore) -> None:
        tally = store.weighted_tally("budget", "acme")
        assert tally.for_.weight == 3.0
        assert tally.against.weight == 0.5

    def test_proxies_loaded(self, store: InMemoryStore) -> None:
        edges = store.list_edges("agm", "acme")
        assert [(e.giver_member_id, e.receiver_member_id) for e in edges] == [("carol", "alice")]

    def test_empty_fixture(self) -> None:
        store = InMemoryStore.from_yaml("")
        assert store.active_headcount("default") == Headcount()


class TestTenantIsolation:
    def test_meeting_hidden_from_other_tenant(self, store: InMemoryStore) -> None:
        assert store.find_meeting("agm", "acme") is not None
        assert store.find_meeting("agm", "other") is None

    def test_present_headcount_empty_for_other_tenant(self, store: InMemoryStore) -> None:
        modes = frozenset({AttendanceMode.PRESENT, AttendanceMode.REMOTE})
        assert store.present_headcount("agm", "other", modes) == Headcount()
        assert store.present_headcount("ghost", "acme", modes) == Headcount()

    def test_present_headcount_filters_modes(self, store: InMemoryStore) -> None:
        modes = frozenset({AttendanceMode.REMOTE})
        assert store.present_headcount("agm", "acme", modes) == Headcount(members=1, weight=1.0)

    def test_motion_context_hidden_from_other_tenant(self, store: InMemoryStore) -> None:
        assert store.find_motion_context("budget", "other") is None

    def test_motion_context_joins_meeting_fields(self, store: InMemoryStore) -> None:
        motion = store.find_motion_context("budget", "acme")
        assert motion.meeting_quorum_policy_id == "half"
        assert motion.meeting_vote_policy_id == "simple"
        assert motion.motion_quorum_policy_id is None


class TestWrites:
    def test_one_ballot_per_member_and_motion(self, store: InMemoryStore) -> None:
        with pytest.raises(ValueError):
            store.add_ballot(
                Ballot(motion_id="budget", member_id="alice", tenant_id="acme", value=BallotValue.AGAINST)
            )

    def test_persist_is_all_or_nothing(self, store: InMemoryStore) -> None:
        good = OfficialRecord("budget", ResultSource.EVOTE, 3, 0.5, 0, 3.5, Decision.ADOPTED, "ok")
        bad = OfficialRecord("ghost", ResultSource.EVOTE, 0, 0, 0, 0, Decision.REJECTED, "x")

        with pytest.raises(KeyError):
            store.persist_official_results("acme", [good, bad])

        assert store.get_motion("budget").official_source is None

    def test_persist_rejects_other_tenant(self, store: InMemoryStore) -> None:
        record = OfficialRecord("budget", ResultSource.EVOTE, 1, 0, 0, 1, Decision.ADOPTED, "ok")
        with pytest.raises(KeyError):
            store.persist_official_results("other", [record])

    def test_set_meeting_status(self, store: InMemoryStore) -> None:
        store.set_meeting_status("agm", MeetingStatus.CLOSED)
        assert store.find_meeting("agm", "acme").status is MeetingStatus.CLOSED

    def test_motion_cannot_close_before_opening(self) -> None:
        with pytest.raises(ValueError):
            Motion(
                id="m",
                meeting_id="agm",
                tenant_id="acme",
                opened_at=datetime(2026, 1, 2, tzinfo=timezone.utc),
                closed_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
            )
