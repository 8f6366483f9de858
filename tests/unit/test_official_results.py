"""Tests for official results and meeting consolidation."""
from __future__ import annotations

import pytest

from assembly_governance.decision.formatting import format_pct, format_weight
from assembly_governance.decision.official import ResultReconciler
from assembly_governance.errors import BusinessRuleViolation, NotFoundError, ViolationCode
from assembly_governance.policies.schema import QuorumMode, QuorumPolicy, VotePolicy
from assembly_governance.store.records import BallotValue, Decision, MeetingStatus, ResultSource


# ---------------------------------------------------------------------------
# Source selection
# ---------------------------------------------------------------------------


class TestSourceSelection:
    def test_consistent_manual_count_wins_over_ballots(self, assembly, ctx, simple_majority) -> None:
        members = assembly.members(10)
        assembly.meeting(vote_policy=simple_majority)
        assembly.motion(manual_total=10, manual_for=6, manual_against=3, manual_abstain=1)
        assembly.vote(members[:5], BallotValue.AGAINST)

        result = ResultReconciler(assembly.store).compute_official_tallies("motion-1", ctx)

        assert result.source is ResultSource.MANUAL
        assert (result.for_, result.against, result.abstain, result.total) == (6, 3, 1, 10)
        assert result.decision is Decision.ADOPTED

    def test_inconsistent_manual_count_falls_back_to_evote(self, assembly, ctx, simple_majority) -> None:
        members = assembly.members(10)
        assembly.meeting(vote_policy=simple_majority)
        assembly.motion(manual_total=10, manual_for=6, manual_against=3, manual_abstain=0)
        assembly.vote(members[:2], BallotValue.FOR)
        assembly.vote(members[2:5], BallotValue.AGAINST)

        result = ResultReconciler(assembly.store).compute_official_tallies("motion-1", ctx)

        assert result.source is ResultSource.EVOTE
        assert (result.for_, result.against, result.abstain, result.total) == (2, 3, 0, 5)
        assert result.decision is Decision.REJECTED

    def test_zero_manual_total_is_ignored(self, assembly, ctx, simple_majority) -> None:
        members = assembly.members(3)
        assembly.meeting(vote_policy=simple_majority)
        assembly.motion(manual_total=0, manual_for=0, manual_against=0, manual_abstain=0)
        assembly.vote(members, BallotValue.FOR)

        result = ResultReconciler(assembly.store).compute_official_tallies("motion-1", ctx)

        assert result.source is ResultSource.EVOTE
        assert result.for_ == 3

    def test_manual_sum_within_tolerance_is_consistent(self, assembly, ctx, simple_majority) -> None:
        assembly.members(3)
        assembly.meeting(vote_policy=simple_majority)
        assembly.motion(
            manual_total=1.0, manual_for=0.1, manual_against=0.2, manual_abstain=0.7
        )

        result = ResultReconciler(assembly.store).compute_official_tallies("motion-1", ctx)

        assert result.source is ResultSource.MANUAL


# ---------------------------------------------------------------------------
# Decisions and reasons
# ---------------------------------------------------------------------------


class TestDecisionReasons:
    def test_majority_reason_quotes_formatted_ratio(self, assembly, ctx, simple_majority) -> None:
        members = assembly.members(3)
        assembly.meeting(vote_policy=simple_majority)
        assembly.motion()
        assembly.vote(members[:2], BallotValue.FOR)
        assembly.vote(members[2:], BallotValue.AGAINST)

        result = ResultReconciler(assembly.store).compute_official_tallies("motion-1", ctx)

        assert result.reason == "Majority reached (66.7% >= 50% of expressed votes)"
        assert format_pct(result.majority.ratio) in result.reason
        assert format_pct(result.majority.threshold) in result.reason

    def test_majority_not_reached_reason(self, assembly, ctx) -> None:
        members = assembly.members(4)
        assembly.meeting(vote_policy=VotePolicy(id="tt", threshold=2 / 3))
        assembly.motion()
        assembly.vote(members[:2], BallotValue.FOR)
        assembly.vote(members[2:], BallotValue.AGAINST)

        result = ResultReconciler(assembly.store).compute_official_tallies("motion-1", ctx)

        assert result.decision is Decision.REJECTED
        assert result.reason == "Majority not reached (50% < 66.7% of expressed votes)"

    def test_unanimous_vote_without_quorum_is_rejected(
        self, assembly, ctx, half_members, simple_majority
    ) -> None:
        members = assembly.members(100)
        assembly.meeting(quorum_policy=half_members, vote_policy=simple_majority)
        assembly.motion()
        assembly.attend(members[:40])
        assembly.vote(members[:40], BallotValue.FOR)

        result = ResultReconciler(assembly.store).compute_official_tallies("motion-1", ctx)

        assert result.decision is Decision.REJECTED
        assert result.reason == "Quorum not reached (40% < 50% of eligible members)"
        assert format_pct(result.quorum.ratio) in result.reason

    def test_unconfigured_double_quorum_reason(self, assembly, ctx, simple_majority) -> None:
        members = assembly.members(2)
        assembly.meeting(
            quorum_policy=QuorumPolicy(id="dbl", mode=QuorumMode.DOUBLE, threshold=0.1),
            vote_policy=simple_majority,
        )
        assembly.motion()
        assembly.attend(members)
        assembly.vote(members, BallotValue.FOR)

        result = ResultReconciler(assembly.store).compute_official_tallies("motion-1", ctx)

        assert result.decision is Decision.REJECTED
        assert result.reason == "Quorum not reached (second condition not configured)"

    def test_no_policy_simple_majority(self, assembly, ctx) -> None:
        members = assembly.members(9)
        assembly.meeting()
        assembly.motion()
        assembly.vote(members[:6], BallotValue.FOR)
        assembly.vote(members[6:], BallotValue.AGAINST)

        result = ResultReconciler(assembly.store).compute_official_tallies("motion-1", ctx)

        assert result.decision is Decision.ADOPTED
        assert result.reason == "Simple majority (For: 6 > Against: 3)"

    def test_no_policy_tie_is_rejected(self, assembly, ctx) -> None:
        members = assembly.members(4, voting_power=1.5)
        assembly.meeting()
        assembly.motion()
        assembly.vote(members[:2], BallotValue.FOR)
        assembly.vote(members[2:], BallotValue.AGAINST)

        result = ResultReconciler(assembly.store).compute_official_tallies("motion-1", ctx)

        assert result.decision is Decision.REJECTED
        assert result.reason == f"Tie (For: {format_weight(3.0)} = Against: {format_weight(3.0)})"

    def test_no_policy_without_ballots_is_rejected(self, assembly, ctx) -> None:
        assembly.members(2)
        assembly.meeting()
        assembly.motion()

        result = ResultReconciler(assembly.store).compute_official_tallies("motion-1", ctx)

        assert result.decision is Decision.REJECTED
        assert result.reason == "Tie (For: 0 = Against: 0)"

    def test_fractional_weights_in_reason(self, assembly, ctx) -> None:
        heavy = assembly.members(1, voting_power=12.5)
        light = assembly.members(1, voting_power=3.25)
        assembly.meeting()
        assembly.motion()
        assembly.vote(heavy, BallotValue.FOR)
        assembly.vote(light, BallotValue.AGAINST)

        result = ResultReconciler(assembly.store).compute_official_tallies("motion-1", ctx)

        assert result.reason == "Simple majority (For: 12.50 > Against: 3.25)"

    def test_results_are_deterministic(self, assembly, ctx, half_members, simple_majority) -> None:
        members = assembly.members(6)
        assembly.meeting(quorum_policy=half_members, vote_policy=simple_majority)
        assembly.motion()
        assembly.attend(members[:4])
        assembly.vote(members[:3], BallotValue.FOR)

        reconciler = ResultReconciler(assembly.store)
        assert reconciler.compute_official_tallies(
            "motion-1", ctx
        ) == reconciler.compute_official_tallies("motion-1", ctx)

    def test_unknown_motion(self, assembly, ctx) -> None:
        with pytest.raises(NotFoundError):
            ResultReconciler(assembly.store).compute_official_tallies("missing", ctx)


# ---------------------------------------------------------------------------
# Persistence and consolidation
# ---------------------------------------------------------------------------


class TestConsolidation:
    @pytest.fixture()
    def reconciler(self, assembly, simple_majority) -> ResultReconciler:
        members = assembly.members(5)
        assembly.meeting(vote_policy=simple_majority)
        assembly.motion("motion-1")
        assembly.motion("motion-2", manual_total=5, manual_for=1, manual_against=4)
        assembly.motion("motion-open", closed=False)
        assembly.vote(members[:4], BallotValue.FOR, motion_id="motion-1")
        assembly.vote(members[:1], BallotValue.FOR, motion_id="motion-open")
        return ResultReconciler(assembly.store)

    def test_consolidates_closed_motions_only(self, reconciler, assembly, ctx) -> None:
        report = reconciler.consolidate_meeting("meeting-1", ctx)

        assert report.updated == 2
        assert [r.motion_id for r in report.results] == ["motion-1", "motion-2"]
        assert assembly.store.get_motion("motion-open").official_source is None

    def test_writes_official_fields(self, reconciler, assembly, ctx) -> None:
        reconciler.consolidate_meeting("meeting-1", ctx)

        adopted = assembly.store.get_motion("motion-1")
        assert adopted.official_source is ResultSource.EVOTE
        assert adopted.official_for == 4
        assert adopted.decision is Decision.ADOPTED
        rejected = assembly.store.get_motion("motion-2")
        assert rejected.official_source is ResultSource.MANUAL
        assert rejected.decision is Decision.REJECTED
        assert rejected.decision_reason == "Majority not reached (20% < 50% of expressed votes)"

    def test_consolidation_is_idempotent(self, reconciler, assembly, ctx) -> None:
        first = reconciler.consolidate_meeting("meeting-1", ctx)
        snapshot = [
            (m.id, m.official_source, m.official_for, m.decision, m.decision_reason)
            for m in assembly.store.list_motions("meeting-1", ctx.tenant_id)
        ]
        second = reconciler.consolidate_meeting("meeting-1", ctx)

        assert first == second
        assert snapshot == [
            (m.id, m.official_source, m.official_for, m.decision, m.decision_reason)
            for m in assembly.store.list_motions("meeting-1", ctx.tenant_id)
        ]

    def test_validated_meeting_is_locked(self, reconciler, assembly, ctx) -> None:
        assembly.store.set_meeting_status("meeting-1", MeetingStatus.VALIDATED)

        with pytest.raises(BusinessRuleViolation) as excinfo:
            reconciler.consolidate_meeting("meeting-1", ctx)

        assert excinfo.value.code is ViolationCode.MEETING_LOCKED
        assert assembly.store.get_motion("motion-1").official_source is None

    def test_persist_single_motion(self, reconciler, assembly, ctx) -> None:
        result = reconciler.compute_and_persist_motion("motion-1", ctx)

        assert result.decision is Decision.ADOPTED
        assert assembly.store.get_motion("motion-1").decision is Decision.ADOPTED
        assert assembly.store.get_motion("motion-2").decision is None

    def test_unknown_meeting(self, reconciler, ctx) -> None:
        with pytest.raises(NotFoundError):
            reconciler.consolidate_meeting("missing", ctx)
