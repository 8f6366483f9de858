"""Tests for the assembly-gov command line."""
from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from assembly_governance.audit.logger import AuditLogger
from assembly_governance.cli.main import cli

FIXTURE = """
tenant_id: acme
policies:
  quorum_policies:
    - id: half
      threshold: 0.5
  vote_policies:
    - id: simple
      threshold: 0.5
members:
  - {id: alice, voting_power: 2}
  - {id: bob}
  - {id: carol}
  - {id: dave}
meetings:
  - id: agm
    status: live
    quorum_policy_id: half
    vote_policy_id: simple
    president_name: Alice
motions:
  - id: budget
    meeting_id: agm
    opened_at: "2026-03-14T18:00:00+00:00"
    closed_at: "2026-03-14T18:10:00+00:00"
  - id: paper
    meeting_id: agm
    opened_at: "2026-03-14T18:20:00+00:00"
    closed_at: "2026-03-14T18:30:00+00:00"
    manual_total: 10
    manual_for: 6
    manual_against: 3
    manual_abstain: 1
attendances:
  - {meeting_id: agm, member_id: alice}
  - {meeting_id: agm, member_id: bob}
  - {meeting_id: agm, member_id: carol}
  - {meeting_id: agm, member_id: dave, mode: remote}
ballots:
  - {motion_id: budget, member_id: alice, value: for}
  - {motion_id: budget, member_id: bob, value: for}
  - {motion_id: budget, member_id: carol, value: against}
proxies:
  - {meeting_id: agm, giver: bob, receiver: carol}
"""


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def fixture_file(tmp_path: Path) -> str:
    path = tmp_path / "agm.yaml"
    path.write_text(FIXTURE, encoding="utf-8")
    return str(path)


@pytest.fixture()
def audit_path(tmp_path: Path) -> Path:
    return tmp_path / "logs" / "audit.jsonl"


@pytest.fixture()
def config_file(tmp_path: Path, audit_path: Path) -> str:
    path = tmp_path / "assembly.yaml"
    path.write_text(
        f"proxies:\n  max_per_receiver: 2\naudit:\n  log_path: {audit_path}\n",
        encoding="utf-8",
    )
    return str(path)


def invoke(runner: CliRunner, *args: str):
    return runner.invoke(cli, list(args))


class TestCLIVersion:
    def test_version_command(self, runner: CliRunner) -> None:
        result = invoke(runner, "version")
        assert result.exit_code == 0
        assert "assembly-governance" in result.output


class TestCLIDecisions:
    def test_quorum_for_meeting(self, runner: CliRunner, fixture_file: str, config_file: str) -> None:
        result = invoke(runner, "quorum", "agm", "-f", fixture_file, "-c", config_file)
        assert result.exit_code == 0
        assert "MET" in result.output
        assert "NOT MET" not in result.output

    def test_quorum_for_motion(self, runner: CliRunner, fixture_file: str, config_file: str) -> None:
        result = invoke(runner, "quorum", "budget", "--motion", "-f", fixture_file, "-c", config_file)
        assert result.exit_code == 0

    def test_majority(self, runner: CliRunner, fixture_file: str, config_file: str) -> None:
        result = invoke(runner, "majority", "budget", "-f", fixture_file, "-c", config_file)
        assert result.exit_code == 0
        assert "adopted" in result.output

    def test_results_json_from_ballots(
        self, runner: CliRunner, fixture_file: str, config_file: str
    ) -> None:
        result = invoke(runner, "results", "budget", "--json", "-f", fixture_file, "-c", config_file)

        assert result.exit_code == 0
        payload = json.loads(result.output)
        assert payload["source"] == "evote"
        assert payload["for"] == 3.0
        assert payload["against"] == 1.0
        assert payload["decision"] == "adopted"

    def test_results_json_from_manual_count(
        self, runner: CliRunner, fixture_file: str, config_file: str
    ) -> None:
        result = invoke(runner, "results", "paper", "--json", "-f", fixture_file, "-c", config_file)

        payload = json.loads(result.output)
        assert payload["source"] == "manual"
        assert payload["total"] == 10.0
        assert payload["decision"] == "adopted"

    def test_results_unknown_motion(
        self, runner: CliRunner, fixture_file: str, config_file: str
    ) -> None:
        result = invoke(runner, "results", "ghost", "-f", fixture_file, "-c", config_file)
        assert result.exit_code == 1

    def test_wrong_tenant_sees_nothing(
        self, runner: CliRunner, fixture_file: str, config_file: str
    ) -> None:
        result = invoke(
            runner, "results", "budget", "-f", fixture_file, "-c", config_file, "-t", "other"
        )
        assert result.exit_code == 1

    def test_consolidate(self, runner: CliRunner, fixture_file: str, config_file: str) -> None:
        result = invoke(runner, "consolidate", "agm", "-f", fixture_file, "-c", config_file)
        assert result.exit_code == 0
        assert "Updated motions: 2" in result.output

    def test_readiness(self, runner: CliRunner, fixture_file: str, config_file: str) -> None:
        result = invoke(runner, "readiness", "agm", "-f", fixture_file, "-c", config_file)
        assert result.exit_code == 0
        assert "consolidation_missing" in result.output

    def test_missing_fixture_is_a_usage_error(self, runner: CliRunner, tmp_path: Path) -> None:
        result = invoke(runner, "quorum", "agm", "-f", str(tmp_path / "absent.yaml"))
        assert result.exit_code == 2


class TestCLIProxy:
    def test_grant_writes_audit_record(
        self, runner: CliRunner, fixture_file: str, config_file: str, audit_path: Path
    ) -> None:
        result = invoke(
            runner, "proxy", "grant", "agm", "dave", "alice", "-f", fixture_file, "-c", config_file
        )

        assert result.exit_code == 0
        records = AuditLogger(audit_path).read_all()
        assert [r["event"] for r in records] == ["proxy_granted"]
        assert records[0]["meeting_id"] == "agm"

    def test_chain_is_refused(
        self, runner: CliRunner, fixture_file: str, config_file: str, audit_path: Path
    ) -> None:
        result = invoke(
            runner, "proxy", "grant", "agm", "dave", "bob", "-f", fixture_file, "-c", config_file
        )

        assert result.exit_code == 1
        assert not audit_path.exists()

    def test_self_delegation_is_refused(
        self, runner: CliRunner, fixture_file: str, config_file: str
    ) -> None:
        result = invoke(
            runner, "proxy", "grant", "agm", "dave", "dave", "-f", fixture_file, "-c", config_file
        )
        assert result.exit_code == 1

    def test_revoke(
        self, runner: CliRunner, fixture_file: str, config_file: str, audit_path: Path
    ) -> None:
        result = invoke(runner, "proxy", "revoke", "agm", "bob", "-f", fixture_file, "-c", config_file)

        assert result.exit_code == 0
        assert AuditLogger(audit_path).query({"event": "proxy_revoked"})

    def test_revoke_without_proxy(
        self, runner: CliRunner, fixture_file: str, config_file: str, audit_path: Path
    ) -> None:
        result = invoke(runner, "proxy", "revoke", "agm", "dave", "-f", fixture_file, "-c", config_file)

        assert result.exit_code == 0
        assert "No active proxy" in result.output

    def test_list(self, runner: CliRunner, fixture_file: str, config_file: str) -> None:
        result = invoke(runner, "proxy", "list", "agm", "-f", fixture_file, "-c", config_file)
        assert result.exit_code == 0
        assert "Active proxies (1)" in result.output


class TestCLIPolicies:
    def test_show_presets(self, runner: CliRunner) -> None:
        result = invoke(runner, "policies", "show")
        assert result.exit_code == 0
        assert "Quorum policies" in result.output
        assert "Vote policies" in result.output

    def test_show_fixture_policies(
        self, runner: CliRunner, fixture_file: str, config_file: str
    ) -> None:
        result = invoke(runner, "policies", "show", "-f", fixture_file, "-c", config_file)
        assert result.exit_code == 0
        assert "Quorum policies" in result.output
        assert "two_thirds" not in result.output
