"""CLI entry point for assembly-governance.

Invoked as::

    assembly-gov [OPTIONS] COMMAND [ARGS]...

or during development::

    python -m assembly_governance.cli.main

Every command reads a YAML meeting fixture (members, meetings, motions,
attendances, ballots, proxies, policies) into an in-memory store.

Commands
--------
- version          Show version information
- quorum           Evaluate quorum for a meeting or a motion
- majority         Evaluate the live majority of a motion
- results          Compute the official result of a motion
- consolidate      Compute official results for all closed motions
- readiness        Show validation and lifecycle readiness of a meeting
- proxy grant      Delegate a member's vote
- proxy revoke     Revoke a member's delegation
- proxy list       List active delegations
- policies show    List quorum and vote policies
"""
from __future__ import annotations

import functools
import json
import sys
from pathlib import Path
from typing import Callable, TypeVar

import click
import yaml
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from assembly_governance.audit.logger import AuditLogger, EventDispatcher
from assembly_governance.config.loader import ConfigLoader, EngineConfig
from assembly_governance.context import Context
from assembly_governance.decision.formatting import (
    format_pct,
    format_weight,
    majority_base_label,
    quorum_basis_label,
)
from assembly_governance.decision.majority import MajorityEvaluator
from assembly_governance.decision.official import OfficialResult, ResultReconciler
from assembly_governance.decision.quorum import QuorumEvaluator, QuorumResult, QuorumStatus
from assembly_governance.errors import GovernanceError
from assembly_governance.events import DomainEvent
from assembly_governance.policies.schema import PolicySet
from assembly_governance.proxies.ledger import ProxyLedger
from assembly_governance.readiness.transitions import TransitionChecker
from assembly_governance.readiness.validator import MeetingValidator
from assembly_governance.store.memory import InMemoryStore

console = Console()
err_console = Console(stderr=True)

_DEFAULT_CONFIG = Path("assembly.yaml")

F = TypeVar("F", bound=Callable[..., object])


# ---------------------------------------------------------------------------
# Shared loading
# ---------------------------------------------------------------------------


class Session:
    """Store, config and context built from the command-line options."""

    def __init__(self, store: InMemoryStore, config: EngineConfig, ctx: Context) -> None:
        self.store = store
        self.config = config
        self.ctx = ctx


def _load_session(fixture_path: str, config_path: str, tenant: str | None) -> Session:
    loader = ConfigLoader()
    cfg_path = Path(config_path)
    config = loader.load(cfg_path) if cfg_path.exists() else loader.defaults()

    raw: dict[str, object] = yaml.safe_load(Path(fixture_path).read_text(encoding="utf-8")) or {}
    store = InMemoryStore.from_dict(raw)
    if config.policy_files:
        store.add_policies(config.load_policies(base_dir=cfg_path.parent))

    tenant_id = tenant or str(raw.get("tenant_id", "default"))
    return Session(store, config, Context(tenant_id=tenant_id))


def _session_options(func: F) -> F:
    """Add ``--fixture``, ``--config`` and ``--tenant`` to a command."""

    @click.option(
        "--fixture",
        "-f",
        "fixture_path",
        required=True,
        type=click.Path(exists=True, dir_okay=False),
        help="YAML meeting fixture.",
    )
    @click.option(
        "--config",
        "-c",
        "config_path",
        default=str(_DEFAULT_CONFIG),
        show_default=True,
        type=click.Path(),
        help="Path to assembly.yaml.",
    )
    @click.option("--tenant", "-t", default=None, help="Tenant id (defaults to the fixture's).")
    @functools.wraps(func)
    def wrapper(fixture_path: str, config_path: str, tenant: str | None, **kwargs: object) -> object:
        try:
            session = _load_session(fixture_path, config_path, tenant)
            return func(session, **kwargs)
        except GovernanceError as exc:
            err_console.print(f"[red]Error:[/red] {escape(str(exc))}")
            sys.exit(1)
        except (ValueError, KeyError) as exc:
            err_console.print(f"[red]Invalid input:[/red] {escape(str(exc))}")
            sys.exit(2)

    return wrapper  # type: ignore[return-value]


def _decision_style(value: str) -> str:
    return "green" if value == "adopted" else "red"


def _quorum_table(result: QuorumResult) -> Table:
    table = Table(title="Quorum", box=box.SIMPLE)
    table.add_column("Condition", style="cyan")
    table.add_column("Present", justify="right")
    table.add_column("Eligible", justify="right")
    table.add_column("Ratio", justify="right")
    table.add_column("Threshold", justify="right")
    table.add_column("Met")
    for label, block in (("primary", result.primary), ("secondary", result.secondary)):
        if block is None:
            continue
        if not block.configured:
            table.add_row(label, "-", "-", "-", "-", "[red]not configured[/red]")
            continue
        met = "[green]yes[/green]" if block.met else "[red]no[/red]"
        table.add_row(
            f"{label} ({quorum_basis_label(block.basis)})",
            format_weight(block.numerator),
            format_weight(block.denominator),
            format_pct(block.ratio),
            format_pct(block.threshold),
            met,
        )
    return table


def _official_payload(result: OfficialResult) -> dict[str, object]:
    return {
        "motion_id": result.motion_id,
        "source": result.source.value,
        "for": result.for_,
        "against": result.against,
        "abstain": result.abstain,
        "total": result.total,
        "decision": result.decision.value,
        "reason": result.reason,
    }


# ---------------------------------------------------------------------------
# Root command group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="assembly-governance")
def cli() -> None:
    """Assembly governance CLI: quorum, majority, official results and proxies."""


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    from assembly_governance import __version__

    console.print(
        Panel(
            f"[bold]assembly-governance[/bold]  v[cyan]{__version__}[/cyan]\n"
            "Decision engine for general assembly meetings.",
            title="Version",
            border_style="blue",
        )
    )


# ---------------------------------------------------------------------------
# quorum / majority / results
# ---------------------------------------------------------------------------


@cli.command(name="quorum")
@_session_options
@click.argument("target_id")
@click.option("--motion", "is_motion", is_flag=True, help="TARGET_ID is a motion, not a meeting.")
def quorum_command(session: Session, target_id: str, is_motion: bool) -> None:
    """Evaluate quorum for a meeting (or, with --motion, a motion)."""
    evaluator = QuorumEvaluator(session.store)
    if is_motion:
        result = evaluator.evaluate_for_motion(target_id, session.ctx)
    else:
        result = evaluator.evaluate_for_meeting(target_id, session.ctx)

    match result.status:
        case QuorumStatus.MET:
            status_str = "[green]MET[/green]"
        case QuorumStatus.NOT_MET:
            status_str = "[red]NOT MET[/red]"
        case QuorumStatus.NOT_APPLICABLE:
            status_str = "[yellow]NOT APPLICABLE[/yellow]"

    console.print(Panel(f"{status_str}\n{result.justification}", title="Quorum", border_style="blue"))
    if result.applied:
        console.print(_quorum_table(result))


@cli.command(name="majority")
@_session_options
@click.argument("motion_id")
def majority_command(session: Session, motion_id: str) -> None:
    """Evaluate the live majority of a motion from its ballots."""
    outcome = MajorityEvaluator(session.store).evaluate_motion(motion_id, session.ctx)
    majority = outcome.majority

    table = Table(title=f"Motion {outcome.motion_id}", box=box.SIMPLE)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="bold")
    table.add_row("For", format_weight(majority.for_weight))
    table.add_row("Against", format_weight(majority.against_weight))
    table.add_row("Abstain", format_weight(majority.abstain_weight))
    table.add_row("Ballots", str(outcome.tally.ballot_count))
    if majority.applied:
        table.add_row(
            "Ratio",
            f"{format_pct(majority.ratio)} / {format_pct(majority.threshold)} "
            f"{majority_base_label(majority.base)}",
        )
    table.add_row("Quorum", outcome.quorum.status.value)
    style = _decision_style(outcome.decision.value)
    table.add_row("Decision", f"[{style}]{outcome.decision.value}[/{style}]")
    console.print(table)
    console.print(f"  {outcome.reason}")


@cli.command(name="results")
@_session_options
@click.argument("motion_id")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON.")
def results_command(session: Session, motion_id: str, as_json: bool) -> None:
    """Compute the official result of a motion (manual count or e-vote)."""
    result = ResultReconciler(session.store).compute_official_tallies(motion_id, session.ctx)
    if as_json:
        click.echo(json.dumps(_official_payload(result)))
        return

    style = _decision_style(result.decision.value)
    console.print(
        Panel(
            f"[{style}]{result.decision.value.upper()}[/{style}]  (source: {result.source.value})\n"
            f"{result.reason}",
            title=f"Official result: {result.motion_id}",
            border_style="blue",
        )
    )
    console.print(
        f"  For: {format_weight(result.for_)}  Against: {format_weight(result.against)}  "
        f"Abstain: {format_weight(result.abstain)}  Total: {format_weight(result.total)}"
    )


@cli.command(name="consolidate")
@_session_options
@click.argument("meeting_id")
def consolidate_command(session: Session, meeting_id: str) -> None:
    """Compute and record official results for every closed motion."""
    report = ResultReconciler(session.store).consolidate_meeting(meeting_id, session.ctx)

    table = Table(title=f"Consolidation of {report.meeting_id}", box=box.SIMPLE)
    table.add_column("Motion", style="cyan")
    table.add_column("Source")
    table.add_column("For", justify="right")
    table.add_column("Against", justify="right")
    table.add_column("Abstain", justify="right")
    table.add_column("Decision")
    table.add_column("Reason")
    for result in report.results:
        style = _decision_style(result.decision.value)
        table.add_row(
            result.motion_id,
            result.source.value,
            format_weight(result.for_),
            format_weight(result.against),
            format_weight(result.abstain),
            f"[{style}]{result.decision.value}[/{style}]",
            result.reason,
        )
    console.print(table)
    console.print(f"  Updated motions: [cyan]{report.updated}[/cyan]")


# ---------------------------------------------------------------------------
# readiness
# ---------------------------------------------------------------------------


@cli.command(name="readiness")
@_session_options
@click.argument("meeting_id")
def readiness_command(session: Session, meeting_id: str) -> None:
    """Show whether a meeting can be validated and which transitions are open."""
    readiness = MeetingValidator(session.store).assess(meeting_id, session.ctx)
    if readiness.can:
        console.print(Panel("[green]READY[/green]", title="Validation readiness", border_style="blue"))
    else:
        lines = "\n".join(
            f"[red]{code}[/red]  {reason}"
            for code, reason in zip(readiness.codes, readiness.reasons)
        )
        console.print(Panel(lines, title="Validation readiness", border_style="red"))

    summary = TransitionChecker(session.store).transition_readiness(meeting_id, session.ctx)
    table = Table(title=f"Transitions from {summary.current_status.value}", box=box.SIMPLE)
    table.add_column("To", style="cyan")
    table.add_column("Can proceed")
    table.add_column("Issues", style="red")
    table.add_column("Warnings", style="yellow")
    for target, check in summary.transitions.items():
        table.add_row(
            target.value,
            "[green]yes[/green]" if check.can_proceed else "[red]no[/red]",
            ", ".join(issue.code for issue in check.issues),
            ", ".join(warning.code for warning in check.warnings),
        )
    console.print(table)


# ---------------------------------------------------------------------------
# proxy group
# ---------------------------------------------------------------------------


@cli.group(name="proxy")
def proxy_group() -> None:
    """Proxy delegation commands."""


def _dispatch(session: Session, events: list[DomainEvent]) -> None:
    dispatcher = EventDispatcher(AuditLogger(log_path=session.config.audit.log_path))
    dispatcher.dispatch(events)


@proxy_group.command(name="grant")
@_session_options
@click.argument("meeting_id")
@click.argument("giver_id")
@click.argument("receiver_id")
def proxy_grant_command(session: Session, meeting_id: str, giver_id: str, receiver_id: str) -> None:
    """Delegate GIVER_ID's vote to RECEIVER_ID for a meeting."""
    ledger = ProxyLedger.from_config(session.store, session.config)
    change = ledger.upsert(meeting_id, giver_id, receiver_id, session.ctx)
    _dispatch(session, change.events)
    if not change.events:
        console.print(f"[yellow]Unchanged:[/yellow] {giver_id} already delegates to {receiver_id}.")
        return
    console.print(
        f"[green]{change.events[0].kind.replace('_', ' ').capitalize()}:[/green] "
        f"{giver_id} -> {receiver_id}"
    )


@proxy_group.command(name="revoke")
@_session_options
@click.argument("meeting_id")
@click.argument("giver_id")
def proxy_revoke_command(session: Session, meeting_id: str, giver_id: str) -> None:
    """Revoke GIVER_ID's active delegation."""
    ledger = ProxyLedger.from_config(session.store, session.config)
    change = ledger.revoke(meeting_id, giver_id, session.ctx)
    _dispatch(session, change.events)
    if change.edge is None:
        console.print(f"[yellow]No active proxy for {giver_id}.[/yellow]")
        return
    console.print(f"[green]Revoked:[/green] {giver_id} -> {change.edge.receiver_member_id}")


@proxy_group.command(name="list")
@_session_options
@click.argument("meeting_id")
def proxy_list_command(session: Session, meeting_id: str) -> None:
    """List active delegations of a meeting."""
    ledger = ProxyLedger.from_config(session.store, session.config)
    edges = ledger.list_active(meeting_id, session.ctx)
    if not edges:
        console.print("[yellow]No active proxies.[/yellow]")
        return

    table = Table(title=f"Active proxies ({len(edges)})", box=box.SIMPLE)
    table.add_column("Giver", style="cyan")
    table.add_column("Receiver", style="magenta")
    table.add_column("Since", style="dim", no_wrap=True)
    for edge in edges:
        table.add_row(
            edge.giver_member_id,
            edge.receiver_member_id,
            edge.created_at.isoformat()[:19].replace("T", " "),
        )
    console.print(table)


# ---------------------------------------------------------------------------
# policies group
# ---------------------------------------------------------------------------


@cli.group(name="policies")
def policies_group() -> None:
    """Policy commands."""


def _print_policies(policies: PolicySet) -> None:
    quorum_table = Table(title="Quorum policies", box=box.SIMPLE)
    quorum_table.add_column("ID", style="cyan")
    quorum_table.add_column("Name")
    quorum_table.add_column("Mode")
    quorum_table.add_column("Threshold", justify="right")
    quorum_table.add_column("Counts")
    for policy in policies.quorum_policies:
        counted = ["present"]
        if policy.count_remote:
            counted.append("remote")
        if policy.include_proxies:
            counted.append("proxy")
        threshold = f"{format_pct(policy.threshold)} {quorum_basis_label(policy.denominator)}"
        if policy.threshold_call2 is not None:
            threshold += f" (call 2: {format_pct(policy.threshold_call2)})"
        if policy.denominator2 is not None and policy.threshold2 is not None:
            threshold += (
                f" and {format_pct(policy.threshold2)} {quorum_basis_label(policy.denominator2)}"
            )
        quorum_table.add_row(
            policy.id, policy.name, policy.mode.value, threshold, ", ".join(counted)
        )
    console.print(quorum_table)

    vote_table = Table(title="Vote policies", box=box.SIMPLE)
    vote_table.add_column("ID", style="cyan")
    vote_table.add_column("Name")
    vote_table.add_column("Threshold", justify="right")
    vote_table.add_column("Abstention as against")
    for vote_policy in policies.vote_policies:
        vote_table.add_row(
            vote_policy.id,
            vote_policy.name,
            f"{format_pct(vote_policy.threshold)} {majority_base_label(vote_policy.base)}",
            "yes" if vote_policy.abstention_as_against else "no",
        )
    console.print(vote_table)


@policies_group.command(name="show")
@click.option(
    "--fixture",
    "-f",
    "fixture_path",
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help="YAML meeting fixture; built-in presets are shown when omitted.",
)
@click.option(
    "--config",
    "-c",
    "config_path",
    default=str(_DEFAULT_CONFIG),
    show_default=True,
    type=click.Path(),
    help="Path to assembly.yaml.",
)
def policies_show_command(fixture_path: str | None, config_path: str) -> None:
    """List quorum and vote policies."""
    if fixture_path is None:
        _print_policies(PolicySet.presets())
        return
    try:
        session = _load_session(fixture_path, config_path, None)
    except (GovernanceError, ValueError) as exc:
        err_console.print(f"[red]Error:[/red] {escape(str(exc))}")
        sys.exit(1)
    _print_policies(session.store.policies)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    cli()
