"""Proxy (pouvoir) delegation ledger.

Each giver has at most one active delegation per meeting.  An edge goes
``none -> active -> revoked``; revoked edges are kept for audit and a giver
may later delegate again.

Rules for ``upsert``
--------------------
1. No self-delegation.
2. Giver and receiver belong to the meeting's tenant.
3. An empty receiver revokes the giver's active delegation.
4. No chains: the receiver must not delegate, and the giver must not hold
   delegations from others.
5. Cap: the receiver holds fewer than ``max_per_receiver`` delegations.

Rules 4 and 5 and the write run inside one store transaction that locks the
giver's and receiver's proxy rows, so two concurrent requests cannot both
pass the checks.

Example
-------
>>> ledger = ProxyLedger(store, max_per_receiver=2)
>>> change = ledger.upsert("meeting-1", "alice", "bob", ctx)
>>> change.edge.receiver_member_id
'bob'
>>> [event.kind for event in change.events]
['proxy_granted']
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from assembly_governance.errors import (
    BusinessRuleViolation,
    NotFoundError,
    ViolationCode,
    require_id,
)
from assembly_governance.events import DomainEvent

if TYPE_CHECKING:
    from assembly_governance.config.loader import EngineConfig
    from assembly_governance.context import Context
    from assembly_governance.store.ports import GovernanceStore
    from assembly_governance.store.records import ProxyEdge

logger = logging.getLogger(__name__)

DEFAULT_MAX_PER_RECEIVER: int = 99
DEFAULT_LOCK_TIMEOUT_SECONDS: float = 2.0


@dataclass(frozen=True)
class ProxyChange:
    """Result of a ledger mutation.

    Attributes
    ----------
    edge:
        The active edge after an upsert, the revoked edge after a
        revocation, or ``None`` when nothing was revoked.
    events:
        Domain events to dispatch; empty for no-op calls.
    """

    edge: "ProxyEdge | None"
    events: list[DomainEvent] = field(default_factory=list)


class ProxyLedger:
    """Validates and applies proxy delegations.

    Parameters
    ----------
    store:
        Object satisfying the store contracts, including ``transaction``.
    max_per_receiver:
        Maximum active delegations one receiver may hold.
    lock_timeout_seconds:
        Bound on waiting for proxy row locks.  Exceeding it raises
        ``LockTimeoutError`` instead of blocking.
    """

    def __init__(
        self,
        store: "GovernanceStore",
        max_per_receiver: int = DEFAULT_MAX_PER_RECEIVER,
        lock_timeout_seconds: float = DEFAULT_LOCK_TIMEOUT_SECONDS,
    ) -> None:
        if max_per_receiver < 1:
            raise ValueError("max_per_receiver must be >= 1")
        self._store = store
        self._max_per_receiver = max_per_receiver
        self._lock_timeout = lock_timeout_seconds

    @classmethod
    def from_config(cls, store: "GovernanceStore", config: "EngineConfig") -> "ProxyLedger":
        return cls(
            store,
            max_per_receiver=config.proxies.max_per_receiver,
            lock_timeout_seconds=config.proxies.lock_timeout_seconds,
        )

    @property
    def max_per_receiver(self) -> int:
        return self._max_per_receiver

    # ------------------------------------------------------------------
    # Write API
    # ------------------------------------------------------------------

    def upsert(
        self,
        meeting_id: str,
        giver_member_id: str,
        receiver_member_id: str | None,
        ctx: "Context",
    ) -> ProxyChange:
        """Create, replace or (with an empty receiver) revoke a delegation.

        Raises
        ------
        InvalidInputError
            When *meeting_id* or *giver_member_id* is blank.
        NotFoundError
            When the meeting does not exist in ``ctx.tenant_id``.
        BusinessRuleViolation
            ``self_delegation``, ``tenant_mismatch``,
            ``proxy_chain_forbidden`` or ``proxy_cap_reached``.
        LockTimeoutError
            When the proxy rows stay locked past the timeout.
        """
        meeting_id = require_id("meeting_id", meeting_id)
        giver = require_id("giver_member_id", giver_member_id)
        receiver = (receiver_member_id or "").strip()

        if receiver == giver:
            raise BusinessRuleViolation(
                ViolationCode.SELF_DELEGATION, "A member cannot delegate to themselves."
            )

        self._require_meeting(meeting_id, ctx)
        self._require_member(giver, "giver", ctx)

        if not receiver:
            return self.revoke(meeting_id, giver, ctx)

        self._require_member(receiver, "receiver", ctx)

        with self._store.transaction(
            meeting_id, ctx.tenant_id, [giver, receiver], self._lock_timeout
        ) as tx:
            if tx.count_active_as_giver(receiver) > 0:
                self._refuse(
                    ViolationCode.PROXY_CHAIN_FORBIDDEN,
                    "Proxy chain forbidden (receiver already delegates).",
                    meeting_id,
                    giver,
                    receiver,
                )
            if tx.count_active_as_receiver(giver) > 0:
                self._refuse(
                    ViolationCode.PROXY_CHAIN_FORBIDDEN,
                    "Proxy chain forbidden (giver already holds proxies).",
                    meeting_id,
                    giver,
                    receiver,
                )

            current = tx.active_edge_for(giver)
            if current is not None and current.receiver_member_id == receiver:
                return ProxyChange(edge=current, events=[])

            if tx.count_active_as_receiver(receiver) >= self._max_per_receiver:
                self._refuse(
                    ViolationCode.PROXY_CAP_REACHED,
                    f"Proxy cap reached (max {self._max_per_receiver}).",
                    meeting_id,
                    giver,
                    receiver,
                )

            now = ctx.now()
            edge = tx.upsert_edge(giver, receiver, now)

        if current is None:
            kind = "proxy_granted"
            payload: dict[str, object] = {"giver": giver, "receiver": receiver}
        else:
            kind = "proxy_replaced"
            payload = {
                "giver": giver,
                "receiver": receiver,
                "previous_receiver": current.receiver_member_id,
            }
        logger.info("Proxy %s -> %s recorded for meeting %s", giver, receiver, meeting_id)
        return ProxyChange(
            edge=edge,
            events=[DomainEvent(kind, ctx.tenant_id, meeting_id, now, payload)],
        )

    def revoke(self, meeting_id: str, giver_member_id: str, ctx: "Context") -> ProxyChange:
        """Revoke the giver's active delegation, if any."""
        meeting_id = require_id("meeting_id", meeting_id)
        giver = require_id("giver_member_id", giver_member_id)
        self._require_meeting(meeting_id, ctx)

        with self._store.transaction(
            meeting_id, ctx.tenant_id, [giver], self._lock_timeout
        ) as tx:
            now = ctx.now()
            revoked = tx.revoke_edge(giver, now)

        if revoked is None:
            return ProxyChange(edge=None, events=[])

        logger.info("Proxy of %s revoked for meeting %s", giver, meeting_id)
        return ProxyChange(
            edge=revoked,
            events=[
                DomainEvent(
                    "proxy_revoked",
                    ctx.tenant_id,
                    meeting_id,
                    now,
                    {"giver": giver, "receiver": revoked.receiver_member_id},
                )
            ],
        )

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------

    def list_active(self, meeting_id: str, ctx: "Context") -> list["ProxyEdge"]:
        """Return active delegations of the meeting."""
        meeting_id = require_id("meeting_id", meeting_id)
        self._require_meeting(meeting_id, ctx)
        return self._store.list_edges(meeting_id, ctx.tenant_id, active_only=True)

    def history(self, meeting_id: str, ctx: "Context") -> list["ProxyEdge"]:
        """Return every delegation of the meeting, revoked ones included."""
        meeting_id = require_id("meeting_id", meeting_id)
        self._require_meeting(meeting_id, ctx)
        return self._store.list_edges(meeting_id, ctx.tenant_id, active_only=False)

    def has_active_proxy(
        self, meeting_id: str, giver_member_id: str, receiver_member_id: str, ctx: "Context"
    ) -> bool:
        return any(
            edge.giver_member_id == giver_member_id
            and edge.receiver_member_id == receiver_member_id
            for edge in self.list_active(meeting_id, ctx)
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_meeting(self, meeting_id: str, ctx: "Context") -> None:
        if self._store.find_meeting(meeting_id, ctx.tenant_id) is None:
            raise NotFoundError("meeting", meeting_id)

    def _require_member(self, member_id: str, role: str, ctx: "Context") -> None:
        if not self._store.member_in_tenant(member_id, ctx.tenant_id):
            raise BusinessRuleViolation(
                ViolationCode.TENANT_MISMATCH,
                f"{role} {member_id!r} does not belong to this tenant.",
            )

    def _refuse(
        self,
        code: ViolationCode,
        message: str,
        meeting_id: str,
        giver: str,
        receiver: str,
    ) -> None:
        logger.warning(
            "Proxy %s -> %s refused for meeting %s: %s", giver, receiver, meeting_id, code.value
        )
        raise BusinessRuleViolation(code, message)
