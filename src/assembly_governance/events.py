"""Domain events returned by engine mutations.

The engine does not write audit records itself; mutations return the events
they caused and the caller hands them to an ``EventDispatcher``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class DomainEvent:
    """Something that happened in the engine.

    Attributes
    ----------
    kind:
        Event name, e.g. ``"proxy_granted"``.
    tenant_id, meeting_id:
        Scope of the event.
    occurred_at:
        Time from the call's ``Context`` clock.
    payload:
        JSON-serialisable event details.
    """

    kind: str
    tenant_id: str
    meeting_id: str
    occurred_at: datetime
    payload: dict[str, object] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        return {
            "event": self.kind,
            "tenant_id": self.tenant_id,
            "meeting_id": self.meeting_id,
            "occurred_at": self.occurred_at.isoformat(),
            **self.payload,
        }
