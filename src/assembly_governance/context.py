"""Explicit call context for every engine operation.

A ``Context`` carries the tenant the caller is acting for and the clock used
to stamp mutations.  It replaces ambient tenant/database state: every engine
entry point takes one.

Example
-------
>>> from assembly_governance.context import Context
>>> ctx = Context(tenant_id="tenant-1")
>>> ctx.tenant_id
'tenant-1'
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from assembly_governance.errors import InvalidInputError


def _utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


@dataclass(frozen=True)
class Context:
    """Tenant and clock for a single engine call.

    Attributes
    ----------
    tenant_id:
        Tenant the caller is authorised for.  Lookups outside this tenant
        are reported as not found.
    clock:
        Zero-argument callable returning the current UTC time.
    """

    tenant_id: str
    clock: Callable[[], datetime] = field(default=_utc_now, compare=False)

    def __post_init__(self) -> None:
        if not self.tenant_id or not self.tenant_id.strip():
            raise InvalidInputError("tenant_id", "tenant_id is required")

    def now(self) -> datetime:
        """Return the current time according to ``clock``."""
        return self.clock()
