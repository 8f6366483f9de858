"""Store contracts, record types and the in-memory reference store."""
from __future__ import annotations

from assembly_governance.store.memory import InMemoryStore
from assembly_governance.store.ports import GovernanceStore, ProxyTransaction

__all__ = ["GovernanceStore", "InMemoryStore", "ProxyTransaction"]
