"""Proxy (pouvoir) delegation ledger."""
from __future__ import annotations

from assembly_governance.proxies.ledger import ProxyChange, ProxyLedger

__all__ = ["ProxyChange", "ProxyLedger"]
