"""Audit trail package: JSONL logging and domain event dispatch."""
from __future__ import annotations

from assembly_governance.audit.logger import AuditLogger, EventDispatcher

__all__ = ["AuditLogger", "EventDispatcher"]
