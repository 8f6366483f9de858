"""Append-only JSONL audit trail for engine events.

The engine returns ``DomainEvent`` objects from its mutations instead of
writing audit records inline.  ``EventDispatcher`` takes those events and
appends them to an ``AuditLogger``, alongside any other subscribers.

Example
-------
>>> from pathlib import Path
>>> audit = AuditLogger(Path("/tmp/assembly_audit.jsonl"))
>>> dispatcher = EventDispatcher(audit)
>>> dispatcher.dispatch(ledger.upsert("meeting-1", "alice", "bob", ctx).events)
1
>>> audit.query({"event": "proxy_granted"})[0]["receiver"]
'bob'
"""
from __future__ import annotations

import json
import logging
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, Iterator

from assembly_governance.events import DomainEvent

logger = logging.getLogger(__name__)

EventSubscriber = Callable[[DomainEvent], None]


class AuditLogger:
    """Thread-safe append-only JSONL audit log.

    Parameters
    ----------
    log_path:
        Path to the ``.jsonl`` file.  Parent directories are created on
        first write.
    session_id:
        Identifier stamped on every record; a random UUID by default.
    """

    def __init__(self, log_path: Path, session_id: str | None = None) -> None:
        self._log_path = log_path
        self._session_id: str = session_id or str(uuid.uuid4())
        self._lock = threading.Lock()

    @property
    def log_path(self) -> Path:
        return self._log_path

    @property
    def session_id(self) -> str:
        return self._session_id

    # ------------------------------------------------------------------
    # Write API
    # ------------------------------------------------------------------

    def log(self, entry: dict[str, object]) -> None:
        """Append *entry*, stamped with ``recorded_at`` and ``session_id``."""
        record: dict[str, object] = {
            "recorded_at": datetime.now(tz=timezone.utc).isoformat(),
            "session_id": self._session_id,
            **entry,
        }
        line = json.dumps(record, default=str)
        with self._lock:
            self._log_path.parent.mkdir(parents=True, exist_ok=True)
            with self._log_path.open("a", encoding="utf-8") as fh:
                fh.write(line + "\n")

    def log_event(self, event: DomainEvent) -> None:
        self.log(event.to_dict())

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------

    def read_all(self) -> list[dict[str, object]]:
        """Return every record in write order; empty when the file is absent."""
        return list(self._iter_records())

    def query(self, filters: dict[str, object]) -> list[dict[str, object]]:
        """Return records whose top-level fields equal every item of *filters*."""
        return [
            record
            for record in self._iter_records()
            if all(record.get(key) == value for key, value in filters.items())
        ]

    def for_meeting(self, meeting_id: str) -> list[dict[str, object]]:
        return self.query({"meeting_id": meeting_id})

    def count(self) -> int:
        return sum(1 for _ in self._iter_records())

    def _iter_records(self) -> Iterator[dict[str, object]]:
        if not self._log_path.exists():
            return
        with self._lock:
            with self._log_path.open("r", encoding="utf-8") as fh:
                lines = fh.readlines()
        for number, line in enumerate(lines, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                yield json.loads(line)
            except json.JSONDecodeError:
                logger.warning("Skipping malformed audit line %d in %s", number, self._log_path)


class EventDispatcher:
    """Fans engine events out to the audit log and registered subscribers.

    Parameters
    ----------
    audit_logger:
        Optional ``AuditLogger`` receiving every event.
    """

    def __init__(self, audit_logger: AuditLogger | None = None) -> None:
        self._audit = audit_logger
        self._subscribers: list[EventSubscriber] = []

    def subscribe(self, subscriber: EventSubscriber) -> None:
        self._subscribers.append(subscriber)

    def dispatch(self, events: Iterable[DomainEvent]) -> int:
        """Deliver *events* in order and return how many were delivered."""
        delivered = 0
        for event in events:
            if self._audit is not None:
                self._audit.log_event(event)
            for subscriber in self._subscribers:
                subscriber(event)
            delivered += 1
            logger.debug("Dispatched %s for meeting %s", event.kind, event.meeting_id)
        return delivered
