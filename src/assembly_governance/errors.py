"""Error taxonomy for the decision engine.

Unmet quorum and rejected motions are valid outcomes and never raise.
Only structural problems do:

- ``NotFoundError``: referenced entity absent or outside the tenant
- ``InvalidInputError``: malformed or blank identifiers
- ``BusinessRuleViolation``: a rule refused a mutation; carries a
  machine-readable ``ViolationCode``
- ``LockTimeoutError``: a proxy lock could not be acquired in time
"""
from __future__ import annotations

from enum import Enum


class ViolationCode(str, Enum):
    """Machine-readable codes for business rule violations."""

    SELF_DELEGATION = "self_delegation"
    TENANT_MISMATCH = "tenant_mismatch"
    PROXY_CHAIN_FORBIDDEN = "proxy_chain_forbidden"
    PROXY_CAP_REACHED = "proxy_cap_reached"
    MEETING_LOCKED = "meeting_locked"
    INVALID_TRANSITION = "invalid_transition"


class GovernanceError(Exception):
    """Base class for all engine errors."""


class NotFoundError(GovernanceError):
    """Raised when a motion, meeting, policy or member cannot be found.

    Attributes
    ----------
    entity:
        Kind of entity looked up (``"motion"``, ``"meeting"``...).
    identifier:
        The identifier that failed to resolve.
    """

    def __init__(self, entity: str, identifier: str) -> None:
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} not found: {identifier!r}")


class InvalidInputError(GovernanceError, ValueError):
    """Raised when a required input is missing or malformed."""

    def __init__(self, field_name: str, message: str) -> None:
        self.field_name = field_name
        self.message = message
        super().__init__(f"{field_name}: {message}")


class BusinessRuleViolation(GovernanceError):
    """Raised when a business rule rejects a mutation.

    Attributes
    ----------
    code:
        The ``ViolationCode`` identifying the rule.
    message:
        Human-readable explanation.
    """

    def __init__(self, code: ViolationCode, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(f"[{code.value}] {message}")


class LockTimeoutError(GovernanceError):
    """Raised when a transactional lock is not acquired within its bound."""

    def __init__(self, keys: list[str], timeout_seconds: float) -> None:
        self.keys = keys
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Could not lock {', '.join(keys)} within {timeout_seconds:g}s"
        )


def require_id(field_name: str, value: str | None) -> str:
    """Return *value* stripped, raising ``InvalidInputError`` when blank."""
    if value is None or not str(value).strip():
        raise InvalidInputError(field_name, f"{field_name} is required")
    return str(value).strip()
