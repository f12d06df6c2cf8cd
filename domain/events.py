"""
Domain: Records produced by sale transitions.

- TransitionEvent: the immutable fact of a successful status change. Audit
  logging and stakeholder notification both read the same instance.
- AuditEntry: the shape written to the audit sink.
- DomainNotification: the shape written to the notification sink.

All timestamps must be passed explicitly and be UTC.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Optional

from .status import SaleStatus
from .time import require_utc_timestamp

AUDIT_ACTION_STATUS_CHANGE = "STATUS_CHANGE"
AUDIT_ACTION_DELETE = "DELETE"


@dataclass(frozen=True, slots=True)
class TransitionEvent:
    sale_id: str
    from_status: SaleStatus
    to_status: SaleStatus
    occurred_at: datetime
    reason: Optional[str] = None
    actor_ref: Optional[str] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("occurred_at", self.occurred_at)


@dataclass(frozen=True, slots=True)
class AuditEntry:
    """
    One audit-log row.

    before/after carry only the fields that changed, e.g.
    {"status": "pending"} -> {"status": "confirmed"}.
    """

    action: str
    sale_id: str
    recorded_at: datetime
    before: Mapping[str, Any] = field(default_factory=dict)
    after: Mapping[str, Any] = field(default_factory=dict)
    reason: Optional[str] = None
    actor_ref: Optional[str] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        require_utc_timestamp("recorded_at", self.recorded_at)

    @staticmethod
    def for_transition(event: TransitionEvent) -> "AuditEntry":
        return AuditEntry(
            action=AUDIT_ACTION_STATUS_CHANGE,
            sale_id=event.sale_id,
            recorded_at=event.occurred_at,
            before={"status": event.from_status.value},
            after={"status": event.to_status.value},
            reason=event.reason,
            actor_ref=event.actor_ref,
        )


@dataclass(frozen=True, slots=True)
class DomainNotification:
    """Fire-and-forget message for one stakeholder role."""

    type: str  # success, info, warning, error
    sale_id: str
    title: str
    message: str
    data: Mapping[str, Any] = field(default_factory=dict)
