"""
Domain: Product sale statuses and the transition rule table.

This module is the single source of truth for:
- The enumerated lifecycle statuses of a product sale.
- The allowed successor set of every status (terminal statuses map to an
  empty set; every status has exactly one entry).
- Display metadata (label, color, description) and the notification type
  used when a sale reaches a status.

Pure lookup: no I/O, no state.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Mapping, Tuple


class SaleStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    INVOICED = "invoiced"
    PAID = "paid"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


@dataclass(frozen=True, slots=True)
class StatusInfo:
    """Display metadata for a status. Not semantically load-bearing."""

    status: SaleStatus
    label: str
    color: str
    description: str
    notification_type: str  # success, info, warning, error


TRANSITION_RULES: Mapping[SaleStatus, FrozenSet[SaleStatus]] = {
    SaleStatus.DRAFT: frozenset({SaleStatus.PENDING, SaleStatus.CANCELLED}),
    SaleStatus.PENDING: frozenset({SaleStatus.CONFIRMED, SaleStatus.CANCELLED}),
    SaleStatus.CONFIRMED: frozenset({SaleStatus.SHIPPED, SaleStatus.CANCELLED}),
    SaleStatus.SHIPPED: frozenset({SaleStatus.DELIVERED, SaleStatus.CANCELLED}),
    SaleStatus.DELIVERED: frozenset({SaleStatus.INVOICED, SaleStatus.REFUNDED}),
    SaleStatus.INVOICED: frozenset({SaleStatus.PAID, SaleStatus.CANCELLED}),
    SaleStatus.PAID: frozenset({SaleStatus.REFUNDED}),
    # Re-opening a cancelled sale as a draft is the only edge back to draft.
    SaleStatus.CANCELLED: frozenset({SaleStatus.DRAFT}),
    SaleStatus.REFUNDED: frozenset(),
}

_STATUS_INFO: Dict[SaleStatus, StatusInfo] = {
    info.status: info
    for info in (
        StatusInfo(SaleStatus.DRAFT, "Draft", "default", "Sale is being prepared and not yet submitted", "info"),
        StatusInfo(SaleStatus.PENDING, "Pending", "orange", "Sale is awaiting approval", "warning"),
        StatusInfo(SaleStatus.CONFIRMED, "Confirmed", "blue", "Sale is approved and stock is reserved", "success"),
        StatusInfo(SaleStatus.SHIPPED, "Shipped", "cyan", "Goods have left the warehouse", "info"),
        StatusInfo(SaleStatus.DELIVERED, "Delivered", "green", "Goods were received by the customer", "success"),
        StatusInfo(SaleStatus.INVOICED, "Invoiced", "purple", "Invoice has been issued to the customer", "success"),
        StatusInfo(SaleStatus.PAID, "Paid", "success", "Payment has been received", "success"),
        StatusInfo(SaleStatus.CANCELLED, "Cancelled", "red", "Sale was cancelled before completion", "error"),
        StatusInfo(SaleStatus.REFUNDED, "Refunded", "volcano", "Payment was returned to the customer", "warning"),
    )
}


class StatusRegistry:
    """
    Read-only view over the transition rule table.

    Any (from, to) pair not present in the rules is invalid; there are no
    hidden transitions.
    """

    def __init__(self, rules: Mapping[SaleStatus, FrozenSet[SaleStatus]] = TRANSITION_RULES) -> None:
        missing = set(SaleStatus) - set(rules)
        if missing:
            names = ", ".join(sorted(s.value for s in missing))
            raise ValueError(f"Transition rules missing entries for: {names}")
        self._rules = rules

    def valid_next(self, status: SaleStatus) -> FrozenSet[SaleStatus]:
        return self._rules[SaleStatus(status)]

    def is_valid(self, from_status: SaleStatus, to_status: SaleStatus) -> bool:
        return SaleStatus(to_status) in self.valid_next(from_status)

    def is_terminal(self, status: SaleStatus) -> bool:
        return not self.valid_next(status)

    def info(self, status: SaleStatus) -> StatusInfo:
        return _STATUS_INFO[SaleStatus(status)]

    def label(self, status: SaleStatus) -> str:
        return self.info(status).label

    def description(self, status: SaleStatus) -> str:
        return self.info(status).description

    def color(self, status: SaleStatus) -> str:
        return self.info(status).color

    def notification_type(self, status: SaleStatus) -> str:
        return self.info(status).notification_type

    def ordered_next(self, status: SaleStatus) -> Tuple[SaleStatus, ...]:
        """Successors in lifecycle order, for stable display and API output."""

        order = list(SaleStatus)
        return tuple(sorted(self.valid_next(status), key=order.index))


def parse_status(value: str) -> SaleStatus:
    """
    Parse a raw status string (case-insensitive).

    Raises:
        ValueError: if the value is not a known status
    """

    try:
        return SaleStatus(str(value).strip().lower())
    except ValueError:
        raise ValueError(f"Unknown sale status: {value!r}") from None


default_registry = StatusRegistry()
