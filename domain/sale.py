"""
Domain: Product sale aggregate.

The Sale is the only aggregate under lifecycle control. Its status is changed
exclusively through the transition engine; every other attribute is set by the
external create/edit operations and is read-only here.

Invariants enforced on construction:
- quantity is an integer > 0.
- unit_price is a Decimal >= 0.
- total_value == quantity * unit_price (derived; an explicit mismatching
  value is rejected).
- warranty_period_months, when present, is an integer >= 0.
- version is an integer >= 0 (optimistic concurrency token owned by the store).
- created_at / updated_at, when present, are UTC.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import Optional

from .status import SaleStatus
from .time import require_utc_timestamp


@dataclass(frozen=True, slots=True)
class Sale:
    """
    Immutable snapshot of a product sale as read from the store.

    customer_ref and product_ref are opaque foreign identifiers; display names
    are enrichments computed elsewhere and are not part of the aggregate.
    """

    sale_id: str
    status: SaleStatus
    customer_ref: str
    product_ref: str
    quantity: int
    unit_price: Decimal
    total_value: Optional[Decimal] = None
    warranty_period_months: Optional[int] = None
    linked_contract_ref: Optional[str] = None
    version: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if not self.sale_id:
            raise ValueError("sale_id is required")
        object.__setattr__(self, "status", SaleStatus(self.status))

        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise ValueError("quantity must be an integer")
        if self.quantity <= 0:
            raise ValueError("quantity must be > 0")

        if not isinstance(self.unit_price, Decimal):
            raise ValueError("unit_price must be a Decimal")
        if self.unit_price < 0:
            raise ValueError("unit_price must be >= 0")

        expected_total = self.unit_price * self.quantity
        if self.total_value is None:
            object.__setattr__(self, "total_value", expected_total)
        elif Decimal(self.total_value) != expected_total:
            raise ValueError("total_value must equal quantity * unit_price")

        if self.warranty_period_months is not None and (
            isinstance(self.warranty_period_months, bool)
            or not isinstance(self.warranty_period_months, int)
            or self.warranty_period_months < 0
        ):
            raise ValueError("warranty_period_months must be an integer >= 0")

        if self.version < 0:
            raise ValueError("version must be >= 0")

        if self.created_at is not None:
            require_utc_timestamp("created_at", self.created_at)
        if self.updated_at is not None:
            require_utc_timestamp("updated_at", self.updated_at)

    @property
    def has_linked_contract(self) -> bool:
        return bool(self.linked_contract_ref)

    def with_status(self, status: SaleStatus, *, version: int, updated_at: datetime) -> "Sale":
        """
        Return a new Sale carrying the new status and store-issued version.

        The derived total is carried over unchanged; only lifecycle fields move.
        """

        return replace(self, status=SaleStatus(status), version=version, updated_at=updated_at)
