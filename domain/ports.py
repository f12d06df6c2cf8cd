"""
Domain: Interfaces of the external collaborators the workflow core consumes.

Implementations live in `repositories/` (Supabase, in-memory) and in tests
(fakes). Everything is injected at construction; nothing here is a global.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, List, Mapping, Optional, Protocol

from .events import AuditEntry, DomainNotification
from .invoice import Invoice
from .sale import Sale
from .status import SaleStatus


@dataclass(frozen=True, slots=True)
class PermissionDecision:
    allowed: bool
    reason: Optional[str] = None
    denial_code: Optional[str] = None  # ROLE_MISSING, PERMISSION_DENIED, TENANT_MISMATCH


class SaleStore(Protocol):
    def get_by_id(self, sale_id: str) -> Optional[Sale]:
        ...

    def update_status(self, sale_id: str, new_status: SaleStatus, expected_version: int) -> Sale:
        """Raises ConflictError, SaleNotFoundError or PersistenceError."""
        ...

    def delete(self, sale_id: str) -> None:
        """Raises SaleNotFoundError or PersistenceError."""
        ...


class PermissionGate(Protocol):
    def check(self, action: str, context: Mapping[str, Any]) -> PermissionDecision:
        """Raises PermissionGateError when no decision can be made."""
        ...


class AuditSink(Protocol):
    def record(self, entry: AuditEntry) -> None:
        ...

    def history(self, sale_id: str, limit: int = 50) -> List[AuditEntry]:
        """Entries for one sale, newest first. Raises PersistenceError."""
        ...


class NotificationSink(Protocol):
    def send(self, notification: DomainNotification) -> None:
        ...


class InventoryGateway(Protocol):
    def reserve(self, product_ref: str, quantity: int, sale_id: str) -> None:
        ...

    def release(self, product_ref: str, quantity: int, sale_id: str) -> None:
        ...

    def decrement(self, product_ref: str, quantity: int, sale_id: str) -> None:
        ...


class ShipmentGateway(Protocol):
    def create_shipment(self, sale: Sale, created_at: datetime) -> None:
        ...


class WarrantyGateway(Protocol):
    def activate_warranty(self, sale_id: str, product_ref: str, starts_at: datetime, expires_at: datetime) -> None:
        ...


class InvoiceGateway(Protocol):
    def issue_invoice(self, invoice: Invoice) -> None:
        ...


class ContractGateway(Protocol):
    def activate_contract(self, contract_ref: str, sale_id: str) -> None:
        ...

    def cancel_contract(self, contract_ref: str, sale_id: str, reason: Optional[str]) -> None:
        ...


class PaymentGateway(Protocol):
    def record_payment(self, sale_id: str, amount: Decimal) -> None:
        ...

    def reverse_payment(self, sale_id: str, amount: Decimal, reason: Optional[str]) -> None:
        ...


@dataclass(frozen=True, slots=True)
class SideEffectGateways:
    """Bundle of collaborators side effects are applied against."""

    inventory: InventoryGateway
    shipments: ShipmentGateway
    warranties: WarrantyGateway
    invoices: InvoiceGateway
    contracts: ContractGateway
    payments: PaymentGateway
    notifications: NotificationSink
