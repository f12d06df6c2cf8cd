"""
Domain: Side-effect descriptors and the destination-status mapping.

Each descriptor is a small immutable value that knows how to apply itself
against the injected gateways. The mapping from destination status to an
ordered tuple of descriptors is static; adding a status or an effect only
touches this module.

Effects are best-effort intents: the dispatcher runs them independently and
a failure of one never prevents the next one from running.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Tuple

from .events import TransitionEvent
from .invoice import build_invoice
from .notifications import STAKEHOLDERS_BY_STATUS, StakeholderRole, build_stakeholder_notification
from .ports import SideEffectGateways
from .sale import Sale
from .status import SaleStatus
from .time import add_months


class SideEffect:
    """Base class: a single best-effort action fired by a transition."""

    @property
    def name(self) -> str:
        return type(self).__name__

    def applies_to(self, sale: Sale) -> bool:
        return True

    def apply(self, sale: Sale, event: TransitionEvent, gateways: SideEffectGateways) -> None:
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class ReserveInventory(SideEffect):
    def apply(self, sale: Sale, event: TransitionEvent, gateways: SideEffectGateways) -> None:
        gateways.inventory.reserve(sale.product_ref, sale.quantity, sale.sale_id)


@dataclass(frozen=True, slots=True)
class ReleaseInventory(SideEffect):
    def apply(self, sale: Sale, event: TransitionEvent, gateways: SideEffectGateways) -> None:
        gateways.inventory.release(sale.product_ref, sale.quantity, sale.sale_id)


@dataclass(frozen=True, slots=True)
class DecrementInventory(SideEffect):
    def apply(self, sale: Sale, event: TransitionEvent, gateways: SideEffectGateways) -> None:
        gateways.inventory.decrement(sale.product_ref, sale.quantity, sale.sale_id)


@dataclass(frozen=True, slots=True)
class CreateShipment(SideEffect):
    def apply(self, sale: Sale, event: TransitionEvent, gateways: SideEffectGateways) -> None:
        gateways.shipments.create_shipment(sale, event.occurred_at)


@dataclass(frozen=True, slots=True)
class ActivateWarranty(SideEffect):
    """Warranty window of warranty_period_months starting at the transition time."""

    def applies_to(self, sale: Sale) -> bool:
        return bool(sale.warranty_period_months)

    def apply(self, sale: Sale, event: TransitionEvent, gateways: SideEffectGateways) -> None:
        starts_at = event.occurred_at
        expires_at = add_months(starts_at, sale.warranty_period_months or 0)
        gateways.warranties.activate_warranty(sale.sale_id, sale.product_ref, starts_at, expires_at)


@dataclass(frozen=True, slots=True)
class GenerateInvoice(SideEffect):
    tax_rate: Decimal = Decimal("0")
    currency: str = "USD"

    def apply(self, sale: Sale, event: TransitionEvent, gateways: SideEffectGateways) -> None:
        invoice = build_invoice(sale, event.occurred_at, tax_rate=self.tax_rate, currency=self.currency)
        gateways.invoices.issue_invoice(invoice)


@dataclass(frozen=True, slots=True)
class ActivateContract(SideEffect):
    def applies_to(self, sale: Sale) -> bool:
        return sale.has_linked_contract

    def apply(self, sale: Sale, event: TransitionEvent, gateways: SideEffectGateways) -> None:
        gateways.contracts.activate_contract(str(sale.linked_contract_ref), sale.sale_id)


@dataclass(frozen=True, slots=True)
class CancelContract(SideEffect):
    def applies_to(self, sale: Sale) -> bool:
        return sale.has_linked_contract

    def apply(self, sale: Sale, event: TransitionEvent, gateways: SideEffectGateways) -> None:
        gateways.contracts.cancel_contract(str(sale.linked_contract_ref), sale.sale_id, event.reason)


@dataclass(frozen=True, slots=True)
class RecordPayment(SideEffect):
    def apply(self, sale: Sale, event: TransitionEvent, gateways: SideEffectGateways) -> None:
        gateways.payments.record_payment(sale.sale_id, sale.total_value)


@dataclass(frozen=True, slots=True)
class ProcessRefund(SideEffect):
    def apply(self, sale: Sale, event: TransitionEvent, gateways: SideEffectGateways) -> None:
        gateways.payments.reverse_payment(sale.sale_id, sale.total_value, event.reason)


@dataclass(frozen=True, slots=True)
class NotifyStakeholders(SideEffect):
    """One notification per role; roles are notified in the given order."""

    roles: Tuple[StakeholderRole, ...]
    topic: str

    def apply(self, sale: Sale, event: TransitionEvent, gateways: SideEffectGateways) -> None:
        for role in self.roles:
            gateways.notifications.send(
                build_stakeholder_notification(role, sale, event, topic=self.topic)
            )


SIDE_EFFECTS_BY_STATUS: Dict[SaleStatus, Tuple[SideEffect, ...]] = {
    SaleStatus.CONFIRMED: (
        ReserveInventory(),
        NotifyStakeholders(STAKEHOLDERS_BY_STATUS[SaleStatus.CONFIRMED], "status_changed"),
    ),
    SaleStatus.SHIPPED: (
        CreateShipment(),
        NotifyStakeholders((StakeholderRole.CUSTOMER,), "shipment_ready"),
    ),
    SaleStatus.DELIVERED: (
        DecrementInventory(),
        ActivateWarranty(),
        NotifyStakeholders((StakeholderRole.CUSTOMER,), "delivery_confirmed"),
    ),
    SaleStatus.INVOICED: (
        GenerateInvoice(),
        NotifyStakeholders((StakeholderRole.CUSTOMER, StakeholderRole.FINANCE), "invoice_generated"),
    ),
    SaleStatus.PAID: (
        ActivateContract(),
        RecordPayment(),
        NotifyStakeholders(
            (StakeholderRole.CUSTOMER, StakeholderRole.FINANCE, StakeholderRole.MANAGER),
            "payment_received",
        ),
    ),
    SaleStatus.CANCELLED: (
        ReleaseInventory(),
        NotifyStakeholders(
            (StakeholderRole.CUSTOMER, StakeholderRole.MANAGER, StakeholderRole.WAREHOUSE),
            "sale_cancelled",
        ),
    ),
    SaleStatus.REFUNDED: (
        ProcessRefund(),
        CancelContract(),
        NotifyStakeholders((StakeholderRole.CUSTOMER, StakeholderRole.FINANCE), "refund_processed"),
    ),
}


def side_effects_for(status: SaleStatus) -> Tuple[SideEffect, ...]:
    """Ordered effects for a destination status (empty for draft/pending)."""

    return SIDE_EFFECTS_BY_STATUS.get(SaleStatus(status), ())
