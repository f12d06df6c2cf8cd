"""
Log-only collaborators.

Stand-ins for the external fulfillment, audit and notification systems when
running the workflow locally: every call is written to the log and nothing
else happens. The audit sink also keeps its entries in memory so the trail
can be read back.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from domain.events import AuditEntry, DomainNotification
from domain.invoice import Invoice
from domain.ports import SideEffectGateways
from domain.sale import Sale

logger = logging.getLogger(__name__)


class LoggingFulfillmentGateway:
    def reserve(self, product_ref: str, quantity: int, sale_id: str) -> None:
        logger.info("Reserve %d x %s for sale %s", quantity, product_ref, sale_id)

    def release(self, product_ref: str, quantity: int, sale_id: str) -> None:
        logger.info("Release %d x %s for sale %s", quantity, product_ref, sale_id)

    def decrement(self, product_ref: str, quantity: int, sale_id: str) -> None:
        logger.info("Decrement %d x %s for sale %s", quantity, product_ref, sale_id)

    def create_shipment(self, sale: Sale, created_at: datetime) -> None:
        logger.info("Shipment created for sale %s at %s", sale.sale_id, created_at.isoformat())

    def activate_warranty(self, sale_id: str, product_ref: str, starts_at: datetime, expires_at: datetime) -> None:
        logger.info("Warranty for sale %s (%s) active until %s", sale_id, product_ref, expires_at.date().isoformat())

    def issue_invoice(self, invoice: Invoice) -> None:
        logger.info("Invoice %s issued for sale %s: total %s %s", invoice.invoice_number, invoice.sale_id, invoice.total, invoice.currency)

    def activate_contract(self, contract_ref: str, sale_id: str) -> None:
        logger.info("Contract %s activated for sale %s", contract_ref, sale_id)

    def cancel_contract(self, contract_ref: str, sale_id: str, reason: Optional[str]) -> None:
        logger.info("Contract %s cancelled for sale %s (reason: %s)", contract_ref, sale_id, reason)

    def record_payment(self, sale_id: str, amount: Decimal) -> None:
        logger.info("Payment of %s recorded for sale %s", amount, sale_id)

    def reverse_payment(self, sale_id: str, amount: Decimal, reason: Optional[str]) -> None:
        logger.info("Payment of %s reversed for sale %s (reason: %s)", amount, sale_id, reason)


class LoggingAuditSink:
    """Logs every entry and keeps it in memory so the trail can be read back."""

    def __init__(self) -> None:
        self._entries: List[AuditEntry] = []
        self._lock = threading.Lock()

    def record(self, entry: AuditEntry) -> None:
        logger.info("AUDIT %s sale=%s before=%s after=%s reason=%s", entry.action, entry.sale_id, dict(entry.before), dict(entry.after), entry.reason)
        with self._lock:
            self._entries.append(entry)

    def history(self, sale_id: str, limit: int = 50) -> List[AuditEntry]:
        if limit < 1:
            raise ValueError("limit must be >= 1")
        with self._lock:
            entries = [e for e in reversed(self._entries) if e.sale_id == sale_id]
        entries.sort(key=lambda e: e.recorded_at, reverse=True)
        return entries[:limit]


class LoggingNotificationSink:
    def send(self, notification: DomainNotification) -> None:
        logger.info("NOTIFY [%s] %s: %s", notification.data.get("recipient_role"), notification.title, notification.message)


def logging_gateways() -> SideEffectGateways:
    fulfillment = LoggingFulfillmentGateway()
    return SideEffectGateways(
        inventory=fulfillment,
        shipments=fulfillment,
        warranties=fulfillment,
        invoices=fulfillment,
        contracts=fulfillment,
        payments=fulfillment,
        notifications=LoggingNotificationSink(),
    )
