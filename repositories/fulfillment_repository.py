"""
Fulfillment collaborators (persistence).

One Supabase-backed class implements every gateway the side effects need:
inventory (via PostgreSQL functions, which lock the stock row), shipments,
warranties, invoices, service contracts and payments (via tables).

No business rules here: whether an effect should fire is decided by the
side-effect descriptors.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from domain.invoice import Invoice
from domain.sale import Sale
from repositories.rows import execute_rows, to_iso_utc

# Supabase table / function names.
# Keep these aligned with your database schema.
_SHIPMENTS_TABLE: str = "shipments"
_WARRANTIES_TABLE: str = "warranties"
_INVOICES_TABLE: str = "invoices"
_CONTRACTS_TABLE: str = "service_contracts"
_PAYMENTS_TABLE: str = "sale_payments"


class SupabaseFulfillmentGateway:
    def __init__(self, client: Any) -> None:
        self._client = client

    # Inventory

    def _adjust_inventory(self, function: str, product_ref: str, quantity: int, sale_id: str) -> None:
        execute_rows(
            self._client.rpc(
                function,
                {"p_product_id": product_ref, "p_quantity": quantity, "p_sale_id": sale_id},
            ),
            action=function.replace("_", " "),
        )

    def reserve(self, product_ref: str, quantity: int, sale_id: str) -> None:
        self._adjust_inventory("reserve_inventory", product_ref, quantity, sale_id)

    def release(self, product_ref: str, quantity: int, sale_id: str) -> None:
        self._adjust_inventory("release_inventory", product_ref, quantity, sale_id)

    def decrement(self, product_ref: str, quantity: int, sale_id: str) -> None:
        self._adjust_inventory("decrement_inventory", product_ref, quantity, sale_id)

    # Shipments / warranties

    def create_shipment(self, sale: Sale, created_at: datetime) -> None:
        payload: dict[str, Any] = {
            "sale_id": sale.sale_id,
            "product_id": sale.product_ref,
            "customer_id": sale.customer_ref,
            "quantity": sale.quantity,
            "status": "created",
            "created_at_utc": to_iso_utc(created_at, name="created_at"),
        }
        execute_rows(self._client.table(_SHIPMENTS_TABLE).insert(payload), action="create shipment")

    def activate_warranty(self, sale_id: str, product_ref: str, starts_at: datetime, expires_at: datetime) -> None:
        payload: dict[str, Any] = {
            "sale_id": sale_id,
            "product_id": product_ref,
            "starts_at_utc": to_iso_utc(starts_at, name="starts_at"),
            "expires_at_utc": to_iso_utc(expires_at, name="expires_at"),
            "status": "active",
        }
        execute_rows(self._client.table(_WARRANTIES_TABLE).insert(payload), action="activate warranty")

    # Invoices

    def issue_invoice(self, invoice: Invoice) -> None:
        payload: dict[str, Any] = {
            "invoice_number": invoice.invoice_number,
            "sale_id": invoice.sale_id,
            "customer_id": invoice.customer_ref,
            "items": [
                {
                    "product_id": line.product_ref,
                    "quantity": line.quantity,
                    "unit_price": str(line.unit_price),
                    "line_total": str(line.line_total),
                }
                for line in invoice.lines
            ],
            "subtotal": str(invoice.subtotal),
            "tax_rate": str(invoice.tax_rate),
            "tax": str(invoice.tax),
            "total": str(invoice.total),
            "currency": invoice.currency,
            "status": "generated",
            "generated_at_utc": to_iso_utc(invoice.issued_at, name="issued_at"),
            "due_at_utc": to_iso_utc(invoice.due_at, name="due_at"),
        }
        execute_rows(self._client.table(_INVOICES_TABLE).insert(payload), action="issue invoice")

    # Service contracts

    def _set_contract_status(self, contract_ref: str, status: str, sale_id: str, reason: Optional[str] = None) -> None:
        payload: dict[str, Any] = {"status": status, "product_sale_id": sale_id}
        if reason is not None:
            payload["status_reason"] = reason
        execute_rows(
            self._client.table(_CONTRACTS_TABLE).update(payload).eq("id", contract_ref),
            action=f"set contract {contract_ref} {status}",
        )

    def activate_contract(self, contract_ref: str, sale_id: str) -> None:
        self._set_contract_status(contract_ref, "active", sale_id)

    def cancel_contract(self, contract_ref: str, sale_id: str, reason: Optional[str]) -> None:
        self._set_contract_status(contract_ref, "cancelled", sale_id, reason)

    # Payments

    def record_payment(self, sale_id: str, amount: Decimal) -> None:
        payload: dict[str, Any] = {"sale_id": sale_id, "amount": str(amount), "kind": "payment"}
        execute_rows(self._client.table(_PAYMENTS_TABLE).insert(payload), action="record payment")

    def reverse_payment(self, sale_id: str, amount: Decimal, reason: Optional[str]) -> None:
        payload: dict[str, Any] = {
            "sale_id": sale_id,
            "amount": str(-amount),
            "kind": "refund",
            "reason": reason,
        }
        execute_rows(self._client.table(_PAYMENTS_TABLE).insert(payload), action="reverse payment")


__all__ = ["SupabaseFulfillmentGateway"]
