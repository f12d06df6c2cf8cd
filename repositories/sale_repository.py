"""
Sale repository (persistence).

This module provides *only* persistence operations for the Sale aggregate:
fetch by id, compare-and-swap status update and delete. It does not enforce
lifecycle rules; those live in the transition engine.

Optimistic concurrency: every status update is conditional on the stored
`version` matching the version the caller read. An update that matches no row
is reported as ConflictError (row exists, version moved) or
SaleNotFoundError (row missing).
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Mapping, Optional

from domain.errors import ConflictError, SaleNotFoundError
from domain.sale import Sale
from domain.status import SaleStatus
from repositories.rows import execute_rows, parse_utc_datetime

# Supabase table name for product sales.
# Keep this aligned with your database schema.
_SALES_TABLE: str = "product_sales"


def row_to_sale(row: Mapping[str, Any]) -> Sale:
    """Convert a Supabase row into a Sale."""

    warranty = row.get("warranty_period_months")
    return Sale(
        sale_id=str(row["sale_id"]),
        status=SaleStatus(str(row["status"])),
        customer_ref=str(row["customer_id"]),
        product_ref=str(row["product_id"]),
        quantity=int(row["quantity"]),
        unit_price=Decimal(str(row["unit_price"])),
        total_value=Decimal(str(row["total_value"])) if row.get("total_value") is not None else None,
        warranty_period_months=int(warranty) if warranty is not None else None,
        linked_contract_ref=str(row["service_contract_id"]) if row.get("service_contract_id") else None,
        version=int(row.get("version") or 0),
        created_at=parse_utc_datetime(row["created_at_utc"]) if row.get("created_at_utc") else None,
        updated_at=parse_utc_datetime(row["updated_at_utc"]) if row.get("updated_at_utc") else None,
    )


class SupabaseSaleRepository:
    """SaleStore backed by the `product_sales` table."""

    def __init__(self, client: Any, table: str = _SALES_TABLE) -> None:
        self._client = client
        self._table = table

    def get_by_id(self, sale_id: str) -> Optional[Sale]:
        """
        Retrieve a single sale by its ID.

        Returns:
            Sale or None if not found
        """

        rows = execute_rows(
            self._client.table(self._table).select("*").eq("sale_id", str(sale_id)).limit(1),
            action="get sale",
        )
        if not rows:
            return None
        return row_to_sale(rows[0])

    def update_status(self, sale_id: str, new_status: SaleStatus, expected_version: int) -> Sale:
        """
        Set the status iff the stored version equals `expected_version`.

        The version is bumped by one on success.

        Raises:
            ConflictError: the row exists but its version moved
            SaleNotFoundError: no row for sale_id
            PersistenceError: Supabase failure
        """

        now = datetime.now(timezone.utc)
        payload: dict[str, Any] = {
            "status": SaleStatus(new_status).value,
            "version": expected_version + 1,
            "updated_at_utc": now.isoformat(),
        }

        rows = execute_rows(
            self._client.table(self._table)
            .update(payload)
            .eq("sale_id", str(sale_id))
            .eq("version", expected_version),
            action="update sale status",
        )

        if rows:
            return row_to_sale(rows[0])

        # Nothing matched: either the row is gone or someone else won the race.
        if self.get_by_id(sale_id) is None:
            raise SaleNotFoundError(f"Sale not found: {sale_id}")
        raise ConflictError(f"Sale {sale_id} no longer at version {expected_version}")

    def delete(self, sale_id: str) -> None:
        rows = execute_rows(
            self._client.table(self._table).delete().eq("sale_id", str(sale_id)),
            action="delete sale",
        )
        if not rows:
            raise SaleNotFoundError(f"Sale not found: {sale_id}")


__all__ = ["SupabaseSaleRepository", "row_to_sale"]
