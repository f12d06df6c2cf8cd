"""
In-memory sale store.

Same contract as SupabaseSaleRepository (versioned compare-and-swap status
updates, delete) backed by a dict behind a lock. Used for local runs, the
lifecycle simulation script and tests.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from domain.errors import ConflictError, SaleNotFoundError
from domain.sale import Sale
from domain.status import SaleStatus


class InMemorySaleRepository:
    def __init__(self, sales: Iterable[Sale] = ()) -> None:
        self._lock = threading.Lock()
        self._sales: Dict[str, Sale] = {}
        for sale in sales:
            self.add(sale)

    def add(self, sale: Sale) -> Sale:
        """Insert a sale, stamping created/updated timestamps like the database does."""

        now = datetime.now(timezone.utc)
        stored = replace(
            sale,
            created_at=sale.created_at or now,
            updated_at=sale.updated_at or now,
        )
        with self._lock:
            if stored.sale_id in self._sales:
                raise ValueError(f"Sale already exists: {stored.sale_id}")
            self._sales[stored.sale_id] = stored
        return stored

    def get_by_id(self, sale_id: str) -> Optional[Sale]:
        with self._lock:
            return self._sales.get(str(sale_id))

    def list_all(self) -> List[Sale]:
        with self._lock:
            return list(self._sales.values())

    def update_status(self, sale_id: str, new_status: SaleStatus, expected_version: int) -> Sale:
        with self._lock:
            current = self._sales.get(str(sale_id))
            if current is None:
                raise SaleNotFoundError(f"Sale not found: {sale_id}")
            if current.version != expected_version:
                raise ConflictError(
                    f"Sale {sale_id} is at version {current.version}, expected {expected_version}"
                )
            updated = current.with_status(
                new_status,
                version=current.version + 1,
                updated_at=datetime.now(timezone.utc),
            )
            self._sales[updated.sale_id] = updated
            return updated

    def delete(self, sale_id: str) -> None:
        with self._lock:
            if self._sales.pop(str(sale_id), None) is None:
                raise SaleNotFoundError(f"Sale not found: {sale_id}")


__all__ = ["InMemorySaleRepository"]
