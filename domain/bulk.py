"""
Domain: Aggregated outcome of a bulk operation.

Partial failure is the normal, expected outcome of a bulk operation. The
result always covers every distinct requested id: succeeded + failed == total
and one error entry exists per failed id. `requested` echoes the number of
ids as submitted, so callers can reconcile duplicates.
"""

from __future__ import annotations

from dataclasses import dataclass
from threading import Lock
from typing import List, Optional, Tuple


@dataclass(frozen=True, slots=True)
class BulkItemError:
    sale_id: str
    error: str  # error code, e.g. "InvalidTransition"
    message: str


@dataclass(frozen=True, slots=True)
class BulkOperationResult:
    succeeded: int
    failed: int
    total: int
    requested: int  # ids as submitted, duplicates included
    errors: Tuple[BulkItemError, ...]
    message: str

    @property
    def failed_ids(self) -> List[str]:
        return [e.sale_id for e in self.errors]


class BulkResultBuilder:
    """
    Accumulates per-item outcomes; safe to feed from worker threads.

    finalize() may be called once; the builder rejects further records after.
    """

    def __init__(self, operation_label: str, total: int, requested: Optional[int] = None) -> None:
        self._label = operation_label
        self._total = total
        self._requested = total if requested is None else requested
        self._succeeded = 0
        self._errors: List[BulkItemError] = []
        self._lock = Lock()
        self._finalized = False

    def record_success(self, sale_id: str) -> None:
        with self._lock:
            self._ensure_open()
            self._succeeded += 1

    def record_failure(self, sale_id: str, error: str, message: str) -> None:
        with self._lock:
            self._ensure_open()
            self._errors.append(BulkItemError(sale_id=sale_id, error=error, message=message))

    def finalize(self) -> BulkOperationResult:
        with self._lock:
            self._ensure_open()
            self._finalized = True
            attempted = self._succeeded + len(self._errors)
            if attempted != self._total:
                raise RuntimeError(
                    f"{self._label}: {attempted} outcomes recorded for {self._total} requested items"
                )
            failed = len(self._errors)
            return BulkOperationResult(
                succeeded=self._succeeded,
                failed=failed,
                total=self._total,
                errors=tuple(self._errors),
                message=f"{self._label}: {self._succeeded} succeeded, {failed} failed",
                requested=self._requested,
            )

    def _ensure_open(self) -> None:
        if self._finalized:
            raise RuntimeError("BulkOperationResult already finalized")
